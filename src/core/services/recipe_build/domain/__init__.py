"""
L1 Domain — ``__init__.py`` re-exports the pure recipe logic.

No subprocess calls, no filesystem access. Pure input→output.
"""

from src.core.services.recipe_build.domain.arguments import (  # noqa: F401
    ArgumentAssembler,
    render_template,
    toggle_token,
)
from src.core.services.recipe_build.domain.conditions import (  # noqa: F401
    Condition,
    ConditionContext,
    SelectionCondition,
    arch_family,
    compile_condition,
    compile_selection_condition,
)
from src.core.services.recipe_build.domain.dag import find_cycle, topological_order  # noqa: F401
from src.core.services.recipe_build.domain.exclusions import ComponentExclusionSet  # noqa: F401
from src.core.services.recipe_build.domain.options import OptionRegistry  # noqa: F401
from src.core.services.recipe_build.domain.requirements import (  # noqa: F401
    command_available,
    compile_requirement_check,
    universal_command,
)
