"""
Recipe build service — package re-exports.

Callers import from here::

    from src.core.services.recipe_build import RecipeBuilder, plan_build

Each symbol lives in its single-responsibility module inside the
appropriate layer (domain → resolver → detection → execution →
orchestration).
"""

from src.core.services.recipe_build.builder import RecipeBuilder  # noqa: F401

# ── L1: Domain ──
from src.core.services.recipe_build.domain.arguments import ArgumentAssembler  # noqa: F401
from src.core.services.recipe_build.domain.conditions import (  # noqa: F401
    ConditionContext,
    compile_condition,
)
from src.core.services.recipe_build.domain.options import OptionRegistry  # noqa: F401

# ── L2: Resolver ──
from src.core.services.recipe_build.resolver.dependency_resolver import (  # noqa: F401
    DependencyResolver,
)
from src.core.services.recipe_build.resolver.environment_compiler import (  # noqa: F401
    EnvironmentCompiler,
)
from src.core.services.recipe_build.resolver.install_paths import InstallPathCache  # noqa: F401

# ── L3: Detection ──
from src.core.services.recipe_build.detection.caveats import CaveatEmitter  # noqa: F401
from src.core.services.recipe_build.detection.host import LocalHostFacts  # noqa: F401

# ── L4: Execution ──
from src.core.services.recipe_build.execution.process_driver import ProcessDriver  # noqa: F401
from src.core.services.recipe_build.execution.subprocess_runner import run_command  # noqa: F401

# ── L5: Orchestration ──
from src.core.services.recipe_build.orchestration.pipeline import (  # noqa: F401
    BuildPlan,
    BuildResult,
    build_recipe,
    plan_build,
)
