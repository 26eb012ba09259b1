"""
L5 Orchestration — ``__init__.py`` re-exports the build entry points.
"""

from src.core.services.recipe_build.orchestration.pipeline import (  # noqa: F401
    BuildPlan,
    BuildResult,
    build_recipe,
    plan_build,
)
