"""
L2 Resolver — ``__init__.py`` re-exports the resolvers.

These turn a recipe plus a selection into a concrete install plan and
build environment.
"""

from src.core.services.recipe_build.resolver.dependency_resolver import (  # noqa: F401
    DependencyResolver,
    RecipeLookup,
)
from src.core.services.recipe_build.resolver.environment_compiler import (  # noqa: F401
    EnvironmentCompiler,
)
from src.core.services.recipe_build.resolver.install_paths import (  # noqa: F401
    InstallPathCache,
    default_install_path_cache,
)
