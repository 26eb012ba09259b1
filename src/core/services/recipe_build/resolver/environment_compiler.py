"""
L2 Resolver: environment compilation.

Turns a selection, an install plan and host facts into the frozen
``BuildEnvironment`` the argument assembler and process driver use:

    1. pick a toolchain (skipping compilers the recipe fails with) and
       apply option-driven language standards
    2. reject declared incompatible combinations
    3. collect excluded sub-components from exclusion rules
    4. resolve dependency install paths (memoized)
    5. derive prefix, libdir and environment variables

No subprocess, no writes. The only I/O is the dependency path lookup,
which goes through the shared install-path cache.
"""

from __future__ import annotations

import logging
import os
import re

from src.core.errors import (
    IncompatibleOptionCombinationError,
    NoCompatibleCompilerError,
    RecipeError,
)
from src.core.models.environment import BuildEnvironment, Toolchain
from src.core.models.host import CompilerInfo, HostFacts
from src.core.models.plan import InstallPlan
from src.core.models.recipe import Recipe
from src.core.models.selection import BuildSelection
from src.core.services.recipe_build.domain.conditions import ConditionContext
from src.core.services.recipe_build.domain.exclusions import ComponentExclusionSet
from src.core.services.recipe_build.resolver.install_paths import (
    InstallPathCache,
    default_install_path_cache,
)

logger = logging.getLogger(__name__)

_ENV_PLACEHOLDER = re.compile(r"\{([a-z_]+)(?::([^{}]+))?\}")


class EnvironmentCompiler:
    """Compiles the BuildEnvironment for one recipe build.

    Args:
        recipe: The recipe being built.
        jobs: Parallel build jobs (default: CPU count).
        path_cache: Install-path cache (default: the process-wide one).
        extra_env: Environment overrides from engine configuration.
    """

    def __init__(
        self,
        recipe: Recipe,
        *,
        jobs: int | None = None,
        path_cache: InstallPathCache | None = None,
        extra_env: dict[str, str] | None = None,
    ):
        self.recipe = recipe
        self.jobs = jobs or os.cpu_count() or 1
        self.path_cache = path_cache or default_install_path_cache()
        self.extra_env = dict(extra_env or {})

    def compile(
        self,
        selection: BuildSelection,
        plan: InstallPlan,
        host: HostFacts,
    ) -> BuildEnvironment:
        """Derive the build environment.

        Raises:
            NoCompatibleCompilerError: Every host compiler is declared failing.
            IncompatibleOptionCombinationError: A declared incompatibility
                matched, or two language standards were selected.
        """
        recipe = self.recipe
        toolchain = self._select_toolchain(selection, host)

        ctx = ConditionContext.for_host(
            selection, host, compiler=toolchain.compiler.name, plan=plan.names,
        )

        for rule in recipe.incompatibilities:
            if rule.when(ctx):
                raise IncompatibleOptionCombinationError(rule.message)

        exclusions = ComponentExclusionSet()
        for rule in recipe.exclusions:
            if rule.when(ctx):
                exclusions.update(rule.components, rule.reason)
        if len(exclusions):
            logger.info("Excluding components: %s", ", ".join(exclusions))

        universal = (
            recipe.get_option(recipe.universal_option) is not None
            and selection.enabled(recipe.universal_option)
        )
        if universal:
            arch_flags: list[str] = []
            for arch in recipe.universal_archs:
                arch_flags += ["-arch", arch]
            toolchain = toolchain.model_copy(update={
                "cflags": toolchain.cflags + tuple(arch_flags),
                "cxxflags": toolchain.cxxflags + tuple(arch_flags),
                "ldflags": toolchain.ldflags + tuple(arch_flags),
            })

        dependency_paths = {
            entry.name: self.path_cache.get(entry.name, host.dependency_prefix)
            for entry in plan.entries
        }

        prefix = host.install_prefix(recipe.name, recipe.version)
        env_vars = self._environment(toolchain, prefix, host, dependency_paths)

        return BuildEnvironment(
            recipe=recipe.name,
            version=recipe.version,
            selection=selection,
            os_name=host.os_name,
            arch=host.arch,
            word_bits=host.word_bits,
            toolchain=toolchain,
            plan=tuple(plan.names),
            dependency_paths=dependency_paths,
            prefix=prefix,
            libdir=prefix / "lib",
            opt_prefix=host.prefix,
            jobs=self.jobs,
            universal=universal,
            excluded=exclusions.freeze(),
            exclusion_reasons=exclusions.reasons,
            env=env_vars,
        )

    # ── Toolchain ───────────────────────────────────────────────

    def _select_toolchain(self, selection: BuildSelection, host: HostFacts) -> Toolchain:
        compiler = self._select_compiler(host)

        standards = [
            ls for ls in self.recipe.language_standards if selection.enabled(ls.option)
        ]
        if len(standards) > 1:
            names = ", ".join(f"--{ls.option}" for ls in standards)
            raise IncompatibleOptionCombinationError(
                f"Only one language standard can be selected at a time (got {names})"
            )
        if not standards:
            return Toolchain(compiler=compiler)

        std = standards[0]
        logger.info("Using language standard %s (--%s)", std.standard, std.option)
        return Toolchain(
            compiler=compiler,
            standard=std.standard,
            cxxflags=std.cxxflags,
            ldflags=std.ldflags,
        )

    def _select_compiler(self, host: HostFacts) -> CompilerInfo:
        causes: list[str] = []
        for compiler in host.compilers:
            failure = next(
                (f for f in self.recipe.fails_with if f.matches(compiler.name, compiler.build)),
                None,
            )
            if failure is None:
                return compiler
            cause = f"{compiler.name}: {failure.cause}" if failure.cause else compiler.name
            logger.info("Skipping compiler %s (%s)", compiler.name, failure.cause or "declared failing")
            causes.append(cause)

        if not causes:
            raise NoCompatibleCompilerError("No C/C++ compiler was found on this host.")
        raise NoCompatibleCompilerError(
            f"{self.recipe.name} cannot be built with any available compiler:\n  "
            + "\n  ".join(causes)
        )

    # ── Environment variables ───────────────────────────────────

    def _environment(
        self,
        toolchain: Toolchain,
        prefix,
        host: HostFacts,
        dependency_paths: dict,
    ) -> dict[str, str]:
        env: dict[str, str] = {
            "CC": toolchain.cc,
            "CXX": toolchain.cxx,
        }
        if toolchain.cflags:
            env["CFLAGS"] = " ".join(toolchain.cflags)
        if toolchain.cxxflags:
            env["CXXFLAGS"] = " ".join(toolchain.cxxflags)
        if toolchain.ldflags:
            env["LDFLAGS"] = " ".join(toolchain.ldflags)

        values = {
            "prefix": str(prefix),
            "libdir": str(prefix / "lib"),
            "opt_prefix": str(host.prefix),
            "jobs": str(self.jobs),
            "cc": toolchain.cc,
            "cxx": toolchain.cxx,
        }

        def _sub(match: re.Match[str]) -> str:
            key, arg = match.group(1), match.group(2)
            if key == "dep" and arg is not None:
                if arg not in dependency_paths:
                    raise RecipeError(
                        f"Environment refers to dependency '{arg}', which is not in the plan"
                    )
                return str(dependency_paths[arg])
            if arg is None and key in values:
                return values[key]
            raise RecipeError(f"Unknown placeholder '{match.group(0)}' in recipe environment")

        for key, value in {**self.recipe.environment, **self.extra_env}.items():
            env[key] = _ENV_PLACEHOLDER.sub(_sub, value)
        return env
