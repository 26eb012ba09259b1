"""
L5 Orchestration: the build pipeline.

Runs one recipe build end to end::

    options → dependency plan → environment → argument vectors
            → (source preparation → external steps) → receipt → caveats

``plan_build`` stops before anything touches the filesystem or spawns
a process, so every option, dependency and incompatibility error is
raised before the first subprocess. ``build_recipe`` continues through
execution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from src.core.models.action import InstallReceipt, StepReceipt
from src.core.models.environment import ArgumentVector, BuildEnvironment
from src.core.models.host import HostFacts
from src.core.models.plan import InstallPlan
from src.core.models.recipe import Recipe
from src.core.models.selection import BuildSelection
from src.core.services.recipe_build.detection.caveats import (
    ArtifactProbe,
    CaveatEmitter,
    FilesystemProbe,
)
from src.core.services.recipe_build.domain.arguments import ArgumentAssembler
from src.core.services.recipe_build.domain.options import OptionRegistry
from src.core.services.recipe_build.execution.install_receipt import (
    build_install_receipt,
    write_install_receipt,
)
from src.core.services.recipe_build.execution.process_driver import ProcessDriver
from src.core.services.recipe_build.resolver.dependency_resolver import (
    DependencyResolver,
    RecipeLookup,
)
from src.core.services.recipe_build.resolver.environment_compiler import EnvironmentCompiler
from src.core.services.recipe_build.resolver.install_paths import InstallPathCache

logger = logging.getLogger(__name__)


@dataclass
class BuildPlan:
    """Everything decided about a build before it runs."""

    recipe: Recipe
    selection: BuildSelection
    plan: InstallPlan
    environment: BuildEnvironment
    vectors: list[ArgumentVector] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        env = self.environment
        return {
            "recipe": self.recipe.name,
            "version": self.recipe.version,
            "options": dict(self.selection.values),
            "dependencies": [e.model_dump(mode="json") for e in self.plan.entries],
            "compiler": env.toolchain.compiler.name,
            "standard": env.toolchain.standard,
            "prefix": str(env.prefix),
            "excluded": list(env.excluded),
            "env": dict(env.env),
            "steps": [{"step": v.step, "argv": v.argv} for v in self.vectors],
        }


@dataclass
class BuildResult:
    """Outcome of a completed build."""

    plan: BuildPlan
    steps: list[StepReceipt]
    receipt: InstallReceipt
    receipt_path: Path | None = None
    caveats: list[str] = field(default_factory=list)


def plan_build(
    recipe: Recipe,
    user_args: Sequence[str],
    host: HostFacts,
    *,
    lookup: RecipeLookup | None = None,
    jobs: int | None = None,
    path_cache: InstallPathCache | None = None,
    extra_env: dict[str, str] | None = None,
) -> BuildPlan:
    """Resolve options, dependencies, environment and command lines.

    Args:
        recipe: Recipe to build.
        user_args: Raw option flags (``--with-mpi``, ``--c++11`` ...).
        host: Host facts.
        lookup: Finds dependency recipes for transitive resolution.
        jobs: Parallel build jobs.
        path_cache: Install-path cache shared across builds.
        extra_env: Environment variables from engine configuration.

    Raises:
        OptionError: Unknown, renamed or conflicting options.
        DependencyError: Unmet requirement or dependency cycle.
        IncompatibleOptionCombinationError: A known-bad combination.
    """
    logger.info("Planning %s %s", recipe.name, recipe.version)

    selection = OptionRegistry.from_recipe(recipe).resolve(user_args)
    logger.debug("Selection: %s", selection.values)

    plan = DependencyResolver(host, lookup).resolve(
        selection, recipe.dependencies, root=recipe.name,
    )
    if len(plan):
        logger.info("Dependencies: %s", ", ".join(plan.names))

    environment = EnvironmentCompiler(
        recipe, jobs=jobs, path_cache=path_cache, extra_env=extra_env,
    ).compile(selection, plan, host)

    vectors = ArgumentAssembler().assemble_all(environment, recipe)
    return BuildPlan(
        recipe=recipe,
        selection=selection,
        plan=plan,
        environment=environment,
        vectors=vectors,
    )


def build_recipe(
    recipe: Recipe,
    user_args: Sequence[str],
    host: HostFacts,
    *,
    source_dir: Path,
    driver: ProcessDriver | None = None,
    lookup: RecipeLookup | None = None,
    jobs: int | None = None,
    path_cache: InstallPathCache | None = None,
    extra_env: dict[str, str] | None = None,
    write_receipt: bool = True,
    probe: ArtifactProbe | None = None,
) -> BuildResult:
    """Plan and run a build, then record it and collect caveats.

    The first failing step aborts the build; no receipt is written
    and no caveats are evaluated.

    Raises:
        Everything ``plan_build`` raises, plus ``ExecutionError`` and
        ``BuildCancelledError`` from the driver.
    """
    planned = plan_build(
        recipe,
        user_args,
        host,
        lookup=lookup,
        jobs=jobs,
        path_cache=path_cache,
        extra_env=extra_env,
    )
    env = planned.environment
    driver = driver or ProcessDriver()

    steps = driver.drive(env, recipe, planned.vectors, Path(source_dir))
    logger.info("Built %s %s in %s", recipe.name, recipe.version, env.prefix)

    receipt = build_install_receipt(env, steps)
    receipt_path = write_install_receipt(receipt, env.prefix) if write_receipt else None

    caveats = CaveatEmitter(recipe.caveats).emit(env, probe or FilesystemProbe(env.prefix))
    return BuildResult(
        plan=planned,
        steps=steps,
        receipt=receipt,
        receipt_path=receipt_path,
        caveats=caveats,
    )
