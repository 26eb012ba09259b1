"""
L1 Domain: argument assembly (pure).

Builds the exact command line for each external step from a frozen
``BuildEnvironment``. The same environment always yields the same
vector; nothing here reads the clock, the filesystem or the process
environment.

Order within a step:
    1. prefix flag, libdir flag
    2. the step's template args
    3. conditional args, in declaration order
    4. one exclusion entry, members joined by the flag's separator
       (left out when nothing is excluded)
    5. toggles, in declaration order
    6. universal args, then the precompiled-header disable token
    7. trailing args

Template placeholders: {prefix} {libdir} {opt_prefix} {jobs} {cc}
{cxx} {name} {version} {dep:<name>} {option:<key>}.
"""

from __future__ import annotations

import logging
import re

from src.core.errors import RecipeError
from src.core.models.environment import ArgumentVector, BuildEnvironment
from src.core.models.recipe import Recipe, StepSpec, Toggle
from src.core.services.recipe_build.domain.conditions import ConditionContext

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{([a-z_]+)(?::([^{}]+))?\}")


def render_template(template: str, env: BuildEnvironment) -> str:
    """Substitute ``{placeholder}`` tokens from the environment.

    Raises:
        RecipeError: Unknown placeholder, or a ``{dep:...}`` that is not
            part of the install plan.
    """

    def _sub(match: re.Match[str]) -> str:
        key, arg = match.group(1), match.group(2)
        if arg is not None:
            if key == "dep":
                path = env.dependency_paths.get(arg)
                if path is None:
                    raise RecipeError(
                        f"'{template}' refers to dependency '{arg}', "
                        "which is not in the install plan"
                    )
                return str(path)
            if key == "option":
                if arg not in env.selection:
                    raise RecipeError(f"'{template}' refers to undeclared option '{arg}'")
                value = env.selection.value(arg)
                return str(value).lower() if isinstance(value, bool) else value
            raise RecipeError(f"Unknown placeholder '{match.group(0)}' in '{template}'")

        simple = {
            "prefix": str(env.prefix),
            "libdir": str(env.libdir),
            "opt_prefix": str(env.opt_prefix),
            "jobs": str(env.jobs),
            "cc": env.toolchain.cc,
            "cxx": env.toolchain.cxx,
            "name": env.recipe,
            "version": env.version,
        }
        if key not in simple:
            raise RecipeError(f"Unknown placeholder '{match.group(0)}' in '{template}'")
        return simple[key]

    return _PLACEHOLDER.sub(_sub, template)


def toggle_token(toggle: Toggle, env: BuildEnvironment) -> str:
    """``name=base`` or, when the option is on, ``name=base,variant``."""
    values = [toggle.base]
    if env.selection.enabled(toggle.option):
        values.append(toggle.variant)
    return f"{toggle.name}={toggle.separator.join(values)}"


class ArgumentAssembler:
    """Turns a BuildEnvironment into per-step argument vectors."""

    def assemble(self, env: BuildEnvironment, step: StepSpec, name: str = "build") -> ArgumentVector:
        """Build the argument vector for one step."""
        args: list[str] = []

        # Always explicit: downstream consumers locate libraries by this path
        if step.prefix_flag:
            args.append(render_template(step.prefix_flag, env))
        if step.libdir_flag:
            args.append(render_template(step.libdir_flag, env))

        args.extend(render_template(a, env) for a in step.args)

        if step.conditional:
            ctx = ConditionContext.for_environment(env)
            for cond in step.conditional:
                chosen = cond.args if cond.when(ctx) else cond.otherwise
                args.extend(render_template(a, env) for a in chosen)

        if step.exclusion_flag is not None and env.excluded:
            joined = step.exclusion_flag.separator.join(env.excluded)
            args.append(f"{step.exclusion_flag.flag}{joined}")

        args.extend(toggle_token(t, env) for t in step.toggles)

        if env.universal and step.universal is not None:
            args.extend(render_template(a, env) for a in step.universal.args)
            if step.universal.disable_pch:
                args.append(step.universal.disable_pch)

        args.extend(render_template(a, env) for a in step.trailing)

        vector = ArgumentVector(step=name, command=render_template(step.command, env), args=tuple(args))
        logger.debug("Assembled %s: %s", name, vector)
        return vector

    def assemble_all(self, env: BuildEnvironment, recipe: Recipe) -> list[ArgumentVector]:
        """Argument vectors for every step of the recipe, in execution order."""
        return [self.assemble(env, step, name) for name, step in recipe.steps]
