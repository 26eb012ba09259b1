"""
L1 Domain: option registry (pure).

Declares a recipe's build switches and turns command-line flags into
an immutable ``BuildSelection``.

Flag grammar::

    --with-<key>          boolean flag on
    --without-<key>       boolean flag off
    --<key>               boolean flag on
    --<key>=<value>       valued flag (or true/false for a boolean flag)

No I/O, no subprocess.
"""

from __future__ import annotations

import logging
from typing import Sequence

from src.core.errors import (
    ConflictingOptionError,
    DuplicateOptionError,
    InvalidOptionValueError,
    UnknownOptionError,
)
from src.core.models.recipe import ConflictRule, OptionSpec, Recipe
from src.core.models.selection import BuildSelection
from src.core.services.recipe_build.domain.conditions import ConditionContext

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


class OptionRegistry:
    """The declared options of one recipe, plus its conflict rules."""

    def __init__(
        self,
        specs: Sequence[OptionSpec] = (),
        *,
        conflicts: Sequence[ConflictRule] = (),
        renamed: dict[str, str] | None = None,
    ):
        self._specs: dict[str, OptionSpec] = {}
        self._conflicts: list[ConflictRule] = list(conflicts)
        self._renamed: dict[str, str] = dict(renamed or {})
        for spec in specs:
            self.register(spec)

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> OptionRegistry:
        return cls(
            recipe.options,
            conflicts=recipe.conflicts,
            renamed=recipe.renamed_options,
        )

    # ── Declaration ─────────────────────────────────────────────

    def register(self, spec: OptionSpec) -> None:
        """Declare an option.

        Raises:
            DuplicateOptionError: If the key is already declared.
        """
        if spec.key in self._specs:
            raise DuplicateOptionError(spec.key)
        if spec.kind == "flag" and not isinstance(spec.default, bool):
            raise InvalidOptionValueError(
                f"Boolean option '{spec.key}' needs a true/false default, "
                f"got {spec.default!r}"
            )
        self._specs[spec.key] = spec

    def add_conflict(self, rule: ConflictRule) -> None:
        self._conflicts.append(rule)

    def __contains__(self, key: object) -> bool:
        return key in self._specs

    def get(self, key: str) -> OptionSpec | None:
        return self._specs.get(key)

    @property
    def specs(self) -> list[OptionSpec]:
        return list(self._specs.values())

    # ── Resolution ──────────────────────────────────────────────

    def defaults(self, overrides: dict[str, bool | str] | None = None) -> BuildSelection:
        """A selection of default values, with declared keys in ``overrides`` applied."""
        chosen = {k: v for k, v in (overrides or {}).items() if k in self._specs}
        return self._finish(chosen)

    def resolve(self, user_args: Sequence[str]) -> BuildSelection:
        """Resolve command-line flags into a complete selection.

        Args:
            user_args: Raw flags, e.g. ``["--with-icu", "--without-static"]``.

        Returns:
            A ``BuildSelection`` with exactly one value per declared key.

        Raises:
            UnknownOptionError: Unrecognized or renamed flag.
            InvalidOptionValueError: Value does not fit the option kind.
            ConflictingOptionError: A flag and its negation, or a declared
                conflict rule matched.
        """
        chosen: dict[str, bool | str] = {}
        origin: dict[str, str] = {}

        for raw in user_args:
            key, value = self._parse_flag(raw)
            if key in chosen and chosen[key] != value:
                raise ConflictingOptionError(
                    f"{origin[key]} and {raw} cannot be used together"
                )
            chosen[key] = value
            origin[key] = raw

        selection = self._finish(chosen)

        ctx = ConditionContext(selection=selection)
        for rule in self._conflicts:
            if rule.when(ctx):
                raise ConflictingOptionError(rule.message)

        logger.debug("Resolved options: %s", selection.values)
        return selection

    def _finish(self, chosen: dict[str, bool | str]) -> BuildSelection:
        defaults = {key: spec.default for key, spec in self._specs.items()}
        values = {key: chosen.get(key, default) for key, default in defaults.items()}
        return BuildSelection(values=values, explicit=frozenset(chosen), defaults=defaults)

    def _parse_flag(self, raw: str) -> tuple[str, bool | str]:
        if not raw.startswith("--") or len(raw) <= 2:
            raise UnknownOptionError(raw)
        body = raw[2:]
        name, has_value, value = body.partition("=")

        if name in self._renamed:
            raise UnknownOptionError(
                raw, f"--{name} has been renamed to --{self._renamed[name]}"
            )

        # Exact key first, so a key that itself starts with "with-" still works
        spec = self._specs.get(name)
        if spec is not None:
            if not has_value:
                if spec.kind == "valued":
                    raise InvalidOptionValueError(f"--{name} needs a value: --{name}=<value>")
                return name, True
            if spec.kind == "valued":
                return name, value
            return name, self._parse_bool(raw, value)

        for prefix, flag_value in (("with-", True), ("without-", False)):
            if name.startswith(prefix):
                key = name[len(prefix):]
                spec = self._specs.get(key)
                if spec is None:
                    break
                if spec.kind != "flag":
                    raise InvalidOptionValueError(
                        f"--{key} takes a value; use --{key}=<value>"
                    )
                if has_value:
                    raise InvalidOptionValueError(f"{raw}: --{name} takes no value")
                return key, flag_value

        raise UnknownOptionError(raw)

    @staticmethod
    def _parse_bool(raw: str, value: str) -> bool:
        lowered = value.lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        raise InvalidOptionValueError(f"{raw}: expected true or false, got {value!r}")
