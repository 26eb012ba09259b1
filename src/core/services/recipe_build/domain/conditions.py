"""
L1 Domain: condition expressions (pure).

Recipes gate dependencies, rules, arguments and caveats on small
string conditions. They are compiled once, at recipe-load time, into
callables and evaluated lazily against a ``ConditionContext``.

Grammar::

    condition  := atom ("|" atom)*          any-of
    conditions := [condition, ...]          all-of
    atom       := ["not:"] kind [":" arg]

Atoms:
    with:<key>, without:<key>   option switched on / off
    option:<key>=<value>        valued option equals value
    os:<name>                   host OS ("macos", "linux")
    arch:<family>               CPU family ("x86_64", "i386", "arm64", "ppc")
    32bit, 64bit                host word width
    compiler:<name>             selected compiler
    dep:<name>                  dependency present in the install plan
    always, never

No I/O, no subprocess.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from src.core.errors import RecipeError
from src.core.models.selection import BuildSelection

# Atoms that only read the selection
_SELECTION_KINDS = {"with", "without", "option", "always", "never"}
# Atoms that read host facts, the toolchain or the plan
_CONTEXT_KINDS = {"os", "arch", "32bit", "64bit", "compiler", "dep"}
_NO_ARG_KINDS = {"always", "never", "32bit", "64bit"}

_ARCH_FAMILIES = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "i386": "i386",
    "i686": "i386",
    "x86": "i386",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv7l": "arm",
    "ppc": "ppc",
    "ppc64": "ppc",
    "ppc64le": "ppc",
    "powerpc": "ppc",
}


def arch_family(arch: str | None) -> str:
    """Normalize a machine name to its CPU family."""
    if not arch:
        return ""
    return _ARCH_FAMILIES.get(arch.lower(), arch.lower())


@dataclass(frozen=True)
class ConditionContext:
    """Facts a condition may read."""

    selection: BuildSelection
    os_name: str | None = None
    arch: str | None = None
    word_bits: int | None = None
    compiler: str | None = None
    plan: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def for_host(
        cls,
        selection: BuildSelection,
        host: Any,
        *,
        compiler: str | None = None,
        plan: Sequence[str] = (),
    ) -> ConditionContext:
        return cls(
            selection=selection,
            os_name=host.os_name,
            arch=host.arch,
            word_bits=host.word_bits,
            compiler=compiler,
            plan=frozenset(plan),
        )

    @classmethod
    def for_environment(cls, env: Any) -> ConditionContext:
        return cls(
            selection=env.selection,
            os_name=env.os_name,
            arch=env.arch,
            word_bits=env.word_bits,
            compiler=env.toolchain.compiler.name,
            plan=frozenset(env.plan),
        )


@dataclass(frozen=True)
class _Atom:
    kind: str
    arg: str = ""
    negate: bool = False

    def evaluate(self, ctx: ConditionContext) -> bool:
        result = self._raw(ctx)
        return not result if self.negate else result

    def _raw(self, ctx: ConditionContext) -> bool:
        kind, arg = self.kind, self.arg
        if kind == "always":
            return True
        if kind == "never":
            return False
        if kind == "with":
            return ctx.selection.enabled(arg)
        if kind == "without":
            return not ctx.selection.enabled(arg)
        if kind == "option":
            key, _, expected = arg.partition("=")
            value = ctx.selection.values.get(key)
            if isinstance(value, bool):
                return str(value).lower() == expected.lower()
            return value == expected

        if kind in ("os", "arch", "32bit", "64bit") and ctx.os_name is None:
            raise RecipeError(f"Condition '{self}' needs host facts but none were given")
        if kind == "os":
            return ctx.os_name == arg
        if kind == "arch":
            return arch_family(ctx.arch) == arch_family(arg)
        if kind == "32bit":
            return ctx.word_bits == 32
        if kind == "64bit":
            return ctx.word_bits == 64
        if kind == "compiler":
            return ctx.compiler == arg
        if kind == "dep":
            return arg in ctx.plan
        raise RecipeError(f"Unknown condition kind: {kind}")

    def __str__(self) -> str:
        text = f"{self.kind}:{self.arg}" if self.arg else self.kind
        return f"not:{text}" if self.negate else text


class Condition:
    """A compiled all-of list of any-of atom groups."""

    def __init__(self, expression: str, groups: list[list[_Atom]]):
        self.expression = expression
        self._groups = groups

    def __call__(self, ctx: ConditionContext) -> bool:
        return all(any(atom.evaluate(ctx) for atom in group) for group in self._groups)

    @property
    def option_keys(self) -> frozenset[str]:
        keys: set[str] = set()
        for group in self._groups:
            for atom in group:
                if atom.kind in ("with", "without"):
                    keys.add(atom.arg)
                elif atom.kind == "option":
                    keys.add(atom.arg.partition("=")[0])
        return frozenset(keys)

    @property
    def selection_only(self) -> bool:
        return all(atom.kind in _SELECTION_KINDS for group in self._groups for atom in group)

    def __repr__(self) -> str:
        return f"Condition({self.expression!r})"


class SelectionCondition:
    """A condition evaluated against a BuildSelection alone."""

    def __init__(self, condition: Condition):
        if not condition.selection_only:
            raise RecipeError(
                f"Condition '{condition.expression}' reads host facts; "
                "only with:/without:/option: may gate dependencies"
            )
        self.condition = condition

    def __call__(self, selection: BuildSelection) -> bool:
        return self.condition(ConditionContext(selection=selection))

    @property
    def option_keys(self) -> frozenset[str]:
        return self.condition.option_keys

    @property
    def expression(self) -> str:
        return self.condition.expression


def _parse_atom(text: str) -> _Atom:
    text = text.strip()
    negate = False
    if text.startswith("not:"):
        negate = True
        text = text[len("not:"):].strip()
    kind, _, arg = text.partition(":")
    kind = kind.strip()
    arg = arg.strip()

    if kind not in _SELECTION_KINDS and kind not in _CONTEXT_KINDS:
        raise RecipeError(f"Unknown condition '{text}'")
    if kind in _NO_ARG_KINDS:
        if arg:
            raise RecipeError(f"Condition '{kind}' takes no argument")
    elif not arg:
        raise RecipeError(f"Condition '{kind}' needs an argument, e.g. '{kind}:name'")
    if kind == "option" and "=" not in arg:
        raise RecipeError(f"Condition 'option:{arg}' must have the form option:<key>=<value>")
    return _Atom(kind=kind, arg=arg, negate=negate)


def compile_condition(expr: str | Sequence[str] | Condition | None) -> Condition:
    """Compile a condition expression.

    Args:
        expr: A single condition string, a list of them (all must hold),
            an already-compiled ``Condition``, or None (always true).

    Returns:
        A callable ``Condition``.

    Raises:
        RecipeError: If any atom is malformed or unknown.
    """
    if isinstance(expr, Condition):
        return expr
    if expr is None:
        return Condition("always", [[_Atom("always")]])
    parts = [expr] if isinstance(expr, str) else list(expr)
    if not parts:
        return Condition("always", [[_Atom("always")]])

    groups: list[list[_Atom]] = []
    for part in parts:
        alternatives = [a for a in part.split("|") if a.strip()]
        if not alternatives:
            raise RecipeError(f"Empty condition in {expr!r}")
        groups.append([_parse_atom(a) for a in alternatives])
    return Condition(" & ".join(parts), groups)


def compile_selection_condition(
    expr: str | Sequence[str] | None,
) -> SelectionCondition | None:
    """Compile a condition that may only read the selection (None stays None)."""
    if expr is None:
        return None
    return SelectionCondition(compile_condition(expr))
