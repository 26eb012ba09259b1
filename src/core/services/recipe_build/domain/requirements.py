"""
L1 Domain: requirement predicates (pure).

Requirement predicates read ``HostFacts`` and nothing else. The
factories here cover the checks recipes need; recipes built in Python
may pass any callable of the same shape instead.

Check strings (YAML form)::

    command:<name>      <name> is on PATH
    universal:<name>    <name> is a multi-architecture binary
"""

from __future__ import annotations

from typing import Any, Callable

from src.core.errors import RecipeError

HostPredicate = Callable[[Any], bool]


def command_available(command: str) -> HostPredicate:
    """Predicate: ``command`` can be found on the host."""

    def _check(host: Any) -> bool:
        return host.which(command) is not None

    _check.__name__ = f"command_available_{command}"
    return _check


def universal_command(command: str) -> HostPredicate:
    """Predicate: the binary behind ``command`` holds more than one architecture."""

    def _check(host: Any) -> bool:
        return len(host.archs_for_command(command)) > 1

    _check.__name__ = f"universal_{command}"
    return _check


_CHECKS: dict[str, Callable[[str], HostPredicate]] = {
    "command": command_available,
    "universal": universal_command,
}


def compile_requirement_check(expr: str) -> HostPredicate:
    """Compile a ``kind:arg`` check string into a host predicate.

    Raises:
        RecipeError: If the kind is unknown or the argument is missing.
    """
    kind, _, arg = expr.partition(":")
    factory = _CHECKS.get(kind.strip())
    if factory is None:
        raise RecipeError(
            f"Unknown requirement check '{expr}' (expected one of: "
            f"{', '.join(sorted(_CHECKS))})"
        )
    if not arg.strip():
        raise RecipeError(f"Requirement check '{expr}' needs an argument")
    return factory(arg.strip())
