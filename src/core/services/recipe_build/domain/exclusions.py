"""
L1 Domain: component exclusion set (pure).

Collects the sub-components a build must leave out. Members can only
be added, never removed, and keep their first-added order so the
argument vector built from them is stable.
"""

from __future__ import annotations

from typing import Iterable, Iterator


class ComponentExclusionSet:
    """Ordered, grow-only set of excluded sub-components."""

    def __init__(self) -> None:
        self._reasons: dict[str, str] = {}

    def add(self, component: str, reason: str = "") -> None:
        """Exclude ``component``; the first reason given is kept."""
        self._reasons.setdefault(component, reason)

    def update(self, components: Iterable[str], reason: str = "") -> None:
        for component in components:
            self.add(component, reason)

    def reason(self, component: str) -> str:
        return self._reasons.get(component, "")

    def freeze(self) -> tuple[str, ...]:
        return tuple(self._reasons)

    @property
    def reasons(self) -> dict[str, str]:
        return dict(self._reasons)

    def __contains__(self, component: object) -> bool:
        return component in self._reasons

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._reasons))

    def __len__(self) -> int:
        return len(self._reasons)

    def __repr__(self) -> str:
        return f"ComponentExclusionSet({list(self._reasons)!r})"
