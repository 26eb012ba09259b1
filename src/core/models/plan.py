"""
Install plan: the ordered, deduplicated dependency list for one build.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class PlannedDependency(BaseModel):
    """One dependency in the plan, with every variant and requester merged."""

    model_config = ConfigDict(frozen=True)

    name: str
    level: str = "required"
    variants: tuple[str, ...] = ()
    requested_by: tuple[str, ...] = ()


class InstallPlan(BaseModel):
    """Dependencies in topological order: a dependency precedes its dependents."""

    model_config = ConfigDict(frozen=True)

    recipe: str
    entries: tuple[PlannedDependency, ...] = ()

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.entries]

    def get(self, name: str) -> PlannedDependency | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def __contains__(self, name: object) -> bool:
        return any(e.name == name for e in self.entries)

    def __len__(self) -> int:
        return len(self.entries)
