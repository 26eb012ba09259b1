"""
BuildSelection: the resolved option values for one build invocation.

Created by the option registry once every flag has been parsed and
every default applied. Immutable from then on; downstream stages only
read it.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BuildSelection(BaseModel):
    """Option key → chosen value, one entry per declared option."""

    model_config = ConfigDict(frozen=True)

    values: dict[str, bool | str] = Field(default_factory=dict)
    explicit: frozenset[str] = frozenset()   # keys set on the command line
    defaults: dict[str, bool | str] = Field(default_factory=dict)

    def enabled(self, key: str) -> bool:
        """Whether an option is switched on.

        Boolean flags are on when True; valued flags are on when they
        hold a non-empty value. Undeclared keys are off.
        """
        value = self.values.get(key, False)
        if isinstance(value, bool):
            return value
        return value != ""

    def value(self, key: str) -> bool | str:
        """Return the resolved value for a declared key.

        Raises:
            KeyError: If the key was never declared.
        """
        return self.values[key]

    def __contains__(self, key: object) -> bool:
        return key in self.values

    @property
    def keys(self) -> list[str]:
        return list(self.values)

    def changed_flags(self) -> list[str]:
        """Command-line flags that reproduce the non-default values."""
        flags: list[str] = []
        for key, value in self.values.items():
            if self.defaults.get(key) == value:
                continue
            if value is True:
                flags.append(f"--with-{key}")
            elif value is False:
                flags.append(f"--without-{key}")
            else:
                flags.append(f"--{key}={value}")
        return flags
