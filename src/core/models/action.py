"""
Step and install receipts: the record of what actually ran.

A ``StepReceipt`` captures one external command. An ``InstallReceipt``
is written next to the installed files once the whole build succeeds,
so the prefix records how it was produced.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepReceipt(BaseModel):
    """Result of one external command."""

    step: str                       # "configure", "build", "patch"
    argv: list[str]
    status: Literal["ok", "failed"] = "ok"
    exit_code: int = 0

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output_tail: str = ""
    log_path: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def from_exit(cls, step: str, argv: list[str], exit_code: int, **kwargs) -> StepReceipt:
        return cls(
            step=step,
            argv=argv,
            exit_code=exit_code,
            status="ok" if exit_code == 0 else "failed",
            **kwargs,
        )


class InstallReceipt(BaseModel):
    """How an installed prefix was built."""

    name: str
    version: str
    built_at: str = Field(default_factory=_now_iso)
    used_options: list[str] = Field(default_factory=list)
    unused_options: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    excluded_components: list[str] = Field(default_factory=list)
    compiler: str = ""
    standard: str | None = None
    steps: list[StepReceipt] = Field(default_factory=list)
