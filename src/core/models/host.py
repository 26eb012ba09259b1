"""
Host facts: what the engine is allowed to know about the machine.

The core never probes the machine directly. It consumes the
``HostFacts`` protocol, which the detection layer implements for the
running host (``LocalHostFacts``) and which ``StaticHostFacts``
implements as plain data for tests and dry runs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field


class CompilerInfo(BaseModel):
    """A C/C++ compiler available on the host."""

    model_config = ConfigDict(frozen=True)

    name: str                  # "clang", "gcc", "llvm"
    cc: str = ""
    cxx: str = ""
    build: int | None = None   # vendor build number, when known

    @property
    def c_compiler(self) -> str:
        return self.cc or self.name

    @property
    def cxx_compiler(self) -> str:
        if self.cxx:
            return self.cxx
        return {"clang": "clang++", "gcc": "g++"}.get(self.name, self.name)


class HostFacts(Protocol):
    """Read-only facts about the build host."""

    @property
    def os_name(self) -> str: ...

    @property
    def arch(self) -> str: ...

    @property
    def word_bits(self) -> int: ...

    @property
    def compilers(self) -> Sequence[CompilerInfo]: ...

    @property
    def prefix(self) -> Path: ...

    def install_prefix(self, name: str, version: str) -> Path: ...

    def dependency_prefix(self, name: str) -> Path: ...

    def archs_for_command(self, command: str) -> frozenset[str]: ...

    def which(self, command: str) -> str | None: ...


class StaticHostFacts(BaseModel):
    """Host facts given as data rather than probed.

    Defaults describe a 64-bit x86 Linux box with clang.
    """

    os_name: str = "linux"
    arch: str = "x86_64"
    word_bits: int = 64
    compilers: list[CompilerInfo] = Field(
        default_factory=lambda: [CompilerInfo(name="clang", cc="clang", cxx="clang++")]
    )
    prefix: Path = Path("/usr/local")
    cellar: Path | None = None
    command_archs: dict[str, list[str]] = Field(default_factory=dict)
    commands: dict[str, str] = Field(default_factory=dict)
    dependency_paths: dict[str, Path] = Field(default_factory=dict)

    def install_prefix(self, name: str, version: str) -> Path:
        cellar = self.cellar or self.prefix / "Cellar"
        return cellar / name / version

    def dependency_prefix(self, name: str) -> Path:
        return self.dependency_paths.get(name, self.prefix / "opt" / name)

    def archs_for_command(self, command: str) -> frozenset[str]:
        return frozenset(self.command_archs.get(command, []))

    def which(self, command: str) -> str | None:
        return self.commands.get(command)
