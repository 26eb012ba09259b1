"""
Build environment and argument vectors.

``BuildEnvironment`` is the single read-only view every downstream
stage works from. It is derived once per build and never mutated.
"""

from __future__ import annotations

import shlex
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from src.core.models.host import CompilerInfo
from src.core.models.selection import BuildSelection


class Toolchain(BaseModel):
    """Compiler identity plus the flags the selection forces on it."""

    model_config = ConfigDict(frozen=True)

    compiler: CompilerInfo
    standard: str | None = None
    cflags: tuple[str, ...] = ()
    cxxflags: tuple[str, ...] = ()
    ldflags: tuple[str, ...] = ()

    @property
    def cc(self) -> str:
        return self.compiler.c_compiler

    @property
    def cxx(self) -> str:
        return self.compiler.cxx_compiler


class BuildEnvironment(BaseModel):
    """Everything one build needs to know, frozen."""

    model_config = ConfigDict(frozen=True)

    recipe: str
    version: str
    selection: BuildSelection

    os_name: str
    arch: str
    word_bits: int
    toolchain: Toolchain

    plan: tuple[str, ...] = ()
    dependency_paths: dict[str, Path] = Field(default_factory=dict)

    prefix: Path
    libdir: Path
    opt_prefix: Path
    jobs: int = 1

    universal: bool = False
    excluded: tuple[str, ...] = ()
    exclusion_reasons: dict[str, str] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)

    def is_excluded(self, component: str) -> bool:
        return component in self.excluded


class ArgumentVector(BaseModel):
    """The exact command line for one external step."""

    model_config = ConfigDict(frozen=True)

    step: str
    command: str
    args: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    def __str__(self) -> str:
        return shlex.join(self.argv)
