"""
L3 Detection: host facts for the running machine.

Read-only probes: platform, PATH lookups, compiler ``--version``
banners, and ``lipo``/``file`` for binary architectures. Probe results
are cached per instance; nothing here writes.
"""

from __future__ import annotations

import functools
import logging
import platform
import re
import shutil
import subprocess
import sys
from pathlib import Path

from src.core.models.host import CompilerInfo
from src.core.services.recipe_build.domain.conditions import arch_family

logger = logging.getLogger(__name__)

# Preference order; the first usable one is the default compiler
_COMPILER_CANDIDATES: tuple[tuple[str, str, str], ...] = (
    ("clang", "clang", "clang++"),
    ("gcc", "gcc", "g++"),
    ("llvm", "llvm-gcc", "llvm-g++"),
)

# `file` output fragment → architecture
_FILE_ARCH_PATTERNS: tuple[tuple[str, str], ...] = (
    ("x86-64", "x86_64"),
    ("x86_64", "x86_64"),
    ("80386", "i386"),
    ("i386", "i386"),
    ("aarch64", "arm64"),
    ("arm64", "arm64"),
    ("PowerPC", "ppc"),
    ("ppc", "ppc"),
)


def _compiler_build(binary: str) -> int | None:
    """Vendor build number from a compiler banner (e.g. ``clang-503``)."""
    try:
        r = subprocess.run(
            [binary, "--version"],
            capture_output=True, text=True, timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    m = re.search(r"(?:clang|build)[- ](\d+)", r.stdout + r.stderr)
    return int(m.group(1)) if m else None


class LocalHostFacts:
    """HostFacts for the machine the engine runs on.

    Args:
        prefix: Global install prefix (e.g. ``/usr/local``).
        cellar: Where versioned installs live (default: ``<prefix>/Cellar``).
    """

    def __init__(self, prefix: Path, cellar: Path | None = None):
        self._prefix = Path(prefix)
        self._cellar = Path(cellar) if cellar else self._prefix / "Cellar"
        self._archs: dict[str, frozenset[str]] = {}

    @classmethod
    def from_config(cls, config) -> LocalHostFacts:
        return cls(prefix=config.prefix, cellar=config.cellar)

    @functools.cached_property
    def os_name(self) -> str:
        system = platform.system().lower()
        return "macos" if system == "darwin" else system

    @functools.cached_property
    def arch(self) -> str:
        return arch_family(platform.machine()) or "unknown"

    @functools.cached_property
    def word_bits(self) -> int:
        return 64 if sys.maxsize > 2**32 else 32

    @functools.cached_property
    def compilers(self) -> list[CompilerInfo]:
        found: list[CompilerInfo] = []
        for name, cc, cxx in _COMPILER_CANDIDATES:
            if not shutil.which(cc):
                continue
            found.append(CompilerInfo(name=name, cc=cc, cxx=cxx, build=_compiler_build(cc)))
        logger.debug("Detected compilers: %s", [c.name for c in found])
        return found

    @property
    def prefix(self) -> Path:
        return self._prefix

    @property
    def cellar(self) -> Path:
        return self._cellar

    def install_prefix(self, name: str, version: str) -> Path:
        return self._cellar / name / version

    def dependency_prefix(self, name: str) -> Path:
        path = self._prefix / "opt" / name
        if not path.exists():
            logger.warning("Dependency %s is not installed at %s", name, path)
        return path

    def which(self, command: str) -> str | None:
        return shutil.which(command)

    def archs_for_command(self, command: str) -> frozenset[str]:
        """Architectures contained in the binary behind ``command``."""
        if command not in self._archs:
            self._archs[command] = self._probe_archs(command)
        return self._archs[command]

    def _probe_archs(self, command: str) -> frozenset[str]:
        path = shutil.which(command)
        if path is None:
            return frozenset()
        resolved = str(Path(path).resolve())

        if self.os_name == "macos" and shutil.which("lipo"):
            try:
                r = subprocess.run(
                    ["lipo", "-archs", resolved],
                    capture_output=True, text=True, timeout=5,
                )
                if r.returncode == 0:
                    return frozenset(arch_family(a) for a in r.stdout.split())
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.debug("lipo failed for %s: %s", resolved, e)

        if not shutil.which("file"):
            return frozenset()
        try:
            r = subprocess.run(
                ["file", "-b", "-L", resolved],
                capture_output=True, text=True, timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("file failed for %s: %s", resolved, e)
            return frozenset()
        return frozenset(arch for marker, arch in _FILE_ARCH_PATTERNS if marker in r.stdout)
