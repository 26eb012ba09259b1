"""
L3 Detection: post-install caveats.

Runs after a successful build and inspects what was actually
installed. Some omissions depend on the environment and are only
certain once the build tool has run, so artifact globs are checked
against the prefix instead of trusting the plan.

Never raises: a probe error becomes an advisory line.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, Sequence

from src.core.models.environment import BuildEnvironment
from src.core.models.recipe import CaveatSpec
from src.core.services.recipe_build.domain.conditions import ConditionContext

logger = logging.getLogger(__name__)


class ArtifactProbe(Protocol):
    """Looks up installed files."""

    def glob(self, pattern: str) -> list[str]: ...


class FilesystemProbe:
    """Globs relative to an install prefix."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def glob(self, pattern: str) -> list[str]:
        return sorted(str(p) for p in self.root.glob(pattern))


class CaveatEmitter:
    """Turns a recipe's caveat specs into advisory strings."""

    def __init__(self, caveats: Sequence[CaveatSpec]):
        self.caveats = list(caveats)

    def emit(self, env: BuildEnvironment, probe: ArtifactProbe) -> list[str]:
        """Advisories that apply to this install, in declaration order."""
        ctx = ConditionContext.for_environment(env)
        advisories: list[str] = []

        for caveat in self.caveats:
            try:
                if caveat.when is not None and not caveat.when(ctx):
                    continue
                if caveat.missing is not None and probe.glob(caveat.missing):
                    continue
            except Exception as e:
                logger.warning("Caveat check failed: %s", e)
                target = caveat.missing or "install state"
                advisories.append(f"Could not check {target}: {e}")
                continue
            advisories.append(caveat.message.strip())

        return advisories
