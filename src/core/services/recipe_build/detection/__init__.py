"""
L3 Detection — ``__init__.py`` re-exports host and artifact probes.

Read-only: inspects the machine and the installed prefix, never
changes either.
"""

from src.core.services.recipe_build.detection.caveats import (  # noqa: F401
    ArtifactProbe,
    CaveatEmitter,
    FilesystemProbe,
)
from src.core.services.recipe_build.detection.host import LocalHostFacts  # noqa: F401
