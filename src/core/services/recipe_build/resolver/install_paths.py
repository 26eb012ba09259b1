"""
L2 Resolver: dependency install-path cache.

The only state shared between builds in one process. Reads are safe
from any thread; each dependency is resolved at most once (per-key
lock, first successful resolution wins). A failed resolution is not
memoized, so the next caller retries it.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)


class InstallPathCache:
    """Memoized name → install path lookups."""

    def __init__(self) -> None:
        self._paths: dict[str, Path] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    def _get_key_lock(self, name: str) -> threading.Lock:
        with self._key_locks_guard:
            if name not in self._key_locks:
                self._key_locks[name] = threading.Lock()
            return self._key_locks[name]

    def get(self, name: str, resolve: Callable[[str], Path]) -> Path:
        """Return the cached path for ``name``, resolving it once if needed."""
        cached = self._paths.get(name)
        if cached is not None:
            return cached

        with self._get_key_lock(name):
            # Another thread may have finished while we waited
            cached = self._paths.get(name)
            if cached is not None:
                return cached
            path = Path(resolve(name))
            self._paths[name] = path
            logger.debug("Resolved install path for %s: %s", name, path)
            return path

    def peek(self, name: str) -> Path | None:
        return self._paths.get(name)

    def clear(self) -> None:
        with self._key_locks_guard:
            self._paths.clear()
            self._key_locks.clear()

    def __len__(self) -> int:
        return len(self._paths)


_default_cache = InstallPathCache()


def default_install_path_cache() -> InstallPathCache:
    """The process-wide cache."""
    return _default_cache
