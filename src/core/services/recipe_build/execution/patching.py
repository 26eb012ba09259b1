"""
L4 Execution: narrow source-file edits.

Two operations only, both fail-loud:

- ``inreplace``: exact-match substitution. Raises when the search text
  is missing, because a silent no-op would build against the wrong
  paths. Re-running after a successful substitution is a no-op, and a
  partially patched file gets its remaining occurrences replaced.
- ``append_lines``: add lines to a generated config file, skipping
  lines already present.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from src.core.errors import PatchTargetNotFoundError

logger = logging.getLogger(__name__)


def inreplace(path: Path, search: str, replace: str) -> bool:
    """Replace every unpatched occurrence of ``search`` with ``replace`` in ``path``.

    When ``replace`` itself contains ``search`` (``'-install_name "'`` →
    ``'-install_name "/opt/lib/'``), occurrences that are already part of
    a replacement are left alone and only the remaining ones change.

    Returns:
        True if the file changed, False if every occurrence was already
        replaced.

    Raises:
        PatchTargetNotFoundError: The file is missing, or neither the
            search text nor its replacement is present.
    """
    if not path.is_file():
        raise PatchTargetNotFoundError(str(path), search, "file does not exist")

    text = path.read_text(encoding="utf-8")
    if search not in text:
        if replace and replace in text:
            logger.debug("%s already patched", path)
            return False
        raise PatchTargetNotFoundError(str(path), search)

    if replace and search in replace:
        # Patch the gaps between applied replacements only
        pieces = text.split(replace)
        pending = sum(piece.count(search) for piece in pieces)
        if not pending:
            logger.debug("%s already patched", path)
            return False
        patched = replace.join(piece.replace(search, replace) for piece in pieces)
    else:
        pending = text.count(search)
        patched = text.replace(search, replace)

    path.write_text(patched, encoding="utf-8")
    logger.info("Patched %s (%d occurrence(s)): %r -> %r", path, pending, search, replace)
    return True


def append_lines(path: Path, lines: Sequence[str]) -> list[str]:
    """Append ``lines`` to ``path`` (created if missing), skipping existing ones.

    Returns:
        The lines that were actually written.
    """
    existing: set[str] = set()
    if path.is_file():
        existing = set(path.read_text(encoding="utf-8").splitlines())

    new = [line for line in lines if line not in existing]
    if not new:
        return []

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        for line in new:
            f.write(line + "\n")
    logger.info("Appended %d line(s) to %s", len(new), path)
    return new
