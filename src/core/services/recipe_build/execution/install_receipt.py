"""
L4 Execution: install receipt.

After a successful build, records how the prefix was produced in
``<prefix>/INSTALL_RECEIPT.json``. Writes are atomic (temp file in the
same directory, then rename).
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Sequence

from src.core.models.action import InstallReceipt, StepReceipt
from src.core.models.environment import BuildEnvironment

logger = logging.getLogger(__name__)

RECEIPT_FILE = "INSTALL_RECEIPT.json"


def build_install_receipt(env: BuildEnvironment, steps: Sequence[StepReceipt]) -> InstallReceipt:
    selection = env.selection
    used = selection.changed_flags()
    unused = [
        f"--with-{key}" if value is False else f"--without-{key}"
        for key, value in selection.values.items()
        if key not in selection.explicit and isinstance(value, bool)
    ]
    return InstallReceipt(
        name=env.recipe,
        version=env.version,
        used_options=used,
        unused_options=unused,
        dependencies=list(env.plan),
        excluded_components=list(env.excluded),
        compiler=env.toolchain.compiler.name,
        standard=env.toolchain.standard,
        steps=list(steps),
    )


def write_install_receipt(receipt: InstallReceipt, prefix: Path) -> Path:
    """Write ``receipt`` into ``prefix`` atomically.

    Returns:
        Path of the written receipt.
    """
    path = Path(prefix) / RECEIPT_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(receipt.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".receipt_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.rename(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Install receipt written to %s", path)
    return path


def load_install_receipt(prefix: Path) -> InstallReceipt | None:
    """Read a prefix's receipt, or None if it has none."""
    path = Path(prefix) / RECEIPT_FILE
    if not path.is_file():
        return None
    return InstallReceipt.model_validate(json.loads(path.read_text(encoding="utf-8")))
