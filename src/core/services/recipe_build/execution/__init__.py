"""
L4 Execution — ``__init__.py`` re-exports everything that changes state.

Subprocesses, file patches and receipt writes all live here.
"""

from src.core.services.recipe_build.execution.install_receipt import (  # noqa: F401
    RECEIPT_FILE,
    build_install_receipt,
    load_install_receipt,
    write_install_receipt,
)
from src.core.services.recipe_build.execution.patching import append_lines, inreplace  # noqa: F401
from src.core.services.recipe_build.execution.process_driver import ProcessDriver  # noqa: F401
from src.core.services.recipe_build.execution.subprocess_runner import (  # noqa: F401
    CommandResult,
    Runner,
    run_command,
)
