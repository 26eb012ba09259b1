"""
Logging configuration — central setup for the ``recipe`` CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  RCP_LOG_LEVEL env var  >  WARNING (default)

Optional file output via RCP_LOG_FILE / RCP_LOG_FILE_LEVEL env vars.

Output of the external build tools goes to its own logger,
``recipe.build_output``. It is silent by default (each step already
writes a log file); with ``--debug`` or ``quiet_build_output=False``
it is echoed to stderr as-is, without timestamps or module names.
"""

from __future__ import annotations

import logging
import sys

BUILD_OUTPUT_LOGGER = "recipe.build_output"

# ── Format strings ──────────────────────────────────────────────

# level → (format, datefmt); the first entry whose level is >= the
# requested level wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_FMT_MINIMAL = "%(message)s"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Compiler lines carry no timestamp or module name
_FMT_BUILD_OUTPUT = "%(message)s"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_build_output: bool = True,
) -> None:
    """Configure Python logging for the entire process.

    Safe to call more than once: handlers from a previous call are
    replaced, not stacked.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
        quiet_build_output: If True, keep the output of external build
            steps off the console unless ``level`` is DEBUG.
    """
    console_level = _parse_level(level)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))
    root.addHandler(console)

    # Root must pass everything either handler wants
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root_level = min(root_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(root_level)

    _configure_build_output(echo=not quiet_build_output or console_level <= logging.DEBUG)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def _configure_build_output(echo: bool) -> None:
    output = logging.getLogger(BUILD_OUTPUT_LOGGER)
    for handler in list(output.handlers):
        output.removeHandler(handler)
        handler.close()

    if not echo:
        # Lines are logged at DEBUG, so INFO drops them
        output.setLevel(logging.INFO)
        output.propagate = True
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_FMT_BUILD_OUTPUT))
    output.addHandler(handler)
    output.setLevel(logging.DEBUG)
    output.propagate = False


def _console_formatter(level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_FMT_MINIMAL)


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
