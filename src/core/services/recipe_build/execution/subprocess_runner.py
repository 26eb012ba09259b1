"""
L4 Execution: core subprocess runner.

The SINGLE PLACE where external build commands are spawned. Each
command runs in its own session (process group) so cancellation and
timeouts can take down the whole tree, not just the direct child.

Output is merged (stderr into stdout), streamed to an optional log
file and to DEBUG logging, and the last lines are kept for error
messages.
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Protocol

from src.core.errors import BuildCancelledError

logger = logging.getLogger(__name__)

# Child process output; also written to per-step log files
output_logger = logging.getLogger("recipe.build_output")

_POLL_INTERVAL = 0.1   # seconds between cancellation checks
_KILL_GRACE = 5.0      # seconds between SIGTERM and SIGKILL
_TAIL_LINES = 40


@dataclass
class CommandResult:
    """Outcome of one external command."""

    argv: list[str]
    exit_code: int
    output_tail: str = ""
    duration_ms: int = 0
    log_path: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Runner(Protocol):
    def __call__(
        self,
        argv: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
        log_path: Path | None = None,
    ) -> CommandResult: ...


def _pump(stream: IO[str], tail: deque[str], log_file: IO[str] | None) -> None:
    for line in stream:
        tail.append(line)
        if log_file is not None:
            log_file.write(line)
        output_logger.debug("  | %s", line.rstrip("\n"))


def _terminate_group(proc: subprocess.Popen) -> None:
    """SIGTERM the child's process group, then SIGKILL after a grace period."""
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except ProcessLookupError:
        return
    try:
        proc.wait(timeout=_KILL_GRACE)
    except subprocess.TimeoutExpired:
        logger.warning("Process group %d ignored SIGTERM, killing", proc.pid)
        with contextlib.suppress(ProcessLookupError):
            os.killpg(proc.pid, signal.SIGKILL)
        proc.wait()


def run_command(
    argv: list[str],
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    cancel: threading.Event | None = None,
    log_path: Path | None = None,
) -> CommandResult:
    """Run one external command to completion.

    Args:
        argv: Command and arguments (no shell).
        cwd: Working directory.
        env: Complete process environment (None = inherit).
        timeout: Seconds before the process group is killed.
        cancel: Set this event to kill the process group early.
        log_path: File receiving the full merged output.

    Returns:
        ``CommandResult``. A command that cannot be started reports
        exit code 127.

    Raises:
        BuildCancelledError: On cancellation, timeout or Ctrl-C. The child
            process group is terminated before raising.
    """
    start = time.monotonic()
    tail: deque[str] = deque(maxlen=_TAIL_LINES)

    with contextlib.ExitStack() as stack:
        log_file: IO[str] | None = None
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_file = stack.enter_context(open(log_path, "w", encoding="utf-8"))
            log_file.write(" ".join(argv) + "\n\n")

        logger.info("Running: %s", " ".join(argv))
        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except OSError as e:
            logger.error("Cannot start %s: %s", argv[0], e)
            return CommandResult(
                argv=list(argv),
                exit_code=127,
                output_tail=str(e),
                log_path=str(log_path) if log_path else None,
            )

        reader = threading.Thread(
            target=_pump, args=(proc.stdout, tail, log_file), daemon=True,
        )
        reader.start()

        deadline = start + timeout if timeout else None
        try:
            while proc.poll() is None:
                if cancel is not None and cancel.is_set():
                    _terminate_group(proc)
                    raise BuildCancelledError(f"Build cancelled while running {argv[0]}")
                if deadline is not None and time.monotonic() > deadline:
                    _terminate_group(proc)
                    raise BuildCancelledError(f"{argv[0]} timed out after {timeout}s")
                time.sleep(_POLL_INTERVAL)
        except KeyboardInterrupt:
            _terminate_group(proc)
            raise BuildCancelledError(f"Build interrupted while running {argv[0]}") from None
        finally:
            reader.join(timeout=_KILL_GRACE)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    return CommandResult(
        argv=list(argv),
        exit_code=proc.returncode,
        output_tail="".join(tail),
        duration_ms=elapsed_ms,
        log_path=str(log_path) if log_path else None,
    )
