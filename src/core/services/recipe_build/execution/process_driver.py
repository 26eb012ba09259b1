"""
L4 Execution: process driver.

Prepares the source tree (patch files, exact-match substitutions,
config appends) and then runs the recipe's external steps one after
another. The first non-zero exit aborts the build; nothing is retried
and partial install state is left in place for diagnosis.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Sequence

from src.core.errors import SubprocessFailedError
from src.core.models.action import StepReceipt
from src.core.models.environment import ArgumentVector, BuildEnvironment
from src.core.models.recipe import Recipe
from src.core.services.recipe_build.domain.arguments import render_template
from src.core.services.recipe_build.domain.conditions import ConditionContext
from src.core.services.recipe_build.execution.patching import append_lines, inreplace
from src.core.services.recipe_build.execution.subprocess_runner import Runner, run_command

logger = logging.getLogger(__name__)

# PATH used when a recipe does not keep the user's own PATH
_STANDARD_PATH = ("/usr/bin", "/bin", "/usr/sbin", "/sbin")


class ProcessDriver:
    """Drives the external build for one recipe.

    Args:
        runner: Callable that runs one command (default: ``run_command``).
        logs_dir: Directory for per-step logs (None = no log files).
        timeout: Per-step timeout in seconds.
        cancel: Event that cancels the running step when set.
        keep_user_paths: Inherit the caller's PATH instead of a clean one.
    """

    def __init__(
        self,
        *,
        runner: Runner = run_command,
        logs_dir: Path | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
        keep_user_paths: bool = False,
    ):
        self.runner = runner
        self.logs_dir = Path(logs_dir) if logs_dir else None
        self.timeout = timeout
        self.cancel = cancel
        self.keep_user_paths = keep_user_paths
        self._step_index = 0

    # ── Source preparation ──────────────────────────────────────

    def prepare(self, env: BuildEnvironment, recipe: Recipe, source_dir: Path) -> list[StepReceipt]:
        """Apply patch files, substitutions and config appends.

        Raises:
            PatchTargetNotFoundError: A substitution target is missing.
            SubprocessFailedError: ``patch`` rejected a patch file.
        """
        receipts: list[StepReceipt] = []
        process_env = self._process_env(env, recipe)

        for patch_file in recipe.source_patches:
            patch_path = Path(render_template(patch_file, env))
            if not patch_path.is_absolute():
                patch_path = source_dir / patch_path
            vector = ArgumentVector(step="patch", command="patch", args=("-p1", "-i", str(patch_path)))
            receipts.append(self._execute(vector, process_env, source_dir, env.recipe))

        for patch in recipe.patches:
            inreplace(
                source_dir / patch.path,
                render_template(patch.search, env),
                render_template(patch.replace, env),
            )

        if recipe.config_appends:
            ctx = ConditionContext.for_environment(env)
            by_path: dict[str, list[str]] = {}
            for append in recipe.config_appends:
                if append.when is not None and not append.when(ctx):
                    continue
                by_path.setdefault(append.path, []).append(render_template(append.line, env))
            for rel_path, lines in by_path.items():
                append_lines(source_dir / rel_path, lines)

        return receipts

    # ── Step execution ──────────────────────────────────────────

    def run(
        self,
        vector: ArgumentVector,
        env: BuildEnvironment,
        recipe: Recipe,
        source_dir: Path,
    ) -> StepReceipt:
        """Run one step in ``source_dir``.

        Raises:
            SubprocessFailedError: Non-zero exit.
            BuildCancelledError: Cancelled or timed out.
        """
        return self._execute(vector, self._process_env(env, recipe), source_dir, env.recipe)

    def drive(
        self,
        env: BuildEnvironment,
        recipe: Recipe,
        vectors: Sequence[ArgumentVector],
        source_dir: Path,
    ) -> list[StepReceipt]:
        """Prepare the tree, then run every step in order.

        Returns:
            Receipts for every command that ran. Step log numbering
            restarts at 01 on every call.
        """
        source_dir = Path(source_dir)
        self._step_index = 0
        receipts = self.prepare(env, recipe, source_dir)
        for vector in vectors:
            receipts.append(self.run(vector, env, recipe, source_dir))
        return receipts

    def _execute(
        self,
        vector: ArgumentVector,
        process_env: dict[str, str],
        cwd: Path,
        recipe_name: str | None = None,
    ) -> StepReceipt:
        self._step_index += 1
        log_path = None
        if self.logs_dir is not None and recipe_name:
            log_path = self.logs_dir / recipe_name / f"{self._step_index:02d}.{Path(vector.command).name}.log"

        logger.info("==> %s: %s", vector.step, vector)
        result = self.runner(
            vector.argv,
            cwd=str(cwd),
            env=process_env,
            timeout=self.timeout,
            cancel=self.cancel,
            log_path=log_path,
        )
        if result.exit_code != 0:
            logger.error("%s failed (exit %d): %s", vector.step, result.exit_code, vector)
            raise SubprocessFailedError(
                vector.step,
                vector.argv,
                result.exit_code,
                output=result.output_tail,
                log_path=result.log_path,
            )
        return StepReceipt.from_exit(
            vector.step,
            vector.argv,
            result.exit_code,
            duration_ms=result.duration_ms,
            output_tail=result.output_tail,
            log_path=result.log_path,
        )

    def _process_env(self, env: BuildEnvironment, recipe: Recipe) -> dict[str, str]:
        process_env = os.environ.copy()
        if not (self.keep_user_paths or recipe.keep_user_paths):
            process_env["PATH"] = os.pathsep.join([str(env.opt_prefix / "bin"), *_STANDARD_PATH])
        process_env.update(env.env)
        return process_env
