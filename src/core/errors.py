"""
Error hierarchy for the recipe engine.

Every failure the engine can raise derives from ``RecipeEngineError``.
Each class carries the process exit code the CLI uses when the error
reaches the top level, so callers never need a mapping table.

Errors are never retried or recovered inside the engine. They carry a
message that is meant to be read by a human who has not read the
recipe source.
"""

from __future__ import annotations


class RecipeEngineError(Exception):
    """Base class for all engine errors."""

    EXIT_CODE = 1


# ── Loading ─────────────────────────────────────────────────────


class ConfigError(RecipeEngineError):
    """Engine configuration (engine.yml) is invalid or unreadable."""

    EXIT_CODE = 2


class RecipeError(RecipeEngineError):
    """A recipe is malformed: bad YAML, unknown condition, missing step."""

    EXIT_CODE = 2


# ── Option resolution ───────────────────────────────────────────


class OptionError(RecipeEngineError):
    """Base class for option-resolution failures."""

    EXIT_CODE = 3


class DuplicateOptionError(OptionError):
    """An option key was registered twice on the same recipe."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Option '{key}' is already declared")


class UnknownOptionError(OptionError):
    """A command-line flag does not match any declared option."""

    def __init__(self, flag: str, message: str | None = None):
        self.flag = flag
        super().__init__(message or f"Unknown option: {flag}")


class InvalidOptionValueError(OptionError):
    """A flag was given a value its option kind cannot take."""


class ConflictingOptionError(OptionError):
    """Two flags (or a declared conflict rule) cannot be combined."""


# ── Dependency resolution ───────────────────────────────────────


class DependencyError(RecipeEngineError):
    """Base class for dependency-resolution failures."""

    EXIT_CODE = 4


class UnsatisfiableRequirementError(DependencyError):
    """A requirement attached to an active dependency is not met."""

    def __init__(self, name: str, message: str):
        self.name = name
        self.message = message
        super().__init__(f"{name}: {message}")


class CyclicDependencyError(DependencyError):
    """Dependency declarations form a cycle (or a self-reference)."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__("Dependency cycle detected: " + " -> ".join(cycle))


# ── Environment compilation ─────────────────────────────────────


class IncompatibleOptionCombinationError(RecipeEngineError):
    """The selected options are known to produce a broken build."""

    EXIT_CODE = 5


class NoCompatibleCompilerError(IncompatibleOptionCombinationError):
    """Every compiler on the host is declared as failing for the recipe."""


# ── Execution ───────────────────────────────────────────────────


class ExecutionError(RecipeEngineError):
    """Base class for failures while driving the external build."""

    EXIT_CODE = 6


class PatchTargetNotFoundError(ExecutionError):
    """An exact-match substitution target is missing from a file."""

    def __init__(self, path: str, search: str, reason: str = ""):
        self.path = path
        self.search = search
        detail = reason or f"expected text {search!r} not found"
        super().__init__(
            f"Cannot patch {path}: {detail}. The build tool would keep its "
            "hardcoded assumption, so the build is aborted."
        )


class SubprocessFailedError(ExecutionError):
    """An external configure/build command exited non-zero.

    ``exit_code`` is the child's return code. ``argv`` is the exact
    argument vector that was run, kept for reproducing the failure.
    """

    def __init__(
        self,
        step: str,
        argv: list[str],
        exit_code: int,
        output: str = "",
        log_path: str | None = None,
    ):
        self.step = step
        self.argv = argv
        self.exit_code = exit_code
        self.output = output
        self.log_path = log_path
        lines = [f"{step} failed (exit {exit_code}): {' '.join(argv)}"]
        if log_path:
            lines.append(f"Full log: {log_path}")
        if output:
            lines.append(output.rstrip())
        super().__init__("\n".join(lines))


class BuildCancelledError(RecipeEngineError):
    """The build was cancelled or timed out; the child group was killed."""

    EXIT_CODE = 130
