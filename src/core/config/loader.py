"""
Configuration loader — reads engine.yml into an ``EngineConfig``.

This is the primary entry point for loading engine configuration.
It reads YAML, validates against a Pydantic schema, applies
``RCP_*`` environment overrides and returns a typed model.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from src.core.errors import ConfigError

logger = logging.getLogger(__name__)

# Default config filename
ENGINE_CONFIG_FILE = "engine.yml"

# Environment variable → EngineConfig field
_ENV_OVERRIDES = {
    "RCP_PREFIX": "prefix",
    "RCP_CELLAR": "cellar",
    "RCP_JOBS": "jobs",
}


class EngineConfig(BaseModel):
    """Engine-wide settings shared by every build."""

    prefix: Path = Path("/usr/local")
    cellar: Path | None = None
    recipes_dir: Path = Path("recipes")
    logs_dir: Path | None = None
    jobs: int | None = Field(default=None, ge=1)
    timeout: float | None = Field(default=None, gt=0)
    keep_user_paths: bool = False
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("env", mode="before")
    @classmethod
    def _stringify_env(cls, value: object) -> object:
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        return value

    def resolved(self, root: Path) -> EngineConfig:
        """Copy with relative paths anchored at ``root``."""
        updates: dict[str, Path] = {}
        for name in ("prefix", "cellar", "recipes_dir", "logs_dir"):
            value = getattr(self, name)
            if value is not None and not value.is_absolute():
                updates[name] = (root / value).resolve()
        return self.model_copy(update=updates)


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for engine.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to engine.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / ENGINE_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, *, environ: dict[str, str] | None = None) -> EngineConfig:
    """Load and validate engine configuration.

    A missing engine.yml is not an error: the defaults apply, anchored
    at the working directory.

    Args:
        path: Explicit path to engine.yml. If None, searches upward.
        environ: Environment to read overrides from (default: os.environ).

    Returns:
        Validated EngineConfig with absolute paths.

    Raises:
        ConfigError: If an explicit path is missing or the file is invalid.
    """
    environ = os.environ if environ is None else environ
    explicit = path is not None

    if path is None:
        path = find_config_file()

    data: dict = {}
    root = Path.cwd()

    if path is not None:
        path = Path(path)
        if not path.is_file():
            if explicit:
                raise ConfigError(f"Config file not found: {path}")
        else:
            logger.debug("Loading engine config from %s", path)
            data = _read_yaml(path)
            root = path.parent.resolve()

    for var, name in _ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            logger.debug("Config override %s=%s", var, value)
            data[name] = value

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as e:
        where = path if path is not None else "environment"
        raise ConfigError(f"Invalid engine configuration ({where}): {e}") from e

    config = config.resolved(root)
    logger.debug("Engine prefix %s, recipes in %s", config.prefix, config.recipes_dir)
    return config


def _read_yaml(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under an "engine" key or be flat
    return dict(data.get("engine", data))
