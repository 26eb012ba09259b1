"""
Tests for configuration loading — engine.yml parsing and overrides.
"""

import textwrap
from pathlib import Path

import pytest

from src.core.config.loader import EngineConfig, find_config_file, load_config
from src.core.errors import ConfigError


@pytest.fixture
def engine_yml(tmp_path: Path) -> Path:
    content = textwrap.dedent("""\
        prefix: /opt/pkg
        recipes_dir: recipes
        logs_dir: logs
        jobs: 8
        timeout: 3600
        env:
          MAKEFLAGS: -j8
          PKG_BUILD: 1
    """)
    path = tmp_path / "engine.yml"
    path.write_text(content)
    return path


class TestLoadConfig:
    def test_values(self, engine_yml):
        config = load_config(engine_yml, environ={})
        assert config.prefix == Path("/opt/pkg")
        assert config.jobs == 8
        assert config.timeout == 3600
        assert config.env == {"MAKEFLAGS": "-j8", "PKG_BUILD": "1"}

    def test_relative_paths_anchored_at_config(self, engine_yml):
        config = load_config(engine_yml, environ={})
        assert config.recipes_dir == (engine_yml.parent / "recipes").resolve()
        assert config.logs_dir == (engine_yml.parent / "logs").resolve()

    def test_env_overrides(self, engine_yml, tmp_path):
        config = load_config(
            engine_yml,
            environ={"RCP_PREFIX": str(tmp_path / "p"), "RCP_JOBS": "2", "RCP_CELLAR": "/cellar"},
        )
        assert config.prefix == tmp_path / "p"
        assert config.jobs == 2
        assert config.cellar == Path("/cellar")

    def test_engine_section(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("engine:\n  jobs: 3\n")
        assert load_config(path, environ={}).jobs == 3

    def test_empty_file(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("")
        assert load_config(path, environ={}).prefix == Path("/usr/local")

    def test_no_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config(environ={})
        assert config.prefix == Path("/usr/local")
        assert config.recipes_dir == (tmp_path / "recipes").resolve()
        assert config.keep_user_paths is False

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yml", environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("jobs: [1\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path, environ={})

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("- a\n")
        with pytest.raises(ConfigError, match="Expected a YAML mapping"):
            load_config(path, environ={})

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("jobs: 0\n")
        with pytest.raises(ConfigError, match="Invalid engine configuration"):
            load_config(path, environ={})

    def test_invalid_env_override(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("{}\n")
        with pytest.raises(ConfigError):
            load_config(path, environ={"RCP_JOBS": "many"})

    def test_config_error_exit_code(self):
        assert ConfigError.EXIT_CODE == 2


class TestFindConfigFile:
    def test_walks_up(self, engine_yml):
        nested = engine_yml.parent / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == engine_yml.resolve()

    def test_in_start_dir(self, engine_yml):
        assert find_config_file(engine_yml.parent) == engine_yml.resolve()


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.cellar is None
        assert config.env == {}
