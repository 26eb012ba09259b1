"""
Tests for CLI commands — list, info, plan, build and global options.
"""

import json
import os
import signal
import textwrap
import threading
from pathlib import Path

import pytest
from click.testing import CliRunner

import src.main
from src.core.models.host import StaticHostFacts
from src.main import cli

HELLO_RECIPE = textwrap.dedent("""\
    name: hello
    version: "2.0"
    options:
      - name: shout
        description: Say it louder
    build:
      command: "true"
      conditional:
        - when: with:shout
          args: [--shout]
    caveats:
      - missing: share/hello.txt
        message: hello.txt was not installed
""")


@pytest.fixture
def engine(tmp_path: Path, recipes_dir: Path, monkeypatch) -> Path:
    """engine.yml pointing at the fixture recipes plus a tmp recipes dir."""
    for var in ("RCP_PREFIX", "RCP_CELLAR", "RCP_JOBS", "RCP_LOG_LEVEL", "RCP_LOG_FILE"):
        monkeypatch.delenv(var, raising=False)

    local = tmp_path / "recipes"
    local.mkdir()
    (local / "hello.yml").write_text(HELLO_RECIPE)
    (local / "boost").symlink_to(recipes_dir / "boost")

    config = tmp_path / "engine.yml"
    config.write_text("prefix: usr/local\nrecipes_dir: recipes\njobs: 3\n")

    def _host(cfg):
        return StaticHostFacts(prefix=cfg.prefix, commands={"python": "/usr/bin/python"})

    monkeypatch.setattr(src.main, "_make_host", _host)
    return config


def _invoke(engine: Path, *args: str):
    return CliRunner().invoke(cli, ["--config", str(engine), *args])


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Recipe engine" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "recipe" in result.output
        assert "0.1.0" in result.output

    def test_missing_config_file(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "nope.yml"), "list"])
        assert result.exit_code == 2
        assert "Config file not found" in result.output


class TestListCommand:
    def test_list(self, engine):
        result = _invoke(engine, "list")
        assert result.exit_code == 0
        assert "boost" in result.output
        assert "hello" in result.output

    def test_list_json(self, engine):
        result = _invoke(engine, "list", "--json")
        assert result.exit_code == 0
        assert sorted(json.loads(result.output)) == ["boost", "hello"]


class TestInfoCommand:
    def test_info(self, engine):
        result = _invoke(engine, "info", "boost")
        assert result.exit_code == 0
        assert "boost 1.54.0" in result.output
        assert "--with-icu" in result.output
        assert "--without-single" in result.output
        assert "open-mpi" in result.output

    def test_info_json(self, engine):
        result = _invoke(engine, "info", "boost", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["version"] == "1.54.0"
        assert "universal" in [o["key"] for o in data["options"]]

    def test_unknown_recipe(self, engine):
        result = _invoke(engine, "info", "nope")
        assert result.exit_code == 2
        assert "No recipe named 'nope'" in result.output


class TestPlanCommand:
    def test_plan_json(self, engine):
        result = _invoke(engine, "plan", "boost", "--with-icu", "--without-static", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["options"]["icu"] is True
        assert data["options"]["static"] is False
        assert data["prefix"].endswith("usr/local/Cellar/boost/1.54.0")
        build = data["steps"][-1]["argv"]
        assert "-j3" in build
        assert "link=shared" in build

    def test_plan_text(self, engine):
        result = _invoke(engine, "plan", "boost", "--universal", "--without-python")
        assert result.exit_code == 0, result.output
        assert "Excluded" in result.output
        assert "context" in result.output
        assert "./b2" in result.output

    @pytest.mark.parametrize("args,code,text", [
        (["--with-fortran"], 3, "Unknown option: --with-fortran"),
        (["--with-c++11"], 3, "renamed to --c++11"),
        (["--with-mpi"], 3, "--without-single"),
        (["--universal"], 4, "UniversalPython"),
        (["--c++11", "--with-mpi", "--without-single"], 5, "C++11 mode"),
    ])
    def test_plan_errors(self, engine, args, code, text):
        result = _invoke(engine, "plan", "boost", *args)
        assert result.exit_code == code
        assert text in result.output


class TestBuildCommand:
    def test_build(self, engine, tmp_path):
        source = tmp_path / "hello-2.0"
        source.mkdir()
        result = _invoke(engine, "build", "hello", "--with-shout", "--source-dir", str(source))
        assert result.exit_code == 0, result.output
        prefix = tmp_path / "usr/local/Cellar/hello/2.0"
        assert "hello 2.0 installed" in result.output
        assert "hello.txt was not installed" in result.output

        receipt = json.loads((prefix / "INSTALL_RECEIPT.json").read_text())
        assert receipt["used_options"] == ["--with-shout"]
        assert receipt["steps"][0]["argv"][-1] == "--shout"

    def test_build_no_receipt(self, engine, tmp_path):
        source = tmp_path / "hello-2.0"
        source.mkdir()
        result = _invoke(engine, "build", "hello", "--source-dir", str(source), "--no-receipt")
        assert result.exit_code == 0, result.output
        assert not (tmp_path / "usr/local/Cellar/hello/2.0/INSTALL_RECEIPT.json").exists()

    def test_build_failure_exit_code(self, engine, tmp_path):
        source = tmp_path / "boost_1_54_0"
        source.mkdir()
        result = _invoke(engine, "build", "boost", "--source-dir", str(source))
        assert result.exit_code == 6
        assert "darwin.jam" in result.output


class TestSigtermCancel:
    def test_sigterm_sets_cancel_event(self):
        previous = signal.getsignal(signal.SIGTERM)
        cancel = threading.Event()
        with src.main._cancel_on_sigterm(cancel):
            os.kill(os.getpid(), signal.SIGTERM)
            assert cancel.wait(timeout=5)
        assert signal.getsignal(signal.SIGTERM) is previous
