"""
Tests for LocalHostFacts — probes are monkeypatched, nothing is spawned.
"""

import logging
import subprocess
from pathlib import Path

import pytest

from src.core.config.loader import EngineConfig
from src.core.services.recipe_build.detection import host as host_mod
from src.core.services.recipe_build.detection.host import LocalHostFacts


def _which(available: dict[str, str]):
    return lambda cmd: available.get(cmd)


def _completed(stdout: str, returncode: int = 0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


@pytest.fixture
def local(tmp_path) -> LocalHostFacts:
    return LocalHostFacts(prefix=tmp_path / "usr" / "local")


class TestPlatform:
    def test_darwin_is_macos(self, local, monkeypatch):
        monkeypatch.setattr(host_mod.platform, "system", lambda: "Darwin")
        assert local.os_name == "macos"

    def test_machine_normalized(self, local, monkeypatch):
        monkeypatch.setattr(host_mod.platform, "machine", lambda: "AMD64")
        assert local.arch == "x86_64"

    def test_from_config(self, tmp_path):
        config = EngineConfig(prefix=tmp_path, cellar=tmp_path / "cellar")
        local = LocalHostFacts.from_config(config)
        assert local.prefix == tmp_path
        assert local.install_prefix("boost", "1.54.0") == tmp_path / "cellar" / "boost" / "1.54.0"

    def test_default_cellar(self, local, tmp_path):
        assert local.cellar == tmp_path / "usr" / "local" / "Cellar"


class TestCompilers:
    def test_detects_available_in_preference_order(self, local, monkeypatch):
        monkeypatch.setattr(host_mod.shutil, "which", _which({"gcc": "/usr/bin/gcc", "clang": "/usr/bin/clang"}))
        monkeypatch.setattr(host_mod, "_compiler_build", lambda binary: None)
        assert [c.name for c in local.compilers] == ["clang", "gcc"]
        assert local.compilers[1].cxx == "g++"

    def test_none_available(self, local, monkeypatch):
        monkeypatch.setattr(host_mod.shutil, "which", _which({}))
        assert local.compilers == []

    def test_build_number_from_banner(self, monkeypatch):
        banner = "Apple LLVM version 5.1 (clang-503.0.40) (based on LLVM 3.4svn)\n"
        monkeypatch.setattr(host_mod.subprocess, "run", lambda *a, **kw: _completed(banner))
        assert host_mod._compiler_build("clang") == 503

    def test_build_number_unreadable(self, monkeypatch):
        def _boom(*args, **kwargs):
            raise OSError("no such file")

        monkeypatch.setattr(host_mod.subprocess, "run", _boom)
        assert host_mod._compiler_build("clang") is None


class TestCommandArchs:
    def test_universal_binary_via_file(self, local, monkeypatch):
        monkeypatch.setattr(host_mod.platform, "system", lambda: "Linux")
        monkeypatch.setattr(
            host_mod.shutil, "which",
            _which({"python": "/usr/bin/python", "file": "/usr/bin/file"}),
        )
        output = (
            "Mach-O universal binary with 2 architectures: "
            "[i386:Mach-O executable i386] [x86_64:Mach-O 64-bit executable x86_64]\n"
        )
        monkeypatch.setattr(host_mod.subprocess, "run", lambda *a, **kw: _completed(output))
        assert local.archs_for_command("python") == frozenset({"i386", "x86_64"})

    def test_arch_named_directory_is_ignored(self, local, tmp_path, monkeypatch):
        python = tmp_path / "i386-linux-gnu" / "python"
        python.parent.mkdir()
        python.write_text("")
        monkeypatch.setattr(host_mod.platform, "system", lambda: "Linux")
        monkeypatch.setattr(
            host_mod.shutil, "which",
            _which({"python": str(python), "file": "/usr/bin/file"}),
        )
        description = "ELF 64-bit LSB pie executable, x86-64, version 1 (SYSV), dynamically linked\n"

        def _file(argv, **kwargs):
            # `file` prints "<path>: " first unless given -b
            prefix = "" if "-b" in argv else f"{argv[-1]}: "
            return _completed(prefix + description)

        monkeypatch.setattr(host_mod.subprocess, "run", _file)
        assert local.archs_for_command("python") == frozenset({"x86_64"})

    def test_probed_once_per_command(self, local, monkeypatch):
        monkeypatch.setattr(host_mod.platform, "system", lambda: "Linux")
        monkeypatch.setattr(
            host_mod.shutil, "which",
            _which({"python": "/usr/bin/python", "file": "/usr/bin/file"}),
        )
        calls = []

        def _run(argv, **kwargs):
            calls.append(argv)
            return _completed("ELF 64-bit LSB executable, x86-64\n")

        monkeypatch.setattr(host_mod.subprocess, "run", _run)
        local.archs_for_command("python")
        local.archs_for_command("python")
        assert len(calls) == 1

    def test_lipo_on_macos(self, local, monkeypatch):
        monkeypatch.setattr(host_mod.platform, "system", lambda: "Darwin")
        monkeypatch.setattr(
            host_mod.shutil, "which",
            _which({"python": "/usr/bin/python", "lipo": "/usr/bin/lipo"}),
        )
        calls = []

        def _run(argv, **kwargs):
            calls.append(argv[0])
            return _completed("i386 x86_64\n")

        monkeypatch.setattr(host_mod.subprocess, "run", _run)
        assert local.archs_for_command("python") == frozenset({"i386", "x86_64"})
        assert calls == ["lipo"]

    def test_missing_command(self, local, monkeypatch):
        monkeypatch.setattr(host_mod.shutil, "which", _which({}))
        assert local.archs_for_command("python") == frozenset()


class TestDependencyPrefix:
    def test_missing_dependency_warns(self, local, caplog):
        with caplog.at_level(logging.WARNING):
            path = local.dependency_prefix("icu4c")
        assert path == local.prefix / "opt" / "icu4c"
        assert "icu4c is not installed" in caplog.text

    def test_installed_dependency(self, local, caplog):
        (local.prefix / "opt" / "icu4c").mkdir(parents=True)
        with caplog.at_level(logging.WARNING):
            assert local.dependency_prefix("icu4c") == Path(local.prefix / "opt" / "icu4c")
        assert caplog.text == ""
