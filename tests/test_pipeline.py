"""
End-to-end tests for the build pipeline with a recording runner.
"""

import pytest

from src.core.errors import (
    ConflictingOptionError,
    IncompatibleOptionCombinationError,
    PatchTargetNotFoundError,
    SubprocessFailedError,
    UnknownOptionError,
    UnsatisfiableRequirementError,
)
from src.core.services.recipe_build.execution.install_receipt import RECEIPT_FILE, load_install_receipt
from src.core.services.recipe_build.execution.process_driver import ProcessDriver
from src.core.services.recipe_build.orchestration.pipeline import build_recipe, plan_build
from tests.fakes import FakeRunner


def _build(recipe, args, host, source, runner, path_cache, **kwargs):
    return build_recipe(
        recipe,
        args,
        host,
        source_dir=source,
        driver=ProcessDriver(runner=runner),
        path_cache=path_cache,
        jobs=2,
        **kwargs,
    )


def _install_log_library(host):
    lib = host.install_prefix("boost", "1.54.0") / "lib"
    lib.mkdir(parents=True)
    (lib / "libboost_log-mt.a").write_text("")


class TestScenarioA:
    """Defaults on a 64-bit x86 host."""

    def test_full_build(self, boost, host, boost_source, fake_runner, path_cache):
        _install_log_library(host)
        result = _build(boost, [], host, boost_source, fake_runner, path_cache)

        env = result.plan.environment
        assert env.excluded == ()
        assert fake_runner.commands == ["./bootstrap.sh", "./b2"]
        build_argv = fake_runner.calls[1]["argv"]
        assert "threading=multi,single" in build_argv
        assert "link=shared,static" in build_argv
        assert "pch=off" not in build_argv
        assert result.caveats == []

    def test_receipt_written(self, boost, host, boost_source, fake_runner, path_cache):
        result = _build(boost, [], host, boost_source, fake_runner, path_cache)
        prefix = result.plan.environment.prefix
        assert result.receipt_path == prefix / RECEIPT_FILE
        receipt = load_install_receipt(prefix)
        assert [s.step for s in receipt.steps] == ["configure", "build"]
        assert receipt.dependencies == ["python"]

    def test_missing_artifact_caveat(self, boost, host, boost_source, fake_runner, path_cache):
        result = _build(boost, [], host, boost_source, fake_runner, path_cache)
        assert result.caveats == [
            "Building of Boost.Log is disabled because it requires newer GCC or Clang.",
        ]

    def test_no_receipt_option(self, boost, host, boost_source, fake_runner, path_cache):
        result = _build(boost, [], host, boost_source, fake_runner, path_cache, write_receipt=False)
        assert result.receipt_path is None
        assert not (result.plan.environment.prefix / RECEIPT_FILE).exists()


class TestScenarioB:
    """Universal builds."""

    def test_non_universal_python_fails_before_running(self, boost, host, boost_source, fake_runner, path_cache):
        host = host.model_copy(update={"command_archs": {"python": ["x86_64"]}})
        with pytest.raises(UnsatisfiableRequirementError, match="UniversalPython"):
            _build(boost, ["--universal"], host, boost_source, fake_runner, path_cache)
        assert fake_runner.calls == []

    def test_universal_build(self, boost, host, boost_source, fake_runner, path_cache):
        host = host.model_copy(update={"command_archs": {"python": ["i386", "x86_64"]}})
        result = _build(boost, ["--universal"], host, boost_source, fake_runner, path_cache)
        assert result.plan.environment.excluded == ("context", "coroutine")
        configure_argv, build_argv = (c["argv"] for c in fake_runner.calls)
        assert "--without-libraries=context,coroutine" in configure_argv
        assert build_argv[-1] == "pch=off"
        assert any("Boost.Context" in c for c in result.caveats)

    def test_universal_without_python(self, boost, host, boost_source, fake_runner, path_cache):
        result = _build(boost, ["--universal", "--without-python"], host, boost_source, fake_runner, path_cache)
        assert result.plan.environment.excluded == ("context", "coroutine", "python")


class TestScenarioC:
    def test_patch_target_missing(self, boost, host, boost_source, fake_runner, path_cache):
        (boost_source / "tools/build/v2/engine/build.sh").write_text("CC=gcc\n")
        with pytest.raises(PatchTargetNotFoundError) as exc:
            _build(boost, [], host, boost_source, fake_runner, path_cache)
        assert exc.value.search == "BOOST_JAM_CC=cc"
        assert fake_runner.calls == []


class TestFailFast:
    @pytest.mark.parametrize("args,error", [
        (["--with-fortran"], UnknownOptionError),
        (["--with-c++11"], UnknownOptionError),
        (["--with-mpi"], ConflictingOptionError),
        (["--c++11", "--with-mpi", "--without-single"], IncompatibleOptionCombinationError),
    ])
    def test_rejected_before_any_subprocess(
        self, boost, host, boost_source, fake_runner, path_cache, args, error,
    ):
        with pytest.raises(error):
            _build(boost, args, host, boost_source, fake_runner, path_cache)
        assert fake_runner.calls == []
        assert (boost_source / "tools/build/v2/engine/build.sh").read_text() == "BOOST_JAM_CC=cc\n"

    def test_build_failure_writes_no_receipt(self, boost, host, boost_source, path_cache):
        runner = FakeRunner(exit_codes={"./b2": 2})
        with pytest.raises(SubprocessFailedError) as exc:
            _build(boost, [], host, boost_source, runner, path_cache)
        assert exc.value.exit_code == 2
        assert runner.commands == ["./bootstrap.sh", "./b2"]
        assert load_install_receipt(host.install_prefix("boost", "1.54.0")) is None


class TestPlanBuild:
    def test_to_dict(self, boost, host, path_cache):
        planned = plan_build(boost, ["--with-icu"], host, jobs=2, path_cache=path_cache)
        data = planned.to_dict()
        assert data["recipe"] == "boost"
        assert data["options"]["icu"] is True
        assert [d["name"] for d in data["dependencies"]] == ["python", "icu4c"]
        assert [s["step"] for s in data["steps"]] == ["configure", "build"]
        assert data["compiler"] == "clang"

    def test_transitive_lookup(self, boost, host, path_cache):
        from src.core.services.recipe_build.builder import RecipeBuilder

        icu = RecipeBuilder("icu4c", "52.1").depends_on("pkg-config").build_step("make").build()
        planned = plan_build(boost, ["--with-icu"], host, lookup={"icu4c": icu}.get, path_cache=path_cache)
        assert planned.plan.names == ["python", "pkg-config", "icu4c"]
