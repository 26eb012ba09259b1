"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from src.core.config.recipe_loader import load_recipe
from src.core.models.host import CompilerInfo, StaticHostFacts
from src.core.models.recipe import Recipe
from src.core.services.recipe_build.resolver.install_paths import InstallPathCache
from tests.fakes import FakeRunner

FIXTURES = Path(__file__).parent / "fixtures"

# Files the sample recipe patches before configuring
BOOST_SOURCE_FILES = {
    "tools/build/v2/tools/darwin.jam": 'flags darwin.link.dll OPTIONS : -install_name "$(<[1]:D=)" ;\n',
    "tools/build/v2/engine/build.sh": "BOOST_JAM_CC=cc\n",
    "tools/build/v2/engine/build.jam": "toolset darwin cc : -o ;\n",
}


@pytest.fixture
def recipes_dir() -> Path:
    """Return the sample recipes directory."""
    return FIXTURES / "recipes"


@pytest.fixture
def boost(recipes_dir: Path) -> Recipe:
    """The sample boost recipe."""
    return load_recipe(recipes_dir / "boost" / "recipe.yml")


@pytest.fixture
def host(tmp_path: Path) -> StaticHostFacts:
    """64-bit x86_64 Linux host with clang, prefix under tmp_path."""
    return StaticHostFacts(
        os_name="linux",
        arch="x86_64",
        word_bits=64,
        compilers=[CompilerInfo(name="clang", cc="clang", cxx="clang++")],
        prefix=tmp_path / "usr" / "local",
        commands={"python": "/usr/bin/python"},
    )


@pytest.fixture
def boost_source(tmp_path: Path) -> Path:
    """An unpacked source tree with the files boost patches."""
    root = tmp_path / "src" / "boost_1_54_0"
    for rel, content in BOOST_SOURCE_FILES.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def path_cache() -> InstallPathCache:
    """A fresh install-path cache per test."""
    return InstallPathCache()
