"""
Tests for recipe loading — recipe.yml parsing, validation and discovery.
"""

import textwrap
from pathlib import Path

import pytest

from src.core.config.recipe_loader import (
    RecipeRepository,
    discover_recipes,
    find_recipe,
    load_recipe,
)
from src.core.errors import RecipeError


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content))
    return path


MINIMAL = """\
    name: zlib
    version: 1.2.8
    build:
      command: make
      args: [install]
"""


class TestLoadBoost:
    def test_metadata(self, boost):
        assert boost.name == "boost"
        assert boost.version == "1.54.0"
        assert boost.homepage == "http://www.boost.org"
        assert boost.checksum.startswith("230782c7")

    def test_options(self, boost):
        assert boost.option_keys == ["icu", "single", "static", "mpi", "universal", "c++11", "python"]
        assert boost.get_option("single").default is True
        assert boost.get_option("python").default is True
        assert boost.renamed_options == {"with-c++11": "c++11"}

    def test_dependencies(self, boost):
        assert [(d.name, d.level) for d in boost.dependencies] == [
            ("python", "recommended"),
            ("icu4c", "required"),
            ("icu4c", "required"),
            ("open-mpi", "required"),
            ("open-mpi", "required"),
        ]
        python = boost.dependencies[0]
        assert python.requirements[0].name == "UniversalPython"

    def test_rules(self, boost):
        assert boost.fails_with[0].build == 2335
        assert [r.components for r in boost.exclusions] == [
            ("context", "coroutine"), ("log",), ("python",),
        ]
        assert boost.keep_user_paths is True
        assert boost.language_standards[0].cxxflags == ("-std=c++11", "-stdlib=libc++")

    def test_steps(self, boost):
        assert boost.configure.command == "./bootstrap.sh"
        assert boost.configure.exclusion_flag.flag == "--without-libraries="
        assert [t.name for t in boost.build.toggles] == ["threading", "link"]
        assert boost.build.universal.args == ("address-model=32_64", "architecture=x86")
        assert boost.build.universal.disable_pch == "pch=off"


class TestLoadErrors:
    def test_minimal(self, tmp_path):
        recipe = load_recipe(_write(tmp_path / "zlib.yml", MINIMAL))
        assert recipe.build.args == ("install",)
        assert recipe.version == "1.2.8"

    def test_numeric_version(self, tmp_path):
        recipe = load_recipe(_write(tmp_path / "x.yml", MINIMAL.replace("1.2.8", "1.5")))
        assert recipe.version == "1.5"

    def test_missing_file(self, tmp_path):
        with pytest.raises(RecipeError, match="Cannot read"):
            load_recipe(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(RecipeError, match="Invalid YAML"):
            load_recipe(_write(tmp_path / "bad.yml", "name: [unclosed\n"))

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(RecipeError, match="not a mapping"):
            load_recipe(_write(tmp_path / "list.yml", "- a\n- b\n"))

    def test_missing_build(self, tmp_path):
        with pytest.raises(RecipeError, match="Invalid recipe"):
            load_recipe(_write(tmp_path / "x.yml", "name: x\nversion: '1'\n"))

    def test_unknown_key(self, tmp_path):
        with pytest.raises(RecipeError, match="Invalid recipe"):
            load_recipe(_write(tmp_path / "x.yml", MINIMAL + "    bottle: yes\n"))

    def test_duplicate_option(self, tmp_path):
        content = MINIMAL + """\
    options:
      - name: static
      - name: static
"""
        with pytest.raises(RecipeError, match="already declared"):
            load_recipe(_write(tmp_path / "x.yml", content))

    def test_bad_condition(self, tmp_path):
        content = MINIMAL + """\
    exclusions:
      - components: docs
        when: planet:mars
"""
        with pytest.raises(RecipeError, match="Unknown condition"):
            load_recipe(_write(tmp_path / "x.yml", content))

    def test_source_patches_relative_to_recipe(self, tmp_path):
        content = MINIMAL + """\
    source_patches: [patches/fix.patch]
"""
        recipe = load_recipe(_write(tmp_path / "zlib" / "recipe.yml", content))
        assert recipe.source_patches == (str(tmp_path / "zlib" / "patches" / "fix.patch"),)


class TestDiscovery:
    def test_layouts(self, tmp_path):
        _write(tmp_path / "zlib" / "recipe.yml", MINIMAL)
        _write(tmp_path / "xz.yml", MINIMAL.replace("zlib", "xz"))
        (tmp_path / "empty").mkdir()
        found = discover_recipes(tmp_path)
        assert found == {"xz": tmp_path / "xz.yml", "zlib": tmp_path / "zlib" / "recipe.yml"}

    def test_find_recipe(self, recipes_dir):
        assert find_recipe("boost", recipes_dir) == recipes_dir / "boost" / "recipe.yml"
        assert find_recipe("nope", recipes_dir) is None

    def test_missing_dir(self, tmp_path):
        assert discover_recipes(tmp_path / "nope") == {}


class TestRepository:
    def test_get_caches(self, recipes_dir):
        repo = RecipeRepository(recipes_dir)
        assert repo.get("boost") is repo.get("boost")
        assert repo.get("nope") is None
        assert repo.names() == ["boost"]

    def test_load_by_path(self, recipes_dir, tmp_path):
        repo = RecipeRepository(tmp_path)
        assert repo.load(str(recipes_dir / "boost" / "recipe.yml")).name == "boost"

    def test_load_unknown(self, tmp_path):
        with pytest.raises(RecipeError, match="No recipe named 'nope'"):
            RecipeRepository(tmp_path).load("nope")
