"""
Recipe loader — loads recipe definitions from YAML files.

Recipes live in ``recipes/<name>/recipe.yml`` (or ``recipes/<name>.yml``).
Each file is validated against a Pydantic document schema and then
fed through ``RecipeBuilder``, so YAML and Python recipes end up as
the same immutable ``Recipe``.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.core.errors import OptionError, RecipeError
from src.core.models.recipe import Recipe
from src.core.services.recipe_build.builder import RecipeBuilder

logger = logging.getLogger(__name__)

RECIPE_FILE_NAMES = ("recipe.yml", "recipe.yaml")

# A condition: one expression string, or a list of them (all must hold)
ConditionDoc = str | list[str] | None


class _Doc(BaseModel):
    model_config = ConfigDict(extra="forbid")


class OptionDoc(_Doc):
    name: str
    kind: Literal["flag", "valued"] = "flag"
    default: bool | str | None = None
    description: str = ""


class UniversalDoc(_Doc):
    key: str = "universal"
    archs: list[str] = Field(default_factory=lambda: ["i386", "x86_64"])
    description: str = "Build a universal binary"


class RequirementDoc(_Doc):
    name: str
    check: str
    message: str
    when: ConditionDoc = None


class DependencyDoc(_Doc):
    name: str
    level: Literal["required", "recommended", "optional"] = "required"
    variants: list[str] = Field(default_factory=list)
    option: str | None = None
    when: ConditionDoc = None
    requirements: list[RequirementDoc] = Field(default_factory=list)


class RuleDoc(_Doc):
    when: ConditionDoc
    message: str


class ExclusionDoc(_Doc):
    components: list[str]
    when: ConditionDoc
    reason: str = ""

    @field_validator("components", mode="before")
    @classmethod
    def _one_or_many(cls, value: object) -> object:
        return [value] if isinstance(value, str) else value


class CompilerFailureDoc(_Doc):
    compiler: str
    build: int | None = None
    cause: str = ""


class LanguageStandardDoc(_Doc):
    option: str
    standard: str
    cxxflags: list[str] = Field(default_factory=list)
    ldflags: list[str] = Field(default_factory=list)
    description: str = ""


class PatchDoc(_Doc):
    path: str
    search: str
    replace: str


class ConfigAppendDoc(_Doc):
    path: str
    line: str
    when: ConditionDoc = None


class ConditionalArgsDoc(_Doc):
    when: ConditionDoc
    args: list[str] = Field(default_factory=list)
    otherwise: list[str] = Field(default_factory=list)


class ToggleDoc(_Doc):
    name: str
    option: str
    base: str
    variant: str
    separator: str = ","


class StepDoc(_Doc):
    command: str
    args: list[str] = Field(default_factory=list)
    prefix_flag: str | None = "--prefix={prefix}"
    libdir_flag: str | None = "--libdir={libdir}"
    conditional: list[ConditionalArgsDoc] = Field(default_factory=list)
    exclusion_flag: str | None = None
    exclusion_separator: str = ","
    toggles: list[ToggleDoc] = Field(default_factory=list)
    universal_args: list[str] | None = None
    disable_pch: str = "pch=off"
    trailing: list[str] = Field(default_factory=list)


class CaveatDoc(_Doc):
    message: str
    when: ConditionDoc = None
    missing: str | None = None


class RecipeDocument(_Doc):
    """Schema of a recipe.yml file."""

    name: str
    version: str
    homepage: str = ""
    url: str = ""
    checksum: str = ""
    head: str | None = None  # accepted, not built from

    universal: bool | UniversalDoc = False
    options: list[OptionDoc] = Field(default_factory=list)
    renamed_options: dict[str, str] = Field(default_factory=dict)
    language_standards: list[LanguageStandardDoc] = Field(default_factory=list)
    conflicts: list[RuleDoc] = Field(default_factory=list)

    dependencies: list[DependencyDoc] = Field(default_factory=list)

    fails_with: list[CompilerFailureDoc] = Field(default_factory=list)
    incompatibilities: list[RuleDoc] = Field(default_factory=list)
    exclusions: list[ExclusionDoc] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    keep_user_paths: bool = False

    patches: list[PatchDoc] = Field(default_factory=list)
    config_appends: list[ConfigAppendDoc] = Field(default_factory=list)
    source_patches: list[str] = Field(default_factory=list)

    configure: StepDoc | None = None
    build: StepDoc

    caveats: list[CaveatDoc] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def _version_str(cls, value: object) -> object:
        # YAML reads 1.5 as a float
        return str(value) if isinstance(value, (int, float)) else value

    def to_recipe(self, base_dir: Path | None = None) -> Recipe:
        """Drive a RecipeBuilder with this document's declarations."""
        b = RecipeBuilder(self.name, self.version)
        if self.homepage:
            b.homepage(self.homepage)
        if self.url:
            b.source(self.url, self.checksum)

        for opt in self.options:
            if opt.kind == "valued":
                b.valued_option(opt.name, opt.description, default=str(opt.default or ""))
            else:
                default = False if opt.default is None else opt.default
                b.option(opt.name, opt.description, default=default)

        if self.universal:
            u = self.universal if isinstance(self.universal, UniversalDoc) else UniversalDoc()
            b.universal(u.description, key=u.key, archs=u.archs)

        for ls in self.language_standards:
            b.language_standard(
                ls.option, ls.standard,
                cxxflags=ls.cxxflags, ldflags=ls.ldflags, description=ls.description,
            )
        for old, new in self.renamed_options.items():
            b.rename_option(old, new)
        for rule in self.conflicts:
            b.conflict(rule.when, rule.message)

        for dep in self.dependencies:
            b.depends_on(
                dep.name,
                level=dep.level,
                variants=dep.variants,
                option=dep.option,
                when=dep.when,
                requirements=[
                    b.requirement(r.name, r.check, r.message, when=r.when)
                    for r in dep.requirements
                ],
            )

        for fw in self.fails_with:
            b.fails_with(fw.compiler, build=fw.build, cause=fw.cause)
        for rule in self.incompatibilities:
            b.incompatible(rule.when, rule.message)
        for ex in self.exclusions:
            b.exclude(ex.components, when=ex.when, reason=ex.reason)
        for key, value in self.env.items():
            b.env(key, value)
        b.keep_user_paths(self.keep_user_paths)

        for p in self.patches:
            b.inreplace(p.path, p.search, p.replace)
        for a in self.config_appends:
            b.append_config(a.path, a.line, when=a.when)
        for patch_file in self.source_patches:
            path = Path(patch_file)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            b.patch_file(str(path))

        if self.configure is not None:
            b.configure(**_step_kwargs(self.configure))
        b.build_step(**_step_kwargs(self.build))

        for c in self.caveats:
            b.caveat(c.message, when=c.when, missing=c.missing)

        return b.build()


def _step_kwargs(step: StepDoc) -> dict:
    kwargs = step.model_dump(exclude={"conditional", "toggles"})
    kwargs["conditional"] = [c.model_dump() for c in step.conditional]
    kwargs["toggles"] = [t.model_dump() for t in step.toggles]
    return kwargs


# ── Loading ─────────────────────────────────────────────────────


def load_recipe(path: Path) -> Recipe:
    """Load a single recipe from a YAML file.

    Args:
        path: Path to a recipe.yml file.

    Returns:
        The frozen Recipe.

    Raises:
        RecipeError: If the file is unreadable, not valid YAML, or does
            not describe a valid recipe.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RecipeError(f"Cannot read recipe {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise RecipeError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise RecipeError(f"Recipe file {path} is not a mapping")

    try:
        doc = RecipeDocument.model_validate(data)
    except ValidationError as e:
        raise RecipeError(f"Invalid recipe {path}: {e}") from e

    try:
        recipe = doc.to_recipe(base_dir=path.parent)
    except OptionError as e:
        # Duplicate or ill-typed option declarations are recipe defects
        raise RecipeError(f"Invalid recipe {path}: {e}") from e

    logger.debug("Loaded recipe: %s %s from %s", recipe.name, recipe.version, path)
    return recipe


def find_recipe(name: str, recipes_dir: Path) -> Path | None:
    """Locate the YAML file for ``name`` under ``recipes_dir``."""
    candidates = [recipes_dir / name / f for f in RECIPE_FILE_NAMES]
    candidates += [recipes_dir / f"{name}.yml", recipes_dir / f"{name}.yaml"]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def discover_recipes(recipes_dir: Path) -> dict[str, Path]:
    """Map recipe names to their files.

    Expects structure::

        recipes/
            boost/
                recipe.yml
            icu4c.yml
            ...
    """
    found: dict[str, Path] = {}

    if not recipes_dir.is_dir():
        logger.debug("Recipes directory not found: %s", recipes_dir)
        return found

    for child in sorted(recipes_dir.iterdir()):
        if child.is_dir():
            path = find_recipe(child.name, recipes_dir)
            if path is not None and path.parent == child:
                found[child.name] = path
        elif child.suffix in (".yml", ".yaml"):
            found.setdefault(child.stem, child)

    logger.debug("Discovered %d recipes: %s", len(found), list(found))
    return found


class RecipeRepository:
    """Loads recipes by name from one directory, at most once each.

    ``get`` is the lookup the dependency resolver uses to follow
    transitive dependencies: unknown names return None.
    """

    def __init__(self, recipes_dir: Path):
        self.recipes_dir = Path(recipes_dir)
        self._loaded: dict[str, Recipe] = {}
        self._lock = threading.Lock()

    def names(self) -> list[str]:
        return list(discover_recipes(self.recipes_dir))

    def get(self, name: str) -> Recipe | None:
        with self._lock:
            if name in self._loaded:
                return self._loaded[name]
        path = find_recipe(name, self.recipes_dir)
        if path is None:
            return None
        recipe = load_recipe(path)
        with self._lock:
            return self._loaded.setdefault(name, recipe)

    def load(self, name_or_path: str) -> Recipe:
        """Load a recipe given a name in the repository or a file path.

        Raises:
            RecipeError: Nothing matches.
        """
        candidate = Path(name_or_path)
        if candidate.suffix in (".yml", ".yaml") and candidate.is_file():
            return load_recipe(candidate)
        recipe = self.get(name_or_path)
        if recipe is None:
            raise RecipeError(f"No recipe named '{name_or_path}' in {self.recipes_dir}")
        return recipe
