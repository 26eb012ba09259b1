"""
Recipe builder: explicit construction of an immutable ``Recipe``.

Recipes are assembled with ordered builder calls and finished with
``build()``. Conditions given as strings are compiled here, so a
malformed recipe fails at load time rather than halfway through a
build.

    recipe = (
        RecipeBuilder("zlib", "1.3")
        .option("static", "Also build the static library", default=True)
        .depends_on("pkg-config")
        .build_step("make", args=["-j{jobs}", "install"])
        .build()
    )
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence

from src.core.errors import RecipeError
from src.core.models.recipe import (
    CaveatSpec,
    CompilerFailure,
    ConditionalArgs,
    ConfigAppend,
    ConflictRule,
    DependencyLevel,
    DependencySpec,
    ExclusionFlag,
    ExclusionRule,
    FilePatch,
    IncompatibilityRule,
    LanguageStandard,
    OptionSpec,
    Recipe,
    RequirementSpec,
    StepSpec,
    Toggle,
    UniversalArgs,
)
from src.core.services.recipe_build.domain.conditions import (
    Condition,
    SelectionCondition,
    compile_condition,
    compile_selection_condition,
)
from src.core.services.recipe_build.domain.options import OptionRegistry
from src.core.services.recipe_build.domain.requirements import compile_requirement_check

ConditionLike = str | Sequence[str] | Callable[[Any], bool] | None


class RecipeBuilder:
    """Collects recipe declarations in order and freezes them."""

    def __init__(self, name: str, version: str):
        if not name:
            raise RecipeError("A recipe needs a name")
        self._name = name
        self._version = version
        self._meta: dict[str, str] = {}
        self._registry = OptionRegistry()
        self._renamed: dict[str, str] = {}
        self._conflicts: list[ConflictRule] = []
        self._universal_option = "universal"
        self._universal_archs: tuple[str, ...] = ("i386", "x86_64")
        self._dependencies: list[DependencySpec] = []
        self._fails_with: list[CompilerFailure] = []
        self._standards: list[LanguageStandard] = []
        self._incompatibilities: list[IncompatibilityRule] = []
        self._exclusions: list[ExclusionRule] = []
        self._environment: dict[str, str] = {}
        self._keep_user_paths = False
        self._patches: list[FilePatch] = []
        self._appends: list[ConfigAppend] = []
        self._source_patches: list[str] = []
        self._configure: StepSpec | None = None
        self._build: StepSpec | None = None
        self._caveats: list[CaveatSpec] = []
        # (where, option keys) pairs, checked once every option is declared
        self._option_refs: list[tuple[str, Iterable[str]]] = []

    # ── Metadata ────────────────────────────────────────────────

    def homepage(self, url: str) -> RecipeBuilder:
        self._meta["homepage"] = url
        return self

    def source(self, url: str, checksum: str = "") -> RecipeBuilder:
        self._meta["url"] = url
        self._meta["checksum"] = checksum
        return self

    # ── Options ─────────────────────────────────────────────────

    def option(self, key: str, description: str = "", *, default: bool = False) -> RecipeBuilder:
        """Declare a boolean flag."""
        self._registry.register(OptionSpec(key=key, kind="flag", default=default, description=description))
        return self

    def valued_option(self, key: str, description: str = "", *, default: str = "") -> RecipeBuilder:
        """Declare a flag that takes a value (``--key=value``)."""
        self._registry.register(OptionSpec(key=key, kind="valued", default=default, description=description))
        return self

    def universal(
        self,
        description: str = "Build a universal binary",
        *,
        key: str = "universal",
        archs: Sequence[str] = ("i386", "x86_64"),
    ) -> RecipeBuilder:
        """Declare the multi-architecture option."""
        self._universal_option = key
        self._universal_archs = tuple(archs)
        return self.option(key, description)

    def rename_option(self, old: str, new: str) -> RecipeBuilder:
        """Reject ``--old`` with a message pointing at ``--new``."""
        self._renamed[old] = new
        return self

    def conflict(self, when: ConditionLike, message: str) -> RecipeBuilder:
        """Reject option combinations for which ``when`` holds."""
        predicate = self._context_condition(when, "conflict")
        if isinstance(predicate, Condition) and not predicate.selection_only:
            raise RecipeError(
                f"Conflict '{predicate.expression}' may only use with:/without:/option: conditions"
            )
        self._conflicts.append(ConflictRule(when=predicate, message=message, expression=_expr(when)))
        return self

    # ── Dependencies ────────────────────────────────────────────

    def depends_on(
        self,
        name: str,
        *,
        level: DependencyLevel = "required",
        variants: Sequence[str] = (),
        option: str | None = None,
        when: ConditionLike = None,
        requirements: Sequence[RequirementSpec] = (),
    ) -> RecipeBuilder:
        """Declare a dependency.

        Recommended and optional dependencies get an implicit option
        (named ``option`` or after the dependency) unless one is
        already declared: on by default when recommended, off when
        optional.
        """
        if level not in ("required", "recommended", "optional"):
            raise RecipeError(f"Unknown dependency level '{level}' for {name}")
        if name == self._name:
            raise RecipeError(f"{self._name} cannot depend on itself")

        spec = DependencySpec(
            name=name,
            level=level,
            variants=tuple(variants),
            option=option,
            when=self._selection_condition(when, f"dependency {name}"),
            requirements=tuple(requirements),
        )
        key = spec.option_key
        if key is not None and key not in self._registry:
            verb = "without" if level == "recommended" else "with"
            self._registry.register(OptionSpec(
                key=key,
                default=level == "recommended",
                description=f"Build {verb} {name} support",
            ))
        elif key is not None:
            self._option_refs.append((f"dependency {name}", [key]))
        self._dependencies.append(spec)
        return self

    def requirement(
        self,
        name: str,
        check: str | Callable[[Any], bool],
        message: str,
        *,
        when: ConditionLike = None,
    ) -> RequirementSpec:
        """Make a RequirementSpec to pass to ``depends_on(requirements=...)``."""
        predicate = compile_requirement_check(check) if isinstance(check, str) else check
        return RequirementSpec(
            name=name,
            predicate=predicate,
            message=message.strip(),
            when=self._selection_condition(when, f"requirement {name}"),
        )

    # ── Environment rules ───────────────────────────────────────

    def fails_with(self, compiler: str, *, build: int | None = None, cause: str = "") -> RecipeBuilder:
        self._fails_with.append(CompilerFailure(compiler=compiler, build=build, cause=cause))
        return self

    def language_standard(
        self,
        option: str,
        standard: str,
        *,
        cxxflags: Sequence[str] = (),
        ldflags: Sequence[str] = (),
        description: str = "",
    ) -> RecipeBuilder:
        """Force ``standard`` when ``option`` is on (declaring the option if needed)."""
        if option not in self._registry:
            self.option(option, description or f"Build using {standard} mode")
        self._standards.append(LanguageStandard(
            option=option, standard=standard, cxxflags=tuple(cxxflags), ldflags=tuple(ldflags),
        ))
        return self

    def incompatible(self, when: ConditionLike, message: str) -> RecipeBuilder:
        """Reject the build before any subprocess when ``when`` holds."""
        self._incompatibilities.append(IncompatibilityRule(
            when=self._context_condition(when, "incompatibility"),
            message=message.strip(),
            expression=_expr(when),
        ))
        return self

    def exclude(self, components: Sequence[str], *, when: ConditionLike, reason: str = "") -> RecipeBuilder:
        """Leave ``components`` out whenever ``when`` holds."""
        if isinstance(components, str):
            components = [components]
        self._exclusions.append(ExclusionRule(
            components=tuple(components),
            when=self._context_condition(when, "exclusion"),
            reason=reason,
            expression=_expr(when),
        ))
        return self

    def env(self, key: str, value: str) -> RecipeBuilder:
        self._environment[key] = value
        return self

    def keep_user_paths(self, keep: bool = True) -> RecipeBuilder:
        self._keep_user_paths = keep
        return self

    # ── Source preparation ──────────────────────────────────────

    def inreplace(self, path: str, search: str, replace: str) -> RecipeBuilder:
        if not search:
            raise RecipeError(f"inreplace on {path} needs a non-empty search string")
        self._patches.append(FilePatch(path=path, search=search, replace=replace))
        return self

    def append_config(self, path: str, line: str, *, when: ConditionLike = None) -> RecipeBuilder:
        self._appends.append(ConfigAppend(
            path=path,
            line=line,
            when=self._context_condition(when, f"config line {line!r}") if when is not None else None,
        ))
        return self

    def patch_file(self, path: str) -> RecipeBuilder:
        self._source_patches.append(path)
        return self

    # ── Steps ───────────────────────────────────────────────────

    def configure(self, command: str, **kwargs: Any) -> RecipeBuilder:
        self._configure = self._step(command, "configure", **kwargs)
        return self

    def build_step(self, command: str, **kwargs: Any) -> RecipeBuilder:
        self._build = self._step(command, "build", **kwargs)
        return self

    def _step(
        self,
        command: str,
        where: str,
        *,
        args: Sequence[str] = (),
        prefix_flag: str | None = "--prefix={prefix}",
        libdir_flag: str | None = "--libdir={libdir}",
        conditional: Sequence[ConditionalArgs | dict] = (),
        exclusion_flag: str | ExclusionFlag | None = None,
        exclusion_separator: str = ",",
        toggles: Sequence[Toggle | dict] = (),
        universal_args: Sequence[str] | None = None,
        disable_pch: str = "pch=off",
        trailing: Sequence[str] = (),
    ) -> StepSpec:
        conds: list[ConditionalArgs] = []
        for item in conditional:
            if isinstance(item, dict):
                item = ConditionalArgs(
                    when=self._context_condition(item.get("when"), f"{where} args"),
                    args=tuple(item.get("args", ())),
                    otherwise=tuple(item.get("otherwise", ())),
                )
            conds.append(item)

        toggle_specs = [Toggle(**t) if isinstance(t, dict) else t for t in toggles]
        for toggle in toggle_specs:
            self._option_refs.append((f"{where} toggle {toggle.name}", [toggle.option]))

        if isinstance(exclusion_flag, str):
            exclusion_flag = ExclusionFlag(flag=exclusion_flag, separator=exclusion_separator)

        return StepSpec(
            command=command,
            args=tuple(args),
            prefix_flag=prefix_flag,
            libdir_flag=libdir_flag,
            conditional=tuple(conds),
            exclusion_flag=exclusion_flag,
            toggles=tuple(toggle_specs),
            universal=UniversalArgs(args=tuple(universal_args), disable_pch=disable_pch)
            if universal_args is not None else None,
            trailing=tuple(trailing),
        )

    # ── Post-install ────────────────────────────────────────────

    def caveat(self, message: str, *, when: ConditionLike = None, missing: str | None = None) -> RecipeBuilder:
        self._caveats.append(CaveatSpec(
            message=message,
            when=self._context_condition(when, "caveat") if when is not None else None,
            missing=missing,
        ))
        return self

    # ── Finish ──────────────────────────────────────────────────

    def build(self) -> Recipe:
        """Validate and freeze the recipe.

        Raises:
            RecipeError: No build step, or a condition refers to an
                undeclared option.
        """
        if self._build is None:
            raise RecipeError(f"{self._name}: a recipe needs a build step")

        for where, keys in self._option_refs:
            for key in keys:
                if key not in self._registry:
                    raise RecipeError(f"{self._name}: {where} refers to undeclared option '{key}'")
        for old, new in self._renamed.items():
            if new not in self._registry:
                raise RecipeError(f"{self._name}: option '{old}' is renamed to undeclared '{new}'")

        return Recipe(
            name=self._name,
            version=self._version,
            homepage=self._meta.get("homepage", ""),
            url=self._meta.get("url", ""),
            checksum=self._meta.get("checksum", ""),
            options=tuple(self._registry.specs),
            renamed_options=dict(self._renamed),
            conflicts=tuple(self._conflicts),
            universal_option=self._universal_option,
            universal_archs=self._universal_archs,
            dependencies=tuple(self._dependencies),
            fails_with=tuple(self._fails_with),
            language_standards=tuple(self._standards),
            incompatibilities=tuple(self._incompatibilities),
            exclusions=tuple(self._exclusions),
            environment=dict(self._environment),
            keep_user_paths=self._keep_user_paths,
            patches=tuple(self._patches),
            config_appends=tuple(self._appends),
            source_patches=tuple(self._source_patches),
            configure=self._configure,
            build=self._build,
            caveats=tuple(self._caveats),
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _context_condition(self, when: ConditionLike, where: str) -> Callable[[Any], bool]:
        if callable(when) and not isinstance(when, Condition):
            return when
        condition = compile_condition(when)
        self._option_refs.append((where, condition.option_keys))
        return condition

    def _selection_condition(self, when: ConditionLike, where: str) -> Callable[[Any], bool] | None:
        if when is None:
            return None
        if callable(when) and not isinstance(when, (Condition, SelectionCondition)):
            return when
        condition = compile_selection_condition(when)
        self._option_refs.append((where, condition.option_keys))
        return condition


def _expr(when: ConditionLike) -> str:
    if when is None:
        return "always"
    if isinstance(when, str):
        return when
    if isinstance(when, Condition):
        return when.expression
    if callable(when):
        return getattr(when, "__name__", "<callable>")
    return " & ".join(when)


