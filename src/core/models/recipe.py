"""
Recipe models: the declarative description of one buildable package.

A ``Recipe`` is assembled by ``RecipeBuilder`` (or the YAML loader,
which drives the builder) and is frozen afterwards. Conditions are
stored as compiled callables; the resolver and compiler evaluate them
lazily against the selection and host of one build.
"""

from __future__ import annotations

from typing import Any, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.core.models.selection import BuildSelection

DependencyLevel = Literal["required", "recommended", "optional"]

# Predicate over a ConditionContext (selection + host facts + plan)
ContextPredicate = Callable[[Any], bool]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


# ── Options ─────────────────────────────────────────────────────


class OptionSpec(_Frozen):
    """A build switch a user may set on the command line."""

    key: str
    kind: Literal["flag", "valued"] = "flag"
    default: bool | str = False
    description: str = ""


class ConflictRule(_Frozen):
    """Options that cannot be selected together."""

    when: ContextPredicate
    message: str
    expression: str = ""


# ── Dependencies ────────────────────────────────────────────────


class RequirementSpec(_Frozen):
    """A host-level precondition attached to a dependency.

    ``predicate`` receives the ``HostFacts`` and must only read them.
    ``when`` limits the requirement to some selections (None = always).
    """

    name: str
    predicate: Callable[[Any], bool]
    message: str
    when: Callable[[BuildSelection], bool] | None = None

    def is_active(self, selection: BuildSelection) -> bool:
        return self.when is None or bool(self.when(selection))

    def is_satisfied(self, host: Any) -> bool:
        return bool(self.predicate(host))


class DependencySpec(_Frozen):
    """A dependency on another recipe.

    Recommended and optional dependencies are controlled by an option
    (``option``, defaulting to the dependency name). Required ones are
    only gated by ``when``.
    """

    name: str
    level: DependencyLevel = "required"
    variants: tuple[str, ...] = ()
    option: str | None = None
    when: Callable[[BuildSelection], bool] | None = None
    requirements: tuple[RequirementSpec, ...] = ()

    @property
    def option_key(self) -> str | None:
        if self.level == "required":
            return self.option
        return self.option or self.name

    def is_active(self, selection: BuildSelection) -> bool:
        key = self.option_key
        if key is not None and not selection.enabled(key):
            return False
        return self.when is None or bool(self.when(selection))


# ── Environment rules ───────────────────────────────────────────


class IncompatibilityRule(_Frozen):
    """A combination known to always fail; rejected before building."""

    when: ContextPredicate
    message: str
    expression: str = ""


class ExclusionRule(_Frozen):
    """Sub-components to leave out whenever ``when`` holds."""

    components: tuple[str, ...]
    when: ContextPredicate
    reason: str = ""
    expression: str = ""


class CompilerFailure(_Frozen):
    """A compiler (optionally up to a build number) that breaks the recipe."""

    compiler: str
    build: int | None = None
    cause: str = ""

    def matches(self, name: str, build: int | None) -> bool:
        if name != self.compiler:
            return False
        if self.build is None or build is None:
            return True
        return build <= self.build


class LanguageStandard(_Frozen):
    """An option that forces a language standard on the toolchain."""

    option: str
    standard: str
    cxxflags: tuple[str, ...] = ()
    ldflags: tuple[str, ...] = ()


# ── Source preparation ──────────────────────────────────────────


class FilePatch(_Frozen):
    """Exact-match text substitution in a source file (inreplace)."""

    path: str
    search: str
    replace: str


class ConfigAppend(_Frozen):
    """A line appended to a generated build-tool config file."""

    path: str
    line: str
    when: ContextPredicate | None = None


# ── External steps ──────────────────────────────────────────────


class ConditionalArgs(_Frozen):
    """Arguments emitted when ``when`` holds, ``otherwise`` when it does not."""

    when: ContextPredicate
    args: tuple[str, ...] = ()
    otherwise: tuple[str, ...] = ()


class ExclusionFlag(_Frozen):
    """How excluded components are spelled on a command line."""

    flag: str
    separator: str = ","


class Toggle(_Frozen):
    """A build-tool setting with a base value and an optional variant.

    ``threading=multi`` becomes ``threading=multi,single`` while the
    controlling option is on.
    """

    name: str
    option: str
    base: str
    variant: str
    separator: str = ","


class UniversalArgs(_Frozen):
    """Arguments added for multi-architecture builds."""

    args: tuple[str, ...] = ()
    disable_pch: str = "pch=off"


class StepSpec(_Frozen):
    """One external command (configure or build) and its argument rules."""

    command: str
    args: tuple[str, ...] = ()
    prefix_flag: str | None = "--prefix={prefix}"
    libdir_flag: str | None = "--libdir={libdir}"
    conditional: tuple[ConditionalArgs, ...] = ()
    exclusion_flag: ExclusionFlag | None = None
    toggles: tuple[Toggle, ...] = ()
    universal: UniversalArgs | None = None
    trailing: tuple[str, ...] = ()


# ── Post-install ────────────────────────────────────────────────


class CaveatSpec(_Frozen):
    """An advisory shown after install.

    Emitted when ``when`` holds (if given) and, if ``missing`` is set,
    when no installed file matches that glob under the prefix.
    """

    message: str
    when: ContextPredicate | None = None
    missing: str | None = None


# ── Recipe ──────────────────────────────────────────────────────


class Recipe(_Frozen):
    """A complete, immutable build recipe."""

    name: str
    version: str
    homepage: str = ""
    url: str = ""
    checksum: str = ""

    options: tuple[OptionSpec, ...] = ()
    renamed_options: dict[str, str] = Field(default_factory=dict)
    conflicts: tuple[ConflictRule, ...] = ()
    universal_option: str = "universal"
    universal_archs: tuple[str, ...] = ("i386", "x86_64")

    dependencies: tuple[DependencySpec, ...] = ()

    fails_with: tuple[CompilerFailure, ...] = ()
    language_standards: tuple[LanguageStandard, ...] = ()
    incompatibilities: tuple[IncompatibilityRule, ...] = ()
    exclusions: tuple[ExclusionRule, ...] = ()
    environment: dict[str, str] = Field(default_factory=dict)
    keep_user_paths: bool = False

    patches: tuple[FilePatch, ...] = ()
    config_appends: tuple[ConfigAppend, ...] = ()
    source_patches: tuple[str, ...] = ()

    configure: StepSpec | None = None
    build: StepSpec

    caveats: tuple[CaveatSpec, ...] = ()

    def get_option(self, key: str) -> OptionSpec | None:
        for opt in self.options:
            if opt.key == key:
                return opt
        return None

    @property
    def option_keys(self) -> list[str]:
        return [o.key for o in self.options]

    @property
    def steps(self) -> list[tuple[str, StepSpec]]:
        """External steps in execution order."""
        out: list[tuple[str, StepSpec]] = []
        if self.configure is not None:
            out.append(("configure", self.configure))
        out.append(("build", self.build))
        return out
