"""
Domain models: pydantic types for the recipe engine.

All models are re-exported here for convenient access:

    from src.core.models import Recipe, BuildSelection, BuildEnvironment
"""

from src.core.models.action import InstallReceipt, StepReceipt
from src.core.models.environment import ArgumentVector, BuildEnvironment, Toolchain
from src.core.models.host import CompilerInfo, HostFacts, StaticHostFacts
from src.core.models.plan import InstallPlan, PlannedDependency
from src.core.models.recipe import (
    CaveatSpec,
    CompilerFailure,
    ConditionalArgs,
    ConfigAppend,
    ConflictRule,
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
from src.core.models.selection import BuildSelection

__all__ = [
    # action.py
    "InstallReceipt",
    "StepReceipt",
    # environment.py
    "ArgumentVector",
    "BuildEnvironment",
    "Toolchain",
    # host.py
    "CompilerInfo",
    "HostFacts",
    "StaticHostFacts",
    # plan.py
    "InstallPlan",
    "PlannedDependency",
    # recipe.py
    "CaveatSpec",
    "CompilerFailure",
    "ConditionalArgs",
    "ConfigAppend",
    "ConflictRule",
    "DependencySpec",
    "ExclusionFlag",
    "ExclusionRule",
    "FilePatch",
    "IncompatibilityRule",
    "LanguageStandard",
    "OptionSpec",
    "Recipe",
    "RequirementSpec",
    "StepSpec",
    "Toggle",
    "UniversalArgs",
    # selection.py
    "BuildSelection",
]
