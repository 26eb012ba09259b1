"""
L2 Resolver: dependency resolution.

Walks a recipe's dependency specs depth-first, evaluating activation
predicates against the selection and requirement predicates against
the host, then orders the collected graph topologically.

Fail-fast: the first unmet requirement aborts resolution with no
partial plan.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from src.core.errors import CyclicDependencyError, UnsatisfiableRequirementError
from src.core.models.host import HostFacts
from src.core.models.plan import InstallPlan, PlannedDependency
from src.core.models.recipe import DependencySpec, Recipe
from src.core.models.selection import BuildSelection
from src.core.services.recipe_build.domain.dag import topological_order
from src.core.services.recipe_build.domain.options import OptionRegistry

logger = logging.getLogger(__name__)

RecipeLookup = Callable[[str], "Recipe | None"]

_LEVEL_RANK = {"optional": 0, "recommended": 1, "required": 2}


class DependencyResolver:
    """Produces an ordered install plan for one recipe build.

    Args:
        host: Host facts used by requirement predicates.
        lookup: Finds dependency recipes by name so transitive
            dependencies can be followed. Without it (or when it returns
            None) a dependency is treated as a leaf.
    """

    def __init__(self, host: HostFacts, lookup: RecipeLookup | None = None):
        self.host = host
        self.lookup = lookup

    def resolve(
        self,
        selection: BuildSelection,
        specs: Sequence[DependencySpec],
        *,
        root: str = "<recipe>",
    ) -> InstallPlan:
        """Resolve ``specs`` under ``selection``.

        Returns:
            The install plan, dependencies before dependents.

        Raises:
            UnsatisfiableRequirementError: An active dependency's requirement
                is not met.
            CyclicDependencyError: The declarations reference ``root`` or
                form a cycle.
        """
        graph: dict[str, list[str]] = {root: []}
        entries: dict[str, dict] = {}
        expanded: set[str] = set()

        self._collect(root, selection, specs, [root], graph, entries, expanded)

        order = [n for n in topological_order(graph) if n != root]
        plan = InstallPlan(
            recipe=root,
            entries=tuple(
                PlannedDependency(
                    name=name,
                    level=entries[name]["level"],
                    variants=tuple(entries[name]["variants"]),
                    requested_by=tuple(entries[name]["requested_by"]),
                )
                for name in order
            ),
        )
        logger.info("Install plan for %s: %s", root, plan.names or "(no dependencies)")
        return plan

    def _collect(
        self,
        owner: str,
        selection: BuildSelection,
        specs: Sequence[DependencySpec],
        stack: list[str],
        graph: dict[str, list[str]],
        entries: dict[str, dict],
        expanded: set[str],
    ) -> None:
        for spec in specs:
            if not spec.is_active(selection):
                logger.debug("%s: dependency %s not active, skipping", owner, spec.name)
                continue

            for req in spec.requirements:
                if req.is_active(selection) and not req.is_satisfied(self.host):
                    raise UnsatisfiableRequirementError(req.name, req.message)

            if spec.name in stack:
                raise CyclicDependencyError(stack[stack.index(spec.name):] + [spec.name])

            deps = graph.setdefault(owner, [])
            if spec.name not in deps:
                deps.append(spec.name)
            graph.setdefault(spec.name, [])

            entry = entries.setdefault(
                spec.name, {"level": spec.level, "variants": [], "requested_by": []}
            )
            if _LEVEL_RANK[spec.level] > _LEVEL_RANK[entry["level"]]:
                entry["level"] = spec.level
            for variant in spec.variants:
                if variant not in entry["variants"]:
                    entry["variants"].append(variant)
            if owner not in entry["requested_by"]:
                entry["requested_by"].append(owner)

            if spec.name in expanded:
                continue
            expanded.add(spec.name)

            dep_recipe = self.lookup(spec.name) if self.lookup else None
            if dep_recipe is None:
                continue

            registry = OptionRegistry.from_recipe(dep_recipe)
            dep_selection = registry.defaults({v: True for v in spec.variants})
            self._collect(
                spec.name,
                dep_selection,
                dep_recipe.dependencies,
                stack + [spec.name],
                graph,
                entries,
                expanded,
            )
