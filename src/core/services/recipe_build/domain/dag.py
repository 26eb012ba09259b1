"""
L1 Domain: dependency graph ordering (pure).

Topological ordering and cycle detection for the install plan.
No I/O, no subprocess.
"""

from __future__ import annotations

from src.core.errors import CyclicDependencyError


def find_cycle(graph: dict[str, list[str]]) -> list[str] | None:
    """Return one cycle in ``graph`` as a closed path, or None.

    Args:
        graph: Node → list of nodes it depends on.
    """
    visiting: list[str] = []
    done: set[str] = set()

    def _visit(node: str) -> list[str] | None:
        if node in visiting:
            return visiting[visiting.index(node):] + [node]
        if node in done:
            return None
        visiting.append(node)
        for dep in graph.get(node, []):
            cycle = _visit(dep)
            if cycle:
                return cycle
        visiting.pop()
        done.add(node)
        return None

    for node in graph:
        cycle = _visit(node)
        if cycle:
            return cycle
    return None


def topological_order(graph: dict[str, list[str]]) -> list[str]:
    """Order nodes so every dependency precedes its dependents.

    Kahn's algorithm. Ties are broken by the insertion order of
    ``graph`` (declaration order), so the result is deterministic.
    Nodes that only appear as dependencies are included.

    Args:
        graph: Node → list of nodes it depends on.

    Returns:
        All nodes, dependencies first.

    Raises:
        CyclicDependencyError: If the graph has a cycle.
    """
    nodes: list[str] = []
    for node, deps in graph.items():
        if node not in nodes:
            nodes.append(node)
        for dep in deps:
            if dep not in nodes:
                nodes.append(dep)

    in_degree: dict[str, int] = {n: 0 for n in nodes}
    # dep → nodes that depend on it
    dependents: dict[str, list[str]] = {n: [] for n in nodes}
    for node, deps in graph.items():
        for dep in dict.fromkeys(deps):
            in_degree[node] += 1
            dependents[dep].append(node)

    queue = [n for n in nodes if in_degree[n] == 0]
    order: list[str] = []
    while queue:
        node = queue.pop(0)
        order.append(node)
        for successor in dependents[node]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    if len(order) < len(nodes):
        cycle = find_cycle(graph) or [n for n in nodes if n not in order]
        raise CyclicDependencyError(cycle)

    return order
