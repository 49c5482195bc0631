"""Topological sort for node graphs."""

from __future__ import annotations

import bisect
from collections import defaultdict

from daisy_graph._deps import build_forward_deps
from daisy_graph.models import PatchGraph


def toposort(graph: PatchGraph) -> list[str]:
    """Return node names in dependency order (Kahn's algorithm).

    Uses alphabetical tie-breaking for deterministic output.
    Raises ValueError if the graph contains a cycle along src/to/from edges.
    """
    if not graph.nodes:
        return []

    deps = build_forward_deps(graph)

    in_degree: dict[str, int] = {name: 0 for name in graph.nodes}
    reverse: dict[str, list[str]] = defaultdict(list)
    for name, dep_set in deps.items():
        for dep in dep_set:
            in_degree[name] += 1
            reverse[dep].append(name)

    # Kahn's with sorted queue for determinism
    queue = sorted(name for name, deg in in_degree.items() if deg == 0)
    result: list[str] = []

    while queue:
        current = queue.pop(0)
        result.append(current)
        for dependent in reverse[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                bisect.insort(queue, dependent)

    if len(result) < len(in_degree):
        cycle_nodes = sorted(name for name, deg in in_degree.items() if deg > 0)
        raise ValueError(f"Graph contains a cycle through nodes: {', '.join(cycle_nodes)}")

    return result
