"""Shared dependency helpers for graph analysis."""

from __future__ import annotations

from collections import defaultdict

from daisy_graph.models import PatchGraph


def is_in_place(node: object) -> bool:
    """Return True if the node names itself as ``src``.

    A raw output or glue buffer written directly by the patch carries its own
    name as ``src``; that marker is not a dependency.
    """
    return getattr(node, "src", None) == getattr(node, "name", None)


def node_refs(node: object) -> list[tuple[str, str]]:
    """Return ``(field, name)`` for every node reference held by *node*."""
    refs: list[tuple[str, str]] = []
    src = getattr(node, "src", None)
    if src is not None and not is_in_place(node):
        refs.append(("src", src))
    for name in getattr(node, "to", []):
        refs.append(("to", name))
    for name in getattr(node, "from_", []):
        refs.append(("from", name))
    return refs


def build_forward_deps(graph: PatchGraph) -> dict[str, set[str]]:
    """Build forward dependency map: {node name: set of upstream node names}.

    ``src`` and ``from`` point upstream; ``to`` points downstream. References
    to names outside the graph are skipped.
    """
    deps: dict[str, set[str]] = defaultdict(set)
    for name, node in graph.nodes.items():
        for field_name, ref in node_refs(node):
            if ref not in graph.nodes:
                continue
            if field_name == "to":
                deps[ref].add(name)
            else:
                deps[name].add(ref)
    return deps
