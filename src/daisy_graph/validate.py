from __future__ import annotations

from collections import defaultdict

from daisy_graph._deps import build_forward_deps, node_refs
from daisy_graph.models import HardwareInput, PatchGraph, PatchParam


class GraphValidationError(str):
    """A structured validation error that behaves as a plain string.

    Subclasses ``str`` so call sites can compare, join and print diagnostics
    directly (``"; ".join(errors)``, ``print(f"error: {err}")``).
    """

    kind: str
    node_id: str | None
    field_name: str | None
    severity: str  # "error" | "warning"

    def __new__(
        cls,
        kind: str,
        message: str,
        *,
        node_id: str | None = None,
        field_name: str | None = None,
        severity: str = "error",
    ) -> GraphValidationError:
        return super().__new__(cls, message)

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        node_id: str | None = None,
        field_name: str | None = None,
        severity: str = "error",
    ) -> None:
        self.kind = kind
        self.node_id = node_id
        self.field_name = field_name
        self.severity = severity


class CapacityError(GraphValidationError):
    """Warning for a patch list truncated to the target's capacity."""

    capacity: int
    dropped: list[str]

    @staticmethod
    def _message(supplied: int, capacity: int, dropped: list[str]) -> str:
        return (
            f"Target supports at most {capacity} app(s); {supplied} supplied, "
            f"ignoring: {', '.join(dropped)}"
        )

    def __new__(cls, supplied: int, capacity: int, dropped: list[str]) -> CapacityError:
        return str.__new__(cls, cls._message(supplied, capacity, dropped))

    def __init__(self, supplied: int, capacity: int, dropped: list[str]) -> None:
        super().__init__(
            "capacity", self._message(supplied, capacity, dropped), severity="warning"
        )
        self.capacity = capacity
        self.dropped = list(dropped)


def validate_graph(graph: PatchGraph) -> list[GraphValidationError]:
    """Validate a node graph and return a list of errors (empty = valid)."""
    errors: list[GraphValidationError] = []

    # 1. Reference resolution -- every src/to/from names a node
    for name, node in graph.nodes.items():
        for field_name, ref in node_refs(node):
            if ref not in graph.nodes:
                errors.append(
                    GraphValidationError(
                        "dangling_ref",
                        f"Node '{name}' field '{field_name}' references unknown node '{ref}'",
                        node_id=name,
                        field_name=field_name,
                    )
                )

    # 2. Parameters are controlled by hardware inputs only
    for name in graph.params:
        node = graph.nodes.get(name)
        if not isinstance(node, PatchParam) or node.src is None or node.src not in graph.nodes:
            continue
        if not isinstance(graph.nodes[node.src], HardwareInput):
            errors.append(
                GraphValidationError(
                    "bad_param_source",
                    f"Parameter '{name}' is controlled by '{node.src}', which is not a "
                    f"hardware input",
                    node_id=name,
                    field_name="src",
                )
            )

    # 3. No parameter has more than one controlling input
    controllers: dict[str, list[str]] = defaultdict(list)
    for name in graph.device_inputs:
        for target in graph.nodes[name].to:
            if target in graph.params:
                controllers[target].append(name)
    for target, sources in controllers.items():
        if len(sources) > 1:
            errors.append(
                GraphValidationError(
                    "multiple_controllers",
                    f"Parameter '{target}' is controlled by more than one input: "
                    f"{', '.join(sources)}",
                    node_id=target,
                )
            )

    # 4. No cycles along src/to/from edges
    deps = build_forward_deps(graph)
    in_degree: dict[str, int] = {name: 0 for name in graph.nodes}
    reverse: dict[str, list[str]] = defaultdict(list)
    for name, dep_set in deps.items():
        for dep in dep_set:
            in_degree[name] += 1
            reverse[dep].append(name)

    queue = [name for name, deg in in_degree.items() if deg == 0]
    visited = 0
    while queue:
        current = queue.pop()
        visited += 1
        for dependent in reverse[current]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if visited < len(in_degree):
        cycle_nodes = [name for name, deg in in_degree.items() if deg > 0]
        errors.append(
            GraphValidationError(
                "cycle",
                f"Graph contains a cycle through nodes: {', '.join(sorted(cycle_nodes))}",
            )
        )

    return errors
