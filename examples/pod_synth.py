"""Generate Daisy Pod firmware source for an exported RNBO patch."""

import json
from pathlib import Path

from daisy_graph import (
    PatchDescriptor,
    TargetDescriptor,
    generate,
    graph_to_dot_file,
    validate_graph,
    write_project,
)

HERE = Path(__file__).parent

target = TargetDescriptor.model_validate(json.loads((HERE / "pod.json").read_text()))
patch = PatchDescriptor.from_description(json.loads((HERE / "description.json").read_text()))

if __name__ == "__main__":
    result = generate(target, [patch])
    for diag in result.diagnostics:
        print(f"{diag.severity}: {diag}")
    graph = result.graphs[0]
    errors = validate_graph(graph)
    if errors:
        print("Validation errors:")
        for e in errors:
            print(f"  - {e}")
    else:
        print("Graph is valid.")
    for name in graph.params:
        node = graph[name]
        print(f"  {node.param}: {node.type} step={node.stepsize:g} <- {node.src or '(menu)'}")
    cpp_path, makefile_path = write_project(result, "build", HERE.parent / "libdaisy")
    print(f"\nGenerated: {cpp_path}")
    print(f"Makefile: {makefile_path}")
    dot_path = graph_to_dot_file(graph, "build")
    print(f"DOT: {dot_path}")
