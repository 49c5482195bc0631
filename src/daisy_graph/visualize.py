"""Graphviz DOT visualization for patch graphs."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from daisy_graph._deps import is_in_place
from daisy_graph.models import (
    AudioBuffer,
    AudioChannel,
    DataHandlerNode,
    HardwareInput,
    HardwareOutput,
    MidiPort,
    PatchAudioIn,
    PatchAudioOut,
    PatchDataRef,
    PatchGraph,
    PatchParam,
)


def _node_attrs(node: object) -> tuple[str, str, str]:
    """Return (shape, fillcolor, label) for a graph node."""
    if isinstance(node, HardwareInput):
        return "box", "#d4edda", f"{node.name}\\n{node.where}"
    if isinstance(node, HardwareOutput):
        return "box", "#f8d7da", f"{node.name}\\n{node.where}"
    if isinstance(node, DataHandlerNode):
        return "box3d", "#fde0c8", f"{node.name}\\ndata"
    if isinstance(node, AudioChannel):
        return "cds", "#e2d5f1", f"{node.name}\\n{node.direction}[{node.index}]"
    if isinstance(node, MidiPort):
        return "cds", "#e9ecef", f"{node.name}\\nmidi {node.direction}"
    if isinstance(node, AudioBuffer):
        return "box3d", "#e9ecef", f"{node.name}\\nbuffer"
    if isinstance(node, (PatchAudioIn, PatchAudioOut)):
        return "box", "#fff3cd", f"{node.name}\\n{node.label}"
    if isinstance(node, PatchParam):
        return (
            "ellipse",
            "#cce5ff",
            f"{node.label}\\n{node.type} [{node.min:g}, {node.max:g}]\\ndefault={node.default:g}",
        )
    if isinstance(node, PatchDataRef):
        return "note", "#fde0c8", f"{node.name}\\n{node.cname}"
    return "box", "#ffffff", str(getattr(node, "name", "?"))


def graph_to_dot(graph: PatchGraph) -> str:
    """Convert a patch graph to a Graphviz DOT string."""
    lines: list[str] = []
    w = lines.append

    w(f'digraph "{graph.name}" {{')
    w("    rankdir=LR;")
    w('    node [fontname="Helvetica" fontsize=10];')
    w("")

    for name, node in graph.nodes.items():
        shape, color, label = _node_attrs(node)
        w(f'    "{name}" [shape={shape} style=filled fillcolor="{color}" label="{label}"];')

    w("")

    # Each edge once, in signal direction. `to` lists mirror the src/from
    # links of their targets, so they only add edges no one else records.
    edges: list[tuple[str, str]] = []
    seen: set[tuple[str, str]] = set()

    def add(a: str, b: str) -> None:
        if (a, b) not in seen:
            seen.add((a, b))
            edges.append((a, b))

    for name, node in graph.nodes.items():
        src = getattr(node, "src", None)
        if src and not is_in_place(node):
            add(src, name)
        for ref in getattr(node, "from_", []):
            add(ref, name)
        for ref in getattr(node, "to", []):
            add(name, ref)

    for a, b in edges:
        if a in graph.nodes and b in graph.nodes:
            w(f'    "{a}" -> "{b}";')
        else:
            w(f'    "{a}" -> "{b}" [style=dashed color=red];')

    w("}")
    return "\n".join(lines) + "\n"


def graph_to_dot_file(graph: PatchGraph, output_dir: str | Path) -> Path:
    """Write a DOT file for the graph to output_dir/{name}.dot.

    If the ``dot`` binary is on PATH, also renders a PDF to
    ``output_dir/{name}.pdf``.

    Returns the path to the written ``.dot`` file.
    """
    dot_src = graph_to_dot(graph)
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    dot_path = out / f"{graph.name}.dot"
    dot_path.write_text(dot_src)

    dot_bin = shutil.which("dot")
    if dot_bin is not None:
        pdf_path = out / f"{graph.name}.pdf"
        subprocess.run(
            [dot_bin, "-Tpdf", str(dot_path), "-o", str(pdf_path)],
            check=True,
        )

    return dot_path
