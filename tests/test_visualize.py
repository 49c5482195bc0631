from __future__ import annotations

import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from daisy_graph import (
    AudioBuffer,
    HardwareInput,
    PatchGraph,
    PatchParam,
    graph_to_dot,
    graph_to_dot_file,
)


class TestGraphToDot:
    def test_header(self, graph: PatchGraph) -> None:
        dot = graph_to_dot(graph)
        assert dot.startswith('digraph "synth" {')
        assert "rankdir=LR" in dot
        assert "fontname" in dot
        assert dot.rstrip().endswith("}")

    def test_every_node_drawn(self, graph: PatchGraph) -> None:
        dot = graph_to_dot(graph)
        for name in graph.nodes:
            assert f'    "{name}" [shape=' in dot

    def test_hardware_nodes(self, graph: PatchGraph) -> None:
        dot = graph_to_dot(graph)
        assert 'label="knob1\\naudio"' in dot
        assert 'label="cv1\\nmain"' in dot
        assert "#d4edda" in dot  # green fill
        assert "#f8d7da" in dot  # red fill

    def test_param_node(self, graph: PatchGraph) -> None:
        dot = graph_to_dot(graph)
        assert "ellipse" in dot
        assert "#cce5ff" in dot  # blue fill
        assert 'label="cutoff\\nfloat [20, 20000]\\ndefault=1000"' in dot

    def test_channel_node(self, graph: PatchGraph) -> None:
        dot = graph_to_dot(graph)
        assert 'label="dsy_out2\\nout[1]"' in dot

    def test_edges(self, graph: PatchGraph) -> None:
        dot = graph_to_dot(graph)
        assert '"knob1" -> "patch_param_cutoff_0";' in dot
        assert '"dsy_in1" -> "patch_in1";' in dot
        assert '"glue_out3" -> "led1";' in dot
        assert '"scope" -> "patch_data_scope_buf";' in dot

    def test_edges_not_duplicated(self, graph: PatchGraph) -> None:
        dot = graph_to_dot(graph)
        # recorded by both knob1.to and the parameter's src
        assert dot.count('"knob1" -> "patch_param_cutoff_0";') == 1
        assert dot.count('"glue_out3" -> "led1";') == 1

    def test_in_place_marker_is_not_an_edge(self, graph: PatchGraph) -> None:
        dot = graph_to_dot(graph)
        assert '"dsy_out1" -> "dsy_out1"' not in dot

    def test_unknown_endpoint_dashed(self) -> None:
        g = PatchGraph(
            name="t",
            nodes={
                "p": PatchParam(name="p", param="p", index=0, label="p", src="ghost"),
            },
            params=["p"],
        )
        dot = graph_to_dot(g)
        assert '"ghost" -> "p" [style=dashed color=red];' in dot

    def test_empty_graph(self) -> None:
        dot = graph_to_dot(PatchGraph(name="empty"))
        assert 'digraph "empty"' in dot
        assert "->" not in dot


class TestGraphToDotFile:
    @pytest.fixture
    def small_graph(self) -> PatchGraph:
        return PatchGraph(
            name="small",
            nodes={
                "k": HardwareInput(name="k", code="0.f", to=["b"]),
                "b": AudioBuffer(name="b", index=0),
            },
            device_inputs=["k"],
            buffers=["b"],
        )

    def test_writes_dot_file(self, tmp_path: Path, small_graph: PatchGraph) -> None:
        with patch("daisy_graph.visualize.shutil.which", return_value=None):
            result = graph_to_dot_file(small_graph, str(tmp_path))
        assert result.exists()
        assert result.name == "small.dot"
        assert 'digraph "small"' in result.read_text()

    def test_creates_output_dir(self, tmp_path: Path, graph: PatchGraph) -> None:
        out_dir = tmp_path / "sub" / "dir"
        with patch("daisy_graph.visualize.shutil.which", return_value=None):
            result = graph_to_dot_file(graph, out_dir)
        assert result.exists()
        assert result.parent == out_dir

    def test_pdf_conversion_when_dot_available(
        self, tmp_path: Path, small_graph: PatchGraph
    ) -> None:
        if shutil.which("dot") is None:
            pytest.skip("dot binary not on PATH")
        result = graph_to_dot_file(small_graph, str(tmp_path))
        pdf_path = result.with_suffix(".pdf")
        assert pdf_path.exists()
        assert pdf_path.stat().st_size > 0

    def test_no_pdf_when_dot_missing(self, tmp_path: Path, small_graph: PatchGraph) -> None:
        with patch("daisy_graph.visualize.shutil.which", return_value=None):
            result = graph_to_dot_file(small_graph, str(tmp_path))
        assert not result.with_suffix(".pdf").exists()
