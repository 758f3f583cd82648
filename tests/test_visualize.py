from __future__ import annotations

import shutil
from pathlib import Path
from unittest.mock import patch

from patch_reconcile import ModuleState, PatchGraph, graph_to_dot, graph_to_dot_file


class TestGraphToDot:
    def test_header(self, voice_graph: PatchGraph) -> None:
        dot = graph_to_dot(voice_graph)
        assert 'digraph "patch"' in dot
        assert "rankdir=LR" in dot
        assert dot.endswith("}\n")

    def test_custom_name(self, voice_graph: PatchGraph) -> None:
        assert 'digraph "voice"' in graph_to_dot(voice_graph, name="voice")

    def test_modules(self, voice_graph: PatchGraph) -> None:
        dot = graph_to_dot(voice_graph)
        assert '"sine-1" [shape=box' in dot
        assert "sine-1\\nsine" in dot
        assert '"root" [shape=doubleoctagon' in dot
        assert "#cce5ff" in dot  # explicit "lead"

    def test_cable_edges(self, voice_graph: PatchGraph) -> None:
        dot = graph_to_dot(voice_graph)
        assert '"sine-1" -> "lpf-1" [label="output->input"];' in dot
        assert '"lpf-1" -> "root" [label="output->inputs[0]"];' in dot
        assert '"root_clock" -> "lead" [label="beat->sync"];' in dot

    def test_scope_edges(self, voice_graph: PatchGraph) -> None:
        dot = graph_to_dot(voice_graph)
        assert '"scope_0" [shape=note' in dot
        assert '"lpf-1" -> "scope_0" [style=dotted];' in dot

    def test_missing_producer_dashed(self) -> None:
        g = PatchGraph(
            modules=[
                ModuleState(
                    id="lpf-1",
                    module_type="lpf",
                    params={"input": {"type": "cable", "module": "ghost", "port": "out"}},
                )
            ]
        )
        dot = graph_to_dot(g)
        assert "ghost\\n(missing)" in dot
        assert '"ghost" -> "lpf-1" [style=dashed' in dot

    def test_remap_overlay(self, voice_graph: PatchGraph) -> None:
        dot = graph_to_dot(voice_graph, remap={"sine-7": "sine-1"})
        assert "(kept from sine-7)" in dot
        assert "#d4edda" in dot


class TestGraphToDotFile:
    def test_writes_dot(self, voice_graph: PatchGraph, tmp_path: Path) -> None:
        with patch.object(shutil, "which", return_value=None):
            path = graph_to_dot_file(voice_graph, tmp_path / "out", name="voice")
        assert path == tmp_path / "out" / "voice.dot"
        assert path.read_text() == graph_to_dot(voice_graph, name="voice")
        assert not (tmp_path / "out" / "voice.pdf").exists()
