"""Tests for feature extraction and downstream usage fingerprints."""

from __future__ import annotations

from collections import Counter

from patch_reconcile import ModuleState, PatchGraph, build_graph_context, extract_features
from patch_reconcile._deps import build_downstream_usage, iter_module_cables


def _cable(module: str, port: str = "output") -> dict[str, str]:
    return {"type": "cable", "module": module, "port": port}


class TestExtractFeatures:
    def test_leaf_kinds_and_paths(self) -> None:
        module = ModuleState(
            id="lpf-1",
            module_type="lpf",
            params={
                "wave": "saw",
                "freq": 4.0,
                "sync": True,
                "gate": None,
                "input": _cable("osc-1"),
                "mods": [_cable("lfo-1", "out"), 0.5],
                "env": {"b": 1, "a": 2},
            },
        )
        features = extract_features(module, {"osc-1": "sine"})

        assert list(features) == [
            "env.a",
            "env.b",
            "freq",
            "gate",
            "input",
            "mods[0]",
            "mods[1]",
            "sync",
            "wave",
        ]
        assert features["freq"].kind == "number"
        assert features["freq"].value == 4.0
        assert features["gate"].kind == "null"
        assert features["sync"].kind == "boolean"
        assert features["wave"].kind == "string"
        assert features["env.a"].value == 2.0

    def test_cable_canonicalized_by_producer_type(self) -> None:
        module = ModuleState(id="lpf-1", module_type="lpf", params={"input": _cable("osc-7")})
        features = extract_features(module, {"osc-7": "sine"})
        feat = features["input"]
        assert feat.kind == "cableRef"
        assert feat.value == "sine:output"
        assert feat.weight == 2.0

    def test_cable_to_missing_producer(self) -> None:
        module = ModuleState(id="lpf-1", module_type="lpf", params={"input": _cable("ghost")})
        assert extract_features(module, {})["input"].value == "unknown:output"

    def test_same_wiring_different_ids_compare_equal(self) -> None:
        a = ModuleState(id="lpf-1", module_type="lpf", params={"input": _cable("sine-1")})
        b = ModuleState(id="lpf-2", module_type="lpf", params={"input": _cable("sine-9")})
        fa = extract_features(a, {"sine-1": "sine"})
        fb = extract_features(b, {"sine-9": "sine"})
        assert fa["input"].value == fb["input"].value

    def test_malformed_value_is_unknown(self) -> None:
        raw = {"type": "cable", "module": 3, "port": "out"}
        module = ModuleState(id="x-1", module_type="x", params={"bad": raw})
        feat = extract_features(module, {})["bad"]
        assert feat.kind == "unknown"
        assert feat.weight == 0.75
        assert feat.value == raw

    def test_empty_containers_have_no_features(self) -> None:
        module = ModuleState(id="mix-1", module_type="mix", params={"inputs": [], "opts": {}})
        assert extract_features(module, {}) == {}

    def test_key_order_does_not_change_paths(self) -> None:
        a = ModuleState(id="a", module_type="t", params={"x": {"p": 1, "q": 2}, "y": 3})
        b = ModuleState(id="b", module_type="t", params={"y": 3, "x": {"q": 2, "p": 1}})
        assert list(extract_features(a, {})) == list(extract_features(b, {}))


class TestDownstreamUsage:
    def test_tokens(self) -> None:
        graph = PatchGraph(
            modules=[
                ModuleState(id="sine-1", module_type="sine"),
                ModuleState(
                    id="mix-1",
                    module_type="mix",
                    params={"inputs": [_cable("sine-1"), _cable("sine-1", "phase")]},
                ),
                ModuleState(id="lpf-1", module_type="lpf", params={"input": _cable("sine-1")}),
            ]
        )
        usage = build_downstream_usage(graph)
        assert usage["sine-1"] == Counter(
            {
                "mix:inputs[0]:output": 1,
                "mix:inputs[1]:phase": 1,
                "lpf:input:output": 1,
            }
        )
        assert "mix-1" not in usage

    def test_multiplicity(self) -> None:
        graph = PatchGraph(
            modules=[
                ModuleState(id="sine-1", module_type="sine"),
                ModuleState(id="mix-1", module_type="mix", params={"in": _cable("sine-1")}),
                ModuleState(id="mix-2", module_type="mix", params={"in": _cable("sine-1")}),
            ]
        )
        assert build_downstream_usage(graph)["sine-1"] == Counter({"mix:in:output": 2})

    def test_cable_paths_match_feature_paths(self, voice_graph: PatchGraph) -> None:
        root = voice_graph.module("root")
        assert root is not None
        paths = [path for path, _ in iter_module_cables(root)]
        features = extract_features(root, {})
        assert paths == ["inputs[0]", "inputs[1]"]
        assert all(features[p].kind == "cableRef" for p in paths)


class TestGraphContext:
    def test_context_tables(self, voice_graph: PatchGraph) -> None:
        ctx = build_graph_context(voice_graph)
        assert ctx.type_by_id["lpf-1"] == "lpf"
        assert ctx.features_by_id["lpf-1"]["input"].value == "sine:output"
        assert ctx.features_by_id["lead"]["sync"].value == "clock:beat"
        assert ctx.downstream_by_id["lpf-1"] == Counter({"mix:inputs[0]:output": 1})
        assert ctx.downstream_by_id["root_clock"] == Counter({"saw:sync:beat": 1})
