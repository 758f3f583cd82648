"""Feature extraction: flatten a module's param tree into comparable leaves."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Literal

from patch_reconcile._deps import build_downstream_usage, join_index, join_key
from patch_reconcile.models import (
    Cable,
    Disconnected,
    Flag,
    ModuleState,
    Opaque,
    ParamList,
    ParamStruct,
    PatchGraph,
    Text,
    Value,
)

FeatureKind = Literal["number", "boolean", "string", "null", "cableRef", "unknown"]

KIND_WEIGHTS: dict[str, float] = {
    "cableRef": 2.0,
    "number": 1.0,
    "boolean": 1.0,
    "string": 1.0,
    "null": 1.0,
    "unknown": 0.75,
}

# Producer type used when a cable points at a module missing from the graph.
UNKNOWN_PRODUCER = "unknown"


@dataclass(frozen=True)
class Feature:
    path: str
    kind: FeatureKind
    value: Any
    weight: float


def _feature(path: str, kind: FeatureKind, value: Any) -> Feature:
    return Feature(path=path, kind=kind, value=value, weight=KIND_WEIGHTS[kind])


def _walk(
    tree: Any,
    path: str,
    type_by_id: dict[str, str],
    out: dict[str, Feature],
) -> None:
    key = path or "$"
    if isinstance(tree, Cable):
        # Wiring compares by producer type, not producer ID
        producer_type = type_by_id.get(tree.module, UNKNOWN_PRODUCER)
        out[key] = _feature(key, "cableRef", f"{producer_type}:{tree.port}")
    elif isinstance(tree, Value):
        out[key] = _feature(key, "number", tree.value)
    elif isinstance(tree, Flag):
        out[key] = _feature(key, "boolean", tree.value)
    elif isinstance(tree, Text):
        out[key] = _feature(key, "string", tree.value)
    elif isinstance(tree, Disconnected):
        out[key] = _feature(key, "null", None)
    elif isinstance(tree, ParamList):
        for i, item in enumerate(tree.items):
            _walk(item, join_index(path, i), type_by_id, out)
    elif isinstance(tree, ParamStruct):
        for k in sorted(tree.fields):
            _walk(tree.fields[k], join_key(path, k), type_by_id, out)
    elif isinstance(tree, Opaque):
        out[key] = _feature(key, "unknown", tree.value)
    else:
        out[key] = _feature(key, "unknown", tree)


def extract_features(module: ModuleState, type_by_id: dict[str, str]) -> dict[str, Feature]:
    """Return ``{path: Feature}`` for every leaf in the module's params.

    *type_by_id* maps module IDs of the module's own graph to their type and
    is used to canonicalize cable references.
    """
    features: dict[str, Feature] = {}
    for name in sorted(module.params):
        _walk(module.params[name], name, type_by_id, features)
    return features


@dataclass
class GraphContext:
    """Per-call lookup tables for one graph."""

    type_by_id: dict[str, str] = field(default_factory=dict)
    features_by_id: dict[str, dict[str, Feature]] = field(default_factory=dict)
    downstream_by_id: dict[str, Counter[str]] = field(default_factory=dict)


def build_graph_context(graph: PatchGraph) -> GraphContext:
    type_by_id = {m.id: m.module_type for m in graph.modules}
    return GraphContext(
        type_by_id=type_by_id,
        features_by_id={m.id: extract_features(m, type_by_id) for m in graph.modules},
        downstream_by_id=build_downstream_usage(graph),
    )
