"""Shared cable-walking helpers for patch graph analysis."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterator
from typing import Any

from patch_reconcile.models import Cable, ModuleState, ParamList, ParamStruct, PatchGraph


def join_key(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def join_index(path: str, index: int) -> str:
    return f"{path}[{index}]" if path else f"[{index}]"


def iter_cables(tree: Any, path: str = "") -> Iterator[tuple[str, Cable]]:
    """Yield ``(path, cable)`` for every cable in a param tree.

    Lists are visited by index and structs by sorted key, so paths match
    the ones produced by feature extraction.
    """
    if isinstance(tree, Cable):
        yield path, tree
    elif isinstance(tree, ParamList):
        for i, item in enumerate(tree.items):
            yield from iter_cables(item, join_index(path, i))
    elif isinstance(tree, ParamStruct):
        for key in sorted(tree.fields):
            yield from iter_cables(tree.fields[key], join_key(path, key))


def iter_module_cables(module: ModuleState) -> Iterator[tuple[str, Cable]]:
    """Yield ``(param_path, cable)`` for every cable in a module's params."""
    for name in sorted(module.params):
        yield from iter_cables(module.params[name], name)


def build_downstream_usage(graph: PatchGraph) -> dict[str, Counter[str]]:
    """Build the downstream usage multiset for every referenced module.

    Returns ``{producer_id: Counter({"consumerType:paramPath:port": count})}``.
    Producers that nothing consumes are absent.
    """
    usage: dict[str, Counter[str]] = defaultdict(Counter)
    for consumer in graph.modules:
        for path, cable in iter_module_cables(consumer):
            usage[cable.module][f"{consumer.module_type}:{path}:{cable.port}"] += 1
    return dict(usage)
