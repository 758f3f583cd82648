"""Patch reconciliation: map running module instances onto a newly compiled graph.

Given the *desired* graph from the compiler and the *current* graph running
in the audio engine, ``reconcile_patch`` decides which running instances are
"the same module, edited" and returns a ``current_id -> desired_id`` remap.
The engine uses the remap to keep those instances (and their oscillator
phase, filter memory, envelope stage) instead of recreating them.

Matching order:

1. Reserved IDs (``root``, ``root_clock``) present on both sides map to themselves.
2. Explicit desired IDs that exist in the current graph with the same type are anchored.
3. Remaining modules are grouped by type and matched per group with an optimal
   assignment on ``1 - score``; a dummy "no match" cost of ``1 - match_threshold``
   lets the optimizer reject weak pairs.
4. Accepted pairs whose best score does not beat the row's second best by
   ``ambiguity_margin`` are dropped.

The desired graph is never modified; the remap is advisory metadata.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np
from pydantic import BaseModel, Field

from patch_reconcile.assignment import solve_assignment
from patch_reconcile.features import GraphContext, build_graph_context
from patch_reconcile.models import (
    RESERVED_MODULE_IDS,
    Cable,
    ModuleIdRemap,
    ModuleState,
    ParamList,
    ParamStruct,
    PatchGraph,
    is_explicit_id,
)
from patch_reconcile.similarity import score_matrix

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.65
DEFAULT_AMBIGUITY_MARGIN = 0.05

# Type groups above this size get a warning: the group solve is O(n^3).
LARGE_GROUP_WARNING = 256

# Keeps a real pair scoring exactly the threshold ahead of the "no match" dummy.
_DUMMY_TIE_BREAK = 1e-9


class ReconcileOptions(BaseModel):
    match_threshold: float = Field(default=DEFAULT_MATCH_THRESHOLD, ge=0.0, le=1.0)
    ambiguity_margin: float = Field(default=DEFAULT_AMBIGUITY_MARGIN, ge=0.0, le=1.0)
    debug_log: Callable[[str], None] | None = None
    max_group_size: int | None = Field(default=None, ge=1)


@dataclass
class ReconcileResult:
    applied_patch: PatchGraph
    # current_id -> desired_id, identity pairs excluded
    module_id_remap: dict[str, str] = field(default_factory=dict)
    # every accepted pairing, including identity anchors
    matches: dict[str, str] = field(default_factory=dict)

    def remap_hints(self) -> list[ModuleIdRemap]:
        return [ModuleIdRemap(from_id=src, to=dst) for src, dst in self.module_id_remap.items()]


class _DebugSink:
    """Sends decision lines to the module logger and the caller's callback."""

    def __init__(self, callback: Callable[[str], None] | None) -> None:
        self.callback = callback
        self.enabled = callback is not None or logger.isEnabledFor(logging.DEBUG)

    def __call__(self, message: str) -> None:
        logger.debug(message)
        if self.callback is not None:
            self.callback(message)


def group_by_type(
    modules: Iterable[ModuleState], exclude: set[str] | frozenset[str] = frozenset()
) -> dict[str, list[ModuleState]]:
    """Group modules by ``module_type``, keeping graph order within each group."""
    groups: dict[str, list[ModuleState]] = {}
    for module in modules:
        if module.id in exclude or module.id in RESERVED_MODULE_IDS:
            continue
        groups.setdefault(module.module_type, []).append(module)
    return groups


def _match_group(
    module_type: str,
    desired_list: list[ModuleState],
    current_list: list[ModuleState],
    desired_ctx: GraphContext,
    current_ctx: GraphContext,
    opts: ReconcileOptions,
    debug: _DebugSink,
) -> dict[str, str]:
    """Solve one type group and return the accepted ``current_id -> desired_id`` pairs."""
    m = len(desired_list)
    n = len(current_list)
    scores = score_matrix(desired_list, current_list, desired_ctx, current_ctx)

    # Square (m+n) matrix: one dummy column per desired row, dummy rows for unused columns
    size = m + n
    cost = np.full((size, size), 1.0 - opts.match_threshold + _DUMMY_TIE_BREAK)
    cost[:m, :n] = 1.0 - np.asarray(scores, dtype=np.float64)
    assignment = solve_assignment(cost)

    accepted: dict[str, str] = {}
    for i, desired in enumerate(desired_list):
        col = assignment[i]
        if col < 0 or col >= n:
            if debug.enabled:
                debug(f"[patch-remap] unmatched type={module_type} desired={desired.id}")
            continue

        current = current_list[col]
        score = scores[i][col]
        ranked = sorted(scores[i], reverse=True)
        best = ranked[0]
        second = ranked[1] if len(ranked) > 1 else -1.0
        margin = best - second

        if debug.enabled:
            debug(
                f"[patch-remap] type={module_type} desired={desired.id} candidate={current.id} "
                f"score={score:.4f} best={best:.4f} second={second:.4f} margin={margin:.4f} "
                f"desiredExplicit={is_explicit_id(desired)} "
                f"currentExplicit={is_explicit_id(current)} sameId={desired.id == current.id}"
            )

        if score < opts.match_threshold:
            if debug.enabled:
                debug(
                    f"[patch-remap] reject (below-threshold) desired={desired.id} "
                    f"score={score:.4f} threshold={opts.match_threshold:.4f}"
                )
            continue
        if margin < opts.ambiguity_margin:
            if debug.enabled:
                debug(
                    f"[patch-remap] reject (ambiguous) desired={desired.id} best={best:.4f} "
                    f"second={second:.4f} margin={margin:.4f} "
                    f"required={opts.ambiguity_margin:.4f}"
                )
            continue
        if current.id in RESERVED_MODULE_IDS or desired.id in RESERVED_MODULE_IDS:
            continue

        accepted[current.id] = desired.id
        if debug.enabled:
            debug(
                f"[patch-remap] accept type={module_type} {current.id} -> {desired.id} "
                f"score={score:.4f}"
            )
    return accepted


def reconcile_patch(
    desired: PatchGraph,
    current: PatchGraph | None,
    options: ReconcileOptions | None = None,
) -> ReconcileResult:
    """Compute which running modules should be kept as instances of desired modules.

    With no current graph (first run) the remap is empty. Neither graph is
    modified, and ``applied_patch`` is the *desired* object itself.
    """
    if current is None:
        return ReconcileResult(applied_patch=desired)

    opts = options or ReconcileOptions()
    debug = _DebugSink(opts.debug_log)
    started = time.perf_counter()

    current_by_id = {m.id: m for m in current.modules}
    desired_by_id = {m.id: m for m in desired.modules}

    matches: dict[str, str] = {}  # current_id -> desired_id
    anchored_desired: set[str] = set()

    for reserved_id in sorted(RESERVED_MODULE_IDS):
        if reserved_id in current_by_id and reserved_id in desired_by_id:
            matches[reserved_id] = reserved_id
            anchored_desired.add(reserved_id)

    for module in desired.modules:
        if module.id in RESERVED_MODULE_IDS or not is_explicit_id(module):
            continue
        existing = current_by_id.get(module.id)
        if existing is not None and existing.module_type == module.module_type:
            matches[existing.id] = module.id
            anchored_desired.add(module.id)
            if debug.enabled:
                debug(f"[patch-remap] anchor explicit id={module.id} type={module.module_type}")

    desired_ctx = build_graph_context(desired)
    current_ctx = build_graph_context(current)

    desired_groups = group_by_type(desired.modules, exclude=anchored_desired)
    current_groups = group_by_type(current.modules, exclude=set(matches))

    for module_type, desired_list in desired_groups.items():
        current_list = current_groups.get(module_type, [])
        if not desired_list or not current_list:
            continue

        group_size = max(len(desired_list), len(current_list))
        if opts.max_group_size is not None and group_size > opts.max_group_size:
            logger.warning(
                "skipping type group %r: %d modules exceeds max_group_size=%d",
                module_type,
                group_size,
                opts.max_group_size,
            )
            continue
        if group_size > LARGE_GROUP_WARNING:
            logger.warning(
                "large type group %r: %d desired x %d current modules",
                module_type,
                len(desired_list),
                len(current_list),
            )

        matches.update(
            _match_group(
                module_type, desired_list, current_list, desired_ctx, current_ctx, opts, debug
            )
        )

    module_id_remap = {src: dst for src, dst in matches.items() if src != dst}

    if debug.enabled:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        debug(f"[patch-remap] done remapped={len(module_id_remap)} elapsed_ms={elapsed_ms:.3f}")
        if module_id_remap:
            pairs = ", ".join(f"{src}->{dst}" for src, dst in module_id_remap.items())
            debug(f"[patch-remap] remaps {pairs}")

    return ReconcileResult(applied_patch=desired, module_id_remap=module_id_remap, matches=matches)


# ---------------------------------------------------------------------------
# Helpers for consumers of the result
# ---------------------------------------------------------------------------


def with_remap_hints(result: ReconcileResult) -> PatchGraph:
    """Return a deep copy of the applied patch carrying ``module_id_remaps``."""
    hints = result.remap_hints()
    return result.applied_patch.model_copy(
        deep=True, update={"module_id_remaps": hints if hints else None}
    )


def _remap_tree(tree: Any, id_map: dict[str, str]) -> Any:
    if isinstance(tree, Cable):
        target = id_map.get(tree.module)
        return tree if target is None else tree.model_copy(update={"module": target})
    if isinstance(tree, ParamList):
        return ParamList(items=tuple(_remap_tree(item, id_map) for item in tree.items))
    if isinstance(tree, ParamStruct):
        return ParamStruct(fields={k: _remap_tree(v, id_map) for k, v in tree.fields.items()})
    return tree


def remap_graph(graph: PatchGraph, id_map: dict[str, str]) -> PatchGraph:
    """Return a copy of *graph* with module IDs rewritten through *id_map*.

    Module IDs, cable references and scope items are all rewritten; IDs not
    in *id_map* are kept. The input graph is not modified.
    """
    modules = [
        module.model_copy(
            deep=True,
            update={
                "id": id_map.get(module.id, module.id),
                "params": {k: _remap_tree(v, id_map) for k, v in module.params.items()},
            },
        )
        for module in graph.modules
    ]
    scopes = [
        scope.model_copy(
            deep=True,
            update={
                "item": scope.item.model_copy(
                    update={"module_id": id_map.get(scope.item.module_id, scope.item.module_id)}
                )
            },
        )
        for scope in graph.scopes
    ]
    return graph.model_copy(deep=True, update={"modules": modules, "scopes": scopes})
