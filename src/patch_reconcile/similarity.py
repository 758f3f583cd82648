"""Similarity scoring between a desired module and a running module."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Mapping

from patch_reconcile.features import Feature, GraphContext, build_graph_context
from patch_reconcile.models import ModuleState, PatchGraph, is_explicit_id

PARAM_WEIGHT = 0.6
DOWNSTREAM_WEIGHT = 0.4

# Floor for a desired explicit ID that equals the running module's ID.
EXPLICIT_ID_FLOOR = 0.99

_EPSILON = 1e-6


def number_similarity(a: float, b: float) -> float:
    """Relative-difference similarity: ``1 - |a-b| / (|a|+|b|+eps)``, clamped to [0, 1]."""
    if a == b:
        return 1.0
    if not (math.isfinite(a) and math.isfinite(b)):
        return 0.0
    rel = abs(a - b) / (abs(a) + abs(b) + _EPSILON)
    return 1.0 - min(1.0, rel)


def feature_similarity(a: Feature | None, b: Feature | None) -> tuple[float, float]:
    """Return ``(score, weight)`` for one feature path.

    A feature missing on one side scores 0 with the present side's weight.
    """
    if a is None or b is None:
        weight = (a.weight if a is not None else 0.0) + (b.weight if b is not None else 0.0)
        return 0.0, max(_EPSILON, weight)

    weight = (a.weight + b.weight) / 2
    if a.kind != b.kind:
        return 0.0, weight
    if a.kind == "number":
        return number_similarity(a.value, b.value), weight
    return (1.0 if a.value == b.value else 0.0), weight


def param_similarity(features_a: Mapping[str, Feature], features_b: Mapping[str, Feature]) -> float:
    """Weighted match fraction over the union of both modules' feature paths.

    Two modules without any features score 0, leaving them to downstream use.
    """
    paths = sorted(set(features_a) | set(features_b))
    if not paths:
        return 0.0

    weighted_sum = 0.0
    weight_total = 0.0
    for path in paths:
        score, weight = feature_similarity(features_a.get(path), features_b.get(path))
        weighted_sum += score * weight
        weight_total += weight
    return weighted_sum / weight_total


def multiset_jaccard(a: Mapping[str, int], b: Mapping[str, int]) -> float:
    """Sum of per-token minimum counts over sum of maximum counts (1 when both empty)."""
    min_sum = 0
    max_sum = 0
    for token in set(a) | set(b):
        av = a.get(token, 0)
        bv = b.get(token, 0)
        min_sum += min(av, bv)
        max_sum += max(av, bv)
    if max_sum == 0:
        return 1.0
    return min_sum / max_sum


def module_similarity(
    desired: ModuleState,
    current: ModuleState,
    desired_ctx: GraphContext,
    current_ctx: GraphContext,
) -> float:
    """Score in [0, 1] that *current* is the running instance of *desired*.

    Modules of different type always score 0.
    """
    if desired.module_type != current.module_type:
        return 0.0

    p_sim = param_similarity(
        desired_ctx.features_by_id.get(desired.id, {}),
        current_ctx.features_by_id.get(current.id, {}),
    )
    down_sim = multiset_jaccard(
        desired_ctx.downstream_by_id.get(desired.id, Counter()),
        current_ctx.downstream_by_id.get(current.id, Counter()),
    )
    score = PARAM_WEIGHT * p_sim + DOWNSTREAM_WEIGHT * down_sim

    if desired.id == current.id and is_explicit_id(desired):
        score = max(score, EXPLICIT_ID_FLOOR)
    return score


def score_matrix(
    desired_list: list[ModuleState],
    current_list: list[ModuleState],
    desired_ctx: GraphContext,
    current_ctx: GraphContext,
) -> list[list[float]]:
    """Return ``scores[i][j] = module_similarity(desired_list[i], current_list[j])``."""
    return [
        [module_similarity(d, c, desired_ctx, current_ctx) for c in current_list]
        for d in desired_list
    ]


def score_modules(
    desired_graph: PatchGraph,
    desired_id: str,
    current_graph: PatchGraph,
    current_id: str,
) -> float:
    """Score one module pair by ID, building the graph contexts on the fly.

    Raises KeyError if either ID is missing from its graph.
    """
    desired = desired_graph.module(desired_id)
    current = current_graph.module(current_id)
    if desired is None:
        raise KeyError(f"desired graph has no module '{desired_id}'")
    if current is None:
        raise KeyError(f"current graph has no module '{current_id}'")
    return module_similarity(
        desired, current, build_graph_context(desired_graph), build_graph_context(current_graph)
    )
