"""patch-reconcile: keep running synth modules alive across patch recompiles."""

from patch_reconcile.assignment import solve_assignment
from patch_reconcile.features import Feature, GraphContext, build_graph_context, extract_features
from patch_reconcile.models import (
    RESERVED_MODULE_IDS,
    Cable,
    Disconnected,
    Flag,
    ModuleIdRemap,
    ModuleState,
    Opaque,
    ParamList,
    ParamStruct,
    ParamTree,
    PatchGraph,
    Scope,
    ScopeItem,
    Text,
    Value,
    dump_param,
    is_explicit_id,
    is_implicit_id,
    parse_param,
)
from patch_reconcile.reconcile import (
    DEFAULT_AMBIGUITY_MARGIN,
    DEFAULT_MATCH_THRESHOLD,
    ReconcileOptions,
    ReconcileResult,
    reconcile_patch,
    remap_graph,
    with_remap_hints,
)
from patch_reconcile.similarity import (
    module_similarity,
    multiset_jaccard,
    number_similarity,
    param_similarity,
    score_modules,
)
from patch_reconcile.validate import GraphValidationError, validate_graph
from patch_reconcile.visualize import graph_to_dot, graph_to_dot_file

__all__ = [
    "RESERVED_MODULE_IDS",
    "DEFAULT_AMBIGUITY_MARGIN",
    "DEFAULT_MATCH_THRESHOLD",
    "Cable",
    "Disconnected",
    "Feature",
    "Flag",
    "GraphContext",
    "GraphValidationError",
    "ModuleIdRemap",
    "ModuleState",
    "Opaque",
    "ParamList",
    "ParamStruct",
    "ParamTree",
    "PatchGraph",
    "ReconcileOptions",
    "ReconcileResult",
    "Scope",
    "ScopeItem",
    "Text",
    "Value",
    "build_graph_context",
    "dump_param",
    "extract_features",
    "graph_to_dot",
    "graph_to_dot_file",
    "is_explicit_id",
    "is_implicit_id",
    "module_similarity",
    "multiset_jaccard",
    "number_similarity",
    "param_similarity",
    "parse_param",
    "reconcile_patch",
    "remap_graph",
    "score_modules",
    "solve_assignment",
    "validate_graph",
    "with_remap_hints",
]
