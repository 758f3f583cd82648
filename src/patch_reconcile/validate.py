"""Structural checks for patch graphs before they are reconciled or sent to the engine."""

from __future__ import annotations

from typing import Any

from patch_reconcile._deps import iter_module_cables, join_index, join_key
from patch_reconcile.models import (
    RESERVED_MODULE_IDS,
    Opaque,
    ParamList,
    ParamStruct,
    PatchGraph,
    is_implicit_id,
)


class GraphValidationError(str):
    """A structured validation error that behaves as a plain string.

    Subclasses ``str`` so call sites can compare, join and print errors
    directly while still reading ``kind``/``severity`` when they need to.
    """

    kind: str
    module_id: str | None
    param_path: str | None
    severity: str  # "error" | "warning"

    def __new__(
        cls,
        kind: str,
        message: str,
        *,
        module_id: str | None = None,
        param_path: str | None = None,
        severity: str = "error",
    ) -> GraphValidationError:
        return super().__new__(cls, message)

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        module_id: str | None = None,
        param_path: str | None = None,
        severity: str = "error",
    ) -> None:
        self.kind = kind
        self.module_id = module_id
        self.param_path = param_path
        self.severity = severity


def _opaque_paths(tree: Any, path: str) -> list[str]:
    """Return the paths of all Opaque leaves in a param tree."""
    if isinstance(tree, Opaque):
        return [path]
    if isinstance(tree, ParamList):
        found: list[str] = []
        for i, item in enumerate(tree.items):
            found.extend(_opaque_paths(item, join_index(path, i)))
        return found
    if isinstance(tree, ParamStruct):
        found = []
        for key in sorted(tree.fields):
            found.extend(_opaque_paths(tree.fields[key], join_key(path, key)))
        return found
    return []


def validate_graph(graph: PatchGraph) -> list[GraphValidationError]:
    """Validate a patch graph and return a list of diagnostics (empty = valid).

    Errors come first, followed by warnings. Never raises.
    """
    errors: list[GraphValidationError] = []
    warnings: list[GraphValidationError] = []

    # 1. Unique IDs
    seen: set[str] = set()
    for module in graph.modules:
        mid = module.id
        if mid in seen:
            errors.append(
                GraphValidationError("duplicate_id", f"Duplicate module ID: '{mid}'", module_id=mid)
            )
        seen.add(mid)

    # 2. Cable resolution -- every cable points at a module in this graph
    for module in graph.modules:
        for path, cable in iter_module_cables(module):
            if cable.module not in seen:
                errors.append(
                    GraphValidationError(
                        "dangling_cable",
                        f"Module '{module.id}' param '{path}' references unknown module "
                        f"'{cable.module}'",
                        module_id=module.id,
                        param_path=path,
                    )
                )

    # 3. Remap hints -- never from or onto a reserved ID
    for remap in graph.module_id_remaps or []:
        if remap.from_id in RESERVED_MODULE_IDS or remap.to in RESERVED_MODULE_IDS:
            errors.append(
                GraphValidationError(
                    "reserved_remap",
                    f"Remap '{remap.from_id}' -> '{remap.to}' touches a reserved module ID",
                    module_id=remap.from_id,
                )
            )
        elif remap.from_id == remap.to:
            warnings.append(
                GraphValidationError(
                    "identity_remap",
                    f"Remap '{remap.from_id}' -> '{remap.to}' is an identity pair",
                    module_id=remap.from_id,
                    severity="warning",
                )
            )

    # 4. Scopes -- each subscription targets an existing module
    for scope in graph.scopes:
        target = scope.item.module_id
        if target not in seen:
            warnings.append(
                GraphValidationError(
                    "dangling_scope",
                    f"Scope on '{target}:{scope.item.port_name}' references unknown module",
                    module_id=target,
                    severity="warning",
                )
            )

    # 5. Explicit-ID flag agrees with the generated-ID pattern
    for module in graph.modules:
        if module.id_is_explicit is False and module.id not in RESERVED_MODULE_IDS:
            if not is_implicit_id(module.id, module.module_type):
                warnings.append(
                    GraphValidationError(
                        "implicit_id_pattern",
                        f"Module '{module.id}' is flagged implicit but does not match "
                        f"'{module.module_type}-<n>'",
                        module_id=module.id,
                        severity="warning",
                    )
                )

    # 6. Malformed param values degrade matching to exact comparison
    for module in graph.modules:
        for name in sorted(module.params):
            for path in _opaque_paths(module.params[name], name):
                warnings.append(
                    GraphValidationError(
                        "opaque_param",
                        f"Module '{module.id}' param '{path}' has an unrecognized value shape",
                        module_id=module.id,
                        param_path=path,
                        severity="warning",
                    )
                )

    errors.extend(warnings)
    return errors
