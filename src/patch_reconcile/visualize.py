"""Graphviz DOT visualization for patch graphs."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from patch_reconcile._deps import iter_module_cables
from patch_reconcile.models import RESERVED_MODULE_IDS, ModuleState, PatchGraph, is_explicit_id


def _module_attrs(module: ModuleState, kept_from: str | None) -> tuple[str, str, str]:
    """Return (shape, fillcolor, label) for a module."""
    label = f"{module.id}\\n{module.module_type}"
    if module.id in RESERVED_MODULE_IDS:
        return "doubleoctagon", "#f8d7da", label
    if kept_from is not None:
        return "box", "#d4edda", f"{label}\\n(kept from {kept_from})"
    if is_explicit_id(module):
        return "box", "#cce5ff", label
    return "box", "#e9ecef", label


def graph_to_dot(
    graph: PatchGraph,
    remap: dict[str, str] | None = None,
    name: str = "patch",
) -> str:
    """Convert a patch graph to a Graphviz DOT string.

    *remap* is a ``current_id -> desired_id`` table; desired modules that
    keep a running instance are highlighted with the ID they were kept from.
    """
    kept_from = {dst: src for src, dst in (remap or {}).items()}
    module_ids = {m.id for m in graph.modules}

    lines: list[str] = []
    w = lines.append

    w(f'digraph "{name}" {{')
    w("    rankdir=LR;")
    w('    node [fontname="Helvetica" fontsize=10];')
    w("")

    for module in graph.modules:
        shape, color, label = _module_attrs(module, kept_from.get(module.id))
        w(f'    "{module.id}" [shape={shape} style=filled fillcolor="{color}" label="{label}"];')

    w("")

    # Edges: producer -> consumer, labelled port -> param path
    for module in graph.modules:
        for path, cable in iter_module_cables(module):
            if cable.module in module_ids:
                w(f'    "{cable.module}" -> "{module.id}" [label="{cable.port}->{path}"];')
            else:
                w(
                    f'    "{cable.module}" [shape=box style=dashed label="{cable.module}\\n(missing)"];'
                )
                w(f'    "{cable.module}" -> "{module.id}" [style=dashed label="{cable.port}->{path}"];')

    # Scope subscriptions
    for i, scope in enumerate(graph.scopes):
        scope_id = f"scope_{i}"
        w(f'    "{scope_id}" [shape=note label="scope\\n{scope.item.port_name}"];')
        w(f'    "{scope.item.module_id}" -> "{scope_id}" [style=dotted];')

    w("}")
    return "\n".join(lines) + "\n"


def graph_to_dot_file(
    graph: PatchGraph,
    output_dir: str | Path,
    remap: dict[str, str] | None = None,
    name: str = "patch",
) -> Path:
    """Write a DOT file for the graph to output_dir/{name}.dot.

    If the ``dot`` binary is on PATH, also renders a PDF to
    ``output_dir/{name}.pdf``.

    Returns the path to the written ``.dot`` file.
    """
    dot_src = graph_to_dot(graph, remap=remap, name=name)
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    dot_path = out / f"{name}.dot"
    dot_path.write_text(dot_src)

    dot_bin = shutil.which("dot")
    if dot_bin is not None:
        pdf_path = out / f"{name}.pdf"
        subprocess.run(
            [dot_bin, "-Tpdf", str(dot_path), "-o", str(pdf_path)],
            check=True,
        )

    return dot_path
