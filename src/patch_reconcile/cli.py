"""Command-line interface for patch-reconcile."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from patch_reconcile.features import build_graph_context
from patch_reconcile.models import PatchGraph
from patch_reconcile.reconcile import (
    ReconcileOptions,
    group_by_type,
    reconcile_patch,
    with_remap_hints,
)
from patch_reconcile.similarity import score_matrix
from patch_reconcile.validate import validate_graph
from patch_reconcile.visualize import graph_to_dot, graph_to_dot_file


def _load_graph(path: str) -> PatchGraph:
    """Load and parse a patch graph JSON file."""
    text = Path(path).read_text()
    data = json.loads(text)
    return PatchGraph.model_validate(data)


def _options(args: argparse.Namespace) -> ReconcileOptions:
    return ReconcileOptions(
        match_threshold=args.threshold,
        ambiguity_margin=args.margin,
        max_group_size=args.max_group_size,
    )


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_reconcile(args: argparse.Namespace) -> int:
    desired = _load_graph(args.desired)
    current = _load_graph(args.current) if args.current else None
    result = reconcile_patch(desired, current, _options(args))

    if args.hints:
        patched = with_remap_hints(result)
        sys.stdout.write(patched.model_dump_json(by_alias=True, indent=2) + "\n")
    else:
        sys.stdout.write(json.dumps({"moduleIdRemap": result.module_id_remap}, indent=2) + "\n")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    graph = _load_graph(args.file)
    errors = validate_graph(graph)

    has_errors = any(e.severity == "error" for e in errors)
    has_warnings = any(e.severity == "warning" for e in errors)

    for err in errors:
        prefix = "warning" if err.severity == "warning" else "error"
        print(f"{prefix}: {err}", file=sys.stderr)

    if has_errors or (has_warnings and args.strict):
        return 1
    if has_warnings:
        print("valid (with warnings)")
    else:
        print("valid")
    return 0


def _cmd_scores(args: argparse.Namespace) -> int:
    desired = _load_graph(args.desired)
    current = _load_graph(args.current)
    desired_ctx = build_graph_context(desired)
    current_ctx = build_graph_context(current)

    desired_groups = group_by_type(desired.modules)
    current_groups = group_by_type(current.modules)

    for module_type, desired_list in desired_groups.items():
        if args.type and module_type != args.type:
            continue
        current_list = current_groups.get(module_type, [])
        print(f"{module_type}: {len(desired_list)} desired x {len(current_list)} current")
        if not current_list:
            continue
        scores = score_matrix(desired_list, current_list, desired_ctx, current_ctx)
        for d, row in zip(desired_list, scores):
            cells = "  ".join(f"{c.id}={s:.4f}" for c, s in zip(current_list, row))
            print(f"  {d.id}: {cells}")
    return 0


def _cmd_dot(args: argparse.Namespace) -> int:
    desired = _load_graph(args.desired)
    remap: dict[str, str] | None = None
    if args.current:
        remap = reconcile_patch(desired, _load_graph(args.current)).module_id_remap
    name = Path(args.desired).stem
    if args.output:
        graph_to_dot_file(desired, args.output, remap=remap, name=name)
    else:
        sys.stdout.write(graph_to_dot(desired, remap=remap, name=name))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the patch-reconcile CLI."""
    parser = argparse.ArgumentParser(
        prog="patch-reconcile",
        description="Reconcile, validate, score, and visualize modular synth patch graphs.",
    )
    parser.add_argument("--debug", action="store_true", help="Log matching decisions to stderr")
    sub = parser.add_subparsers(dest="command")

    # reconcile
    p_rec = sub.add_parser("reconcile", help="Compute the module ID remap")
    p_rec.add_argument("desired", help="Desired patch graph JSON file")
    p_rec.add_argument("-c", "--current", help="Currently running patch graph JSON file")
    p_rec.add_argument("--threshold", type=float, default=0.65, help="Minimum match score")
    p_rec.add_argument("--margin", type=float, default=0.05, help="Required best/second-best gap")
    p_rec.add_argument("--max-group-size", type=int, help="Skip larger type groups")
    p_rec.add_argument(
        "--hints", action="store_true", help="Print the desired graph with moduleIdRemaps"
    )

    # validate
    p_validate = sub.add_parser("validate", help="Validate patch graph JSON")
    p_validate.add_argument("file", help="Patch graph JSON file")
    p_validate.add_argument("--strict", action="store_true", help="Treat warnings as errors")

    # scores
    p_scores = sub.add_parser("scores", help="Print per-type similarity tables")
    p_scores.add_argument("desired", help="Desired patch graph JSON file")
    p_scores.add_argument("current", help="Currently running patch graph JSON file")
    p_scores.add_argument("--type", help="Only show this module type")

    # dot
    p_dot = sub.add_parser("dot", help="Generate DOT visualization")
    p_dot.add_argument("desired", help="Desired patch graph JSON file")
    p_dot.add_argument("-c", "--current", help="Annotate modules kept from this graph")
    p_dot.add_argument("-o", "--output", help="Output directory")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help(sys.stderr)
        return 1

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        if args.command == "reconcile":
            return _cmd_reconcile(args)
        elif args.command == "validate":
            return _cmd_validate(args)
        elif args.command == "scores":
            return _cmd_scores(args)
        elif args.command == "dot":
            return _cmd_dot(args)
    except FileNotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"error: invalid JSON: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"error: invalid input: {e}", file=sys.stderr)
        return 1

    return 0  # pragma: no cover


if __name__ == "__main__":
    sys.exit(main())
