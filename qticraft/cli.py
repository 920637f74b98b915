#!/usr/bin/env python3
"""
QTICraft command line.

Usage:
    qticraft compile item.json --out item.xml
    qticraft render item.json --out-dir artifacts/item
    qticraft bucket pool.json --seed abc --k 4 [--test-id T --title "..."]
    qticraft check item.xml --kind item
    qticraft check-registry
    qticraft validate item1.json item2.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from qticraft.core.errors import QtiCraftError, SchemaValidationError


def load_json(path: Path):
    with open(path) as f:
        return json.load(f)


def _print_error(e: QtiCraftError) -> None:
    print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
    if isinstance(e, SchemaValidationError):
        for d in e.diagnostics:
            print(f"  [{d.get('loc', '')}] {d.get('msg', '')}", file=sys.stderr)


def cmd_compile(args) -> int:
    from qticraft.services.pipeline import compile_from_json, compile_stimulus_from_json

    raw = load_json(Path(args.input))
    compile_fn = compile_stimulus_from_json if args.kind == "stimulus" else compile_from_json
    try:
        doc = compile_fn(raw)
    except QtiCraftError as e:
        _print_error(e)
        return 1
    if args.out:
        Path(args.out).write_text(doc.xml, encoding="utf-8")
        print(f"Wrote {doc.root_tag} {doc.identifier} to {args.out}")
    else:
        print(doc.xml)
    return 0


def cmd_render(args) -> int:
    from qticraft.services.sanitizer import parse_item
    from qticraft.widgets.registry import is_html_widget, render_widgets

    try:
        item = parse_item(load_json(Path(args.input)))
    except QtiCraftError as e:
        _print_error(e)
        return 1

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    fragments, errors = render_widgets(item.widgets)
    manifest = []
    for slot, fragment in fragments.items():
        widget_type = item.widgets[slot].type
        path = out_dir / f"{slot}.{'html' if is_html_widget(widget_type) else 'svg'}"
        path.write_text(fragment, encoding="utf-8")
        manifest.append({"slot": slot, "type": widget_type, "path": str(path)})
    (out_dir / "render_manifest.json").write_text(
        json.dumps({"identifier": item.identifier, "entries": manifest, "errors": errors}, indent=2)
    )

    print(f"Rendered: {len(manifest)} widgets")
    if errors:
        print(f"Errors: {len(errors)}")
        for e in errors:
            print(f"  [{e['slot']}] {e['code']}: {e['detail']}")
        return 1
    print("No errors.")
    return 0


def cmd_bucket(args) -> int:
    from qticraft.services.bucketer import BucketItem, build_deterministic_k_buckets, buckets_to_test
    from qticraft.services.compiler import compile_test

    items = [BucketItem.model_validate(raw) for raw in load_json(Path(args.input))]
    try:
        result = build_deterministic_k_buckets(args.seed, items, args.k)
        if args.test_id:
            test = buckets_to_test(args.test_id, args.title or args.test_id, result)
            print(compile_test(test).xml)
            return 0
    except (QtiCraftError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(json.dumps({"seed": result.seed, "k": result.k_actual, "buckets": result.buckets}, indent=2))
    return 0


def cmd_check(args) -> int:
    from qticraft.utils.qti_checks import check_document

    passed, issues = check_document(Path(args.input).read_text(encoding="utf-8"), args.kind)
    for issue in issues:
        print(f"  {issue}")
    print("PASSED" if passed else "FAILED")
    return 0 if passed else 1


def cmd_check_registry(args) -> int:
    from qticraft.widgets.registry import registry_consistency

    report = registry_consistency()
    problems = {k: sorted(v) for k, v in report.items() if v}
    if problems:
        for key, tags in problems.items():
            print(f"{key}: {', '.join(tags)}")
        return 1
    print("Registry, dispatcher and prompt enumeration agree.")
    return 0


def cmd_validate(args) -> int:
    from qticraft.core.deps import get_qti_client
    from qticraft.services.pipeline import compile_from_json
    from qticraft.services.remote_validator import validate_documents_sync

    documents = []
    for path in args.inputs:
        try:
            documents.append(compile_from_json(load_json(Path(path))))
        except QtiCraftError as e:
            print(f"{path}: not compiled", file=sys.stderr)
            _print_error(e)
            return 1

    results = validate_documents_sync(documents, get_qti_client(), batch_size=args.batch_size)
    failed = 0
    for r in results:
        status = "OK" if r.success else "FAIL"
        print(f"  [{status}] {r.identifier}" + (f": {r.error}" if r.error else ""))
        failed += 0 if r.success else 1
    print(f"Validated: {len(results)}  Failed: {failed}")
    return 1 if failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qticraft", description="Widget renderer and QTI 3.0 compiler")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("compile", help="Compile an item or stimulus JSON to QTI XML")
    p.add_argument("input")
    p.add_argument("--out")
    p.add_argument("--kind", choices=["item", "stimulus"], default="item")
    p.set_defaults(func=cmd_compile)

    p = sub.add_parser("render", help="Render an item's widgets to files")
    p.add_argument("input")
    p.add_argument("--out-dir", required=True)
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("bucket", help="Deterministically bucket a pool of variants")
    p.add_argument("input", help="JSON list of {id, problemType}")
    p.add_argument("--seed", required=True)
    p.add_argument("--k", type=int, required=True)
    p.add_argument("--test-id", help="Emit a qti-assessment-test instead of bucket JSON")
    p.add_argument("--title")
    p.set_defaults(func=cmd_bucket)

    p = sub.add_parser("check", help="Run structural checks on compiled XML")
    p.add_argument("input")
    p.add_argument("--kind", choices=["item", "test", "stimulus"], default="item")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("check-registry", help="Verify widget tag sets agree")
    p.set_defaults(func=cmd_check_registry)

    p = sub.add_parser("validate", help="Compile items and validate them against the remote service")
    p.add_argument("inputs", nargs="+")
    p.add_argument("--batch-size", type=int)
    p.set_defaults(func=cmd_validate)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
