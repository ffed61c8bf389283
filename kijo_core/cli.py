#!/usr/bin/env python3
"""kijo CLI - validate diagrams, list regulation sentences, compute layouts."""

import argparse
import json
import logging
import sys

from .analysis import summarize_diagram
from .identifiers import DiagramKind
from .law_parser import LawNode, parse_law_data
from .layout import layout_structure
from .models import DiagramDocument
from .settings import ParserSettings, get_settings
from .validation import validate_diagram

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def _json_out(data, code=0):
    print(json.dumps(data, ensure_ascii=False, indent=2))
    sys.exit(code)


def _load_json(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _load_document(path):
    try:
        return DiagramDocument.from_json_dict(_load_json(path))
    except (OSError, json.JSONDecodeError) as e:
        _json_out({"success": False, "file": path, "error": str(e)}, code=2)


def _preview(text):
    text = text or ""
    return text[:PREVIEW_LENGTH] + ("..." if len(text) > PREVIEW_LENGTH else "")


def _walk_regulations(nodes: list[LawNode], chapter: str = ""):
    """Yield (chapter title, node) for every regulation paragraph/item."""
    for node in nodes:
        current = node.title if node.type == "Chapter" else chapter
        if node.is_regulation:
            yield current, node
        yield from _walk_regulations(list(node.children), current)


# ── Commands ─────────────────────────────────────────────────────────────────

def cmd_validate(args):
    reports = []
    failed = False

    for path in args.files:
        try:
            data = _load_json(path)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not read %s: %s", path, e)
            reports.append({"file": path, "error": str(e)})
            failed = True
            continue

        report = validate_diagram(data)
        failed = failed or not report.valid
        reports.append({"file": path, **report.to_dict()})

    _json_out({
        "success": not failed,
        "checked": len(reports),
        "failed": sum(1 for r in reports if "error" in r or not r["valid"]),
        "reports": reports,
    }, code=1 if failed else 0)


def cmd_regulations(args):
    parser_settings = get_settings().parser
    if args.max_depth is not None:
        parser_settings = ParserSettings(max_depth=args.max_depth)

    try:
        law_data = _load_json(args.file)
    except (OSError, json.JSONDecodeError) as e:
        _json_out({"success": False, "file": args.file, "error": str(e)}, code=2)

    nodes = parse_law_data(law_data, parser_settings)
    regulations = []
    by_chapter: dict[str, int] = {}
    for chapter, node in _walk_regulations(nodes):
        regulations.append({
            "id": node.diagram_id,
            "type": node.type,
            "article_num": node.article_num,
            "chapter": chapter,
            "text": _preview(node.text),
        })
        by_chapter[chapter] = by_chapter.get(chapter, 0) + 1

    _json_out({
        "success": True,
        "file": args.file,
        "total": len(regulations),
        "paragraphs": sum(1 for r in regulations if r["type"] == "Paragraph"),
        "items": sum(1 for r in regulations if r["type"] == "Item"),
        "by_chapter": by_chapter,
        "regulations": regulations,
    })


def cmd_layout(args):
    document = _load_document(args.file)
    kind = DiagramKind(args.variant)
    structure = document.structure(kind)
    if structure is None:
        _json_out({"success": False, "file": args.file, "error": f"No {kind.value} diagram in file"}, code=1)

    positions = layout_structure(structure.nodes, structure.edges, kind, get_settings().layout)
    _json_out({
        "success": True,
        "key": document.key,
        "variant": kind.value,
        "positions": {node_id: p.to_dict() for node_id, p in positions.items()},
    })


def cmd_summarize(args):
    document = _load_document(args.file)
    kind = DiagramKind(args.variant)
    structure = document.structure(kind)
    if structure is None:
        _json_out({"success": False, "file": args.file, "error": f"No {kind.value} diagram in file"}, code=1)

    _json_out({
        "success": True,
        "key": document.key,
        "variant": kind.value,
        "summary": summarize_diagram(structure.nodes, structure.edges).to_dict(),
    })


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    parser = argparse.ArgumentParser(description="Compliance-mechanism diagram tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Check diagram documents for structural issues")
    p.add_argument("files", nargs="+")

    p = sub.add_parser("regulations", help="List regulation sentences of a statute JSON file")
    p.add_argument("file")
    p.add_argument("--max-depth", type=int, default=None)

    variants = [k.value for k in DiagramKind]

    p = sub.add_parser("layout", help="Print node positions of a diagram")
    p.add_argument("file")
    p.add_argument("--variant", choices=variants, default=DiagramKind.MECHANISM.value)

    p = sub.add_parser("summarize", help="Summarize the structure of a diagram")
    p.add_argument("file")
    p.add_argument("--variant", choices=variants, default=DiagramKind.MECHANISM.value)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stderr,
    )

    cmd_map = {
        "validate": cmd_validate,
        "regulations": cmd_regulations,
        "layout": cmd_layout,
        "summarize": cmd_summarize,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
