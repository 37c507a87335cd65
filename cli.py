#!/usr/bin/env python3
import argparse
import logging
import sys
from pathlib import Path

from study_viewer.app import open_session, progress_report, search_text
from study_viewer.catalog import load_config
from study_viewer.errors import FetchError
from study_viewer.logging_utils import setup_logging
from study_viewer.utils.output import write_output

logger = logging.getLogger(__name__)


def _pct(x: float) -> str:
    return f"{x * 100:5.1f}%"


def _load_one(session, doc_id: str):
    ref = session.catalog.document(doc_id)
    if ref is None:
        print(f"Unknown document: {doc_id}", file=sys.stderr)
        return None
    try:
        return session.store.load(ref)
    except FetchError as e:
        print(str(e), file=sys.stderr)
        return None


def cmd_outline(session, args) -> int:
    sections = _load_one(session, args.doc_id)
    if sections is None:
        return 2
    for s in sections:
        mark = "x" if session.progress.is_done(args.doc_id, s.section_id) else " "
        title = s.heading_text or "(untitled)"
        print(f"[{mark}] {'#' * max(1, s.level)} {title}  ({s.section_id})")
        for a in s.anchors:
            print(f"      {'  ' * (a.level - s.level - 1)}- {a.heading_text}  ({a.anchor_id})")
    return 0


def cmd_search(session, args) -> int:
    report = session.load_documents()
    for doc_id, reason in report.failed.items():
        logger.warning("Not searchable (unavailable): %s [%s]", doc_id, reason)

    payload = search_text(session, args.query, limit=args.limit)
    if args.out or args.format:
        target = write_output(args.query, payload, out_path=args.out, fmt=args.format)
        print(f"[saved] {target}")
        return 0

    results = payload["results"]
    print(f"=== {len(results)} result(s) [{payload['mode']}] ===")
    for i, r in enumerate(results, start=1):
        print(f"[{i}] {r['document_id']} > {r['heading_text'] or r['section_id']}  (score {r['score']:g})")
        if r.get("snippet"):
            print(f"    {r['snippet']}")
    return 0


def cmd_toggle(session, args) -> int:
    if _load_one(session, args.doc_id) is None:
        return 2
    if not session.indexer.has_section(args.doc_id, args.section_id):
        print(f"Unknown section: {args.doc_id}#{args.section_id}", file=sys.stderr)
        return 1
    done = session.progress.toggle(args.doc_id, args.section_id)
    print(f"{args.doc_id}#{args.section_id}: {'done' if done else 'not done'}")
    return 0


def cmd_progress(session, args) -> int:
    session.load_documents()
    for topic in progress_report(session)["topics"]:
        print(f"{_pct(topic['progress'])}  {topic['title']}")
        for d in topic["documents"]:
            if not d["loaded"]:
                print(f"        {'':>6}  {d['title']} (unavailable)")
                continue
            print(f"        {_pct(d['progress'])}  {d['title']} ({d['done']}/{d['sections']})")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="study-viewer",
        description="Browse, search and track progress through a catalog of markdown study topics.",
    )
    parser.add_argument("--config", type=str, default="config.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logs (to stderr).")
    parser.add_argument("--quiet", "-q", action="store_true", help="Reduce logs to WARN and above.")
    parser.add_argument("--log-json", action="store_true", help="Emit logs as JSON lines (stderr).")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_out = sub.add_parser("outline", help="List a document's sections with done marks")
    p_out.add_argument("doc_id")

    p_s = sub.add_parser("search", help="Search every document in the catalog")
    p_s.add_argument("query")
    p_s.add_argument("--limit", type=int, default=None, help="Max results (default from config)")
    p_s.add_argument("--out", type=str, default=None, help="Write results to a file")
    p_s.add_argument(
        "--format", type=str, default=None, choices=["json", "md", "txt", "html"],
        help="Output format (overrides --out extension)",
    )

    p_t = sub.add_parser("toggle", help="Flip the done state of a section")
    p_t.add_argument("doc_id")
    p_t.add_argument("section_id")

    sub.add_parser("progress", help="Show completion per topic and document")

    args = parser.parse_args(argv)

    if args.verbose and args.quiet:
        print("Cannot use --verbose and --quiet together.", file=sys.stderr)
        return 2
    if args.verbose:
        setup_logging(level="DEBUG", json_logs=args.log_json)
    elif args.quiet:
        setup_logging(level="WARNING", json_logs=args.log_json)
    else:
        setup_logging(level="INFO", json_logs=args.log_json)

    cfg_path = Path(args.config)
    cfg = load_config(cfg_path)
    logger.debug("CLI args parsed: %s", vars(args))
    session = open_session(cfg, base_dir=cfg_path.resolve().parent)

    handlers = {
        "outline": cmd_outline,
        "search": cmd_search,
        "toggle": cmd_toggle,
        "progress": cmd_progress,
    }
    return handlers[args.cmd](session, args)


if __name__ == "__main__":
    sys.exit(main())
