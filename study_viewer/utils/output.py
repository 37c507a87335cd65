from __future__ import annotations

import datetime
import html
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional


def _timestamp() -> str:
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def _slug(s: str, max_len: int = 60) -> str:
    s = s.strip().lower()
    s = re.sub(r"[^a-z0-9\-\s_]+", "", s)
    s = re.sub(r"[\s_]+", "-", s)
    return s[:max_len].strip("-") or "search"


def infer_format(out_path: Optional[str], fmt: Optional[str]) -> str:
    if fmt:
        return fmt.lower()
    if out_path:
        ext = Path(out_path).suffix.lower().lstrip(".")
        if ext in {"json", "md", "txt", "html", "htm"}:
            return "html" if ext in {"html", "htm"} else ext
    return "json"


def ensure_outpath(out_path: Optional[str], fmt: str, save_dir: Optional[str], query: str) -> Path:
    if out_path:
        p = Path(out_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        return p
    base_dir = Path(save_dir or "outputs")
    base_dir.mkdir(parents=True, exist_ok=True)
    return base_dir / f"{_timestamp()}_{_slug(query)}.{fmt}"


def _where(r: Dict[str, Any]) -> str:
    head = r.get("heading_text") or r.get("section_id")
    return f"{r.get('document_id')} > {head}"


def as_markdown(payload: Dict[str, Any]) -> str:
    results = payload.get("results") or []
    lines: List[str] = [f"# Search: {payload.get('query', '')}", ""]
    if not results:
        lines.append("_No results._")
    for i, r in enumerate(results, start=1):
        lines.append(f"{i}. **{_where(r)}** (`#{r.get('section_id')}`, score {r.get('score', 0):g})")
        if r.get("snippet"):
            lines.append(f"   > {r['snippet']}")
    timers = payload.get("timers_ms")
    if timers:
        lines += ["", "## Timers (ms)", "```json", json.dumps(timers, indent=2), "```"]
    return "\n".join(lines).strip() + "\n"


def as_text(payload: Dict[str, Any]) -> str:
    results = payload.get("results") or []
    lines: List[str] = [f"QUERY: {payload.get('query', '')}  [{payload.get('mode', '')}]", ""]
    if not results:
        lines.append("(no results)")
    for i, r in enumerate(results, start=1):
        lines.append(f"[{i}] {_where(r)} #{r.get('section_id')}  score={r.get('score', 0):g}")
        if r.get("snippet"):
            lines.append(f"    {r['snippet']}")
    return "\n".join(lines).strip() + "\n"


def as_html(payload: Dict[str, Any]) -> str:
    def esc(x):
        return html.escape(str(x)) if x is not None else ""

    results = payload.get("results") or []
    lines: List[str] = ["<!doctype html><html><head><meta charset='utf-8'>"]
    lines.append(
        "<style>body{font-family:system-ui,Segoe UI,Arial,sans-serif;max-width:900px;margin:40px auto;padding:0 16px} .hits li{margin:8px 0} .snip{color:#555}</style>"
    )
    lines.append("</head><body>")
    lines.append(f"<h1>Search: {esc(payload.get('query'))}</h1>")
    if not results:
        lines.append("<p>No results.</p>")
    else:
        lines.append("<ol class='hits'>")
        for r in results:
            href = f"{esc(r.get('document_id'))}#{esc(r.get('section_id'))}"
            lines.append(
                f"<li><a href='{href}'>{esc(_where(r))}</a>"
                f"<div class='snip'>{esc(r.get('snippet'))}</div></li>"
            )
        lines.append("</ol>")
    lines.append("</body></html>")
    return "\n".join(lines)


def write_output(
    query: str,
    payload: Dict[str, Any],
    out_path: Optional[str] = None,
    fmt: Optional[str] = None,
    save_dir: Optional[str] = None,
) -> Path:
    fmt2 = infer_format(out_path, fmt)
    target = ensure_outpath(out_path, fmt2, save_dir, query)
    obj = {
        "query": query,
        "mode": payload.get("mode"),
        "results": payload.get("results"),
        "timers_ms": payload.get("timers_ms"),
    }
    if fmt2 == "json":
        target.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
    elif fmt2 == "md":
        target.write_text(as_markdown(obj), encoding="utf-8")
    elif fmt2 == "txt":
        target.write_text(as_text(obj), encoding="utf-8")
    elif fmt2 == "html":
        target.write_text(as_html(obj), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported format: {fmt2}")
    return target
