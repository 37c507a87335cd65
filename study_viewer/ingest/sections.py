from __future__ import annotations

import bisect
import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from ..errors import UnknownSectionReference
from ..index.schema import Anchor, Section
from .clean import (
    HEADING_RE,
    fence_closes,
    fence_open,
    heading_text,
    normalize_newlines,
    strip_markdown,
)

logger = logging.getLogger(__name__)

ROOT_SECTION_ID = "root"


def slugify(text: str) -> str:
    s = text.strip().lower()
    s = re.sub(r"[^\w\s-]", "", s)
    s = re.sub(r"\s+", "-", s)
    return s or "section"


def _scan_headings(lines: List[str]) -> List[Tuple[int, int, str]]:
    """(offset, level, text) for every heading line outside code fences."""
    found = []
    fence = None
    pos = 0
    for ln in lines:
        body = ln.rstrip("\n")
        if fence is not None:
            if fence_closes(body, fence):
                fence = None
        else:
            opened = fence_open(body)
            if opened:
                fence = opened
            else:
                m = HEADING_RE.match(body)
                if m:
                    found.append((pos, len(m.group(1)), heading_text(m.group(2))))
        pos += len(ln)
    return found


class _SlugRegistry:
    """Hands out document-unique slugs: 'setup', 'setup-1', 'setup-2', ..."""

    def __init__(self) -> None:
        self._used: Set[str] = set()
        self._counts: Dict[str, int] = {}

    def claim(self, heading: str) -> str:
        base = slugify(heading)
        n = self._counts.get(base, 0)
        cand = base if n == 0 else f"{base}-{n}"
        while cand in self._used:
            n += 1
            cand = f"{base}-{n}"
        self._counts[base] = n + 1
        self._used.add(cand)
        return cand


class SectionIndexer:
    def __init__(self) -> None:
        self._sections: Dict[str, List[Section]] = {}
        self._starts: Dict[str, List[int]] = {}
        self._positions: Dict[str, Dict[str, int]] = {}

    def index(self, document_id: str, raw_text: str) -> List[Section]:
        text = normalize_newlines(raw_text or "")
        lines = text.splitlines(keepends=True)
        headings = _scan_headings(lines)

        sections: List[Section] = []
        if not headings:
            sections.append(
                Section(
                    document_id=document_id,
                    section_id=ROOT_SECTION_ID,
                    heading_text="",
                    level=0,
                    start_offset=0,
                    end_offset=len(text),
                    plain_text=strip_markdown(lines),
                )
            )
        else:
            slugs = _SlugRegistry()
            opened: List[dict] = []
            for off, level, title in headings:
                ident = slugs.claim(title)
                if opened and level > opened[-1]["level"]:
                    opened[-1]["anchors"].append(
                        Anchor(anchor_id=ident, heading_text=title, level=level, offset=off)
                    )
                    continue
                opened.append(
                    {
                        "section_id": ident,
                        "heading_text": title,
                        "level": level,
                        # preamble belongs to the first section
                        "start_offset": off if opened else 0,
                        "anchors": [],
                    }
                )
            for i, sec in enumerate(opened):
                end = opened[i + 1]["start_offset"] if i + 1 < len(opened) else len(text)
                body = text[sec["start_offset"] : end]
                sections.append(
                    Section(
                        document_id=document_id,
                        end_offset=end,
                        plain_text=strip_markdown(body.splitlines(keepends=True)),
                        **sec,
                    )
                )

        self._sections[document_id] = sections
        self._starts[document_id] = [s.start_offset for s in sections]
        self._positions[document_id] = {s.section_id: i for i, s in enumerate(sections)}
        logger.debug(
            "indexed %s: %d sections, %d headings, %d chars",
            document_id,
            len(sections),
            len(headings),
            len(text),
        )
        return sections

    def sections(self, document_id: str) -> List[Section]:
        return list(self._sections.get(document_id, []))

    def position(self, document_id: str, section_id: str) -> int:
        try:
            return self._positions[document_id][section_id]
        except KeyError:
            raise UnknownSectionReference(document_id, section_id) from None

    def section(self, document_id: str, section_id: str) -> Section:
        i = self.position(document_id, section_id)
        return self._sections[document_id][i]

    def has_section(self, document_id: str, section_id: str) -> bool:
        return section_id in self._positions.get(document_id, {})

    def document_length(self, document_id: str) -> int:
        secs = self._sections.get(document_id)
        return secs[-1].end_offset if secs else 0

    def section_at(self, document_id: str, offset: int) -> Optional[str]:
        starts = self._starts.get(document_id)
        if not starts:
            return None
        i = bisect.bisect_right(starts, offset) - 1
        i = max(0, min(i, len(starts) - 1))
        return self._sections[document_id][i].section_id
