from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Dict, FrozenSet, Iterable, Iterator, List, Tuple

from .schema import RankedResult, SearchPosting, Section

logger = logging.getLogger(__name__)

HEADING_BONUS = 10.0
SNIPPET_CHARS = 160

# unicode letters and digits
_TOKEN_RE = re.compile(r"[^\W_]+")

SectionKey = Tuple[str, str]


def _keep(tok: str) -> bool:
    return len(tok) >= 2 or tok.isdigit()


def _tok_positions(s: str) -> Iterator[Tuple[str, int]]:
    # matching on the original text keeps offsets aligned with plain_text
    for m in _TOKEN_RE.finditer(s):
        tok = m.group(0).lower()
        if _keep(tok):
            yield tok, m.start()


def tokenize(s: str) -> list[str]:
    return [tok for tok, _ in _tok_positions(s)]


class SearchIndex:
    """
    In-memory inverted index over Section.plain_text.

    build() replaces everything; there is no incremental update. query()
    only touches the postings and per-section metadata recorded at build time.
    """

    def __init__(self, heading_bonus: float = HEADING_BONUS, snippet_chars: int = SNIPPET_CHARS):
        self.heading_bonus = float(heading_bonus)
        self.snippet_chars = int(snippet_chars)
        self._postings: Dict[str, List[SearchPosting]] = {}
        self._order: Dict[SectionKey, Tuple[int, int]] = {}
        self._sections: Dict[SectionKey, Section] = {}
        self._heading_terms: Dict[SectionKey, FrozenSet[str]] = {}
        self.last_mode = "empty"

    def build(self, sections: Iterable[Section]) -> None:
        postings: Dict[str, List[SearchPosting]] = defaultdict(list)
        order: Dict[SectionKey, Tuple[int, int]] = {}
        by_key: Dict[SectionKey, Section] = {}
        heading_terms: Dict[SectionKey, FrozenSet[str]] = {}
        doc_rank: Dict[str, int] = {}

        for sec in sections:
            key = (sec.document_id, sec.section_id)
            if key in order:
                logger.warning("Skipping duplicate section %s#%s", *key)
                continue
            rank = doc_rank.setdefault(sec.document_id, len(doc_rank))
            order[key] = (rank, len(order))
            by_key[key] = sec
            heading_terms[key] = frozenset(tokenize(sec.heading_text))

            positions: Dict[str, List[int]] = defaultdict(list)
            for tok, pos in _tok_positions(sec.plain_text):
                positions[tok].append(pos)
            for term, pos_list in positions.items():
                postings[term].append(
                    SearchPosting(
                        term=term,
                        document_id=sec.document_id,
                        section_id=sec.section_id,
                        frequency=len(pos_list),
                        positions=pos_list,
                    )
                )

        self._postings = dict(postings)
        self._order = order
        self._sections = by_key
        self._heading_terms = heading_terms
        logger.info(
            "Search index built: %d documents, %d sections, %d terms",
            len(doc_rank),
            len(order),
            len(self._postings),
        )

    def __len__(self) -> int:
        return len(self._postings)

    @property
    def terms(self) -> List[str]:
        return list(self._postings)

    @property
    def section_count(self) -> int:
        return len(self._order)

    def postings(self, term: str) -> List[SearchPosting]:
        return list(self._postings.get(term.lower(), []))

    def query(self, text: str, limit: int = 20) -> List[RankedResult]:
        terms = list(dict.fromkeys(tokenize(text or "")))
        if not terms or limit <= 0:
            self.last_mode = "empty"
            return []

        per_term: Dict[str, Dict[SectionKey, SearchPosting]] = {
            t: {(p.document_id, p.section_id): p for p in self._postings.get(t, [])}
            for t in terms
        }
        scores: Dict[SectionKey, float] = {}

        if len(terms) == 1:
            mode = "single"
            for key, p in per_term[terms[0]].items():
                scores[key] = float(p.frequency)
        else:
            keys = set.intersection(*(set(m) for m in per_term.values()))
            mode = "and"
            if not keys:
                mode = "or"
                keys = set().union(*(set(m) for m in per_term.values()))
            wanted = frozenset(terms)
            for key in keys:
                score = float(sum(m[key].frequency for m in per_term.values() if key in m))
                if self._heading_terms[key] & wanted:
                    score += self.heading_bonus
                scores[key] = score

        self.last_mode = mode
        ranked = sorted(scores, key=lambda k: (-scores[k], self._order[k]))[:limit]
        logger.debug("query %r -> mode=%s hits=%d", text, mode, len(scores), extra={"query": text})

        results: List[RankedResult] = []
        for key in ranked:
            matched = [t for t in terms if key in per_term[t]]
            first = min(per_term[t][key].positions[0] for t in matched)
            sec = self._sections[key]
            results.append(
                RankedResult(
                    document_id=key[0],
                    section_id=key[1],
                    heading_text=sec.heading_text,
                    score=scores[key],
                    matched_terms=matched,
                    snippet=self._snippet(sec.plain_text, first),
                )
            )
        return results

    def _snippet(self, text: str, pos: int) -> str:
        width = self.snippet_chars
        if width <= 0:
            return ""
        start = max(0, pos - width // 3)
        end = min(len(text), start + width)
        piece = " ".join(text[start:end].split())
        if start > 0:
            piece = "…" + piece
        if end < len(text):
            piece = piece + "…"
        return piece
