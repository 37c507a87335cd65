from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..index.schema import ProgressEntry
from .backends import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "study-viewer:progress"

EntryKey = Tuple[str, str]


class ProgressStore:
    """
    Which sections the user marked done.

    Entries exist only for sections the user toggled; absence means not done.
    Every toggle rewrites the full entry set to the backend under one key.
    Entries whose section disappeared are kept, they just stop counting toward
    ratios: either the caller passes the live section ids, or `section_exists`
    filters them.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        namespace: str = DEFAULT_NAMESPACE,
        section_exists: Optional[Callable[[str, str], bool]] = None,
    ) -> None:
        self.backend = backend
        self.namespace = namespace
        self.section_exists = section_exists
        self._entries: Dict[EntryKey, ProgressEntry] = self._load()

    def _load(self) -> Dict[EntryKey, ProgressEntry]:
        raw = self.backend.get(self.namespace)
        if not raw:
            return {}
        try:
            rows = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Stored progress is not valid JSON, starting fresh: %s", e)
            return {}
        if not isinstance(rows, list):
            logger.warning("Stored progress is not a JSON array, starting fresh")
            return {}

        entries: Dict[EntryKey, ProgressEntry] = {}
        skipped = 0
        for row in rows:
            try:
                e = ProgressEntry.model_validate(row)
            except ValidationError:
                skipped += 1
                continue
            entries[(e.document_id, e.section_id)] = e
        if skipped:
            logger.warning("Skipped %d malformed progress entries", skipped)
        logger.debug("Loaded %d progress entries from %s", len(entries), self.namespace)
        return entries

    def _save(self) -> None:
        payload = [e.model_dump(mode="json") for e in self._entries.values()]
        self.backend.set(self.namespace, json.dumps(payload, ensure_ascii=False))

    def toggle(self, document_id: str, section_id: str) -> bool:
        key = (document_id, section_id)
        if self.section_exists is not None and not self.section_exists(document_id, section_id):
            logger.warning(
                "Ignoring toggle for unknown section %s#%s",
                document_id,
                section_id,
                extra={"document_id": document_id, "section_id": section_id},
            )
            return self.is_done(document_id, section_id)

        prev = self._entries.get(key)
        done = not prev.done if prev else True
        self._entries[key] = ProgressEntry(
            document_id=document_id,
            section_id=section_id,
            done=done,
            updated_at=datetime.now(timezone.utc),
        )
        self._save()
        return done

    def is_done(self, document_id: str, section_id: str) -> bool:
        e = self._entries.get((document_id, section_id))
        return bool(e and e.done)

    def done_sections(self, document_id: str) -> List[str]:
        return [
            e.section_id for e in self._entries.values() if e.document_id == document_id and e.done
        ]

    def entries(self) -> List[ProgressEntry]:
        return list(self._entries.values())

    def _done_count(self, document_id: str, section_ids: Optional[Iterable[str]]) -> int:
        done = self.done_sections(document_id)
        if section_ids is not None:
            live = set(section_ids)
            done = [s for s in done if s in live]
        elif self.section_exists is not None:
            done = [s for s in done if self.section_exists(document_id, s)]
        return len(done)

    def document_progress(
        self,
        document_id: str,
        total_sections: int,
        section_ids: Optional[Iterable[str]] = None,
    ) -> float:
        if total_sections <= 0:
            return 0.0
        return min(1.0, self._done_count(document_id, section_ids) / total_sections)

    def topic_progress(
        self,
        document_ids: Iterable[str],
        totals_per_document: Mapping[str, int],
        live_sections: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> float:
        done = 0
        total = 0
        for doc_id in document_ids:
            n = max(0, int(totals_per_document.get(doc_id, 0)))
            if n == 0:
                continue
            ids = live_sections.get(doc_id) if live_sections is not None else None
            done += min(n, self._done_count(doc_id, ids))
            total += n
        if total == 0:
            return 0.0
        return done / total

    def clear(self, document_id: Optional[str] = None) -> int:
        if document_id is None:
            removed = len(self._entries)
            self._entries = {}
        else:
            keys = [k for k in self._entries if k[0] == document_id]
            for k in keys:
                del self._entries[k]
            removed = len(keys)
        self._save()
        logger.info("Cleared %d progress entries (%s)", removed, document_id or "all documents")
        return removed
