from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .catalog import Catalog
from .index.schema import Section
from .index.search import SearchIndex
from .ingest.sections import SectionIndexer
from .ingest.store import DocumentStore, Fetcher, FileFetcher, HttpFetcher, LoadReport
from .navigate.controller import NavigationController
from .progress.backends import JsonFileKeyValueStore, KeyValueStore
from .progress.store import ProgressStore
from .utils.log import EventLog

logger = logging.getLogger(__name__)


def _resolve(base_dir: Path, p: str | Path) -> Path:
    p = Path(p)
    return p if p.is_absolute() else base_dir / p


@dataclass
class StudySession:
    cfg: dict
    catalog: Catalog
    indexer: SectionIndexer
    store: DocumentStore
    search: SearchIndex
    progress: ProgressStore
    navigation: NavigationController
    events: EventLog

    def loaded_sections(self) -> List[Section]:
        """Sections of every loaded document, in catalog order."""
        out: List[Section] = []
        for ref in self.catalog.documents():
            if self.store.is_loaded(ref.id):
                out.extend(self.indexer.sections(ref.id))
        return out

    def load_documents(self, document_ids: Optional[Iterable[str]] = None) -> LoadReport:
        """
        Fetch + index the given documents (default: the whole catalog), then
        rebuild the search index over everything loaded so far.
        """
        if document_ids is None:
            refs = self.catalog.documents()
            unknown: List[str] = []
        else:
            ids = list(document_ids)
            refs = [self.catalog.document(d) for d in ids if self.catalog.document(d)]
            unknown = [d for d in ids if self.catalog.document(d) is None]

        report = self.store.load_all(refs)
        for doc_id in unknown:
            logger.warning("Document %s is not in the catalog", doc_id)
            report.failed[doc_id] = "not in catalog"
        for doc_id, reason in report.failed.items():
            ref = self.catalog.document(doc_id)
            self.events.write(
                "fetch_error", document_id=doc_id, path=ref.path if ref else None, error=reason
            )

        self.search.build(self.loaded_sections())
        return report

    def total_sections(self, document_id: str) -> int:
        return len(self.indexer.sections(document_id))


def open_session(
    cfg: dict,
    base_dir: str | Path | None = None,
    catalog: Optional[Catalog] = None,
    fetcher: Optional[Fetcher] = None,
    backend: Optional[KeyValueStore] = None,
) -> StudySession:
    base = Path(base_dir or ".").resolve()
    app_cfg = cfg["app"]

    if catalog is None:
        catalog = Catalog.load(_resolve(base, app_cfg["catalog"]))
    if fetcher is None:
        if app_cfg.get("base_url"):
            fetcher = HttpFetcher(app_cfg["base_url"])
        else:
            fetcher = FileFetcher(_resolve(base, app_cfg["docs_root"]))
    if backend is None:
        backend = JsonFileKeyValueStore(_resolve(base, app_cfg["state_file"]))

    indexer = SectionIndexer()
    search_cfg = cfg.get("search", {}) or {}
    session = StudySession(
        cfg=cfg,
        catalog=catalog,
        indexer=indexer,
        store=DocumentStore(fetcher, indexer),
        search=SearchIndex(
            heading_bonus=float(search_cfg.get("heading_bonus", 10.0)),
            snippet_chars=int(search_cfg.get("snippet_chars", 160)),
        ),
        progress=ProgressStore(
            backend,
            namespace=(cfg.get("progress", {}) or {}).get("namespace", "study-viewer:progress"),
            section_exists=indexer.has_section,
        ),
        navigation=NavigationController(
            indexer, hysteresis=float((cfg.get("navigation", {}) or {}).get("hysteresis", 0.01))
        ),
        events=EventLog(_resolve(base, app_cfg.get("log_dir", "logs")) / "events.log.jsonl"),
    )
    logger.debug(
        "Session opened: %d topics, %d documents", len(catalog.topics), len(catalog.documents())
    )
    return session


def search_text(session: StudySession, query: str, limit: Optional[int] = None) -> dict:
    if limit is None:
        limit = int((session.cfg.get("search", {}) or {}).get("limit", 20))
    t0 = time.perf_counter()
    results = session.search.query(query, limit=limit)
    timers = {"query_ms": int((time.perf_counter() - t0) * 1000)}

    session.events.write(
        "query",
        query=query,
        mode=session.search.last_mode,
        hits=[f"{r.document_id}#{r.section_id}" for r in results],
    )
    return {
        "query": query,
        "mode": session.search.last_mode,
        "results": [r.model_dump() for r in results],
        "timers_ms": timers,
    }


def progress_report(session: StudySession) -> dict:
    topics = []
    for topic in session.catalog.topics:
        totals: Dict[str, int] = {}
        live: Dict[str, List[str]] = {}
        docs = []
        for ref in topic.documents:
            secs = session.indexer.sections(ref.id) if session.store.is_loaded(ref.id) else []
            totals[ref.id] = len(secs)
            live[ref.id] = [s.section_id for s in secs]
            ratio = session.progress.document_progress(ref.id, len(secs), section_ids=live[ref.id])
            docs.append(
                {
                    "id": ref.id,
                    "title": ref.title,
                    "loaded": session.store.is_loaded(ref.id),
                    "sections": len(secs),
                    "done": sum(1 for s in live[ref.id] if session.progress.is_done(ref.id, s)),
                    "progress": ratio,
                }
            )
        topics.append(
            {
                "id": topic.id,
                "title": topic.title,
                "progress": session.progress.topic_progress(
                    [d.id for d in topic.documents], totals, live_sections=live
                ),
                "documents": docs,
            }
        )
    return {"topics": topics}
