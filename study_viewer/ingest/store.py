from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

import requests

from ..errors import FetchError
from ..index.schema import DocumentRef, Section
from .sections import SectionIndexer

logger = logging.getLogger(__name__)


def _timeouts() -> tuple[float, float]:
    """Return (connect_timeout, read_timeout) in seconds; env-overridable."""
    ct = float(os.getenv("STUDY_VIEWER_CONNECT_TIMEOUT", "10"))
    rt = float(os.getenv("STUDY_VIEWER_READ_TIMEOUT", "30"))
    return (ct, rt)


class Fetcher(Protocol):
    def fetch(self, path: str) -> str:
        ...


class FileFetcher:
    """Reads documents from a local folder (the static site root)."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def fetch(self, path: str) -> str:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise FetchError(path, "outside docs root")
        try:
            return target.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            raise FetchError(path, e.__class__.__name__) from e


class HttpFetcher:
    """
    GETs documents relative to a base URL. No retries: a failed request is
    reported once as FetchError and left to the caller.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[tuple[float, float]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base = base_url.rstrip("/")
        self.timeout = timeout or _timeouts()
        self.session = session or requests.Session()

    def url_for(self, path: str) -> str:
        return f"{self.base}/{path.lstrip('/')}"

    def fetch(self, path: str) -> str:
        url = self.url_for(path)
        try:
            r = self.session.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise FetchError(path, e.__class__.__name__) from e
        return r.text


@dataclass
class LoadReport:
    loaded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class DocumentStore:
    def __init__(self, fetcher: Fetcher, indexer: SectionIndexer):
        self.fetcher = fetcher
        self.indexer = indexer
        self._texts: Dict[str, str] = {}

    def fetch(self, ref: DocumentRef) -> str:
        cached = self._texts.get(ref.id)
        if cached is not None:
            return cached
        logger.debug("fetching %s (%s)", ref.id, ref.path)
        text = self.fetcher.fetch(ref.path)
        self._texts[ref.id] = text
        return text

    def load(self, ref: DocumentRef) -> List[Section]:
        if ref.id in self._texts and self.indexer.sections(ref.id):
            return self.indexer.sections(ref.id)
        return self.indexer.index(ref.id, self.fetch(ref))

    def load_all(self, refs: Iterable[DocumentRef]) -> LoadReport:
        report = LoadReport()
        for ref in refs:
            try:
                self.load(ref)
            except FetchError as e:
                logger.warning("Document unavailable: %s (%s)", ref.id, e, extra={"document_id": ref.id})
                report.failed[ref.id] = e.reason or str(e)
                continue
            report.loaded.append(ref.id)
        return report

    def is_loaded(self, document_id: str) -> bool:
        return document_id in self._texts

    def text(self, document_id: str) -> Optional[str]:
        return self._texts.get(document_id)

    def sections(self, document_id: str) -> List[Section]:
        return self.indexer.sections(document_id)
