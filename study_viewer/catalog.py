from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .index.schema import DocumentRef, Topic

DEFAULT_CONFIG: dict = {
    "app": {
        "catalog": "catalog.yaml",
        "docs_root": "docs",
        "base_url": None,
        "state_file": ".study_viewer/progress.json",
        "log_dir": "logs",
    },
    "search": {"limit": 20, "heading_bonus": 10.0, "snippet_chars": 160},
    "navigation": {"hysteresis": 0.01},
    "progress": {"namespace": "study-viewer:progress"},
}


def _merge(base: dict, override: dict) -> dict:
    out = deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str | Path | None) -> dict:
    """Read a YAML config and lay it over DEFAULT_CONFIG. A missing file means defaults."""
    cfg = deepcopy(DEFAULT_CONFIG)
    if path is None:
        return cfg
    p = Path(path)
    if not p.exists():
        return cfg
    with open(p, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config {p} must be a YAML mapping")
    return _merge(cfg, data)


class Catalog:
    """The topic / document catalog, read-only for a session."""

    def __init__(self, topics: List[Topic]):
        self.topics = list(topics)
        self._docs: Dict[str, DocumentRef] = {}
        self._topics: Dict[str, Topic] = {}
        for t in self.topics:
            if t.id in self._topics:
                raise ValueError(f"Duplicate topic id: {t.id}")
            self._topics[t.id] = t
            for d in t.documents:
                if d.id in self._docs:
                    raise ValueError(f"Duplicate document id: {d.id}")
                self._docs[d.id] = d

    @classmethod
    def from_dict(cls, data: dict) -> "Catalog":
        if not isinstance(data, dict) or not isinstance(data.get("topics"), list):
            raise ValueError("Catalog must contain a 'topics' list")
        topics = []
        for t in data["topics"]:
            if not isinstance(t, dict) or "id" not in t:
                raise ValueError(f"Topic entry without an id: {t!r}")
            docs = [
                DocumentRef(topic_id=t["id"], **{k: v for k, v in d.items() if k != "topic_id"})
                for d in t.get("documents") or []
            ]
            topics.append(Topic(id=t["id"], title=t.get("title", t["id"]), documents=docs))
        return cls(topics)

    @classmethod
    def load(cls, path: str | Path) -> "Catalog":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(yaml.safe_load(f) or {})

    def documents(self) -> List[DocumentRef]:
        return list(self._docs.values())

    def document(self, document_id: str) -> Optional[DocumentRef]:
        return self._docs.get(document_id)

    def topic(self, topic_id: str) -> Optional[Topic]:
        return self._topics.get(topic_id)

    def topic_of(self, document_id: str) -> Optional[Topic]:
        d = self._docs.get(document_id)
        return self._topics.get(d.topic_id) if d else None
