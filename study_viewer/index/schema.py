from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DocumentRef(BaseModel):
    id: str
    topic_id: str
    title: str
    path: str                  # relative to docs_root / base_url


class Topic(BaseModel):
    id: str
    title: str
    documents: List[DocumentRef] = Field(default_factory=list)


class Anchor(BaseModel):
    anchor_id: str
    heading_text: str
    level: int
    offset: int


class Section(BaseModel):
    document_id: str
    section_id: str
    heading_text: str
    level: int                 # 0 for the implicit "root" section
    start_offset: int
    end_offset: int            # exclusive
    plain_text: str
    anchors: List[Anchor] = Field(default_factory=list)


class ProgressEntry(BaseModel):
    document_id: str
    section_id: str
    done: bool
    updated_at: datetime


class SearchPosting(BaseModel):
    term: str
    document_id: str
    section_id: str
    frequency: int
    positions: List[int]       # char offsets into Section.plain_text


class RankedResult(BaseModel):
    document_id: str
    section_id: str
    heading_text: str
    score: float
    matched_terms: List[str]
    snippet: str = ""


class NavigationState(BaseModel):
    open_document_id: Optional[str] = None
    visible_section_id: Optional[str] = None
    scroll_progress_ratio: float = 0.0
