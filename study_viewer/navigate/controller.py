from __future__ import annotations

import logging
from typing import Optional

from ..errors import UnknownSectionReference
from ..index.schema import NavigationState, RankedResult
from ..ingest.sections import SectionIndexer

logger = logging.getLogger(__name__)

HYSTERESIS = 0.01


class NavigationController:
    """
    Open document / visible section state for one viewer.

    States are Closed (no open document) and Open(document, section). Scroll
    updates go through a hysteresis band around each section boundary: moving
    to an adjacent section needs the offset to clear the boundary by
    `hysteresis * document_length`, so jitter at a boundary does not flip the
    visible section back and forth. Jumps of more than one section commit
    immediately.
    """

    def __init__(self, indexer: SectionIndexer, hysteresis: float = HYSTERESIS):
        self.indexer = indexer
        self.hysteresis = max(0.0, float(hysteresis))
        self._state = NavigationState()

    @property
    def state(self) -> NavigationState:
        return self._state.model_copy()

    @property
    def is_open(self) -> bool:
        return self._state.open_document_id is not None

    def close(self) -> None:
        self._state = NavigationState()

    def open_document(self, document_id: str) -> bool:
        sections = self.indexer.sections(document_id)
        if not sections:
            logger.warning("Cannot open %s: document not loaded", document_id)
            return False
        self._state = NavigationState(
            open_document_id=document_id,
            visible_section_id=sections[0].section_id,
            scroll_progress_ratio=0.0,
        )
        return True

    def _ratio_of(self, document_id: str, section_id: str) -> float:
        start = self.indexer.section(document_id, section_id).start_offset
        length = self.indexer.document_length(document_id)
        return start / length if length > 0 else 0.0

    def _current_position(self) -> int:
        st = self._state
        try:
            return self.indexer.position(st.open_document_id, st.visible_section_id)
        except UnknownSectionReference:
            # document was re-indexed under us; fall back to its first section
            logger.info("Visible section %s vanished from %s", st.visible_section_id, st.open_document_id)
            st.visible_section_id = self.indexer.sections(st.open_document_id)[0].section_id
            return 0

    def on_scroll(self, offset_ratio: float) -> Optional[str]:
        st = self._state
        if st.open_document_id is None:
            return None
        doc = st.open_document_id
        ratio = min(1.0, max(0.0, float(offset_ratio)))
        forward = ratio >= st.scroll_progress_ratio
        st.scroll_progress_ratio = ratio

        length = self.indexer.document_length(doc)
        offset = int(ratio * length)
        candidate = self.indexer.section_at(doc, offset)
        if candidate is None or candidate == st.visible_section_id:
            return st.visible_section_id

        cur = self._current_position()
        nxt = self.indexer.position(doc, candidate)
        margin = self.hysteresis * length
        if (nxt > cur and not forward) or (nxt < cur and forward):
            # never move against the scroll direction
            return st.visible_section_id
        if nxt == cur + 1:
            start = self.indexer.section(doc, candidate).start_offset
            if offset < start + margin:
                return st.visible_section_id
        elif nxt == cur - 1:
            start = self.indexer.section(doc, st.visible_section_id).start_offset
            if offset >= start - margin:
                return st.visible_section_id

        logger.debug("scrollspy %s: %s -> %s", doc, st.visible_section_id, candidate)
        st.visible_section_id = candidate
        return candidate

    def jump_to_section(self, document_id: str, section_id: str) -> bool:
        try:
            ratio = self._ratio_of(document_id, section_id)
        except UnknownSectionReference as e:
            logger.warning(
                "Ignoring jump: %s", e, extra={"document_id": document_id, "section_id": section_id}
            )
            return False
        if document_id != self._state.open_document_id:
            self.open_document(document_id)
        self._state.visible_section_id = section_id
        self._state.scroll_progress_ratio = ratio
        return True

    def jump_to_result(self, result: RankedResult) -> bool:
        return self.jump_to_section(result.document_id, result.section_id)

    def _step(self, delta: int) -> Optional[str]:
        st = self._state
        if st.open_document_id is None:
            return None
        sections = self.indexer.sections(st.open_document_id)
        cur = self._current_position()
        target = sections[max(0, min(len(sections) - 1, cur + delta))]
        st.visible_section_id = target.section_id
        st.scroll_progress_ratio = self._ratio_of(st.open_document_id, target.section_id)
        return target.section_id

    def next_section(self) -> Optional[str]:
        return self._step(1)

    def prev_section(self) -> Optional[str]:
        return self._step(-1)
