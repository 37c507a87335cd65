from __future__ import annotations


class StudyViewerError(Exception):
    """Base class for errors raised by study_viewer."""


class FetchError(StudyViewerError):
    """A document could not be retrieved. Carries the path that failed."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        msg = f"document unavailable: {path}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class UnknownSectionReference(StudyViewerError, KeyError):
    def __init__(self, document_id: str, section_id: str | None = None) -> None:
        self.document_id = document_id
        self.section_id = section_id
        super().__init__(f"unknown section {document_id}#{section_id}")

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]
