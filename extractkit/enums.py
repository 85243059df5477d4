"""Domain enumerations."""

from enum import StrEnum


class InputKind(StrEnum):
    TEXT = "text"
    WEB = "web"
    VIDEO = "video"
    DOCUMENT_PDF = "document_pdf"
    DOCUMENT_SPREADSHEET = "document_spreadsheet"
    DOCUMENT_WORD = "document_word"
    DOCUMENT_IMAGE = "document_image"
    UNKNOWN = "unknown"

    @property
    def is_document(self) -> bool:
        return self.value.startswith("document_")


class TranscriptSource(StrEnum):
    CAPTIONS = "captions"
    AI_FALLBACK = "ai_fallback"


class UsageAction(StrEnum):
    SUMMARIZE = "summarize"
