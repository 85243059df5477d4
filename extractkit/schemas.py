"""Pydantic schemas for the public extraction contract."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from extractkit.enums import InputKind, TranscriptSource


class DetectionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: InputKind
    url: str | None = None
    raw_content: str | None = None


class ExtractionMetadata(BaseModel):
    title: str | None = None
    author: str | None = None
    duration_text: str | None = None
    page_count: int | None = Field(default=None, ge=0)
    word_count: int | None = Field(default=None, ge=0)
    language: str | None = None
    sheet_rows: dict[str, int] | None = None
    transcript_source: TranscriptSource | None = None
    source_url: str | None = None


class ExtractionResult(BaseModel):
    kind: InputKind
    content: str = Field(min_length=1)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)


class FileExtraction(BaseModel):
    text: str = Field(min_length=1)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)


def count_words(text: str) -> int:
    """Whitespace word count used uniformly across source kinds."""

    return len(text.split())
