"""Input classification by pattern matching; no I/O."""

from __future__ import annotations

import re

from extractkit.enums import InputKind
from extractkit.schemas import DetectionResult

VIDEO_URL_PATTERNS = (
    re.compile(r"(?:https?://)?(?:www\.|m\.)?youtube\.com/watch\?(?:\S*&)?v=[\w-]+(?:[&#]\S*)?", re.IGNORECASE),
    re.compile(r"(?:https?://)?(?:www\.)?youtu\.be/[\w-]+(?:[?#/]\S*)?", re.IGNORECASE),
    re.compile(r"(?:https?://)?(?:www\.|m\.)?youtube\.com/embed/[\w-]+(?:[?#/]\S*)?", re.IGNORECASE),
    re.compile(r"(?:https?://)?(?:www\.|m\.)?youtube\.com/shorts/[\w-]+(?:[?#/]\S*)?", re.IGNORECASE),
)
WEB_URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)
DATA_URI_MIME_PATTERN = re.compile(r"^data:([^;,]+)[;,]", re.IGNORECASE)
FILE_EXTENSION_PATTERN = re.compile(r"\.(\w+)$")

FILE_EXTENSION_KINDS: dict[str, InputKind] = {
    "pdf": InputKind.DOCUMENT_PDF,
    "xlsx": InputKind.DOCUMENT_SPREADSHEET,
    "xls": InputKind.DOCUMENT_SPREADSHEET,
    "csv": InputKind.DOCUMENT_SPREADSHEET,
    "doc": InputKind.DOCUMENT_WORD,
    "docx": InputKind.DOCUMENT_WORD,
    "ppt": InputKind.DOCUMENT_WORD,
    "pptx": InputKind.DOCUMENT_WORD,
    "key": InputKind.DOCUMENT_WORD,
    "pages": InputKind.DOCUMENT_WORD,
    "png": InputKind.DOCUMENT_IMAGE,
    "jpg": InputKind.DOCUMENT_IMAGE,
    "jpeg": InputKind.DOCUMENT_IMAGE,
    "gif": InputKind.DOCUMENT_IMAGE,
    "webp": InputKind.DOCUMENT_IMAGE,
    "svg": InputKind.DOCUMENT_IMAGE,
}


def classify_input(raw_input: str) -> DetectionResult:
    """Decide what kind of source a raw string refers to. Never raises."""

    trimmed = raw_input.strip()

    if is_video_url(trimmed):
        return DetectionResult(kind=InputKind.VIDEO, url=trimmed)

    if trimmed.lower().startswith("data:"):
        return DetectionResult(kind=kind_for_mime_type(_data_uri_mime(trimmed)), raw_content=trimmed)

    file_kind = kind_for_file_name(trimmed)
    if file_kind != InputKind.UNKNOWN:
        return DetectionResult(kind=file_kind, raw_content=trimmed)

    if WEB_URL_PATTERN.match(trimmed):
        return DetectionResult(kind=InputKind.WEB, url=trimmed)

    return DetectionResult(kind=InputKind.TEXT, raw_content=raw_input)


def is_video_url(value: str) -> bool:
    """True only when the whole value is a video link; prose mentioning one is text."""

    return any(pattern.fullmatch(value) for pattern in VIDEO_URL_PATTERNS)


def kind_for_mime_type(mime_type: str) -> InputKind:
    """Map a MIME type onto a document kind; spreadsheet is checked before word
    because OOXML spreadsheet types contain "officedocument"."""

    mime = mime_type.lower()
    if "pdf" in mime:
        return InputKind.DOCUMENT_PDF
    if "spreadsheet" in mime or "excel" in mime or "csv" in mime:
        return InputKind.DOCUMENT_SPREADSHEET
    if any(marker in mime for marker in ("word", "document", "presentation", "powerpoint", "keynote")):
        return InputKind.DOCUMENT_WORD
    if "image" in mime:
        return InputKind.DOCUMENT_IMAGE
    return InputKind.UNKNOWN


def kind_for_file_name(file_name: str) -> InputKind:
    extension_match = FILE_EXTENSION_PATTERN.search(file_name.strip())
    if not extension_match:
        return InputKind.UNKNOWN
    return FILE_EXTENSION_KINDS.get(extension_match.group(1).lower(), InputKind.UNKNOWN)


def _data_uri_mime(value: str) -> str:
    match = DATA_URI_MIME_PATTERN.match(value)
    return match.group(1) if match else ""
