"""Parser dispatch for uploaded documents."""

from __future__ import annotations

import base64
import binascii
import csv
from collections.abc import Callable
from dataclasses import dataclass, field
import io
import logging
import mimetypes
from pathlib import PurePath
import re
import zipfile

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError as DocxPackageNotFoundError
from openpyxl import load_workbook
from pdfminer.high_level import extract_text as pdfminer_extract_text
from pdfminer.psparser import PSException
from pptx import Presentation
from pptx.exc import PackageNotFoundError as PptxPackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from extractkit.config import get_settings
from extractkit.enums import InputKind, UsageAction
from extractkit.errors import (
    FetchFailed,
    InsufficientContent,
    ParseFailed,
    UnsupportedFormat,
)
from extractkit.ingest.language import detect_language
from extractkit.llm.providers import ProviderError, VisionProvider, get_vision_provider
from extractkit.llm.usage import UsageSink, record_usage
from extractkit.schemas import ExtractionMetadata, FileExtraction, count_words

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r"^data:([^;,]+)((?:;[^;,]*)*),(.*)$", re.DOTALL)
WHITESPACE = re.compile(r"\s+")
SPARSE_PDF_CHARS = 120
IMAGE_OCR_PROMPT = (
    "Please extract ALL text from this image. If this is an infographic, diagram, or chart, "
    "also describe its key information and data points in a structured format. "
    "Return the extracted text in a readable format."
)
IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF8", "image/gif"),
)
UPLOAD_EXTENSIONS = {
    "application/pdf": ".pdf",
    "text/csv": ".csv",
    "application/vnd.ms-excel": ".xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/vnd.ms-powerpoint": ".ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": ".pptx",
}


@dataclass(slots=True)
class PdfDocument:
    payload: bytes
    file_name: str


@dataclass(slots=True)
class SpreadsheetDocument:
    payload: bytes
    file_name: str


@dataclass(slots=True)
class WordDocument:
    payload: bytes
    file_name: str


@dataclass(slots=True)
class ImageDocument:
    payload: bytes
    file_name: str
    mime_type: str
    provider: VisionProvider | None = None
    usage_sink: UsageSink | None = None


Document = PdfDocument | SpreadsheetDocument | WordDocument | ImageDocument


@dataclass(slots=True)
class ParsedFile:
    """What a format parser knows about a file."""

    text: str
    title: str | None = None
    author: str | None = None
    page_count: int | None = None
    sheet_rows: dict[str, int] | None = field(default=None)


def extract_file(
    payload: bytes,
    file_name: str,
    kind: InputKind,
    *,
    mime_type: str | None = None,
    provider: VisionProvider | None = None,
    usage_sink: UsageSink | None = None,
) -> FileExtraction:
    """Parse an uploaded file and normalize the parser output."""

    document = build_document(
        kind, payload, file_name, mime_type=mime_type, provider=provider, usage_sink=usage_sink
    )
    parser = DOCUMENT_PARSERS[type(document)]
    parsed = parser(document)

    text = parsed.text.strip()
    if not text:
        raise InsufficientContent(f"no text found in {file_name}", stage=f"parse_{kind.value}")

    settings = get_settings()
    return FileExtraction(
        text=text,
        metadata=ExtractionMetadata(
            title=parsed.title or strip_extension(file_name),
            author=parsed.author,
            page_count=parsed.page_count,
            word_count=count_words(text),
            language=detect_language(text, default=settings.default_language),
            sheet_rows=parsed.sheet_rows,
        ),
    )


def build_document(
    kind: InputKind,
    payload: bytes,
    file_name: str,
    *,
    mime_type: str | None = None,
    provider: VisionProvider | None = None,
    usage_sink: UsageSink | None = None,
) -> Document:
    if kind == InputKind.DOCUMENT_PDF:
        return PdfDocument(payload=payload, file_name=file_name)
    if kind == InputKind.DOCUMENT_SPREADSHEET:
        return SpreadsheetDocument(payload=payload, file_name=file_name)
    if kind == InputKind.DOCUMENT_WORD:
        return WordDocument(payload=payload, file_name=file_name)
    if kind == InputKind.DOCUMENT_IMAGE:
        return ImageDocument(
            payload=payload,
            file_name=file_name,
            mime_type=mime_type or guess_image_mime_type(payload, file_name),
            provider=provider,
            usage_sink=usage_sink,
        )
    raise UnsupportedFormat(f"no document parser for kind {kind.value}", stage="dispatch")


def decode_data_uri(data_uri: str) -> tuple[bytes, str]:
    """Return (bytes, mime type) from a base64 data URI."""

    match = DATA_URI_PATTERN.match(data_uri.strip())
    if not match or ";base64" not in match.group(2).lower():
        raise ParseFailed("invalid base64 data URI", stage="decode_upload")
    try:
        payload = base64.b64decode(WHITESPACE.sub("", match.group(3)), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseFailed(f"invalid base64 payload: {exc}", stage="decode_upload") from exc
    return payload, match.group(1).lower()


def upload_file_name(mime_type: str, stem: str = "upload") -> str:
    """Synthetic file name for a data-URI upload so parsers can dispatch on extension."""

    return stem + (UPLOAD_EXTENSIONS.get(mime_type) or mimetypes.guess_extension(mime_type) or "")


def strip_extension(file_name: str) -> str:
    return PurePath(file_name).stem or file_name


def guess_image_mime_type(payload: bytes, file_name: str, fallback: str = "image/jpeg") -> str:
    for signature, mime_type in IMAGE_SIGNATURES:
        if payload.startswith(signature):
            return mime_type
    if payload[:4] == b"RIFF" and payload[8:12] == b"WEBP":
        return "image/webp"
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed if guessed and guessed.startswith("image/") else fallback


def parse_pdf(document: PdfDocument) -> ParsedFile:
    try:
        reader = PdfReader(io.BytesIO(document.payload))
        page_count = len(reader.pages)
        extracted = "\n\n".join((page.extract_text() or "").strip() for page in reader.pages)
        info = reader.metadata
    except (PyPdfError, KeyError, TypeError, ValueError) as exc:
        raise ParseFailed(f"unreadable PDF {document.file_name}: {exc}", stage="parse_pdf") from exc

    if len(extracted.strip()) < max(SPARSE_PDF_CHARS, page_count * 40):
        try:
            fallback_text = pdfminer_extract_text(io.BytesIO(document.payload)) or ""
        except (PSException, ValueError) as exc:
            logger.info("pdfminer fallback failed for %s: %s", document.file_name, exc)
            fallback_text = ""
        if len(fallback_text.strip()) > len(extracted.strip()):
            extracted = fallback_text

    return ParsedFile(
        text=extracted,
        title=_clean_info(info.title if info else None),
        author=_clean_info(info.author if info else None),
        page_count=page_count,
    )


def parse_spreadsheet(document: SpreadsheetDocument) -> ParsedFile:
    extension = _extension(document.file_name)
    if extension == "csv":
        text = document.payload.decode("utf-8-sig", errors="ignore")
        rows = sum(1 for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row))
        return ParsedFile(text=text, page_count=1, sheet_rows={strip_extension(document.file_name): rows})
    if extension not in {"xlsx", ""}:
        raise UnsupportedFormat(f".{extension} spreadsheets are not supported yet", stage="parse_spreadsheet")

    try:
        workbook = load_workbook(io.BytesIO(document.payload), read_only=True, data_only=True)
    except (zipfile.BadZipFile, KeyError, ValueError) as exc:
        raise ParseFailed(
            f"unreadable spreadsheet {document.file_name}: {exc}", stage="parse_spreadsheet"
        ) from exc

    parts: list[str] = []
    sheet_rows: dict[str, int] = {}
    try:
        for sheet in workbook.worksheets:
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            rows = 0
            for row in sheet.iter_rows(values_only=True):
                cells = ["" if value is None else str(value) for value in row]
                if any(cell.strip() for cell in cells):
                    writer.writerow(cells)
                    rows += 1
            sheet_rows[sheet.title] = rows
            if rows:
                parts.append(f"--- {sheet.title} ---")
                parts.append(buffer.getvalue().rstrip("\n"))
        page_count = len(workbook.sheetnames)
    finally:
        workbook.close()

    return ParsedFile(text="\n\n".join(parts), page_count=page_count, sheet_rows=sheet_rows)


def parse_word(document: WordDocument) -> ParsedFile:
    extension = _extension(document.file_name)
    try:
        if extension in {"docx", ""}:
            word = DocxDocument(io.BytesIO(document.payload))
            paragraphs = [p.text.strip() for p in word.paragraphs if p.text.strip()]
            title = _clean_info(word.core_properties.title)
            author = _clean_info(word.core_properties.author)
            return ParsedFile(text="\n\n".join(paragraphs), title=title, author=author)
        if extension == "pptx":
            presentation = Presentation(io.BytesIO(document.payload))
            slides_text: list[str] = []
            for index, slide in enumerate(presentation.slides, start=1):
                parts: list[str] = []
                for shape in slide.shapes:
                    if hasattr(shape, "text") and shape.text.strip():
                        parts.append(shape.text.strip())
                if parts:
                    slides_text.append(f"Slide {index}: " + " | ".join(parts))
            return ParsedFile(text="\n\n".join(slides_text), page_count=len(presentation.slides))
    except (
        zipfile.BadZipFile,
        DocxPackageNotFoundError,
        PptxPackageNotFoundError,
        KeyError,
        ValueError,
    ) as exc:
        raise ParseFailed(f"unreadable document {document.file_name}: {exc}", stage="parse_word") from exc

    raise UnsupportedFormat(f".{extension} documents are not supported yet", stage="parse_word")


def parse_image(document: ImageDocument) -> ParsedFile:
    """OCR by a vision-capable model rather than a local OCR engine."""

    provider = document.provider or get_vision_provider()
    try:
        generation = provider.generate_with_image(IMAGE_OCR_PROMPT, document.payload, document.mime_type)
    except ProviderError as exc:
        raise FetchFailed(f"vision OCR failed for {document.file_name}: {exc}", stage="image_ocr") from exc

    record_usage(generation, action=UsageAction.SUMMARIZE, sink=document.usage_sink)
    return ParsedFile(text=generation.text)


DOCUMENT_PARSERS: dict[type, Callable[..., ParsedFile]] = {
    PdfDocument: parse_pdf,
    SpreadsheetDocument: parse_spreadsheet,
    WordDocument: parse_word,
    ImageDocument: parse_image,
}


def _extension(file_name: str) -> str:
    return PurePath(file_name).suffix.lower().lstrip(".")


def _clean_info(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None
