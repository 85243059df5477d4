"""Public entry points: classify an input and turn it into a normalized document."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

from extractkit.config import get_settings
from extractkit.correlation import correlation_scope
from extractkit.enums import InputKind
from extractkit.errors import FetchFailed, InsufficientContent, NotYetSupported
from extractkit.ingest import web, youtube
from extractkit.ingest.classifier import WEB_URL_PATTERN, classify_input
from extractkit.ingest.documents import decode_data_uri, extract_file, upload_file_name
from extractkit.ingest.language import detect_language
from extractkit.ingest.remote import fetch_remote
from extractkit.llm.providers import LLMProvider, VisionProvider
from extractkit.llm.usage import UsageSink
from extractkit.schemas import DetectionResult, ExtractionMetadata, ExtractionResult, count_words

logger = logging.getLogger(__name__)

__all__ = ["classify_input", "extract_content", "extract_file", "is_processable_url"]

UPLOAD_FILE_STEM = "upload"


def is_processable_url(raw_input: str) -> bool:
    """True when the input is a URL the pipeline can retrieve itself."""

    return classify_input(raw_input).kind in {InputKind.VIDEO, InputKind.WEB}


def extract_content(
    raw_input: str,
    kind: InputKind | None = None,
    *,
    provider: LLMProvider | None = None,
    vision_provider: VisionProvider | None = None,
    usage_sink: UsageSink | None = None,
) -> ExtractionResult:
    """Classify (unless kind is given), retrieve and normalize one input."""

    with correlation_scope():
        if kind is not None:
            detected = DetectionResult(kind=kind, url=raw_input.strip(), raw_content=raw_input)
        else:
            detected = classify_input(raw_input)
        logger.info("extracting %s input", detected.kind.value, extra={"kind": detected.kind.value})

        if detected.kind == InputKind.VIDEO:
            result = youtube.retrieve_transcript(
                detected.url or raw_input, provider=provider, usage_sink=usage_sink
            )
        elif detected.kind == InputKind.WEB:
            result = web.extract_web_article(detected.url or raw_input)
        elif detected.kind.is_document:
            result = _extract_document_input(
                detected, vision_provider=vision_provider, usage_sink=usage_sink
            )
        elif detected.kind == InputKind.TEXT:
            text = detected.raw_content if detected.raw_content is not None else raw_input
            result = _pass_through_text(text)
        else:
            raise NotYetSupported(f"{detected.kind.value} input is not supported", stage="route")

        if result.metadata.language is None:
            result.metadata.language = detect_language(
                result.content, default=get_settings().default_language
            )
        return result


def _pass_through_text(text: str) -> ExtractionResult:
    if not text.strip():
        raise InsufficientContent("empty text input", stage="text")
    return ExtractionResult(
        kind=InputKind.TEXT,
        content=text,
        metadata=ExtractionMetadata(word_count=count_words(text)),
    )


def _extract_document_input(
    detected: DetectionResult,
    *,
    vision_provider: VisionProvider | None,
    usage_sink: UsageSink | None,
) -> ExtractionResult:
    reference = (detected.raw_content or detected.url or "").strip()

    if reference.lower().startswith("data:"):
        payload, mime_type = decode_data_uri(reference)
        file_name = upload_file_name(mime_type, UPLOAD_FILE_STEM)
        source_url = None
    elif WEB_URL_PATTERN.match(reference):
        remote = fetch_remote(reference, stage="fetch_document")
        if remote.truncated:
            # Document parsers need the complete file.
            raise FetchFailed(
                f"{remote.final_url} exceeds the {get_settings().remote_max_bytes} byte download limit",
                stage="fetch_document",
                user_message="The file is too large to download; upload it instead.",
            )
        payload = remote.body
        mime_type = remote.content_type.split(";")[0].strip().lower() or None
        file_name = _file_name_from_url(remote.final_url)
        source_url = remote.final_url
    else:
        raise NotYetSupported(
            f"{detected.kind.value} extraction requires a file upload",
            stage="route",
            user_message="Upload the file itself to extract its content.",
        )

    extracted = extract_file(
        payload,
        file_name,
        detected.kind,
        mime_type=mime_type if detected.kind == InputKind.DOCUMENT_IMAGE else None,
        provider=vision_provider,
        usage_sink=usage_sink,
    )
    extracted.metadata.source_url = source_url
    return ExtractionResult(kind=detected.kind, content=extracted.text, metadata=extracted.metadata)


def _file_name_from_url(url: str) -> str:
    name = PurePosixPath(unquote(urlparse(url).path)).name
    return name or UPLOAD_FILE_STEM

