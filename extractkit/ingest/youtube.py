"""Video transcript retrieval with an ordered fallback cascade.

The cascade is a list of named tiers sharing one signature, run by a single
driver loop:

1. ``captions``: reuse (or refetch) the watch page, locate the player
   configuration, pick a caption track by language preference, fetch and
   parse it.
2. ``ai_fallback``: ask the text-generation service to summarize the video
   from its page metadata.

Expected failures (FetchFailed, ParseFailed) move the cascade to the next
tier. Anything else is a bug and propagates untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
import json
import logging
from urllib.parse import parse_qs, quote_plus, urlparse

from extractkit.config import get_settings
from extractkit.enums import InputKind, TranscriptSource, UsageAction
from extractkit.errors import (
    ESCALATING_ERRORS,
    ExtractionError,
    FallbackUnavailable,
    FetchFailed,
    InvalidReference,
    ParseFailed,
)
from extractkit.ingest import page_reader
from extractkit.ingest.page_reader import CaptionTrack, VideoMetadata
from extractkit.ingest.remote import browser_headers, fetch_remote, normalize_url
from extractkit.llm.providers import LLMProvider, ProviderError, get_provider
from extractkit.llm.usage import UsageSink, record_usage
from extractkit.schemas import ExtractionMetadata, ExtractionResult, count_words

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
OEMBED_URL = "https://www.youtube.com/oembed?url={url}&format=json"
VIDEO_HOSTS = ("youtube.com", "youtu.be", "youtube-nocookie.com")
ID_PATH_PREFIXES = {"shorts", "embed", "live", "v"}

FALLBACK_PROMPT = """Based on this YouTube video information, create a comprehensive summary of what the video is likely about. Write in the same language as the title.

Video Title: {title}
Channel: {channel}
Duration: {duration}
Description: {description}

Please provide:
1. A detailed summary of the video topic (2-3 paragraphs)
2. Key points that are likely covered in the video
3. What viewers will learn from this video

Write naturally as if summarizing the actual video content. Be informative and educational."""


@dataclass(slots=True)
class TranscriptContext:
    """Request-scoped state shared by the tiers of one retrieval."""

    video_id: str
    metadata: VideoMetadata
    languages: tuple[str, ...]
    fallback: AIFallbackGenerator
    page_html: str | None = None
    caption_language: str | None = None
    failures: list[str] = field(default_factory=list)


Tier = Callable[[TranscriptContext], str]


class AIFallbackGenerator:
    """Terminal tier: synthesize content from video metadata alone."""

    def __init__(self, provider: LLMProvider | None = None, usage_sink: UsageSink | None = None) -> None:
        self._provider = provider
        self._usage_sink = usage_sink

    def synthesize(self, metadata: VideoMetadata) -> str:
        prompt = build_fallback_prompt(metadata)
        provider = self._provider or get_provider()
        try:
            generation = provider.generate(prompt)
        except ProviderError as exc:
            raise FallbackUnavailable(str(exc), stage="ai_fallback") from exc

        text = generation.text.strip()
        if not text:
            raise FallbackUnavailable("text generation returned no content", stage="ai_fallback")

        record_usage(generation, action=UsageAction.SUMMARIZE, sink=self._usage_sink)
        return text


def build_fallback_prompt(metadata: VideoMetadata) -> str:
    return FALLBACK_PROMPT.format(
        title=metadata.title or "Unknown",
        channel=metadata.channel or "Unknown",
        duration=metadata.duration_text or "Unknown",
        description=metadata.description or "No description available",
    )


def retrieve_transcript(
    video_url: str,
    *,
    languages: Sequence[str] | None = None,
    provider: LLMProvider | None = None,
    usage_sink: UsageSink | None = None,
) -> ExtractionResult:
    """Return the transcript of a video, or an AI summary when none is reachable."""

    video_id = extract_video_id(video_url)
    if not video_id:
        raise InvalidReference(f"no video identifier in {video_url!r}", stage="extract_video_id")

    metadata, page_html = fetch_video_metadata(video_id)
    context = TranscriptContext(
        video_id=video_id,
        metadata=metadata,
        languages=tuple(languages) if languages else preferred_caption_languages(),
        fallback=AIFallbackGenerator(provider=provider, usage_sink=usage_sink),
        page_html=page_html,
    )

    tier_name, content = run_tiers(TRANSCRIPT_TIERS, context)
    source = TranscriptSource.CAPTIONS if tier_name == "captions" else TranscriptSource.AI_FALLBACK
    return ExtractionResult(
        kind=InputKind.VIDEO,
        content=content,
        metadata=ExtractionMetadata(
            title=metadata.title,
            author=metadata.channel,
            duration_text=metadata.duration_text,
            word_count=count_words(content),
            language=context.caption_language,
            transcript_source=source,
            source_url=WATCH_URL.format(video_id=video_id),
        ),
    )


def run_tiers(tiers: Sequence[tuple[str, Tier]], context: TranscriptContext) -> tuple[str, str]:
    """Run tiers in order and return the first success as (tier name, content)."""

    last_error: Exception | None = None
    for name, tier in tiers:
        try:
            content = tier(context)
        except ESCALATING_ERRORS as exc:
            logger.info(
                "transcript tier %s failed: %s",
                name,
                exc,
                extra={"tier": name, "stage": exc.stage, "video_id": context.video_id},
            )
            context.failures.append(f"{name}: {exc}")
            last_error = exc
            continue
        except ExtractionError:
            raise
        except Exception:
            logger.exception(
                "unexpected error in transcript tier %s",
                name,
                extra={"tier": name, "video_id": context.video_id},
            )
            raise
        if context.failures:
            logger.warning(
                "transcript served by tier %s after %d failed tier(s)",
                name,
                len(context.failures),
                extra={"tier": name, "video_id": context.video_id},
            )
        return name, content

    raise FallbackUnavailable(
        "; ".join(context.failures) or "no transcript tier configured", stage="cascade"
    ) from last_error


def captions_tier(context: TranscriptContext) -> str:
    page_html = context.page_html
    if page_html is None:
        page_html = fetch_watch_page(context.video_id)
        context.page_html = page_html

    player_config = page_reader.read_player_config(page_html)
    tracks = page_reader.read_caption_tracks(player_config)
    if not tracks:
        raise ParseFailed("video has no caption tracks", stage="select_caption_track")

    track = select_caption_track(tracks, context.languages)
    payload = fetch_remote(track.source_url, stage="fetch_captions", proxy=_proxy())
    transcript = page_reader.parse_caption_payload(payload.text())
    if not transcript.strip():
        raise ParseFailed(
            f"caption track {track.language_code} is empty", stage="parse_captions"
        )

    context.caption_language = track.language_code
    return transcript.strip()


def ai_fallback_tier(context: TranscriptContext) -> str:
    return context.fallback.synthesize(context.metadata)


TRANSCRIPT_TIERS: tuple[tuple[str, Tier], ...] = (
    ("captions", captions_tier),
    ("ai_fallback", ai_fallback_tier),
)


def select_caption_track(tracks: Sequence[CaptionTrack], languages: Sequence[str]) -> CaptionTrack:
    """First track matching the preference order, else the first listed track."""

    for language in languages:
        for track in tracks:
            if _language_matches(track.language_code, language):
                return track
    return tracks[0]


def preferred_caption_languages() -> tuple[str, ...]:
    settings = get_settings()
    return tuple(
        dict.fromkeys([settings.interface_language, settings.caption_secondary_language])
    )


def extract_video_id(url: str) -> str | None:
    """Platform identifier from watch, short-link, embed or shorts URLs."""

    try:
        parsed = urlparse(normalize_url(url))
    except ValueError:
        return None
    host = parsed.netloc.lower()
    if not any(host == name or host.endswith(f".{name}") for name in VIDEO_HOSTS):
        return None

    if host.endswith("youtu.be"):
        slug = parsed.path.strip("/").split("/")
        return slug[0] if slug and slug[0] else None

    query = parse_qs(parsed.query)
    if query.get("v") and query["v"][0]:
        return query["v"][0]

    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) >= 2 and parts[0] in ID_PATH_PREFIXES:
        return parts[1]
    return None


def fetch_video_metadata(video_id: str) -> tuple[VideoMetadata, str | None]:
    """Metadata from the watch page, or from oEmbed when the page is unreachable.

    Returns the page markup too so the captions tier can reuse it. Raises
    FetchFailed when neither source answers.
    """

    try:
        page_html = fetch_watch_page(video_id)
    except FetchFailed as exc:
        logger.info(
            "watch page unavailable, reading oEmbed metadata: %s",
            exc,
            extra={"stage": "fetch_metadata", "video_id": video_id},
        )
        return fetch_oembed_metadata(video_id), None
    return page_reader.read_video_metadata(page_html), page_html


def fetch_watch_page(video_id: str) -> str:
    payload = fetch_remote(
        WATCH_URL.format(video_id=video_id),
        headers=browser_headers(),
        stage="fetch_page",
        proxy=_proxy(),
    )
    return payload.text()


def fetch_oembed_metadata(video_id: str) -> VideoMetadata:
    watch_url = WATCH_URL.format(video_id=video_id)
    payload = fetch_remote(
        OEMBED_URL.format(url=quote_plus(watch_url)),
        headers=browser_headers(accept="application/json"),
        stage="fetch_metadata",
        proxy=_proxy(),
    )
    try:
        data = json.loads(payload.text())
    except ValueError as exc:
        raise FetchFailed(f"oEmbed response is not JSON: {exc}", stage="fetch_metadata") from exc
    if not isinstance(data, dict):
        raise FetchFailed("oEmbed response is not an object", stage="fetch_metadata")

    title = str(data.get("title") or "").strip()
    channel = str(data.get("author_name") or "").strip()
    return VideoMetadata(title=title or None, channel=channel or None)


def _language_matches(track_language: str, wanted: str) -> bool:
    track = track_language.lower()
    wanted = wanted.lower()
    return track == wanted or track.split("-")[0] == wanted


def _proxy() -> str | None:
    return get_settings().youtube_proxy_url or None
