"""Page metadata reader.

Every pattern that depends on third-party markup lives here: page titles and
meta tags, the embedded video player configuration, caption track lists,
caption payloads, and element text for article extraction. Upstream markup
changes should only ever require edits to this module.
"""

from __future__ import annotations

from dataclasses import dataclass
import html
import json
import re
from urllib.parse import urljoin

from extractkit.errors import ParseFailed

YOUTUBE_ORIGIN = "https://www.youtube.com"

TITLE_PATTERN = re.compile(r"(?is)<title[^>]*>(.*?)</title>")
PLAYER_RESPONSE_PATTERN = re.compile(r"ytInitialPlayerResponse\s*=\s*(?=\{)")
CHANNEL_PATTERN = re.compile(r'"ownerChannelName"\s*:\s*"((?:[^"\\]|\\.)*)"')
LENGTH_SECONDS_PATTERN = re.compile(r'"lengthSeconds"\s*:\s*"(\d+)"')
TIMEDTEXT_SEGMENT_PATTERN = re.compile(r"(?is)<text\b[^>]*>(.*?)</text>")
TAG_PATTERN = re.compile(r"(?s)<[^>]+>")
WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass(slots=True)
class VideoMetadata:
    """What a video page says about itself; input to the AI fallback tier."""

    title: str | None = None
    description: str | None = None
    channel: str | None = None
    duration_text: str | None = None


@dataclass(slots=True)
class CaptionTrack:
    language_code: str
    source_url: str


def decode_html_entities(text: str) -> str:
    """Decode named and numeric entities; &nbsp; becomes a plain space."""

    return html.unescape(text).replace("\xa0", " ")


def strip_tags(fragment: str) -> str:
    """Drop markup, decode entities and collapse whitespace."""

    text = TAG_PATTERN.sub(" ", fragment)
    return WHITESPACE_PATTERN.sub(" ", decode_html_entities(text)).strip()


def read_title(page_html: str) -> str | None:
    match = TITLE_PATTERN.search(page_html)
    if not match:
        return None
    title = strip_tags(match.group(1))
    return title or None


def read_meta_content(page_html: str, name: str) -> str | None:
    """Content of <meta name=...> (or property=...), attribute order agnostic."""

    for tag in re.finditer(r"(?is)<meta\b[^>]*>", page_html):
        attributes = _read_attributes(tag.group(0))
        key = attributes.get("name") or attributes.get("property") or ""
        if key.lower() == name.lower() and attributes.get("content"):
            content = WHITESPACE_PATTERN.sub(" ", decode_html_entities(attributes["content"])).strip()
            if content:
                return content
    return None


def read_video_metadata(page_html: str) -> VideoMetadata:
    """Read title, description, channel and duration from a watch page."""

    title = read_title(page_html)
    if title:
        title = re.sub(r"\s*-\s*YouTube$", "", title).strip() or None

    channel = None
    channel_match = CHANNEL_PATTERN.search(page_html)
    if channel_match:
        channel = decode_html_entities(_json_string(channel_match.group(1))).strip() or None

    duration_text = None
    length_match = LENGTH_SECONDS_PATTERN.search(page_html)
    if length_match:
        duration_text = format_duration(int(length_match.group(1)))

    return VideoMetadata(
        title=title,
        description=read_meta_content(page_html, "description"),
        channel=channel,
        duration_text=duration_text,
    )


def format_duration(seconds: int) -> str:
    hours, remainder = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def read_player_config(page_html: str) -> dict:
    """Decode the player configuration object embedded in a watch page."""

    match = PLAYER_RESPONSE_PATTERN.search(page_html)
    if not match:
        raise ParseFailed("player configuration not found", stage="locate_player_config")
    try:
        config, _ = json.JSONDecoder().raw_decode(page_html, match.end())
    except ValueError as exc:
        raise ParseFailed(
            f"player configuration is not valid JSON: {exc}", stage="locate_player_config"
        ) from exc
    if not isinstance(config, dict):
        raise ParseFailed("player configuration is not an object", stage="locate_player_config")
    return config


def read_caption_tracks(player_config: dict) -> list[CaptionTrack]:
    captions = player_config.get("captions")
    renderer = captions.get("playerCaptionsTracklistRenderer") if isinstance(captions, dict) else None
    entries = renderer.get("captionTracks") if isinstance(renderer, dict) else None
    if not isinstance(entries, list):
        return []

    tracks: list[CaptionTrack] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        base_url = entry.get("baseUrl")
        language_code = entry.get("languageCode")
        if isinstance(base_url, str) and base_url and isinstance(language_code, str):
            tracks.append(
                CaptionTrack(language_code=language_code, source_url=urljoin(YOUTUBE_ORIGIN, base_url))
            )
    return tracks


def parse_caption_payload(payload: str) -> str:
    """Turn a timed-text XML, json3 or WebVTT caption payload into one line of text."""

    stripped = payload.lstrip()
    if stripped.startswith("{"):
        try:
            data = json.loads(stripped)
        except ValueError as exc:
            raise ParseFailed(f"caption payload is not valid JSON: {exc}", stage="parse_captions") from exc
        return _caption_json_to_text(data) if isinstance(data, dict) else ""

    segments = TIMEDTEXT_SEGMENT_PATTERN.findall(payload)
    if segments:
        # Timed-text XML escapes caption text that is itself entity-encoded.
        snippets = [strip_tags(decode_html_entities(segment)) for segment in segments]
        return " ".join(snippet for snippet in snippets if snippet)

    if stripped.upper().startswith("WEBVTT"):
        return _vtt_to_text(payload)

    return ""


def element_fragments(fragment: str, tag_pattern: str) -> list[str]:
    """Inner markup of every element whose tag name matches tag_pattern, in order."""

    pattern = re.compile(rf"(?is)<({tag_pattern})\b[^>]*>(.*?)</\1\s*>")
    return [match.group(2) for match in pattern.finditer(fragment)]


def first_region(page_html: str, tags: tuple[str, ...]) -> str | None:
    """Inner markup of the first element found, trying tags in priority order."""

    for tag in tags:
        regions = element_fragments(page_html, tag)
        if regions:
            return regions[0]
    return None


def remove_elements(fragment: str, tags: tuple[str, ...]) -> str:
    pattern = re.compile(rf"(?is)<({'|'.join(tags)})\b[^>]*>.*?</\1\s*>")
    return pattern.sub(" ", fragment)


def _caption_json_to_text(payload: dict) -> str:
    events = payload.get("events")
    if not isinstance(events, list):
        return ""

    snippets: list[str] = []
    for event in events:
        if not isinstance(event, dict):
            continue
        segments = event.get("segs")
        if not isinstance(segments, list):
            continue
        for segment in segments:
            if not isinstance(segment, dict):
                continue
            value = str(segment.get("utf8", "")).replace("\n", " ").strip()
            if value:
                snippets.append(value)

    return decode_html_entities(" ".join(snippets))


def _vtt_to_text(payload: str) -> str:
    cleaned = payload.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = TAG_PATTERN.sub(" ", cleaned)

    lines: list[str] = []
    for raw_line in cleaned.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.upper().startswith("WEBVTT"):
            continue
        if line.startswith(("Kind:", "Language:", "NOTE", "STYLE", "REGION")):
            continue
        if "-->" in line:
            continue
        if re.match(r"^\d+$", line):
            continue
        lines.append(line)

    return WHITESPACE_PATTERN.sub(" ", decode_html_entities(" ".join(lines))).strip()


def _read_attributes(tag: str) -> dict[str, str]:
    attributes: dict[str, str] = {}
    for match in re.finditer(r"""([\w:-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""", tag):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attributes[match.group(1).lower()] = value
    return attributes


def _json_string(raw: str) -> str:
    try:
        return json.loads(f'"{raw}"')
    except ValueError:
        return raw
