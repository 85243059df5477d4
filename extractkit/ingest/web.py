"""Web article extraction by structural heuristics."""

from __future__ import annotations

import logging

from extractkit.config import get_settings
from extractkit.enums import InputKind
from extractkit.errors import InsufficientContent
from extractkit.ingest import page_reader
from extractkit.ingest.remote import browser_headers, fetch_remote
from extractkit.schemas import ExtractionMetadata, ExtractionResult, count_words

logger = logging.getLogger(__name__)

CONTENT_REGIONS = ("article", "main", "body")
BOILERPLATE_TAGS = ("script", "style", "noscript", "iframe", "svg", "nav", "header", "footer", "aside")
MIN_FRAGMENTS_BEFORE_LISTS = 3
BOT_CHALLENGE_PATTERNS = (
    "just a moment",
    "checking your browser",
    "enable javascript and cookies",
    "attention required",
    "verify you are human",
    "captcha",
    "cloudflare",
    "datadome",
)


def extract_web_article(url: str) -> ExtractionResult:
    """Fetch a page and return its article text; no fallback tier exists."""

    remote = fetch_remote(url, headers=browser_headers(), stage="fetch_web")
    if remote.truncated:
        logger.warning(
            "web page exceeded %d bytes, extracting from the truncated markup",
            get_settings().remote_max_bytes,
            extra={"stage": "fetch_web", "url": remote.final_url},
        )
    page_html = remote.text()
    title, content = extract_article_text(page_html)
    author = page_reader.read_meta_content(page_html, "author")

    if len(content) < get_settings().min_web_content_chars:
        logger.info(
            "web page yielded %d characters",
            len(content),
            extra={"stage": "collect_text", "url": remote.final_url},
        )
        if looks_like_bot_challenge(content, title=title or ""):
            raise InsufficientContent(
                f"{remote.final_url} answered with an anti-bot challenge page",
                stage="collect_text",
                user_message=(
                    "This site blocks automated access. Try copying the text manually."
                ),
            )
        raise InsufficientContent(
            f"only {len(content)} characters extracted from {remote.final_url}",
            stage="collect_text",
        )

    return ExtractionResult(
        kind=InputKind.WEB,
        content=content,
        metadata=ExtractionMetadata(
            title=title,
            author=author,
            word_count=count_words(content),
            source_url=remote.final_url,
        ),
    )


def extract_article_text(page_html: str) -> tuple[str | None, str]:
    """Return (title, text) where text is headings, then paragraphs, blank-line separated."""

    settings = get_settings()
    title = page_reader.read_title(page_html)

    region = page_reader.first_region(page_html, CONTENT_REGIONS)
    if region is None:
        region = page_html
    region = page_reader.remove_elements(region, BOILERPLATE_TAGS)

    fragments: list[str] = []
    for heading in page_reader.element_fragments(region, "h[1-6]"):
        text = page_reader.strip_tags(heading)
        if text:
            fragments.append(text)

    for paragraph in page_reader.element_fragments(region, "p"):
        text = page_reader.strip_tags(paragraph)
        # Short paragraphs are usually navigation links styled as <p>.
        if len(text) > settings.min_paragraph_chars:
            fragments.append(text)

    if len(fragments) < MIN_FRAGMENTS_BEFORE_LISTS:
        for item in page_reader.element_fragments(region, "li"):
            text = page_reader.strip_tags(item)
            if text:
                fragments.append(text)

    return title, "\n\n".join(fragments)


def looks_like_bot_challenge(text: str, *, title: str = "") -> bool:
    haystack = f"{title}\n{text}".lower()
    return any(marker in haystack for marker in BOT_CHALLENGE_PATTERNS)
