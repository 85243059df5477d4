"""Outbound HTTP fetches shared by the web, video and document paths."""

from __future__ import annotations

from dataclasses import dataclass
import re
from urllib.parse import urlparse

import httpx

from extractkit.config import get_settings
from extractkit.errors import FetchFailed


@dataclass(slots=True)
class RemotePayload:
    """Remote URL fetch result."""

    final_url: str
    content_type: str
    body: bytes
    truncated: bool

    def text(self) -> str:
        return decode_remote_bytes(self.body, self.content_type)


def browser_headers(accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8") -> dict[str, str]:
    """Request headers mimicking a desktop browser; some origins block other clients."""

    settings = get_settings()
    return {
        "User-Agent": settings.browser_user_agent,
        "Accept": accept,
        "Accept-Language": settings.accept_language,
    }


def fetch_remote(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    stage: str = "fetch",
    proxy: str | None = None,
) -> RemotePayload:
    """GET a URL with the configured deadline and size cap.

    Any transport error or non-2xx status raises FetchFailed.
    """

    settings = get_settings()
    max_bytes = settings.remote_max_bytes
    try:
        with httpx.Client(
            follow_redirects=True,
            timeout=settings.request_timeout_seconds,
            proxy=proxy,
        ) as client:
            with client.stream("GET", url, headers=headers or browser_headers()) as response:
                response.raise_for_status()
                content_type = response.headers.get("content-type", "")
                final_url = str(response.url)
                chunks: list[bytes] = []
                total = 0
                truncated = False
                for chunk in response.iter_bytes():
                    if not chunk:
                        continue
                    next_total = total + len(chunk)
                    if next_total > max_bytes:
                        keep = max_bytes - total
                        if keep > 0:
                            chunks.append(chunk[:keep])
                        truncated = True
                        break
                    chunks.append(chunk)
                    total = next_total
    except httpx.HTTPError as exc:
        raise FetchFailed(compact_remote_error(exc), stage=stage) from exc

    return RemotePayload(
        final_url=final_url,
        content_type=content_type,
        body=b"".join(chunks),
        truncated=truncated,
    )


def normalize_url(raw_url: str) -> str:
    """Add a missing scheme and validate the result is an http(s) URL."""

    cleaned = raw_url.strip()
    if not cleaned:
        raise ValueError("empty URL")
    if "://" not in cleaned:
        cleaned = f"https://{cleaned}"
    parsed = urlparse(cleaned)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError("unsupported scheme")
    if not parsed.netloc:
        raise ValueError("missing host")
    return parsed.geturl()


def decode_remote_bytes(payload: bytes, content_type: str) -> str:
    charset_match = re.search(r"charset=([A-Za-z0-9._-]+)", content_type or "")
    encoding = charset_match.group(1) if charset_match else "utf-8"
    try:
        return payload.decode(encoding, errors="ignore")
    except LookupError:
        return payload.decode("utf-8", errors="ignore")


def compact_remote_error(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        host = urlparse(str(exc.request.url)).netloc
        if host:
            return f"HTTP {status_code} ({host})"
        return f"HTTP {status_code}"
    return compact_error(exc)


def compact_error(exc: Exception) -> str:
    text = re.sub(r"\s+", " ", str(exc)).strip()
    return text[:220] if text else type(exc).__name__
