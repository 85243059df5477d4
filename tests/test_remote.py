"""Tests for the shared outbound fetch helper."""

from __future__ import annotations

import httpx
import pytest

from extractkit.errors import FetchFailed
from extractkit.ingest import remote


def _mock_transport(monkeypatch, handler) -> None:
    real_client = httpx.Client

    def client_factory(**kwargs):
        kwargs.pop("proxy", None)
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(remote.httpx, "Client", client_factory)


def test_fetch_remote_returns_body_and_content_type(monkeypatch) -> None:
    seen_headers: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen_headers.update(request.headers)
        return httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, text="<p>hello</p>")

    _mock_transport(monkeypatch, handler)

    payload = remote.fetch_remote("https://example.org/page")

    assert payload.text() == "<p>hello</p>"
    assert payload.content_type.startswith("text/html")
    assert payload.final_url == "https://example.org/page"
    assert not payload.truncated
    assert "Chrome" in seen_headers["user-agent"]


def test_fetch_remote_non_success_status_raises_fetch_failed(monkeypatch) -> None:
    _mock_transport(monkeypatch, lambda request: httpx.Response(403, text="forbidden"))

    with pytest.raises(FetchFailed) as exc:
        remote.fetch_remote("https://example.org/private", stage="fetch_web")

    assert exc.value.stage == "fetch_web"
    assert "HTTP 403 (example.org)" in str(exc.value)


def test_fetch_remote_transport_error_raises_fetch_failed(monkeypatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    _mock_transport(monkeypatch, handler)

    with pytest.raises(FetchFailed):
        remote.fetch_remote("https://example.org/slow")


def test_fetch_remote_caps_body_size(monkeypatch) -> None:
    monkeypatch.setenv("REMOTE_MAX_BYTES", "2048")
    _mock_transport(monkeypatch, lambda request: httpx.Response(200, content=b"x" * 5000))

    payload = remote.fetch_remote("https://example.org/large")

    assert payload.truncated
    assert len(payload.body) == 2048


@pytest.mark.parametrize(
    ("raw", "normalized"),
    [
        ("example.org/a", "https://example.org/a"),
        ("  http://example.org  ", "http://example.org"),
    ],
)
def test_normalize_url(raw: str, normalized: str) -> None:
    assert remote.normalize_url(raw) == normalized


@pytest.mark.parametrize("raw", ["", "ftp://example.org/file", "https://"])
def test_normalize_url_rejects_invalid(raw: str) -> None:
    with pytest.raises(ValueError):
        remote.normalize_url(raw)


def test_decode_remote_bytes_honours_charset() -> None:
    assert remote.decode_remote_bytes("café".encode("latin-1"), "text/html; charset=latin-1") == "café"
    assert remote.decode_remote_bytes(b"plain", "text/plain; charset=bogus-charset") == "plain"
