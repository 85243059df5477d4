from __future__ import annotations

import base64

import httpx
import pytest

from extractkit.config import get_settings
from extractkit.errors import MissingCredential
import extractkit.llm.providers as providers


class _FakeResponse:
    def __init__(self, payload: dict) -> None:
        self._payload = payload

    def raise_for_status(self) -> None:
        return None

    def json(self) -> dict:
        return self._payload


def test_get_provider_selects_mistral(monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mistral")
    monkeypatch.setenv("MISTRAL_API_KEY", "test-key")
    get_settings.cache_clear()

    assert isinstance(providers.get_provider(), providers.MistralProvider)


def test_get_provider_defaults_to_gemini() -> None:
    assert isinstance(providers.get_provider(), providers.GeminiProvider)
    assert isinstance(providers.get_vision_provider(), providers.GeminiProvider)


def test_gemini_provider_parses_text_and_usage(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    get_settings.cache_clear()
    captured: dict = {}

    def fake_post(url: str, *, headers: dict, json: dict, timeout):
        captured["url"] = url
        captured["headers"] = headers
        captured["json"] = json
        return _FakeResponse(
            {
                "candidates": [{"content": {"parts": [{"text": "The video explains tides."}]}}],
                "usageMetadata": {"promptTokenCount": 120, "candidatesTokenCount": 80},
            }
        )

    monkeypatch.setattr(providers.httpx, "post", fake_post)

    generation = providers.GeminiProvider().generate("Summarize")

    assert generation.text == "The video explains tides."
    assert generation.input_token_count == 120
    assert generation.output_token_count == 80
    assert generation.model == "gemini-2.0-flash"
    assert captured["url"] == (
        "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    )
    assert captured["headers"]["x-goog-api-key"] == "test-key"
    assert captured["json"]["contents"][0]["parts"] == [{"text": "Summarize"}]


def test_gemini_vision_sends_inline_image(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    get_settings.cache_clear()
    captured: dict = {}

    def fake_post(url: str, *, headers: dict, json: dict, timeout):
        captured["json"] = json
        return _FakeResponse({"candidates": [{"content": {"parts": [{"text": "LOW TIDE"}]}}]})

    monkeypatch.setattr(providers.httpx, "post", fake_post)

    generation = providers.GeminiProvider().generate_with_image("Read this", b"\x89PNG", "image/png")

    inline = captured["json"]["contents"][0]["parts"][1]["inline_data"]
    assert inline["mime_type"] == "image/png"
    assert base64.b64decode(inline["data"]) == b"\x89PNG"
    assert generation.model == "gemini-2.0-flash-vision"
    assert generation.input_token_count == 0
    assert generation.output_token_count == 0


def test_gemini_without_key_raises_missing_credential(monkeypatch) -> None:
    def unexpected_post(*_args, **_kwargs):
        raise AssertionError("no request expected without a key")

    monkeypatch.setattr(providers.httpx, "post", unexpected_post)

    with pytest.raises(MissingCredential):
        providers.GeminiProvider().generate("Summarize")


def test_provider_retries_then_raises_provider_error(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("LLM_MAX_ATTEMPTS", "3")
    get_settings.cache_clear()
    attempts: list[str] = []
    sleeps: list[float] = []

    def failing_post(url: str, *, headers: dict, json: dict, timeout):
        attempts.append(url)
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(providers.httpx, "post", failing_post)
    monkeypatch.setattr(providers.time, "sleep", sleeps.append)

    with pytest.raises(providers.ProviderError):
        providers.GeminiProvider().generate("Summarize")

    assert len(attempts) == 3
    assert sleeps == [1.5, 3.0]


def test_empty_candidates_raise_provider_error(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    get_settings.cache_clear()
    monkeypatch.setattr(providers.httpx, "post", lambda *_a, **_k: _FakeResponse({"candidates": []}))

    with pytest.raises(providers.ProviderError):
        providers.GeminiProvider().generate("Summarize")


def test_mistral_provider_parses_chat_completion(monkeypatch) -> None:
    monkeypatch.setenv("LLM_PROVIDER", "mistral")
    monkeypatch.setenv("MISTRAL_API_KEY", "test-key")
    monkeypatch.setenv("MISTRAL_MODEL", "mistral-small-latest")
    get_settings.cache_clear()
    captured: dict = {}

    def fake_post(url: str, *, headers: dict, json: dict, timeout):
        captured["url"] = url
        captured["headers"] = headers
        captured["json"] = json
        return _FakeResponse(
            {
                "choices": [{"message": {"content": "A summary of the tides video."}}],
                "usage": {"prompt_tokens": 55, "completion_tokens": 21},
            }
        )

    monkeypatch.setattr(providers.httpx, "post", fake_post)

    generation = providers.MistralProvider().generate("Prompt")

    assert generation.text == "A summary of the tides video."
    assert generation.input_token_count == 55
    assert generation.output_token_count == 21
    assert captured["url"] == "https://api.mistral.ai/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer test-key"
    assert captured["json"]["model"] == "mistral-small-latest"
