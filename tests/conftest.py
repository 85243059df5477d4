from __future__ import annotations

import pytest

from extractkit.config import get_settings

SETTINGS_ENV = (
    "GEMINI_API_KEY",
    "GEMINI_MODEL",
    "GEMINI_BASE_URL",
    "MISTRAL_API_KEY",
    "MISTRAL_MODEL",
    "MISTRAL_BASE_URL",
    "LLM_PROVIDER",
    "LLM_MAX_ATTEMPTS",
    "REMOTE_MAX_BYTES",
    "MIN_WEB_CONTENT_CHARS",
    "MIN_PARAGRAPH_CHARS",
    "INTERFACE_LANGUAGE",
    "CAPTION_SECONDARY_LANGUAGE",
    "DEFAULT_LANGUAGE",
    "YOUTUBE_PROXY_URL",
)


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
