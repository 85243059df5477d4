"""Provider abstractions for text generation and image understanding."""

from __future__ import annotations

from abc import ABC, abstractmethod
import base64
from dataclasses import dataclass
import logging
import time

import httpx

from extractkit.config import get_settings
from extractkit.errors import MissingCredential

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Raised when a provider call fails after retries or returns no text."""


@dataclass(slots=True)
class Generation:
    """Generated text with token accounting."""

    text: str
    input_token_count: int
    output_token_count: int
    model: str


class LLMProvider(ABC):
    """Abstract language model provider."""

    @abstractmethod
    def generate(self, prompt: str) -> Generation:
        """Generate text from prompt."""


class VisionProvider(ABC):
    """Abstract provider able to read images."""

    @abstractmethod
    def generate_with_image(self, prompt: str, image_bytes: bytes, mime_type: str) -> Generation:
        """Generate text from prompt and an inline image."""


class GeminiProvider(LLMProvider, VisionProvider):
    """Google Gemini provider via the generateContent REST endpoint."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model or get_settings().gemini_model

    def generate(self, prompt: str) -> Generation:
        parts = [{"text": prompt}]
        config = {"temperature": 0.7, "topK": 40, "topP": 0.95, "maxOutputTokens": 2048}
        return self._call(parts, config, model_label=self.model)

    def generate_with_image(self, prompt: str, image_bytes: bytes, mime_type: str) -> Generation:
        parts = [
            {"text": prompt},
            {
                "inline_data": {
                    "mime_type": mime_type,
                    "data": base64.b64encode(image_bytes).decode("ascii"),
                }
            },
        ]
        config = {"temperature": 0.1, "topK": 40, "topP": 0.95, "maxOutputTokens": 8192}
        return self._call(parts, config, model_label=f"{self.model}-vision")

    def _call(self, parts: list[dict], config: dict, *, model_label: str) -> Generation:
        settings = get_settings()
        if not settings.gemini_api_key:
            raise MissingCredential("GEMINI_API_KEY is not configured", stage="llm")

        url = f"{settings.gemini_base_url.rstrip('/')}/models/{self.model}:generateContent"
        headers = {"x-goog-api-key": settings.gemini_api_key, "Content-Type": "application/json"}
        payload = {"contents": [{"parts": parts}], "generationConfig": config}

        data = _post_with_retries(url, headers=headers, payload=payload, label="gemini")
        text = _extract_gemini_text(data)
        if not text:
            raise ProviderError("empty_gemini_response")
        usage = data.get("usageMetadata") if isinstance(data.get("usageMetadata"), dict) else {}
        return Generation(
            text=text,
            input_token_count=_token_count(usage.get("promptTokenCount")),
            output_token_count=_token_count(usage.get("candidatesTokenCount")),
            model=model_label,
        )


class MistralProvider(LLMProvider):
    """Mistral API provider via chat completions."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model or get_settings().mistral_model

    def generate(self, prompt: str) -> Generation:
        settings = get_settings()
        if not settings.mistral_api_key:
            raise MissingCredential("MISTRAL_API_KEY is not configured", stage="llm")

        url = f"{settings.mistral_base_url.rstrip('/')}/chat/completions"
        headers = {
            "Authorization": f"Bearer {settings.mistral_api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "temperature": 0.7,
            "messages": [{"role": "user", "content": prompt}],
        }

        data = _post_with_retries(url, headers=headers, payload=payload, label="mistral")
        text = _extract_chat_completion_content(data)
        if not text:
            raise ProviderError("empty_mistral_response")
        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        return Generation(
            text=text,
            input_token_count=_token_count(usage.get("prompt_tokens")),
            output_token_count=_token_count(usage.get("completion_tokens")),
            model=self.model,
        )


def get_provider() -> LLMProvider:
    """Select text provider implementation from env."""

    settings = get_settings()
    if settings.llm_provider == "mistral":
        return MistralProvider()
    return GeminiProvider()


def get_vision_provider() -> VisionProvider:
    """Return the image-capable provider."""

    return GeminiProvider()


def _post_with_retries(url: str, *, headers: dict, payload: dict, label: str) -> dict:
    settings = get_settings()
    timeout = httpx.Timeout(
        timeout=settings.request_timeout_seconds,
        connect=min(10.0, float(settings.request_timeout_seconds)),
    )
    attempts = settings.llm_max_attempts
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            response = httpx.post(url, headers=headers, json=payload, timeout=timeout)
            response.raise_for_status()
            data = response.json()
            if isinstance(data, dict):
                return data
            last_error = ProviderError(f"unexpected_{label}_payload")
        except (httpx.HTTPError, ValueError) as exc:
            last_error = exc
        if attempt < attempts:
            time.sleep(1.5 * attempt)

    logger.warning("%s call failed after %d attempts: %s", label, attempts, str(last_error)[:300])
    raise ProviderError(f"{label} call failed: {str(last_error)[:300]}") from last_error


def _extract_gemini_text(payload: dict) -> str | None:
    """Extract text from a generateContent response payload."""

    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None

    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        return None

    chunks: list[str] = []
    for part in content.get("parts") or []:
        if isinstance(part, dict):
            text = part.get("text")
            if isinstance(text, str) and text.strip():
                chunks.append(text.strip())
    combined = "\n".join(chunks).strip()
    return combined or None


def _extract_chat_completion_content(payload: dict) -> str | None:
    """Extract text content from chat completion response payload."""

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None

    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None

    content = message.get("content")
    if isinstance(content, str):
        return content.strip() or None
    if isinstance(content, list):
        chunks: list[str] = []
        for part in content:
            if isinstance(part, dict):
                text = part.get("text")
                if isinstance(text, str) and text.strip():
                    chunks.append(text.strip())
            elif isinstance(part, str) and part.strip():
                chunks.append(part.strip())
        combined = "\n".join(chunks).strip()
        return combined or None
    return None


def _token_count(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    return 0
