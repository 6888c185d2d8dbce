"""Google Gemini client over the Generative Language REST API."""

from __future__ import annotations

import logging
from typing import Any

from codefeedback.errors import AuthenticationError, ProviderError, RateLimitError
from codefeedback.providers.base import ProviderClient, join_url, model_entries
from codefeedback.schemas.analysis import PromptContent
from codefeedback.schemas.settings import ProviderType

logger = logging.getLogger(__name__)

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_TEMPERATURE = 0.3


def extract_gemini_text(data: Any) -> str:
    """Concatenate the text parts of the first candidate; "" when absent."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


class GeminiClient(ProviderClient):
    """``models/{model}:generateContent`` with the key in ``x-goog-api-key``."""

    provider = ProviderType.GEMINI

    def __init__(self, *args: Any, base_url: str = GEMINI_API_BASE_URL, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.base_url = base_url

    @property
    def model(self) -> str:
        return self.settings.gemini_model

    def validate(self) -> None:
        self._require(self.settings.api_key, "api_key", "API Key")
        self._require(self.model, "gemini_model", "model name")

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self.settings.api_key.strip()}

    async def complete(self, prompt: PromptContent) -> str:
        self.validate()
        url = join_url(self.base_url, f"models/{self.model}:generateContent")
        body = {
            "systemInstruction": {"parts": [{"text": prompt.system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt.user}]}],
            "generationConfig": {"temperature": GEMINI_TEMPERATURE},
        }
        data = await self._request_json("POST", url, json=body, headers=self._headers(), model=self.model)
        return extract_gemini_text(data)

    async def list_models(self) -> list[str]:
        self.validate()
        url = join_url(self.base_url, "models")
        data = await self._request_json("GET", url, headers=self._headers())
        names = [m.get("name") for m in model_entries(data)]
        return sorted(name.removeprefix("models/") for name in names if isinstance(name, str) and name)

    def _translate_status(self, status_code: int, message: str, url: str, model: str) -> ProviderError:
        # Gemini reports a bad key as 400 INVALID_ARGUMENT and denied access as 403.
        lowered = message.lower()
        if "api key not valid" in lowered or status_code == 403:
            return AuthenticationError(
                f"The provided Gemini API Key is not valid or lacks access to '{model}'. {message}",
                provider=self.provider.value,
                url=url,
            )
        if "quota" in lowered and status_code != 429:
            return RateLimitError(
                f"You have exceeded your Gemini API quota. {message}",
                provider=self.provider.value,
                url=url,
            )
        return super()._translate_status(status_code, message, url, model)
