"""Ollama client over its native ``/api/chat`` and ``/api/tags`` endpoints."""

from __future__ import annotations

import logging
from typing import Any

from codefeedback.errors import ConfigurationError, ModelNotFoundError, ProviderError
from codefeedback.prompts import build_messages
from codefeedback.providers.base import ProviderClient, format_model_summary, join_url, model_entries
from codefeedback.schemas.analysis import PromptContent, TestConnectionResult
from codefeedback.schemas.settings import ProviderType

logger = logging.getLogger(__name__)

OLLAMA_TEMPERATURE = 0.3


class OllamaClient(ProviderClient):
    """Ollama's own chat API (not its OpenAI-compatible shim).

    The assistant text lives at ``message.content`` rather than under
    ``choices``.
    """

    provider = ProviderType.OLLAMA

    @property
    def base_url(self) -> str:
        return self.settings.ollama_base_url.strip()

    @property
    def model(self) -> str:
        return self.settings.ollama_model_name.strip()

    def validate(self) -> None:
        self._require(self.settings.ollama_base_url, "ollama_base_url", "Base URL")
        self._require(self.settings.ollama_model_name, "ollama_model_name", "Model Name")

    async def complete(self, prompt: PromptContent) -> str:
        self.validate()
        url = join_url(self.base_url, "api/chat")
        body = {
            "model": self.model,
            "messages": build_messages(prompt),
            "stream": False,
            "options": {"temperature": OLLAMA_TEMPERATURE},
        }
        data = await self._request_json("POST", url, json=body, model=self.model)
        message: Any = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            return ""
        return message.get("content") or ""

    async def list_models(self) -> list[str]:
        self._require(self.settings.ollama_base_url, "ollama_base_url", "Base URL")
        url = join_url(self.base_url, "api/tags")
        data = await self._request_json("GET", url)
        names = [m.get("name") for m in model_entries(data)]
        return sorted(name for name in names if isinstance(name, str) and name)

    async def test_connection(self) -> TestConnectionResult:
        """List pulled models, then (if a model is configured) run a chat test.

        A reachable server whose chat test fails still counts as a success;
        the chat problem is reported in ``data``.
        """
        try:
            self._require(self.settings.ollama_base_url, "ollama_base_url", "Base URL")
            available = await self.list_models()
        except ConfigurationError as exc:
            return TestConnectionResult(success=False, message=str(exc))
        except ProviderError as exc:
            logger.error("Ollama listModels failed during connection test: %s", exc)
            return TestConnectionResult(
                success=False,
                message=f"Test failed: Could not connect to Ollama or list models at {self.base_url}. {exc}",
            )

        message = f"Ollama connection to {self.base_url} successful!"
        if available:
            message += f" Found models: {format_model_summary(available)}."
        else:
            message += " No models found. Make sure you have pulled models (e.g., 'ollama pull llama3')."

        data: dict[str, Any] = {"available_models": available}
        if not self.model:
            return TestConnectionResult(success=True, message=message, data=data)

        chat = await self._chat_test(self.model)
        if chat.success:
            message += f' Chat test with model "{self.model}" successful.'
        elif chat.data is not None:
            data["chat_test_response"] = chat.data.get("response", "")
            message += f' Chat test with model "{self.model}" returned an unexpected response.'
        else:
            data["chat_test_error"] = chat.message
            message += f' Chat test with model "{self.model}" failed: {chat.message}'
        return TestConnectionResult(success=True, message=message, data=data)

    def _translate_status(self, status_code: int, message: str, url: str, model: str) -> ProviderError:
        if "not found" in message.lower():
            return ModelNotFoundError(
                f"Ollama API request failed: Model '{model}' not found. Ensure it's pulled or "
                f"exists at {self.base_url}. {message}",
                provider=self.provider.value,
                url=url,
            )
        return super()._translate_status(status_code, message, url, model)
