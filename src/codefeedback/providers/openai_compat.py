"""OpenAI-compatible chat-completion clients: OpenAI, Groq, LM Studio, other local servers.

All four speak ``POST {base}/chat/completions`` and ``GET {base}/models``
and are driven through the ``openai`` SDK with its retries disabled.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import openai
from openai import AsyncOpenAI

from codefeedback.errors import ConfigurationError, ProviderError
from codefeedback.prompts import build_messages
from codefeedback.providers.base import (
    ProviderClient,
    error_message_from_body,
    format_model_summary,
    join_url,
    transport_error,
)
from codefeedback.schemas.analysis import PromptContent, TestConnectionResult
from codefeedback.schemas.settings import ProviderType

logger = logging.getLogger(__name__)

OPENAI_API_BASE_URL = "https://api.openai.com/v1"
GROQ_API_BASE_URL = "https://api.groq.com/openai/v1"

# The SDK refuses to start without a key; local servers ignore whatever is sent.
LOCAL_PLACEHOLDER_API_KEY = "not-needed"
# Sent when a generic local server is configured without a model name.
DEFAULT_LOCAL_MODEL = "local-model"


class OpenAICompatibleClient(ProviderClient):
    """Shared implementation; subclasses say where to connect and what is required."""

    temperature: float = 0.3

    @property
    def base_url(self) -> str:
        raise NotImplementedError

    @property
    def model(self) -> str:
        raise NotImplementedError

    @property
    def api_key(self) -> str:
        return self.settings.api_key.strip()

    @asynccontextmanager
    async def _sdk(self) -> AsyncIterator[AsyncOpenAI]:
        client = AsyncOpenAI(
            api_key=self.api_key or LOCAL_PLACEHOLDER_API_KEY,
            base_url=self.base_url,
            max_retries=0,
            timeout=None,
            http_client=self._http_client,
        )
        try:
            yield client
        finally:
            # An injected http client belongs to the caller.
            if self._http_client is None:
                await client.close()

    async def complete(self, prompt: PromptContent) -> str:
        self.validate()
        url = join_url(self.base_url, "chat/completions")
        try:
            async with self._sdk() as sdk:
                response = await sdk.chat.completions.create(
                    model=self.model,
                    messages=build_messages(prompt),  # type: ignore[arg-type]
                    temperature=self.temperature,
                    stream=False,
                )
        except openai.APIError as exc:
            raise self._translate_sdk_error(exc, url) from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        return (getattr(message, "content", None) or "") if message is not None else ""

    def validate_endpoint(self) -> None:
        """Settings needed to list models (the model name itself is not)."""
        self.validate()

    async def list_models(self) -> list[str]:
        self.validate_endpoint()
        url = join_url(self.base_url, "models")
        try:
            async with self._sdk() as sdk:
                page = await sdk.models.list()
        except openai.APIError as exc:
            raise self._translate_sdk_error(exc, url) from exc
        models: list[str] = []
        for item in page.data:
            # Some local servers report ``name`` instead of ``id``.
            model_id = getattr(item, "id", None) or getattr(item, "name", None)
            if model_id:
                models.append(str(model_id))
        return models

    def _translate_sdk_error(self, exc: openai.APIError, url: str) -> ProviderError:
        if isinstance(exc, openai.APIConnectionError):
            logger.error("Error calling %s at %s: %s", self.label, url, exc)
            return transport_error(self.provider, url, exc)
        if isinstance(exc, openai.APIStatusError):
            message = error_message_from_body(exc.body) or exc.message
            logger.error("%s API error (%s): %s", self.label, exc.status_code, message)
            return self._translate_status(exc.status_code, message, url, self.model)
        logger.error("%s API error: %s", self.label, exc)
        return ProviderError(f"{self.label} API request failed: {exc}", provider=self.provider.value, url=url)


class OpenAIClient(OpenAICompatibleClient):
    provider = ProviderType.OPENAI
    temperature = 0.3

    @property
    def base_url(self) -> str:
        return OPENAI_API_BASE_URL

    @property
    def model(self) -> str:
        return self.settings.openai_model

    def validate(self) -> None:
        self._require(self.settings.api_key, "api_key", "API Key")
        self._require(self.settings.openai_model, "openai_model", "model")

    async def test_connection(self) -> TestConnectionResult:
        try:
            self.validate()
        except ConfigurationError as exc:
            return TestConnectionResult(success=False, message=str(exc))
        return await self._chat_test(self.model)


class GroqClient(OpenAICompatibleClient):
    provider = ProviderType.GROQ
    temperature = 0.2

    @property
    def base_url(self) -> str:
        return GROQ_API_BASE_URL

    @property
    def model(self) -> str:
        return self.settings.groq_model

    def validate(self) -> None:
        self._require(self.settings.api_key, "api_key", "API Key")
        self._require(self.settings.groq_model, "groq_model", "model")

    async def test_connection(self) -> TestConnectionResult:
        """List models with the key, then run a chat test against the selected model."""
        try:
            self.validate()
            available = await self.list_models()
        except ConfigurationError as exc:
            return TestConnectionResult(success=False, message=str(exc))
        except ProviderError as exc:
            return TestConnectionResult(success=False, message=f"Test failed to list models: {exc}")

        chat = await self._chat_test(self.model)
        if not chat.success:
            return chat
        return TestConnectionResult(
            success=True,
            message=f"{chat.message} Available models include: {format_model_summary(available)}",
            data={"available_models": available},
        )


class LocalOpenAICompatibleClient(OpenAICompatibleClient):
    """A locally hosted OpenAI-compatible server (LM Studio, llama.cpp, vLLM, ...)."""

    base_url_field: str
    model_field: str
    api_key_field: str

    @property
    def base_url(self) -> str:
        return getattr(self.settings, self.base_url_field).strip().rstrip("/")

    def validate_endpoint(self) -> None:
        self._require(getattr(self.settings, self.base_url_field), self.base_url_field, "Base URL")

    @property
    def api_key(self) -> str:
        return getattr(self.settings, self.api_key_field).strip()

    async def test_connection(self) -> TestConnectionResult:
        """List models at ``{base}/models``; chat-test the configured model if any.

        A reachable server whose chat test fails is still a success, with the
        chat problem reported in ``data``.
        """
        try:
            available = await self.list_models()
        except ConfigurationError as exc:
            return TestConnectionResult(success=False, message=str(exc))
        except ProviderError as exc:
            return TestConnectionResult(
                success=False,
                message=f"Test failed: Could not list models from {join_url(self.base_url, 'models')}. {exc}",
            )

        message = f"{self.label} connection to {self.base_url} successful!"
        if available:
            message += f" Found models: {format_model_summary(available)}."
        else:
            message += " No specific models listed by server, but endpoint is reachable."

        data: dict[str, Any] = {"available_models": available}
        configured_model = getattr(self.settings, self.model_field).strip()
        if not configured_model:
            return TestConnectionResult(success=True, message=message, data=data)

        try:
            self.validate()
        except ConfigurationError as exc:
            return TestConnectionResult(success=False, message=str(exc), data=data)

        chat = await self._chat_test(configured_model)
        if chat.success:
            message += f' Chat test with model "{configured_model}" successful.'
        elif chat.data is not None:
            data["chat_test_response"] = chat.data.get("response", "")
            message += (
                f' Chat test with model "{configured_model}" returned an unexpected response. '
                "The model might be running but not responding as expected."
            )
        else:
            data["chat_test_error"] = chat.message
            message += f' Chat test with model "{configured_model}" failed: {chat.message}'
        return TestConnectionResult(success=True, message=message, data=data)


class LMStudioClient(LocalOpenAICompatibleClient):
    provider = ProviderType.LM_STUDIO
    base_url_field = "lm_studio_base_url"
    model_field = "lm_studio_model_name"
    api_key_field = "lm_studio_api_key"

    @property
    def model(self) -> str:
        return self.settings.lm_studio_model_name.strip()

    def validate(self) -> None:
        self._require(self.settings.lm_studio_base_url, "lm_studio_base_url", "Base URL")
        self._require(self.settings.lm_studio_model_name, "lm_studio_model_name", "Model Name")


class LocalOpenAIClient(LocalOpenAICompatibleClient):
    provider = ProviderType.LOCAL_OPENAI_API
    base_url_field = "local_api_url"
    model_field = "local_model_name"
    api_key_field = "api_key"

    @property
    def model(self) -> str:
        return self.settings.local_model_name.strip() or DEFAULT_LOCAL_MODEL

    def validate(self) -> None:
        self._require(self.settings.local_api_url, "local_api_url", "API Base URL")
