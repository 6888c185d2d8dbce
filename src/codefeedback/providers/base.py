"""Provider client ABC: the contract every AI backend implements."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from codefeedback.errors import (
    AuthenticationError,
    ConfigurationError,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
    TransportError,
    UpstreamError,
)
from codefeedback.prompts import build_prompt, connection_test_prompt
from codefeedback.schemas.analysis import AnalysisAction, PromptContent, TestConnectionResult
from codefeedback.schemas.settings import AiSettings, ProviderType

logger = logging.getLogger(__name__)

_MODEL_NOT_FOUND_MARKERS = ("model_not_found", "model not found", "does not exist")


def error_message_from_body(body: Any) -> str:
    """Pull a readable message out of a provider error payload.

    Error envelopes vary a lot, especially between local servers:
    ``{"error": {"message": ...}}``, ``{"error": "..."}``,
    ``{"message": ...}`` or FastAPI's ``{"detail": ...}``.
    """
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        for key in ("message", "detail"):
            if body.get(key):
                return str(body[key])
    if isinstance(body, str):
        return body.strip()
    return ""


def response_error_message(response: httpx.Response) -> str:
    """Readable message for a non-2xx httpx response."""
    try:
        message = error_message_from_body(response.json())
    except ValueError:
        message = ""
    if not message:
        message = f"HTTP error {response.status_code}: {response.reason_phrase}"
    return message


def translate_status_error(
    *,
    provider: ProviderType,
    status_code: int,
    message: str,
    url: str,
    model: str = "",
) -> ProviderError:
    """Map an upstream HTTP status to the package's error taxonomy."""
    label = provider.label
    lowered = message.lower()
    if status_code == 401:
        return AuthenticationError(
            f"{label} API request failed: Invalid API Key. {message}", provider=provider.value, url=url
        )
    if status_code == 429:
        return RateLimitError(
            f"{label} API request failed: Rate limit exceeded or quota issues. {message}",
            provider=provider.value,
            url=url,
        )
    if status_code == 404 or (
        400 <= status_code < 500 and any(marker in lowered for marker in _MODEL_NOT_FOUND_MARKERS)
    ):
        return ModelNotFoundError(
            f"{label} API request failed: Model '{model or 'default'}' not found or not "
            f"available. {message}",
            provider=provider.value,
            url=url,
        )
    return UpstreamError(
        f"{label} API request failed ({status_code}): {message}. URL: {url}",
        status_code=status_code,
        provider=provider.value,
        url=url,
    )


def transport_error(provider: ProviderType, url: str, exc: Exception) -> TransportError:
    return TransportError(
        f"Network error calling {provider.label} at {url}. Ensure the server is running, "
        f"accessible, and allows requests from this client. Original error: {exc}",
        provider=provider.value,
        url=url,
    )


class ProviderClient(ABC):
    """Abstract base class for the six provider clients.

    Subclasses implement:
    - ``provider``: the ``ProviderType`` served
    - ``validate()``: raise ``ConfigurationError`` for missing settings
    - ``complete(prompt)``: one chat completion, returning the assistant text
    - ``test_connection()``: liveness / credential check
    - ``list_models()``: model identifiers the backend offers

    ``http_client`` is optional; when omitted a fresh ``httpx.AsyncClient``
    (no timeout) is opened for each call.
    """

    provider: ProviderType

    def __init__(self, settings: AiSettings, *, http_client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self._http_client = http_client

    @property
    def label(self) -> str:
        return self.provider.label

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    @abstractmethod
    def validate(self) -> None:
        """Raise ``ConfigurationError`` naming the first missing required field."""

    @abstractmethod
    async def complete(self, prompt: PromptContent) -> str:
        """Send one system+user exchange and return the assistant text ("" when absent)."""

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return the model identifiers the backend reports."""

    async def generate(self, content: str, language: str, action: AnalysisAction) -> str:
        """Build the prompt for ``action`` and return the raw model reply."""
        self.validate()
        return await self.complete(build_prompt(action, content, language))

    async def test_connection(self) -> TestConnectionResult:
        """Default check: a tiny chat completion that should answer "OK"."""
        try:
            self.validate()
        except ConfigurationError as exc:
            return TestConnectionResult(success=False, message=str(exc))
        return await self._chat_test()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, value: str, field: str, description: str) -> str:
        if not value or not value.strip():
            raise ConfigurationError(
                f"{self.label} {description} is not configured. Please set '{field}' in settings.",
                field=field,
            )
        return value.strip()

    async def _chat_test(self, model: str = "") -> TestConnectionResult:
        suffix = f" with {model}" if model else ""
        try:
            text = await self.complete(connection_test_prompt())
        except ProviderError as exc:
            logger.error("%s connection test failed: %s", self.label, exc)
            return TestConnectionResult(success=False, message=f"Test failed: {exc}")
        if text and "ok" in text.lower():
            return TestConnectionResult(success=True, message=f"{self.label} connection successful{suffix}!")
        return TestConnectionResult(
            success=False,
            message=f"{self.label} connection test{suffix} failed: Unexpected response from model.",
            data={"response": text},
        )

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=None) as client:
                yield client

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        model: str = "",
    ) -> Any:
        """Issue one HTTP call and return the decoded JSON body.

        Non-2xx responses and transport failures are translated; a 2xx body
        that is not JSON is an ``UpstreamError``.
        """
        try:
            async with self._http() as http:
                response = await http.request(method, url, json=json, headers=headers)
        except httpx.TransportError as exc:
            logger.error("Error calling %s at %s: %s", self.label, url, exc)
            raise transport_error(self.provider, url, exc) from exc

        if response.is_error:
            message = response_error_message(response)
            logger.error("%s API error (%s): %s", self.label, response.status_code, message)
            raise self._translate_status(response.status_code, message, url, model)

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"{self.label} returned a non-JSON body. URL: {url}",
                status_code=response.status_code,
                provider=self.provider.value,
                url=url,
            ) from exc

    def _translate_status(self, status_code: int, message: str, url: str, model: str) -> ProviderError:
        return translate_status_error(
            provider=self.provider, status_code=status_code, message=message, url=url, model=model
        )


def join_url(base_url: str, path: str) -> str:
    """Append ``path`` to ``base_url`` without doubling slashes."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def model_entries(data: Any) -> list[dict[str, Any]]:
    """The dict items of a ``{"models": [...]}`` envelope; [] for anything else."""
    models = data.get("models") if isinstance(data, dict) else None
    if not isinstance(models, list):
        return []
    return [m for m in models if isinstance(m, dict)]


def format_model_summary(models: list[str], limit: int = 3) -> str:
    """``"a, b, c..."`` style preview of a model list."""
    preview = ", ".join(models[:limit])
    return preview + ("..." if len(models) > limit else "")
