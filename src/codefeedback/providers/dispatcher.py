"""Route a request to the client for ``settings.provider``."""

from __future__ import annotations

import logging

import httpx

from codefeedback.errors import ConfigurationError
from codefeedback.providers.base import ProviderClient
from codefeedback.providers.gemini import GeminiClient
from codefeedback.providers.ollama import OllamaClient
from codefeedback.providers.openai_compat import (
    GroqClient,
    LMStudioClient,
    LocalOpenAIClient,
    OpenAIClient,
)
from codefeedback.schemas.analysis import AnalysisAction, TestConnectionResult
from codefeedback.schemas.settings import AiSettings, ProviderType

logger = logging.getLogger(__name__)


def client_for(settings: AiSettings, *, http_client: httpx.AsyncClient | None = None) -> ProviderClient:
    """Instantiate the client for ``settings.provider``.

    Unknown provider values fail fast with ``ConfigurationError``.
    """
    match settings.provider:
        case ProviderType.GEMINI:
            cls: type[ProviderClient] = GeminiClient
        case ProviderType.OPENAI:
            cls = OpenAIClient
        case ProviderType.GROQ:
            cls = GroqClient
        case ProviderType.OLLAMA:
            cls = OllamaClient
        case ProviderType.LM_STUDIO:
            cls = LMStudioClient
        case ProviderType.LOCAL_OPENAI_API:
            cls = LocalOpenAIClient
        case other:
            raise ConfigurationError(f"Unsupported AI provider: {other!r}", field="provider")
    return cls(settings, http_client=http_client)


async def dispatch(
    content: str,
    language: str,
    action: AnalysisAction,
    settings: AiSettings,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """Send ``content`` to the configured provider and return the raw reply text.

    Missing settings raise ``ConfigurationError`` before any network call;
    provider failures surface as the ``ProviderError`` subclasses. Nothing is
    retried.
    """
    client = client_for(settings, http_client=http_client)
    logger.info(
        "Requesting %s from %s (%s, %d chars)",
        AnalysisAction(action).label,
        client.label,
        language,
        len(content),
    )
    return await client.generate(content, language, AnalysisAction(action))


async def test_connection(
    settings: AiSettings, *, http_client: httpx.AsyncClient | None = None
) -> TestConnectionResult:
    """Check credentials and reachability of the configured provider.

    Never raises for provider problems; they are reported in the result.
    """
    try:
        client = client_for(settings, http_client=http_client)
    except ConfigurationError as exc:
        return TestConnectionResult(success=False, message=str(exc))
    return await client.test_connection()


async def list_models(
    settings: AiSettings, *, http_client: httpx.AsyncClient | None = None
) -> list[str]:
    """Model identifiers offered by the configured provider.

    For Ollama this reads ``/api/tags``; for the OpenAI-compatible servers
    ``/models``. Used to discover which models a local server has loaded.
    """
    client = client_for(settings, http_client=http_client)
    return await client.list_models()

