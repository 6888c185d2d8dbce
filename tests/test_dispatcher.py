"""Tests for provider routing, configuration checks and error translation."""

from __future__ import annotations

import json

import httpx
import pytest

from codefeedback.errors import (
    AuthenticationError,
    ConfigurationError,
    ModelNotFoundError,
    RateLimitError,
    TransportError,
    UpstreamError,
)
from codefeedback.parsing import interpret_response
from codefeedback.providers import dispatcher
from codefeedback.providers.base import error_message_from_body, translate_status_error
from codefeedback.providers.gemini import GeminiClient, extract_gemini_text
from codefeedback.providers.ollama import OllamaClient
from codefeedback.providers.openai_compat import GroqClient, LMStudioClient, LocalOpenAIClient, OpenAIClient
from codefeedback.schemas.analysis import AnalysisAction, ParsedResponse
from codefeedback.schemas.settings import AiSettings, ProviderType

from conftest import RecordingTransport


def _gemini_reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]})


EMPTY_CONFIGS = [
    pytest.param(AiSettings(provider=ProviderType.GEMINI), "api_key", id="gemini"),
    pytest.param(AiSettings(provider=ProviderType.OPENAI), "api_key", id="openai"),
    pytest.param(AiSettings(provider=ProviderType.GROQ), "api_key", id="groq"),
    pytest.param(AiSettings(provider=ProviderType.OLLAMA, ollama_base_url=""), "ollama_base_url", id="ollama"),
    pytest.param(
        AiSettings(provider=ProviderType.LM_STUDIO, lm_studio_base_url=""), "lm_studio_base_url", id="lm_studio"
    ),
    pytest.param(
        AiSettings(provider=ProviderType.LOCAL_OPENAI_API, local_api_url=""), "local_api_url", id="local_openai_api"
    ),
]


class TestClientSelection:
    @pytest.mark.parametrize(
        ("provider", "client_type"),
        [
            (ProviderType.GEMINI, GeminiClient),
            (ProviderType.OPENAI, OpenAIClient),
            (ProviderType.GROQ, GroqClient),
            (ProviderType.OLLAMA, OllamaClient),
            (ProviderType.LM_STUDIO, LMStudioClient),
            (ProviderType.LOCAL_OPENAI_API, LocalOpenAIClient),
        ],
    )
    def test_every_provider_has_a_client(self, provider: ProviderType, client_type: type) -> None:
        client = dispatcher.client_for(AiSettings(provider=provider))
        assert type(client) is client_type
        assert client.provider is provider

    def test_unknown_provider_fails_fast(self) -> None:
        settings = AiSettings.model_construct(provider="anthropic")
        with pytest.raises(ConfigurationError, match="Unsupported AI provider") as exc_info:
            dispatcher.client_for(settings)
        assert exc_info.value.field == "provider"


class TestMissingConfiguration:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(("settings", "field"), EMPTY_CONFIGS)
    async def test_rejected_before_any_network_call(self, settings: AiSettings, field: str) -> None:
        transport = RecordingTransport()
        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(ConfigurationError) as exc_info:
                await dispatcher.dispatch("print(1)", "python", AnalysisAction.REVIEW, settings, http_client=http)

        assert exc_info.value.field == field
        assert field in str(exc_info.value)
        assert transport.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("settings", "field"),
        [
            (AiSettings(provider=ProviderType.GEMINI, api_key="k", gemini_model=""), "gemini_model"),
            (AiSettings(provider=ProviderType.OPENAI, api_key="k", openai_model=" "), "openai_model"),
            (AiSettings(provider=ProviderType.OLLAMA), "ollama_model_name"),
            (AiSettings(provider=ProviderType.LM_STUDIO), "lm_studio_model_name"),
        ],
    )
    async def test_missing_model_name(self, settings: AiSettings, field: str) -> None:
        transport = RecordingTransport()
        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(ConfigurationError) as exc_info:
                await dispatcher.dispatch("x", "python", AnalysisAction.REVIEW, settings, http_client=http)
        assert exc_info.value.field == field
        assert transport.requests == []


class TestGeminiDispatch:
    @pytest.mark.asyncio
    async def test_review_end_to_end(self, gemini_settings: AiSettings) -> None:
        transport = RecordingTransport(lambda request: _gemini_reply("Looks fine."))
        async with httpx.AsyncClient(transport=transport) as http:
            raw = await dispatcher.dispatch(
                "print(1)", "python", AnalysisAction.REVIEW, gemini_settings, http_client=http
            )

        assert len(transport.requests) == 1
        request = transport.requests[0]
        assert request.method == "POST"
        assert request.url.path.endswith("/models/gemini-2.5-flash:generateContent")
        assert request.headers["x-goog-api-key"] == "k"

        body = json.loads(request.content)
        system = body["systemInstruction"]["parts"][0]["text"]
        user = body["contents"][0]["parts"][0]["text"]
        assert system
        assert "python" in user and "print(1)" in user
        assert body["contents"][0]["role"] == "user"

        parsed = interpret_response(raw, "python", AnalysisAction.REVIEW)
        assert parsed == ParsedResponse(explanation="Looks fine.", code=None)

    @pytest.mark.asyncio
    async def test_missing_text_is_empty_string(self, gemini_settings: AiSettings) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(200, json={"candidates": []}))
        async with httpx.AsyncClient(transport=transport) as http:
            raw = await dispatcher.dispatch("x", "python", AnalysisAction.REVIEW, gemini_settings, http_client=http)
        assert raw == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "payload", "error_type"),
        [
            (401, {"error": {"message": "Unauthorized"}}, AuthenticationError),
            (400, {"error": {"message": "API key not valid. Please pass a valid API key."}}, AuthenticationError),
            (403, {"error": {"message": "Permission denied"}}, AuthenticationError),
            (429, {"error": {"message": "Resource exhausted"}}, RateLimitError),
            (404, {"error": {"message": "models/gemini-x is not found"}}, ModelNotFoundError),
            (500, {"error": {"message": "Internal error"}}, UpstreamError),
        ],
    )
    async def test_status_translation(
        self, gemini_settings: AiSettings, status: int, payload: dict, error_type: type
    ) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(status, json=payload))
        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(error_type) as exc_info:
                await dispatcher.dispatch("x", "python", AnalysisAction.REVIEW, gemini_settings, http_client=http)
        assert exc_info.value.provider == "gemini"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_upstream_error_carries_status_and_url(self, gemini_settings: AiSettings) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(503, text="overloaded"))
        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(UpstreamError) as exc_info:
                await dispatcher.dispatch("x", "python", AnalysisAction.REVIEW, gemini_settings, http_client=http)
        assert exc_info.value.status_code == 503
        assert "generateContent" in exc_info.value.url
        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_failure_names_url(self, gemini_settings: AiSettings) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=RecordingTransport(refuse)) as http:
            with pytest.raises(TransportError) as exc_info:
                await dispatcher.dispatch("x", "python", AnalysisAction.REVIEW, gemini_settings, http_client=http)
        assert "generativelanguage.googleapis.com" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_list_models_strips_prefix(self, gemini_settings: AiSettings) -> None:
        payload = {"models": [{"name": "models/gemini-2.5-pro"}, {"name": "models/gemini-2.5-flash"}]}
        transport = RecordingTransport(lambda request: httpx.Response(200, json=payload))
        async with httpx.AsyncClient(transport=transport) as http:
            names = await GeminiClient(gemini_settings, http_client=http).list_models()
        assert names == ["gemini-2.5-flash", "gemini-2.5-pro"]

    def test_extract_text_joins_parts(self) -> None:
        data = {"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}]}}]}
        assert extract_gemini_text(data) == "ab"
        assert extract_gemini_text(None) == ""

    @pytest.mark.parametrize(
        "data",
        [
            {"candidates": ["oops"]},
            {"candidates": {"content": {}}},
            {"candidates": [{"content": "text"}]},
            {"candidates": [{"content": {"parts": "abc"}}]},
            {"candidates": [{"content": {"parts": [{"text": 3}, "x"]}}]},
        ],
    )
    def test_extract_text_odd_envelopes(self, data: dict) -> None:
        assert extract_gemini_text(data) == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"models": "none"}, {"models": ["a", None]}, ["models"]])
    async def test_list_models_odd_envelope(self, gemini_settings: AiSettings, payload: object) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(200, json=payload))
        async with httpx.AsyncClient(transport=transport) as http:
            assert await GeminiClient(gemini_settings, http_client=http).list_models() == []


class TestOllamaDispatch:
    @pytest.mark.asyncio
    async def test_native_chat_envelope(self) -> None:
        settings = AiSettings(provider=ProviderType.OLLAMA, ollama_model_name="codellama:7b")
        transport = RecordingTransport(
            lambda request: httpx.Response(200, json={"message": {"role": "assistant", "content": "Nice."}})
        )
        async with httpx.AsyncClient(transport=transport) as http:
            raw = await dispatcher.dispatch("x = 1", "python", AnalysisAction.INSIGHTS, settings, http_client=http)

        assert raw == "Nice."
        request = transport.requests[0]
        assert str(request.url) == "http://localhost:11434/api/chat"
        body = json.loads(request.content)
        assert body["model"] == "codellama:7b"
        assert body["stream"] is False
        assert [m["role"] for m in body["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_model_not_found(self) -> None:
        settings = AiSettings(provider=ProviderType.OLLAMA, ollama_model_name="nope")
        transport = RecordingTransport(
            lambda request: httpx.Response(404, json={"error": "model 'nope' not found, try pulling it first"})
        )
        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(ModelNotFoundError, match="nope"):
                await dispatcher.dispatch("x", "python", AnalysisAction.REVIEW, settings, http_client=http)

    @pytest.mark.asyncio
    async def test_connection_refused_is_transport_error(self) -> None:
        settings = AiSettings(provider=ProviderType.OLLAMA, ollama_model_name="llama3")

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=RecordingTransport(refuse)) as http:
            with pytest.raises(TransportError) as exc_info:
                await dispatcher.dispatch("x", "python", AnalysisAction.REVIEW, settings, http_client=http)
        assert exc_info.value.url == "http://localhost:11434/api/chat"

    @pytest.mark.asyncio
    async def test_missing_message_is_empty_string(self) -> None:
        settings = AiSettings(provider=ProviderType.OLLAMA, ollama_model_name="llama3")
        transport = RecordingTransport(lambda request: httpx.Response(200, json={"done": True}))
        async with httpx.AsyncClient(transport=transport) as http:
            assert await dispatcher.dispatch("x", "python", AnalysisAction.REVIEW, settings, http_client=http) == ""

    @pytest.mark.asyncio
    async def test_list_models(self) -> None:
        settings = AiSettings(provider=ProviderType.OLLAMA)
        payload = {"models": [{"name": "llama3:latest"}, {"name": "codellama:7b"}]}
        transport = RecordingTransport(lambda request: httpx.Response(200, json=payload))
        async with httpx.AsyncClient(transport=transport) as http:
            names = await dispatcher.list_models(settings, http_client=http)
        assert names == ["codellama:7b", "llama3:latest"]
        assert transport.requests[0].url.path == "/api/tags"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload", [{"models": None}, {"models": "llama3"}, {"models": ["llama3", {"name": 7}]}, [{"name": "x"}]]
    )
    async def test_list_models_odd_envelope(self, payload: object) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(200, json=payload))
        async with httpx.AsyncClient(transport=transport) as http:
            names = await dispatcher.list_models(AiSettings(provider=ProviderType.OLLAMA), http_client=http)
        assert names == []


class TestErrorHelpers:
    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ({"error": {"message": "bad key"}}, "bad key"),
            ({"error": "model not loaded"}, "model not loaded"),
            ({"message": "oops"}, "oops"),
            ({"detail": "Not Found"}, "Not Found"),
            ("plain text ", "plain text"),
            (None, ""),
        ],
    )
    def test_error_message_from_body(self, body: object, expected: str) -> None:
        assert error_message_from_body(body) == expected

    @pytest.mark.parametrize(
        ("status", "message", "error_type"),
        [
            (401, "nope", AuthenticationError),
            (429, "slow", RateLimitError),
            (404, "missing", ModelNotFoundError),
            (400, "The model `gpt-9` does not exist", ModelNotFoundError),
            (400, "bad request", UpstreamError),
            (502, "bad gateway", UpstreamError),
        ],
    )
    def test_translate_status_error(self, status: int, message: str, error_type: type) -> None:
        error = translate_status_error(
            provider=ProviderType.GROQ, status_code=status, message=message, url="https://x/y", model="m"
        )
        assert type(error) is error_type
        assert error.url == "https://x/y"
