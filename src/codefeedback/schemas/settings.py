"""AI provider settings, an immutable snapshot threaded into every call."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ProviderType(str, Enum):
    """The closed set of supported AI backends."""

    GEMINI = "gemini"
    OPENAI = "openai"
    GROQ = "groq"
    OLLAMA = "ollama"
    LM_STUDIO = "lm_studio"
    LOCAL_OPENAI_API = "local_openai_api"

    @property
    def label(self) -> str:
        return PROVIDER_LABELS[self]

    @property
    def is_local(self) -> bool:
        return self in (ProviderType.OLLAMA, ProviderType.LM_STUDIO, ProviderType.LOCAL_OPENAI_API)


PROVIDER_LABELS: dict[ProviderType, str] = {
    ProviderType.GEMINI: "Google Gemini",
    ProviderType.OPENAI: "OpenAI (GPT)",
    ProviderType.GROQ: "Groq (Llama, etc.)",
    ProviderType.OLLAMA: "Ollama (Local)",
    ProviderType.LM_STUDIO: "LM Studio (Local)",
    ProviderType.LOCAL_OPENAI_API: "Other Local AI (OpenAI API)",
}

OPENAI_MODELS = ["gpt-4o", "gpt-4-turbo", "gpt-4-turbo-preview", "gpt-4", "gpt-3.5-turbo"]
GROQ_MODELS = ["llama3-70b-8192", "llama3-8b-8192", "mixtral-8x7b-32768", "gemma-7b-it"]


class AiSettings(BaseModel):
    """Which backend to use and everything needed to reach it.

    ``api_key`` is shared by the cloud providers and the generic local
    OpenAI-compatible server; LM Studio has its own optional key.
    """

    model_config = ConfigDict(frozen=True)

    provider: ProviderType = ProviderType.GEMINI
    api_key: str = ""

    # Gemini
    gemini_model: str = "gemini-2.5-flash"

    # OpenAI
    openai_model: str = "gpt-4o"

    # Groq
    groq_model: str = "llama3-8b-8192"

    # Generic local OpenAI-compatible API
    local_api_url: str = "http://localhost:1234/v1"
    local_model_name: str = ""

    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    ollama_model_name: str = ""  # e.g. "llama3:latest" or "codellama:7b"

    # LM Studio
    lm_studio_base_url: str = "http://localhost:1234/v1"
    lm_studio_model_name: str = ""
    lm_studio_api_key: str = ""  # usually not required
