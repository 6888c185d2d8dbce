"""YAML settings file: load, save and environment overrides for AiSettings."""

import os
from collections.abc import Mapping
from pathlib import Path

import yaml

from codefeedback.errors import ConfigurationError
from codefeedback.schemas.settings import AiSettings, ProviderType

DEFAULT_SETTINGS_PATH = Path("codefeedback.yml")

PROVIDER_ENV = "CODEFEEDBACK_PROVIDER"
API_KEY_ENV = "CODEFEEDBACK_API_KEY"
# Consulted for Gemini when no explicit key is configured.
GEMINI_KEY_FALLBACK_ENVS = ("GEMINI_API_KEY", "API_KEY")


def load_settings(path: str | Path) -> AiSettings:
    """Load and validate a settings file.

    Raises ``FileNotFoundError`` if the path doesn't exist, ``ValueError`` if
    the document is not a mapping and ``pydantic.ValidationError`` if a value
    is invalid (for example an unknown provider).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file must be a YAML mapping, got {type(raw).__name__}")

    # Keys left blank in YAML load as None; fall back to the defaults for those.
    return AiSettings(**{key: value for key, value in raw.items() if value is not None})


def save_settings(settings: AiSettings, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(settings.model_dump(mode="json"), sort_keys=False))
    return path


def settings_from_env(
    base: AiSettings | None = None, environ: Mapping[str, str] | None = None
) -> AiSettings:
    """Overlay provider and API key from the environment onto ``base``.

    ``CODEFEEDBACK_PROVIDER`` selects the provider and ``CODEFEEDBACK_API_KEY``
    sets the key. For Gemini with no key configured, ``GEMINI_API_KEY`` and
    then ``API_KEY`` are tried.
    """
    env = os.environ if environ is None else environ
    settings = base or AiSettings()
    updates: dict[str, object] = {}

    provider = env.get(PROVIDER_ENV, "").strip()
    if provider:
        try:
            updates["provider"] = ProviderType(provider)
        except ValueError:
            choices = ", ".join(p.value for p in ProviderType)
            raise ConfigurationError(
                f"Unsupported AI provider in {PROVIDER_ENV}: {provider!r} (choose one of: {choices})",
                field="provider",
            ) from None

    api_key = env.get(API_KEY_ENV, "").strip()
    if api_key:
        updates["api_key"] = api_key
    elif not settings.api_key and updates.get("provider", settings.provider) is ProviderType.GEMINI:
        for name in GEMINI_KEY_FALLBACK_ENVS:
            if env.get(name):
                updates["api_key"] = env[name]
                break

    if not updates:
        return settings
    return AiSettings.model_validate({**settings.model_dump(), **updates})


def resolve_settings(path: str | Path | None = None) -> AiSettings:
    """Settings file (when present) plus environment overrides.

    An explicitly given path must exist; the default path is optional.
    """
    if path is not None:
        return settings_from_env(load_settings(path))
    if DEFAULT_SETTINGS_PATH.exists():
        return settings_from_env(load_settings(DEFAULT_SETTINGS_PATH))
    return settings_from_env()
