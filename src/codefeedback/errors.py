"""Error taxonomy shared by providers, origins, the parser and the scanner."""

from __future__ import annotations


class CodeFeedbackError(Exception):
    """Base exception for every failure surfaced by the package."""


class ConfigurationError(CodeFeedbackError):
    """A required setting (key, base URL, model name) is missing or invalid.

    Raised before any network call is attempted. ``field`` names the
    offending ``AiSettings`` attribute when there is one.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ProviderError(CodeFeedbackError):
    """Base class for failures reported by (or on the way to) an AI backend."""

    def __init__(self, message: str, *, provider: str = "", url: str = "") -> None:
        super().__init__(message)
        self.provider = provider
        self.url = url


class AuthenticationError(ProviderError):
    """The backend rejected the credential (HTTP 401 or equivalent)."""


class RateLimitError(ProviderError):
    """The backend throttled the request (HTTP 429) or the quota is exhausted."""


class ModelNotFoundError(ProviderError):
    """The configured model does not exist or is not available to the key."""


class UpstreamError(ProviderError):
    """Any other non-2xx response, carrying the upstream status and message."""

    def __init__(
        self, message: str, *, status_code: int, provider: str = "", url: str = ""
    ) -> None:
        super().__init__(message, provider=provider, url=url)
        self.status_code = status_code


class TransportError(ProviderError):
    """Connection refused, DNS failure, TLS or CORS style rejection."""


class OriginError(CodeFeedbackError):
    """A code origin (GitHub, Cloud Storage, Drive) could not serve a listing or file."""

    def __init__(self, message: str, *, status_code: int | None = None, url: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class SizeLimitExceeded(CodeFeedbackError):
    """A file or response body is larger than the configured ceiling."""

    def __init__(self, message: str, *, size: int | None = None, limit: int | None = None) -> None:
        super().__init__(message)
        self.size = size
        self.limit = limit


class MalformedResponseError(CodeFeedbackError):
    """The model reply contained neither an explanation nor a code block."""


class ScanPartialFailureWarning(UserWarning):
    """A repository subtree could not be listed and was skipped.

    Collected on ``RepositoryScanner.warnings``; never raised.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Skipped '{path or '/'}': {reason}")
        self.path = path
        self.reason = reason
