"""Custom exception hierarchy for chromaFM.

All application exceptions inherit from :class:`ChromaFMError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "spotify", "image_cdn") caused the failure.

The hierarchy follows the three failure classes of the engine:

    ChromaFMError  (base -- catch-all for any chromaFM error)
    +-- ProviderUnavailableError (upstream-unavailable: catalog down / bad status)
    |   +-- RateLimitError       (429 still returned after the single retry)
    |   +-- AuthenticationError  (missing or rejected access token)
    +-- ImageFetchError          (cover image not fetchable)
    +-- ImageDecodeError         (cover image bytes not decodable)
    +-- ConfigurationError       (startup / missing config)
    +-- PipelineError            (orchestration failures)

A bucket left empty after every backfill stage is *not* an error; it is
represented as ``top: None`` in the result.
"""


class ChromaFMError(Exception):
    """Base exception for all chromaFM errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[spotify] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Upstream catalog errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(ChromaFMError):
    """Raised when the catalog service is unreachable or answers with an error."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self.status_code = status_code


class RateLimitError(ProviderUnavailableError):
    """Raised when a lookup is still rate limited after the backoff retry."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        status_code: int | None = 429,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, status_code=status_code)


class AuthenticationError(ProviderUnavailableError):
    """Raised when no access token is available or the catalog rejects it."""

    def __init__(
        self,
        message: str = "Not logged in",
        provider_name: str | None = None,
        status_code: int | None = 401,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, status_code=status_code)


# ---------------------------------------------------------------------------
# Cover image errors
# ---------------------------------------------------------------------------

class ImageFetchError(ChromaFMError):
    """Raised when a cover image URL answers with a non-success status."""

    def __init__(
        self,
        message: str = "Cover image could not be fetched",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ImageDecodeError(ChromaFMError):
    """Raised when cover image bytes cannot be decoded by Pillow."""

    def __init__(
        self,
        message: str = "Cover image could not be decoded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(ChromaFMError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(ChromaFMError):
    """Raised when pipeline orchestration fails."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
