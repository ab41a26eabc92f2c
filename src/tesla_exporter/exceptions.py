"""Custom exception hierarchy for tesla_exporter."""

from __future__ import annotations


class TeslaError(Exception):
    """Base exception for all tesla_exporter errors."""


class TeslaConfigError(TeslaError):
    """Invalid or missing configuration."""


class TeslaApiError(TeslaError):
    """REST call failed or returned a body that cannot be interpreted."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        super().__init__(message)


class TeslaTransportError(TeslaApiError):
    """HTTP-level failure (network, timeout, non-2xx status)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        super().__init__(message, code="" if status_code is None else str(status_code), endpoint=endpoint)

    @property
    def retryable(self) -> bool:
        """Whether the failure is transient and worth another attempt.

        Network failures carry no status code.  ``408`` is what the owner
        API answers while a vehicle is still waking up.
        """
        if self.status_code is None:
            return True
        return self.status_code in (408, 429) or self.status_code >= 500


class TeslaAuthenticationError(TeslaApiError):
    """Refresh-token exchange failed or returned no usable access token."""


class TeslaParseError(TeslaError):
    """A streaming message could not be decoded.

    Raised for malformed JSON envelopes and for update values whose field
    count does not match the subscribed schema.  The streaming read loop
    skips such messages instead of failing the probe.
    """


class TeslaStreamingError(TeslaError):
    """Streaming session ended without producing a sample."""

    def __init__(self, message: str, *, error_type: str = "") -> None:
        self.error_type = error_type
        super().__init__(message)


class TeslaStreamingTimeoutError(TeslaStreamingError, TimeoutError):
    """No valid update arrived before the probe deadline."""
