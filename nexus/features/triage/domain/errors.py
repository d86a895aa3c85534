"""
Error taxonomy for the triage pipeline.

Every error here is recoverable: it is caught at the operation boundary
(per message, per contact, per group) and recorded in the activity log.
"""


class TriageError(Exception):
    """Base exception for triage pipeline errors."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


class TransportError(TriageError):
    """Network/gateway call failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GatewayPayloadError(TriageError):
    """Gateway answered, but not with the expected list payload."""

    def __init__(self, message: str, payload: object = None):
        super().__init__(message)
        self.payload = payload


class ModelError(TriageError):
    """Language-model call failed or returned an API-level error."""

    def __init__(self, message: str, provider: str | None = None, api_error: str | None = None):
        super().__init__(message)
        self.provider = provider
        self.api_error = api_error


class ParseError(TriageError):
    """Model response was not valid structured output."""

    def __init__(self, message: str, raw: str | None = None):
        super().__init__(message)
        self.raw = raw


class ConfigError(TriageError):
    """A required credential or URL is missing."""
