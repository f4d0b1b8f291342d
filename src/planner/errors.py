"""Errors raised while generating an itinerary."""


class GenerationError(Exception):
    """Base class. ``status_code`` is the HTTP status the API answers with."""

    status_code: int = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or message


class ConfigurationError(GenerationError):
    """The model credential or another required setting is missing."""


class InvalidRequestError(GenerationError):
    """Required request fields are missing."""

    status_code = 400


class SecurityRejection(GenerationError):
    """Free-text fields contain potentially unsafe content."""

    status_code = 400


class UpstreamError(GenerationError):
    """The generative model call failed or returned no usable candidate."""


class ParseError(GenerationError):
    """The model response does not contain the expected JSON."""
