"""Exception types raised by httpmeta.

Malformed-but-tolerable input (bad cookie pairs, unknown forwarded actors,
invalid port digits, unknown charsets inside a Content-Type header) is never
raised — it is skipped. The classes below cover the conditions that ARE
surfaced to the immediate caller.
"""

from __future__ import annotations

from typing import Optional


class HttpMetaError(Exception):
    """Base class for all httpmeta errors."""


class IllegalStateError(HttpMetaError, RuntimeError):
    """Raised when an operation is not allowed in the object's current state.

    Examples: switching between byte-stream and reader access on a request,
    obtaining a response writer after the output stream, mutating a response
    after it has been committed.
    """


class UnsupportedEncodingError(HttpMetaError, LookupError):
    """Raised when an explicit request charset override names an unknown charset."""

    def __init__(self, charset: str) -> None:
        super().__init__(f"Not sure how to handle character encoding '{charset}'")
        self.charset = charset


class ConfigurationError(HttpMetaError, ValueError):
    """Raised when configuration is invalid at build or load time."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


class BadHeaderValueError(HttpMetaError, ValueError):
    """Raised when a header value cannot be converted to the requested type.

    Carries the header name and raw value for diagnostics.
    """

    def __init__(self, name: Optional[str], value: str, kind: str = "a date") -> None:
        super().__init__(
            f"Header with name '{name}' and value '{value}' cannot be converted to {kind}"
        )
        self.name = name
        self.value = value
