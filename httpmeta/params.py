"""Query-string and form-body parameter extraction.

ParameterExtractor owns three one-way latches for a single request:

  read_mode            UNSPECIFIED → BYTE_STREAM | CHAR_READER on first body access
  parameters_accessed  set by any parameter accessor; locks the request charset
  body_consumed        set when form parameters are decoded from the body

Whichever of "body stream" and "form parameters" touches the body first wins it:
  - stream/reader first → form extraction later yields nothing
  - form parameters first → the stream/reader later sees an empty body
Query parameters never touch the body.

Form parameters are only decoded for a Content-Type of exactly
``application/x-www-form-urlencoded`` (case-insensitive, surrounding
whitespace ignored). A Content-Type with parameters, e.g. a trailing
``; charset=...``, is not eligible.
"""

from __future__ import annotations

import enum
from typing import Callable, Optional
from urllib.parse import parse_qsl

from httpmeta.constants import FORM_URLENCODED
from httpmeta.errors import IllegalStateError
from httpmeta.utils.logger import get_logger

logger = get_logger(__name__)

ParameterTable = dict[str, list[str]]


class RequestReadMode(enum.Enum):
    """How the request body has been accessed so far."""

    UNSPECIFIED = "unspecified"
    BYTE_STREAM = "byte_stream"
    CHAR_READER = "char_reader"


def decode_form_urlencoded(text: Optional[str], charset: str) -> list[tuple[str, str]]:
    """Decode ``application/x-www-form-urlencoded`` text into ordered pairs.

    ``+`` decodes to a space; blank values are kept; undecodable octets become
    U+FFFD rather than raising.
    """
    if not text:
        return []
    return parse_qsl(text, keep_blank_values=True, encoding=charset, errors="replace")


def is_form_content_type(content_type: Optional[str]) -> bool:
    """True only for the bare ``application/x-www-form-urlencoded`` media type."""
    if content_type is None:
        return False
    return content_type.strip().lower() == FORM_URLENCODED


class ParameterExtractor:
    """Lazily builds and caches the merged parameter table of one request.

    Args:
        query_string: Raw query string without the leading ``?`` (or None).
        content_type: Raw Content-Type header value (or None).
        body:         Raw request body bytes.
        charset:      Callable returning the request's current effective charset.
                      Called at table build time so late overrides are honored.

    Not thread-safe.
    """

    def __init__(
        self,
        query_string: Optional[str],
        content_type: Optional[str],
        body: bytes,
        charset: Callable[[], str],
    ) -> None:
        self._query_string = query_string
        self._content_type = content_type
        self._body = body
        self._charset = charset

        self._read_mode = RequestReadMode.UNSPECIFIED
        self._parameters_accessed = False
        self._body_consumed = False
        self._table: Optional[ParameterTable] = None

    # ── Latches ───────────────────────────────────────────────────────────────

    @property
    def read_mode(self) -> RequestReadMode:
        return self._read_mode

    @property
    def parameters_accessed(self) -> bool:
        return self._parameters_accessed

    @property
    def body_consumed(self) -> bool:
        return self._body_consumed

    def enter_read_mode(self, mode: RequestReadMode) -> None:
        """Record direct body access in ``mode``.

        Raises:
            IllegalStateError: If the body was already accessed in the other mode.
        """
        if mode is RequestReadMode.UNSPECIFIED:
            raise ValueError("Cannot enter UNSPECIFIED read mode")
        if self._read_mode is RequestReadMode.UNSPECIFIED:
            self._read_mode = mode
            return
        if self._read_mode is not mode:
            if mode is RequestReadMode.BYTE_STREAM:
                raise IllegalStateError("get_reader() has already been called for this request")
            raise IllegalStateError("get_input_stream() has already been called for this request")

    def body_for_stream(self) -> bytes:
        """Bytes visible to the input stream / reader: empty once form-consumed."""
        return b"" if self._body_consumed else self._body

    def invalidate(self) -> None:
        """Drop the cached table (charset changed before any parameter access)."""
        if self._parameters_accessed:
            return
        self._table = None

    # ── Table construction ────────────────────────────────────────────────────

    def _form_eligible(self) -> bool:
        return (
            is_form_content_type(self._content_type)
            and self._read_mode is RequestReadMode.UNSPECIFIED
            and not self._body_consumed
        )

    def _build(self) -> ParameterTable:
        charset = self._charset()
        table: ParameterTable = {}

        for name, value in decode_form_urlencoded(self._query_string, charset):
            table.setdefault(name, []).append(value)

        if self._form_eligible():
            self._body_consumed = True
            body_text = self._body.decode(charset, errors="replace")
            for name, value in decode_form_urlencoded(body_text, charset):
                table.setdefault(name, []).append(value)
        elif is_form_content_type(self._content_type):
            logger.debug(
                "Skipping form parameters: body already accessed directly",
                read_mode=self._read_mode.value,
            )

        return table

    def _parameters(self) -> ParameterTable:
        self._parameters_accessed = True
        if self._table is None:
            self._table = self._build()
        return self._table

    # ── Public accessors ──────────────────────────────────────────────────────

    def get_parameter(self, name: str) -> Optional[str]:
        """First value for ``name`` (query before form), or None."""
        values = self._parameters().get(name)
        return values[0] if values else None

    def get_parameter_values(self, name: str) -> Optional[list[str]]:
        values = self._parameters().get(name)
        return list(values) if values is not None else None

    def get_parameter_names(self) -> list[str]:
        return list(self._parameters())

    def get_parameter_map(self) -> ParameterTable:
        """Copy of the merged table; repeated calls return equal results."""
        return {name: list(values) for name, values in self._parameters().items()}
