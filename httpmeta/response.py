"""NormalizedResponse — response builder with servlet-style commit semantics.

Lifecycle:
  1. Mutable: status, headers, cookies, content type, charset, locale.
  2. Body writes go to a buffer through exactly one of get_output_stream()
     (bytes) or get_writer() (text). The first writer acquisition or byte write
     freezes the charset.
  3. The response commits when the buffer reaches buffer_size, on
     flush_buffer(), or on send_redirect() / send_error(). After commit,
     header/status mutators raise IllegalStateError and content-type changes
     are ignored; body writes keep appending.
  4. to_marshaled() renders status, headers (Content-Type, Set-Cookie included)
     and body for the transport.

Not thread-safe — one instance per response.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from http import HTTPStatus
from typing import TYPE_CHECKING, Optional

from starlette.datastructures import Headers, MutableHeaders

from httpmeta.charset import ResponseCharset
from httpmeta.constants import (
    DEFAULT_SCHEME,
    DEFAULT_SERVER_NAME,
    FALLBACK_CHARSET,
    HEADER_CONTENT_LANGUAGE,
    HEADER_CONTENT_LENGTH,
    HEADER_CONTENT_TYPE,
    HEADER_LOCATION,
    HEADER_SET_COOKIE,
    STATUS_FOUND,
    STATUS_OK,
)
from httpmeta.context import ServerContext
from httpmeta.dates import format_http_date
from httpmeta.errors import IllegalStateError
from httpmeta.headers.cookies import ResponseCookie
from httpmeta.headers.multimap import build_headers, build_mutable_headers, ensure_header_text
from httpmeta.redirect import resolve_redirect_location
from httpmeta.streams import ResponseOutputStream, ResponseWriter
from httpmeta.utils.logger import get_logger
from httpmeta.utils.ulid import generate_ulid

if TYPE_CHECKING:
    from httpmeta.request import NormalizedRequest

_CONTENT_TYPE_KEY = HEADER_CONTENT_TYPE.lower()

_ERROR_CONTENT_TYPE = f"text/plain; charset={FALLBACK_CHARSET}"


class ResponseWriteMode(enum.Enum):
    """Which body sink the response handed out."""

    NONE = "none"
    OUTPUT_STREAM = "output_stream"
    WRITER = "writer"


@dataclass(frozen=True)
class MarshaledResponse:
    """Transport-ready response: status, header multimap, body bytes."""

    status_code: int
    headers: Headers
    body: bytes


def reason_phrase(status: int) -> str:
    """Standard reason phrase for ``status``, or an empty string."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


class NormalizedResponse:
    """Response state for one request.

    Args:
        origin_scheme: Scheme used to make redirect targets absolute.
        origin_host:   Host used to make redirect targets absolute.
        origin_port:   Port used to make redirect targets absolute.
        raw_path:      Raw path of the request being answered.
        context:       Shared server context (a default one when omitted).
        request_id:    Correlation id for log entries.
    """

    def __init__(
        self,
        origin_scheme: str = DEFAULT_SCHEME,
        origin_host: str = DEFAULT_SERVER_NAME,
        origin_port: Optional[int] = None,
        raw_path: str = "/",
        context: Optional[ServerContext] = None,
        request_id: Optional[str] = None,
    ) -> None:
        self.origin_scheme = origin_scheme
        self.origin_host = origin_host
        self.origin_port = origin_port
        self.raw_path = raw_path
        self.context = context if context is not None else ServerContext.with_defaults()
        snapshot = self.context.snapshot()
        self.request_id = request_id or generate_ulid()
        self.logger = get_logger(__name__, request_id=self.request_id)

        self._status = STATUS_OK
        self._status_explicit = False
        self._headers: MutableHeaders = build_mutable_headers()
        self._cookies: list[ResponseCookie] = []
        self._charset = ResponseCharset(snapshot.response_charset)
        self._locale: Optional[str] = None

        self._buffer_size = snapshot.response_buffer_size
        self._buffer = bytearray()
        self._content = bytearray()
        self._committed = False

        self._write_mode = ResponseWriteMode.NONE
        self._output_stream: Optional[ResponseOutputStream] = None
        self._writer: Optional[ResponseWriter] = None

    @classmethod
    def for_request(cls, request: "NormalizedRequest") -> "NormalizedResponse":
        """Response answering ``request``; redirects resolve against its URL."""
        return cls(
            origin_scheme=request.scheme,
            origin_host=request.server_name,
            origin_port=request.server_port,
            raw_path=request.path,
            context=request.context,
            request_id=request.request_id,
        )

    @classmethod
    def for_raw_path(cls, raw_path: str, context: Optional[ServerContext] = None) -> "NormalizedResponse":
        """Response without a request; redirects resolve against ``http://localhost``."""
        return cls(raw_path=raw_path, context=context)

    def __repr__(self) -> str:
        return f"<NormalizedResponse {self._status} committed={self._committed}>"

    # ─── Commit state ─────────────────────────────────────────────────────────

    @property
    def is_committed(self) -> bool:
        return self._committed

    def _check_not_committed(self, operation: str) -> None:
        if self._committed:
            raise IllegalStateError(f"Cannot call {operation}() after the response has been committed")

    def _commit(self) -> None:
        self._content += self._buffer
        self._buffer.clear()
        self._committed = True

    # ─── Status ───────────────────────────────────────────────────────────────

    @property
    def status(self) -> int:
        return self._status

    def set_status(self, status: int) -> None:
        self._check_not_committed("set_status")
        self._status = status
        self._status_explicit = True

    # ─── Headers ──────────────────────────────────────────────────────────────

    def set_header(self, name: str, value: Optional[str]) -> None:
        """Replace all values of ``name``; a None value removes the header.

        Content-Type is routed through the charset negotiator.

        Raises:
            ValueError:        If name or value has characters outside latin-1.
            IllegalStateError: If the response is already committed.
        """
        self._check_not_committed("set_header")
        if value is not None:
            ensure_header_text(name, value)
        if name.lower() == _CONTENT_TYPE_KEY:
            self._charset.set_content_type(value)
            return
        if value is None:
            if name in self._headers:
                del self._headers[name]
            return
        self._headers[name] = value

    def add_header(self, name: str, value: str) -> None:
        """Append a value for ``name`` (Content-Type is single-valued and replaced).

        Raises:
            ValueError: If name or value has characters outside latin-1.
        """
        self._check_not_committed("add_header")
        ensure_header_text(name, value)
        if name.lower() == _CONTENT_TYPE_KEY:
            self._charset.set_content_type(value)
            return
        self._headers.append(name, value)

    def set_int_header(self, name: str, value: int) -> None:
        self.set_header(name, str(value))

    def add_int_header(self, name: str, value: int) -> None:
        self.add_header(name, str(value))

    def set_date_header(self, name: str, epoch_millis: int) -> None:
        self.set_header(name, format_http_date(epoch_millis))

    def add_date_header(self, name: str, epoch_millis: int) -> None:
        self.add_header(name, format_http_date(epoch_millis))

    def contains_header(self, name: str) -> bool:
        if name.lower() == _CONTENT_TYPE_KEY:
            return self._charset.content_type is not None
        return name in self._headers

    def get_header(self, name: str) -> Optional[str]:
        if name.lower() == _CONTENT_TYPE_KEY:
            return self._charset.content_type
        return self._headers.get(name)

    def get_headers(self, name: str) -> list[str]:
        if name.lower() == _CONTENT_TYPE_KEY:
            content_type = self._charset.content_type
            return [content_type] if content_type is not None else []
        return self._headers.getlist(name)

    @property
    def header_names(self) -> list[str]:
        names = list(dict.fromkeys(self._headers.keys()))
        if self._charset.content_type is not None:
            names.append(_CONTENT_TYPE_KEY)
        return names

    def set_content_length(self, length: int) -> None:
        self.set_header(HEADER_CONTENT_LENGTH, str(length))

    def add_cookie(self, cookie: ResponseCookie) -> None:
        self._check_not_committed("add_cookie")
        ensure_header_text(HEADER_SET_COOKIE, cookie.to_header_value())
        self._cookies.append(cookie)

    @property
    def cookies(self) -> list[ResponseCookie]:
        return list(self._cookies)

    # ─── Content type, charset and locale ─────────────────────────────────────

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type header value, charset parameter kept in sync."""
        return self._charset.content_type

    def set_content_type(self, content_type: Optional[str]) -> None:
        """Set the content type. Ignored after commit."""
        if self._committed:
            self.logger.debug("Ignoring content type change after commit", content_type=content_type)
            return
        if content_type is not None:
            ensure_header_text(HEADER_CONTENT_TYPE, content_type)
        self._charset.set_content_type(content_type)

    @property
    def character_encoding(self) -> str:
        return self._charset.character_encoding

    def set_character_encoding(self, name: Optional[str]) -> None:
        """Choose the response charset.

        Ignored after commit, after the writer was obtained, or for unknown names.
        """
        if self._committed:
            self.logger.debug("Ignoring charset change after commit", charset=name)
            return
        self._charset.set_charset(name)

    @property
    def locale(self) -> Optional[str]:
        return self._locale

    def set_locale(self, locale: Optional[str]) -> None:
        """Set the response locale (BCP 47 tag, e.g. ``en-US``) as Content-Language.

        Also adopts the context default response charset when none was chosen.
        """
        self._check_not_committed("set_locale")
        if locale is None:
            self._locale = None
            if HEADER_CONTENT_LANGUAGE in self._headers:
                del self._headers[HEADER_CONTENT_LANGUAGE]
            return
        self._locale = ensure_header_text(HEADER_CONTENT_LANGUAGE, locale.strip().replace("_", "-"))
        self._headers[HEADER_CONTENT_LANGUAGE] = self._locale
        self._charset.apply_default_if_unset()

    # ─── Body ─────────────────────────────────────────────────────────────────

    @property
    def write_mode(self) -> ResponseWriteMode:
        return self._write_mode

    def get_output_stream(self) -> ResponseOutputStream:
        """The binary body sink (the same object on every call).

        Raises:
            IllegalStateError: If get_writer() was called first.
        """
        if self._write_mode is ResponseWriteMode.WRITER:
            raise IllegalStateError("get_writer() has already been called for this response")
        if self._output_stream is None:
            self._output_stream = ResponseOutputStream(self)
            self._write_mode = ResponseWriteMode.OUTPUT_STREAM
        return self._output_stream

    def get_writer(self) -> ResponseWriter:
        """The text body sink (the same object on every call). Freezes the charset.

        Raises:
            IllegalStateError: If get_output_stream() was called first.
        """
        if self._write_mode is ResponseWriteMode.OUTPUT_STREAM:
            raise IllegalStateError("get_output_stream() has already been called for this response")
        if self._writer is None:
            charset = self._charset.freeze()
            self._writer = ResponseWriter(self, charset)
            self._write_mode = ResponseWriteMode.WRITER
        return self._writer

    def write_body(self, data: bytes) -> None:
        """Append body bytes; commits once the buffer reaches buffer_size."""
        self._charset.freeze()
        self._buffer += data
        if len(self._buffer) >= self._buffer_size:
            self._commit()

    def flush_buffer(self) -> None:
        """Commit the response. Repeatable."""
        self._commit()

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    def set_buffer_size(self, size: int) -> None:
        """Change the buffer size.

        Raises:
            ValueError:        If ``size`` is not positive.
            IllegalStateError: If content was written or the response committed.
        """
        if size <= 0:
            raise ValueError(f"Buffer size must be positive, got {size}")
        if self._committed or self._buffer or self._content:
            raise IllegalStateError("Cannot change the buffer size after content has been written")
        self._buffer_size = size

    def reset_buffer(self) -> None:
        """Discard uncommitted body bytes; headers and status are kept."""
        self._check_not_committed("reset_buffer")
        self._buffer.clear()

    def reset(self) -> None:
        """Discard body, status, headers, cookies, charset state and write mode."""
        self._check_not_committed("reset")
        self._buffer.clear()
        self._status = STATUS_OK
        self._status_explicit = False
        self._headers = build_mutable_headers()
        self._cookies = []
        self._charset.reset()
        self._locale = None
        self._release_sinks()

    def _release_sinks(self) -> None:
        for sink in (self._output_stream, self._writer):
            if sink is not None:
                sink.detach_sink()
        self._output_stream = None
        self._writer = None
        self._write_mode = ResponseWriteMode.NONE

    # ─── Redirects and errors ─────────────────────────────────────────────────

    def send_redirect(self, target: Optional[str]) -> None:
        """Set Location for ``target`` and commit.

        The status becomes 302 unless a 3xx status was set explicitly.

        Raises:
            ValueError:        If ``target`` is None, or an absolute target has
                               characters outside latin-1 (nothing is changed).
            IllegalStateError: If the response is already committed.
        """
        location = resolve_redirect_location(
            target,
            self.origin_scheme,
            self.origin_host,
            self.origin_port,
            self.raw_path,
        )
        self._check_not_committed("send_redirect")
        ensure_header_text(HEADER_LOCATION, location)
        self._buffer.clear()
        self._headers[HEADER_LOCATION] = location
        if not (self._status_explicit and 300 <= self._status < 400):
            self._status = STATUS_FOUND
        self.logger.debug("Redirect sent", status=self._status, location=location)
        self._commit()

    def send_error(self, status: int, message: Optional[str] = None) -> None:
        """Replace the body with a plain-text error page and commit.

        The body is ``message`` (or the standard reason phrase) in ISO-8859-1.

        Raises:
            IllegalStateError: If the response is already committed.
        """
        self._check_not_committed("send_error")
        self._buffer.clear()
        self._release_sinks()
        self._status = status
        self._status_explicit = True
        self._charset.reset()
        self._charset.set_content_type(_ERROR_CONTENT_TYPE)
        self._charset.freeze()
        text = message if message is not None else reason_phrase(status)
        self._buffer += text.encode(FALLBACK_CHARSET, errors="replace")
        self.logger.debug("Error sent", status=status)
        self._commit()

    # ─── Marshaling ───────────────────────────────────────────────────────────

    @property
    def body(self) -> bytes:
        """Everything written so far, committed or not."""
        return bytes(self._content + self._buffer)

    def to_marshaled(self) -> MarshaledResponse:
        """Render status, headers and body for the transport."""
        pairs: list[tuple[str, str]] = list(self._headers.items())
        content_type = self._charset.content_type
        if content_type is not None:
            pairs.append((HEADER_CONTENT_TYPE, content_type))
        pairs.extend((HEADER_SET_COOKIE, cookie.to_header_value()) for cookie in self._cookies)
        return MarshaledResponse(
            status_code=self._status,
            headers=build_headers(pairs),
            body=self.body,
        )
