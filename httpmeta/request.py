"""NormalizedRequest — canonical metadata view over one raw HTTP request.

Construction takes plain, fully materialized data (method, raw path, raw query
string, header multimap, body bytes, transport peer address) plus the shared
ServerContext. Every derived value is computed on first access and memoized.

Resolution rules:
  scheme       trusted forwarded proto → transport scheme (``http`` by default)
  server_name  trusted forwarded host → Host header → context server name → ``localhost``
  server_port  explicit port of the chosen host → context port → scheme default
  remote_addr  trusted forwarded client → transport peer address
  locale       first usable Accept-Language tag → ``en-US``

Not thread-safe — one instance per request, owned by one handler.
"""

from __future__ import annotations

import io
from functools import cached_property
from typing import Any, Optional

from starlette.datastructures import Headers

from httpmeta.charset import RequestCharset
from httpmeta.constants import (
    DEFAULT_LOCALE,
    DEFAULT_SCHEME,
    DEFAULT_SERVER_NAME,
    HEADER_ACCEPT_LANGUAGE,
    HEADER_CONTENT_LENGTH,
    HEADER_CONTENT_TYPE,
    HEADER_COOKIE,
    HEADER_HOST,
    MAX_INT32,
    SECURE_SCHEME,
)
from httpmeta.context import ContextSnapshot, ServerContext
from httpmeta.dates import parse_http_date
from httpmeta.errors import BadHeaderValueError
from httpmeta.headers.cookies import ParsedCookie, parse_cookie_headers
from httpmeta.headers.language import parse_accept_language
from httpmeta.headers.multimap import HeaderSource, build_headers
from httpmeta.params import ParameterExtractor, ParameterTable, RequestReadMode
from httpmeta.proxy.authority import default_port, format_authority, parse_host_port
from httpmeta.proxy.forwarded import (
    ForwardedClient,
    ForwardedTrust,
    RemoteAddress,
    resolve_forwarded_client,
    resolve_forwarded_host,
    resolve_forwarded_proto,
)
from httpmeta.streams import open_input_stream, open_reader
from httpmeta.utils.logger import get_logger
from httpmeta.utils.ulid import generate_ulid

logger = get_logger(__name__)

_OPTIONS_STAR = "*"


class NormalizedRequest:
    """Normalized, lazily derived request metadata.

    Args:
        method:         HTTP method (upper-cased on construction).
        path:           Raw request path, still percent-encoded, or ``*``.
        query_string:   Raw query string without ``?``; None when absent.
        headers:        Header multimap or anything build_headers() accepts.
        body:           Fully read request body.
        remote_address: Transport peer, or None when unknown.
        context:        Shared server context (a default one when omitted).
        trust:          Trust policy override; defaults to the context's.
        scheme:         Transport scheme before forwarded-header resolution.
        request_id:     Correlation id; a fresh ULID when omitted.
    """

    def __init__(
        self,
        method: str,
        path: str = "/",
        query_string: Optional[str] = None,
        headers: HeaderSource = None,
        body: Optional[bytes] = None,
        remote_address: Optional[RemoteAddress] = None,
        context: Optional[ServerContext] = None,
        trust: Optional[ForwardedTrust] = None,
        scheme: str = DEFAULT_SCHEME,
        request_id: Optional[str] = None,
    ) -> None:
        self.method = method.upper()
        self.path = path or "/"
        self.query_string = query_string
        self.headers: Headers = build_headers(headers)
        self.body = body or b""
        self.remote_address = remote_address
        self.context = context if context is not None else ServerContext.with_defaults()
        self._snapshot: ContextSnapshot = self.context.snapshot()
        self.trust = trust if trust is not None else self._snapshot.trust
        self._transport_scheme = scheme.lower()

        self.request_id = request_id or generate_ulid()
        self.logger = get_logger(__name__, request_id=self.request_id)

        self._charset = RequestCharset(self.content_type, self._snapshot.request_charset)
        self._params = ParameterExtractor(
            query_string=self.query_string,
            content_type=self.content_type,
            body=self.body,
            charset=lambda: self._charset.effective,
        )
        self._input_stream: Optional[io.BytesIO] = None
        self._reader: Optional[io.TextIOWrapper] = None
        self._attributes: dict[str, Any] = {}

    @classmethod
    def from_target(cls, method: str, target: str, **kwargs) -> "NormalizedRequest":
        """Build from a raw request target such as ``/a/b?x=1`` or ``*``.

        Example::

            request = NormalizedRequest.from_target(
                "GET", "/search?q=caf%C3%A9", headers={"Host": "example.com"}
            )
            request.get_parameter("q")   # 'café'
        """
        path, sep, query = target.partition("?")
        return cls(method, path=path, query_string=query if sep else None, **kwargs)

    def __repr__(self) -> str:
        return f"<NormalizedRequest {self.method} {self.path} request_id={self.request_id}>"

    # ─── URI and URL ──────────────────────────────────────────────────────────

    @property
    def request_uri(self) -> str:
        """Raw request path, percent-encoding preserved (``*`` for ``OPTIONS *``)."""
        return self.path

    @cached_property
    def request_url(self) -> str:
        """``scheme://authority`` + raw path, without the query string."""
        if self.path == _OPTIONS_STAR:
            return _OPTIONS_STAR
        authority = format_authority(self.server_name, self.server_port, self.scheme)
        return f"{self.scheme}://{authority}{self.path}"

    # ─── Scheme, server name and port ─────────────────────────────────────────

    def _trusted(self, resolver):
        return resolver(
            self.headers,
            self.remote_address,
            self.trust.policy,
            self.trust.trusted_proxy,
        )

    @cached_property
    def scheme(self) -> str:
        return self._trusted(resolve_forwarded_proto) or self._transport_scheme

    @property
    def is_secure(self) -> bool:
        return self.scheme == SECURE_SCHEME

    @cached_property
    def _host_and_port(self) -> tuple[Optional[str], Optional[int]]:
        """Host and explicit port from forwarded host, else the Host header."""
        candidates = (self._trusted(resolve_forwarded_host), self.headers.get(HEADER_HOST))
        for candidate in candidates:
            if not candidate:
                continue
            parsed = parse_host_port(candidate)
            if parsed is not None:
                return parsed
            logger.debug("Ignoring unparseable host value", value=candidate)
        return None, None

    @cached_property
    def server_name(self) -> str:
        host, _ = self._host_and_port
        return host or self._snapshot.server_name or DEFAULT_SERVER_NAME

    @cached_property
    def server_port(self) -> int:
        host, port = self._host_and_port
        if port:
            return port
        if host is None and self._snapshot.server_port:
            return self._snapshot.server_port
        return default_port(self.scheme)

    # ─── Remote client ────────────────────────────────────────────────────────

    @cached_property
    def forwarded_client(self) -> Optional[ForwardedClient]:
        """The trusted proxy-reported client, or None."""
        return self._trusted(resolve_forwarded_client)

    @property
    def remote_addr(self) -> Optional[str]:
        if self.forwarded_client is not None:
            return self.forwarded_client.host
        return self.remote_address.host if self.remote_address is not None else None

    @property
    def remote_host(self) -> Optional[str]:
        return self.remote_addr

    @property
    def remote_port(self) -> int:
        if self.forwarded_client is not None:
            return self.forwarded_client.port or 0
        return self.remote_address.port if self.remote_address is not None else 0

    # ─── Headers and cookies ──────────────────────────────────────────────────

    def get_header(self, name: str) -> Optional[str]:
        """First value of ``name`` (case-insensitive), or None."""
        return self.headers.get(name)

    def get_headers(self, name: str) -> list[str]:
        return self.headers.getlist(name)

    @property
    def header_names(self) -> list[str]:
        """Distinct header names (lower-cased) in first-seen order."""
        return list(dict.fromkeys(self.headers.keys()))

    def get_int_header(self, name: str) -> int:
        """Header value as int; -1 when absent.

        Raises:
            BadHeaderValueError: If the value is not a base-10 integer.
        """
        value = self.headers.get(name)
        if value is None:
            return -1
        try:
            return int(value.strip(), 10)
        except ValueError as exc:
            raise BadHeaderValueError(name, value, kind="an int") from exc

    def get_date_header(self, name: str) -> int:
        """Header value as epoch milliseconds; -1 when absent.

        Raises:
            BadHeaderValueError: If the value matches no HTTP-date format.
        """
        value = self.headers.get(name)
        if value is None:
            return -1
        return parse_http_date(value, header_name=name)

    @cached_property
    def cookies(self) -> list[ParsedCookie]:
        """Request cookies in header order; an empty list when there are none."""
        return parse_cookie_headers(self.headers.getlist(HEADER_COOKIE))

    # ─── Locale ───────────────────────────────────────────────────────────────

    @cached_property
    def _accepted_locales(self) -> tuple[str, ...]:
        return tuple(parse_accept_language(self.headers.getlist(HEADER_ACCEPT_LANGUAGE)))

    @property
    def locales(self) -> list[str]:
        """Accept-Language tags, most preferred first.

        Never empty: ``[DEFAULT_LOCALE]`` when the header is missing or names
        no usable language.
        """
        return list(self._accepted_locales) or [DEFAULT_LOCALE]

    @property
    def locale(self) -> str:
        """The most preferred Accept-Language tag, or DEFAULT_LOCALE."""
        return self.locales[0]

    # ─── Content metadata ─────────────────────────────────────────────────────

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get(HEADER_CONTENT_TYPE)

    @cached_property
    def content_length_long(self) -> int:
        """Declared Content-Length; -1 when missing or not a non-negative integer."""
        value = self.headers.get(HEADER_CONTENT_LENGTH)
        if value is None:
            return -1
        value = value.strip()
        if not value.isascii() or not value.isdigit():
            return -1
        return int(value)

    @property
    def content_length(self) -> int:
        """Like content_length_long, but -1 when the value exceeds a signed 32-bit int."""
        length = self.content_length_long
        return length if length <= MAX_INT32 else -1

    # ─── Character encoding ───────────────────────────────────────────────────

    @property
    def character_encoding(self) -> Optional[str]:
        """Explicit charset, else the context default request charset, else None."""
        return self._charset.explicit or self._snapshot.request_charset

    @property
    def effective_charset(self) -> str:
        """Charset used to decode the body and query string."""
        return self._charset.effective

    def set_character_encoding(self, name: Optional[str]) -> None:
        """Override the request charset.

        Ignored once parameters or the body have been read.

        Raises:
            UnsupportedEncodingError: If ``name`` is not a known charset.
        """
        locked = (
            self._params.parameters_accessed
            or self._params.read_mode is not RequestReadMode.UNSPECIFIED
        )
        if self._charset.override(name, locked=locked):
            self._params.invalidate()
            self.logger.debug("Request charset overridden", charset=self._charset.explicit)

    # ─── Parameters ───────────────────────────────────────────────────────────

    def get_parameter(self, name: str) -> Optional[str]:
        return self._params.get_parameter(name)

    def get_parameter_values(self, name: str) -> Optional[list[str]]:
        return self._params.get_parameter_values(name)

    def get_parameter_names(self) -> list[str]:
        return self._params.get_parameter_names()

    def get_parameter_map(self) -> ParameterTable:
        return self._params.get_parameter_map()

    # ─── Body ─────────────────────────────────────────────────────────────────

    @property
    def read_mode(self) -> RequestReadMode:
        return self._params.read_mode

    def get_input_stream(self) -> io.BytesIO:
        """The body as a byte stream (the same object on every call).

        Empty when form parameters already consumed the body.

        Raises:
            IllegalStateError: If get_reader() was called first.
        """
        self._params.enter_read_mode(RequestReadMode.BYTE_STREAM)
        if self._input_stream is None:
            self._input_stream = open_input_stream(self._params.body_for_stream())
        return self._input_stream

    def get_reader(self) -> io.TextIOWrapper:
        """The body as text decoded with the effective charset (memoized).

        Raises:
            IllegalStateError: If get_input_stream() was called first.
        """
        self._params.enter_read_mode(RequestReadMode.CHAR_READER)
        if self._reader is None:
            self._reader = open_reader(
                open_input_stream(self._params.body_for_stream()),
                self._charset.effective,
            )
        return self._reader

    # ─── Attributes ───────────────────────────────────────────────────────────

    def get_attribute(self, name: str) -> Optional[Any]:
        """Value stored by set_attribute(), or None."""
        return self._attributes.get(name)

    def set_attribute(self, name: str, value: Optional[Any]) -> None:
        """Store a request-scoped value; a None value removes the attribute."""
        if value is None:
            self.remove_attribute(name)
            return
        self._attributes[name] = value

    def remove_attribute(self, name: str) -> None:
        self._attributes.pop(name, None)

    @property
    def attribute_names(self) -> list[str]:
        """Attribute names in the order they were first set."""
        return list(self._attributes)
