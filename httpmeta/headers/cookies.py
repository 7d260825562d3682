"""Cookie header parsing and Set-Cookie rendering.

Inbound — parse_cookie_headers():
  Turns every ``Cookie`` header value into ParsedCookie pairs, in header
  insertion order. Duplicate names are retained; names are case-sensitive.
  Percent-encoding inside values is preserved verbatim (no URL decoding).

Outbound — ResponseCookie.to_header_value():
  Renders one ``Set-Cookie`` header value (RFC 6265 §4.1).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Optional

from httpmeta.dates import format_http_date
from httpmeta.headers.tokenizer import split_quoted
from httpmeta.utils.logger import get_logger

logger = get_logger(__name__)

# Characters that force a Set-Cookie value to be emitted as a quoted-string.
_QUOTE_TRIGGERS: frozenset[str] = frozenset(' \t",;\\')

_VALID_SAME_SITE: frozenset[str] = frozenset({"Strict", "Lax", "None"})


# ─── Inbound ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ParsedCookie:
    """One name/value pair from a ``Cookie`` request header."""

    name: str
    value: str


def unescape_quoted(value: str) -> str:
    """Unwrap and unescape a quoted-string cookie value.

    ``"a\\"b"`` → ``a"b``. Values that are not ``"``-wrapped (or shorter than
    two characters) are returned unchanged. Inside the quotes, ``\\x`` becomes
    ``x`` for any ``x``; a trailing lone backslash is kept literally.
    """
    if len(value) < 2 or value[0] != '"' or value[-1] != '"':
        return value

    inner = value[1:-1]
    out: list[str] = []
    i = 0
    while i < len(inner):
        ch = inner[i]
        if ch == "\\" and i + 1 < len(inner):
            out.append(inner[i + 1])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def parse_cookie_header(value: str) -> list[ParsedCookie]:
    """Parse a single ``Cookie`` header value into cookies.

    Components without ``=`` or with an empty name are discarded.
    ``name=`` yields an empty-string value.
    """
    cookies: list[ParsedCookie] = []
    for component in split_quoted(value.strip(), ";"):
        component = component.strip()
        if not component:
            continue
        name, sep, raw_value = component.partition("=")
        if not sep:
            logger.debug("Discarding cookie component without '='", component=component)
            continue
        name = name.strip()
        if not name:
            continue
        cookies.append(ParsedCookie(name=name, value=unescape_quoted(raw_value.strip())))
    return cookies


def parse_cookie_headers(values: Iterable[str]) -> list[ParsedCookie]:
    """Parse all ``Cookie`` header values, in order.

    Args:
        values: Every value stored under the ``Cookie`` header name, in
                header-insertion order (e.g. ``headers.getlist("cookie")``).

    Returns:
        Parsed cookies in encounter order. Empty when there is no header or no
        usable pair — never raises.
    """
    cookies: list[ParsedCookie] = []
    for value in values:
        cookies.extend(parse_cookie_header(value))
    return cookies


# ─── Outbound ─────────────────────────────────────────────────────────────────


def _quote_if_needed(value: str) -> str:
    if not any(ch in _QUOTE_TRIGGERS for ch in value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass
class ResponseCookie:
    """A cookie to be sent with a response as a ``Set-Cookie`` header.

    max_age semantics follow the Servlet Cookie contract:
      - None / negative → session cookie (no Max-Age, no Expires)
      - 0               → delete now (Max-Age=0, Expires at the epoch)
      - positive        → lifetime in seconds
    """

    name: str
    value: str = ""
    path: Optional[str] = None
    domain: Optional[str] = None
    max_age: Optional[int] = None
    secure: bool = False
    http_only: bool = False
    same_site: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Cookie name must not be empty")
        if any(ch in _QUOTE_TRIGGERS or ch == "=" for ch in self.name):
            raise ValueError(f"Cookie name '{self.name}' contains reserved characters")
        if self.same_site is not None and self.same_site not in _VALID_SAME_SITE:
            raise ValueError(
                f"Invalid SameSite value '{self.same_site}'. "
                f"Supported values: {sorted(_VALID_SAME_SITE)}."
            )

    def to_header_value(self, now_millis: Optional[int] = None) -> str:
        """Render this cookie as a ``Set-Cookie`` header value.

        Args:
            now_millis: Current time in epoch millis, used for ``Expires``
                        (defaults to the wall clock).
        """
        parts = [f"{self.name}={_quote_if_needed(self.value or '')}"]

        if self.max_age is not None and self.max_age >= 0:
            parts.append(f"Max-Age={self.max_age}")
            if self.max_age == 0:
                parts.append(f"Expires={format_http_date(0)}")
            else:
                if now_millis is None:
                    now_millis = int(time.time() * 1000)
                parts.append(f"Expires={format_http_date(now_millis + self.max_age * 1000)}")

        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.secure:
            parts.append("Secure")
        if self.http_only:
            parts.append("HttpOnly")
        if self.same_site:
            parts.append(f"SameSite={self.same_site}")

        return "; ".join(parts)
