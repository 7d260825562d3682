"""Host/port parsing and authority formatting.

parse_host_port() is shared by the Host header, X-Forwarded-Host, and the
``for=`` value parser in forwarded.py:

  - ``[v6]`` / ``[v6]:port``  → bracketed IPv6 literal; brackets stripped.
  - ``name``                  → host only.
  - ``name:port``             → host and port.
  - two or more colons        → the whole token is an unbracketed IPv6 host,
                                no port (ambiguous; kept as-is on purpose).

An unparseable port is dropped, never an error.
"""

from __future__ import annotations

from typing import Optional

from httpmeta.constants import DEFAULT_HTTP_PORT, DEFAULT_HTTPS_PORT, SECURE_SCHEME

_MAX_PORT: int = 65_535


def parse_port(text: str) -> Optional[int]:
    """Parse a decimal port. Returns None for anything but 0–65535 digits."""
    text = text.strip()
    if not text.isascii() or not text.isdigit():
        return None
    port = int(text)
    return port if port <= _MAX_PORT else None


def parse_host_port(text: str) -> Optional[tuple[str, Optional[int]]]:
    """Split ``text`` into ``(host, port)``.

    Returns:
        ``(host, port)`` where port may be None, or None when no usable host
        can be extracted (empty input, empty brackets, junk after ``]``).
    """
    token = text.strip()
    if not token:
        return None

    if token.startswith("["):
        close = token.find("]")
        if close == -1:
            return None
        host = token[1:close]
        if not host:
            return None
        rest = token[close + 1:]
        if not rest:
            return host, None
        if not rest.startswith(":"):
            return None
        return host, parse_port(rest[1:])

    colons = token.count(":")
    if colons == 0:
        return token, None
    if colons == 1:
        host, _, port_text = token.partition(":")
        host = host.strip()
        if not host:
            return None
        return host, parse_port(port_text)
    return token, None


def default_port(scheme: str) -> int:
    """Return the well-known port of ``scheme`` (443 for https, else 80)."""
    return DEFAULT_HTTPS_PORT if scheme.lower() == SECURE_SCHEME else DEFAULT_HTTP_PORT


def format_host(host: str) -> str:
    """Bracket IPv6 literals for use inside a URL authority."""
    if ":" in host and not (host.startswith("[") and host.endswith("]")):
        return f"[{host}]"
    return host


def format_authority(host: str, port: Optional[int], scheme: str) -> str:
    """Build ``host[:port]``, omitting absent, zero, or scheme-default ports.

    Example::

        format_authority("2001:db8::1", 8443, "https")   # '[2001:db8::1]:8443'
        format_authority("example.com", 443, "https")    # 'example.com'
    """
    authority = format_host(host)
    if port and port != default_port(scheme):
        authority = f"{authority}:{port}"
    return authority
