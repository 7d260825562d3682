"""Redirect ``Location`` resolution (RFC 3986 §4.2, §5.2–5.3).

Target classification:
  1. ``//host/path``   network-path reference: prefixed with the origin scheme
                       (returned verbatim when ``absolute=False``), never merged
  2. ``scheme://...``  absolute URI (any scheme, or ``mailto:``-style well-known
                       schemes): returned verbatim, never re-encoded
  3. ``/path``         root-relative: used verbatim against the origin authority
  4. anything else     merged against the parent of the raw request path, with
                       ``.`` / ``..`` segments removed

Illegal URI characters are percent-encoded; existing ``%XX`` escapes are kept.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote, urljoin, urlsplit

from httpmeta.proxy.authority import format_authority

# RFC 3986 reserved + unreserved characters, plus "%" for existing escapes
_URI_SAFE = "!#$&'()*+,/:;=?@[]~-._%"

_STRAY_PERCENT = re.compile(r"%(?![0-9A-Fa-f]{2})")

_SCHEME = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*):(?P<slashes>//)?")

# Schemes recognised without "//"; anything else that looks like "name:rest"
# (e.g. "localhost:8080/x") is a relative path.
_OPAQUE_SCHEMES: frozenset[str] = frozenset(
    {"http", "https", "ftp", "file", "jar", "mailto", "urn", "tel", "data"}
)


def encode_illegal_characters(text: str) -> str:
    """Percent-encode characters not allowed in a URI reference.

    Valid ``%XX`` escapes are preserved; a ``%`` not followed by two hex digits
    becomes ``%25``. Non-ASCII characters are encoded as UTF-8 octets.
    """
    return quote(_STRAY_PERCENT.sub("%25", text), safe=_URI_SAFE)


def is_absolute_uri(target: str) -> bool:
    """True when ``target`` is an absolute URI.

    That is ``scheme://...`` for any scheme, or ``scheme:...`` for a
    well-known scheme such as ``mailto``.
    """
    match = _SCHEME.match(target)
    if match is None:
        return False
    return match["slashes"] is not None or match["scheme"].lower() in _OPAQUE_SCHEMES


def _base_path(request_raw_path: Optional[str]) -> str:
    if not request_raw_path or not request_raw_path.startswith("/"):
        return "/"
    return request_raw_path


def resolve_redirect_location(
    target: Optional[str],
    scheme: str,
    host: str,
    port: Optional[int],
    request_raw_path: Optional[str],
    absolute: bool = True,
) -> str:
    """Compute the ``Location`` value for a redirect to ``target``.

    Args:
        target:           Redirect target as given by the application.
        scheme:           Origin scheme (``http`` / ``https``).
        host:             Origin host; IPv6 literals are bracketed on output.
        port:             Origin port; omitted when default for ``scheme``.
        request_raw_path: Raw (still percent-encoded) path of the current request.
        absolute:         False → return a network-path target verbatim and
                          other relative targets as a path without the origin.

    Returns:
        The Location header value.

    Raises:
        ValueError: If ``target`` is None.

    Example::

        resolve_redirect_location("../d", "https", "example.com", 443, "/a/b/c")
        # 'https://example.com/a/d'
    """
    if target is None:
        raise ValueError("Redirect target must not be None")

    if target.startswith("//"):
        encoded = encode_illegal_characters(target)
        return f"{scheme}:{encoded}" if absolute else encoded

    if is_absolute_uri(target):
        return target

    origin = f"{scheme}://{format_authority(host, port, scheme)}"
    encoded = encode_illegal_characters(target)

    if encoded.startswith("/"):
        location = origin + encoded
    else:
        if ":" in encoded.split("/", 1)[0]:
            # a colon in the first segment would otherwise parse as a scheme
            encoded = "./" + encoded
        location = urljoin(origin + _base_path(request_raw_path), encoded)

    if absolute:
        return location
    parts = urlsplit(location)
    relative = parts.path or "/"
    if parts.query:
        relative = f"{relative}?{parts.query}"
    if parts.fragment:
        relative = f"{relative}#{parts.fragment}"
    return relative
