"""Construction helpers for the raw header multimap.

Raw request headers are represented by :class:`starlette.datastructures.Headers`:
case-insensitive lookup, values kept per name in insertion order, immutable.
Response headers use :class:`starlette.datastructures.MutableHeaders`.

Header values are octet strings on the wire (latin-1). Text that cannot be
represented in latin-1 is rejected with ValueError; response mutators
check values up front with ensure_header_text() so a bad value never leaves a
response half-updated.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Union

from starlette.datastructures import Headers, MutableHeaders

HeaderSource = Union[
    Headers,
    Mapping[str, Union[str, Iterable[str]]],
    Iterable[tuple[str, str]],
    None,
]


def encode_header_text(name: str, text: str) -> bytes:
    """Encode header text as latin-1 octets.

    Raises:
        ValueError: If ``text`` has characters outside latin-1; the message
                    names the header.
    """
    try:
        return text.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise ValueError(
            f"Header '{name}' contains characters outside ISO-8859-1 at position {exc.start}"
        ) from None


def ensure_header_text(name: str, value: str) -> str:
    """Return ``value`` unchanged once it is known to fit in a header.

    Raises:
        ValueError: As encode_header_text().
    """
    encode_header_text(name, name)
    encode_header_text(name, value)
    return value


def header_pairs(source: HeaderSource) -> list[tuple[str, str]]:
    """Flatten any supported header source into ``(name, value)`` pairs.

    Accepts a Starlette ``Headers`` object, a mapping of name to a single value
    or an iterable of values, or an iterable of ``(name, value)`` tuples.
    Pair order (and per-name value order) is preserved.
    """
    if source is None:
        return []
    if isinstance(source, Headers):
        return list(source.items())
    if isinstance(source, Mapping):
        pairs: list[tuple[str, str]] = []
        for name, values in source.items():
            if isinstance(values, str):
                pairs.append((name, values))
            else:
                pairs.extend((name, value) for value in values)
        return pairs
    return [(name, value) for name, value in source]


def build_headers(source: HeaderSource = None) -> Headers:
    """Build an immutable, case-insensitive header multimap.

    Raises:
        ValueError: If a name or value has characters outside latin-1.

    Example::

        headers = build_headers({"Cookie": ["a=1", "b=2"], "Host": "example.com"})
        headers.getlist("cookie")   # ['a=1', 'b=2']
    """
    if isinstance(source, Headers):
        return source
    raw = [
        (encode_header_text(name, name.strip().lower()), encode_header_text(name, value))
        for name, value in header_pairs(source)
        if name and name.strip()
    ]
    return Headers(raw=raw)


def build_mutable_headers() -> MutableHeaders:
    """Return an empty mutable header multimap for a response."""
    return MutableHeaders(raw=[])

