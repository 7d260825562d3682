"""Quoted-string aware splitting of delimited header values.

Used with ``;`` for Cookie headers and with ``,`` / ``;`` for Forwarded
entries and parameters (RFC 7230 §3.2.6 quoted-string, RFC 7239 §4).

Rules:
  - An unescaped ``"`` toggles the in-quotes state.
  - ``\\`` escapes the next character: both characters are copied to the
    current fragment and the escaped character never toggles quote state
    nor acts as a delimiter. Unescaping is left to the caller.
  - The delimiter splits only outside quotes.
  - Never raises. An unterminated quote swallows the rest of the input into
    the trailing fragment, which is emitted as-is.
"""

from __future__ import annotations


def split_quoted(value: str, delimiter: str) -> list[str]:
    """Split ``value`` on ``delimiter``, ignoring delimiters inside quoted strings.

    Args:
        value:     Raw header value (may be empty).
        delimiter: Single separator character, e.g. ``";"`` or ``","``.

    Returns:
        Fragments in input order, untrimmed. An empty input yields ``[""]``.

    Example::

        split_quoted('a=1; b="x;y"; c=3', ";")
        # ['a=1', ' b="x;y"', ' c=3']
    """
    if len(delimiter) != 1:
        raise ValueError("delimiter must be a single character")

    fragments: list[str] = []
    current: list[str] = []
    in_quotes = False
    escaped = False

    for ch in value:
        if escaped:
            current.append(ch)
            escaped = False
            continue
        if ch == "\\":
            current.append(ch)
            escaped = True
            continue
        if ch == '"':
            in_quotes = not in_quotes
            current.append(ch)
            continue
        if ch == delimiter and not in_quotes:
            fragments.append("".join(current))
            current = []
            continue
        current.append(ch)

    fragments.append("".join(current))
    return fragments


def unquote(value: str) -> str:
    """Strip one layer of surrounding double quotes, if present.

    Escapes inside the quotes are left untouched; see
    :func:`httpmeta.headers.cookies.unescape_quoted` for full unescaping.
    """
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1]
    return value
