"""Charset and content-type negotiation.

Request side — RequestCharset:
  Effective decode charset = explicit (Content-Type ``charset=`` or override)
  → context default request charset → ISO-8859-1. Resolved lazily, cached
  until the explicit value changes. Overrides are refused once the body or
  parameters have been read (the owner passes ``locked=True``).

Response side — ResponseCharset:
  Mutable until frozen. Freezing happens when a writer is obtained or the first
  byte is written; the charset in effect at that moment (else the context
  default response charset, else ISO-8859-1) is recorded and stamped onto the
  Content-Type header. After freezing, charset changes are ignored and
  content-type changes keep the frozen charset.

Charset names are validated with ``codecs`` and reported with their
IANA-preferred spelling (``UTF-8``, ``ISO-8859-1``, ``UTF-16BE``, ...).
"""

from __future__ import annotations

import codecs
from typing import Optional

from httpmeta.constants import FALLBACK_CHARSET
from httpmeta.errors import UnsupportedEncodingError
from httpmeta.headers.tokenizer import split_quoted, unquote
from httpmeta.utils.logger import get_logger

logger = get_logger(__name__)

# Python codec name → IANA preferred MIME name
_IANA_NAMES: dict[str, str] = {
    "utf-8": "UTF-8",
    "iso8859-1": "ISO-8859-1",
    "ascii": "US-ASCII",
    "utf-16": "UTF-16",
    "utf-16-be": "UTF-16BE",
    "utf-16-le": "UTF-16LE",
    "utf-32": "UTF-32",
    "utf-32-be": "UTF-32BE",
    "utf-32-le": "UTF-32LE",
    "cp1252": "windows-1252",
    "shift_jis": "Shift_JIS",
    "euc_jp": "EUC-JP",
    "gb2312": "GB2312",
    "big5": "Big5",
    "koi8-r": "KOI8-R",
}


# ─── Charset names ────────────────────────────────────────────────────────────


def lookup_charset(name: Optional[str]) -> Optional[str]:
    """Return the canonical name of a text charset, or None if unknown.

    Example::

        lookup_charset("utf8")        # 'UTF-8'
        lookup_charset("latin-1")     # 'ISO-8859-1'
        lookup_charset("base64")      # None, not a text encoding
    """
    if name is None:
        return None
    name = name.strip()
    if not name:
        return None
    try:
        codec_name = codecs.lookup(name).name
        "".encode(codec_name)
    except LookupError:
        return None
    if codec_name in _IANA_NAMES:
        return _IANA_NAMES[codec_name]
    if codec_name.startswith("iso8859-"):
        return "ISO-8859-" + codec_name[len("iso8859-"):]
    return codec_name.upper()


def require_charset(name: str) -> str:
    """Like :func:`lookup_charset` but raise for unknown names.

    Raises:
        UnsupportedEncodingError: If ``name`` is not a known text charset.
    """
    canonical = lookup_charset(name)
    if canonical is None:
        raise UnsupportedEncodingError(name)
    return canonical


# ─── Content-Type helpers ─────────────────────────────────────────────────────


def _split_content_type(content_type: str) -> tuple[str, list[tuple[str, str]]]:
    parts = split_quoted(content_type, ";")
    media_type = parts[0].strip()
    params: list[tuple[str, str]] = []
    for part in parts[1:]:
        name, sep, value = part.partition("=")
        if not sep or not name.strip():
            continue
        params.append((name.strip(), value.strip()))
    return media_type, params


def extract_media_type(content_type: Optional[str]) -> Optional[str]:
    """Return the ``type/subtype`` portion of a Content-Type value."""
    if content_type is None:
        return None
    media_type, _ = _split_content_type(content_type)
    return media_type or None


def extract_charset(content_type: Optional[str]) -> Optional[str]:
    """Return the raw ``charset`` parameter of a Content-Type value (unvalidated)."""
    if content_type is None:
        return None
    _, params = _split_content_type(content_type)
    for name, value in params:
        if name.lower() == "charset":
            value = unquote(value).strip()
            return value or None
    return None


def with_charset(content_type: str, charset: Optional[str]) -> str:
    """Return ``content_type`` with its charset parameter set, replaced, or removed.

    Other parameters are preserved in order.

    Example::

        with_charset("text/html; charset=ISO-8859-1", "UTF-8")
        # 'text/html; charset=UTF-8'
        with_charset("text/html; charset=ISO-8859-1", None)
        # 'text/html'
    """
    media_type, params = _split_content_type(content_type)
    rendered = [media_type]
    rendered.extend(f"{name}={value}" for name, value in params if name.lower() != "charset")
    if charset:
        rendered.append(f"charset={charset}")
    return "; ".join(rendered)


# ─── Request side ─────────────────────────────────────────────────────────────


class RequestCharset:
    """Resolves the charset used to decode a request body and query string.

    Not thread-safe — owned by a single NormalizedRequest.
    """

    def __init__(self, content_type: Optional[str], context_default: Optional[str]) -> None:
        declared = extract_charset(content_type)
        self._explicit: Optional[str] = lookup_charset(declared)
        if declared and self._explicit is None:
            logger.debug("Ignoring unknown charset in Content-Type", charset=declared)
        self._context_default = lookup_charset(context_default)
        self._effective: Optional[str] = None

    @property
    def explicit(self) -> Optional[str]:
        """The charset named by the request itself or by an override, if any."""
        return self._explicit

    @property
    def effective(self) -> str:
        """Explicit → context default → ISO-8859-1. Cached after first read."""
        if self._effective is None:
            self._effective = self._explicit or self._context_default or FALLBACK_CHARSET
        return self._effective

    def override(self, name: Optional[str], locked: bool) -> bool:
        """Apply an explicit charset override.

        Args:
            name:   Charset name, or None to clear the explicit charset.
            locked: True once the body or parameters have been read; the
                    override is then silently ignored.

        Returns:
            True if the effective charset may have changed (callers drop any
            state derived from it).

        Raises:
            UnsupportedEncodingError: If ``name`` is not a known charset. Raised
                                      even when ``locked`` is True.
        """
        canonical = require_charset(name) if name is not None else None
        if locked:
            logger.debug("Ignoring charset override after body or parameter access", charset=name)
            return False
        self._explicit = canonical
        self._effective = None
        return True


# ─── Response side ────────────────────────────────────────────────────────────


class ResponseCharset:
    """Charset and Content-Type state of one response.

    The Content-Type header value is derived: the caller-supplied content type
    with its charset parameter replaced by the chosen charset (or removed when
    none has been chosen yet).
    """

    def __init__(self, context_default: Optional[str]) -> None:
        self._context_default = lookup_charset(context_default)
        self._charset: Optional[str] = None
        self._content_type: Optional[str] = None
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def explicit(self) -> Optional[str]:
        """The charset chosen so far (explicitly, via Content-Type, or by freezing)."""
        return self._charset

    @property
    def character_encoding(self) -> str:
        """Chosen charset → context default → ISO-8859-1."""
        return self._charset or self._context_default or FALLBACK_CHARSET

    @property
    def content_type(self) -> Optional[str]:
        """The Content-Type header value to emit, or None when unset."""
        if self._content_type is None:
            return None
        return with_charset(self._content_type, self._charset)

    def set_charset(self, name: Optional[str]) -> bool:
        """Choose the response charset. Returns False when the call had no effect.

        Unknown names are ignored. After freezing, every call is ignored.
        """
        if self._frozen:
            logger.debug("Ignoring response charset change after writer was obtained", charset=name)
            return False
        if name is None:
            self._charset = None
            return True
        canonical = lookup_charset(name)
        if canonical is None:
            logger.warning("Ignoring unknown response charset", charset=name)
            return False
        self._charset = canonical
        return True

    def set_content_type(self, content_type: Optional[str]) -> None:
        """Set the content type; a valid ``charset=`` parameter also sets the charset
        unless the charset is frozen."""
        if content_type is None:
            self._content_type = None
            return
        self._content_type = content_type.strip()
        declared = extract_charset(content_type)
        if declared is not None and not self._frozen:
            canonical = lookup_charset(declared)
            if canonical is None:
                logger.debug("Ignoring unknown charset in Content-Type", charset=declared)
            else:
                self._charset = canonical

    def apply_default_if_unset(self) -> None:
        """Adopt the context default response charset if none was chosen yet."""
        if self._charset is None and not self._frozen:
            self._charset = self._context_default or FALLBACK_CHARSET

    def freeze(self) -> str:
        """Fix the charset for the rest of the response's lifetime and return it.

        Idempotent — later calls return the charset recorded by the first.
        """
        if not self._frozen:
            self._charset = self.character_encoding
            self._frozen = True
        return self._charset  # type: ignore[return-value]

    def reset(self) -> None:
        """Forget charset, content type, and frozen state."""
        self._charset = None
        self._content_type = None
        self._frozen = False
