"""Unit tests for charset lookup and Content-Type negotiation (httpmeta/charset.py)."""

from __future__ import annotations

import pytest

from httpmeta.charset import (
    RequestCharset,
    ResponseCharset,
    extract_charset,
    extract_media_type,
    lookup_charset,
    require_charset,
    with_charset,
)
from httpmeta.errors import UnsupportedEncodingError

# ─── Charset names ────────────────────────────────────────────────────────────


class TestLookupCharset:
    @pytest.mark.parametrize(
        "name, canonical",
        [
            ("utf8", "UTF-8"),
            ("UTF-8", "UTF-8"),
            ("latin-1", "ISO-8859-1"),
            ("ISO-8859-1", "ISO-8859-1"),
            ("us-ascii", "US-ASCII"),
            ("UTF-16", "UTF-16"),
            ("utf-16be", "UTF-16BE"),
            ("cp1252", "windows-1252"),
            ("windows-1252", "windows-1252"),
            ("iso-8859-15", "ISO-8859-15"),
            (" utf-8 ", "UTF-8"),
        ],
    )
    def test_known_names_are_canonicalized(self, name: str, canonical: str) -> None:
        assert lookup_charset(name) == canonical

    @pytest.mark.parametrize("name", [None, "", "   ", "no-such-charset", "base64", "rot13"])
    def test_unknown_or_non_text_codecs(self, name) -> None:
        assert lookup_charset(name) is None

    def test_require_charset_raises(self) -> None:
        with pytest.raises(UnsupportedEncodingError) as exc_info:
            require_charset("no-such-charset")
        assert exc_info.value.charset == "no-such-charset"


# ─── Content-Type helpers ─────────────────────────────────────────────────────


class TestContentTypeHelpers:
    def test_extract_charset(self) -> None:
        assert extract_charset("text/html; charset=UTF-8") == "UTF-8"
        assert extract_charset("text/plain;CHARSET=latin1") == "latin1"
        assert extract_charset('text/html; charset="utf-8"') == "utf-8"

    def test_extract_charset_absent(self) -> None:
        assert extract_charset("text/html") is None
        assert extract_charset("text/html; charset=") is None
        assert extract_charset(None) is None

    def test_extract_media_type(self) -> None:
        assert extract_media_type("text/html; charset=UTF-8") == "text/html"
        assert extract_media_type(" application/json ") == "application/json"
        assert extract_media_type(None) is None

    def test_with_charset_replaces(self) -> None:
        assert with_charset("text/html; charset=ISO-8859-1", "UTF-8") == "text/html; charset=UTF-8"

    def test_with_charset_appends(self) -> None:
        assert with_charset("text/html", "UTF-8") == "text/html; charset=UTF-8"

    def test_with_charset_removes(self) -> None:
        assert with_charset("text/html; charset=bogus", None) == "text/html"

    def test_with_charset_keeps_other_parameters(self) -> None:
        assert with_charset("multipart/form-data; boundary=abc; charset=x", "UTF-8") == (
            "multipart/form-data; boundary=abc; charset=UTF-8"
        )


# ─── Request side ─────────────────────────────────────────────────────────────


class TestRequestCharset:
    def test_content_type_charset_wins(self) -> None:
        charset = RequestCharset("text/plain; charset=UTF-16", "UTF-8")
        assert charset.explicit == "UTF-16"
        assert charset.effective == "UTF-16"

    def test_context_default(self) -> None:
        assert RequestCharset(None, "UTF-8").effective == "UTF-8"

    def test_fallback_iso_8859_1(self) -> None:
        assert RequestCharset(None, None).effective == "ISO-8859-1"

    def test_unknown_declared_charset_ignored(self) -> None:
        charset = RequestCharset("text/plain; charset=bogus", None)
        assert charset.explicit is None
        assert charset.effective == "ISO-8859-1"

    def test_override_changes_effective(self) -> None:
        charset = RequestCharset(None, "UTF-8")
        assert charset.effective == "UTF-8"
        assert charset.override("latin1", locked=False) is True
        assert charset.effective == "ISO-8859-1"

    def test_override_none_clears(self) -> None:
        charset = RequestCharset("text/plain; charset=UTF-16", "UTF-8")
        charset.override(None, locked=False)
        assert charset.explicit is None
        assert charset.effective == "UTF-8"

    def test_locked_override_ignored(self) -> None:
        charset = RequestCharset(None, "UTF-8")
        assert charset.override("UTF-16", locked=True) is False
        assert charset.effective == "UTF-8"

    def test_unknown_override_raises_even_when_locked(self) -> None:
        charset = RequestCharset(None, "UTF-8")
        with pytest.raises(UnsupportedEncodingError):
            charset.override("bogus", locked=False)
        with pytest.raises(UnsupportedEncodingError):
            charset.override("bogus", locked=True)


# ─── Response side ────────────────────────────────────────────────────────────


class TestResponseCharset:
    def test_defaults(self) -> None:
        charset = ResponseCharset("UTF-8")
        assert charset.character_encoding == "UTF-8"
        assert charset.content_type is None
        assert charset.frozen is False

    def test_fallback_without_context_default(self) -> None:
        assert ResponseCharset(None).character_encoding == "ISO-8859-1"

    def test_content_type_charset_adopted(self) -> None:
        charset = ResponseCharset("UTF-8")
        charset.set_content_type("text/plain; charset=utf-16")
        assert charset.character_encoding == "UTF-16"
        assert charset.content_type == "text/plain; charset=UTF-16"

    def test_unknown_charset_ignored(self) -> None:
        charset = ResponseCharset("UTF-8")
        assert charset.set_charset("bogus") is False
        assert charset.explicit is None
        assert charset.character_encoding == "UTF-8"

    def test_invalid_content_type_charset_removed_until_frozen(self) -> None:
        charset = ResponseCharset("UTF-8")
        charset.set_content_type("text/plain; charset=bogus")
        assert charset.content_type == "text/plain"
        assert charset.freeze() == "UTF-8"
        assert charset.content_type == "text/plain; charset=UTF-8"

    def test_set_charset_none_clears(self) -> None:
        charset = ResponseCharset("UTF-8")
        charset.set_content_type("text/plain; charset=UTF-16")
        charset.set_charset(None)
        assert charset.content_type == "text/plain"

    def test_freeze_is_idempotent(self) -> None:
        charset = ResponseCharset(None)
        assert charset.freeze() == "ISO-8859-1"
        charset.set_charset("UTF-8")
        assert charset.freeze() == "ISO-8859-1"

    def test_content_type_after_freeze_keeps_frozen_charset(self) -> None:
        charset = ResponseCharset(None)
        charset.freeze()
        charset.set_content_type("text/html; charset=UTF-8")
        assert charset.content_type == "text/html; charset=ISO-8859-1"
        assert charset.set_charset("UTF-8") is False

    def test_apply_default_if_unset(self) -> None:
        charset = ResponseCharset("UTF-8")
        charset.set_content_type("text/plain")
        charset.apply_default_if_unset()
        assert charset.content_type == "text/plain; charset=UTF-8"

    def test_apply_default_keeps_chosen(self) -> None:
        charset = ResponseCharset("UTF-8")
        charset.set_charset("UTF-16")
        charset.apply_default_if_unset()
        assert charset.explicit == "UTF-16"

    def test_reset(self) -> None:
        charset = ResponseCharset("UTF-8")
        charset.set_content_type("text/plain; charset=UTF-16")
        charset.freeze()
        charset.reset()
        assert charset.frozen is False
        assert charset.explicit is None
        assert charset.content_type is None
