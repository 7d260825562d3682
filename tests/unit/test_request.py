"""Unit tests for NormalizedRequest (httpmeta/request.py).

Covers URI/URL reconstruction, trust-gated scheme/server/remote resolution,
header and cookie accessors, content metadata, the request charset, and the
body-vs-parameters latches.
"""

from __future__ import annotations

import pytest

from httpmeta.context import ContextSnapshot, ServerContext
from httpmeta.errors import BadHeaderValueError, IllegalStateError, UnsupportedEncodingError
from httpmeta.headers.cookies import ParsedCookie
from httpmeta.params import RequestReadMode
from httpmeta.proxy.forwarded import (
    ForwardedTrust,
    RemoteAddress,
    TrustPolicy,
    trusted_proxy_predicate,
)
from httpmeta.request import NormalizedRequest

FORM = "application/x-www-form-urlencoded"
PEER = RemoteAddress("10.0.0.5", 5000)


# ─── Construction ─────────────────────────────────────────────────────────────


class TestConstruction:
    def test_method_upper_cased(self, make_request) -> None:
        assert make_request(method="post").method == "POST"

    def test_from_target_splits_query(self, make_request) -> None:
        request = make_request("/a%20b/c?x=1&y")
        assert request.request_uri == "/a%20b/c"
        assert request.query_string == "x=1&y"

    def test_no_query(self, make_request) -> None:
        assert make_request("/a").query_string is None

    def test_empty_query_is_present(self, make_request) -> None:
        assert make_request("/a?").query_string == ""

    def test_explicit_request_id_kept(self, make_request) -> None:
        assert make_request(request_id="req-1").request_id == "req-1"

    def test_default_context(self) -> None:
        request = NormalizedRequest("GET")
        assert request.character_encoding == "UTF-8"
        assert request.request_uri == "/"


# ─── URI and URL ──────────────────────────────────────────────────────────────


class TestRequestUrl:
    def test_no_host_header(self, make_request) -> None:
        assert make_request("/a%20b/c?x=1").request_url == "http://localhost/a%20b/c"

    def test_host_with_port(self, make_request) -> None:
        request = make_request("/p", headers={"Host": "example.com:8080"})
        assert request.server_name == "example.com"
        assert request.server_port == 8080
        assert request.request_url == "http://example.com:8080/p"

    def test_default_port_omitted(self, make_request) -> None:
        request = make_request("/p", headers={"Host": "example.com"})
        assert request.server_port == 80
        assert request.request_url == "http://example.com/p"

    def test_ipv6_host(self, make_request) -> None:
        request = make_request("/p", headers={"Host": "[::1]:8443"})
        assert request.server_name == "::1"
        assert request.server_port == 8443
        assert request.request_url == "http://[::1]:8443/p"

    def test_options_star(self, make_request) -> None:
        request = make_request("*", method="OPTIONS")
        assert request.request_uri == "*"
        assert request.request_url == "*"

    def test_transport_scheme(self, make_request) -> None:
        request = make_request("/p", headers={"Host": "example.com"}, scheme="HTTPS")
        assert request.scheme == "https"
        assert request.is_secure
        assert request.server_port == 443
        assert request.request_url == "https://example.com/p"


# ─── Scheme and server ────────────────────────────────────────────────────────


class TestForwardedResolution:
    def test_trusted_forwarded_proto(self, make_request, trust_all_context) -> None:
        request = make_request(
            "/p",
            headers={"Host": "example.com", "X-Forwarded-Proto": "https"},
            context=trust_all_context,
            remote_address=PEER,
        )
        assert request.scheme == "https"
        assert request.is_secure
        assert request.server_port == 443
        assert request.request_url == "https://example.com/p"

    def test_untrusted_forwarded_proto_ignored(self, make_request) -> None:
        request = make_request("/p", headers={"X-Forwarded-Proto": "https"}, remote_address=PEER)
        assert request.scheme == "http"
        assert not request.is_secure

    def test_trusted_forwarded_host(self, make_request, trust_all_context) -> None:
        request = make_request(
            "/p",
            headers={"Host": "internal:8080", "X-Forwarded-Host": "public.example"},
            context=trust_all_context,
        )
        assert request.server_name == "public.example"
        assert request.server_port == 80

    def test_context_server_name_and_port(self, make_request) -> None:
        context = ServerContext(ContextSnapshot(server_name="ctx.example", server_port=8081))
        request = make_request("/p", context=context)
        assert request.server_name == "ctx.example"
        assert request.server_port == 8081

    def test_host_header_beats_context(self, make_request) -> None:
        context = ServerContext(ContextSnapshot(server_name="ctx.example", server_port=8081))
        request = make_request("/p", headers={"Host": "example.com"}, context=context)
        assert request.server_name == "example.com"
        assert request.server_port == 80

    def test_trust_override_argument(self, make_request) -> None:
        request = make_request(
            "/p",
            headers={"X-Forwarded-Proto": "https"},
            trust=ForwardedTrust(policy=TrustPolicy.TRUST_ALL),
        )
        assert request.scheme == "https"


class TestRemoteClient:
    def test_transport_address(self, make_request) -> None:
        request = make_request(remote_address=PEER)
        assert request.remote_addr == "10.0.0.5"
        assert request.remote_host == "10.0.0.5"
        assert request.remote_port == 5000

    def test_no_transport_address(self, make_request) -> None:
        request = make_request()
        assert request.remote_addr is None
        assert request.remote_port == 0

    def test_forwarded_for_without_port(self, make_request, trust_all_context) -> None:
        request = make_request(
            headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
            remote_address=PEER,
            context=trust_all_context,
        )
        assert request.remote_addr == "203.0.113.9"
        assert request.remote_port == 0

    def test_forwarded_with_port(self, make_request, trust_all_context) -> None:
        request = make_request(
            headers={"Forwarded": 'for="[2001:db8::1]:4711"'},
            remote_address=PEER,
            context=trust_all_context,
        )
        assert request.remote_addr == "2001:db8::1"
        assert request.remote_port == 4711

    def test_untrusted_forwarded_for_ignored(self, make_request) -> None:
        request = make_request(headers={"X-Forwarded-For": "203.0.113.9"}, remote_address=PEER)
        assert request.remote_addr == "10.0.0.5"

    def test_allowlist(self, make_request) -> None:
        trust = ForwardedTrust(
            policy=TrustPolicy.TRUST_PROXY_ALLOWLIST,
            trusted_proxy=trusted_proxy_predicate(["10.0.0.0/8"]),
        )
        headers = {"X-Forwarded-For": "203.0.113.9"}
        trusted = make_request(headers=headers, remote_address=PEER, trust=trust)
        untrusted = make_request(headers=headers, remote_address=RemoteAddress("192.168.1.1", 1), trust=trust)
        assert trusted.remote_addr == "203.0.113.9"
        assert untrusted.remote_addr == "192.168.1.1"


# ─── Headers and cookies ──────────────────────────────────────────────────────


class TestHeaders:
    def test_case_insensitive_lookup(self, make_request) -> None:
        request = make_request(headers={"X-Custom": "v"})
        assert request.get_header("x-custom") == "v"
        assert request.get_header("X-CUSTOM") == "v"
        assert request.get_header("missing") is None

    def test_multiple_values(self, make_request) -> None:
        request = make_request(headers=[("Accept", "a"), ("X-Other", "o"), ("accept", "b")])
        assert request.get_headers("Accept") == ["a", "b"]
        assert request.get_headers("missing") == []
        assert request.header_names == ["accept", "x-other"]

    def test_int_header(self, make_request) -> None:
        request = make_request(headers={"Max-Forwards": " 42 ", "X-Bad": "abc"})
        assert request.get_int_header("Max-Forwards") == 42
        assert request.get_int_header("missing") == -1
        with pytest.raises(BadHeaderValueError) as exc_info:
            request.get_int_header("X-Bad")
        assert exc_info.value.name == "X-Bad"

    def test_date_header(self, make_request) -> None:
        request = make_request(
            headers={"If-Modified-Since": "Sun, 06 Nov 1994 08:49:37 GMT", "X-Date": "soon"}
        )
        assert request.get_date_header("If-Modified-Since") == 784_111_777_000
        assert request.get_date_header("missing") == -1
        with pytest.raises(BadHeaderValueError):
            request.get_date_header("X-Date")


class TestCookies:
    def test_parsed_in_order(self, make_request) -> None:
        request = make_request(headers=[("Cookie", 'a=1; b="x\\"y"'), ("Cookie", "a=2")])
        assert request.cookies == [
            ParsedCookie("a", "1"),
            ParsedCookie("b", 'x"y'),
            ParsedCookie("a", "2"),
        ]

    def test_no_cookie_header(self, make_request) -> None:
        assert make_request().cookies == []

    def test_latin1_value_round_trips(self, make_request) -> None:
        request = make_request(headers={"Cookie": "name=caf\u00e9"})
        assert request.cookies == [ParsedCookie("name", "caf\u00e9")]

    def test_text_outside_latin1_rejected(self) -> None:
        with pytest.raises(ValueError, match="Cookie"):
            NormalizedRequest("GET", headers={"Cookie": "name=\u540d\u524d"})


# ─── Locale and attributes ────────────────────────────────────────────────────


class TestLocale:
    def test_default_without_header(self, make_request) -> None:
        request = make_request()
        assert request.locale == "en-US"
        assert request.locales == ["en-US"]

    def test_preferred_language(self, make_request) -> None:
        request = make_request(headers={"Accept-Language": "fr-ca;q=0.9, de-DE, en;q=0.1"})
        assert request.locale == "de-DE"
        assert request.locales == ["de-DE", "fr-CA", "en"]

    def test_unusable_header_falls_back(self, make_request) -> None:
        assert make_request(headers={"Accept-Language": "*, en;q=0"}).locales == ["en-US"]

    def test_locales_copy_is_independent(self, make_request) -> None:
        request = make_request(headers={"Accept-Language": "da"})
        request.locales.append("xx")
        assert request.locales == ["da"]


class TestAttributes:
    def test_set_and_get(self, make_request) -> None:
        request = make_request()
        request.set_attribute("user", {"id": 7})
        request.set_attribute("trace", "t-1")
        assert request.get_attribute("user") == {"id": 7}
        assert request.attribute_names == ["user", "trace"]

    def test_missing_attribute_is_none(self, make_request) -> None:
        request = make_request()
        assert request.get_attribute("nope") is None
        assert request.attribute_names == []

    def test_none_value_removes(self, make_request) -> None:
        request = make_request()
        request.set_attribute("user", "u")
        request.set_attribute("user", None)
        assert request.get_attribute("user") is None
        assert request.attribute_names == []

    def test_remove_attribute(self, make_request) -> None:
        request = make_request()
        request.set_attribute("a", 1)
        request.remove_attribute("a")
        request.remove_attribute("never-set")
        assert request.attribute_names == []


# ─── Content metadata ─────────────────────────────────────────────────────────


class TestContentLength:
    @pytest.mark.parametrize(
        "value, expected",
        [(None, -1), ("12", 12), (" 12 ", 12), ("abc", -1), ("-5", -1), ("", -1)],
    )
    def test_values(self, make_request, value, expected) -> None:
        headers = {"Content-Length": value} if value is not None else {}
        assert make_request(headers=headers).content_length == expected

    def test_above_int32(self, make_request) -> None:
        request = make_request(headers={"Content-Length": "3000000000"})
        assert request.content_length == -1
        assert request.content_length_long == 3_000_000_000


# ─── Character encoding ───────────────────────────────────────────────────────


class TestCharacterEncoding:
    def test_from_content_type(self, make_request) -> None:
        request = make_request(headers={"Content-Type": "text/plain; charset=utf-8"})
        assert request.character_encoding == "UTF-8"

    def test_context_default(self, make_request) -> None:
        assert make_request().character_encoding == "UTF-8"

    def test_no_context_default(self, make_request) -> None:
        request = make_request(context=ServerContext(ContextSnapshot(request_charset=None)))
        assert request.character_encoding is None
        assert request.effective_charset == "ISO-8859-1"

    def test_unknown_override_raises(self, make_request) -> None:
        with pytest.raises(UnsupportedEncodingError):
            make_request().set_character_encoding("bogus")

    def test_override_before_parameter_access(self, make_request) -> None:
        request = make_request("/?q=caf%E9")
        request.set_character_encoding("ISO-8859-1")
        assert request.character_encoding == "ISO-8859-1"
        assert request.get_parameter("q") == "café"

    def test_override_after_parameter_access_ignored(self, make_request) -> None:
        request = make_request("/?q=caf%C3%A9")
        assert request.get_parameter("q") == "café"
        request.set_character_encoding("ISO-8859-1")
        assert request.character_encoding == "UTF-8"
        assert request.get_parameter("q") == "café"

    def test_override_after_body_access_ignored(self, make_request) -> None:
        request = make_request(body=b"x")
        request.get_input_stream()
        request.set_character_encoding("UTF-16")
        assert request.effective_charset == "UTF-8"

    def test_snapshot_taken_at_construction(self, make_request, context) -> None:
        request = make_request()
        context.set_request_charset("ISO-8859-1")
        assert request.effective_charset == "UTF-8"
        assert make_request().effective_charset == "ISO-8859-1"


# ─── Parameters and body ──────────────────────────────────────────────────────


class TestParametersAndBody:
    def test_query_and_form_merged(self, make_request) -> None:
        request = make_request(
            "/submit?a=q", method="POST", headers={"Content-Type": FORM}, body=b"a=f&b=2"
        )
        assert request.get_parameter_map() == {"a": ["q", "f"], "b": ["2"]}
        assert request.get_parameter_names() == ["a", "b"]
        assert request.get_parameter_values("a") == ["q", "f"]

    def test_parameters_first_empties_stream(self, make_request) -> None:
        request = make_request("/", method="POST", headers={"Content-Type": FORM}, body=b"b=2")
        assert request.get_parameter("b") == "2"
        assert request.get_input_stream().read() == b""

    def test_stream_first_hides_form_parameters(self, make_request) -> None:
        request = make_request("/?q=1", method="POST", headers={"Content-Type": FORM}, body=b"b=2")
        assert request.get_input_stream().read() == b"b=2"
        assert request.get_parameter("b") is None
        assert request.get_parameter("q") == "1"

    def test_non_form_body_untouched(self, make_request) -> None:
        request = make_request("/?a=1", method="POST", headers={"Content-Type": "text/plain"}, body=b"payload")
        assert request.get_parameter("a") == "1"
        assert request.get_input_stream().read() == b"payload"

    def test_form_with_charset_parameter_not_parsed(self, make_request) -> None:
        request = make_request(
            "/", method="POST", headers={"Content-Type": f"{FORM}; charset=UTF-8"}, body=b"b=2"
        )
        assert request.get_parameter("b") is None
        assert request.get_input_stream().read() == b"b=2"

    def test_input_stream_memoized(self, make_request) -> None:
        request = make_request(body=b"abc")
        assert request.get_input_stream() is request.get_input_stream()
        assert request.read_mode is RequestReadMode.BYTE_STREAM

    def test_reader_decodes_with_charset(self, make_request) -> None:
        request = make_request(
            method="POST",
            headers={"Content-Type": "text/plain; charset=UTF-16"},
            body="é\r\n".encode("utf-16"),
        )
        reader = request.get_reader()
        assert reader is request.get_reader()
        assert reader.read() == "é\r\n"
        assert request.read_mode is RequestReadMode.CHAR_READER

    def test_reader_replaces_malformed_input(self, make_request) -> None:
        request = make_request(body=b"ok\xff")
        assert request.get_reader().read() == "ok\ufffd"

    def test_reader_then_stream_rejected(self, make_request) -> None:
        request = make_request(body=b"x")
        request.get_reader()
        with pytest.raises(IllegalStateError):
            request.get_input_stream()

    def test_stream_then_reader_rejected(self, make_request) -> None:
        request = make_request(body=b"x")
        request.get_input_stream()
        with pytest.raises(IllegalStateError):
            request.get_reader()
