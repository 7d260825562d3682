"""Header tokenizing, cookie parsing and header multimap helpers.

Public API:
    split_quoted          — quoted-string aware splitting of header values
    ParsedCookie          — one inbound cookie pair
    parse_cookie_headers  — all Cookie header values → ParsedCookie list
    ResponseCookie        — outbound cookie rendered as Set-Cookie
    parse_accept_language — Accept-Language values → ranked language tags
    build_headers         — immutable case-insensitive header multimap
"""
from httpmeta.headers.cookies import ParsedCookie, ResponseCookie, parse_cookie_headers
from httpmeta.headers.language import parse_accept_language
from httpmeta.headers.multimap import build_headers, build_mutable_headers
from httpmeta.headers.tokenizer import split_quoted

__all__ = [
    "ParsedCookie",
    "ResponseCookie",
    "build_headers",
    "build_mutable_headers",
    "parse_accept_language",
    "parse_cookie_headers",
    "split_quoted",
]
