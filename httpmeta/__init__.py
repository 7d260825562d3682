"""httpmeta — HTTP request/response metadata normalization.

Public API:
    NormalizedRequest, NormalizedResponse, MarshaledResponse
    ServerContext, ContextSnapshot, ContextReloader
    HttpMetaConfig, load_config
    TrustPolicy, ForwardedTrust, RemoteAddress, trusted_proxy_predicate
    parse_http_date, format_http_date, resolve_redirect_location
    errors: HttpMetaError, IllegalStateError, UnsupportedEncodingError,
            ConfigurationError, BadHeaderValueError
"""
from httpmeta.config import HttpMetaConfig, load_config
from httpmeta.context import ContextReloader, ContextSnapshot, ServerContext
from httpmeta.dates import format_http_date, parse_http_date
from httpmeta.errors import (
    BadHeaderValueError,
    ConfigurationError,
    HttpMetaError,
    IllegalStateError,
    UnsupportedEncodingError,
)
from httpmeta.proxy.forwarded import ForwardedTrust, RemoteAddress, TrustPolicy, trusted_proxy_predicate
from httpmeta.redirect import resolve_redirect_location
from httpmeta.request import NormalizedRequest
from httpmeta.response import MarshaledResponse, NormalizedResponse

__version__ = "1.0.0"

__all__ = [
    "BadHeaderValueError",
    "ConfigurationError",
    "ContextReloader",
    "ContextSnapshot",
    "ForwardedTrust",
    "HttpMetaConfig",
    "HttpMetaError",
    "IllegalStateError",
    "MarshaledResponse",
    "NormalizedRequest",
    "NormalizedResponse",
    "RemoteAddress",
    "ServerContext",
    "TrustPolicy",
    "UnsupportedEncodingError",
    "format_http_date",
    "load_config",
    "parse_http_date",
    "resolve_redirect_location",
    "trusted_proxy_predicate",
]
