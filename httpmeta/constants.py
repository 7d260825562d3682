"""Shared constants for httpmeta.

Charset defaults, well-known header names, ports and status codes used across
modules are defined here. No magic values in other modules — import from here.
"""

# ─── Charsets ─────────────────────────────────────────────────────────────────

# Fallback charset for request bodies and response writers when neither the
# message nor the owning context names one. Mandated by the Servlet wire contract.
FALLBACK_CHARSET: str = "ISO-8859-1"

# Default request/response charset of a freshly built ServerContext.
DEFAULT_CONTEXT_CHARSET: str = "UTF-8"

# ─── Header names ─────────────────────────────────────────────────────────────

HEADER_CONTENT_TYPE: str = "Content-Type"
HEADER_CONTENT_LENGTH: str = "Content-Length"
HEADER_CONTENT_LANGUAGE: str = "Content-Language"
HEADER_COOKIE: str = "Cookie"
HEADER_SET_COOKIE: str = "Set-Cookie"
HEADER_LOCATION: str = "Location"
HEADER_HOST: str = "Host"
HEADER_ACCEPT_LANGUAGE: str = "Accept-Language"
HEADER_FORWARDED: str = "Forwarded"
HEADER_X_FORWARDED_FOR: str = "X-Forwarded-For"
HEADER_X_FORWARDED_PROTO: str = "X-Forwarded-Proto"
HEADER_X_FORWARDED_HOST: str = "X-Forwarded-Host"

# Media type whose body is parsed into request parameters.
FORM_URLENCODED: str = "application/x-www-form-urlencoded"

# ─── Schemes and ports ────────────────────────────────────────────────────────

DEFAULT_SCHEME: str = "http"
SECURE_SCHEME: str = "https"
DEFAULT_HTTP_PORT: int = 80
DEFAULT_HTTPS_PORT: int = 443

# Server name used when neither headers nor context supply one.
DEFAULT_SERVER_NAME: str = "localhost"

# ─── Locale ───────────────────────────────────────────────────────────────────

# Request locale reported when Accept-Language names no usable language.
DEFAULT_LOCALE: str = "en-US"

# ─── Response ─────────────────────────────────────────────────────────────────

# Initial response buffer size. Reaching it while writing commits the response.
DEFAULT_RESPONSE_BUFFER_SIZE: int = 1_024

STATUS_OK: int = 200
STATUS_FOUND: int = 302

# Largest value getContentLength-style accessors report before returning -1.
MAX_INT32: int = 2_147_483_647
