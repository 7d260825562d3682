"""Starlette / FastAPI integration.

Provides:
  - from_starlette_request()  — NormalizedRequest from a Starlette Request
  - to_starlette_response()   — Starlette Response from a MarshaledResponse
  - NormalizationMiddleware   — stores the NormalizedRequest on request.state
  - get_normalized_request()  — FastAPI Depends()-compatible accessor

Registration:
    application.add_middleware(NormalizationMiddleware, context=context)

    @app.get("/where")
    async def where(normalized: NormalizedRequest = Depends(get_normalized_request)):
        return {"client": normalized.remote_addr, "url": normalized.request_url}
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from httpmeta.constants import DEFAULT_SCHEME, HEADER_CONTENT_LENGTH
from httpmeta.context import ServerContext
from httpmeta.proxy.forwarded import ForwardedTrust, RemoteAddress
from httpmeta.request import NormalizedRequest
from httpmeta.response import MarshaledResponse
from httpmeta.utils.logger import clear_request_id, get_logger, set_request_id

logger = get_logger(__name__)

_CONTENT_LENGTH_KEY = HEADER_CONTENT_LENGTH.lower()


# ─── Conversion ───────────────────────────────────────────────────────────────


def _raw_path(request: Request) -> str:
    """Percent-encoded path as sent by the client (ASGI ``raw_path`` when present)."""
    raw = request.scope.get("raw_path")
    if raw:
        return raw.split(b"?", 1)[0].decode("latin-1")
    return quote(request.scope.get("path", "/"), safe="/:@!$&'()*+,;=-._~%")


async def from_starlette_request(
    request: Request,
    context: Optional[ServerContext] = None,
    trust: Optional[ForwardedTrust] = None,
) -> NormalizedRequest:
    """Build a NormalizedRequest from a Starlette request, awaiting its body.

    Args:
        request: Incoming Starlette/FastAPI request.
        context: Shared server context (a default one when omitted).
        trust:   Trust policy override; defaults to the context's.

    Returns:
        NormalizedRequest with raw path, raw query string, headers, body and
        client address taken from the ASGI scope.
    """
    body = await request.body()
    query = request.scope.get("query_string", b"").decode("latin-1")
    client = request.client
    remote_address = RemoteAddress(client.host, client.port) if client is not None else None
    return NormalizedRequest(
        request.method,
        path=_raw_path(request),
        query_string=query or None,
        headers=request.headers,
        body=body,
        remote_address=remote_address,
        context=context,
        trust=trust,
        scheme=request.scope.get("scheme", DEFAULT_SCHEME),
    )


def to_starlette_response(marshaled: MarshaledResponse) -> Response:
    """Build a Starlette Response, keeping every value of multi-valued headers.

    An explicit Content-Length replaces the one Starlette derives from the body.
    """
    response = Response(content=marshaled.body, status_code=marshaled.status_code)
    for name, value in marshaled.headers.items():
        if name == _CONTENT_LENGTH_KEY:
            response.headers[name] = value
        else:
            response.headers.append(name, value)
    return response


# ─── Middleware ───────────────────────────────────────────────────────────────


class NormalizationMiddleware(BaseHTTPMiddleware):
    """Starlette middleware attaching a NormalizedRequest to every request.

    The normalized request is stored on ``request.state.normalized`` and its
    request_id is bound into the logging context for the duration of the call.
    """

    def __init__(
        self,
        app: ASGIApp,
        context: Optional[ServerContext] = None,
        trust: Optional[ForwardedTrust] = None,
    ) -> None:
        super().__init__(app)
        self.context = context if context is not None else ServerContext.with_defaults()
        self.trust = trust

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        """Normalize the request, then delegate to the next handler.

        Args:
            request:   Incoming Starlette/FastAPI request.
            call_next: Next middleware or route handler in the chain.

        Returns:
            The downstream response, unchanged.
        """
        normalized = await from_starlette_request(request, self.context, self.trust)
        request.state.normalized = normalized
        set_request_id(normalized.request_id)
        try:
            logger.debug(
                "Request normalized",
                method=normalized.method,
                path=normalized.path,
                remote_addr=normalized.remote_addr,
            )
            return await call_next(request)
        finally:
            clear_request_id()


# ─── FastAPI Dependency ───────────────────────────────────────────────────────


async def get_normalized_request(request: Request) -> NormalizedRequest:
    """FastAPI dependency — returns the NormalizedRequest set by the middleware.

    Used as Depends(get_normalized_request) in route handlers.

    Raises:
        HTTPException(500): If NormalizationMiddleware is not installed.
    """
    normalized: Optional[NormalizedRequest] = getattr(request.state, "normalized", None)
    if normalized is None:
        logger.error("NormalizationMiddleware is not installed", path=request.url.path)
        raise HTTPException(status_code=500, detail="Request normalization unavailable")
    return normalized
