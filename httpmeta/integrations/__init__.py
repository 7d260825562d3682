"""Framework integrations for httpmeta.

Public API:
    from_starlette_request  — async, NormalizedRequest from a Starlette request
    to_starlette_response   — Starlette Response from a MarshaledResponse
    NormalizationMiddleware — attaches request.state.normalized
    get_normalized_request  — FastAPI dependency
"""
from httpmeta.integrations.starlette import (
    NormalizationMiddleware,
    from_starlette_request,
    get_normalized_request,
    to_starlette_response,
)

__all__ = [
    "NormalizationMiddleware",
    "from_starlette_request",
    "get_normalized_request",
    "to_starlette_response",
]
