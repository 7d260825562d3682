"""Root test configuration for httpmeta.

Clears HTTPMETA_* environment variables for the entire test suite so that a
developer's shell (or a ~/.httpmeta/config.yaml) never leaks into test
results. Tests that exercise env overrides set them with their own
monkeypatch calls.
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from httpmeta.context import ContextSnapshot, ServerContext
from httpmeta.proxy.forwarded import ForwardedTrust, TrustPolicy
from httpmeta.request import NormalizedRequest


@pytest.fixture(autouse=True)
def isolate_httpmeta_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove config-related env vars and the default config search paths."""
    monkeypatch.delenv("HTTPMETA_CONFIG", raising=False)
    monkeypatch.delenv("HTTPMETA_TRUST_POLICY", raising=False)
    monkeypatch.setattr("httpmeta.config.DEFAULT_CONFIG_PATHS", [])


@pytest.fixture
def context() -> ServerContext:
    """A default context: UTF-8 request/response charsets, TRUST_NONE."""
    return ServerContext.with_defaults()


@pytest.fixture
def trust_all_context() -> ServerContext:
    """A context that honors every forwarded header."""
    return ServerContext(ContextSnapshot(trust=ForwardedTrust(policy=TrustPolicy.TRUST_ALL)))


@pytest.fixture
def make_request(context: ServerContext) -> Callable[..., NormalizedRequest]:
    """Factory building a NormalizedRequest from a raw target like ``/a?b=c``.

    Keyword arguments are passed through to NormalizedRequest; ``context``
    defaults to the ``context`` fixture.
    """

    def _make(target: str = "/", method: str = "GET", **kwargs: Any) -> NormalizedRequest:
        kwargs.setdefault("context", context)
        return NormalizedRequest.from_target(method, target, **kwargs)

    return _make
