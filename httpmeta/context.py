"""Shared server context with hot-reload — the only state shared across requests.

A ServerContext holds an immutable ContextSnapshot. Readers take the current
snapshot without locking semantics leaking to callers; setters build a new
snapshot and swap it in under a threading.Lock (last write wins). Requests and
responses read the snapshot once at construction, so in-flight instances never
observe a half-applied change.

Usage (in an application lifespan):
    context = ServerContext.from_config(load_config())
    reloader = ContextReloader(context, context_path)
    asyncio.create_task(reloader.start_watcher())
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field, replace
from typing import Optional

import watchfiles

from httpmeta.charset import lookup_charset
from httpmeta.config import HttpMetaConfig, load_config_file
from httpmeta.constants import DEFAULT_CONTEXT_CHARSET, DEFAULT_RESPONSE_BUFFER_SIZE
from httpmeta.errors import ConfigurationError
from httpmeta.proxy.forwarded import ForwardedTrust
from httpmeta.utils.logger import get_logger

logger = get_logger(__name__)


# ─── Snapshot ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ContextSnapshot:
    """Immutable view of context configuration.

    INVARIANT: charset fields are canonical names or None.
    """

    request_charset: Optional[str] = DEFAULT_CONTEXT_CHARSET
    response_charset: Optional[str] = DEFAULT_CONTEXT_CHARSET
    server_name: Optional[str] = None
    server_port: Optional[int] = None
    trust: ForwardedTrust = field(default_factory=ForwardedTrust)
    response_buffer_size: int = DEFAULT_RESPONSE_BUFFER_SIZE

    @classmethod
    def from_config(cls, config: HttpMetaConfig) -> "ContextSnapshot":
        """Build a snapshot from a loaded config.

        Raises:
            ConfigurationError: If the trust section is invalid.
        """
        return cls(
            request_charset=config.charset.request,
            response_charset=config.charset.response,
            server_name=config.server.name,
            server_port=config.server.port,
            trust=config.forwarded.to_trust(),
            response_buffer_size=config.response.buffer_size,
        )


# ─── ServerContext ────────────────────────────────────────────────────────────


class ServerContext:
    """Thread-safe holder of the current ContextSnapshot.

    Charset setters accept None (no context default) and ignore unknown
    names, keeping the prior value.
    """

    def __init__(self, snapshot: Optional[ContextSnapshot] = None) -> None:
        self._snapshot = snapshot if snapshot is not None else ContextSnapshot()
        self._lock = threading.Lock()

    @classmethod
    def with_defaults(cls) -> "ServerContext":
        return cls()

    @classmethod
    def from_config(cls, config: HttpMetaConfig) -> "ServerContext":
        return cls(ContextSnapshot.from_config(config))

    # ── Read API ──────────────────────────────────────────────────────────────

    def snapshot(self) -> ContextSnapshot:
        """Return the current snapshot (no I/O, never blocks on writers for long)."""
        with self._lock:
            return self._snapshot

    @property
    def request_charset(self) -> Optional[str]:
        return self.snapshot().request_charset

    @property
    def response_charset(self) -> Optional[str]:
        return self.snapshot().response_charset

    @property
    def trust(self) -> ForwardedTrust:
        return self.snapshot().trust

    # ── Write API ─────────────────────────────────────────────────────────────

    def _update(self, **changes: object) -> None:
        with self._lock:
            self._snapshot = replace(self._snapshot, **changes)  # type: ignore[arg-type]

    def set_request_charset(self, name: Optional[str]) -> bool:
        """Set the default request charset. Returns False if ``name`` was ignored."""
        return self._set_charset("request_charset", name)

    def set_response_charset(self, name: Optional[str]) -> bool:
        """Set the default response charset. Returns False if ``name`` was ignored."""
        return self._set_charset("response_charset", name)

    def _set_charset(self, field_name: str, name: Optional[str]) -> bool:
        if name is None:
            self._update(**{field_name: None})
            return True
        canonical = lookup_charset(name)
        if canonical is None:
            logger.warning("Ignoring unknown context charset", field=field_name, charset=name)
            return False
        self._update(**{field_name: canonical})
        return True

    def set_trust(self, trust: ForwardedTrust) -> None:
        self._update(trust=trust)

    def set_server(self, name: Optional[str], port: Optional[int] = None) -> None:
        self._update(server_name=name, server_port=port)

    def replace_snapshot(self, snapshot: ContextSnapshot) -> None:
        """Swap in a whole new snapshot (used by hot-reload)."""
        with self._lock:
            self._snapshot = snapshot


# ─── ContextReloader ──────────────────────────────────────────────────────────


class ContextReloader:
    """Reloads a ServerContext from a YAML file whenever the file changes.

    A failed reload (missing file, invalid YAML, invalid values) is logged and
    the prior snapshot is kept.
    """

    def __init__(self, context: ServerContext, path: str) -> None:
        self._context = context
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def reload(self) -> bool:
        """Load the file and swap the snapshot. Returns False on failure (prior kept)."""
        try:
            snapshot = ContextSnapshot.from_config(load_config_file(self._path))
        except ConfigurationError as exc:
            logger.error(
                "Context reload failed — keeping prior configuration",
                path=self._path,
                error=exc.message,
            )
            return False
        self._context.replace_snapshot(snapshot)
        logger.info(
            "Context hot-reloaded",
            path=self._path,
            trust_policy=snapshot.trust.policy.value,
        )
        return True

    async def start_watcher(self) -> None:
        """Async watchfiles watcher — reloads the context on file change.

        Designed to run as an asyncio.Task (cancelled on shutdown). Invalid
        files are logged and ignored; the watcher keeps running.
        """
        logger.info("Context file watcher started", path=self._path)
        try:
            async for _ in watchfiles.awatch(self._path):
                self.reload()
        except asyncio.CancelledError:
            logger.debug("Context file watcher cancelled", path=self._path)
            raise
