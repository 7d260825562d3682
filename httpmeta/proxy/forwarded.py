"""Trust-gated reverse-proxy header resolution (RFC 7239, X-Forwarded-*).

Proxy-supplied headers are honored only when the physical peer is trusted:

  TRUST_ALL              — always honored
  TRUST_NONE             — never honored (callers use the transport address)
  TRUST_PROXY_ALLOWLIST  — honored when the predicate accepts the remote address

Client resolution order (trusted peers only):
  1. ``Forwarded``        — first entry across all values with a usable ``for=``
  2. ``X-Forwarded-For``  — left-most usable token (proxies append on the right)

The ``for=`` parser rejects ``unknown`` and obfuscated (``_``-prefixed)
identifiers and understands bracketed IPv6 literals with optional port.
"""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, NamedTuple, Optional

from starlette.datastructures import Headers

from httpmeta.constants import (
    DEFAULT_SCHEME,
    HEADER_FORWARDED,
    HEADER_X_FORWARDED_FOR,
    HEADER_X_FORWARDED_HOST,
    HEADER_X_FORWARDED_PROTO,
    SECURE_SCHEME,
)
from httpmeta.errors import ConfigurationError
from httpmeta.headers.tokenizer import split_quoted, unquote
from httpmeta.proxy.authority import parse_host_port
from httpmeta.utils.logger import get_logger

logger = get_logger(__name__)

_KNOWN_SCHEMES: frozenset[str] = frozenset({DEFAULT_SCHEME, SECURE_SCHEME})


# ─── Types ────────────────────────────────────────────────────────────────────


class RemoteAddress(NamedTuple):
    """Physical peer address of the transport connection."""

    host: str
    port: int


TrustedProxyPredicate = Callable[[RemoteAddress], bool]


class TrustPolicy(enum.Enum):
    """Whether proxy-injected headers are honored."""

    TRUST_ALL = "trust_all"
    TRUST_NONE = "trust_none"
    TRUST_PROXY_ALLOWLIST = "trust_proxy_allowlist"


@dataclass(frozen=True)
class ForwardedTrust:
    """A trust policy plus the allowlist predicate it may require.

    INVARIANT: TRUST_PROXY_ALLOWLIST always carries a predicate — building one
    without it raises ConfigurationError.
    """

    policy: TrustPolicy = TrustPolicy.TRUST_NONE
    trusted_proxy: Optional[TrustedProxyPredicate] = None

    def __post_init__(self) -> None:
        if self.policy is TrustPolicy.TRUST_PROXY_ALLOWLIST and self.trusted_proxy is None:
            raise ConfigurationError(
                "TRUST_PROXY_ALLOWLIST requires a trusted proxy predicate"
            )

    def trusts(self, remote_address: Optional[RemoteAddress]) -> bool:
        """Return True if forwarded headers from ``remote_address`` are honored."""
        return is_trusted_proxy(self.policy, self.trusted_proxy, remote_address)


@dataclass(frozen=True)
class ForwardedClient:
    """One resolved ``for=`` actor. Port is None when the proxy did not send one."""

    host: str
    port: Optional[int] = None


# ─── Trust decision ───────────────────────────────────────────────────────────


def is_trusted_proxy(
    policy: TrustPolicy,
    trusted_proxy: Optional[TrustedProxyPredicate],
    remote_address: Optional[RemoteAddress],
) -> bool:
    """Apply ``policy`` to the physical peer.

    The allowlist policy denies when there is no predicate or no remote address.
    """
    if policy is TrustPolicy.TRUST_ALL:
        return True
    if policy is TrustPolicy.TRUST_NONE:
        return False
    if trusted_proxy is None or remote_address is None:
        return False
    return bool(trusted_proxy(remote_address))


def trusted_proxy_predicate(addresses: Iterable[str]) -> TrustedProxyPredicate:
    """Build an allowlist predicate from IP addresses and CIDR networks.

    Args:
        addresses: e.g. ``["127.0.0.1", "10.0.0.0/8", "::1"]``.

    Returns:
        A predicate accepting remote addresses inside any listed network.
        Remote hosts that are not IP literals are never trusted.

    Raises:
        ConfigurationError: If an entry is not a valid address or network.
    """
    networks = []
    for entry in addresses:
        try:
            networks.append(ipaddress.ip_network(entry.strip(), strict=False))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid trusted proxy entry '{entry}': {exc}") from exc

    def _predicate(remote_address: RemoteAddress) -> bool:
        try:
            address = ipaddress.ip_address(remote_address.host.strip("[]"))
        except ValueError:
            return False
        return any(address in network for network in networks)

    return _predicate


# ─── Forwarded header parsing ─────────────────────────────────────────────────


def _forwarded_entries(headers: Headers) -> Iterator[list[tuple[str, str]]]:
    """Yield each ``Forwarded`` entry as ``(lower-name, unquoted-value)`` pairs."""
    for header_value in headers.getlist(HEADER_FORWARDED):
        for entry in split_quoted(header_value, ","):
            params: list[tuple[str, str]] = []
            for pair in split_quoted(entry, ";"):
                name, sep, value = pair.partition("=")
                if not sep:
                    continue
                params.append((name.strip().lower(), unquote(value.strip())))
            yield params


def _first_param(entry: list[tuple[str, str]], name: str) -> Optional[str]:
    for param_name, value in entry:
        if param_name == name:
            return value
    return None


def parse_for_value(token: str) -> Optional[ForwardedClient]:
    """Parse one ``for=`` / X-Forwarded-For token into a client.

    Returns None for empty, ``unknown``, obfuscated (``_``-prefixed), or
    otherwise unusable identifiers.
    """
    token = token.strip()
    if not token or token.lower() == "unknown" or token.startswith("_"):
        return None
    parsed = parse_host_port(token)
    if parsed is None:
        return None
    host, port = parsed
    return ForwardedClient(host=host, port=port)


# ─── Public API ───────────────────────────────────────────────────────────────


def resolve_forwarded_client(
    headers: Headers,
    remote_address: Optional[RemoteAddress],
    policy: TrustPolicy,
    trusted_proxy: Optional[TrustedProxyPredicate] = None,
) -> Optional[ForwardedClient]:
    """Resolve the original client from proxy headers.

    Returns:
        The first usable client, or None when the peer is untrusted or no
        header yields one — callers then fall back to the transport address.
    """
    if not is_trusted_proxy(policy, trusted_proxy, remote_address):
        return None

    for entry in _forwarded_entries(headers):
        value = _first_param(entry, "for")
        if value is None:
            continue
        client = parse_for_value(value)
        if client is not None:
            return client
        logger.debug("Skipping unusable Forwarded for= value", value=value)

    for header_value in headers.getlist(HEADER_X_FORWARDED_FOR):
        for token in header_value.split(","):
            client = parse_for_value(unquote(token.strip()))
            if client is not None:
                return client

    return None


def resolve_forwarded_proto(
    headers: Headers,
    remote_address: Optional[RemoteAddress],
    policy: TrustPolicy,
    trusted_proxy: Optional[TrustedProxyPredicate] = None,
) -> Optional[str]:
    """Resolve the original scheme (``http`` / ``https``) from proxy headers."""
    if not is_trusted_proxy(policy, trusted_proxy, remote_address):
        return None

    for entry in _forwarded_entries(headers):
        value = _first_param(entry, "proto")
        if value is not None and value.strip().lower() in _KNOWN_SCHEMES:
            return value.strip().lower()

    for header_value in headers.getlist(HEADER_X_FORWARDED_PROTO):
        token = header_value.split(",")[0].strip().lower()
        if token in _KNOWN_SCHEMES:
            return token

    return None


def resolve_forwarded_host(
    headers: Headers,
    remote_address: Optional[RemoteAddress],
    policy: TrustPolicy,
    trusted_proxy: Optional[TrustedProxyPredicate] = None,
) -> Optional[str]:
    """Resolve the original ``Host`` (``host[:port]``) from proxy headers."""
    if not is_trusted_proxy(policy, trusted_proxy, remote_address):
        return None

    for entry in _forwarded_entries(headers):
        value = _first_param(entry, "host")
        if value and value.strip():
            return value.strip()

    for header_value in headers.getlist(HEADER_X_FORWARDED_HOST):
        token = header_value.split(",")[0].strip()
        if token:
            return token

    return None
