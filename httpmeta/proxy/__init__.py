"""Reverse-proxy header resolution and authority helpers.

Public API:
    TrustPolicy, ForwardedTrust, RemoteAddress, ForwardedClient
    resolve_forwarded_client / resolve_forwarded_proto / resolve_forwarded_host
    trusted_proxy_predicate — CIDR allowlist predicate
    parse_host_port, format_authority, default_port
"""
from httpmeta.proxy.authority import default_port, format_authority, parse_host_port
from httpmeta.proxy.forwarded import (
    ForwardedClient,
    ForwardedTrust,
    RemoteAddress,
    TrustPolicy,
    is_trusted_proxy,
    parse_for_value,
    resolve_forwarded_client,
    resolve_forwarded_host,
    resolve_forwarded_proto,
    trusted_proxy_predicate,
)

__all__ = [
    "ForwardedClient",
    "ForwardedTrust",
    "RemoteAddress",
    "TrustPolicy",
    "default_port",
    "format_authority",
    "is_trusted_proxy",
    "parse_for_value",
    "parse_host_port",
    "resolve_forwarded_client",
    "resolve_forwarded_host",
    "resolve_forwarded_proto",
    "trusted_proxy_predicate",
]
