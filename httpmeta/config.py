"""Config loading for httpmeta.

Reads `.httpmeta/config.yaml` (or `~/.httpmeta/config.yaml`).
Raises ConfigurationError on parse errors, a missing `version` field, or
invalid values. If no config file is found, returns default values.

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. HTTPMETA_CONFIG environment variable (if set)
  3. `.httpmeta/config.yaml` (working directory — for development)
  4. `~/.httpmeta/config.yaml` (home directory — for deployments)

Environment variable overrides:
  HTTPMETA_TRUST_POLICY — overrides forwarded.trust_policy
  HTTPMETA_CONFIG       — sets an explicit config file path to try first

Example file::

    version: 1
    charset:
      request: UTF-8
      response: UTF-8
    server:
      name: example.com
      port: 8443
    forwarded:
      trust_policy: trust_proxy_allowlist
      trusted_proxies: ["127.0.0.1", "10.0.0.0/8"]
    response:
      buffer_size: 8192
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from httpmeta.charset import lookup_charset
from httpmeta.constants import DEFAULT_CONTEXT_CHARSET, DEFAULT_RESPONSE_BUFFER_SIZE
from httpmeta.errors import ConfigurationError
from httpmeta.proxy.authority import parse_port
from httpmeta.proxy.forwarded import ForwardedTrust, TrustPolicy, trusted_proxy_predicate
from httpmeta.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (HTTPMETA_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".httpmeta/config.yaml",
    os.path.expanduser("~/.httpmeta/config.yaml"),
]

_VALID_TRUST_POLICIES: frozenset[str] = frozenset(policy.value for policy in TrustPolicy)


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class CharsetConfig:
    """Default charsets for requests and responses without an explicit one.

    None means "no context default" — the ISO-8859-1 fallback applies.
    """

    request: Optional[str] = DEFAULT_CONTEXT_CHARSET
    response: Optional[str] = DEFAULT_CONTEXT_CHARSET


@dataclass
class ServerConfig:
    """Server identity used when the Host header does not supply one."""

    name: Optional[str] = None
    port: Optional[int] = None


@dataclass
class ForwardedConfig:
    """Reverse-proxy trust configuration."""

    trust_policy: TrustPolicy = TrustPolicy.TRUST_NONE
    trusted_proxies: list[str] = field(default_factory=list)

    def to_trust(self) -> ForwardedTrust:
        """Build the validated ForwardedTrust for this configuration.

        Raises:
            ConfigurationError: On an allowlist policy without proxies, or an
                                invalid proxy address.
        """
        if self.trust_policy is TrustPolicy.TRUST_PROXY_ALLOWLIST:
            if not self.trusted_proxies:
                raise ConfigurationError(
                    "forwarded.trust_policy 'trust_proxy_allowlist' requires "
                    "a non-empty forwarded.trusted_proxies list"
                )
            return ForwardedTrust(
                policy=self.trust_policy,
                trusted_proxy=trusted_proxy_predicate(self.trusted_proxies),
            )
        return ForwardedTrust(policy=self.trust_policy)


@dataclass
class ResponseConfig:
    """Response buffering configuration."""

    buffer_size: int = DEFAULT_RESPONSE_BUFFER_SIZE


@dataclass
class HttpMetaConfig:
    """Root configuration object populated from .httpmeta/config.yaml.

    All fields have safe defaults — httpmeta works without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    charset: CharsetConfig = field(default_factory=CharsetConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    forwarded: ForwardedConfig = field(default_factory=ForwardedConfig)
    response: ResponseConfig = field(default_factory=ResponseConfig)
    path: Optional[str] = None  # Path to the loaded config file (for hot-reload)

    @classmethod
    def defaults(cls) -> "HttpMetaConfig":
        """Return a fully-default config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "HttpMetaConfig":
        """Construct a config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Args:
            raw:  Parsed YAML dict (must already be validated for version field).
            path: Path to the config file (stored in .path for hot-reload).

        Raises:
            ConfigurationError: On any invalid value.
        """
        # ── Charset ───────────────────────────────────────────────────────────
        charset_raw = _section(raw, "charset", path)
        charset = CharsetConfig(
            request=_charset_value(charset_raw, "request", path),
            response=_charset_value(charset_raw, "response", path),
        )

        # ── Server ────────────────────────────────────────────────────────────
        server_raw = _section(raw, "server", path)
        server_name = server_raw.get("name")
        if server_name is not None and (not isinstance(server_name, str) or not server_name.strip()):
            raise ConfigurationError(f"server.name must be a non-empty string, got {server_name!r}", path)
        server = ServerConfig(
            name=server_name.strip() if server_name else None,
            port=_port_value(server_raw.get("port"), path),
        )

        # ── Forwarded ─────────────────────────────────────────────────────────
        forwarded_raw = _section(raw, "forwarded", path)
        proxies = forwarded_raw.get("trusted_proxies", [])
        if proxies is None:
            proxies = []
        if not isinstance(proxies, list) or not all(isinstance(p, str) for p in proxies):
            raise ConfigurationError("forwarded.trusted_proxies must be a list of strings", path)
        forwarded = ForwardedConfig(
            trust_policy=parse_trust_policy(forwarded_raw.get("trust_policy", "trust_none"), path),
            trusted_proxies=list(proxies),
        )

        # ── Response ──────────────────────────────────────────────────────────
        response_raw = _section(raw, "response", path)
        buffer_size = response_raw.get("buffer_size", DEFAULT_RESPONSE_BUFFER_SIZE)
        if isinstance(buffer_size, bool) or not isinstance(buffer_size, int) or buffer_size <= 0:
            raise ConfigurationError(
                f"response.buffer_size must be a positive integer, got {buffer_size!r}", path
            )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            charset=charset,
            server=server,
            forwarded=forwarded,
            response=ResponseConfig(buffer_size=buffer_size),
            path=path,
        )


# ─── Value parsing ────────────────────────────────────────────────────────────


def _section(raw: dict, name: str, path: Optional[str]) -> dict:
    value = raw.get(name, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{name}' must be a mapping, got {type(value).__name__}", path)
    return value


def _charset_value(section: dict, key: str, path: Optional[str]) -> Optional[str]:
    if key not in section:
        return DEFAULT_CONTEXT_CHARSET
    value = section[key]
    if value is None:
        return None
    canonical = lookup_charset(value) if isinstance(value, str) else None
    if canonical is None:
        raise ConfigurationError(f"charset.{key}: unsupported charset {value!r}", path)
    return canonical


def _port_value(value: Any, path: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    port = parse_port(str(value)) if not isinstance(value, bool) else None
    if port is None or port == 0:
        raise ConfigurationError(f"server.port must be an integer in 1-65535, got {value!r}", path)
    return port


def parse_trust_policy(value: Any, path: Optional[str] = None) -> TrustPolicy:
    """Parse a trust policy name (``trust_all``, ``trust_none``, ``trust_proxy_allowlist``).

    Matching is case-insensitive and accepts ``-`` for ``_``.

    Raises:
        ConfigurationError: For any other value.
    """
    normalized = str(value).strip().lower().replace("-", "_")
    if normalized not in _VALID_TRUST_POLICIES:
        raise ConfigurationError(
            f"Invalid forwarded.trust_policy: '{value}'. "
            f"Supported values: {sorted(_VALID_TRUST_POLICIES)}.",
            path,
        )
    return TrustPolicy(normalized)


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> HttpMetaConfig:
    """Load and validate httpmeta configuration.

    Search order:
      1. ``config_path`` argument (if provided)
      2. ``HTTPMETA_CONFIG`` environment variable (if set)
      3. ``.httpmeta/config.yaml`` (current working directory)
      4. ``~/.httpmeta/config.yaml`` (home directory)

    If no file is found at any of these paths, returns the default config (not
    an error). ``HTTPMETA_TRUST_POLICY`` is applied afterwards either way.

    Raises:
        ConfigurationError: On YAML parse error, missing ``version`` field,
                            unsupported version, or any invalid value.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("HTTPMETA_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.debug("No config file found — using defaults", searched=search_paths)
        config = HttpMetaConfig.defaults()
        _apply_env_overrides(config)
        return config

    config = load_config_file(found_path)
    _apply_env_overrides(config)
    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        trust_policy=config.forwarded.trust_policy.value,
    )
    return config


def load_config_file(path: str) -> HttpMetaConfig:
    """Parse and validate one config file. No search, no env overrides.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid.
    """
    try:
        with open(path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse {path}: {exc}", path) from exc
    except OSError as exc:
        raise ConfigurationError(f"Could not read {path}: {exc}", path) from exc

    # Empty file or non-mapping YAML (e.g. plain scalar)
    if not isinstance(raw, dict):
        if raw is None:
            raise ConfigurationError(
                f"{path} is missing the required 'version' field. "
                "Add 'version: 1' to the top of your config file.",
                path,
            )
        raise ConfigurationError(
            f"{path} is not a valid YAML mapping. "
            "The config file must be a YAML dictionary at the top level.",
            path,
        )

    version = raw.get("version")
    if version is None:
        raise ConfigurationError(
            f"{path} is missing the required 'version' field. "
            "Add 'version: 1' to the top of your config file.",
            path,
        )
    if isinstance(version, bool) or not isinstance(version, int) or version not in SUPPORTED_VERSIONS:
        raise ConfigurationError(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}.",
            path,
        )

    config = HttpMetaConfig.from_dict(raw, path=path)
    # Validate the trust section eagerly so a bad allowlist fails at load time.
    try:
        config.forwarded.to_trust()
    except ConfigurationError as exc:
        raise ConfigurationError(exc.message, path) from exc
    return config


def _apply_env_overrides(config: HttpMetaConfig) -> None:
    """Apply environment variable overrides to a config in-place.

    Currently handles:
      HTTPMETA_TRUST_POLICY — overrides config.forwarded.trust_policy

    Raises:
        ConfigurationError: If HTTPMETA_TRUST_POLICY is set but invalid, or
                            selects the allowlist policy without proxies.
    """
    env_policy = os.environ.get("HTTPMETA_TRUST_POLICY")
    if env_policy is not None:
        config.forwarded.trust_policy = parse_trust_policy(env_policy)
        config.forwarded.to_trust()
        logger.debug("Trust policy overridden from environment", trust_policy=env_policy)
