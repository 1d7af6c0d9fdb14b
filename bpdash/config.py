"""Hosts configuration: YAML (or JSON) loading and strict validation."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".bpdash"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "hosts.yaml"
CONFIG_PATH_ENV = "BPDASH_CONFIG"
TIMEOUT_ENV = "BPDASH_TIMEOUT_MS"
DEFAULT_POLL_TIMEOUT_MS = 8000
DEFAULT_ROLE = "Watcher"

NETWORKS = ("mainnet", "testnet", "devnet")


@dataclass
class HostEntry:
    """A block-producer host.  *url* ends with a slash (``.../api/``)."""

    title: str
    url: str
    role: str = DEFAULT_ROLE


@dataclass
class RpcEntry:
    """A JSON-RPC endpoint."""

    title: str
    url: str


@dataclass
class ExplorerEntry:
    """A block explorer: front-end *url* and indexing API base *api_url*."""

    url: str
    api_url: str
    title: str | None = None


@dataclass
class NetworkConfig:
    """Endpoints of one network environment, keyed by node key.

    Attributes:
        default_explorer: Key of the explorer used for token supply.
        hosts: Block-producer hosts.
        rpcs: RPC endpoints.
        explorers: Block explorers.
    """

    default_explorer: str | None = None
    hosts: dict[str, HostEntry] = field(default_factory=dict)
    rpcs: dict[str, RpcEntry] = field(default_factory=dict)
    explorers: dict[str, ExplorerEntry] = field(default_factory=dict)

    @property
    def explorer_api_url(self) -> str | None:
        """API base URL of the default explorer, if one is configured."""
        if self.default_explorer is None:
            return None
        return self.explorers[self.default_explorer].api_url


@dataclass
class DashboardConfig:
    """Top-level hosts configuration.

    Attributes:
        default_network: Network polled when none is requested.
        networks: Configured networks (a subset of ``NETWORKS``).
    """

    default_network: str
    networks: dict[str, NetworkConfig]


class ConfigError(Exception):
    """Raised when a configuration file is malformed or unreadable."""


def load_config(path: Path | str | None = None) -> DashboardConfig:
    """Load the hosts configuration from a YAML or JSON file.

    Args:
        path: Explicit path to the config file.  If ``None``, the
            ``$BPDASH_CONFIG`` environment variable and then the default
            location (``~/.bpdash/hosts.yaml``) are tried.

    Returns:
        A validated ``DashboardConfig``.

    Raises:
        FileNotFoundError: If an explicit *path* (or ``$BPDASH_CONFIG``)
            doesn't exist.
        ConfigError: If no config file can be found, the file is not
            valid YAML, or its structure is invalid.
    """
    resolved = _resolve_path(path)
    if resolved is None:
        raise ConfigError(
            f"No hosts config found; pass --config or create {DEFAULT_CONFIG_PATH}"
        )

    logger.debug("Loading config from %s", resolved)
    text = resolved.read_text(encoding="utf-8")

    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {resolved}: {exc}") from exc

    return parse_dashboard_config(raw, source=resolved)


def parse_dashboard_config(raw: object, source: Path | str = "<config>") -> DashboardConfig:
    """Validate a decoded config mapping and build a ``DashboardConfig``.

    Raises:
        ConfigError: On any structural problem.  The config is
            user-provided, so nothing is guessed.
    """
    if not isinstance(raw, dict):
        raise ConfigError(
            f"Expected a mapping at the top level in {source}, "
            f"got {type(raw).__name__}"
        )

    networks_raw = raw.get("networks")
    if not isinstance(networks_raw, dict):
        raise ConfigError(f"Config {source} must include a networks mapping")

    unknown = set(networks_raw) - set(NETWORKS)
    if unknown:
        logger.warning(
            "Ignoring unknown networks in %s: %s",
            source,
            ", ".join(sorted(map(str, unknown))),
        )

    networks = {
        name: _parse_network(networks_raw[name], name)
        for name in NETWORKS
        if name in networks_raw
    }
    if not networks:
        raise ConfigError(
            f"Config {source} must define at least one of: {', '.join(NETWORKS)}"
        )

    default_network = raw.get("defaultNetwork")
    if default_network not in networks:
        default_network = next(iter(networks))

    return DashboardConfig(default_network=default_network, networks=networks)


def normalize_network(value: str | None, config: DashboardConfig) -> str:
    """Return *value* if it names a configured network, else the default."""
    if value and value in config.networks:
        return value
    return config.default_network


def read_timeout_ms() -> int:
    """Per-attempt HTTP deadline for polls, from ``$BPDASH_TIMEOUT_MS``."""
    raw = os.environ.get(TIMEOUT_ENV)
    if not raw:
        return DEFAULT_POLL_TIMEOUT_MS
    try:
        parsed = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", TIMEOUT_ENV, raw)
        return DEFAULT_POLL_TIMEOUT_MS
    return parsed if parsed > 0 else DEFAULT_POLL_TIMEOUT_MS


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _resolve_path(path: Path | str | None) -> Path | None:
    """Return a concrete ``Path`` to read, or ``None`` if nothing to read.

    Raises:
        FileNotFoundError: If the caller (or the environment) named a
            path that doesn't exist on disk.
    """
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV) or None

    if path is not None:
        p = Path(path).expanduser()
        if not p.is_file():
            raise FileNotFoundError(f"Config file not found: {p}")
        return p

    default = DEFAULT_CONFIG_PATH.expanduser()
    if default.is_file():
        return default
    return None


def _parse_network(value: object, name: str) -> NetworkConfig:
    if not isinstance(value, dict):
        raise ConfigError(f'network "{name}" must be a mapping')

    hosts = {
        key: HostEntry(title=title, url=url, role=role or DEFAULT_ROLE)
        for key, (title, url, role) in _parse_entries(
            value.get("hosts"), f"hosts ({name})"
        ).items()
    }
    rpcs = {
        key: RpcEntry(title=title, url=url)
        for key, (title, url, _role) in _parse_entries(
            value.get("rpcs"), f"rpcs ({name})"
        ).items()
    }
    explorers = _parse_explorers(value.get("explorers"), f"explorers ({name})")

    default_explorer = value.get("defaultExplorer")
    if explorers:
        if not isinstance(default_explorer, str) or not default_explorer:
            raise ConfigError(f'network "{name}" must include defaultExplorer')
        if default_explorer not in explorers:
            raise ConfigError(
                f'defaultExplorer "{default_explorer}" missing in explorers ({name})'
            )
    elif default_explorer is not None:
        raise ConfigError(
            f'defaultExplorer "{default_explorer}" missing in explorers ({name})'
        )

    return NetworkConfig(
        default_explorer=default_explorer,
        hosts=hosts,
        rpcs=rpcs,
        explorers=explorers,
    )


def _parse_entries(value: object, label: str) -> dict[str, tuple[str, str, str | None]]:
    """Validate a ``key → {title, url[, role]}`` mapping."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{label} must be a mapping")

    result: dict[str, tuple[str, str, str | None]] = {}
    for key, entry in value.items():
        if not isinstance(entry, dict):
            raise ConfigError(f'{label} entry "{key}" must be a mapping')
        title = entry.get("title")
        url = entry.get("url")
        if not isinstance(title, str) or not title or not isinstance(url, str) or not url:
            raise ConfigError(f'{label} entry "{key}" must include title and url')
        role = entry.get("role")
        result[str(key)] = (title, url, role if isinstance(role, str) else None)
    return result


def _parse_explorers(value: object, label: str) -> dict[str, ExplorerEntry]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{label} must be a mapping")

    result: dict[str, ExplorerEntry] = {}
    for key, entry in value.items():
        if not isinstance(entry, dict):
            raise ConfigError(f'{label} entry "{key}" must be a mapping')
        url = entry.get("url")
        api_url = entry.get("apiUrl")
        if not isinstance(url, str) or not url or not isinstance(api_url, str) or not api_url:
            raise ConfigError(f'{label} entry "{key}" must include url and apiUrl')
        title = entry.get("title")
        result[str(key)] = ExplorerEntry(
            url=url,
            api_url=api_url,
            title=title if isinstance(title, str) and title else None,
        )
    return result
