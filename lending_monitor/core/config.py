"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, SecretStr, ValidationError
from web3 import Web3

from lending_monitor.core.exceptions import ConfigError

logger = structlog.stdlib.get_logger()

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")

# Aave v3 Pool on Ethereum mainnet.
AAVE_V3_POOL = "0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2"


class ChainConfig(BaseModel):
    """Chain node connection configuration."""

    rpc_url: str = ""
    ws_url: str = ""
    pool_address: str = AAVE_V3_POOL
    request_timeout_secs: float = 10.0


class OracleFeedConfig(BaseModel):
    """A Chainlink-style aggregator to watch for staleness."""

    name: str
    address: str
    asset: str = ""
    max_staleness_secs: float = 3600.0
    decimals: int = 8


class ReserveConfig(BaseModel):
    """A lending reserve to watch for utilization spikes."""

    asset: str
    a_token: str
    debt_token: str
    decimals: int = 18


class MonitorConfig(BaseModel):
    """Monitoring loop configuration."""

    protocol: str = "aave-v3"
    addresses: list[str] = []
    interval_secs: float = 30.0
    feeds: list[OracleFeedConfig] = []
    reserves: list[ReserveConfig] = []


class AlertsConfig(BaseModel):
    """Webhook alert sink configuration — dispatch is disabled without a URL."""

    webhook_url: SecretStr = SecretStr("")
    timeout_secs: float = 10.0
    max_attempts: int = 1
    backoff_secs: float = 1.0

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url.get_secret_value())


class MetricsConfig(BaseModel):
    """Prometheus scrape endpoint configuration."""

    host: str = "0.0.0.0"
    port: int = 9090


class IndexerConfig(BaseModel):
    """Event indexer configuration (from_block 0 = live only)."""

    from_block: int = 0
    metrics_port: int = 9091


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    chain: ChainConfig = ChainConfig()
    monitor: MonitorConfig = MonitorConfig()
    alerts: AlertsConfig = AlertsConfig()
    metrics: MetricsConfig = MetricsConfig()
    indexer: IndexerConfig = IndexerConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.

    Raises:
        ConfigError: The file is not valid YAML or fails validation.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            try:
                raw = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"invalid YAML in {config_path}") from exc
            if isinstance(raw, dict):
                data = raw

    try:
        _settings = Settings(**data)
    except ValidationError as exc:
        raise ConfigError(f"invalid settings in {config_path}: {exc}") from exc
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None


def parse_addresses(raw: list[str] | str) -> list[str]:
    """Normalise monitored addresses to checksum form.

    Accepts a list or a comma-separated string.  Invalid entries are
    dropped with a warning rather than failing startup.
    """
    items = raw.split(",") if isinstance(raw, str) else raw
    addresses: list[str] = []
    for item in items:
        addr = item.strip()
        if not addr:
            continue
        if Web3.is_address(addr):
            addresses.append(Web3.to_checksum_address(addr))
        else:
            logger.warning("invalid_address_ignored", address=addr)
    return addresses


def require_runtime(settings: Settings) -> None:
    """Validate the endpoints the monitor cannot start without.

    Raises:
        ConfigError: The node endpoint or metrics listen port is missing.
    """
    if not settings.chain.rpc_url:
        raise ConfigError("chain.rpc_url is required")
    if not settings.metrics.port:
        raise ConfigError("metrics.port is required")
    if settings.monitor.interval_secs <= 0:
        raise ConfigError("monitor.interval_secs must be positive")
