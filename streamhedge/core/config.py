"""
Configuration management for streamhedge.

Supports:
- Process settings: .env file / environment variables
- YAML config for trading thresholds
- Runtime-mutable trading thresholds owned by TradeConfigService
"""

import math
import os
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from streamhedge.core.errors import ConfigurationError
from streamhedge.core.logging import get_logger

logger = get_logger("config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==============================================
    # Environment
    # ==============================================
    streamhedge_env: str = Field(default="local", description="Environment: local/prod")
    log_level: str = Field(default="INFO")
    timezone: str = Field(default="UTC")

    # ==============================================
    # Ledger
    # ==============================================
    midgard_api_url: str = Field(default="https://midgard.ninerealms.com")
    thornode_api_url: str = Field(default="https://thornode.ninerealms.com")
    tracked_asset: str = Field(default="THOR.RUJI", description="Asset watched for stream swaps")
    block_time_seconds: float = Field(default=6.0, description="Nominal ledger block time")
    poll_limit: int = Field(default=50, description="Actions fetched per poll")
    filter_by_asset: bool = Field(default=True, description="Ask Midgard to filter by tracked asset")
    dedup_capacity: int = Field(default=1000)
    duration_basis: Literal["count", "quantity"] = Field(
        default="count",
        description="Streaming field multiplied by interval for the duration estimate",
    )

    # ==============================================
    # Venue (Kraken)
    # ==============================================
    kraken_api_key: Optional[str] = Field(default=None)
    kraken_private_key: Optional[str] = Field(default=None, description="Base64 private key, passed to ccxt as the secret")
    kraken_pair: str = Field(default="RUJI/USD", description="ccxt unified symbol")
    kraken_depth_levels: int = Field(default=20)

    # ==============================================
    # Database
    # ==============================================
    database_url: str = Field(default="sqlite:///data/streamhedge.db")

    # ==============================================
    # Telegram
    # ==============================================
    telegram_bot_token: Optional[str] = Field(default=None)
    telegram_chat_id: Optional[str] = Field(default=None)
    telegram_enabled: bool = Field(default=False)

    # ==============================================
    # Runtime Config
    # ==============================================
    cache_ttl: int = Field(default=30, description="Cache TTL in seconds")
    http_timeout: int = Field(default=10, description="HTTP timeout in seconds")
    http_max_retries: int = Field(default=1, description="Attempts per HTTP request")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator("poll_limit", "dedup_capacity", "http_max_retries")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("block_time_seconds")
    @classmethod
    def validate_block_time(cls, v: float) -> float:
        if v <= 0 or not math.isfinite(v):
            raise ValueError("block_time_seconds must be positive")
        return v

    @property
    def poll_interval_seconds(self) -> float:
        """One poll per nominal block."""
        return self.block_time_seconds

    @property
    def has_kraken_credentials(self) -> bool:
        return bool(self.kraken_api_key and self.kraken_private_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_yaml_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """
    Load YAML configuration file.

    Args:
        config_path: Path to config file. Defaults to config/config.yaml

    Returns:
        Configuration dictionary (empty if the default file is absent)
    """
    explicit = config_path is not None
    if config_path is None:
        # Find project root (where pyproject.toml is)
        current = Path(__file__).resolve()
        for parent in current.parents:
            if (parent / "pyproject.toml").exists():
                config_path = str(parent / "config" / "config.yaml")
                break
        else:
            config_path = os.path.join("config", "config.yaml")

    path = Path(config_path)
    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return {}

    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class TradeConfig(BaseModel):
    """Operator-tunable trading thresholds."""

    model_config = ConfigDict(frozen=True)

    min_opportunity_size_usd: float = 4000.0
    min_opportunity_duration_s: float = 30.0
    trade_size_usd: float = 5.0
    max_slippage_pct: float = 5.0
    exit_buffer_seconds: float = 10.0
    dry_run: bool = True
    fallback_trade_qty: float = 0.001
    depth_failure_policy: Literal["fallback", "abort"] = "fallback"

    @field_validator(
        "min_opportunity_size_usd",
        "min_opportunity_duration_s",
        "trade_size_usd",
        "max_slippage_pct",
        "fallback_trade_qty",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            raise ValueError("must be a positive number")
        return v

    @field_validator("exit_buffer_seconds")
    @classmethod
    def validate_buffer(cls, v: float) -> float:
        if not math.isfinite(v) or v < 0:
            raise ValueError("exit buffer must be a non-negative number")
        return v


class TradeConfigService:
    """
    Single owner of the runtime trading thresholds.

    Pipeline components keep a reference and read ``current`` at point of
    use; only this service replaces the snapshot.
    """

    def __init__(self, config: Optional[TradeConfig] = None):
        self._config = config or TradeConfig()
        self._lock = threading.Lock()

    @classmethod
    def from_yaml(cls, config: Optional[dict] = None) -> "TradeConfigService":
        """Build from the ``trading`` section of config.yaml."""
        if config is None:
            config = load_yaml_config()
        section = config.get("trading", {}) or {}
        try:
            return cls(TradeConfig(**section))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid trading config: {e}") from e

    @property
    def current(self) -> TradeConfig:
        return self._config

    def update(self, **changes: Any) -> TradeConfig:
        """
        Replace one or more thresholds.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        unknown = set(changes) - set(TradeConfig.model_fields)
        if unknown:
            raise ConfigurationError(f"Unknown trading settings: {sorted(unknown)}")

        with self._lock:
            merged = {**self._config.model_dump(), **changes}
            try:
                updated = TradeConfig(**merged)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid trading setting: {e}") from e
            self._config = updated

        for key, value in changes.items():
            logger.info(f"Trading setting {key} updated to {value}")
        return updated

    def set_min_opportunity_size(self, value: float) -> None:
        self.update(min_opportunity_size_usd=value)

    def set_min_opportunity_duration(self, value: float) -> None:
        self.update(min_opportunity_duration_s=value)

    def set_dry_run(self, enabled: bool) -> None:
        self.update(dry_run=enabled)
