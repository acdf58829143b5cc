"""
Core module - Engineering foundation

Contains configuration, logging, HTTP client, caching, events and utilities.
"""

from streamhedge.core.config import (
    Settings,
    TradeConfig,
    TradeConfigService,
    get_settings,
    load_yaml_config,
)
from streamhedge.core.errors import (
    StreamHedgeError,
    ProviderError,
    ConfigurationError,
    DataNotAvailableError,
    AuthenticationError,
    ExecutionError,
)
from streamhedge.core.events import EventBus, Topic
from streamhedge.core.logging import setup_logging, get_logger

__all__ = [
    "Settings",
    "TradeConfig",
    "TradeConfigService",
    "get_settings",
    "load_yaml_config",
    "StreamHedgeError",
    "ProviderError",
    "ConfigurationError",
    "DataNotAvailableError",
    "AuthenticationError",
    "ExecutionError",
    "EventBus",
    "Topic",
    "setup_logging",
    "get_logger",
]
