"""
Providers module - External API adapters

Each provider wraps an external API and returns domain models.
All providers inherit from BaseProvider for consistent interface.
"""

from streamhedge.providers.base import BaseProvider, HealthCheckResult, ProviderStatus
from streamhedge.providers.kraken import KrakenDepthProvider, KrakenExecutionProvider
from streamhedge.providers.midgard import MidgardProvider
from streamhedge.providers.thornode import ThornodeProvider

__all__ = [
    "BaseProvider",
    "HealthCheckResult",
    "ProviderStatus",
    "KrakenDepthProvider",
    "KrakenExecutionProvider",
    "MidgardProvider",
    "ThornodeProvider",
]
