"""Application configuration management for the Trading 212 rebalancer."""

from .models import (
    AppConfig,
    TradingConfig,
    RetryConfig,
    BrokerConfig,
    ResolverConfig,
    NotificationConfig,
    LoggingConfig,
)
from .loader import load_config, get_config

__all__ = [
    "AppConfig",
    "TradingConfig",
    "RetryConfig",
    "BrokerConfig",
    "ResolverConfig",
    "NotificationConfig",
    "LoggingConfig",
    "load_config",
    "get_config",
]
