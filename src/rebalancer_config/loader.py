"""Configuration loader with validation and singleton access."""

import logging
import yaml
from pathlib import Path
from typing import Optional

from .models import AppConfig

logger = logging.getLogger(__name__)

# Global config singleton
_config: Optional[AppConfig] = None


def load_config(config_path: str | Path) -> AppConfig:
    """
    Load and validate configuration from YAML file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
        yaml.YAMLError: If YAML parsing fails
    """
    global _config

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}

    try:
        _config = AppConfig(**raw_config)
    except Exception as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ValueError(f"Invalid configuration: {e}") from e

    # Log loaded configuration for audit trail
    trading = _config.trading
    logger.info("Configuration loaded successfully:")
    logger.info(f"  Deadband: {trading.deadband:.2f} {trading.currency_code}")
    logger.info(f"  Dust threshold: {trading.dust_threshold:.2f} {trading.currency_code}")
    logger.info(f"  Minimum buy value: {trading.min_buy_value:.2f} {trading.currency_code}")
    logger.info(f"  Sell precision: {trading.sell_quantity_precision} decimals (retry: {trading.sell_retry_precision})")
    logger.info(f"  Prefer broker max sell quantity: {trading.prefer_broker_max_sell_quantity}")
    logger.info(f"  Order pacing: {trading.order_pacing_delay_seconds}s (+{trading.order_pacing_jitter_seconds}s jitter)")
    logger.info(f"  Broker request timeout: {_config.broker.request_timeout_seconds}s")
    logger.info(f"  Known instrument suffixes: {len(_config.resolver.instrument_code_suffixes)}")
    logger.info(f"  Notifications enabled: {_config.notifications.enabled}")

    return _config


def get_config() -> AppConfig:
    """
    Get the current loaded configuration.

    Returns:
        Current AppConfig instance

    Raises:
        RuntimeError: If config hasn't been loaded yet
    """
    if _config is None:
        raise RuntimeError(
            "Configuration not loaded. Call load_config() first."
        )
    return _config
