"""Pydantic models for application configuration with validation."""

import re
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


DEFAULT_INSTRUMENT_CODE_SUFFIXES = [
    "_US_EQ", "_EQ_US", "_CA_EQ", "_BE_EQ", "_AT_EQ", "_PT_EQ",
    "d_EQ", "I_EQ", "l_EQ", "_EQ", "a_EQ", "p_EQ", "e_EQ", "m_EQ", "s_EQ",
]


class TradingConfig(BaseModel):
    """Rebalancing thresholds, precision and pacing."""

    # Thresholds
    deadband: float = Field(
        default=1.00,
        ge=0.0,
        le=1000.0,
        description="Differences within +/- this value are treated as noise"
    )
    dust_threshold: float = Field(
        default=1.00,
        ge=0.0,
        le=1000.0,
        description="A partial sell leaving less than this value becomes a full liquidation"
    )
    min_buy_value: float = Field(
        default=1.00,
        ge=0.0,
        le=1000.0,
        description="Smallest buy value accepted when retrying with a broker-suggested cap"
    )

    # Precision
    sell_quantity_precision: int = Field(
        default=4,
        ge=0,
        le=8,
        description="Decimals used when rounding a partial sell quantity"
    )
    sell_retry_precision: int = Field(
        default=2,
        ge=0,
        le=8,
        description="Decimals a sell quantity is truncated to after a precision rejection"
    )
    buy_value_precision: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Decimals used when rounding a buy value (currency minor unit)"
    )
    prefer_broker_max_sell_quantity: bool = Field(
        default=True,
        description="Liquidate using the broker-reported maximum sellable quantity when available"
    )
    currency_code: str = Field(
        default="EUR",
        description="Account currency used for limit lookups and value orders"
    )

    # Pacing
    order_pacing_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=10.0,
        description="Wait after each order candidate to respect broker rate limits"
    )
    order_pacing_jitter_seconds: float = Field(
        default=0.0,
        ge=0.0,
        le=5.0,
        description="Random extra wait added to the pacing delay"
    )

    @field_validator("currency_code")
    @classmethod
    def validate_currency_code(cls, v: str) -> str:
        """Validate currency is a three-letter ISO code."""
        if not re.match(r'^[A-Z]{3}$', v):
            raise ValueError(f"Invalid currency code '{v}'. Must be three upper-case letters")
        return v


class RetryConfig(BaseModel):
    """Broker error wording used to derive corrected retries."""

    precision_error_patterns: List[str] = Field(
        default_factory=lambda: ["invalid quantity precision", "Precision error"],
        description="Substrings marking a sell rejected for quantity precision"
    )
    max_buy_value_pattern: str = Field(
        default=r"must buy at most\D*(\d[\d,]*(?:\.\d+)?)",
        description="Regex with one capture group extracting the broker's maximum buy value"
    )

    @field_validator("max_buy_value_pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        """Validate the pattern compiles and has a capture group."""
        try:
            compiled = re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid max_buy_value_pattern: {e}") from e
        if compiled.groups < 1:
            raise ValueError("max_buy_value_pattern must contain a capture group for the value")
        return v


class BrokerConfig(BaseModel):
    """Trading 212 web API settings."""

    request_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="Timeout for broker API requests"
    )
    base_url_template: str = Field(
        default="https://{mode}.services.trading212.com",
        description="Base URL; {mode} is replaced by 'live' or 'demo'"
    )
    client_application: str = Field(
        default="WC4",
        description="Application name sent in the X-Trader-Client header"
    )
    client_version: str = Field(
        default="7.83.0",
        description="Client version sent in the X-Trader-Client header"
    )
    time_validity: Literal["GOOD_TILL_CANCEL", "DAY"] = Field(
        default="GOOD_TILL_CANCEL",
        description="Time validity for all market orders"
    )


class ResolverConfig(BaseModel):
    """Ticker symbol search settings."""

    instrument_code_suffixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_INSTRUMENT_CODE_SUFFIXES),
        description="Symbols ending in one of these are already broker instrument codes"
    )
    search_url: str = Field(
        default="https://ldhni5oled-dsn.algolia.net/1/indexes/*/queries",
        description="Instrument search endpoint"
    )
    application_id: str = Field(
        default="LDHNI5OLED",
        description="Search application id"
    )
    index_name: str = Field(
        default="instrument.ld4.EN",
        description="Search index holding broker instruments"
    )
    search_filters: str = Field(
        default="(state.demo.enabled:true) AND (state.demo.conditionalVisibility:false) AND (NOT category:CRYPTO)",
        description="Filter expression applied to instrument searches"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Timeout for instrument search requests"
    )


class NotificationConfig(BaseModel):
    """ntfy notification settings."""

    enabled: bool = Field(
        default=False,
        description="Send the final run outcome to ntfy"
    )
    channel: str = Field(
        default="",
        description="ntfy topic name"
    )
    ntfy_url: str = Field(
        default="https://ntfy.sh",
        description="ntfy server URL"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level"
    )
    format: Literal["text", "json"] = Field(
        default="text",
        description="Log line format"
    )
    file_path: Optional[str] = Field(
        default=None,
        description="Optional log file, rotated daily"
    )


class AppConfig(BaseModel):
    """Root application configuration."""

    trading: TradingConfig = Field(
        default_factory=TradingConfig,
        description="Rebalancing thresholds, precision and pacing"
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Broker error wording for retries"
    )
    broker: BrokerConfig = Field(
        default_factory=BrokerConfig,
        description="Broker API settings"
    )
    resolver: ResolverConfig = Field(
        default_factory=ResolverConfig,
        description="Ticker search settings"
    )
    notifications: NotificationConfig = Field(
        default_factory=NotificationConfig,
        description="Notification settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration"
    )
