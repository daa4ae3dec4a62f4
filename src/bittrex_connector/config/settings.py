"""Configuration settings using Pydantic for validation."""

import os
import re
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BittrexConfig(BaseModel):
    """Bittrex API configuration."""
    rest_base_url: str = Field(default="https://bittrex.com/api/v1.1", description="Bittrex v1.1 REST API base URL")
    rest_v2_base_url: str = Field(default="https://bittrex.com/api/v2.0", description="Bittrex v2.0 REST API base URL (candles)")
    symbols: List[str] = Field(default=["BTC-ETH"], description="Markets to track")
    rate_limit_requests_per_minute: int = Field(default=60, description="API rate limit")
    request_timeout_seconds: int = Field(default=30, description="HTTP request timeout")
    order_book_depth: int = Field(default=100, description="Levels requested per side for REST snapshots")

    @field_validator('symbols')
    @classmethod
    def normalize_symbols(cls, v):
        return [symbol.strip().upper() for symbol in v]


class BackfillConfig(BaseModel):
    """Historical backfill configuration."""
    page_delay_seconds: float = Field(default=1.0, description="Pause between page fetches")
    tick_interval_seconds: int = Field(default=60, description="Candle period used to synthesize trades")
    deduplicate: bool = Field(default=True, description="Drop repeated synthetic trades across pages")


class OrderBookConfig(BaseModel):
    """Order book reconstruction configuration."""
    strict_contiguity: bool = Field(default=False, description="Refuse to apply deltas after a nonce gap")


class RetryConfig(BaseModel):
    """Retry configuration for the gateway."""
    max_attempts: int = Field(default=3, description="Maximum retry attempts")
    initial_backoff_seconds: float = Field(default=1.0, description="Initial backoff delay")
    max_backoff_seconds: float = Field(default=30.0, description="Maximum backoff delay")
    backoff_multiplier: float = Field(default=2.0, description="Backoff multiplier")
    jitter: bool = Field(default=True, description="Add jitter to backoff")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")
    output: str = Field(default="stdout", description="Log output destination")

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v.lower() not in ['json', 'text']:
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class ConnectorSettings(BaseSettings):
    """Main connector settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    service_name: str = Field(default="bittrex-connector", description="Service name")
    environment: str = Field(default="local", description="Environment: local, dev, prod")

    bittrex: BittrexConfig = Field(default_factory=BittrexConfig)
    backfill: BackfillConfig = Field(default_factory=BackfillConfig)
    order_book: OrderBookConfig = Field(default_factory=OrderBookConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        if v not in ['local', 'dev', 'prod']:
            raise ValueError("Environment must be 'local', 'dev', or 'prod'")
        return v


def substitute_env_vars(obj: Any) -> Any:
    """
    Recursively substitute environment variables in configuration objects.

    Supports syntax:
    - ${VAR_NAME} - Required variable (raises error if not found)
    - ${VAR_NAME:-default} - Optional variable with default value

    Raises:
        ValueError: If required environment variable is not found
    """
    if isinstance(obj, dict):
        return {key: substitute_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        def replace_env_var(match):
            var_expr = match.group(1)

            if ':-' in var_expr:
                var_name, default_value = var_expr.split(':-', 1)
                return os.getenv(var_name.strip(), default_value)
            else:
                var_name = var_expr.strip()
                value = os.getenv(var_name)
                if value is None:
                    raise ValueError(f"Required environment variable '{var_name}' is not set")
                return value

        return re.sub(r'\$\{([^}]+)\}', replace_env_var, obj)
    else:
        return obj


def load_settings(config_file: Optional[str] = None) -> ConnectorSettings:
    """
    Load settings from an optional YAML file and environment variables.

    The config file supports ${VAR_NAME} substitution.

    Raises:
        ValueError: If required environment variables are missing
        FileNotFoundError: If config file doesn't exist
    """
    if config_file and os.path.exists(config_file):
        with open(config_file, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        config_data = substitute_env_vars(raw_config)
        return ConnectorSettings(**config_data)

    elif config_file:
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    return ConnectorSettings()
