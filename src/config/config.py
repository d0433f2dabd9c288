"""
Configuration models for the Hyperliquid signal execution service.

Uses Pydantic for validation and type safety.
"""
import os
import re
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import (
    DEFAULT_MARGIN_MODE,
    ERROR_BACKOFF_SECONDS,
    EXPECTED_EXCHANGE,
    MAX_FILL_ATTEMPTS,
    NOTIFY_MAX_RETRIES,
    NOTIFY_QUEUE_SIZE,
    NOTIFY_RETRY_DELAY_SECONDS,
    OPEN_PRICE_DECIMALS,
    PERP_SYMBOL_SUFFIX,
    UNFILLED_BACKOFF_SECONDS,
)
from src.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def missing_credentials(wallet_address: Optional[str], private_key: Optional[str]) -> List[str]:
    """Names of the credential variables that are empty or left as an unexpanded ${VAR}."""
    missing = []
    for value, env_name in (
        (wallet_address, "HYPERLIQUID_WALLET_ADDRESS"),
        (private_key, "HYPERLIQUID_PRIVATE_KEY"),
    ):
        value = (value or "").strip()
        if not value or value.startswith("${"):
            missing.append(env_name)
    return missing


class ExchangeConfig(BaseSettings):
    """Exchange connection and credentials."""
    model_config = SettingsConfigDict(extra="ignore")

    name: str = EXPECTED_EXCHANGE
    wallet_address: Optional[str] = None
    private_key: Optional[str] = None
    use_testnet: bool = False
    margin_mode: Literal["cross", "isolated"] = DEFAULT_MARGIN_MODE
    instrument_suffix: str = PERP_SYMBOL_SUFFIX
    timeout_ms: int = Field(default=30000, ge=1000, le=120000)


class ExecutionConfig(BaseSettings):
    """Order placement and fill retry policy."""
    model_config = SettingsConfigDict(extra="ignore")

    max_attempts: int = Field(default=MAX_FILL_ATTEMPTS, ge=1, le=10)
    unfilled_backoff_seconds: float = Field(default=UNFILLED_BACKOFF_SECONDS, ge=0.0, le=60.0)
    error_backoff_seconds: float = Field(default=ERROR_BACKOFF_SECONDS, ge=0.0, le=60.0)
    open_price_decimals: int = Field(default=OPEN_PRICE_DECIMALS, ge=0, le=8)
    # Resubmitting after an unreadable status can double a position
    retry_unreadable_status: bool = False


class NotificationConfig(BaseSettings):
    """Outbound trade/error notifications (Discord webhook)."""
    model_config = SettingsConfigDict(extra="ignore")

    discord_webhook_url: Optional[str] = None
    max_retries: int = Field(default=NOTIFY_MAX_RETRIES, ge=1, le=10)
    retry_delay_seconds: float = Field(default=NOTIFY_RETRY_DELAY_SECONDS, ge=0.0, le=30.0)
    queue_size: int = Field(default=NOTIFY_QUEUE_SIZE, ge=1, le=10000)
    footer_text: str = ""
    strategy_link: Optional[str] = None
    # Base token -> emoji shown before the trading pair, e.g. BTC: "<:btc:123>"
    token_emojis: Dict[str, str] = Field(default_factory=dict)

    @property
    def enabled(self) -> bool:
        url = (self.discord_webhook_url or "").strip()
        return bool(url) and not url.startswith("${")


class ServerConfig(BaseSettings):
    """HTTP ingress."""
    model_config = SettingsConfigDict(extra="ignore")

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)


class MonitoringConfig(BaseSettings):
    """Logging configuration."""
    model_config = SettingsConfigDict(extra="ignore")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Optional[str] = None


class Config(BaseSettings):
    """Main configuration class."""
    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        extra="ignore",
    )

    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    environment: Literal["dev", "prod"] = "prod"

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """Load configuration from YAML file, expanding ${VAR} references."""
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        raw_content = yaml_path.read_text()

        pattern = re.compile(r'\$\{([^}]+)\}|\$([a-zA-Z_][a-zA-Z0-9_]*)')

        def replace_match(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))  # Keep original if not found

        config_dict = yaml.safe_load(pattern.sub(replace_match, raw_content)) or {}

        if "ENVIRONMENT" in os.environ:
            config_dict["environment"] = os.environ["ENVIRONMENT"]

        # Secrets from env win over anything left unexpanded in YAML
        exchange = config_dict.setdefault("exchange", {}) or {}
        config_dict["exchange"] = exchange
        for key, env_name in (
            ("wallet_address", "HYPERLIQUID_WALLET_ADDRESS"),
            ("private_key", "HYPERLIQUID_PRIVATE_KEY"),
        ):
            if os.getenv(env_name):
                exchange[key] = os.environ[env_name]
        if os.getenv("HYPERLIQUID_TESTNET"):
            exchange["use_testnet"] = os.environ["HYPERLIQUID_TESTNET"].strip().lower() in ("1", "true", "yes")

        return cls(**config_dict)


def fail_fast_startup(config: Config) -> None:
    """
    Startup validation: credentials must be present before anything trades.

    Raises:
        ConfigurationError: wallet address or private key missing
    """
    from src.monitoring.logger import get_logger
    logger = get_logger(__name__)

    missing = missing_credentials(config.exchange.wallet_address, config.exchange.private_key)

    if missing:
        logger.critical("STARTUP_VALIDATION_FAILED", missing=missing, environment=config.environment)
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    if config.environment == "prod" and config.exchange.use_testnet:
        logger.warning("TESTNET enabled in prod environment - check configuration")

    if not config.notifications.enabled:
        logger.warning("No Discord webhook configured - notifications will be logged only")

    logger.info(
        "STARTUP_VALIDATION_PASSED",
        environment=config.environment,
        network="testnet" if config.exchange.use_testnet else "mainnet",
    )


def load_config(config_path: str | Path | None = None, *, validate: bool = True) -> Config:
    """
    Load and validate configuration.

    Args:
        config_path: Path to config.yaml. If None, uses src/config/config.yaml
        validate: Run fail_fast_startup on the loaded config

    Returns:
        Validated Config object

    Raises:
        FileNotFoundError: If config file not found
        ConfigurationError: If credentials are missing and validate is True
    """
    config = Config.from_yaml(config_path or DEFAULT_CONFIG_PATH)
    if validate:
        fail_fast_startup(config)
    return config
