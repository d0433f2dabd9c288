"""
Configuration loading and validation.

Verifies the YAML loader, ${VAR} expansion, environment overrides for
credentials and the fail-fast startup check.
"""
import os
from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.config.config import (
    DEFAULT_CONFIG_PATH,
    Config,
    ExecutionConfig,
    fail_fast_startup,
    load_config,
    missing_credentials,
)
from src.config.dotenv_loader import load_dotenv_files
from src.exceptions import ConfigurationError

CREDENTIAL_VARS = ("HYPERLIQUID_WALLET_ADDRESS", "HYPERLIQUID_PRIVATE_KEY", "HYPERLIQUID_TESTNET", "DISCORD_WEBHOOK_URL")


@pytest.fixture
def clean_env(monkeypatch):
    for name in CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ENVIRONMENT", "prod")
    return monkeypatch


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(body)
    return path


def test_default_config_file_loads(clean_env):
    assert DEFAULT_CONFIG_PATH.exists()

    config = load_config(validate=False)

    assert config.exchange.name == "hyperliquid"
    assert config.execution.max_attempts == 3
    assert config.execution.unfilled_backoff_seconds == 3.0
    assert config.execution.error_backoff_seconds == 1.0
    assert not config.execution.retry_unreadable_status
    assert not config.notifications.enabled
    assert config.notifications.token_emojis == {}
    assert config.server.port == 3000


def test_variables_expanded(clean_env, tmp_path):
    clean_env.setenv("HYPERLIQUID_WALLET_ADDRESS", "0xwallet")
    clean_env.setenv("HYPERLIQUID_PRIVATE_KEY", "0xsecret")
    clean_env.setenv("DISCORD_WEBHOOK_URL", "https://discord.com/api/webhooks/1/x")
    path = _write(tmp_path, (
        "exchange:\n"
        "  wallet_address: ${HYPERLIQUID_WALLET_ADDRESS}\n"
        "  private_key: ${HYPERLIQUID_PRIVATE_KEY}\n"
        "notifications:\n"
        "  discord_webhook_url: ${DISCORD_WEBHOOK_URL}\n"
    ))

    config = load_config(path)

    assert config.exchange.wallet_address == "0xwallet"
    assert missing_credentials(config.exchange.wallet_address, config.exchange.private_key) == []
    assert config.notifications.enabled


def test_environment_overrides_yaml(clean_env, tmp_path):
    clean_env.setenv("ENVIRONMENT", "dev")
    clean_env.setenv("HYPERLIQUID_WALLET_ADDRESS", "0xfromenv")
    clean_env.setenv("HYPERLIQUID_PRIVATE_KEY", "0xkey")
    clean_env.setenv("HYPERLIQUID_TESTNET", "true")
    path = _write(tmp_path, "environment: prod\nexchange:\n  wallet_address: 0xfromyaml\n")

    config = Config.from_yaml(path)

    assert config.environment == "dev"
    assert config.exchange.wallet_address == "0xfromenv"
    assert config.exchange.use_testnet


def test_missing_credentials_fail_fast(clean_env, tmp_path):
    path = _write(tmp_path, "exchange:\n  wallet_address: ${HYPERLIQUID_WALLET_ADDRESS}\n")

    config = load_config(path, validate=False)
    assert config.exchange.wallet_address == "${HYPERLIQUID_WALLET_ADDRESS}"
    assert missing_credentials(config.exchange.wallet_address, config.exchange.private_key) == [
        "HYPERLIQUID_WALLET_ADDRESS",
        "HYPERLIQUID_PRIVATE_KEY",
    ]

    with pytest.raises(ConfigurationError, match="HYPERLIQUID_WALLET_ADDRESS"):
        fail_fast_startup(config)
    with pytest.raises(ConfigurationError, match="HYPERLIQUID_PRIVATE_KEY"):
        load_config(path)


def test_missing_file(clean_env, tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_execution_bounds():
    with pytest.raises(PydanticValidationError):
        ExecutionConfig(max_attempts=0)


def test_backoffs_are_independent(clean_env, tmp_path):
    path = _write(tmp_path, "execution:\n  unfilled_backoff_seconds: 0.5\n  error_backoff_seconds: 2.0\n")

    config = Config.from_yaml(path)

    assert config.execution.unfilled_backoff_seconds == 0.5
    assert config.execution.error_backoff_seconds == 2.0


def test_placeholder_credentials_reported_missing():
    assert missing_credentials("0xwallet", "0xkey") == []
    assert missing_credentials("  ${HYPERLIQUID_WALLET_ADDRESS}", "0xkey") == ["HYPERLIQUID_WALLET_ADDRESS"]
    assert missing_credentials("0xwallet", "   ") == ["HYPERLIQUID_PRIVATE_KEY"]
    assert missing_credentials(None, None) == ["HYPERLIQUID_WALLET_ADDRESS", "HYPERLIQUID_PRIVATE_KEY"]


def test_dotenv_skipped_in_prod(clean_env, tmp_path):
    (tmp_path / ".env").write_text("HYPERLIQUID_TESTNET=true\n")

    assert load_dotenv_files(repo_root=tmp_path) == []


def test_dotenv_local_overrides(clean_env, tmp_path):
    clean_env.setenv("ENVIRONMENT", "dev")
    clean_env.setenv("HYPERLIQUID_WALLET_ADDRESS", "0xpreset")
    (tmp_path / ".env").write_text("HYPERLIQUID_WALLET_ADDRESS=0xbase\n")
    (tmp_path / ".env.local").write_text("HYPERLIQUID_WALLET_ADDRESS=0xlocal\n")

    loaded = load_dotenv_files(repo_root=tmp_path)

    assert [p.name for p in loaded] == [".env", ".env.local"]
    assert os.environ["HYPERLIQUID_WALLET_ADDRESS"] == "0xlocal"
