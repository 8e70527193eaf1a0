"""Configuration management for the client alert bot."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, SecretStr


class TelegramConfig(BaseModel):
    """Telegram bot connection settings."""

    bot_token: SecretStr = Field(..., description="Token issued by @BotFather")
    webhook_url: Optional[str] = Field(
        default=None,
        description="Public base URL for webhook delivery. Polling is used when unset.",
    )
    webhook_secret: Optional[SecretStr] = Field(
        default=None,
        description="Path segment for /webhook/{secret}. Defaults to the bot token.",
    )
    send_timeout: float = Field(default=10.0, gt=0, description="Seconds before a send is abandoned")

    def webhook_path_secret(self) -> str:
        """Return the secret path segment used by the webhook route."""
        if self.webhook_secret is not None:
            return self.webhook_secret.get_secret_value()
        return self.bot_token.get_secret_value()


class ENSConfig(BaseModel):
    """ENS resolution settings."""

    rpc_url: str = Field(
        default="https://eth.llamarpc.com",
        description="Ethereum mainnet JSON-RPC endpoint used for ENS lookups",
    )
    timeout: float = Field(default=10.0, gt=0, description="Seconds before a lookup is abandoned")


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class AlertConfig(BaseModel):
    """Alert ingestion limits."""

    rate_limit_max: int = Field(default=100, ge=1, description="Alerts accepted per window")
    rate_limit_window_seconds: int = Field(default=24 * 60 * 60, ge=1)
    rate_limit_max_keys: int = Field(
        default=10_000, ge=1, description="Identifiers tracked at once by the rate limiter"
    )
    max_message_length: int = Field(default=1000, ge=1)
    max_alert_type_length: int = Field(default=100, ge=1)


class BotConfig(BaseModel):
    """Bot behavior settings."""

    database_path: str = Field(
        default="~/.client-alert-bot/alerts.db", description="Path to SQLite database file"
    )


class Config(BaseModel):
    """Root configuration model."""

    telegram: TelegramConfig
    ens: ENSConfig = ENSConfig()
    server: ServerConfig = ServerConfig()
    alerts: AlertConfig = AlertConfig()
    bot: BotConfig = BotConfig()


def expand_env_vars(obj):
    """Replace ``${VAR_NAME}`` string values with the matching environment variable."""
    if isinstance(obj, dict):
        return {k: expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [expand_env_vars(item) for item in obj]
    elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        env_var = obj[2:-1]
        value = os.getenv(env_var)
        if value is None:
            raise ValueError(f"Environment variable '{env_var}' is not set")
        return value
    return obj


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f) or {}

    raw_config = expand_env_vars(raw_config)

    return Config(**raw_config)
