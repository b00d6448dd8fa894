"""Configuration management for linegate.

Loads settings from a YAML configuration file with environment variable
overrides (``LINEGATE_`` prefix, ``__`` for nested keys). Supports .env
files. Values are read once at startup; the gateway limits are not
reconfigurable while the server runs.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/linegate.yaml")


class GatewayConfig(BaseModel):
    max_connections: int = Field(default=5, gt=0, description="Concurrent client limit")
    max_command_length: int = Field(default=128, gt=0, description="Max payload size in bytes")
    buffer_capacity: int = Field(default=256, ge=4, description="Per-dispatch sink size in bytes")
    version_tag: str = Field(default="linegate WebSocket 1.0")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    ws_path: str = Field(default="/ws", pattern=r"^/")
    static_dir: str | None = Field(default=None, description="Directory served at / if set")


class InterpreterConfig(BaseModel):
    kind: str = Field(default="echo", description="'echo', 'shell' or 'package.module:attribute'")
    shell_executable: str = Field(default="/bin/sh")
    shell_timeout: float = Field(default=5.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for linegate.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "LINEGATE_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    interpreter: InterpreterConfig = Field(default_factory=InterpreterConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs and must lose to the environment.
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    return Settings(**yaml_data)
