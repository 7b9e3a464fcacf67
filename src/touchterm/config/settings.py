"""Configuration management for touchterm.

Loads settings from a YAML configuration file with environment variable
overrides. Supports .env files. The listen port can also be given by
the plain ``PORT`` environment variable.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from touchterm.client.toolbar import ToolbarButton, default_toolbar
from touchterm.domain.models import ModifierName

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/touchterm.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    websocket_path: str = Field(default="/ws")
    static_dir: str | None = Field(default=None, description="Directory served at /")
    output_encoding: Literal["base64", "utf-8"] = Field(default="base64")
    read_chunk_size: int = Field(default=4096, gt=0)
    term_name: str = Field(default="xterm-color")


class ClientConfig(BaseModel):
    url: str = Field(default="ws://localhost:3000/ws")
    modifiers: list[ModifierName] = Field(
        default_factory=lambda: [ModifierName.CTRL, ModifierName.ALT, ModifierName.META],
    )
    min_cols: int = Field(default=20, gt=0)
    min_rows: int = Field(default=6, gt=0)
    char_width: float = Field(default=9.0, gt=0)
    line_height: float = Field(default=17.0, gt=0)
    stack_escape_prefixes: bool = Field(default=False)
    reset_active_on_unlock: bool = Field(default=False)
    prefix_key: str = Field(default="\x1d", min_length=1, max_length=1)
    toolbar: list[ToolbarButton] = Field(default_factory=default_toolbar)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for touchterm.

    Loads from YAML file and supports environment variable overrides
    (``TOUCHTERM_SERVER__PORT=8080`` and so on). Reads .env files
    automatically.
    """

    model_config = {
        "env_prefix": "TOUCHTERM_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
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
        # TOUCHTERM_* variables win over values passed in (the YAML file)
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + environment variables.

    Priority: TOUCHTERM_* env vars > PORT > YAML file > .env file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    port = os.environ.get("PORT", "")
    if not port:
        return
    if not isinstance(yaml_data.get("server"), dict):
        yaml_data["server"] = {}
    yaml_data["server"]["port"] = port
