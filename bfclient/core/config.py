"""
Configuration Manager - Loads and validates client configuration.

Merges YAML config with environment variables. Environment variables take
precedence over YAML values for deployment flexibility.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from bfclient.exchange.auth import Credentials
from bfclient.exchange.bitflyer_rest import BITFLYER_URL
from bfclient.exchange.exceptions import ConfigurationError
from bfclient.exchange.transport import DEFAULT_TIMEOUT_SECONDS, parse_base_url

DEFAULT_CONFIG_PATH = "config/config.yaml"


def _truthy(v: str) -> bool:
    return v.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------

def _apply_env_overrides(config: Dict[str, Any]) -> None:
    """Override YAML values with environment variables where set."""
    env_mappings = {
        "BITFLYER_BASE_URL": ("exchange", "base_url"),
        "BITFLYER_TIMEOUT_SECONDS": ("exchange", "timeout_seconds", float),
        # Legacy names, kept for older shell profiles. The canonical
        # names below are applied afterwards and win when both are set.
        "BFKEY": ("exchange", "api_key"),
        "BFSECRET": ("exchange", "api_secret"),
        "BITFLYER_API_KEY": ("exchange", "api_key"),
        "BITFLYER_API_SECRET": ("exchange", "api_secret"),
        "LOG_LEVEL": ("logging", "level"),
        "LOG_JSON": ("logging", "json_output", _truthy),
        "LOG_DIR": ("logging", "log_dir"),
    }

    for env_key, mapping in env_mappings.items():
        value = os.getenv(env_key)
        if value is None:
            continue
        section, key = mapping[0], mapping[1]
        converter = mapping[2] if len(mapping) > 2 else str
        try:
            converted = converter(value)
        except (ValueError, TypeError) as e:
            logging.getLogger("config").warning(
                "Env %s=%r failed to convert: %s. Using YAML value.",
                env_key, value, e,
            )
            continue
        if not isinstance(config.get(section), dict):
            config[section] = {}
        config[section][key] = converted


# ---------------------------------------------------------------------------
# Pydantic Configuration Models
# ---------------------------------------------------------------------------

class ExchangeSettings(BaseModel):
    base_url: str = BITFLYER_URL
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    api_key: str = ""
    api_secret: str = ""

    @field_validator("base_url")
    @classmethod
    def _absolute_url(cls, v: str) -> str:
        try:
            parse_base_url(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return v.rstrip("/") or v

    @field_validator("api_key", "api_secret")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_output: bool = False
    log_dir: Optional[str] = None

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level = (v or "INFO").strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {v!r}")
        return level


class ClientSettings(BaseModel):
    """Master configuration model."""
    exchange: ExchangeSettings = Field(default_factory=ExchangeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def credentials(self) -> Optional[Credentials]:
        """API credentials, or None when either part is missing."""
        if not (self.exchange.api_key and self.exchange.api_secret):
            return None
        return Credentials(self.exchange.api_key, self.exchange.api_secret)


def load_config_with_overrides(
    config_path: str = DEFAULT_CONFIG_PATH,
    overrides: Optional[Dict[str, Any]] = None,
) -> ClientSettings:
    """Load a fresh config (YAML + env) with optional deep overrides."""
    load_dotenv()

    yaml_config: Dict[str, Any] = {}
    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file, "r") as f:
            yaml_config = yaml.safe_load(f) or {}

    _apply_env_overrides(yaml_config)

    def _deep_update(dst: Dict[str, Any], src: Dict[str, Any]) -> None:
        for key, value in (src or {}).items():
            if isinstance(value, dict) and isinstance(dst.get(key), dict):
                _deep_update(dst[key], value)
            else:
                dst[key] = value

    if overrides:
        _deep_update(yaml_config, overrides)

    return ClientSettings(**yaml_config)
