#!/usr/bin/env python3

"""Configuration Management Module.

Loads the resolver configuration from YAML, resolves ``${ENV_VAR}`` references
(after loading a ``.env`` file if present) and validates the result with Cerberus.

Sections:
    - ``musicbrainz.apis``: the pool of interchangeable search hosts.
    - ``musicbrainz.defaults``: default stage options, merged under per-call overrides
      by ``utils.stage_config.parse_stage_config``.
    - ``cache``: TTL and optional on-disk snapshot of the response cache.
    - ``logging``: log file location and levels.
"""

from __future__ import annotations

import logging
import os

from typing import Any

import yaml

from cerberus import Validator
from dotenv import load_dotenv

from utils.errors import ConfigError
from utils.stage_config import parse_stage_config, to_snake_case

logger = logging.getLogger("config")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "NOTSET"]
MUSICBRAINZ_URL = "https://musicbrainz.org"

API_HOST_SCHEMA = {
    "url": {"type": "string", "default": MUSICBRAINZ_URL, "regex": r"^https?://.+"},
    "api_key": {"type": "string", "nullable": True, "default": None},
    "contact": {"type": "string", "nullable": True, "default": None},
    "rate_limit": {"type": "number", "min": 0.01, "default": 1},
    "ttl": {"type": "integer", "min": 0, "nullable": True, "default": None},
    "request_timeout": {"type": "number", "min": 0.1, "nullable": True, "default": None},
}

CONFIG_SCHEMA = {
    "logs_base_dir": {"type": "string", "default": "logs"},
    "musicbrainz": {
        "type": "dict",
        "required": True,
        "schema": {
            "app_name": {"type": "string", "default": "RecordingResolver"},
            "app_version": {"type": "string", "default": "1.0.0"},
            "search_limit": {"type": "integer", "min": 1, "max": 100, "default": 25},
            "apis": {
                "type": "list",
                "required": True,
                "minlength": 1,
                "schema": {"type": "dict", "schema": API_HOST_SCHEMA},
            },
            # validated separately by parse_stage_config
            "defaults": {"type": "dict", "nullable": True, "default": None, "allow_unknown": True},
        },
    },
    "cache": {
        "type": "dict",
        "default": {},
        "schema": {
            "default_ttl": {"type": "integer", "min": 0, "default": 3600},
            "persist": {"type": "boolean", "default": False},
            "cache_file": {"type": "string", "default": "cache/musicbrainz_cache.json"},
        },
    },
    "logging": {
        "type": "dict",
        "default": {},
        "schema": {
            "main_log_file": {"type": "string", "default": "main/main.log"},
            "levels": {
                "type": "dict",
                "default": {},
                "schema": {
                    "console": {"type": "string", "allowed": LOG_LEVELS, "default": "INFO"},
                    "main_file": {"type": "string", "allowed": LOG_LEVELS, "default": "INFO"},
                },
            },
        },
    },
}


def resolve_env_vars(config: dict[str, Any] | list[Any] | Any) -> Any:
    """Recursively replace ``"${VAR}"`` string values with the environment value."""
    if isinstance(config, dict):
        return {k: resolve_env_vars(v) for k, v in config.items()}
    if isinstance(config, list):
        return [resolve_env_vars(item) for item in config]
    if isinstance(config, str) and config.startswith("${") and config.endswith("}"):
        return os.getenv(config[2:-1], "")
    return config


def _format_cerberus_errors(errors: dict[str, Any], indent: int = 2) -> str:
    lines = []
    for field, errs in errors.items():
        prefix = " " * indent
        if isinstance(errs, list):
            lines.append(f"{prefix}Field '{field}': {', '.join(str(e) for e in errs)}")
        else:
            lines.append(f"{prefix}Field '{field}': {errs}")
    return "\n".join(lines)


def _normalize_api_keys(config_data: dict[str, Any]) -> None:
    """Accept camelCase host options (``apiKey``, ``rateLimit``...) alongside snake_case."""
    musicbrainz = config_data.get("musicbrainz")
    if not isinstance(musicbrainz, dict) or not isinstance(musicbrainz.get("apis"), list):
        return
    musicbrainz["apis"] = [
        {to_snake_case(str(k)): v for k, v in host.items()} if isinstance(host, dict) else host
        for host in musicbrainz["apis"]
    ]


def validate_config(config_data: Any) -> dict[str, Any]:
    """Validate (and fill defaults into) an already-parsed configuration mapping.

    Raises:
        ConfigError: when the mapping does not match ``CONFIG_SCHEMA`` or the stage
            defaults are invalid.

    """
    if not isinstance(config_data, dict):
        raise ConfigError("Configuration must be a mapping.")
    config_data = resolve_env_vars(config_data)
    _normalize_api_keys(config_data)

    validator = Validator(schema=CONFIG_SCHEMA, allow_unknown=False)
    if not validator.validate(config_data):
        error_details = _format_cerberus_errors(validator.errors)
        logger.critical(f"Configuration validation failed:\n{error_details}")
        raise ConfigError(f"Configuration validation failed:\n{error_details}")
    validated = dict(validator.document)

    # fail at load time rather than on the first play
    parse_stage_config(validated["musicbrainz"].get("defaults"))
    validate_api_hosts(validated["musicbrainz"]["apis"])
    return validated


def validate_api_hosts(apis: list[dict[str, Any]]) -> None:
    """Warn about hosts that MusicBrainz may reject (no contact for the User-Agent)."""
    for api in apis:
        if not api.get("contact"):
            logger.warning(
                f"No contact configured for {api.get('url')}; "
                "musicbrainz.org may throttle or block requests without one."
            )


def load_config(config_path: str) -> dict[str, Any]:
    """Load the configuration from a YAML file, resolve environment variables, and validate it.

    Args:
        config_path: Path to the configuration YAML file.

    Returns:
        dict: the validated configuration with defaults applied.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigError: If the configuration is invalid or cannot be parsed.

    """
    env_loaded = load_dotenv()
    logger.info(f".env file {'found and loaded' if env_loaded else 'not found, using system environment variables'}")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file {config_path} does not exist.")

    logger.info(f"Loading config from: {config_path}")
    try:
        with open(config_path, encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.critical(f"Failed to parse YAML config: {e}")
        raise ConfigError(f"Failed to parse YAML config {config_path}: {e}") from e

    config = validate_config(config_data)
    logger.info("Configuration successfully loaded and validated.")
    return config
