"""
Typed configuration for the instance registry and its dispatcher.

- Strongly typed with Pydantic v2
- Optional YAML overlay at configs/instance_registry.yaml (environment override
  via INSTANCE_REGISTRY_CONFIG)
- Invalid overlays fall back to built-in defaults

Usage:
    from instance_registry.config import get_registry_config
    cfg = get_registry_config()
    timeout = cfg.dispatch_timeout_seconds
"""
from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "INSTANCE_REGISTRY_CONFIG"
DEFAULT_CONFIG_PATH = os.path.join("configs", "instance_registry.yaml")


class LogLevel(str, Enum):
    """Log levels for configuration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class RegistryConfig(BaseModel):
    """Settings shared by the registry and the dispatch manager."""

    model_config = ConfigDict(extra="forbid", frozen=True, use_enum_values=True)

    allow_overwrite: bool = Field(
        True, description="Allow re-registering an id that still resolves to another live instance"
    )
    require_operation_marker: bool = Field(
        True, description="Only methods decorated with @operation are dispatchable"
    )
    dispatch_timeout_seconds: float = Field(
        30.0, gt=0.0, description="Upper bound for a single async dispatch"
    )
    log_level: LogLevel = Field(LogLevel.INFO, validate_default=True)
    log_stale_lookups: bool = Field(
        True, description="Log a warning when an id resolves to a reclaimed instance"
    )


_cached_config: Optional[RegistryConfig] = None


def _load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.debug(f"No registry config YAML found at {path}; using built-in defaults")
        return {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load registry config YAML from {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning("Registry config YAML is not a mapping; ignoring")
        return {}
    return data


def get_registry_config(
    force_reload: bool = False, override: Optional[Dict[str, Any]] = None
) -> RegistryConfig:
    """
    Obtain the global RegistryConfig.

    Precedence:
      Built-in defaults < YAML overlay < override dict
    """
    global _cached_config
    if _cached_config is not None and not force_reload and override is None:
        return _cached_config

    merged = RegistryConfig().model_dump()
    merged.update(_load_yaml(os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH))
    if override:
        merged.update(override)

    try:
        config = RegistryConfig.model_validate(merged)
    except ValidationError as e:
        logger.error(f"Invalid registry configuration; using defaults. Error: {e}")
        config = RegistryConfig()

    _cached_config = config
    return config


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stream handler to the package logger at the configured level."""
    package_logger = logging.getLogger("instance_registry")
    package_logger.setLevel(level or get_registry_config().log_level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        package_logger.addHandler(handler)
    return package_logger


__all__ = [
    "LogLevel",
    "RegistryConfig",
    "get_registry_config",
    "configure_logging",
    "CONFIG_ENV_VAR",
]
