"""Tests for RegistryConfig and the YAML/override loading path."""

import logging

import pytest
from pydantic import ValidationError

from instance_registry import config as config_module
from instance_registry.config import (
    CONFIG_ENV_VAR,
    LogLevel,
    RegistryConfig,
    configure_logging,
    get_registry_config,
)


def test_defaults():
    cfg = RegistryConfig()
    assert cfg.allow_overwrite is True
    assert cfg.require_operation_marker is True
    assert cfg.dispatch_timeout_seconds == 30.0
    assert cfg.log_level == "INFO"
    assert cfg.log_stale_lookups is True


def test_invalid_values_rejected():
    with pytest.raises(ValidationError):
        RegistryConfig(dispatch_timeout_seconds=0)
    with pytest.raises(ValidationError):
        RegistryConfig(log_level="LOUD")
    with pytest.raises(ValidationError):
        RegistryConfig(unknown_field=True)


def test_config_is_frozen_and_model_copy_works():
    cfg = RegistryConfig()
    with pytest.raises(ValidationError):
        cfg.allow_overwrite = False
    cfg2 = cfg.model_copy(update={"allow_overwrite": False})
    assert cfg2.allow_overwrite is False
    assert cfg.allow_overwrite is True


def test_log_level_accepts_enum_member():
    cfg = RegistryConfig(log_level=LogLevel.DEBUG)
    assert cfg.log_level == "DEBUG"


def test_yaml_overlay_and_override_precedence(tmp_path, monkeypatch):
    path = tmp_path / "registry.yaml"
    path.write_text("allow_overwrite: false\ndispatch_timeout_seconds: 5\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    cfg = get_registry_config(force_reload=True)
    assert cfg.allow_overwrite is False
    assert cfg.dispatch_timeout_seconds == 5.0

    cfg = get_registry_config(override={"dispatch_timeout_seconds": 1.5})
    assert cfg.allow_overwrite is False
    assert cfg.dispatch_timeout_seconds == 1.5


def test_config_is_cached_until_reload(tmp_path, monkeypatch):
    first = get_registry_config()
    assert get_registry_config() is first
    path = tmp_path / "registry.yaml"
    path.write_text("log_stale_lookups: false\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert get_registry_config() is first
    assert get_registry_config(force_reload=True).log_stale_lookups is False


def test_invalid_yaml_values_fall_back_to_defaults(tmp_path, monkeypatch, caplog):
    path = tmp_path / "registry.yaml"
    path.write_text("dispatch_timeout_seconds: -3\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    with caplog.at_level(logging.ERROR, logger="instance_registry.config"):
        cfg = get_registry_config(force_reload=True)
    assert cfg == RegistryConfig()
    assert "Invalid registry configuration" in caplog.text


def test_non_mapping_yaml_is_ignored(tmp_path, monkeypatch):
    path = tmp_path / "registry.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert get_registry_config(force_reload=True) == RegistryConfig()


def test_malformed_yaml_is_ignored(tmp_path, monkeypatch):
    path = tmp_path / "registry.yaml"
    path.write_text("allow_overwrite: [unclosed\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert get_registry_config(force_reload=True) == RegistryConfig()


def test_configure_logging_sets_level_and_single_handler(monkeypatch):
    logger = logging.getLogger("instance_registry")
    monkeypatch.setattr(logger, "handlers", [])
    monkeypatch.setattr(config_module, "_cached_config", RegistryConfig(log_level="WARNING"))
    configured = configure_logging()
    configure_logging()
    assert configured is logger
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
    configure_logging("DEBUG")
    assert logger.level == logging.DEBUG
    logger.setLevel(logging.NOTSET)
