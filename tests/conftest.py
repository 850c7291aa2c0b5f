import pytest

from instance_registry import config as config_module
from instance_registry.config import RegistryConfig
from instance_registry.registry import InstanceRegistry


@pytest.fixture(autouse=True)
def _reset_config_cache(monkeypatch, tmp_path):
    # Keep tests independent of any configs/ directory in the working tree.
    monkeypatch.setenv(config_module.CONFIG_ENV_VAR, str(tmp_path / "missing.yaml"))
    monkeypatch.setattr(config_module, "_cached_config", None)
    yield
    monkeypatch.setattr(config_module, "_cached_config", None)


@pytest.fixture
def registry():
    return InstanceRegistry(config=RegistryConfig())
