"""Weak-referencing instance registry.

Lets code that only holds an instance id look the instance up and invoke named
operations on it, without the registry ever keeping the instance alive.
"""
from __future__ import annotations

from .config import RegistryConfig, configure_logging, get_registry_config
from .dispatch import DispatchManager, DispatchRequest, DispatchResult, DispatchStatus
from .exceptions import (
    InstanceNotFoundError,
    InvocationError,
    RegistrationError,
    RegistryError,
)
from .instance import RegisteredInstance, operation
from .registry import (
    InstanceRegistry,
    RegistryStats,
    default_registry,
    get_registry,
    register,
    resolve,
    unregister,
)

__version__ = "0.1.0"

__all__ = [
    "DispatchManager",
    "DispatchRequest",
    "DispatchResult",
    "DispatchStatus",
    "InstanceNotFoundError",
    "InstanceRegistry",
    "InvocationError",
    "RegisteredInstance",
    "RegistrationError",
    "RegistryConfig",
    "RegistryError",
    "RegistryStats",
    "configure_logging",
    "default_registry",
    "get_registry",
    "get_registry_config",
    "operation",
    "register",
    "resolve",
    "unregister",
]
