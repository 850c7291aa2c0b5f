"""Exception hierarchy for instance_registry.

Both lookup failures and invocation failures are request-level errors: a
dispatcher catches them and fails the single request that triggered them.
"""
from __future__ import annotations

from typing import Any, Hashable, Optional


class RegistryError(Exception):
    """Base class for all registry errors."""


class InstanceNotFoundError(RegistryError, LookupError):
    """Raised when an id does not resolve to a live instance.

    Attributes:
        instance_id: The id that was looked up.
        reason: ``"unknown"`` if the id was never registered (or was
            unregistered), ``"reclaimed"`` if the target has been garbage
            collected.
    """

    def __init__(self, instance_id: Hashable, reason: str = "unknown") -> None:
        self.instance_id = instance_id
        self.reason = reason
        super().__init__(f"No live instance registered under id {instance_id!r} ({reason})")


class InvocationError(RegistryError):
    """Raised when a named operation is missing or fails on a resolved instance."""

    def __init__(
        self,
        instance_id: Hashable,
        operation: str,
        message: Optional[str] = None,
    ) -> None:
        self.instance_id = instance_id
        self.operation = operation
        detail = message or "invocation failed"
        super().__init__(f"Operation {operation!r} on instance {instance_id!r}: {detail}")


class RegistrationError(RegistryError, TypeError):
    """Raised when an id/instance pair cannot be registered."""

    def __init__(self, instance_id: Any, message: str) -> None:
        self.instance_id = instance_id
        super().__init__(message)


__all__ = [
    "RegistryError",
    "InstanceNotFoundError",
    "InvocationError",
    "RegistrationError",
]
