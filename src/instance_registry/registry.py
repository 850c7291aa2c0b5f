"""
Process-wide instance registry holding only weak references.

Code that only knows an instance's id (a dispatch helper running on another
thread or task, a callback wired up by a framework) resolves the id here and
gets the live instance back. The registry is purely a lookup index: ownership
stays with whoever created the instance, and once the owner drops its last
reference the instance is reclaimed and its id stops resolving.

Dead entries are queued by the weakref callback and removed on the next
registry access. The callback itself never touches the mapping, so it is safe
to run from the garbage collector at any point, including while the lock is
held by the same thread.
"""
from __future__ import annotations

import logging
import threading
import weakref
from collections import deque
from typing import Any, Callable, Deque, Dict, Hashable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .config import RegistryConfig, get_registry_config
from .exceptions import InstanceNotFoundError, RegistrationError

logger = logging.getLogger(__name__)


class RegistryStats(BaseModel):
    """Point-in-time counters for a registry."""

    model_config = ConfigDict(frozen=True)

    entries: int = Field(0, ge=0, description="Physical entries, including dead ones not yet pruned")
    live: int = Field(0, ge=0)
    pending_prune: int = Field(0, ge=0)
    registered_total: int = Field(0, ge=0)
    pruned_total: int = Field(0, ge=0)
    next_id: int = Field(1, ge=1, description="Next id candidate for add(); never decreases")


class InstanceRegistry:
    """
    Mapping from instance id to a weak reference to the instance.

    Ids handed out by ``add`` come from a counter and are never reused, so a
    stale id can never resolve to an unrelated instance created later.
    Caller-chosen ids passed to ``register`` may be reused; the newest
    registration wins.
    """

    def __init__(self, config: Optional[RegistryConfig] = None) -> None:
        self._config = config
        self._refs: Dict[Hashable, weakref.ref] = {}
        self._pending: Deque[Tuple[Hashable, weakref.ref]] = deque()
        self._lock = threading.RLock()
        self._next_id = 1
        self._registered_total = 0
        self._pruned_total = 0

    @property
    def config(self) -> RegistryConfig:
        return self._config or get_registry_config()

    def _make_callback(self, instance_id: Hashable) -> Callable[[weakref.ref], None]:
        pending = self._pending

        def _on_reclaimed(ref: weakref.ref) -> None:
            pending.append((instance_id, ref))

        return _on_reclaimed

    def _drain_pending(self) -> None:
        # Caller holds self._lock.
        while self._pending:
            instance_id, ref = self._pending.popleft()
            # The id may have been re-registered since; only drop our own ref.
            if self._refs.get(instance_id) is ref:
                del self._refs[instance_id]
                self._pruned_total += 1
                logger.debug(f"Pruned reclaimed instance {instance_id!r}")

    def register(self, instance_id: Hashable, instance: Any) -> Hashable:
        """
        Register ``instance`` under ``instance_id`` without taking ownership.

        Args:
            instance_id: Hashable id, unique to the instance for its lifetime.
            instance: Any object supporting weak references.

        Returns:
            The id, for chaining.

        Raises:
            RegistrationError: If the id is None or unhashable, the object cannot
                be weakly referenced, or overwriting is disabled and the id
                still resolves to another live instance.
        """
        if instance_id is None:
            raise RegistrationError(instance_id, "instance id must not be None")
        try:
            hash(instance_id)
        except TypeError as exc:
            raise RegistrationError(instance_id, f"instance id {instance_id!r} is not hashable") from exc

        try:
            ref = weakref.ref(instance, self._make_callback(instance_id))
        except TypeError as exc:
            raise RegistrationError(
                instance_id,
                f"{type(instance).__name__} objects cannot be weakly referenced",
            ) from exc

        with self._lock:
            self._drain_pending()
            existing = self._refs.get(instance_id)
            current = existing() if existing is not None else None
            if current is not None and current is not instance:
                if not self.config.allow_overwrite:
                    raise RegistrationError(
                        instance_id, f"id {instance_id!r} is already bound to a live instance"
                    )
                logger.info(f"Overwriting registry entry for id {instance_id!r}")
            self._refs[instance_id] = ref
            self._registered_total += 1

        logger.debug(f"Registered {type(instance).__name__} under id {instance_id!r}")
        return instance_id

    def add(self, instance: Any) -> int:
        """Register ``instance`` under a freshly allocated, never-reused integer id."""
        with self._lock:
            while self._next_id in self._refs:
                self._next_id += 1
            instance_id = self._next_id
            self._next_id += 1
            self.register(instance_id, instance)
        return instance_id

    def resolve(self, instance_id: Hashable) -> Any:
        """
        Return a strong reference to the live instance registered under ``instance_id``.

        The returned reference keeps the instance alive for as long as the caller
        holds it, so it can be used safely even if the owner lets go concurrently.

        Raises:
            InstanceNotFoundError: If the id is unknown or the instance was reclaimed.
        """
        with self._lock:
            ref = self._refs.get(instance_id)
            instance = ref() if ref is not None else None
            self._drain_pending()
            if instance is None and ref is not None and self._refs.get(instance_id) is ref:
                del self._refs[instance_id]
                self._pruned_total += 1

        if instance is not None:
            return instance
        if ref is None:
            raise InstanceNotFoundError(instance_id, "unknown")
        if self.config.log_stale_lookups:
            logger.warning(f"Lookup of reclaimed instance {instance_id!r}")
        raise InstanceNotFoundError(instance_id, "reclaimed")

    def get(self, instance_id: Hashable, default: Any = None) -> Any:
        """Like ``resolve`` but return ``default`` instead of raising."""
        try:
            return self.resolve(instance_id)
        except InstanceNotFoundError:
            return default

    def unregister(self, instance_id: Hashable, instance: Any = None) -> bool:
        """
        Remove the entry for ``instance_id``.

        Args:
            instance_id: The id to remove.
            instance: When given, the entry is removed only if it still refers
                to this exact object; a newer registration under the same id is
                left in place. The check and the removal happen under one lock.

        Returns:
            True if an entry was removed, False otherwise.
        """
        with self._lock:
            self._drain_pending()
            ref = self._refs.get(instance_id)
            removed = ref is not None and (instance is None or ref() is instance)
            if removed:
                del self._refs[instance_id]
        if removed:
            logger.debug(f"Unregistered id {instance_id!r}")
        return removed

    def prune(self) -> int:
        """Drop every dead entry and return how many were removed."""
        with self._lock:
            before = self._pruned_total
            self._drain_pending()
            dead = [key for key, ref in self._refs.items() if ref() is None]
            for key in dead:
                del self._refs[key]
            self._pruned_total += len(dead)
            removed = self._pruned_total - before
        if removed:
            logger.debug(f"Pruned {removed} dead registry entries")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._refs.clear()
            self._pending.clear()

    def ids(self) -> List[Hashable]:
        """Ids that currently resolve to a live instance."""
        with self._lock:
            self._drain_pending()
            return [key for key, ref in self._refs.items() if ref() is not None]

    def stats(self) -> RegistryStats:
        with self._lock:
            live = sum(1 for ref in self._refs.values() if ref() is not None)
            return RegistryStats(
                entries=len(self._refs),
                live=live,
                pending_prune=len(self._pending),
                registered_total=self._registered_total,
                pruned_total=self._pruned_total,
                next_id=self._next_id,
            )

    def __contains__(self, instance_id: Hashable) -> bool:
        with self._lock:
            ref = self._refs.get(instance_id)
            return ref is not None and ref() is not None

    def __len__(self) -> int:
        return len(self.ids())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(live={len(self)})"


# Global instance
default_registry = InstanceRegistry()


def get_registry() -> InstanceRegistry:
    return default_registry


def register(instance_id: Hashable, instance: Any) -> Hashable:
    """Register on the default registry."""
    return default_registry.register(instance_id, instance)


def resolve(instance_id: Hashable) -> Any:
    """Resolve on the default registry."""
    return default_registry.resolve(instance_id)


def unregister(instance_id: Hashable, instance: Any = None) -> bool:
    """Unregister from the default registry."""
    return default_registry.unregister(instance_id, instance)


__all__ = [
    "InstanceRegistry",
    "RegistryStats",
    "default_registry",
    "get_registry",
    "register",
    "resolve",
    "unregister",
]
