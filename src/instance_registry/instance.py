"""Base class for instances that publish themselves in a registry.

A RegisteredInstance registers itself once construction finishes and exposes
the methods marked with ``@operation`` to the dispatcher. The instance holds a reference to
its registry; the registry only holds a weak reference back, so dropping the
last owning reference to the instance is enough to reclaim it.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, List, Optional, TypeVar, Union, overload

from .exceptions import InvocationError
from .registry import InstanceRegistry, get_registry

OPERATION_ATTR = "__registry_operation__"

F = TypeVar("F", bound=Callable[..., Any])


@overload
def operation(func: F) -> F: ...


@overload
def operation(name: str) -> Callable[[F], F]: ...


def operation(func_or_name: Union[Callable[..., Any], str, None] = None):
    """Mark a method as invocable by name through the dispatcher.

    Usable bare (``@operation``) to expose the method under its own name, or
    with an explicit name (``@operation("parse")``).
    """

    def _mark(func: F, name: Optional[str]) -> F:
        setattr(func, OPERATION_ATTR, name or func.__name__)
        return func

    if callable(func_or_name):
        return _mark(func_or_name, None)

    def decorator(func: F) -> F:
        return _mark(func, func_or_name)

    return decorator


def collect_operations(cls: type) -> Dict[str, str]:
    """Map exposed operation names to attribute names for ``cls``.

    The most derived definition of each attribute wins, so a subclass that
    overrides a marked method without re-marking it withdraws the operation.
    """
    resolved: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        resolved.update(vars(klass))
    ops: Dict[str, str] = {}
    for attr, value in resolved.items():
        name = getattr(value, OPERATION_ATTR, None)
        if name is not None:
            ops[name] = attr
    return ops


def _bound_attribute(instance: Any, attr: str, instance_id: Hashable, name: str) -> Callable[..., Any]:
    try:
        target = getattr(instance, attr)
    except AttributeError:
        raise InvocationError(instance_id, name, "no such operation") from None
    except Exception as e:
        raise InvocationError(
            instance_id, name, f"attribute lookup failed: {type(e).__name__}: {e}"
        ) from e
    if not callable(target):
        raise InvocationError(instance_id, name, "no such operation")
    return target


def _select_operation(
    instance: Any,
    ops: Dict[str, str],
    name: str,
    require_marker: bool,
    instance_id: Hashable,
) -> Callable[..., Any]:
    attr = ops.get(name)
    if attr is None:
        if require_marker:
            raise InvocationError(instance_id, name, "no such operation")
        if not name or name.startswith("_"):
            raise InvocationError(instance_id, name, "private attributes are not invocable")
        attr = name
    return _bound_attribute(instance, attr, instance_id, name)


def find_operation(
    instance: Any,
    name: str,
    require_marker: bool = True,
    instance_id: Optional[Hashable] = None,
) -> Callable[..., Any]:
    """Return the bound callable exposed as ``name`` on ``instance``.

    Works for RegisteredInstance subclasses and for plain objects registered
    directly. ``instance_id`` is only used in error messages.

    Raises:
        InvocationError: If no such operation is exposed or looking it up fails.
    """
    if isinstance(instance, RegisteredInstance):
        return instance.get_operation(name, require_marker=require_marker)
    ops = collect_operations(type(instance))
    return _select_operation(instance, ops, name, require_marker, instance_id)


class _PublishOnConstruct(type):
    """Registers instances once the outermost ``__init__`` has returned."""

    def __call__(cls, *args: Any, **kwargs: Any):
        instance = super().__call__(*args, **kwargs)
        instance._publish()
        return instance


class RegisteredInstance(metaclass=_PublishOnConstruct):
    """
    Base class for objects reachable by id through an InstanceRegistry.

    Subclasses mark dispatchable methods with ``@operation``. The instance is
    published in the registry only after construction completes, so no
    dispatcher can resolve a partially initialised object; ``instance_id`` is
    None until then. The id is allocated by the registry unless one is passed
    explicitly.
    """

    _operations: Dict[str, str] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._operations = collect_operations(cls)

    def __init__(
        self,
        *,
        registry: Optional[InstanceRegistry] = None,
        instance_id: Optional[Hashable] = None,
    ) -> None:
        self._registry = registry if registry is not None else get_registry()
        self._requested_id = instance_id
        self._instance_id: Optional[Hashable] = None
        self._retired = False

    def _publish(self) -> None:
        if self._instance_id is not None:
            return
        if self._requested_id is None:
            self._instance_id = self._registry.add(self)
        else:
            self._instance_id = self._registry.register(self._requested_id, self)

    @property
    def instance_id(self) -> Optional[Hashable]:
        return self._instance_id

    @property
    def registry(self) -> InstanceRegistry:
        return self._registry

    @property
    def retired(self) -> bool:
        return self._retired

    @classmethod
    def operations(cls) -> List[str]:
        """Names of the operations exposed by this class."""
        return sorted(cls._operations)

    def get_operation(self, name: str, require_marker: bool = True) -> Callable[..., Any]:
        """Return the bound method exposed as ``name``.

        When ``require_marker`` is False any public method is accepted as well.
        """
        return _select_operation(self, self._operations, name, require_marker, self._instance_id)

    def retire(self) -> None:
        """Remove this instance from its registry. Safe to call more than once."""
        if self._retired:
            return
        if self._instance_id is not None:
            # Only removes the entry if it still points at this instance.
            self._registry.unregister(self._instance_id, instance=self)
        self._retired = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.retire()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(instance_id={self._instance_id!r})"


__all__ = [
    "RegisteredInstance",
    "operation",
    "find_operation",
    "collect_operations",
    "OPERATION_ATTR",
]
