"""
Id-based dispatch onto registered instances.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Hashable, Iterable, List, Optional

from ..config import RegistryConfig, get_registry_config
from ..exceptions import InstanceNotFoundError, InvocationError, RegistryError
from ..instance import find_operation
from ..registry import InstanceRegistry, get_registry
from .models import DispatchRequest, DispatchResult, DispatchStatus

logger = logging.getLogger(__name__)


class DispatchManager:
    """
    Resolves an instance id and invokes a named operation on it.

    ``invoke`` raises lookup and invocation errors to its caller. ``handle`` and
    ``dispatch`` are request boundaries: they turn those errors into a failed
    DispatchResult so one bad request never takes down the caller's loop.
    """

    def __init__(
        self,
        registry: Optional[InstanceRegistry] = None,
        config: Optional[RegistryConfig] = None,
    ):
        """
        Initialize the DispatchManager.

        Args:
            registry: Registry to resolve ids against (defaults to the global one)
            config: Dispatch settings (defaults to the global configuration)
        """
        self.registry = registry if registry is not None else get_registry()
        self.config = config or get_registry_config()

    def _lookup(self, instance_id: Hashable, operation: str):
        # The strong reference returned by resolve keeps the instance alive
        # until the caller drops the bound method.
        instance = self.registry.resolve(instance_id)
        try:
            return find_operation(
                instance,
                operation,
                self.config.require_operation_marker,
                instance_id=instance_id,
            )
        except RegistryError:
            raise
        except Exception as e:
            raise InvocationError(instance_id, operation, f"{type(e).__name__}: {e}") from e

    def invoke(self, instance_id: Hashable, operation: str, *args: Any, **kwargs: Any) -> Any:
        """
        Call ``operation`` on the instance registered under ``instance_id``.

        Raises:
            InstanceNotFoundError: The id does not resolve to a live instance.
            InvocationError: The operation is not exposed, is a coroutine, or raised.
        """
        method = self._lookup(instance_id, operation)
        if inspect.iscoroutinefunction(method):
            raise InvocationError(
                instance_id, operation, "coroutine operations must be awaited via dispatch()"
            )
        try:
            return method(*args, **kwargs)
        except Exception as e:
            raise InvocationError(instance_id, operation, f"{type(e).__name__}: {e}") from e

    def handle(self, request: DispatchRequest) -> DispatchResult:
        """Invoke a request synchronously, reporting failures in the result."""
        start = time.perf_counter()
        try:
            value = self.invoke(
                request.instance_id, request.operation, *request.args, **request.kwargs
            )
        except InstanceNotFoundError as e:
            logger.warning(f"Request {request.request_id} failed: {e}")
            return self._result(request, DispatchStatus.NOT_FOUND, start, error=str(e))
        except InvocationError as e:
            logger.error(f"Request {request.request_id} failed: {e}")
            return self._result(request, DispatchStatus.INVOCATION_ERROR, start, error=str(e))
        return self._result(request, DispatchStatus.OK, start, value=value)

    async def dispatch(self, request: DispatchRequest) -> DispatchResult:
        """
        Dispatch a request, awaiting coroutine operations and running plain
        callables in a worker thread, bounded by the configured timeout.

        Notes:
            A TimeoutError raised by the operation itself is reported as
            INVOCATION_ERROR; only the dispatch deadline yields TIMEOUT.
            A plain callable that exceeds the deadline cannot be interrupted
            and keeps running in its worker thread after TIMEOUT is returned.
        """
        start = time.perf_counter()
        try:
            method = self._lookup(request.instance_id, request.operation)
        except InstanceNotFoundError as e:
            logger.warning(f"Request {request.request_id} failed: {e}")
            return self._result(request, DispatchStatus.NOT_FOUND, start, error=str(e))
        except InvocationError as e:
            logger.error(f"Request {request.request_id} failed: {e}")
            return self._result(request, DispatchStatus.INVOCATION_ERROR, start, error=str(e))

        async def _call() -> Any:
            try:
                if inspect.iscoroutinefunction(method):
                    return await method(*request.args, **request.kwargs)
                return await asyncio.to_thread(method, *request.args, **request.kwargs)
            except asyncio.TimeoutError as e:
                # Raised by the operation, not by the deadline below.
                raise InvocationError(
                    request.instance_id, request.operation, f"{type(e).__name__}: {e}"
                ) from e

        try:
            value = await asyncio.wait_for(_call(), timeout=self.config.dispatch_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Request {request.request_id} timed out after "
                f"{self.config.dispatch_timeout_seconds}s ({request.operation})"
            )
            return self._result(
                request, DispatchStatus.TIMEOUT, start, error="operation timed out"
            )
        except InvocationError as e:
            logger.error(f"Request {request.request_id} failed: {e}")
            return self._result(request, DispatchStatus.INVOCATION_ERROR, start, error=str(e))
        except Exception as e:
            error = InvocationError(
                request.instance_id, request.operation, f"{type(e).__name__}: {e}"
            )
            logger.error(f"Request {request.request_id} failed: {error}")
            return self._result(request, DispatchStatus.INVOCATION_ERROR, start, error=str(error))
        return self._result(request, DispatchStatus.OK, start, value=value)

    async def dispatch_many(self, requests: Iterable[DispatchRequest]) -> List[DispatchResult]:
        """Dispatch requests concurrently; results are returned in request order."""
        results = await asyncio.gather(*(self.dispatch(r) for r in requests))
        logger.debug(
            f"Dispatched {len(results)} requests, "
            f"{sum(1 for r in results if r.ok)} succeeded"
        )
        return list(results)

    @staticmethod
    def _result(
        request: DispatchRequest,
        status: DispatchStatus,
        start: float,
        value: Any = None,
        error: Optional[str] = None,
    ) -> DispatchResult:
        return DispatchResult(
            request_id=request.request_id,
            instance_id=request.instance_id,
            operation=request.operation,
            status=status,
            value=value,
            error=error,
            duration_seconds=max(0.0, time.perf_counter() - start),
        )


__all__ = ["DispatchManager"]
