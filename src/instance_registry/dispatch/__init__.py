"""Exports for instance_registry.dispatch.

Expose the DispatchManager and its request/result contracts.
"""
from __future__ import annotations

from .manager import DispatchManager
from .models import DispatchRequest, DispatchResult, DispatchStatus

__all__ = ["DispatchManager", "DispatchRequest", "DispatchResult", "DispatchStatus"]
