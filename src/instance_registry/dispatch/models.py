"""Request and result contracts for id-based dispatch."""
from __future__ import annotations

import re
import uuid
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_OPERATION_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


class DispatchStatus(str, Enum):
    """Outcome of a single dispatched request."""

    OK = "ok"
    NOT_FOUND = "not_found"
    INVOCATION_ERROR = "invocation_error"
    TIMEOUT = "timeout"


class DispatchRequest(BaseModel):
    """A call addressed to an instance by id.

    Attributes:
    - instance_id: registry id of the target instance.
    - operation: name of the exposed operation; must be a public identifier.
    - args / kwargs: call arguments.
    - request_id: correlation id, generated when omitted.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid", frozen=True)

    instance_id: Hashable
    operation: str = Field(..., min_length=1)
    args: List[Any] = Field(default_factory=list)
    kwargs: Dict[str, Any] = Field(default_factory=dict)
    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    @field_validator("operation")
    @classmethod
    def _validate_operation(cls, v: str) -> str:
        if not _OPERATION_RE.match(v):
            raise ValueError(f"operation must be a public identifier, got {v!r}")
        return v

    @field_validator("instance_id")
    @classmethod
    def _validate_instance_id(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("instance_id must not be None")
        return v


class DispatchResult(BaseModel):
    """Outcome of a DispatchRequest.

    ``value`` is set only when ``status`` is OK; ``error`` carries the failure
    message otherwise.
    """

    model_config = ConfigDict(extra="forbid", use_enum_values=False)

    request_id: str
    instance_id: Hashable
    operation: str
    status: DispatchStatus
    value: Any = None
    error: Optional[str] = None
    duration_seconds: float = Field(0.0, ge=0.0)

    @property
    def ok(self) -> bool:
        return self.status is DispatchStatus.OK


__all__ = ["DispatchStatus", "DispatchRequest", "DispatchResult"]
