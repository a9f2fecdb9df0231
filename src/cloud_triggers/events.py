"""Objects handed to trigger handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.requests import Request

CLOUD_EVENTS_SPEC_VERSION = "1.0"


class CloudEvent(BaseModel):
    """A CloudEvents 1.0 envelope.

    Extension attributes (``document``, ``ref``, ``instance``, ``alerttype``...) are
    kept as extra fields and available through :meth:`extension`.
    """

    model_config = ConfigDict(extra="allow")

    specversion: str
    id: str
    source: str
    type: str
    time: datetime
    subject: str | None = None
    datacontenttype: str | None = None
    data: Any = None

    # Wildcard captures for document/ref patterns, filled in by the dispatcher.
    params: dict[str, str] = Field(default_factory=dict)

    @field_validator("specversion")
    @classmethod
    def _supported_version(cls, value: str) -> str:
        if value != CLOUD_EVENTS_SPEC_VERSION:
            raise ValueError(f"Unsupported CloudEvents specversion: {value!r}")
        return value

    def extension(self, name: str) -> str | None:
        value = (self.model_extra or {}).get(name)
        return None if value is None else str(value)


@dataclass(frozen=True, slots=True)
class CallableRequest:
    data: Any
    raw_request: Request


@dataclass(frozen=True, slots=True)
class AuthBlockingEvent:
    """A blocking-function request; the token payload is passed through undecoded."""

    event_type: str
    data: dict[str, Any]
    raw_request: Request


@dataclass(frozen=True, slots=True)
class ScheduledEvent:
    job_name: str | None
    schedule_time: str


@dataclass(frozen=True, slots=True)
class TaskRequest:
    data: Any
    id: str | None = None
    queue_name: str | None = None
    retry_count: int = 0
    execution_count: int = 0
    headers: dict[str, str] = field(default_factory=dict)


class FunctionsErrorCode(str, Enum):
    OK = "ok"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid-argument"
    DEADLINE_EXCEEDED = "deadline-exceeded"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    PERMISSION_DENIED = "permission-denied"
    RESOURCE_EXHAUSTED = "resource-exhausted"
    FAILED_PRECONDITION = "failed-precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out-of-range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "data-loss"
    UNAUTHENTICATED = "unauthenticated"


_HTTP_STATUS: dict[FunctionsErrorCode, int] = {
    FunctionsErrorCode.OK: 200,
    FunctionsErrorCode.CANCELLED: 499,
    FunctionsErrorCode.UNKNOWN: 500,
    FunctionsErrorCode.INVALID_ARGUMENT: 400,
    FunctionsErrorCode.DEADLINE_EXCEEDED: 504,
    FunctionsErrorCode.NOT_FOUND: 404,
    FunctionsErrorCode.ALREADY_EXISTS: 409,
    FunctionsErrorCode.PERMISSION_DENIED: 403,
    FunctionsErrorCode.RESOURCE_EXHAUSTED: 429,
    FunctionsErrorCode.FAILED_PRECONDITION: 400,
    FunctionsErrorCode.ABORTED: 409,
    FunctionsErrorCode.OUT_OF_RANGE: 400,
    FunctionsErrorCode.UNIMPLEMENTED: 501,
    FunctionsErrorCode.INTERNAL: 500,
    FunctionsErrorCode.UNAVAILABLE: 503,
    FunctionsErrorCode.DATA_LOSS: 500,
    FunctionsErrorCode.UNAUTHENTICATED: 401,
}


@dataclass(frozen=True, slots=True)
class HttpsError(Exception):
    """Raised by callable handlers to return a structured error to the client."""

    code: FunctionsErrorCode
    message: str
    details: Any = None

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.code]

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {
            "status": self.code.value.upper().replace("-", "_"),
            "message": self.message,
        }
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
