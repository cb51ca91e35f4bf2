"""Error taxonomy shared by every engine operation."""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

E = TypeVar("E", bound=Enum)


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    OPERATION_FAILED = "OPERATION_FAILED"
    UNKNOWN = "UNKNOWN"


class QueueError(Exception):
    """Raised by engine operations; ``kind`` is stable and safe to branch on."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        operation: str,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.operation = operation
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.operation}: {self.message}"


def validation_error(operation: str, message: str, **context: Any) -> QueueError:
    return QueueError(ErrorKind.VALIDATION_ERROR, message, operation, context)


def not_found(operation: str, message: str, **context: Any) -> QueueError:
    return QueueError(ErrorKind.NOT_FOUND, message, operation, context)


def unauthorized(operation: str, message: str, **context: Any) -> QueueError:
    return QueueError(ErrorKind.UNAUTHORIZED, message, operation, context)


def parse_enum(enum_cls: type[E], raw: Any, operation: str, field: str) -> E:
    """Parse a raw value into a closed enum, rejecting unknown values."""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)
        raise QueueError(
            ErrorKind.VALIDATION_ERROR,
            f"Invalid {field} '{raw}'. Must be one of: {allowed}",
            operation,
            {field: raw},
            e,
        ) from e
