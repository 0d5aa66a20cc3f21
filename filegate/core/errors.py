"""
Error kinds and the Outcome result type.

Every orchestration call returns an ``Outcome``: either a value or a
``GatewayError``. The error carries an ``ErrorKind`` that tells the transport
layer whether the client or a backend caused the failure, so routers map
kinds to status codes without inspecting messages.
"""

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    UPSTREAM = "upstream"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _DEFAULT_STATUS[self]

    @property
    def client_caused(self) -> bool:
        return self in (ErrorKind.VALIDATION, ErrorKind.NOT_FOUND, ErrorKind.FORBIDDEN, ErrorKind.CONFLICT)


_DEFAULT_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UPSTREAM: 500,
    ErrorKind.INTERNAL: 500,
}


class GatewayError(Exception):
    """
    Base exception for all gateway errors.

    Attributes:
        message: Human-readable error message
        kind: Which side caused the failure
        details: Additional context for the response body
        status_code: HTTP status to surface (defaults to the kind's status)
    """

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.status_code = status_code or self.kind.status_code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "errorKind": self.kind.value,
            "details": self.details,
        }


class ValidationError(GatewayError):
    """A required field is missing or malformed."""

    kind = ErrorKind.VALIDATION


class NotFoundError(GatewayError):
    """Tenant namespace, source object or lookup target is absent."""

    kind = ErrorKind.NOT_FOUND


class AccessDeniedError(GatewayError):
    """A delegated credential is missing, invalid, expired or out of scope."""

    kind = ErrorKind.FORBIDDEN


class ConflictError(GatewayError):
    """
    A create raced with another caller's create.

    Provisioning treats this as success for the losing caller, so it never
    reaches the transport layer from that path.
    """

    kind = ErrorKind.CONFLICT


class UpstreamFailure(GatewayError):
    """An object-store or metadata-store call failed. Retryable."""

    kind = ErrorKind.UPSTREAM
    retryable = True

    def __init__(
        self,
        store: str,
        operation: str,
        reason: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        step: Optional[str] = None,
    ):
        self.store = store
        self.operation = operation
        self.reason = reason
        self.error_code = error_code
        self.step = step
        details = {"store": store, "operation": operation, "retryable": True}
        if error_code:
            details["errorCode"] = error_code
        if step:
            details["step"] = step
        prefix = f"{step}: " if step else ""
        super().__init__(
            f"{prefix}{store} {operation} failed: {reason}",
            details=details,
            status_code=status_code if status_code and status_code >= 400 else None,
        )

    def at_step(self, step: str) -> "UpstreamFailure":
        """Return a copy of this failure tagged with a provisioning step."""
        return UpstreamFailure(
            self.store,
            self.operation,
            self.reason,
            status_code=self.status_code,
            error_code=self.error_code,
            step=step,
        )


class InternalError(GatewayError):
    """Unexpected exception inside the gateway."""

    kind = ErrorKind.INTERNAL


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[GatewayError] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None, message: str = "") -> "Outcome[T]":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, error: GatewayError) -> "Outcome[T]":
        return cls(error=error, message=error.message)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


def returns_outcome(func: Callable[..., Any]) -> Callable[..., Outcome]:
    """
    Wrap an orchestration method so it always returns an ``Outcome``.

    The wrapped function may return a plain value or an ``Outcome``.
    ``GatewayError``s become failed outcomes and anything else becomes an
    ``InternalError``.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Outcome:
        try:
            result = func(*args, **kwargs)
        except GatewayError as exc:
            if exc.kind is ErrorKind.UPSTREAM or exc.kind is ErrorKind.INTERNAL:
                logger.warning("%s failed: %s", func.__qualname__, exc.message)
            return Outcome.failure(exc)
        except Exception as exc:
            logger.exception("Unexpected error in %s", func.__qualname__)
            return Outcome.failure(InternalError(f"An error occurred: {exc}"))

        if isinstance(result, Outcome):
            return result
        return Outcome.success(result)

    return wrapper
