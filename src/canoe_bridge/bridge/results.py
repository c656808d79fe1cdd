"""Result values and error taxonomy for the bridge core.

Inside the core, components signal failures with ``BridgeException``
subclasses, one per ``ErrorKind``. At the command surface (``Bridge``)
every failure becomes an explicit ``BridgeResult`` so callers can inspect
each failure site without exception handling, and nothing raised by the
remote side leaves the core unclassified.

Each kind carries its own remediation text; no two kinds present the
same guidance.

Example:
    result = bridge.read_variable("Temperature")
    if result.success:
        print(result.value)
    elif result.error.kind is ErrorKind.VARIABLE_NOT_FOUND:
        print(result.error.user_message)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Classification of every failure the bridge reports."""

    CONNECT_ERROR = "connect_error"  # Remote application unavailable
    NOT_CONNECTED = "not_connected"  # Operation outside Connected state
    VARIABLE_NOT_FOUND = "variable_not_found"  # All candidates exhausted
    READ_FAILURE = "read_failure"  # Stale handle or non-numeric value
    WRITE_FAILURE = "write_failure"  # Stale handle or type mismatch
    CREATE_FAILURE = "create_failure"  # Namespace/variable creation failed
    PROCEDURE_NOT_FOUND = "procedure_not_found"  # No such remote callable
    INVOCATION_FAILURE = "invocation_failure"  # Remote call reported failure


_REMEDIATION: dict[ErrorKind, str] = {
    ErrorKind.CONNECT_ERROR: (
        "Check that the measurement application is installed and registered "
        "for automation, then connect again."
    ),
    ErrorKind.NOT_CONNECTED: "Connect to the measurement application first.",
    ErrorKind.VARIABLE_NOT_FOUND: (
        "List all variables to find the right namespace, or create the "
        "variable with ensure_variable."
    ),
    ErrorKind.READ_FAILURE: (
        "Resolve the variable again after reconnecting and check that the "
        "remote value is numeric and available."
    ),
    ErrorKind.WRITE_FAILURE: (
        "Resolve the variable again after reconnecting and write a value "
        "matching the remote variable's type."
    ),
    ErrorKind.CREATE_FAILURE: (
        "Check that the configuration allows creating namespaces and "
        "variables at runtime."
    ),
    ErrorKind.PROCEDURE_NOT_FOUND: (
        "Check the procedure name and that the script defining it is "
        "compiled into the loaded configuration."
    ),
    ErrorKind.INVOCATION_FAILURE: (
        "Inspect the remote diagnostic text and the application's write "
        "window for the cause."
    ),
}


@dataclass(frozen=True)
class BridgeError:
    """A classified failure.

    Attributes:
        kind: Failure classification.
        message: What failed, naming the variable/procedure involved.
        detail: Diagnostic text reported by the remote side, if any.
    """

    kind: ErrorKind
    message: str
    detail: str = ""

    @property
    def remediation(self) -> str:
        """Suggested next action for this kind of failure."""
        return _REMEDIATION[self.kind]

    @property
    def user_message(self) -> str:
        """Message, remote detail and remediation as one line for display."""
        text = self.message
        if self.detail and self.detail not in text:
            text = f"{text} ({self.detail})"
        return f"{text}. {self.remediation}"

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "detail": self.detail,
            "remediation": self.remediation,
        }


@dataclass(frozen=True)
class BridgeResult(Generic[T]):
    """Outcome of one command-surface operation.

    Attributes:
        success: True if the operation completed.
        value: Operation output when ``success`` is True.
        error: Classified failure when ``success`` is False.
    """

    success: bool
    value: T | None = None
    error: BridgeError | None = None

    @classmethod
    def ok(cls, value: T | None = None) -> BridgeResult[T]:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, detail: str = "") -> BridgeResult[T]:
        return cls(success=False, error=BridgeError(kind, message, detail))

    @classmethod
    def from_exception(cls, exc: BridgeException) -> BridgeResult[T]:
        return cls(success=False, error=exc.to_error())

    @property
    def kind(self) -> ErrorKind | None:
        """Error kind, or None on success."""
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        """Return the value, raising the matching BridgeException on failure."""
        if self.success:
            return self.value  # type: ignore[return-value]
        assert self.error is not None
        raise exception_for(self.error)

    def to_dict(self) -> dict[str, Any]:
        if self.success:
            return {"ok": True, "value": self.value}
        assert self.error is not None
        return {"ok": False, "error": self.error.to_dict()}


# =============================================================================
# Exceptions
# =============================================================================


class BridgeException(Exception):
    """Base for classified failures raised inside the core."""

    kind: ErrorKind

    def __init__(self, message: str, detail: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_error(self) -> BridgeError:
        return BridgeError(self.kind, self.message, self.detail)


class ConnectError(BridgeException):
    kind = ErrorKind.CONNECT_ERROR


class NotConnectedError(BridgeException):
    kind = ErrorKind.NOT_CONNECTED


class VariableNotFoundError(BridgeException):
    kind = ErrorKind.VARIABLE_NOT_FOUND


class ReadError(BridgeException):
    kind = ErrorKind.READ_FAILURE


class WriteError(BridgeException):
    kind = ErrorKind.WRITE_FAILURE


class CreateError(BridgeException):
    kind = ErrorKind.CREATE_FAILURE


class ProcedureNotFoundError(BridgeException):
    kind = ErrorKind.PROCEDURE_NOT_FOUND


class InvocationError(BridgeException):
    kind = ErrorKind.INVOCATION_FAILURE


_EXCEPTIONS: dict[ErrorKind, type[BridgeException]] = {
    cls.kind: cls
    for cls in (
        ConnectError,
        NotConnectedError,
        VariableNotFoundError,
        ReadError,
        WriteError,
        CreateError,
        ProcedureNotFoundError,
        InvocationError,
    )
}


def exception_for(error: BridgeError) -> BridgeException:
    """Build the exception matching ``error.kind``."""
    return _EXCEPTIONS[error.kind](error.message, error.detail)
