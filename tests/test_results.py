"""Unit tests for canoe_bridge.bridge.results.

Covers the error taxonomy, remediation texts, BridgeResult conversions
and the exception classes used inside the core.
"""

import json

import pytest

from canoe_bridge.bridge.results import (
    BridgeError,
    BridgeResult,
    ConnectError,
    CreateError,
    ErrorKind,
    InvocationError,
    NotConnectedError,
    ProcedureNotFoundError,
    ReadError,
    VariableNotFoundError,
    WriteError,
    exception_for,
)


class TestErrorKind:
    """Tests for the ErrorKind taxonomy."""

    def test_all_kinds_present(self) -> None:
        """Verifies the taxonomy has exactly the eight failure kinds."""
        assert {k.value for k in ErrorKind} == {
            "connect_error",
            "not_connected",
            "variable_not_found",
            "read_failure",
            "write_failure",
            "create_failure",
            "procedure_not_found",
            "invocation_failure",
        }

    def test_remediation_distinct_per_kind(self) -> None:
        """Verifies no two kinds share remediation guidance.

        Assertion Strategy:
        - One remediation text per kind, all different and non-empty.

        Testing Principle:
        Operators must be able to act on the message alone, so guidance
        that repeats across kinds would hide which failure happened.
        """
        texts = [BridgeError(kind, "x").remediation for kind in ErrorKind]
        assert all(texts)
        assert len(set(texts)) == len(ErrorKind)


class TestBridgeError:
    """Tests for BridgeError rendering."""

    def test_user_message_combines_message_detail_and_remediation(self) -> None:
        error = BridgeError(
            ErrorKind.INVOCATION_FAILURE, "Procedure 'Reset' failed", "Division by zero"
        )
        text = error.user_message
        assert text.startswith("Procedure 'Reset' failed (Division by zero).")
        assert error.remediation in text

    def test_user_message_does_not_repeat_detail(self) -> None:
        """Verifies detail already contained in the message is not appended."""
        error = BridgeError(ErrorKind.READ_FAILURE, "Cannot read X: boom", "boom")
        assert error.user_message.count("boom") == 1

    def test_to_dict_is_json_serializable(self) -> None:
        error = BridgeError(ErrorKind.CONNECT_ERROR, "no app", "Class not registered")
        data = json.loads(json.dumps(error.to_dict()))
        assert data["kind"] == "connect_error"
        assert data["detail"] == "Class not registered"
        assert data["remediation"] == error.remediation


class TestBridgeResult:
    """Tests for BridgeResult constructors and accessors."""

    def test_ok(self) -> None:
        result = BridgeResult.ok(30.0)
        assert result.success
        assert result.value == 30.0
        assert result.error is None
        assert result.kind is None
        assert result.to_dict() == {"ok": True, "value": 30.0}

    def test_fail(self) -> None:
        result = BridgeResult.fail(ErrorKind.VARIABLE_NOT_FOUND, "missing")
        assert not result.success
        assert result.value is None
        assert result.kind is ErrorKind.VARIABLE_NOT_FOUND
        assert result.to_dict()["error"]["kind"] == "variable_not_found"

    def test_from_exception_keeps_kind_and_detail(self) -> None:
        result = BridgeResult.from_exception(WriteError("rejected", "Type mismatch"))
        assert result.kind is ErrorKind.WRITE_FAILURE
        assert result.error.message == "rejected"
        assert result.error.detail == "Type mismatch"

    def test_unwrap_success(self) -> None:
        assert BridgeResult.ok(5).unwrap() == 5

    def test_unwrap_failure_raises_matching_exception(self) -> None:
        result = BridgeResult.fail(ErrorKind.PROCEDURE_NOT_FOUND, "no Reset")
        with pytest.raises(ProcedureNotFoundError, match="no Reset"):
            result.unwrap()


class TestExceptions:
    """Tests for the BridgeException hierarchy."""

    @pytest.mark.parametrize(
        ("exc_type", "kind"),
        [
            (ConnectError, ErrorKind.CONNECT_ERROR),
            (NotConnectedError, ErrorKind.NOT_CONNECTED),
            (VariableNotFoundError, ErrorKind.VARIABLE_NOT_FOUND),
            (ReadError, ErrorKind.READ_FAILURE),
            (WriteError, ErrorKind.WRITE_FAILURE),
            (CreateError, ErrorKind.CREATE_FAILURE),
            (ProcedureNotFoundError, ErrorKind.PROCEDURE_NOT_FOUND),
            (InvocationError, ErrorKind.INVOCATION_FAILURE),
        ],
    )
    def test_kind_mapping_round_trips(self, exc_type, kind) -> None:
        """Verifies each exception maps to its kind and back."""
        exc = exc_type("message", "detail")
        assert exc.kind is kind
        rebuilt = exception_for(exc.to_error())
        assert type(rebuilt) is exc_type
        assert rebuilt.detail == "detail"
