"""Bridge: the command surface over the core components.

Composes the connection manager, resolver, accessor, procedure invoker,
capture log and diagnostic enumerator behind one object whose methods
return ``BridgeResult`` values. This is the only layer that converts
exceptions into results; every remote call it makes is timed in
``CallStats``.

Example:
    from canoe_bridge.bridge import Bridge
    from canoe_bridge.drivers import DigitalTwinApplicationDriver

    bridge = Bridge(DigitalTwinApplicationDriver())
    bridge.connect()
    temperature = bridge.read_variable("Temperature")
    if temperature.success:
        bridge.append_capture(temperature.value)
    bridge.invoke_procedure("ResetFunction")
    bridge.disconnect()
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

from canoe_bridge.bridge.accessor import VariableAccessor
from canoe_bridge.bridge.capture import CaptureLog, CaptureRecord
from canoe_bridge.bridge.connection import ConnectionManager, SessionInfo
from canoe_bridge.bridge.diagnostics import DiagnosticEnumerator, EnumerationReport
from canoe_bridge.bridge.procedures import ProcedureInvoker
from canoe_bridge.bridge.resolver import NamespaceResolver, VariableHandle
from canoe_bridge.bridge.results import (
    BridgeException,
    BridgeResult,
    ErrorKind,
)
from canoe_bridge.drivers.config import BridgeConfig
from canoe_bridge.drivers.types import ApplicationDriver, RemoteCallError
from canoe_bridge.observability import CallStats, LogContext, get_logger

logger = get_logger(__name__)

__all__ = ["Bridge", "BridgeStatus"]

T = TypeVar("T")


@dataclass
class BridgeStatus:
    """Snapshot of the bridge for status displays and the MCP tool.

    Attributes:
        connected: Whether a session is live.
        state: Connection state value.
        session: Identity of the live session, if any.
        last_error: Message of the last failed connect, if any.
        auto_connect: Whether operations connect on demand.
        candidate_namespaces: Default resolution order.
        captures: Capture log summary.
        stats: Per-operation call statistics.
    """

    connected: bool
    state: str
    session: SessionInfo | None
    last_error: str | None
    auto_connect: bool
    candidate_namespaces: tuple[str, ...]
    captures: dict[str, Any] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "state": self.state,
            "session": self.session.to_dict() if self.session else None,
            "last_error": self.last_error,
            "auto_connect": self.auto_connect,
            "candidate_namespaces": list(self.candidate_namespaces),
            "captures": self.captures,
            "stats": self.stats,
        }


class Bridge:
    """Control bridge to one remote measurement application.

    Business context: test engineers drive a bus simulation from outside
    the tool (spreadsheets, scripts, an AI assistant over MCP). Each of
    those front ends needs the same handful of commands and must be able
    to tell "variable does not exist" from "application not running"
    without parsing exception text. Bridge gives them that.

    Args:
        driver: Application driver (COM or digital twin).
        config: Bridge settings. None uses ``BridgeConfig()`` defaults.
        capture_log: Log to append captures to. None creates one in
            ``config.data_dir``.
        stats: Call statistics collector. None creates one.

    Note:
        Not thread-safe. COM links must be used from the thread that
        opened them, so drive one Bridge from one thread.
    """

    def __init__(
        self,
        driver: ApplicationDriver,
        config: BridgeConfig | None = None,
        *,
        capture_log: CaptureLog | None = None,
        stats: CallStats | None = None,
    ) -> None:
        self.config = config or BridgeConfig()
        self.driver = driver
        self.connection = ConnectionManager(driver, self.config.auto_connect)
        self.resolver = NamespaceResolver(
            self.connection, self.config.candidate_namespaces
        )
        self.accessor = VariableAccessor(self.connection)
        self.procedures = ProcedureInvoker(self.connection)
        self.diagnostics = DiagnosticEnumerator(self.connection)
        self.captures = (
            capture_log if capture_log is not None else CaptureLog(self.config.data_dir)
        )
        self.stats = stats or CallStats()

    def _run(
        self,
        operation: str,
        unclassified: ErrorKind,
        call: Callable[[], BridgeResult[T]],
    ) -> BridgeResult[T]:
        """Run ``call``, converting every exception into a failed result.

        Args:
            operation: Name recorded in call statistics and logs.
            unclassified: Kind given to exceptions that are not already
                classified (raw remote errors, driver bugs).
            call: Operation body returning a BridgeResult.
        """
        with self.stats.measure(operation) as measurement:
            try:
                result = call()
            except BridgeException as e:
                result = BridgeResult.from_exception(e)
            except Exception as e:  # noqa: BLE001 - nothing leaves unclassified
                detail = e.remote_text if isinstance(e, RemoteCallError) else ""
                logger.exception(
                    "Unclassified failure", operation=operation, error=str(e)
                )
                result = BridgeResult.fail(
                    unclassified, f"{operation} failed: {e}", detail
                )

            if not result.success:
                assert result.error is not None
                measurement.fail(result.error.kind.value)
                logger.info(
                    "Operation failed",
                    operation=operation,
                    kind=result.error.kind.value,
                    error=result.error.message,
                )
            return result

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    def connect(self) -> BridgeResult[SessionInfo]:
        """Connect to the remote application (no-op when connected)."""
        return self._run(
            "connect",
            ErrorKind.CONNECT_ERROR,
            lambda: BridgeResult.ok(self.connection.connect()),
        )

    def disconnect(self) -> None:
        """Release the session. Never fails; safe when disconnected."""
        self.connection.disconnect()

    def is_connected(self) -> bool:
        return self.connection.is_connected()

    # -------------------------------------------------------------------------
    # Variables
    # -------------------------------------------------------------------------

    def resolve_variable(
        self, name: str, candidate_namespaces: Sequence[str] | None = None
    ) -> BridgeResult[VariableHandle]:
        """Resolve ``name`` to a handle bound to the current session."""
        return self._run(
            "resolve_variable",
            ErrorKind.VARIABLE_NOT_FOUND,
            lambda: self.resolver.resolve(name, candidate_namespaces),
        )

    def read_variable(
        self, name: str, candidate_namespaces: Sequence[str] | None = None
    ) -> BridgeResult[float]:
        """Resolve ``name`` and read its live numeric value.

        Args:
            name: Variable name or qualified ``"NS::Var"`` name.
            candidate_namespaces: Ordered namespaces to search. None uses
                ``config.candidate_namespaces``.

        Returns:
            Success with the value, or NOT_CONNECTED, VARIABLE_NOT_FOUND,
            READ_FAILURE.

        Example:
            >>> bridge.read_variable("Temperature").value
            30.0
        """

        def read() -> BridgeResult[float]:
            resolved = self.resolver.resolve(name, candidate_namespaces)
            if not resolved.success:
                return BridgeResult(success=False, error=resolved.error)
            assert resolved.value is not None
            return BridgeResult.ok(self.accessor.read(resolved.value))

        with LogContext(variable=name):
            return self._run("read_variable", ErrorKind.READ_FAILURE, read)

    def write_variable(
        self,
        name: str,
        value: float,
        candidate_namespaces: Sequence[str] | None = None,
    ) -> BridgeResult[None]:
        """Resolve ``name`` and set its remote value.

        Returns:
            Success, or NOT_CONNECTED, VARIABLE_NOT_FOUND, WRITE_FAILURE.
        """

        def write() -> BridgeResult[None]:
            resolved = self.resolver.resolve(name, candidate_namespaces)
            if not resolved.success:
                return BridgeResult(success=False, error=resolved.error)
            assert resolved.value is not None
            self.accessor.write(resolved.value, value)
            return BridgeResult.ok()

        with LogContext(variable=name):
            return self._run("write_variable", ErrorKind.WRITE_FAILURE, write)

    def ensure_variable(
        self, namespace: str, name: str, default: float
    ) -> BridgeResult[VariableHandle]:
        """Create ``namespace::name`` with ``default`` unless it exists.

        An existing variable keeps its value; calling this twice with
        different defaults leaves the value from the first call.

        Returns:
            Success with the handle, or NOT_CONNECTED, CREATE_FAILURE.
        """
        return self._run(
            "ensure_variable",
            ErrorKind.CREATE_FAILURE,
            lambda: BridgeResult.ok(
                self.accessor.ensure_exists(namespace, name, default)
            ),
        )

    # -------------------------------------------------------------------------
    # Procedures
    # -------------------------------------------------------------------------

    def invoke_procedure(self, name: str, *args: Any) -> BridgeResult[Any]:
        """Look up remote procedure ``name`` and call it synchronously.

        Returns:
            Success with the remote return value, or NOT_CONNECTED,
            PROCEDURE_NOT_FOUND (no call made), INVOCATION_FAILURE.
        """
        with LogContext(procedure=name):
            return self._run(
                "invoke_procedure",
                ErrorKind.INVOCATION_FAILURE,
                lambda: BridgeResult.ok(self.procedures.invoke(name, *args)),
            )

    # -------------------------------------------------------------------------
    # Captures
    # -------------------------------------------------------------------------

    def append_capture(self, value: float) -> CaptureRecord:
        """Append ``value`` to the capture log with the current time.

        Raises:
            ValueError: ``value`` is not numeric.
        """
        return self.captures.append(value)

    def capture_variable(
        self, name: str, candidate_namespaces: Sequence[str] | None = None
    ) -> BridgeResult[CaptureRecord]:
        """Read ``name`` and append the value to the capture log.

        Nothing is appended when the read fails.
        """
        read = self.read_variable(name, candidate_namespaces)
        if not read.success:
            return BridgeResult(success=False, error=read.error)
        assert read.value is not None
        return BridgeResult.ok(self.captures.append(read.value))

    def save_captures(self, path: Path | None = None) -> BridgeResult[Path]:
        """Write the capture log to ASDF.

        File system failures are reported as WRITE_FAILURE.
        """
        return self._run(
            "save_captures",
            ErrorKind.WRITE_FAILURE,
            lambda: BridgeResult.ok(self.captures.save(path)),
        )

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def list_all_variables(self) -> EnumerationReport:
        """Enumerate every namespace and variable with current values.

        Never raises. When not connected the report is FAILED with a
        NOT_CONNECTED error.
        """
        with self.stats.measure("list_all_variables") as measurement:
            report = self.diagnostics.list_all()
            if report.error is not None:
                measurement.fail(report.error.kind.value)
            return report

    def get_status(self) -> BridgeStatus:
        """Current connection, capture and statistics snapshot."""
        return BridgeStatus(
            connected=self.connection.is_connected(),
            state=self.connection.state.value,
            session=self.connection.info,
            last_error=self.connection.last_error,
            auto_connect=self.config.auto_connect,
            candidate_namespaces=self.resolver.default_candidates,
            captures=self.captures.summary(),
            stats=self.stats.to_dict(),
        )
