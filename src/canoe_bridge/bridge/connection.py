"""Connection manager: the session lifecycle with the remote application.

State machine:

    DISCONNECTED --connect() ok--> CONNECTED
    DISCONNECTED --connect() fails--> DISCONNECTED   (nothing retained)
    CONNECTED --disconnect()--> DISCONNECTED        (all handles released)
    DISCONNECTED --disconnect()--> DISCONNECTED     (no-op)

Each successful connect starts a new session generation. Handles
resolved by other components carry the generation they were obtained
under and are rejected once it is no longer current, because remote
object identities are not stable across reconnects.

The ``ensure_connected`` guard connects on demand once when
``auto_connect`` is enabled. An explicit ``disconnect()`` suspends that
until the caller connects again, so a deliberate teardown is never
silently undone by the next read.

Example:
    manager = ConnectionManager(DigitalTwinApplicationDriver())
    info = manager.connect()
    print(info.version, info.generation)
    manager.disconnect()
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from canoe_bridge.bridge.results import ConnectError, NotConnectedError
from canoe_bridge.drivers.types import (
    ApplicationDriver,
    ApplicationInstance,
    NamespaceCollection,
    ProcedureTable,
    RemoteCallError,
    RemoteMeasurement,
)
from canoe_bridge.observability import LogContext, get_logger

logger = get_logger(__name__)

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "Session",
    "SessionInfo",
]


class ConnectionState(str, Enum):
    """Stable states of the connection."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass(frozen=True)
class SessionInfo:
    """Identity of a session, recorded at connect for diagnostics.

    Attributes:
        generation: Session generation (1 for the first connect).
        application_name: Name reported by the remote application.
        version: Version reported by the remote application.
        prog_id: Automation registration name used.
        driver_type: "com" or "digital_twin".
        connect_time: UTC time the session was established.
    """

    generation: int
    application_name: str
    version: str
    prog_id: str
    driver_type: str
    connect_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "generation": self.generation,
            "application_name": self.application_name,
            "version": self.version,
            "prog_id": self.prog_id,
            "driver_type": self.driver_type,
            "connect_time": self.connect_time.isoformat(),
        }


class Session:
    """One live connection and the remote handles it owns.

    Only the ConnectionManager creates and releases sessions. Other
    components borrow the sub-handles for the duration of one call and
    never keep them across calls.

    Attributes:
        info: Identity recorded at connect.
        namespaces: Root namespace collection.
        procedures: Remote procedure table.
        measurement: Measurement controller.
    """

    def __init__(
        self,
        info: SessionInfo,
        application: ApplicationInstance,
        namespaces: NamespaceCollection,
        procedures: ProcedureTable,
        measurement: RemoteMeasurement,
    ) -> None:
        self.info = info
        self._application: ApplicationInstance | None = application
        self.namespaces = namespaces
        self.procedures = procedures
        self.measurement = measurement

    @property
    def generation(self) -> int:
        return self.info.generation

    @property
    def released(self) -> bool:
        return self._application is None

    def release(self) -> None:
        """Close the root link and drop every cached handle."""
        application, self._application = self._application, None
        # Sub-handles are dropped even if closing the root fails
        self.namespaces = None  # type: ignore[assignment]
        self.procedures = None  # type: ignore[assignment]
        self.measurement = None  # type: ignore[assignment]
        if application is not None:
            application.close()


class ConnectionManager:
    """Owns the lifecycle of the link to the remote application.

    Business context: the measurement application is a long-lived,
    heavyweight desktop tool. The bridge attaches to it, borrows its
    object graph for reads, writes, and procedure calls, and lets go
    again without shutting it down. All remote handles live in exactly
    one Session so a teardown releases everything at once.

    Args:
        driver: Application driver (COM or digital twin).
        auto_connect: Connect on demand in ``ensure_connected``.
    """

    def __init__(self, driver: ApplicationDriver, auto_connect: bool = True) -> None:
        self._driver = driver
        self._auto_connect = auto_connect
        self._auto_connect_suspended = False
        self._session: Session | None = None
        self._generation = 0
        self._last_error: str | None = None

    @property
    def state(self) -> ConnectionState:
        if self._session is None:
            return ConnectionState.DISCONNECTED
        return ConnectionState.CONNECTED

    @property
    def generation(self) -> int:
        """Generation of the current session, or of the last one if none."""
        return self._generation

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def info(self) -> SessionInfo | None:
        return self._session.info if self._session else None

    @property
    def last_error(self) -> str | None:
        """Message of the most recent failed connect, cleared on success."""
        return self._last_error

    def is_connected(self) -> bool:
        return self._session is not None

    def connect(self) -> SessionInfo:
        """Establish the link and cache the remote sub-handles.

        Connect is all-or-nothing: if instantiating the application or
        obtaining any sub-handle fails, whatever was acquired is released
        and the manager stays disconnected. When already connected the
        existing session is kept.

        Returns:
            SessionInfo of the (new or existing) session.

        Raises:
            ConnectError: The remote application is unavailable.
        """
        self._auto_connect_suspended = False
        if self._session is not None:
            return self._session.info

        generation = self._generation + 1
        with LogContext(session_generation=generation):
            logger.info("Connecting to measurement application")

            application: ApplicationInstance | None = None
            try:
                application = self._driver.open()
                raw_info = application.get_info()
                namespaces = application.get_namespaces()
                procedures = application.get_procedures()
                measurement = application.get_measurement()
                info = SessionInfo(
                    generation=generation,
                    application_name=raw_info["name"],
                    version=raw_info["version"],
                    prog_id=raw_info["prog_id"],
                    driver_type=raw_info["type"],
                    connect_time=datetime.now(UTC),
                )
            except Exception as e:  # noqa: BLE001 - classified below
                detail = e.remote_text if isinstance(e, RemoteCallError) else ""
                self._release_partial(application)
                self._last_error = str(e)
                logger.error("Connection failed", error=str(e))
                raise ConnectError(
                    f"Cannot connect to the measurement application: {e}", detail
                ) from e

            self._session = Session(
                info, application, namespaces, procedures, measurement
            )
            self._generation = generation
            self._last_error = None

            logger.info(
                "Connected",
                application=info.application_name,
                version=info.version,
                driver=info.driver_type,
            )
            return info

    def _release_partial(self, application: ApplicationInstance | None) -> None:
        if application is None:
            return
        try:
            application.close()
        except Exception as e:  # noqa: BLE001 - already failing, keep first error
            logger.warning("Error releasing partial connection", error=str(e))

    def disconnect(self) -> None:
        """Release every remote handle and become Disconnected.

        Idempotent: when already Disconnected nothing changes, so a bridge
        that never connected still connects on demand. Releasing a live
        session suspends auto-connect until the next explicit
        ``connect()``. Errors while releasing are logged, never raised;
        the manager is Disconnected afterwards regardless.
        """
        session, self._session = self._session, None
        if session is None:
            return
        self._auto_connect_suspended = True

        with LogContext(session_generation=session.generation):
            try:
                session.release()
            except Exception as e:  # noqa: BLE001 - teardown must complete
                logger.warning("Error releasing session", error=str(e))
            logger.info("Disconnected")

    def ensure_connected(self) -> Session:
        """Return the live session, connecting once on demand if allowed.

        Raises:
            NotConnectedError: Disconnected and auto-connect is disabled,
                suspended by an explicit disconnect, or the on-demand
                connect failed.
        """
        if self._session is not None:
            return self._session

        if not self._auto_connect or self._auto_connect_suspended:
            raise NotConnectedError("Not connected to the measurement application")

        try:
            self.connect()
        except ConnectError as e:
            raise NotConnectedError(
                "Not connected to the measurement application and the "
                f"automatic connect failed: {e.message}",
                e.detail,
            ) from e
        assert self._session is not None
        return self._session

    # -------------------------------------------------------------------------
    # Measurement control
    # -------------------------------------------------------------------------

    def measurement_running(self) -> bool:
        """Whether the remote measurement is running.

        Raises:
            NotConnectedError: No session.
            RemoteCallError: Remote side failed.
        """
        return self.ensure_connected().measurement.running

    def start_measurement(self) -> None:
        """Start the remote measurement if it is not running."""
        measurement = self.ensure_connected().measurement
        if not measurement.running:
            measurement.start()
            logger.info("Measurement started")

    def stop_measurement(self) -> None:
        """Stop the remote measurement if it is running."""
        measurement = self.ensure_connected().measurement
        if measurement.running:
            measurement.stop()
            logger.info("Measurement stopped")

    def __enter__(self) -> ConnectionManager:
        self.connect()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.disconnect()
