"""Remote procedure invoker.

Invoking a scripting-layer procedure takes two steps that fail
independently:

1. lookup by name in the session's procedure table
   (fails with ProcedureNotFoundError; no call is made)
2. synchronous call of the handle found
   (fails with InvocationError carrying the remote diagnostic text)

Example:
    invoker = ProcedureInvoker(connection)
    invoker.invoke("ResetFunction")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from canoe_bridge.bridge.connection import ConnectionManager
from canoe_bridge.bridge.results import (
    InvocationError,
    NotConnectedError,
    ProcedureNotFoundError,
)
from canoe_bridge.drivers.types import RemoteCallError, RemoteProcedure
from canoe_bridge.observability import get_logger

logger = get_logger(__name__)

__all__ = ["ProcedureHandle", "ProcedureInvoker"]


@dataclass(frozen=True)
class ProcedureHandle:
    """A remote callable, valid only in the session that produced it."""

    name: str
    generation: int
    remote: RemoteProcedure = field(repr=False, compare=False)


class ProcedureInvoker:
    """Looks up and calls procedures defined in the remote application."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    def lookup(self, name: str) -> ProcedureHandle:
        """Find procedure ``name`` in the current session.

        Raises:
            NotConnectedError: No session and connecting on demand failed.
            ProcedureNotFoundError: The procedure is not defined, or the
                lookup itself failed remotely.
        """
        session = self._connection.ensure_connected()
        try:
            procedure = session.procedures.find(name)
        except Exception as e:  # noqa: BLE001 - lookup failure means no call
            detail = e.remote_text if isinstance(e, RemoteCallError) else str(e)
            logger.warning("Procedure lookup failed", procedure=name, error=str(e))
            raise ProcedureNotFoundError(
                f"Procedure '{name}' could not be looked up", detail
            ) from e

        if procedure is None:
            logger.info("Procedure not found", procedure=name)
            raise ProcedureNotFoundError(f"Procedure '{name}' is not defined")

        return ProcedureHandle(
            name=name, generation=session.generation, remote=procedure
        )

    def call(self, handle: ProcedureHandle, *args: Any) -> Any:
        """Call a previously looked-up procedure synchronously.

        Raises:
            NotConnectedError: No session.
            InvocationError: Stale handle or remote-reported failure.
        """
        session = self._connection.session
        if session is None:
            raise NotConnectedError("Not connected to the measurement application")
        if handle.generation != session.generation:
            raise InvocationError(
                f"Procedure handle '{handle.name}' belongs to session "
                f"{handle.generation}, current session is {session.generation}"
            )

        logger.info("Invoking procedure", procedure=handle.name, args=list(args))
        try:
            result = handle.remote.call(*args)
        except Exception as e:  # noqa: BLE001 - classified as invocation failure
            detail = e.remote_text if isinstance(e, RemoteCallError) else str(e)
            logger.error("Procedure failed", procedure=handle.name, error=detail)
            raise InvocationError(
                f"Procedure '{handle.name}' failed", detail
            ) from e
        return result

    def invoke(self, name: str, *args: Any) -> Any:
        """Look up ``name`` and call it; the call is skipped if lookup fails."""
        return self.call(self.lookup(name), *args)
