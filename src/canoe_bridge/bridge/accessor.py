"""Variable accessor: typed read/write on resolved handles.

Reads always go to the remote side; nothing is cached. Writes are not
buffered and become visible to every other consumer of the variable at
once. Both check that the handle belongs to the current session
generation before touching the remote object.

``ensure_exists`` is create-if-absent: it never overwrites the value of a
variable that already exists.
"""

from __future__ import annotations

import numbers
from typing import Any

from canoe_bridge.bridge.connection import ConnectionManager, Session
from canoe_bridge.bridge.resolver import VariableHandle, lookup_namespace
from canoe_bridge.bridge.results import (
    CreateError,
    NotConnectedError,
    ReadError,
    WriteError,
)
from canoe_bridge.drivers.types import (
    NAMESPACE_SEPARATOR,
    RemoteCallError,
    RemoteNamespace,
    join_namespace,
)
from canoe_bridge.observability import get_logger

logger = get_logger(__name__)

__all__ = ["VariableAccessor", "is_numeric"]


def is_numeric(value: Any) -> bool:
    """True for real numbers; booleans do not count."""
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _remote_text(error: Exception) -> str:
    return error.remote_text if isinstance(error, RemoteCallError) else ""


class VariableAccessor:
    """Reads, writes, and creates remote variables.

    Args:
        connection: Connection manager owning the session.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    def _current_session(
        self, handle: VariableHandle, error: type[ReadError | WriteError]
    ) -> Session:
        """Return the session ``handle`` belongs to, or raise ``error``."""
        session = self._connection.session
        if session is None:
            raise NotConnectedError("Not connected to the measurement application")
        if handle.generation != session.generation:
            raise error(
                f"Handle for '{handle.qualified_name}' is stale: resolved in "
                f"session {handle.generation}, current session is "
                f"{session.generation}"
            )
        return session

    def read(self, handle: VariableHandle) -> float:
        """Return the live numeric value behind ``handle``.

        Raises:
            NotConnectedError: No session.
            ReadError: Stale handle, remote read failure, or a value that
                is not numeric.
        """
        self._current_session(handle, ReadError)
        try:
            value = handle.remote.get_value()
        except Exception as e:  # noqa: BLE001 - classified as read failure
            raise ReadError(
                f"Cannot read '{handle.qualified_name}': {e}", _remote_text(e)
            ) from e

        if not is_numeric(value):
            raise ReadError(
                f"Value of '{handle.qualified_name}' is not numeric "
                f"({type(value).__name__})"
            )
        return float(value)

    def write(self, handle: VariableHandle, value: float) -> None:
        """Set the remote value behind ``handle``.

        Raises:
            NotConnectedError: No session.
            WriteError: Stale handle, non-numeric value, or remote rejection.
        """
        self._current_session(handle, WriteError)
        if not is_numeric(value):
            raise WriteError(
                f"Cannot write {type(value).__name__} to '{handle.qualified_name}': "
                "value must be numeric"
            )
        try:
            handle.remote.set_value(value)
        except Exception as e:  # noqa: BLE001 - classified as write failure
            raise WriteError(
                f"Cannot write '{handle.qualified_name}': {e}", _remote_text(e)
            ) from e
        logger.debug("Variable written", variable=handle.qualified_name, value=value)

    def ensure_exists(
        self, namespace: str, name: str, default: float
    ) -> VariableHandle:
        """Return a handle to ``namespace::name``, creating what is missing.

        Missing namespace levels are created, then the variable is created
        with ``default`` if absent. An existing variable keeps its current
        value.

        Args:
            namespace: Namespace path (``"A"`` or ``"A::B"``).
            name: Variable name.
            default: Initial value for a newly created variable.

        Raises:
            NotConnectedError: No session and connecting on demand failed.
            CreateError: Invalid arguments or a remote creation failure.
        """
        if not namespace or not name or NAMESPACE_SEPARATOR in name:
            raise CreateError(
                f"Invalid variable location '{namespace}' / '{name}'"
            )
        if not is_numeric(default):
            raise CreateError(
                f"Default for '{join_namespace(namespace, name)}' must be numeric"
            )

        session = self._connection.ensure_connected()
        qualified = join_namespace(namespace, name)
        try:
            remote_namespace = self._ensure_namespace(session, namespace)
            variable = remote_namespace.find_variable(name)
            if variable is None:
                variable = remote_namespace.add_variable(name, default)
                logger.info("Variable created", variable=qualified, default=default)
            else:
                logger.info("Variable already exists, value kept", variable=qualified)
        except Exception as e:  # noqa: BLE001 - classified as create failure
            raise CreateError(
                f"Cannot create '{qualified}': {e}", _remote_text(e)
            ) from e

        return VariableHandle(
            namespace=namespace,
            name=name,
            generation=session.generation,
            remote=variable,
        )

    def _ensure_namespace(self, session: Session, path: str) -> RemoteNamespace:
        existing = lookup_namespace(session.namespaces, path)
        if existing is not None:
            return existing

        segments = path.split(NAMESPACE_SEPARATOR)
        current = session.namespaces.find(segments[0])
        if current is None:
            current = session.namespaces.add(segments[0])
            logger.info("Namespace created", namespace=segments[0])
        for index, segment in enumerate(segments[1:], start=2):
            child = current.find_namespace(segment)
            if child is None:
                child = current.add_namespace(segment)
                logger.info(
                    "Namespace created", namespace=join_namespace(*segments[:index])
                )
            current = child
        return current
