"""Remote application type definitions and protocols.

The remote measurement application exposes an object graph through its
automation interface:

    application
    ├── namespaces        (collection, by name)
    │   └── namespace
    │       ├── namespaces (nested, by name)
    │       └── variables  (collection, by name)
    │           └── variable.value
    ├── procedures        (scripting-layer callables, by name)
    └── measurement       (start / stop / running)

This module defines that graph as Protocols so the bridge core can run
against the real COM automation server or the in-process digital twin
without knowing which. Keeping them apart from the implementations
avoids circular imports between drivers.

Lookups return ``None`` for "absent". Any other failure on the remote
side is raised, normally as ``RemoteCallError``; the bridge core decides
how each failure is classified.

Example:
    from canoe_bridge.drivers.types import ApplicationDriver

    def temperature(driver: ApplicationDriver) -> object:
        app = driver.open()
        namespace = app.get_namespaces().find("Measurement")
        variable = namespace.find_variable("Temperature") if namespace else None
        return variable.get_value() if variable else None
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Protocol, TypedDict

#: Separator between namespace path segments and variable names,
#: as used by the remote tool itself ("Engine::Inputs::Speed").
NAMESPACE_SEPARATOR = "::"


class RemoteCallError(RuntimeError):
    """A call into the remote application failed on the remote side.

    Attributes:
        remote_text: Diagnostic text reported by the remote application
            (COM exception description, twin fault message). Empty when
            the remote side gave no detail.
    """

    def __init__(self, message: str, remote_text: str = "") -> None:
        super().__init__(message)
        self.remote_text = remote_text


class ApplicationInfo(TypedDict):
    """Identity of a connected remote application instance.

    Keys:
        type: Driver type ("com", "digital_twin").
        name: Application name as reported remotely (e.g. "CANoe").
        version: Full version string.
        prog_id: Automation registration name used to instantiate it.
    """

    type: str
    name: str
    version: str
    prog_id: str


class RemoteVariable(Protocol):  # pragma: no cover
    """A single value inside a remote namespace."""

    @property
    def name(self) -> str:
        """Variable name, without namespace."""
        ...

    def get_value(self) -> Any:
        """Return the live remote value.

        Raises:
            RemoteCallError: Remote side refused or failed the read.
        """
        ...

    def set_value(self, value: Any) -> None:
        """Set the remote value; visible to other consumers immediately.

        Raises:
            RemoteCallError: Remote side rejected the value.
        """
        ...


class RemoteNamespace(Protocol):  # pragma: no cover
    """A named grouping of variables and nested namespaces."""

    @property
    def name(self) -> str:
        """Namespace name (single segment)."""
        ...

    def find_variable(self, name: str) -> RemoteVariable | None:
        """Return the variable called ``name``, or None when absent."""
        ...

    def add_variable(self, name: str, default: Any) -> RemoteVariable:
        """Create variable ``name`` with initial value ``default``."""
        ...

    def iter_variables(self) -> Iterator[RemoteVariable]:
        """Iterate the variables directly inside this namespace."""
        ...

    def find_namespace(self, name: str) -> RemoteNamespace | None:
        """Return the nested namespace ``name``, or None when absent."""
        ...

    def add_namespace(self, name: str) -> RemoteNamespace:
        """Create namespace ``name`` nested inside this one."""
        ...

    def iter_namespaces(self) -> Iterator[RemoteNamespace]:
        """Iterate the namespaces nested directly inside this one."""
        ...


class NamespaceCollection(Protocol):  # pragma: no cover
    """The remote root's top-level namespace collection."""

    def find(self, name: str) -> RemoteNamespace | None:
        """Return the top-level namespace ``name``, or None when absent."""
        ...

    def add(self, name: str) -> RemoteNamespace:
        """Create top-level namespace ``name``."""
        ...

    def __iter__(self) -> Iterator[RemoteNamespace]:
        """Iterate top-level namespaces.

        Raises:
            RemoteCallError: The collection itself is inaccessible.
        """
        ...


class RemoteProcedure(Protocol):  # pragma: no cover
    """A callable defined in the remote scripting layer."""

    @property
    def name(self) -> str:
        """Procedure name."""
        ...

    def call(self, *args: Any) -> Any:
        """Invoke synchronously and return the remote result.

        Raises:
            RemoteCallError: The remote call reported a failure.
        """
        ...


class ProcedureTable(Protocol):  # pragma: no cover
    """Lookup of remote procedures by name."""

    def find(self, name: str) -> RemoteProcedure | None:
        """Return the procedure ``name``, or None when not defined."""
        ...


class RemoteMeasurement(Protocol):  # pragma: no cover
    """The remote measurement (simulation run) controller."""

    @property
    def running(self) -> bool:
        """Whether a measurement is currently running."""
        ...

    def start(self) -> None:
        """Start the measurement."""
        ...

    def stop(self) -> None:
        """Stop the measurement."""
        ...


class ApplicationInstance(Protocol):  # pragma: no cover
    """An open link to one remote application instance.

    Business context: this is the root handle a Session owns. Every
    sub-handle obtained from it is only meaningful while it stays open;
    after ``close()`` any use of it or its sub-handles may fail.
    """

    def get_info(self) -> ApplicationInfo:
        """Return application identity for diagnostics."""
        ...

    def get_namespaces(self) -> NamespaceCollection:
        """Return the root namespace collection."""
        ...

    def get_procedures(self) -> ProcedureTable:
        """Return the scripting-layer procedure table."""
        ...

    def get_measurement(self) -> RemoteMeasurement:
        """Return the measurement controller."""
        ...

    def close(self) -> None:
        """Release the link. Safe to call more than once."""
        ...


class ApplicationDriver(Protocol):  # pragma: no cover
    """Factory for links to the remote application.

    Implementations: ``ComApplicationDriver`` (automation server on
    Windows) and ``DigitalTwinApplicationDriver`` (in-process simulation).
    """

    def open(self) -> ApplicationInstance:
        """Instantiate or attach to the remote application.

        Raises:
            RemoteCallError: Application not installed, not registered,
                or failed to start.
        """
        ...


def split_qualified_name(name: str) -> tuple[str | None, str]:
    """Split ``"NS::Sub::Var"`` into ``("NS::Sub", "Var")``.

    Names without a separator return ``(None, name)``.

    Example:
        >>> split_qualified_name("Engine::Speed")
        ('Engine', 'Speed')
        >>> split_qualified_name("Speed")
        (None, 'Speed')
    """
    if NAMESPACE_SEPARATOR not in name:
        return None, name
    namespace, _, variable = name.rpartition(NAMESPACE_SEPARATOR)
    return namespace, variable


def join_namespace(*parts: str) -> str:
    """Join namespace segments with the remote separator."""
    return NAMESPACE_SEPARATOR.join(p for p in parts if p)
