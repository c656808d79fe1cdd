"""COM automation driver for the remote measurement application.

Wraps the application's automation server through pywin32 and adapts
its object model to the driver protocols in ``drivers.types``:

    Application                      -> ComApplicationInstance
    Application.Version              -> ApplicationInfo
    Application.System.Namespaces    -> NamespaceCollection
    Namespace.Variables / Namespaces -> RemoteNamespace
    Variable.Value                   -> RemoteVariable
    Application.CAPL.GetFunction()   -> ProcedureTable
    Application.Measurement          -> RemoteMeasurement

Collections are searched by iterating ``Item(i)`` (1-based) and comparing
``Name``, because indexing a collection with an unknown name raises the
same COM error as a real failure and the two must stay distinguishable.
The procedure table is the exception: ``GetFunction`` is the only lookup
the server offers and it reports an unknown name by raising, which this
driver maps to "not found".

COM objects are apartment-bound: use a link from the thread that opened
it.

Example:
    from canoe_bridge.drivers.com import ComApplicationDriver

    driver = ComApplicationDriver("CANoe.Application")
    app = driver.open()
    print(app.get_info()["version"])
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from canoe_bridge.drivers.types import ApplicationInfo, RemoteCallError
from canoe_bridge.observability import get_logger

logger = get_logger(__name__)

__all__ = [
    "DEFAULT_PROG_ID",
    "ComApplicationDriver",
    "ComApplicationInstance",
    "com_error_text",
]

DEFAULT_PROG_ID = "CANoe.Application"

#: Signature of ``win32com.client.Dispatch`` as used by this driver.
DispatchFunc = Callable[[str], Any]


def _default_dispatch() -> DispatchFunc:
    """Return pywin32's ``Dispatch``, imported on first use.

    pywin32 only exists on Windows; importing it lazily keeps the rest of
    the package (digital twin, tests, MCP server) importable everywhere.

    Raises:
        RemoteCallError: pywin32 is not installed.
    """
    try:
        import win32com.client
    except ImportError as e:
        raise RemoteCallError(
            "COM automation requires pywin32 on Windows "
            "(pip install 'canoe-bridge[com]')",
            str(e),
        ) from e
    return win32com.client.Dispatch


def com_error_text(error: BaseException) -> str:
    """Extract the most useful diagnostic text from a COM exception.

    ``pywintypes.com_error`` carries ``(hresult, text, excepinfo, argerr)``
    where ``excepinfo[2]`` holds the description the server reported.
    Falls back to the generic text, then to ``str(error)``.

    Example:
        >>> com_error_text(Exception(-2147352567, "Exception occurred.",
        ...     (0, "CANoe", "Function not found", None, 0, 0), None))
        'Function not found'
    """
    args = getattr(error, "args", ())
    if len(args) >= 3:
        excepinfo = args[2]
        if isinstance(excepinfo, tuple) and len(excepinfo) >= 3 and excepinfo[2]:
            return str(excepinfo[2])
        if args[1]:
            return str(args[1])
    return str(error)


def _remote(action: str, call: Callable[[], Any]) -> Any:
    """Run one COM call, converting failures to RemoteCallError."""
    try:
        return call()
    except RemoteCallError:
        raise
    except Exception as e:  # noqa: BLE001 - COM raises pywintypes.com_error
        text = com_error_text(e)
        raise RemoteCallError(f"{action} failed: {text}", text) from e


def _iter_collection(collection: Any) -> Iterator[Any]:
    """Iterate a 1-based COM collection via Count/Item."""
    count = int(_remote("Reading collection size", lambda: collection.Count))
    for index in range(1, count + 1):
        yield _remote(
            f"Reading collection item {index}", lambda i=index: collection.Item(i)
        )


def _item_name(item: Any) -> str:
    return str(_remote("Reading item name", lambda: item.Name))


def _find_by_name(collection: Any, name: str) -> Any | None:
    for item in _iter_collection(collection):
        if _item_name(item) == name:
            return item
    return None


class ComVariable:
    """A system variable on the automation server."""

    def __init__(self, com_variable: Any, name: str) -> None:
        self._com = com_variable
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def get_value(self) -> Any:
        return _remote(f"Reading {self._name}", lambda: self._com.Value)

    def set_value(self, value: Any) -> None:
        def assign() -> None:
            self._com.Value = value

        _remote(f"Writing {self._name}", assign)


class _UnnamedVariable(ComVariable):
    """Collection item whose ``Name`` could not be read.

    Listed under a positional placeholder; reading it reports the name
    failure so enumeration records it as an inline error entry.
    """

    def __init__(self, com_variable: Any, index: int, error: RemoteCallError) -> None:
        super().__init__(com_variable, f"<item {index}>")
        self._error = error

    def get_value(self) -> Any:
        raise self._error

    def set_value(self, value: Any) -> None:
        raise self._error


class ComNamespace:
    """A system variable namespace on the automation server."""

    def __init__(self, com_namespace: Any, name: str) -> None:
        self._com = com_namespace
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def find_variable(self, name: str) -> ComVariable | None:
        variables = _remote("Opening variables", lambda: self._com.Variables)
        found = _find_by_name(variables, name)
        return ComVariable(found, name) if found is not None else None

    def add_variable(self, name: str, default: Any) -> ComVariable:
        variables = _remote("Opening variables", lambda: self._com.Variables)
        created = _remote(
            f"Creating variable {name}", lambda: variables.Add(name, default)
        )
        return ComVariable(created, name)

    def iter_variables(self) -> Iterator[ComVariable]:
        variables = _remote("Opening variables", lambda: self._com.Variables)
        for index, item in enumerate(_iter_collection(variables), start=1):
            try:
                name = _item_name(item)
            except RemoteCallError as e:
                logger.debug(
                    "Variable name unreadable",
                    namespace=self._name,
                    index=index,
                    error=e.remote_text,
                )
                yield _UnnamedVariable(item, index, e)
                continue
            yield ComVariable(item, name)

    def find_namespace(self, name: str) -> ComNamespace | None:
        children = _remote("Opening namespaces", lambda: self._com.Namespaces)
        found = _find_by_name(children, name)
        return ComNamespace(found, name) if found is not None else None

    def add_namespace(self, name: str) -> ComNamespace:
        children = _remote("Opening namespaces", lambda: self._com.Namespaces)
        created = _remote(f"Creating namespace {name}", lambda: children.Add(name))
        return ComNamespace(created, name)

    def iter_namespaces(self) -> Iterator[ComNamespace]:
        children = _remote("Opening namespaces", lambda: self._com.Namespaces)
        for item in _iter_collection(children):
            yield ComNamespace(item, _item_name(item))


class ComNamespaceCollection:
    """``Application.System.Namespaces``."""

    def __init__(self, com_namespaces: Any) -> None:
        self._com = com_namespaces

    def find(self, name: str) -> ComNamespace | None:
        found = _find_by_name(self._com, name)
        return ComNamespace(found, name) if found is not None else None

    def add(self, name: str) -> ComNamespace:
        created = _remote(f"Creating namespace {name}", lambda: self._com.Add(name))
        return ComNamespace(created, name)

    def __iter__(self) -> Iterator[ComNamespace]:
        for item in _iter_collection(self._com):
            yield ComNamespace(item, _item_name(item))


class ComProcedure:
    """A CAPL function handle."""

    def __init__(self, com_function: Any, name: str) -> None:
        self._com = com_function
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def call(self, *args: Any) -> Any:
        return _remote(f"Calling {self._name}", lambda: self._com.Call(*args))


class ComProcedureTable:
    """``Application.CAPL``; lookups go through ``GetFunction``."""

    def __init__(self, com_capl: Any) -> None:
        self._com = com_capl

    def find(self, name: str) -> ComProcedure | None:
        try:
            function = self._com.GetFunction(name)
        except Exception as e:  # noqa: BLE001 - unknown names raise com_error
            logger.debug(
                "Procedure lookup failed", procedure=name, error=com_error_text(e)
            )
            return None
        if function is None:
            return None
        return ComProcedure(function, name)


class ComMeasurement:
    """``Application.Measurement``."""

    def __init__(self, com_measurement: Any) -> None:
        self._com = com_measurement

    @property
    def running(self) -> bool:
        return bool(_remote("Reading measurement state", lambda: self._com.Running))

    def start(self) -> None:
        _remote("Starting measurement", lambda: self._com.Start())

    def stop(self) -> None:
        _remote("Stopping measurement", lambda: self._com.Stop())


class ComApplicationInstance:
    """An open automation link; owns the dispatched Application object."""

    def __init__(self, com_application: Any, prog_id: str) -> None:
        self._com: Any | None = com_application
        self._prog_id = prog_id

    def _app(self) -> Any:
        if self._com is None:
            raise RemoteCallError("Application link is closed")
        return self._com

    def get_info(self) -> ApplicationInfo:
        version = _remote("Reading version", lambda: self._app().Version)
        name = _remote("Reading application name", lambda: version.Name)
        full = _remote("Reading version string", lambda: version.FullName)
        return {
            "type": "com",
            "name": str(name),
            "version": str(full),
            "prog_id": self._prog_id,
        }

    def get_namespaces(self) -> ComNamespaceCollection:
        system = _remote("Opening System", lambda: self._app().System)
        return ComNamespaceCollection(
            _remote("Opening namespaces", lambda: system.Namespaces)
        )

    def get_procedures(self) -> ComProcedureTable:
        return ComProcedureTable(_remote("Opening CAPL", lambda: self._app().CAPL))

    def get_measurement(self) -> ComMeasurement:
        return ComMeasurement(
            _remote("Opening Measurement", lambda: self._app().Measurement)
        )

    def close(self) -> None:
        # Dropping the last reference releases the COM object; the
        # application itself keeps running.
        self._com = None


class ComApplicationDriver:
    """Driver instantiating the application through its ProgID.

    Args:
        prog_id: COM registration name of the application.
        dispatch: Replacement for ``win32com.client.Dispatch``. Tests pass
            a fake; None loads pywin32 on first ``open()``.
    """

    def __init__(
        self,
        prog_id: str = DEFAULT_PROG_ID,
        dispatch: DispatchFunc | None = None,
    ) -> None:
        self.prog_id = prog_id
        self._dispatch = dispatch

    def open(self) -> ComApplicationInstance:
        """Dispatch the application and return a link to it.

        Attaches to a running instance if there is one, otherwise the
        COM runtime starts the application.

        Raises:
            RemoteCallError: pywin32 missing, ProgID not registered, or
                the server failed to start.
        """
        dispatch = self._dispatch or _default_dispatch()
        logger.info("Dispatching automation server", prog_id=self.prog_id)
        com_app = _remote(f"Dispatching {self.prog_id}", lambda: dispatch(self.prog_id))
        return ComApplicationInstance(com_app, self.prog_id)
