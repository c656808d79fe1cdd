"""Digital twin of the remote measurement application.

Simulates the automation object graph in-process: nested namespaces of
variables, scripting-layer procedures, and the measurement controller.
Used for development without the real application and as the test double
for the bridge core.

The simulated application outlives the links opened to it, just like the
real long-running tool: values written through one link are visible
through the next one, while handles obtained through a closed link stop
working.

Fault injection covers the failure modes the bridge has to classify:
unreadable variables, procedures that fail remotely, an inaccessible
namespace collection, and an application that refuses to start.

Example:
    from canoe_bridge.drivers.twin import (
        DigitalTwinApplicationConfig,
        DigitalTwinApplicationDriver,
    )

    driver = DigitalTwinApplicationDriver(
        DigitalTwinApplicationConfig(
            namespaces={"Measurement": {"Temperature": 30.0}},
        )
    )
    app = driver.open()
    ns = app.get_namespaces().find("Measurement")
    print(ns.find_variable("Temperature").get_value())  # 30.0
"""

from __future__ import annotations

import numbers
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from canoe_bridge.drivers.types import (
    NAMESPACE_SEPARATOR,
    ApplicationInfo,
    RemoteCallError,
    join_namespace,
)
from canoe_bridge.observability import get_logger

logger = get_logger(__name__)

__all__ = [
    "DigitalTwinApplication",
    "DigitalTwinApplicationConfig",
    "DigitalTwinApplicationDriver",
    "DigitalTwinApplicationInstance",
    "default_twin_namespaces",
]

DEFAULT_TWIN_PROG_ID = "CANoe.Application"

# Matches the message the COM server gives for a released object
_RELEASED_MESSAGE = "The object invoked has disconnected from its clients"


def default_twin_namespaces() -> dict[str, dict[str, Any]]:
    """Namespaces of a small bench setup used when none are configured.

    Keys are namespace paths (``"Parent::Child"`` for nesting), values
    map variable names to initial values.
    """
    return {
        "General": {"TestStep": 0, "Verdict": 0},
        "Measurement": {"Temperature": 30.0, "Voltage": 12.6},
        "Engine": {"Speed": 850.0},
        "Engine::Inputs": {"Throttle": 0.0},
    }


def _default_procedures() -> dict[str, Callable[..., Any]]:
    return {"ResetFunction": lambda *args: 0}


@dataclass
class DigitalTwinApplicationConfig:
    """Configuration of the simulated application.

    Attributes:
        name: Application name reported in ApplicationInfo.
        version: Version string reported in ApplicationInfo.
        prog_id: Registration name reported in ApplicationInfo.
        namespaces: Namespace path to {variable: initial value}.
        procedures: Procedure name to Python callable run on invoke.
        unreadable_variables: Qualified names ("NS::Var") whose reads fail.
        failing_procedures: Procedure name to remote error text.
        namespaces_accessible: When False, iterating the root namespace
            collection fails (structural failure).
        open_error: When set, ``open()`` fails with this text.
    """

    name: str = "CANoe"
    version: str = "17.0 SP3 (digital twin)"
    prog_id: str = DEFAULT_TWIN_PROG_ID
    namespaces: dict[str, dict[str, Any]] = field(
        default_factory=default_twin_namespaces
    )
    procedures: dict[str, Callable[..., Any]] = field(
        default_factory=_default_procedures
    )
    unreadable_variables: set[str] = field(default_factory=set)
    failing_procedures: dict[str, str] = field(default_factory=dict)
    namespaces_accessible: bool = True
    open_error: str | None = None


class _NamespaceNode:
    """Simulated remote namespace state."""

    def __init__(self, name: str, path: str) -> None:
        self.name = name
        self.path = path
        self.variables: dict[str, Any] = {}
        self.children: dict[str, _NamespaceNode] = {}


class DigitalTwinApplication:
    """The simulated long-running application process.

    Holds the namespace tree, the procedure table, the measurement flag,
    and counters that tests use to check what the bridge did remotely.

    Attributes:
        access_count: Number of remote operations performed through any
            link (lookups, reads, writes, calls, enumeration steps).
        procedure_calls: ``(name, args)`` for every procedure invocation.
        measurement_running: Simulated measurement state.
    """

    def __init__(self, config: DigitalTwinApplicationConfig) -> None:
        self.config = config
        self.roots: dict[str, _NamespaceNode] = {}
        self.procedure_calls: list[tuple[str, tuple[Any, ...]]] = []
        self.access_count = 0
        self.measurement_running = False

        for path, variables in config.namespaces.items():
            node = self.ensure_path(path)
            node.variables.update(variables)

    def ensure_path(self, path: str) -> _NamespaceNode:
        """Return the namespace node at ``path``, creating missing levels."""
        segments = path.split(NAMESPACE_SEPARATOR)
        level = self.roots
        node: _NamespaceNode | None = None
        for index, segment in enumerate(segments):
            node = level.get(segment)
            if node is None:
                node = _NamespaceNode(segment, join_namespace(*segments[: index + 1]))
                level[segment] = node
            level = node.children
        assert node is not None
        return node

    def touch(self) -> None:
        self.access_count += 1

    def value_of(self, qualified_name: str) -> Any:
        """Read a value directly, bypassing any link. For tests."""
        namespace, _, variable = qualified_name.rpartition(NAMESPACE_SEPARATOR)
        node = self.ensure_path(namespace)
        return node.variables[variable]


class _TwinHandle:
    """Base for handles that die with the link that produced them."""

    def __init__(self, instance: DigitalTwinApplicationInstance) -> None:
        self._instance = instance

    def _check(self) -> DigitalTwinApplication:
        if not self._instance.is_open:
            raise RemoteCallError(_RELEASED_MESSAGE, _RELEASED_MESSAGE)
        app = self._instance.application
        app.touch()
        return app


class _TwinVariable(_TwinHandle):
    def __init__(
        self, instance: DigitalTwinApplicationInstance, node: _NamespaceNode, name: str
    ) -> None:
        super().__init__(instance)
        self._node = node
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def qualified_name(self) -> str:
        return join_namespace(self._node.path, self._name)

    def get_value(self) -> Any:
        app = self._check()
        if self.qualified_name in app.config.unreadable_variables:
            raise RemoteCallError(
                f"Value of {self.qualified_name} is not available",
                "Value not available",
            )
        if self._name not in self._node.variables:
            raise RemoteCallError(
                f"Variable {self.qualified_name} was removed", "Variable removed"
            )
        return self._node.variables[self._name]

    def set_value(self, value: Any) -> None:
        self._check()
        current = self._node.variables.get(self._name)
        if isinstance(current, numbers.Number) and not isinstance(
            value, numbers.Number
        ):
            raise RemoteCallError(
                f"Type mismatch writing {self.qualified_name}", "Type mismatch"
            )
        self._node.variables[self._name] = value


class _TwinNamespace(_TwinHandle):
    def __init__(
        self, instance: DigitalTwinApplicationInstance, node: _NamespaceNode
    ) -> None:
        super().__init__(instance)
        self._node = node

    @property
    def name(self) -> str:
        return self._node.name

    def find_variable(self, name: str) -> _TwinVariable | None:
        self._check()
        if name not in self._node.variables:
            return None
        return _TwinVariable(self._instance, self._node, name)

    def add_variable(self, name: str, default: Any) -> _TwinVariable:
        self._check()
        if name in self._node.variables:
            raise RemoteCallError(
                f"Variable {name} already exists in {self._node.path}",
                "Duplicate variable name",
            )
        self._node.variables[name] = default
        return _TwinVariable(self._instance, self._node, name)

    def iter_variables(self) -> Iterator[_TwinVariable]:
        self._check()
        for name in list(self._node.variables):
            yield _TwinVariable(self._instance, self._node, name)

    def find_namespace(self, name: str) -> _TwinNamespace | None:
        self._check()
        child = self._node.children.get(name)
        return _TwinNamespace(self._instance, child) if child else None

    def add_namespace(self, name: str) -> _TwinNamespace:
        self._check()
        if name in self._node.children:
            raise RemoteCallError(
                f"Namespace {name} already exists in {self._node.path}",
                "Duplicate namespace name",
            )
        child = _NamespaceNode(name, join_namespace(self._node.path, name))
        self._node.children[name] = child
        return _TwinNamespace(self._instance, child)

    def iter_namespaces(self) -> Iterator[_TwinNamespace]:
        self._check()
        for child in list(self._node.children.values()):
            yield _TwinNamespace(self._instance, child)


class _TwinNamespaceCollection(_TwinHandle):
    def find(self, name: str) -> _TwinNamespace | None:
        app = self._check()
        node = app.roots.get(name)
        return _TwinNamespace(self._instance, node) if node else None

    def add(self, name: str) -> _TwinNamespace:
        app = self._check()
        if name in app.roots:
            raise RemoteCallError(
                f"Namespace {name} already exists", "Duplicate namespace name"
            )
        node = app.ensure_path(name)
        return _TwinNamespace(self._instance, node)

    def __iter__(self) -> Iterator[_TwinNamespace]:
        app = self._check()
        if not app.config.namespaces_accessible:
            raise RemoteCallError(
                "Namespace collection is not accessible", "Access denied"
            )
        for node in list(app.roots.values()):
            yield _TwinNamespace(self._instance, node)


class _TwinProcedure(_TwinHandle):
    def __init__(self, instance: DigitalTwinApplicationInstance, name: str) -> None:
        super().__init__(instance)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def call(self, *args: Any) -> Any:
        app = self._check()
        app.procedure_calls.append((self._name, args))
        failure = app.config.failing_procedures.get(self._name)
        if failure is not None:
            raise RemoteCallError(f"Procedure {self._name} failed", failure)
        return app.config.procedures[self._name](*args)


class _TwinProcedureTable(_TwinHandle):
    def find(self, name: str) -> _TwinProcedure | None:
        app = self._check()
        if name not in app.config.procedures:
            return None
        return _TwinProcedure(self._instance, name)


class _TwinMeasurement(_TwinHandle):
    @property
    def running(self) -> bool:
        return self._check().measurement_running

    def start(self) -> None:
        self._check().measurement_running = True

    def stop(self) -> None:
        self._check().measurement_running = False


class DigitalTwinApplicationInstance:
    """One open link to the simulated application.

    Note:
        Not thread-safe, like the automation server it stands in for.
    """

    def __init__(self, application: DigitalTwinApplication) -> None:
        self.application = application
        self.is_open = True

    def get_info(self) -> ApplicationInfo:
        config = self.application.config
        return {
            "type": "digital_twin",
            "name": config.name,
            "version": config.version,
            "prog_id": config.prog_id,
        }

    def get_namespaces(self) -> _TwinNamespaceCollection:
        return _TwinNamespaceCollection(self)

    def get_procedures(self) -> _TwinProcedureTable:
        return _TwinProcedureTable(self)

    def get_measurement(self) -> _TwinMeasurement:
        return _TwinMeasurement(self)

    def close(self) -> None:
        if self.is_open:
            logger.debug("Digital twin link closed")
        self.is_open = False


class DigitalTwinApplicationDriver:
    """Driver that links to a ``DigitalTwinApplication``.

    The application model is created once per driver and shared by all
    links, so state survives disconnect/connect cycles.

    Attributes:
        application: The simulated application.
        open_count: Number of successful ``open()`` calls.
    """

    def __init__(self, config: DigitalTwinApplicationConfig | None = None) -> None:
        self.application = DigitalTwinApplication(
            config or DigitalTwinApplicationConfig()
        )
        self.open_count = 0

    def open(self) -> DigitalTwinApplicationInstance:
        """Open a new link to the simulated application.

        Raises:
            RemoteCallError: If ``open_error`` is configured.
        """
        error = self.application.config.open_error
        if error is not None:
            raise RemoteCallError(f"Cannot start application: {error}", error)

        self.open_count += 1
        logger.debug("Digital twin link opened", open_count=self.open_count)
        return DigitalTwinApplicationInstance(self.application)
