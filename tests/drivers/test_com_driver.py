"""Unit tests for the COM automation driver.

pywin32 is not needed: the driver accepts a replacement for
``win32com.client.Dispatch``, and the fake below reproduces the parts of
the automation object model the driver touches (1-based ``Count``/``Item``
collections, ``Value`` properties, ``CAPL.GetFunction``).
"""

import sys
from typing import Any
from unittest.mock import MagicMock

import pytest

from canoe_bridge.bridge.connection import ConnectionManager
from canoe_bridge.bridge.diagnostics import DiagnosticEnumerator, EnumerationStatus
from canoe_bridge.drivers.com import (
    ComApplicationDriver,
    ComApplicationInstance,
    com_error_text,
)
from canoe_bridge.drivers.types import RemoteCallError


class FakeComError(Exception):
    """Shaped like pywintypes.com_error: (hresult, text, excepinfo, argerr)."""

    def __init__(self, description: str) -> None:
        super().__init__(
            -2147352567,
            "Exception occurred.",
            (0, "CANoe", description, None, 0, 0),
            None,
        )


class FakeCollection:
    """1-based COM collection with Count, Item() and Add()."""

    def __init__(self, items: list[Any], factory=None) -> None:
        self.items = items
        self._factory = factory

    @property
    def Count(self) -> int:  # noqa: N802 - COM property name
        return len(self.items)

    def Item(self, index: int) -> Any:  # noqa: N802 - COM method name
        return self.items[index - 1]

    def Add(self, *args: Any) -> Any:  # noqa: N802 - COM method name
        item = self._factory(*args)
        self.items.append(item)
        return item


class FakeVariable:
    """System variable with a ``Value`` property that can refuse writes."""

    def __init__(self, name: str, value: Any, read_only: bool = False) -> None:
        self.Name = name
        self._value = value
        self._read_only = read_only

    @property
    def Value(self) -> Any:  # noqa: N802 - COM property name
        return self._value

    @Value.setter
    def Value(self, value: Any) -> None:  # noqa: N802 - COM property name
        if self._read_only:
            raise FakeComError("Variable is read-only")
        self._value = value


class FakeUnnamedVariable:
    """Collection item whose ``Name`` property raises."""

    @property
    def Name(self) -> str:  # noqa: N802 - COM property name
        raise FakeComError("Object is not connected to server")


class FakeNamespace:
    def __init__(self, name: str, variables=(), namespaces=()) -> None:
        self.Name = name
        self.Variables = FakeCollection(list(variables), FakeVariable)
        self.Namespaces = FakeCollection(list(namespaces), FakeNamespace)


@pytest.fixture
def com_app() -> MagicMock:
    """Dispatched Application object with a small namespace tree."""
    app = MagicMock()
    app.Version.Name = "CANoe"
    app.Version.FullName = "CANoe 17.0.47 SP3"
    app.System.Namespaces = FakeCollection(
        [
            FakeNamespace("General", [FakeVariable("TestStep", 0)]),
            FakeNamespace(
                "Measurement",
                [
                    FakeVariable("Temperature", 30.0),
                    FakeVariable("Locked", 1.0, read_only=True),
                ],
                [FakeNamespace("Inner", [FakeVariable("Gain", 2.0)])],
            ),
        ],
        FakeNamespace,
    )
    app.Measurement.Running = False
    return app


@pytest.fixture
def instance(com_app: MagicMock) -> ComApplicationInstance:
    driver = ComApplicationDriver("CANoe.Application", dispatch=lambda _: com_app)
    return driver.open()


class TestComErrorText:
    """Tests for com_error_text()."""

    def test_excepinfo_description(self) -> None:
        assert com_error_text(FakeComError("Function not found")) == (
            "Function not found"
        )

    def test_generic_text_without_description(self) -> None:
        error = Exception(-2147221005, "Invalid class string", None, None)
        assert com_error_text(error) == "Invalid class string"

    def test_plain_exception(self) -> None:
        assert com_error_text(ValueError("bad")) == "bad"


class TestDriver:
    """Tests for ComApplicationDriver.open()."""

    def test_open_dispatches_prog_id(self, com_app: MagicMock) -> None:
        dispatch = MagicMock(return_value=com_app)

        ComApplicationDriver("CANoe.Application.17", dispatch=dispatch).open()

        dispatch.assert_called_once_with("CANoe.Application.17")

    def test_dispatch_failure(self) -> None:
        dispatch = MagicMock(side_effect=FakeComError("Class not registered"))

        with pytest.raises(RemoteCallError) as excinfo:
            ComApplicationDriver(dispatch=dispatch).open()

        assert excinfo.value.remote_text == "Class not registered"

    def test_missing_pywin32(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(sys.modules, "win32com", None)

        with pytest.raises(RemoteCallError, match="pywin32"):
            ComApplicationDriver().open()


class TestInstance:
    """Tests for ComApplicationInstance."""

    def test_info(self, instance: ComApplicationInstance) -> None:
        assert instance.get_info() == {
            "type": "com",
            "name": "CANoe",
            "version": "CANoe 17.0.47 SP3",
            "prog_id": "CANoe.Application",
        }

    def test_closed_link(self, instance: ComApplicationInstance) -> None:
        instance.close()

        with pytest.raises(RemoteCallError, match="closed"):
            instance.get_namespaces()


class TestNamespaces:
    """Tests for namespace and variable access through COM collections."""

    def test_find_by_name(self, instance: ComApplicationInstance) -> None:
        ns = instance.get_namespaces().find("Measurement")

        assert ns.name == "Measurement"
        assert ns.find_variable("Temperature").get_value() == 30.0

    def test_missing_names(self, instance: ComApplicationInstance) -> None:
        namespaces = instance.get_namespaces()

        assert namespaces.find("Nope") is None
        assert namespaces.find("General").find_variable("Nope") is None
        assert namespaces.find("General").find_namespace("Nope") is None

    def test_iteration(self, instance: ComApplicationInstance) -> None:
        namespaces = instance.get_namespaces()
        measurement = namespaces.find("Measurement")

        assert [ns.name for ns in namespaces] == ["General", "Measurement"]
        assert [v.name for v in measurement.iter_variables()] == [
            "Temperature",
            "Locked",
        ]
        assert [n.name for n in measurement.iter_namespaces()] == ["Inner"]

    def test_nested_lookup(self, instance: ComApplicationInstance) -> None:
        inner = instance.get_namespaces().find("Measurement").find_namespace("Inner")
        assert inner.find_variable("Gain").get_value() == 2.0

    def test_write(self, instance: ComApplicationInstance, com_app) -> None:
        ns = instance.get_namespaces().find("Measurement")

        ns.find_variable("Temperature").set_value(31.0)

        assert com_app.System.Namespaces.Item(2).Variables.Item(1).Value == 31.0

    def test_write_rejected(self, instance: ComApplicationInstance) -> None:
        variable = instance.get_namespaces().find("Measurement").find_variable("Locked")

        with pytest.raises(RemoteCallError) as excinfo:
            variable.set_value(2.0)

        assert excinfo.value.remote_text == "Variable is read-only"

    def test_add(self, instance: ComApplicationInstance) -> None:
        namespaces = instance.get_namespaces()

        created = namespaces.add("Test").add_namespace("Inputs")
        created.add_variable("Gain", 5.0)

        found = namespaces.find("Test").find_namespace("Inputs")
        assert found.find_variable("Gain").get_value() == 5.0

    def test_item_failure(self, instance: ComApplicationInstance, com_app) -> None:
        com_app.System.Namespaces = MagicMock(Count=1)
        com_app.System.Namespaces.Item.side_effect = FakeComError("Access denied")

        with pytest.raises(RemoteCallError) as excinfo:
            list(instance.get_namespaces())

        assert excinfo.value.remote_text == "Access denied"

    def test_unreadable_variable_name(
        self, instance: ComApplicationInstance, com_app
    ) -> None:
        """Verifies one unreadable name does not end the variable walk.

        Arrangement:
        1. General holds a variable whose Name fails, then Ready.

        Assertion Strategy:
        - Both items are listed, the first under a positional placeholder.
        - Reading the placeholder raises the name failure.
        """
        general = com_app.System.Namespaces.Item(1)
        general.Variables.items = [FakeUnnamedVariable(), FakeVariable("Ready", 1.0)]

        variables = list(instance.get_namespaces().find("General").iter_variables())

        assert [v.name for v in variables] == ["<item 1>", "Ready"]
        with pytest.raises(RemoteCallError) as excinfo:
            variables[0].get_value()
        assert excinfo.value.remote_text == "Object is not connected to server"
        assert variables[1].get_value() == 1.0

    def test_unreadable_name_is_inline_entry(self, com_app) -> None:
        general = com_app.System.Namespaces.Item(1)
        general.Variables.items.insert(0, FakeUnnamedVariable())
        driver = ComApplicationDriver("CANoe.Application", dispatch=lambda _: com_app)
        manager = ConnectionManager(driver)
        manager.connect()

        report = DiagnosticEnumerator(manager).list_all()

        assert report.status is EnumerationStatus.COMPLETE
        names = [entry.qualified_name for entry in report.entries]
        assert names[:2] == ["General::<item 1>", "General::TestStep"]
        assert report.entries[0].error == "Object is not connected to server"
        assert "Measurement::Inner::Gain" in names


class TestProcedures:
    """Tests for CAPL function lookup and calls."""

    def test_call(self, instance: ComApplicationInstance, com_app) -> None:
        com_app.CAPL.GetFunction.return_value.Call.return_value = 7

        procedure = instance.get_procedures().find("ResetFunction")

        assert procedure.name == "ResetFunction"
        assert procedure.call(1, 2) == 7
        com_app.CAPL.GetFunction.assert_called_once_with("ResetFunction")
        com_app.CAPL.GetFunction.return_value.Call.assert_called_once_with(1, 2)

    def test_unknown_name_is_none(self, instance: ComApplicationInstance, com_app):
        com_app.CAPL.GetFunction.side_effect = FakeComError("Function not found")

        assert instance.get_procedures().find("NonExistent") is None

    def test_get_function_returns_none(
        self, instance: ComApplicationInstance, com_app
    ) -> None:
        com_app.CAPL.GetFunction.return_value = None

        assert instance.get_procedures().find("NonExistent") is None

    def test_call_failure(self, instance: ComApplicationInstance, com_app) -> None:
        function = com_app.CAPL.GetFunction.return_value
        function.Call.side_effect = FakeComError("Measurement not running")

        with pytest.raises(RemoteCallError) as excinfo:
            instance.get_procedures().find("ResetFunction").call()

        assert excinfo.value.remote_text == "Measurement not running"


class TestMeasurement:
    """Tests for measurement control."""

    def test_running_and_start(self, instance: ComApplicationInstance, com_app):
        measurement = instance.get_measurement()

        assert measurement.running is False
        measurement.start()
        measurement.stop()

        com_app.Measurement.Start.assert_called_once_with()
        com_app.Measurement.Stop.assert_called_once_with()
