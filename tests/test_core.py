"""Unit tests for canoe_bridge.bridge.core.Bridge.

End-to-end behavior of the command surface over the digital twin: every
operation returns a BridgeResult and every failure carries its kind.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from canoe_bridge.bridge.core import Bridge
from canoe_bridge.bridge.diagnostics import EnumerationStatus
from canoe_bridge.bridge.results import ErrorKind
from canoe_bridge.drivers.config import BridgeConfig


class TestConnection:
    """Tests for connect/disconnect/is_connected."""

    def test_connect(self, bridge: Bridge) -> None:
        result = bridge.connect()

        assert result.success
        assert result.value.generation == 1
        assert bridge.is_connected()

    def test_connect_failure(self, make_driver, bridge_config) -> None:
        bridge = Bridge(make_driver(open_error="Class not registered"), bridge_config)

        result = bridge.connect()

        assert result.kind is ErrorKind.CONNECT_ERROR
        assert result.error.detail == "Class not registered"
        assert not bridge.is_connected()

    def test_disconnect_when_disconnected(self, bridge: Bridge) -> None:
        bridge.disconnect()
        assert not bridge.is_connected()


class TestReadVariable:
    """Tests for Bridge.read_variable()."""

    def test_reads_from_second_candidate(self, bridge: Bridge) -> None:
        """Verifies the reference scenario.

        Arrangement:
        1. Candidates General, Measurement (configured default).
        2. Temperature exists only in Measurement, value 30.0.

        Assertion Strategy:
        - read_variable returns 30.0.
        """
        bridge.connect()

        result = bridge.read_variable("Temperature")

        assert result.success
        assert result.value == 30.0

    def test_auto_connects(self, bridge: Bridge) -> None:
        assert bridge.read_variable("Temperature").value == 30.0
        assert bridge.is_connected()

    def test_first_match_wins(self, make_driver, bridge_config) -> None:
        driver = make_driver(
            namespaces={"General": {"Speed": 1.0}, "Measurement": {"Speed": 2.0}}
        )
        bridge = Bridge(driver, bridge_config)

        assert bridge.read_variable("Speed").value == 1.0
        assert bridge.read_variable("Speed", ["Measurement", "General"]).value == 2.0

    def test_variable_not_found(self, bridge: Bridge) -> None:
        result = bridge.read_variable("Temperature", ["A", "B"])

        assert result.kind is ErrorKind.VARIABLE_NOT_FOUND

    def test_read_failure(self, make_driver, bridge_config) -> None:
        driver = make_driver(
            namespaces={"Measurement": {"Temperature": 30.0}},
            unreadable_variables={"Measurement::Temperature"},
        )
        bridge = Bridge(driver, bridge_config)

        result = bridge.read_variable("Temperature")

        assert result.kind is ErrorKind.READ_FAILURE
        assert result.error.detail == "Value not available"

    def test_not_connected_after_disconnect(self, bridge: Bridge, twin_driver) -> None:
        """Verifies no remote access after an explicit disconnect.

        Assertion Strategy:
        - NOT_CONNECTED result.
        - Remote access counter unchanged.
        - Driver not reopened.
        """
        bridge.connect()
        bridge.disconnect()
        accesses = twin_driver.application.access_count

        result = bridge.read_variable("Temperature")

        assert result.kind is ErrorKind.NOT_CONNECTED
        assert twin_driver.application.access_count == accesses
        assert twin_driver.open_count == 1

    def test_auto_connect_disabled(self, twin_driver, tmp_path: Path) -> None:
        config = BridgeConfig(auto_connect=False, data_dir=tmp_path)
        bridge = Bridge(twin_driver, config)

        assert bridge.read_variable("Temperature").kind is ErrorKind.NOT_CONNECTED

    def test_unclassified_exception_is_classified(self, bridge: Bridge) -> None:
        """Verifies an unexpected exception still becomes a result."""
        bridge.resolver.resolve = MagicMock(side_effect=RuntimeError("driver bug"))

        result = bridge.read_variable("Temperature")

        assert result.kind is ErrorKind.READ_FAILURE
        assert "driver bug" in result.error.message


class TestResolveVariable:
    """Tests for Bridge.resolve_variable()."""

    def test_resolve(self, bridge: Bridge) -> None:
        result = bridge.resolve_variable("Temperature")

        assert result.success
        assert result.value.qualified_name == "Measurement::Temperature"
        assert result.value.generation == 1

    def test_qualified_name_ignores_candidates(self, bridge: Bridge) -> None:
        result = bridge.resolve_variable("Engine::Inputs::Throttle", ["General"])
        assert result.value.namespace == "Engine::Inputs"

    def test_not_found(self, bridge: Bridge) -> None:
        result = bridge.resolve_variable("Temperature", [])
        assert result.kind is ErrorKind.VARIABLE_NOT_FOUND


class TestWriteVariable:
    """Tests for Bridge.write_variable()."""

    def test_write_then_read(self, bridge: Bridge, twin_driver) -> None:
        assert bridge.write_variable("Voltage", 13.5).success

        assert bridge.read_variable("Voltage").value == 13.5
        assert twin_driver.application.value_of("Measurement::Voltage") == 13.5

    def test_write_not_found(self, bridge: Bridge) -> None:
        assert bridge.write_variable("Nope", 1.0).kind is ErrorKind.VARIABLE_NOT_FOUND

    def test_write_type_mismatch(self, bridge: Bridge) -> None:
        assert bridge.write_variable("Voltage", "high").kind is ErrorKind.WRITE_FAILURE


class TestEnsureVariable:
    """Tests for Bridge.ensure_variable()."""

    def test_twice_keeps_first_default(self, bridge: Bridge) -> None:
        first = bridge.ensure_variable("Test", "Counter", 1.0)
        second = bridge.ensure_variable("Test", "Counter", 2.0)

        assert first.success and second.success
        assert bridge.read_variable("Test::Counter").value == 1.0

    def test_create_failure(self, bridge: Bridge) -> None:
        result = bridge.ensure_variable("Test", "", 0.0)
        assert result.kind is ErrorKind.CREATE_FAILURE

    def test_not_connected(self, bridge: Bridge) -> None:
        bridge.connect()
        bridge.disconnect()

        assert bridge.ensure_variable("T", "X", 0.0).kind is ErrorKind.NOT_CONNECTED


class TestInvokeProcedure:
    """Tests for Bridge.invoke_procedure()."""

    def test_invoke(self, bridge: Bridge, twin_driver) -> None:
        result = bridge.invoke_procedure("ResetFunction")

        assert result.success
        assert result.value == 0
        assert len(twin_driver.application.procedure_calls) == 1

    def test_nonexistent_never_called(self, bridge: Bridge, twin_driver) -> None:
        result = bridge.invoke_procedure("NonExistent")

        assert result.kind is ErrorKind.PROCEDURE_NOT_FOUND
        assert twin_driver.application.procedure_calls == []

    def test_invocation_failure(self, make_driver, bridge_config) -> None:
        driver = make_driver(failing_procedures={"ResetFunction": "Runtime error"})
        bridge = Bridge(driver, bridge_config)

        result = bridge.invoke_procedure("ResetFunction")

        assert result.kind is ErrorKind.INVOCATION_FAILURE
        assert result.error.detail == "Runtime error"

    def test_not_connected(self, bridge: Bridge, twin_driver) -> None:
        bridge.connect()
        bridge.disconnect()

        result = bridge.invoke_procedure("ResetFunction")

        assert result.kind is ErrorKind.NOT_CONNECTED
        assert twin_driver.application.procedure_calls == []


class TestCaptures:
    """Tests for capture operations."""

    def test_append_capture(self, bridge: Bridge) -> None:
        first = bridge.append_capture(1.0)
        second = bridge.append_capture(2.0)

        assert bridge.captures.records == (first, second)
        assert second.timestamp >= first.timestamp

    def test_append_capture_rejects_non_numeric(self, bridge: Bridge) -> None:
        with pytest.raises(ValueError):
            bridge.append_capture("30")
        assert len(bridge.captures) == 0

    def test_capture_variable(self, bridge: Bridge) -> None:
        result = bridge.capture_variable("Temperature")

        assert result.success
        assert result.value.value == 30.0
        assert len(bridge.captures) == 1

    def test_capture_variable_failure_appends_nothing(self, bridge: Bridge) -> None:
        result = bridge.capture_variable("Nope")

        assert result.kind is ErrorKind.VARIABLE_NOT_FOUND
        assert len(bridge.captures) == 0

    def test_save_captures(self, bridge: Bridge, bridge_config) -> None:
        bridge.append_capture(1.0)

        result = bridge.save_captures()

        assert result.success
        assert result.value.is_relative_to(bridge_config.data_dir)
        assert result.value.exists()

    def test_save_captures_failure(self, bridge: Bridge, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        result = bridge.save_captures(blocker / "captures.asdf")

        assert result.kind is ErrorKind.WRITE_FAILURE


class TestListAllVariables:
    """Tests for Bridge.list_all_variables()."""

    def test_complete(self, bridge: Bridge) -> None:
        report = bridge.list_all_variables()
        assert report.status is EnumerationStatus.COMPLETE

    def test_not_connected_is_failed_report(self, bridge: Bridge) -> None:
        bridge.connect()
        bridge.disconnect()

        report = bridge.list_all_variables()

        assert report.status is EnumerationStatus.FAILED
        assert report.error.kind is ErrorKind.NOT_CONNECTED

    def test_unreadable_variable(self, make_driver, bridge_config) -> None:
        driver = make_driver(
            namespaces={"Measurement": {"Temperature": 30.0}},
            unreadable_variables={"Measurement::Temperature"},
        )

        report = Bridge(driver, bridge_config).list_all_variables()

        assert len(report.entries) == 1
        assert report.entries[0].error


class TestStatus:
    """Tests for Bridge.get_status()."""

    def test_disconnected(self, bridge: Bridge) -> None:
        status = bridge.get_status()

        assert not status.connected
        assert status.state == "disconnected"
        assert status.session is None
        assert status.candidate_namespaces == ("General", "Measurement")

    def test_records_operations(self, bridge: Bridge) -> None:
        bridge.read_variable("Temperature")
        bridge.read_variable("Nope")

        data = bridge.get_status().to_dict()

        assert data["connected"] is True
        assert data["session"]["generation"] == 1
        summary = data["stats"]["operations"]["read_variable"]
        assert summary["total_calls"] == 2
        assert summary["failed_calls"] == 1
        assert summary["error_counts"] == {"variable_not_found": 1}

    def test_last_error_after_failed_connect(self, make_driver, bridge_config) -> None:
        bridge = Bridge(make_driver(open_error="not installed"), bridge_config)
        bridge.connect()

        assert "not installed" in bridge.get_status().last_error
