"""Pytest configuration and fixtures for canoe-bridge tests.

Every test runs against the in-process digital twin, so no COM server or
Windows host is needed. Fixtures reset the process-wide configuration so
tests that go through ``get_bridge()`` never share state.
"""

from pathlib import Path

import pytest

from canoe_bridge.bridge import Bridge, ConnectionManager
from canoe_bridge.drivers import config as driver_config
from canoe_bridge.drivers.config import BridgeConfig
from canoe_bridge.drivers.twin import (
    DigitalTwinApplicationConfig,
    DigitalTwinApplicationDriver,
)
from canoe_bridge.observability import configure_logging


@pytest.fixture(autouse=True)
def reset_global_bridge():
    """Discard the process-wide factory and bridge around each test.

    Business context:
    MCP tool handlers and the CLI reach the bridge through
    ``get_bridge()``. Without a reset, a connection opened by one test
    would leak into the next and hide NOT_CONNECTED paths.

    Yields:
        None. Globals are cleared before and after the test.
    """
    driver_config._factory = None
    driver_config._bridge = None
    yield
    if driver_config._bridge is not None:
        driver_config._bridge.disconnect()
    driver_config._factory = None
    driver_config._bridge = None


@pytest.fixture(autouse=True)
def restore_logging():
    """Reinstall the default log handler after each test.

    Tests and CLI commands reconfigure logging onto buffers or captured
    streams that are closed once the test ends.
    """
    yield
    configure_logging(force=True)


@pytest.fixture
def twin_driver() -> DigitalTwinApplicationDriver:
    """Digital twin with the default bench namespaces.

    Namespaces: General{TestStep, Verdict}, Measurement{Temperature=30.0,
    Voltage=12.6}, Engine{Speed=850.0}, Engine::Inputs{Throttle=0.0}.
    Procedures: ResetFunction returning 0.
    """
    return DigitalTwinApplicationDriver()


@pytest.fixture
def make_driver():
    """Factory for digital twin drivers with custom configuration.

    Example:
        >>> driver = make_driver(namespaces={"A": {"X": 1.0}})
    """

    def _make(**kwargs) -> DigitalTwinApplicationDriver:
        return DigitalTwinApplicationDriver(DigitalTwinApplicationConfig(**kwargs))

    return _make


@pytest.fixture
def connection(twin_driver: DigitalTwinApplicationDriver) -> ConnectionManager:
    """Connected ConnectionManager over the default twin."""
    manager = ConnectionManager(twin_driver)
    manager.connect()
    yield manager
    manager.disconnect()


@pytest.fixture
def bridge_config(tmp_path: Path) -> BridgeConfig:
    """Bridge configuration writing captures under ``tmp_path``."""
    return BridgeConfig(data_dir=tmp_path / "data")


@pytest.fixture
def bridge(twin_driver: DigitalTwinApplicationDriver, bridge_config: BridgeConfig):
    """Bridge over the default twin, not yet connected."""
    instance = Bridge(twin_driver, bridge_config)
    yield instance
    instance.disconnect()
