"""Remote application drivers.

Two drivers implement the ``ApplicationDriver`` protocol:

- ``ComApplicationDriver``: the real application through COM automation
  (pywin32, Windows only)
- ``DigitalTwinApplicationDriver``: an in-process simulation of the same
  object graph for development and tests

Example:
    from canoe_bridge.drivers import DigitalTwinApplicationDriver

    driver = DigitalTwinApplicationDriver()
    app = driver.open()
    print(app.get_info())
"""

from canoe_bridge.drivers.com import ComApplicationDriver, ComApplicationInstance
from canoe_bridge.drivers.config import (
    DEFAULT_CANDIDATE_NAMESPACES,
    BridgeConfig,
    DriverFactory,
    DriverMode,
    configure,
    get_bridge,
    get_factory,
    set_candidate_namespaces,
    set_data_dir,
    use_com,
    use_digital_twin,
)
from canoe_bridge.drivers.twin import (
    DigitalTwinApplication,
    DigitalTwinApplicationConfig,
    DigitalTwinApplicationDriver,
    DigitalTwinApplicationInstance,
)
from canoe_bridge.drivers.types import (
    NAMESPACE_SEPARATOR,
    ApplicationDriver,
    ApplicationInfo,
    ApplicationInstance,
    NamespaceCollection,
    ProcedureTable,
    RemoteCallError,
    RemoteMeasurement,
    RemoteNamespace,
    RemoteProcedure,
    RemoteVariable,
)

__all__ = [
    # Protocols and types
    "NAMESPACE_SEPARATOR",
    "ApplicationDriver",
    "ApplicationInfo",
    "ApplicationInstance",
    "NamespaceCollection",
    "ProcedureTable",
    "RemoteCallError",
    "RemoteMeasurement",
    "RemoteNamespace",
    "RemoteProcedure",
    "RemoteVariable",
    # COM
    "ComApplicationDriver",
    "ComApplicationInstance",
    # Digital twin
    "DigitalTwinApplication",
    "DigitalTwinApplicationConfig",
    "DigitalTwinApplicationDriver",
    "DigitalTwinApplicationInstance",
    # Configuration
    "DEFAULT_CANDIDATE_NAMESPACES",
    "BridgeConfig",
    "DriverFactory",
    "DriverMode",
    "configure",
    "get_bridge",
    "get_factory",
    "set_candidate_namespaces",
    "set_data_dir",
    "use_com",
    "use_digital_twin",
]
