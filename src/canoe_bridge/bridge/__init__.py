"""Bridge core: session, variable resolution, procedures, captures.

Components, leaf to root:

- ``ConnectionManager``: session lifecycle and generations
- ``NamespaceResolver``: variable name to handle, first candidate wins
- ``VariableAccessor``: read, write, create-if-absent
- ``ProcedureInvoker``: remote procedure lookup and call
- ``CaptureLog``: append-only timestamped value table (ASDF)
- ``DiagnosticEnumerator``: full namespace walk
- ``Bridge``: command surface returning ``BridgeResult`` values

Example:
    from canoe_bridge.bridge import Bridge
    from canoe_bridge.drivers import DigitalTwinApplicationDriver

    bridge = Bridge(DigitalTwinApplicationDriver())
    print(bridge.read_variable("Temperature").value)
"""

from canoe_bridge.bridge.accessor import VariableAccessor, is_numeric
from canoe_bridge.bridge.capture import CaptureLog, CaptureRecord
from canoe_bridge.bridge.connection import (
    ConnectionManager,
    ConnectionState,
    Session,
    SessionInfo,
)
from canoe_bridge.bridge.core import Bridge, BridgeStatus
from canoe_bridge.bridge.diagnostics import (
    DiagnosticEnumerator,
    EnumerationReport,
    EnumerationStatus,
    VariableListing,
)
from canoe_bridge.bridge.procedures import ProcedureHandle, ProcedureInvoker
from canoe_bridge.bridge.resolver import (
    NamespaceResolver,
    VariableHandle,
    lookup_namespace,
)
from canoe_bridge.bridge.results import (
    BridgeError,
    BridgeException,
    BridgeResult,
    ConnectError,
    CreateError,
    ErrorKind,
    InvocationError,
    NotConnectedError,
    ProcedureNotFoundError,
    ReadError,
    VariableNotFoundError,
    WriteError,
)

__all__ = [
    # Facade
    "Bridge",
    "BridgeStatus",
    # Results and errors
    "BridgeError",
    "BridgeException",
    "BridgeResult",
    "ConnectError",
    "CreateError",
    "ErrorKind",
    "InvocationError",
    "NotConnectedError",
    "ProcedureNotFoundError",
    "ReadError",
    "VariableNotFoundError",
    "WriteError",
    # Components
    "CaptureLog",
    "CaptureRecord",
    "ConnectionManager",
    "ConnectionState",
    "DiagnosticEnumerator",
    "EnumerationReport",
    "EnumerationStatus",
    "NamespaceResolver",
    "ProcedureHandle",
    "ProcedureInvoker",
    "Session",
    "SessionInfo",
    "VariableAccessor",
    "VariableHandle",
    "VariableListing",
    "is_numeric",
    "lookup_namespace",
]
