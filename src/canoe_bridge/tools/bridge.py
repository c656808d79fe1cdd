"""MCP Tools for the measurement application bridge.

Exposes the bridge command surface to AI agents: connection control,
variable read/write/create, remote procedure calls, value capture, and
the diagnostic variable listing.

Every tool answers with one JSON TextContent. Failures are never plain
text: they carry ``{"ok": false, "error": {"kind", "message", "detail",
"remediation"}}`` so an agent can branch on the error kind.
"""

import json
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from canoe_bridge.bridge import BridgeResult
from canoe_bridge.drivers.config import get_bridge
from canoe_bridge.observability import get_logger

logger = get_logger(__name__)

_CANDIDATES_SCHEMA = {
    "type": "array",
    "items": {"type": "string"},
    "description": (
        "Namespaces to search, in order. First match wins. "
        "Defaults to the configured list (General, Measurement)."
    ),
}

_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}, "required": []}

# Tool definitions
TOOLS = [
    Tool(
        name="connect",
        description="Connect to the measurement application (no-op if connected)",
        inputSchema=_EMPTY_SCHEMA,
    ),
    Tool(
        name="disconnect",
        description="Release the connection; the application keeps running",
        inputSchema=_EMPTY_SCHEMA,
    ),
    Tool(
        name="get_status",
        description="Get connection state, capture log summary and call statistics",
        inputSchema=_EMPTY_SCHEMA,
    ),
    Tool(
        name="read_variable",
        description="Read the numeric value of a system variable",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "Name such as 'Temperature' or 'Engine::Speed'",
                },
                "candidate_namespaces": _CANDIDATES_SCHEMA,
            },
            "required": ["name"],
        },
    ),
    Tool(
        name="write_variable",
        description="Set a system variable to a numeric value",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Variable name"},
                "value": {"type": "number", "description": "New value"},
                "candidate_namespaces": _CANDIDATES_SCHEMA,
            },
            "required": ["name", "value"],
        },
    ),
    Tool(
        name="ensure_variable",
        description="Create a system variable unless it exists (never overwrites)",
        inputSchema={
            "type": "object",
            "properties": {
                "namespace": {
                    "type": "string",
                    "description": "Namespace path, e.g. 'Test' or 'Test::Inputs'",
                },
                "name": {"type": "string", "description": "Variable name"},
                "default": {
                    "type": "number",
                    "description": "Initial value for a newly created variable",
                },
            },
            "required": ["namespace", "name", "default"],
        },
    ),
    Tool(
        name="invoke_procedure",
        description="Call a CAPL procedure in the application and return its result",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Procedure name"},
                "args": {
                    "type": "array",
                    "items": {"type": ["number", "string"]},
                    "description": "Positional arguments",
                    "default": [],
                },
            },
            "required": ["name"],
        },
    ),
    Tool(
        name="capture_variable",
        description="Read a variable and append its value to the capture log",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Variable name"},
                "candidate_namespaces": _CANDIDATES_SCHEMA,
            },
            "required": ["name"],
        },
    ),
    Tool(
        name="append_capture",
        description="Append a timestamped numeric value to the capture log",
        inputSchema={
            "type": "object",
            "properties": {
                "value": {"type": "number", "description": "Value to record"},
            },
            "required": ["value"],
        },
    ),
    Tool(
        name="list_variables",
        description="List all namespaces and variables with current values",
        inputSchema=_EMPTY_SCHEMA,
    ),
    Tool(
        name="save_captures",
        description="Write the capture log to an ASDF file and return its path",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Target file (default: date folders under data_dir)",
                },
            },
            "required": [],
        },
    ),
]


def register(server: Server) -> None:
    """Register bridge tools with the MCP server.

    Args:
        server: MCP Server instance to register tools with. Must be
            initialized but not yet running.

    Example:
        >>> server = Server("canoe-bridge")
        >>> register(server)
    """

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return the list of available bridge tools."""
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Route tool calls to the bridge operations.

        Business context: this is the path by which an AI agent drives a
        bus simulation: read a signal, compare it against an expectation,
        trigger a scripted reset, record the outcome. Arguments arrive
        validated against each tool's inputSchema.

        Args:
            name: Tool name from TOOLS.
            arguments: Dict of arguments matching the tool's inputSchema.

        Returns:
            List containing a single JSON TextContent.

        Example:
            result = await call_tool("read_variable", {"name": "Temperature"})
            # [TextContent(text='{"ok": true, "value": 30.0, ...}')]
        """
        if name == "connect":
            return await _connect()
        elif name == "disconnect":
            return await _disconnect()
        elif name == "get_status":
            return await _get_status()
        elif name == "read_variable":
            return await _read_variable(
                arguments["name"], arguments.get("candidate_namespaces")
            )
        elif name == "write_variable":
            return await _write_variable(
                arguments["name"],
                arguments["value"],
                arguments.get("candidate_namespaces"),
            )
        elif name == "ensure_variable":
            return await _ensure_variable(
                arguments["namespace"], arguments["name"], arguments["default"]
            )
        elif name == "invoke_procedure":
            return await _invoke_procedure(arguments["name"], arguments.get("args", []))
        elif name == "capture_variable":
            return await _capture_variable(
                arguments["name"], arguments.get("candidate_namespaces")
            )
        elif name == "append_capture":
            return await _append_capture(arguments["value"])
        elif name == "list_variables":
            return await _list_variables()
        elif name == "save_captures":
            return await _save_captures(arguments.get("path"))
        else:
            return _reply({"ok": False, "error": {"message": f"Unknown tool: {name}"}})


def _reply(payload: dict[str, Any]) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]


def _result_reply(
    result: BridgeResult[Any], /, **fields: Any
) -> list[TextContent]:
    """Render a BridgeResult, adding ``fields`` on success."""
    if not result.success:
        return _reply(result.to_dict())
    return _reply({"ok": True, **fields})


async def _connect() -> list[TextContent]:
    """Connect and report the session identity.

    Returns:
        ``{"ok": true, "session": {...}}`` or a CONNECT_ERROR failure.
    """
    result = get_bridge().connect()
    session = result.value.to_dict() if result.success and result.value else None
    return _result_reply(result, session=session)


async def _disconnect() -> list[TextContent]:
    bridge = get_bridge()
    was_connected = bridge.is_connected()
    bridge.disconnect()
    return _reply({"ok": True, "was_connected": was_connected})


async def _get_status() -> list[TextContent]:
    return _reply({"ok": True, **get_bridge().get_status().to_dict()})


async def _read_variable(
    name: str, candidate_namespaces: list[str] | None
) -> list[TextContent]:
    """Read one variable.

    Returns:
        ``{"ok": true, "name": str, "value": float}`` or a failure with
        kind not_connected, variable_not_found or read_failure.
    """
    result = get_bridge().read_variable(name, candidate_namespaces)
    return _result_reply(result, name=name, value=result.value)


async def _write_variable(
    name: str, value: float, candidate_namespaces: list[str] | None
) -> list[TextContent]:
    result = get_bridge().write_variable(name, value, candidate_namespaces)
    return _result_reply(result, name=name, value=value)


async def _ensure_variable(
    namespace: str, name: str, default: float
) -> list[TextContent]:
    """Create-if-absent; reports the current value of the variable."""
    bridge = get_bridge()
    result = bridge.ensure_variable(namespace, name, default)
    if not result.success or result.value is None:
        return _reply(result.to_dict())

    handle = result.value
    current = bridge.read_variable(handle.qualified_name)
    return _reply(
        {
            "ok": True,
            "variable": handle.to_dict(),
            "value": current.value if current.success else None,
        }
    )


async def _invoke_procedure(name: str, args: list[Any]) -> list[TextContent]:
    """Invoke a remote procedure.

    Returns:
        ``{"ok": true, "procedure": str, "result": Any}`` or a failure
        with kind not_connected, procedure_not_found or invocation_failure.
    """
    result = get_bridge().invoke_procedure(name, *args)
    return _result_reply(result, procedure=name, result=result.value)


async def _capture_variable(
    name: str, candidate_namespaces: list[str] | None
) -> list[TextContent]:
    bridge = get_bridge()
    result = bridge.capture_variable(name, candidate_namespaces)
    record = result.value.to_dict() if result.success and result.value else None
    return _result_reply(result, name=name, record=record, count=len(bridge.captures))


async def _append_capture(value: Any) -> list[TextContent]:
    bridge = get_bridge()
    try:
        record = bridge.append_capture(value)
    except ValueError as e:
        logger.warning("Capture rejected", error=str(e))
        return _reply(
            {"ok": False, "error": {"kind": "invalid_value", "message": str(e)}}
        )
    return _reply(
        {"ok": True, "record": record.to_dict(), "count": len(bridge.captures)}
    )


async def _list_variables() -> list[TextContent]:
    """Full namespace walk.

    Returns:
        ``{"ok": bool, "status": "complete"|"empty"|"failed", "count",
        "unreadable", "entries": [...], "error"?: {...}}``.
    """
    return _reply(get_bridge().list_all_variables().to_dict())


async def _save_captures(path: str | None) -> list[TextContent]:
    bridge = get_bridge()
    result = bridge.save_captures(Path(path) if path else None)
    return _result_reply(
        result,
        path=str(result.value) if result.value else None,
        count=len(bridge.captures),
    )
