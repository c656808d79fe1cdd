"""MCP Server entry point for the measurement application bridge."""

import argparse
import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from mcp.server import Server
from mcp.server.stdio import stdio_server

from canoe_bridge.drivers.com import DEFAULT_PROG_ID
from canoe_bridge.drivers.config import (
    DEFAULT_CANDIDATE_NAMESPACES,
    BridgeConfig,
    DriverMode,
    configure,
    get_bridge,
)
from canoe_bridge.observability import configure_logging, get_logger
from canoe_bridge.tools import bridge as bridge_tools

logger = get_logger(__name__)

SERVER_NAME = "canoe-bridge"


def create_server() -> Server:
    """Create the MCP server and register the bridge tools.

    The bridge itself is taken from ``drivers.config.get_bridge()`` on
    each tool call, so ``configure()`` must run before the first call.

    Returns:
        Configured MCP Server instance.

    Example:
        >>> configure(BridgeConfig(mode=DriverMode.DIGITAL_TWIN))
        >>> server = create_server()
    """
    server = Server(SERVER_NAME)
    bridge_tools.register(server)
    return server


async def run_server(connect_on_start: bool = False) -> None:
    """Run the MCP server over stdio until the client closes it.

    Args:
        connect_on_start: Connect to the application before serving.
            A failed connect is logged; tools can retry with ``connect``.

    Business context: the application may be launched after the MCP
    client starts the server, so a failed initial connect must not stop
    the server.
    """
    server = create_server()

    if connect_on_start:
        result = get_bridge().connect()
        if not result.success and result.error is not None:
            logger.warning("Initial connect failed", error=result.error.user_message)

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        shutdown_bridge()


def shutdown_bridge() -> None:
    """Release the global bridge and write any captured rows to disk.

    The capture log lives in memory until ``save_captures``; a non-empty
    log is saved to its default path here so a client that never asked
    for a save does not lose it. A failed save is logged, not raised.
    """
    bridge = get_bridge()
    # Release remote handles; the application keeps running
    bridge.disconnect()
    logger.info("Bridge disconnected on shutdown")

    if not len(bridge.captures):
        return
    result = bridge.save_captures()
    if result.success:
        logger.info(
            "Capture log saved on shutdown",
            path=str(result.value),
            rows=len(bridge.captures),
        )
    elif result.error is not None:
        logger.error(
            "Capture log not saved on shutdown",
            rows=len(bridge.captures),
            error=result.error.user_message,
        )


def add_bridge_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the bridge configuration options shared with the CLI."""
    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in DriverMode],
        default=DriverMode.DIGITAL_TWIN.value,
        help=(
            "Driver mode: 'com' for the real application via COM automation, "
            "'digital_twin' for simulation (default)"
        ),
    )
    parser.add_argument(
        "--prog-id",
        type=str,
        default=DEFAULT_PROG_ID,
        help=f"COM ProgID of the application (default: {DEFAULT_PROG_ID})",
    )
    parser.add_argument(
        "--namespace",
        dest="namespaces",
        action="append",
        default=None,
        help=(
            "Candidate namespace for variable lookup, repeatable, tried in "
            f"order (default: {', '.join(DEFAULT_CANDIDATE_NAMESPACES)})"
        ),
    )
    parser.add_argument(
        "--no-auto-connect",
        dest="auto_connect",
        action="store_false",
        help="Fail with not_connected instead of connecting on first use",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory for capture log ASDF files (default: ~/.canoe-bridge/data)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )


def config_from_args(args: argparse.Namespace) -> BridgeConfig:
    """Build a BridgeConfig from parsed bridge options."""
    config = BridgeConfig(
        mode=DriverMode(args.mode),
        prog_id=args.prog_id,
        auto_connect=args.auto_connect,
    )
    if args.namespaces:
        config.candidate_namespaces = tuple(args.namespaces)
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    return config


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for the MCP server.

    Returns:
        argparse.Namespace with the bridge options plus
        ``connect_on_start``.

    Raises:
        SystemExit: On invalid arguments or --help.

    Example:
        >>> args = parse_args(["--mode", "com", "--connect-on-start"])
        >>> args.mode
        'com'
    """
    parser = argparse.ArgumentParser(
        description="CANoe Bridge MCP Server - drive a bus simulation over COM"
    )
    add_bridge_arguments(parser)
    parser.add_argument(
        "--connect-on-start",
        action="store_true",
        help="Connect to the application before serving requests",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the canoe-bridge MCP server.

    Logs go to stderr; stdout carries the MCP protocol.

    Example:
        >>> # MCP client config:
        >>> # "command": "python", "args": ["-m", "canoe_bridge.server"]
    """
    args = parse_args(argv)

    configure_logging(
        level=getattr(logging, args.log_level),
        json_format=args.json_logs,
        force=True,
    )
    configure(config_from_args(args))

    logger.info("Starting MCP server", mode=args.mode)
    asyncio.run(run_server(connect_on_start=args.connect_on_start))


if __name__ == "__main__":  # pragma: no cover
    main()
