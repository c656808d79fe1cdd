"""CLI entry point for canoe-bridge.

Provides the ``canoe-bridge`` console script with subcommands:

- ``server``: Run the MCP server (default if no subcommand)
- ``install``: Generate ``.vscode/mcp.json`` for a project
- ``status``: Connect and print application identity
- ``read``: Read one variable
- ``write``: Write one variable
- ``ensure``: Create a variable if it does not exist
- ``invoke``: Call a remote procedure
- ``list``: List every namespace and variable

Usage::

    # Read a variable from the real application
    canoe-bridge --mode com read Temperature

    # Search explicit namespaces, in order
    canoe-bridge read Speed -n Engine -n Vehicle

    # Run the MCP server (same as python -m canoe_bridge.server)
    canoe-bridge

One-shot commands print a JSON document to stdout and exit 0 on success,
1 on a reported failure. Logs go to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from collections.abc import Sequence
from functools import lru_cache
from pathlib import Path
from typing import Any

# Constants
SERVER_NAME = "canoe-bridge"
MODULE_NAME = "canoe_bridge.server"
VSCODE_DIR = ".vscode"
CONFIG_FILE = "mcp.json"

_ONE_SHOT_COMMANDS = ("status", "read", "write", "ensure", "invoke", "list")


@lru_cache(maxsize=1)
def _get_logger() -> logging.Logger:
    """CLI progress logger with message-only format, created once."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    return logging.getLogger(__name__)


def _log(message: str) -> None:
    _get_logger().info(message)


def _emit(payload: dict[str, Any]) -> int:
    """Print ``payload`` as JSON; exit code 0 if it reports ok."""
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")
    return 0 if payload.get("ok") else 1


def _parse_procedure_arg(text: str) -> int | float | str:
    """Interpret a command-line procedure argument.

    Example:
        >>> _parse_procedure_arg("3"), _parse_procedure_arg("2.5")
        (3, 2.5)
        >>> _parse_procedure_arg("on")
        'on'
    """
    for convert in (int, float):
        try:
            return convert(text)
        except ValueError:
            continue
    return text


def _strip_jsonc_comments(text: str) -> str:
    """Strip ``//`` comments and trailing commas from JSONC text.

    Example:
        >>> _strip_jsonc_comments('{"a": 1, // note\\n}')
        '{"a": 1 \\n}'
    """
    text = re.sub(r"//.*$", "", text, flags=re.MULTILINE)
    return re.sub(r",(\s*[}\]])", r"\1", text)


def _server_entry(python_path: str) -> dict[str, Any]:
    return {
        "command": python_path,
        "args": ["-m", MODULE_NAME, "--mode", "digital_twin"],
    }


def run_install(cwd: str | None = None) -> None:
    """Add the canoe-bridge server to ``.vscode/mcp.json``.

    Creates the file when missing. An existing file is backed up to
    ``mcp.json.bak`` and merged; an existing canoe-bridge entry is left
    alone. Comments in an existing JSONC file are not preserved.

    Args:
        cwd: Project root. Defaults to the current directory.
    """
    working_dir = Path(cwd) if cwd else Path.cwd()
    vscode_dir = working_dir / VSCODE_DIR
    config_path = vscode_dir / CONFIG_FILE
    python_path = sys.executable

    config: dict[str, Any] = {}
    if config_path.exists():
        existing_text = config_path.read_text()
        backup_path = config_path.with_suffix(".json.bak")
        backup_path.write_text(existing_text)
        _log(f"Backed up to {backup_path.name}")
        try:
            config = json.loads(_strip_jsonc_comments(existing_text))
        except json.JSONDecodeError:
            _log("Could not parse existing config, writing fresh")
            config = {}

    servers: dict[str, Any] = config.setdefault("servers", {})
    if SERVER_NAME in servers:
        _log(f"{SERVER_NAME} already configured in {config_path}")
        return

    servers[SERVER_NAME] = _server_entry(python_path)
    vscode_dir.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(config, indent=2) + "\n")
    _log(f"Added {SERVER_NAME} to {config_path}")
    _log(f"Python: {python_path}")


def _add_candidate_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-n",
        "--candidate",
        dest="candidates",
        action="append",
        default=None,
        help="Namespace to search, repeatable, in order",
    )


def _build_parser() -> argparse.ArgumentParser:
    from canoe_bridge.server import add_bridge_arguments

    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description=(
            "CANoe Bridge - read and write system variables, call CAPL "
            "procedures, and capture values over COM automation"
        ),
    )
    add_bridge_arguments(parser)
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Server subcommand (its options are parsed by server.parse_args)
    subparsers.add_parser(
        "server", help="Run MCP server (default if no subcommand)", add_help=False
    )
    subparsers.add_parser("install", help="Create .vscode/mcp.json configuration")
    subparsers.add_parser("status", help="Connect and show application identity")

    read_parser = subparsers.add_parser("read", help="Read a variable")
    read_parser.add_argument("name", help="Variable name or 'NS::Name'")
    _add_candidate_option(read_parser)

    write_parser = subparsers.add_parser("write", help="Write a variable")
    write_parser.add_argument("name", help="Variable name or 'NS::Name'")
    write_parser.add_argument("value", type=float, help="New numeric value")
    _add_candidate_option(write_parser)

    ensure_parser = subparsers.add_parser(
        "ensure", help="Create a variable unless it exists"
    )
    ensure_parser.add_argument("namespace", help="Namespace path ('A' or 'A::B')")
    ensure_parser.add_argument("name", help="Variable name")
    ensure_parser.add_argument("default", type=float, help="Initial value")

    invoke_parser = subparsers.add_parser("invoke", help="Call a remote procedure")
    invoke_parser.add_argument("name", help="Procedure name")
    invoke_parser.add_argument("args", nargs="*", help="Positional arguments")

    subparsers.add_parser("list", help="List all namespaces and variables")
    return parser


def run_command(args: argparse.Namespace) -> int:
    """Execute one one-shot command against a freshly configured bridge.

    Returns:
        Process exit code.
    """
    from canoe_bridge.drivers.config import configure, get_bridge
    from canoe_bridge.observability import configure_logging
    from canoe_bridge.server import config_from_args

    configure_logging(
        level=getattr(logging, args.log_level),
        json_format=args.json_logs,
        force=True,
    )
    configure(config_from_args(args))
    bridge = get_bridge()

    try:
        if args.command == "status":
            connected = bridge.connect()
            payload: dict[str, Any] = {
                "ok": connected.success,
                **bridge.get_status().to_dict(),
            }
            if connected.error is not None:
                payload["error"] = connected.error.to_dict()
            return _emit(payload)

        if args.command == "read":
            result = bridge.read_variable(args.name, args.candidates)
            return _emit(result.to_dict())

        if args.command == "write":
            written = bridge.write_variable(args.name, args.value, args.candidates)
            return _emit(written.to_dict())

        if args.command == "ensure":
            ensured = bridge.ensure_variable(args.namespace, args.name, args.default)
            if not ensured.success or ensured.value is None:
                return _emit(ensured.to_dict())
            return _emit({"ok": True, "variable": ensured.value.to_dict()})

        if args.command == "invoke":
            call_args = [_parse_procedure_arg(a) for a in args.args]
            return _emit(bridge.invoke_procedure(args.name, *call_args).to_dict())

        return _emit(bridge.list_all_variables().to_dict())
    finally:
        bridge.disconnect()


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point for canoe-bridge.

    Returns:
        Exit code 0 for success, non-zero for errors.

    Raises:
        SystemExit: On --help or argument parsing errors.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = _build_parser()

    # Only parse known args so server flags pass through
    args, _ = parser.parse_known_args(argv)

    if args.command == "install":
        run_install()
        return 0

    if args.command in _ONE_SHOT_COMMANDS:
        return run_command(parser.parse_args(argv))

    # Default or "server": delegate to server.main() without the subcommand
    server_argv = list(argv)
    if args.command == "server":
        server_argv.remove("server")

    from canoe_bridge.server import main as server_main

    server_main(server_argv)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
