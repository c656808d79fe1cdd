"""Driver configuration and factory.

Selects between the COM automation driver (real application, Windows)
and the digital twin driver (simulation, any platform), and holds the
bridge settings shared by the MCP server and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from canoe_bridge.drivers.com import DEFAULT_PROG_ID, ComApplicationDriver
from canoe_bridge.drivers.twin import DigitalTwinApplicationDriver
from canoe_bridge.drivers.types import ApplicationDriver
from canoe_bridge.observability import get_logger

if TYPE_CHECKING:
    from canoe_bridge.bridge.capture import CaptureLog
    from canoe_bridge.bridge.core import Bridge

logger = get_logger(__name__)

#: Namespaces tried, in order, when a caller gives no candidate list.
DEFAULT_CANDIDATE_NAMESPACES: tuple[str, ...] = ("General", "Measurement")


class DriverMode(Enum):
    """Driver mode selection."""

    COM = "com"  # Real application via COM automation
    DIGITAL_TWIN = "digital_twin"  # In-process simulation


def _default_data_dir() -> Path:
    """Default directory for capture log files (~/.canoe-bridge/data)."""
    return Path.home() / ".canoe-bridge" / "data"


@dataclass
class BridgeConfig:
    """Configuration for driver selection and bridge behavior.

    Attributes:
        mode: COM for the real application, DIGITAL_TWIN for simulation.
        prog_id: COM registration name of the remote application.
        candidate_namespaces: Default ordered namespace list for lookups.
        auto_connect: Connect on first use when disconnected.
        data_dir: Directory for capture log ASDF files.
    """

    mode: DriverMode = DriverMode.DIGITAL_TWIN
    prog_id: str = DEFAULT_PROG_ID
    candidate_namespaces: tuple[str, ...] = DEFAULT_CANDIDATE_NAMESPACES
    auto_connect: bool = True
    data_dir: Path = field(default_factory=_default_data_dir)


class DriverFactory:
    """Creates the application driver for the configured mode.

    Thread Safety:
        Not thread-safe. Configure once at startup.
    """

    def __init__(self, config: BridgeConfig | None = None) -> None:
        """Store the configuration used by ``create_application_driver``.

        Args:
            config: Bridge configuration. None uses ``BridgeConfig()``,
                which selects the digital twin.
        """
        self.config = config or BridgeConfig()

    def create_application_driver(self) -> ApplicationDriver:
        """Create the driver for the remote application.

        Business context: the same bridge code runs against the real tool
        on a Windows test bench and against the simulation in CI and on
        developer machines. This is the only place that decides which.

        Returns:
            ComApplicationDriver in COM mode (pywin32 is loaded on first
            open), DigitalTwinApplicationDriver otherwise.

        Example:
            >>> factory = DriverFactory(BridgeConfig(mode=DriverMode.COM))
            >>> driver = factory.create_application_driver()
            >>> driver.prog_id
            'CANoe.Application'
        """
        if self.config.mode == DriverMode.COM:
            return ComApplicationDriver(self.config.prog_id)
        return DigitalTwinApplicationDriver()

    def create_bridge(self, capture_log: CaptureLog | None = None) -> Bridge:
        """Create a Bridge wired to a fresh driver and this configuration.

        Args:
            capture_log: Existing log to keep appending to. None starts an
                empty log in ``config.data_dir``.
        """
        from canoe_bridge.bridge.core import Bridge

        return Bridge(
            self.create_application_driver(), self.config, capture_log=capture_log
        )


# =============================================================================
# Global Singletons
# =============================================================================

# Not thread-safe: configure at startup before serving requests.
_factory: DriverFactory | None = None
_bridge: Bridge | None = None


def get_factory() -> DriverFactory:
    """Return the process-wide factory, creating a default one on first use."""
    global _factory
    if _factory is None:
        _factory = DriverFactory()
    return _factory


def get_bridge() -> Bridge:
    """Return the process-wide Bridge used by the MCP tools and CLI.

    Created on first access from the current factory. ``configure()``
    disconnects and replaces it so the next call picks up new settings;
    only its capture log survives.

    Example:
        >>> use_digital_twin()
        >>> result = get_bridge().read_variable("Temperature")
    """
    global _bridge
    if _bridge is None:
        _bridge = get_factory().create_bridge()
    return _bridge


def configure(config: BridgeConfig) -> None:
    """Replace the global configuration.

    Disconnects the existing global bridge, if any, so no remote handle
    outlives the configuration it was created under. Captured rows are
    kept: a non-empty capture log moves to a new bridge built from
    ``config``, and later saves go under the new ``data_dir``.

    Args:
        config: New bridge configuration.
    """
    global _factory, _bridge
    captures: CaptureLog | None = None
    if _bridge is not None:
        _bridge.disconnect()
        if len(_bridge.captures):
            captures = _bridge.captures
        _bridge = None
    _factory = DriverFactory(config)
    if captures is not None:
        captures.data_dir = Path(config.data_dir)
        _bridge = _factory.create_bridge(capture_log=captures)
        logger.info(
            "Capture log carried over",
            count=len(captures),
            log_id=captures.log_id,
        )
    logger.info(
        "Bridge configured",
        mode=config.mode.value,
        prog_id=config.prog_id,
        data_dir=str(config.data_dir),
    )


def use_com(prog_id: str | None = None) -> None:
    """Switch to the COM driver, keeping other settings."""
    current = get_factory().config
    configure(
        replace(current, mode=DriverMode.COM, prog_id=prog_id or current.prog_id)
    )


def use_digital_twin() -> None:
    """Switch to the digital twin driver, keeping other settings."""
    configure(replace(get_factory().config, mode=DriverMode.DIGITAL_TWIN))


def set_data_dir(path: Path) -> None:
    """Change the capture log directory, keeping other settings."""
    configure(replace(get_factory().config, data_dir=Path(path)))


def set_candidate_namespaces(namespaces: list[str] | tuple[str, ...]) -> None:
    """Change the default namespace candidate list, keeping other settings."""
    configure(
        replace(get_factory().config, candidate_namespaces=tuple(namespaces))
    )
