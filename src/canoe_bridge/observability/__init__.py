"""Observability for canoe-bridge.

Structured logging and remote call statistics shared by every layer of
the bridge.

Example:
    from canoe_bridge.observability import LogContext, get_logger

    logger = get_logger(__name__)

    with LogContext(session_generation=1, operation="read_variable"):
        logger.info("Variable read", variable="Temperature", value=30.0)

Statistics Example:
    from canoe_bridge.observability import CallStats

    stats = CallStats()
    with stats.measure("invoke_procedure"):
        ...
    print(stats.get_summary("invoke_procedure").success_rate)
"""

from canoe_bridge.observability.logging import (
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
    reset_logging,
)
from canoe_bridge.observability.stats import (
    CallStats,
    CallSummary,
)

__all__ = [
    # Logging
    "JSONFormatter",
    "LogContext",
    "StructuredFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "reset_logging",
    # Statistics
    "CallStats",
    "CallSummary",
]
