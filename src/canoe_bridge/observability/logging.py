"""Structured logging for canoe-bridge.

Thin layer over the standard logging module that lets every bridge
component attach key-value data to its log lines:

- ``StructuredLogger`` accepts keyword arguments as structured data
- ``LogContext`` scopes ambient fields (session generation, operation)
- ``StructuredFormatter`` renders ``message | key=value`` for consoles
- ``JSONFormatter`` renders one JSON object per line for collectors

Remote names (variables, namespaces, procedures) come from the remote
application and from operators. Always pass them as keyword data rather
than interpolating them into the message:

    # Good - value is formatted by the formatter
    logger.info("Variable resolved", namespace=ns, variable=name)

    # Bad - a crafted name can forge extra log lines
    logger.info(f"Variable {ns}::{name} resolved")

Example:
    logger = get_logger(__name__)

    with LogContext(session_generation=3):
        logger.info("Reading variable", variable="Temperature")
        # ... | session_generation=3 variable=Temperature

    configure_logging(json_format=True, force=True)
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any, cast

ROOT_LOGGER_NAME = "canoe_bridge"

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "canoe_bridge_log_context", default={}
)


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept structured keyword data.

    Keyword arguments that are not part of the standard logging call
    signature are collected, merged over the active ``LogContext`` and
    attached to the record as ``structured_data``.

    Usage:
        logger = StructuredLogger("canoe_bridge.bridge.resolver")
        logger.debug("Namespace skipped", namespace="General")
    """

    def debug(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at DEBUG with optional structured data."""
        if self.isEnabledFor(logging.DEBUG):
            self._emit_structured(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at INFO with optional structured data."""
        if self.isEnabledFor(logging.INFO):
            self._emit_structured(logging.INFO, msg, args, kwargs)

    def warning(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at WARNING with optional structured data."""
        if self.isEnabledFor(logging.WARNING):
            self._emit_structured(logging.WARNING, msg, args, kwargs)

    def error(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at ERROR with optional structured data."""
        if self.isEnabledFor(logging.ERROR):
            self._emit_structured(logging.ERROR, msg, args, kwargs)

    def critical(self, msg: object, *args: Any, **kwargs: Any) -> None:
        """Log at CRITICAL with optional structured data."""
        if self.isEnabledFor(logging.CRITICAL):
            self._emit_structured(logging.CRITICAL, msg, args, kwargs)

    def exception(
        self, msg: object, *args: Any, exc_info: Any = True, **kwargs: Any
    ) -> None:
        """Log at ERROR with the active exception and structured data."""
        kwargs["exc_info"] = exc_info
        self.error(msg, *args, **kwargs)

    def _emit_structured(
        self,
        level: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any],
        kwargs: dict[str, Any],
    ) -> None:
        """Split standard logging kwargs from structured data and log.

        The standard keywords (``exc_info``, ``stack_info``,
        ``stacklevel``, ``extra``) keep their usual meaning. Everything
        else becomes structured data, with explicit keywords overriding
        values of the same name from the active ``LogContext``.

        Args:
            level: Numeric log level.
            msg: Log message, may contain %-style placeholders.
            args: Arguments for %-style formatting.
            kwargs: Raw keyword arguments from the level method.
        """
        exc_info = kwargs.pop("exc_info", None)
        stack_info = kwargs.pop("stack_info", False)
        stacklevel = kwargs.pop("stacklevel", 1)
        extra = dict(kwargs.pop("extra", None) or {})

        extra["structured_data"] = {**_log_context.get(), **kwargs}

        # +2 skips this helper and the public level method
        self._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 2,
        )


# =============================================================================
# Formatters
# =============================================================================


def _format_value(value: Any) -> str:
    """Render one structured value for key=value output.

    ``None`` becomes ``null``, strings containing whitespace are quoted,
    containers are JSON encoded, and anything else goes through ``str()``.

    Example:
        >>> _format_value("Engine::Speed")
        'Engine::Speed'
        >>> _format_value("not found")
        '"not found"'
        >>> _format_value(["General", "Measurement"])
        '["General", "Measurement"]'
    """
    if value is None:
        return "null"
    if isinstance(value, str):
        if any(ch.isspace() for ch in value):
            return json.dumps(value)
        return value
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, default=str)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Human-readable formatter: ``time - name - level - msg | k=v k=v``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_structured: bool = True,
    ) -> None:
        """Create the formatter.

        Args:
            fmt: Base format string. Defaults to
                ``%(asctime)s - %(name)s - %(levelname)s - %(message)s``.
            datefmt: Date format for ``%(asctime)s``.
            include_structured: Append structured data after the message.
        """
        super().__init__(
            fmt or "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt
        )
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        """Format the record and append its structured data, if any."""
        base = super().format(record)
        structured = getattr(record, "structured_data", None)
        if not self.include_structured or not structured:
            return base
        pairs = " ".join(f"{k}={_format_value(v)}" for k, v in structured.items())
        return f"{base} | {pairs}"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, structured data merged at top level.

    Keys: ``timestamp`` (ISO 8601 UTC), ``level``, ``logger``,
    ``message``, ``exception`` (only when exc_info is set), followed by
    all structured fields. Values that JSON cannot encode go through
    ``str()``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Serialize the record to a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "structured_data", {}) or {})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


# =============================================================================
# Context Management
# =============================================================================


class LogContext:
    """Scope structured fields onto every log line emitted inside a block.

    Contexts nest: inner values are merged over outer ones and the outer
    context is restored on exit, even when the block raises. Backed by
    ``contextvars`` so concurrent tasks keep separate contexts.

    Usage:
        with LogContext(session_generation=2):
            with LogContext(operation="read_variable"):
                logger.info("Resolving")  # both fields attached
    """

    def __init__(self, **fields: Any) -> None:
        self._fields = fields
        self._token: contextvars.Token[dict[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        self._token = _log_context.set({**_log_context.get(), **self._fields})
        return self

    def __exit__(self, *exc: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    def __repr__(self) -> str:
        return f"LogContext({self._fields!r})"


# =============================================================================
# Configuration
# =============================================================================

_configured = False
_config_lock = threading.Lock()


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
    force: bool = False,
) -> None:
    """Install the canoe-bridge handler and formatter.

    Configures the ``canoe_bridge`` logger once per process. Later calls
    are ignored unless ``force`` is set, which removes the existing
    handler first. The configured logger does not propagate to the root
    logger, so host applications that configure logging themselves do
    not see duplicate lines.

    Business context: the bridge runs inside hosts with very different
    logging needs. The MCP server writes to stderr because stdout carries
    the protocol; the CLI prefers readable lines; automated test rigs
    collect JSON. One switch covers all three.

    Args:
        level: Minimum level, as int or name (``"DEBUG"``).
        json_format: Use ``JSONFormatter`` instead of ``StructuredFormatter``.
        stream: Destination stream. Defaults to ``sys.stderr``.
        include_structured: For the text formatter, append key=value data.
        force: Reconfigure even if already configured.

    Example:
        >>> configure_logging(level="DEBUG")
        >>> buffer = io.StringIO()
        >>> configure_logging(stream=buffer, json_format=True, force=True)
    """
    with _config_lock:
        if force:
            _reset_logging_impl()
        _configure_logging_impl(level, json_format, stream, include_structured)


def _configure_logging_impl(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
) -> None:
    """Configure logging; caller holds ``_config_lock``."""
    global _configured
    if _configured:
        return

    logging.setLoggerClass(StructuredLogger)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StructuredFormatter(include_structured=include_structured)
    handler.setFormatter(formatter)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.addHandler(handler)
    root.propagate = False

    _configured = True


def _reset_logging_impl() -> None:
    """Drop handlers from the package logger; caller holds the lock."""
    global _configured
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    _configured = False


def reset_logging() -> None:
    """Return logging to the unconfigured state. Intended for tests."""
    with _config_lock:
        _reset_logging_impl()


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger, configuring defaults on first use.

    Loggers created before ``configure_logging()`` ran would be plain
    ``logging.Logger`` instances that reject keyword data, so the first
    call installs the default configuration (INFO, text, stderr).

    Args:
        name: Logger name, normally ``__name__``.

    Returns:
        StructuredLogger for ``name``.
    """
    if not _configured:
        with _config_lock:
            if not _configured:  # pragma: no branch
                _configure_logging_impl()

    return cast(StructuredLogger, logging.getLogger(name))
