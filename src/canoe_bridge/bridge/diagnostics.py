"""Diagnostic enumerator: walk every namespace and variable.

The walk is lazy and restartable. Each call to ``enumerate_all`` starts
from the root namespace collection again and yields one listing per
variable, depth first, parents before their nested namespaces.

Failures are handled at two levels:

    one variable cannot be read      -> listing with ``error`` set, walk goes on
    a namespace cannot be iterated   -> walk stops; ``list_all`` reports FAILED
                                        with the listings gathered so far

Example:
    enumerator = DiagnosticEnumerator(connection)
    report = enumerator.list_all()
    for entry in report.entries:
        print(entry.qualified_name, entry.value if entry.ok else entry.error)
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from canoe_bridge.bridge.connection import ConnectionManager
from canoe_bridge.bridge.results import BridgeError, BridgeException, ErrorKind
from canoe_bridge.drivers.types import RemoteCallError, RemoteNamespace, join_namespace
from canoe_bridge.observability import get_logger

logger = get_logger(__name__)

__all__ = [
    "DiagnosticEnumerator",
    "EnumerationReport",
    "EnumerationStatus",
    "VariableListing",
]


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, list | tuple):
        return [_json_safe(v) for v in value]
    return repr(value)


@dataclass(frozen=True)
class VariableListing:
    """One variable found during enumeration.

    Attributes:
        namespace: Namespace path holding the variable.
        name: Variable name.
        value: Value read during the walk; None when the read failed.
        error: Inline error marker; empty when the read succeeded.
    """

    namespace: str
    name: str
    value: Any = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error

    @property
    def qualified_name(self) -> str:
        return join_namespace(self.namespace, self.name)

    def to_dict(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"namespace": self.namespace, "name": self.name}
        if self.error:
            entry["error"] = self.error
        else:
            entry["value"] = _json_safe(self.value)
        return entry


class EnumerationStatus(str, Enum):
    """Outcome of a full enumeration."""

    COMPLETE = "complete"  # Walk finished with at least one entry
    EMPTY = "empty"  # Walk finished, no variables anywhere
    FAILED = "failed"  # Walk could not finish


@dataclass(frozen=True)
class EnumerationReport:
    """Materialized result of ``list_all``.

    Attributes:
        status: COMPLETE, EMPTY, or FAILED.
        entries: Listings gathered, in walk order. Partial when FAILED.
        error: Why the walk stopped, when FAILED.
    """

    status: EnumerationStatus
    entries: tuple[VariableListing, ...] = ()
    error: BridgeError | None = None

    @property
    def error_count(self) -> int:
        """Number of entries carrying an inline error marker."""
        return sum(1 for e in self.entries if not e.ok)

    def to_dict(self) -> dict[str, Any]:
        report: dict[str, Any] = {
            "ok": self.status is not EnumerationStatus.FAILED,
            "status": self.status.value,
            "count": len(self.entries),
            "unreadable": self.error_count,
            "entries": [e.to_dict() for e in self.entries],
        }
        if self.error is not None:
            report["error"] = self.error.to_dict()
        return report

    @classmethod
    def failed(
        cls, error: BridgeError, entries: tuple[VariableListing, ...] = ()
    ) -> EnumerationReport:
        return cls(EnumerationStatus.FAILED, entries, error)


class DiagnosticEnumerator:
    """Lists the remote application's complete variable tree.

    Args:
        connection: Connection manager providing the live session.
    """

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    def enumerate_all(self) -> Iterator[VariableListing]:
        """Lazily yield every variable with its current value.

        Raises:
            NotConnectedError: On first iteration, when there is no session
                and connecting on demand fails.
            RemoteCallError: A namespace collection cannot be iterated.
        """
        session = self._connection.ensure_connected()
        for namespace in session.namespaces:
            yield from self._walk(namespace, namespace.name)

    def _walk(self, namespace: RemoteNamespace, path: str) -> Iterator[VariableListing]:
        for variable in namespace.iter_variables():
            try:
                value = variable.get_value()
            except Exception as e:  # noqa: BLE001 - one variable never aborts the walk
                text = e.remote_text if isinstance(e, RemoteCallError) else ""
                logger.debug(
                    "Variable unreadable during enumeration",
                    variable=join_namespace(path, variable.name),
                    error=str(e),
                )
                yield VariableListing(path, variable.name, error=text or str(e))
                continue
            yield VariableListing(path, variable.name, value=value)

        for child in namespace.iter_namespaces():
            yield from self._walk(child, join_namespace(path, child.name))

    def list_all(self) -> EnumerationReport:
        """Run the walk to completion and classify the outcome.

        Never raises: a missing session or a structural failure becomes a
        FAILED report keeping the entries gathered before the failure.
        """
        entries: list[VariableListing] = []
        try:
            for entry in self.enumerate_all():
                entries.append(entry)
        except BridgeException as e:
            logger.warning("Enumeration not possible", error=e.message)
            return EnumerationReport.failed(e.to_error(), tuple(entries))
        except Exception as e:  # noqa: BLE001 - structural failure, reported
            text = e.remote_text if isinstance(e, RemoteCallError) else ""
            logger.error(
                "Enumeration failed", error=str(e), entries_before_failure=len(entries)
            )
            error = BridgeError(
                ErrorKind.READ_FAILURE,
                f"Namespace tree could not be enumerated: {e}",
                text,
            )
            return EnumerationReport.failed(error, tuple(entries))

        status = EnumerationStatus.COMPLETE if entries else EnumerationStatus.EMPTY
        report = EnumerationReport(status, tuple(entries))
        logger.info(
            "Enumeration finished",
            status=status.value,
            count=len(entries),
            unreadable=report.error_count,
        )
        return report
