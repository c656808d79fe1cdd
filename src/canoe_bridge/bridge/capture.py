"""Capture/log sink: append-only table of timestamped values.

Each captured value becomes one ``CaptureRecord`` at the end of the log.
Rows are never rewritten or reordered, and timestamps never go
backwards. The table can be persisted to an ASDF file with the same
date-organized layout used for every data file this package writes.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import asdf
import numpy as np
from numpy.typing import NDArray

from canoe_bridge.bridge.accessor import is_numeric
from canoe_bridge.observability import get_logger

logger = get_logger(__name__)

__all__ = ["CaptureLog", "CaptureRecord"]

#: Format version written into the ASDF ``meta`` block.
CAPTURE_FORMAT_VERSION = 1


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CaptureRecord:
    """One row of the capture log.

    Attributes:
        timestamp: UTC time the value was appended.
        value: Captured value.
    """

    timestamp: datetime
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "value": self.value}


class CaptureLog:
    """Ordered, append-only log of captured values.

    Business context: operators read a bus signal, note its value, trigger
    a reset, and read again. The log is the written record of that
    sequence, so its order is the order of the captures and a row, once
    written, is never touched again.

    Args:
        data_dir: Base directory for ``save()`` without an explicit path.
        log_id: File stem for saved logs. Defaults to
            ``captures_YYYYMMDD_HHMMSS`` from the creation time.
        clock: Source of append timestamps. Tests pass a fake clock.

    Example:
        log = CaptureLog(Path("~/.canoe-bridge/data").expanduser())
        log.append(30.0)
        path = log.save()
    """

    def __init__(
        self,
        data_dir: Path,
        log_id: str | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.data_dir = Path(data_dir)
        self._clock = clock
        self.created = clock()
        self.log_id = log_id or f"captures_{self.created.strftime('%Y%m%d_%H%M%S')}"
        self._records: list[CaptureRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CaptureRecord]:
        return iter(tuple(self._records))

    @property
    def records(self) -> tuple[CaptureRecord, ...]:
        """Snapshot of the log in append order."""
        return tuple(self._records)

    def values(self) -> NDArray[np.float64]:
        """Captured values in append order as a float64 array."""
        return np.array([r.value for r in self._records], dtype=np.float64)

    def append(self, value: float) -> CaptureRecord:
        """Append ``value`` with the current timestamp.

        If the clock reports a time earlier than the last row (clock
        adjustment), the last row's timestamp is reused so the column
        stays non-decreasing.

        Raises:
            ValueError: ``value`` is not a real number. Nothing is appended.
        """
        if not is_numeric(value):
            raise ValueError(
                f"Capture value must be numeric, got {type(value).__name__}"
            )

        timestamp = self._clock()
        if self._records and timestamp < self._records[-1].timestamp:
            logger.warning(
                "Clock went backwards, keeping previous timestamp",
                clock=timestamp.isoformat(),
                previous=self._records[-1].timestamp.isoformat(),
            )
            timestamp = self._records[-1].timestamp

        record = CaptureRecord(timestamp=timestamp, value=float(value))
        self._records.append(record)
        logger.debug("Value captured", value=record.value, row=len(self._records))
        return record

    def _build_asdf_tree(self) -> dict[str, Any]:
        saved = datetime.now(UTC)
        return {
            "meta": {
                "log_id": self.log_id,
                "format_version": CAPTURE_FORMAT_VERSION,
                "created": self.created.isoformat(),
                "saved": saved.isoformat(),
                "count": len(self._records),
            },
            "captures": {
                "timestamp": [r.timestamp.isoformat() for r in self._records],
                "value": self.values(),
            },
        }

    def _get_output_path(self) -> Path:
        """``data_dir/YYYY/MM/DD/<log_id>.asdf``, creating directories."""
        date_path = self.created.strftime("%Y/%m/%d")
        output_dir = self.data_dir / date_path
        output_dir.mkdir(parents=True, exist_ok=True)
        return output_dir / f"{self.log_id}.asdf"

    def save(self, path: Path | None = None) -> Path:
        """Write the complete table to an ASDF file.

        The in-memory log is left as it is; saving again rewrites the
        file with every row captured so far.

        Args:
            path: Target file. None uses the date-organized default.

        Returns:
            Path of the written file.

        Raises:
            OSError: The file or its directory cannot be written.
        """
        if path is None:
            output_path = self._get_output_path()
        else:
            output_path = Path(path)
            output_path.parent.mkdir(parents=True, exist_ok=True)

        af = asdf.AsdfFile(self._build_asdf_tree())
        af.write_to(output_path)

        logger.info("Capture log written", path=str(output_path), rows=len(self))
        return output_path

    @classmethod
    def load(cls, path: Path, data_dir: Path | None = None) -> CaptureLog:
        """Read a capture log written by ``save()``.

        Args:
            path: ASDF file to read.
            data_dir: Directory for later saves. Defaults to the file's
                directory.

        Raises:
            OSError: The file cannot be read.
            ValueError: The file holds no capture table or the columns
                disagree in length.
        """
        path = Path(path)
        with asdf.open(path) as af:
            meta = dict(af.tree.get("meta", {}))
            captures = af.tree.get("captures")
            if captures is None:
                raise ValueError(f"{path} contains no capture table")
            timestamps = [str(t) for t in captures["timestamp"]]
            values = np.array(captures["value"], dtype=np.float64)

        if len(timestamps) != len(values):
            raise ValueError(
                f"{path}: {len(timestamps)} timestamps for {len(values)} values"
            )

        created = meta.get("created")
        log = cls(
            data_dir if data_dir is not None else path.parent,
            log_id=meta.get("log_id", path.stem),
        )
        if created:
            log.created = datetime.fromisoformat(created)
        log._records = [
            CaptureRecord(datetime.fromisoformat(t), float(v))
            for t, v in zip(timestamps, values, strict=True)
        ]
        return log

    def summary(self) -> dict[str, Any]:
        """Row count and value range for status reports."""
        if not self._records:
            return {"log_id": self.log_id, "count": 0}
        values = self.values()
        finite = values[np.isfinite(values)]
        summary: dict[str, Any] = {
            "log_id": self.log_id,
            "count": len(self._records),
            "first": self._records[0].timestamp.isoformat(),
            "last": self._records[-1].timestamp.isoformat(),
        }
        if finite.size:
            summary["min"] = float(finite.min())
            summary["max"] = float(finite.max())
            summary["mean"] = float(finite.mean())
        return summary
