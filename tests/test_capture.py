"""Unit tests for canoe_bridge.bridge.capture.

Covers the append-only log, non-decreasing timestamps under a clock that
steps backwards, and the ASDF file written by ``save()``.
"""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import asdf
import numpy as np
import pytest

from canoe_bridge.bridge.capture import CaptureLog, CaptureRecord

START = datetime(2025, 3, 4, 10, 15, 0, tzinfo=UTC)


class FakeClock:
    """Clock returning scripted times; the last one repeats."""

    def __init__(self, *times: datetime) -> None:
        self._times = list(times)
        self.calls = 0

    def __call__(self) -> datetime:
        index = min(self.calls, len(self._times) - 1)
        self.calls += 1
        return self._times[index]


@pytest.fixture
def clock() -> FakeClock:
    """Creation at START, then one second per append."""
    return FakeClock(*(START + timedelta(seconds=i) for i in range(10)))


@pytest.fixture
def log(tmp_path: Path, clock: FakeClock) -> CaptureLog:
    return CaptureLog(tmp_path, clock=clock)


class TestAppend:
    """Tests for CaptureLog.append()."""

    def test_append_records_value_and_time(self, log: CaptureLog) -> None:
        record = log.append(30.0)

        assert record == CaptureRecord(START + timedelta(seconds=1), 30.0)
        assert len(log) == 1
        assert log.records == (record,)

    def test_append_order_preserved(self, log: CaptureLog) -> None:
        for value in (3.0, 1.0, 2.0):
            log.append(value)

        assert log.values().tolist() == [3.0, 1.0, 2.0]
        assert [r.value for r in log] == [3.0, 1.0, 2.0]

    def test_earlier_rows_never_change(self, log: CaptureLog) -> None:
        first = log.append(1.0)
        log.append(2.0)
        log.append(3.0)

        assert log.records[0] is first

    def test_integer_stored_as_float(self, log: CaptureLog) -> None:
        record = log.append(7)
        assert isinstance(record.value, float)

    def test_clock_stepping_back_is_clamped(self, tmp_path: Path) -> None:
        """Verifies timestamps stay non-decreasing.

        Arrangement:
        1. Clock: creation, t+10s, t+5s (stepped back), t+20s.

        Assertion Strategy:
        - Second row reuses the first row's timestamp.
        - Timestamps are non-decreasing across all rows.
        """
        clock = FakeClock(
            START,
            START + timedelta(seconds=10),
            START + timedelta(seconds=5),
            START + timedelta(seconds=20),
        )
        log = CaptureLog(tmp_path, clock=clock)

        rows = [log.append(v) for v in (1.0, 2.0, 3.0)]

        assert rows[1].timestamp == rows[0].timestamp
        stamps = [r.timestamp for r in rows]
        assert stamps == sorted(stamps)

    @pytest.mark.parametrize("value", ["30", None, True, [1.0]])
    def test_non_numeric_rejected(self, log: CaptureLog, value) -> None:
        with pytest.raises(ValueError, match="numeric"):
            log.append(value)
        assert len(log) == 0

    def test_records_is_snapshot(self, log: CaptureLog) -> None:
        snapshot = log.records
        log.append(1.0)

        assert snapshot == ()
        assert isinstance(log.records, tuple)


class TestSave:
    """Tests for CaptureLog.save() and load()."""

    def test_default_path_is_date_organized(
        self, log: CaptureLog, tmp_path: Path
    ) -> None:
        log.append(1.0)

        path = log.save()

        assert path == tmp_path / "2025" / "03" / "04" / "captures_20250304_101500.asdf"
        assert path.exists()

    def test_file_layout(self, log: CaptureLog) -> None:
        """Verifies the ASDF tree holds meta and the two columns."""
        log.append(30.0)
        log.append(31.5)

        path = log.save()

        with asdf.open(path) as af:
            assert af.tree["meta"]["log_id"] == log.log_id
            assert af.tree["meta"]["count"] == 2
            assert list(af.tree["captures"]["timestamp"]) == [
                (START + timedelta(seconds=1)).isoformat(),
                (START + timedelta(seconds=2)).isoformat(),
            ]
            values = np.asarray(af.tree["captures"]["value"])
            assert values.dtype == np.float64
            assert values.tolist() == [30.0, 31.5]

    def test_save_does_not_clear(self, log: CaptureLog, tmp_path: Path) -> None:
        log.append(1.0)
        path = log.save(tmp_path / "run.asdf")
        log.append(2.0)
        log.save(path)

        assert len(log) == 2
        assert CaptureLog.load(path).values().tolist() == [1.0, 2.0]

    def test_load_restores_records(self, log: CaptureLog, tmp_path: Path) -> None:
        for value in (1.5, -2.0, 0.0):
            log.append(value)
        path = log.save(tmp_path / "nested" / "run.asdf")

        loaded = CaptureLog.load(path)

        assert loaded.records == log.records
        assert loaded.log_id == log.log_id
        assert loaded.created == log.created
        assert loaded.data_dir == path.parent

    def test_empty_log(self, log: CaptureLog, tmp_path: Path) -> None:
        path = log.save(tmp_path / "empty.asdf")

        assert len(CaptureLog.load(path)) == 0

    def test_load_rejects_foreign_file(self, tmp_path: Path) -> None:
        path = tmp_path / "other.asdf"
        asdf.AsdfFile({"meta": {"kind": "other"}}).write_to(path)

        with pytest.raises(ValueError, match="no capture table"):
            CaptureLog.load(path)


class TestSummary:
    """Tests for CaptureLog.summary()."""

    def test_empty(self, log: CaptureLog) -> None:
        assert log.summary() == {"log_id": log.log_id, "count": 0}

    def test_values(self, log: CaptureLog) -> None:
        for value in (1.0, 3.0, 2.0):
            log.append(value)

        summary = log.summary()

        assert summary["count"] == 3
        assert summary["min"] == 1.0
        assert summary["max"] == 3.0
        assert summary["mean"] == pytest.approx(2.0)
