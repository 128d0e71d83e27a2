"""
Tests for sheet_writer module.
"""
from unittest.mock import Mock

import pytest

from ambient_tracker.models import WeatherSnapshot
from ambient_tracker.sheet_writer import SheetWriter
from ambient_tracker.sheets_backend import ReadResult, SheetsAuthError

from sheets_fakes import FakeSheetsBackend, trim_values


class TestSheetWriter:
    """Tests for SheetWriter class."""

    @pytest.fixture
    def snapshot(self):
        return WeatherSnapshot(values={"tempf": 72.5, "humidity": 45})

    def make_writer(self, backend, sensors, clock, **kwargs):
        return SheetWriter(
            lambda: backend,
            sensors=sensors,
            clock=clock,
            retry_delay=0,
            **kwargs
        )

    def test_appends_after_existing_rows(self, sensors, fixed_clock, snapshot):
        """Three existing rows: the snapshot goes to row 4, column A empty."""
        backend = FakeSheetsBackend({"2026": [["h"], ["r1"], ["r2"]]})
        writer = self.make_writer(backend, sensors, fixed_clock)

        assert writer.write(snapshot) is True

        assert backend.updates == [("2026!A4", [[None, 72.5, 45]])]

    def test_creates_missing_year_sheet(self, sensors, fixed_clock, snapshot):
        """A missing year sheet is created with a frozen header row."""
        backend = FakeSheetsBackend()
        writer = self.make_writer(backend, sensors, fixed_clock)

        assert writer.write(snapshot) is True

        assert backend.updates == [
            ("2026!A1", [[None, "Temperature", "Humidity"]]),
            ("2026!A2", [[None, 72.5, 45]]),
        ]
        assert list(backend.frozen.values()) == [1]
        assert backend.read_calls == 2

    def test_empty_column_a_never_overwrites(self, sensors, fixed_clock, snapshot):
        """With nothing mapped to column A, header and rows still stack up."""
        backend = FakeSheetsBackend()
        writer = self.make_writer(backend, sensors, fixed_clock)

        writer.write(snapshot)
        writer.write(snapshot)

        assert [target for target, _ in backend.updates] == ["2026!A1", "2026!A2", "2026!A3"]
        assert backend.sheets["2026"][0] == [None, "Temperature", "Humidity"]

    def test_row_count_spans_mapped_columns(self, sensors, fixed_clock, snapshot):
        """A row whose only value is in column C still counts."""
        backend = FakeSheetsBackend({"2026": [
            [None, "Temperature", "Humidity"],
            [None, None, 40],
        ]})
        calls = []
        read_range = backend.read_range
        backend.read_range = lambda name: calls.append(name) or read_range(name)
        writer = self.make_writer(backend, sensors, fixed_clock)

        assert writer.write(snapshot) is True

        assert calls == ["2026!A:C"]
        assert backend.updates == [("2026!A3", [[None, 72.5, 45]])]

    def test_same_snapshot_twice_appends_two_rows(self, sensors, fixed_clock, snapshot):
        backend = FakeSheetsBackend({"2026": [["h"]]})
        writer = self.make_writer(backend, sensors, fixed_clock)

        writer.write(snapshot)
        writer.write(snapshot)

        assert [target for target, _ in backend.updates] == ["2026!A2", "2026!A3"]

    def test_unknown_keys_ignored(self, sensors, fixed_clock):
        backend = FakeSheetsBackend({"2026": [["h"]]})
        writer = self.make_writer(backend, sensors, fixed_clock)

        writer.write(WeatherSnapshot(values={"tempf": 50.0, "macAddress": "AA"}))

        assert backend.updates == [("2026!A2", [[None, 50.0, None]])]

    def test_read_error_is_retried(self, sensors, fixed_clock, snapshot):
        backend = FakeSheetsBackend({"2026": [["h"]]})
        backend.read_failures = [
            ReadResult.error(500, "internal"),
            ReadResult.error(503, "unavailable"),
        ]
        writer = self.make_writer(backend, sensors, fixed_clock)

        assert writer.write(snapshot) is True
        assert backend.read_calls == 3
        assert backend.updates[0][0] == "2026!A2"

    def test_read_error_exhausted(self, sensors, fixed_clock, snapshot):
        backend = FakeSheetsBackend({"2026": [["h"]]})
        backend.read_failures = [ReadResult.error(500, "internal")] * 4
        writer = self.make_writer(backend, sensors, fixed_clock)

        assert writer.write(snapshot) is False
        assert backend.read_calls == 4
        assert backend.updates == []

    def test_sheet_still_missing_after_creation(self, sensors, fixed_clock, snapshot):
        backend = FakeSheetsBackend()
        backend.ignore_add_sheet = True
        writer = self.make_writer(backend, sensors, fixed_clock)

        assert writer.write(snapshot) is False
        assert backend.read_calls == 2

    def test_update_failure_is_retried(self, sensors, fixed_clock, snapshot):
        backend = FakeSheetsBackend({"2026": [["h"]]})
        backend.update_failures = 3
        writer = self.make_writer(backend, sensors, fixed_clock)

        assert writer.write(snapshot) is True
        assert backend.updates == [("2026!A2", [[None, 72.5, 45]])]

    def test_update_failure_exhausted(self, sensors, fixed_clock, snapshot):
        backend = FakeSheetsBackend({"2026": [["h"]]})
        backend.update_failures = 4
        writer = self.make_writer(backend, sensors, fixed_clock)

        assert writer.write(snapshot) is False

    def test_authentication_failure(self, sensors, fixed_clock, snapshot):
        authenticate = Mock(side_effect=SheetsAuthError("no token"))
        writer = SheetWriter(authenticate, sensors=sensors, clock=fixed_clock, retry_delay=0)

        assert writer.write(snapshot) is False
        assert authenticate.call_count == 4

    def test_sensor_file_loaded_lazily(self, tmp_path, fixed_clock, snapshot):
        mapping = tmp_path / "headers.txt"
        mapping.write_text("tempf,B,Temperature\nhumidity,C,Humidity\n")
        backend = FakeSheetsBackend({"2026": [["h"]]})
        writer = SheetWriter(
            lambda: backend, sensor_file=str(mapping), clock=fixed_clock, retry_delay=0
        )

        assert writer.write(snapshot) is True
        assert backend.updates == [("2026!A2", [[None, 72.5, 45]])]

    def test_missing_sensor_file_aborts_write(self, tmp_path, fixed_clock, snapshot):
        backend = FakeSheetsBackend({"2026": [["h"]]})
        writer = SheetWriter(
            lambda: backend,
            sensor_file=str(tmp_path / "missing.txt"),
            clock=fixed_clock,
            retry_delay=0,
        )

        assert writer.write(snapshot) is False
        assert backend.read_calls == 0

    def test_requires_sensor_source(self):
        with pytest.raises(ValueError):
            SheetWriter(lambda: None)


class TestTrimValues:
    """The fake trims read results the way values.get does."""

    def test_trailing_cells_and_rows_dropped(self):
        assert trim_values([
            [None, "a", None],
            [],
            [None, None, 3],
            [None, None],
            [],
        ]) == [[None, "a"], [], [None, None, 3]]
