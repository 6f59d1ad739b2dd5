"""Tests for the file-series sink, sink registry and destinations collection."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from fitsync.base import TimeSeriesPoint
from fitsync.config_loader import DestinationKind, DestinationSpec
from fitsync.sync.destinations import (
    Destinations,
    FileSeriesSink,
    SinkIOError,
    SinkParseError,
    get_sink,
)


def p(day: int, value: float) -> TimeSeriesPoint:
    return TimeSeriesPoint(timestamp=date(2020, 1, day), value=value)


# ---------------------------------------------------------------------------
# FileSeriesSink
# ---------------------------------------------------------------------------


class TestFileSeriesSink:
    def test_first_append_creates_file(self, tmp_path: Path) -> None:
        sink = FileSeriesSink(tmp_path / "basic.csv")
        sink.append([p(1, 70.0)])
        assert (tmp_path / "basic.csv").read_text() == "dateTime,value\n2020-01-01,70.0\n"

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        sink = FileSeriesSink(tmp_path / "nested" / "dir" / "weight.csv")
        sink.append([p(1, 70.0)])
        assert sink.path.exists()

    def test_read_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert FileSeriesSink(tmp_path / "absent.csv").read() == []

    def test_read_empty_file_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.csv"
        path.write_text("")
        assert FileSeriesSink(path).read() == []

    def test_append_merges_with_existing(self, tmp_path: Path) -> None:
        sink = FileSeriesSink(tmp_path / "basic.csv")
        sink.append([p(1, 70.0), p(3, 71.0)])
        stored = sink.append([p(2, 72.0)])
        assert stored == [p(1, 70.0), p(2, 72.0), p(3, 71.0)]
        assert sink.read() == stored

    def test_append_is_idempotent(self, tmp_path: Path) -> None:
        sink = FileSeriesSink(tmp_path / "basic.csv")
        points = [p(1, 70.0), p(2, 70.0), p(3, 71.5), p(4, 71.0)]
        sink.append(points)
        first = sink.path.read_text()
        sink.append(points)
        assert sink.path.read_text() == first

    def test_incoming_point_replaces_stored_on_same_date(self, tmp_path: Path) -> None:
        sink = FileSeriesSink(tmp_path / "basic.csv")
        sink.append([p(1, 70.0), p(2, 72.0)])
        assert sink.append([p(2, 73.0)]) == [p(1, 70.0), p(2, 73.0)]

    def test_append_empty_keeps_series(self, tmp_path: Path) -> None:
        sink = FileSeriesSink(tmp_path / "basic.csv")
        sink.append([p(1, 70.0)])
        assert sink.append([]) == [p(1, 70.0)]

    def test_unsorted_file_is_normalized(self, tmp_path: Path) -> None:
        path = tmp_path / "basic.csv"
        path.write_text("dateTime,value\n2020-01-02,71.0\n2020-01-01,70.0\n")
        FileSeriesSink(path).append([])
        assert path.read_text() == "dateTime,value\n2020-01-01,70.0\n2020-01-02,71.0\n"

    def test_missing_column_raises_parse_error(self, tmp_path: Path) -> None:
        path = tmp_path / "basic.csv"
        path.write_text("date,weight\n2020-01-01,70.0\n")
        with pytest.raises(SinkParseError, match="missing column"):
            FileSeriesSink(path).read()

    def test_bad_row_raises_parse_error_with_line(self, tmp_path: Path) -> None:
        path = tmp_path / "basic.csv"
        path.write_text("dateTime,value\n2020-01-01,70.0\n2020-01-02,heavy\n")
        with pytest.raises(SinkParseError, match=":3:"):
            FileSeriesSink(path).read()

    def test_parse_error_leaves_file_untouched(self, tmp_path: Path) -> None:
        path = tmp_path / "basic.csv"
        original = "dateTime,value\nnot-a-date,70.0\n"
        path.write_text(original)
        with pytest.raises(SinkParseError):
            FileSeriesSink(path).append([p(1, 70.0)])
        assert path.read_text() == original

    def test_unwritable_target_raises_io_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        sink = FileSeriesSink(blocker / "basic.csv")
        with pytest.raises(SinkIOError):
            sink.append([p(1, 70.0)])

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        sink = FileSeriesSink(tmp_path / "basic.csv")
        sink.append([p(1, 70.0)])
        sink.append([p(2, 71.0)])
        assert [f.name for f in tmp_path.iterdir()] == ["basic.csv"]


class TestSinkRegistry:
    def test_file_series_kind(self, csv_spec: DestinationSpec) -> None:
        sink = get_sink(csv_spec)
        assert isinstance(sink, FileSeriesSink)
        assert sink.path == csv_spec.path

    def test_unknown_kind_raises(self, tmp_path: Path) -> None:
        spec = DestinationSpec(id="x", kind="sheet", path=tmp_path / "x")  # type: ignore[arg-type]
        with pytest.raises(KeyError, match="No sink registered"):
            get_sink(spec)

    def test_kind_enum_values(self) -> None:
        assert DestinationKind("file-series") is DestinationKind.FILE_SERIES


# ---------------------------------------------------------------------------
# Destinations collection
# ---------------------------------------------------------------------------


class TestDestinations:
    def test_no_checkpoint_initially(self, destinations: Destinations) -> None:
        assert destinations.last_synced("csv") is None

    def test_advance_sets_checkpoint(self, destinations: Destinations) -> None:
        instant = datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert destinations.advance("csv", instant) == instant
        assert destinations.last_synced("csv") == instant

    def test_advance_never_moves_backwards(self, destinations: Destinations) -> None:
        later = datetime(2024, 3, 2, tzinfo=timezone.utc)
        destinations.advance("csv", later)
        assert destinations.advance("csv", later - timedelta(hours=1)) == later
        assert destinations.last_synced("csv") == later

    def test_checkpoints_returns_copy(self, destinations: Destinations) -> None:
        destinations.checkpoints()["csv"] = datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert destinations.last_synced("csv") is None

    def test_save_and_load_round_trip(self, tmp_path: Path, destinations: Destinations) -> None:
        instant = datetime(2024, 3, 1, 8, 15, tzinfo=timezone.utc)
        destinations.advance("csv", instant)
        destinations.save()

        loaded = Destinations.load(
            tmp_path / "destinations.json", tmp_path / "cache" / "destinations_cache.json"
        )
        assert loaded.last_synced("csv") == instant

    def test_pass_lock_excludes_second_pass(self, destinations: Destinations) -> None:
        with destinations.pass_lock() as first:
            assert first is True
            with destinations.pass_lock() as second:
                assert second is False
        with destinations.pass_lock() as again:
            assert again is True

    def test_pass_lock_released_on_error(self, destinations: Destinations) -> None:
        with pytest.raises(RuntimeError):
            with destinations.pass_lock():
                raise RuntimeError("boom")
        with destinations.pass_lock() as acquired:
            assert acquired is True
