"""Tests for the CSV event importer."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from eventglobe.constants import DEFAULT_EVENTS_FILE  # noqa: E402
from eventglobe.services.event_importer import (  # noqa: E402
    EventImportError,
    ImportReport,
    iter_event_chunks,
    load_events,
    stream_events,
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "events.csv"
    path.write_text(text, encoding="utf-8")
    return path


def test_reads_records_and_skips_blank_lines(tmp_path):
    path = _write(
        tmp_path,
        "latitude,longitude,time\n45.0,-93.0,10\n\n-33.9,151.2,12.5\n",
    )
    records = load_events(path)
    assert [(r.latitude_deg, r.longitude_deg, r.time_s) for r in records] == [
        (45.0, -93.0, 10.0),
        (-33.9, 151.2, 12.5),
    ]


def test_column_names_are_case_insensitive(tmp_path):
    path = _write(tmp_path, "Time, Latitude ,LONGITUDE\n3,1,2\n")
    (record,) = load_events(path)
    assert (record.latitude_deg, record.longitude_deg, record.time_s) == (1.0, 2.0, 3.0)


def test_malformed_rows_are_dropped_and_reported(tmp_path):
    path = _write(
        tmp_path,
        "latitude,longitude,time\n"
        "10,20,1\n"
        "abc,20,2\n"
        "10,20\n"
        "1,2,3,4\n"
        "30,40,5\n",
    )
    report = ImportReport()
    records = load_events(path, report)
    assert [r.time_s for r in records] == [1.0, 5.0]
    assert report.rows_dropped >= 2
    assert any("non-numeric" in message for message in report.diagnostics)


def test_out_of_range_values_pass_through_for_registry_validation(tmp_path):
    path = _write(tmp_path, "latitude,longitude,time\n91,200,0\n")
    (record,) = load_events(path)
    assert record.latitude_deg == 91.0


def test_missing_columns_raise(tmp_path):
    path = _write(tmp_path, "lat,lon,time\n1,2,3\n")
    with pytest.raises(EventImportError, match="latitude"):
        load_events(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(EventImportError, match="not found"):
        load_events(tmp_path / "absent.csv")


def test_empty_file_raises(tmp_path):
    path = _write(tmp_path, "")
    with pytest.raises(EventImportError):
        load_events(path)


def test_stream_events_delivers_chunks(tmp_path):
    rows = "\n".join(f"0,0,{i}" for i in range(25))
    path = _write(tmp_path, "latitude,longitude,time\n" + rows + "\n")
    chunks = []
    report = stream_events(path, chunks.append, chunk_size=10)
    assert [len(chunk) for chunk in chunks] == [10, 10, 5]
    assert report.rows_read == 25
    assert report.rows_dropped == 0
    assert list(iter_event_chunks(path, chunk_size=100))[0][-1].time_s == 24.0


def test_bundled_sample_loads():
    records = load_events(DEFAULT_EVENTS_FILE)
    assert records
    assert all(-90.0 <= r.latitude_deg <= 90.0 for r in records)


def test_short_row_is_dropped_without_aborting_import(tmp_path):
    path = _write(tmp_path, "latitude,longitude,time\n10,20,1\n10,20\n30,40,5\n")
    report = ImportReport()
    records = load_events(path, report)
    assert [r.time_s for r in records] == [1.0, 5.0]
    assert report.rows_dropped == 1
    assert report.diagnostics[0].startswith("Record 2: non-numeric value in ")
    assert report.diagnostics[0].endswith("nan")
