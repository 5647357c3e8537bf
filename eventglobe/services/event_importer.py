"""Streaming loader for event CSV files (latitude, longitude, time)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List

import pandas as pd

from eventglobe.models import EventRecord

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["latitude", "longitude", "time"]
DEFAULT_CHUNK_SIZE = 2000


@dataclass
class EventImportError(Exception):
    """Raised when the event file cannot be read at all."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ImportReport:
    """Tally of what happened while streaming a file."""

    rows_read: int = 0
    rows_dropped: int = 0
    diagnostics: List[str] = field(default_factory=list)

    def drop(self, message: str) -> None:
        self.rows_dropped += 1
        self.diagnostics.append(message)
        logger.warning(message)


def iter_event_chunks(
    path: str | Path,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    report: ImportReport | None = None,
) -> Iterator[List[EventRecord]]:
    """Yield lists of :class:`EventRecord`, one list per chunk of rows.

    Blank lines are skipped. Rows with the wrong number of fields or with a
    non-numeric latitude/longitude/time are dropped and recorded in
    ``report``; the remaining rows keep flowing.
    """
    report = report if report is not None else ImportReport()
    file_path = Path(path).expanduser()
    if not file_path.exists():
        raise EventImportError(f"File not found: {file_path}")

    def _bad_line(fields: list[str]) -> None:
        report.drop(f"Malformed row skipped: {','.join(fields)}")
        return None

    try:
        reader = pd.read_csv(
            file_path,
            chunksize=chunk_size,
            skip_blank_lines=True,
            on_bad_lines=_bad_line,
            engine="python",
        )
    except pd.errors.EmptyDataError as exc:
        raise EventImportError(f"No rows were found in {file_path}.") from exc

    columns: dict[str, str] | None = None
    try:
        for chunk in reader:
            if columns is None:
                columns = _resolve_columns(chunk)
            yield _chunk_records(chunk, columns, report)
    except pd.errors.EmptyDataError as exc:
        raise EventImportError(f"No rows were found in {file_path}.") from exc
    except pd.errors.ParserError as exc:
        raise EventImportError(f"Could not parse {file_path}: {exc}") from exc


def load_events(path: str | Path, report: ImportReport | None = None) -> List[EventRecord]:
    """Read the whole file into memory."""
    records: List[EventRecord] = []
    for chunk in iter_event_chunks(path, report=report):
        records.extend(chunk)
    return records


def stream_events(
    path: str | Path,
    consume: Callable[[List[EventRecord]], None],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ImportReport:
    """Feed every chunk of ``path`` to ``consume`` and return the report."""
    report = ImportReport()
    for chunk in iter_event_chunks(path, chunk_size=chunk_size, report=report):
        consume(chunk)
    logger.info(
        "Imported %d rows from %s (%d dropped)",
        report.rows_read,
        path,
        report.rows_dropped,
    )
    return report


def _resolve_columns(df: pd.DataFrame) -> dict[str, str]:
    normalized_columns = {str(col).strip().lower(): col for col in df.columns}
    missing = [col for col in REQUIRED_COLUMNS if col not in normalized_columns]
    if missing:
        raise EventImportError(
            f"Missing required columns: {', '.join(missing)}. "
            "Expected columns: latitude, longitude, time."
        )
    return {col: normalized_columns[col] for col in REQUIRED_COLUMNS}


def _chunk_records(
    chunk: pd.DataFrame,
    columns: dict[str, str],
    report: ImportReport,
) -> List[EventRecord]:
    numeric = pd.DataFrame(
        {
            name: pd.to_numeric(chunk[source], errors="coerce")
            for name, source in columns.items()
        }
    )
    report.rows_read += len(numeric)
    invalid = numeric.isna().any(axis=1)
    for row_index in numeric.index[invalid]:
        # Missing cells come back as float NaN, not strings.
        raw = chunk.loc[row_index, list(columns.values())].tolist()
        report.drop(
            f"Record {row_index + 1}: non-numeric value in "
            f"{', '.join(str(value) for value in raw)}"
        )
    valid = numeric[~invalid]
    return [
        EventRecord(
            latitude_deg=float(lat),
            longitude_deg=float(lon),
            time_s=float(t),
        )
        for lat, lon, t in zip(valid["latitude"], valid["longitude"], valid["time"])
    ]
