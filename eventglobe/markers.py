"""Time-keyed glow markers pinned to the globe surface."""

from __future__ import annotations

import logging
import math
import numbers
import threading
from typing import Iterable, List

import numpy as np

from eventglobe.globe_math import offset_outward, project_geo
from eventglobe.models import (
    EventRecord,
    IngestSummary,
    Marker,
    MarkerSettings,
    MarkerSnapshot,
    RejectedRecord,
)

logger = logging.getLogger(__name__)

_INITIAL_CAPACITY = 256


def marker_opacity(
    t: float | np.ndarray,
    glow_at: float | np.ndarray,
    fade_at: float | np.ndarray,
    fade_seconds: float,
) -> np.ndarray:
    """Opacity of markers scheduled on ``[glow_at, fade_at)`` at time ``t``.

    Piecewise linear: ramps up over ``fade_seconds`` from ``glow_at``, holds at
    one, then ramps down to reach zero exactly at ``fade_at``. With
    ``fade_seconds == 0`` the marker simply switches on and off.
    """
    t = np.asarray(t, dtype=np.float64)
    glow_at = np.asarray(glow_at, dtype=np.float64)
    fade_at = np.asarray(fade_at, dtype=np.float64)
    if fade_seconds <= 0.0:
        return np.where((t >= glow_at) & (t < fade_at), 1.0, 0.0)
    rise = (t - glow_at) / fade_seconds
    fall = (fade_at - t) / fade_seconds
    return np.clip(np.minimum(rise, fall), 0.0, 1.0)


class EventMarkerRegistry:
    """Owns every scheduled marker and re-evaluates their opacity per frame.

    Records may be ingested from a worker thread while the frame loop calls
    :meth:`advance`; both paths take the same lock. Storage is append-only.
    """

    def __init__(self, settings: MarkerSettings | None = None) -> None:
        self.settings = settings or MarkerSettings()
        self._lock = threading.Lock()
        self._count = 0
        self._positions = np.zeros((_INITIAL_CAPACITY, 3), dtype=np.float32)
        self._glow_at = np.zeros(_INITIAL_CAPACITY, dtype=np.float64)
        self._fade_at = np.zeros(_INITIAL_CAPACITY, dtype=np.float64)
        self._opacity = np.zeros(_INITIAL_CAPACITY, dtype=np.float32)
        self._rejected: List[RejectedRecord] = []
        self._last_time: float | None = None

    def __len__(self) -> int:
        return self._count

    @property
    def rejected(self) -> List[RejectedRecord]:
        with self._lock:
            return list(self._rejected)

    @property
    def rejected_count(self) -> int:
        return len(self._rejected)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def ingest(self, record: EventRecord) -> Marker | RejectedRecord:
        """Schedule a marker for ``record`` or explain why it was refused."""
        reason = self._validate(record)
        if reason is not None:
            rejected = RejectedRecord(record, reason)
            with self._lock:
                self._rejected.append(rejected)
            logger.debug("Rejected event %s: %s", record, reason)
            return rejected

        settings = self.settings
        surface = project_geo(
            record.latitude_deg, record.longitude_deg, settings.globe_radius
        )
        position = offset_outward(surface, settings.surface_offset)
        glow_at = float(record.time_s)
        fade_at = glow_at + settings.visible_seconds
        with self._lock:
            index = self._append(position, glow_at, fade_at)
            if self._last_time is not None:
                self._opacity[index] = marker_opacity(
                    self._last_time, glow_at, fade_at, settings.fade_seconds
                )
            opacity = float(self._opacity[index])
        return Marker(index, position, glow_at, fade_at, opacity)

    def ingest_many(self, records: Iterable[EventRecord]) -> IngestSummary:
        accepted = 0
        rejected: List[RejectedRecord] = []
        for record in records:
            outcome = self.ingest(record)
            if isinstance(outcome, RejectedRecord):
                rejected.append(outcome)
            else:
                accepted += 1
        if rejected:
            logger.info(
                "Ingested %d events, rejected %d out-of-range records",
                accepted,
                len(rejected),
            )
        return IngestSummary(accepted=accepted, rejected=rejected)

    @staticmethod
    def _validate(record: EventRecord) -> str | None:
        values = (record.latitude_deg, record.longitude_deg, record.time_s)
        if not all(isinstance(v, numbers.Real) and math.isfinite(v) for v in values):
            return "non-numeric field"
        return record.coordinate.invalid_reason()

    def _append(self, position: np.ndarray, glow_at: float, fade_at: float) -> int:
        if self._count == self._glow_at.shape[0]:
            self._grow()
        index = self._count
        self._positions[index] = position
        self._glow_at[index] = glow_at
        self._fade_at[index] = fade_at
        self._opacity[index] = 0.0
        self._count += 1
        return index

    def _grow(self) -> None:
        capacity = self._glow_at.shape[0] * 2
        logger.debug("Growing marker storage to %d", capacity)
        self._positions = np.resize(self._positions, (capacity, 3))
        self._glow_at = np.resize(self._glow_at, capacity)
        self._fade_at = np.resize(self._fade_at, capacity)
        self._opacity = np.resize(self._opacity, capacity)

    # ------------------------------------------------------------------
    # Per-frame evaluation
    # ------------------------------------------------------------------
    def advance(self, elapsed_s: float) -> None:
        """Recompute every marker's opacity for ``elapsed_s``."""
        with self._lock:
            n = self._count
            self._last_time = float(elapsed_s)
            if n == 0:
                return
            self._opacity[:n] = marker_opacity(
                elapsed_s,
                self._glow_at[:n],
                self._fade_at[:n],
                self.settings.fade_seconds,
            )

    def snapshot(self) -> MarkerSnapshot:
        """Positions and current opacities of every marker, in ingestion order."""
        with self._lock:
            n = self._count
            return MarkerSnapshot(
                positions=self._positions[:n].copy(),
                opacities=self._opacity[:n].copy(),
            )

    def positions_since(self, start: int) -> np.ndarray:
        """Positions of markers ingested at or after index ``start``."""
        with self._lock:
            return self._positions[start : self._count].copy()

    def copy_opacities(self, out: np.ndarray) -> int:
        """Write current opacities into ``out`` without allocating.

        Returns how many values were written; ``out`` must hold at least
        ``len(self)`` floats at the time of the call or it is filled partially.
        """
        with self._lock:
            n = min(self._count, out.shape[0])
            out[:n] = self._opacity[:n]
            return n

    def opacities(self) -> np.ndarray:
        with self._lock:
            return self._opacity[: self._count].copy()

    def markers(self) -> List[Marker]:
        with self._lock:
            return [
                Marker(
                    index,
                    self._positions[index].astype(np.float64),
                    float(self._glow_at[index]),
                    float(self._fade_at[index]),
                    float(self._opacity[index]),
                )
                for index in range(self._count)
            ]
