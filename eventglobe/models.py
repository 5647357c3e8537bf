"""Dataclasses shared between the UI layer and the simulation core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

import numpy as np

from eventglobe.constants import (
    ATMOSPHERE_SCALE,
    CLOCK_DISPLAY_CAP_S,
    GLOBE_RADIUS,
    INITIAL_GLOBE_ROTATION_RAD,
    MARKER_FADE_SECONDS,
    MARKER_SURFACE_OFFSET,
    MARKER_VISIBLE_SECONDS,
    ROTATION_STEP_RAD,
)


@dataclass(frozen=True)
class GeoCoordinate:
    """Latitude/longitude pair in degrees."""

    latitude_deg: float
    longitude_deg: float

    def invalid_reason(self) -> str | None:
        if not -90.0 <= self.latitude_deg <= 90.0:
            return f"latitude {self.latitude_deg} out of range"
        if not -180.0 <= self.longitude_deg <= 180.0:
            return f"longitude {self.longitude_deg} out of range"
        return None

    def is_valid(self) -> bool:
        return self.invalid_reason() is None


@dataclass(frozen=True)
class EventRecord:
    """One row of the external event dataset after numeric coercion."""

    latitude_deg: float
    longitude_deg: float
    time_s: float

    @property
    def coordinate(self) -> GeoCoordinate:
        return GeoCoordinate(self.latitude_deg, self.longitude_deg)


@dataclass(frozen=True)
class RejectedRecord:
    """Record refused by the marker registry, with a human readable reason."""

    record: EventRecord
    reason: str


@dataclass(frozen=True, eq=False)
class Marker:
    """A scheduled glow event pinned to a surface point."""

    index: int
    position: np.ndarray
    glow_at: float
    fade_at: float
    opacity: float = 0.0

    @property
    def window(self) -> tuple[float, float]:
        return (self.glow_at, self.fade_at)


@dataclass(frozen=True)
class IngestSummary:
    """Outcome of a batch ingestion."""

    accepted: int
    rejected: List[RejectedRecord] = field(default_factory=list)


@dataclass(frozen=True, eq=False)
class MarkerSnapshot:
    """Render-ready view of the registry: (n, 3) positions and (n,) opacities."""

    positions: np.ndarray
    opacities: np.ndarray

    @property
    def count(self) -> int:
        return int(self.opacities.shape[0])


@dataclass
class MarkerSettings:
    """Placement and timeline parameters for event markers."""

    globe_radius: float = GLOBE_RADIUS
    surface_offset: float = MARKER_SURFACE_OFFSET
    visible_seconds: float = MARKER_VISIBLE_SECONDS
    # 0.0 gives plain show/hide without ramps.
    fade_seconds: float = MARKER_FADE_SECONDS


@dataclass
class GlobeSettings:
    """Frame-loop policy knobs."""

    radius: float = GLOBE_RADIUS
    atmosphere_scale: float = ATMOSPHERE_SCALE
    initial_rotation_rad: float = INITIAL_GLOBE_ROTATION_RAD
    rotation_step_rad: float = ROTATION_STEP_RAD
    rotation_mode: str = "frame"  # "frame" or "time"
    display_cap_s: float = CLOCK_DISPLAY_CAP_S
    freeze_markers_at_cap: bool = True
    sun_azimuth_rate_rad_s: float = 0.0


@dataclass
class SimulationState:
    """Mutable per-run state owned by the frame orchestrator."""

    elapsed: float = 0.0
    display_elapsed: float = 0.0
    rotation_rad: float = INITIAL_GLOBE_ROTATION_RAD
    sun_direction: np.ndarray = field(
        default_factory=lambda: np.array([0.0, 0.0, 1.0], dtype=np.float32)
    )
    frame_index: int = 0
    markers_frozen: bool = False


@dataclass(frozen=True)
class FrameOutputs:
    """Display values produced by one frame step."""

    display_elapsed: float
    timer_text: str
    counters: Dict[str, int]
