"""Per-frame driver tying the clock, markers and renderer together."""

from __future__ import annotations

import logging
import math
from typing import Callable, Mapping, Optional, Protocol

import numpy as np

from eventglobe.clock import SimulationClock, cap_elapsed
from eventglobe.constants import COUNTER_RATES, NOMINAL_FRAME_RATE_HZ
from eventglobe.counters import derived_counters, format_timer
from eventglobe.globe_math import rotate_vector_y
from eventglobe.markers import EventMarkerRegistry
from eventglobe.models import FrameOutputs, GlobeSettings, SimulationState

logger = logging.getLogger(__name__)

ROTATION_MODES = ("frame", "time")


class FramePresenter(Protocol):
    """Receives the display values of each frame (timer text, counters)."""

    def present(self, outputs: FrameOutputs) -> None: ...


class FrameOrchestrator:
    """Advances the simulation one display refresh at a time.

    ``render`` is called exactly once per :meth:`tick` after the state has been
    updated; errors it raises (e.g. a lost GL device) propagate to the caller.
    """

    def __init__(
        self,
        clock: SimulationClock,
        registry: EventMarkerRegistry,
        render: Callable[[SimulationState], None],
        *,
        settings: GlobeSettings | None = None,
        presenter: Optional[FramePresenter] = None,
        counter_rates: Mapping[str, float] = COUNTER_RATES,
        state: SimulationState | None = None,
    ) -> None:
        self.settings = settings or GlobeSettings()
        if self.settings.rotation_mode not in ROTATION_MODES:
            raise ValueError(
                "Unsupported rotation mode: %s" % self.settings.rotation_mode
            )
        self.clock = clock
        self.registry = registry
        self.presenter = presenter
        self.counter_rates = dict(counter_rates)
        self._render = render
        self.state = state or SimulationState(
            rotation_rad=self.settings.initial_rotation_rad
        )
        self._base_sun = np.array(self.state.sun_direction, dtype=np.float32)

    def tick(self) -> FrameOutputs:
        state = self.state
        settings = self.settings
        previous_elapsed = state.elapsed

        elapsed = self.clock.elapsed()
        display = cap_elapsed(elapsed, settings.display_cap_s)
        state.elapsed = elapsed
        state.display_elapsed = display

        outputs = FrameOutputs(
            display_elapsed=display,
            timer_text=format_timer(display),
            counters=derived_counters(display, self.counter_rates),
        )

        at_cap = display >= settings.display_cap_s
        frozen = at_cap and settings.freeze_markers_at_cap
        if frozen and not state.markers_frozen:
            logger.info("Display cap reached at %.1fs; marker playback paused", display)
        state.markers_frozen = frozen
        if not frozen:
            self.registry.advance(elapsed)

        if settings.rotation_mode == "frame":
            state.rotation_rad += settings.rotation_step_rad
        else:
            # Same visual speed as frame mode at the nominal refresh rate.
            delta_t = max(0.0, elapsed - previous_elapsed)
            state.rotation_rad += (
                settings.rotation_step_rad * NOMINAL_FRAME_RATE_HZ * delta_t
            )

        if settings.sun_azimuth_rate_rad_s:
            state.sun_direction = sun_direction_at(
                self._base_sun, settings.sun_azimuth_rate_rad_s, elapsed
            )

        state.frame_index += 1
        if self.presenter is not None:
            self.presenter.present(outputs)
        self._render(state)
        return outputs

    def reset(self) -> FrameOutputs:
        """Zero the clock and immediately publish the reset display values."""
        self.clock.reset()
        self.state.elapsed = 0.0
        self.state.display_elapsed = 0.0
        self.state.markers_frozen = False
        outputs = FrameOutputs(
            display_elapsed=0.0,
            timer_text=format_timer(0.0),
            counters=derived_counters(0.0, self.counter_rates),
        )
        if self.presenter is not None:
            self.presenter.present(outputs)
        logger.debug("Simulation clock reset")
        return outputs


def sun_direction_at(base: np.ndarray, rate_rad_s: float, elapsed: float) -> np.ndarray:
    """Sun direction swept around the globe's spin axis."""
    x, y, z = rotate_vector_y(tuple(float(v) for v in base), rate_rad_s * elapsed)
    vec = np.array([x, y, z], dtype=np.float32)
    norm = float(np.linalg.norm(vec))
    return vec / norm if norm > 0.0 else vec


def sun_direction_from_spherical(phi: float, theta: float) -> np.ndarray:
    """Unit vector for polar angle ``phi`` (from +Y) and azimuth ``theta``."""
    sin_phi = math.sin(phi)
    return np.array(
        [sin_phi * math.sin(theta), math.cos(phi), sin_phi * math.cos(theta)],
        dtype=np.float32,
    )
