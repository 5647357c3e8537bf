"""Tests for the per-frame orchestration of clock, markers and rendering."""

from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from eventglobe.clock import SimulationClock  # noqa: E402
from eventglobe.frame import (  # noqa: E402
    FrameOrchestrator,
    sun_direction_at,
    sun_direction_from_spherical,
)
from eventglobe.markers import EventMarkerRegistry  # noqa: E402
from eventglobe.models import EventRecord, FrameOutputs, GlobeSettings  # noqa: E402


class FakeTime:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class RecordingPresenter:
    def __init__(self) -> None:
        self.outputs: list[FrameOutputs] = []

    def present(self, outputs: FrameOutputs) -> None:
        self.outputs.append(outputs)


@pytest.fixture
def rig():
    fake = FakeTime()
    clock = SimulationClock(time_source=fake)
    clock.start()
    registry = EventMarkerRegistry()
    registry.ingest(EventRecord(0.0, 0.0, 58.0))
    renders = []
    presenter = RecordingPresenter()

    def build(**settings_kwargs):
        return FrameOrchestrator(
            clock,
            registry,
            lambda state: renders.append((state.frame_index, state.rotation_rad)),
            settings=GlobeSettings(**settings_kwargs),
            presenter=presenter,
        )

    return fake, registry, renders, presenter, build


def test_each_tick_renders_once_after_presenting(rig):
    fake, _, renders, presenter, build = rig
    orchestrator = build()
    for _ in range(3):
        fake.now += 0.016
        orchestrator.tick()
    assert [frame for frame, _ in renders] == [1, 2, 3]
    assert len(presenter.outputs) == 3
    assert presenter.outputs[-1].timer_text == "Elapsed Time: 0.0 minutes"


def test_frame_mode_rotation_is_per_tick(rig):
    fake, _, renders, _, build = rig
    orchestrator = build(rotation_mode="frame")
    start = orchestrator.state.rotation_rad
    fake.now += 5.0
    orchestrator.tick()
    orchestrator.tick()
    assert renders[-1][1] == pytest.approx(start + 0.0002)


def test_time_mode_rotation_follows_elapsed(rig):
    fake, _, _, _, build = rig
    orchestrator = build(rotation_mode="time")
    start = orchestrator.state.rotation_rad
    fake.now += 1.0
    orchestrator.tick()
    orchestrator.tick()
    assert orchestrator.state.rotation_rad == pytest.approx(start + 0.0001 * 60.0)


def test_unknown_rotation_mode_is_refused(rig):
    *_, build = rig
    with pytest.raises(ValueError):
        build(rotation_mode="sideways")


def test_markers_freeze_at_display_cap(rig):
    fake, registry, _, presenter, build = rig
    orchestrator = build()
    fake.now = 59.0
    orchestrator.tick()
    assert registry.opacities()[0] == pytest.approx(1.0)

    fake.now = 70.0
    outputs = orchestrator.tick()
    assert outputs.display_elapsed == 60.0
    assert orchestrator.state.markers_frozen
    assert orchestrator.state.elapsed == 70.0
    # Still the opacity from t=59, not the expired window at t=70.
    assert registry.opacities()[0] == pytest.approx(1.0)
    assert presenter.outputs[-1].counters == orchestrator.tick().counters


def test_keep_simulating_past_cap(rig):
    fake, registry, _, _, build = rig
    orchestrator = build(freeze_markers_at_cap=False)
    fake.now = 70.0
    outputs = orchestrator.tick()
    assert outputs.timer_text == "Elapsed Time: 60.0 minutes"
    assert not orchestrator.state.markers_frozen
    assert registry.opacities()[0] == 0.0


def test_reset_zeroes_display_and_resumes(rig):
    fake, _, _, presenter, build = rig
    orchestrator = build()
    fake.now = 80.0
    orchestrator.tick()
    outputs = orchestrator.reset()
    assert outputs.display_elapsed == 0.0
    assert set(outputs.counters.values()) == {0}
    assert presenter.outputs[-1] is outputs
    fake.now = 81.5
    assert orchestrator.tick().display_elapsed == pytest.approx(1.5)
    assert not orchestrator.state.markers_frozen


def test_render_errors_propagate(rig):
    fake, registry, _, _, _ = rig

    def _broken(state):
        raise RuntimeError("device lost")

    orchestrator = FrameOrchestrator(SimulationClock(time_source=fake), registry, _broken)
    with pytest.raises(RuntimeError, match="device lost"):
        orchestrator.tick()


def test_sun_sweep_rotates_about_spin_axis(rig):
    fake, _, _, _, build = rig
    orchestrator = build(sun_azimuth_rate_rad_s=np.pi / 20)
    fake.now = 10.0
    orchestrator.tick()
    np.testing.assert_allclose(orchestrator.state.sun_direction, [1.0, 0.0, 0.0], atol=1e-6)


def test_sun_stays_fixed_by_default(rig):
    fake, _, _, _, build = rig
    orchestrator = build()
    fake.now = 30.0
    orchestrator.tick()
    np.testing.assert_allclose(orchestrator.state.sun_direction, [0.0, 0.0, 1.0])


def test_sun_direction_helpers_are_unit_vectors():
    np.testing.assert_allclose(
        sun_direction_from_spherical(np.pi / 2, 0.0), [0.0, 0.0, 1.0], atol=1e-6
    )
    swept = sun_direction_at(np.array([0.0, 0.0, 1.0]), 0.3, 2.0)
    assert np.linalg.norm(swept) == pytest.approx(1.0)
