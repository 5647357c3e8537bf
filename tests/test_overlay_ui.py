"""Tests covering the Qt wiring around the globe: overlays, import worker, CLI."""

from __future__ import annotations

import os
from pathlib import Path
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
pytest.importorskip("PySide6")
pytest.importorskip("moderngl")

from PySide6.QtWidgets import QApplication, QLabel  # noqa: E402

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from eventglobe.main import build_parser, settings_from_args  # noqa: E402
from eventglobe.markers import EventMarkerRegistry  # noqa: E402
from eventglobe.models import FrameOutputs  # noqa: E402
from eventglobe.ui.main_window import EventImportWorker, OverlayPresenter  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _qt_app():
    """Ensure a QApplication exists for all GUI-centric tests."""

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


def test_overlay_presenter_updates_labels():
    timer = QLabel()
    asia = QLabel()
    presenter = OverlayPresenter(timer, {"Asia": asia})
    presenter.present(
        FrameOutputs(
            display_elapsed=12.3,
            timer_text="Elapsed Time: 12.3 minutes",
            counters={"Asia": 1531, "Europe": 147},
        )
    )
    assert timer.text() == "Elapsed Time: 12.3 minutes"
    assert asia.text() == "Asia: 1531"


def test_import_worker_feeds_registry(tmp_path):
    path = tmp_path / "events.csv"
    path.write_text("latitude,longitude,time\n1,2,3\n95,0,1\n4,5,6\n", encoding="utf-8")
    registry = EventMarkerRegistry()
    worker = EventImportWorker(path, registry)
    progress, finished, errors = [], [], []
    worker.progress.connect(progress.append)
    worker.finished.connect(finished.append)
    worker.error.connect(errors.append)

    worker.run()

    assert errors == []
    assert progress[-1] == 2
    assert finished[0].rows_read == 3
    assert len(registry) == 2
    assert registry.rejected_count == 1


def test_import_worker_reports_missing_file(tmp_path):
    worker = EventImportWorker(tmp_path / "missing.csv", EventMarkerRegistry())
    errors = []
    worker.error.connect(errors.append)
    worker.run()
    assert errors and "not found" in errors[0]


def test_cli_flags_map_to_settings():
    args = build_parser().parse_args(
        ["data.csv", "--rotation-mode", "time", "--keep-simulating", "--binary-markers"]
    )
    globe, markers = settings_from_args(args)
    assert args.events == Path("data.csv")
    assert globe.rotation_mode == "time"
    assert globe.freeze_markers_at_cap is False
    assert markers.fade_seconds == 0.0


def test_cli_defaults():
    globe, markers = settings_from_args(build_parser().parse_args([]))
    assert globe.rotation_mode == "frame"
    assert globe.freeze_markers_at_cap is True
    assert globe.sun_azimuth_rate_rad_s == 0.0
    assert markers.fade_seconds == pytest.approx(0.2)


class _FakeGLObject:
    def __init__(self) -> None:
        self.released = False

    def release(self) -> None:
        self.released = True


class _FakeContext:
    def __init__(self) -> None:
        self.vertex_arrays: list[_FakeGLObject] = []

    def buffer(self, data=None, *, reserve=0):
        return _FakeGLObject()

    def vertex_array(self, program, content, *args, **kwargs):
        vao = _FakeGLObject()
        self.vertex_arrays.append(vao)
        return vao


def test_marker_buffer_growth_releases_previous_vertex_array():
    from eventglobe.ui.opengl import GlobeWidget

    widget = GlobeWidget(EventMarkerRegistry())
    ctx = _FakeContext()
    widget._ctx = ctx
    widget._programs["markers"] = object()

    widget._ensure_marker_capacity(10)
    widget._ensure_marker_capacity(5000)

    assert len(ctx.vertex_arrays) == 2
    assert ctx.vertex_arrays[0].released
    assert not ctx.vertex_arrays[1].released
    assert widget._marker_capacity == 8192
    assert widget._opacity_scratch.shape == (8192,)
