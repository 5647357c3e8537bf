"""PySide6 main window hosting the globe, overlays and the frame loop."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

from PySide6.QtCore import QObject, QThread, QTimer, Signal
from PySide6.QtWidgets import QLabel, QMainWindow, QPushButton, QWidget

from eventglobe.clock import SimulationClock
from eventglobe.constants import COUNTER_RATES, FRAME_INTERVAL_MS
from eventglobe.counters import format_counter, format_timer
from eventglobe.frame import FrameOrchestrator
from eventglobe.markers import EventMarkerRegistry
from eventglobe.models import FrameOutputs, GlobeSettings, SimulationState
from eventglobe.services.event_importer import EventImportError, stream_events
from eventglobe.shading import ShadingParameters
from eventglobe.ui.opengl import GlobeWidget

logger = logging.getLogger(__name__)

_OVERLAY_STYLE = (
    "color: #ffffff; font-size: 20px; font-family: 'Augustus', sans-serif;"
    "background: rgba(0, 0, 0, 0.5); padding: 10px; border-radius: 5px;"
)
_TITLE_STYLE = (
    "color: #ffffff; font-size: 36px; font-family: 'Augustus', sans-serif;"
    "font-weight: bold;"
)
_BUTTON_STYLE = (
    "color: #ffffff; font-size: 16px; background: #333; padding: 10px 20px;"
    "border: none; border-radius: 5px;"
)


class OverlayPresenter:
    """Writes frame outputs into a timer label and one label per counter."""

    def __init__(
        self,
        timer_label: QLabel,
        counter_labels: Dict[str, QLabel],
    ) -> None:
        self._timer_label = timer_label
        self._counter_labels = counter_labels

    def present(self, outputs: FrameOutputs) -> None:
        self._timer_label.setText(outputs.timer_text)
        for name, label in self._counter_labels.items():
            value = outputs.counters.get(name)
            if value is not None:
                label.setText(format_counter(name, value))


class EventImportWorker(QObject):
    """Background worker streaming a CSV file into the marker registry."""

    progress = Signal(int)
    finished = Signal(object)
    error = Signal(str)

    def __init__(self, path: Path, registry: EventMarkerRegistry) -> None:
        super().__init__()
        self._path = path
        self._registry = registry
        self._accepted = 0

    def run(self) -> None:
        try:
            report = stream_events(self._path, self._consume)
        except EventImportError as exc:
            self.error.emit(str(exc))
            return
        except Exception as exc:  # pragma: no cover - GUI execution path
            logger.exception("Event import failed")
            self.error.emit(str(exc))
            return
        self.finished.emit(report)

    def _consume(self, records) -> None:
        summary = self._registry.ingest_many(records)
        self._accepted += summary.accepted
        self.progress.emit(self._accepted)


class EventGlobeWindow(QMainWindow):
    """Full-window globe with timer/counter overlays and a reset button."""

    def __init__(
        self,
        events_path: Optional[Path] = None,
        *,
        settings: GlobeSettings | None = None,
        shading: ShadingParameters | None = None,
        registry: EventMarkerRegistry | None = None,
        visible_counters: Iterable[str] = (),
        title: str = "",
        state: SimulationState | None = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Event Globe")
        self._settings = settings or GlobeSettings()
        self.registry = registry or EventMarkerRegistry()
        self.globe_widget = GlobeWidget(
            self.registry, self, settings=self._settings, shading=shading
        )
        self.setCentralWidget(self.globe_widget)

        self.title_label = QLabel(title, self.globe_widget)
        self.title_label.setStyleSheet(_TITLE_STYLE)
        self.title_label.setVisible(bool(title))
        self.timer_label = QLabel(format_timer(0.0), self.globe_widget)
        self.timer_label.setStyleSheet(_OVERLAY_STYLE)
        self.timer_label.move(20, 20)
        self.counter_labels: Dict[str, QLabel] = {}
        for row, name in enumerate(n for n in COUNTER_RATES if n in set(visible_counters)):
            label = QLabel(format_counter(name, 0), self.globe_widget)
            label.setStyleSheet(_OVERLAY_STYLE)
            label.move(20, 80 + row * 60)
            self.counter_labels[name] = label
        self.status_label = QLabel("", self.globe_widget)
        self.status_label.setStyleSheet(_OVERLAY_STYLE)
        self.status_label.setVisible(False)
        self.reset_button = QPushButton("Reset day", self.globe_widget)
        self.reset_button.setStyleSheet(_BUTTON_STYLE)
        self.reset_button.clicked.connect(self._handle_reset)  # type: ignore[attr-defined]

        self.clock = SimulationClock(display_cap_s=self._settings.display_cap_s)
        self.orchestrator = FrameOrchestrator(
            self.clock,
            self.registry,
            self._render,
            settings=self._settings,
            presenter=OverlayPresenter(self.timer_label, self.counter_labels),
            state=state
            or SimulationState(rotation_rad=self._settings.initial_rotation_rad),
        )
        self._frame_timer = QTimer(self)
        self._frame_timer.setInterval(FRAME_INTERVAL_MS)
        self._frame_timer.timeout.connect(self.orchestrator.tick)  # type: ignore[attr-defined]

        self._import_thread: QThread | None = None
        self._import_worker: EventImportWorker | None = None
        if events_path is not None:
            self.start_import(events_path)

    def start(self) -> None:
        self.clock.start()
        self._frame_timer.start()

    def _render(self, state: SimulationState) -> None:
        self.globe_widget.render_state(state)

    def _handle_reset(self) -> None:
        self.orchestrator.reset()

    # ------------------------------------------------------------------
    # Event import
    # ------------------------------------------------------------------
    def start_import(self, path: Path) -> None:
        if self._import_thread is not None:
            logger.warning("Import already running; ignoring %s", path)
            return
        self._show_status(f"Loading events from {Path(path).name}…")
        self._import_thread = QThread(self)
        self._import_worker = EventImportWorker(Path(path), self.registry)
        self._import_worker.moveToThread(self._import_thread)
        self._import_thread.started.connect(self._import_worker.run)  # type: ignore[attr-defined]
        self._import_worker.progress.connect(self._handle_import_progress)  # type: ignore[attr-defined]
        self._import_worker.finished.connect(self._handle_import_finished)  # type: ignore[attr-defined]
        self._import_worker.error.connect(self._handle_import_error)  # type: ignore[attr-defined]
        self._import_worker.finished.connect(self._import_thread.quit)  # type: ignore[attr-defined]
        self._import_worker.error.connect(self._import_thread.quit)  # type: ignore[attr-defined]
        self._import_thread.finished.connect(self._cleanup_import)  # type: ignore[attr-defined]
        self._import_thread.start()

    def _handle_import_progress(self, accepted: int) -> None:
        self._show_status(f"Loaded {accepted} events…")

    def _handle_import_finished(self, report) -> None:
        rejected = self.registry.rejected_count
        message = f"{len(self.registry)} events loaded"
        if report.rows_dropped or rejected:
            message += f" ({report.rows_dropped} malformed, {rejected} out of range)"
        self._show_status(message)
        QTimer.singleShot(4000, lambda: self.status_label.setVisible(False))

    def _handle_import_error(self, message: str) -> None:
        logger.error("Event import failed: %s", message)
        self._show_status(f"Event import failed: {message}")

    def _cleanup_import(self) -> None:
        if self._import_worker is not None:
            self._import_worker.deleteLater()
        if self._import_thread is not None:
            self._import_thread.deleteLater()
        self._import_worker = None
        self._import_thread = None

    def _show_status(self, message: str) -> None:
        self.status_label.setText(message)
        self.status_label.adjustSize()
        self.status_label.setVisible(True)
        self._layout_overlays()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------
    def resizeEvent(self, event) -> None:  # pragma: no cover - Qt hook
        super().resizeEvent(event)
        self._layout_overlays()

    def _layout_overlays(self) -> None:
        area: QWidget = self.globe_widget
        self.title_label.adjustSize()
        self.title_label.move((area.width() - self.title_label.width()) // 2, 10)
        for label in (self.timer_label, *self.counter_labels.values()):
            label.adjustSize()
        self.reset_button.adjustSize()
        self.reset_button.move(30, area.height() - self.reset_button.height() - 30)
        self.status_label.move(
            area.width() - self.status_label.width() - 20,
            area.height() - self.status_label.height() - 30,
        )

    def closeEvent(self, event) -> None:  # pragma: no cover - Qt hook
        self._frame_timer.stop()
        if self._import_thread is not None:
            self._import_thread.quit()
            self._import_thread.wait(2000)
        super().closeEvent(event)
