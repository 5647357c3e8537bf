"""Application entry point for the event globe."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont, QPixmap
from PySide6.QtWidgets import QApplication, QLabel, QProgressBar, QSplashScreen

from eventglobe.constants import COUNTER_RATES, DEFAULT_EVENTS_FILE, RESOURCE_DIR
from eventglobe.frame import ROTATION_MODES, sun_direction_from_spherical
from eventglobe.markers import EventMarkerRegistry
from eventglobe.models import GlobeSettings, MarkerSettings, SimulationState
from eventglobe.textures import preload_textures
from eventglobe.ui.main_window import EventGlobeWindow

logger = logging.getLogger(__name__)


class LoadingSplashScreen(QSplashScreen):
    """Splash screen with a progress label/bar while textures load."""

    def __init__(self, pixmap: QPixmap) -> None:
        super().__init__(pixmap)
        bar_width = max(240, min(pixmap.width() - 40, 480))
        bar_height = 26
        bar_x = (pixmap.width() - bar_width) // 2
        bar_y = pixmap.height() - bar_height - 24

        self._label = QLabel("Loading textures…", self)
        self._label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._label.setStyleSheet("color: white; font-size: 14px; font-weight: 600;")
        self._label.setGeometry(10, bar_y - 32, pixmap.width() - 20, 24)

        self._progress = QProgressBar(self)
        self._progress.setRange(0, 100)
        self._progress.setValue(0)
        self._progress.setTextVisible(True)
        self._progress.setGeometry(bar_x, bar_y, bar_width, bar_height)

    def update_status(self, message: str, progress: float) -> None:
        percent = int(max(0.0, min(1.0, progress)) * 100)
        self._label.setText(message)
        self._progress.setValue(percent)
        self._progress.setFormat(f"{percent}%")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eventglobe",
        description="Play back geolocated events as glowing markers on a 3D globe.",
    )
    parser.add_argument(
        "events",
        nargs="?",
        type=Path,
        default=DEFAULT_EVENTS_FILE,
        help="CSV file with latitude, longitude and time columns",
    )
    parser.add_argument(
        "--rotation-mode",
        choices=ROTATION_MODES,
        default="frame",
        help="advance globe spin per refresh (frame) or per second (time)",
    )
    parser.add_argument(
        "--keep-simulating",
        action="store_true",
        help="keep marker playback running after the display cap is reached",
    )
    parser.add_argument(
        "--animate-sun",
        type=float,
        default=0.0,
        metavar="RAD_PER_S",
        help="sweep the sun around the spin axis at this rate",
    )
    parser.add_argument(
        "--sun",
        type=float,
        nargs=2,
        metavar=("PHI", "THETA"),
        help="initial sun direction as polar and azimuth angles in radians",
    )
    parser.add_argument(
        "--binary-markers",
        action="store_true",
        help="show markers without fade ramps",
    )
    parser.add_argument(
        "--show-counters",
        action="store_true",
        help="display the per-region counters under the timer",
    )
    parser.add_argument("--title", default="", help="overlay title text")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def settings_from_args(args: argparse.Namespace) -> tuple[GlobeSettings, MarkerSettings]:
    globe = replace(
        GlobeSettings(),
        rotation_mode=args.rotation_mode,
        freeze_markers_at_cap=not args.keep_simulating,
        sun_azimuth_rate_rad_s=args.animate_sun,
    )
    markers = MarkerSettings()
    if args.binary_markers:
        markers = replace(markers, fade_seconds=0.0)
    return globe, markers


def main(argv: Sequence[str] | None = None) -> int:
    """Start the Qt event loop."""

    args = build_parser().parse_args(argv)
    log_file = Path(__file__).resolve().parents[1] / "application.log"
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        filename=str(log_file),
        filemode="w",
    )

    app = QApplication(sys.argv[:1])
    app.setFont(QFont(app.font().family(), 12))

    splash: LoadingSplashScreen | None = None
    splash_path = RESOURCE_DIR / "img" / "splash.png"
    if splash_path.exists():
        pixmap = QPixmap(str(splash_path))
        if not pixmap.isNull():
            splash = LoadingSplashScreen(pixmap)
            splash.show()
            app.processEvents()

    def _report_progress(message: str, value: float) -> None:
        if not splash:
            return
        splash.update_status(message, value)
        app.processEvents()

    preload_textures(progress_callback=_report_progress if splash else None)

    globe_settings, marker_settings = settings_from_args(args)
    state = SimulationState(rotation_rad=globe_settings.initial_rotation_rad)
    if args.sun is not None:
        state.sun_direction = sun_direction_from_spherical(*args.sun)
    window = EventGlobeWindow(
        args.events,
        settings=globe_settings,
        registry=EventMarkerRegistry(marker_settings),
        visible_counters=COUNTER_RATES if args.show_counters else (),
        title=args.title,
        state=state,
    )
    window.showMaximized()
    window.start()
    logger.info("Event globe started with %s", args.events)

    if splash:
        splash.finish(window)

    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
