"""Shared constants for the Event Globe viewer."""

from __future__ import annotations

from pathlib import Path

RESOURCE_DIR = Path(__file__).resolve().parents[1] / "resources"
EARTH_TEXTURE_DIR = RESOURCE_DIR / "earth"
EARTH_DAYMAP_FILE = EARTH_TEXTURE_DIR / "day.jpg"
EARTH_NIGHTMAP_FILE = EARTH_TEXTURE_DIR / "night.jpg"
EARTH_SPECULAR_CLOUDS_FILE = EARTH_TEXTURE_DIR / "specularClouds.jpg"
GLOW_SPRITE_FILE = RESOURCE_DIR / "textures" / "glow-particle.png"
DEFAULT_EVENTS_FILE = RESOURCE_DIR / "data" / "births.csv"

GLOBE_RADIUS = 2.0
GLOBE_SEGMENTS = 64
ATMOSPHERE_SCALE = 1.04
INITIAL_GLOBE_ROTATION_RAD = 120.0
ROTATION_STEP_RAD = 0.0001  # per frame
NOMINAL_FRAME_RATE_HZ = 60.0

ATMOSPHERE_DAY_COLOR = "#00aaff"
ATMOSPHERE_TWILIGHT_COLOR = "#ff6600"
CLEAR_COLOR = "#000011"
FALLBACK_DAY_RGB = (11, 42, 63)

MARKER_SURFACE_OFFSET = 0.01
MARKER_VISIBLE_SECONDS = 5.0
MARKER_FADE_SECONDS = 0.2
MARKER_COLOR = "#ffff99"
MARKER_SIZE = 0.2

CLOCK_DISPLAY_CAP_S = 60.0

CAMERA_FOV_DEG = 25.0
CAMERA_NEAR = 0.1
CAMERA_FAR = 100.0
CAMERA_START_POSITION = (12.0, 5.0, 4.0)
MAX_PIXEL_RATIO = 2.0
FRAME_INTERVAL_MS = 16

# Events per elapsed unit, per category.
COUNTER_RATES = {
    "Total Births": 251.5692,
    "Africa": 88.579302,
    "Asia": 124.433890,
    "Europe": 11.918565,
    "South America": 17.684384,
    "North America": 7.631918,
    "Oceania": 1.321191,
}
