"""Texture image loading with caching and neutral fallbacks."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import numpy as np
from matplotlib import image as mpl_image

from eventglobe.constants import (
    EARTH_DAYMAP_FILE,
    EARTH_NIGHTMAP_FILE,
    EARTH_SPECULAR_CLOUDS_FILE,
    FALLBACK_DAY_RGB,
    GLOW_SPRITE_FILE,
)

logger = logging.getLogger(__name__)

_PRELOADED_IMAGES: dict[Path, np.ndarray | None] = {}
TEXTURE_LOAD_ORDER: list[tuple[str, Path]] = [
    ("Earth day map", EARTH_DAYMAP_FILE),
    ("Earth night map", EARTH_NIGHTMAP_FILE),
    ("Earth specular/cloud map", EARTH_SPECULAR_CLOUDS_FILE),
    ("Glow sprite", GLOW_SPRITE_FILE),
]


def preload_textures(
    progress_callback: Callable[[str, float], None] | None = None
) -> None:
    """Eagerly load textures so later widget init is instant."""

    total = len(TEXTURE_LOAD_ORDER)
    for index, (label, path) in enumerate(TEXTURE_LOAD_ORDER, start=1):
        if progress_callback:
            progress_callback(f"Loading textures: {label}", (index - 1) / total)
        load_image(path)
        if progress_callback:
            progress_callback(f"Loading textures: {label}", index / total)
    if progress_callback:
        progress_callback("Textures ready", 1.0)


def load_image(path: Path, *, cache_result: bool = True) -> np.ndarray | None:
    """Return the image at ``path`` as ``uint8`` RGB(A), or ``None`` if unusable."""
    path = Path(path)
    if cache_result and path in _PRELOADED_IMAGES:
        return _PRELOADED_IMAGES[path]
    array: np.ndarray | None = None
    if not path.exists():
        logger.warning("Texture %s not found; using fallback", path)
    else:
        try:
            array = _normalize_image(np.asarray(mpl_image.imread(path)))
        except (OSError, ValueError, SyntaxError) as exc:
            logger.warning("Failed to decode texture %s: %s", path, exc)
    if cache_result:
        _PRELOADED_IMAGES[path] = array
    return array


def clear_cache() -> None:
    _PRELOADED_IMAGES.clear()


def _normalize_image(array: np.ndarray) -> np.ndarray:
    if array.dtype != np.uint8:
        array = np.clip(array, 0.0, 1.0)
        array = (array * 255).astype(np.uint8)
    if array.ndim == 2:
        array = np.stack([array, array, array], axis=-1)
    if array.shape[-1] == 1:
        array = np.repeat(array, 3, axis=-1)
    return array


def solid_image(color: tuple[int, ...]) -> np.ndarray:
    """A 1x1 image of ``color``."""
    return np.array(color, dtype=np.uint8).reshape(1, 1, len(color))


def fallback_day_image() -> np.ndarray:
    return solid_image(FALLBACK_DAY_RGB)


def fallback_night_image() -> np.ndarray:
    return solid_image((0, 0, 0))


def fallback_specular_clouds_image() -> np.ndarray:
    # Zero in every channel: no ocean highlight, no clouds.
    return solid_image((0, 0, 0))


def radial_glow_sprite(size: int = 64) -> np.ndarray:
    """Soft white disc with a quadratic falloff, RGBA ``uint8``."""
    coords = (np.arange(size, dtype=np.float64) + 0.5) / size * 2.0 - 1.0
    xx, yy = np.meshgrid(coords, coords)
    radius = np.sqrt(xx * xx + yy * yy)
    alpha = np.clip(1.0 - radius, 0.0, 1.0) ** 2
    rgba = np.empty((size, size, 4), dtype=np.uint8)
    rgba[..., :3] = 255
    rgba[..., 3] = (alpha * 255).astype(np.uint8)
    return rgba


def load_or_fallback(path: Path, fallback: Callable[[], np.ndarray]) -> np.ndarray:
    image = load_image(path)
    return fallback() if image is None else image
