"""Tests for texture loading and fallbacks."""

from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pytest
from matplotlib import image as mpl_image

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from eventglobe import textures  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_cache():
    textures.clear_cache()
    yield
    textures.clear_cache()


def test_missing_texture_uses_fallback(tmp_path):
    missing = tmp_path / "day.jpg"
    assert textures.load_image(missing) is None
    image = textures.load_or_fallback(missing, textures.fallback_day_image)
    assert image.shape == (1, 1, 3)
    assert tuple(image[0, 0]) == (11, 42, 63)


def test_fallback_mask_disables_clouds_and_specular():
    mask = textures.fallback_specular_clouds_image()
    assert mask.dtype == np.uint8
    assert not mask.any()


def test_png_is_loaded_as_uint8_and_cached(tmp_path):
    path = tmp_path / "tile.png"
    pixels = np.zeros((4, 6, 3), dtype=np.float32)
    pixels[0, 0] = (1.0, 0.5, 0.0)
    mpl_image.imsave(path, pixels)

    first = textures.load_image(path)
    assert first is not None
    assert first.dtype == np.uint8
    assert first.shape[:2] == (4, 6)
    assert tuple(first[0, 0, :3]) == (255, 127, 0) or tuple(first[0, 0, :3]) == (255, 128, 0)
    assert textures.load_image(path) is first

    textures.clear_cache()
    assert textures.load_image(path) is not first


def test_undecodable_texture_is_skipped(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")
    assert textures.load_image(path, cache_result=False) is None


def test_preload_reports_progress(monkeypatch, tmp_path):
    monkeypatch.setattr(
        textures, "TEXTURE_LOAD_ORDER", [("Day", tmp_path / "a.jpg"), ("Night", tmp_path / "b.jpg")]
    )
    seen = []
    textures.preload_textures(lambda message, value: seen.append(value))
    assert seen[0] == 0.0
    assert seen[-1] == 1.0
    assert seen == sorted(seen)


def test_glow_sprite_is_brightest_in_the_middle():
    sprite = textures.radial_glow_sprite(32)
    assert sprite.shape == (32, 32, 4)
    alpha = sprite[..., 3].astype(int)
    assert alpha[16, 16] > alpha[16, 4] > alpha[16, 0]
    assert alpha[0, 0] == 0
