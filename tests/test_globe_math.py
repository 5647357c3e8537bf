"""Unit tests for the globe projection helpers."""

from __future__ import annotations

from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from eventglobe import globe_math  # noqa: E402


@pytest.mark.parametrize(
    "lat, lon", [(0.0, 0.0), (45.0, -93.0), (-89.9, 179.9), (12.5, -180.0)]
)
def test_projection_lies_on_sphere(lat, lon):
    point = globe_math.project_geo(lat, lon, 2.0)
    assert np.linalg.norm(point) == pytest.approx(2.0)


def test_cardinal_points():
    np.testing.assert_allclose(globe_math.project_geo(0.0, 0.0, 2.0), [2.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(globe_math.project_geo(0.0, 90.0, 2.0), [0.0, 0.0, -2.0], atol=1e-12)
    np.testing.assert_allclose(globe_math.project_geo(90.0, 37.0, 2.0), [0.0, 2.0, 0.0], atol=1e-12)


def test_vectorized_projection_matches_scalar():
    lats = np.array([10.0, -45.0, 60.0])
    lons = np.array([-120.0, 0.0, 33.0])
    batch = globe_math.project_geo_array(lats, lons, 2.0)
    for row, lat, lon in zip(batch, lats, lons):
        np.testing.assert_allclose(row, globe_math.project_geo(lat, lon, 2.0))


def test_offset_outward_extends_radius():
    surface = globe_math.project_geo(45.0, -93.0, 2.0)
    lifted = globe_math.offset_outward(surface, 0.01)
    assert np.linalg.norm(lifted) == pytest.approx(2.01)
    np.testing.assert_allclose(lifted / 2.01, surface / 2.0)


def test_rotate_vector_y_quarter_turn():
    x, y, z = globe_math.rotate_vector_y((1.0, 0.5, 0.0), np.pi / 2)
    assert x == pytest.approx(0.0, abs=1e-12)
    assert y == 0.5
    assert z == pytest.approx(-1.0)


def test_mesh_shapes_and_texture_alignment():
    vertices, indices = globe_math.generate_globe_mesh(2.0, 8, 4)
    assert vertices.shape == (9 * 5, 8)
    assert vertices.dtype == np.float32
    assert indices.shape == (8 * 4 * 6,)
    assert int(indices.max()) < vertices.shape[0]

    # The uv of every vertex agrees with the equirectangular lookup of the
    # location its position projects from.
    row = vertices[2 * 9 + 3]
    lat, lon = 0.0, -180.0 + 3 * 45.0
    np.testing.assert_allclose(row[:3], globe_math.project_geo(lat, lon, 2.0), atol=1e-6)
    np.testing.assert_allclose(row[6:], globe_math.equirect_uv(lat, lon), atol=1e-6)
    np.testing.assert_allclose(np.linalg.norm(vertices[:, 3:6], axis=1), 1.0, atol=1e-6)


def test_mesh_triangles_face_outward():
    vertices, indices = globe_math.generate_globe_mesh(1.0, 16, 8)
    triangles = vertices[indices.reshape(-1, 3), :3].astype(np.float64)
    normals = np.cross(triangles[:, 1] - triangles[:, 0], triangles[:, 2] - triangles[:, 0])
    centroids = triangles.mean(axis=1)
    areas = np.linalg.norm(normals, axis=1)
    facing = np.einsum("ij,ij->i", normals, centroids)
    # Degenerate pole triangles have no area; every other one winds outward.
    assert np.all(facing[areas > 1e-9] > 0.0)
