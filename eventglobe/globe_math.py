"""Geographic projection helpers for the globe frame.

The globe frame is Y-up: the north pole sits on +Y, the prime meridian on the
equator points along +X and eastward longitudes rotate toward -Z. The sphere
mesh is tessellated through the same projection, so a texture laid out in
equirectangular form lines up with markers placed by :func:`project_geo`.
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np


def project_geo(latitude_deg: float, longitude_deg: float, radius: float) -> np.ndarray:
    """Map a latitude/longitude pair to a point on a sphere of ``radius``."""
    lat = math.radians(latitude_deg)
    lon = math.radians(longitude_deg)
    return np.array(
        [
            radius * math.cos(lat) * math.cos(lon),
            radius * math.sin(lat),
            radius * math.cos(lat) * math.sin(-lon),
        ],
        dtype=np.float64,
    )


def project_geo_array(
    latitudes_deg: np.ndarray,
    longitudes_deg: np.ndarray,
    radius: float,
) -> np.ndarray:
    """Vectorized :func:`project_geo`; returns an ``(n, 3)`` array."""
    lat = np.radians(np.asarray(latitudes_deg, dtype=np.float64))
    lon = np.radians(np.asarray(longitudes_deg, dtype=np.float64))
    cos_lat = np.cos(lat)
    return np.stack(
        [
            radius * cos_lat * np.cos(lon),
            radius * np.sin(lat),
            radius * cos_lat * np.sin(-lon),
        ],
        axis=-1,
    )


def offset_outward(point: np.ndarray, offset: float) -> np.ndarray:
    """Push ``point`` further from the origin along its own direction."""
    norm = float(np.linalg.norm(point))
    if norm == 0.0:
        return np.array(point, dtype=np.float64)
    return point + point / norm * offset


def equirect_uv(latitude_deg: float, longitude_deg: float) -> tuple[float, float]:
    """Texture coordinate of a location on an equirectangular map (v up)."""
    return (0.5 + longitude_deg / 360.0, 0.5 + latitude_deg / 180.0)


def rotate_vector_y(
    vector: tuple[float, float, float],
    angle_rad: float,
) -> tuple[float, float, float]:
    """Rotate the provided vector around the +Y axis by the given angle."""
    cos_ang = math.cos(angle_rad)
    sin_ang = math.sin(angle_rad)
    x, y, z = vector
    return (cos_ang * x + sin_ang * z, y, -sin_ang * x + cos_ang * z)


def generate_globe_mesh(
    radius: float,
    lon_segments: int,
    lat_segments: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Build an interleaved ``pos(3) normal(3) uv(2)`` sphere and its indices.

    Rows run from the north pole down, columns from -180 to +180 longitude, so
    the seam sits on the antimeridian.
    """
    lats = np.linspace(90.0, -90.0, lat_segments + 1)
    lons = np.linspace(-180.0, 180.0, lon_segments + 1)
    lon_grid, lat_grid = np.meshgrid(lons, lats)
    positions = project_geo_array(lat_grid.ravel(), lon_grid.ravel(), radius)
    normals = positions / radius
    uvs = np.stack(
        [0.5 + lon_grid.ravel() / 360.0, 0.5 + lat_grid.ravel() / 180.0],
        axis=-1,
    )
    vertices = np.hstack([positions, normals, uvs]).astype(np.float32)

    row = lon_segments + 1
    rows = np.arange(lat_segments)[:, None]
    cols = np.arange(lon_segments)[None, :]
    a = (rows * row + cols).ravel()
    b = a + row
    # Counter-clockwise seen from outside.
    indices = np.stack([a, b, a + 1, a + 1, b, b + 1], axis=-1).ravel()
    return vertices, indices.astype(np.uint32)


__all__: Tuple[str, ...] = (
    "equirect_uv",
    "generate_globe_mesh",
    "offset_outward",
    "project_geo",
    "project_geo_array",
    "rotate_vector_y",
)
