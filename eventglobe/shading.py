"""Day/night surface shading and atmosphere scattering.

The GPU programs below are mirrored by numpy functions with the same math so
the blend behaviour can be checked without a GL context. Vectors are given as
arrays whose last axis holds xyz; colors as arrays whose last axis holds rgb in
``[0, 1]``. ``view_dir`` always points from the surface toward the camera.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

import numpy as np
from matplotlib import colors as mpl_colors

from eventglobe.constants import ATMOSPHERE_DAY_COLOR, ATMOSPHERE_TWILIGHT_COLOR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShadingParameters:
    """Tunable constants shared by the numpy model and the GLSL programs."""

    atmosphere_day_color: str = ATMOSPHERE_DAY_COLOR
    atmosphere_twilight_color: str = ATMOSPHERE_TWILIGHT_COLOR
    # Terminator band: dot(normal, sun) values where night starts/ends fading.
    day_band: tuple[float, float] = (-0.25, 0.5)
    cloud_band: tuple[float, float] = (0.5, 1.0)
    atmosphere_band: tuple[float, float] = (-0.5, 1.0)
    atmosphere_alpha_band: tuple[float, float] = (-0.5, 0.0)
    fresnel_exponent: float = 2.0
    edge_exponent: float = 2.0
    specular_exponent: float = 32.0

    def day_rgb(self) -> np.ndarray:
        return np.asarray(mpl_colors.to_rgb(self.atmosphere_day_color))

    def twilight_rgb(self) -> np.ndarray:
        return np.asarray(mpl_colors.to_rgb(self.atmosphere_twilight_color))


def smoothstep(edge0: float, edge1: float, x: np.ndarray | float) -> np.ndarray:
    """GLSL ``smoothstep``."""
    if edge0 == edge1:
        return np.where(np.asarray(x) < edge0, 0.0, 1.0)
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def mix(a: np.ndarray, b: np.ndarray, t: np.ndarray | float) -> np.ndarray:
    """GLSL ``mix`` broadcasting ``t`` over the color axis."""
    t_arr = np.asarray(t, dtype=np.float64)
    if t_arr.ndim:
        t_arr = t_arr[..., None]
    return np.asarray(a) * (1.0 - t_arr) + np.asarray(b) * t_arr


def _dot(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return np.sum(np.asarray(a) * np.asarray(b), axis=-1)


def _normalize(v: np.ndarray) -> np.ndarray:
    v = np.asarray(v, dtype=np.float64)
    norm = np.linalg.norm(v, axis=-1, keepdims=True)
    return v / np.maximum(norm, 1e-12)


def reflect(incident: np.ndarray, normal: np.ndarray) -> np.ndarray:
    """GLSL ``reflect``."""
    return incident - 2.0 * np.asarray(_dot(normal, incident))[..., None] * normal


def sun_facing(normal: np.ndarray, sun_direction: np.ndarray) -> np.ndarray:
    """Cosine between surface normal and sun, in ``[-1, 1]``."""
    return _dot(_normalize(normal), _normalize(sun_direction))


def day_night_mix(
    facing: np.ndarray | float,
    params: ShadingParameters = ShadingParameters(),
) -> np.ndarray:
    """Weight of the day texture: 0 on the night side, 1 on the day side."""
    return smoothstep(params.day_band[0], params.day_band[1], facing)


def blend_day_night(
    day: np.ndarray,
    night: np.ndarray,
    facing: np.ndarray | float,
    params: ShadingParameters = ShadingParameters(),
) -> np.ndarray:
    return mix(night, day, day_night_mix(facing, params))


def atmosphere_color(
    facing: np.ndarray | float,
    params: ShadingParameters = ShadingParameters(),
) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(color, day_mix)`` of the scattering tint for a sun cosine."""
    atmo_mix = smoothstep(params.atmosphere_band[0], params.atmosphere_band[1], facing)
    color = mix(params.twilight_rgb(), params.day_rgb(), atmo_mix)
    return color, atmo_mix


def shade_globe(
    normal: np.ndarray,
    view_dir: np.ndarray,
    day: np.ndarray,
    night: np.ndarray,
    specular_clouds: np.ndarray | None,
    sun_direction: np.ndarray,
    params: ShadingParameters = ShadingParameters(),
) -> np.ndarray:
    """Opaque globe color for each fragment.

    ``specular_clouds`` carries the land/ocean specular strength in its first
    channel and cloud density in its second. ``None`` means no mask was
    loaded: no specular highlight and no clouds.
    """
    normal = _normalize(normal)
    view_dir = _normalize(view_dir)
    sun = _normalize(sun_direction)
    facing = _dot(normal, sun)

    day_mix = day_night_mix(facing, params)
    color = mix(night, day, day_mix)

    if specular_clouds is None:
        mask = np.zeros(np.shape(day)[:-1] + (2,))
    else:
        mask = np.asarray(specular_clouds, dtype=np.float64)
    cloud_mix = smoothstep(params.cloud_band[0], params.cloud_band[1], mask[..., 1])
    cloud_mix = cloud_mix * day_mix
    color = mix(color, np.ones(3), cloud_mix)

    fresnel = np.power(np.clip(1.0 - _dot(view_dir, normal), 0.0, 2.0), params.fresnel_exponent)
    atmo, atmo_mix = atmosphere_color(facing, params)
    color = mix(color, atmo, fresnel * atmo_mix)

    reflection = reflect(-np.broadcast_to(sun, normal.shape), normal)
    specular = np.power(np.maximum(_dot(reflection, view_dir), 0.0), params.specular_exponent)
    specular = np.asarray(specular * mask[..., 0])
    specular_color = mix(np.ones(3), atmo, fresnel)
    return color + specular[..., None] * specular_color


def shade_atmosphere(
    normal: np.ndarray,
    view_dir: np.ndarray,
    sun_direction: np.ndarray,
    params: ShadingParameters = ShadingParameters(),
) -> np.ndarray:
    """RGBA of the enlarged atmosphere shell; alpha rises toward the limb."""
    normal = _normalize(normal)
    view_dir = _normalize(view_dir)
    facing = _dot(normal, _normalize(sun_direction))

    atmo, _ = atmosphere_color(facing, params)
    edge = np.power(1.0 - np.abs(_dot(view_dir, normal)), params.edge_exponent)
    day_alpha = smoothstep(
        params.atmosphere_alpha_band[0], params.atmosphere_alpha_band[1], facing
    )
    alpha = np.asarray(edge * day_alpha)
    return np.concatenate([np.broadcast_to(atmo, np.shape(alpha) + (3,)), alpha[..., None]], axis=-1)


# ----------------------------------------------------------------------
# GPU programs
# ----------------------------------------------------------------------
SURFACE_VERTEX_SHADER = """
    #version 330
    uniform mat4 mvp;
    uniform mat4 model;
    in vec3 in_pos;
    in vec3 in_normal;
    in vec2 in_uv;
    out vec2 v_uv;
    out vec3 v_normal;
    out vec3 v_world_pos;
    void main() {
        vec4 world = model * vec4(in_pos, 1.0);
        gl_Position = mvp * vec4(in_pos, 1.0);
        v_uv = in_uv;
        v_normal = mat3(model) * in_normal;
        v_world_pos = world.xyz;
    }
"""

GLOBE_FRAGMENT_SHADER = """
    #version 330
    uniform sampler2D day_tex;
    uniform sampler2D night_tex;
    uniform sampler2D specular_clouds_tex;
    uniform vec3 sun_direction;
    uniform vec3 camera_pos;
    uniform vec3 atmosphere_day_color;
    uniform vec3 atmosphere_twilight_color;
    uniform vec2 day_band;
    uniform vec2 cloud_band;
    uniform vec2 atmosphere_band;
    uniform float fresnel_exponent;
    uniform float specular_exponent;
    in vec2 v_uv;
    in vec3 v_normal;
    in vec3 v_world_pos;
    out vec4 fragColor;
    void main() {
        vec3 normal = normalize(v_normal);
        vec3 view_dir = normalize(camera_pos - v_world_pos);
        vec3 sun = normalize(sun_direction);
        float facing = dot(normal, sun);

        float day_mix = smoothstep(day_band.x, day_band.y, facing);
        vec3 color = mix(texture(night_tex, v_uv).rgb, texture(day_tex, v_uv).rgb, day_mix);

        vec2 mask = texture(specular_clouds_tex, v_uv).rg;
        float cloud_mix = smoothstep(cloud_band.x, cloud_band.y, mask.g) * day_mix;
        color = mix(color, vec3(1.0), cloud_mix);

        float fresnel = pow(clamp(1.0 - dot(view_dir, normal), 0.0, 2.0), fresnel_exponent);
        float atmo_mix = smoothstep(atmosphere_band.x, atmosphere_band.y, facing);
        vec3 atmo = mix(atmosphere_twilight_color, atmosphere_day_color, atmo_mix);
        color = mix(color, atmo, fresnel * atmo_mix);

        vec3 reflection = reflect(-sun, normal);
        float specular = pow(max(dot(reflection, view_dir), 0.0), specular_exponent) * mask.r;
        color += specular * mix(vec3(1.0), atmo, fresnel);

        fragColor = vec4(color, 1.0);
    }
"""

ATMOSPHERE_FRAGMENT_SHADER = """
    #version 330
    uniform vec3 sun_direction;
    uniform vec3 camera_pos;
    uniform vec3 atmosphere_day_color;
    uniform vec3 atmosphere_twilight_color;
    uniform vec2 atmosphere_band;
    uniform vec2 atmosphere_alpha_band;
    uniform float edge_exponent;
    in vec2 v_uv;
    in vec3 v_normal;
    in vec3 v_world_pos;
    out vec4 fragColor;
    void main() {
        vec3 normal = normalize(v_normal);
        vec3 view_dir = normalize(camera_pos - v_world_pos);
        float facing = dot(normal, normalize(sun_direction));

        float atmo_mix = smoothstep(atmosphere_band.x, atmosphere_band.y, facing);
        vec3 atmo = mix(atmosphere_twilight_color, atmosphere_day_color, atmo_mix);

        float edge = pow(1.0 - abs(dot(view_dir, normal)), edge_exponent);
        float day_alpha = smoothstep(atmosphere_alpha_band.x, atmosphere_alpha_band.y, facing);
        fragColor = vec4(atmo, edge * day_alpha);
    }
"""

MARKER_VERTEX_SHADER = """
    #version 330
    uniform mat4 mvp;
    uniform mat4 model_view;
    uniform float point_size;
    uniform float viewport_scale;
    in vec3 in_pos;
    in float in_opacity;
    out float v_opacity;
    void main() {
        vec4 eye = model_view * vec4(in_pos, 1.0);
        gl_Position = mvp * vec4(in_pos, 1.0);
        gl_PointSize = point_size * viewport_scale / max(-eye.z, 1e-4);
        v_opacity = in_opacity;
    }
"""

MARKER_FRAGMENT_SHADER = """
    #version 330
    uniform sampler2D sprite;
    uniform vec3 color;
    in float v_opacity;
    out vec4 fragColor;
    void main() {
        if (v_opacity <= 0.0) {
            discard;
        }
        vec4 texel = texture(sprite, gl_PointCoord);
        fragColor = vec4(color * texel.rgb, texel.a * v_opacity);
    }
"""


def _vec3(value: np.ndarray) -> tuple[float, float, float]:
    arr = np.asarray(value, dtype=np.float64).ravel()
    return (float(arr[0]), float(arr[1]), float(arr[2]))


def globe_uniforms(
    params: ShadingParameters,
    sun_direction: np.ndarray,
    camera_pos: np.ndarray,
) -> Dict[str, Any]:
    """Uniform values for :data:`GLOBE_FRAGMENT_SHADER` (matrices excluded)."""
    return {
        "sun_direction": _vec3(_normalize(sun_direction)),
        "camera_pos": _vec3(camera_pos),
        "atmosphere_day_color": _vec3(params.day_rgb()),
        "atmosphere_twilight_color": _vec3(params.twilight_rgb()),
        "day_band": tuple(float(v) for v in params.day_band),
        "cloud_band": tuple(float(v) for v in params.cloud_band),
        "atmosphere_band": tuple(float(v) for v in params.atmosphere_band),
        "fresnel_exponent": float(params.fresnel_exponent),
        "specular_exponent": float(params.specular_exponent),
        "day_tex": 0,
        "night_tex": 1,
        "specular_clouds_tex": 2,
    }


def atmosphere_uniforms(
    params: ShadingParameters,
    sun_direction: np.ndarray,
    camera_pos: np.ndarray,
) -> Dict[str, Any]:
    """Uniform values for :data:`ATMOSPHERE_FRAGMENT_SHADER`."""
    return {
        "sun_direction": _vec3(_normalize(sun_direction)),
        "camera_pos": _vec3(camera_pos),
        "atmosphere_day_color": _vec3(params.day_rgb()),
        "atmosphere_twilight_color": _vec3(params.twilight_rgb()),
        "atmosphere_band": tuple(float(v) for v in params.atmosphere_band),
        "atmosphere_alpha_band": tuple(float(v) for v in params.atmosphere_alpha_band),
        "edge_exponent": float(params.edge_exponent),
    }


def apply_uniforms(program: Any, values: Mapping[str, Any]) -> None:
    """Write ``values`` into a ModernGL program.

    Drivers strip uniforms that do not contribute to the output; those names
    are missing from the program and are skipped.
    """
    for name, value in values.items():
        try:
            uniform = program[name]
        except KeyError:
            logger.debug("Uniform %s not active in program", name)
            continue
        uniform.value = value
