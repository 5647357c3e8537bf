from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

import moderngl
import numpy as np
from matplotlib import colors as mpl_colors
from PySide6.QtCore import QPoint, QSize, Qt
from PySide6.QtGui import QMouseEvent, QSurfaceFormat, QWheelEvent
from PySide6.QtOpenGLWidgets import QOpenGLWidget

from eventglobe.constants import (
    CAMERA_FAR,
    CAMERA_FOV_DEG,
    CAMERA_NEAR,
    CAMERA_START_POSITION,
    CLEAR_COLOR,
    EARTH_DAYMAP_FILE,
    EARTH_NIGHTMAP_FILE,
    EARTH_SPECULAR_CLOUDS_FILE,
    GLOBE_SEGMENTS,
    GLOW_SPRITE_FILE,
    MARKER_COLOR,
    MARKER_SIZE,
    MAX_PIXEL_RATIO,
)
from eventglobe.globe_math import generate_globe_mesh
from eventglobe.markers import EventMarkerRegistry
from eventglobe.models import GlobeSettings, SimulationState
from eventglobe.shading import (
    ATMOSPHERE_FRAGMENT_SHADER,
    GLOBE_FRAGMENT_SHADER,
    MARKER_FRAGMENT_SHADER,
    MARKER_VERTEX_SHADER,
    SURFACE_VERTEX_SHADER,
    ShadingParameters,
    apply_uniforms,
    atmosphere_uniforms,
    globe_uniforms,
)
from eventglobe.textures import (
    fallback_day_image,
    fallback_night_image,
    fallback_specular_clouds_image,
    load_or_fallback,
    radial_glow_sprite,
)

logger = logging.getLogger(__name__)

_MARKER_INITIAL_CAPACITY = 1024


class RenderDeviceError(RuntimeError):
    """Raised when no usable OpenGL 3.3 context can be created."""


@dataclass(frozen=True)
class MeshBuffers:
    """Container for shared vertex/index buffers."""

    vbo: moderngl.Buffer
    ibo: moderngl.Buffer
    vertex_count: int
    index_element_size: int


def _perspective(fov_deg: float, aspect: float, near: float, far: float) -> np.ndarray:
    f = 1.0 / math.tan(math.radians(fov_deg) / 2.0)
    proj = np.zeros((4, 4), dtype=np.float32)
    proj[0, 0] = f / max(aspect, 1e-6)
    proj[1, 1] = f
    proj[2, 2] = (far + near) / (near - far)
    proj[2, 3] = (2 * far * near) / (near - far)
    proj[3, 2] = -1.0
    return proj


def _look_at(eye: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    forward = target - eye
    forward /= np.linalg.norm(forward)
    right = np.cross(forward, up)
    right /= np.linalg.norm(right)
    real_up = np.cross(right, forward)
    view = np.identity(4, dtype=np.float32)
    view[0, :3] = right
    view[1, :3] = real_up
    view[2, :3] = -forward
    view[:3, 3] = -view[:3, :3] @ eye
    return view


def _rotation_y(angle_rad: float) -> np.ndarray:
    c = math.cos(angle_rad)
    s = math.sin(angle_rad)
    rot = np.identity(4, dtype=np.float32)
    rot[0, 0] = c
    rot[0, 2] = s
    rot[2, 0] = -s
    rot[2, 2] = c
    return rot


def _scale(value: float) -> np.ndarray:
    mat = np.identity(4, dtype=np.float32)
    mat[0, 0] = value
    mat[1, 1] = value
    mat[2, 2] = value
    return mat


def _gl_bytes(mat: np.ndarray) -> bytes:
    return np.asarray(mat, dtype=np.float32).T.tobytes()


class OrbitCamera:
    """Y-up orbit camera circling the origin, with damped drag rotation."""

    def __init__(
        self,
        *,
        position: Iterable[float] = CAMERA_START_POSITION,
        view_angle_deg: float = CAMERA_FOV_DEG,
        damping: float = 0.9,
    ) -> None:
        x, y, z = (float(v) for v in position)
        self.view_angle_deg = view_angle_deg
        self._base_distance = math.sqrt(x * x + y * y + z * z)
        self._base_azimuth = math.atan2(x, z)
        self._base_pitch = math.asin(y / self._base_distance)
        self.azimuth_rad = self._base_azimuth
        self.pitch_rad = self._base_pitch
        self._zoom_scale = 1.0
        self._damping = damping
        self._velocity = np.zeros(2, dtype=np.float32)
        self._pitch_limits = (math.radians(-89.5), math.radians(89.5))
        self._update_position()

    def _update_position(self) -> None:
        self.pitch_rad = float(
            np.clip(self.pitch_rad, self._pitch_limits[0], self._pitch_limits[1])
        )
        distance = self._base_distance * self._zoom_scale
        cos_pitch = math.cos(self.pitch_rad)
        self.position = np.array(
            [
                distance * cos_pitch * math.sin(self.azimuth_rad),
                distance * math.sin(self.pitch_rad),
                distance * cos_pitch * math.cos(self.azimuth_rad),
            ],
            dtype=np.float32,
        )

    def drag(self, yaw_delta: float, pitch_delta: float) -> None:
        self.azimuth_rad = (self.azimuth_rad + yaw_delta) % (2 * math.pi)
        self.pitch_rad += pitch_delta
        self._velocity = np.array([yaw_delta, pitch_delta], dtype=np.float32)
        self._update_position()

    def halt(self) -> None:
        self._velocity[:] = 0.0

    def update(self) -> bool:
        """Apply one step of damped motion. Returns True while still moving."""
        if float(np.linalg.norm(self._velocity)) < 1e-5:
            self._velocity[:] = 0.0
            return False
        self._velocity *= self._damping
        yaw_delta, pitch_delta = self._velocity
        self.azimuth_rad = (self.azimuth_rad + float(yaw_delta)) % (2 * math.pi)
        self.pitch_rad += float(pitch_delta)
        self._update_position()
        return True

    def zoom_by(self, factor: float) -> None:
        self._zoom_scale = float(np.clip(self._zoom_scale * factor, 0.35, 3.0))
        self._update_position()

    def reset(self) -> None:
        self.azimuth_rad = self._base_azimuth
        self.pitch_rad = self._base_pitch
        self._zoom_scale = 1.0
        self.halt()
        self._update_position()

    def view_matrix(self) -> np.ndarray:
        target = np.zeros(3, dtype=np.float32)
        up = np.array([0.0, 1.0, 0.0], dtype=np.float32)
        return _look_at(self.position.copy(), target, up)


class GlobeWidget(QOpenGLWidget):
    """ModernGL globe with day/night shading, atmosphere shell and event markers."""

    def __init__(
        self,
        registry: EventMarkerRegistry,
        parent=None,
        *,
        settings: GlobeSettings | None = None,
        shading: ShadingParameters | None = None,
    ) -> None:
        super().__init__(parent)
        fmt = QSurfaceFormat()
        fmt.setVersion(3, 3)
        fmt.setProfile(QSurfaceFormat.OpenGLContextProfile.CoreProfile)
        fmt.setDepthBufferSize(24)
        fmt.setSamples(4)
        self.setFormat(fmt)
        self.setMouseTracking(True)
        self._registry = registry
        self._settings = settings or GlobeSettings()
        self._shading = shading or ShadingParameters()
        self._ctx: moderngl.Context | None = None
        self._framebuffer: moderngl.Framebuffer | None = None
        self._camera = OrbitCamera()
        self._projection = np.identity(4, dtype=np.float32)
        self._viewport_height_px = 1
        self._state = SimulationState(rotation_rad=self._settings.initial_rotation_rad)
        self._clear_color = mpl_colors.to_rgb(CLEAR_COLOR)
        self._marker_color = mpl_colors.to_rgb(MARKER_COLOR)
        self._mesh_buffers: dict[str, MeshBuffers] = {}
        self._programs: dict[str, moderngl.Program] = {}
        self._vaos: dict[str, moderngl.VertexArray] = {}
        self._textures: dict[str, moderngl.Texture] = {}
        self._marker_capacity = 0
        self._marker_uploaded = 0
        self._marker_position_vbo: moderngl.Buffer | None = None
        self._marker_opacity_vbo: moderngl.Buffer | None = None
        self._opacity_scratch = np.zeros(0, dtype=np.float32)
        self._mouse_last_pos = QPoint()

    def sizeHint(self) -> QSize:  # pragma: no cover - Qt hook
        return QSize(960, 720)

    # ------------------------------------------------------------------
    # Qt / ModernGL lifecycle hooks
    # ------------------------------------------------------------------
    def initializeGL(self) -> None:  # pragma: no cover - GPU init
        try:
            self._ctx = moderngl.create_context(require=330)
        except Exception as exc:
            raise RenderDeviceError(f"OpenGL 3.3 context unavailable: {exc}") from exc
        logger.info("OpenGL renderer: %s", self._ctx.info.get("GL_RENDERER"))
        self._ctx.enable(moderngl.DEPTH_TEST | moderngl.CULL_FACE | moderngl.PROGRAM_POINT_SIZE)
        self._compile_programs()
        self._build_meshes()
        self._load_textures()
        self._build_vaos()
        self._ensure_marker_capacity(_MARKER_INITIAL_CAPACITY)

    def resizeGL(self, width: int, height: int) -> None:  # pragma: no cover - Qt hook
        if self._ctx is None:
            return
        self._bind_default_framebuffer(width, height)
        aspect = width / max(height, 1)
        self._projection = _perspective(
            self._camera.view_angle_deg, aspect, CAMERA_NEAR, CAMERA_FAR
        )

    def paintGL(self) -> None:  # pragma: no cover - Qt hook
        if self._ctx is None:
            return
        self._bind_default_framebuffer(self.width(), self.height())
        self._ctx.clear(*self._clear_color, 1.0)
        view = self._camera.view_matrix()
        model = _rotation_y(self._state.rotation_rad)
        self._sync_markers()
        self._draw_globe(view, model)
        self._draw_markers(view, model)
        self._draw_atmosphere(view)

    def _pixel_ratio(self) -> float:
        dpr = self.devicePixelRatioF() if hasattr(self, "devicePixelRatioF") else 1.0
        return min(dpr, MAX_PIXEL_RATIO)

    def _bind_default_framebuffer(self, width: int, height: int) -> None:
        if self._ctx is None:
            return
        self._framebuffer = self._ctx.detect_framebuffer()
        self._framebuffer.use()
        dpr = self._pixel_ratio()
        width_px = max(int(width * dpr), 1)
        height_px = max(int(height * dpr), 1)
        self._viewport_height_px = height_px
        self._ctx.viewport = (0, 0, width_px, height_px)

    # ------------------------------------------------------------------
    # Public API for the frame loop
    # ------------------------------------------------------------------
    def render_state(self, state: SimulationState) -> None:
        """Adopt ``state`` for the next paint and schedule a repaint."""
        self._state = state
        self._camera.update()
        self.update()

    def reset_camera(self) -> None:
        self._camera.reset()
        self.update()

    # ------------------------------------------------------------------
    # Mouse interaction (orbit controls)
    # ------------------------------------------------------------------
    def mousePressEvent(self, event: QMouseEvent) -> None:  # pragma: no cover - Qt hook
        if event.button() == Qt.MouseButton.LeftButton:
            self._mouse_last_pos = event.pos()
            self._camera.halt()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:  # pragma: no cover - Qt hook
        if event.buttons() & Qt.MouseButton.LeftButton:
            delta = event.pos() - self._mouse_last_pos
            self._mouse_last_pos = event.pos()
            rotation_sensitivity = 0.005
            self._camera.drag(
                -delta.x() * rotation_sensitivity,
                delta.y() * rotation_sensitivity * 0.6,
            )
            self.update()
        super().mouseMoveEvent(event)

    def wheelEvent(self, event: QWheelEvent) -> None:  # pragma: no cover - Qt hook
        delta = event.angleDelta().y()
        if delta == 0:
            delta = event.pixelDelta().y()
        if delta != 0:
            self._camera.zoom_by(math.exp(-0.12 * delta / 120.0))
            self.update()
        super().wheelEvent(event)

    # ------------------------------------------------------------------
    # Internal rendering helpers
    # ------------------------------------------------------------------
    def _compile_programs(self) -> None:
        assert self._ctx is not None
        self._programs["globe"] = self._ctx.program(
            vertex_shader=SURFACE_VERTEX_SHADER,
            fragment_shader=GLOBE_FRAGMENT_SHADER,
        )
        self._programs["atmosphere"] = self._ctx.program(
            vertex_shader=SURFACE_VERTEX_SHADER,
            fragment_shader=ATMOSPHERE_FRAGMENT_SHADER,
        )
        self._programs["markers"] = self._ctx.program(
            vertex_shader=MARKER_VERTEX_SHADER,
            fragment_shader=MARKER_FRAGMENT_SHADER,
        )

    def _build_meshes(self) -> None:
        assert self._ctx is not None
        vertices, indices = generate_globe_mesh(
            self._settings.radius, GLOBE_SEGMENTS, GLOBE_SEGMENTS
        )
        self._mesh_buffers["globe"] = MeshBuffers(
            vbo=self._ctx.buffer(vertices.tobytes()),
            ibo=self._ctx.buffer(indices.tobytes()),
            vertex_count=len(indices),
            index_element_size=indices.dtype.itemsize,
        )

    def _load_textures(self) -> None:
        self._textures["day"] = self._upload_texture(
            load_or_fallback(EARTH_DAYMAP_FILE, fallback_day_image), mipmaps=True
        )
        self._textures["night"] = self._upload_texture(
            load_or_fallback(EARTH_NIGHTMAP_FILE, fallback_night_image), mipmaps=True
        )
        self._textures["specular_clouds"] = self._upload_texture(
            load_or_fallback(EARTH_SPECULAR_CLOUDS_FILE, fallback_specular_clouds_image),
            mipmaps=True,
        )
        sprite = load_or_fallback(GLOW_SPRITE_FILE, radial_glow_sprite)
        if sprite.shape[2] == 3:
            # Treat luminance as coverage for sprites without alpha.
            alpha = sprite.max(axis=2, keepdims=True)
            sprite = np.concatenate([sprite, alpha], axis=-1)
        self._textures["sprite"] = self._upload_texture(sprite, mipmaps=False)

    def _upload_texture(self, image: np.ndarray, *, mipmaps: bool) -> moderngl.Texture:
        assert self._ctx is not None
        # Image rows run top-down; GL expects the first row at v = 0.
        data = np.ascontiguousarray(np.flipud(image))
        texture = self._ctx.texture(data.shape[1::-1], data.shape[2], data.tobytes())
        if mipmaps:
            texture.build_mipmaps()
            texture.filter = (moderngl.LINEAR_MIPMAP_LINEAR, moderngl.LINEAR)
            texture.anisotropy = 8.0
        else:
            texture.filter = (moderngl.LINEAR, moderngl.LINEAR)
        return texture

    def _build_vaos(self) -> None:
        assert self._ctx is not None
        mesh = self._mesh_buffers["globe"]
        layout = "3f 3f 2f"
        attrs = ("in_pos", "in_normal", "in_uv")
        for key in ("globe", "atmosphere"):
            self._vaos[key] = self._ctx.vertex_array(
                self._programs[key],
                [(mesh.vbo, layout, *attrs)],
                mesh.ibo,
                index_element_size=mesh.index_element_size,
            )

    def _ensure_marker_capacity(self, required: int) -> None:
        assert self._ctx is not None
        if required <= self._marker_capacity:
            return
        capacity = max(_MARKER_INITIAL_CAPACITY, self._marker_capacity)
        while capacity < required:
            capacity *= 2
        for buffer in (self._marker_position_vbo, self._marker_opacity_vbo):
            if buffer is not None:
                buffer.release()
        self._marker_position_vbo = self._ctx.buffer(reserve=capacity * 3 * 4)
        self._marker_opacity_vbo = self._ctx.buffer(reserve=capacity * 4)
        self._opacity_scratch = np.zeros(capacity, dtype=np.float32)
        self._marker_capacity = capacity
        self._marker_uploaded = 0
        previous = self._vaos.pop("markers", None)
        if previous is not None:
            previous.release()
        self._vaos["markers"] = self._ctx.vertex_array(
            self._programs["markers"],
            [
                (self._marker_position_vbo, "3f", "in_pos"),
                (self._marker_opacity_vbo, "1f", "in_opacity"),
            ],
        )
        logger.debug("Marker buffers sized for %d points", capacity)

    def _sync_markers(self) -> None:
        count = len(self._registry)
        if count > self._marker_capacity:
            self._ensure_marker_capacity(count)
        if count > self._marker_uploaded and self._marker_position_vbo is not None:
            fresh = self._registry.positions_since(self._marker_uploaded)
            self._marker_position_vbo.write(
                fresh.astype(np.float32).tobytes(), offset=self._marker_uploaded * 12
            )
            self._marker_uploaded += len(fresh)
            logger.debug("Uploaded %d marker positions", len(fresh))

    def _draw_globe(self, view: np.ndarray, model: np.ndarray) -> None:
        assert self._ctx is not None
        prog = self._programs["globe"]
        prog["mvp"].write(_gl_bytes(self._projection @ view @ model))
        prog["model"].write(_gl_bytes(model))
        apply_uniforms(
            prog,
            globe_uniforms(self._shading, self._state.sun_direction, self._camera.position),
        )
        self._textures["day"].use(location=0)
        self._textures["night"].use(location=1)
        self._textures["specular_clouds"].use(location=2)
        self._ctx.disable(moderngl.BLEND)
        self._ctx.cull_face = "back"
        self._vaos["globe"].render()

    def _draw_atmosphere(self, view: np.ndarray) -> None:
        assert self._ctx is not None
        prog = self._programs["atmosphere"]
        model = _scale(self._settings.atmosphere_scale)
        prog["mvp"].write(_gl_bytes(self._projection @ view @ model))
        prog["model"].write(_gl_bytes(model))
        apply_uniforms(
            prog,
            atmosphere_uniforms(
                self._shading, self._state.sun_direction, self._camera.position
            ),
        )
        self._ctx.enable(moderngl.BLEND)
        self._ctx.blend_func = (moderngl.SRC_ALPHA, moderngl.ONE)
        # Only the far side of the shell: it shows as a rim around the globe.
        self._ctx.cull_face = "front"
        self._vaos["atmosphere"].render()
        self._ctx.cull_face = "back"
        self._ctx.disable(moderngl.BLEND)

    def _draw_markers(self, view: np.ndarray, model: np.ndarray) -> None:
        if self._marker_uploaded == 0 or self._marker_opacity_vbo is None:
            return
        assert self._ctx is not None and self._framebuffer is not None
        count = self._registry.copy_opacities(self._opacity_scratch)
        count = min(count, self._marker_uploaded)
        if count == 0:
            return
        self._marker_opacity_vbo.write(self._opacity_scratch[:count])
        prog = self._programs["markers"]
        model_view = view @ model
        prog["mvp"].write(_gl_bytes(self._projection @ model_view))
        prog["model_view"].write(_gl_bytes(model_view))
        apply_uniforms(
            prog,
            {
                "point_size": float(MARKER_SIZE),
                "viewport_scale": self._viewport_height_px / 2.0,
                "color": self._marker_color,
                "sprite": 0,
            },
        )
        self._textures["sprite"].use(location=0)
        self._ctx.enable(moderngl.BLEND)
        self._ctx.blend_func = (moderngl.SRC_ALPHA, moderngl.ONE)
        self._framebuffer.depth_mask = False
        self._vaos["markers"].render(mode=moderngl.POINTS, vertices=count)
        self._framebuffer.depth_mask = True
        self._ctx.disable(moderngl.BLEND)
