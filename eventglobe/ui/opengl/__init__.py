"""ModernGL rendering widgets."""

from .globe_widget import GlobeWidget, OrbitCamera, RenderDeviceError

__all__ = ["GlobeWidget", "OrbitCamera", "RenderDeviceError"]
