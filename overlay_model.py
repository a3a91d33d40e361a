"""
TraceOverlay data model

ImageTransform is the per-image record owned by the SceneController. It is an
immutable value: every change produces a new instance, so renderers and
gesture routers only ever see copies.
"""

from dataclasses import dataclass, replace
from typing import Any


MIN_SCALE = 0.05
DEFAULT_POSITION = (50.0, 50.0)
DEFAULT_OPACITY = 0.5


@dataclass(frozen=True)
class ImageTransform:
    """Placement of one overlay image in scene coordinates."""
    id: str
    source_ref: Any
    x: float = DEFAULT_POSITION[0]
    y: float = DEFAULT_POSITION[1]
    rotation: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    opacity: float = DEFAULT_OPACITY

    @property
    def display_rotation(self) -> float:
        """Rotation folded into [0, 360) for display; storage is unconstrained."""
        return self.rotation % 360

    def has_valid_scale(self) -> bool:
        return abs(self.scale_x) >= MIN_SCALE and abs(self.scale_y) >= MIN_SCALE

    def moved_to(self, x: float, y: float) -> 'ImageTransform':
        return replace(self, x=x, y=y)

    def with_geometry(self, x: float, y: float, rotation: float,
                      scale_x: float, scale_y: float) -> 'ImageTransform':
        return replace(self, x=x, y=y, rotation=rotation,
                       scale_x=scale_x, scale_y=scale_y)

    def with_opacity(self, opacity: float) -> 'ImageTransform':
        return replace(self, opacity=opacity)

    def geometry(self) -> tuple:
        """The (x, y, rotation, scale_x, scale_y) tuple."""
        return (self.x, self.y, self.rotation, self.scale_x, self.scale_y)
