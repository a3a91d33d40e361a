"""
Decoration box math for a transformable overlay image.

The decoration box is the image's natural rectangle after scale and rotation:
its origin is the image's top-left anchor in scene coordinates and its width and
height are signed (a negative scale flips the box). Resize and rotate handles
propose new boxes; accepted boxes are mapped back onto an ImageTransform.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from PyQt6.QtCore import QPointF

from geometry import angle_of, rotate_vector
from overlay_model import ImageTransform


MIN_BOX_SIZE = 5.0
ROTATION_SNAPS: Tuple[float, ...] = (0, 45, 90, 135, 180, 225, 270, 315)
ROTATION_SNAP_TOLERANCE = 5.0

# Anchor order: corners clockwise from top-left, then edge midpoints
# clockwise from top.
TOP_LEFT, TOP_RIGHT, BOTTOM_RIGHT, BOTTOM_LEFT = 0, 1, 2, 3
TOP, RIGHT, BOTTOM, LEFT = 4, 5, 6, 7
ANCHOR_COUNT = 8

_MOVES_LEFT = (TOP_LEFT, BOTTOM_LEFT, LEFT)
_MOVES_RIGHT = (TOP_RIGHT, BOTTOM_RIGHT, RIGHT)
_MOVES_TOP = (TOP_LEFT, TOP_RIGHT, TOP)
_MOVES_BOTTOM = (BOTTOM_RIGHT, BOTTOM_LEFT, BOTTOM)


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0

    def origin(self) -> QPointF:
        return QPointF(self.x, self.y)

    def to_scene(self, local_x: float, local_y: float) -> QPointF:
        """Map a point of the box's rotated frame into scene coordinates."""
        return self.origin() + rotate_vector(local_x, local_y, self.rotation)

    def to_local(self, scene_point: QPointF) -> QPointF:
        offset = scene_point - self.origin()
        return rotate_vector(offset.x(), offset.y(), -self.rotation)

    def center(self) -> QPointF:
        return self.to_scene(self.width / 2, self.height / 2)


def decoration_box(transform: ImageTransform, natural_width: float,
                   natural_height: float) -> BoundingBox:
    return BoundingBox(
        transform.x,
        transform.y,
        natural_width * transform.scale_x,
        natural_height * transform.scale_y,
        transform.rotation,
    )


def accept_box(old_box: BoundingBox, new_box: BoundingBox) -> BoundingBox:
    """Keep the previous box when the proposal collapses below MIN_BOX_SIZE."""
    if abs(new_box.width) < MIN_BOX_SIZE or abs(new_box.height) < MIN_BOX_SIZE:
        return old_box
    return new_box


def resize_box(start_box: BoundingBox, anchor: int, press_pos: QPointF,
               scene_pos: QPointF) -> BoundingBox:
    """Move the edges owned by ``anchor`` by the pointer travel since press.

    Travel is measured in the box's rotated frame so edges slide along the
    image axes. Dragging an edge past its opposite flips the box.
    """
    start_local = start_box.to_local(press_pos)
    current_local = start_box.to_local(scene_pos)
    dx = current_local.x() - start_local.x()
    dy = current_local.y() - start_local.y()
    left, top = 0.0, 0.0
    right, bottom = start_box.width, start_box.height
    if anchor in _MOVES_LEFT:
        left += dx
    if anchor in _MOVES_RIGHT:
        right += dx
    if anchor in _MOVES_TOP:
        top += dy
    if anchor in _MOVES_BOTTOM:
        bottom += dy
    origin = start_box.to_scene(left, top)
    return BoundingBox(origin.x(), origin.y(), right - left, bottom - top,
                       start_box.rotation)


def snap_rotation(angle: float, snaps: Sequence[float] = ROTATION_SNAPS,
                  tolerance: float = ROTATION_SNAP_TOLERANCE) -> float:
    """Pull ``angle`` onto the nearest snap angle when within ``tolerance``.

    The unnormalized turn count of ``angle`` is preserved.
    """
    normalized = angle % 360
    for snap in list(snaps) + [360]:
        diff = normalized - snap
        if abs(diff) < tolerance:
            return angle - diff
    return angle


def rotate_box(start_box: BoundingBox, press_pos: QPointF, scene_pos: QPointF,
               snaps: Sequence[float] = ROTATION_SNAPS) -> BoundingBox:
    """Rotate the box about its centre by the pointer's angular travel."""
    center = start_box.center()
    start_angle = angle_of(center, press_pos)
    current_angle = angle_of(center, scene_pos)
    rotation = snap_rotation(start_box.rotation + current_angle - start_angle, snaps)
    half = rotate_vector(start_box.width / 2, start_box.height / 2, rotation)
    origin = center - half
    return BoundingBox(origin.x(), origin.y(), start_box.width, start_box.height, rotation)


def transform_from_box(transform: ImageTransform, box: BoundingBox,
                       natural_width: float, natural_height: float) -> ImageTransform:
    if not natural_width or not natural_height:
        return transform
    return transform.with_geometry(
        box.x,
        box.y,
        box.rotation,
        box.width / natural_width,
        box.height / natural_height,
    )


def _sign(value: float) -> float:
    return -1.0 if value < 0 else 1.0


def handle_positions(box: BoundingBox, padding: float = 0.0,
                     rotate_offset: float = 0.0) -> Tuple[List[QPointF], Optional[QPointF]]:
    """Scene positions of the eight resize anchors and the rotate handle.

    Anchors sit ``padding`` outside the box; the rotate handle sits
    ``rotate_offset`` above the padded top edge.
    """
    pad_x = padding * _sign(box.width)
    pad_y = padding * _sign(box.height)
    left, right = -pad_x, box.width + pad_x
    top, bottom = -pad_y, box.height + pad_y
    mid_x = box.width / 2
    mid_y = box.height / 2
    local_points = [
        (left, top),
        (right, top),
        (right, bottom),
        (left, bottom),
        (mid_x, top),
        (right, mid_y),
        (mid_x, bottom),
        (left, mid_y),
    ]
    anchors = [box.to_scene(x, y) for x, y in local_points]
    rotate = box.to_scene(mid_x, top - rotate_offset * _sign(box.height))
    return anchors, rotate
