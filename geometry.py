"""Point helpers shared by the gesture router and the decoration box math."""

import math

from PyQt6.QtCore import QPointF


def distance(a: QPointF, b: QPointF) -> float:
    """Euclidean distance between two points."""
    return math.hypot(b.x() - a.x(), b.y() - a.y())


def midpoint(a: QPointF, b: QPointF) -> QPointF:
    return QPointF((a.x() + b.x()) / 2, (a.y() + b.y()) / 2)


def rotate_vector(x: float, y: float, degrees: float) -> QPointF:
    """Rotate the vector (x, y) clockwise on screen by ``degrees``."""
    theta = math.radians(degrees)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    return QPointF(x * cos_t - y * sin_t, x * sin_t + y * cos_t)


def angle_of(origin: QPointF, point: QPointF) -> float:
    """Angle in degrees of the vector origin -> point."""
    return math.degrees(math.atan2(point.y() - origin.y(), point.x() - origin.x()))
