"""Persistent preferences and the handle style derived from them."""

import logging
from dataclasses import dataclass
from typing import Optional

from PyQt6.QtCore import QSettings
from PyQt6.QtGui import QInputDevice


logger = logging.getLogger(__name__)


ORGANIZATION = "TraceOverlay"
APPLICATION = "TraceOverlay"

POINTER_KEY = "input/pointer"
CAMERA_ENABLED_KEY = "camera/enabled"

POINTER_AUTO = "auto"
POINTER_COARSE = "coarse"
POINTER_FINE = "fine"

SELECTION_COLOR = "#c4b5fd"
ANCHOR_FILL = "#f5f3ff"


@dataclass(frozen=True)
class HandleStyle:
    """Sizes for the selection outline and handle set, in screen pixels."""
    anchor_size: float
    padding: float
    rotate_offset: float
    outline_width: float
    corner_radius: float
    color: str = SELECTION_COLOR
    anchor_fill: str = ANCHOR_FILL


FINE_STYLE = HandleStyle(anchor_size=16, padding=10, rotate_offset=70,
                         outline_width=2, corner_radius=10)
COARSE_STYLE = HandleStyle(anchor_size=30, padding=18, rotate_offset=96,
                           outline_width=3, corner_radius=14)


def app_settings() -> QSettings:
    return QSettings(ORGANIZATION, APPLICATION)


def has_touchscreen() -> bool:
    for device in QInputDevice.devices():
        if device.type() == QInputDevice.DeviceType.TouchScreen:
            return True
    return False


def pointer_class(settings: Optional[QSettings] = None) -> str:
    value = POINTER_AUTO
    if settings is not None:
        value = str(settings.value(POINTER_KEY, POINTER_AUTO)).lower()
    if value in (POINTER_COARSE, POINTER_FINE):
        return value
    if value != POINTER_AUTO:
        logger.warning("Unknown %s value %r, using auto detection", POINTER_KEY, value)
    return POINTER_COARSE if has_touchscreen() else POINTER_FINE


def handle_style(settings: Optional[QSettings] = None) -> HandleStyle:
    if pointer_class(settings) == POINTER_COARSE:
        return COARSE_STYLE
    return FINE_STYLE


def camera_enabled(settings: Optional[QSettings] = None) -> bool:
    if settings is None:
        return True
    return settings.value(CAMERA_ENABLED_KEY, True, type=bool)
