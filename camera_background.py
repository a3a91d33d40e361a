"""
Live camera backdrop painted beneath every overlay image.

The transform engine never talks to the camera; the canvas only asks the
backdrop to fill the visible area and treats presses on it as background
presses.
"""

import logging
from typing import Optional

from PyQt6.QtCore import QRectF, QSizeF, Qt
from PyQt6.QtMultimedia import QCamera, QCameraDevice, QMediaCaptureSession, QMediaDevices
from PyQt6.QtMultimediaWidgets import QGraphicsVideoItem


logger = logging.getLogger(__name__)

BACKGROUND_Z = -1000


def preferred_video_input(devices, default):
    """Rear-facing camera when there is one, otherwise ``default``."""
    for device in devices:
        if device.position() == QCameraDevice.Position.BackFace:
            return device
    return default


class CameraBackground(QGraphicsVideoItem):
    is_background = True

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setZValue(BACKGROUND_Z)
        self.setAspectRatioMode(Qt.AspectRatioMode.KeepAspectRatioByExpanding)
        self._session = QMediaCaptureSession()
        self._camera: Optional[QCamera] = None
        self._session.setVideoOutput(self)

    @property
    def camera(self) -> Optional[QCamera]:
        return self._camera

    def start(self) -> bool:
        """Start the rear or default video input. Returns False when there is none."""
        device = preferred_video_input(QMediaDevices.videoInputs(),
                                        QMediaDevices.defaultVideoInput())
        if device.isNull():
            logger.warning("No camera available; showing a plain background")
            return False
        self._camera = QCamera(device)
        self._camera.errorOccurred.connect(self._on_camera_error)
        self._session.setCamera(self._camera)
        self._camera.start()
        logger.info("Camera started: %s", device.description())
        return True

    def stop(self) -> None:
        if self._camera is not None:
            self._camera.stop()

    def fit_to(self, rect: QRectF) -> None:
        self.setPos(rect.topLeft())
        self.setSize(QSizeF(rect.width(), rect.height()))

    def _on_camera_error(self, error, message):
        logger.warning("Camera error %s: %s", error, message)
