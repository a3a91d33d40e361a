"""
Decoded image store.

Uploads are decoded once into ARGB pixmaps and kept under an opaque source
reference. Overlay items look their pixels up by that reference; a reference
with nothing behind it simply paints nothing.
"""

import logging
import uuid
from pathlib import Path
from typing import Dict, Optional, Tuple

from PyQt6.QtGui import QImage, QImageReader, QPixmap


logger = logging.getLogger(__name__)


IMAGE_FILE_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.gif *.webp)"


class ImageSource:
    """Owns decoded pixel data for every overlay image."""

    def __init__(self):
        self._pixmaps: Dict[str, QPixmap] = {}

    @staticmethod
    def _ensure_argb_pixmap(pixmap: QPixmap) -> QPixmap:
        image = pixmap.toImage()
        if image.format() not in (
                QImage.Format.Format_ARGB32,
                QImage.Format.Format_ARGB32_Premultiplied,
        ):
            image = image.convertToFormat(QImage.Format.Format_ARGB32)
            return QPixmap.fromImage(image)
        return pixmap

    def add_pixmap(self, pixmap: QPixmap) -> Optional[str]:
        """Register already-decoded pixels (e.g. from the clipboard)."""
        if pixmap is None or pixmap.isNull():
            return None
        source_ref = uuid.uuid4().hex
        self._pixmaps[source_ref] = self._ensure_argb_pixmap(pixmap)
        return source_ref

    def load_file(self, file_path) -> Optional[str]:
        """Decode an image file. Returns None when it cannot be read."""
        path = str(Path(file_path).expanduser())
        reader = QImageReader(path)
        reader.setAutoTransform(True)
        if not reader.canRead():
            logger.warning("Cannot read image %s: %s", path, reader.errorString())
            return None
        image = reader.read()
        if image.isNull():
            logger.warning("Failed to decode image %s: %s", path, reader.errorString())
            return None
        return self.add_pixmap(QPixmap.fromImage(image))

    def pixmap(self, source_ref) -> Optional[QPixmap]:
        return self._pixmaps.get(source_ref)

    def natural_size(self, source_ref) -> Optional[Tuple[int, int]]:
        pixmap = self.pixmap(source_ref)
        if pixmap is None:
            return None
        return pixmap.width(), pixmap.height()

    def release(self, source_ref) -> None:
        self._pixmaps.pop(source_ref, None)
