"""
TraceOverlay Scene Controller

Single owner of the overlay collection and the selection pointer. Everything
else (gesture routers, the opacity slider, the upload action) requests changes
through the operations below and listens to the change signals.
"""

import logging
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from overlay_model import ImageTransform


logger = logging.getLogger(__name__)


def random_id() -> str:
    return uuid.uuid4().hex[:9]


class SceneController(QObject):
    """Ordered collection of ImageTransforms plus an optional selected id."""

    imageAdded = pyqtSignal(str)
    imageChanged = pyqtSignal(str)
    imageRemoved = pyqtSignal(str)
    selectionChanged = pyqtSignal(object)  # id or None

    def __init__(self, id_factory: Optional[Callable[[], str]] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        # dicts keep insertion order, which is also paint order
        self._images: Dict[str, ImageTransform] = {}
        self._selected_id: Optional[str] = None
        self._id_factory = id_factory or random_id

    # ========================================================================
    # Queries
    # ========================================================================

    def __len__(self) -> int:
        return len(self._images)

    def __contains__(self, image_id) -> bool:
        return image_id in self._images

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    def get(self, image_id: str) -> Optional[ImageTransform]:
        return self._images.get(image_id)

    def images(self) -> List[ImageTransform]:
        """All transforms in paint order, bottom first."""
        return list(self._images.values())

    def selected(self) -> Optional[ImageTransform]:
        if self._selected_id is None:
            return None
        return self._images.get(self._selected_id)

    # ========================================================================
    # Mutations
    # ========================================================================

    def _new_id(self) -> str:
        image_id = self._id_factory()
        while image_id in self._images:
            image_id = self._id_factory()
        return image_id

    def add(self, source_ref: Any) -> str:
        """Append an image with the default transform and select it."""
        image_id = self._new_id()
        self._images[image_id] = ImageTransform(id=image_id, source_ref=source_ref)
        logger.debug("Added image %s", image_id)
        self.imageAdded.emit(image_id)
        self.select(image_id)
        return image_id

    def update(self, image_id: str, transform: ImageTransform) -> bool:
        """Replace the transform of ``image_id`` in place.

        Stale ids and degenerate scales are ignored; the stored transform is
        left as it was.
        """
        if image_id not in self._images:
            logger.debug("Ignoring update for unknown image %s", image_id)
            return False
        if not transform.has_valid_scale():
            logger.debug("Rejected degenerate scale %.4f/%.4f for %s",
                         transform.scale_x, transform.scale_y, image_id)
            return False
        if transform.id != image_id:
            transform = replace(transform, id=image_id)
        if self._images[image_id] == transform:
            return True
        self._images[image_id] = transform
        self.imageChanged.emit(image_id)
        return True

    def remove(self, image_id: str) -> None:
        if image_id not in self._images:
            logger.debug("Ignoring remove for unknown image %s", image_id)
            return
        del self._images[image_id]
        logger.debug("Removed image %s", image_id)
        self.imageRemoved.emit(image_id)
        if self._selected_id == image_id:
            self.select(None)

    def remove_selected(self) -> None:
        if self._selected_id is not None:
            self.remove(self._selected_id)

    def select(self, image_id: Optional[str]) -> None:
        if image_id is not None and image_id not in self._images:
            logger.debug("Ignoring selection of unknown image %s", image_id)
            return
        if image_id == self._selected_id:
            return
        self._selected_id = image_id
        self.selectionChanged.emit(image_id)

    def set_opacity(self, value: float) -> None:
        """Set the selected image's opacity; callers clamp to [0, 1]."""
        transform = self.selected()
        if transform is None:
            return
        self.update(transform.id, transform.with_opacity(value))

    def background_pressed(self) -> None:
        """A press landed on the background surface rather than an image."""
        self.select(None)
