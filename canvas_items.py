import logging
from typing import Optional

from PyQt6.QtWidgets import (QGraphicsPixmapItem, QGraphicsRectItem, QGraphicsEllipseItem,
				 QGraphicsPathItem, QGraphicsItem)
from PyQt6.QtGui import QPixmap, QPen, QColor, QBrush, QTransform, QPainterPath
from PyQt6.QtCore import Qt, QRectF

from overlay_model import ImageTransform
from overlay_settings import HandleStyle, FINE_STYLE
from transformable import (BoundingBox, ANCHOR_COUNT, decoration_box, accept_box, resize_box,
			   rotate_box, transform_from_box, handle_positions)


logger = logging.getLogger(__name__)

HANDLE_Z = 10000


def _handle_pen_and_brush(style):
	pen = QPen(QColor(style.color), style.outline_width)
	return pen, QBrush(QColor(style.anchor_fill))


class ResizeHandle(QGraphicsRectItem):
	def __init__(self, handles, index, cursor):
		size = handles.style.anchor_size
		super().__init__(-size / 2, -size / 2, size, size)
		self.handles = handles
		self.handle_index = index
		self.setAcceptedMouseButtons(Qt.MouseButton.LeftButton)
		self.setCursor(cursor)
		self.setZValue(HANDLE_Z)
		self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemIgnoresTransformations, True)
		pen, brush = _handle_pen_and_brush(handles.style)
		self.setPen(pen)
		self.setBrush(brush)

	def mousePressEvent(self, event):
		if event.button() == Qt.MouseButton.LeftButton:
			self.handles.begin_resize(self, event.scenePos())
			event.accept()
		else:
			super().mousePressEvent(event)

	def mouseMoveEvent(self, event):
		self.handles.resize_to(self, event.scenePos())
		event.accept()

	def mouseReleaseEvent(self, event):
		self.handles.end_gesture()
		event.accept()


class RotateHandle(QGraphicsEllipseItem):
	def __init__(self, handles):
		size = handles.style.anchor_size
		super().__init__(-size / 2, -size / 2, size, size)
		self.handles = handles
		self.setAcceptedMouseButtons(Qt.MouseButton.LeftButton)
		self.setCursor(Qt.CursorShape.OpenHandCursor)
		self.setZValue(HANDLE_Z)
		self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemIgnoresTransformations, True)
		pen, brush = _handle_pen_and_brush(handles.style)
		self.setPen(pen)
		self.setBrush(brush)

	def mousePressEvent(self, event):
		if event.button() == Qt.MouseButton.LeftButton:
			self.handles.begin_rotate(event.scenePos())
			self.setCursor(Qt.CursorShape.ClosedHandCursor)
			event.accept()
		else:
			super().mousePressEvent(event)

	def mouseMoveEvent(self, event):
		self.handles.rotate_to(event.scenePos())
		event.accept()

	def mouseReleaseEvent(self, event):
		self.handles.end_gesture()
		self.setCursor(Qt.CursorShape.OpenHandCursor)
		event.accept()


class SelectionHandles:
	"""The one resize/rotate handle set of a canvas, bound to the selected image."""

	def __init__(self, scene, style: HandleStyle = FINE_STYLE):
		self.scene = scene
		self.style = style
		self.parent_item = None
		self.resize_handles = []
		self.rotate_handle = None
		self._press_pos = None
		self._start_box = None
		self._mode = None
		self._create_handles()

	def _create_handles(self):
		cursors = [
			Qt.CursorShape.SizeFDiagCursor,
			Qt.CursorShape.SizeBDiagCursor,
			Qt.CursorShape.SizeFDiagCursor,
			Qt.CursorShape.SizeBDiagCursor,
			Qt.CursorShape.SizeVerCursor,
			Qt.CursorShape.SizeHorCursor,
			Qt.CursorShape.SizeVerCursor,
			Qt.CursorShape.SizeHorCursor,
		]
		for index, cursor in enumerate(cursors[:ANCHOR_COUNT]):
			handle = ResizeHandle(self, index, cursor)
			handle.setVisible(False)
			self.scene.addItem(handle)
			self.resize_handles.append(handle)
		self.rotate_handle = RotateHandle(self)
		self.rotate_handle.setVisible(False)
		self.scene.addItem(self.rotate_handle)

	def _all_handles(self):
		return self.resize_handles + [self.rotate_handle]

	def is_bound_to(self, item) -> bool:
		return item is not None and self.parent_item is item

	def bind(self, item):
		if self.parent_item is not item:
			self._cancel_gesture()
			self.parent_item = item
		self.update_handles()

	def detach(self):
		self._cancel_gesture()
		self.parent_item = None
		for handle in self._all_handles():
			handle.setVisible(False)

	def update_handles(self):
		item = self.parent_item
		if item is None:
			return
		box = item.decoration_box()
		if box is None:
			for handle in self._all_handles():
				handle.setVisible(False)
			return
		anchors, rotate_point = handle_positions(box, self.style.padding, self.style.rotate_offset)
		for handle, point in zip(self.resize_handles, anchors):
			handle.setPos(point)
			handle.setVisible(True)
		self.rotate_handle.setPos(rotate_point)
		self.rotate_handle.setVisible(True)

	def begin_resize(self, handle, scene_pos):
		self._begin(scene_pos, "resize")

	def begin_rotate(self, scene_pos):
		self._begin(scene_pos, "rotate")

	def _begin(self, scene_pos, mode):
		item = self.parent_item
		if item is None:
			return
		box = item.decoration_box()
		if box is None:
			return
		self._press_pos = scene_pos
		self._start_box = box
		self._mode = mode
		item.router.begin_transform()

	def resize_to(self, handle, scene_pos):
		if self._mode != "resize" or self.parent_item is None:
			return
		proposed = resize_box(self._start_box, handle.handle_index, self._press_pos, scene_pos)
		self.parent_item.propose_box(proposed)

	def rotate_to(self, scene_pos):
		if self._mode != "rotate" or self.parent_item is None:
			return
		proposed = rotate_box(self._start_box, self._press_pos, scene_pos)
		self.parent_item.propose_box(proposed)

	def end_gesture(self):
		if self._mode is None:
			return
		self._mode = None
		self._press_pos = None
		self._start_box = None
		if self.parent_item is not None:
			self.parent_item.router.end_transform()
		self.update_handles()

	def _cancel_gesture(self):
		if self._mode is not None and self.parent_item is not None:
			self.parent_item.router.cancel()
		self._mode = None
		self._press_pos = None
		self._start_box = None

	def cleanup(self):
		self.detach()
		for handle in self._all_handles():
			if handle.scene():
				handle.scene().removeItem(handle)
		self.resize_handles.clear()
		self.rotate_handle = None


class SelectionOutline(QGraphicsPathItem):
	"""Rounded frame drawn over the selected image; never takes input."""

	def __init__(self, style: HandleStyle = FINE_STYLE):
		super().__init__()
		self.style = style
		self.setPen(QPen(QColor(style.color), style.outline_width))
		self.setBrush(QBrush(Qt.BrushStyle.NoBrush))
		self.setAcceptedMouseButtons(Qt.MouseButton.NoButton)
		self.setAcceptHoverEvents(False)
		self.setVisible(False)

	def set_box(self, box: BoundingBox):
		rect = QRectF(0, 0, box.width, box.height).normalized()
		path = QPainterPath()
		path.addRoundedRect(rect, self.style.corner_radius, self.style.corner_radius)
		self.setPath(path)
		self.setPos(box.x, box.y)
		self.setRotation(box.rotation)


class OverlayImageItem(QGraphicsPixmapItem):
	"""One overlay image: paints its pixmap at the controller's transform.

	Presses, drags and releases on the painted bounds go to the item's
	GestureRouter; the item never changes its own geometry.
	"""

	def __init__(self, image_id, router, image_source, style: HandleStyle = FINE_STYLE):
		super().__init__()
		self.image_id = image_id
		self.router = router
		self.image_source = image_source
		self.outline = SelectionOutline(style)
		self._transform: Optional[ImageTransform] = None
		self._selected = False
		self.setShapeMode(QGraphicsPixmapItem.ShapeMode.BoundingRectShape)
		self.setTransformationMode(Qt.TransformationMode.SmoothTransformation)
		self.setAcceptedMouseButtons(Qt.MouseButton.LeftButton)
		self.setCursor(Qt.CursorShape.SizeAllCursor)
		self.setVisible(False)

	@property
	def image_transform(self) -> Optional[ImageTransform]:
		return self._transform

	@property
	def is_selected(self) -> bool:
		return self._selected

	def has_pixmap(self) -> bool:
		return not self.pixmap().isNull()

	def natural_size(self):
		if not self.has_pixmap():
			return None
		return self.pixmap().width(), self.pixmap().height()

	def _resolve_pixmap(self, transform):
		pixmap = self.image_source.pixmap(transform.source_ref) if self.image_source else None
		if pixmap is None or pixmap.isNull():
			if self.has_pixmap():
				self.setPixmap(QPixmap())
			return
		if pixmap.cacheKey() != self.pixmap().cacheKey():
			self.setPixmap(pixmap)

	def render(self, transform: ImageTransform, is_selected: bool):
		self._transform = transform
		self._selected = is_selected
		self._resolve_pixmap(transform)
		if not self.has_pixmap():
			self.setVisible(False)
			self.outline.setVisible(False)
			return
		self.setTransform(QTransform.fromScale(transform.scale_x, transform.scale_y))
		self.setRotation(transform.rotation)
		self.setPos(transform.x, transform.y)
		self.setOpacity(transform.opacity)
		self.setVisible(True)
		if is_selected:
			self.outline.set_box(self.decoration_box())
		self.outline.setVisible(is_selected)

	def decoration_box(self) -> Optional[BoundingBox]:
		size = self.natural_size()
		if self._transform is None or size is None:
			return None
		return decoration_box(self._transform, *size)

	def propose_box(self, box: BoundingBox) -> bool:
		"""Ask for a new decoration box; collapsed boxes are dropped."""
		current = self.decoration_box()
		if current is None:
			return False
		accepted = accept_box(current, box)
		if accepted is current:
			logger.debug("%s: rejected box %.1fx%.1f", self.image_id, box.width, box.height)
			return False
		width, height = self.natural_size()
		self.router.transform_to(transform_from_box(self._transform, accepted, width, height))
		return True

	def setZValue(self, z):
		super().setZValue(z)
		self.outline.setZValue(z + 0.5)

	def mousePressEvent(self, event):
		if event.button() == Qt.MouseButton.LeftButton:
			self.router.pointer_down(event.scenePos())
			event.accept()
		else:
			super().mousePressEvent(event)

	def mouseMoveEvent(self, event):
		self.router.pointer_move(event.scenePos())
		event.accept()

	def mouseReleaseEvent(self, event):
		self.router.pointer_up(event.scenePos())
		event.accept()
