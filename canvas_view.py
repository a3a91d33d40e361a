import logging

from PyQt6.QtWidgets import QGraphicsView, QFrame
from PyQt6.QtGui import QBrush, QColor, QPainter, QEventPoint
from PyQt6.QtCore import Qt, QEvent, QRectF

from canvas_items import OverlayImageItem, SelectionHandles, SelectionOutline, ResizeHandle, RotateHandle
from gesture_router import GestureRouter
from overlay_settings import FINE_STYLE


logger = logging.getLogger(__name__)

TOUCH_EVENTS = (
	QEvent.Type.TouchBegin,
	QEvent.Type.TouchUpdate,
	QEvent.Type.TouchEnd,
	QEvent.Type.TouchCancel,
)


class OverlayCanvasView(QGraphicsView):
	"""Mirrors the SceneController into graphics items and feeds them input.

	Presses on empty space or on the backdrop deselect. Touch sequences that
	start on an image are consumed here so the view never scrolls.
	"""
	def __init__(self, scene, controller, image_source, style=FINE_STYLE, parent=None):
		super().__init__(scene, parent)
		self.controller = controller
		self.image_source = image_source
		self.style = style
		self._items = {}
		self._background_item = None
		self._touch_router = None
		self.handles = SelectionHandles(scene, style)
		self.setDragMode(QGraphicsView.DragMode.NoDrag)
		self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
		self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
		self.setFrameShape(QFrame.Shape.NoFrame)
		self.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
		self.setRenderHint(QPainter.RenderHint.Antialiasing, True)
		self.setBackgroundBrush(QBrush(QColor("black")))
		self.viewport().setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents, True)
		controller.imageAdded.connect(self._on_image_added)
		controller.imageChanged.connect(self._on_image_changed)
		controller.imageRemoved.connect(self._on_image_removed)
		controller.selectionChanged.connect(self._on_selection_changed)
		for transform in controller.images():
			self._on_image_added(transform.id)

	def item_for(self, image_id):
		return self._items.get(image_id)

	def router_for(self, image_id):
		item = self._items.get(image_id)
		return item.router if item else None

	def set_background_item(self, item):
		if self._background_item is not None and self._background_item.scene():
			self._background_item.scene().removeItem(self._background_item)
		self._background_item = item
		if item is not None:
			self.scene().addItem(item)
			item.fit_to(self.sceneRect())

	# ========================================================================
	# Controller -> items
	# ========================================================================

	def _on_image_added(self, image_id):
		router = GestureRouter(image_id, lambda: self.controller.get(image_id), parent=self)
		router.selectRequested.connect(self.controller.select)
		router.transformRequested.connect(self.controller.update)
		router.transformCommitted.connect(self.controller.update)
		item = OverlayImageItem(image_id, router, self.image_source, self.style)
		self.scene().addItem(item)
		self.scene().addItem(item.outline)
		self._items[image_id] = item
		self._restack()
		self._render(image_id)

	def _on_image_changed(self, image_id):
		self._render(image_id)

	def _on_image_removed(self, image_id):
		item = self._items.pop(image_id, None)
		if item is None:
			return
		if self.handles.is_bound_to(item):
			self.handles.detach()
		if self._touch_router is item.router:
			self._touch_router = None
		item.router.cancel()
		for graphics_item in (item.outline, item):
			if graphics_item.scene() is self.scene():
				self.scene().removeItem(graphics_item)
		item.router.deleteLater()
		self._restack()
		self._release_source(item.image_transform)

	def _release_source(self, transform):
		if transform is None or self.image_source is None:
			return
		source_ref = transform.source_ref
		if any(other.source_ref == source_ref for other in self.controller.images()):
			return
		logger.debug("Releasing pixels for %s", source_ref)
		self.image_source.release(source_ref)

	def _on_selection_changed(self, selected_id):
		for image_id in list(self._items):
			self._render(image_id)
		if selected_id is None:
			self.handles.detach()

	def refresh_image(self, image_id):
		"""Re-resolve pixels for an image whose data arrived late."""
		self._render(image_id)

	def _render(self, image_id):
		item = self._items.get(image_id)
		transform = self.controller.get(image_id)
		if item is None or transform is None:
			return
		is_selected = self.controller.selected_id == image_id
		item.render(transform, is_selected)
		if is_selected and item.has_pixmap():
			self.handles.bind(item)
		elif self.handles.is_bound_to(item):
			self.handles.detach()

	def _restack(self):
		for index, transform in enumerate(self.controller.images()):
			item = self._items.get(transform.id)
			if item:
				item.setZValue(index)

	# ========================================================================
	# Input
	# ========================================================================

	def _target_at(self, scene_pos):
		"""Top-most input target under ``scene_pos``; None means background."""
		for item in self.scene().items(scene_pos):
			if isinstance(item, SelectionOutline) or not item.isVisible():
				continue
			if getattr(item, 'is_background', False):
				return None
			return item
		return None

	def mousePressEvent(self, event):
		if event.button() == Qt.MouseButton.LeftButton:
			scene_pos = self.mapToScene(event.pos())
			if self._target_at(scene_pos) is None:
				self.controller.background_pressed()
		super().mousePressEvent(event)

	def keyPressEvent(self, event):
		if event.key() in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace):
			self.controller.remove_selected()
			return
		super().keyPressEvent(event)

	def viewportEvent(self, event):
		if event.type() in TOUCH_EVENTS:
			if self._handle_touch(event):
				event.accept()
				return True
			event.ignore()
			return False
		return super().viewportEvent(event)

	def _active_touch_points(self, event):
		points = []
		for point in event.points():
			if point.state() == QEventPoint.State.Released:
				continue
			local = self.viewport().mapFromGlobal(point.globalPosition())
			points.append(self.mapToScene(local.toPoint()))
		return points

	def _handle_touch(self, event):
		"""Route a touch event; False hands it back to Qt for mouse synthesis."""
		event_type = event.type()
		points = self._active_touch_points(event)
		if event_type == QEvent.Type.TouchBegin:
			self._touch_router = None
			if not points:
				return True
			target = self._target_at(points[0])
			if target is None:
				self.controller.background_pressed()
				return True
			if isinstance(target, (ResizeHandle, RotateHandle)):
				return False
			if not isinstance(target, OverlayImageItem):
				return False
			self._touch_router = target.router
			self._touch_router.touch_update(points)
			return True
		router = self._touch_router
		if router is None:
			return True
		if event_type == QEvent.Type.TouchCancel:
			router.cancel()
			self._touch_router = None
		elif event_type == QEvent.Type.TouchEnd:
			router.touch_end([])
			self._touch_router = None
		elif any(point.state() == QEventPoint.State.Released for point in event.points()):
			router.touch_end(points)
		else:
			router.touch_update(points)
		return True

	def resizeEvent(self, event):
		super().resizeEvent(event)
		rect = QRectF(self.viewport().rect())
		self.setSceneRect(rect)
		if self._background_item is not None:
			self._background_item.fit_to(rect)
