import sys
import os
import logging
from PyQt6.QtWidgets import (QApplication, QMainWindow, QGraphicsScene, QToolBar, QFileDialog,
				 QLabel, QSlider, QWidget, QHBoxLayout)
from PyQt6.QtGui import QAction, QColor, QKeySequence, QPalette, QPixmap
from PyQt6.QtCore import Qt

from canvas_view import OverlayCanvasView
from image_source import ImageSource, IMAGE_FILE_FILTER
from overlay_settings import SELECTION_COLOR, app_settings, handle_style, camera_enabled
from scene_controller import SceneController


logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "TRACEOVERLAY_LOG_LEVEL"
CAMERA_UNAVAILABLE_MESSAGE = "Could not access camera; showing a plain background"


def configure_logging():
	level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
	level = getattr(logging, level_name, logging.WARNING)
	logging.basicConfig(
		level=level,
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
		handlers=[logging.StreamHandler(sys.stdout)],
	)


DARK_COLORS = {
	QPalette.ColorRole.Window: QColor(32, 32, 36),
	QPalette.ColorRole.WindowText: QColor("white"),
	QPalette.ColorRole.Base: QColor(20, 20, 24),
	QPalette.ColorRole.AlternateBase: QColor(32, 32, 36),
	QPalette.ColorRole.ToolTipBase: QColor(20, 20, 24),
	QPalette.ColorRole.ToolTipText: QColor("white"),
	QPalette.ColorRole.Text: QColor("white"),
	QPalette.ColorRole.Button: QColor(44, 44, 50),
	QPalette.ColorRole.ButtonText: QColor("white"),
	QPalette.ColorRole.Highlight: QColor(SELECTION_COLOR),
	QPalette.ColorRole.HighlightedText: QColor("black"),
}


def dark_palette():
	"""Palette for drawing controls over a camera feed; accents match the selection outline."""
	palette = QPalette()
	for role, color in DARK_COLORS.items():
		palette.setColor(role, color)
	return palette


def apply_dark_theme(app):
	app.setStyle("Fusion")
	app.setPalette(dark_palette())


class OpacityControl(QWidget):
	"""Slider for the selected image's opacity; values are clamped to [0, 1]."""

	def __init__(self, controller, parent=None):
		super().__init__(parent)
		self.controller = controller
		layout = QHBoxLayout(self)
		layout.setContentsMargins(8, 0, 8, 0)
		self.label = QLabel()
		self.slider = QSlider(Qt.Orientation.Horizontal)
		self.slider.setRange(0, 100)
		self.slider.setSingleStep(1)
		self.slider.setMinimumWidth(160)
		layout.addWidget(self.label)
		layout.addWidget(self.slider)
		self.slider.valueChanged.connect(self._on_value_changed)
		controller.selectionChanged.connect(self.sync)
		controller.imageChanged.connect(self._on_image_changed)
		self.sync()

	def _on_value_changed(self, value):
		opacity = max(0.0, min(1.0, value / 100))
		self.label.setText(f"Opacity: {round(opacity * 100)}%")
		self.controller.set_opacity(opacity)

	def _on_image_changed(self, image_id):
		if image_id == self.controller.selected_id:
			self.sync()

	def sync(self, *args):
		selected = self.controller.selected()
		self.setEnabled(selected is not None)
		opacity = selected.opacity if selected is not None else 0.5
		self.slider.blockSignals(True)
		self.slider.setValue(round(opacity * 100))
		self.slider.blockSignals(False)
		self.label.setText(f"Opacity: {round(opacity * 100)}%")


class MainWindow(QMainWindow):
	def __init__(self, settings=None, start_camera=True):
		super().__init__()
		self.setWindowTitle("TraceOverlay")
		self.setGeometry(100, 100, 1200, 800)
		self.settings = settings if settings is not None else app_settings()
		self._status_bar = self.statusBar()

		self.controller = SceneController(parent=self)
		self.image_source = ImageSource()
		self.scene = QGraphicsScene(self)
		self.view = OverlayCanvasView(self.scene, self.controller, self.image_source,
				 handle_style(self.settings), self)
		self.setCentralWidget(self.view)

		self.camera_background = None
		if start_camera and camera_enabled(self.settings):
			self._start_camera()

		self.toolbar = QToolBar("Tools")
		self.toolbar.setToolButtonStyle(Qt.ToolButtonStyle.ToolButtonTextOnly)
		self.toolbar.setStyleSheet("QToolButton { font-size: 10pt; font-weight: bold; }")
		self.addToolBar(Qt.ToolBarArea.BottomToolBarArea, self.toolbar)

		open_action = QAction("Add Image", self)
		open_action.setShortcut(QKeySequence.StandardKey.Open)
		open_action.triggered.connect(self.open_image)
		self.toolbar.addAction(open_action)

		paste_action = QAction("Paste", self)
		paste_action.setShortcut(QKeySequence.StandardKey.Paste)
		paste_action.triggered.connect(self.paste_image)
		self.toolbar.addAction(paste_action)

		self.remove_action = QAction("Remove", self)
		self.remove_action.setShortcut(QKeySequence(QKeySequence.StandardKey.Delete))
		self.remove_action.triggered.connect(self.controller.remove_selected)
		self.toolbar.addAction(self.remove_action)

		self.toolbar.addSeparator()
		self.opacity_control = OpacityControl(self.controller, self)
		self.toolbar.addWidget(self.opacity_control)

		file_menu = self.menuBar().addMenu("File")
		file_menu.addAction(open_action)
		file_menu.addAction(paste_action)
		edit_menu = self.menuBar().addMenu("Edit")
		edit_menu.addAction(self.remove_action)

		self.controller.selectionChanged.connect(self.on_selection_changed)
		self.on_selection_changed(self.controller.selected_id)

	def _start_camera(self):
		# QtMultimedia is only loaded when the camera is used
		from camera_background import CameraBackground
		self.camera_background = CameraBackground()
		self.view.set_background_item(self.camera_background)
		if not self.camera_background.start():
			self._status_bar.showMessage(CAMERA_UNAVAILABLE_MESSAGE, 8000)

	def open_image(self):
		files, _ = QFileDialog.getOpenFileNames(self, "Add Image", "", IMAGE_FILE_FILTER)
		for file in files:
			self.add_image_file(file)

	def add_image_file(self, file_path):
		source_ref = self.image_source.load_file(file_path)
		if source_ref is None:
			self._status_bar.showMessage(f"Could not read image {file_path}", 4000)
			return None
		return self.controller.add(source_ref)

	def paste_image(self):
		mime_data = QApplication.clipboard().mimeData()
		if mime_data.hasImage():
			pixmap = QPixmap.fromImage(mime_data.imageData())
			source_ref = self.image_source.add_pixmap(pixmap)
			if source_ref is not None:
				self.controller.add(source_ref)
			return
		if mime_data.hasUrls():
			for url in mime_data.urls():
				path = url.toLocalFile()
				if path:
					self.add_image_file(path)
			return
		self._status_bar.showMessage("Clipboard holds no image", 4000)

	def on_selection_changed(self, selected_id):
		self.remove_action.setEnabled(selected_id is not None)

	def closeEvent(self, event):
		if self.camera_background is not None:
			self.camera_background.stop()
		super().closeEvent(event)


def main():
	configure_logging()
	app = QApplication(sys.argv)
	apply_dark_theme(app)
	window = MainWindow()
	window.show()
	return app.exec()


if __name__ == "__main__":
	sys.exit(main())
