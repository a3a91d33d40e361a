"""
Shared fixtures for TraceOverlay tests.

Provides a controller with predictable ids, an image source holding a solid
test pixmap, and a wired canvas view.
"""
import os
import itertools

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtCore import QSettings
from PyQt6.QtGui import QColor, QPixmap
from PyQt6.QtWidgets import QGraphicsScene

from scene_controller import SceneController
from image_source import ImageSource


IMAGE_WIDTH = 100
IMAGE_HEIGHT = 50


def sequential_ids(*names):
    """id factory yielding ``names`` first, then img1, img2, ..."""
    fallback = (f"img{n}" for n in itertools.count(1))
    source = itertools.chain(names, fallback)
    return lambda: next(source)


@pytest.fixture
def controller():
    return SceneController(id_factory=sequential_ids("a", "b", "c"))


@pytest.fixture
def image_source(qapp):
    return ImageSource()


@pytest.fixture
def solid_pixmap(qapp):
    pixmap = QPixmap(IMAGE_WIDTH, IMAGE_HEIGHT)
    pixmap.fill(QColor("red"))
    return pixmap


@pytest.fixture
def source_ref(image_source, solid_pixmap):
    return image_source.add_pixmap(solid_pixmap)


@pytest.fixture
def canvas(qtbot, controller, image_source):
    from canvas_view import OverlayCanvasView
    scene = QGraphicsScene()
    view = OverlayCanvasView(scene, controller, image_source)
    qtbot.addWidget(view)
    view.resize(800, 600)
    # keep the scene alive as long as the view
    view._test_scene = scene
    return view


@pytest.fixture
def temp_settings(tmp_path):
    return QSettings(str(tmp_path / "traceoverlay.ini"), QSettings.Format.IniFormat)
