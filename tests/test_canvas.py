"""
Tests for the rendered side of an overlay image.

Covers:
- items mirroring controller state (transform, opacity, z-order)
- selection outline and the single shared handle set
- resize / rotate through the handle set, including the collapse guard
- unresolved image data
- mouse routing: image presses select, background presses deselect
- touch routing: image touches are consumed, background touches deselect,
  handle touches are handed back for mouse synthesis
- decoded pixels released once no image uses them
"""
import pytest
from PyQt6.QtCore import QEvent, QPoint, QPointF, Qt
from PyQt6.QtGui import QEventPoint, QPointingDevice, QTouchEvent

from canvas_items import OverlayImageItem
from gesture_router import GestureState
from transformable import BoundingBox, RIGHT, TOP_LEFT


def xy(point):
    return (point.x(), point.y())


def touch(view, event_type, *contacts):
    """Build a touch event from (id, state, viewport x, viewport y) contacts."""
    points = []
    for point_id, state, x, y in contacts:
        local = QPointF(x, y)
        points.append(QEventPoint(point_id, state, local, view.viewport().mapToGlobal(local)))
    return QTouchEvent(event_type, QPointingDevice.primaryPointingDevice(),
                       Qt.KeyboardModifier.NoModifier, points)


def send_touch(view, event_type, *contacts):
    return view.viewportEvent(touch(view, event_type, *contacts))


PRESSED = QEventPoint.State.Pressed
UPDATED = QEventPoint.State.Updated
STATIONARY = QEventPoint.State.Stationary
RELEASED = QEventPoint.State.Released


@pytest.fixture
def shown_canvas(qtbot, canvas):
    canvas.show()
    qtbot.waitExposed(canvas)
    return canvas


# ══════════════════════════════════════════════════════════════════════════
# Rendering
# ══════════════════════════════════════════════════════════════════════════

class TestRendering:

    def test_added_image_is_rendered_at_default_transform(self, canvas, controller, source_ref):
        controller.add(source_ref)
        item = canvas.item_for("a")
        assert isinstance(item, OverlayImageItem)
        assert item.scene() is canvas.scene()
        assert item.isVisible()
        assert xy(item.pos()) == (50, 50)
        assert item.opacity() == pytest.approx(0.5)
        assert item.is_selected
        assert item.outline.isVisible()

    def test_render_applies_scale_rotation_and_position(self, canvas, controller, source_ref):
        controller.add(source_ref)
        controller.update("a", controller.get("a").with_geometry(10, 20, 90, 2, -1))
        item = canvas.item_for("a")
        assert xy(item.pos()) == (10, 20)
        assert item.rotation() == 90
        assert item.transform().m11() == 2
        assert item.transform().m22() == -1
        assert item.decoration_box() == BoundingBox(10, 20, 200, -50, 90)
        assert item.outline.rotation() == 90

    def test_opacity_changes_are_rendered(self, canvas, controller, source_ref):
        controller.add(source_ref)
        controller.set_opacity(0.25)
        assert canvas.item_for("a").opacity() == pytest.approx(0.25)

    def test_later_images_paint_on_top(self, canvas, controller, source_ref):
        controller.add(source_ref)
        controller.add(source_ref)
        first, second = canvas.item_for("a"), canvas.item_for("b")
        assert second.zValue() > first.zValue()
        assert first.outline.zValue() == first.zValue() + 0.5

    def test_unresolved_image_paints_nothing(self, canvas, controller, image_source, solid_pixmap):
        controller.add("pending")
        item = canvas.item_for("a")
        assert "a" in controller
        assert not item.isVisible()
        assert not item.outline.isVisible()
        assert item.decoration_box() is None
        assert not canvas.handles.is_bound_to(item)
        image_source._pixmaps["pending"] = solid_pixmap
        canvas.refresh_image("a")
        assert item.isVisible()
        assert canvas.handles.is_bound_to(item)

    def test_remove_drops_item_and_handles(self, canvas, controller, source_ref):
        controller.add(source_ref)
        item = canvas.item_for("a")
        controller.remove("a")
        assert canvas.item_for("a") is None
        assert item.scene() is None
        assert item.outline.scene() is None
        assert canvas.handles.parent_item is None
        assert not any(h.isVisible() for h in canvas.handles.resize_handles)


# ══════════════════════════════════════════════════════════════════════════
# Selection decoration and handle set
# ══════════════════════════════════════════════════════════════════════════

class TestHandleSet:

    def test_handles_bound_to_selected_image(self, canvas, controller, source_ref):
        controller.add(source_ref)
        handles = canvas.handles
        assert handles.is_bound_to(canvas.item_for("a"))
        assert all(h.isVisible() for h in handles.resize_handles)
        assert handles.rotate_handle.isVisible()
        # fine pointer style pads anchors by 10 and lifts the rotate handle 70 above that
        assert xy(handles.resize_handles[TOP_LEFT].pos()) == pytest.approx((40, 40))
        assert xy(handles.rotate_handle.pos()) == pytest.approx((100, -30))

    def test_deselect_detaches_handles_and_outline(self, canvas, controller, source_ref):
        controller.add(source_ref)
        controller.select(None)
        assert canvas.handles.parent_item is None
        assert not canvas.handles.rotate_handle.isVisible()
        assert not canvas.item_for("a").outline.isVisible()

    def test_only_one_handle_set_moves_between_images(self, canvas, controller, source_ref):
        controller.add(source_ref)
        controller.add(source_ref)
        assert canvas.handles.is_bound_to(canvas.item_for("b"))
        controller.select("a")
        assert canvas.handles.is_bound_to(canvas.item_for("a"))
        assert not canvas.item_for("b").outline.isVisible()
        assert canvas.item_for("a").outline.isVisible()

    def test_handles_follow_transform_updates(self, canvas, controller, source_ref):
        controller.add(source_ref)
        controller.update("a", controller.get("a").moved_to(100, 100))
        assert xy(canvas.handles.resize_handles[TOP_LEFT].pos()) == pytest.approx((90, 90))

    def test_resize_through_right_handle(self, canvas, controller, source_ref):
        controller.add(source_ref)
        handles = canvas.handles
        handle = handles.resize_handles[RIGHT]
        press = handle.pos()
        handles.begin_resize(handle, press)
        assert canvas.router_for("a").state is GestureState.TRANSFORMING
        handles.resize_to(handle, press + QPointF(100, 0))
        handles.end_gesture()
        transform = controller.get("a")
        assert (transform.x, transform.y) == pytest.approx((50, 50))
        assert (transform.scale_x, transform.scale_y) == pytest.approx((2, 1))
        assert canvas.router_for("a").state is GestureState.IDLE

    def test_collapsing_resize_keeps_previous_box(self, canvas, controller, source_ref):
        controller.add(source_ref)
        handles = canvas.handles
        handle = handles.resize_handles[RIGHT]
        press = handle.pos()
        handles.begin_resize(handle, press)
        handles.resize_to(handle, press + QPointF(50, 0))
        handles.resize_to(handle, press - QPointF(97, 0))
        handles.end_gesture()
        assert controller.get("a").scale_x == pytest.approx(1.5)

    def test_rotate_through_rotate_handle(self, canvas, controller, source_ref):
        controller.add(source_ref)
        handles = canvas.handles
        center = canvas.item_for("a").decoration_box().center()
        handles.begin_rotate(handles.rotate_handle.pos())
        handles.rotate_to(QPointF(center.x() + 100, center.y()))
        handles.end_gesture()
        transform = controller.get("a")
        assert transform.rotation == pytest.approx(90)
        assert (transform.x, transform.y) == pytest.approx((125, 25))
        assert xy(canvas.item_for("a").decoration_box().center()) == pytest.approx(xy(center))


class TestProposeBox:

    def test_small_boxes_do_not_change_decoration(self, canvas, controller, source_ref):
        controller.add(source_ref)
        item = canvas.item_for("a")
        item.router.begin_transform()
        before = item.decoration_box()
        assert item.propose_box(BoundingBox(50, 50, 4, 50)) is False
        assert item.propose_box(BoundingBox(50, 50, 100, -2)) is False
        assert item.decoration_box() == before

    def test_large_enough_box_changes_decoration(self, canvas, controller, source_ref):
        controller.add(source_ref)
        item = canvas.item_for("a")
        item.router.begin_transform()
        assert item.propose_box(BoundingBox(50, 50, 5, 50)) is True
        assert item.decoration_box().width == pytest.approx(5)
        assert controller.get("a").scale_x == pytest.approx(0.05)


# ══════════════════════════════════════════════════════════════════════════
# Input routing
# ══════════════════════════════════════════════════════════════════════════

class TestInput:

    def test_click_on_image_selects_it(self, qtbot, shown_canvas, controller, source_ref):
        controller.add(source_ref)
        controller.select(None)
        qtbot.mouseClick(shown_canvas.viewport(), Qt.MouseButton.LeftButton, pos=QPoint(60, 60))
        assert controller.selected_id == "a"

    def test_click_on_background_deselects(self, qtbot, shown_canvas, controller, source_ref):
        controller.add(source_ref)
        assert controller.selected_id == "a"
        qtbot.mouseClick(shown_canvas.viewport(), Qt.MouseButton.LeftButton, pos=QPoint(700, 500))
        assert controller.selected_id is None

    def test_delete_key_removes_selected(self, qtbot, canvas, controller, source_ref):
        controller.add(source_ref)
        qtbot.keyClick(canvas, Qt.Key.Key_Delete)
        assert len(controller) == 0


# ══════════════════════════════════════════════════════════════════════════
# End to end
# ══════════════════════════════════════════════════════════════════════════

def test_add_drag_pinch_remove(canvas, controller, source_ref):
    image_id = controller.add(source_ref)
    assert image_id == "a"
    transform = controller.get("a")
    assert transform.geometry() == (50, 50, 0, 1, 1)
    assert transform.opacity == 0.5
    assert controller.selected_id == "a"

    router = canvas.router_for("a")
    router.pointer_down(QPointF(60, 60))
    router.pointer_move(QPointF(100, 75))
    router.pointer_up(QPointF(130, 90))
    assert (controller.get("a").x, controller.get("a").y) == pytest.approx((120, 80))
    assert xy(canvas.item_for("a").pos()) == pytest.approx((120, 80))

    router.touch_update([QPointF(110, 100), QPointF(210, 100)])
    router.touch_update([QPointF(60, 100), QPointF(260, 100)])
    router.touch_end([])
    transform = controller.get("a")
    assert (transform.scale_x, transform.scale_y) == pytest.approx((2.0, 2.0))
    assert (transform.x, transform.y) == pytest.approx((80, 60))
    assert canvas.item_for("a").decoration_box().width == pytest.approx(200)

    controller.remove_selected()
    assert controller.images() == []
    assert controller.selected_id is None
    assert canvas.item_for("a") is None


# ══════════════════════════════════════════════════════════════════════════
# Touch routing
# ══════════════════════════════════════════════════════════════════════════

class TestTouch:

    def test_touch_drag_on_image_selects_and_moves(self, shown_canvas, controller, source_ref):
        controller.add(source_ref)
        controller.select(None)
        router = shown_canvas.router_for("a")

        assert send_touch(shown_canvas, QEvent.Type.TouchBegin, (0, PRESSED, 70, 75)) is True
        assert controller.selected_id == "a"
        assert router.state is GestureState.SELECTING

        assert send_touch(shown_canvas, QEvent.Type.TouchUpdate, (0, UPDATED, 90, 85)) is True
        assert router.state is GestureState.DRAGGING
        assert (controller.get("a").x, controller.get("a").y) == pytest.approx((70, 60))

        assert send_touch(shown_canvas, QEvent.Type.TouchEnd, (0, RELEASED, 90, 85)) is True
        assert router.state is GestureState.IDLE
        assert (controller.get("a").x, controller.get("a").y) == pytest.approx((70, 60))

    def test_two_finger_pinch_on_image(self, shown_canvas, controller, source_ref):
        controller.add(source_ref)
        router = shown_canvas.router_for("a")

        send_touch(shown_canvas, QEvent.Type.TouchBegin,
                   (0, PRESSED, 70, 75), (1, PRESSED, 130, 75))
        assert router.state is GestureState.PINCHING
        assert router.pinch_distance == pytest.approx(60)

        send_touch(shown_canvas, QEvent.Type.TouchUpdate,
                   (0, UPDATED, 40, 75), (1, UPDATED, 160, 75))
        transform = controller.get("a")
        # doubled about the initial midpoint (100, 75)
        assert (transform.scale_x, transform.scale_y) == pytest.approx((2, 2))
        assert (transform.x, transform.y) == pytest.approx((0, 25))

    def test_lifting_one_contact_ends_pinch(self, shown_canvas, controller, source_ref):
        controller.add(source_ref)
        router = shown_canvas.router_for("a")
        send_touch(shown_canvas, QEvent.Type.TouchBegin,
                   (0, PRESSED, 70, 75), (1, PRESSED, 130, 75))
        send_touch(shown_canvas, QEvent.Type.TouchUpdate,
                   (0, UPDATED, 40, 75), (1, UPDATED, 160, 75))

        send_touch(shown_canvas, QEvent.Type.TouchUpdate,
                   (0, STATIONARY, 40, 75), (1, RELEASED, 160, 75))
        assert router.state is GestureState.SELECTING
        assert router.pinch_distance == 0
        assert controller.get("a").scale_x == pytest.approx(2)

        send_touch(shown_canvas, QEvent.Type.TouchEnd, (0, RELEASED, 40, 75))
        assert router.state is GestureState.IDLE
        transform = controller.get("a")
        assert (transform.x, transform.y, transform.scale_x) == pytest.approx((0, 25, 2))

    def test_touch_on_background_deselects(self, shown_canvas, controller, source_ref):
        controller.add(source_ref)
        assert send_touch(shown_canvas, QEvent.Type.TouchBegin, (0, PRESSED, 700, 500)) is True
        assert controller.selected_id is None
        assert send_touch(shown_canvas, QEvent.Type.TouchUpdate, (0, UPDATED, 650, 450)) is True
        assert controller.get("a").geometry() == (50, 50, 0, 1, 1)

    def test_touch_on_handle_is_handed_back(self, shown_canvas, controller, source_ref):
        controller.add(source_ref)
        handle = shown_canvas.handles.resize_handles[RIGHT]
        assert xy(handle.pos()) == pytest.approx((160, 75))
        assert send_touch(shown_canvas, QEvent.Type.TouchBegin, (0, PRESSED, 160, 75)) is False
        assert shown_canvas.router_for("a").state is GestureState.IDLE
        assert controller.selected_id == "a"

    def test_touch_cancel_drops_gesture(self, shown_canvas, controller, source_ref):
        controller.add(source_ref)
        router = shown_canvas.router_for("a")
        send_touch(shown_canvas, QEvent.Type.TouchBegin, (0, PRESSED, 70, 75))
        send_touch(shown_canvas, QEvent.Type.TouchUpdate, (0, UPDATED, 90, 85))
        send_touch(shown_canvas, QEvent.Type.TouchCancel, (0, RELEASED, 90, 85))
        assert router.state is GestureState.IDLE
        send_touch(shown_canvas, QEvent.Type.TouchUpdate, (0, UPDATED, 200, 200))
        assert (controller.get("a").x, controller.get("a").y) == pytest.approx((70, 60))


# ══════════════════════════════════════════════════════════════════════════
# Decoded pixel lifetime
# ══════════════════════════════════════════════════════════════════════════

class TestPixelRelease:

    def test_remove_releases_pixels(self, canvas, controller, image_source, source_ref):
        controller.add(source_ref)
        controller.remove("a")
        assert image_source.pixmap(source_ref) is None

    def test_shared_pixels_kept_while_in_use(self, canvas, controller, image_source, source_ref):
        controller.add(source_ref)
        controller.add(source_ref)
        controller.remove("a")
        assert image_source.pixmap(source_ref) is not None
        assert canvas.item_for("b").has_pixmap()
        controller.remove("b")
        assert image_source.pixmap(source_ref) is None
