"""
TraceOverlay Gesture Router

Turns raw pointer and touch input on one overlay image into select and
transform requests. The router never touches the collection itself: it asks
for the current transform through a provider and emits signals that the
SceneController answers.
"""

import logging
from enum import Enum, auto
from typing import Callable, Optional, Sequence

from PyQt6.QtCore import QObject, QPointF, pyqtSignal

from geometry import distance, midpoint
from overlay_model import MIN_SCALE, ImageTransform


logger = logging.getLogger(__name__)


class GestureState(Enum):
    IDLE = auto()
    SELECTING = auto()
    DRAGGING = auto()
    TRANSFORMING = auto()
    PINCHING = auto()


class PinchStart:
    """Snapshot taken when two contacts first produce a usable distance."""

    def __init__(self, distance: float, scale_x: float, scale_y: float,
                 position: QPointF, center: QPointF):
        self.distance = distance
        self.scale_x = scale_x
        self.scale_y = scale_y
        self.position = position
        self.center = center


def pinch_transform(start: PinchStart, current_distance: float,
                    transform: ImageTransform) -> Optional[ImageTransform]:
    """Scale about the initial pinch midpoint by the contact distance ratio.

    Returns None when the start distance is not established or the result
    would collapse to MIN_SCALE or below.
    """
    if start.distance <= 0:
        return None
    ratio = current_distance / start.distance
    scale_x = start.scale_x * ratio
    scale_y = start.scale_y * ratio
    if abs(scale_x) <= MIN_SCALE or abs(scale_y) <= MIN_SCALE:
        return None
    position = start.center + (start.position - start.center) * ratio
    return transform.with_geometry(position.x(), position.y(), transform.rotation,
                                   scale_x, scale_y)


class GestureRouter(QObject):
    """Per-object gesture state machine.

    Idle -> Selecting -> {Dragging | Transforming | Pinching} -> Idle
    """

    selectRequested = pyqtSignal(str)
    transformRequested = pyqtSignal(str, object)
    transformCommitted = pyqtSignal(str, object)

    def __init__(self, image_id: str, transform_provider: Callable[[], Optional[ImageTransform]],
                 draggable: bool = True, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.image_id = image_id
        self.draggable = draggable
        self._transform_provider = transform_provider
        self._state = GestureState.IDLE
        self._drag_offset: Optional[QPointF] = None
        self._pinch: Optional[PinchStart] = None
        self._last_transform: Optional[ImageTransform] = None

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def pinch_distance(self) -> float:
        """Initial pinch distance, 0 while no pinch is established."""
        return self._pinch.distance if self._pinch else 0.0

    def _set_state(self, state: GestureState) -> None:
        if state is self._state:
            return
        logger.debug("%s: %s -> %s", self.image_id, self._state.name, state.name)
        self._state = state

    def _current(self) -> Optional[ImageTransform]:
        return self._transform_provider()

    def _request(self, transform: ImageTransform) -> ImageTransform:
        self._last_transform = transform
        self.transformRequested.emit(self.image_id, transform)
        return transform

    def _commit(self) -> Optional[ImageTransform]:
        transform = self._last_transform
        self._last_transform = None
        if transform is not None:
            self.transformCommitted.emit(self.image_id, transform)
        return transform

    def _anchor_drag(self, point: QPointF) -> None:
        transform = self._current()
        if transform is None:
            self._drag_offset = None
            return
        self._drag_offset = QPointF(transform.x, transform.y) - point

    # ========================================================================
    # Single pointer
    # ========================================================================

    def pointer_down(self, point: QPointF) -> None:
        """First contact on the painted image: request selection."""
        if self._state is not GestureState.IDLE:
            return
        self._set_state(GestureState.SELECTING)
        self.selectRequested.emit(self.image_id)
        self._anchor_drag(point)

    def pointer_move(self, point: QPointF) -> Optional[ImageTransform]:
        if self._state not in (GestureState.SELECTING, GestureState.DRAGGING):
            return None
        if not self.draggable or self._drag_offset is None:
            return None
        transform = self._current()
        if transform is None:
            return None
        self._set_state(GestureState.DRAGGING)
        target = point + self._drag_offset
        return self._request(transform.moved_to(target.x(), target.y()))

    def pointer_up(self, point: Optional[QPointF] = None) -> Optional[ImageTransform]:
        committed = None
        if self._state is GestureState.DRAGGING:
            if point is not None:
                self.pointer_move(point)
            committed = self._commit()
        elif self._state is GestureState.TRANSFORMING:
            committed = self._commit()
        self._reset()
        return committed

    # ========================================================================
    # Handles
    # ========================================================================

    def begin_transform(self) -> None:
        if self._state is GestureState.PINCHING:
            return
        self._last_transform = None
        self._drag_offset = None
        self._set_state(GestureState.TRANSFORMING)

    def transform_to(self, transform: ImageTransform) -> Optional[ImageTransform]:
        """Report the full geometry tuple proposed by a handle."""
        if self._state is not GestureState.TRANSFORMING:
            return None
        return self._request(transform)

    def end_transform(self) -> Optional[ImageTransform]:
        if self._state is not GestureState.TRANSFORMING:
            return None
        committed = self._commit()
        self._reset()
        return committed

    # ========================================================================
    # Touch
    # ========================================================================

    def touch_update(self, points: Sequence[QPointF]) -> Optional[ImageTransform]:
        """Feed the currently active contacts of a touch sequence."""
        count = len(points)
        if count == 1:
            if self._state is GestureState.PINCHING:
                self._end_pinch(points)
                return None
            if self._state is GestureState.IDLE:
                self.pointer_down(points[0])
                return None
            return self.pointer_move(points[0])
        if count == 2:
            if self._state is GestureState.IDLE:
                self._set_state(GestureState.SELECTING)
                self.selectRequested.emit(self.image_id)
            return self._pinch_move(points[0], points[1])
        return None

    def touch_end(self, points: Sequence[QPointF] = ()) -> Optional[ImageTransform]:
        """Contacts were lifted; ``points`` holds the ones still down."""
        if self._state is GestureState.PINCHING:
            if len(points) >= 2:
                return None
            return self._end_pinch(points)
        if points:
            return None
        return self.pointer_up()

    def cancel(self) -> None:
        """Abandon the gesture without committing."""
        self._last_transform = None
        self._reset()

    def _pinch_move(self, first: QPointF, second: QPointF) -> Optional[ImageTransform]:
        if self._state is GestureState.TRANSFORMING:
            return None
        if self._state is not GestureState.PINCHING:
            if self._state is GestureState.DRAGGING:
                logger.debug("%s: second contact cancels drag", self.image_id)
            self._last_transform = None
            self._drag_offset = None
            self._pinch = None
            self._set_state(GestureState.PINCHING)
        transform = self._current()
        if transform is None:
            return None
        current_distance = distance(first, second)
        if self._pinch is None or self._pinch.distance == 0:
            if current_distance == 0:
                return None
            self._pinch = PinchStart(current_distance, transform.scale_x, transform.scale_y,
                                     QPointF(transform.x, transform.y),
                                     midpoint(first, second))
            return None
        proposed = pinch_transform(self._pinch, current_distance, transform)
        if proposed is None:
            logger.debug("%s: pinch scale below limit suppressed", self.image_id)
            return None
        return self._request(proposed)

    def _end_pinch(self, remaining: Sequence[QPointF]) -> Optional[ImageTransform]:
        committed = self._commit()
        self._pinch = None
        if remaining:
            self._set_state(GestureState.SELECTING)
            self._anchor_drag(remaining[0])
        else:
            self._reset()
        return committed

    def _reset(self) -> None:
        self._drag_offset = None
        self._pinch = None
        self._set_state(GestureState.IDLE)
