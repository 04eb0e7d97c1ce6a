"""
Box geometry engine for the keyframe overlay.

Translates pointer gestures in container pixel space into boxes on the 0-1000
schema grid. ``BoxEditor`` is the drag state machine: it is idle until a press,
then owns a single ``DragState`` until the matching release.

Gestures:
- press on empty area, drag: draw a new box (starts after ``draw_threshold`` px)
- press on empty area, release in place: click, toggles playback
- press on the box body: move
- press on one of the eight handles: resize that corner or edge
"""

import math
import logging
from collections import namedtuple
from dataclasses import dataclass
from enum import Enum

from .annotation import SCALE, SpatiotemporalBox, clamp
from .config import EDITOR_SETTINGS

logger = logging.getLogger(__name__)


class Rect(namedtuple("Rect", ["left", "top", "width", "height"])):
    """Pixel rectangle; origin top-left."""

    __slots__ = ()

    @property
    def right(self):
        return self.left + self.width

    @property
    def bottom(self):
        return self.top + self.height

    @property
    def is_empty(self):
        return self.width <= 0 or self.height <= 0

    def contains(self, point):
        x, y = point
        return self.left <= x <= self.right and self.top <= y <= self.bottom


EMPTY_RECT = Rect(0, 0, 0, 0)


class DragMode(Enum):
    MOVE = "move"
    N = "n"
    S = "s"
    E = "e"
    W = "w"
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"
    DRAW = "draw"


# Box coordinates each incremental mode shifts, and along which axis
_ADJUSTMENTS = {
    DragMode.MOVE: (("y_min", "y"), ("x_min", "x"), ("y_max", "y"), ("x_max", "x")),
    DragMode.N: (("y_min", "y"),),
    DragMode.S: (("y_max", "y"),),
    DragMode.E: (("x_max", "x"),),
    DragMode.W: (("x_min", "x"),),
    DragMode.NW: (("x_min", "x"), ("y_min", "y")),
    DragMode.NE: (("x_max", "x"), ("y_min", "y")),
    DragMode.SW: (("x_min", "x"), ("y_max", "y")),
    DragMode.SE: (("x_max", "x"), ("y_max", "y")),
}

# Hit-test order; corners win over edges when handles overlap on small boxes
HANDLE_ORDER = (
    DragMode.SE,
    DragMode.NW,
    DragMode.NE,
    DragMode.SW,
    DragMode.N,
    DragMode.S,
    DragMode.W,
    DragMode.E,
)


def delta_to_norm(dx_px, dy_px, rect):
    """
    Convert a pixel delta to grid units for the given container.

    Returns:
        tuple: ``(dx, dy)`` in grid units, or None for a zero-sized container
    """
    if rect.is_empty:
        return None
    return dx_px / rect.width * SCALE, dy_px / rect.height * SCALE


def point_to_norm(point, rect):
    """Container pixel position to ``(x, y)`` grid coordinates (unclamped)."""
    x, y = point
    return (x - rect.left) / rect.width * SCALE, (y - rect.top) / rect.height * SCALE


def apply_drag(mode, dx, dy, start_box):
    """
    Candidate box for an incremental drag of ``(dx, dy)`` grid units.

    The result is not reconciled or clamped; see ``SpatiotemporalBox.normalized``.
    A move is limited so the box keeps its size at the container edges.
    """
    if mode is DragMode.DRAW:
        raise ValueError("Draw gestures are not incremental, use box_from_points")

    if mode is DragMode.MOVE:
        dx = clamp(
            dx,
            -min(start_box.x_min, start_box.x_max),
            SCALE - max(start_box.x_min, start_box.x_max),
        )
        dy = clamp(
            dy,
            -min(start_box.y_min, start_box.y_max),
            SCALE - max(start_box.y_min, start_box.y_max),
        )

    delta = {"x": dx, "y": dy}
    changes = {name: getattr(start_box, name) + delta[axis] for name, axis in _ADJUSTMENTS[mode]}
    return start_box._replace(**changes)


def box_from_points(origin, current, rect, t):
    """Box spanning two container pixel positions, keeping time ``t``."""
    x0, y0 = point_to_norm(origin, rect)
    x1, y1 = point_to_norm(current, rect)
    return SpatiotemporalBox(t, y0, x0, y1, x1)


def box_to_pixels(box, rect):
    """Pixel rectangle of a grid box inside the container."""
    left = rect.left + box.x_min / SCALE * rect.width
    top = rect.top + box.y_min / SCALE * rect.height
    width = (box.x_max - box.x_min) / SCALE * rect.width
    height = (box.y_max - box.y_min) / SCALE * rect.height
    return Rect(left, top, width, height)


def box_to_percent(box):
    """Box as percentages of the container, for overlay rendering."""
    factor = 100.0 / SCALE
    return {
        "top": box.y_min * factor,
        "left": box.x_min * factor,
        "width": (box.x_max - box.x_min) * factor,
        "height": (box.y_max - box.y_min) * factor,
    }


def handle_points(px_rect):
    """Centers of the eight resize handles of a pixel rectangle."""
    cx = px_rect.left + px_rect.width / 2
    cy = px_rect.top + px_rect.height / 2
    return {
        DragMode.NW: (px_rect.left, px_rect.top),
        DragMode.NE: (px_rect.right, px_rect.top),
        DragMode.SW: (px_rect.left, px_rect.bottom),
        DragMode.SE: (px_rect.right, px_rect.bottom),
        DragMode.N: (cx, px_rect.top),
        DragMode.S: (cx, px_rect.bottom),
        DragMode.W: (px_rect.left, cy),
        DragMode.E: (px_rect.right, cy),
    }


def hit_test(box, rect, point, handle_size=None):
    """
    Drag mode for a press at ``point``.

    Args:
        box: Current keyframe box
        rect: Container pixel rectangle
        point: ``(x, y)`` press position in pixels
        handle_size: Side length of the square handle hit area

    Returns:
        DragMode: a resize mode over a handle, MOVE over the body, else DRAW
    """
    if rect.is_empty:
        return DragMode.DRAW
    if handle_size is None:
        handle_size = EDITOR_SETTINGS["handle_size"]

    px_rect = box_to_pixels(box, rect)
    half = handle_size / 2
    points = handle_points(px_rect)
    x, y = point
    for mode in HANDLE_ORDER:
        hx, hy = points[mode]
        if abs(x - hx) <= half and abs(y - hy) <= half:
            return mode

    if px_rect.width > 0 and px_rect.height > 0 and px_rect.contains(point):
        return DragMode.MOVE
    return DragMode.DRAW


def travel(origin, point):
    return math.hypot(point[0] - origin[0], point[1] - origin[1])


@dataclass
class DragState:
    """A gesture in progress; exists only between press and release."""

    mode: DragMode
    origin: tuple
    start_box: SpatiotemporalBox
    container_rect: Rect
    keyframe: int
    max_travel: float = 0.0
    drawing: bool = False
    frames: int = 0


class BoxEditor:
    """
    Drag state machine editing the active keyframe box.

    Args:
        get_box: ``callable(keyframe)`` returning the current box, or None when
            the item has no incident
        on_update: ``callable(keyframe, box)`` sink, invoked on every drag frame
        get_container_rect: ``callable()`` returning the container ``Rect``
        on_click: ``callable()`` for a click on empty area (play/pause)
        settings: overrides for ``EDITOR_SETTINGS``
    """

    def __init__(self, get_box, on_update, get_container_rect, on_click=None, settings=None):
        self.get_box = get_box
        self.on_update = on_update
        self.get_container_rect = get_container_rect
        self.on_click = on_click
        self.settings = dict(EDITOR_SETTINGS)
        if settings:
            self.settings.update(settings)
        self.active_keyframe = 0
        self.state = None

    @property
    def is_dragging(self):
        return self.state is not None

    def set_active_keyframe(self, keyframe):
        if keyframe not in (0, 1):
            raise ValueError(f"Keyframe must be 0 or 1, got {keyframe!r}")
        self.active_keyframe = keyframe

    def press(self, point):
        """
        Start a gesture at ``point``.

        Returns:
            DragMode or None: the gesture started, None when there is no box
        """
        if self.state is not None:
            return self.state.mode

        box = self.get_box(self.active_keyframe)
        if box is None:
            return None

        rect = self.get_container_rect() or EMPTY_RECT
        mode = hit_test(box, rect, point, self.settings["handle_size"])
        self.state = DragState(mode, tuple(point), box, rect, self.active_keyframe)
        logger.debug(f"Drag started: {mode.value} on keyframe {self.active_keyframe}")
        return mode

    def _live_rect(self, state):
        # Only re-queried when layout was not ready at press time
        if state.container_rect.is_empty:
            state.container_rect = self.get_container_rect() or EMPTY_RECT
        if state.container_rect.is_empty:
            return None
        return state.container_rect

    def _candidate(self, state, point, rect):
        if state.mode is DragMode.DRAW:
            return box_from_points(state.origin, point, rect, state.start_box.t)
        dx, dy = delta_to_norm(point[0] - state.origin[0], point[1] - state.origin[1], rect)
        return apply_drag(state.mode, dx, dy, state.start_box)

    def move(self, point):
        """
        Pointer moved while dragging.

        Returns:
            SpatiotemporalBox or None: the box sent to the sink, if any
        """
        state = self.state
        if state is None:
            return None

        state.max_travel = max(state.max_travel, travel(state.origin, point))
        rect = self._live_rect(state)
        if rect is None:
            return None

        if state.mode is DragMode.DRAW and not state.drawing:
            if state.max_travel <= self.settings["draw_threshold"]:
                return None
            state.drawing = True

        box = self._candidate(state, point, rect).normalized()
        state.frames += 1
        self.on_update(state.keyframe, box)
        return box

    def release(self, point):
        """
        End the gesture at ``point``.

        A draw that stayed within ``click_threshold`` px is a click and calls
        ``on_click`` instead of changing the box.
        """
        state = self.state
        self.state = None
        if state is None:
            return None

        state.max_travel = max(state.max_travel, travel(state.origin, point))
        if state.mode is not DragMode.DRAW:
            logger.debug(f"Drag finished: {state.mode.value} after {state.frames} frames")
            return None

        if state.max_travel < self.settings["click_threshold"]:
            if self.on_click is not None:
                self.on_click()
            return None

        rect = self._live_rect(state)
        if rect is None:
            return None
        box = self._candidate(state, point, rect).normalized()
        self.on_update(state.keyframe, box)
        return box

    def cancel(self):
        """Drop the current gesture without a final update."""
        self.state = None
