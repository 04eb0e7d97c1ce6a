import pytest

from denmat.annotation import SpatiotemporalBox
from denmat.geometry import (
    BoxEditor,
    DragMode,
    EMPTY_RECT,
    Rect,
    apply_drag,
    box_to_percent,
    box_to_pixels,
    delta_to_norm,
    hit_test,
)


class EditorHarness:
    """Keeps boxes per keyframe and records every sink call."""

    def __init__(self, boxes, rect=Rect(0, 0, 800, 600)):
        self.boxes = dict(boxes)
        self.rect = rect
        self.updates = []
        self.clicks = 0
        self.editor = BoxEditor(
            get_box=self.boxes.get,
            on_update=self.on_update,
            get_container_rect=lambda: self.rect,
            on_click=self.on_click,
        )

    def on_update(self, keyframe, box):
        self.updates.append((keyframe, box))
        self.boxes[keyframe] = box

    def on_click(self):
        self.clicks += 1


def zero_boxes():
    return {0: SpatiotemporalBox(0.0, 0, 0, 0, 0), 1: SpatiotemporalBox(1.0, 0, 0, 0, 0)}


def in_bounds(box):
    return all(0 <= v <= 1000 for v in box[1:]) and box.y_min <= box.y_max and box.x_min <= box.x_max


class TestDraw:
    def test_draw_new_box(self):
        h = EditorHarness(zero_boxes())
        assert h.editor.press((100, 100)) is DragMode.DRAW
        h.editor.move((500, 400))
        h.editor.release((500, 400))
        assert h.boxes[0] == (0.0, 167, 125, 667, 625)
        assert h.clicks == 0
        assert not h.editor.is_dragging

    def test_draw_keeps_keyframe_time(self):
        boxes = zero_boxes()
        boxes[1] = SpatiotemporalBox(0.75, 0, 0, 0, 0)
        h = EditorHarness(boxes)
        h.editor.set_active_keyframe(1)
        h.editor.press((100, 100))
        h.editor.move((500, 400))
        h.editor.release((500, 400))
        assert h.boxes[1].t == 0.75
        assert h.boxes[0] == zero_boxes()[0]

    def test_click_toggles_playback_without_update(self):
        h = EditorHarness(zero_boxes())
        h.editor.press((100, 100))
        h.editor.move((102, 101))
        h.editor.release((102, 101))
        assert h.clicks == 1
        assert h.updates == []

    def test_draw_waits_for_threshold(self):
        h = EditorHarness(zero_boxes())
        h.editor.press((100, 100))
        assert h.editor.move((110, 100)) is None
        assert h.updates == []
        assert h.editor.move((130, 100)) is not None
        assert len(h.updates) == 1

    def test_short_drag_commits_on_release(self):
        h = EditorHarness(zero_boxes())
        h.editor.press((100, 100))
        h.editor.move((110, 108))
        h.editor.release((110, 108))
        assert h.clicks == 0
        assert len(h.updates) == 1
        assert h.boxes[0] == (0.0, 167, 125, 180, 138)

    def test_draw_outside_container_is_clamped(self):
        h = EditorHarness(zero_boxes())
        h.editor.press((700, 500))
        h.editor.move((900, 700))
        h.editor.release((900, 700))
        assert h.boxes[0] == (0.0, 833, 875, 1000, 1000)

    def test_draw_in_reverse_direction(self):
        h = EditorHarness(zero_boxes())
        h.editor.press((500, 400))
        h.editor.move((100, 100))
        h.editor.release((100, 100))
        assert h.boxes[0] == (0.0, 167, 125, 667, 625)


class TestMoveAndResize:
    def test_move_against_edge_keeps_box(self):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 10, 900, 110, 1000)
        h = EditorHarness(boxes)
        assert h.editor.press((760, 36)) is DragMode.MOVE
        h.editor.move((960, 36))
        h.editor.release((960, 36))
        assert h.boxes[0] == (0.0, 10, 900, 110, 1000)

    def test_move_preserves_size(self):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 100, 100, 300, 400)
        h = EditorHarness(boxes, rect=Rect(0, 0, 1000, 1000))
        h.editor.press((250, 200))
        h.editor.move((-500, 1200))
        h.editor.release((-500, 1200))
        box = h.boxes[0]
        assert box == (0.0, 800, 0, 1000, 300)

    def test_moves_stay_in_bounds(self):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 400, 400, 600, 600)
        h = EditorHarness(boxes, rect=Rect(0, 0, 1000, 1000))
        h.editor.press((500, 500))
        for point in [(900, 100), (1500, -300), (-800, 2000), (480, 520), (1000, 1000)]:
            box = h.editor.move(point)
            assert in_bounds(box)
            assert box.x_max - box.x_min == 200
            assert box.y_max - box.y_min == 200
        h.editor.release((1000, 1000))

    def test_resize_corner(self):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 100, 100, 500, 500)
        h = EditorHarness(boxes, rect=Rect(0, 0, 1000, 1000))
        assert h.editor.press((500, 500)) is DragMode.SE
        h.editor.move((600, 700))
        h.editor.release((600, 700))
        assert h.boxes[0] == (0.0, 100, 100, 700, 600)

    @pytest.mark.parametrize(
        "handle, mode, expected",
        [
            ((100, 100), DragMode.NW, (0.0, 160, 140, 500, 500)),
            ((500, 100), DragMode.NE, (0.0, 160, 100, 500, 540)),
            ((100, 500), DragMode.SW, (0.0, 100, 140, 560, 500)),
            ((500, 500), DragMode.SE, (0.0, 100, 100, 560, 540)),
            ((300, 100), DragMode.N, (0.0, 160, 100, 500, 500)),
            ((300, 500), DragMode.S, (0.0, 100, 100, 560, 500)),
            ((100, 300), DragMode.W, (0.0, 100, 140, 500, 500)),
            ((500, 300), DragMode.E, (0.0, 100, 100, 500, 540)),
        ],
    )
    def test_each_handle_moves_its_edges(self, handle, mode, expected):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 100, 100, 500, 500)
        h = EditorHarness(boxes, rect=Rect(0, 0, 1000, 1000))
        assert h.editor.press(handle) is mode
        end = (handle[0] + 40, handle[1] + 60)
        h.editor.move(end)
        h.editor.release(end)
        assert h.boxes[0] == expected

    def test_resize_past_opposite_edge_swaps(self):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 100, 100, 500, 500)
        h = EditorHarness(boxes, rect=Rect(0, 0, 1000, 1000))
        assert h.editor.press((300, 100)) is DragMode.N
        h.editor.move((300, 700))
        assert h.boxes[0] == (0.0, 500, 100, 700, 500)

    def test_resize_is_relative_to_press(self):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 100, 100, 500, 500)
        h = EditorHarness(boxes, rect=Rect(0, 0, 1000, 1000))
        h.editor.press((500, 300))
        h.editor.move((700, 300))
        h.editor.move((550, 300))
        assert h.boxes[0].x_max == 550

    def test_sink_keeps_press_keyframe(self):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 100, 100, 500, 500)
        h = EditorHarness(boxes, rect=Rect(0, 0, 1000, 1000))
        h.editor.press((300, 300))
        h.editor.set_active_keyframe(1)
        h.editor.move((320, 300))
        assert h.updates[-1][0] == 0

    def test_release_after_move_sends_nothing_more(self):
        boxes = zero_boxes()
        boxes[0] = SpatiotemporalBox(0.0, 100, 100, 500, 500)
        h = EditorHarness(boxes, rect=Rect(0, 0, 1000, 1000))
        h.editor.press((300, 300))
        h.editor.move((320, 300))
        h.editor.release((320, 300))
        assert len(h.updates) == 1


class TestEditorGuards:
    def test_no_box_means_no_gesture(self):
        h = EditorHarness({})
        assert h.editor.press((100, 100)) is None
        assert h.editor.move((300, 300)) is None
        assert h.editor.release((300, 300)) is None
        assert h.updates == [] and h.clicks == 0

    def test_zero_sized_container_is_noop(self):
        h = EditorHarness(zero_boxes(), rect=EMPTY_RECT)
        h.editor.press((100, 100))
        assert h.editor.move((400, 400)) is None
        assert h.editor.release((400, 400)) is None
        assert h.updates == []
        assert not h.editor.is_dragging

    def test_container_ready_after_press(self):
        h = EditorHarness(zero_boxes(), rect=EMPTY_RECT)
        h.editor.press((100, 100))
        h.rect = Rect(0, 0, 800, 600)
        h.editor.move((500, 400))
        assert h.boxes[0] == (0.0, 167, 125, 667, 625)

    def test_cancel_drops_gesture(self):
        h = EditorHarness(zero_boxes())
        h.editor.press((100, 100))
        h.editor.cancel()
        assert h.editor.move((500, 400)) is None
        assert h.updates == []

    def test_invalid_keyframe(self):
        h = EditorHarness(zero_boxes())
        with pytest.raises(ValueError):
            h.editor.set_active_keyframe(2)


class TestHelpers:
    def test_hit_test_regions(self):
        box = SpatiotemporalBox(0.0, 100, 100, 500, 500)
        rect = Rect(0, 0, 1000, 1000)
        assert hit_test(box, rect, (100, 100)) is DragMode.NW
        assert hit_test(box, rect, (503, 497)) is DragMode.SE
        assert hit_test(box, rect, (100, 300)) is DragMode.W
        assert hit_test(box, rect, (300, 500)) is DragMode.S
        assert hit_test(box, rect, (300, 300)) is DragMode.MOVE
        assert hit_test(box, rect, (800, 800)) is DragMode.DRAW

    def test_corners_win_on_small_boxes(self):
        box = SpatiotemporalBox(0.0, 100, 100, 104, 104)
        assert hit_test(box, Rect(0, 0, 1000, 1000), (104, 104)) is DragMode.SE

    def test_zero_area_box_has_no_body(self):
        box = SpatiotemporalBox(0.0, 0, 0, 0, 0)
        assert hit_test(box, Rect(0, 0, 800, 600), (400, 300)) is DragMode.DRAW

    def test_delta_to_norm(self):
        assert delta_to_norm(80, 60, Rect(0, 0, 800, 600)) == (100.0, 100.0)
        assert delta_to_norm(10, 10, EMPTY_RECT) is None

    def test_apply_drag_rejects_draw(self):
        with pytest.raises(ValueError):
            apply_drag(DragMode.DRAW, 1, 1, SpatiotemporalBox(0.0, 0, 0, 10, 10))

    def test_pixel_and_percent_conversion(self):
        box = SpatiotemporalBox(0.0, 250, 100, 750, 600)
        assert box_to_pixels(box, Rect(10, 20, 800, 600)) == pytest.approx((90.0, 170.0, 400.0, 300.0))
        assert box_to_percent(box) == pytest.approx(
            {"top": 25.0, "left": 10.0, "width": 50.0, "height": 50.0}
        )
