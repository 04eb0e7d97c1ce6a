import pytest
from PyQt5.QtCore import Qt, QPoint
from PyQt5.QtTest import QTest

from denmat.annotation import SpatiotemporalBox
from denmat.canvas import VideoCanvas
from denmat.widgets.keyframe_bar import CoordinateControl, KeyframeBar


@pytest.fixture
def emitted():
    return []


class TestCoordinateControl:
    def test_focus_loss_without_change_is_not_an_edit(self, qapp, emitted):
        control = CoordinateControl("x_min")
        control.value_edited.connect(lambda name, value: emitted.append((name, value)))
        control.set_value(300)
        control.spin.editingFinished.emit()
        assert emitted == []

    def test_changed_value_is_emitted_once(self, qapp, emitted):
        control = CoordinateControl("x_min")
        control.value_edited.connect(lambda name, value: emitted.append((name, value)))
        control.set_value(300)
        control.spin.setValue(320)
        control.spin.editingFinished.emit()
        control.spin.editingFinished.emit()
        assert emitted == [("x_min", 320)]


class TestKeyframeBar:
    def make_bar(self, emitted):
        bar = KeyframeBar()
        bar.keyframe_seconds_changed.connect(emitted.append)
        bar.set_duration(10.0)
        boxes = (SpatiotemporalBox(0.123456, 0, 0, 0, 0), SpatiotemporalBox(1.0, 0, 0, 0, 0))
        bar.set_boxes(boxes, 0)
        return bar

    def test_unchanged_time_is_not_re_emitted(self, qapp, emitted):
        bar = self.make_bar(emitted)
        bar.time_spin.editingFinished.emit()
        assert emitted == []

    def test_changed_time_is_emitted(self, qapp, emitted):
        bar = self.make_bar(emitted)
        bar.time_spin.setValue(2.5)
        bar.time_spin.editingFinished.emit()
        assert emitted == [2.5]


class TestCanvasClicks:
    """Without an incident the canvas only toggles playback on a real click."""

    @pytest.fixture
    def canvas(self, qapp, emitted):
        canvas = VideoCanvas()
        canvas.resize(800, 450)
        canvas.playback_toggle_requested.connect(lambda: emitted.append("toggle"))
        return canvas

    def test_click_toggles_playback(self, canvas, emitted):
        QTest.mousePress(canvas, Qt.LeftButton, Qt.NoModifier, QPoint(100, 100))
        QTest.mouseRelease(canvas, Qt.LeftButton, Qt.NoModifier, QPoint(102, 101))
        assert emitted == ["toggle"]

    def test_long_drag_does_not_toggle(self, canvas, emitted):
        QTest.mousePress(canvas, Qt.LeftButton, Qt.NoModifier, QPoint(100, 100))
        QTest.mouseRelease(canvas, Qt.LeftButton, Qt.NoModifier, QPoint(400, 300))
        assert emitted == []
