"""
Video overlay canvas for the DENM annotator.

Displays the current video frame with the active keyframe box on top and
forwards mouse gestures to the ``BoxEditor``. The container the editor works
in is the displayed video rectangle (aspect ratio preserved), so the 0-1000
grid always maps onto the visible frame.
"""

import cv2
import numpy as np
from PyQt5.QtWidgets import QWidget
from PyQt5.QtCore import Qt, QRect, QRectF, QPointF, pyqtSignal
from PyQt5.QtGui import QPainter, QPen, QColor, QBrush, QPixmap, QImage

from .config import EDITOR_SETTINGS, KEYFRAME_COLORS, KEYFRAME_LABELS
from .geometry import BoxEditor, DragMode, Rect, box_to_pixels, handle_points, hit_test, travel

_CURSORS = {
    DragMode.MOVE: Qt.SizeAllCursor,
    DragMode.N: Qt.SizeVerCursor,
    DragMode.S: Qt.SizeVerCursor,
    DragMode.E: Qt.SizeHorCursor,
    DragMode.W: Qt.SizeHorCursor,
    DragMode.NW: Qt.SizeFDiagCursor,
    DragMode.SE: Qt.SizeFDiagCursor,
    DragMode.NE: Qt.SizeBDiagCursor,
    DragMode.SW: Qt.SizeBDiagCursor,
    DragMode.DRAW: Qt.CrossCursor,
}


class VideoCanvas(QWidget):

    # Keyframe index, normalized SpatiotemporalBox
    box_changed = pyqtSignal(int, object)
    playback_toggle_requested = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.pixmap = None
        self.aspect_ratio = 16 / 9  # updated from the first frame
        self.boxes = ()
        self.active_keyframe = 0
        self._plain_click = None

        self.editor = BoxEditor(
            get_box=self._box_for,
            on_update=self._on_editor_update,
            get_container_rect=self.container_rect,
            on_click=self.playback_toggle_requested.emit,
        )

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMinimumSize(320, 180)

    def set_frame(self, frame):
        """Set the current frame to display"""
        if frame is None:
            self.pixmap = None
            self.update()
            return

        h, w = frame.shape[:2]
        if h > 0:
            self.aspect_ratio = w / h

        rgb_frame = cv2.cvtColor(np.ascontiguousarray(frame), cv2.COLOR_BGR2RGB)
        q_img = QImage(rgb_frame.data, w, h, 3 * w, QImage.Format_RGB888)
        # fromImage copies, so rgb_frame may be released afterwards
        self.pixmap = QPixmap.fromImage(q_img)
        self.update()

    def set_boxes(self, boxes):
        """Boxes of the current record; empty when the item has no incident."""
        self.boxes = tuple(boxes or ())
        if not self.boxes:
            self.editor.cancel()
        self.update()

    def set_active_keyframe(self, keyframe):
        self.editor.cancel()
        self.active_keyframe = keyframe
        self.editor.set_active_keyframe(keyframe)
        self.update()

    def _box_for(self, keyframe):
        if len(self.boxes) != 2:
            return None
        return self.boxes[keyframe]

    def _on_editor_update(self, keyframe, box):
        self.box_changed.emit(keyframe, box)

    def get_display_rect(self):
        """Calculate the display rectangle maintaining aspect ratio"""
        w = self.width()
        h = self.height()
        if w <= 0 or h <= 0:
            return QRect()

        if w / h > self.aspect_ratio:
            display_height = h
            display_width = int(h * self.aspect_ratio)
        else:
            display_width = w
            display_height = int(w / self.aspect_ratio)

        x = (w - display_width) // 2
        y = (h - display_height) // 2
        return QRect(x, y, display_width, display_height)

    def container_rect(self):
        """Displayed video area as the editor's container rectangle."""
        rect = self.get_display_rect()
        return Rect(rect.x(), rect.y(), rect.width(), rect.height())

    def paintEvent(self, event):
        """Paint the frame and the keyframe boxes"""
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        painter.fillRect(self.rect(), QColor(20, 20, 20))

        display_rect = self.get_display_rect()
        if self.pixmap:
            painter.drawPixmap(display_rect, self.pixmap)

        if len(self.boxes) != 2:
            return

        container = self.container_rect()
        # Other keyframe as a faint dashed outline for reference
        other = 1 - self.active_keyframe
        painter.setPen(QPen(QColor(*KEYFRAME_COLORS[other], 120), 1, Qt.DashLine))
        painter.setBrush(Qt.NoBrush)
        painter.drawRect(self._to_qrectf(box_to_pixels(self.boxes[other], container)))

        color = QColor(*KEYFRAME_COLORS[self.active_keyframe])
        px_rect = box_to_pixels(self.boxes[self.active_keyframe], container)
        painter.setPen(QPen(color, 2))
        painter.setBrush(QBrush(QColor(color.red(), color.green(), color.blue(), 50)))
        painter.drawRect(self._to_qrectf(px_rect))

        painter.setBrush(QBrush(color))
        size = EDITOR_SETTINGS["handle_size"]
        for x, y in handle_points(px_rect).values():
            painter.drawRect(QRectF(x - size / 2, y - size / 2, size, size))

        painter.setPen(QPen(Qt.white))
        painter.drawText(
            QPointF(px_rect.left + 4, px_rect.top - 6),
            KEYFRAME_LABELS[self.active_keyframe],
        )

    @staticmethod
    def _to_qrectf(rect):
        return QRectF(rect.left, rect.top, rect.width, rect.height)

    def mousePressEvent(self, event):
        """Start a draw, move or resize gesture"""
        if event.button() != Qt.LeftButton:
            return
        point = (event.pos().x(), event.pos().y())
        mode = self.editor.press(point)
        # Without an incident there is nothing to edit, a click just toggles playback
        self._plain_click = (point, 0.0) if mode is None else None
        if mode is not None:
            self.setCursor(_CURSORS[mode])

    def mouseMoveEvent(self, event):
        """Drag the active gesture or update the hover cursor"""
        point = (event.pos().x(), event.pos().y())
        if self._plain_click is not None:
            origin, max_travel = self._plain_click
            self._plain_click = (origin, max(max_travel, travel(origin, point)))
            return
        if self.editor.is_dragging:
            self.editor.move(point)
            return

        box = self._box_for(self.active_keyframe)
        if box is None:
            self.setCursor(Qt.ArrowCursor)
            return
        mode = hit_test(box, self.container_rect(), point, EDITOR_SETTINGS["handle_size"])
        self.setCursor(_CURSORS[mode])

    def mouseReleaseEvent(self, event):
        """Finish the gesture; Qt delivers the release here even outside the widget"""
        self.setFocus()
        if event.button() != Qt.LeftButton:
            return
        point = (event.pos().x(), event.pos().y())
        if self._plain_click is not None:
            origin, max_travel = self._plain_click
            self._plain_click = None
            if max(max_travel, travel(origin, point)) < EDITOR_SETTINGS["click_threshold"]:
                self.playback_toggle_requested.emit()
            return
        self.editor.release(point)
        self.setCursor(Qt.ArrowCursor)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.update()
