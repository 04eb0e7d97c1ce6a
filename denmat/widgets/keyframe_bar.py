from PyQt5.QtWidgets import (
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QPushButton,
    QToolButton,
    QSlider,
    QLabel,
    QSpinBox,
    QDoubleSpinBox,
)
from PyQt5.QtCore import Qt, pyqtSignal

from ..annotation import COORDINATE_NAMES
from ..config import EDITOR_SETTINGS, KEYFRAME_LABELS
from ..utils.time_tools import format_time, time_to_fraction

SLIDER_STEPS = 1000

COORDINATE_LABELS = {
    "y_min": "Y-Min",
    "x_min": "X-Min",
    "y_max": "Y-Max",
    "x_max": "X-Max",
}


class CoordinateControl(QWidget):
    """Spin box with -/+ step buttons for one box coordinate."""

    # Coordinate name, value
    value_edited = pyqtSignal(str, int)
    # Coordinate name, delta
    nudged = pyqtSignal(str, int)

    def __init__(self, name, parent=None):
        super().__init__(parent)
        self.name = name
        self.displayed = None
        step = EDITOR_SETTINGS["coordinate_step"]

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(QLabel(COORDINATE_LABELS[name]), alignment=Qt.AlignHCenter)

        row = QHBoxLayout()
        minus = QToolButton()
        minus.setText("-")
        minus.setToolTip(f"-{step}")
        minus.clicked.connect(lambda: self.nudged.emit(self.name, -step))

        self.spin = QSpinBox()
        self.spin.setRange(0, EDITOR_SETTINGS["normalized_scale"])
        self.spin.setButtonSymbols(QSpinBox.NoButtons)
        self.spin.editingFinished.connect(self.on_editing_finished)

        plus = QToolButton()
        plus.setText("+")
        plus.setToolTip(f"+{step}")
        plus.clicked.connect(lambda: self.nudged.emit(self.name, step))

        row.addWidget(minus)
        row.addWidget(self.spin)
        row.addWidget(plus)
        layout.addLayout(row)

    def on_editing_finished(self):
        # Also fires on focus loss; only a changed value is an edit
        if self.spin.value() != self.displayed:
            self.displayed = self.spin.value()
            self.value_edited.emit(self.name, self.displayed)

    def set_value(self, value):
        self.spin.blockSignals(True)
        self.spin.setValue(int(value))
        self.spin.blockSignals(False)
        self.displayed = self.spin.value()


class KeyframeBar(QWidget):
    """Playback controls and the spatiotemporal editor for the two keyframes."""

    play_toggled = pyqtSignal()
    seek_requested = pyqtSignal(float)
    keyframe_selected = pyqtSignal(int)
    keyframe_seconds_changed = pyqtSignal(float)
    coordinate_edited = pyqtSignal(str, int)
    coordinate_nudged = pyqtSignal(str, int)
    sync_requested = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.duration = 0.0
        self.displayed_seconds = None
        self.init_ui()
        self.set_boxes((), 0)

    def init_ui(self):
        layout = QVBoxLayout(self)

        # Playback row
        playback = QHBoxLayout()
        self.play_button = QPushButton("Play")
        self.play_button.clicked.connect(lambda: self.play_toggled.emit())
        self.time_label = QLabel(format_time(0))
        self.time_label.setMinimumWidth(120)
        self.slider = QSlider(Qt.Horizontal)
        self.slider.setRange(0, SLIDER_STEPS)
        self.slider.sliderMoved.connect(
            lambda value: self.seek_requested.emit(value / SLIDER_STEPS * self.duration)
        )
        playback.addWidget(self.play_button)
        playback.addWidget(self.time_label)
        playback.addWidget(self.slider)
        layout.addLayout(playback)

        # Keyframe editor row
        self.editor_row = QWidget()
        editor = QHBoxLayout(self.editor_row)
        editor.setContentsMargins(0, 0, 0, 0)

        self.keyframe_buttons = {}
        for keyframe in (0, 1):
            button = QPushButton()
            button.setCheckable(True)
            button.clicked.connect(lambda _, k=keyframe: self.keyframe_selected.emit(k))
            self.keyframe_buttons[keyframe] = button
            editor.addWidget(button)

        editor.addWidget(QLabel("Time (s):"))
        self.time_spin = QDoubleSpinBox()
        self.time_spin.setDecimals(2)
        self.time_spin.setSingleStep(0.01)
        self.time_spin.editingFinished.connect(self.on_time_edited)
        editor.addWidget(self.time_spin)

        self.coordinate_controls = {}
        for name in COORDINATE_NAMES:
            control = CoordinateControl(name)
            control.value_edited.connect(self.coordinate_edited)
            control.nudged.connect(self.coordinate_nudged)
            self.coordinate_controls[name] = control
            editor.addWidget(control)

        self.sync_button = QPushButton("Sync Time")
        self.sync_button.setToolTip("Set the active keyframe to the current playback time")
        self.sync_button.clicked.connect(lambda: self.sync_requested.emit())
        editor.addWidget(self.sync_button)

        self.no_incident_label = QLabel("No incident: mark the item as an incident to edit boxes")
        self.no_incident_label.setStyleSheet("color: #888888;")

        layout.addWidget(self.editor_row)
        layout.addWidget(self.no_incident_label)

    def on_time_edited(self):
        # The spin box shows two decimals, so re-emitting an unchanged value would move t
        if self.time_spin.value() != self.displayed_seconds:
            self.displayed_seconds = self.time_spin.value()
            self.keyframe_seconds_changed.emit(self.displayed_seconds)

    def set_playing(self, playing):
        self.play_button.setText("Pause" if playing else "Play")

    def set_duration(self, duration):
        self.duration = duration or 0.0
        self.time_spin.setRange(0.0, max(self.duration, 0.0))

    def set_time(self, current_time):
        self.time_label.setText(f"{format_time(current_time)} / {format_time(self.duration)}")
        if not self.slider.isSliderDown():
            self.slider.blockSignals(True)
            self.slider.setValue(int(time_to_fraction(current_time, self.duration) * SLIDER_STEPS))
            self.slider.blockSignals(False)

    def set_boxes(self, boxes, active_keyframe):
        """Show the keyframe boxes of the current record"""
        has_boxes = len(boxes) == 2
        self.editor_row.setVisible(has_boxes)
        self.no_incident_label.setVisible(not has_boxes)
        if not has_boxes:
            return

        for keyframe, button in self.keyframe_buttons.items():
            seconds = boxes[keyframe].t * self.duration
            button.setText(f"{KEYFRAME_LABELS[keyframe]} {format_time(seconds)}")
            button.setChecked(keyframe == active_keyframe)

        box = boxes[active_keyframe]
        self.time_spin.blockSignals(True)
        self.time_spin.setValue(box.t * self.duration)
        self.time_spin.blockSignals(False)
        self.displayed_seconds = self.time_spin.value()
        for name, control in self.coordinate_controls.items():
            control.set_value(getattr(box, name))
