from PyQt5.QtWidgets import (
    QDockWidget,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QFormLayout,
    QPushButton,
    QButtonGroup,
    QComboBox,
    QLabel,
    QPlainTextEdit,
    QGroupBox,
)
from PyQt5.QtCore import Qt, pyqtSignal

from .. import codes
from ..annotation import keyframes_out_of_order, type_label
from ..config import NO_CAUSE_LABEL


class InspectorDock(QDockWidget):
    """Edits the DENM fields of the selected item."""

    # Field name, new value; the main window runs it through update_field
    field_changed = pyqtSignal(str, object)

    def __init__(self, parent=None):
        super().__init__("Inspector", parent)
        self.setAllowedAreas(Qt.LeftDockWidgetArea | Qt.RightDockWidgetArea)
        self.main_window = parent
        self._updating = False
        self.init_ui()
        self.set_record(None)

    def init_ui(self):
        widget = QWidget()
        layout = QVBoxLayout(widget)

        # Incident toggle
        incident_layout = QHBoxLayout()
        incident_layout.addWidget(QLabel("Incident:"))
        self.no_button = QPushButton("NO")
        self.yes_button = QPushButton("YES")
        self.incident_group = QButtonGroup(self)
        for value, button in ((0, self.no_button), (1, self.yes_button)):
            button.setCheckable(True)
            self.incident_group.addButton(button, value)
            incident_layout.addWidget(button)
        self.incident_group.buttonClicked[int].connect(
            lambda value: self._emit("incident", value)
        )
        layout.addLayout(incident_layout)

        # Cause / sub-cause selectors
        self.codes_group = QGroupBox("DENM Codes")
        form_layout = QFormLayout(self.codes_group)

        self.cause_combo = QComboBox()
        self.cause_combo.addItem("Select Cause...", None)
        for code, name in codes.cause_options():
            self.cause_combo.addItem(f"{code} - {name}", code)
        self.cause_combo.currentIndexChanged.connect(
            lambda _: self._emit("cause_code", self.cause_combo.currentData())
        )
        self.cause_text_label = QLabel()
        self.category_label = QLabel()
        self.category_label.setStyleSheet("color: #888888;")

        self.sub_cause_combo = QComboBox()
        self.sub_cause_combo.currentIndexChanged.connect(
            lambda _: self._emit("sub_cause_code", self.sub_cause_combo.currentData())
        )
        self.sub_cause_text_label = QLabel()

        form_layout.addRow("Cause:", self.cause_combo)
        form_layout.addRow("", self.cause_text_label)
        form_layout.addRow("", self.category_label)
        form_layout.addRow("Sub Cause:", self.sub_cause_combo)
        form_layout.addRow("", self.sub_cause_text_label)
        layout.addWidget(self.codes_group)

        # Description
        layout.addWidget(QLabel("Description:"))
        self.description_edit = QPlainTextEdit()
        self.description_edit.setPlaceholderText("Describe the scene and hazard...")
        self.description_edit.textChanged.connect(
            lambda: self._emit("description", self.description_edit.toPlainText())
        )
        layout.addWidget(self.description_edit)

        # Derived values
        self.message_type_label = QLabel()
        self.type_label = QLabel()
        self.order_warning = QLabel("Start keyframe is after end keyframe")
        self.order_warning.setStyleSheet("color: #e0a030;")
        layout.addWidget(self.message_type_label)
        layout.addWidget(self.type_label)
        layout.addWidget(self.order_warning)
        layout.addStretch()

        self.setWidget(widget)

    def _emit(self, field, value):
        if not self._updating:
            self.field_changed.emit(field, value)

    def set_record(self, record):
        """Show a record; None disables the inspector"""
        self._updating = True
        try:
            widget = self.widget()
            widget.setEnabled(record is not None)
            if record is None:
                self.incident_group.setExclusive(False)
                self.no_button.setChecked(False)
                self.yes_button.setChecked(False)
                self.incident_group.setExclusive(True)
                self.codes_group.setVisible(False)
                self.description_edit.setPlainText("")
                self.message_type_label.setText("")
                self.type_label.setText("")
                self.order_warning.setVisible(False)
                return

            self.incident_group.button(1 if record.is_incident else 0).setChecked(True)
            self.codes_group.setVisible(record.is_incident)

            index = self.cause_combo.findData(record.cause_code)
            self.cause_combo.setCurrentIndex(index if index >= 0 else 0)
            self.cause_text_label.setText(f"Text: {record.cause_text or 'null'}")
            category = codes.category_for_cause(record.cause_code)
            self.category_label.setText(f"Category {category[0]}: {category[1]}" if category else "")

            self._fill_sub_causes(record.cause_code)
            self.sub_cause_combo.setEnabled(record.cause_code is not None)
            index = self.sub_cause_combo.findData(record.sub_cause_code)
            self.sub_cause_combo.setCurrentIndex(index if index >= 0 else 0)
            self.sub_cause_text_label.setText(f"Text: {record.sub_cause_text or 'null'}")

            # Only replace the text when it differs, so the cursor stays put while typing
            if self.description_edit.toPlainText() != (record.description or ""):
                self.description_edit.setPlainText(record.description or "")

            self.message_type_label.setText(f"Type: {record.message_type}")
            self.type_label.setText(f"Label: {type_label(record) or NO_CAUSE_LABEL}")
            self.order_warning.setVisible(keyframes_out_of_order(record))
        finally:
            self._updating = False

    def _fill_sub_causes(self, cause_code):
        self.sub_cause_combo.clear()
        self.sub_cause_combo.addItem("Select Sub Cause...", None)
        for code, text in codes.sub_cause_options(cause_code):
            self.sub_cause_combo.addItem(f"{code} - {text}", code)
