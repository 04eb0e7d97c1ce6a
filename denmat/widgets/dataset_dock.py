from PyQt5.QtWidgets import (
    QDockWidget,
    QWidget,
    QVBoxLayout,
    QListWidget,
    QListWidgetItem,
    QLabel,
)
from PyQt5.QtCore import Qt, pyqtSignal
from PyQt5.QtGui import QColor

from ..annotation import type_label
from ..config import NO_CAUSE_LABEL


class DatasetDock(QDockWidget):
    """List of dataset items with their current event label."""

    item_selected = pyqtSignal(int)

    def __init__(self, parent=None):
        super().__init__("Dataset", parent)
        self.setAllowedAreas(Qt.LeftDockWidgetArea | Qt.RightDockWidgetArea)
        self.main_window = parent
        self.init_ui()

    def init_ui(self):
        widget = QWidget()
        layout = QVBoxLayout(widget)

        self.summary_label = QLabel("No dataset loaded")
        self.items_list = QListWidget()
        self.items_list.setSelectionMode(QListWidget.SingleSelection)
        self.items_list.currentRowChanged.connect(self.on_row_changed)

        layout.addWidget(self.summary_label)
        layout.addWidget(self.items_list)
        self.setWidget(widget)

    def on_row_changed(self, row):
        if row >= 0:
            self.item_selected.emit(row)

    def _item_text(self, item):
        video = item.video_candidates[0].split("/")[-1] if item.video_candidates else "no video"
        return f"{item.id}  {video}\n{type_label(item.record) or NO_CAUSE_LABEL}"

    def set_items(self, items, videos_found=None):
        """Rebuild the list for a newly loaded dataset"""
        self.items_list.blockSignals(True)
        self.items_list.clear()
        for item in items:
            list_item = QListWidgetItem(self._item_text(item))
            self._style_item(list_item, item)
            self.items_list.addItem(list_item)
        self.items_list.blockSignals(False)

        incidents = sum(1 for item in items if item.record.is_incident)
        summary = f"{len(items)} items, {incidents} incidents"
        if videos_found is not None:
            summary += f", {videos_found} videos"
        self.summary_label.setText(summary)

    def refresh_item(self, row, item):
        """Update the text of one row after an edit"""
        list_item = self.items_list.item(row)
        if list_item is None:
            return
        list_item.setText(self._item_text(item))
        self._style_item(list_item, item)

    def _style_item(self, list_item, item):
        if item.record.is_incident:
            list_item.setForeground(QColor(230, 90, 90))
        else:
            list_item.setForeground(QColor(180, 180, 180))

    def select_row(self, row):
        self.items_list.blockSignals(True)
        self.items_list.setCurrentRow(row)
        self.items_list.blockSignals(False)
