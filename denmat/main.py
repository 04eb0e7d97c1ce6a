"""
DENM Annotation Tool - Main Application

This module contains the main window. It owns the loaded dataset and the
selected item, and routes every edit from the widgets through the record
model (``update_field``, ``update_box`` and friends) before redrawing.
"""

import os
import logging

from PyQt5.QtWidgets import (
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QAction,
    QFileDialog,
    QStatusBar,
    QMessageBox,
    QMenu,
)
from PyQt5.QtCore import Qt, QTimer
from PyQt5.QtGui import QKeySequence

from .annotation import (
    update_field,
    update_box,
    sync_keyframe_time,
    set_keyframe_seconds,
    set_coordinate,
    nudge_coordinate,
    keyframe_seek_time,
    keyframes_out_of_order,
)
from .canvas import VideoCanvas
from .config import DEFAULT_SETTINGS, KEYFRAME_LABELS
from .logger import DenmatLogger, log_exceptions
from .managers.video_manager import VideoManager
from .utils import (
    DatasetError,
    load_dataset,
    export_dataset,
    export_path_for,
    scan_video_files,
    match_video,
    save_autosave,
    load_autosave,
    restore_autosave,
    load_last_state,
    get_recent_datasets,
    update_recent_datasets,
    save_last_state,
)
from .widgets import DatasetDock, InspectorDock, KeyframeBar

logger = logging.getLogger(__name__)


class DenmAnnotationTool(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("DENM Annotator")
        self.setGeometry(*DEFAULT_SETTINGS["window_geometry"])

        self.items = []
        self.current_index = -1
        self.dataset_filename = None
        self.video_files = {}
        self.video_dirs = []
        self.active_keyframe = 0
        self.project_modified = False

        self.error_logger = DenmatLogger()
        self.video_manager = VideoManager(self)
        self.init_ui()
        self.init_menus()
        self.connect_signals()
        self.setup_autosave()

    # -------------------------------------------------------------------------
    # UI setup
    # -------------------------------------------------------------------------

    def init_ui(self):
        central = QWidget()
        layout = QVBoxLayout(central)

        self.canvas = VideoCanvas(self)
        self.keyframe_bar = KeyframeBar(self)
        layout.addWidget(self.canvas, stretch=1)
        layout.addWidget(self.keyframe_bar)
        self.setCentralWidget(central)

        self.dataset_dock = DatasetDock(self)
        self.addDockWidget(Qt.LeftDockWidgetArea, self.dataset_dock)
        self.inspector_dock = InspectorDock(self)
        self.addDockWidget(Qt.RightDockWidgetArea, self.inspector_dock)

        self.statusBar = QStatusBar()
        self.setStatusBar(self.statusBar)

    def init_menus(self):
        file_menu = self.menuBar().addMenu("&File")

        open_action = QAction("&Open Dataset...", self)
        open_action.setShortcut(QKeySequence.Open)
        open_action.triggered.connect(lambda: self.open_dataset())
        file_menu.addAction(open_action)

        self.recent_menu = QMenu("Open &Recent", self)
        self.recent_menu.aboutToShow.connect(self.update_recent_menu)
        file_menu.addMenu(self.recent_menu)

        videos_action = QAction("Add &Videos...", self)
        videos_action.triggered.connect(lambda: self.add_videos())
        file_menu.addAction(videos_action)

        folder_action = QAction("Add Video &Folder...", self)
        folder_action.triggered.connect(lambda: self.add_video_folder())
        file_menu.addAction(folder_action)

        file_menu.addSeparator()
        export_action = QAction("&Export Dataset...", self)
        export_action.setShortcut(QKeySequence.Save)
        export_action.triggered.connect(lambda: self.export_dataset())
        file_menu.addAction(export_action)

        file_menu.addSeparator()
        exit_action = QAction("E&xit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        navigate_menu = self.menuBar().addMenu("&Navigate")
        shortcuts = (
            ("Play / Pause", Qt.Key_Space, lambda: self.toggle_playback()),
            ("Previous Frame", Qt.Key_Left, lambda: self.video_manager.prev_frame()),
            ("Next Frame", Qt.Key_Right, lambda: self.video_manager.next_frame()),
            ("Previous Item", Qt.Key_PageUp, lambda: self.select_item(self.current_index - 1)),
            ("Next Item", Qt.Key_PageDown, lambda: self.select_item(self.current_index + 1)),
            ("Start Keyframe", Qt.Key_1, lambda: self.on_keyframe_selected(0)),
            ("End Keyframe", Qt.Key_2, lambda: self.on_keyframe_selected(1)),
            ("Sync Keyframe Time", Qt.Key_T, lambda: self.on_sync_requested()),
        )
        for text, key, slot in shortcuts:
            action = QAction(text, self)
            action.setShortcut(QKeySequence(key))
            action.triggered.connect(slot)
            navigate_menu.addAction(action)

        speed_menu = navigate_menu.addMenu("Playback &Speed")
        for speed in (0.25, 0.5, 1.0, 2.0):
            action = QAction(f"{speed}x", self)
            action.triggered.connect(lambda _, s=speed: self.video_manager.set_playback_speed(s))
            speed_menu.addAction(action)

    def connect_signals(self):
        self.video_manager.frame_changed.connect(self.on_frame_changed)
        self.video_manager.video_loaded.connect(self.on_video_loaded)
        self.video_manager.video_closed.connect(lambda: self.canvas.set_frame(None))
        self.video_manager.playback_changed.connect(self.keyframe_bar.set_playing)

        self.canvas.box_changed.connect(self.on_box_changed)
        self.canvas.playback_toggle_requested.connect(self.toggle_playback)

        self.keyframe_bar.play_toggled.connect(self.toggle_playback)
        self.keyframe_bar.seek_requested.connect(self.video_manager.seek)
        self.keyframe_bar.keyframe_selected.connect(self.on_keyframe_selected)
        self.keyframe_bar.keyframe_seconds_changed.connect(self.on_keyframe_seconds_changed)
        self.keyframe_bar.coordinate_edited.connect(self.on_coordinate_edited)
        self.keyframe_bar.coordinate_nudged.connect(self.on_coordinate_nudged)
        self.keyframe_bar.sync_requested.connect(self.on_sync_requested)

        self.dataset_dock.item_selected.connect(self.select_item)
        self.inspector_dock.field_changed.connect(self.on_field_changed)

    @log_exceptions
    def setup_autosave(self):
        """Single-shot timer restarted on every edit, so writes are debounced"""
        self.autosave_timer = QTimer(self)
        self.autosave_timer.setSingleShot(True)
        self.autosave_timer.setInterval(DEFAULT_SETTINGS["autosave_delay"])
        self.autosave_timer.timeout.connect(self.perform_autosave)

    # -------------------------------------------------------------------------
    # Dataset and video loading
    # -------------------------------------------------------------------------

    @log_exceptions
    def open_dataset(self, filename=None):
        """Load a dataset file, offering to restore a newer autosave"""
        if not filename:
            filename, _ = QFileDialog.getOpenFileName(
                self, "Open Dataset", "", "JSON Files (*.json);;All Files (*)"
            )
            if not filename:
                return False

        try:
            items = load_dataset(filename)
        except DatasetError as e:
            self.error_logger.log_error(e, "open_dataset")
            QMessageBox.critical(self, "Error", f"Invalid dataset file:\n{e}")
            return False

        self.project_modified = False
        restored = load_autosave(filename)
        if restored and len(restored) == len(items):
            reply = QMessageBox.question(
                self,
                "Restore Autosave",
                "An autosave newer than this dataset was found.\nRestore the autosaved annotations?",
                QMessageBox.Yes | QMessageBox.No,
                QMessageBox.Yes,
            )
            if reply == QMessageBox.Yes:
                self.project_modified = restore_autosave(items, restored) > 0

        self.items = items
        self.dataset_filename = filename
        self.current_index = -1
        self.dataset_dock.set_items(self.items, len(self.video_files))
        update_recent_datasets(filename)
        self.statusBar.showMessage(f"Loaded {len(items)} items from {os.path.basename(filename)}", 5000)

        if self.items:
            self.select_item(0)
        return True

    def update_recent_menu(self):
        self.recent_menu.clear()
        recent = get_recent_datasets()
        if not recent:
            action = self.recent_menu.addAction("No recent datasets")
            action.setEnabled(False)
            return
        for path in recent:
            action = self.recent_menu.addAction(path)
            action.triggered.connect(lambda _, p=path: self.open_dataset(p))

    @log_exceptions
    def restore_last_state(self):
        """Reopen the dataset, video folders and item of the previous session"""
        state = load_last_state()
        if not state:
            return False
        folders = [d for d in state.get("video_dirs") or [] if os.path.isdir(d)]
        for folder in folders:
            self.add_video_folder(folder)
        dataset = state.get("dataset")
        if not dataset or not os.path.exists(dataset) or not self.open_dataset(dataset):
            return False
        index = state.get("selected_index")
        if isinstance(index, int):
            self.select_item(index)
        return True

    @log_exceptions
    def add_videos(self, paths=None):
        if paths is None:
            paths, _ = QFileDialog.getOpenFileNames(
                self,
                "Add Videos",
                "",
                "Video Files (*.mp4 *.webm *.ogg *.mov *.avi *.mkv *.m4v);;All Files (*)",
            )
        self._register_videos(paths)

    @log_exceptions
    def add_video_folder(self, folder=None):
        if folder is None:
            folder = QFileDialog.getExistingDirectory(self, "Add Video Folder")
        if folder:
            self.video_dirs.append(folder)
            self._register_videos([folder])

    def _register_videos(self, paths):
        if not paths:
            return
        found = scan_video_files(paths)
        self.video_files.update(found)
        self.statusBar.showMessage(f"Added {len(found)} videos ({len(self.video_files)} total)", 5000)
        self.dataset_dock.set_items(self.items, len(self.video_files))
        if 0 <= self.current_index < len(self.items):
            self.dataset_dock.select_row(self.current_index)
            self.load_item_video()

    def load_item_video(self):
        item = self.current_item
        if item is None:
            return
        path = match_video(item, self.video_files)
        if path is None:
            self.video_manager.close_video()
            self.canvas.set_frame(None)
            self.keyframe_bar.set_duration(0.0)
            self.keyframe_bar.set_time(0.0)
            self.statusBar.showMessage(f"No video loaded for item {item.id}", 5000)
            return
        if path != self.video_manager.video_filename:
            if not self.video_manager.load_video_file(path):
                QMessageBox.critical(self, "Error", f"Could not open video file!\n{path}")

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    @property
    def current_item(self):
        if 0 <= self.current_index < len(self.items):
            return self.items[self.current_index]
        return None

    @property
    def current_record(self):
        item = self.current_item
        return item.record if item else None

    @log_exceptions
    def select_item(self, index):
        if not (0 <= index < len(self.items)) or index == self.current_index:
            return
        self.current_index = index
        self.dataset_dock.select_row(index)
        self.set_active_keyframe(0)
        self.load_item_video()
        self.refresh_views()

    def set_active_keyframe(self, keyframe):
        self.active_keyframe = keyframe
        self.canvas.set_active_keyframe(keyframe)

    def refresh_views(self, boxes_only=False):
        """Push the current record to the widgets"""
        record = self.current_record
        boxes = record.box_2d if record else ()
        self.canvas.set_boxes(boxes)
        self.keyframe_bar.set_boxes(boxes, self.active_keyframe)
        if boxes_only:
            self.inspector_dock.order_warning.setVisible(
                record is not None and keyframes_out_of_order(record)
            )
            return
        self.inspector_dock.set_record(record)
        if record is not None:
            self.dataset_dock.refresh_item(self.current_index, self.current_item)

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def apply_record(self, record, boxes_only=False):
        """Replace the record of the selected item and schedule an autosave"""
        item = self.current_item
        if item is None or record is item.record:
            return
        item.set_record(record)
        self.project_modified = True
        self.autosave_timer.start()
        self.refresh_views(boxes_only=boxes_only)

    @log_exceptions
    def on_field_changed(self, field, value):
        record = self.current_record
        if record is None:
            return
        self.apply_record(update_field(record, field, value))

    @log_exceptions
    def on_box_changed(self, keyframe, box):
        record = self.current_record
        if record is None:
            return
        self.apply_record(update_box(record, keyframe, box), boxes_only=True)

    @log_exceptions
    def on_keyframe_selected(self, keyframe):
        record = self.current_record
        if record is None or not record.is_incident:
            return
        self.set_active_keyframe(keyframe)
        self.video_manager.seek(keyframe_seek_time(record, keyframe, self.video_manager.duration))
        self.refresh_views(boxes_only=True)
        self.statusBar.showMessage(f"Editing {KEYFRAME_LABELS[keyframe]} keyframe", 2000)

    @log_exceptions
    def on_keyframe_seconds_changed(self, seconds):
        record = self.current_record
        if record is None:
            return
        self.apply_record(
            set_keyframe_seconds(record, self.active_keyframe, seconds, self.video_manager.duration)
        )

    @log_exceptions
    def on_coordinate_edited(self, coordinate, value):
        record = self.current_record
        if record is None:
            return
        self.apply_record(set_coordinate(record, self.active_keyframe, coordinate, value))

    @log_exceptions
    def on_coordinate_nudged(self, coordinate, delta):
        record = self.current_record
        if record is None:
            return
        self.apply_record(nudge_coordinate(record, self.active_keyframe, coordinate, delta))

    @log_exceptions
    def on_sync_requested(self):
        record = self.current_record
        if record is None:
            return
        self.apply_record(
            sync_keyframe_time(
                record,
                self.active_keyframe,
                self.video_manager.current_time,
                self.video_manager.duration,
            )
        )

    # -------------------------------------------------------------------------
    # Video
    # -------------------------------------------------------------------------

    def toggle_playback(self):
        self.video_manager.toggle_play()

    def on_video_loaded(self, filename, duration):
        self.keyframe_bar.set_duration(duration)
        self.refresh_views(boxes_only=True)
        self.statusBar.showMessage(f"Video: {os.path.basename(filename)}", 3000)

    def on_frame_changed(self, current_time, frame):
        self.canvas.set_frame(frame)
        self.keyframe_bar.set_time(current_time)

    # -------------------------------------------------------------------------
    # Saving
    # -------------------------------------------------------------------------

    @log_exceptions
    def perform_autosave(self):
        if not self.dataset_filename or not self.project_modified:
            return
        if save_autosave(self.dataset_filename, self.items):
            self.statusBar.showMessage("Autosaved", 2000)

    @log_exceptions
    def export_dataset(self, filename=None):
        if not self.items:
            QMessageBox.information(self, "Export", "No dataset loaded.")
            return False
        if not filename:
            filename, _ = QFileDialog.getSaveFileName(
                self,
                "Export Dataset",
                export_path_for(self.dataset_filename),
                "JSON Files (*.json)",
            )
            if not filename:
                return False

        if not export_dataset(filename, self.items):
            QMessageBox.critical(self, "Error", f"Could not write {filename}")
            return False
        self.project_modified = False
        self.statusBar.showMessage(f"Exported to {filename}", 5000)
        return True

    def closeEvent(self, event):
        if self.project_modified:
            reply = QMessageBox.question(
                self,
                "Unsaved Annotations",
                "Export the annotated dataset before closing?",
                QMessageBox.Yes | QMessageBox.No | QMessageBox.Cancel,
                QMessageBox.Yes,
            )
            if reply == QMessageBox.Cancel:
                event.ignore()
                return
            if reply == QMessageBox.Yes and not self.export_dataset():
                event.ignore()
                return
            if reply == QMessageBox.No:
                self.perform_autosave()

        save_last_state(
            {
                "dataset": self.dataset_filename,
                "selected_index": self.current_index,
                "video_dirs": self.video_dirs,
            }
        )
        self.video_manager.close_video()
        event.accept()
