"""
Video Manager for the DENM annotator.

Wraps an OpenCV capture and exposes the playback position in seconds: the
keyframe bar reads ``current_time`` and ``duration`` from it, the overlay
toggles playback through ``toggle_play``. Seeking lands on the nearest frame
OpenCV can decode; no frame accuracy is promised.
"""

import logging

import cv2
from PyQt5.QtCore import QTimer, QObject, pyqtSignal

logger = logging.getLogger(__name__)


class VideoManager(QObject):
    """
    Manages video loading, playback, and frame handling.
    """

    # Current time in seconds, frame data
    frame_changed = pyqtSignal(float, object)
    # Filename, duration in seconds
    video_loaded = pyqtSignal(str, float)
    video_closed = pyqtSignal()
    playback_changed = pyqtSignal(bool)

    def __init__(self, parent=None):
        """Initialize the VideoManager."""
        super().__init__(parent)

        self.cap = None
        self.video_filename = ""
        self.current_frame = 0
        self.total_frames = 0
        self.fps = 30.0
        self.is_playing = False
        self.playback_speed = 1.0
        self.play_timer = QTimer()
        self.play_timer.timeout.connect(self.next_frame)

    @property
    def duration(self):
        """Clip length in seconds, 0 when nothing is loaded."""
        if not self.cap or self.fps <= 0:
            return 0.0
        return self.total_frames / self.fps

    @property
    def current_time(self):
        if not self.cap or self.fps <= 0:
            return 0.0
        return self.current_frame / self.fps

    def load_video_file(self, filename):
        """
        Load a video file and show its first frame.

        Args:
            filename (str): Path to the video file

        Returns:
            bool: True if video loaded successfully, False otherwise
        """
        self.close_video()

        cap = cv2.VideoCapture(filename)
        if not cap.isOpened():
            logger.error(f"Could not open video file {filename}")
            return False

        ret, frame = cap.read()
        if not ret:
            logger.error(f"Could not read first frame of {filename}")
            cap.release()
            return False

        self.cap = cap
        self.video_filename = filename
        self.total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        fps = cap.get(cv2.CAP_PROP_FPS)
        self.fps = fps if fps and fps > 0 else 30.0
        self.current_frame = 0

        logger.info(
            f"Loaded {filename}: {self.total_frames} frames at {self.fps:.2f} fps"
        )
        self.video_loaded.emit(filename, self.duration)
        self.frame_changed.emit(0.0, frame)
        return True

    def get_current_frame(self):
        """Get the current frame data."""
        if not self.cap or not self.cap.isOpened():
            return None

        self.cap.set(cv2.CAP_PROP_POS_FRAMES, self.current_frame)
        ret, frame = self.cap.read()
        if ret:
            return frame
        return None

    def goto_frame(self, frame_number):
        """
        Go to a specific frame in the video.

        Returns:
            bool: True if successful, False otherwise
        """
        if not self.cap or not self.cap.isOpened() or self.total_frames <= 0:
            return False

        frame_number = max(0, min(frame_number, self.total_frames - 1))
        self.current_frame = frame_number

        frame = self.get_current_frame()
        if frame is not None:
            self.frame_changed.emit(self.current_time, frame)
            return True
        return False

    def seek(self, seconds):
        """Go to the frame closest to ``seconds``."""
        return self.goto_frame(int(round(seconds * self.fps)))

    def next_frame(self):
        """Advance one frame; stops playback at the end of the clip."""
        if not self.cap or self.current_frame >= self.total_frames - 1:
            if self.is_playing:
                self.pause()
            return False

        ret, frame = self.cap.read()
        if not ret:
            if self.is_playing:
                self.pause()
            return False
        self.current_frame += 1
        self.frame_changed.emit(self.current_time, frame)
        return True

    def prev_frame(self):
        """Go to the previous frame in the video."""
        if not self.cap or self.current_frame <= 0:
            return False
        return self.goto_frame(self.current_frame - 1)

    def play(self):
        if not self.cap or self.is_playing:
            return
        # Playback reads sequentially from the current position
        self.cap.set(cv2.CAP_PROP_POS_FRAMES, self.current_frame + 1)
        self.is_playing = True
        interval = int(1000 / (self.fps * self.playback_speed))
        self.play_timer.start(max(1, interval))
        self.playback_changed.emit(True)

    def pause(self):
        if not self.is_playing:
            return
        self.is_playing = False
        self.play_timer.stop()
        self.playback_changed.emit(False)

    def toggle_play(self):
        """Toggle video playback."""
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def set_playback_speed(self, speed):
        """
        Set the playback speed.

        Args:
            speed (float): Playback speed multiplier (1.0 = normal speed)
        """
        self.playback_speed = speed
        if self.is_playing:
            interval = int(1000 / (self.fps * self.playback_speed))
            self.play_timer.setInterval(max(1, interval))

    def close_video(self):
        """Close the current video."""
        if not self.cap:
            return False

        self.pause()
        self.cap.release()
        self.cap = None
        self.video_filename = ""
        self.current_frame = 0
        self.total_frames = 0
        self.video_closed.emit()
        return True
