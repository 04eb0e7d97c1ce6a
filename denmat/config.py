"""Configuration settings for the DENM Annotation Tool."""

# Default application settings
DEFAULT_SETTINGS = {
    "window_geometry": (100, 100, 1400, 850),
    "autosave_delay": 2000,  # milliseconds after the last edit
    "recent_datasets_limit": 10,
}

# Box editing settings, in pixels unless noted
EDITOR_SETTINGS = {
    "normalized_scale": 1000,  # schema grid size
    "draw_threshold": 15,
    "click_threshold": 5,
    "handle_size": 10,
    "coordinate_step": 20,  # schema units per +/- click
}

# Overlay colors per keyframe (start, end)
KEYFRAME_COLORS = {
    0: (59, 130, 246),
    1: (168, 85, 247),
}

KEYFRAME_LABELS = {0: "Start", 1: "End"}

VIDEO_EXTENSIONS = (".mp4", ".webm", ".ogg", ".mov", ".avi", ".mkv", ".m4v")

# Prefix of the exported dataset file name
EXPORT_PREFIX = "annotated_"
DEFAULT_EXPORT_NAME = "annotated_dataset.json"

# Shown in place of the empty type label of an incident without a cause
NO_CAUSE_LABEL = "(no cause selected)"
