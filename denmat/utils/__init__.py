from .file_operations import (
    DatasetError,
    load_dataset,
    export_dataset,
    export_path_for,
    scan_video_files,
    match_video,
    save_autosave,
    load_autosave,
    restore_autosave,
    autosave_path,
    get_config_directory,
    get_recent_datasets,
    update_recent_datasets,
    save_last_state,
    load_last_state,
)
from .time_tools import format_time, time_to_fraction
