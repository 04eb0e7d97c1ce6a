import os
import json
import glob
import shutil
import logging
import datetime

from PyQt5.QtCore import QSaveFile, QIODevice

from ..annotation import DatasetItem
from ..config import VIDEO_EXTENSIONS, EXPORT_PREFIX, DEFAULT_EXPORT_NAME, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


class DatasetError(ValueError):
    """Raised when a dataset file cannot be read as a DENM dataset."""


def load_dataset(filename):
    """
    Load a dataset file.

    Args:
        filename (str): Path to a JSON file holding a list of items or a single item

    Returns:
        list: DatasetItem objects in file order

    Raises:
        DatasetError: if the file is missing or is not valid JSON
    """
    try:
        with open(filename, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise DatasetError(f"Could not read dataset {filename}: {e}") from e

    entries = raw if isinstance(raw, list) else [raw]
    items = [DatasetItem(entry, index=i) for i, entry in enumerate(entries)]
    unannotated = sum(1 for item in items if not item.has_annotation)
    logger.info(
        f"Loaded {len(items)} items from {filename} ({unannotated} without annotation)"
    )
    return items


def scan_video_files(paths):
    """
    Collect video files from files and directories.

    Args:
        paths (list): File or directory paths; directories are searched recursively

    Returns:
        dict: File name to full path
    """
    videos = {}
    for path in paths:
        if os.path.isdir(path):
            candidates = glob.glob(os.path.join(path, "**", "*"), recursive=True)
        else:
            candidates = [path]
        for candidate in candidates:
            if os.path.isfile(candidate) and candidate.lower().endswith(VIDEO_EXTENSIONS):
                videos[os.path.basename(candidate)] = candidate
    return videos


def match_video(item, video_files):
    """
    Find the video of a dataset item.

    The item's ``video`` then ``video_filename`` references are tried as given,
    then by their base name.

    Returns:
        str or None: Path of the matching video
    """
    candidates = item.video_candidates
    for name in candidates:
        if name in video_files:
            return video_files[name]
    for name in candidates:
        base = name.replace("\\", "/").split("/")[-1]
        if base in video_files:
            return video_files[base]
    return None


def export_path_for(dataset_filename):
    """``annotated_<name>`` next to the source dataset."""
    if not dataset_filename:
        return DEFAULT_EXPORT_NAME
    directory, name = os.path.split(dataset_filename)
    return os.path.join(directory, EXPORT_PREFIX + name)


def backup_before_save(filename, use_timestamp=True, backup_limit=5):
    """
    Create a backup of the given file before overwriting it.

    Args:
        filename (str): Path of the file to back up
        use_timestamp (bool): Whether to append a timestamp to the backup file
        backup_limit (int): Max number of backup files to keep
    """
    if not os.path.exists(filename):
        return

    base_dir = os.path.dirname(filename)
    name, ext = os.path.splitext(os.path.basename(filename))

    if use_timestamp:
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        backup_name = f"{name}_backup_{timestamp}{ext}"
    else:
        backup_name = f"{name}.bak{ext}"

    try:
        shutil.copy2(filename, os.path.join(base_dir, backup_name))
    except OSError as e:
        logger.warning(f"Failed to create backup of {filename}: {e}")

    if backup_limit > 0:
        backups = sorted(
            [f for f in os.listdir(base_dir or ".") if f.startswith(name + "_backup_")],
            reverse=True,
        )
        for old_backup in backups[backup_limit:]:
            try:
                os.remove(os.path.join(base_dir, old_backup))
            except OSError as e:
                logger.warning(f"Could not remove old backup {old_backup}: {e}")


def save_json_atomically(filename, data, backup=False):
    """
    Write JSON through QSaveFile so a crash never leaves a truncated file.

    Returns:
        bool: True when the file was committed
    """
    if backup:
        backup_before_save(filename)

    file = QSaveFile(filename)
    if not file.open(QIODevice.WriteOnly | QIODevice.Text):
        logger.error(f"Could not open {filename} for writing")
        return False

    try:
        json_str = json.dumps(data, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.error(f"Error while serializing {filename}: {e}")
        file.cancelWriting()
        return False

    file.write(json_str.encode("utf-8"))
    if not file.commit():
        logger.error(f"Failed to commit {filename}")
        return False
    return True


def export_dataset(filename, items, backup=True):
    """
    Export all items with their annotations serialized back.

    Args:
        filename (str): Destination path
        items (list): DatasetItem objects
        backup (bool): Keep a timestamped copy of an existing destination

    Returns:
        bool: True on success
    """
    data = [item.to_export_dict() for item in items]
    ok = save_json_atomically(filename, data, backup=backup)
    if ok:
        logger.info(f"Exported {len(data)} items to {filename}")
    return ok


def autosave_path(dataset_filename):
    """Autosave file for a dataset, in an ``autosaves`` folder beside it."""
    directory, name = os.path.split(dataset_filename)
    base, _ = os.path.splitext(name)
    return os.path.join(directory, "autosaves", f"{base}_autosave.json")


def save_autosave(dataset_filename, items):
    """Overwrite the dataset's autosave; failures are logged, never raised."""
    path = autosave_path(dataset_filename)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create autosave folder for {dataset_filename}: {e}")
        return False
    return save_json_atomically(path, [item.to_export_dict() for item in items])


def load_autosave(dataset_filename):
    """
    Load the autosave of a dataset if it is newer than the dataset itself.

    Returns:
        list or None: DatasetItem objects, or None when there is nothing to restore
    """
    path = autosave_path(dataset_filename)
    if not os.path.exists(path):
        return None
    if os.path.exists(dataset_filename) and os.path.getmtime(path) <= os.path.getmtime(
        dataset_filename
    ):
        return None
    try:
        return load_dataset(path)
    except DatasetError as e:
        logger.warning(f"Ignoring unreadable autosave: {e}")
        return None


def restore_autosave(items, restored):
    """
    Copy autosaved records onto the loaded items.

    Only records that differ are replaced, so untouched items stay unmodified
    and export unchanged.

    Returns:
        int: Number of items whose record was restored
    """
    if len(restored) != len(items):
        raise DatasetError(
            f"Autosave holds {len(restored)} items, dataset holds {len(items)}"
        )
    changed = 0
    for item, saved in zip(items, restored):
        if saved.record != item.record:
            item.set_record(saved.record)
            changed += 1
    logger.info(f"Restored {changed} edited items from autosave")
    return changed


def get_config_directory():
    """
    Get the configuration directory for the application.

    Returns:
        str: Path to the configuration directory
    """
    if os.name == "nt":
        config_dir = os.path.join(os.environ.get("APPDATA", os.path.expanduser("~")), "DenmAnnotator")
    else:
        config_dir = os.path.join(os.path.expanduser("~"), ".config", "DenmAnnotator")
    return config_dir


def _read_json(path, default):
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default


def get_recent_datasets():
    """
    Get list of recent dataset files that still exist.

    Returns:
        list: Dataset file paths, most recent first
    """
    recent = _read_json(os.path.join(get_config_directory(), "recent_datasets.json"), [])
    if not isinstance(recent, list):
        return []
    return [p for p in recent if isinstance(p, str) and os.path.exists(p)]


def update_recent_datasets(dataset_file, max_datasets=None):
    """
    Move a dataset to the top of the recent list.

    Args:
        dataset_file (str): Path to the dataset file to add
        max_datasets (int): Maximum number of recent datasets to keep
    """
    if max_datasets is None:
        max_datasets = DEFAULT_SETTINGS["recent_datasets_limit"]
    config_dir = get_config_directory()
    os.makedirs(config_dir, exist_ok=True)

    recent_file = os.path.join(config_dir, "recent_datasets.json")
    recent = _read_json(recent_file, [])
    if not isinstance(recent, list):
        recent = []

    if dataset_file in recent:
        recent.remove(dataset_file)
    recent.insert(0, dataset_file)

    save_json_atomically(recent_file, recent[:max_datasets])


def save_last_state(state_data):
    """
    Save the last application state.

    Args:
        state_data (dict): Dataset path, selected item, video folders
    """
    config_dir = get_config_directory()
    os.makedirs(config_dir, exist_ok=True)
    save_json_atomically(os.path.join(config_dir, "last_state.json"), state_data)


def load_last_state():
    """
    Load the last application state.

    Returns:
        dict: Application state data, or None if there is none
    """
    state = _read_json(os.path.join(get_config_directory(), "last_state.json"), None)
    return state if isinstance(state, dict) else None
