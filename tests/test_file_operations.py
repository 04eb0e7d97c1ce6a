import json
import os
import time

import pytest

from denmat.annotation import DatasetItem, update_field
from denmat.utils import file_operations
from denmat.utils.file_operations import (
    DatasetError,
    autosave_path,
    export_dataset,
    export_path_for,
    load_autosave,
    load_dataset,
    match_video,
    restore_autosave,
    save_autosave,
    scan_video_files,
)


class TestLoadDataset:
    def test_load_list(self, dataset_file):
        items = load_dataset(str(dataset_file))
        assert [item.id for item in items] == ["clip_001", "clip_002", "clip_003"]
        assert items[0].record.cause_code == 6
        assert items[2].record.incident == 0

    def test_load_single_object(self, tmp_path, raw_items):
        path = tmp_path / "single.json"
        path.write_text(json.dumps(raw_items[0]), encoding="utf-8")
        items = load_dataset(str(path))
        assert len(items) == 1
        assert items[0].record.sub_cause_text == "ice on road"

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("[{", encoding="utf-8")
        with pytest.raises(DatasetError):
            load_dataset(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(DatasetError):
            load_dataset(str(tmp_path / "missing.json"))


class TestVideos:
    def test_scan_video_files(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "a.mp4").write_bytes(b"")
        (tmp_path / "sub" / "b.MOV").write_bytes(b"")
        (tmp_path / "notes.txt").write_text("x")
        videos = scan_video_files([str(tmp_path)])
        assert sorted(videos) == ["a.mp4", "b.MOV"]
        assert videos["b.MOV"] == str(tmp_path / "sub" / "b.MOV")

    def test_scan_single_file(self, tmp_path):
        path = tmp_path / "c.webm"
        path.write_bytes(b"")
        assert scan_video_files([str(path)]) == {"c.webm": str(path)}

    def test_match_video(self, raw_items):
        videos = {"clip_001.mp4": "/data/clip_001.mp4", "clip_002.mp4": "/data/clip_002.mp4"}
        assert match_video(DatasetItem(raw_items[0]), videos) == "/data/clip_001.mp4"
        assert match_video(DatasetItem(raw_items[1]), videos) == "/data/clip_002.mp4"
        assert match_video(DatasetItem(raw_items[2]), videos) is None

    def test_match_exact_reference_first(self, raw_items):
        videos = {"videos/clip_001.mp4": "/exact.mp4", "clip_001.mp4": "/by_name.mp4"}
        assert match_video(DatasetItem(raw_items[0]), videos) == "/exact.mp4"


class TestExport:
    def test_export_path_for(self):
        assert export_path_for(os.path.join("data", "set.json")) == os.path.join(
            "data", "annotated_set.json"
        )
        assert export_path_for(None) == "annotated_dataset.json"

    def test_export_round_trip(self, tmp_path, dataset_file):
        items = load_dataset(str(dataset_file))
        items[2].set_record(update_field(items[2].record, "incident", 1))
        out = tmp_path / "annotated_dataset.json"
        assert export_dataset(str(out), items, backup=False)

        exported = json.loads(out.read_text(encoding="utf-8"))
        assert [entry["type"] for entry in exported] == [
            "adverseweathercondition-adhesion - ice on road",
            "none",
            "",
        ]
        assert "conversations" in exported[1]
        assert len(exported[1]["conversations"]) == 1

        reloaded = load_dataset(str(out))
        assert [item.record for item in reloaded] == [item.record for item in items]

    def test_export_keeps_backup(self, tmp_path, dataset_file):
        items = load_dataset(str(dataset_file))
        out = tmp_path / "out.json"
        out.write_text("[]", encoding="utf-8")
        assert export_dataset(str(out), items, backup=True)
        backups = [p for p in os.listdir(tmp_path) if p.startswith("out_backup_")]
        assert len(backups) == 1


class TestAutosave:
    def test_autosave_path(self):
        path = autosave_path(os.path.join("data", "set.json"))
        assert path == os.path.join("data", "autosaves", "set_autosave.json")

    def test_newer_autosave_is_restored(self, dataset_file):
        items = load_dataset(str(dataset_file))
        items[0].set_record(update_field(items[0].record, "description", "edited"))
        assert save_autosave(str(dataset_file), items)

        old = time.time() - 100
        os.utime(dataset_file, (old, old))
        restored = load_autosave(str(dataset_file))
        assert restored[0].record.description == "edited"

    def test_older_autosave_is_ignored(self, dataset_file):
        items = load_dataset(str(dataset_file))
        assert save_autosave(str(dataset_file), items)

        old = time.time() - 100
        path = autosave_path(str(dataset_file))
        os.utime(path, (old, old))
        assert load_autosave(str(dataset_file)) is None

    def test_no_autosave(self, dataset_file):
        assert load_autosave(str(dataset_file)) is None

    def test_restoring_unedited_autosave_keeps_items_untouched(self, dataset_file, raw_items):
        assert save_autosave(str(dataset_file), load_dataset(str(dataset_file)))
        old = time.time() - 100
        os.utime(dataset_file, (old, old))

        items = load_dataset(str(dataset_file))
        assert restore_autosave(items, load_autosave(str(dataset_file))) == 0
        assert not any(item.modified for item in items)
        exported = items[1].to_export_dict()
        assert exported["conversations"] == raw_items[1]["conversations"]

    def test_restore_only_replaces_edited_records(self, dataset_file):
        edited = load_dataset(str(dataset_file))
        edited[1].set_record(update_field(edited[1].record, "incident", 1))
        assert save_autosave(str(dataset_file), edited)

        items = load_dataset(str(dataset_file))
        restored = load_dataset(autosave_path(str(dataset_file)))
        assert restore_autosave(items, restored) == 1
        assert [item.modified for item in items] == [False, True, False]
        assert items[1].record.is_incident

    def test_restore_requires_matching_item_count(self, dataset_file):
        items = load_dataset(str(dataset_file))
        with pytest.raises(DatasetError):
            restore_autosave(items, items[:1])


class TestRecentDatasets:
    @pytest.fixture(autouse=True)
    def config_dir(self, tmp_path, monkeypatch):
        config = tmp_path / "config"
        monkeypatch.setattr(file_operations, "get_config_directory", lambda: str(config))
        return config

    def test_recent_order_and_limit(self, tmp_path):
        paths = []
        for i in range(4):
            path = tmp_path / f"set_{i}.json"
            path.write_text("[]")
            paths.append(str(path))
            file_operations.update_recent_datasets(str(path), max_datasets=3)
        file_operations.update_recent_datasets(paths[2], max_datasets=3)
        assert file_operations.get_recent_datasets() == [paths[2], paths[3], paths[1]]

    def test_missing_files_are_dropped(self, tmp_path):
        path = tmp_path / "gone.json"
        file_operations.update_recent_datasets(str(path))
        assert file_operations.get_recent_datasets() == []

    def test_last_state(self):
        assert file_operations.load_last_state() is None
        file_operations.save_last_state({"dataset": "x.json", "selected_index": 3})
        assert file_operations.load_last_state()["selected_index"] == 3
