import os
import json

import pytest

# Widget tests run without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


ICE_ON_ROAD = {
    "incident": 1,
    "message_type": "DENM",
    "cause_code": 6,
    "sub_cause_code": 5,
    "cause_text": "adverseWeatherCondition-adhesion",
    "sub_cause_text": "ice on road",
    "box_2d": [[0.1, 200, 300, 400, 500], [0.8, 250, 350, 450, 550]],
    "description": "Ice patch in the right lane",
}


@pytest.fixture
def ice_annotation():
    return dict(ICE_ON_ROAD, box_2d=[list(b) for b in ICE_ON_ROAD["box_2d"]])


@pytest.fixture
def raw_items(ice_annotation):
    return [
        {
            "id": "clip_001",
            "video": "videos/clip_001.mp4",
            "conversations": [
                {"from": "human", "value": "<video>\nDescribe any road hazard."},
                {"from": "assistant", "value": json.dumps(ice_annotation)},
            ],
        },
        {
            "id": "clip_002",
            "video_filename": "clip_002.mp4",
            "conversations": [{"from": "human", "value": "<video>\nDescribe any road hazard."}],
        },
        {
            "id": "clip_003",
            "video": "clip_003.mp4",
            "conversations": [
                {"from": "human", "value": "<video>"},
                {"from": "assistant", "value": "{not json"},
            ],
        },
    ]


@pytest.fixture
def dataset_file(tmp_path, raw_items):
    path = tmp_path / "dataset.json"
    path.write_text(json.dumps(raw_items), encoding="utf-8")
    return path


@pytest.fixture(scope="session")
def qapp():
    from PyQt5.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app
