"""
Incident record model and derivation rules.

An incident record is the structured annotation of one dataset item: the DENM
message fields plus two spatiotemporal boxes (start and end keyframe). Records
are never mutated in place; every operation here returns a new record so the
shell can replace the current one atomically.

Box layout follows the stored schema: ``[t, y_min, x_min, y_max, x_max]`` with
``t`` normalized to the clip duration and coordinates on a 0-1000 grid.
"""

import json
import math
import logging
from collections import namedtuple

from . import codes
from .config import EDITOR_SETTINGS

logger = logging.getLogger(__name__)

SCALE = EDITOR_SETTINGS["normalized_scale"]

MESSAGE_DENM = "DENM"
MESSAGE_NONE = "none"

# Cause code 0 is not in the reference table and means "nothing selected"
CAUSE_UNSET = 0

SCHEMA_FIELDS = (
    "incident",
    "message_type",
    "cause_code",
    "sub_cause_code",
    "cause_text",
    "sub_cause_text",
    "box_2d",
    "description",
)
DERIVED_FIELDS = frozenset(("message_type", "cause_text", "sub_cause_text"))
COORDINATE_NAMES = ("y_min", "x_min", "y_max", "x_max")

# Keys of a dataset item that only exist while editing
INTERNAL_ITEM_KEYS = ("_parsed",)


def round_half_up(value):
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp(value, lower, upper):
    return max(lower, min(upper, value))


def _to_number(value, default=0.0):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


def _coerce_flag(value):
    try:
        return 1 if int(value) == 1 else 0
    except (TypeError, ValueError):
        return 0


def _coerce_code(value):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric code {value!r}")
        return None


class SpatiotemporalBox(
    namedtuple("SpatiotemporalBox", ["t", "y_min", "x_min", "y_max", "x_max"])
):
    """One keyframe of the hazard: normalized time plus a box on the 0-1000 grid."""

    __slots__ = ()

    @classmethod
    def from_list(cls, values):
        """Build a box from a stored ``[t, y_min, x_min, y_max, x_max]`` list."""
        if isinstance(values, cls):
            return values
        if not isinstance(values, (list, tuple)) or len(values) != 5:
            raise ValueError(f"Expected 5 box values, got {values!r}")
        t = _to_number(values[0])
        return cls(t, *(_to_number(v) for v in values[1:]))

    def to_list(self):
        return [self.t, self.y_min, self.x_min, self.y_max, self.x_max]

    def normalized(self):
        """
        Schema-valid copy: min/max swapped into order, coordinates rounded and
        clamped to [0, 1000], time clamped to [0, 1].
        """
        y_min, y_max = sorted((self.y_min, self.y_max))
        x_min, x_max = sorted((self.x_min, self.x_max))
        return SpatiotemporalBox(
            float(clamp(_to_number(self.t), 0.0, 1.0)),
            round_half_up(clamp(y_min, 0, SCALE)),
            round_half_up(clamp(x_min, 0, SCALE)),
            round_half_up(clamp(y_max, 0, SCALE)),
            round_half_up(clamp(x_max, 0, SCALE)),
        )


def default_boxes():
    """Start at t=0, end at t=1, both a zero-area box at the origin."""
    return (SpatiotemporalBox(0.0, 0, 0, 0, 0), SpatiotemporalBox(1.0, 0, 0, 0, 0))


class IncidentRecord:
    """
    Parsed DENM annotation of a single dataset item.

    Field names match the stored schema. ``extra`` holds free-form metadata set
    while editing; it is never exported.
    """

    def __init__(
        self,
        incident=0,
        message_type=MESSAGE_NONE,
        cause_code=None,
        sub_cause_code=None,
        cause_text=None,
        sub_cause_text=None,
        box_2d=None,
        description="",
        extra=None,
    ):
        self.incident = incident
        self.message_type = message_type
        self.cause_code = cause_code
        self.sub_cause_code = sub_cause_code
        self.cause_text = cause_text
        self.sub_cause_text = sub_cause_text
        self.box_2d = tuple(box_2d or ())
        self.description = description
        self.extra = dict(extra or {})

    @property
    def is_incident(self):
        return self.incident == 1

    def to_dict(self):
        """Convert to a dictionary in stored schema order (no ``extra``)."""
        return {
            "incident": self.incident,
            "message_type": self.message_type,
            "cause_code": self.cause_code,
            "sub_cause_code": self.sub_cause_code,
            "cause_text": self.cause_text,
            "sub_cause_text": self.sub_cause_text,
            "box_2d": [box.to_list() for box in self.box_2d],
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data):
        """
        Create a record from a parsed annotation object.

        Unknown keys end up in ``extra``; malformed boxes are skipped. The
        result is not normalized, see ``normalize_record``.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Annotation must be a JSON object, got {type(data).__name__}")

        boxes = []
        raw_boxes = data.get("box_2d") or []
        if not isinstance(raw_boxes, list):
            raw_boxes = []
        for raw in raw_boxes:
            try:
                boxes.append(SpatiotemporalBox.from_list(raw))
            except ValueError as e:
                logger.warning(f"Skipping malformed box: {e}")

        extra = {k: v for k, v in data.items() if k not in SCHEMA_FIELDS}

        return cls(
            incident=_coerce_flag(data.get("incident", 0)),
            message_type=data.get("message_type", MESSAGE_NONE),
            cause_code=_coerce_code(data.get("cause_code")),
            sub_cause_code=_coerce_code(data.get("sub_cause_code")),
            cause_text=data.get("cause_text"),
            sub_cause_text=data.get("sub_cause_text"),
            box_2d=boxes,
            description=data.get("description", ""),
            extra=extra,
        )

    def copy(self):
        """Create a copy; boxes are immutable tuples and are shared."""
        return IncidentRecord(
            self.incident,
            self.message_type,
            self.cause_code,
            self.sub_cause_code,
            self.cause_text,
            self.sub_cause_text,
            self.box_2d,
            self.description,
            self.extra,
        )

    def __eq__(self, other):
        if not isinstance(other, IncidentRecord):
            return NotImplemented
        return self.to_dict() == other.to_dict() and self.extra == other.extra

    def __repr__(self):
        return f"IncidentRecord({self.to_dict()!r})"


def default_record():
    """The all-clear record used for new or unparsable annotations."""
    return IncidentRecord()


def _clear_incident(record):
    record.incident = 0
    record.message_type = MESSAGE_NONE
    record.cause_code = None
    record.sub_cause_code = None
    record.cause_text = None
    record.sub_cause_text = None
    record.box_2d = ()


def normalize_record(record):
    """
    Return a copy of ``record`` that satisfies every schema invariant.

    The message type and display texts are re-derived from the flag and codes;
    boxes are clamped, and an incident always carries exactly two of them.
    """
    new = record.copy()
    new.incident = _coerce_flag(new.incident)

    if new.incident != 1:
        _clear_incident(new)
    else:
        new.message_type = MESSAGE_DENM
        if len(new.box_2d) != 2:
            new.box_2d = default_boxes()
        else:
            new.box_2d = tuple(box.normalized() for box in new.box_2d)

        if new.cause_code is None or new.cause_code == CAUSE_UNSET:
            new.cause_code = None
            new.cause_text = None
            new.sub_cause_code = None
            new.sub_cause_text = None
        else:
            new.cause_text = codes.cause_text(new.cause_code)
            if new.sub_cause_code is None:
                new.sub_cause_text = None
            else:
                new.sub_cause_text = codes.sub_cause_text(new.cause_code, new.sub_cause_code)

    if new.description is None:
        new.description = ""
    return new


def update_field(record, field, value):
    """
    Assign ``value`` to ``field`` and re-derive the dependent fields.

    Returns a new record; ``record`` is left untouched. Derived fields cannot
    be written directly and boxes go through ``update_box``.
    """
    if field in DERIVED_FIELDS:
        raise ValueError(f"'{field}' is derived and cannot be set directly")
    if field == "box_2d":
        raise ValueError("Boxes are edited through update_box")

    new = record.copy()

    if field == "incident":
        new.incident = _coerce_flag(value)
        if new.incident == 1:
            new.message_type = MESSAGE_DENM
            if len(new.box_2d) != 2:
                new.box_2d = default_boxes()
        else:
            _clear_incident(new)

    elif field == "cause_code":
        if new.incident != 1:
            logger.debug("Cause code ignored: record has no incident")
            return new
        code = _coerce_code(value)
        if code is None or code == CAUSE_UNSET:
            new.cause_code = None
            new.cause_text = None
        else:
            new.cause_code = code
            new.cause_text = codes.cause_text(code)
        # A new cause invalidates the previous sub-cause
        new.sub_cause_code = None
        new.sub_cause_text = None

    elif field == "sub_cause_code":
        code = _coerce_code(value)
        if code is None:
            new.sub_cause_code = None
            new.sub_cause_text = None
        elif new.cause_code is None:
            logger.debug("Sub-cause code ignored: no cause code selected")
        else:
            new.sub_cause_code = code
            new.sub_cause_text = codes.sub_cause_text(new.cause_code, code)

    elif field == "description":
        new.description = value

    else:
        new.extra[field] = value

    return new


def _check_keyframe(keyframe):
    if keyframe not in (0, 1):
        raise ValueError(f"Keyframe must be 0 or 1, got {keyframe!r}")


def update_box(record, keyframe, box):
    """
    Replace one keyframe box, normalized to the schema grid.

    Records without an incident (or without two boxes) are returned unchanged.
    """
    _check_keyframe(keyframe)
    if record.incident != 1 or len(record.box_2d) != 2:
        return record

    new = record.copy()
    boxes = list(new.box_2d)
    boxes[keyframe] = SpatiotemporalBox.from_list(box).normalized()
    new.box_2d = tuple(boxes)
    return new


def _active_box(record, keyframe):
    _check_keyframe(keyframe)
    if record.incident != 1 or len(record.box_2d) != 2:
        return None
    return record.box_2d[keyframe]


def sync_keyframe_time(record, keyframe, current_time, duration):
    """Write the playback position as the keyframe time."""
    box = _active_box(record, keyframe)
    if box is None:
        return record
    t = current_time / duration if duration and duration > 0 else 0.0
    return update_box(record, keyframe, box._replace(t=t))


def set_keyframe_seconds(record, keyframe, seconds, duration):
    """Set the keyframe time from seconds; ignored until the duration is known."""
    box = _active_box(record, keyframe)
    if box is None or not duration or duration <= 0:
        return record
    seconds = _to_number(seconds, default=None)
    if seconds is None:
        return record
    return update_box(record, keyframe, box._replace(t=seconds / duration))


def set_coordinate(record, keyframe, coordinate, value):
    """Set one of ``y_min``, ``x_min``, ``y_max``, ``x_max`` of a keyframe box."""
    if coordinate not in COORDINATE_NAMES:
        raise ValueError(f"Unknown coordinate {coordinate!r}")
    box = _active_box(record, keyframe)
    if box is None:
        return record
    return update_box(record, keyframe, box._replace(**{coordinate: _to_number(value)}))


def nudge_coordinate(record, keyframe, coordinate, delta):
    """Shift one coordinate of a keyframe box by ``delta`` grid units."""
    box = _active_box(record, keyframe)
    if box is None:
        return record
    return set_coordinate(record, keyframe, coordinate, getattr(box, coordinate) + delta)


def keyframe_seek_time(record, keyframe, duration):
    """Playback position in seconds of a keyframe, 0 when there is none."""
    box = _active_box(record, keyframe)
    if box is None or not duration:
        return 0.0
    return box.t * duration


def keyframes_out_of_order(record):
    """True when the start keyframe is later than the end keyframe."""
    if record.incident != 1 or len(record.box_2d) != 2:
        return False
    return record.box_2d[0].t > record.box_2d[1].t


def _as_record(record):
    if isinstance(record, IncidentRecord):
        return record
    return IncidentRecord.from_dict(record)


def to_storage_form(record):
    """
    Schema-clean dictionary for export.

    Accepts a record or a previously exported dictionary. Dependent fields are
    re-derived from the incident flag and codes, internal fields are dropped,
    and keyframes are stored in time order.
    """
    clean = normalize_record(_as_record(record))

    if keyframes_out_of_order(clean):
        logger.warning("Start keyframe is after end keyframe; swapping on export")
        clean.box_2d = (clean.box_2d[1], clean.box_2d[0])

    return clean.to_dict()


def type_label(record):
    """
    Human-readable event type, e.g. ``"adverseweathercondition-adhesion - ice on road"``.

    ``"none"`` without an incident; empty for an incident without a cause.
    """
    clean = normalize_record(_as_record(record))
    if clean.incident != 1:
        return "none"
    parts = [text.lower() for text in (clean.cause_text, clean.sub_cause_text) if text]
    return " - ".join(parts)


def serialize_record(record):
    """Compact JSON string stored in the dataset conversation."""
    return json.dumps(to_storage_form(record), ensure_ascii=False, separators=(",", ":"))


def parse_annotation_string(text):
    """
    Parse a stored annotation string into a normalized record.

    Missing or unparsable annotations yield the default record; the problem is
    logged and never raised.
    """
    if text is None or not str(text).strip():
        return default_record()
    try:
        return normalize_record(IncidentRecord.from_dict(json.loads(text)))
    except (TypeError, ValueError) as e:
        logger.error(f"Could not parse annotation, using default record: {e}")
        return default_record()


class DatasetItem:
    """
    One entry of the dataset file.

    The raw entry is kept as loaded; the annotation lives in the first
    conversation turn from the assistant and is exposed as ``record``.
    """

    ASSISTANT_ROLE = "assistant"

    def __init__(self, raw, index=0):
        self.raw = dict(raw) if isinstance(raw, dict) else {}
        self.index = index
        self.record = parse_annotation_string(self.annotation_string)
        self.modified = False

    @property
    def id(self):
        return self.raw.get("id", self.index)

    @property
    def video_candidates(self):
        """Video references to try when matching a loaded video file."""
        return [
            name
            for name in (self.raw.get("video"), self.raw.get("video_filename"))
            if isinstance(name, str) and name
        ]

    def _conversations(self):
        conversations = self.raw.get("conversations")
        return conversations if isinstance(conversations, list) else []

    def _assistant_index(self):
        for i, turn in enumerate(self._conversations()):
            if isinstance(turn, dict) and turn.get("from") == self.ASSISTANT_ROLE:
                return i
        return None

    @property
    def has_annotation(self):
        return self._assistant_index() is not None

    @property
    def annotation_string(self):
        idx = self._assistant_index()
        if idx is None:
            return None
        return self._conversations()[idx].get("value")

    def set_record(self, record):
        """Replace the record after an edit."""
        if record is not self.record:
            self.record = record
            self.modified = True

    def to_export_dict(self):
        """
        Raw entry with the annotation written back and a root ``type`` label.

        Items without an assistant turn only get one when they were edited.
        """
        out = {k: v for k, v in self.raw.items() if k not in INTERNAL_ITEM_KEYS}
        value = serialize_record(self.record)

        conversations = list(self._conversations())
        idx = self._assistant_index()
        if idx is not None:
            conversations[idx] = dict(conversations[idx], value=value)
            out["conversations"] = conversations
        elif self.modified:
            conversations.append({"from": self.ASSISTANT_ROLE, "value": value})
            out["conversations"] = conversations

        out["type"] = type_label(self.record)
        return out
