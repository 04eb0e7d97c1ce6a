__version__ = "0.1.0"

from .annotation import (
    IncidentRecord,
    SpatiotemporalBox,
    DatasetItem,
    default_record,
    normalize_record,
    update_field,
    update_box,
    to_storage_form,
    serialize_record,
    parse_annotation_string,
    type_label,
)
from .geometry import BoxEditor, DragMode, Rect
