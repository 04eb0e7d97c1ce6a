from .dataset_dock import DatasetDock
from .inspector_dock import InspectorDock
from .keyframe_bar import KeyframeBar
