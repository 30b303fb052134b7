"""
YOLO post-processing for the LiveLens detection relay.

Framework-agnostic NumPy code: letterbox geometry, RGBA -> planar tensor
packing, YOLOv5 output decoding, class-agnostic soft-NMS and normalization of
boxes back to the original frame. OpenCV is only needed for the raster
letterbox draw and the overlay.
"""

from .types import Detection
from .letterbox import LetterboxTransform, compute_letterbox, letterbox_image
from .tensor import as_input_blob, pack_rgba_planar
from .nms import SoftNMSConfig, box_iou, soft_nms
from .normalize import normalize_detections
from .postprocess import YoloPostConfig, YoloPostprocessor, decode_candidates
from .runtime import DetectionPipeline, load_pipeline, find_project_root, resolve_path
from .labels import COCO80, label_for, load_class_names, names_to_vocabulary
from .visualize import FpsMeter, draw_detections

__all__ = [
    "Detection",
    "LetterboxTransform",
    "compute_letterbox",
    "letterbox_image",
    "as_input_blob",
    "pack_rgba_planar",
    "SoftNMSConfig",
    "box_iou",
    "soft_nms",
    "normalize_detections",
    "YoloPostConfig",
    "YoloPostprocessor",
    "decode_candidates",
    "DetectionPipeline",
    "load_pipeline",
    "find_project_root",
    "resolve_path",
    "COCO80",
    "label_for",
    "load_class_names",
    "names_to_vocabulary",
    "FpsMeter",
    "draw_detections",
]
