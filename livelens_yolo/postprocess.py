from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .letterbox import LetterboxTransform
from .nms import SoftNMSConfig, soft_nms
from .normalize import normalize_detections
from .types import Detection


@dataclass
class YoloPostConfig:
    """
    Post-processing settings for YOLOv5-style raw outputs.
    """

    score_threshold: float = 0.35
    iou_threshold: float = 0.3
    sigma: float = 0.5
    max_detections: int = 50
    # Some exports emit (5 + C, N) instead of (N, 5 + C).
    channels_first: bool = False
    # Ordered class vocabulary; None uses COCO80.
    labels: Optional[Sequence[str]] = None


def _sigmoid(x: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


def _as_rows(preds: np.ndarray, channels_first: bool) -> np.ndarray:
    p = np.asarray(preds, dtype=np.float32)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise ValueError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one frame at a time.")
        p = p[0]
    if p.ndim != 2:
        raise ValueError(f"Unsupported YOLO output shape: {p.shape}")
    if channels_first:
        p = p.T
    if p.shape[1] < 6:
        raise ValueError(f"Expected rows of [cx, cy, w, h, obj, classes...], got shape {p.shape}")
    return p


def decode_candidates(
    preds: np.ndarray,
    score_threshold: float = 0.35,
    *,
    channels_first: bool = False,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Decode raw (N, 5 + C) or (1, N, 5 + C) output into candidate boxes.

    Objectness and class columns are logits. Rows whose objectness probability
    is below `score_threshold` are rejected before their class columns are
    looked at; survivors need obj * best_class >= `score_threshold`.

    Returns:
        boxes: (K, 4) xyxy in working-surface pixels
        scores: (K,) combined confidence
        class_ids: (K,) arg-max class index
    """

    p = _as_rows(preds, channels_first)

    obj = _sigmoid(p[:, 4])
    # NaN compares False and is rejected here
    rows = np.nonzero(obj >= score_threshold)[0]

    cls_prob = _sigmoid(p[rows, 5:])
    class_ids = np.argmax(cls_prob, axis=1)
    best = cls_prob[np.arange(rows.size), class_ids]
    conf = obj[rows] * best

    ok = conf >= score_threshold
    rows, conf, class_ids = rows[ok], conf[ok], class_ids[ok]

    cx, cy, w, h = p[rows, 0], p[rows, 1], p[rows, 2], p[rows, 3]
    boxes = np.stack([cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2], axis=1)

    finite = np.all(np.isfinite(boxes), axis=1)
    return boxes[finite], conf[finite], class_ids[finite].astype(np.int64)


class YoloPostprocessor:
    """
    Raw output -> candidates -> soft-NMS -> normalized detections.

    Suppression runs as a single pass over all classes: a box of one class can
    suppress an overlapping box of another class.
    """

    def __init__(self, cfg: YoloPostConfig):
        self.cfg = cfg
        self.nms_cfg = SoftNMSConfig(
            iou_threshold=cfg.iou_threshold,
            sigma=cfg.sigma,
            score_threshold=cfg.score_threshold,
            max_detections=cfg.max_detections,
        )

    def process(self, preds: np.ndarray, transform: LetterboxTransform) -> List[Detection]:
        boxes, scores, class_ids = decode_candidates(
            preds,
            self.cfg.score_threshold,
            channels_first=self.cfg.channels_first,
        )
        if scores.size == 0:
            return []

        keep, decayed = soft_nms(boxes, scores, self.nms_cfg)
        return normalize_detections(
            boxes,
            decayed,
            class_ids,
            keep,
            transform,
            score_threshold=self.cfg.score_threshold,
            labels=self.cfg.labels,
        )
