from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np


@dataclass
class SoftNMSConfig:
    iou_threshold: float = 0.3
    sigma: float = 0.5
    score_threshold: float = 0.35
    max_detections: int = 50


def box_iou(a: Sequence[float], b: Sequence[float]) -> float:
    """
    IoU of two xyxy boxes. Disjoint boxes and zero-union pairs give 0.0.
    """

    ax1, ay1, ax2, ay2 = a
    bx1, by1, bx2, by2 = b

    w = max(0.0, min(ax2, bx2) - max(ax1, bx1))
    h = max(0.0, min(ay2, by2) - max(ay1, by1))
    inter = w * h

    union = (ax2 - ax1) * (ay2 - ay1) + (bx2 - bx1) * (by2 - by1) - inter
    if union == 0:
        return 0.0
    return float(inter / union)


def _iou_one_to_many(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    xx1 = np.maximum(box[0], others[:, 0])
    yy1 = np.maximum(box[1], others[:, 1])
    xx2 = np.minimum(box[2], others[:, 2])
    yy2 = np.minimum(box[3], others[:, 3])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h

    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (others[:, 2] - others[:, 0]) * (others[:, 3] - others[:, 1])
    union = area + areas - inter

    iou = np.zeros_like(inter)
    np.divide(inter, union, out=iou, where=union != 0)
    return iou


def soft_nms(boxes: np.ndarray, scores: np.ndarray, cfg: SoftNMSConfig) -> Tuple[np.ndarray, np.ndarray]:
    """
    Class-agnostic Gaussian soft-NMS over xyxy boxes (N,4) and scores (N,).

    Each round keeps the highest-scoring active box and multiplies every other
    active score by exp(-iou^2 / sigma); boxes whose decayed score is no longer
    above `score_threshold` leave the active set. Stops when nothing is active
    or `max_detections` boxes are kept.

    Returns:
        keep: kept indices in pick order
        decayed: copy of `scores` after decay (inputs are left untouched)
    """

    decayed = np.array(scores, dtype=np.float64, copy=True)
    if decayed.size == 0:
        return np.empty((0,), dtype=np.int64), decayed

    boxes = np.asarray(boxes, dtype=np.float64)
    active = np.arange(decayed.shape[0])
    keep = []

    while active.size > 0 and len(keep) < cfg.max_detections:
        # argmax returns the first maximum, so ties go to the lowest index
        best = active[np.argmax(decayed[active])]
        keep.append(int(best))

        rest = active[active != best]
        if rest.size == 0:
            break

        iou = _iou_one_to_many(boxes[best], boxes[rest])
        decayed[rest] *= np.exp(-(iou * iou) / cfg.sigma)
        active = rest[decayed[rest] > cfg.score_threshold]

    return np.array(keep, dtype=np.int64), decayed
