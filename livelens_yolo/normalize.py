from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from .labels import label_for
from .letterbox import LetterboxTransform
from .types import Detection


def normalize_detections(
    boxes: np.ndarray,
    scores: np.ndarray,
    class_ids: np.ndarray,
    keep: Sequence[int],
    transform: LetterboxTransform,
    *,
    score_threshold: float,
    labels: Optional[Sequence[str]] = None,
) -> List[Detection]:
    """
    Map kept working-surface boxes to [0, 1] coordinates of the original frame.

    Padding is removed, x is clamped to [0, output_width] and y to
    [0, output_height], then each axis is divided by the content size. Output
    follows `keep` order.
    """

    out_w = float(transform.output_width)
    out_h = float(transform.output_height)

    dets: List[Detection] = []
    for idx in keep:
        score = float(scores[idx])
        if score < score_threshold:
            continue

        x1, y1, x2, y2 = (float(v) for v in boxes[idx])
        x1 = min(max(x1 - transform.pad_left, 0.0), out_w)
        x2 = min(max(x2 - transform.pad_left, 0.0), out_w)
        y1 = min(max(y1 - transform.pad_top, 0.0), out_h)
        y2 = min(max(y2 - transform.pad_top, 0.0), out_h)

        dets.append(
            Detection(
                label=label_for(int(class_ids[idx]), labels),
                score=score,
                xmin=x1 / out_w,
                ymin=y1 / out_h,
                xmax=x2 / out_w,
                ymax=y2 / out_h,
            )
        )

    return dets
