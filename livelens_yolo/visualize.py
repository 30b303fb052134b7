from __future__ import annotations

import time
from collections import deque
from typing import Deque, Iterable, Optional, Tuple

import numpy as np

from .types import Detection


BOX_COLOR: Tuple[int, int, int] = (0, 255, 0)  # BGR lime


class FpsMeter:
    """Frames per second averaged over the last `window` frame intervals."""

    def __init__(self, window: int = 20):
        self._samples: Deque[float] = deque(maxlen=int(window))
        self._last_ms: Optional[float] = None

    def tick(self, now_ms: Optional[float] = None) -> Optional[float]:
        now = time.time() * 1000.0 if now_ms is None else float(now_ms)
        if self._last_ms is not None and now > self._last_ms:
            self._samples.append(1000.0 / (now - self._last_ms))
        self._last_ms = now
        return self.fps

    @property
    def fps(self) -> Optional[float]:
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)


def e2e_latency_ms(capture_ts: int, now_ms: Optional[int] = None) -> int:
    now = int(time.time() * 1000) if now_ms is None else int(now_ms)
    return max(0, now - int(capture_ts))


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    capture_ts: Optional[int] = None,
    now_ms: Optional[int] = None,
    fps: Optional[float] = None,
    box_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw normalized detections on a BGR frame and return a copy.

    Each box gets a `label NN%` tag. The bottom-left status line shows `fps`
    when given and, with `capture_ts` (epoch ms), the end-to-end latency.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1i = int(np.clip(round(det.xmin * w), 0, w - 1))
        y1i = int(np.clip(round(det.ymin * h), 0, h - 1))
        x2i = int(np.clip(round(det.xmax * w), 0, w - 1))
        y2i = int(np.clip(round(det.ymax * h), 0, h - 1))

        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), BOX_COLOR, thickness=box_thickness)

        label = f"{det.label} {det.score * 100:.0f}%"
        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Place label above the box if possible, else inside.
        y_text_top = y1i - th - baseline
        if y_text_top < 0:
            y_text_top = y1i

        x_text_right = min(x1i + tw + 8, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)

        cv2.rectangle(out, (x1i, y_text_top), (x_text_right, y_text_bottom), (0, 0, 0), thickness=-1)
        cv2.putText(
            out,
            label,
            (x1i + 4, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    status = []
    if fps is not None:
        status.append(f"FPS {fps:.0f}")
    if capture_ts is not None:
        status.append(f"E2E {e2e_latency_ms(capture_ts, now_ms)} ms")
    if status:
        cv2.putText(
            out,
            "  ".join(status),
            (8, h - 8),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out
