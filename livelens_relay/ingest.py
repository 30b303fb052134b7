from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import numpy as np


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Frame:
    """
    One captured BGR image. The id defaults to the capture time in ms.
    """

    image: np.ndarray
    capture_ts: int = field(default_factory=now_ms)
    frame_id: str = ""

    def __post_init__(self) -> None:
        if not self.frame_id:
            object.__setattr__(self, "frame_id", str(self.capture_ts))

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


class FrameSource(Protocol):
    def read(self) -> Optional[Frame]:
        ...

    def release(self) -> None:
        ...


class CaptureFrameSource:
    """
    Frame source over an OpenCV capture (file, webcam index or stream URL).

    `read()` returns None once the source is exhausted.
    """

    def __init__(self, *, video: Optional[str] = None, webcam: Optional[int] = None, rtsp: Optional[str] = None):
        self.cap = open_capture(video=video, webcam=webcam, rtsp=rtsp)
        self._last_ts = 0

    def read(self) -> Optional[Frame]:
        ok, image = self.cap.read()
        if not ok or image is None:
            return None
        # frame ids are capture times; keep them strictly increasing
        ts = max(now_ms(), self._last_ts + 1)
        self._last_ts = ts
        return Frame(image=image, capture_ts=ts)

    def release(self) -> None:
        self.cap.release()


def open_capture(*, video: Optional[str] = None, webcam: Optional[int] = None, rtsp: Optional[str] = None):
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for capture ingestion. Install with `pip install opencv-python`.") from e

    sources = [video is not None, webcam is not None, rtsp is not None]
    if sum(bool(s) for s in sources) != 1:
        raise ValueError("Exactly one of video/webcam/rtsp must be provided.")

    if video is not None:
        cap = cv2.VideoCapture(video)
    elif rtsp is not None:
        cap = cv2.VideoCapture(rtsp)
    else:
        cap = cv2.VideoCapture(int(webcam))

    if not cap.isOpened():
        raise RuntimeError("Failed to open video source.")
    return cap
