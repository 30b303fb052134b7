from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np


Box = Tuple[float, float, float, float]


@dataclass(frozen=True)
class LetterboxTransform:
    """
    Aspect-preserving placement of a source frame inside a square working surface.

    The resized content occupies (output_width, output_height) pixels; padding is
    split with the odd pixel going to the right/bottom.
    """

    src_width: int
    src_height: int
    target: int
    scale: float
    output_width: int
    output_height: int
    pad_left: int
    pad_top: int

    @property
    def pad_width(self) -> int:
        return self.target - self.output_width

    @property
    def pad_height(self) -> int:
        return self.target - self.output_height

    def to_working(self, box: Sequence[float]) -> Box:
        """
        Map a normalized (xmin, ymin, xmax, ymax) box back to working-surface pixels.
        """

        xmin, ymin, xmax, ymax = box
        return (
            xmin * self.output_width + self.pad_left,
            ymin * self.output_height + self.pad_top,
            xmax * self.output_width + self.pad_left,
            ymax * self.output_height + self.pad_top,
        )

    def to_source(self, box: Sequence[float]) -> Box:
        """
        Map a normalized box to pixel coordinates of the original frame.
        """

        xmin, ymin, xmax, ymax = box
        return (
            xmin * self.src_width,
            ymin * self.src_height,
            xmax * self.src_width,
            ymax * self.src_height,
        )


def compute_letterbox(src_width: int, src_height: int, target: int) -> LetterboxTransform:
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"Source dimensions must be positive, got {src_width}x{src_height}")
    if target <= 0:
        raise ValueError(f"Target size must be positive, got {target}")

    r = min(target / src_width, target / src_height)
    new_w = int(round(src_width * r))
    new_h = int(round(src_height * r))

    return LetterboxTransform(
        src_width=int(src_width),
        src_height=int(src_height),
        target=int(target),
        scale=r,
        output_width=new_w,
        output_height=new_h,
        pad_left=(target - new_w) // 2,
        pad_top=(target - new_h) // 2,
    )


def letterbox_image(
    image: np.ndarray,
    transform: LetterboxTransform,
    color: Tuple[int, int, int] = (0, 0, 0),
) -> np.ndarray:
    """
    Draw a BGR frame onto the square working surface described by `transform`.

    Returns:
        (target, target, 4) uint8 RGBA buffer, padding filled with `color` (RGB)
        and fully opaque.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox_image(). Install with `pip install opencv-python`.") from e

    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {image.shape}")
    h, w = image.shape[:2]
    if (w, h) != (transform.src_width, transform.src_height):
        raise ValueError(
            f"Image is {w}x{h} but transform was computed for {transform.src_width}x{transform.src_height}"
        )

    if (w, h) != (transform.output_width, transform.output_height):
        image = cv2.resize(image, (transform.output_width, transform.output_height), interpolation=cv2.INTER_LINEAR)

    rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
    bottom = transform.pad_height - transform.pad_top
    right = transform.pad_width - transform.pad_left
    return cv2.copyMakeBorder(
        rgba,
        transform.pad_top,
        bottom,
        transform.pad_left,
        right,
        cv2.BORDER_CONSTANT,
        value=(color[0], color[1], color[2], 255),
    )
