from __future__ import annotations

from typing import Union

import numpy as np


PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


def pack_rgba_planar(buffer: PixelBuffer, size: int) -> np.ndarray:
    """
    Convert a packed RGBA buffer of size x size pixels into a planar float tensor.

    Output is flat float32 of length 3 * size * size: the full red plane, then
    green, then blue, each row-major and scaled to [0, 1]. Alpha is dropped.
    """

    if isinstance(buffer, np.ndarray):
        if buffer.dtype != np.uint8:
            raise TypeError(f"Pixel buffer must be uint8, got {buffer.dtype}")
        flat = buffer.reshape(-1)
    else:
        flat = np.frombuffer(buffer, dtype=np.uint8)

    expected = 4 * size * size
    if flat.size != expected:
        raise ValueError(f"Expected {expected} bytes for a {size}x{size} RGBA buffer, got {flat.size}")

    rgb = flat.reshape(size * size, 4)[:, :3]
    # (pixels, 3) -> (3, pixels): one contiguous plane per channel
    planar = np.ascontiguousarray(rgb.T).astype(np.float32) / 255.0
    return planar.reshape(-1)


def as_input_blob(tensor: np.ndarray, size: int) -> np.ndarray:
    """NCHW view with batch 1, as the inference engine expects."""
    return tensor.reshape(1, 3, size, size)
