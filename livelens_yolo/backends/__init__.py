"""
Inference backends for livelens_yolo.

Kept in a separate module so pre/post-processing can be used without
installing an inference runtime.
"""

from __future__ import annotations

__all__ = []
