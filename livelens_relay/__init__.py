"""
Live layer built on top of `livelens_yolo`.

- frame ingestion from an OpenCV capture
- relay: per-frame detection loop + render sink
- delivery: batched HTTP forwarding with bounded retry
- configuration (dataclass, JSON file, CLI)
"""

from __future__ import annotations

from .config import RelayConfig, load_relay_config, relay_config_from_dict
from .delivery import DeliveryConfig, DeliveryQueue, DeliveryStats, QueueItem, build_request_body
from .ingest import CaptureFrameSource, Frame, FrameSource, open_capture
from .relay import DetectionRelay, FrameMeta

__all__ = [
    "RelayConfig",
    "load_relay_config",
    "relay_config_from_dict",
    "DeliveryConfig",
    "DeliveryQueue",
    "DeliveryStats",
    "QueueItem",
    "build_request_body",
    "CaptureFrameSource",
    "Frame",
    "FrameSource",
    "open_capture",
    "DetectionRelay",
    "FrameMeta",
]
