from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from livelens_yolo.postprocess import YoloPostConfig

from .delivery import DeliveryConfig


@dataclass(frozen=True)
class RelayConfig:
    input_size: int = 320
    score_threshold: float = 0.35
    iou_threshold: float = 0.3
    sigma: float = 0.5
    max_detections: int = 50
    flush_interval_ms: int = 200
    batch_size: int = 4
    max_retries: int = 3
    destination_url: Optional[str] = None
    request_timeout_s: float = 5.0
    max_queue_len: Optional[int] = 1000
    frame_interval_ms: int = 80

    def __post_init__(self) -> None:
        if self.input_size <= 0:
            raise ValueError("input_size must be > 0")
        if not 0.0 <= self.score_threshold <= 1.0:
            raise ValueError("score_threshold must be in [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        if self.sigma <= 0:
            raise ValueError("sigma must be > 0")
        if self.max_detections <= 0:
            raise ValueError("max_detections must be > 0")
        if self.flush_interval_ms <= 0:
            raise ValueError("flush_interval_ms must be > 0")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.request_timeout_s <= 0:
            raise ValueError("request_timeout_s must be > 0")
        if self.max_queue_len is not None and self.max_queue_len <= 0:
            raise ValueError("max_queue_len must be > 0 (or null for unbounded)")
        if self.frame_interval_ms < 0:
            raise ValueError("frame_interval_ms must be >= 0")

    def post_config(self, labels: Optional[Sequence[str]] = None) -> YoloPostConfig:
        return YoloPostConfig(
            score_threshold=self.score_threshold,
            iou_threshold=self.iou_threshold,
            sigma=self.sigma,
            max_detections=self.max_detections,
            labels=labels,
        )

    def delivery_config(self) -> DeliveryConfig:
        return DeliveryConfig(
            flush_interval_ms=self.flush_interval_ms,
            batch_size=self.batch_size,
            max_retries=self.max_retries,
            request_timeout_s=self.request_timeout_s,
            max_queue_len=self.max_queue_len,
        )


_INT_KEYS = {"input_size", "max_detections", "flush_interval_ms", "batch_size", "max_retries", "frame_interval_ms"}
_FLOAT_KEYS = {"score_threshold", "iou_threshold", "sigma", "request_timeout_s"}
_OPTIONAL_KEYS = {"destination_url", "max_queue_len"}


def _coerce_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be an integer")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def relay_config_from_dict(payload: Dict[str, Any]) -> RelayConfig:
    allowed = {f.name for f in fields(RelayConfig)}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown relay config keys: {unknown}")

    values: Dict[str, Any] = {}
    for key, value in payload.items():
        if value is None:
            if key not in _OPTIONAL_KEYS:
                raise ValueError(f"{key} must not be null")
            values[key] = None
        elif key in _INT_KEYS or key == "max_queue_len":
            values[key] = _coerce_int(key, value)
        elif key in _FLOAT_KEYS:
            values[key] = _coerce_float(key, value)
        elif key == "destination_url":
            if not isinstance(value, str) or not value.strip():
                raise ValueError("destination_url must be a non-empty string")
            values[key] = value.strip()
    return RelayConfig(**values)


def load_relay_config(path: Path) -> RelayConfig:
    if not path.exists():
        raise FileNotFoundError(f"Relay config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid relay config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Relay config must be a JSON object")
    return relay_config_from_dict(payload)
