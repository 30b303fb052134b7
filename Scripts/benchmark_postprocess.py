from __future__ import annotations

import argparse
import statistics
import time
from dataclasses import dataclass
from typing import List

import numpy as np

from livelens_yolo import (
    SoftNMSConfig,
    compute_letterbox,
    decode_candidates,
    normalize_detections,
    soft_nms,
)


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    # Linear interpolation between closest ranks.
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms_sorted = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)) if ms_sorted else 0.0,
        p50_ms=_percentile(ms_sorted, 50.0) if ms_sorted else 0.0,
        p90_ms=_percentile(ms_sorted, 90.0) if ms_sorted else 0.0,
        p95_ms=_percentile(ms_sorted, 95.0) if ms_sorted else 0.0,
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return (
        f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms "
        f"p90={s.p90_ms:.3f}ms p95={s.p95_ms:.3f}ms"
    )


def synthetic_output(n_rows: int, n_classes: int, size: int, objectness_rate: float, seed: int = 0) -> np.ndarray:
    """
    Raw YOLOv5-like output (1, N, 5 + C) with logits; roughly `objectness_rate`
    of the rows pass a 0.5 objectness floor.
    """

    rng = np.random.default_rng(seed)
    out = np.empty((1, n_rows, 5 + n_classes), dtype=np.float32)
    out[0, :, 0:2] = rng.uniform(0, size, size=(n_rows, 2))
    out[0, :, 2:4] = rng.uniform(8, size / 3, size=(n_rows, 2))
    hit = rng.uniform(size=n_rows) < objectness_rate
    out[0, :, 4] = np.where(hit, rng.uniform(1.0, 4.0, size=n_rows), rng.uniform(-8.0, -2.0, size=n_rows))
    out[0, :, 5:] = rng.normal(-3.0, 2.0, size=(n_rows, n_classes))
    return out


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark decode / soft-NMS / normalize on synthetic YOLO outputs.")
    parser.add_argument("--rows", type=int, default=6300, help="Candidate rows (6300 for a 320 YOLOv5 export).")
    parser.add_argument("--classes", type=int, default=80)
    parser.add_argument("--imgsz", type=int, default=320)
    parser.add_argument("--src-width", type=int, default=640)
    parser.add_argument("--src-height", type=int, default=480)
    parser.add_argument("--objectness-rate", type=float, default=0.02, help="Fraction of rows with high objectness.")
    parser.add_argument("--score-threshold", type=float, default=0.35)
    parser.add_argument("--sigma", type=float, default=0.5)
    parser.add_argument("--max-det", type=int, default=50)
    parser.add_argument("--warmup", type=int, default=10)
    parser.add_argument("--iterations", type=int, default=200)
    args = parser.parse_args()

    if args.rows < 1 or args.classes < 1:
        raise ValueError("--rows and --classes must be >= 1")
    if args.iterations < 1:
        raise ValueError("--iterations must be >= 1")

    preds = synthetic_output(args.rows, args.classes, args.imgsz, args.objectness_rate)
    transform = compute_letterbox(args.src_width, args.src_height, args.imgsz)
    nms_cfg = SoftNMSConfig(sigma=args.sigma, score_threshold=args.score_threshold, max_detections=args.max_det)

    t_decode: List[float] = []
    t_nms: List[float] = []
    t_norm: List[float] = []
    kept_counts: List[int] = []

    for i in range(args.warmup + args.iterations):
        t0 = time.perf_counter()
        boxes, scores, class_ids = decode_candidates(preds, args.score_threshold)
        t1 = time.perf_counter()
        keep, decayed = soft_nms(boxes, scores, nms_cfg)
        t2 = time.perf_counter()
        dets = normalize_detections(
            boxes, decayed, class_ids, keep, transform, score_threshold=args.score_threshold
        )
        t3 = time.perf_counter()

        if i < args.warmup:
            continue
        t_decode.append(t1 - t0)
        t_nms.append(t2 - t1)
        t_norm.append(t3 - t2)
        kept_counts.append(len(dets))

    print(_format_summary("decode", _summarize_ms(t_decode)))
    print(_format_summary("soft_nms", _summarize_ms(t_nms)))
    print(_format_summary("normalize", _summarize_ms(t_norm)))
    print(f"candidates={len(scores)} detections_mean={statistics.fmean(kept_counts):.1f} iterations={args.iterations}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
