from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import fields
from pathlib import Path
from typing import List, Optional, Sequence

from livelens_yolo import FpsMeter, draw_detections, load_class_names, load_pipeline, names_to_vocabulary
from livelens_yolo.types import Detection

from .config import RelayConfig, relay_config_from_dict
from .ingest import CaptureFrameSource, Frame
from .relay import DetectionRelay, FrameMeta
from .run_config import apply_run_config, collect_cli_dests, load_run_config

logger = logging.getLogger(__name__)


def _parse_ort_providers(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    parts = [p.strip().strip("'\"`") for p in str(raw).split(",")]
    return [p for p in parts if p] or None


def build_parser() -> argparse.ArgumentParser:
    defaults = RelayConfig()
    parser = argparse.ArgumentParser(description="Run YOLO detection on a live source and forward results over HTTP.")
    parser.add_argument("--config", default=None, help="Run config JSON; CLI flags override its values.")

    src = parser.add_mutually_exclusive_group()
    src.add_argument("--video", default=None, help="Path to input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    src.add_argument("--rtsp", default=None, help="Stream URL (rtsp://, http://, ...).")

    parser.add_argument("--model", default="models/yolov5n.onnx", help="Path to a YOLOv5 ONNX model.")
    parser.add_argument("--metadata", default=None, help="Optional class metadata yaml (names mapping); COCO80 otherwise.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--onnx-threads", type=int, default=1, help="ORT intra-op threads (0 = runtime default).")

    parser.add_argument("--input-size", dest="input_size", type=int, default=defaults.input_size, help="Square model input size.")
    parser.add_argument("--score-threshold", dest="score_threshold", type=float, default=defaults.score_threshold)
    parser.add_argument("--iou-threshold", dest="iou_threshold", type=float, default=defaults.iou_threshold)
    parser.add_argument("--sigma", type=float, default=defaults.sigma, help="Soft-NMS Gaussian decay constant.")
    parser.add_argument("--max-detections", dest="max_detections", type=int, default=defaults.max_detections)
    parser.add_argument("--frame-interval-ms", dest="frame_interval_ms", type=int, default=defaults.frame_interval_ms)

    parser.add_argument("--destination-url", dest="destination_url", default=None, help="HTTP endpoint for detections.")
    parser.add_argument("--flush-interval-ms", dest="flush_interval_ms", type=int, default=defaults.flush_interval_ms)
    parser.add_argument("--batch-size", dest="batch_size", type=int, default=defaults.batch_size)
    parser.add_argument("--max-retries", dest="max_retries", type=int, default=defaults.max_retries)
    parser.add_argument("--request-timeout-s", dest="request_timeout_s", type=float, default=defaults.request_timeout_s)
    parser.add_argument(
        "--max-queue-len",
        dest="max_queue_len",
        type=int,
        default=defaults.max_queue_len,
        help="Evict the oldest pending payload beyond this many (0 = unbounded).",
    )

    parser.add_argument("--show", action="store_true", help="Show the overlay window; press q/ESC to exit.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("--drain-on-exit", action="store_true", help="Flush pending payloads before exiting.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...).")
    return parser


def relay_config_from_args(args: argparse.Namespace) -> RelayConfig:
    values = {f.name: getattr(args, f.name) for f in fields(RelayConfig) if hasattr(args, f.name)}
    if values.get("max_queue_len") == 0:
        values["max_queue_len"] = None
    return relay_config_from_dict(values)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.config:
        payload = load_run_config(Path(args.config))
        apply_run_config(args=args, payload=payload, cli_dests=collect_cli_dests(parser, argv))

    source_count = int(args.video is not None) + int(args.webcam is not None) + int(args.rtsp is not None)
    if source_count != 1:
        parser.error("Exactly one source must be set: --video or --webcam or --rtsp (or via --config).")
    return args


class OverlayWindow:
    """Render sink that shows the annotated frame in an OpenCV window."""

    def __init__(self, title: str = "livelens"):
        import cv2  # type: ignore

        self._cv2 = cv2
        self.title = title
        self.closed = asyncio.Event()
        self.fps = FpsMeter()

    def __call__(self, frame: Frame, meta: FrameMeta, detections: List[Detection]) -> None:
        fps = self.fps.tick(meta.inference_ts)
        vis = draw_detections(frame.image, detections, capture_ts=meta.capture_ts, fps=fps)
        self._cv2.imshow(self.title, vis)
        key = self._cv2.waitKey(1) & 0xFF
        if key in (ord("q"), 27):
            self.closed.set()

    def destroy(self) -> None:
        self._cv2.destroyWindow(self.title)


async def run_relay(args: argparse.Namespace) -> int:
    cfg = relay_config_from_args(args)

    labels = None
    if args.metadata:
        labels = names_to_vocabulary(load_class_names(args.metadata))

    pipeline = load_pipeline(
        args.model,
        input_size=cfg.input_size,
        post_cfg=cfg.post_config(labels),
        onnx_providers=_parse_ort_providers(args.onnx_providers),
        onnx_threads=args.onnx_threads or None,
    )
    logger.info("ONNX Runtime session providers: %s", pipeline.backend.providers_in_use)

    source = CaptureFrameSource(video=args.video, webcam=args.webcam, rtsp=args.rtsp)
    window = OverlayWindow() if args.show else None
    relay = DetectionRelay.from_config(pipeline, source, cfg, render=window, max_frames=args.max_frames)

    if cfg.destination_url is None:
        logger.info("No destination_url set; forwarding disabled")

    relay.start()
    try:
        waiters = [asyncio.ensure_future(relay.wait())]
        if window is not None:
            waiters.append(asyncio.ensure_future(window.closed.wait()))
        done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        for fut in pending:
            fut.cancel()
        for fut in done:
            fut.result()
    finally:
        await relay.aclose(drain=bool(args.drain_on_exit))
        if window is not None:
            window.destroy()

    stats = relay.delivery.stats
    logger.info(
        "Frames processed=%d failed=%d; payloads sent=%d dropped=%d evicted=%d pending=%d",
        relay.frames_processed,
        relay.frames_failed,
        stats.sent,
        stats.dropped,
        stats.evicted,
        len(relay.delivery),
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run_relay(args))
    except KeyboardInterrupt:
        return 130
