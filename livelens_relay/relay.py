from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
import numpy as np

from livelens_yolo.types import Detection

from .config import RelayConfig
from .delivery import DeliveryQueue, DropCallback
from .ingest import Frame, FrameSource, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameMeta:
    frame_id: str
    capture_ts: int
    recv_ts: int
    inference_ts: int

    def payload(self, detections: Sequence[Detection]) -> Dict[str, Any]:
        return {
            "frame_id": self.frame_id,
            "capture_ts": self.capture_ts,
            "recv_ts": self.recv_ts,
            "inference_ts": self.inference_ts,
            "detections": [d.to_dict() for d in detections],
        }


Detector = Callable[[np.ndarray], List[Detection]]
RenderSink = Callable[[Frame, FrameMeta, List[Detection]], None]


class DetectionRelay:
    """
    Runs detection on a live frame source and forwards the results.

    Two tasks share one event loop: the frame loop (read -> detect -> render ->
    enqueue, then sleep `frame_interval_ms`) and the delivery queue's flush
    loop. A frame that fails is logged and skipped.
    """

    def __init__(
        self,
        detector: Detector,
        source: FrameSource,
        *,
        delivery: Optional[DeliveryQueue] = None,
        render: Optional[RenderSink] = None,
        frame_interval_ms: int = 80,
        destination_url: Optional[str] = None,
        max_frames: int = 0,
    ):
        self.detector = detector
        self.source = source
        self.delivery = delivery if delivery is not None else DeliveryQueue()
        self.render = render
        self.frame_interval_ms = int(frame_interval_ms)
        self.destination_url = destination_url
        self.max_frames = int(max_frames)

        self.frames_processed = 0
        self.frames_failed = 0
        self._frame_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls,
        detector: Detector,
        source: FrameSource,
        cfg: RelayConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
        render: Optional[RenderSink] = None,
        on_drop: Optional[DropCallback] = None,
        max_frames: int = 0,
    ) -> "DetectionRelay":
        delivery = DeliveryQueue(cfg.delivery_config(), client=client, on_drop=on_drop)
        return cls(
            detector,
            source,
            delivery=delivery,
            render=render,
            frame_interval_ms=cfg.frame_interval_ms,
            destination_url=cfg.destination_url,
            max_frames=max_frames,
        )

    @property
    def running(self) -> bool:
        return self._frame_task is not None and not self._frame_task.done()

    # ------------------------------------------------------------------ #
    # Per-frame work
    # ------------------------------------------------------------------ #
    def process_frame(self, frame: Frame) -> Optional[Tuple[FrameMeta, List[Detection]]]:
        try:
            detections = self.detector(frame.image)
            inference_ts = now_ms()
            meta = FrameMeta(
                frame_id=frame.frame_id,
                capture_ts=frame.capture_ts,
                recv_ts=inference_ts,
                inference_ts=inference_ts,
            )
            if self.render is not None:
                self.render(frame, meta, detections)
        except Exception:
            self.frames_failed += 1
            logger.exception("Skipping frame %s", frame.frame_id)
            return None

        self.frames_processed += 1
        if self.delivery.destination is not None:
            self.delivery.enqueue(meta.payload(detections))
        return meta, detections

    async def _frame_loop(self) -> None:
        interval = self.frame_interval_ms / 1000.0
        seen = 0
        while True:
            try:
                frame = self.source.read()
            except Exception:
                self.frames_failed += 1
                logger.exception("Frame source read failed")
                await asyncio.sleep(interval)
                continue
            if frame is None:
                logger.info("Frame source exhausted after %d frames", seen)
                return
            self.process_frame(frame)
            seen += 1
            if self.max_frames and seen >= self.max_frames:
                logger.info("Reached max_frames=%d", self.max_frames)
                return
            await asyncio.sleep(interval)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def enable_forwarding(self, url: str) -> None:
        self.destination_url = url
        self.delivery.enable(url)

    async def disable_forwarding(self) -> None:
        self.destination_url = None
        await self.delivery.disable()

    def start(self) -> None:
        if self.running:
            return
        if self.destination_url:
            self.delivery.enable(self.destination_url)
        loop = asyncio.get_running_loop()
        self._frame_task = loop.create_task(self._frame_loop(), name="livelens-frame-loop")

    async def wait(self) -> None:
        """Block until the frame loop ends (source exhausted or max_frames)."""
        if self._frame_task is not None:
            await self._frame_task

    async def stop(self, *, drain: bool = False) -> None:
        """
        Stop both loops. Pending payloads stay queued for a later start();
        with `drain=True` they are flushed first.
        """

        task, self._frame_task = self._frame_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if drain:
            await self.delivery.drain()
        else:
            await self.delivery.disable()

    async def aclose(self, *, drain: bool = False) -> None:
        await self.stop(drain=drain)
        await self.delivery.aclose()
        self.source.release()
