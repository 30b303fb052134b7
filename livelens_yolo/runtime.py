from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from .letterbox import LetterboxTransform, compute_letterbox, letterbox_image
from .postprocess import YoloPostConfig, YoloPostprocessor
from .tensor import as_input_blob, pack_rgba_planar
from .types import Detection


PathLike = Union[str, Path]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Best-effort project root discovery, used to resolve relative model paths.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    transform: LetterboxTransform


class DetectionPipeline:
    """
    Frame -> letterbox -> planar tensor -> inference -> normalized detections.

    Expects BGR frames (OpenCV-style). `infer_fn` receives a (1, 3, S, S)
    float32 blob and returns the raw (N, 5 + C) or (1, N, 5 + C) output.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        *,
        input_size: int = 320,
        post_cfg: YoloPostConfig = YoloPostConfig(),
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
    ):
        self._infer_fn = infer_fn
        self.input_size = int(input_size)
        self.post = YoloPostprocessor(post_cfg)
        self.backend = backend
        self.backend_name = backend_name

    def preprocess(self, image_bgr: np.ndarray) -> PreprocessResult:
        if image_bgr is None or not hasattr(image_bgr, "shape"):
            raise TypeError("image_bgr must be a NumPy array (BGR).")
        if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
            raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

        h, w = image_bgr.shape[:2]
        transform = compute_letterbox(w, h, self.input_size)
        rgba = letterbox_image(image_bgr, transform)
        tensor = pack_rgba_planar(rgba, self.input_size)
        return PreprocessResult(blob=as_input_blob(tensor, self.input_size), transform=transform)

    def infer(self, blob: np.ndarray) -> np.ndarray:
        return self._infer_fn(blob)

    def __call__(self, image_bgr: np.ndarray) -> List[Detection]:
        prep = self.preprocess(image_bgr)
        preds = self.infer(prep.blob)
        return self.post.process(preds, prep.transform)


def load_pipeline(
    model_path: PathLike,
    *,
    root: Optional[PathLike] = "auto",
    input_size: int = 320,
    post_cfg: YoloPostConfig = YoloPostConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
    onnx_threads: Optional[int] = None,
) -> DetectionPipeline:
    """
    Create a pipeline over an ONNX model on disk.

        pipe = load_pipeline("models/yolov5n.onnx")  # resolves from project root by default
    """

    resolved = resolve_path(model_path, root=root)
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Only ONNX models are supported, got '{resolved.suffix}'.")

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(
            providers=onnx_providers,
            input_name=onnx_input_name,
            output_name=onnx_output_name,
            intra_op_threads=onnx_threads,
        ),
    )
    return DetectionPipeline(
        ort_backend.infer,
        input_size=input_size,
        post_cfg=post_cfg,
        backend=ort_backend,
        backend_name="onnxruntime",
    )
