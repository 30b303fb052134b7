from __future__ import annotations

from typing import Dict, List, Optional, Sequence


# COCO 80-class vocabulary in YOLOv5 export order.
COCO80: Sequence[str] = (
    "person", "bicycle", "car", "motorbike", "aeroplane", "bus", "train", "truck", "boat", "traffic light",
    "fire hydrant", "stop sign", "parking meter", "bench", "bird", "cat", "dog", "horse", "sheep", "cow",
    "elephant", "bear", "zebra", "giraffe", "backpack", "umbrella", "handbag", "tie", "suitcase",
    "frisbee", "skis", "snowboard", "sports ball", "kite", "baseball bat", "baseball glove", "skateboard",
    "surfboard", "tennis racket", "bottle", "wine glass", "cup", "fork", "knife", "spoon", "bowl", "banana",
    "apple", "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "sofa",
    "pottedplant", "bed", "diningtable", "toilet", "tvmonitor", "laptop", "mouse", "remote", "keyboard",
    "cell phone", "microwave", "oven", "toaster", "sink", "refrigerator", "book", "clock", "vase",
    "scissors", "teddy bear", "hair drier", "toothbrush",
)


def label_for(class_id: int, labels: Optional[Sequence[str]] = None) -> str:
    vocab = COCO80 if labels is None else labels
    if 0 <= class_id < len(vocab):
        return vocab[class_id]
    return f"cls{class_id}"


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Load class names from a lightweight `metadata.yaml`:

        names:
          0: person
          1: bicycle
          ...

    Parsed line by line; no PyYAML dependency.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue

            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            right = right.strip().strip("'").strip('"')
            if not left.isdigit():
                continue
            names[int(left)] = right

    return names


def names_to_vocabulary(names: Dict[int, str]) -> List[str]:
    """
    Dense vocabulary from an id->name mapping; ids missing from the mapping get
    the synthetic `cls<id>` label.
    """

    if not names:
        return []
    size = max(names) + 1
    return [names.get(i, f"cls{i}") for i in range(size)]
