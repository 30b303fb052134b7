from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Detection:
    """
    Final detection with coordinates normalized to [0, 1] relative to the
    original frame content (letterbox padding removed).
    """

    label: str
    score: float
    xmin: float
    ymin: float
    xmax: float
    ymax: float

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.xmin, self.ymin, self.xmax, self.ymax

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
