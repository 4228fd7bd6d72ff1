from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ResizeRatio:
    """
    Original image size divided by model input size, per axis.
    """

    x: float
    y: float


@dataclass
class Detection:
    """
    Decoded candidate in original-image pixel coordinates (corner form).
    """

    x1: float
    y1: float
    x2: float
    y2: float
    score: float
    class_id: int = 0

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2
