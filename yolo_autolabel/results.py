from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple, Union

import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    """
    Normalized (0-1) center-form box relative to the original image.

    Values are not clamped to [0, 1]; enable `clip_boxes` on the decoder for that.
    """

    class_id: int
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return {"class": self.class_id, "x": self.x, "y": self.y, "width": self.width, "height": self.height}

    def to_yolo_line(self, precision: int = 6) -> str:
        return (
            f"{self.class_id} {self.x:.{precision}f} {self.y:.{precision}f} "
            f"{self.width:.{precision}f} {self.height:.{precision}f}"
        )

    def to_xyxy(self, orig_width: int, orig_height: int) -> Tuple[float, float, float, float]:
        half_w = self.width * orig_width / 2
        half_h = self.height * orig_height / 2
        cx = self.x * orig_width
        cy = self.y * orig_height
        return cx - half_w, cy - half_h, cx + half_w, cy + half_h


def to_normalized_boxes(
    selected: Iterable[int],
    boxes: np.ndarray,
    class_ids: Sequence[int],
    orig_width: int,
    orig_height: int,
) -> List[BoundingBox]:
    """
    Convert selected corner-form pixel boxes to normalized center-form, keeping
    the order of `selected`.
    """

    if orig_width <= 0 or orig_height <= 0:
        raise ValueError(f"Original size must be positive, got {orig_width}x{orig_height}")

    out: List[BoundingBox] = []
    for idx in selected:
        x1, y1, x2, y2 = (float(v) for v in boxes[int(idx)])
        out.append(
            BoundingBox(
                class_id=int(class_ids[int(idx)]),
                x=(x1 + x2) / (2 * orig_width),
                y=(y1 + y2) / (2 * orig_height),
                width=(x2 - x1) / orig_width,
                height=(y2 - y1) / orig_height,
            )
        )
    return out


def write_yolo_labels(path: Union[str, Path], boxes: Sequence[BoundingBox], precision: int = 6) -> Path:
    """
    Write boxes as a YOLO label file, one "<cls> <x> <y> <w> <h>" line per box.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [b.to_yolo_line(precision) for b in boxes]
    path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    return path
