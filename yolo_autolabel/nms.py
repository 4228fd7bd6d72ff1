from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass
class NMSConfig:
    iou_threshold: float = 0.45
    # None keeps every accepted box.
    max_detections: Optional[int] = None
    # If False, boxes only suppress boxes of the same class.
    class_agnostic: bool = True


def iou(box_a: Sequence[float], box_b: Sequence[float]) -> float:
    """
    Intersection-over-union of two xyxy boxes. Disjoint boxes give exactly 0.
    """

    a_x1, a_y1, a_x2, a_y2 = (float(v) for v in box_a)
    b_x1, b_y1, b_x2, b_y2 = (float(v) for v in box_b)

    ix1 = max(a_x1, b_x1)
    iy1 = max(a_y1, b_y1)
    ix2 = min(a_x2, b_x2)
    iy2 = min(a_y2, b_y2)
    if ix2 < ix1 or iy2 < iy1:
        return 0.0

    inter = (ix2 - ix1) * (iy2 - iy1)
    union = (a_x2 - a_x1) * (a_y2 - a_y1) + (b_x2 - b_x1) * (b_y2 - b_y1) - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def _iou_one_to_many(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    ix1 = np.maximum(box[0], others[:, 0])
    iy1 = np.maximum(box[1], others[:, 1])
    ix2 = np.minimum(box[2], others[:, 2])
    iy2 = np.minimum(box[3], others[:, 3])

    overlaps = (ix2 >= ix1) & (iy2 >= iy1)
    inter = np.where(overlaps, (ix2 - ix1) * (iy2 - iy1), 0.0)
    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (others[:, 2] - others[:, 0]) * (others[:, 3] - others[:, 1])
    union = area + areas - inter
    safe_union = np.where(union > 0.0, union, 1.0)
    return np.where(union > 0.0, inter / safe_union, 0.0)


def nms(
    boxes: np.ndarray,
    scores: np.ndarray,
    cfg: NMSConfig,
    class_ids: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).

    Returns indices into the inputs in the order they were accepted (descending
    score; equal scores keep their original relative order). A box is
    suppressed when its IoU with an accepted box is strictly above the threshold.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] != scores.shape[0]:
        raise ValueError(f"boxes and scores disagree in length: {boxes.shape[0]} vs {scores.shape[0]}")
    if cfg.max_detections is not None and cfg.max_detections < 1:
        raise ValueError(f"max_detections must be >= 1 or None, got {cfg.max_detections}")
    if cfg.class_agnostic:
        class_ids = None
    elif class_ids is None:
        raise ValueError("Class-aware NMS (class_agnostic=False) requires class_ids")
    else:
        class_ids = np.asarray(class_ids).reshape(-1)
        if class_ids.shape[0] != boxes.shape[0]:
            raise ValueError(f"boxes and class_ids disagree in length: {boxes.shape[0]} vs {class_ids.shape[0]}")
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int64)

    inverted = (boxes[:, 2] < boxes[:, 0]) | (boxes[:, 3] < boxes[:, 1])
    if np.any(inverted):
        bad = int(np.flatnonzero(inverted)[0])
        raise ValueError(f"Box {bad} is inverted (x1 > x2 or y1 > y2): {boxes[bad].tolist()}")

    order = np.argsort(-scores, kind="stable")
    suppressed = np.zeros(boxes.shape[0], dtype=bool)
    keep = []

    for pos, i in enumerate(order):
        if suppressed[i]:
            continue
        keep.append(int(i))
        suppressed[i] = True
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break

        rest = order[pos + 1 :]
        rest = rest[~suppressed[rest]]
        if class_ids is not None:
            rest = rest[class_ids[rest] == class_ids[i]]
        if rest.size == 0:
            continue
        overlaps = _iou_one_to_many(boxes[i], boxes[rest])
        suppressed[rest[overlaps > cfg.iou_threshold]] = True

    return np.array(keep, dtype=np.int64)
