from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .errors import MalformedOutputError
from .half import f16_array_to_f32
from .types import Detection, ResizeRatio


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodedDetections:
    """
    Parallel arrays: boxes (N, 4) xyxy in original-image pixels, scores (N,), class_ids (N,).
    """

    boxes: np.ndarray
    scores: np.ndarray
    class_ids: np.ndarray

    def __len__(self) -> int:
        return int(self.scores.shape[0])

    def to_detections(self) -> List[Detection]:
        return [
            Detection(
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
                score=float(score),
                class_id=int(cls_id),
            )
            for (x1, y1, x2, y2), score, cls_id in zip(self.boxes, self.scores, self.class_ids)
        ]

    @classmethod
    def empty(cls) -> "DecodedDetections":
        return cls(
            boxes=np.empty((0, 4), dtype=np.float32),
            scores=np.empty((0,), dtype=np.float32),
            class_ids=np.empty((0,), dtype=np.int64),
        )


def to_full_precision(output: np.ndarray) -> np.ndarray:
    """
    Flatten a raw model output to float32.

    uint16 buffers are treated as half-precision bit patterns; float16 arrays are
    widened; other float arrays are already full precision.
    """

    arr = np.asarray(output)
    if arr.dtype in (np.uint16, np.float16):
        return f16_array_to_f32(arr).reshape(-1)
    if not np.issubdtype(arr.dtype, np.floating):
        raise MalformedOutputError(f"Unsupported output dtype: {arr.dtype}")
    return arr.astype(np.float32, copy=False).reshape(-1)


class YoloDecoder:
    """
    Decoder for (N, 5 + C) outputs: [cx, cy, w, h, obj, class_scores...] in model input pixels.

    - candidates with objectness below `confidence_threshold` are dropped
    - the fused score is objectness * best class score; below `score_threshold` is dropped
    - surviving boxes are mapped to corner form in original-image pixels
    """

    def __init__(
        self,
        num_classes: int,
        confidence_threshold: float = 0.45,
        score_threshold: float = 0.45,
        clip_boxes: bool = False,
    ):
        if num_classes < 1:
            raise ValueError("num_classes must be >= 1")
        self.num_classes = int(num_classes)
        self.confidence_threshold = float(confidence_threshold)
        self.score_threshold = float(score_threshold)
        self.clip_boxes = clip_boxes

    @property
    def stride(self) -> int:
        return 5 + self.num_classes

    def decode(self, output: np.ndarray, orig_size: Tuple[int, int], ratio: ResizeRatio) -> DecodedDetections:
        flat = to_full_precision(output)
        if flat.size % self.stride != 0:
            raise MalformedOutputError(
                f"Output length {flat.size} is not a multiple of 5 + num_classes ({self.stride})."
            )
        if flat.size == 0:
            return DecodedDetections.empty()

        p = flat.reshape(-1, self.stride)

        objectness = p[:, 4]
        p = p[objectness >= self.confidence_threshold]
        if p.shape[0] == 0:
            return DecodedDetections.empty()

        # Best class with a strict ">" scan from 0: the first maximum wins and
        # all non-positive scores fall back to class 0 with score 0.
        class_scores = p[:, 5:]
        class_ids = np.argmax(class_scores, axis=1)
        class_conf = class_scores[np.arange(class_scores.shape[0]), class_ids]
        positive = class_conf > 0
        class_ids = np.where(positive, class_ids, 0)
        class_conf = np.where(positive, class_conf, 0.0).astype(np.float32)

        scores = p[:, 4] * class_conf
        # Negative or NaN extents cannot form a valid corner-form box.
        keep = (scores >= self.score_threshold) & (p[:, 2] >= 0) & (p[:, 3] >= 0)
        p, scores, class_ids = p[keep], scores[keep], class_ids[keep]
        if p.shape[0] == 0:
            return DecodedDetections.empty()

        # Convert cxcywh -> xyxy, then scale model input pixels to original pixels
        cx, cy, w_box, h_box = p[:, 0], p[:, 1], p[:, 2], p[:, 3]
        boxes = np.stack(
            [
                (cx - w_box / 2) * ratio.x,
                (cy - h_box / 2) * ratio.y,
                (cx + w_box / 2) * ratio.x,
                (cy + h_box / 2) * ratio.y,
            ],
            axis=1,
        ).astype(np.float32)

        if self.clip_boxes:
            boxes = self._clip(boxes, orig_size)

        logger.debug("Decoded %d of %d candidates", boxes.shape[0], flat.size // self.stride)
        return DecodedDetections(boxes=boxes, scores=scores.astype(np.float32), class_ids=class_ids.astype(np.int64))

    def _clip(self, boxes: np.ndarray, orig_size: Tuple[int, int]) -> np.ndarray:
        orig_w, orig_h = orig_size
        boxes[:, [0, 2]] = np.clip(boxes[:, [0, 2]], 0, orig_w)
        boxes[:, [1, 3]] = np.clip(boxes[:, [1, 3]], 0, orig_h)
        return boxes
