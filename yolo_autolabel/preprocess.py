from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import numpy as np

from .errors import ImageDecodeError
from .half import RoundingMode, f32_array_to_f16
from .types import ResizeRatio


logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, np.ndarray]


@dataclass(frozen=True)
class PreprocessResult:
    """
    tensor: half-precision bit patterns, shape (1, 3, H, W), planar RGB in [0, 1]
    orig_size: (width, height) of the source image
    ratio: original / input size per axis
    """

    tensor: np.ndarray
    orig_size: Tuple[int, int]
    ratio: ResizeRatio


def read_image(source: ImageSource) -> np.ndarray:
    """
    Load an image as an OpenCV-style BGR array of shape (H, W, 3).

    Paths are decoded with OpenCV; arrays are taken as BGR(A) or grayscale.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for preprocessing. Install with `pip install opencv-python`.") from e

    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.is_file():
            raise ImageDecodeError(f"Image not found: {path}")
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if image is None:
            raise ImageDecodeError(f"Could not decode image: {path}")
        return image

    if not isinstance(source, np.ndarray):
        raise ImageDecodeError(f"Unsupported image source type: {type(source).__name__}")

    # Channels are normalized by 255, so only 8-bit pixels are meaningful.
    if source.dtype != np.uint8:
        raise ImageDecodeError(f"Expected a uint8 image array, got dtype {source.dtype}")
    if source.ndim not in (2, 3) or source.shape[0] == 0 or source.shape[1] == 0:
        raise ImageDecodeError(f"Image has no pixels or an unsupported shape: {source.shape}")

    image = source
    try:
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        elif image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    except cv2.error as exc:
        raise ImageDecodeError(f"Could not convert image array of shape {source.shape}: {exc}") from exc
    if image.shape[2] != 3:
        raise ImageDecodeError(f"Expected image shape (H, W, 3), got {source.shape}")
    return image


class ImagePreprocessor:
    """
    Stretch-resize to the model input size, normalize RGB to [0, 1], pack CHW,
    then encode to half precision.
    """

    def __init__(
        self,
        input_width: int = 640,
        input_height: int = 640,
        rounding: RoundingMode = RoundingMode.TRUNCATE,
    ):
        if input_width < 1 or input_height < 1:
            raise ValueError("input size must be >= 1")
        self.input_width = int(input_width)
        self.input_height = int(input_height)
        self.rounding = rounding

    def preprocess(self, image: ImageSource) -> PreprocessResult:
        import cv2  # type: ignore

        image_bgr = read_image(image)
        orig_h, orig_w = image_bgr.shape[:2]
        ratio = ResizeRatio(x=orig_w / self.input_width, y=orig_h / self.input_height)

        # Direct stretch; aspect ratio is not preserved.
        if (orig_w, orig_h) != (self.input_width, self.input_height):
            try:
                image_bgr = cv2.resize(
                    image_bgr, (self.input_width, self.input_height), interpolation=cv2.INTER_LINEAR
                )
            except cv2.error as exc:
                raise ImageDecodeError(f"Could not resize {orig_w}x{orig_h} image: {exc}") from exc

        # BGR -> RGB, normalize, HWC -> CHW, add batch
        planar = image_bgr[:, :, ::-1].astype(np.float32) / 255.0
        planar = np.ascontiguousarray(np.transpose(planar, (2, 0, 1))[None, ...])

        tensor = f32_array_to_f16(planar, rounding=self.rounding)
        logger.debug(
            "Preprocessed %dx%d image to %dx%d (ratio x=%.4f y=%.4f)",
            orig_w,
            orig_h,
            self.input_width,
            self.input_height,
            ratio.x,
            ratio.y,
        )
        return PreprocessResult(tensor=tensor, orig_size=(int(orig_w), int(orig_h)), ratio=ratio)
