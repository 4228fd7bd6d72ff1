"""
AI-assisted box proposals for YOLO annotation.

Takes an image and a float16 YOLO detector and returns de-duplicated,
normalized center-form boxes ready to be offered to the annotator. Core
pieces (half-precision codec, preprocessing, decoding, NMS) only need NumPy
and OpenCV; ONNX Runtime is imported lazily by the session manager.
"""

from .types import Detection, ResizeRatio
from .errors import (
    ImageDecodeError,
    InferenceRuntimeError,
    MalformedOutputError,
    ModelLoadError,
    ModelNotFoundError,
    NotInitializedError,
    YoloInferenceError,
)
from .half import RoundingMode, f16_array_to_f32, f16_to_f32, f32_array_to_f16, f32_to_f16
from .preprocess import ImagePreprocessor, PreprocessResult, read_image
from .postprocess import DecodedDetections, YoloDecoder
from .nms import NMSConfig, iou, nms
from .results import BoundingBox, to_normalized_boxes, write_yolo_labels
from .config import Backend, GraphOptimization, InferenceConfig, RuntimeOptions, load_inference_config
from .metadata import class_names_list, load_class_names
from .session import InferenceSessionManager, SessionState

__all__ = [
    "Detection",
    "ResizeRatio",
    "ImageDecodeError",
    "InferenceRuntimeError",
    "MalformedOutputError",
    "ModelLoadError",
    "ModelNotFoundError",
    "NotInitializedError",
    "YoloInferenceError",
    "RoundingMode",
    "f16_array_to_f32",
    "f16_to_f32",
    "f32_array_to_f16",
    "f32_to_f16",
    "ImagePreprocessor",
    "PreprocessResult",
    "read_image",
    "DecodedDetections",
    "YoloDecoder",
    "NMSConfig",
    "iou",
    "nms",
    "BoundingBox",
    "to_normalized_boxes",
    "write_yolo_labels",
    "Backend",
    "GraphOptimization",
    "InferenceConfig",
    "RuntimeOptions",
    "load_inference_config",
    "class_names_list",
    "load_class_names",
    "InferenceSessionManager",
    "SessionState",
]
