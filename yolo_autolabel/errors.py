"""
Typed failures raised by the inference engine.

Every error carries a human readable message; where another exception
triggered it, that exception is chained as ``__cause__``.
"""

from __future__ import annotations


class YoloInferenceError(Exception):
    """Base class for all engine failures."""


class ModelNotFoundError(YoloInferenceError, FileNotFoundError):
    pass


class ModelLoadError(YoloInferenceError):
    pass


class NotInitializedError(YoloInferenceError, RuntimeError):
    pass


class ImageDecodeError(YoloInferenceError, OSError):
    pass


class InferenceRuntimeError(YoloInferenceError):
    pass


class MalformedOutputError(YoloInferenceError, ValueError):
    pass
