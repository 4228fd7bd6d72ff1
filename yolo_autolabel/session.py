from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
from typing import Any, List, Optional

from .backends import InferenceRuntime, RuntimeSession
from .config import InferenceConfig
from .errors import (
    InferenceRuntimeError,
    ModelLoadError,
    ModelNotFoundError,
    NotInitializedError,
    YoloInferenceError,
)
from .nms import NMSConfig, nms
from .postprocess import YoloDecoder
from .preprocess import ImagePreprocessor, ImageSource
from .results import BoundingBox, to_normalized_boxes


logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURING = "configuring"
    READY = "ready"


@dataclasses.dataclass(frozen=True)
class _Active:
    config: InferenceConfig
    session: RuntimeSession
    preprocessor: ImagePreprocessor
    decoder: YoloDecoder
    nms_cfg: NMSConfig


def _declared_stride(shape: Any) -> Optional[int]:
    if not shape:
        return None
    last = shape[-1]
    if isinstance(last, int) and last > 0:
        return last
    return None


class InferenceSessionManager:
    """
    Owns one loaded detector and runs: preprocess -> runtime -> decode -> NMS -> normalize.

    State machine: UNCONFIGURED -> CONFIGURING -> READY. A failed reconfiguration
    restores the previous READY session; a failed first configuration returns to
    UNCONFIGURED. Inference and configuration calls are serialized.

        manager = InferenceSessionManager()
        await manager.configure(InferenceConfig(model_path="yolov5s-fp16.onnx", class_names=names))
        boxes = await manager.run_inference("images/0001.jpg")
    """

    def __init__(self, runtime: Optional[InferenceRuntime] = None):
        if runtime is None:
            from .backends.onnxruntime_backend import OnnxRuntime

            runtime = OnnxRuntime()
        self._runtime = runtime
        self._active: Optional[_Active] = None
        self._state = SessionState.UNCONFIGURED
        self._lock = asyncio.Lock()
        self._last_error: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY and self._active is not None

    @property
    def config(self) -> Optional[InferenceConfig]:
        return self._active.config if self._active is not None else None

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def backend_name(self) -> Optional[str]:
        return self._active.session.name if self._active is not None else None

    async def configure(self, config: InferenceConfig) -> None:
        """
        Load `config.model_path` and make it the active session.

        Raises ModelNotFoundError / ModelLoadError / ValueError; on failure the
        previously active session (if any) stays in place.
        """

        async with self._lock:
            previous = self._state
            self._state = SessionState.CONFIGURING
            try:
                active = await self._load(config)
            except Exception as exc:
                self._last_error = str(exc)
                logger.warning("Configuration failed (%s); keeping previous state %s", exc, previous.value)
                raise
            finally:
                # Never left in CONFIGURING, including on cancellation.
                if self._state is SessionState.CONFIGURING:
                    self._state = SessionState.READY if self._active is not None else SessionState.UNCONFIGURED

            self._active = active
            self._state = SessionState.READY
            self._last_error = None
            logger.info(
                "Session ready: model=%s classes=%d backend=%s",
                config.model_path.name,
                config.num_classes,
                active.session.name,
            )

    async def update_config(self, **overrides: Any) -> InferenceConfig:
        """
        Reconfigure with some fields replaced, starting from the active config.
        """

        if self._active is None:
            raise NotInitializedError("No active configuration to update; call configure() first.")
        config = dataclasses.replace(self._active.config, **overrides)
        await self.configure(config)
        return config

    async def _load(self, config: InferenceConfig) -> _Active:
        if not config.model_path.is_file():
            raise ModelNotFoundError(f"Model not found at: {config.model_path}")
        if not config.class_names:
            raise ValueError("Class names are required")

        try:
            session = await self._runtime.load(config.model_path, config.runtime)
        except YoloInferenceError:
            raise
        except Exception as exc:
            raise ModelLoadError(f"Failed to load model {config.model_path}: {exc}") from exc

        decoder = YoloDecoder(
            num_classes=config.num_classes,
            confidence_threshold=config.confidence_threshold,
            score_threshold=config.score_threshold,
            clip_boxes=config.clip_boxes,
        )
        stride = _declared_stride(session.output_shape)
        if stride is not None and stride != decoder.stride:
            raise ModelLoadError(
                f"Model output has {stride} values per candidate but {config.num_classes} class names "
                f"were given (expected {decoder.stride})."
            )

        return _Active(
            config=config,
            session=session,
            preprocessor=ImagePreprocessor(config.input_width, config.input_height, rounding=config.rounding),
            decoder=decoder,
            nms_cfg=NMSConfig(
                iou_threshold=config.nms_threshold,
                max_detections=config.max_detections,
                class_agnostic=config.class_agnostic_nms,
            ),
        )

    async def run_inference(self, image: ImageSource) -> List[BoundingBox]:
        """
        Detect objects in `image` (path or BGR array) and return normalized boxes.
        """

        if not self.is_ready:
            raise NotInitializedError(f"Inference session is not initialized (state: {self._state.value})")

        async with self._lock:
            active = self._active
            if self._state is not SessionState.READY or active is None:
                raise NotInitializedError(f"Inference session is not initialized (state: {self._state.value})")
            try:
                return await self._run(active, image)
            except Exception as exc:
                self._last_error = str(exc)
                raise

    async def _run(self, active: _Active, image: ImageSource) -> List[BoundingBox]:
        prep = active.preprocessor.preprocess(image)

        try:
            output = await active.session.run(prep.tensor)
        except Exception as exc:
            raise InferenceRuntimeError(f"Inference failed: {exc}") from exc

        orig_w, orig_h = prep.orig_size
        decoded = active.decoder.decode(output, prep.orig_size, prep.ratio)
        keep = nms(decoded.boxes, decoded.scores, active.nms_cfg, class_ids=decoded.class_ids)
        boxes = to_normalized_boxes(keep, decoded.boxes, decoded.class_ids, orig_w, orig_h)
        logger.debug("Inference kept %d of %d decoded detections", len(boxes), len(decoded))
        return boxes
