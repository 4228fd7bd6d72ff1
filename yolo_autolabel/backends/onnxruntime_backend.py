from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..config import Backend, GraphOptimization, RuntimeOptions
from ..errors import ModelLoadError, ModelNotFoundError


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

CPU_PROVIDER = "CPUExecutionProvider"
# Accelerated providers in order of preference.
GPU_PROVIDERS = ("CUDAExecutionProvider", "DmlExecutionProvider", "ROCMExecutionProvider")


def _import_ort():
    try:
        import onnxruntime as ort  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError(
            "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
            "(or `onnxruntime-gpu`)."
        ) from e
    return ort


def select_providers(options: RuntimeOptions, available: Sequence[str]) -> Tuple[List[str], Backend]:
    """
    Pick ORT execution providers. GPU providers are preferred when the backend is
    not forced; CPU is always kept as the fallback.
    """

    gpu = next((p for p in GPU_PROVIDERS if p in available), None)
    if options.backend is Backend.CPU:
        return [CPU_PROVIDER], Backend.CPU
    if options.backend is Backend.GPU and gpu is None:
        raise ModelLoadError(f"GPU backend requested but no GPU execution provider is available: {list(available)}")
    if gpu is not None:
        return [gpu, CPU_PROVIDER], Backend.GPU
    return [CPU_PROVIDER], Backend.CPU


def _graph_level(ort: Any, level: GraphOptimization) -> Any:
    return {
        GraphOptimization.DISABLED: ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
        GraphOptimization.BASIC: ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
        GraphOptimization.EXTENDED: ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
        GraphOptimization.ALL: ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
    }[level]


class OnnxRuntimeBackend:
    """
    ONNX Runtime session for a float16 detector.

    Expects a (1, 3, H, W) half-precision blob (uint16 bit patterns or float16)
    and returns the primary output as a float16 NumPy array.
    """

    runtime_name = "onnxruntime"

    def __init__(self, model_path: PathLike, options: RuntimeOptions = RuntimeOptions()):
        ort = _import_ort()

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.is_file():
            raise ModelNotFoundError(f"Model not found at: {self.model_path}")

        self.providers, self.backend = select_providers(options, ort.get_available_providers())

        sess_opts = ort.SessionOptions()
        sess_opts.graph_optimization_level = _graph_level(ort, options.graph_optimization)
        sess_opts.enable_cpu_mem_arena = options.memory_arena
        sess_opts.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=self.providers)

        self.input_name = self.session.get_inputs()[0].name
        self.output_name = self.session.get_outputs()[0].name
        logger.info("Loaded %s with providers %s", self.model_path.name, list(self.providers_in_use))

    @property
    def name(self) -> str:
        # e.g. "onnxruntime/gpu"; the backend actually chosen by select_providers
        return f"{self.runtime_name}/{self.backend.value}"

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    @property
    def output_shape(self) -> Optional[Sequence[Union[int, str, None]]]:
        return self.session.get_outputs()[0].shape

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        blob = np.asarray(tensor)
        if blob.dtype == np.uint16:
            blob = blob.view(np.float16)
        outputs = self.session.run([self.output_name], {self.input_name: blob})
        return outputs[0]

    async def run(self, tensor: np.ndarray) -> np.ndarray:
        return await asyncio.to_thread(self.infer, tensor)


class OnnxRuntime:
    """
    Runtime factory used by the session manager.
    """

    async def load(self, model_path: Path, options: RuntimeOptions) -> OnnxRuntimeBackend:
        return await asyncio.to_thread(OnnxRuntimeBackend, model_path, options)
