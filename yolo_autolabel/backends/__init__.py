"""
Inference runtimes for yolo_autolabel.

Runtimes are kept in a separate module so core functionality (codec, pre/post-processing)
stays lightweight and can be used without installing an inference runtime.

A runtime is the external collaborator of the session manager: given a fixed-shape
float16 input tensor it returns a fixed-shape float16 output tensor.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

import numpy as np

from ..config import RuntimeOptions


class RuntimeSession(Protocol):
    name: str

    @property
    def output_shape(self) -> Optional[Sequence[Union[int, str, None]]]:
        ...

    async def run(self, tensor: np.ndarray) -> np.ndarray:
        ...


class InferenceRuntime(Protocol):
    async def load(self, model_path: Path, options: RuntimeOptions) -> RuntimeSession:
        ...


__all__ = ["InferenceRuntime", "RuntimeSession"]
