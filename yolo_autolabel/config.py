from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .half import RoundingMode
from .metadata import class_names_list, load_class_names


PathLike = Union[str, Path]


class Backend(str, enum.Enum):
    CPU = "cpu"
    GPU = "gpu"


class GraphOptimization(str, enum.Enum):
    DISABLED = "disabled"
    BASIC = "basic"
    EXTENDED = "extended"
    ALL = "all"


@dataclass(frozen=True)
class RuntimeOptions:
    """
    Execution settings for the inference runtime.

    - backend: force CPU or GPU; None prefers an accelerator when the runtime has one
    - graph_optimization: runtime graph optimization level
    - memory_arena: enable the CPU memory arena
    """

    backend: Optional[Backend] = None
    graph_optimization: GraphOptimization = GraphOptimization.ALL
    memory_arena: bool = True


@dataclass(frozen=True)
class InferenceConfig:
    model_path: Path
    class_names: Tuple[str, ...] = ()
    input_width: int = 640
    input_height: int = 640
    score_threshold: float = 0.45
    nms_threshold: float = 0.45
    confidence_threshold: float = 0.45
    clip_boxes: bool = False
    # None keeps every box that survives NMS.
    max_detections: Optional[int] = None
    # False restricts suppression to boxes of the same class.
    class_agnostic_nms: bool = True
    rounding: RoundingMode = RoundingMode.TRUNCATE
    runtime: RuntimeOptions = field(default_factory=RuntimeOptions)

    def __post_init__(self) -> None:
        object.__setattr__(self, "model_path", Path(self.model_path))
        object.__setattr__(self, "class_names", tuple(str(n) for n in self.class_names))
        if self.input_width < 1 or self.input_height < 1:
            raise ValueError("input_width and input_height must be >= 1")
        for name in ("score_threshold", "nms_threshold", "confidence_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1]")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1 or None")

    @property
    def num_classes(self) -> int:
        return len(self.class_names)


def _require_str(payload: Dict[str, Any], key: str) -> str:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value.strip()


def _optional_number(payload: Dict[str, Any], key: str, default: float) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _optional_int(payload: Dict[str, Any], key: str, default: int) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _optional_bool(payload: Dict[str, Any], key: str, default: bool) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean")
    return value


def _optional_max_detections(payload: Dict[str, Any]) -> Optional[int]:
    if payload.get("max_detections") is None:
        return None
    return _optional_int(payload, "max_detections", 0)


def _optional_enum(payload: Dict[str, Any], key: str, enum_cls, default):
    value = payload.get(key)
    if value is None or value == "auto":
        return default
    try:
        return enum_cls(str(value).lower())
    except ValueError as exc:
        choices = [m.value for m in enum_cls]
        raise ValueError(f"{key} must be one of {choices}, got {value!r}") from exc


def _resolve(base: Path, value: str) -> Path:
    p = Path(value)
    return p if p.is_absolute() else (base / p).resolve()


def load_inference_config(path: Path) -> InferenceConfig:
    """
    Load an `InferenceConfig` from JSON. Relative paths resolve against the file's directory.

        {
          "model_path": "models/yolov5s-fp16.onnx",
          "data_yaml": "data.yaml",
          "score_threshold": 0.45,
          "backend": "gpu"
        }
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Inference config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid inference config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Inference config must be a JSON object")

    allowed = {
        "model_path",
        "class_names",
        "data_yaml",
        "input_width",
        "input_height",
        "score_threshold",
        "nms_threshold",
        "confidence_threshold",
        "clip_boxes",
        "max_detections",
        "class_agnostic_nms",
        "rounding",
        "backend",
        "graph_optimization",
        "memory_arena",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown inference config keys: {unknown}")
    if "class_names" in payload and "data_yaml" in payload:
        raise ValueError("Use either 'class_names' or 'data_yaml', not both.")

    base = path.parent
    model_path = _resolve(base, _require_str(payload, "model_path"))

    class_names: Sequence[str] = ()
    if "class_names" in payload:
        names = payload["class_names"]
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise ValueError("class_names must be a list of strings")
        class_names = names
    elif "data_yaml" in payload:
        class_names = class_names_list(load_class_names(str(_resolve(base, _require_str(payload, "data_yaml")))))

    runtime = RuntimeOptions(
        backend=_optional_enum(payload, "backend", Backend, None),
        graph_optimization=_optional_enum(payload, "graph_optimization", GraphOptimization, GraphOptimization.ALL),
        memory_arena=_optional_bool(payload, "memory_arena", True),
    )

    return InferenceConfig(
        model_path=model_path,
        class_names=tuple(class_names),
        input_width=_optional_int(payload, "input_width", 640),
        input_height=_optional_int(payload, "input_height", 640),
        score_threshold=_optional_number(payload, "score_threshold", 0.45),
        nms_threshold=_optional_number(payload, "nms_threshold", 0.45),
        confidence_threshold=_optional_number(payload, "confidence_threshold", 0.45),
        clip_boxes=_optional_bool(payload, "clip_boxes", False),
        max_detections=_optional_max_detections(payload),
        class_agnostic_nms=_optional_bool(payload, "class_agnostic_nms", True),
        rounding=_optional_enum(payload, "rounding", RoundingMode, RoundingMode.TRUNCATE),
        runtime=runtime,
    )
