from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from yolo_autolabel import (
    Backend,
    InferenceConfig,
    InferenceSessionManager,
    RuntimeOptions,
    class_names_list,
    load_class_names,
    load_inference_config,
    write_yolo_labels,
)

try:
    from tqdm import tqdm  # type: ignore
except Exception:  # pragma: no cover
    tqdm = None


logger = logging.getLogger("auto_label")


@dataclass(frozen=True)
class LabelJob:
    images_dir: Path
    out: Optional[Path]
    config: InferenceConfig
    recursive: bool
    exts: Tuple[str, ...]
    max_images: int
    skip_existing: bool


def _iter_image_paths(images_dir: Path, *, recursive: bool, exts: Sequence[str]) -> List[Path]:
    wanted = {e.lstrip(".").lower() for e in exts}
    candidates = images_dir.rglob("*") if recursive else images_dir.glob("*")
    paths = [p for p in candidates if p.is_file() and p.suffix.lower().lstrip(".") in wanted]
    return sorted({p.resolve() for p in paths})


def _label_path(image: Path, *, images_dir: Path, out: Optional[Path]) -> Path:
    if out is None:
        return image.with_suffix(".txt")
    rel = image.relative_to(images_dir.resolve())
    return (out / rel).with_suffix(".txt")


def _parse_args(argv: Optional[Sequence[str]] = None) -> LabelJob:
    parser = argparse.ArgumentParser(
        description=(
            "Propose YOLO boxes for a folder of images with a float16 detector and write YOLO label files. "
            "Typical workflow: auto-label -> review/correct in the annotation tool -> train."
        )
    )
    parser.add_argument("--images-dir", required=True, help="Directory containing images to label.")
    parser.add_argument(
        "--out",
        default=None,
        help="Directory for label .txt files (default: next to each image). Folder structure is preserved.",
    )
    parser.add_argument("--config", default=None, help="Inference config JSON (model, classes, thresholds).")
    parser.add_argument("--model", default=None, help="Path to detector (.onnx). Overrides --config.")
    parser.add_argument("--data-yaml", default=None, help="YOLO dataset yaml with the `names` field.")
    parser.add_argument("--imgsz", type=int, default=None, help="Model input size (square), e.g. 640.")
    parser.add_argument("--conf", type=float, default=None, help="Objectness (confidence) threshold.")
    parser.add_argument("--score", type=float, default=None, help="Fused score threshold.")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument("--max-det", type=int, default=None, help="Keep at most N boxes per image after NMS.")
    parser.add_argument("--class-aware-nms", action="store_true", help="Only suppress boxes of the same class.")
    parser.add_argument("--backend", choices=["auto", "cpu", "gpu"], default=None, help="Execution backend.")
    parser.add_argument("--clip", action="store_true", help="Clip boxes to the image bounds.")
    parser.add_argument("--recursive", action="store_true", help="Recursively search for images under --images-dir.")
    parser.add_argument(
        "--ext",
        action="append",
        default=None,
        help="Image extension(s) to include (repeatable, default: jpg jpeg png bmp).",
    )
    parser.add_argument("--max-images", type=int, default=0, help="Stop after N images (0 = no limit).")
    parser.add_argument("--skip-existing", action="store_true", help="Do not overwrite existing label files.")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    images_dir = Path(args.images_dir)
    if not images_dir.exists() or not images_dir.is_dir():
        raise FileNotFoundError(f"--images-dir not found or not a directory: {images_dir}")

    if args.config:
        config = load_inference_config(Path(args.config))
    elif args.model:
        config = InferenceConfig(model_path=Path(args.model))
    else:
        raise ValueError("Pass --config or --model.")

    overrides = {}
    if args.model:
        overrides["model_path"] = Path(args.model)
    if args.data_yaml:
        data_yaml = Path(args.data_yaml)
        if not data_yaml.exists():
            raise FileNotFoundError(f"Data yaml not found: {data_yaml}")
        overrides["class_names"] = tuple(class_names_list(load_class_names(str(data_yaml))))
    if args.imgsz is not None:
        if args.imgsz < 32:
            raise ValueError("--imgsz must be >= 32")
        overrides["input_width"] = overrides["input_height"] = int(args.imgsz)
    if args.conf is not None:
        overrides["confidence_threshold"] = float(args.conf)
    if args.score is not None:
        overrides["score_threshold"] = float(args.score)
    if args.iou is not None:
        overrides["nms_threshold"] = float(args.iou)
    if args.max_det is not None:
        if args.max_det < 1:
            raise ValueError("--max-det must be >= 1")
        overrides["max_detections"] = int(args.max_det)
    if args.class_aware_nms:
        overrides["class_agnostic_nms"] = False
    if args.clip:
        overrides["clip_boxes"] = True
    if args.backend is not None:
        backend = None if args.backend == "auto" else Backend(args.backend)
        overrides["runtime"] = dataclasses.replace(config.runtime, backend=backend)
    config = dataclasses.replace(config, **overrides) if overrides else config

    if not config.class_names:
        raise ValueError("No class names: pass --data-yaml or set class_names/data_yaml in --config.")
    if args.max_images < 0:
        raise ValueError("--max-images must be >= 0")

    exts = tuple(str(e).lower().lstrip(".") for e in (args.ext or ["jpg", "jpeg", "png", "bmp"]) if str(e).strip())
    if not exts:
        raise ValueError("At least one --ext must be provided.")

    return LabelJob(
        images_dir=images_dir,
        out=Path(args.out) if args.out else None,
        config=config,
        recursive=bool(args.recursive),
        exts=exts,
        max_images=int(args.max_images),
        skip_existing=bool(args.skip_existing),
    )


async def run(job: LabelJob) -> int:
    manager = InferenceSessionManager()
    await manager.configure(job.config)
    logger.info("Using backend %s", manager.backend_name)

    image_paths = _iter_image_paths(job.images_dir, recursive=job.recursive, exts=job.exts)
    if job.max_images:
        image_paths = image_paths[: job.max_images]
    if not image_paths:
        raise FileNotFoundError(
            f"No images found under {job.images_dir} with extensions {list(job.exts)} (recursive={job.recursive})."
        )

    written = 0
    total_boxes = 0
    iterator = tqdm(image_paths, unit="img") if tqdm is not None else image_paths
    for p in iterator:
        label_path = _label_path(p, images_dir=job.images_dir, out=job.out)
        if job.skip_existing and label_path.exists():
            continue
        boxes = await manager.run_inference(p)
        write_yolo_labels(label_path, boxes)
        written += 1
        total_boxes += len(boxes)

    logger.info("Images: %d, label files written: %d, boxes: %d", len(image_paths), written, total_boxes)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    job = _parse_args(argv)
    return asyncio.run(run(job))


if __name__ == "__main__":
    raise SystemExit(main())
