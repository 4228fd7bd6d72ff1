from __future__ import annotations

from typing import Dict, List


def _unquote(value: str) -> str:
    return value.strip().strip("'").strip('"')


def _parse_inline_list(value: str) -> List[str]:
    inner = value.strip()[1:-1]
    return [_unquote(item) for item in inner.split(",") if _unquote(item)]


def load_class_names(data_yaml_path: str) -> Dict[int, str]:
    """
    Load class names from a YOLO dataset yaml (`data.yaml`).

    Supported `names` layouts:

        names:
          0: person
          1: bicycle

        names:
          - person
          - bicycle

        names: [person, bicycle]

    Only the `names` field is read, so no PyYAML dependency is needed.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(data_yaml_path, "r", encoding="utf-8") as f:
        for raw in f:
            if not raw.strip() or raw.lstrip().startswith("#"):
                continue
            line = raw.split(" #", 1)[0].rstrip()
            top_level = not raw[0].isspace()

            if top_level:
                key, _, value = line.partition(":")
                in_names = key.strip() == "names"
                if in_names and value.strip().startswith("["):
                    names = dict(enumerate(_parse_inline_list(value)))
                    in_names = False
                continue
            if not in_names:
                continue

            item = line.strip()
            if item.startswith("-"):
                names[len(names)] = _unquote(item[1:])
                continue

            # Parse "id: label"
            if ":" not in item:
                continue
            left, right = item.split(":", 1)
            left = left.strip()
            if not left.isdigit():
                continue
            names[int(left)] = _unquote(right)

    return names


def class_names_list(names: Dict[int, str]) -> List[str]:
    """
    Order a class-id mapping into a list (index = class id). Gaps are an error.
    """

    ordered = sorted(names.items())
    for expected, (cid, _) in enumerate(ordered):
        if cid != expected:
            raise ValueError(f"Class ids must be contiguous from 0; missing id {expected}")
    return [name for _, name in ordered]
