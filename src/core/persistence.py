"""Whole-file JSON persistence used by the core stores."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


class StoreLoadError(RuntimeError):
    """Raised when persisted state exists but cannot be loaded."""


def atomic_write_json(path: Path, obj: Any) -> None:
    """Rewrite ``path`` in full; readers see either the old or the new file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(obj, handle, ensure_ascii=False, indent=2, sort_keys=True)
            handle.write("\n")
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)


def read_json_mapping(path: Path) -> dict[str, Any]:
    """Load a JSON object from ``path``; a missing file is an empty mapping."""

    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        raise StoreLoadError(f"Cannot load {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise StoreLoadError(f"Cannot load {path}: expected a JSON object")
    return data
