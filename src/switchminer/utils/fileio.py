"""
Atomic file-write utilities.

Every artifact of a run (edge tables, cartographies, config.json) is written
to a temporary file in the destination directory and moved into place with
``os.replace()``. A reader therefore sees either the previous file or the
complete new one, never a truncated table from an interrupted run.
"""

from __future__ import annotations

import json
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Callable, IO

import numpy as np
import pandas as pd


def _atomic_write(path: str | os.PathLike, write: Callable[[IO[str]], None]) -> None:
    """Run ``write`` against a temp file next to *path*, then rename it into place."""
    path = str(path)
    dir_path = os.path.dirname(path) or "."
    os.makedirs(dir_path, exist_ok=True)
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False, newline=""
        ) as tmp:
            tmp_path = tmp.name
            write(tmp)
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def to_jsonable(value: Any) -> Any:
    """Convert numpy scalars, paths, enums and tuples to plain JSON types."""
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.ndarray):
        return to_jsonable(value.tolist())
    return value


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Write *data* as JSON atomically via temp-file + rename.

    Parameters
    ----------
    path:
        Destination file path. Parent directories are created.
    data:
        Object made of dicts, lists, scalars, numpy scalars, paths or enums.
    indent:
        JSON indentation (default 2).
    """
    payload = to_jsonable(data)
    _atomic_write(path, lambda fh: json.dump(payload, fh, indent=indent))


def atomic_write_frame(path: str | os.PathLike, frame: pd.DataFrame, *, sep: str = ",") -> None:
    """Write a DataFrame as CSV (no index) atomically.

    Floats are written with ``repr`` precision so reruns on identical input
    produce byte-identical files.
    """
    _atomic_write(path, lambda fh: frame.to_csv(fh, sep=sep, index=False, lineterminator="\n"))
