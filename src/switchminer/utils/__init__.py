"""Utility modules for SwitchMiner output handling."""

from switchminer.utils.fileio import (
    atomic_write_frame,
    atomic_write_json,
    to_jsonable,
)

__all__ = [
    'atomic_write_frame',
    'atomic_write_json',
    'to_jsonable',
]
