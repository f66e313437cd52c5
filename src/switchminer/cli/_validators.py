"""Shared argparse type validators for CLI parameter bounds checking.

These validators produce clear error messages when users pass invalid
values (e.g., ``--rho-cutoff 1.5``, ``--k 0``). They are intended to be
used as the ``type=`` argument in ``add_argument()``.
"""

from __future__ import annotations

import argparse


def _positive_int(value: str) -> int:
    """argparse type for positive integers (> 0)."""
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return ivalue


def _n_jobs(value: str) -> int:
    """argparse type for joblib worker counts (positive, or -1 for all cores)."""
    ivalue = int(value)
    if ivalue == 0 or ivalue < -1:
        raise argparse.ArgumentTypeError(f"{value} is not a valid worker count (>= 1 or -1)")
    return ivalue


def _probability(value: str) -> float:
    """argparse type for values in the open interval (0, 1)."""
    fvalue = float(value)
    if not (0 < fvalue < 1):
        raise argparse.ArgumentTypeError(
            f"{value} is not a valid probability (must be in (0, 1))"
        )
    return fvalue


def _unit_interval(value: str) -> float:
    """argparse type for values in the closed interval [0, 1]."""
    fvalue = float(value)
    if not (0 <= fvalue <= 1):
        raise argparse.ArgumentTypeError(f"{value} must be in [0, 1]")
    return fvalue


def _positive_float(value: str) -> float:
    """argparse type for positive floats (> 0)."""
    fvalue = float(value)
    if fvalue <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive float")
    return fvalue


def _non_negative_float(value: str) -> float:
    fvalue = float(value)
    if fvalue < 0:
        raise argparse.ArgumentTypeError(f"{value} must be >= 0")
    return fvalue
