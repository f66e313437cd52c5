"""
Error kinds raised by the switch-mining pipeline.

Every computational failure surfaces synchronously with the pipeline stage
that raised it and a short summary of the offending input, so that a failed
run can be diagnosed from the message alone:

    >>> raise EmptyNetwork("no edges survive", stage="network",
    ...                    context={"rho_cutoff": 0.95, "n_edges_in": 15})
    EmptyNetwork: [network] no edges survive (rho_cutoff=0.95, n_edges_in=15)

IncoherentCartography is a warning rather than an exception: a cartography
where every node receives the same role is still a valid result, it is just
uninformative for switch detection.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    'SwitchMinerError',
    'InvalidInput',
    'EmptyNetwork',
    'DegenerateCluster',
    'CoverageGap',
    'IncoherentCartography',
]


class SwitchMinerError(Exception):
    """Base class for pipeline errors, carrying stage and input context."""

    def __init__(
        self,
        message: str,
        stage: str = "pipeline",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.stage = stage
        self.context = dict(context or {})
        super().__init__(self._render())

    def _render(self) -> str:
        text = f"[{self.stage}] {self.message}"
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            text += f" ({details})"
        return text


class InvalidInput(SwitchMinerError, ValueError):
    """Malformed or undersized expression matrix, gene set or parameter."""
    pass


class EmptyNetwork(SwitchMinerError):
    """Raised when a threshold is so strict that no edge survives."""
    pass


class DegenerateCluster(SwitchMinerError):
    """Raised when a requested cluster count yields an empty cluster."""
    pass


class CoverageGap(SwitchMinerError):
    """Raised when two cartographies share no gene to compare."""
    pass


class IncoherentCartography(UserWarning):
    """Role cutoffs collapsed every node into a single hub class."""
    pass
