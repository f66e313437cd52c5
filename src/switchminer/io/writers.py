"""
Tabular writers for run artifacts.

One row per record, CSV, written atomically:

    edges.csv         gene_a, gene_b, rho, p_value, p_adj (EdgeList or Network)
    clusters.csv      node, cluster
    cartography.csv   node, cluster, node metrics, hub_class, attributes
    switches.csv      gene, from_class, to_class, from_cluster, to_cluster
    scree.csv         k, twss
    sweep.csv         rho_cutoff, ..., density
    config.json       resolved configuration plus run summary

Row order is the order of the in-memory artifact, which is itself
deterministic, so reruns on identical input produce identical files.

Examples:
    >>> write_cartography(result.cartography, Path("out/DCM/cartography.csv"))
    >>> write_switches(analysis.report, Path("out/switches.csv"))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd

from switchminer.cartography.classifier import Cartography
from switchminer.cartography.clustering import ClusterAssignment, ScreeCurve
from switchminer.cartography.switches import SwitchReport
from switchminer.network.builder import Network
from switchminer.network.correlation import EdgeList
from switchminer.utils.fileio import atomic_write_frame, atomic_write_json

logger = logging.getLogger(__name__)

__all__ = [
    'write_edges',
    'write_clusters',
    'write_cartography',
    'write_switches',
    'write_scree',
    'write_sweep',
    'write_run_config',
]


def _write(frame: pd.DataFrame, path: Path, what: str) -> Path:
    path = Path(path)
    try:
        atomic_write_frame(path, frame)
    except OSError as e:
        raise OSError(f"Failed to write {what} to {path}: {e}") from e
    logger.info(f"Wrote {len(frame)} {what} row(s) to {path}")
    return path


def write_edges(edges: Union[EdgeList, Network], path: Path) -> Path:
    """Write an edge list or a thresholded network, one row per edge."""
    return _write(edges.to_frame(), path, "edge")


def write_clusters(clusters: ClusterAssignment, path: Path) -> Path:
    return _write(clusters.to_frame(), path, "cluster assignment")


def write_cartography(cartography: Cartography, path: Path) -> Path:
    """Write one row per node with metrics, hub class and joined attributes."""
    return _write(cartography.to_frame(), path, "cartography")


def write_switches(report: SwitchReport, path: Path) -> Path:
    return _write(report.to_frame(), path, "switch")


def write_scree(scree: ScreeCurve, path: Path) -> Path:
    return _write(scree.table, path, "scree")


def write_sweep(sweep: pd.DataFrame, path: Path) -> Path:
    return _write(sweep, path, "threshold sweep")


def write_run_config(
    path: Path, config: Dict[str, Any], summary: Optional[Dict[str, Any]] = None
) -> Path:
    """
    Write the resolved configuration (and optional run summary) as JSON.

    Args:
        path: Destination, typically <output>/config.json
        config: Configuration dictionary (PipelineConfig.to_dict())
        summary: Run summary (node/edge counts, coverage, ...)
    """
    from switchminer import __version__

    payload: Dict[str, Any] = {'version': __version__, 'config': config}
    if summary is not None:
        payload['summary'] = summary
    path = Path(path)
    atomic_write_json(path, payload)
    logger.info(f"Wrote run configuration to {path}")
    return path
