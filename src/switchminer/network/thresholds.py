"""
Threshold selection and network-integrity diagnostics.

Choosing the |rho| cutoff is the most consequential decision of a
co-expression analysis: too permissive and the network is a hairball, too
strict and it shatters into pairs. This module reports, for each candidate
cutoff, how much of the network survives and how fragmented it is, so the
caller can pick a cutoff where the giant component is still intact.

Diagnostics per cutoff (p_adj cutoff held fixed):
    - n_nodes / n_edges: surviving genes and edges
    - n_components: connected components of the surviving network
    - giant_component_size / giant_component_fraction: largest component,
      absolute and relative to the surviving nodes
    - node_fraction: surviving nodes relative to the gene set
    - density: n_edges / C(n_nodes, 2)

When no sweep result is adopted, a default cutoff is the 90th percentile of
the unthresholded |rho| distribution, which keeps the strongest ~10% of all
gene pairs.

The sweep is read-only over the EdgeList; steps are independent and are
evaluated in parallel, then concatenated in cutoff order.
"""

from __future__ import annotations

from typing import Dict, List
import logging

import networkx as nx
import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from switchminer.core.errors import InvalidInput
from switchminer.network.builder import Threshold
from switchminer.network.correlation import EdgeList

logger = logging.getLogger(__name__)

__all__ = [
    'SWEEP_COLUMNS',
    'ThresholdSelector',
    'quantile_cutoff',
    'default_threshold',
]

SWEEP_COLUMNS = [
    'rho_cutoff',
    'p_adj_cutoff',
    'n_nodes',
    'n_edges',
    'n_components',
    'giant_component_size',
    'giant_component_fraction',
    'node_fraction',
    'density',
]


def quantile_cutoff(edge_list: EdgeList, quantile: float = 0.9) -> float:
    """
    Quantile of the unthresholded |rho| distribution.

    Args:
        edge_list: Complete edge list
        quantile: Quantile in (0, 1); 0.9 keeps roughly the top 10% of pairs

    Returns:
        |rho| cutoff (numpy linear interpolation between order statistics)
    """
    if not (0.0 < quantile < 1.0):
        raise InvalidInput(
            "quantile must lie in (0, 1)", stage="threshold", context={"quantile": quantile}
        )
    if len(edge_list) == 0:
        raise InvalidInput("edge list is empty", stage="threshold", context=edge_list.summary())
    return float(np.quantile(edge_list.abs_rho(), quantile))


def default_threshold(
    edge_list: EdgeList, quantile: float = 0.9, p_adj_cutoff: float = 1.0
) -> Threshold:
    """Threshold at the |rho| quantile with a fixed p_adj cutoff."""
    return Threshold(rho_cutoff=quantile_cutoff(edge_list, quantile), p_adj_cutoff=p_adj_cutoff)


def _integrity_at(
    rho_cutoff: float,
    p_adj_cutoff: float,
    gene_a: np.ndarray,
    gene_b: np.ndarray,
    abs_rho: np.ndarray,
    p_adj: np.ndarray,
    n_genes: int,
) -> Dict[str, float]:
    """Integrity diagnostics of the network surviving one cutoff."""
    mask = (abs_rho >= rho_cutoff) & (abs_rho > 0) & (p_adj <= p_adj_cutoff)
    graph = nx.Graph()
    graph.add_edges_from(zip(gene_a[mask].tolist(), gene_b[mask].tolist()))

    n_nodes = graph.number_of_nodes()
    n_edges = graph.number_of_edges()
    if n_nodes > 0:
        component_sizes = [len(c) for c in nx.connected_components(graph)]
        n_components = len(component_sizes)
        giant = max(component_sizes)
        giant_fraction = giant / n_nodes
        density = nx.density(graph)
    else:
        n_components = 0
        giant = 0
        giant_fraction = 0.0
        density = 0.0

    return {
        'rho_cutoff': rho_cutoff,
        'p_adj_cutoff': p_adj_cutoff,
        'n_nodes': n_nodes,
        'n_edges': n_edges,
        'n_components': n_components,
        'giant_component_size': giant,
        'giant_component_fraction': giant_fraction,
        'node_fraction': n_nodes / n_genes if n_genes else 0.0,
        'density': density,
    }


class ThresholdSelector:
    """
    Sweeps |rho| cutoffs and reports network-integrity diagnostics.

    Attributes:
        rho_min, rho_max: Sweep range (inclusive)
        step: Sweep step
        p_adj_cutoff: Fixed adjusted p-value cutoff applied at every step
        n_jobs: joblib worker count

    Examples:
        >>> selector = ThresholdSelector(rho_min=0.5, rho_max=0.9, step=0.1)
        >>> table = selector.sweep(edge_list)
        >>> table[['rho_cutoff', 'n_nodes', 'giant_component_fraction']]
    """

    def __init__(
        self,
        rho_min: float = 0.5,
        rho_max: float = 0.95,
        step: float = 0.05,
        p_adj_cutoff: float = 0.05,
        n_jobs: int = 1,
        verbose: bool = False,
    ):
        if not (0.0 <= rho_min <= rho_max <= 1.0):
            raise InvalidInput(
                "sweep range must satisfy 0 <= rho_min <= rho_max <= 1",
                stage="threshold",
                context={"rho_min": rho_min, "rho_max": rho_max},
            )
        if step <= 0:
            raise InvalidInput("step must be positive", stage="threshold", context={"step": step})
        if not (0.0 <= p_adj_cutoff <= 1.0):
            raise InvalidInput(
                "p_adj_cutoff must lie in [0, 1]",
                stage="threshold",
                context={"p_adj_cutoff": p_adj_cutoff},
            )
        self.rho_min = rho_min
        self.rho_max = rho_max
        self.step = step
        self.p_adj_cutoff = p_adj_cutoff
        self.n_jobs = n_jobs
        self.verbose = verbose

    def cutoffs(self) -> List[float]:
        """Candidate cutoffs, rounded to suppress floating-point drift."""
        n_steps = int(np.floor((self.rho_max - self.rho_min) / self.step + 1e-9)) + 1
        return [round(self.rho_min + i * self.step, 10) for i in range(n_steps)]

    def sweep(self, edge_list: EdgeList) -> pd.DataFrame:
        """
        Integrity diagnostics for every candidate cutoff.

        Args:
            edge_list: Complete edge list (not modified)

        Returns:
            DataFrame with SWEEP_COLUMNS, one row per cutoff, ascending
        """
        edges = edge_list.edges
        gene_a = edges['gene_a'].to_numpy(dtype=object)
        gene_b = edges['gene_b'].to_numpy(dtype=object)
        abs_rho = np.abs(edges['rho'].to_numpy(dtype=float))
        p_adj = edges['p_adj'].to_numpy(dtype=float)

        cutoffs = self.cutoffs()
        logger.info(
            f"Sweeping {len(cutoffs)} cutoffs in [{self.rho_min}, {self.rho_max}] "
            f"(p_adj <= {self.p_adj_cutoff:g})"
        )

        tasks = (
            delayed(_integrity_at)(
                cutoff, self.p_adj_cutoff, gene_a, gene_b, abs_rho, p_adj, edge_list.n_genes
            )
            for cutoff in cutoffs
        )
        if self.verbose:
            tasks = tqdm(tasks, total=len(cutoffs), desc="Threshold sweep", unit="cutoff")
        rows = Parallel(n_jobs=self.n_jobs)(tasks)

        return pd.DataFrame(rows, columns=SWEEP_COLUMNS)
