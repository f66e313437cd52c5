"""
Network and adjacency-matrix construction from a thresholded EdgeList.

NetworkBuilder:
    Keeps the edges with |rho| >= rho_cutoff and p_adj <= p_adj_cutoff.
    Genes left without any surviving edge are dropped from the node set.
    An empty result is an error (EmptyNetwork): cutoffs are the caller's
    decision and are never relaxed automatically.

AdjacencyMatrixBuilder:
    Lays the surviving network out as a symmetric weighted matrix
    (weight = rho, 0 between non-adjacent nodes and on the diagonal). Rows
    follow the gene-set order of the retained nodes, so identical networks
    always produce identical matrices and clustering stays reproducible.

Examples:
    >>> threshold = Threshold(rho_cutoff=0.8, p_adj_cutoff=0.05)
    >>> network = build_network(edge_list, threshold)
    >>> adjacency = build_adjacency(network)
    >>> adjacency.to_frame().loc['TTN', 'MYH7']
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple
import logging

import networkx as nx
import numpy as np
import pandas as pd

from switchminer.core.errors import EmptyNetwork, InvalidInput
from switchminer.network.correlation import EDGE_COLUMNS, EdgeList

logger = logging.getLogger(__name__)

__all__ = [
    'Threshold',
    'Network',
    'AdjacencyMatrix',
    'surviving_mask',
    'build_network',
    'build_adjacency',
]


@dataclass(frozen=True)
class Threshold:
    """
    Edge retention cutoffs.

    Attributes:
        rho_cutoff: Minimum |rho| for an edge to survive, in [0, 1]
        p_adj_cutoff: Maximum adjusted p-value, in [0, 1]
    """
    rho_cutoff: float
    p_adj_cutoff: float = 1.0

    def __post_init__(self):
        if not (0.0 <= self.rho_cutoff <= 1.0):
            raise InvalidInput(
                "rho_cutoff must lie in [0, 1]",
                stage="threshold",
                context={"rho_cutoff": self.rho_cutoff},
            )
        if not (0.0 <= self.p_adj_cutoff <= 1.0):
            raise InvalidInput(
                "p_adj_cutoff must lie in [0, 1]",
                stage="threshold",
                context={"p_adj_cutoff": self.p_adj_cutoff},
            )

    def to_dict(self) -> Dict[str, float]:
        return {'rho_cutoff': float(self.rho_cutoff), 'p_adj_cutoff': float(self.p_adj_cutoff)}


def surviving_mask(edges: pd.DataFrame, threshold: Threshold) -> np.ndarray:
    """
    Boolean mask of the edges that pass ``threshold``.

    rho = 0 is never an edge, even at rho_cutoff = 0, so the network and its
    adjacency matrix always hold the same edges.
    """
    abs_rho = np.abs(edges['rho'].to_numpy())
    p_adj = edges['p_adj'].to_numpy()
    return (abs_rho >= threshold.rho_cutoff) & (abs_rho > 0) & (p_adj <= threshold.p_adj_cutoff)


@dataclass(frozen=True, eq=False)
class Network:
    """
    Edge subset surviving a threshold.

    Attributes:
        edges: Surviving edges (same columns as the EdgeList)
        nodes: Genes with at least one surviving edge, in gene-set order
        threshold: Cutoffs that produced this network
        gene_set_size: Size of the gene set the EdgeList was built over
    """
    edges: pd.DataFrame
    nodes: Tuple[str, ...]
    threshold: Threshold
    gene_set_size: int

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def n_edges(self) -> int:
        return len(self.edges)

    def to_frame(self) -> pd.DataFrame:
        return self.edges.copy()

    def to_graph(self) -> nx.Graph:
        """Undirected networkx graph; edge attributes rho and p_adj."""
        graph = nx.Graph()
        graph.add_nodes_from(self.nodes)
        for a, b, rho, p_adj in zip(
            self.edges['gene_a'], self.edges['gene_b'], self.edges['rho'], self.edges['p_adj']
        ):
            graph.add_edge(a, b, rho=float(rho), weight=abs(float(rho)), p_adj=float(p_adj))
        return graph

    def summary(self) -> Dict[str, object]:
        return {
            'n_nodes': self.n_nodes,
            'n_edges': self.n_edges,
            'gene_set_size': self.gene_set_size,
            **self.threshold.to_dict(),
        }


def build_network(edge_list: EdgeList, threshold: Threshold) -> Network:
    """
    Filter an EdgeList into a Network.

    Args:
        edge_list: Complete, untrimmed edge list
        threshold: Retention cutoffs

    Returns:
        Network with surviving edges and their incident genes

    Raises:
        EmptyNetwork: If no edge survives the threshold
    """
    mask = surviving_mask(edge_list.edges, threshold)
    n_surviving = int(mask.sum())

    if n_surviving == 0:
        abs_rho = edge_list.abs_rho()
        raise EmptyNetwork(
            "no edge survives the threshold",
            stage="network",
            context={
                **threshold.to_dict(),
                'n_edges_in': len(edge_list),
                'max_abs_rho': round(float(abs_rho.max()), 4) if len(abs_rho) else None,
                'min_p_adj': round(float(edge_list.edges['p_adj'].min()), 6) if len(edge_list) else None,
            },
        )

    edges = edge_list.edges.loc[mask, EDGE_COLUMNS].reset_index(drop=True)
    incident = set(edges['gene_a']) | set(edges['gene_b'])
    nodes = tuple(g for g in edge_list.genes if g in incident)

    logger.info(
        f"Network at |rho| >= {threshold.rho_cutoff:.3f}, p_adj <= {threshold.p_adj_cutoff:g}: "
        f"{len(nodes)}/{edge_list.n_genes} genes, {n_surviving}/{len(edge_list)} edges"
    )

    return Network(
        edges=edges,
        nodes=nodes,
        threshold=threshold,
        gene_set_size=edge_list.n_genes,
    )


@dataclass(frozen=True, eq=False)
class AdjacencyMatrix:
    """
    Symmetric weighted adjacency over network nodes.

    Attributes:
        nodes: Node identifiers, row/column order
        weights: Read-only (n x n) array; weight = rho, 0 off-network and on
            the diagonal
    """
    nodes: Tuple[str, ...]
    weights: np.ndarray

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    def index_of(self) -> Dict[str, int]:
        return {node: i for i, node in enumerate(self.nodes)}

    def degree(self) -> np.ndarray:
        """Unweighted degree per node."""
        return (self.weights != 0).sum(axis=1)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.weights.copy(), index=list(self.nodes), columns=list(self.nodes))


def build_adjacency(network: Network) -> AdjacencyMatrix:
    """
    Build the weighted adjacency matrix of a network.

    Args:
        network: Thresholded network

    Returns:
        AdjacencyMatrix indexed in the network's node order
    """
    index = {node: i for i, node in enumerate(network.nodes)}
    n = len(network.nodes)
    weights = np.zeros((n, n), dtype=float)

    rows = network.edges['gene_a'].map(index).to_numpy(dtype=int)
    cols = network.edges['gene_b'].map(index).to_numpy(dtype=int)
    rho = network.edges['rho'].to_numpy(dtype=float)
    weights[rows, cols] = rho
    weights[cols, rows] = rho
    np.fill_diagonal(weights, 0.0)
    weights.flags.writeable = False

    return AdjacencyMatrix(nodes=tuple(network.nodes), weights=weights)
