"""
Co-expression network construction.

Pipeline stages, leaf to root:
    CorrelationEngine -> EdgeList (all gene pairs, rho, p, p_adj)
    ThresholdSelector -> integrity diagnostics over candidate cutoffs
    build_network     -> Network (edges surviving a Threshold)
    build_adjacency   -> AdjacencyMatrix (symmetric, weight = rho)
"""

from switchminer.network.correlation import (
    CORRELATION_METHODS,
    CORRECTION_METHODS,
    CorrelationEngine,
    EdgeList,
    correct_pvalues,
    correlation_pvalues,
)
from switchminer.network.builder import (
    AdjacencyMatrix,
    Network,
    Threshold,
    build_adjacency,
    build_network,
)
from switchminer.network.thresholds import (
    ThresholdSelector,
    default_threshold,
    quantile_cutoff,
)

__all__ = [
    'CORRELATION_METHODS',
    'CORRECTION_METHODS',
    'CorrelationEngine',
    'EdgeList',
    'correct_pvalues',
    'correlation_pvalues',
    'AdjacencyMatrix',
    'Network',
    'Threshold',
    'build_adjacency',
    'build_network',
    'ThresholdSelector',
    'default_threshold',
    'quantile_cutoff',
]
