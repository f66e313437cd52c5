"""
End-to-end orchestration: expression snapshot -> cartography -> switches.

Per condition:
    CorrelationEngine -> EdgeList
    Threshold (explicit cutoff, else |rho| quantile) -> Network -> AdjacencyMatrix
    ClusterEngine (explicit k, else scree elbow) -> ClusterAssignment
    compute_node_metrics -> NodeMetrics
    CartographyClassifier -> Cartography

Across conditions:
    detect_switches(cartography_a, cartography_b) -> SwitchReport

Components are registered statically below; there is no plugin discovery.
Every stage hands an immutable value to the next, so the two conditions
share nothing but the read-only expression matrix and gene set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple
import logging

import pandas as pd

from switchminer.cartography.classifier import Cartography, CartographyClassifier
from switchminer.cartography.clustering import (
    CLUSTER_METHODS,
    ClusterAssignment,
    ClusterEngine,
    ScreeCurve,
)
from switchminer.cartography.metrics import NodeMetrics, compute_node_metrics
from switchminer.cartography.switches import SwitchReport, detect_switches
from switchminer.config import PipelineConfig
from switchminer.core.errors import InvalidInput
from switchminer.core.expression import ExpressionMatrix, GeneSet
from switchminer.network.builder import (
    AdjacencyMatrix,
    Network,
    Threshold,
    build_adjacency,
    build_network,
)
from switchminer.network.correlation import (
    CORRECTION_METHODS,
    CORRELATION_METHODS,
    CorrelationEngine,
    EdgeList,
)
from switchminer.network.thresholds import ThresholdSelector, default_threshold

logger = logging.getLogger(__name__)

__all__ = [
    'CORRELATION_METHODS',
    'CORRECTION_METHODS',
    'CLUSTER_METHODS',
    'STAGES',
    'ConditionResult',
    'SwitchAnalysis',
    'build_cartography',
    'run_switch_analysis',
    'resolve_conditions',
    'sweep_condition',
]

# Stage name -> component. Order is execution order.
STAGES: Dict[str, Callable] = {
    'correlation': CorrelationEngine,
    'network': build_network,
    'adjacency': build_adjacency,
    'clustering': ClusterEngine,
    'metrics': compute_node_metrics,
    'cartography': CartographyClassifier,
    'switches': detect_switches,
}


@dataclass(frozen=True, eq=False)
class ConditionResult:
    """
    Every intermediate artifact of one condition's cartography.

    Attributes:
        label: Condition label
        samples: Sample ids the correlations were computed over
        edge_list: Complete, untrimmed edge list
        threshold: Cutoffs used to build the network
        network: Thresholded network
        adjacency: Weighted adjacency matrix
        scree: Scree curve used to pick k (None when k was given)
        clusters: Cluster assignment
        metrics: Per-node metrics
        cartography: Per-node hub classes
    """
    label: str
    samples: Tuple[str, ...]
    edge_list: EdgeList
    threshold: Threshold
    network: Network
    adjacency: AdjacencyMatrix
    scree: Optional[ScreeCurve]
    clusters: ClusterAssignment
    metrics: NodeMetrics
    cartography: Cartography

    def summary(self) -> Dict[str, object]:
        return {
            'label': self.label,
            'n_samples': len(self.samples),
            **self.network.summary(),
            'k': self.clusters.k,
            'cluster_method': self.clusters.method,
            'twss': self.clusters.twss,
            'class_counts': {name: int(n) for name, n in self.cartography.class_counts().items()},
        }


@dataclass(frozen=True, eq=False)
class SwitchAnalysis:
    """Two condition results and the switches between them (a -> b)."""
    condition_a: ConditionResult
    condition_b: ConditionResult
    report: SwitchReport

    def summary(self) -> Dict[str, object]:
        return {
            'condition_a': self.condition_a.summary(),
            'condition_b': self.condition_b.summary(),
            'switches': self.report.coverage_summary(),
        }


def _correlation_engine(config: PipelineConfig, verbose: bool) -> CorrelationEngine:
    return CorrelationEngine(
        method=config.correlation.method,
        correction=config.correlation.correction,
        chunk_size=config.correlation.chunk_size,
        n_jobs=config.correlation.n_jobs,
        verbose=verbose,
    )


def _select_threshold(edge_list: EdgeList, config: PipelineConfig) -> Threshold:
    if config.threshold.rho_cutoff is not None:
        return Threshold(
            rho_cutoff=config.threshold.rho_cutoff,
            p_adj_cutoff=config.threshold.p_adj_cutoff,
        )
    threshold = default_threshold(
        edge_list,
        quantile=config.threshold.quantile,
        p_adj_cutoff=config.threshold.p_adj_cutoff,
    )
    logger.info(
        f"No rho cutoff given; using the {config.threshold.quantile:g} quantile of |rho|: "
        f"{threshold.rho_cutoff:.4f}"
    )
    return threshold


def build_cartography(
    matrix: ExpressionMatrix,
    gene_set: GeneSet,
    config: PipelineConfig,
    samples: Optional[Sequence[str]] = None,
    label: str = "",
    attributes: Optional[pd.DataFrame] = None,
    verbose: bool = False,
) -> ConditionResult:
    """
    Run one condition from expression values to a cartography.

    Args:
        matrix: Expression snapshot
        gene_set: Genes to analyse (canonical node order)
        config: Pipeline configuration
        samples: Sample ids of the condition (all samples if None)
        label: Condition label carried by the cartography
        attributes: Optional per-gene attributes joined for reporting
        verbose: Show progress bars

    Returns:
        ConditionResult

    Raises:
        InvalidInput, EmptyNetwork, DegenerateCluster: From the failing stage
    """
    logger.info(f"Building cartography '{label}'")

    edge_list = _correlation_engine(config, verbose).compute(matrix, gene_set, samples=samples)
    threshold = _select_threshold(edge_list, config)
    network = build_network(edge_list, threshold)
    adjacency = build_adjacency(network)

    engine = ClusterEngine(
        method=config.clustering.method,
        seed=config.clustering.seed,
        n_init=config.clustering.n_init,
    )
    scree = None
    k = config.clustering.k
    if k is None:
        k_max = min(config.clustering.k_max, adjacency.n_nodes)
        scree = engine.scree(adjacency, range(1, k_max + 1))
        k = scree.elbow()
        logger.info(f"Selected k={k} at the scree elbow (k=1..{k_max})")
    clusters = engine.fit(adjacency, k)

    metrics = compute_node_metrics(adjacency, clusters)
    classifier = CartographyClassifier(
        degree_cutoff=config.cartography.degree_cutoff,
        apcc_cutoff=config.cartography.apcc_cutoff,
    )
    cartography = classifier.classify(metrics, attributes=attributes, label=label)

    used_samples = tuple(samples) if samples is not None else tuple(matrix.sample_ids)
    return ConditionResult(
        label=label,
        samples=used_samples,
        edge_list=edge_list,
        threshold=threshold,
        network=network,
        adjacency=adjacency,
        scree=scree,
        clusters=clusters,
        metrics=metrics,
        cartography=cartography,
    )


def resolve_conditions(matrix: ExpressionMatrix, config: PipelineConfig) -> Tuple[str, str]:
    """
    The two condition labels to compare.

    Explicit labels from the config win; otherwise the annotation column
    must hold exactly two distinct labels, taken in sorted order.

    Raises:
        InvalidInput: If the labels cannot be resolved
    """
    column = config.conditions.column
    available = matrix.conditions(column)
    if not available:
        raise InvalidInput(
            f"annotation column '{column}' is missing or empty",
            stage="input",
            context={"columns": list(matrix.sample_metadata.columns)},
        )

    label_a = config.conditions.condition_a
    label_b = config.conditions.condition_b
    if label_a is None and label_b is None:
        if len(available) != 2:
            raise InvalidInput(
                f"column '{column}' holds {len(available)} conditions; name the two to compare",
                stage="input",
                context={"conditions": available},
            )
        label_a, label_b = available
    elif label_a is None or label_b is None:
        raise InvalidInput(
            "both condition_a and condition_b must be given",
            stage="input",
            context={"condition_a": label_a, "condition_b": label_b},
        )

    label_a, label_b = str(label_a), str(label_b)
    if label_a == label_b:
        raise InvalidInput("the two conditions must differ", stage="input", context={"condition": label_a})
    for label in (label_a, label_b):
        if label not in available:
            raise InvalidInput(
                f"condition '{label}' not found in column '{column}'",
                stage="input",
                context={"conditions": available},
            )
    return label_a, label_b


def run_switch_analysis(
    matrix: ExpressionMatrix,
    gene_set: GeneSet,
    config: PipelineConfig,
    attributes: Optional[pd.DataFrame] = None,
    verbose: bool = False,
) -> SwitchAnalysis:
    """
    Build one cartography per condition and report the switch genes.

    Args:
        matrix: Expression snapshot with a sample annotation
        gene_set: Genes shared by both condition networks
        config: Pipeline configuration (conditions section selects samples)
        attributes: Optional per-gene attributes joined for reporting
        verbose: Show progress bars

    Returns:
        SwitchAnalysis with switches from condition_a to condition_b
    """
    label_a, label_b = resolve_conditions(matrix, config)
    column = config.conditions.column

    results = []
    for label in (label_a, label_b):
        mask = matrix.condition_mask(column, label)
        samples = tuple(matrix.sample_ids[mask])
        results.append(build_cartography(
            matrix, gene_set, config,
            samples=samples, label=label, attributes=attributes, verbose=verbose,
        ))

    report = detect_switches(results[0].cartography, results[1].cartography, gene_set=gene_set)
    logger.info(
        f"Switch analysis '{label_a}' -> '{label_b}': {len(report.switches)} switch gene(s), "
        f"coverage {report.coverage:.1%}"
    )
    return SwitchAnalysis(condition_a=results[0], condition_b=results[1], report=report)


def sweep_condition(
    matrix: ExpressionMatrix,
    gene_set: GeneSet,
    config: PipelineConfig,
    samples: Optional[Sequence[str]] = None,
    verbose: bool = False,
) -> Tuple[EdgeList, pd.DataFrame, Optional[ScreeCurve]]:
    """
    Diagnostics for choosing cutoffs and k on one condition.

    Returns:
        (edge list, threshold sweep table, scree curve at the configured or
        default threshold; None when that threshold leaves fewer than 2 nodes)
    """
    edge_list = _correlation_engine(config, verbose).compute(matrix, gene_set, samples=samples)
    selector = ThresholdSelector(
        rho_min=config.threshold.sweep_min,
        rho_max=config.threshold.sweep_max,
        step=config.threshold.sweep_step,
        p_adj_cutoff=config.threshold.p_adj_cutoff,
        n_jobs=config.correlation.n_jobs,
        verbose=verbose,
    )
    sweep = selector.sweep(edge_list)

    adjacency = build_adjacency(build_network(edge_list, _select_threshold(edge_list, config)))
    k_max = min(config.clustering.k_max, adjacency.n_nodes)
    scree = None
    if k_max >= 2:
        engine = ClusterEngine(
            method=config.clustering.method,
            seed=config.clustering.seed,
            n_init=config.clustering.n_init,
        )
        scree = engine.scree(adjacency, range(1, k_max + 1))
    return edge_list, sweep, scree
