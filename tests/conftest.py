"""
Pytest configuration and shared fixtures.

This module provides synthetic expression generators and small hand-built
datasets whose correlations, networks and cartographies are known exactly.
"""

import numpy as np
import pandas as pd
import pytest
from pathlib import Path

from switchminer.cartography.classifier import CartographyClassifier
from switchminer.cartography.clustering import ClusterAssignment
from switchminer.cartography.metrics import METRIC_COLUMNS, NodeMetrics
from switchminer.config import PipelineConfig
from switchminer.core.expression import ExpressionMatrix, GeneSet


# Six genes over eight samples (values are ranks, no ties).
# Spearman |rho|: G1-G2 = G3-G4 = 0.976; next strongest G5-G6 = 0.810,
# so the 0.9 quantile of the 15 pair magnitudes keeps exactly two edges.
SIX_GENE_PROFILES = {
    'G1': [1, 2, 3, 4, 5, 6, 7, 8],
    'G2': [2, 1, 3, 4, 5, 6, 7, 8],
    'G3': [8, 1, 7, 2, 6, 3, 5, 4],
    'G4': [8, 1, 7, 2, 6, 3, 4, 5],
    'G5': [4, 8, 1, 5, 3, 7, 2, 6],
    'G6': [5, 3, 8, 1, 7, 2, 6, 4],
}
SIX_GENE_CONDITIONS = ['NF', 'DCM', 'NF', 'DCM', 'NF', 'DCM', 'NF', 'DCM']


def generate_synthetic_expression_matrix(
    n_genes: int,
    n_samples: int,
    n_modules: int = 3,
    noise: float = 0.5,
    seed: int = 42,
) -> ExpressionMatrix:
    """
    Generate a synthetic expression matrix with co-expressed gene modules.

    Args:
        n_genes: Number of genes
        n_samples: Number of samples
        n_modules: Number of modules; genes are dealt round-robin into them
        noise: Standard deviation of per-gene noise around the module pattern
        seed: Random seed for reproducibility

    Returns:
        ExpressionMatrix with a 'condition' annotation alternating NF / DCM
    """
    rng = np.random.RandomState(seed)
    patterns = rng.randn(n_modules, n_samples)
    data = np.empty((n_genes, n_samples))
    for gene_idx in range(n_genes):
        module = patterns[gene_idx % n_modules]
        data[gene_idx] = 8.0 + module + noise * rng.randn(n_samples)

    feature_ids = pd.Index([f"GENE_{i:03d}" for i in range(n_genes)])
    sample_ids = pd.Index([f"S{i:03d}" for i in range(n_samples)])
    metadata = pd.DataFrame(
        {'condition': ['NF' if i % 2 == 0 else 'DCM' for i in range(n_samples)]},
        index=sample_ids,
    )
    return ExpressionMatrix(
        data=data,
        feature_ids=feature_ids,
        sample_ids=sample_ids,
        sample_metadata=metadata,
    )


def make_node_metrics(rows: dict, k: int) -> NodeMetrics:
    """
    NodeMetrics from {node: (cluster, degree_in_cluster, apcc)}.

    Columns not given are filled with neutral values.
    """
    table = pd.DataFrame(
        {
            'cluster': [r[0] for r in rows.values()],
            'degree_in_cluster': [r[1] for r in rows.values()],
            'strength_in_cluster': [float(r[1]) for r in rows.values()],
            'within_cluster_z': 0.0,
            'apcc': [r[2] for r in rows.values()],
            'n_inter_cluster_edges': 0,
        },
        index=pd.Index(list(rows), name='node'),
        columns=METRIC_COLUMNS,
    )
    return NodeMetrics(table=table, k=k)


def make_assignment(labels: dict) -> ClusterAssignment:
    """ClusterAssignment from {node: cluster}; WSS fields are placeholders."""
    k = len(set(labels.values()))
    return ClusterAssignment(
        labels=pd.Series(labels, name='cluster'),
        wss=pd.Series(np.zeros(k), index=range(1, k + 1), name='wss'),
        twss=0.0,
        k=k,
        method='ward',
    )


@pytest.fixture
def six_gene_matrix():
    """The six-gene, eight-sample dataset (4 NF + 4 DCM)."""
    sample_ids = pd.Index([f"S{i}" for i in range(1, 9)])
    return ExpressionMatrix(
        data=np.array(list(SIX_GENE_PROFILES.values()), dtype=float),
        feature_ids=pd.Index(list(SIX_GENE_PROFILES)),
        sample_ids=sample_ids,
        sample_metadata=pd.DataFrame({'condition': SIX_GENE_CONDITIONS}, index=sample_ids),
    )


@pytest.fixture
def six_gene_set():
    return GeneSet.from_iterable(SIX_GENE_PROFILES)


@pytest.fixture
def small_matrix():
    """Synthetic matrix (30 genes x 40 samples, 3 modules)."""
    return generate_synthetic_expression_matrix(n_genes=30, n_samples=40, seed=42)


@pytest.fixture
def small_gene_set(small_matrix):
    return GeneSet.from_iterable(small_matrix.feature_ids)


@pytest.fixture
def default_config():
    """Default pipeline configuration with the p_adj filter disabled."""
    return PipelineConfig.from_dict({'threshold': {'p_adj_cutoff': 1.0}})


@pytest.fixture
def classifier():
    return CartographyClassifier(degree_cutoff=2, apcc_cutoff=0.1)


def save_expression_csv(matrix: ExpressionMatrix, path: Path, sep: str = ","):
    """Write an ExpressionMatrix as a genes x samples table."""
    df = pd.DataFrame(matrix.data, index=matrix.feature_ids, columns=matrix.sample_ids)
    df.index.name = 'gene'
    df.to_csv(path, sep=sep)


def save_annotation_csv(matrix: ExpressionMatrix, path: Path):
    annotation = matrix.sample_metadata.copy()
    annotation.index.name = 'sample'
    annotation.to_csv(path)


@pytest.fixture
def six_gene_files(tmp_path, six_gene_matrix):
    """Expression, annotation and gene-set files of the six-gene dataset."""
    files = {
        'input': tmp_path / "expression.csv",
        'annotation': tmp_path / "samples.csv",
        'gene_set': tmp_path / "genes.txt",
    }
    save_expression_csv(six_gene_matrix, files['input'])
    save_annotation_csv(six_gene_matrix, files['annotation'])
    files['gene_set'].write_text("\n".join(SIX_GENE_PROFILES) + "\n")
    return files
