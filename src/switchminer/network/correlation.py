"""
Pairwise gene correlation with joint multiple-testing correction.

For every unordered pair of genes in a GeneSet, computes a correlation
coefficient across samples and its two-sided p-value, then corrects all
C(n,2) p-values jointly. The output EdgeList is untrimmed: thresholding is a
separate, later decision.

Algorithm:
    1. Restrict the matrix to the gene set (gene-set order) and samples
    2. Spearman only: replace each gene's profile by its ranks, ties
       receiving the average rank
    3. Standardize each gene: Z = (X - mean) / std (population std)
    4. For fixed row blocks [start, stop), compute Z_block @ Z.T / n and keep
       the upper-triangle entries (j > i), row-major
    5. Concatenate blocks in order -> rho for all pairs in np.triu_indices
       order
    6. t = rho * sqrt((n-2) / (1-rho^2)) ~ t(n-2) under H0: rho = 0;
       p = 2 * sf(|t|)
    7. Correct p jointly (statsmodels multipletests)

Determinism:
    Block boundaries depend only on ``chunk_size``, never on ``n_jobs``, so
    the floating-point reduction order for each pair is fixed and results are
    bit-identical across worker counts and repeated runs.

Constant genes:
    A gene with zero variance has no defined correlation. Its pairs get
    rho = 0 and p = 1 and a warning is logged, so one flat gene never aborts
    a genome-scale run.

References:
    Benjamini, Y., & Hochberg, Y. (1995). Controlling the false discovery
    rate: a practical and powerful approach to multiple testing.
    Journal of the Royal Statistical Society: Series B, 57(1), 289-300.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy import stats
from scipy.stats import rankdata
from statsmodels.stats.multitest import multipletests
from tqdm import tqdm

from switchminer.core.errors import InvalidInput
from switchminer.core.expression import ExpressionMatrix, GeneSet

logger = logging.getLogger(__name__)

__all__ = [
    'CORRELATION_METHODS',
    'CORRECTION_METHODS',
    'EDGE_COLUMNS',
    'EdgeList',
    'CorrelationEngine',
    'correlation_pvalues',
    'correct_pvalues',
]

CORRELATION_METHODS = ('spearman', 'pearson')

# Decimal places kept in rho; drops dot-product rounding noise
RHO_DECIMALS = 12

# Canonical name -> statsmodels method (None = keep raw p-values)
CORRECTION_METHODS: Dict[str, Optional[str]] = {
    'fdr_bh': 'fdr_bh',
    'BH': 'fdr_bh',
    'fdr_by': 'fdr_by',
    'BY': 'fdr_by',
    'bonferroni': 'bonferroni',
    'holm': 'holm',
    'none': None,
}

EDGE_COLUMNS = ['gene_a', 'gene_b', 'rho', 'p_value', 'p_adj']

MIN_SAMPLES = 3
MIN_GENES = 2


@dataclass(frozen=True, eq=False)
class EdgeList:
    """
    Complete set of correlation edges over all gene pairs.

    Attributes:
        edges: DataFrame with columns gene_a, gene_b, rho, p_value, p_adj;
            one row per unordered pair, gene_a preceding gene_b in gene order
        genes: Gene identifiers in canonical order
        method: Correlation method used ('spearman' or 'pearson')
        correction: Multiple-testing correction used
        n_samples: Number of samples the correlations were computed over
    """
    edges: pd.DataFrame
    genes: Tuple[str, ...]
    method: str
    correction: str
    n_samples: int
    _lookup: Dict[Tuple[str, str], int] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        lookup = {
            (a, b): i for i, (a, b) in enumerate(zip(self.edges['gene_a'], self.edges['gene_b']))
        }
        object.__setattr__(self, '_lookup', lookup)

    def __len__(self) -> int:
        return len(self.edges)

    @property
    def n_genes(self) -> int:
        return len(self.genes)

    def to_frame(self) -> pd.DataFrame:
        """Copy of the edge table, safe to modify."""
        return self.edges.copy()

    def abs_rho(self) -> np.ndarray:
        return np.abs(self.edges['rho'].to_numpy())

    def edge(self, gene_1: str, gene_2: str) -> pd.Series:
        """Edge record for an unordered gene pair, in either argument order."""
        idx = self._lookup.get((gene_1, gene_2))
        if idx is None:
            idx = self._lookup.get((gene_2, gene_1))
        if idx is None:
            raise KeyError(f"no edge between '{gene_1}' and '{gene_2}'")
        return self.edges.iloc[idx]

    def rho_between(self, gene_1: str, gene_2: str) -> float:
        return float(self.edge(gene_1, gene_2)['rho'])

    def summary(self) -> Dict[str, object]:
        """Short input summary used in error context and run logs."""
        return {
            'n_genes': self.n_genes,
            'n_edges': len(self),
            'n_samples': self.n_samples,
            'method': self.method,
            'correction': self.correction,
        }


def correlation_pvalues(rho: np.ndarray, n_samples: int) -> np.ndarray:
    """
    Two-sided p-values for correlation coefficients under H0: rho = 0.

    Uses the t distribution with n-2 degrees of freedom, as scipy does for
    both Pearson and Spearman coefficients. |rho| = 1 gives p = 0.

    Args:
        rho: Correlation coefficients
        n_samples: Number of samples each coefficient was computed over

    Returns:
        p-values in [0, 1]
    """
    rho = np.asarray(rho, dtype=float)
    df = n_samples - 2
    denom = 1.0 - rho ** 2
    p_values = np.zeros_like(rho)
    finite = denom > 0
    with np.errstate(divide='ignore', invalid='ignore'):
        t_stat = rho[finite] * np.sqrt(df / denom[finite])
    p_values[finite] = 2.0 * stats.t.sf(np.abs(t_stat), df)
    return np.clip(p_values, 0.0, 1.0)


def correct_pvalues(p_values: np.ndarray, correction: str = 'fdr_bh') -> np.ndarray:
    """
    Apply a multiple-testing correction jointly across all p-values.

    Args:
        p_values: Raw p-values
        correction: One of CORRECTION_METHODS

    Returns:
        Adjusted p-values (raw values when correction is 'none')

    Raises:
        InvalidInput: If correction is unknown
    """
    if correction not in CORRECTION_METHODS:
        raise InvalidInput(
            f"unknown correction '{correction}'",
            stage="correlation",
            context={"choices": sorted(CORRECTION_METHODS)},
        )
    p_values = np.asarray(p_values, dtype=float)
    sm_method = CORRECTION_METHODS[correction]
    if sm_method is None or len(p_values) == 0:
        return p_values.copy()
    _, p_adj, _, _ = multipletests(p_values, method=sm_method)
    return p_adj


def _standardize(data: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Row-standardize data; constant rows become all-zero."""
    data_mean = data.mean(axis=1, keepdims=True)
    data_std = data.std(axis=1, keepdims=True)
    scale = np.maximum(np.abs(data_mean[:, 0]), 1.0)
    constant = data_std[:, 0] <= 1e-12 * scale
    data_std[constant] = 1.0
    standardized = (data - data_mean) / data_std
    standardized[constant] = 0.0
    return standardized, constant


def _correlate_block(
    standardized: np.ndarray, start: int, stop: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Upper-triangle correlations for rows [start, stop) against all rows."""
    n_genes, n_samples = standardized.shape
    block = (standardized[start:stop] @ standardized.T) / n_samples
    row_pos = np.arange(start, stop)[:, None]
    col_pos = np.arange(n_genes)[None, :]
    rows, cols = np.nonzero(col_pos > row_pos)
    # rounding makes mathematically equal rho compare equal at exact cutoffs
    rho = np.round(np.clip(block[rows, cols], -1.0, 1.0), RHO_DECIMALS)
    return rows + start, cols, rho


class CorrelationEngine:
    """
    Computes the complete, corrected EdgeList for a gene set.

    Attributes:
        method: 'spearman' (rank-based, average ranks for ties) or 'pearson'
        correction: Multiple-testing correction (see CORRECTION_METHODS)
        chunk_size: Rows per parallel block; fixes the reduction order
        n_jobs: joblib worker count (1 = sequential, -1 = all cores)
        verbose: Show a progress bar over blocks

    Examples:
        >>> engine = CorrelationEngine(method='spearman', correction='fdr_bh')
        >>> edge_list = engine.compute(matrix, gene_set)
        >>> len(edge_list) == len(gene_set) * (len(gene_set) - 1) // 2
        True
    """

    def __init__(
        self,
        method: str = 'spearman',
        correction: str = 'fdr_bh',
        chunk_size: int = 256,
        n_jobs: int = 1,
        verbose: bool = False,
    ):
        if method not in CORRELATION_METHODS:
            raise InvalidInput(
                f"unknown correlation method '{method}'",
                stage="correlation",
                context={"choices": list(CORRELATION_METHODS)},
            )
        if correction not in CORRECTION_METHODS:
            raise InvalidInput(
                f"unknown correction '{correction}'",
                stage="correlation",
                context={"choices": sorted(CORRECTION_METHODS)},
            )
        if chunk_size < 1:
            raise InvalidInput("chunk_size must be >= 1", stage="correlation")
        self.method = method
        self.correction = correction
        self.chunk_size = chunk_size
        self.n_jobs = n_jobs
        self.verbose = verbose

    def compute(
        self,
        matrix: ExpressionMatrix,
        gene_set: GeneSet,
        samples: Optional[Sequence[str]] = None,
    ) -> EdgeList:
        """
        Correlate every unordered gene pair of ``gene_set``.

        Args:
            matrix: Expression snapshot
            gene_set: Genes to correlate, in canonical order
            samples: Optional sample ids to restrict to (all samples if None)

        Returns:
            EdgeList with C(|gene_set|, 2) rows

        Raises:
            InvalidInput: Fewer than 3 samples, fewer than 2 genes, genes
                missing from the matrix, unknown samples or non-finite values
        """
        if len(gene_set) < MIN_GENES:
            raise InvalidInput(
                f"gene set needs at least {MIN_GENES} genes",
                stage="correlation",
                context={"gene_set_size": len(gene_set)},
            )

        if samples is not None:
            samples = list(samples)
            unknown = [s for s in samples if s not in matrix.sample_ids]
            if unknown:
                raise InvalidInput(
                    f"{len(unknown)} requested sample(s) not in the expression matrix",
                    stage="correlation",
                    context={"unknown": unknown[:5]},
                )
            matrix = matrix.select_samples(matrix.sample_ids.isin(samples))

        if matrix.n_samples < MIN_SAMPLES:
            raise InvalidInput(
                f"correlation needs at least {MIN_SAMPLES} samples",
                stage="correlation",
                context={"n_samples": matrix.n_samples, "gene_set_size": len(gene_set)},
            )

        subset = matrix.select_genes(gene_set)
        data = np.array(subset.data, dtype=float)

        if not np.isfinite(data).all():
            raise InvalidInput(
                "expression values must be finite",
                stage="correlation",
                context={"n_non_finite": int((~np.isfinite(data)).sum())},
            )

        n_genes, n_samples = data.shape
        logger.info(
            f"Correlating {n_genes} genes over {n_samples} samples "
            f"({self.method}, {n_genes * (n_genes - 1) // 2} pairs)"
        )

        if self.method == 'spearman':
            data = rankdata(data, method='average', axis=1)

        standardized, constant = _standardize(data)
        if constant.any():
            flat = [gene_set.genes[i] for i in np.flatnonzero(constant)]
            logger.warning(
                f"{len(flat)} gene(s) have constant expression; their pairs get rho=0, p=1: "
                f"{flat[:5]}"
            )

        starts = list(range(0, n_genes, self.chunk_size))
        tasks = (
            delayed(_correlate_block)(standardized, start, min(start + self.chunk_size, n_genes))
            for start in starts
        )
        if self.verbose:
            tasks = tqdm(tasks, total=len(starts), desc="Correlating", unit="block")
        blocks = Parallel(n_jobs=self.n_jobs)(tasks)

        rows = np.concatenate([b[0] for b in blocks])
        cols = np.concatenate([b[1] for b in blocks])
        rho = np.concatenate([b[2] for b in blocks])

        p_values = correlation_pvalues(rho, n_samples)
        p_adj = correct_pvalues(p_values, self.correction)

        genes = np.array(gene_set.genes, dtype=object)
        edges = pd.DataFrame({
            'gene_a': genes[rows],
            'gene_b': genes[cols],
            'rho': rho,
            'p_value': p_values,
            'p_adj': p_adj,
        }, columns=EDGE_COLUMNS)

        logger.debug(
            f"Edge list: {len(edges)} edges, |rho| range "
            f"[{np.abs(rho).min():.3f}, {np.abs(rho).max():.3f}]"
        )

        return EdgeList(
            edges=edges,
            genes=tuple(gene_set.genes),
            method=self.method,
            correction=self.correction,
            n_samples=n_samples,
        )
