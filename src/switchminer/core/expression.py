"""
Core data structures for expression snapshots and gene selections.

ExpressionMatrix couples the numerical expression values (genes x samples)
with the sample annotation that maps each sample to its condition label
(etiology, treatment arm, ...). GeneSet is the ordered selection of genes
handed over by the upstream differential-expression step.

Biological Context:
    The switch-mining pipeline builds one co-expression network per
    condition. The same matrix is therefore sliced twice: once by gene
    (the GeneSet, shared by both conditions) and once by sample (the
    condition label). Keeping annotation and data in one object guarantees
    that a sample subset never drifts out of sync with its labels.

Engineering Design:
    - Immutable: operations return new instances (functional style)
    - Type-safe: NumPy arrays for data, Pandas for identifiers/annotation
    - Validated: constructor checks shape and index consistency
    - GeneSet order is the canonical node order for every derived artifact

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from switchminer.core.expression import ExpressionMatrix, GeneSet
    >>>
    >>> data = np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 7.0]])
    >>> sample_ids = pd.Index(["S1", "S2", "S3"])
    >>> matrix = ExpressionMatrix(
    ...     data=data,
    ...     feature_ids=pd.Index(["TTN", "MYH7"]),
    ...     sample_ids=sample_ids,
    ...     sample_metadata=pd.DataFrame({'etiology': ['NF', 'DCM', 'DCM']},
    ...                                  index=sample_ids),
    ... )
    >>> dcm = matrix.select_condition('etiology', 'DCM')
    >>> genes = GeneSet.from_iterable(["MYH7", "TTN"])
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

import numpy as np
import pandas as pd

from switchminer.core.errors import InvalidInput

__all__ = ['ExpressionMatrix', 'GeneSet']


@dataclass(frozen=True)
class GeneSet:
    """
    Ordered, duplicate-free selection of gene identifiers.

    The order given here is the node order used by every downstream
    artifact (edge list, adjacency matrix, cluster numbering), which is what
    makes repeated runs reproducible.

    Attributes:
        genes: Gene identifiers in canonical order
    """
    genes: Tuple[str, ...]

    def __post_init__(self):
        seen = set()
        duplicates = []
        for gene in self.genes:
            if gene in seen:
                duplicates.append(gene)
            seen.add(gene)
        if duplicates:
            raise InvalidInput(
                "gene set contains duplicate identifiers",
                stage="input",
                context={"duplicates": sorted(set(duplicates))[:5]},
            )

    @classmethod
    def from_iterable(cls, genes: Iterable) -> GeneSet:
        """Build a GeneSet from any iterable, keeping first-seen order."""
        return cls(tuple(str(g) for g in genes))

    def __len__(self) -> int:
        return len(self.genes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.genes)

    def __contains__(self, gene: object) -> bool:
        return gene in self.genes

    def index_of(self) -> dict:
        """Map each gene to its position in the canonical order."""
        return {gene: i for i, gene in enumerate(self.genes)}


class ExpressionMatrix:
    """
    Immutable container for an expression snapshot plus sample annotation.

    Attributes:
        data: Numerical expression matrix (genes x samples)
        feature_ids: Row identifiers (gene ids)
        sample_ids: Column identifiers (sample ids)
        sample_metadata: Sample annotation (condition labels etc.)

    Shape Invariants:
        - data.shape[0] == len(feature_ids)
        - data.shape[1] == len(sample_ids)
        - sample_metadata.index equals sample_ids
    """

    def __init__(
        self,
        data: np.ndarray,
        feature_ids: pd.Index,
        sample_ids: pd.Index,
        sample_metadata: pd.DataFrame | None = None,
    ):
        """
        Initialize ExpressionMatrix with validation.

        Args:
            data: Expression matrix (genes x samples)
            feature_ids: Row identifiers
            sample_ids: Column identifiers
            sample_metadata: DataFrame indexed by sample_ids; an empty
                annotation is created when omitted

        Raises:
            TypeError: If data types are incorrect
            InvalidInput: If shapes are inconsistent or indices don't match
        """
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if not isinstance(feature_ids, pd.Index):
            raise TypeError(f"feature_ids must be pd.Index, got {type(feature_ids)}")
        if not isinstance(sample_ids, pd.Index):
            raise TypeError(f"sample_ids must be pd.Index, got {type(sample_ids)}")
        if sample_metadata is None:
            sample_metadata = pd.DataFrame(index=sample_ids)
        if not isinstance(sample_metadata, pd.DataFrame):
            raise TypeError(f"sample_metadata must be pd.DataFrame, got {type(sample_metadata)}")

        if data.ndim != 2:
            raise InvalidInput(
                "data must be 2D", stage="input", context={"shape": data.shape}
            )

        n_features, n_samples = data.shape

        if len(feature_ids) != n_features:
            raise InvalidInput(
                f"feature_ids length ({len(feature_ids)}) must match data rows ({n_features})",
                stage="input",
            )
        if len(sample_ids) != n_samples:
            raise InvalidInput(
                f"sample_ids length ({len(sample_ids)}) must match data columns ({n_samples})",
                stage="input",
            )
        if feature_ids.has_duplicates:
            raise InvalidInput(
                "feature_ids must be unique",
                stage="input",
                context={"n_duplicates": int(feature_ids.duplicated().sum())},
            )
        if not sample_metadata.index.equals(sample_ids):
            raise InvalidInput(
                "sample_metadata.index must match sample_ids exactly",
                stage="input",
                context={
                    "n_metadata_rows": len(sample_metadata.index),
                    "n_samples": len(sample_ids),
                },
            )

        data = np.array(data, dtype=float, copy=True)
        data.flags.writeable = False

        self._data = data
        self._feature_ids = feature_ids.astype(str)
        self._sample_ids = sample_ids
        self._sample_metadata = sample_metadata.copy()

    @property
    def data(self) -> np.ndarray:
        """Expression matrix (genes x samples), read-only."""
        return self._data

    @property
    def feature_ids(self) -> pd.Index:
        return self._feature_ids

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def sample_metadata(self) -> pd.DataFrame:
        return self._sample_metadata

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def n_features(self) -> int:
        return self._data.shape[0]

    @property
    def n_samples(self) -> int:
        return self._data.shape[1]

    def select_samples(self, mask: np.ndarray | pd.Series) -> ExpressionMatrix:
        """
        Subset matrix by samples (columns).

        Args:
            mask: Boolean array/Series indicating which samples to keep.
                If Series, uses values and ignores index.

        Returns:
            New ExpressionMatrix with selected samples

        Raises:
            InvalidInput: If mask length doesn't match n_samples
        """
        if isinstance(mask, pd.Series):
            mask = mask.values
        mask = np.asarray(mask, dtype=bool)

        if len(mask) != self.n_samples:
            raise InvalidInput(
                f"mask length ({len(mask)}) must match n_samples ({self.n_samples})",
                stage="input",
            )

        return ExpressionMatrix(
            data=self._data[:, mask],
            feature_ids=self._feature_ids,
            sample_ids=self._sample_ids[mask],
            sample_metadata=self._sample_metadata.loc[self._sample_ids[mask]],
        )

    def select_features(self, mask: np.ndarray | pd.Series) -> ExpressionMatrix:
        """Subset matrix by genes (rows) with a boolean mask."""
        if isinstance(mask, pd.Series):
            mask = mask.values
        mask = np.asarray(mask, dtype=bool)

        if len(mask) != self.n_features:
            raise InvalidInput(
                f"mask length ({len(mask)}) must match n_features ({self.n_features})",
                stage="input",
            )

        return ExpressionMatrix(
            data=self._data[mask, :],
            feature_ids=self._feature_ids[mask],
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
        )

    def select_genes(self, gene_set: GeneSet) -> ExpressionMatrix:
        """
        Restrict the matrix to a gene set, rows in gene-set order.

        Raises:
            InvalidInput: If any gene of the set is absent from the matrix
        """
        missing = [g for g in gene_set if g not in self._feature_ids]
        if missing:
            raise InvalidInput(
                f"{len(missing)} gene(s) of the gene set are absent from the expression matrix",
                stage="input",
                context={"missing": missing[:5], "gene_set_size": len(gene_set)},
            )
        positions = self._feature_ids.get_indexer(list(gene_set.genes))
        return ExpressionMatrix(
            data=self._data[positions, :],
            feature_ids=pd.Index(list(gene_set.genes)),
            sample_ids=self._sample_ids,
            sample_metadata=self._sample_metadata,
        )

    def condition_mask(self, column: str, label: str) -> np.ndarray:
        """Boolean sample mask for one condition label of an annotation column."""
        if column not in self._sample_metadata.columns:
            raise InvalidInput(
                f"annotation column '{column}' not found",
                stage="input",
                context={"available": list(self._sample_metadata.columns)},
            )
        return (self._sample_metadata[column].astype(str) == str(label)).values

    def select_condition(self, column: str, label: str) -> ExpressionMatrix:
        """Keep only the samples annotated with ``label`` in ``column``."""
        mask = self.condition_mask(column, label)
        if not mask.any():
            raise InvalidInput(
                f"no samples annotated '{label}' in column '{column}'",
                stage="input",
                context={"labels": self.conditions(column)},
            )
        return self.select_samples(mask)

    def conditions(self, column: str) -> List[str]:
        """Sorted distinct condition labels of an annotation column."""
        if column not in self._sample_metadata.columns:
            return []
        return sorted(self._sample_metadata[column].dropna().astype(str).unique().tolist())

    def __repr__(self) -> str:
        if self.n_features == 0 or self.n_samples == 0:
            return f"ExpressionMatrix({self.n_features} genes × {self.n_samples} samples)"
        return (
            f"ExpressionMatrix({self.n_features} genes × {self.n_samples} samples)\n"
            f"  Genes: {self.feature_ids[0]}...{self.feature_ids[-1]}\n"
            f"  Samples: {self.sample_ids[0]}...{self.sample_ids[-1]}\n"
            f"  Annotation columns: {list(self.sample_metadata.columns)}"
        )
