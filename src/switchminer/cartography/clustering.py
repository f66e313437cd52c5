"""
Partitioning of network nodes into k clusters, with scree diagnostics.

Node profiles:
    Each node is represented by its adjacency row with a unit self-weight
    (A + I). Two genes that correlate with the same partners, and with each
    other, end up close in this space.

Algorithms:
    - ward (default): agglomerative Ward linkage cut to exactly k clusters.
      Cuts of one dendrogram are nested (going from k to k-1 merges two
      clusters), so TWSS(k) is non-increasing in k and the scree curve is
      well-behaved for elbow selection.
    - kmeans: Lloyd's k-means with a fixed seed. Deterministic for a fixed
      seed, but nothing forces TWSS to be monotone across k.

Cluster ids:
    1..k, numbered by first appearance in node order, so identical inputs
    give identical ids whatever labels the backend produced.

Within-cluster sum of squares:
    WSS(c) = sum over members of ||profile - centroid(c)||^2
    TWSS   = sum over clusters of WSS(c)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple
import logging

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import cut_tree, linkage
from sklearn.cluster import KMeans

from switchminer.core.errors import DegenerateCluster, InvalidInput
from switchminer.network.builder import AdjacencyMatrix

logger = logging.getLogger(__name__)

__all__ = [
    'CLUSTER_METHODS',
    'ClusterAssignment',
    'ScreeCurve',
    'ClusterEngine',
    'node_profiles',
    'within_cluster_ss',
]

CLUSTER_METHODS = ('ward', 'kmeans')


@dataclass(frozen=True, eq=False)
class ClusterAssignment:
    """
    Exact partition of network nodes into k clusters.

    Attributes:
        labels: Series indexed by node (adjacency order), values 1..k
        wss: Within-cluster sum of squares, indexed by cluster id
        twss: Total within-cluster sum of squares
        k: Number of clusters
        method: Algorithm that produced the partition
    """
    labels: pd.Series
    wss: pd.Series
    twss: float
    k: int
    method: str

    @property
    def nodes(self) -> Tuple[str, ...]:
        return tuple(self.labels.index)

    def cluster_of(self, node: str) -> int:
        return int(self.labels[node])

    def members(self, cluster_id: int) -> Tuple[str, ...]:
        return tuple(self.labels.index[self.labels.to_numpy() == cluster_id])

    def sizes(self) -> pd.Series:
        return self.labels.value_counts().reindex(range(1, self.k + 1), fill_value=0)

    def to_frame(self) -> pd.DataFrame:
        """One row per node: node, cluster."""
        return pd.DataFrame({'node': list(self.labels.index), 'cluster': self.labels.to_numpy()})


@dataclass(frozen=True, eq=False)
class ScreeCurve:
    """
    TWSS per candidate k, for elbow-based selection of k.

    Attributes:
        table: DataFrame with columns k, twss (ascending k)
        method: Clustering algorithm used
    """
    table: pd.DataFrame
    method: str

    def elbow(self) -> int:
        """
        k at the elbow of the scree curve.

        Both axes are rescaled to [0, 1]; the elbow is the point farthest
        below the chord joining the first and last points. Ties go to the
        smaller k.
        """
        ks = self.table['k'].to_numpy(dtype=float)
        twss = self.table['twss'].to_numpy(dtype=float)
        if len(ks) < 3:
            return int(ks[0])
        k_span = ks[-1] - ks[0]
        w_span = twss.max() - twss.min()
        if k_span == 0 or w_span == 0:
            return int(ks[0])
        x = (ks - ks[0]) / k_span
        y = (twss - twss.min()) / w_span
        chord = y[0] + (y[-1] - y[0]) * x
        distance = chord - y
        return int(ks[int(np.argmax(distance))])


def node_profiles(adjacency: AdjacencyMatrix) -> np.ndarray:
    """Adjacency rows with unit self-weight (A + I)."""
    return np.asarray(adjacency.weights, dtype=float) + np.eye(adjacency.n_nodes)


def within_cluster_ss(profiles: np.ndarray, labels: np.ndarray, k: int) -> np.ndarray:
    """WSS for clusters 1..k."""
    wss = np.zeros(k, dtype=float)
    for cluster_id in range(1, k + 1):
        members = profiles[labels == cluster_id]
        if len(members) == 0:
            continue
        centroid = members.mean(axis=0)
        wss[cluster_id - 1] = float(((members - centroid) ** 2).sum())
    return wss


def _relabel_by_first_appearance(raw: np.ndarray) -> np.ndarray:
    mapping: Dict[int, int] = {}
    for value in raw:
        if value not in mapping:
            mapping[value] = len(mapping) + 1
    return np.array([mapping[v] for v in raw], dtype=int)


class ClusterEngine:
    """
    Partitions nodes into k clusters and reports scree curves.

    Attributes:
        method: 'ward' (nested, monotone TWSS) or 'kmeans'
        seed: Random seed (kmeans only)
        n_init: Number of k-means restarts (kmeans only)

    Examples:
        >>> engine = ClusterEngine(method='ward')
        >>> scree = engine.scree(adjacency, range(1, 8))
        >>> clusters = engine.fit(adjacency, k=scree.elbow())
    """

    def __init__(self, method: str = 'ward', seed: int = 0, n_init: int = 10):
        if method not in CLUSTER_METHODS:
            raise InvalidInput(
                f"unknown clustering method '{method}'",
                stage="clustering",
                context={"choices": list(CLUSTER_METHODS)},
            )
        self.method = method
        self.seed = seed
        self.n_init = n_init

    def _validate_k(self, k: int, n_nodes: int) -> None:
        if k < 1:
            raise InvalidInput("k must be >= 1", stage="clustering", context={"k": k})
        if k > n_nodes:
            raise DegenerateCluster(
                "more clusters requested than nodes available",
                stage="clustering",
                context={"k": k, "n_nodes": n_nodes},
            )

    def _raw_labels(self, profiles: np.ndarray, ks: Sequence[int]) -> List[np.ndarray]:
        n_nodes = profiles.shape[0]
        if self.method == 'ward':
            if n_nodes < 2:
                return [np.zeros(n_nodes, dtype=int) for _ in ks]
            tree = linkage(profiles, method='ward')
            # one k per call: multi-k cut_tree mislabels the k = n_nodes column
            return [cut_tree(tree, n_clusters=k)[:, 0] for k in ks]

        labels = []
        for k in ks:
            model = KMeans(n_clusters=k, random_state=self.seed, n_init=self.n_init)
            labels.append(model.fit_predict(profiles))
        return labels

    def _assignment(
        self, adjacency: AdjacencyMatrix, profiles: np.ndarray, raw: np.ndarray, k: int
    ) -> ClusterAssignment:
        labels = _relabel_by_first_appearance(raw)
        n_found = len(np.unique(labels))
        if n_found != k:
            raise DegenerateCluster(
                f"requested {k} clusters but only {n_found} are non-empty",
                stage="clustering",
                context={"k": k, "n_nodes": adjacency.n_nodes, "method": self.method},
            )
        wss = within_cluster_ss(profiles, labels, k)
        return ClusterAssignment(
            labels=pd.Series(labels, index=list(adjacency.nodes), name='cluster'),
            wss=pd.Series(wss, index=range(1, k + 1), name='wss'),
            twss=float(wss.sum()),
            k=k,
            method=self.method,
        )

    def fit(self, adjacency: AdjacencyMatrix, k: int) -> ClusterAssignment:
        """
        Partition the adjacency's nodes into exactly k clusters.

        Raises:
            InvalidInput: If k < 1
            DegenerateCluster: If k exceeds the node count or a cluster is empty
        """
        self._validate_k(k, adjacency.n_nodes)
        profiles = node_profiles(adjacency)
        raw = self._raw_labels(profiles, [k])[0]
        assignment = self._assignment(adjacency, profiles, raw, k)
        logger.info(
            f"Clustered {adjacency.n_nodes} nodes into k={k} ({self.method}), "
            f"TWSS={assignment.twss:.4f}, sizes={assignment.sizes().tolist()}"
        )
        return assignment

    def scree(self, adjacency: AdjacencyMatrix, k_range: Iterable[int]) -> ScreeCurve:
        """
        TWSS for every k in ``k_range``.

        Raises:
            InvalidInput: If k_range is empty or contains k < 1
            DegenerateCluster: If any requested k yields an empty cluster
        """
        ks = sorted(set(int(k) for k in k_range))
        if not ks:
            raise InvalidInput("k_range is empty", stage="clustering")
        for k in ks:
            self._validate_k(k, adjacency.n_nodes)

        profiles = node_profiles(adjacency)
        rows = []
        for k, raw in zip(ks, self._raw_labels(profiles, ks)):
            assignment = self._assignment(adjacency, profiles, raw, k)
            rows.append({'k': k, 'twss': assignment.twss})
            logger.debug(f"Scree k={k}: TWSS={assignment.twss:.4f}")

        return ScreeCurve(table=pd.DataFrame(rows, columns=['k', 'twss']), method=self.method)
