"""
Role cartography: map (degree_in_cluster, APCC) to a hub class.

The cartography crosses intra-cluster connectivity with inter-cluster
participation through two fixed cutoffs:

                        APCC <= apcc_cutoff    APCC > apcc_cutoff
    degree <  cutoff    PERIPHERAL             CONNECTOR
    degree >= cutoff    PROVINCIAL_HUB         CONNECTOR_HUB

A hub is a node with many partners inside its own cluster; a connector
reaches into the other clusters. Classes are ordered (IntEnum) from the most
locally confined to the most globally connected role.

Classification is a pure function of the two metrics and the two cutoffs.
Caller-supplied attributes (fold changes, annotations, ...) are joined onto
the cartography for reporting and never influence the label.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional
import logging
import warnings

import pandas as pd

from switchminer.core.errors import IncoherentCartography, InvalidInput
from switchminer.cartography.metrics import METRIC_COLUMNS, NodeMetrics

logger = logging.getLogger(__name__)

__all__ = [
    'HubClass',
    'Cartography',
    'CartographyClassifier',
    'classify_role',
]


class HubClass(IntEnum):
    """Topological role of a node, ordered from local to global."""
    PERIPHERAL = 1
    CONNECTOR = 2
    PROVINCIAL_HUB = 3
    CONNECTOR_HUB = 4


def classify_role(
    degree: float, apcc: float, degree_cutoff: float, apcc_cutoff: float
) -> HubClass:
    """
    Role of a single node.

    Args:
        degree: degree_in_cluster of the node
        apcc: APCC of the node
        degree_cutoff: Minimum intra-cluster degree of a hub
        apcc_cutoff: APCC above which a node is a connector

    Returns:
        HubClass
    """
    is_hub = degree >= degree_cutoff
    is_connector = apcc > apcc_cutoff
    if is_hub:
        return HubClass.CONNECTOR_HUB if is_connector else HubClass.PROVINCIAL_HUB
    return HubClass.CONNECTOR if is_connector else HubClass.PERIPHERAL


@dataclass(frozen=True, eq=False)
class Cartography:
    """
    Per-node role records for one network.

    Attributes:
        table: DataFrame indexed by node with cluster, node metrics,
            hub_class (HubClass name) and any caller attribute columns
        label: Free-text label (condition, threshold, ...)
        degree_cutoff: Degree cutoff used for classification
        apcc_cutoff: APCC cutoff used for classification
    """
    table: pd.DataFrame
    label: str
    degree_cutoff: float
    apcc_cutoff: float

    @property
    def nodes(self):
        return tuple(self.table.index)

    def __len__(self) -> int:
        return len(self.table)

    def __contains__(self, gene: object) -> bool:
        return gene in self.table.index

    def hub_class_of(self, gene: str) -> HubClass:
        return HubClass[self.table.at[gene, 'hub_class']]

    def class_counts(self) -> pd.Series:
        """Node count per hub class, in HubClass order."""
        counts = self.table['hub_class'].value_counts()
        return counts.reindex([c.name for c in HubClass], fill_value=0)

    def to_frame(self) -> pd.DataFrame:
        """One row per node, node id as the first column."""
        return self.table.reset_index()


class CartographyClassifier:
    """
    Assigns a HubClass to every node from its metrics.

    Attributes:
        degree_cutoff: Minimum degree_in_cluster of a hub (default 2)
        apcc_cutoff: APCC above which a node is a connector (default 0.1)

    Examples:
        >>> classifier = CartographyClassifier(degree_cutoff=3, apcc_cutoff=0.2)
        >>> cartography = classifier.classify(metrics, label='DCM')
        >>> cartography.class_counts()
    """

    def __init__(self, degree_cutoff: float = 2, apcc_cutoff: float = 0.1):
        if degree_cutoff < 0:
            raise InvalidInput(
                "degree_cutoff must be >= 0",
                stage="cartography",
                context={"degree_cutoff": degree_cutoff},
            )
        if not (0.0 <= apcc_cutoff <= 1.0):
            raise InvalidInput(
                "apcc_cutoff must lie in [0, 1]",
                stage="cartography",
                context={"apcc_cutoff": apcc_cutoff},
            )
        self.degree_cutoff = degree_cutoff
        self.apcc_cutoff = apcc_cutoff

    def classify(
        self,
        metrics: NodeMetrics,
        attributes: Optional[pd.DataFrame] = None,
        label: str = "",
    ) -> Cartography:
        """
        Build a cartography from node metrics.

        Args:
            metrics: Per-node metrics
            attributes: Optional DataFrame indexed by gene; joined for
                reporting only (genes without attributes get NaN)
            label: Cartography label

        Returns:
            Cartography

        Warns:
            IncoherentCartography: If every node lands in the same class
        """
        table = metrics.table.copy()
        table['hub_class'] = [
            classify_role(degree, apcc, self.degree_cutoff, self.apcc_cutoff).name
            for degree, apcc in zip(table['degree_in_cluster'], table['apcc'])
        ]

        if attributes is not None:
            reserved = set(METRIC_COLUMNS) | {'hub_class', 'node'}
            clashes = sorted(reserved & set(map(str, attributes.columns)))
            if clashes:
                raise InvalidInput(
                    "attribute columns clash with cartography columns",
                    stage="cartography",
                    context={"clashes": clashes},
                )
            attributes = attributes[~attributes.index.duplicated(keep='first')]
            table = table.join(attributes, how='left')

        distinct = table['hub_class'].unique()
        if len(distinct) == 1:
            message = (
                f"cartography '{label}': all {len(table)} nodes classified as {distinct[0]} "
                f"(degree_cutoff={self.degree_cutoff}, apcc_cutoff={self.apcc_cutoff})"
            )
            logger.warning(message)
            warnings.warn(message, IncoherentCartography, stacklevel=2)

        logger.info(
            f"Cartography '{label}': "
            + ", ".join(f"{name}={n}" for name, n in table['hub_class'].value_counts().sort_index().items())
        )

        return Cartography(
            table=table,
            label=label,
            degree_cutoff=self.degree_cutoff,
            apcc_cutoff=self.apcc_cutoff,
        )
