"""
Switch detection: genes whose hub class differs between two cartographies.

The two cartographies are built independently (different conditions, or
the same condition at different thresholds) over the same gene set. Only
genes present in both can be compared; genes missing from either side are
excluded from the comparison and reported in the coverage diagnostic rather
than silently dropped.

Switches are reported sorted by gene id, so detect_switches(a, b) and
detect_switches(b, a) produce the same genes with from/to swapped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple
import logging

import pandas as pd

from switchminer.core.errors import CoverageGap
from switchminer.core.expression import GeneSet
from switchminer.cartography.classifier import Cartography, HubClass

logger = logging.getLogger(__name__)

__all__ = ['SWITCH_COLUMNS', 'Switch', 'SwitchReport', 'detect_switches']

SWITCH_COLUMNS = ['gene', 'from_class', 'to_class', 'from_cluster', 'to_cluster']


@dataclass(frozen=True)
class Switch:
    """A gene whose role changes from cartography A to cartography B."""
    gene: str
    from_class: HubClass
    to_class: HubClass
    from_cluster: int
    to_cluster: int

    def reversed(self) -> Switch:
        return Switch(
            gene=self.gene,
            from_class=self.to_class,
            to_class=self.from_class,
            from_cluster=self.to_cluster,
            to_cluster=self.from_cluster,
        )


@dataclass(frozen=True)
class SwitchReport:
    """
    Switch list plus coverage diagnostic.

    Attributes:
        switches: Switch records sorted by gene
        label_a, label_b: Labels of the compared cartographies
        compared: Number of genes present in both cartographies
        gene_set_size: Size of the gene universe the comparison refers to
        missing_from_a, missing_from_b: Universe genes absent from each side
    """
    switches: Tuple[Switch, ...]
    label_a: str
    label_b: str
    compared: int
    gene_set_size: int
    missing_from_a: Tuple[str, ...]
    missing_from_b: Tuple[str, ...]

    @property
    def coverage(self) -> float:
        """Fraction of the gene universe that could be compared."""
        return self.compared / self.gene_set_size if self.gene_set_size else 0.0

    def switch_genes(self) -> FrozenSet[str]:
        return frozenset(s.gene for s in self.switches)

    def to_frame(self) -> pd.DataFrame:
        """One row per switch, class names as strings."""
        return pd.DataFrame(
            [
                {
                    'gene': s.gene,
                    'from_class': s.from_class.name,
                    'to_class': s.to_class.name,
                    'from_cluster': s.from_cluster,
                    'to_cluster': s.to_cluster,
                }
                for s in self.switches
            ],
            columns=SWITCH_COLUMNS,
        )

    def coverage_summary(self) -> dict:
        return {
            'label_a': self.label_a,
            'label_b': self.label_b,
            'compared': self.compared,
            'gene_set_size': self.gene_set_size,
            'coverage': self.coverage,
            'n_switches': len(self.switches),
            'missing_from_a': list(self.missing_from_a),
            'missing_from_b': list(self.missing_from_b),
        }


def detect_switches(
    a: Cartography, b: Cartography, gene_set: Optional[GeneSet] = None
) -> SwitchReport:
    """
    Compare hub classes gene by gene between two cartographies.

    Args:
        a: Reference cartography ("from")
        b: Comparison cartography ("to")
        gene_set: Gene universe for the coverage diagnostic; defaults to the
            union of both cartographies' nodes

    Returns:
        SwitchReport

    Raises:
        CoverageGap: If the cartographies share no gene of the universe
    """
    if gene_set is not None:
        universe = list(gene_set.genes)
    else:
        universe = sorted(set(a.nodes) | set(b.nodes))

    in_a = set(a.nodes)
    in_b = set(b.nodes)
    common = sorted(g for g in universe if g in in_a and g in in_b)
    missing_from_a = tuple(sorted(g for g in universe if g not in in_a))
    missing_from_b = tuple(sorted(g for g in universe if g not in in_b))

    if not common:
        raise CoverageGap(
            "cartographies share no gene to compare",
            stage="switches",
            context={
                'label_a': a.label,
                'label_b': b.label,
                'n_nodes_a': len(a),
                'n_nodes_b': len(b),
                'gene_set_size': len(universe),
            },
        )

    if len(common) < len(universe):
        logger.warning(
            f"Switch comparison '{a.label}' vs '{b.label}' covers {len(common)}/{len(universe)} genes "
            f"({len(missing_from_a)} missing from '{a.label}', {len(missing_from_b)} missing from '{b.label}')"
        )

    switches = []
    for gene in common:
        from_class = a.hub_class_of(gene)
        to_class = b.hub_class_of(gene)
        if from_class != to_class:
            switches.append(Switch(
                gene=gene,
                from_class=from_class,
                to_class=to_class,
                from_cluster=int(a.table.at[gene, 'cluster']),
                to_cluster=int(b.table.at[gene, 'cluster']),
            ))

    logger.info(f"Switches '{a.label}' -> '{b.label}': {len(switches)} of {len(common)} compared genes")

    return SwitchReport(
        switches=tuple(switches),
        label_a=a.label,
        label_b=b.label,
        compared=len(common),
        gene_set_size=len(universe),
        missing_from_a=missing_from_a,
        missing_from_b=missing_from_b,
    )
