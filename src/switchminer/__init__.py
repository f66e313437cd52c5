"""
SwitchMiner - Regulatory switch gene discovery from co-expression cartography

Builds one gene co-expression network per condition, clusters it, assigns
every gene a topological role from its intra-cluster degree and its
inter-cluster participation (APCC), and reports the genes whose role
changes between conditions.
"""

__version__ = "0.1.0"

from switchminer.core.expression import ExpressionMatrix, GeneSet
from switchminer.core.errors import (
    SwitchMinerError,
    InvalidInput,
    EmptyNetwork,
    DegenerateCluster,
    CoverageGap,
    IncoherentCartography,
)

__all__ = [
    "ExpressionMatrix",
    "GeneSet",
    "SwitchMinerError",
    "InvalidInput",
    "EmptyNetwork",
    "DegenerateCluster",
    "CoverageGap",
    "IncoherentCartography",
]
