"""
Core data structures and error kinds for the switch-mining pipeline.

1. ExpressionMatrix: genes x samples snapshot with sample annotation
2. GeneSet: ordered gene selection; its order is the canonical node order
3. Error kinds: InvalidInput, EmptyNetwork, DegenerateCluster, CoverageGap,
   plus the IncoherentCartography warning

Design Philosophy:
    - Immutability: all operations return new instances
    - Every error names the pipeline stage that raised it
"""

from switchminer.core.errors import (
    SwitchMinerError,
    InvalidInput,
    EmptyNetwork,
    DegenerateCluster,
    CoverageGap,
    IncoherentCartography,
)
from switchminer.core.expression import ExpressionMatrix, GeneSet

__all__ = [
    'ExpressionMatrix',
    'GeneSet',
    'SwitchMinerError',
    'InvalidInput',
    'EmptyNetwork',
    'DegenerateCluster',
    'CoverageGap',
    'IncoherentCartography',
]
