"""
Cluster-based role cartography and switch detection.

    ClusterEngine          -> ClusterAssignment / ScreeCurve
    compute_node_metrics   -> NodeMetrics (degree_in_cluster, APCC)
    CartographyClassifier  -> Cartography (HubClass per node)
    detect_switches        -> SwitchReport (role changes + coverage)
"""

from switchminer.cartography.clustering import (
    CLUSTER_METHODS,
    ClusterAssignment,
    ClusterEngine,
    ScreeCurve,
)
from switchminer.cartography.metrics import (
    APCC_RANGE,
    NodeMetrics,
    compute_node_metrics,
)
from switchminer.cartography.classifier import (
    Cartography,
    CartographyClassifier,
    HubClass,
    classify_role,
)
from switchminer.cartography.switches import (
    Switch,
    SwitchReport,
    detect_switches,
)

__all__ = [
    'CLUSTER_METHODS',
    'ClusterAssignment',
    'ClusterEngine',
    'ScreeCurve',
    'APCC_RANGE',
    'NodeMetrics',
    'compute_node_metrics',
    'Cartography',
    'CartographyClassifier',
    'HubClass',
    'classify_role',
    'Switch',
    'SwitchReport',
    'detect_switches',
]
