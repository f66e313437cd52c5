"""
Pipeline configuration schema.

Dataclass sections mirror the CLI argument groups; ``PipelineConfig.from_dict``
validates a nested mapping (e.g. a parsed YAML/JSON file) before building it.
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from switchminer.cartography.clustering import CLUSTER_METHODS
from switchminer.core.errors import InvalidInput
from switchminer.network.correlation import CORRECTION_METHODS, CORRELATION_METHODS


@dataclass
class CorrelationConfig:
    """Pairwise correlation configuration."""
    method: str = "spearman"
    correction: str = "fdr_bh"
    n_jobs: int = 1
    chunk_size: int = 256


@dataclass
class ThresholdConfig:
    """Edge threshold configuration. rho_cutoff=None derives it from the quantile."""
    rho_cutoff: Optional[float] = None
    p_adj_cutoff: float = 0.05
    quantile: float = 0.9
    sweep_min: float = 0.5
    sweep_max: float = 0.95
    sweep_step: float = 0.05


@dataclass
class ClusteringConfig:
    """Clustering configuration. k=None selects k at the scree elbow."""
    method: str = "ward"
    k: Optional[int] = None
    k_max: int = 10
    seed: int = 0
    n_init: int = 10


@dataclass
class CartographyConfig:
    """Role cutoffs."""
    degree_cutoff: float = 2
    apcc_cutoff: float = 0.1


@dataclass
class ConditionConfig:
    """Sample annotation column and the two conditions to compare."""
    column: str = "condition"
    condition_a: Optional[str] = None
    condition_b: Optional[str] = None


SECTION_TYPES = {
    'correlation': CorrelationConfig,
    'threshold': ThresholdConfig,
    'clustering': ClusteringConfig,
    'cartography': CartographyConfig,
    'conditions': ConditionConfig,
}
PATH_KEYS = ('input', 'annotation', 'gene_set', 'output')


@dataclass
class PipelineConfig:
    """
    Complete configuration schema for a switch-mining run.

    Mirrors the CLI argument structure for consistency.
    """
    input: Optional[Path] = None
    annotation: Optional[Path] = None
    gene_set: Optional[Path] = None
    output: Optional[Path] = None
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    threshold: ThresholdConfig = field(default_factory=ThresholdConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    cartography: CartographyConfig = field(default_factory=CartographyConfig)
    conditions: ConditionConfig = field(default_factory=ConditionConfig)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "PipelineConfig":
        """
        Build and validate a PipelineConfig from a nested dictionary.

        Raises:
            InvalidInput: On unknown sections/keys or invalid values
        """
        validate_config(config)
        kwargs: Dict[str, Any] = {}
        for key, value in config.items():
            if key in SECTION_TYPES:
                kwargs[key] = SECTION_TYPES[key](**(value or {}))
            elif value is not None:
                kwargs[key] = Path(value)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable dictionary (paths as strings)."""
        result = asdict(self)
        for key in PATH_KEYS:
            if result[key] is not None:
                result[key] = str(result[key])
        return result


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Parameters:
        config: Configuration dictionary

    Raises:
        InvalidInput: If configuration is invalid
    """
    for key, value in config.items():
        if key in PATH_KEYS:
            continue
        if key not in SECTION_TYPES:
            raise InvalidInput(f"Unknown config section '{key}'", stage="config")
        if value is None:
            continue
        if not isinstance(value, dict):
            raise InvalidInput(f"Config section '{key}' must be a mapping", stage="config")
        allowed = {f.name for f in fields(SECTION_TYPES[key])}
        unknown = sorted(set(value) - allowed)
        if unknown:
            raise InvalidInput(
                f"Unknown key(s) in config section '{key}'",
                stage="config",
                context={"unknown": unknown, "allowed": sorted(allowed)},
            )

    def get(section: str, key: str) -> Any:
        return (config.get(section) or {}).get(key)

    method = get('correlation', 'method')
    if method is not None and method not in CORRELATION_METHODS:
        raise InvalidInput(
            f"Invalid correlation method '{method}'. Choose from: {', '.join(CORRELATION_METHODS)}",
            stage="config",
        )

    correction = get('correlation', 'correction')
    if correction is not None and correction not in CORRECTION_METHODS:
        raise InvalidInput(
            f"Invalid correction '{correction}'. Choose from: {', '.join(CORRECTION_METHODS)}",
            stage="config",
        )

    cluster_method = get('clustering', 'method')
    if cluster_method is not None and cluster_method not in CLUSTER_METHODS:
        raise InvalidInput(
            f"Invalid clustering method '{cluster_method}'. Choose from: {', '.join(CLUSTER_METHODS)}",
            stage="config",
        )

    for section, key in (('threshold', 'rho_cutoff'), ('threshold', 'p_adj_cutoff'),
                         ('threshold', 'sweep_min'), ('threshold', 'sweep_max'),
                         ('cartography', 'apcc_cutoff')):
        value = get(section, key)
        if value is not None and (not isinstance(value, (int, float)) or not 0 <= value <= 1):
            raise InvalidInput(
                f"{section}.{key} must be a number in [0, 1], got: {value}", stage="config"
            )

    quantile = get('threshold', 'quantile')
    if quantile is not None and (not isinstance(quantile, (int, float)) or not 0 < quantile < 1):
        raise InvalidInput(f"threshold.quantile must lie in (0, 1), got: {quantile}", stage="config")

    step = get('threshold', 'sweep_step')
    if step is not None and (not isinstance(step, (int, float)) or step <= 0):
        raise InvalidInput(f"threshold.sweep_step must be positive, got: {step}", stage="config")

    for key in ('k', 'k_max'):
        value = get('clustering', key)
        if value is not None and (not isinstance(value, int) or value < 1):
            raise InvalidInput(f"clustering.{key} must be a positive integer, got: {value}", stage="config")

    degree_cutoff = get('cartography', 'degree_cutoff')
    if degree_cutoff is not None and (not isinstance(degree_cutoff, (int, float)) or degree_cutoff < 0):
        raise InvalidInput(
            f"cartography.degree_cutoff must be >= 0, got: {degree_cutoff}", stage="config"
        )
