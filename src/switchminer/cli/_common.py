"""Arguments and setup shared by the sweep and mine subcommands."""

from __future__ import annotations

import argparse
import logging
import re
from pathlib import Path
from typing import Optional

from switchminer.cli._validators import (
    _n_jobs,
    _non_negative_float,
    _positive_float,
    _positive_int,
    _probability,
    _unit_interval,
)
from switchminer.cartography.clustering import CLUSTER_METHODS
from switchminer.network.correlation import CORRECTION_METHODS, CORRELATION_METHODS

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def add_input_arguments(parser: argparse.ArgumentParser) -> None:
    """Input/output and config file arguments."""
    parser.add_argument("--input", "-i", type=Path, default=None,
                        help="Expression table CSV/TSV (genes x samples)")
    parser.add_argument("--annotation", "-a", type=Path, default=None,
                        help="Sample annotation CSV/TSV (sample id + condition columns)")
    parser.add_argument("--gene-set", "-g", type=Path, default=None,
                        help="Gene set file (one id per line, or first column of a table)")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output directory")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="YAML/JSON config file (explicit CLI flags override it)")
    parser.add_argument("--condition-column", default="condition",
                        help="Annotation column holding condition labels (default: condition)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="DEBUG logging and progress bars")


def add_network_arguments(parser: argparse.ArgumentParser) -> None:
    """Correlation and threshold arguments."""
    parser.add_argument("--method", choices=list(CORRELATION_METHODS), default="spearman",
                        help="Correlation method (default: spearman)")
    parser.add_argument("--correction", choices=sorted(CORRECTION_METHODS), default="fdr_bh",
                        help="Multiple-testing correction (default: fdr_bh)")
    parser.add_argument("--n-jobs", type=_n_jobs, default=1,
                        help="Parallel workers, -1 for all cores (default: 1)")
    parser.add_argument("--rho-cutoff", type=_unit_interval, default=None,
                        help="Minimum |rho| to keep an edge (default: --quantile of |rho|)")
    parser.add_argument("--p-adj-cutoff", type=_unit_interval, default=0.05,
                        help="Maximum adjusted p-value to keep an edge (default: 0.05)")
    parser.add_argument("--quantile", type=_probability, default=0.9,
                        help="|rho| quantile used when --rho-cutoff is not given (default: 0.9)")


def add_clustering_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cluster-method", choices=list(CLUSTER_METHODS), default="ward",
                        help="Clustering algorithm (default: ward)")
    parser.add_argument("--k-max", type=_positive_int, default=10,
                        help="Largest k on the scree curve (default: 10)")
    parser.add_argument("--seed", type=int, default=0,
                        help="Random seed for kmeans (default: 0)")


def add_cartography_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--k", type=_positive_int, default=None,
                        help="Number of clusters (default: scree elbow)")
    parser.add_argument("--degree-cutoff", type=_non_negative_float, default=2,
                        help="Minimum intra-cluster degree of a hub (default: 2)")
    parser.add_argument("--apcc-cutoff", type=_unit_interval, default=0.1,
                        help="APCC above which a node is a connector (default: 0.1)")
    parser.add_argument("--attributes", type=Path, default=None,
                        help="Per-gene attribute table joined onto cartographies (e.g. fold changes)")


def add_sweep_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--sweep-min", type=_unit_interval, default=0.5,
                        help="Smallest |rho| cutoff of the sweep (default: 0.5)")
    parser.add_argument("--sweep-max", type=_unit_interval, default=0.95,
                        help="Largest |rho| cutoff of the sweep (default: 0.95)")
    parser.add_argument("--sweep-step", type=_positive_float, default=0.05,
                        help="Sweep step (default: 0.05)")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def apply_config_file(args: argparse.Namespace) -> Optional[argparse.Namespace]:
    """
    Merge the --config file into ``args``; None (after printing) on error.
    """
    if not args.config:
        return args

    from switchminer.cli.config import load_config, merge_config_with_args, validate_config

    print(f"Loading configuration from: {args.config}")
    try:
        config = load_config(args.config)
        validate_config(config)
        merged = merge_config_with_args(config, args, getattr(args, 'cli_args', None))
        print("  Configuration loaded successfully")
        return merged
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Config file error: {e}")
        return None


def safe_name(label: str) -> str:
    """Filesystem-safe directory name for a condition label."""
    return re.sub(r'[^A-Za-z0-9_.-]+', '_', label).strip('_') or "condition"


def banner(title: str) -> None:
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}\n")
