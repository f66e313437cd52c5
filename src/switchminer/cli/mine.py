"""
SwitchMiner mine command - two-condition cartography and switch detection.

Builds one co-expression network per condition over the same gene set,
clusters each, classifies every gene's role, and reports the genes whose
role differs between the conditions.

Usage:
    switchminer mine --input expr.csv --annotation samples.csv --gene-set de_genes.txt \\
        --condition-a NF --condition-b DCM --output results/switches

Output layout:
    <output>/<condition>/edges.csv        complete edge list
    <output>/<condition>/network.csv      edges surviving the threshold
    <output>/<condition>/clusters.csv
    <output>/<condition>/cartography.csv
    <output>/<condition>/scree.csv        only when k was chosen at the elbow
    <output>/switches.csv
    <output>/coverage.json
    <output>/config.json
"""

import argparse
from datetime import datetime
from pathlib import Path

from switchminer.cli._common import (
    add_cartography_arguments,
    add_clustering_arguments,
    add_input_arguments,
    add_network_arguments,
    apply_config_file,
    banner,
    safe_name,
    setup_logging,
)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the mine subcommand."""
    parser = subparsers.add_parser(
        "mine",
        help="Two-condition cartography and switch-gene detection",
        description=(
            "Build a co-expression network per condition, cluster it, assign "
            "hub classes from intra-cluster degree and APCC, and report the "
            "genes whose class changes between the two conditions."
        )
    )
    add_input_arguments(parser)
    parser.add_argument("--condition-a", default=None,
                        help="Reference condition label (default: first of exactly two)")
    parser.add_argument("--condition-b", default=None,
                        help="Comparison condition label (default: second of exactly two)")
    add_network_arguments(parser)
    add_clustering_arguments(parser)
    add_cartography_arguments(parser)

    parser.set_defaults(func=run_mine)


def run_mine(args: argparse.Namespace) -> int:
    """Execute the mine command."""
    import logging

    import pandas as pd

    from switchminer.cli.config import config_from_args
    from switchminer.core.errors import SwitchMinerError
    from switchminer.io.loaders import load_expression, load_gene_set
    from switchminer.io.writers import (
        write_cartography,
        write_clusters,
        write_edges,
        write_run_config,
        write_scree,
        write_switches,
    )
    from switchminer.pipeline import run_switch_analysis
    from switchminer.utils.fileio import atomic_write_json

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    args = apply_config_file(args)
    if args is None:
        return 1

    for name in ('input', 'annotation', 'gene_set', 'output'):
        if getattr(args, name) is None:
            print(f"ERROR: --{name.replace('_', '-')} is required (via CLI or config file)")
            return 1

    start_time = datetime.now()
    banner("Switch Gene Mining")
    print(f"Started: {start_time.strftime('%Y-%m-%d %H:%M:%S')}\n")

    try:
        config = config_from_args(args)
        matrix = load_expression(args.input, annotation=args.annotation)
        gene_set = load_gene_set(args.gene_set)
        attributes = None
        if args.attributes is not None:
            attributes = pd.read_csv(args.attributes, index_col=0)
            attributes.index = attributes.index.astype(str)
            logger.info(f"Loaded {attributes.shape[1]} attribute column(s) for {len(attributes)} genes")

        logger.info(f"Matrix: {matrix.n_features} genes x {matrix.n_samples} samples")
        analysis = run_switch_analysis(matrix, gene_set, config, attributes=attributes, verbose=args.verbose)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        return 1
    except SwitchMinerError as e:
        print(f"ERROR: {type(e).__name__}: {e}")
        return 1

    output: Path = args.output
    output.mkdir(parents=True, exist_ok=True)

    for result in (analysis.condition_a, analysis.condition_b):
        condition_dir = output / safe_name(result.label)
        write_edges(result.edge_list, condition_dir / "edges.csv")
        write_edges(result.network, condition_dir / "network.csv")
        write_clusters(result.clusters, condition_dir / "clusters.csv")
        write_cartography(result.cartography, condition_dir / "cartography.csv")
        if result.scree is not None:
            write_scree(result.scree, condition_dir / "scree.csv")

    write_switches(analysis.report, output / "switches.csv")
    atomic_write_json(output / "coverage.json", analysis.report.coverage_summary())
    write_run_config(output / "config.json", config.to_dict(), summary=analysis.summary())

    banner("Summary")
    for result in (analysis.condition_a, analysis.condition_b):
        counts = ", ".join(f"{name}={n}" for name, n in result.cartography.class_counts().items())
        print(
            f"  {result.label}: {result.network.n_nodes} nodes, {result.network.n_edges} edges, "
            f"k={result.clusters.k} | {counts}"
        )
    report = analysis.report
    print(
        f"\n  Switches {report.label_a} -> {report.label_b}: {len(report.switches)} "
        f"(compared {report.compared}/{report.gene_set_size} genes)"
    )
    elapsed = (datetime.now() - start_time).total_seconds()
    print(f"\n  Results written to: {output}  ({elapsed:.1f}s)")
    return 0

