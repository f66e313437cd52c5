"""
SwitchMiner sweep command - threshold and k diagnostics for one condition.

Correlates the gene set once, then reports network integrity over a range
of |rho| cutoffs and the scree curve at the configured (or default
quantile) threshold. Use it to choose --rho-cutoff and --k before mining.

Usage:
    switchminer sweep --input expr.csv --annotation samples.csv --gene-set de_genes.txt \\
        --condition DCM --sweep-min 0.5 --sweep-max 0.95 --output results/sweep_dcm
"""

import argparse

from switchminer.cli._common import (
    add_clustering_arguments,
    add_input_arguments,
    add_network_arguments,
    add_sweep_arguments,
    apply_config_file,
    banner,
    setup_logging,
)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the sweep subcommand."""
    parser = subparsers.add_parser(
        "sweep",
        help="Threshold sweep and scree curve for one condition",
        description=(
            "Report surviving nodes, edges, components and giant-component "
            "fraction for each |rho| cutoff, plus TWSS per k, to guide the "
            "choice of threshold and cluster count."
        )
    )
    add_input_arguments(parser)
    parser.add_argument("--condition", default=None,
                        help="Restrict to samples with this condition label (default: all samples)")
    add_network_arguments(parser)
    add_sweep_arguments(parser)
    add_clustering_arguments(parser)

    parser.set_defaults(func=run_sweep)


def run_sweep(args: argparse.Namespace) -> int:
    """Execute the sweep command."""
    import logging

    from switchminer.cli.config import config_from_args
    from switchminer.core.errors import SwitchMinerError
    from switchminer.io.loaders import load_expression, load_gene_set
    from switchminer.io.writers import write_run_config, write_scree, write_sweep
    from switchminer.pipeline import sweep_condition

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    args = apply_config_file(args)
    if args is None:
        return 1

    for name in ('input', 'gene_set', 'output'):
        if getattr(args, name) is None:
            print(f"ERROR: --{name.replace('_', '-')} is required (via CLI or config file)")
            return 1
    if args.condition is not None and args.annotation is None:
        print("ERROR: --condition requires --annotation")
        return 1

    banner("Threshold Sweep")

    try:
        config = config_from_args(args)
        matrix = load_expression(args.input, annotation=args.annotation)
        gene_set = load_gene_set(args.gene_set)

        samples = None
        if args.condition is not None:
            subset = matrix.select_condition(config.conditions.column, args.condition)
            samples = list(subset.sample_ids)
            logger.info(f"Condition '{args.condition}': {len(samples)} samples")

        edge_list, sweep, scree = sweep_condition(
            matrix, gene_set, config, samples=samples, verbose=args.verbose
        )
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        return 1
    except SwitchMinerError as e:
        print(f"ERROR: {type(e).__name__}: {e}")
        return 1

    args.output.mkdir(parents=True, exist_ok=True)
    write_sweep(sweep, args.output / "sweep.csv")
    if scree is not None:
        write_scree(scree, args.output / "scree.csv")
    summary = {'edge_list': edge_list.summary(), 'condition': args.condition}
    if scree is not None:
        summary['scree_elbow'] = scree.elbow()
    write_run_config(args.output / "config.json", config.to_dict(), summary=summary)

    banner("Network integrity by |rho| cutoff")
    print(sweep[['rho_cutoff', 'n_nodes', 'n_edges', 'n_components',
                 'giant_component_fraction']].to_string(index=False))
    if scree is not None:
        print(f"\n  Scree elbow: k={scree.elbow()} ({scree.method})")
    print(f"\n  Results written to: {args.output}")
    return 0
