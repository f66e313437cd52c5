"""
SwitchMiner CLI - Command-line interface for regulatory switch gene discovery.

Commands:
    switchminer sweep  - Threshold sweep and scree curve for one condition
    switchminer mine   - Two-condition cartography and switch detection
"""

import argparse
import sys
from typing import Optional, List


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for switchminer."""
    from switchminer import __version__

    parser = argparse.ArgumentParser(
        prog="switchminer",
        description="Regulatory switch gene discovery from co-expression cartography",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  sweep   Threshold sweep and scree curve for one condition
  mine    Two-condition cartography and switch-gene detection

Examples:
  switchminer sweep --input expr.csv --annotation samples.csv --gene-set de.txt --condition DCM -o results/sweep
  switchminer mine --input expr.csv --annotation samples.csv --gene-set de.txt --rho-cutoff 0.8 -o results/mine
  switchminer mine --config switchminer.yaml --k 4
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from switchminer.cli import mine, sweep
    sweep.register_parser(subparsers)
    mine.register_parser(subparsers)

    raw_args = list(args) if args is not None else sys.argv[1:]
    parsed_args = parser.parse_args(raw_args)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # Explicit flags, for config-file merging
    parsed_args.cli_args = raw_args[1:]

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
