"""Argument parsing for rank-subdeps."""

import argparse
from typing import List, Optional

from subrank.__version__ import __version__
from subrank.app import Options
from subrank.constants import DEFAULT_SORT, DEFAULT_TOP, DEPENDENCY_CATEGORIES
from subrank.core.ranking import ORDERS, SORT_KEYS


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return number


def categories(value: str) -> List[str]:
    """Accepts `dev`, `dev,peer` and so on."""
    items = [v.strip().lower() for v in value.split(",") if v.strip()]
    for item in items:
        if item not in DEPENDENCY_CATEGORIES:
            raise argparse.ArgumentTypeError(
                f"invalid category {item!r} (choose from {', '.join(DEPENDENCY_CATEGORIES)})"
            )
    return items


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rank-subdeps",
        description="Rank top-level dependencies by unique transitive subdependencies, "
                    "approximate size, outdated and audited subdependencies.",
    )
    parser.add_argument("--json",
                        help="Output machine-readable JSON instead of a table",
                        action="store_true")
    parser.add_argument("--top",
                        help=f'Number of items in the "Top N" summary (default: {DEFAULT_TOP})',
                        type=positive_int, default=DEFAULT_TOP)
    parser.add_argument("--sort",
                        help=f"Sort key (default: {DEFAULT_SORT})",
                        choices=SORT_KEYS, default=DEFAULT_SORT)
    parser.add_argument("--order",
                        help="Sort direction (default: asc for name, desc otherwise)",
                        choices=ORDERS)
    parser.add_argument("--omit",
                        help="Dependency types to leave out of the tree (repeatable, comma separated)",
                        type=categories, action="append", default=[])
    parser.add_argument("--include",
                        help="Dependency types to keep even if omitted (repeatable, comma separated)",
                        type=categories, action="append", default=[])
    parser.add_argument("--metadata",
                        help="Where to look up latest publish dates: npm view, direct registry requests, or none (default: npm)",
                        choices=["npm", "registry", "none"], default="npm")
    parser.add_argument("--registry",
                        help="Registry URL for --metadata registry (default: npm config, then npm_config_registry)",
                        default=None)
    parser.add_argument("--timeout",
                        help="Timeout in seconds for each npm command and registry request",
                        type=float)
    parser.add_argument("--prefix",
                        help="Project directory (default: current directory)",
                        default=".")
    parser.add_argument("--loglevel",
                        help="Set the logging level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        default="WARNING")
    parser.add_argument("--logfile",
                        help="Log output file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def to_options(args: argparse.Namespace) -> Options:
    return Options(
        root=args.prefix,
        json=args.json,
        top=args.top,
        sort=args.sort,
        order=args.order,
        omit={c for group in args.omit for c in group},
        include={c for group in args.include for c in group},
        metadata=args.metadata,
        registry=args.registry,
        timeout=args.timeout,
    )
