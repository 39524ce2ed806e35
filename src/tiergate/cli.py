#!/usr/bin/env python3
"""
tiergate - Tier & Spec Conformance Checker command-line interface.

Checks React/TypeScript components against their *.spec.md files and the
seven-tier import convention (a component may only import from its own
tier or lower).

Usage:
    check-specs                              # Check every component in the repo
    check-specs src/components/user          # Check one directory
    check-specs --tier 2 --format json       # Tier-2 components, JSON report
    check-specs --severity all               # Fail on any violation

    tiergate check [paths...]                # Same as check-specs
    tiergate tiers                           # Show the tier convention
    tiergate classify src/UserCard.tsx       # Show how each import is classified
    tiergate scaffold src/UserCard.tsx       # Print a spec generated from code
    tiergate init                            # Create .tiergate/config.yaml

Exit codes:
    0  no blocking violations
    1  blocking violations
    2  nothing could be analysed, or invalid arguments/config
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tiergate.analysis.tier_table import MAX_TIER, MIN_TIER
from tiergate.commands.check import CheckCommand
from tiergate.commands.initializer import ProjectInitializer
from tiergate.commands.scaffold import ScaffoldCommand
from tiergate.engine.report import SEVERITY_MODES
from tiergate.utils.repo import find_repo_root

TIER_CHOICES = range(MIN_TIER, MAX_TIER + 1)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo",
        type=str,
        help="Repository root (default: auto-detect from .tiergate/)",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Config file (default: <repo>/.tiergate/config.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging on stderr",
    )


def _add_check_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "paths",
        nargs="*",
        help="Component directories or *.spec.md files (default: every spec in the repo)",
    )
    parser.add_argument(
        "--tier",
        type=int,
        choices=TIER_CHOICES,
        metavar="N",
        help="Only check components whose spec declares tier N (0-6)",
    )
    parser.add_argument(
        "--severity",
        choices=SEVERITY_MODES,
        help="hard: fail only on hard violations (default); all: fail on any violation",
    )
    parser.add_argument(
        "--format",
        choices=["table", "json"],
        help="Report format (default: table)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Worker threads (default: one per CPU)",
    )
    _add_common_options(parser)


def _command_args(args):
    repo_path = Path(args.repo) if args.repo else None
    config_path = Path(args.config) if args.config else None
    return repo_path, config_path


def _run_check(args) -> int:
    repo_path, config_path = _command_args(args)
    cmd = CheckCommand(repo_root=repo_path, config_path=config_path)
    return cmd.check(
        paths=[Path(p) for p in args.paths] or None,
        tier=args.tier,
        severity=args.severity,
        format=args.format,
        workers=args.workers,
    )


def check_specs(argv: Optional[List[str]] = None) -> int:
    """`check-specs` entry point."""
    parser = argparse.ArgumentParser(
        prog="check-specs",
        description="Check components against their specs and the tier import convention",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                Check every component
  %(prog)s src/components/forms           Check one directory
  %(prog)s --tier 5                       Only tier-5 components
  %(prog)s --severity all --format json   CI mode, machine-readable
        """,
    )
    _add_check_options(parser)
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return _run_check(args)


def main(argv: Optional[List[str]] = None) -> int:
    """`tiergate` entry point."""
    parser = argparse.ArgumentParser(
        prog="tiergate",
        description="tiergate - Tier & Spec Conformance Checker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init                           Create .tiergate/config.yaml
  %(prog)s check                          Check every component
  %(prog)s check --tier 2                 Only tier-2 components
  %(prog)s tiers                          Show the tier convention
  %(prog)s classify src/UserCard.tsx      Show import classification
  %(prog)s scaffold src/UserCard.tsx --write
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ----- tiergate check -----
    check_parser = subparsers.add_parser("check", help="Check components (same as check-specs)")
    _add_check_options(check_parser)

    # ----- tiergate tiers -----
    tiers_parser = subparsers.add_parser("tiers", help="Show the tier convention in use")
    tiers_parser.add_argument("--format", choices=["table", "json"], default="table")
    _add_common_options(tiers_parser)

    # ----- tiergate classify <file> -----
    classify_parser = subparsers.add_parser("classify", help="Classify the imports of a source file")
    classify_parser.add_argument("file", type=str, help="Component source file")
    classify_parser.add_argument("--format", choices=["table", "json"], default="table")
    _add_common_options(classify_parser)

    # ----- tiergate scaffold <file> -----
    scaffold_parser = subparsers.add_parser("scaffold", help="Generate a spec from component source")
    scaffold_parser.add_argument("file", type=str, help="Component source file")
    scaffold_parser.add_argument(
        "--tier", type=int, choices=TIER_CHOICES, metavar="N",
        help="Tier to declare (default: inferred from imports)",
    )
    scaffold_parser.add_argument("--write", action="store_true", help="Write <name>.spec.md next to the source")
    scaffold_parser.add_argument("--force", "-f", action="store_true", help="Overwrite an existing spec")
    _add_common_options(scaffold_parser)

    # ----- tiergate init -----
    init_parser = subparsers.add_parser("init", help="Initialize .tiergate/ in this repository")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing files")
    init_parser.add_argument(
        "--with-tiers", action="store_true",
        help="Copy the tier convention into .tiergate/tiers.yaml for editing",
    )
    init_parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args.verbose)

    if args.command == "check":
        return _run_check(args)

    elif args.command == "init":
        initializer = ProjectInitializer()
        return initializer.init(force=args.force, with_tiers=args.with_tiers)

    repo_path, config_path = _command_args(args)

    if args.command == "tiers":
        return CheckCommand(repo_root=repo_path, config_path=config_path).tiers(format=args.format)

    elif args.command == "classify":
        cmd = CheckCommand(repo_root=repo_path, config_path=config_path)
        return cmd.classify(Path(args.file), format=args.format)

    elif args.command == "scaffold":
        file = Path(args.file)
        cmd = ScaffoldCommand(
            repo_root=repo_path or find_repo_root(file.resolve().parent),
            config_path=config_path,
        )
        return cmd.scaffold(file, tier=args.tier, write=args.write, force=args.force)

    parser.print_help()
    return 0


def cli() -> int:
    """`tiergate` console script."""
    return main()


def check_specs_cli() -> int:
    """`check-specs` console script."""
    return check_specs()


if __name__ == "__main__":
    sys.exit(cli())
