"""
Main CLI for the assetpipe tool.

Provides the three run modes: incremental build, forced rebuild and watch.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from assetpipe import __version__
from assetpipe.core.utils import log
from assetpipe.build.config import load_config
from assetpipe.build.errors import ManifestLoadError
from assetpipe.build.orchestrator import AssetOrchestrator


# =============================================================================
# Argument Parsing
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all subcommands."""

    parser = argparse.ArgumentParser(
        prog="assetpipe",
        description="Build LESS/CSS and TypeScript/JS assets declared in Assets.json manifests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  build       Incremental build (groups rebuild only when inputs are newer)
  rebuild     Full rebuild of every asset group
  watch       Rebuild asset groups whenever their watched files change

Manifests are read from Orchard.Web/{Core,Modules,Themes}/*/Assets.json
under the project root.

Examples:
  assetpipe build                # Build what changed
  assetpipe rebuild              # Regenerate everything
  assetpipe watch                # Keep rebuilding on save
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show per-file diagnostics and timings",
    )

    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path("."),
        help="Directory containing Orchard.Web (default: current directory)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an assetpipe.yaml with tool overrides",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    subparsers.add_parser("build", help="Incremental build")
    subparsers.add_parser("rebuild", help="Full rebuild")
    subparsers.add_parser("watch", help="Continuous watch")

    return parser


# =============================================================================
# Commands
# =============================================================================


def _orchestrator(args: argparse.Namespace) -> AssetOrchestrator:
    config = load_config(
        args.project_root.resolve(),
        config_path=args.config,
        verbose=args.verbose,
    )
    return AssetOrchestrator(config)


def cmd_build(args: argparse.Namespace) -> int:
    summary = _orchestrator(args).build()
    return 0 if summary.ok else 1


def cmd_rebuild(args: argparse.Namespace) -> int:
    summary = _orchestrator(args).rebuild()
    return 0 if summary.ok else 1


def cmd_watch(args: argparse.Namespace) -> int:
    return _orchestrator(args).watch()


COMMANDS = {
    "build": cmd_build,
    "rebuild": cmd_rebuild,
    "watch": cmd_watch,
}


# =============================================================================
# Main
# =============================================================================


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.no_color:
        log.set_color(False)
    log.set_verbose(args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        log.warning("Interrupted")
        return 130
    except ManifestLoadError as e:
        log.error(str(e))
        return 1
    except ValueError as e:
        # Invalid assetpipe.yaml
        log.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
