"""Clarisse command-line interface.

Usage::

    clarisse -c iterations.ctl [-t THREADS] [--template FILE] DIR...

Exit codes:
    0: every directory ran all of its iterations (or the preview was printed).
    1: at least one directory failed.
    2: the control file, settings or directories were rejected; nothing ran.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .batch import prepare_points, run_points, write_run_summary
from .config import RunConfig, load_run_config
from .control.parser import parse_control_file
from .errors import ClarisseError
from .execution.scheduler import distribute_workload
from .preview import render_preview

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_SETUP_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the Clarisse CLI."""
    parser = argparse.ArgumentParser(
        prog="clarisse",
        description="Run codeml iteratively over a number of directories.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--control",
        type=Path,
        required=True,
        help="Control file defining the iterations to run in every directory",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="YAML or JSON settings file (command-line flags take precedence)",
    )
    parser.add_argument(
        "--template",
        type=Path,
        default=None,
        help="File whose contents are appended to every generated control file",
    )
    parser.add_argument("-t", "--threads", type=int, default=None, help="Number of worker threads")
    parser.add_argument(
        "--min-duration",
        type=float,
        default=None,
        dest="min_duration_sec",
        help="Runs faster than this many seconds are reported as failures (0 disables)",
    )
    parser.add_argument("--program", default=None, help="Program to execute (default: codeml)")
    parser.add_argument(
        "-p",
        "--preview",
        action="store_true",
        help="Parse and resolve everything, print what would run, and exit",
    )
    parser.add_argument("--summary", type=Path, default=None, help="Write a JSON run summary to this file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Show start events; repeat for debug logging",
    )
    parser.add_argument("directories", nargs="+", type=Path, metavar="DIR")
    return parser


def _load_config(args: argparse.Namespace) -> RunConfig:
    config = load_run_config(args.settings)
    return config.with_overrides(
        threads=args.threads,
        min_duration_sec=args.min_duration_sec,
        program=args.program,
        template=args.template,
        verbose=True if args.verbose else None,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the Clarisse CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv).

    Returns:
        Exit code (see module docstring).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.WARNING
    if args.verbose >= 1:
        log_level = logging.INFO
    if args.verbose >= 2:
        log_level = logging.DEBUG
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    try:
        config = _load_config(args)
        template = config.read_template()
        iterations = parse_control_file(args.control)
        points = prepare_points(iterations, args.directories, config)
    except (ClarisseError, FileNotFoundError) as e:
        logger.error("Error: %s", e)
        return EXIT_SETUP_ERROR

    if args.preview:
        queues = distribute_workload(points, config.threads)
        sys.stdout.write(render_preview(points, queues, template=template, program=config.program))
        return EXIT_OK

    summary = run_points(points, config, template=template)
    if args.summary is not None:
        write_run_summary(summary, args.summary)
    return EXIT_OK if summary.all_passed else EXIT_FAILURES
