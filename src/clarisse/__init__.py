"""Clarisse: iterative codeml runs over many directories.

Clarisse reads a control file describing a numbered sequence of codeml runs
("iterations"), binds it to every target directory, and runs each directory's
iterations in order while spreading directories over worker threads. Later
iterations can take option values from the results of earlier ones.

Public API
----------
- :func:`parse_control_file` - Parse and validate a control file
- :func:`build_execution_points` - Bind the iterations to target directories
- :func:`run_batch` - Build, run and report a whole batch

Example
-------
>>> from clarisse import parse_control_file, run_batch
>>> iterations = parse_control_file(Path("iterations.ctl"))
>>> summary = run_batch(iterations, [Path("alignment_1"), Path("alignment_2")])
>>> summary.all_passed
True
"""

from __future__ import annotations

__version__ = "2.1.0"

from clarisse.batch import RunSummary, prepare_points, run_batch, run_points, write_run_summary
from clarisse.config import RunConfig, load_run_config
from clarisse.control import Extraction, Iteration, Option, parse_control_file, parse_control_text
from clarisse.errors import (
    ClarisseError,
    ControlFileError,
    FailureSource,
    IterationFailure,
    PathResolutionError,
    RunConfigError,
    SetupError,
)
from clarisse.execution import (
    ExecutionPoint,
    FailureRecord,
    IterationRunner,
    ProgramRunner,
    build_execution_point,
    build_execution_points,
    distribute_workload,
)

__all__ = [
    "__version__",
    # Control file
    "Extraction",
    "Iteration",
    "Option",
    "parse_control_file",
    "parse_control_text",
    # Execution
    "ExecutionPoint",
    "FailureRecord",
    "IterationRunner",
    "ProgramRunner",
    "build_execution_point",
    "build_execution_points",
    "distribute_workload",
    # Batch
    "RunConfig",
    "RunSummary",
    "load_run_config",
    "prepare_points",
    "run_batch",
    "run_points",
    "write_run_summary",
    # Errors
    "ClarisseError",
    "ControlFileError",
    "FailureSource",
    "IterationFailure",
    "PathResolutionError",
    "RunConfigError",
    "SetupError",
]
