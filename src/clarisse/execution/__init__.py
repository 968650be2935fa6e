"""Execution engine: execution points, scheduling and iteration runs."""

from .artifacts import DEFAULT_ARTIFACTS_DIRNAME, FormatWidth, render_control_file
from .extraction import EXTRACTION_RULES, extract_value
from .failures import FAILURE_PATTERNS, FailureLog, FailureRecord, scan_for_failures
from .point import ExecutionPoint, build_execution_point, build_execution_points
from .program import DEFAULT_PROGRAM, ProgramResult, ProgramRunner
from .runner import (
    DEFAULT_MIN_DURATION_SEC,
    IterationOutcome,
    IterationReporter,
    IterationRunner,
    IterationStatus,
    classify,
)
from .scheduler import distribute_workload, run_queues

__all__ = [
    "DEFAULT_ARTIFACTS_DIRNAME",
    "DEFAULT_MIN_DURATION_SEC",
    "DEFAULT_PROGRAM",
    "EXTRACTION_RULES",
    "FAILURE_PATTERNS",
    "ExecutionPoint",
    "FailureLog",
    "FailureRecord",
    "FormatWidth",
    "IterationOutcome",
    "IterationReporter",
    "IterationRunner",
    "IterationStatus",
    "ProgramResult",
    "ProgramRunner",
    "build_execution_point",
    "build_execution_points",
    "classify",
    "distribute_workload",
    "extract_value",
    "render_control_file",
    "run_queues",
    "scan_for_failures",
]
