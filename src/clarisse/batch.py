"""Batch orchestration: build execution points, run them, summarize.

Setup happens once, in the calling thread: every execution point is built
before any program runs, so a bad glob or an unusable directory stops the
whole batch. Execution then fans out over the worker threads and rejoins
before the failure report is printed.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO

from .config import RunConfig
from .control.model import Iteration
from .execution.artifacts import FormatWidth
from .execution.failures import FailureLog, FailureRecord
from .execution.point import ExecutionPoint, build_execution_points
from .execution.program import ProgramInvoker, ProgramRunner
from .execution.runner import IterationRunner
from .execution.scheduler import distribute_workload, run_queues
from .report import Reporter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunSummary:
    """Aggregated result of a batch.

    Attributes:
        points: Every execution point of the batch.
        failures: Failure records in the order they were logged.
        elapsed_sec: Wall-clock time of the run phase.
    """

    points: list[ExecutionPoint]
    failures: list[FailureRecord]
    elapsed_sec: float

    @property
    def n_points(self) -> int:
        return len(self.points)

    @property
    def n_failed(self) -> int:
        return sum(1 for point in self.points if point.failed)

    @property
    def n_succeeded(self) -> int:
        return self.n_points - self.n_failed

    @property
    def all_passed(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "n_points": self.n_points,
            "n_succeeded": self.n_succeeded,
            "n_failed": self.n_failed,
            "all_passed": self.all_passed,
            "elapsed_sec": self.elapsed_sec,
            "points": [
                {
                    "name": point.name,
                    "path": str(point.path),
                    "failed": point.failed,
                    "completed_iterations": sorted(point.outputs),
                }
                for point in self.points
            ],
            "failures": [record.to_dict() for record in self.failures],
        }


def prepare_points(
    iterations: Sequence[Iteration],
    directories: Iterable[Path | str],
    config: RunConfig,
) -> list[ExecutionPoint]:
    """Build the execution points for a batch.

    Raises:
        PathResolutionError: If a directory or file pointer cannot be resolved.
        SetupError: If an artifacts directory cannot be used.
    """
    points = build_execution_points(directories, iterations, artifacts_dirname=config.artifacts_dirname)
    logger.info("Prepared %d execution point(s) with %d iteration(s) each", len(points), len(iterations))
    return points


def run_points(
    points: Sequence[ExecutionPoint],
    config: RunConfig,
    *,
    program: ProgramInvoker | None = None,
    template: str | None = None,
    stream: TextIO | None = None,
) -> RunSummary:
    """Run prepared execution points and print progress and the failure report.

    Args:
        points: Execution points from :func:`prepare_points`.
        config: Run settings (threads, minimum duration, program).
        program: Program invoker; defaults to running ``config.program``.
        template: Text appended to every control file.
        stream: Console stream for the reporter.

    Returns:
        RunSummary describing every point and failure.
    """
    lock = threading.Lock()
    failures = FailureLog(lock)
    reporter = Reporter(
        stream,
        lock,
        verbose=config.verbose,
        name_width=max((len(point.name) for point in points), default=0),
        program=config.program,
    )
    runner = IterationRunner(
        program=program if program is not None else ProgramRunner(config.program),
        failures=failures,
        width=FormatWidth(lock),
        min_duration_sec=config.min_duration_sec,
        template=template,
        reporter=reporter,
    )

    queues = distribute_workload(points, config.threads)
    logger.info("Running %d execution point(s) on %d thread(s)", len(points), len(queues))

    reporter.header()
    start_time = time.monotonic()
    run_queues(queues, runner.run_point)
    elapsed = time.monotonic() - start_time

    records = failures.snapshot()
    reporter.failure_table(records)
    logger.info("Batch finished in %.2f seconds with %d failure(s)", elapsed, len(records))
    return RunSummary(points=list(points), failures=records, elapsed_sec=elapsed)


def run_batch(
    iterations: Sequence[Iteration],
    directories: Iterable[Path | str],
    config: RunConfig | None = None,
    *,
    program: ProgramInvoker | None = None,
    stream: TextIO | None = None,
) -> RunSummary:
    """Prepare and run a whole batch.

    Raises:
        ClarisseError: Setup errors, before anything is executed.
    """
    config = config or RunConfig()
    template = config.read_template()
    points = prepare_points(iterations, directories, config)
    return run_points(points, config, program=program, template=template, stream=stream)


def write_run_summary(summary: RunSummary, output_path: Path) -> None:
    """Write a run summary as JSON."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(summary.to_dict(), indent=2, sort_keys=True)
    output_path.write_text(f"{text}\n", encoding="utf-8")
