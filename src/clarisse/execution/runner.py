"""Runs the iterations of one execution point, in order.

For each iteration the runner fills pending extractions from earlier output
files, writes the control file, invokes the program and classifies the
outcome. The first failure is recorded in the shared :class:`FailureLog` and
the point's remaining iterations are skipped. Nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..control.model import OUTPUT_FILE_OPTION, Iteration, Option
from ..errors import FailureSource, IterationFailure, UnknownSourceOutputError
from .artifacts import FormatWidth, control_file_path, render_control_file, write_stream
from .extraction import extract_value
from .failures import FailureLog, FailureRecord, scan_for_failures
from .point import ExecutionPoint
from .program import ProgramInvoker, ProgramResult, ProgramRunner

logger = logging.getLogger(__name__)

DEFAULT_MIN_DURATION_SEC = 1.0


class IterationStatus(str, Enum):
    """Final state of one iteration."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class IterationOutcome:
    """Result of running one iteration of one execution point.

    Attributes:
        point: Display name of the execution point.
        iteration: Iteration number.
        status: Completed or failed.
        duration_sec: Program wall-clock time (0 if it never ran).
        total_sec: Program time accumulated by the point so far.
        failure: Failure record when the iteration failed.
    """

    point: str
    iteration: int
    status: IterationStatus
    duration_sec: float
    total_sec: float
    failure: FailureRecord | None = None

    @property
    def passed(self) -> bool:
        return self.status is IterationStatus.COMPLETED


class IterationReporter:
    """Receives progress events; the default implementation ignores them."""

    def iteration_started(self, point: ExecutionPoint, iteration: Iteration) -> None:
        pass

    def iteration_finished(self, outcome: IterationOutcome) -> None:
        pass


def classify(result: ProgramResult, min_duration_sec: float) -> str | None:
    """Return the failure message for a program run, or None if it succeeded.

    Known failure text wins over the exit status, and both win over the
    too-fast heuristic.
    """
    match = scan_for_failures({"stdout": result.stdout, "stderr": result.stderr})
    if match is not None:
        return f'Error detected in {match.stream}: "{match.line}"'
    if result.returncode != 0:
        return f"Exit status was {result.returncode}, cause unknown"
    if result.duration_sec < min_duration_sec:
        return (
            f"Finished in {result.duration_sec:.2f}s, under the {min_duration_sec:g}s minimum; "
            "the program probably exited without doing any work"
        )
    return None


class IterationRunner:
    """Executes execution points one iteration at a time.

    A single runner is shared by all worker threads; per-point state lives on
    the :class:`ExecutionPoint`, and the failure log, reporter and width cache
    guard themselves.

    Attributes:
        program: Invoker for the external program.
        failures: Shared failure log.
        width: Shared option-name column width.
        min_duration_sec: Runs shorter than this count as failed.
        template: Text appended to every generated control file.
        reporter: Receives progress events.
    """

    def __init__(
        self,
        *,
        program: ProgramInvoker | None = None,
        failures: FailureLog | None = None,
        width: FormatWidth | None = None,
        min_duration_sec: float = DEFAULT_MIN_DURATION_SEC,
        template: str | None = None,
        reporter: IterationReporter | None = None,
        output_option: str = OUTPUT_FILE_OPTION,
    ) -> None:
        if min_duration_sec < 0:
            raise ValueError("min_duration_sec must be >= 0")
        self.program = program if program is not None else ProgramRunner()
        self.failures = failures if failures is not None else FailureLog()
        self.width = width if width is not None else FormatWidth()
        self.min_duration_sec = min_duration_sec
        self.template = template
        self.reporter = reporter if reporter is not None else IterationReporter()
        self.output_option = output_option

    def run_point(self, point: ExecutionPoint) -> list[IterationOutcome]:
        """Run every iteration of ``point`` until one fails.

        Returns:
            Outcomes of the iterations that were attempted.
        """
        outcomes: list[IterationOutcome] = []
        total_sec = 0.0
        for iteration in point.iterations:
            try:
                outcome = self._run_iteration(point, iteration, total_sec)
            except IterationFailure as exc:
                outcome = self._fail(point, iteration, exc.source, str(exc), 0.0, total_sec)
            except Exception as exc:
                logger.exception("Unexpected error in %s, iteration %d", point.name, iteration.number)
                outcome = self._fail(point, iteration, FailureSource.CLARISSE, f"Unexpected error: {exc}", 0.0, total_sec)

            outcomes.append(outcome)
            total_sec = outcome.total_sec
            self.reporter.iteration_finished(outcome)
            if not outcome.passed:
                skipped = len(point.iterations) - iteration.number
                if skipped:
                    logger.info("Skipping %d remaining iteration(s) of %s", skipped, point.name)
                break
        return outcomes

    def resolve_extractions(self, point: ExecutionPoint, iteration: Iteration) -> None:
        """Replace every pending extraction of ``iteration`` with a concrete option.

        Raises:
            UnknownSourceOutputError: If the source iteration recorded no output.
            IterationFailure: If the value cannot be extracted.
        """
        for extraction in iteration.extractions:
            source_path = point.outputs.get(extraction.source)
            if source_path is None:
                raise UnknownSourceOutputError(extraction.name, extraction.source)
            value = extract_value(extraction.name, source_path)
            logger.debug(
                "%s/%d: %s = %s (from iteration %d)",
                point.name,
                iteration.number,
                extraction.name,
                value,
                extraction.source,
            )
            iteration.replace(extraction.name, Option(extraction.name, value))

    def write_control_file(self, point: ExecutionPoint, iteration: Iteration) -> Path:
        """Write the iteration's options to its control file and return its path."""
        options = iteration.options
        width = self.width.widen(option.name for option in options)
        path = control_file_path(point.artifacts_dir, iteration.number)
        path.write_text(render_control_file(options, width, self.template), encoding="utf-8")
        return path

    def _run_iteration(self, point: ExecutionPoint, iteration: Iteration, total_sec: float) -> IterationOutcome:
        if iteration.number > 1:
            self.resolve_extractions(point, iteration)
        control_file = self.write_control_file(point, iteration)

        self.reporter.iteration_started(point, iteration)
        result = self.program.run(control_file, workdir=point.path)
        write_stream(point.artifacts_dir, iteration.number, "stdout", result.stdout)
        write_stream(point.artifacts_dir, iteration.number, "stderr", result.stderr)
        total_sec += result.duration_sec

        message = classify(result, self.min_duration_sec)
        if message is not None:
            return self._fail(point, iteration, FailureSource.PROGRAM, message, result.duration_sec, total_sec)

        output = iteration.get(self.output_option)
        if isinstance(output, Option):
            point.outputs[iteration.number] = Path(output.value)
        return IterationOutcome(
            point=point.name,
            iteration=iteration.number,
            status=IterationStatus.COMPLETED,
            duration_sec=result.duration_sec,
            total_sec=total_sec,
        )

    def _fail(
        self,
        point: ExecutionPoint,
        iteration: Iteration,
        source: FailureSource,
        message: str,
        duration_sec: float,
        total_sec: float,
    ) -> IterationOutcome:
        record = FailureRecord(directory=point.name, iteration=iteration.number, source=source, message=message)
        point.failure = record
        self.failures.append(record)
        logger.info("%s, iteration %d failed: %s", point.name, iteration.number, message)
        return IterationOutcome(
            point=point.name,
            iteration=iteration.number,
            status=IterationStatus.FAILED,
            duration_sec=duration_sec,
            total_sec=total_sec,
            failure=record,
        )
