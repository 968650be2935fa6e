"""Console output: per-iteration progress lines and the final failure table.

All writes go through one lock, shared with the failure log and the width
cache, so lines from different worker threads never interleave.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Sequence
from typing import TextIO

from .control.model import Iteration
from .errors import FailureSource
from .execution.failures import FailureRecord
from .execution.point import ExecutionPoint
from .execution.runner import IterationOutcome, IterationReporter

COLUMN_SPACING = " " * 5

DIRECTORY_TITLE = "Directory"
ITERATION_TITLE = "Iteration"
STATUS_TITLE = "Status"
TIME_TITLE = "Running time (iteration/directory)"
SOURCE_TITLE = "During"
REASON_TITLE = "Reason"

STATUS_STARTED = "Started"
STATUS_FINISHED = "Finished"
STATUS_FAILED = "FAILED"
STATUS_WIDTH = max(len(STATUS_TITLE), len(STATUS_STARTED), len(STATUS_FINISHED), len(STATUS_FAILED))


def human_readable_time(seconds: float) -> str:
    """Format a duration as ``HH:MM:SS``."""
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def source_label(source: FailureSource, program: str) -> str:
    if source is FailureSource.PROGRAM:
        return f"{program} execution"
    return "Clarisse execution"


class Reporter(IterationReporter):
    """Writes progress and failures to a text stream.

    Attributes:
        stream: Destination (stdout by default).
        verbose: Also print a line when an iteration starts, and a closing
            message when nothing failed.
        name_width: Width of the directory column.
        program: Program name used to label program failures.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        lock: threading.Lock | None = None,
        *,
        verbose: bool = False,
        name_width: int = len(DIRECTORY_TITLE),
        program: str = "program",
    ) -> None:
        self.stream = stream or sys.stdout
        self._lock = lock or threading.Lock()
        self.verbose = verbose
        self.name_width = max(name_width, len(DIRECTORY_TITLE))
        self.program = program

    def write(self, text: str = "") -> None:
        with self._lock:
            self.stream.write(text + "\n")
            self.stream.flush()

    def _prefix(self, name: str, iteration: int) -> str:
        return name.ljust(self.name_width) + COLUMN_SPACING + str(iteration).ljust(len(ITERATION_TITLE)) + COLUMN_SPACING

    def header(self) -> None:
        line = DIRECTORY_TITLE.ljust(self.name_width) + COLUMN_SPACING
        line += ITERATION_TITLE + COLUMN_SPACING
        if self.verbose:
            line += STATUS_TITLE.ljust(STATUS_WIDTH) + COLUMN_SPACING
        line += TIME_TITLE
        self.write(line)

    def iteration_started(self, point: ExecutionPoint, iteration: Iteration) -> None:
        if self.verbose:
            self.write(self._prefix(point.name, iteration.number) + STATUS_STARTED)

    def iteration_finished(self, outcome: IterationOutcome) -> None:
        line = self._prefix(outcome.point, outcome.iteration)
        if self.verbose:
            status = STATUS_FINISHED if outcome.passed else STATUS_FAILED
            line += status.ljust(STATUS_WIDTH) + COLUMN_SPACING
        line += f"{human_readable_time(outcome.duration_sec)} / {human_readable_time(outcome.total_sec)}"
        if not outcome.passed and not self.verbose:
            line += COLUMN_SPACING + STATUS_FAILED
        self.write(line.rstrip())

    def failure_table(self, records: Sequence[FailureRecord]) -> None:
        """Print every failure after all workers have finished."""
        if not records:
            if self.verbose:
                self.write()
                self.write("Successfully executed all iterations")
            return

        labels = [source_label(record.source, self.program) for record in records]
        source_width = max(len(SOURCE_TITLE), *(len(label) for label in labels))
        lines = ["", "", "            --- ERROR REPORT ---", ""]
        lines.append(
            DIRECTORY_TITLE.ljust(self.name_width)
            + COLUMN_SPACING
            + ITERATION_TITLE
            + COLUMN_SPACING
            + SOURCE_TITLE.ljust(source_width)
            + COLUMN_SPACING
            + REASON_TITLE
        )
        for record, label in zip(records, labels):
            lines.append(
                self._prefix(record.directory, record.iteration)
                + label.ljust(source_width)
                + COLUMN_SPACING
                + record.message
            )
        lines.append("")
        lines.append(f"{len(records)} error{'s' if len(records) != 1 else ''}")
        self.write("\n".join(lines))
