# SPDX-License-Identifier: MIT
"""Tests for running the iterations of an execution point.

This module tests:
- Control file generation (alignment, order, template)
- Extraction of values from earlier iterations
- Failure handling and per-point containment
- Captured output files and reruns
"""
from __future__ import annotations

import logging
from pathlib import Path

import pytest

from clarisse.control.model import Option
from clarisse.control.parser import parse_control_text
from clarisse.errors import FailureSource, ProgramLaunchError, UnknownSourceOutputError
from clarisse.execution.artifacts import FormatWidth
from clarisse.execution.failures import FailureLog
from clarisse.execution.point import build_execution_point
from clarisse.execution.program import ProgramResult
from clarisse.execution.runner import (
    IterationOutcome,
    IterationReporter,
    IterationRunner,
    IterationStatus,
)


class RecordingReporter(IterationReporter):
    """Collects progress events."""

    def __init__(self) -> None:
        self.started: list[tuple[str, int]] = []
        self.finished: list[IterationOutcome] = []

    def iteration_started(self, point, iteration):
        self.started.append((point.name, iteration.number))

    def iteration_finished(self, outcome):
        self.finished.append(outcome)


class LaunchFailure:
    def run(self, control_file: Path, *, workdir: Path) -> ProgramResult:
        raise ProgramLaunchError(["codeml", str(control_file)], "No such file or directory")


class Crash:
    def run(self, control_file: Path, *, workdir: Path) -> ProgramResult:
        raise RuntimeError("disk on fire")


@pytest.fixture
def point(make_alignment, two_iterations_text):
    iterations = parse_control_text(two_iterations_text)
    return build_execution_point(make_alignment("gene1"), iterations)


# =============================================================================
# Control Files
# =============================================================================


class TestControlFiles:
    """Tests for generated control files."""

    def test_first_iteration_control_file(self, point, fake_program):
        IterationRunner(program=fake_program()).run_point(point)

        directory = point.path
        expected = (
            f"      seqfile = {directory / 'a.phy'}\n"
            f"     treefile = {directory / 'a.nwk'}\n"
            f"      outfile = {directory / 'out1.txt'}\n"
            "        kappa = 2\n"
        )
        assert (point.artifacts_dir / "1.ctl").read_text(encoding="utf-8") == expected

    def test_extracted_value_written_in_place(self, point, fake_program):
        IterationRunner(program=fake_program()).run_point(point)

        lines = (point.artifacts_dir / "2.ctl").read_text(encoding="utf-8").splitlines()
        assert [line.split("=")[0].strip() for line in lines] == ["seqfile", "treefile", "kappa", "omega", "outfile"]
        assert lines[2] == "        kappa = 2.31069"

    def test_program_receives_control_file_and_directory(self, point, fake_program):
        program = fake_program()
        IterationRunner(program=program).run_point(point)

        assert program.calls == [("gene1", 1), ("gene1", 2)]
        assert program.control_texts[("gene1", 2)] == (point.artifacts_dir / "2.ctl").read_text(encoding="utf-8")

    def test_template_appended(self, point, fake_program):
        template = "\n* appended verbatim\nicode = 0\n"
        IterationRunner(program=fake_program(), template=template).run_point(point)

        text = (point.artifacts_dir / "1.ctl").read_text(encoding="utf-8")
        assert text.endswith("        kappa = 2\n" + template)

    def test_width_only_grows(self, make_alignment, fake_program):
        text = (
            "[1]\nseqfile = *.phy\ntreefile = *.nwk\noutfile = out1.txt\nvery_long_option_name = 1\n"
            "[2]\nseqfile = *.phy\ntreefile = *.nwk\noutfile = out2.txt\n"
        )
        point = build_execution_point(make_alignment("gene1"), parse_control_text(text))
        width = FormatWidth()
        IterationRunner(program=fake_program(), width=width).run_point(point)

        assert width.value == len("very_long_option_name")
        second = (point.artifacts_dir / "2.ctl").read_text(encoding="utf-8").splitlines()
        assert second[0] == " " * (21 - len("seqfile")) + f"seqfile = {point.path / 'a.phy'}"

    def test_rerun_is_byte_identical(self, make_alignment, two_iterations_text, fake_program):
        directory = make_alignment("gene1")
        iterations = parse_control_text(two_iterations_text)

        first = build_execution_point(directory, iterations)
        IterationRunner(program=fake_program()).run_point(first)
        before = {name: (first.artifacts_dir / name).read_bytes() for name in ("1.ctl", "2.ctl")}

        second = build_execution_point(directory, iterations)
        IterationRunner(program=fake_program()).run_point(second)
        after = {name: (second.artifacts_dir / name).read_bytes() for name in ("1.ctl", "2.ctl")}

        assert before == after


# =============================================================================
# Outcomes
# =============================================================================


class TestOutcomes:
    """Tests for successful and failed runs."""

    def test_all_iterations_complete(self, point, fake_program):
        failures = FailureLog()
        outcomes = IterationRunner(program=fake_program(), failures=failures).run_point(point)

        assert [outcome.status for outcome in outcomes] == [IterationStatus.COMPLETED] * 2
        assert point.failed is False
        assert len(failures) == 0
        assert point.outputs == {1: point.path / "out1.txt", 2: point.path / "out2.txt"}

    def test_total_time_accumulates(self, point, fake_program):
        program = fake_program(default={"duration_sec": 2.5})
        outcomes = IterationRunner(program=program).run_point(point)

        assert [outcome.duration_sec for outcome in outcomes] == [2.5, 2.5]
        assert [outcome.total_sec for outcome in outcomes] == [2.5, 5.0]

    def test_program_failure_stops_point(self, point, fake_program):
        program = fake_program(overrides={("gene1", 1): {"returncode": 1}})
        failures = FailureLog()
        outcomes = IterationRunner(program=program, failures=failures).run_point(point)

        assert program.calls == [("gene1", 1)]
        assert len(outcomes) == 1
        assert not outcomes[0].passed
        assert not (point.artifacts_dir / "2.ctl").exists()

        [record] = failures.snapshot()
        assert record.directory == point.name
        assert record.iteration == 1
        assert record.source is FailureSource.PROGRAM
        assert record.message == "Exit status was 1, cause unknown"
        assert point.failure == record
        assert point.outputs == {}

    def test_error_text_in_output(self, point, fake_program):
        program = fake_program(overrides={("gene1", 2): {"stdout": b"Error: end of tree file.\n"}})
        outcomes = IterationRunner(program=program).run_point(point)

        assert outcomes[-1].failure.message == 'Error detected in stdout: "Error: end of tree file."'
        assert point.outputs == {1: point.path / "out1.txt"}

    def test_too_fast_run_fails(self, point, fake_program):
        program = fake_program(default={"duration_sec": 0.1})
        outcomes = IterationRunner(program=program, min_duration_sec=1.0).run_point(point)

        assert outcomes[0].failure.source is FailureSource.PROGRAM
        assert "under the 1s minimum" in outcomes[0].failure.message

    def test_duration_check_disabled(self, point, fake_program):
        program = fake_program(default={"duration_sec": 0.0})
        outcomes = IterationRunner(program=program, min_duration_sec=0).run_point(point)
        assert all(outcome.passed for outcome in outcomes)

    def test_extraction_failure(self, point, fake_program):
        program = fake_program(overrides={("gene1", 1): {"results": "lnL = -1234.5\n"}})
        failures = FailureLog()
        outcomes = IterationRunner(program=program, failures=failures).run_point(point)

        assert program.calls == [("gene1", 1)]
        assert outcomes[-1].iteration == 2
        assert outcomes[-1].duration_sec == 0.0
        [record] = failures.snapshot()
        assert record.source is FailureSource.CLARISSE
        assert record.message == f"failed to extract 'kappa' from {point.path / 'out1.txt'}"

    def test_missing_results_file(self, point, fake_program):
        program = fake_program(overrides={("gene1", 1): {"results": None}})
        outcomes = IterationRunner(program=program).run_point(point)

        assert outcomes[-1].failure.source is FailureSource.CLARISSE
        assert outcomes[-1].failure.message.startswith("failed to read")

    def test_launch_failure_is_program_failure(self, point):
        outcomes = IterationRunner(program=LaunchFailure()).run_point(point)

        assert outcomes[0].failure.source is FailureSource.PROGRAM
        assert "could not launch codeml" in outcomes[0].failure.message

    def test_unexpected_error_is_contained(self, point, caplog):
        with caplog.at_level(logging.ERROR, logger="clarisse.execution.runner"):
            outcomes = IterationRunner(program=Crash()).run_point(point)

        assert outcomes[0].failure.source is FailureSource.CLARISSE
        assert outcomes[0].failure.message == "Unexpected error: disk on fire"
        assert "Unexpected error in" in caplog.text

    def test_reporter_events(self, point, fake_program):
        reporter = RecordingReporter()
        program = fake_program(overrides={("gene1", 2): {"returncode": 1}})
        IterationRunner(program=program, reporter=reporter).run_point(point)

        assert reporter.started == [(point.name, 1), (point.name, 2)]
        assert [outcome.passed for outcome in reporter.finished] == [True, False]

    def test_empty_shared_collaborators_are_kept(self):
        """An empty failure log is still the caller's log, not a private one."""
        log = FailureLog()
        width = FormatWidth()
        reporter = IterationReporter()
        runner = IterationRunner(failures=log, width=width, reporter=reporter)

        assert runner.failures is log
        assert runner.width is width
        assert runner.reporter is reporter

    def test_failure_reaches_shared_log(self, point, fake_program):
        log = FailureLog()
        program = fake_program(overrides={("gene1", 1): {"returncode": 1}})
        IterationRunner(program=program, failures=log).run_point(point)

        assert [record.iteration for record in log] == [1]

    def test_negative_min_duration(self):
        with pytest.raises(ValueError, match="min_duration_sec"):
            IterationRunner(min_duration_sec=-1)


class TestResolveExtractions:
    """Tests for resolve_extractions."""

    def test_source_without_output(self, point):
        with pytest.raises(UnknownSourceOutputError):
            IterationRunner().resolve_extractions(point, point.iterations[1])

    def test_replaces_extraction(self, point, codeml_results):
        out1 = point.path / "out1.txt"
        out1.write_text(codeml_results, encoding="utf-8")
        point.outputs[1] = out1

        IterationRunner().resolve_extractions(point, point.iterations[1])
        assert point.iterations[1].get("kappa") == Option("kappa", "2.31069")
        assert point.iterations[1].extractions == []


# =============================================================================
# Captured Output
# =============================================================================


class TestCapturedOutput:
    """Tests for stdout and stderr files."""

    def test_streams_written(self, point, fake_program):
        program = fake_program(default={"stdout": b"CODONML done\n", "stderr": b"warning: gaps\n"})
        IterationRunner(program=program).run_point(point)

        assert (point.artifacts_dir / "1.stdout").read_bytes() == b"CODONML done\n"
        assert (point.artifacts_dir / "1.stderr").read_bytes() == b"warning: gaps\n"

    def test_empty_streams_not_written(self, point, fake_program):
        IterationRunner(program=fake_program()).run_point(point)

        assert not (point.artifacts_dir / "1.stdout").exists()
        assert not (point.artifacts_dir / "1.stderr").exists()

    def test_stale_stream_removed_on_rerun(self, make_alignment, two_iterations_text, fake_program):
        directory = make_alignment("gene1")
        iterations = parse_control_text(two_iterations_text)

        first = build_execution_point(directory, iterations)
        IterationRunner(program=fake_program(default={"stderr": b"warning\n"})).run_point(first)
        assert (first.artifacts_dir / "1.stderr").exists()

        second = build_execution_point(directory, iterations)
        IterationRunner(program=fake_program()).run_point(second)
        assert not (second.artifacts_dir / "1.stderr").exists()

    def test_streams_kept_on_failure(self, point, fake_program):
        program = fake_program(overrides={("gene1", 1): {"returncode": 2, "stderr": b"Segmentation fault\n"}})
        IterationRunner(program=program).run_point(point)

        assert (point.artifacts_dir / "1.stderr").read_bytes() == b"Segmentation fault\n"
