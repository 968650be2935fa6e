# SPDX-License-Identifier: MIT
"""Pytest configuration and shared fixtures for test suite.

This module provides:
- Deterministic test environment setup
- Alignment directory and control file fixtures
- A fake in-process program runner standing in for codeml
"""
from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import pytest

from clarisse.execution.program import ProgramResult


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TESTS_DIR = Path(__file__).resolve().parent

TWO_ITERATIONS = """\
[1]
seqfile  = *.phy
treefile = *.nwk
outfile  = out1.txt
kappa    = 2

[2]
seqfile  = *.phy
treefile = *.nwk
kappa    = [1]
omega    = 0
outfile  = out2.txt
"""

CODEML_RESULTS = """\
CODONML (in paml version 4.9j, February 2020)  a.phy
Model: One dN/dS ratio,

lnL(ntime: 13  np: 15):  -2345.678901      +0.000000

kappa (ts/tv) =  2.31069

omega (dN/dS) =  0.12345

kappa (ts/tv) =  9.99999
"""


# ---------------------------------------------------------------------------
# Environment Setup
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest environment for determinism."""
    deterministic_env = {
        "LC_ALL": "C",
        "LANG": "C",
        "TZ": "UTC",
        "PYTHONHASHSEED": "0",
    }
    for key, value in deterministic_env.items():
        os.environ.setdefault(key, value)


# ---------------------------------------------------------------------------
# Fixtures: Inputs
# ---------------------------------------------------------------------------


@pytest.fixture
def two_iterations_text() -> str:
    """Control file with two iterations, the second extracting kappa."""
    return TWO_ITERATIONS


@pytest.fixture
def codeml_results() -> str:
    """Excerpt of a codeml results file with kappa and omega estimates."""
    return CODEML_RESULTS


@pytest.fixture
def make_alignment(tmp_path: Path) -> Callable[..., Path]:
    """Factory creating an alignment directory with one .phy and one .nwk file.

    Usage:
        def test_something(make_alignment):
            directory = make_alignment("gene1")
    """

    def _make(name: str = "gene1", *, files: tuple[str, ...] = ("a.phy", "a.nwk")) -> Path:
        directory = tmp_path / name
        directory.mkdir(parents=True, exist_ok=True)
        for filename in files:
            (directory / filename).write_text(f"{filename}\n", encoding="utf-8")
        return directory

    return _make


# ---------------------------------------------------------------------------
# Fixtures: Fake Runners
# ---------------------------------------------------------------------------

_OUTFILE_RE = re.compile(r"^\s*outfile = (.+)$", re.MULTILINE)


@dataclass
class FakeRun:
    """Canned behaviour for one (directory, iteration) pair."""

    returncode: int = 0
    stdout: bytes = b""
    stderr: bytes = b""
    duration_sec: float = 10.0
    results: str | None = CODEML_RESULTS


@dataclass
class FakeProgram:
    """In-process stand-in for codeml.

    Writes ``results`` to the control file's ``outfile`` and returns the
    canned exit status and output. Behaviour can be overridden per
    ``(directory name, iteration)``.
    """

    default: FakeRun = field(default_factory=FakeRun)
    overrides: dict[tuple[str, int], FakeRun] = field(default_factory=dict)
    calls: list[tuple[str, int]] = field(default_factory=list)
    control_texts: dict[tuple[str, int], str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def run(self, control_file: Path, *, workdir: Path) -> ProgramResult:
        iteration = int(control_file.stem)
        key = (workdir.name, iteration)
        text = control_file.read_text(encoding="utf-8")
        with self._lock:
            self.calls.append(key)
            self.control_texts[key] = text
        behaviour = self.overrides.get(key, self.default)
        match = _OUTFILE_RE.search(text)
        if behaviour.results is not None and match:
            Path(match.group(1).strip()).write_text(behaviour.results, encoding="utf-8")
        return ProgramResult(
            returncode=behaviour.returncode,
            stdout=behaviour.stdout,
            stderr=behaviour.stderr,
            duration_sec=behaviour.duration_sec,
        )


@pytest.fixture
def fake_program() -> Callable[..., FakeProgram]:
    """Factory for a configurable fake program.

    Behaviours are given as keyword dictionaries for :class:`FakeRun`.

    Usage:
        def test_something(fake_program):
            program = fake_program(overrides={("gene1", 2): {"returncode": 1}})
    """

    def _make(
        default: dict[str, object] | None = None,
        overrides: dict[tuple[str, int], dict[str, object]] | None = None,
    ) -> FakeProgram:
        return FakeProgram(
            default=FakeRun(**(default or {})),
            overrides={key: FakeRun(**value) for key, value in (overrides or {}).items()},
        )

    return _make
