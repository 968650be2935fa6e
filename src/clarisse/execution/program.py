"""External program invocation: one subprocess per iteration, output captured as bytes."""

from __future__ import annotations

import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..errors import ProgramLaunchError

DEFAULT_PROGRAM = "codeml"


@dataclass(frozen=True, slots=True)
class ProgramResult:
    """Outcome of one external program invocation."""

    returncode: int
    stdout: bytes
    stderr: bytes
    duration_sec: float


class ProgramInvoker(Protocol):
    def run(self, control_file: Path, *, workdir: Path) -> ProgramResult: ...


@dataclass(frozen=True)
class ProgramRunner:
    """Runs the external program once per iteration.

    The program receives the generated control file as its only argument and
    runs inside the target directory.
    """

    program: str = DEFAULT_PROGRAM

    def build_command(self, control_file: Path) -> list[str]:
        return [self.program, str(control_file)]

    def run(self, control_file: Path, *, workdir: Path) -> ProgramResult:
        cmd = self.build_command(control_file)
        start_time = time.perf_counter()
        try:
            proc = subprocess.run(cmd, cwd=workdir, capture_output=True, check=False)
        except OSError as exc:
            raise ProgramLaunchError(cmd, exc.strerror or str(exc)) from exc
        return ProgramResult(
            returncode=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
            duration_sec=time.perf_counter() - start_time,
        )
