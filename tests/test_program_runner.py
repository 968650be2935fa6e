"""Tests for invoking the external program as a subprocess."""
from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from clarisse.errors import FailureSource, ProgramLaunchError
from clarisse.execution.program import DEFAULT_PROGRAM, ProgramRunner

requires_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="POSIX shell not available")


def write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(0o755)
    return path


class TestProgramRunner:
    """Tests for ProgramRunner."""

    def test_default_program(self):
        assert ProgramRunner().program == DEFAULT_PROGRAM == "codeml"

    def test_build_command(self, tmp_path):
        runner = ProgramRunner("/opt/paml/bin/codeml")
        assert runner.build_command(tmp_path / "1.ctl") == ["/opt/paml/bin/codeml", str(tmp_path / "1.ctl")]

    @requires_sh
    def test_captures_output_and_status(self, tmp_path):
        script = write_script(
            tmp_path / "fake_codeml",
            'echo "reading $1"\necho "warning" >&2\npwd -P > where.txt\nexit 3\n',
        )
        workdir = tmp_path / "gene1"
        workdir.mkdir()
        control_file = tmp_path / "1.ctl"
        control_file.write_text("kappa = 2\n", encoding="utf-8")

        result = ProgramRunner(str(script)).run(control_file, workdir=workdir)

        assert result.returncode == 3
        assert result.stdout == f"reading {control_file}\n".encode()
        assert result.stderr == b"warning\n"
        assert result.duration_sec >= 0
        assert (workdir / "where.txt").read_text(encoding="utf-8").strip() == str(workdir.resolve())

    def test_missing_program(self, tmp_path):
        runner = ProgramRunner(str(tmp_path / "no-such-codeml"))

        with pytest.raises(ProgramLaunchError) as exc_info:
            runner.run(tmp_path / "1.ctl", workdir=tmp_path)

        assert exc_info.value.source is FailureSource.PROGRAM
        assert exc_info.value.command[0] == str(tmp_path / "no-such-codeml")


class TestModuleDocumentation:
    def test_every_package_module_has_a_docstring(self):
        import importlib
        import pkgutil

        import clarisse

        for module_info in pkgutil.walk_packages(clarisse.__path__, "clarisse."):
            module = importlib.import_module(module_info.name)
            assert module.__doc__, module_info.name
