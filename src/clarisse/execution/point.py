"""Execution points: the iteration template bound to one target directory.

Building a point clones the parsed iterations so that values filled in while
running stay private to the directory, resolves file-pointer globs against the
directory, turns the output file into an absolute path and prepares the
artifacts directory. Any failure here is a setup error that stops the run
before execution starts.
"""

from __future__ import annotations

import glob
import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..control.model import FILE_POINTER_OPTIONS, OUTPUT_FILE_OPTION, Iteration, Option, clone_iterations
from ..errors import (
    ArtifactsDirectoryError,
    ArtifactsPathCollisionError,
    ArtifactsPermissionError,
    GlobResolutionError,
    TargetDirectoryError,
)
from .artifacts import DEFAULT_ARTIFACTS_DIRNAME
from .failures import FailureRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExecutionPoint:
    """One target directory and its private copy of the iterations.

    Attributes:
        name: Display name used in progress lines and the failure report.
        path: Absolute path of the target directory.
        iterations: Private iteration sequence, mutated while running.
        artifacts_dir: Directory receiving generated files.
        outputs: Output file recorded for each iteration that succeeded.
        failure: The failure that stopped this point, if any.
    """

    name: str
    path: Path
    iterations: list[Iteration]
    artifacts_dir: Path
    outputs: dict[int, Path] = field(default_factory=dict)
    failure: FailureRecord | None = None

    @property
    def failed(self) -> bool:
        return self.failure is not None


def display_name(directory: Path) -> str:
    """Name shown for ``directory``; ``.`` is replaced by the real directory name."""
    if str(directory) == ".":
        return directory.resolve().name
    return str(directory)


def normalize_directories(directories: Iterable[Path | str]) -> list[Path]:
    """Clean up directory arguments and drop duplicates, keeping first-seen order."""
    seen: set[Path] = set()
    result: list[Path] = []
    for directory in directories:
        cleaned = Path(os.path.normpath(str(directory)))
        key = cleaned.resolve()
        if key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


def resolve_pointer(pattern: str, directory: Path) -> list[str]:
    """Return the sorted paths matching ``pattern`` relative to ``directory``."""
    if os.path.isabs(pattern):
        return sorted(glob.glob(pattern))
    # The directory name is not part of the pattern, so brackets in it stay literal
    return sorted(str(directory / match) for match in glob.glob(pattern, root_dir=directory))


def ensure_artifacts_dir(path: Path) -> Path:
    """Create the artifacts directory if needed and check it is usable.

    Raises:
        ArtifactsPathCollisionError: If ``path`` exists and is not a directory.
        ArtifactsPermissionError: If the directory is not readable and writable.
        ArtifactsDirectoryError: If it cannot be created for another reason.
    """
    if path.exists() and not path.is_dir():
        raise ArtifactsPathCollisionError(path)
    try:
        path.mkdir(exist_ok=True)
    except OSError as exc:
        raise ArtifactsDirectoryError(path, exc.strerror or str(exc)) from exc
    if not os.access(path, os.R_OK | os.W_OK | os.X_OK):
        raise ArtifactsPermissionError(path)
    return path


def build_execution_point(
    directory: Path | str,
    iterations: Sequence[Iteration],
    *,
    artifacts_dirname: str = DEFAULT_ARTIFACTS_DIRNAME,
    file_pointers: Iterable[str] = FILE_POINTER_OPTIONS,
    output_option: str = OUTPUT_FILE_OPTION,
) -> ExecutionPoint:
    """Bind the iteration template to one directory.

    Args:
        directory: Target directory (relative to the current directory or absolute).
        iterations: Canonical iterations from the parser; not modified.
        artifacts_dirname: Name of the sub-directory for generated files.
        file_pointers: Options whose values are globs naming one input file.
        output_option: Option naming the program's results file.

    Returns:
        A ready execution point.

    Raises:
        TargetDirectoryError: If ``directory`` is not a directory.
        GlobResolutionError: If a file pointer matches zero or several files.
        ArtifactsDirectoryError: If the artifacts directory cannot be used.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise TargetDirectoryError(directory)

    name = display_name(directory)
    path = directory.resolve()
    pointers = set(file_pointers)
    private = clone_iterations(iterations)

    for iteration in private:
        for option in iteration.options:
            if option.name in pointers:
                matches = resolve_pointer(option.value, path)
                if len(matches) != 1:
                    tried = option.value if os.path.isabs(option.value) else str(path / option.value)
                    raise GlobResolutionError(name, iteration.number, option.name, tried, matches)
                iteration.replace(option.name, Option(option.name, matches[0]))
            elif option.name == output_option:
                outfile = Path(option.value)
                if not outfile.is_absolute():
                    outfile = path / outfile
                iteration.replace(option.name, Option(option.name, str(outfile)))

    artifacts_dir = ensure_artifacts_dir(path / artifacts_dirname)
    logger.debug("Built execution point %s (%s)", name, path)
    return ExecutionPoint(name=name, path=path, iterations=private, artifacts_dir=artifacts_dir)


def build_execution_points(
    directories: Iterable[Path | str],
    iterations: Sequence[Iteration],
    *,
    artifacts_dirname: str = DEFAULT_ARTIFACTS_DIRNAME,
    file_pointers: Iterable[str] = FILE_POINTER_OPTIONS,
    output_option: str = OUTPUT_FILE_OPTION,
) -> list[ExecutionPoint]:
    """Build one execution point per distinct directory, in the given order."""
    pointers = tuple(file_pointers)
    return [
        build_execution_point(
            directory,
            iterations,
            artifacts_dirname=artifacts_dirname,
            file_pointers=pointers,
            output_option=output_option,
        )
        for directory in normalize_directories(directories)
    ]
