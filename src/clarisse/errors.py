"""Exception hierarchy for Clarisse.

Errors fall into two groups:

- Setup errors stop the whole run before any worker starts:
  :class:`ControlFileError` (malformed control file), :class:`PathResolutionError`
  (missing directory, ambiguous glob), :class:`SetupError` (artifacts directory
  cannot be used) and :class:`RunConfigError` (bad settings).
- :class:`IterationFailure` errors are raised while an execution point runs.
  They stop that point's remaining iterations and are recorded in the failure
  log; sibling execution points keep running.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from pathlib import Path


class FailureSource(str, Enum):
    """Side a runtime failure is attributed to."""

    CLARISSE = "clarisse"
    PROGRAM = "program"


class ClarisseError(Exception):
    """Base exception for all Clarisse errors."""


# =============================================================================
# Control file (grammar and validation)
# =============================================================================


class ControlFileError(ClarisseError):
    """Raised when the control file is malformed.

    Attributes:
        source: Identity of the control file (path or ``<string>``).
        line: 1-based line number, when the error is tied to one line.
        iteration: Number of the section in scope (``"*"`` for the common
            section), when applicable.
        detail: Message without the location prefix.
    """

    def __init__(
        self,
        detail: str,
        *,
        source: str,
        line: int | None = None,
        iteration: int | str | None = None,
    ) -> None:
        self.detail = detail
        self.source = source
        self.line = line
        self.iteration = iteration
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.source
        if self.line is not None:
            location += f":{self.line}"
        if self.iteration is not None:
            return f"{location}: [section {self.iteration}] {self.detail}"
        return f"{location}: {self.detail}"


class EmptyControlFileError(ControlFileError):
    """The control file has no headers or options at all."""


class MalformedLineError(ControlFileError):
    """A line is neither a section header nor a ``key = value`` option."""


class EntryOutsideSectionError(ControlFileError):
    """An option appears before the first section header."""


class FirstHeaderError(ControlFileError):
    """The first section header is not ``[1]``."""


class HeaderSequenceError(ControlFileError):
    """A numbered header does not follow the previous one by exactly one."""

    def __init__(self, previous: int, found: int, *, source: str, line: int) -> None:
        self.previous = previous
        self.found = found
        super().__init__(
            f"section [{found}] follows [{previous}]; expected [{previous + 1}]",
            source=source,
            line=line,
            iteration=found,
        )


class DuplicateCommonSectionError(ControlFileError):
    """The common section header ``[*]`` appears more than once."""


class HeaderAfterCommonSectionError(ControlFileError):
    """A numbered header appears after the common section."""


class EmptySectionError(ControlFileError):
    """A section ends without any options."""


class DuplicateOptionError(ControlFileError):
    """The same option name is given twice in one section."""


class InvalidExtractionError(ControlFileError):
    """An extraction refers to itself, a later iteration, or nothing."""


class MissingMandatoryOptionError(ControlFileError):
    """An iteration lacks mandatory options after the common overlay."""

    def __init__(self, missing: Sequence[str], *, source: str, iteration: int) -> None:
        self.missing = tuple(missing)
        super().__init__(
            "missing mandatory option(s): " + ", ".join(self.missing),
            source=source,
            iteration=iteration,
        )


# =============================================================================
# Setup (directories, globs, artifacts directory, settings)
# =============================================================================


class PathResolutionError(ClarisseError):
    """Raised when a target directory or a file pointer cannot be resolved."""


class TargetDirectoryError(PathResolutionError):
    """The target path is not an existing directory."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"{path}: not a directory")


class GlobResolutionError(PathResolutionError):
    """A file-pointer glob matched zero files or more than one file.

    Attributes:
        point: Name of the execution point.
        iteration: Iteration whose option failed to resolve.
        option: Name of the file-pointer option.
        pattern: The pattern that was tried (joined to the directory).
        matches: The paths that matched (empty for "not found").
    """

    def __init__(
        self,
        point: str,
        iteration: int,
        option: str,
        pattern: str,
        matches: Sequence[str],
    ) -> None:
        self.point = point
        self.iteration = iteration
        self.option = option
        self.pattern = pattern
        self.matches = tuple(matches)
        if not self.matches:
            reason = "file not found"
        else:
            reason = f"{len(self.matches)} files found, expected exactly one"
        super().__init__(f"{point}/{iteration}/{option} = {pattern}: {reason}")


class SetupError(ClarisseError):
    """Raised when an execution point's working area cannot be prepared."""


class ArtifactsDirectoryError(SetupError):
    """The artifacts sub-directory could not be created."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"{path}: {reason}")


class ArtifactsPathCollisionError(ArtifactsDirectoryError):
    """The artifacts path exists but is not a directory."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, "exists and is not a directory")


class ArtifactsPermissionError(ArtifactsDirectoryError):
    """The artifacts directory is not readable and writable."""

    def __init__(self, path: Path) -> None:
        super().__init__(path, "directory is not readable and writable")


class RunConfigError(ClarisseError):
    """Raised when the run settings are invalid."""


# =============================================================================
# Runtime (localized to one execution point)
# =============================================================================


class IterationFailure(ClarisseError):
    """Raised while running one iteration; stops only that execution point.

    Attributes:
        source: Which side the failure is attributed to.
    """

    source: FailureSource = FailureSource.CLARISSE


class UnknownExtractionFieldError(IterationFailure):
    """No extraction rule exists for the requested field."""

    def __init__(self, field: str, known: Sequence[str]) -> None:
        self.field = field
        super().__init__(
            f"no extraction rule for '{field}' (known fields: {', '.join(known)})"
        )


class UnknownSourceOutputError(IterationFailure):
    """The source iteration never recorded an output file."""

    def __init__(self, field: str, source_iteration: int) -> None:
        self.field = field
        self.source_iteration = source_iteration
        super().__init__(
            f"cannot extract '{field}': iteration {source_iteration} produced no output file"
        )


class SourceOutputReadError(IterationFailure):
    """The source iteration's output file could not be read."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"failed to read {path}: {reason}")


class ExtractionNotFoundError(IterationFailure):
    """No line of the output file matched the field's pattern."""

    def __init__(self, field: str, path: Path) -> None:
        self.field = field
        self.path = path
        super().__init__(f"failed to extract '{field}' from {path}")


class ProgramLaunchError(IterationFailure):
    """The external program could not be started."""

    source = FailureSource.PROGRAM

    def __init__(self, command: Sequence[str], reason: str) -> None:
        self.command = tuple(command)
        super().__init__(f"could not launch {self.command[0]}: {reason}")
