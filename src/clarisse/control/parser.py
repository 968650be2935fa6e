"""Control file parser.

A control file describes the iterations to run in every directory::

    # first pass
    [1]
    seqfile  = *.phy
    treefile = *.nwk
    outfile  = out1.txt
    kappa    = 2

    [2]
    kappa    = [1]      # take kappa from the results of iteration 1
    outfile  = out2.txt

    [*]
    seqfile  = *.phy    # common options, used where a section has none
    treefile = *.nwk

Everything from ``#`` to the end of a line is ignored. Every other non-blank
line is a section header (``[k]`` or ``[*]``) or a ``name = value`` option.
Numbered sections start at 1 and increase by one; the common section ``[*]``
comes last and is overlaid onto every numbered section without overriding
options the section already sets.

The parser tracks two independent pieces of state: what kind of line it
expects next (:class:`Expects`) and what kind of section it is reading
(:class:`Reading`). Every problem is reported as a typed
:class:`~clarisse.errors.ControlFileError` carrying the file, line and
section.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import NoReturn

from ..errors import (
    ControlFileError,
    DuplicateCommonSectionError,
    DuplicateOptionError,
    EmptyControlFileError,
    EmptySectionError,
    EntryOutsideSectionError,
    FirstHeaderError,
    HeaderAfterCommonSectionError,
    HeaderSequenceError,
    InvalidExtractionError,
    MalformedLineError,
    MissingMandatoryOptionError,
)
from .model import MANDATORY_OPTIONS, Entry, Extraction, Iteration, Option

logger = logging.getLogger(__name__)

COMMENT_MARKER = "#"
COMMON_SECTION = "*"

_HEADER_RE = re.compile(r"^\[(?P<key>\d+|\*)\]$")
_OPTION_RE = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*=\s*(?P<value>.*)$")
_EXTRACTION_RE = re.compile(r"^\[(?P<source>\d+)\]$")


class Expects(str, Enum):
    """Kind of line the parser accepts next."""

    FIRST_HEADER = "first_header"
    FIRST_ENTRY = "first_entry"
    ANY_LINE = "any_line"


class Reading(str, Enum):
    """Kind of section the parser is inside."""

    ITERATIONS = "iterations"
    COMMON = "common"


def strip_comment(line: str) -> str:
    """Drop the comment part of a line and surrounding whitespace."""
    marker = line.find(COMMENT_MARKER)
    if marker >= 0:
        line = line[:marker]
    return line.strip()


class ControlFileParser:
    """Stateful, line-oriented validator for control files.

    Feed lines with :meth:`feed` and call :meth:`finish` once the input is
    exhausted. :func:`parse_control_text` and :func:`parse_control_file` wrap
    that sequence.

    Attributes:
        source: Name used in error messages.
        mandatory: Option names every iteration must define after the overlay.
    """

    def __init__(self, source: str = "<string>", *, mandatory: Iterable[str] = MANDATORY_OPTIONS) -> None:
        self.source = source
        self.mandatory = tuple(mandatory)
        self.expects = Expects.FIRST_HEADER
        self.reading = Reading.ITERATIONS
        self.iterations: list[Iteration] = []
        self.common: list[Entry] = []
        self._common_names: set[str] = set()
        self._section_line = 0
        self._line = 0

    # -------------------------------------------------------------------------
    # Line dispatch
    # -------------------------------------------------------------------------

    def feed(self, raw_line: str) -> None:
        """Consume one physical line of the control file."""
        self._line += 1
        line = strip_comment(raw_line)
        if not line:
            return

        header = _HEADER_RE.match(line)
        if header:
            self._on_header(header.group("key"))
            return

        option = _OPTION_RE.match(line)
        if option:
            self._on_option(option.group("name"), option.group("value").strip())
            return

        raise MalformedLineError(
            f"expected a section header or 'name = value', got {line!r}",
            source=self.source,
            line=self._line,
            iteration=self._scope(),
        )

    def finish(self) -> list[Iteration]:
        """Validate end of input, apply the common overlay and return iterations."""
        if self.expects is Expects.FIRST_HEADER:
            raise EmptyControlFileError("no sections defined", source=self.source)
        if self.expects is Expects.FIRST_ENTRY:
            self._raise_empty_section()

        for iteration in self.iterations:
            iteration.overlay(self.common)
            missing = iteration.missing(self.mandatory)
            if missing:
                raise MissingMandatoryOptionError(missing, source=self.source, iteration=iteration.number)

        logger.debug(
            "Parsed %d iteration(s) from %s (%d common option(s))",
            len(self.iterations),
            self.source,
            len(self.common),
        )
        return self.iterations

    # -------------------------------------------------------------------------
    # Headers
    # -------------------------------------------------------------------------

    def _on_header(self, key: str) -> None:
        if self.expects is Expects.FIRST_HEADER:
            if key == COMMON_SECTION or int(key) != 1:
                raise FirstHeaderError(
                    f"the first section must be [1], got [{key}]",
                    source=self.source,
                    line=self._line,
                )
            self._open_iteration(1)
            return

        if self.expects is Expects.FIRST_ENTRY:
            self._raise_empty_section()

        if key == COMMON_SECTION:
            if self.reading is Reading.COMMON:
                raise DuplicateCommonSectionError(
                    f"common section [{COMMON_SECTION}] defined more than once",
                    source=self.source,
                    line=self._line,
                    iteration=COMMON_SECTION,
                )
            self.reading = Reading.COMMON
            self._section_line = self._line
            self.expects = Expects.FIRST_ENTRY
            return

        number = int(key)
        if self.reading is Reading.COMMON:
            raise HeaderAfterCommonSectionError(
                f"section [{number}] follows the common section [{COMMON_SECTION}], which must be last",
                source=self.source,
                line=self._line,
                iteration=number,
            )
        previous = self.iterations[-1].number
        if number != previous + 1:
            raise HeaderSequenceError(previous, number, source=self.source, line=self._line)
        self._open_iteration(number)

    def _open_iteration(self, number: int) -> None:
        self.iterations.append(Iteration(number=number))
        self._section_line = self._line
        self.expects = Expects.FIRST_ENTRY

    def _raise_empty_section(self) -> NoReturn:
        raise EmptySectionError(
            f"section [{self._scope()}] has no options",
            source=self.source,
            line=self._section_line,
            iteration=self._scope(),
        )

    # -------------------------------------------------------------------------
    # Options
    # -------------------------------------------------------------------------

    def _on_option(self, name: str, value: str) -> None:
        if self.expects is Expects.FIRST_HEADER:
            raise EntryOutsideSectionError(
                f"option '{name}' appears before the first section header",
                source=self.source,
                line=self._line,
            )
        if not value:
            raise MalformedLineError(
                f"option '{name}' has no value",
                source=self.source,
                line=self._line,
                iteration=self._scope(),
            )

        entry = self._make_entry(name, value)
        if self.reading is Reading.COMMON:
            added = name not in self._common_names
            if added:
                self._common_names.add(name)
                self.common.append(entry)
        else:
            added = self.iterations[-1].add(entry)
        if not added:
            raise DuplicateOptionError(
                f"option '{name}' is defined twice",
                source=self.source,
                line=self._line,
                iteration=self._scope(),
            )
        self.expects = Expects.ANY_LINE

    def _make_entry(self, name: str, value: str) -> Entry:
        match = _EXTRACTION_RE.match(value)
        if match is None:
            return Option(name=name, value=value)

        source_iteration = int(match.group("source"))
        if self.reading is Reading.COMMON:
            self._reject_extraction(name, "extractions are not allowed in the common section")
        current = self.iterations[-1].number
        if current == 1:
            self._reject_extraction(name, "the first iteration cannot extract values")
        if source_iteration < 1 or source_iteration >= current:
            self._reject_extraction(
                name,
                f"iteration {current} cannot extract a value from iteration {source_iteration}",
            )
        if name in self.mandatory:
            self._reject_extraction(name, f"mandatory option '{name}' cannot be extracted")
        return Extraction(name=name, source=source_iteration)

    def _reject_extraction(self, name: str, reason: str) -> NoReturn:
        raise InvalidExtractionError(
            f"{name}: {reason}",
            source=self.source,
            line=self._line,
            iteration=self._scope(),
        )

    def _scope(self) -> int | str | None:
        if self.reading is Reading.COMMON:
            return COMMON_SECTION
        if self.iterations:
            return self.iterations[-1].number
        return None


def parse_control_text(
    text: str,
    *,
    source: str = "<string>",
    mandatory: Iterable[str] = MANDATORY_OPTIONS,
) -> list[Iteration]:
    """Parse control file contents into validated iterations.

    Args:
        text: Control file contents.
        source: Name used in error messages.
        mandatory: Option names every iteration must define.

    Returns:
        Iterations numbered 1..N with the common overlay applied.

    Raises:
        ControlFileError: If the contents are malformed (a specific subclass).
    """
    parser = ControlFileParser(source, mandatory=mandatory)
    for raw_line in text.splitlines():
        parser.feed(raw_line)
    return parser.finish()


def parse_control_file(
    path: Path | str,
    *,
    mandatory: Iterable[str] = MANDATORY_OPTIONS,
) -> list[Iteration]:
    """Read and parse a control file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ControlFileError: If the file is malformed or not valid UTF-8.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Control file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ControlFileError(f"not valid UTF-8 ({exc.reason})", source=str(path)) from exc
    return parse_control_text(text, source=str(path), mandatory=mandatory)
