"""In-memory model of one iteration's run options.

An :class:`Iteration` keeps its entries in the order they were written in the
control file. That order is the order of the generated control file, so
resolving an :class:`Extraction` replaces it in place with an :class:`Option`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

# Options every iteration needs after the common overlay
SEQUENCE_FILE_OPTION = "seqfile"
TREE_FILE_OPTION = "treefile"
OUTPUT_FILE_OPTION = "outfile"

FILE_POINTER_OPTIONS: tuple[str, ...] = (SEQUENCE_FILE_OPTION, TREE_FILE_OPTION)
MANDATORY_OPTIONS: tuple[str, ...] = (*FILE_POINTER_OPTIONS, OUTPUT_FILE_OPTION)


@dataclass(frozen=True, slots=True)
class Option:
    """A concrete ``name = value`` run option."""

    name: str
    value: str


@dataclass(frozen=True, slots=True)
class Extraction:
    """A deferred option value read from an earlier iteration's output.

    Attributes:
        name: Option to fill; also selects the extraction rule.
        source: Iteration whose output file is searched.
    """

    name: str
    source: int


Entry = Option | Extraction


@dataclass(slots=True)
class Iteration:
    """One numbered set of run options.

    Attributes:
        number: Position of the iteration in the run sequence (1-based).
        entries: Options and pending extractions in written order.
    """

    number: int
    entries: list[Entry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __contains__(self, name: object) -> bool:
        return any(entry.name == name for entry in self.entries)

    @property
    def names(self) -> list[str]:
        return [entry.name for entry in self.entries]

    @property
    def options(self) -> list[Option]:
        """Concrete options, in written order."""
        return [entry for entry in self.entries if isinstance(entry, Option)]

    @property
    def extractions(self) -> list[Extraction]:
        """Extractions still waiting to be resolved."""
        return [entry for entry in self.entries if isinstance(entry, Extraction)]

    def get(self, name: str) -> Entry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def add(self, entry: Entry) -> bool:
        """Append an entry unless its name is already present.

        Returns:
            True if the entry was added, False if the name was taken.
        """
        if entry.name in self:
            return False
        self.entries.append(entry)
        return True

    def replace(self, name: str, entry: Entry) -> None:
        """Replace the entry called ``name`` keeping its position.

        Raises:
            KeyError: If no entry has that name.
        """
        for index, current in enumerate(self.entries):
            if current.name == name:
                self.entries[index] = entry
                return
        raise KeyError(name)

    def overlay(self, common: Iterable[Entry]) -> None:
        """Append common entries whose names this iteration does not define."""
        for entry in common:
            self.add(entry)

    def missing(self, required: Iterable[str]) -> list[str]:
        """Names from ``required`` that are not present as concrete options."""
        present = {option.name for option in self.options}
        return [name for name in required if name not in present]

    def clone(self) -> Iteration:
        """Return an independent copy.

        Entries are immutable, so copying the list is enough to keep value
        replacement on the copy invisible to the original.
        """
        return Iteration(number=self.number, entries=list(self.entries))


def clone_iterations(iterations: Iterable[Iteration]) -> list[Iteration]:
    return [iteration.clone() for iteration in iterations]
