"""Failure detection table and the shared failure log."""

from __future__ import annotations

import re
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from ..errors import FailureSource

# Text the external program prints when it gives up, checked in order
FAILURE_PATTERNS: dict[str, re.Pattern[str]] = {
    "error": re.compile(r"^\s*Error\b.*", re.MULTILINE),
    "sequence_not_found": re.compile(r"Sequence.*?not found"),
    "species_unknown": re.compile(r"Species.*?\?"),
}


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """A known failure pattern found in captured output."""

    tag: str
    stream: str
    line: str


def scan_for_failures(streams: dict[str, bytes]) -> PatternMatch | None:
    """Return the first known failure pattern found in the captured streams.

    Args:
        streams: Captured output keyed by stream name (``stdout``, ``stderr``).

    Returns:
        The first match in table order, or None.
    """
    decoded = {name: data.decode("utf-8", errors="replace") for name, data in streams.items()}
    for tag, pattern in FAILURE_PATTERNS.items():
        for name, text in decoded.items():
            for line in text.splitlines():
                if pattern.search(line):
                    return PatternMatch(tag=tag, stream=name, line=line.strip())
    return None


@dataclass(frozen=True, slots=True)
class FailureRecord:
    """One failed iteration.

    Attributes:
        directory: Display name of the execution point.
        iteration: Iteration that failed.
        source: Side the failure is attributed to.
        message: Human-readable reason.
    """

    directory: str
    iteration: int
    source: FailureSource
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "directory": self.directory,
            "iteration": self.iteration,
            "source": self.source.value,
            "message": self.message,
        }


class FailureLog:
    """Append-only list of failures shared by all workers."""

    def __init__(self, lock: threading.Lock | None = None) -> None:
        self._lock = lock or threading.Lock()
        self._records: list[FailureRecord] = []

    def append(self, record: FailureRecord) -> None:
        with self._lock:
            self._records.append(record)

    def snapshot(self) -> list[FailureRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[FailureRecord]:
        return iter(self.snapshot())
