"""Values that later iterations can take from an earlier iteration's output.

Each field name maps to one pattern. The first line of the output file that
matches decides the value; later matching lines are ignored.
"""

from __future__ import annotations

import re
from pathlib import Path

from ..errors import ExtractionNotFoundError, SourceOutputReadError, UnknownExtractionFieldError

EXTRACTION_RULES: dict[str, re.Pattern[str]] = {
    "kappa": re.compile(r"^\s*kappa \(ts/tv\)\s*=\s*(\S+)"),
    "omega": re.compile(r"^\s*omega \(dN/dS\)\s*=\s*(\S+)"),
    "alpha": re.compile(r"^\s*alpha \(gamma, K\s*=\s*\d+\)\s*=\s*(\S+)"),
}


def extraction_rule(field: str) -> re.Pattern[str]:
    """Return the pattern for ``field``.

    Raises:
        UnknownExtractionFieldError: If the field has no rule.
    """
    try:
        return EXTRACTION_RULES[field]
    except KeyError:
        raise UnknownExtractionFieldError(field, sorted(EXTRACTION_RULES)) from None


def extract_value(field: str, path: Path) -> str:
    """Read ``path`` line by line and return the first value captured for ``field``.

    Args:
        field: Extraction field name (a key of :data:`EXTRACTION_RULES`).
        path: Output file of the source iteration.

    Returns:
        The captured text.

    Raises:
        UnknownExtractionFieldError: If the field has no rule.
        SourceOutputReadError: If the file cannot be read.
        ExtractionNotFoundError: If no line matches.
    """
    pattern = extraction_rule(field)
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                match = pattern.search(line)
                if match:
                    return match.group(1)
    except OSError as exc:
        raise SourceOutputReadError(path, exc.strerror or str(exc)) from exc
    raise ExtractionNotFoundError(field, path)
