"""Files generated inside an execution point's artifacts directory.

For iteration ``n`` the artifacts directory holds ``n.ctl`` (the generated
control file passed to the program) and, when the program wrote anything,
``n.stdout`` and ``n.stderr``.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from pathlib import Path

from ..control.model import Option

DEFAULT_ARTIFACTS_DIRNAME = "_clarisse"
CONTROL_SUFFIX = ".ctl"
STDOUT_SUFFIX = ".stdout"
STDERR_SUFFIX = ".stderr"

# Option names are right-aligned to at least this many columns
MIN_NAME_WIDTH = 13


def control_file_path(artifacts_dir: Path, iteration: int) -> Path:
    return artifacts_dir / f"{iteration}{CONTROL_SUFFIX}"


def stream_file_path(artifacts_dir: Path, iteration: int, stream: str) -> Path:
    suffix = STDOUT_SUFFIX if stream == "stdout" else STDERR_SUFFIX
    return artifacts_dir / f"{iteration}{suffix}"


class FormatWidth:
    """Column width for option names, shared across iterations and threads.

    The width only grows: it is the widest name seen so far, and never less
    than :data:`MIN_NAME_WIDTH`.
    """

    def __init__(self, lock: threading.Lock | None = None, minimum: int = MIN_NAME_WIDTH) -> None:
        self._lock = lock or threading.Lock()
        self._width = minimum

    @property
    def value(self) -> int:
        with self._lock:
            return self._width

    def widen(self, names: Iterable[str]) -> int:
        """Grow the width to fit ``names`` and return the new width."""
        longest = max((len(name) for name in names), default=0)
        with self._lock:
            if longest > self._width:
                self._width = longest
            return self._width


def format_option(option: Option, width: int) -> str:
    return f"{option.name.rjust(width)} = {option.value}"


def render_control_file(options: Iterable[Option], width: int, template: str | None = None) -> str:
    """Render options as control file text, with ``template`` appended verbatim."""
    text = "".join(format_option(option, width) + "\n" for option in options)
    if template:
        text += template
    return text


def write_stream(artifacts_dir: Path, iteration: int, stream: str, data: bytes) -> Path | None:
    """Persist captured output; nothing is written for an empty stream.

    A file left over from an earlier run is removed when the stream is empty.
    """
    path = stream_file_path(artifacts_dir, iteration, stream)
    if not data:
        path.unlink(missing_ok=True)
        return None
    path.write_bytes(data)
    return path
