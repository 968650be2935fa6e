"""Control file grammar and iteration model."""

from .model import (
    FILE_POINTER_OPTIONS,
    MANDATORY_OPTIONS,
    OUTPUT_FILE_OPTION,
    Entry,
    Extraction,
    Iteration,
    Option,
    clone_iterations,
)
from .parser import ControlFileParser, parse_control_file, parse_control_text

__all__ = [
    "FILE_POINTER_OPTIONS",
    "MANDATORY_OPTIONS",
    "OUTPUT_FILE_OPTION",
    "ControlFileParser",
    "Entry",
    "Extraction",
    "Iteration",
    "Option",
    "clone_iterations",
    "parse_control_file",
    "parse_control_text",
]
