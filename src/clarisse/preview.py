"""Dry-run description of what a run would execute."""

from __future__ import annotations

from collections.abc import Sequence

from .control.model import Extraction
from .execution.artifacts import MIN_NAME_WIDTH
from .execution.point import ExecutionPoint


def render_preview(
    points: Sequence[ExecutionPoint],
    queues: Sequence[Sequence[ExecutionPoint]],
    *,
    template: str | None = None,
    program: str = "codeml",
) -> str:
    """Describe resolved iterations per directory and the per-thread workload.

    Extractions are shown as placeholders because their values only exist
    once the source iteration has run.
    """
    n_iterations = len(points[0].iterations) if points else 0
    lines = [
        f"### {program} will be executed on {len(points)} directories, with {n_iterations} iterations each.",
        "### File patterns have been resolved against each directory:",
        "",
    ]
    for point in points:
        for iteration in point.iterations:
            width = max([MIN_NAME_WIDTH, *(len(name) for name in iteration.names)])
            lines.append(f"# Directory: {point.name} / Iteration: {iteration.number}")
            for entry in iteration:
                if isinstance(entry, Extraction):
                    value = f"[extract from results of iteration {entry.source}]"
                else:
                    value = entry.value
                lines.append(f"{entry.name.rjust(width)} = {value}")
            lines.append("")

    if template:
        lines.append("### The following template will be appended to each control file:")
        lines.append("")
        lines.extend(template.splitlines())
        lines.append("")

    if len(queues) > 1:
        lines.append(f"### Execution will be distributed among {len(queues)} threads:")
        lines.append("")
        for index, queue in enumerate(queues, start=1):
            lines.append(f"Thread {index}: " + ", ".join(point.name for point in queue))
    else:
        lines.append("### Execution will be performed on a single thread.")
    return "\n".join(lines) + "\n"
