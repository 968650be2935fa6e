"""Run settings.

Settings come from defaults, an optional YAML or JSON settings file, and
command-line flags, in increasing order of precedence. They are validated by
the strict :class:`RunConfig` model::

    # clarisse.yaml
    threads: 4
    min_duration_sec: 5
    program: codeml
    template: template.ctl

``min_duration_sec`` is the too-fast heuristic: an iteration whose program run
takes less time than this is reported as failed, because the program most
likely stopped before doing any work. Set it to 0 to disable the check.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import RunConfigError
from .execution.artifacts import DEFAULT_ARTIFACTS_DIRNAME
from .execution.program import DEFAULT_PROGRAM
from .execution.runner import DEFAULT_MIN_DURATION_SEC


class RunConfig(BaseModel):
    """Validated settings for one Clarisse run."""

    model_config = ConfigDict(extra="forbid")

    threads: int = Field(1, ge=1, description="Number of worker threads")
    min_duration_sec: float = Field(
        DEFAULT_MIN_DURATION_SEC,
        ge=0,
        description="Program runs shorter than this are treated as failures",
    )
    program: str = Field(DEFAULT_PROGRAM, min_length=1, description="External program to invoke")
    template: Path | None = Field(None, description="File appended to every generated control file")
    artifacts_dirname: str = Field(
        DEFAULT_ARTIFACTS_DIRNAME,
        min_length=1,
        pattern=r"^[^/\\]+$",
        description="Sub-directory of each target directory that receives generated files",
    )
    verbose: bool = False

    def read_template(self) -> str | None:
        """Return the template contents, or None when no template is configured.

        Raises:
            RunConfigError: If the template cannot be read.
        """
        if self.template is None:
            return None
        try:
            return self.template.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RunConfigError(f"Failed to read template file {self.template}: {exc}") from exc

    def with_overrides(self, **overrides: Any) -> RunConfig:
        """Return a copy with every non-None override applied and re-validated."""
        data = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return load_run_config_data(data)


def load_run_config_data(data: dict[str, Any]) -> RunConfig:
    """Validate settings from a mapping.

    Raises:
        RunConfigError: If the data does not match :class:`RunConfig`.
    """
    try:
        return RunConfig.model_validate(data)
    except ValidationError as exc:
        raise RunConfigError(f"Invalid settings: {exc}") from exc


def load_run_config(path: Path | str | None = None) -> RunConfig:
    """Load settings from a YAML (.yaml, .yml) or JSON (.json) file.

    Args:
        path: Settings file; None returns the defaults.

    Raises:
        FileNotFoundError: If the file does not exist.
        RunConfigError: If the file cannot be parsed or fails validation.
    """
    if path is None:
        return RunConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise RunConfigError(f"Invalid syntax in {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RunConfigError(f"Settings file must contain a mapping, got {type(data).__name__}")

    config = load_run_config_data(data)
    if config.template is not None and not config.template.is_absolute():
        # Template paths in a settings file are relative to that file
        config = config.model_copy(update={"template": path.parent / config.template})
    return config
