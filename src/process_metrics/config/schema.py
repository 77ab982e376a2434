"""Configuration schema. Defaults write ``.met`` files under ./metrics."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MetricsConfig(BaseModel):
    """Where metric files live and how reads treat malformed lines.

    Instances are frozen: a repository keeps the config it was built with.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    output_path: str = Field(
        "metrics",
        description="Directory holding one .met file per process model. Relative paths resolve against the cwd.",
    )
    log_output_path: Optional[str] = Field(
        None,
        description="Directory for the CLI's process-metrics.log. No log file is written when unset.",
    )
    on_malformed_line: Literal["fail", "skip"] = Field(
        "fail",
        description=(
            "'fail' (default): the first line that cannot be decoded aborts the read. "
            "'skip': the line is dropped and reported as a warning; the other records are returned."
        ),
    )

    @field_validator("output_path")
    @classmethod
    def _output_path_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("output_path must not be empty")
        return value

    def resolved_output_path(self) -> Path:
        return Path.cwd() / Path(self.output_path).expanduser()


DEFAULT_CONFIG = MetricsConfig()
