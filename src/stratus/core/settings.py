"""Environment-driven settings for stratus.

Every value here can be set with a ``STRATUS_`` prefixed environment
variable or a ``.env`` file. Command line flags override settings, and
settings override the defaults below.

Examples:
    >>> import os
    >>> os.environ["STRATUS_S3_BUCKET"] = "artifacts"
    >>> StratusSettings().s3_bucket
    'artifacts'

Tags:
    settings, configuration, pydantic, environment, stratus
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_FORMATS = {"text", "json", "auto"}


class StratusSettings(BaseSettings):
    """Settings shared by the CLI and the workflow engine.

    Fields
    ──────
    log_level    : Structlog log level
    log_format   : text | json | auto (auto = JSON when stdout is not a TTY)
    s3_bucket    : Artifact bucket for archives and templates
    aws_region   : Region override for the boto3 session
    aws_profile  : Named profile for the boto3 session
    build_tags   : Extra build tags appended after the fixed ones
    linker_flags : Extra linker flags passed to the compiler
    runtime      : Function runtime the shim targets
    work_dir     : Scratch directory for binaries and archives
    template_out : Optional path receiving the pretty-printed template
    """

    model_config = SettingsConfigDict(
        env_prefix="STRATUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "auto"

    # ── AWS ──────────────────────────────────────────────────────
    s3_bucket: str | None = None
    aws_region: str | None = None
    aws_profile: str | None = None

    # ── Build ────────────────────────────────────────────────────
    build_tags: str = ""
    linker_flags: str = ""
    runtime: str = "nodejs18.x"
    work_dir: Path = Field(
        default_factory=lambda: Path(".stratus"),
        description="Scratch directory for build outputs",
    )
    template_out: Path | None = None

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in _LOG_FORMATS:
            raise ValueError(f"log_format must be one of {sorted(_LOG_FORMATS)}")
        return value

    @property
    def json_logs(self) -> bool | None:
        """Map ``log_format`` onto ``configure_logging(json_format=...)``."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


def get_settings() -> StratusSettings:
    """Load settings from the current environment."""
    return StratusSettings()
