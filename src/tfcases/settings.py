"""Runtime settings resolved from the environment."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from tfcases.models import SettingsModel

type LogLevel = Literal['DEBUG', 'INFO', 'WARNING', 'ERROR']


class Settings(SettingsModel):
    """Runtime settings, read from `TFCASES_*` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix='TFCASES_',
    )

    terraform: str = Field(
        default='terraform',
        title='Terraform binary',
        description='Name or path of the Terraform executable.',
    )

    timeout: float = Field(
        default=300.0,
        gt=0,
        title='Command timeout',
        description='Timeout of a single Terraform command, in seconds.',
    )

    strict: bool = Field(
        default=False,
        title='Strict mode',
        description='Fail on unacknowledged coverage gaps and plugin issues.',
    )

    workdir: Path | None = Field(
        default=None,
        title='Working area',
        description='Directory receiving the module copy; a temporary one when unset.',
    )

    log_level: LogLevel = Field(
        default='WARNING',
        title='Log level',
    )
