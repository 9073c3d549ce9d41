"""Base Pydantic models for workflow records.

This module defines the foundational model classes used by every record
produced by the workflow: interface declarations, scenarios, assertions,
coverage gaps and configuration documents. Records are immutable and
strictly validated so that re-running a stage on unchanged inputs is
guaranteed to produce identical results.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for all workflow records.

    Design principles enforced by this model:
        - Immutability: records cannot be modified after creation.
          Stages derive new records with `model_copy(update=...)`.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos in configuration.

    All record models must inherit from this class.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class DescribedMixin(SchemaModel):
    """Mixin providing record self-documentation.

    The fields defined in this model do not affect generation semantics
    and are used purely for reporting and rendering.
    """

    title: str | None = Field(
        default=None,
        title='Title',
        description='Short human-readable title of the element.',
        json_schema_extra={
            'x-ref': 'DescribedModelTitle',
        },
    )

    description: str | None = Field(
        default=None,
        title='Description',
        description='Detailed human-readable description of the element.',
        json_schema_extra={
            'x-ref': 'DescribedModelDescription',
        },
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    Design principles enforced by this model:
        - Immutability: resolved settings cannot be modified after creation.
        - Tolerant schema handling: unknown or extra fields are ignored,
          so unrelated environment variables never break resolution.

    All runtime settings models must inherit from this class.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
