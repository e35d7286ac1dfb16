"""Base Pydantic models for tests, results and settings.

This module defines the foundational model classes shared by request
definitions, recorded results and runtime configuration.
"""

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for request definitions and results.

    Design principles enforced by this model:
        - Immutability: definitions and recorded results can not be
          modified after creation. Updated results are produced with
          `model_copy(update=...)`.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos in request files.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    Settings are resolved from keyword arguments and environment
    variables. Unknown variables are ignored so that the surrounding
    environment can contain unrelated values.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
