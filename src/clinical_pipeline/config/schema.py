"""Configuration schema and validation using Pydantic.

Validates and coerces values from the environment (``CLINICAL_PIPELINE_``
prefix), an optional .env file and programmatic overrides into the
correct types with defaults.
"""

from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://api.keywordsai.co/api/"


class PipelineSettings(BaseSettings):
    """Pydantic settings schema for the clinical pipeline."""

    model_config = SettingsConfigDict(
        env_prefix="CLINICAL_PIPELINE_",
        env_file=None,  # Only used when explicitly requested
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # --- Gateway ---

    # The prefixed variable wins; KEYWORDSAI_API_KEY is read from the
    # environment and from .env alike.
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "clinical_pipeline_api_key", "keywordsai_api_key"
        ),
        description="Prompt gateway API key",
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL of the managed-prompt gateway",
        min_length=1,
    )

    model: str = Field(
        default="gpt-4o",
        description="Model the gateway should run managed prompts with",
        min_length=1,
    )

    temperature: float | None = Field(default=None, ge=0.0, le=2.0)

    max_tokens: int | None = Field(default=None, ge=1)

    timeout_seconds: float = Field(default=60.0, gt=0.0)

    # --- Pipeline ---

    pipeline_version: str = Field(
        default="four_stage",
        description="Name of a registered pipeline version",
        min_length=1,
    )

    prompt_ids: dict[str, str] = Field(
        default_factory=dict,
        description="Stage name -> managed prompt id, merged over version defaults",
    )

    lenient_recovery: bool = Field(
        default=False,
        description="Also try trailing-comma repair when recovering JSON",
    )

    debug: bool = False

    @field_validator("pipeline_version", mode="before")
    @classmethod
    def normalize_version(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    @field_validator("prompt_ids")
    @classmethod
    def strip_prompt_ids(cls, v: dict[str, str]) -> dict[str, str]:
        return {k.strip(): val.strip() for k, val in v.items()}
