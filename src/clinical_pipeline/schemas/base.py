"""Shared base model for stage output schemas.

Stage schemas are structural only. Unknown fields are kept so that output
emitted for a newer prompt version survives validation by an older schema.
"""

from pydantic import BaseModel, ConfigDict, field_validator


class StageModel(BaseModel):
    """Base for every stage schema and its nested objects."""

    model_config = ConfigDict(extra="allow")


class TextOutput(StageModel):
    """Output of a free-text stage (reasoning prose, final report)."""

    text: str

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be empty")
        return v
