"""Differential diagnosis produced by the two-stage ``diagnostic`` stage."""

from typing import Any, Literal

from pydantic import Field, field_validator

from .base import StageModel

Urgency = Literal["LOW", "MODERATE", "HIGH", "CRITICAL"]


class DifferentialItem(StageModel):
    condition: str = Field(min_length=1)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    rationale: str = ""


class DiagnosticAssessment(StageModel):
    diagnosis: str = Field(min_length=1)
    urgency: Urgency | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    differential: list[DifferentialItem] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
    recommended_workup: list[str] = Field(default_factory=list)
    summary: str = ""
    reasoning: str = ""

    @field_validator("urgency", mode="before")
    @classmethod
    def normalize_urgency(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper() or None
        return v
