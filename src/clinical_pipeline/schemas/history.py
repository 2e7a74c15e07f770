"""Extracted medical history, output of the four-stage ``extraction`` stage.

Every field is optional: the extraction prompt is told to omit anything the
notes do not state, so absence is normal and defaults to empty values.
"""

from typing import Any, Literal

from pydantic import ConfigDict, Field

from .base import StageModel


class Demographics(StageModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    age: str = ""
    sex: str = ""
    name: str = ""


class SocialHistory(StageModel):
    smoking: str = ""
    alcohol: str = ""
    occupation: str = ""


class HistoryVitals(StageModel):
    # Models frequently emit bare numbers for rates; keep them as strings.
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    blood_pressure: str = ""
    heart_rate: str = ""
    respiratory_rate: str = ""
    temperature: str = ""
    oxygen_saturation: str = ""


class LabResult(StageModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    name: str
    value: str
    unit: str = ""
    flag: Literal["normal", "high", "low", "critical"] | None = None


class ExtractedHistory(StageModel):
    """Structured history recovered from raw clinical notes (schema v1)."""

    demographics: Demographics = Field(default_factory=Demographics)
    chief_complaint: str = ""
    history_of_present_illness: str = ""
    past_medical_history: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    family_history: list[str] = Field(default_factory=list)
    social_history: SocialHistory = Field(default_factory=SocialHistory)
    vitals: HistoryVitals = Field(default_factory=HistoryVitals)
    labs: list[LabResult] = Field(default_factory=list)
    physical_exam: dict[str, str] = Field(default_factory=dict)


class FilteredFindings(StageModel):
    """History narrowed down to what matters for the chief complaint."""

    relevant_conditions: list[str] = Field(default_factory=list)
    relevant_medications: list[str] = Field(default_factory=list)
    relevant_labs: list[Any] = Field(default_factory=list)
    relevant_history: list[str] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)
    red_flags: list[str] = Field(default_factory=list)
