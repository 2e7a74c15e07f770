"""Complaint-focused clinical extraction (schema v2, two-stage pipeline).

This is a different schema from ``history.ExtractedHistory`` even though both
back a stage called ``extraction``; each pipeline version keeps its own.
"""

from typing import Literal

from pydantic import ConfigDict, Field

from .base import StageModel


class Complaint(StageModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    stated: str = ""
    onset: str | None = None
    severity: str | None = None
    character: str | None = None
    location: str | None = None
    radiation: str | None = None
    associated: list[str] = Field(default_factory=list)


class RelevantHistory(StageModel):
    relevant_conditions: list[str] = Field(default_factory=list)
    relevant_surgeries: list[str] = Field(default_factory=list)
    family: list[str] = Field(default_factory=list)


class Medication(StageModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    drug: str
    dose: str = ""
    freq: str = ""


class Allergy(StageModel):
    agent: str
    reaction: str | None = None


class Medications(StageModel):
    current: list[Medication] = Field(default_factory=list)
    allergies: list[Allergy] = Field(default_factory=list)


class Vitals(StageModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    bp: str | None = None
    hr: float | None = None
    rr: float | None = None
    temp: str | None = None
    spo2: str | None = None


class RedFlag(StageModel):
    flag: str
    severity: Literal["critical", "high", "moderate"] = "moderate"


class ClinicalExtraction(StageModel):
    complaint: Complaint = Field(default_factory=Complaint)
    history: RelevantHistory = Field(default_factory=RelevantHistory)
    meds: Medications = Field(default_factory=Medications)
    vitals: Vitals = Field(default_factory=Vitals)
    red_flags: list[RedFlag] = Field(default_factory=list)
    pertinent_negatives: list[str] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    confidence: Literal["high", "medium", "low"] = "low"
