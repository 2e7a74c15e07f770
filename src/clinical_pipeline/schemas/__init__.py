"""Pydantic schemas for the structured output of each pipeline stage."""

from .base import StageModel, TextOutput
from .diagnostic import DiagnosticAssessment, DifferentialItem
from .extraction import ClinicalExtraction
from .history import ExtractedHistory, FilteredFindings

__all__ = [
    "ClinicalExtraction",
    "DiagnosticAssessment",
    "DifferentialItem",
    "ExtractedHistory",
    "FilteredFindings",
    "StageModel",
    "TextOutput",
]
