"""Caller-facing actions with input validation and flattened results.

These wrap ``run_pipeline`` for front ends that expect plain dicts:
``analyze_patient`` returns the compact legacy shape,
``analyze_patient_with_full_trace`` the full result with every stage output.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from clinical_pipeline.core.exceptions import ClinicalPipelineError
from clinical_pipeline.frontdoor import run_pipeline

if TYPE_CHECKING:
    from collections.abc import Mapping

    from clinical_pipeline.config import FrozenConfig
    from clinical_pipeline.pipeline.base import StageInvoker

log = logging.getLogger(__name__)

MIN_NOTES_CHARS = 10
MIN_COMPLAINT_CHARS = 3


class AnalyzeInput(BaseModel):
    """Validated action input. Accepts snake_case or camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    raw_notes: str
    chief_complaint: str

    @field_validator("raw_notes")
    @classmethod
    def notes_long_enough(cls, v: str) -> str:
        if len(v) < MIN_NOTES_CHARS:
            raise PydanticCustomError(
                "too_short", f"Notes must be at least {MIN_NOTES_CHARS} characters"
            )
        return v

    @field_validator("chief_complaint")
    @classmethod
    def complaint_long_enough(cls, v: str) -> str:
        if len(v) < MIN_COMPLAINT_CHARS:
            raise PydanticCustomError(
                "too_short",
                f"Complaint must be at least {MIN_COMPLAINT_CHARS} characters",
            )
        return v


def _field_errors(exc: PydanticValidationError) -> list[tuple[str, str]]:
    return [
        (".".join(str(p) for p in err["loc"]), err["msg"])
        for err in exc.errors(include_url=False)
    ]


def _validation_failure(exc: PydanticValidationError) -> dict[str, Any]:
    messages = ", ".join(msg for _, msg in _field_errors(exc))
    return {
        "success": False,
        "error": f"Validation error: {messages}",
        "stage": "validation",
        "trace_id": None,
    }


def validate_analyze_input(
    data: Mapping[str, Any],
) -> tuple[Literal[True], AnalyzeInput] | tuple[Literal[False], list[str]]:
    """Validate action input without running anything.

    Returns ``(True, AnalyzeInput)`` or ``(False, ["field: message", ...])``.
    """
    try:
        return True, AnalyzeInput.model_validate(data)
    except PydanticValidationError as e:
        return False, [f"{loc}: {msg}" for loc, msg in _field_errors(e)]


async def analyze_patient(
    raw_notes: str,
    chief_complaint: str,
    *,
    config: FrozenConfig | None = None,
    invoker: StageInvoker | None = None,
) -> dict[str, Any]:
    """Run the pipeline and return the compact legacy result.

    Success: ``{success, report, reasoning_trace, trace_id,
    execution_time_ms}`` where ``trace_id`` belongs to the final stage.
    Failure: ``{success, error, stage, trace_id}``.
    """
    try:
        data = AnalyzeInput(raw_notes=raw_notes, chief_complaint=chief_complaint)
    except PydanticValidationError as e:
        return _validation_failure(e)

    try:
        result = await run_pipeline(
            data.raw_notes, data.chief_complaint, config=config, invoker=invoker
        )
    except ClinicalPipelineError as e:
        log.error("Pipeline could not start: %s", e)
        return {"success": False, "error": str(e), "stage": None, "trace_id": None}

    if result.success:
        return {
            "success": True,
            "report": result.report,
            "reasoning_trace": result.reasoning_trace,
            "trace_id": result.final_trace_id,
            "execution_time_ms": result.metadata.execution_time_ms,
        }
    return {
        "success": False,
        "error": result.error,
        "stage": result.stage,
        "trace_id": result.trace_id,
    }


async def analyze_patient_with_full_trace(
    raw_notes: str,
    chief_complaint: str,
    *,
    config: FrozenConfig | None = None,
    invoker: StageInvoker | None = None,
) -> dict[str, Any]:
    """Run the pipeline and return ``PipelineResult.to_dict()``."""
    try:
        data = AnalyzeInput(raw_notes=raw_notes, chief_complaint=chief_complaint)
    except PydanticValidationError as e:
        return _validation_failure(e)
    result = await run_pipeline(
        data.raw_notes, data.chief_complaint, config=config, invoker=invoker
    )
    return result.to_dict()
