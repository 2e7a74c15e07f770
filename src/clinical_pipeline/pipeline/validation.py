"""Schema validation for recovered stage output.

Validation is structural: required fields, types, array element shape and
numeric ranges. Optional fields missing from the input are filled with the
schema default; fields the schema does not declare pass through unchanged.
"""

from __future__ import annotations

import logging
from typing import Any

import pydantic

from clinical_pipeline.core.exceptions import ValidationError
from clinical_pipeline.schemas.base import StageModel

log = logging.getLogger(__name__)


def _format_errors(exc: pydantic.ValidationError) -> list[str]:
    messages = []
    for err in exc.errors(include_url=False):
        loc = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
        messages.append(f"{loc}: {err.get('msg', 'invalid')}")
    return messages


def validate_stage_output(
    data: Any, schema: type[StageModel], *, stage: str | None = None
) -> dict[str, Any]:
    """Validate ``data`` against ``schema`` and return a plain dict.

    Raises:
        ValidationError: when required fields are absent, mistyped or out of
            range, or when ``data`` is not an object at all.
    """
    label = stage or schema.__name__
    if not isinstance(data, dict):
        raise ValidationError(
            f"{label}: expected a JSON object, got {type(data).__name__}",
            errors=[f"<root>: expected object, got {type(data).__name__}"],
        )
    try:
        model = schema.model_validate(data)
    except pydantic.ValidationError as e:
        errors = _format_errors(e)
        log.debug("Schema %s rejected output: %s", schema.__name__, errors)
        raise ValidationError(
            f"{label} output failed schema validation: {'; '.join(errors)}",
            errors=errors,
        ) from e
    return model.model_dump(mode="json")
