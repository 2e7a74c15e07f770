"""Exception hierarchy for the clinical reasoning pipeline.

Three error kinds can end a pipeline run: ``TransportError`` (the provider
call did not complete), ``ParseError`` (no JSON object could be recovered
from the model output) and ``ValidationError`` (an object was recovered but
does not fit the stage schema). The orchestrator turns each of them into a
``PipelineFailure`` value; everything else is a programming error and
propagates.
"""

from __future__ import annotations

PREVIEW_CHARS = 200


class ClinicalPipelineError(Exception):
    """Base exception for clinical pipeline errors."""


class ConfigurationError(ClinicalPipelineError):
    """Raised when the pipeline is misconfigured (missing key, stage id...)."""


class TransportError(ClinicalPipelineError):
    """Raised when a call to the prompt-execution provider fails.

    ``trace_id`` is set when the provider handed one back before failing.
    """

    def __init__(
        self,
        message: str,
        *,
        trace_id: str | None = None,
        stage_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.trace_id = trace_id
        self.stage_id = stage_id
        self.status_code = status_code


class ParseError(ClinicalPipelineError):
    """Raised when no JSON object can be recovered from raw model output."""

    def __init__(self, message: str, *, preview: str = "", cause: str = "") -> None:
        super().__init__(message)
        self.preview = preview
        self.cause = cause

    @classmethod
    def from_content(cls, content: str, cause: str) -> ParseError:
        preview = content[:PREVIEW_CHARS]
        suffix = "..." if len(content) > PREVIEW_CHARS else ""
        return cls(
            f"Failed to parse JSON: {cause}\nContent preview: {preview}{suffix}",
            preview=preview,
            cause=cause,
        )


class ValidationError(ClinicalPipelineError):
    """Raised when a recovered object does not match the stage schema."""

    def __init__(self, message: str, *, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class StageFailedError(ClinicalPipelineError):
    """A stage failure surfaced as an exception instead of a result value."""

    def __init__(
        self,
        message: str,
        stage: str,
        trace_id: str | None = None,
        underlying: ClinicalPipelineError | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.trace_id = trace_id
        self.underlying = underlying


# Error kinds that end a run with a PipelineFailure
STAGE_ERRORS: tuple[type[ClinicalPipelineError], ...] = (
    TransportError,
    ParseError,
    ValidationError,
)


def error_kind(error: BaseException) -> str:
    """Return the short kind label used in logs and telemetry."""
    if isinstance(error, TransportError):
        return "transport"
    if isinstance(error, ParseError):
        return "parse"
    if isinstance(error, ValidationError):
        return "validation"
    return "internal"
