"""Core data types that flow through the pipeline.

Everything here is created fresh for a single pipeline invocation and
discarded once the caller has consumed the ``PipelineResult``. Nothing is
shared between invocations, so concurrent runs never see each other's state.
"""

from __future__ import annotations

import dataclasses
from types import MappingProxyType
import typing

from clinical_pipeline.core.exceptions import StageFailedError

# --- Minimal guard helpers ---


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


# --- Result monad ---
# Stage execution returns Success | Failure instead of raising, which keeps
# the orchestrator loop free of broad try/except blocks.

TSuccess = typing.TypeVar("TSuccess")
TFailure = typing.TypeVar("TFailure", bound=Exception)


@dataclasses.dataclass(frozen=True, slots=True)
class Success(typing.Generic[TSuccess]):
    """A successful result of one step."""

    value: TSuccess


@dataclasses.dataclass(frozen=True, slots=True)
class Failure(typing.Generic[TFailure]):
    """A failed step, containing the error."""

    error: TFailure


Result = Success[TSuccess] | Failure[TFailure]

# --- Stage-level data ---

ValidatedStageOutput = dict[str, typing.Any]


@dataclasses.dataclass(frozen=True, slots=True)
class RawStageOutput:
    """Unprocessed text returned by the provider for one stage call."""

    content: str
    trace_id: str | None = None

    def __post_init__(self) -> None:
        _require(
            condition=isinstance(self.content, str),
            message="must be str",
            field_name="content",
            exc=TypeError,
        )
        _require(
            condition=self.trace_id is None or isinstance(self.trace_id, str),
            message="must be str or None",
            field_name="trace_id",
            exc=TypeError,
        )


@dataclasses.dataclass(slots=True)
class PipelineMetadata:
    """Per-run bookkeeping. Grows monotonically as stages complete.

    ``trace_ids`` holds an entry for every declared stage (None until the
    provider returns one); ``stages_completed`` is always a prefix of the
    declared stage order.
    """

    trace_ids: dict[str, str | None] = dataclasses.field(default_factory=dict)
    stages_completed: list[str] = dataclasses.field(default_factory=list)
    stage_durations: dict[str, float] = dataclasses.field(default_factory=dict)
    execution_time_ms: float = 0.0

    @classmethod
    def for_stages(cls, stage_names: typing.Iterable[str]) -> PipelineMetadata:
        return cls(trace_ids=dict.fromkeys(stage_names))

    def record_trace(self, stage: str, trace_id: str | None) -> None:
        self.trace_ids[stage] = trace_id

    def record_duration(self, stage: str, duration_ms: float) -> None:
        self.stage_durations[stage] = duration_ms

    def mark_completed(self, stage: str) -> None:
        _require(
            condition=stage not in self.stages_completed,
            message=f"stage {stage!r} already completed",
            field_name="stages_completed",
        )
        self.stages_completed.append(stage)

    def to_dict(self) -> dict[str, typing.Any]:
        """Camel-cased shape consumed by existing front-end callers."""
        return {
            "traceIds": dict(self.trace_ids),
            "stagesCompleted": list(self.stages_completed),
            "executionTimeMs": round(self.execution_time_ms, 3),
            "stageDurations": {k: round(v, 3) for k, v in self.stage_durations.items()},
        }


# --- Pipeline results ---


@dataclasses.dataclass(frozen=True, slots=True)
class PipelineSuccess:
    """All stages completed and validated.

    ``outputs`` maps stage name to its validated output in pipeline order.
    ``report``, ``reasoning_trace`` and ``trace_data`` are the legacy
    flattened fields older callers read regardless of pipeline version.
    """

    version: str
    outputs: typing.Mapping[str, ValidatedStageOutput]
    metadata: PipelineMetadata
    report: str = ""
    reasoning_trace: str = ""
    trace_data: typing.Mapping[str, typing.Any] = dataclasses.field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        if not isinstance(self.outputs, MappingProxyType):
            object.__setattr__(self, "outputs", MappingProxyType(dict(self.outputs)))
        _require(
            condition=list(self.outputs) == self.metadata.stages_completed,
            message="must match metadata.stages_completed",
            field_name="outputs",
        )

    @property
    def success(self) -> bool:
        return True

    @property
    def final_trace_id(self) -> str | None:
        """Trace id of the last stage, the one support usually asks for."""
        if not self.metadata.stages_completed:
            return None
        return self.metadata.trace_ids.get(self.metadata.stages_completed[-1])

    def output(self, stage: str) -> ValidatedStageOutput:
        return self.outputs[stage]

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "success": True,
            "version": self.version,
            "outputs": {name: dict(out) for name, out in self.outputs.items()},
            "report": self.report,
            "reasoning_trace": self.reasoning_trace,
            "trace_data": dict(self.trace_data),
            "metadata": self.metadata.to_dict(),
        }


@dataclasses.dataclass(frozen=True, slots=True)
class PipelineFailure:
    """The run stopped at ``stage``. No output of that stage or later exists."""

    error: str
    stage: str
    trace_id: str | None
    metadata: PipelineMetadata
    error_kind: str = "transport"

    @property
    def success(self) -> bool:
        return False

    def raise_for_failure(self) -> typing.NoReturn:
        raise StageFailedError(self.error, self.stage, self.trace_id)

    def to_dict(self) -> dict[str, typing.Any]:
        return {
            "success": False,
            "error": self.error,
            "stage": self.stage,
            "trace_id": self.trace_id,
            "error_kind": self.error_kind,
            "metadata": self.metadata.to_dict(),
        }


PipelineResult = PipelineSuccess | PipelineFailure


def is_success(result: PipelineResult) -> typing.TypeGuard[PipelineSuccess]:
    return isinstance(result, PipelineSuccess)
