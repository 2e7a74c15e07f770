"""The pipeline orchestrator: the only stateful coordinator in a run.

Stages run strictly in order. Each stage's validated output becomes a
template variable of the next stage, so the first failure ends the run:
a malformed intermediate cannot be repaired by continuing. All per-run state
(metadata, outputs) lives in locals of ``run``; the orchestrator itself is
reusable and safe to share between concurrent runs.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
from time import perf_counter
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from clinical_pipeline.core.exceptions import (
    PREVIEW_CHARS,
    STAGE_ERRORS,
    ConfigurationError,
    StageFailedError,
    TransportError,
    error_kind,
)
from clinical_pipeline.core.types import (
    Failure,
    PipelineFailure,
    PipelineMetadata,
    PipelineResult,
    Result,
    Success,
    ValidatedStageOutput,
)
from clinical_pipeline.pipeline.assembler import ResultAssembler
from clinical_pipeline.pipeline.recovery import StructuredOutputRecoverer
from clinical_pipeline.pipeline.stages import COMPLAINT, RAW_NOTES
from clinical_pipeline.pipeline.validation import validate_stage_output
from clinical_pipeline.pipeline.variables import serialize_variables
from clinical_pipeline.telemetry import TelemetryContext

if TYPE_CHECKING:
    from clinical_pipeline.pipeline.base import StageInvoker
    from clinical_pipeline.pipeline.stages import PipelineVersion, StageSpec
    from clinical_pipeline.telemetry import TelemetryContextProtocol

log = logging.getLogger(__name__)

StageResult = Result[tuple[ValidatedStageOutput, str | None], StageFailedError]


def _elapsed_ms(start: float) -> float:
    return (perf_counter() - start) * 1000.0


class PipelineOrchestrator:
    """Runs one pipeline version against an injected invoker.

    Args:
        version: The ``PipelineVersion`` whose stages to run.
        invoker: Anything satisfying ``StageInvoker``.
        stage_ids: Stage name to remote prompt id; merged over the version's
            defaults.
        recoverer: JSON recovery chain for ``json`` stages.
        telemetry: Telemetry context; no-op by default.
        log_raw_content: Log each stage's full raw content at DEBUG instead
            of a preview.

    Raises:
        ConfigurationError: If any stage is left without a non-empty id.
    """

    def __init__(
        self,
        version: PipelineVersion,
        invoker: StageInvoker,
        stage_ids: Mapping[str, str] | None = None,
        *,
        recoverer: StructuredOutputRecoverer | None = None,
        telemetry: TelemetryContextProtocol | None = None,
        log_raw_content: bool = False,
    ) -> None:
        merged = {**version.default_stage_ids, **(stage_ids or {})}
        missing = [name for name in version.stage_names if not merged.get(name)]
        if missing:
            raise ConfigurationError(
                f"Pipeline version {version.name!r} has no prompt id for "
                f"stage(s): {', '.join(missing)}"
            )
        self.version = version
        self.invoker = invoker
        self.stage_ids: Mapping[str, str] = MappingProxyType(
            {name: merged[name] for name in version.stage_names}
        )
        self._recoverer = recoverer or StructuredOutputRecoverer()
        self._assembler = ResultAssembler(version)
        self._telemetry = telemetry or TelemetryContext()
        self.log_raw_content = log_raw_content

    @property
    def stage_names(self) -> tuple[str, ...]:
        return self.version.stage_names

    async def run(self, raw_notes: str, focus_query: str) -> PipelineResult:
        """Run every stage in order and return exactly one result variant.

        Args:
            raw_notes: Unstructured clinical text.
            focus_query: The chief complaint or question steering the run.

        Returns:
            ``PipelineSuccess`` with every stage's output, or
            ``PipelineFailure`` naming the first stage that failed.
        """
        ctx = self._telemetry
        metadata = PipelineMetadata.for_stages(self.stage_names)
        outputs: dict[str, ValidatedStageOutput] = {}
        caller_inputs = {RAW_NOTES: raw_notes, COMPLAINT: focus_query}
        carried: Any = None
        run_start = perf_counter()

        log.info(
            "Starting %s pipeline (%d stages)", self.version.name, len(self.stage_names)
        )
        with ctx("pipeline.run", version=self.version.name):
            for spec in self.version.stages:
                variables = {name: caller_inputs[name] for name in spec.inputs}
                if spec.carry_as is not None:
                    variables[spec.carry_as] = carried

                with ctx("pipeline.stage", stage=spec.name):
                    stage_start = perf_counter()
                    result = await self._run_stage(spec, serialize_variables(variables))
                    metadata.record_duration(spec.name, _elapsed_ms(stage_start))

                if isinstance(result, Failure):
                    error = result.error
                    metadata.record_trace(spec.name, error.trace_id)
                    metadata.execution_time_ms = _elapsed_ms(run_start)
                    kind = error_kind(error.underlying or error)
                    ctx.count("pipeline.error", stage=spec.name, kind=kind)
                    log.warning(
                        "Stage %s failed (%s, trace_id=%s): %s",
                        spec.name,
                        kind,
                        error.trace_id,
                        error,
                    )
                    return PipelineFailure(
                        error=str(error),
                        stage=spec.name,
                        trace_id=error.trace_id,
                        metadata=metadata,
                        error_kind=kind,
                    )

                output, trace_id = result.value
                metadata.record_trace(spec.name, trace_id)
                metadata.mark_completed(spec.name)
                outputs[spec.name] = output
                carried = output["text"] if spec.output_format == "text" else output
                log.info(
                    "Stage %s completed in %.1f ms (trace_id=%s)",
                    spec.name,
                    metadata.stage_durations[spec.name],
                    trace_id,
                )

        metadata.execution_time_ms = _elapsed_ms(run_start)
        ctx.count("pipeline.success", version=self.version.name)
        log.info(
            "Pipeline %s completed in %.1f ms",
            self.version.name,
            metadata.execution_time_ms,
        )
        return self._assembler.assemble(outputs, metadata)

    async def run_stage(
        self, stage_name: str, variables: Mapping[str, Any]
    ) -> tuple[ValidatedStageOutput, str | None]:
        """Run a single stage in isolation.

        Useful for debugging one prompt against hand-written variables.

        Raises:
            ConfigurationError: If ``stage_name`` is not part of this version.
            StageFailedError: If the call, recovery or validation fails.
        """
        try:
            spec = self.version.stage(stage_name)
        except KeyError:
            raise ConfigurationError(
                f"Unknown stage {stage_name!r} for version {self.version.name!r}. "
                f"Available: {list(self.stage_names)}"
            ) from None
        result = await self._run_stage(spec, serialize_variables(variables))
        if isinstance(result, Failure):
            raise result.error
        return result.value

    async def _run_stage(
        self, spec: StageSpec, variables: Mapping[str, str]
    ) -> StageResult:
        """Invoke, recover and validate one stage.

        Only the stage error kinds are converted to ``Failure``; anything else
        is a programming error and propagates.
        """
        stage_id = self.stage_ids[spec.name]
        log.debug("Stage %s invoking prompt %s", spec.name, stage_id)
        try:
            raw = await self.invoker.invoke(stage_id, variables)
        except TransportError as e:
            return Failure(
                StageFailedError(
                    f"{spec.display_name} failed: {e}",
                    spec.name,
                    trace_id=e.trace_id,
                    underlying=e,
                )
            )

        log.debug(
            "Stage %s raw content (trace_id=%s): %s",
            spec.name,
            raw.trace_id,
            raw.content if self.log_raw_content else raw.content[:PREVIEW_CHARS],
        )
        try:
            if spec.output_format == "text":
                data: Any = {"text": raw.content}
            else:
                data = self._recoverer.recover(raw.content)
            output = validate_stage_output(data, spec.schema, stage=spec.name)
        except STAGE_ERRORS as e:
            return Failure(
                StageFailedError(
                    f"{spec.display_name} failed: {e}",
                    spec.name,
                    trace_id=raw.trace_id,
                    underlying=e,
                )
            )
        return Success((output, raw.trace_id))
