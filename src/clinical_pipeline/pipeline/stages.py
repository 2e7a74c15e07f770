"""Versioned stage definitions.

A pipeline version is an ordered tuple of ``StageSpec`` plus the aliases the
result assembler uses to project that version's outputs onto the stable
external result shape. Orchestration logic is shared by every version; only
this data differs.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

from clinical_pipeline.core.exceptions import ConfigurationError
from clinical_pipeline.schemas import (
    ClinicalExtraction,
    DiagnosticAssessment,
    ExtractedHistory,
    FilteredFindings,
    StageModel,
    TextOutput,
)

# Names of the caller inputs available to every stage
RAW_NOTES = "raw_notes"
COMPLAINT = "complaint"
CALLER_INPUTS = (RAW_NOTES, COMPLAINT)

OutputFormat = Literal["json", "text"]


@dataclass(frozen=True, slots=True)
class StageSpec:
    """One pipeline stage.

    Attributes:
        name: Stable stage name used in metadata and results.
        display_name: Human label used in failure messages.
        inputs: Caller inputs (``raw_notes``, ``complaint``) the stage takes.
        carry_as: Variable name under which the previous stage's validated
            output is passed; None only for the first stage.
        schema: Pydantic schema the output must satisfy.
        output_format: ``json`` output goes through recovery and validation;
            ``text`` output is validated as ``{"text": content}``.
    """

    name: str
    display_name: str
    schema: type[StageModel]
    inputs: tuple[str, ...] = ()
    carry_as: str | None = None
    output_format: OutputFormat = "json"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("StageSpec.name must be non-empty")
        unknown = set(self.inputs) - set(CALLER_INPUTS)
        if unknown:
            raise ValueError(f"StageSpec {self.name!r}: unknown inputs {sorted(unknown)}")
        if self.output_format == "text" and self.schema is not TextOutput:
            raise ValueError(f"StageSpec {self.name!r}: text stages use TextOutput")

    @property
    def variable_names(self) -> tuple[str, ...]:
        if self.carry_as is None:
            return self.inputs
        return (*self.inputs, self.carry_as)


@dataclass(frozen=True, slots=True)
class FieldAlias:
    """Points a legacy result field at ``outputs[stage][field]``.

    ``field=None`` selects the whole validated output.
    """

    stage: str
    field: str | None = None


@dataclass(frozen=True, slots=True)
class PipelineVersion:
    name: str
    stages: tuple[StageSpec, ...]
    default_stage_ids: Mapping[str, str] = field(default_factory=dict)
    report: FieldAlias | None = None
    reasoning_trace: FieldAlias | None = None
    trace_data: Mapping[str, FieldAlias] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.stages:
            raise ValueError(f"Pipeline version {self.name!r} has no stages")
        names = [s.name for s in self.stages]
        if len(set(names)) != len(names):
            raise ValueError(f"Pipeline version {self.name!r} repeats a stage name")
        if self.stages[0].carry_as is not None:
            raise ValueError("The first stage has no previous output to carry")
        for spec in self.stages[1:]:
            if spec.carry_as is None:
                raise ValueError(
                    f"Stage {spec.name!r} must declare carry_as for the previous output"
                )
        aliases = [a for a in (self.report, self.reasoning_trace) if a is not None]
        for alias in (*aliases, *self.trace_data.values()):
            if alias.stage not in names:
                raise ValueError(f"Alias refers to unknown stage {alias.stage!r}")
        object.__setattr__(
            self, "default_stage_ids", MappingProxyType(dict(self.default_stage_ids))
        )
        object.__setattr__(self, "trace_data", MappingProxyType(dict(self.trace_data)))

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(s.name for s in self.stages)

    def stage(self, name: str) -> StageSpec:
        for spec in self.stages:
            if spec.name == name:
                return spec
        raise KeyError(name)


FOUR_STAGE = PipelineVersion(
    name="four_stage",
    stages=(
        StageSpec(
            name="extraction",
            display_name="History Extraction",
            schema=ExtractedHistory,
            inputs=(RAW_NOTES,),
        ),
        StageSpec(
            name="filtering",
            display_name="Relevance Filtering",
            schema=FilteredFindings,
            inputs=(COMPLAINT,),
            carry_as="history_json",
        ),
        StageSpec(
            name="reasoning",
            display_name="Clinical Reasoning",
            schema=TextOutput,
            inputs=(COMPLAINT,),
            carry_as="filtered_data",
            output_format="text",
        ),
        StageSpec(
            name="synthesis",
            display_name="Synthesis",
            schema=TextOutput,
            carry_as="reasoning_chain",
            output_format="text",
        ),
    ),
    default_stage_ids={
        "extraction": "880547ac767343f88b93cbb1855a3eba",
        "filtering": "9a28291ec37f42c9a6affd2e73a0f185",
        "reasoning": "ff0d70eae958476fa4b3a9d864e522a7",
        "synthesis": "6376e45997634eac9baf6ebdd47b375c",
    },
    report=FieldAlias("synthesis", "text"),
    reasoning_trace=FieldAlias("reasoning", "text"),
    trace_data={
        "extractedHistory": FieldAlias("extraction"),
        "filteredFindings": FieldAlias("filtering"),
        "clinicalReasoning": FieldAlias("reasoning", "text"),
    },
)

TWO_STAGE = PipelineVersion(
    name="two_stage",
    stages=(
        StageSpec(
            name="extraction",
            display_name="Clinical Extraction",
            schema=ClinicalExtraction,
            inputs=(RAW_NOTES, COMPLAINT),
        ),
        StageSpec(
            name="diagnostic",
            display_name="Differential Diagnosis",
            schema=DiagnosticAssessment,
            inputs=(COMPLAINT,),
            carry_as="extraction_json",
        ),
    ),
    report=FieldAlias("diagnostic", "summary"),
    reasoning_trace=FieldAlias("diagnostic", "reasoning"),
    trace_data={
        "extractedHistory": FieldAlias("extraction"),
        "differential": FieldAlias("diagnostic", "differential"),
    },
)

_VERSIONS: dict[str, PipelineVersion] = {
    FOUR_STAGE.name: FOUR_STAGE,
    TWO_STAGE.name: TWO_STAGE,
}


def register_pipeline_version(version: PipelineVersion) -> None:
    """Make an additional pipeline version selectable by name."""
    _VERSIONS[version.name] = version


def get_pipeline_version(name: str) -> PipelineVersion:
    try:
        return _VERSIONS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown pipeline version {name!r}. Available: {sorted(_VERSIONS)}"
        ) from None


def list_pipeline_versions() -> tuple[str, ...]:
    return tuple(sorted(_VERSIONS))
