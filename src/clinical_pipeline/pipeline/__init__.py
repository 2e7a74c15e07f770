"""Pipeline components: invoker, recovery, validation, stages, orchestration."""

from .assembler import ResultAssembler
from .base import StageInvoker
from .invoker import GatewayInvoker
from .orchestrator import PipelineOrchestrator
from .recovery import StructuredOutputRecoverer, recover_json_object
from .stages import (
    FOUR_STAGE,
    TWO_STAGE,
    FieldAlias,
    PipelineVersion,
    StageSpec,
    get_pipeline_version,
    list_pipeline_versions,
    register_pipeline_version,
)
from .validation import validate_stage_output
from .variables import serialize_variables

__all__ = [
    "FOUR_STAGE",
    "TWO_STAGE",
    "FieldAlias",
    "GatewayInvoker",
    "PipelineOrchestrator",
    "PipelineVersion",
    "ResultAssembler",
    "StageInvoker",
    "StageSpec",
    "StructuredOutputRecoverer",
    "get_pipeline_version",
    "list_pipeline_versions",
    "recover_json_object",
    "register_pipeline_version",
    "serialize_variables",
    "validate_stage_output",
]
