"""Multi-stage clinical reasoning pipeline over hosted prompts."""

import importlib.metadata
import logging

from clinical_pipeline.actions import (
    AnalyzeInput,
    analyze_patient,
    analyze_patient_with_full_trace,
    validate_analyze_input,
)
from clinical_pipeline.config import (
    FrozenConfig,
    PipelineSettings,
    config_scope,
    resolve_config,
)
from clinical_pipeline.core.exceptions import (
    ClinicalPipelineError,
    ConfigurationError,
    ParseError,
    StageFailedError,
    TransportError,
    ValidationError,
)
from clinical_pipeline.core.types import (
    PipelineFailure,
    PipelineMetadata,
    PipelineResult,
    PipelineSuccess,
    RawStageOutput,
    is_success,
)
from clinical_pipeline.frontdoor import create_orchestrator, run_pipeline
from clinical_pipeline.pipeline import (
    GatewayInvoker,
    PipelineOrchestrator,
    ResultAssembler,
    StageInvoker,
    StageSpec,
    recover_json_object,
    serialize_variables,
    validate_stage_output,
)
from clinical_pipeline.telemetry import TelemetryContext, TelemetryReporter

try:
    __version__ = importlib.metadata.version("clinical-pipeline")
except importlib.metadata.PackageNotFoundError:
    __version__ = "development"

# Library logging stays silent unless the application configures handlers.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # Entry points
    "run_pipeline",
    "create_orchestrator",
    "analyze_patient",
    "analyze_patient_with_full_trace",
    "validate_analyze_input",
    "AnalyzeInput",
    # Components
    "PipelineOrchestrator",
    "GatewayInvoker",
    "StageInvoker",
    "StageSpec",
    "ResultAssembler",
    "recover_json_object",
    "serialize_variables",
    "validate_stage_output",
    # Results
    "PipelineResult",
    "PipelineSuccess",
    "PipelineFailure",
    "PipelineMetadata",
    "RawStageOutput",
    "is_success",
    # Configuration
    "FrozenConfig",
    "PipelineSettings",
    "config_scope",
    "resolve_config",
    # Errors
    "ClinicalPipelineError",
    "ConfigurationError",
    "ParseError",
    "StageFailedError",
    "TransportError",
    "ValidationError",
    # Telemetry
    "TelemetryContext",
    "TelemetryReporter",
]
