"""Entry points over the orchestrator.

``create_orchestrator`` is the only place ambient configuration is
resolved; everything below it receives explicit values.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from clinical_pipeline.config import FrozenConfig, resolve_config
from clinical_pipeline.pipeline.invoker import GatewayInvoker
from clinical_pipeline.pipeline.orchestrator import PipelineOrchestrator
from clinical_pipeline.pipeline.recovery import (
    DEFAULT_STRATEGIES,
    LENIENT_STRATEGIES,
    StructuredOutputRecoverer,
)
from clinical_pipeline.pipeline.stages import get_pipeline_version

if TYPE_CHECKING:
    from clinical_pipeline.core.types import PipelineResult
    from clinical_pipeline.pipeline.base import StageInvoker
    from clinical_pipeline.telemetry import TelemetryContextProtocol

log = logging.getLogger(__name__)


def create_orchestrator(
    config: FrozenConfig | None = None,
    *,
    invoker: StageInvoker | None = None,
    telemetry: TelemetryContextProtocol | None = None,
) -> PipelineOrchestrator:
    """Create an orchestrator for the configured pipeline version.

    Args:
        config: Optional frozen configuration; resolved from the environment
            (or the enclosing ``config_scope``) when omitted.
        invoker: Optional stage invoker. The gateway invoker is built from
            ``config`` when omitted, which requires an API key.
        telemetry: Optional telemetry context.

    Raises:
        ConfigurationError: Unknown version, missing prompt ids, or no API
            key when the gateway invoker must be built.
    """
    final_config = config if config is not None else resolve_config()
    version = get_pipeline_version(final_config.pipeline_version)

    unknown = set(final_config.prompt_ids) - set(version.stage_names)
    if unknown:
        log.warning(
            "Ignoring prompt ids for stages not in %s: %s",
            version.name,
            ", ".join(sorted(unknown)),
        )

    strategies = (
        LENIENT_STRATEGIES if final_config.lenient_recovery else DEFAULT_STRATEGIES
    )
    return PipelineOrchestrator(
        version,
        invoker if invoker is not None else GatewayInvoker.from_config(final_config),
        {k: v for k, v in final_config.prompt_ids.items() if k in version.stage_names},
        recoverer=StructuredOutputRecoverer(strategies),
        telemetry=telemetry,
        log_raw_content=final_config.debug,
    )


async def run_pipeline(
    raw_notes: str,
    focus_query: str,
    *,
    config: FrozenConfig | None = None,
    invoker: StageInvoker | None = None,
) -> PipelineResult:
    """Run the configured pipeline once.

    Example:
        ```python
        result = await run_pipeline(notes, "chest pain")
        if result.success:
            print(result.report)
        else:
            print(f"{result.stage} failed, trace {result.trace_id}")
        ```
    """
    orchestrator = create_orchestrator(config, invoker=invoker)
    return await orchestrator.run(raw_notes, focus_query)
