"""Assembly of the final ``PipelineSuccess``.

Pure mapping: takes the ordered validated outputs and the finalized
metadata and fills in both the per-stage outputs and the legacy flattened
fields (``report``, ``reasoning_trace``, ``trace_data``) declared by the
pipeline version, so callers never branch on which version ran.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
from typing import Any

from clinical_pipeline.core.types import (
    PipelineMetadata,
    PipelineSuccess,
    ValidatedStageOutput,
)
from clinical_pipeline.pipeline.stages import FieldAlias, PipelineVersion


def _resolve(
    alias: FieldAlias | None, outputs: Mapping[str, ValidatedStageOutput]
) -> Any:
    if alias is None:
        return None
    output = outputs.get(alias.stage)
    if output is None:
        return None
    if alias.field is None:
        return output
    return output.get(alias.field)


def flatten_text(value: Any) -> str:
    """Render an aliased value as the plain string legacy fields expect."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return "\n".join(value)
    return json.dumps(value, indent=2, ensure_ascii=False)


class ResultAssembler:
    """Builds the success variant for one pipeline version."""

    def __init__(self, version: PipelineVersion) -> None:
        self.version = version

    def assemble(
        self,
        outputs: Mapping[str, ValidatedStageOutput],
        metadata: PipelineMetadata,
    ) -> PipelineSuccess:
        ordered = {
            name: outputs[name] for name in self.version.stage_names if name in outputs
        }
        trace_data = {
            key: _resolve(alias, ordered)
            for key, alias in self.version.trace_data.items()
        }
        return PipelineSuccess(
            version=self.version.name,
            outputs=ordered,
            metadata=metadata,
            report=flatten_text(_resolve(self.version.report, ordered)),
            reasoning_trace=flatten_text(
                _resolve(self.version.reasoning_trace, ordered)
            ),
            trace_data=trace_data,
        )
