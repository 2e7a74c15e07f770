import pytest

from clinical_pipeline.core.exceptions import StageFailedError
from clinical_pipeline.core.types import (
    PipelineFailure,
    PipelineMetadata,
    PipelineSuccess,
    RawStageOutput,
    is_success,
)


@pytest.mark.unit
def test_raw_stage_output_type_checks():
    with pytest.raises(TypeError, match="content"):
        RawStageOutput(content=None)  # type: ignore[arg-type]
    with pytest.raises(TypeError, match="trace_id"):
        RawStageOutput(content="x", trace_id=42)  # type: ignore[arg-type]


@pytest.mark.unit
def test_metadata_starts_with_every_stage_untraced():
    metadata = PipelineMetadata.for_stages(["a", "b"])
    assert metadata.trace_ids == {"a": None, "b": None}
    assert metadata.stages_completed == []


@pytest.mark.unit
def test_metadata_rejects_completing_a_stage_twice():
    metadata = PipelineMetadata.for_stages(["a"])
    metadata.mark_completed("a")
    with pytest.raises(ValueError, match="already completed"):
        metadata.mark_completed("a")


@pytest.mark.unit
def test_metadata_to_dict_uses_camel_case_keys():
    metadata = PipelineMetadata.for_stages(["a"])
    metadata.record_duration("a", 12.34567)
    metadata.execution_time_ms = 15.0
    assert metadata.to_dict() == {
        "traceIds": {"a": None},
        "stagesCompleted": [],
        "executionTimeMs": 15.0,
        "stageDurations": {"a": 12.346},
    }


@pytest.mark.unit
def test_success_outputs_must_match_completed_stages():
    metadata = PipelineMetadata.for_stages(["a", "b"])
    metadata.mark_completed("a")
    with pytest.raises(ValueError, match="stages_completed"):
        PipelineSuccess(version="v", outputs={"a": {}, "b": {}}, metadata=metadata)


@pytest.mark.unit
def test_success_outputs_are_read_only():
    metadata = PipelineMetadata.for_stages(["a"])
    metadata.mark_completed("a")
    result = PipelineSuccess(version="v", outputs={"a": {"x": 1}}, metadata=metadata)
    with pytest.raises(TypeError):
        result.outputs["b"] = {}  # type: ignore[index]
    assert is_success(result)


@pytest.mark.unit
def test_failure_raise_for_failure():
    failure = PipelineFailure(
        error="Synthesis failed: boom",
        stage="synthesis",
        trace_id="t-1",
        metadata=PipelineMetadata.for_stages(["synthesis"]),
    )
    assert not is_success(failure)
    with pytest.raises(StageFailedError) as exc_info:
        failure.raise_for_failure()
    error = exc_info.value
    assert str(error) == "Synthesis failed: boom"
    assert (error.stage, error.trace_id) == ("synthesis", "t-1")
    assert failure.to_dict()["success"] is False
