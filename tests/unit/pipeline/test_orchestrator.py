import json
import logging

import pytest

from clinical_pipeline.core.exceptions import (
    ConfigurationError,
    StageFailedError,
    TransportError,
)
from clinical_pipeline.core.types import PipelineFailure, PipelineSuccess, RawStageOutput
from clinical_pipeline.pipeline.orchestrator import PipelineOrchestrator
from clinical_pipeline.pipeline.recovery import (
    LENIENT_STRATEGIES,
    StructuredOutputRecoverer,
)
from clinical_pipeline.pipeline.stages import FOUR_STAGE, TWO_STAGE
from tests.helpers import (
    CLINICAL_EXTRACTION,
    FINDINGS,
    REASONING_TEXT,
    REPORT_TEXT,
    ScriptedInvoker,
    fake_stage_ids,
    four_stage_replies,
    two_stage_replies,
)

NOTES = "58M with crushing chest pain radiating to left arm for 2 hours."


def _orchestrator(version, replies, **kwargs):
    invoker = ScriptedInvoker(replies)
    return (
        PipelineOrchestrator(version, invoker, fake_stage_ids(version), **kwargs),
        invoker,
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_four_stage_happy_path_threads_outputs_forward():
    orch, invoker = _orchestrator(FOUR_STAGE, four_stage_replies())

    result = await orch.run(NOTES, "chest pain")

    assert isinstance(result, PipelineSuccess)
    assert result.metadata.stages_completed == [
        "extraction",
        "filtering",
        "reasoning",
        "synthesis",
    ]
    assert invoker.called_ids == [f"prompt-{n}" for n in FOUR_STAGE.stage_names]

    extraction_vars = invoker.calls[0][1]
    assert extraction_vars == {"raw_notes": NOTES}

    filtering_vars = invoker.calls[1][1]
    assert filtering_vars["complaint"] == "chest pain"
    carried = json.loads(filtering_vars["history_json"])
    assert carried == result.outputs["extraction"]

    reasoning_vars = invoker.calls[2][1]
    assert json.loads(reasoning_vars["filtered_data"]) == result.outputs["filtering"]

    # Text stages carry plain text, not a JSON encoding
    assert invoker.calls[3][1] == {"reasoning_chain": REASONING_TEXT}

    assert result.report == REPORT_TEXT
    assert result.reasoning_trace == REASONING_TEXT
    assert result.outputs["filtering"]["red_flags"] == FINDINGS["red_flags"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_metadata_records_every_trace_id_and_duration():
    orch, _ = _orchestrator(FOUR_STAGE, four_stage_replies())

    result = await orch.run(NOTES, "chest pain")

    assert result.metadata.trace_ids == {
        name: f"trace-prompt-{name}" for name in FOUR_STAGE.stage_names
    }
    assert set(result.metadata.stage_durations) == set(FOUR_STAGE.stage_names)
    assert all(d >= 0 for d in result.metadata.stage_durations.values())
    assert result.metadata.execution_time_ms >= sum(
        result.metadata.stage_durations.values()
    ) * 0.99
    assert result.final_trace_id == "trace-prompt-synthesis"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transport_failure_in_stage_two_stops_the_run():
    replies = two_stage_replies()
    replies["prompt-diagnostic"] = TransportError("Gateway error (503): busy", trace_id="t-99")
    orch, invoker = _orchestrator(TWO_STAGE, replies)

    result = await orch.run(NOTES, "chest pain")

    assert isinstance(result, PipelineFailure)
    assert result.stage == "diagnostic"
    assert result.trace_id == "t-99"
    assert result.error_kind == "transport"
    assert result.error == "Differential Diagnosis failed: Gateway error (503): busy"
    assert result.metadata.stages_completed == ["extraction"]
    assert result.metadata.trace_ids["diagnostic"] == "t-99"
    assert "diagnostic" in result.metadata.stage_durations
    assert invoker.called_ids == ["prompt-extraction", "prompt-diagnostic"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stage_one_output_is_defaulted_before_being_carried():
    orch, invoker = _orchestrator(TWO_STAGE, two_stage_replies())

    await orch.run(NOTES, "chest pain")

    carried = json.loads(invoker.calls[1][1]["extraction_json"])
    assert carried["red_flags"] == CLINICAL_EXTRACTION["red_flags"]
    assert carried["gaps"] == []
    assert carried["complaint"]["stated"] == "chest pain"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_parse_failure_keeps_trace_id_of_successful_call():
    replies = four_stage_replies()
    replies["prompt-filtering"] = RawStageOutput("I am unable to filter.", "t-7")
    orch, invoker = _orchestrator(FOUR_STAGE, replies)

    result = await orch.run(NOTES, "chest pain")

    assert isinstance(result, PipelineFailure)
    assert result.stage == "filtering"
    assert result.trace_id == "t-7"
    assert result.error_kind == "parse"
    assert result.error.startswith("Relevance Filtering failed: Failed to parse JSON")
    assert "Content preview: I am unable to filter." in result.error
    assert result.metadata.stages_completed == ["extraction"]
    assert result.metadata.trace_ids["filtering"] == "t-7"
    assert result.metadata.trace_ids["reasoning"] is None
    assert len(invoker.calls) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_validation_failure_names_the_stage_and_field():
    replies = two_stage_replies()
    replies["prompt-diagnostic"] = json.dumps({"confidence": 0.8})
    orch, _ = _orchestrator(TWO_STAGE, replies)

    result = await orch.run(NOTES, "chest pain")

    assert isinstance(result, PipelineFailure)
    assert result.stage == "diagnostic"
    assert result.error_kind == "validation"
    assert "diagnosis" in result.error
    assert result.trace_id == "trace-prompt-diagnostic"


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("failing_index", [0, 1, 2, 3])
async def test_fail_fast_at_any_stage(failing_index):
    names = FOUR_STAGE.stage_names
    replies = four_stage_replies()
    replies[f"prompt-{names[failing_index]}"] = TransportError("down")
    orch, invoker = _orchestrator(FOUR_STAGE, replies)

    result = await orch.run(NOTES, "chest pain")

    assert isinstance(result, PipelineFailure)
    assert result.stage == names[failing_index]
    assert result.metadata.stages_completed == list(names[:failing_index])
    assert len(invoker.calls) == failing_index + 1
    assert result.trace_id is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_blank_text_stage_output_is_a_validation_failure():
    replies = four_stage_replies()
    replies["prompt-reasoning"] = RawStageOutput("   ", "t-r")
    orch, _ = _orchestrator(FOUR_STAGE, replies)

    result = await orch.run(NOTES, "chest pain")

    assert isinstance(result, PipelineFailure)
    assert result.stage == "reasoning"
    assert result.error_kind == "validation"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unexpected_exceptions_propagate():
    replies = four_stage_replies()
    replies["prompt-extraction"] = RuntimeError("bug in custom invoker")
    orch, _ = _orchestrator(FOUR_STAGE, replies)

    with pytest.raises(RuntimeError, match="bug in custom invoker"):
        await orch.run(NOTES, "chest pain")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lenient_recoverer_is_used_when_injected():
    replies = two_stage_replies()
    replies["prompt-extraction"] = '{"gaps": ["no ECG",], "confidence": "high",}'
    orch, _ = _orchestrator(
        TWO_STAGE, replies, recoverer=StructuredOutputRecoverer(LENIENT_STRATEGIES)
    )

    result = await orch.run(NOTES, "chest pain")

    assert result.success
    assert result.outputs["extraction"]["gaps"] == ["no ECG"]


@pytest.mark.unit
def test_missing_stage_ids_are_reported_together():
    with pytest.raises(ConfigurationError) as exc_info:
        PipelineOrchestrator(TWO_STAGE, ScriptedInvoker({}), {"extraction": ""})
    assert "extraction" in str(exc_info.value)
    assert "diagnostic" in str(exc_info.value)


@pytest.mark.unit
def test_default_stage_ids_fill_gaps_and_overrides_win():
    orch = PipelineOrchestrator(
        FOUR_STAGE, ScriptedInvoker({}), {"synthesis": "custom-synthesis"}
    )
    assert orch.stage_ids["synthesis"] == "custom-synthesis"
    assert orch.stage_ids["extraction"] == FOUR_STAGE.default_stage_ids["extraction"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_stage_returns_output_and_trace_id():
    orch, invoker = _orchestrator(TWO_STAGE, two_stage_replies())

    output, trace_id = await orch.run_stage(
        "diagnostic", {"complaint": "chest pain", "extraction_json": {"gaps": []}}
    )

    assert output["urgency"] == "HIGH"
    assert trace_id == "trace-prompt-diagnostic"
    assert json.loads(invoker.calls[0][1]["extraction_json"]) == {"gaps": []}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_stage_raises_stage_failed_error():
    replies = two_stage_replies()
    replies["prompt-extraction"] = "no json here"
    orch, _ = _orchestrator(TWO_STAGE, replies)

    with pytest.raises(StageFailedError) as exc_info:
        await orch.run_stage("extraction", {"raw_notes": NOTES, "complaint": "x"})

    assert exc_info.value.stage == "extraction"
    assert exc_info.value.trace_id == "trace-prompt-extraction"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_stage_rejects_unknown_stage():
    orch, _ = _orchestrator(TWO_STAGE, two_stage_replies())
    with pytest.raises(ConfigurationError, match="Unknown stage"):
        await orch.run_stage("synthesis", {})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_orchestrator_is_reusable_across_runs():
    orch, invoker = _orchestrator(TWO_STAGE, two_stage_replies())

    first = await orch.run(NOTES, "chest pain")
    second = await orch.run(NOTES, "chest pain")

    assert first.metadata is not second.metadata
    assert second.metadata.stages_completed == ["extraction", "diagnostic"]
    assert len(invoker.calls) == 4


def _long_diagnostic_replies():
    replies = two_stage_replies()
    replies["prompt-diagnostic"] += "\n" + "Additional notes. " * 20 + "END-OF-REPLY"
    return replies


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("log_raw_content", "logged"), [(True, True), (False, False)]
)
async def test_full_raw_content_is_logged_only_when_requested(
    caplog, log_raw_content, logged
):
    caplog.set_level(logging.DEBUG, logger="clinical_pipeline")
    orch, _ = _orchestrator(
        TWO_STAGE, _long_diagnostic_replies(), log_raw_content=log_raw_content
    )

    result = await orch.run(NOTES, "chest pain")

    assert result.success
    assert "Stage diagnostic raw content" in caplog.text
    assert ("END-OF-REPLY" in caplog.text) is logged
