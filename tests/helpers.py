"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import json
from typing import Any

from clinical_pipeline.core.types import RawStageOutput
from clinical_pipeline.pipeline.stages import PipelineVersion

Reply = RawStageOutput | str | BaseException


def fake_stage_ids(version: PipelineVersion) -> dict[str, str]:
    """Deterministic prompt ids: ``prompt-<stage name>``."""
    return {name: f"prompt-{name}" for name in version.stage_names}


class ScriptedInvoker:
    """A ``StageInvoker`` that replays canned replies per prompt id.

    Each reply is a ``RawStageOutput``, bare content (trace id derived from the
    prompt id) or an exception to raise. Every call is recorded.
    """

    def __init__(self, replies: Mapping[str, Reply], *, delay: float = 0.0):
        self.replies = dict(replies)
        self.delay = delay
        self.calls: list[tuple[str, dict[str, str]]] = []

    @property
    def called_ids(self) -> list[str]:
        return [stage_id for stage_id, _ in self.calls]

    async def invoke(
        self, stage_id: str, variables: Mapping[str, str]
    ) -> RawStageOutput:
        self.calls.append((stage_id, dict(variables)))
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies[stage_id]
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, str):
            return RawStageOutput(content=reply, trace_id=f"trace-{stage_id}")
        return reply


def as_json(payload: Any) -> str:
    return json.dumps(payload)


HISTORY = {
    "demographics": {"age": 58, "sex": "M"},
    "chief_complaint": "chest pain",
    "past_medical_history": ["hypertension", "type 2 diabetes"],
    "medications": ["metformin 500mg BID", "lisinopril 10mg"],
    "vitals": {"blood_pressure": "150/95", "heart_rate": 102},
}

FINDINGS = {
    "relevant_conditions": ["hypertension", "type 2 diabetes"],
    "relevant_medications": ["lisinopril 10mg"],
    "risk_factors": ["age > 55", "male"],
    "red_flags": ["tachycardia"],
}

REASONING_TEXT = (
    "1. Chest pain in a 58yo male with HTN and DM.\n"
    "2. Tachycardia raises concern for ACS."
)

REPORT_TEXT = "Assessment: possible acute coronary syndrome. Obtain ECG and troponin."

CLINICAL_EXTRACTION = {
    "complaint": {"stated": "chest pain", "onset": "2 hours ago"},
    "vitals": {"bp": "150/95", "hr": 102},
    "red_flags": [],
    "confidence": "medium",
}

DIAGNOSTIC = {
    "diagnosis": "Acute coronary syndrome",
    "urgency": "high",
    "confidence": 0.7,
    "differential": [
        {"condition": "ACS", "confidence": 0.7, "rationale": "risk factors"},
        {"condition": "GERD", "confidence": 0.2},
    ],
    "summary": "Likely ACS; urgent ECG.",
    "reasoning": "Risk factors plus tachycardia.",
}


def four_stage_replies() -> dict[str, Reply]:
    """Happy-path replies for the four-stage pipeline, in realistic shapes."""
    return {
        "prompt-extraction": "```json\n" + as_json(HISTORY) + "\n```",
        "prompt-filtering": "Here are the relevant findings:\n" + as_json(FINDINGS),
        "prompt-reasoning": REASONING_TEXT,
        "prompt-synthesis": REPORT_TEXT,
    }


def two_stage_replies() -> dict[str, Reply]:
    return {
        "prompt-extraction": as_json(CLINICAL_EXTRACTION),
        "prompt-diagnostic": as_json(DIAGNOSTIC) + "\nLet me know if you need more.",
    }
