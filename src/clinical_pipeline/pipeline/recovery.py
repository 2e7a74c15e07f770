"""Recovery of a JSON object from free-form model output.

Model output reliably contains a JSON object but unreliably contains only
that object: preambles ("Here is the analysis:"), trailing commentary and
markdown fences are common. Recovery runs an ordered chain of strategies
over fence-stripped text and stops at the first one that yields an object.

A strategy is a pure callable ``text -> dict | None``. Returning None means
"not applicable"; raising ``ValueError`` (``json.JSONDecodeError`` is one)
means "applicable but failed" and the message is kept for diagnostics.
Adding a heuristic is a matter of adding a strategy to the chain.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import json
import logging
import re
from typing import Any

from clinical_pipeline.core.exceptions import PREVIEW_CHARS, ParseError

log = logging.getLogger(__name__)

FENCE = "```"
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


@dataclass(frozen=True, slots=True)
class RecoveryStrategy:
    """A named attempt in the recovery chain."""

    name: str
    attempt: Callable[[str], dict[str, Any] | None]


def strip_code_fence(text: str) -> str:
    """Drop a leading fence line and, if present, the closing fence line."""
    cleaned = text.strip()
    if not cleaned.startswith(FENCE):
        return cleaned
    lines = cleaned.split("\n")
    lines.pop(0)
    if lines and lines[-1].strip() == FENCE:
        lines.pop()
    return "\n".join(lines).strip()


def _loads_object(candidate: str) -> dict[str, Any]:
    parsed = json.loads(candidate)
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _brace_span(text: str) -> str | None:
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or first >= last:
        return None
    return text[first : last + 1]


def parse_brace_span(text: str) -> dict[str, Any] | None:
    """Parse the substring from the first ``{`` to the last ``}``."""
    candidate = _brace_span(text)
    if candidate is None:
        return None
    return _loads_object(candidate)


def parse_whole_text(text: str) -> dict[str, Any] | None:
    """Parse the cleaned text as-is."""
    if not text:
        return None
    return _loads_object(text)


def repair_trailing_commas(text: str) -> dict[str, Any] | None:
    """Parse the brace span after removing commas before ``}`` or ``]``."""
    candidate = _brace_span(text)
    if candidate is None:
        return None
    repaired = _TRAILING_COMMA.sub(r"\1", candidate)
    if repaired == candidate:
        return None
    return _loads_object(repaired)


DEFAULT_STRATEGIES: tuple[RecoveryStrategy, ...] = (
    RecoveryStrategy("brace_span", parse_brace_span),
    RecoveryStrategy("whole_text", parse_whole_text),
)

LENIENT_STRATEGIES: tuple[RecoveryStrategy, ...] = (
    *DEFAULT_STRATEGIES,
    RecoveryStrategy("trailing_comma_repair", repair_trailing_commas),
)


class StructuredOutputRecoverer:
    """Runs the strategy chain and raises ``ParseError`` when all fail."""

    def __init__(self, strategies: Sequence[RecoveryStrategy] | None = None) -> None:
        self.strategies: tuple[RecoveryStrategy, ...] = tuple(
            strategies if strategies is not None else DEFAULT_STRATEGIES
        )
        if not self.strategies:
            raise ValueError("At least one recovery strategy is required.")

    def recover(self, raw_text: str) -> dict[str, Any]:
        cleaned = strip_code_fence(raw_text)
        last_error = "no JSON object found"

        for strategy in self.strategies:
            try:
                parsed = strategy.attempt(cleaned)
            except ValueError as e:
                last_error = str(e)
                log.debug("Recovery strategy '%s' failed: %s", strategy.name, e)
                continue
            if parsed is not None:
                log.debug("Recovered JSON object via '%s'", strategy.name)
                return parsed

        log.debug(
            "All recovery strategies failed; content preview: %s",
            raw_text[:PREVIEW_CHARS],
        )
        raise ParseError.from_content(raw_text, last_error)


_default_recoverer = StructuredOutputRecoverer()


def recover_json_object(
    raw_text: str, strategies: Sequence[RecoveryStrategy] | None = None
) -> dict[str, Any]:
    """Extract and parse the JSON object embedded in ``raw_text``.

    Raises:
        ParseError: when no strategy yields an object; carries a preview of
            the first 200 characters and the last parser error message.
    """
    if strategies is None:
        return _default_recoverer.recover(raw_text)
    return StructuredOutputRecoverer(strategies).recover(raw_text)
