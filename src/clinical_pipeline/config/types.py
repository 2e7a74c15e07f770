"""Frozen configuration handed to the pipeline after resolution."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True, slots=True)
class FrozenConfig:
    """Immutable configuration for pipeline construction.

    Resolved once (``resolve_config``) and then passed along; never read
    from the environment again.
    """

    api_key: str | None
    base_url: str
    model: str
    temperature: float | None
    max_tokens: int | None
    timeout_seconds: float
    pipeline_version: str
    prompt_ids: Mapping[str, str] = field(default_factory=dict)
    lenient_recovery: bool = False
    debug: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "prompt_ids", MappingProxyType(dict(self.prompt_ids)))

    def __repr__(self) -> str:
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "api_key" and value:
                value = "[REDACTED]"
            elif f.name == "prompt_ids":
                value = dict(value)
            parts.append(f"{f.name}={value!r}")
        return f"FrozenConfig({', '.join(parts)})"

    __str__ = __repr__

    def with_overrides(self, **overrides: Any) -> "FrozenConfig":
        """Return a copy with known fields replaced; unknown keys are ignored."""
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in overrides.items() if k in known})

    def to_redacted_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["prompt_ids"] = dict(self.prompt_ids)
        data["api_key"] = "[REDACTED]" if self.api_key else None
        return data
