"""Serialization of stage inputs into prompt template variables.

Managed prompts only accept string variables. Mappings and sequences are
rendered as pretty-printed JSON; scalars are stringified directly.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
from typing import Any

from pydantic import BaseModel


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def serialize_value(value: Any) -> str:
    """Render one variable value as a string."""
    value = _to_jsonable(value)
    if isinstance(value, str):
        return value
    if value is None or isinstance(value, bool):
        # JSON spelling keeps "null"/"true" consistent with serialized objects
        return json.dumps(value)
    if isinstance(value, Mapping | list | tuple | set | frozenset):
        if isinstance(value, set | frozenset):
            value = list(value)
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return str(value)


def serialize_variables(variables: Mapping[str, Any]) -> dict[str, str]:
    """Convert named inputs into a flat ``name -> str`` mapping.

    Pure and total for acyclic values; key order is preserved.
    """
    return {str(name): serialize_value(value) for name, value in variables.items()}
