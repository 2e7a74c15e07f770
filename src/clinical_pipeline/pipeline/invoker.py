"""HTTP invoker for a Keywords AI-compatible managed-prompt gateway.

The gateway speaks the OpenAI chat-completions protocol with one extension:
a ``prompt`` object names a managed prompt and its variables, and
``override`` tells the gateway to replace the placeholder messages with the
managed template. Trace ids come back in the ``x-keywords-trace-id``
response header.
"""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import TYPE_CHECKING, Any

import httpx

from clinical_pipeline.config.schema import DEFAULT_BASE_URL
from clinical_pipeline.core.exceptions import (
    PREVIEW_CHARS,
    ConfigurationError,
    TransportError,
)
from clinical_pipeline.core.types import RawStageOutput

if TYPE_CHECKING:
    from clinical_pipeline.config import FrozenConfig

log = logging.getLogger(__name__)

TRACE_HEADER = "x-keywords-trace-id"


def require_stage_id(stage_id: str) -> str:
    if not isinstance(stage_id, str) or not stage_id.strip():
        raise ConfigurationError("Stage identifier must be a non-empty string.")
    return stage_id.strip()


class GatewayInvoker:
    """Calls managed prompts through the gateway with ``httpx``.

    A shared ``httpx.AsyncClient`` may be injected (connection reuse, tests
    with ``httpx.MockTransport``); otherwise a short-lived client is opened
    per call. The invoker keeps no per-run state, so one instance can serve
    concurrent pipeline runs.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        model: str = "gpt-4o",
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError(
                "Gateway API key not found. Set CLINICAL_PIPELINE_API_KEY "
                "(or KEYWORDSAI_API_KEY) or pass api_key explicitly."
            )
        self._api_key = api_key
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(
        cls, config: FrozenConfig, *, client: httpx.AsyncClient | None = None
    ) -> GatewayInvoker:
        return cls(
            config.api_key or "",
            base_url=config.base_url,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout_seconds,
            client=client,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}chat/completions"

    def __repr__(self) -> str:
        return (
            f"GatewayInvoker(base_url={self.base_url!r}, model={self.model!r}, "
            "api_key='[REDACTED]')"
        )

    def build_request_body(
        self, stage_id: str, variables: Mapping[str, str]
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": "placeholder"}],
            "stream": False,
            "prompt": {
                "prompt_id": stage_id,
                "variables": dict(variables),
                "override": True,
            },
        }
        if self.temperature is not None:
            body["temperature"] = self.temperature
        if self.max_tokens is not None:
            body["max_tokens"] = self.max_tokens
        return body

    async def invoke(
        self, stage_id: str, variables: Mapping[str, str]
    ) -> RawStageOutput:
        stage_id = require_stage_id(stage_id)
        body = self.build_request_body(stage_id, variables)
        headers = {"Authorization": f"Bearer {self._api_key}"}
        log.debug(
            "Invoking prompt %s (model=%s, variables=%s)",
            stage_id,
            self.model,
            sorted(variables),
        )

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.endpoint, json=body, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.endpoint, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError(
                f"Gateway request timed out for prompt {stage_id}", stage_id=stage_id
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Gateway request failed for prompt {stage_id}: {e}", stage_id=stage_id
            ) from e

        return self._parse_response(stage_id, response)

    def _parse_response(self, stage_id: str, response: httpx.Response) -> RawStageOutput:
        trace_id = response.headers.get(TRACE_HEADER) or None

        if response.is_error:
            raise TransportError(
                f"Gateway error ({response.status_code}): "
                f"{response.text[:PREVIEW_CHARS]}",
                trace_id=trace_id,
                stage_id=stage_id,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"Gateway returned a non-JSON body for prompt {stage_id}",
                trace_id=trace_id,
                stage_id=stage_id,
                status_code=response.status_code,
            ) from e

        trace_id = trace_id or _body_id(data)
        content = _first_message_content(data)
        if not content or not content.strip():
            raise TransportError(
                f"Empty response from prompt: {stage_id}",
                trace_id=trace_id,
                stage_id=stage_id,
                status_code=response.status_code,
            )

        log.debug(
            "Prompt %s returned %d chars (trace_id=%s)", stage_id, len(content), trace_id
        )
        return RawStageOutput(content=content.strip(), trace_id=trace_id)


def _body_id(data: Any) -> str | None:
    if isinstance(data, dict) and isinstance(data.get("id"), str) and data["id"]:
        return data["id"]
    return None


def _first_message_content(data: Any) -> str | None:
    """Pull ``choices[0].message.content`` without trusting the shape."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None
