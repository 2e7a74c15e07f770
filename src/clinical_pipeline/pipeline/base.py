"""Base protocol for the prompt-execution seam."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from clinical_pipeline.core.types import RawStageOutput


@runtime_checkable
class StageInvoker(Protocol):
    """Executes one hosted prompt and returns its raw output.

    Implementations perform exactly one round-trip per call, never retry and
    never interpret the returned content. Provider failures are raised as
    ``TransportError`` carrying the trace id when one was received.
    """

    async def invoke(
        self, stage_id: str, variables: Mapping[str, str]
    ) -> RawStageOutput:
        """Run the prompt identified by ``stage_id`` with ``variables``.

        Args:
            stage_id: Opaque remote prompt identifier; must be non-empty.
            variables: Already serialized template variables.

        Returns:
            The raw text output and the provider's trace identifier.
        """
        ...
