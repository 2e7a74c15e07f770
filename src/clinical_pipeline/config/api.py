"""Public API for configuration resolution and scoping.

Precedence: ambient ``config_scope`` > programmatic > environment/.env >
defaults. Resolution happens once; the pipeline only ever sees a
``FrozenConfig``.
"""

from collections.abc import Iterator
from contextlib import contextmanager
import contextvars
import logging
from pathlib import Path
from typing import Any

import pydantic

from clinical_pipeline.core.exceptions import ConfigurationError

from .schema import PipelineSettings
from .types import FrozenConfig

log = logging.getLogger(__name__)

_ambient_config: contextvars.ContextVar[FrozenConfig] = contextvars.ContextVar(
    "clinical_pipeline_config"
)


def resolve_config(
    programmatic: dict[str, Any] | None = None,
    *,
    env_file: str | Path | None = None,
) -> FrozenConfig:
    """Resolve configuration from all sources into a ``FrozenConfig``.

    Args:
        programmatic: Overrides with the highest precedence. Unknown keys
            are ignored.
        env_file: Optional .env file read in addition to the environment.

    Raises:
        ConfigurationError: If a value fails validation.

    Example:
        config = resolve_config({"pipeline_version": "two_stage"})
    """
    try:
        ambient = _ambient_config.get()
    except LookupError:
        pass
    else:
        return ambient.with_overrides(**programmatic) if programmatic else ambient

    if env_file is not None and not Path(env_file).exists():
        raise ConfigurationError(f"Environment file not found: {env_file}")

    try:
        settings = PipelineSettings(_env_file=env_file, **(programmatic or {}))
    except pydantic.ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline configuration: {e}") from e

    config = FrozenConfig(
        api_key=settings.api_key or None,
        base_url=settings.base_url,
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        timeout_seconds=settings.timeout_seconds,
        pipeline_version=settings.pipeline_version,
        prompt_ids=settings.prompt_ids,
        lenient_recovery=settings.lenient_recovery,
        debug=settings.debug,
    )
    log.debug("Resolved configuration: %r", config)
    return config


def get_ambient_config() -> FrozenConfig | None:
    """Return the configuration set by an enclosing ``config_scope``, if any."""
    return _ambient_config.get(None)


@contextmanager
def config_scope(config: FrozenConfig) -> Iterator[None]:
    """Temporarily use ``config`` for everything resolved in this context.

    Thread-safe and async-safe (``contextvars``), so concurrent runs can use
    different configurations.

    Example:
        with config_scope(resolve_config({"pipeline_version": "two_stage"})):
            result = await run_pipeline(notes, "chest pain")
    """
    token = _ambient_config.set(config)
    try:
        yield
    finally:
        _ambient_config.reset(token)
