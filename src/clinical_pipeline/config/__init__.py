"""Configuration for the clinical pipeline.

Resolve once with ``resolve_config()``, then pass the ``FrozenConfig``
along. ``config_scope()`` sets an ambient configuration for a block.
"""

from .api import config_scope, get_ambient_config, resolve_config
from .schema import PipelineSettings
from .types import FrozenConfig

__all__ = [
    "FrozenConfig",
    "PipelineSettings",
    "config_scope",
    "get_ambient_config",
    "resolve_config",
]
