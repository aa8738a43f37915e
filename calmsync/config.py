"""calmsync configuration.

Environment-driven settings (prefix ``CALMSYNC_``) read once through
pydantic-settings.  Library entry points take explicit arguments and fall
back to these values only when the caller passes nothing.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class CalmSyncSettings(BaseSettings):
    """Defaults for rendering, generation and source patching."""

    # Rendering
    default_format: str = "structural"
    diagram_direction: str = "right"

    # Generation
    validate_on_generate: bool = True

    # Source patching
    declaration_method: str = "define_node"
    owner_option: str = "with_owner"
    type_namespace: str = "NodeType"
    entry_point_markers: list[str] = ["build", "define_nodes", "definenodes"]
    default_receiver: str = "arch"

    model_config = {"env_prefix": "CALMSYNC_", "env_file": ".env", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> CalmSyncSettings:
    """Return the process-wide settings instance."""
    settings = CalmSyncSettings()
    logger.debug(
        "calmsync settings: format=%s, method=%s, markers=%s",
        settings.default_format,
        settings.declaration_method,
        settings.entry_point_markers,
    )
    return settings
