"""Sprint auto-generation: next-sprint decisions and the look-ahead buffer."""

from sprint_engine.services.scheduling.locks import ObjectiveLockRegistry
from sprint_engine.services.scheduling.scheduler import (
    DEFAULT_MODE_CONFIGS,
    AutoGenerationScheduler,
    load_mode_configs,
    truncate_reflection,
)

__all__ = [
    "DEFAULT_MODE_CONFIGS",
    "AutoGenerationScheduler",
    "ObjectiveLockRegistry",
    "load_mode_configs",
    "truncate_reflection",
]
