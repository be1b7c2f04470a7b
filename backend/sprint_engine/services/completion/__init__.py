"""Sprint completion workflow and objective progress."""

from sprint_engine.services.completion.handler import CompletionHandler
from sprint_engine.services.completion.progress import (
    ProgressCalculator,
    advance_streak,
    effective_streak,
    performance_rating,
    recommended_focus,
)

__all__ = [
    "CompletionHandler",
    "ProgressCalculator",
    "advance_streak",
    "effective_streak",
    "performance_rating",
    "recommended_focus",
]
