"""Performance analysis and recalibration of objectives."""

from sprint_engine.services.adaptation.recalibrator import (
    AdaptiveRecalibrator,
    determine_trend,
    recommend_action,
    rule_based_decision,
)

__all__ = [
    "AdaptiveRecalibrator",
    "determine_trend",
    "recommend_action",
    "rule_based_decision",
]
