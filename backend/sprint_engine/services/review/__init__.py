"""Sprint evidence review: remote-first with a deterministic fallback."""

from sprint_engine.services.review.engine import ReviewEngine, dedupe, resolve_provider_label
from sprint_engine.services.review.fallback import (
    build_fallback_review,
    confidence_score,
    fallback_score,
    ok_fraction,
)

__all__ = [
    "ReviewEngine",
    "build_fallback_review",
    "confidence_score",
    "dedupe",
    "fallback_score",
    "ok_fraction",
    "resolve_provider_label",
]
