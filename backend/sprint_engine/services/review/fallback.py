"""
Deterministic Fallback Review

Scores a project from its submitted artifacts alone when the reviewer
provider is unavailable or returns unusable output:

    score = 0.2 + 0.6 * ok_fraction + 0.2 * confidence_score   (clamped to [0, 1])

where ok_fraction is the share of the project's artifacts with status "ok"
(0 when nothing was submitted) and confidence_score is the learner's
self-evaluation confidence divided by 10, clamped to [0, 1] (0.5 when no
confidence was given). For a fixed confidence the score never decreases
as more artifacts are ok.
"""

from typing import Optional, Sequence

from sprint_engine.enums import ArtifactStatus
from sprint_engine.models.plan import SprintProject
from sprint_engine.models.review import ReviewArtifact, ReviewOutput, SelfEvaluation

BASE_SCORE = 0.2
ARTIFACT_WEIGHT = 0.6
CONFIDENCE_WEIGHT = 0.2
NEUTRAL_CONFIDENCE = 0.5
DEFAULT_PASS_THRESHOLD = 0.7

README_RECOMMENDATION = "Document the work with a README or summary."
GENERIC_RECOMMENDATION = "Ship a short demo video and note improvements for the next sprint."


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def ok_fraction(artifacts: Sequence[ReviewArtifact]) -> float:
    """Share of artifacts whose status is ok (0 for no artifacts)."""
    if not artifacts:
        return 0.0
    ok = sum(1 for a in artifacts if a.status == ArtifactStatus.OK)
    return ok / len(artifacts)


def confidence_score(self_evaluation: Optional[SelfEvaluation]) -> float:
    """Self-evaluation confidence on a 0-1 scale (neutral when absent)."""
    if self_evaluation is None or self_evaluation.confidence is None:
        return NEUTRAL_CONFIDENCE
    return _clamp(self_evaluation.confidence / 10)


def fallback_score(
    artifacts: Sequence[ReviewArtifact], self_evaluation: Optional[SelfEvaluation]
) -> float:
    score = (
        BASE_SCORE
        + ARTIFACT_WEIGHT * ok_fraction(artifacts)
        + CONFIDENCE_WEIGHT * confidence_score(self_evaluation)
    )
    return _clamp(score)


def _mentions_readme(artifacts: Sequence[ReviewArtifact]) -> bool:
    for artifact in artifacts:
        for text in (artifact.notes, artifact.title):
            if text and "readme" in text.lower():
                return True
    return False


def fallback_recommendations(
    missing: Sequence[str], artifacts: Sequence[ReviewArtifact]
) -> list[str]:
    """
    Build recommendations: every missing item, a README prompt when no
    artifact mentions one, and a generic next step if nothing else applies.
    """
    recommendations: list[str] = []
    for item in missing:
        if item not in recommendations:
            recommendations.append(item)

    if not _mentions_readme(artifacts):
        recommendations.append(README_RECOMMENDATION)

    if not recommendations:
        recommendations.append(GENERIC_RECOMMENDATION)
    return recommendations


def build_fallback_review(
    project: SprintProject,
    artifacts: Sequence[ReviewArtifact],
    self_evaluation: Optional[SelfEvaluation] = None,
    pass_threshold: float = DEFAULT_PASS_THRESHOLD,
) -> ReviewOutput:
    """
    Review a project deterministically from its artifacts.

    Args:
        project: Project definition with declared deliverables
        artifacts: Artifacts submitted for this project
        self_evaluation: Optional learner self-evaluation
        pass_threshold: Minimum score to pass

    Returns:
        ReviewOutput
    """
    submitted_ids = {a.artifact_id for a in artifacts}
    achieved: list[str] = []
    missing: list[str] = []
    for deliverable in project.deliverables:
        if deliverable.artifact_id in submitted_ids:
            achieved.append(f"Deliverable met: {deliverable.title}")
        else:
            missing.append(f"Add deliverable: {deliverable.title}")

    score = fallback_score(artifacts, self_evaluation)
    return ReviewOutput(
        score=score,
        achieved=achieved,
        missing=missing,
        next_recommendations=fallback_recommendations(missing, artifacts),
        pass_=score >= pass_threshold,
    )
