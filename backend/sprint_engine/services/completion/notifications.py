"""Learner-facing notifications surfaced with a completion result."""

from typing import Optional

from sprint_engine.enums import NotificationType
from sprint_engine.models.completion import CompletionNotification, ObjectiveProgress
from sprint_engine.models.lifecycle import Milestone

PROGRESS_MARKS = (25, 50, 75)
PROGRESS_MARK_TOLERANCE = 2


def sprint_completed(day_number: int, completion_rate: float) -> CompletionNotification:
    return CompletionNotification(
        type=NotificationType.SPRINT_COMPLETED,
        title="Sprint Completed!",
        message=f"Day {day_number} completed successfully!",
        data={"dayNumber": day_number, "completionRate": round(completion_rate, 2)},
    )


def milestone_reached(milestone: Milestone) -> CompletionNotification:
    return CompletionNotification(
        type=NotificationType.MILESTONE_REACHED,
        title="Milestone Reached!",
        message=milestone.title,
        data={"milestoneId": milestone.id, "targetDay": milestone.target_day},
    )


def streak_milestone(streak: int, longest_streak: int) -> CompletionNotification:
    return CompletionNotification(
        type=NotificationType.STREAK_MILESTONE,
        title=f"{streak}-Day Streak!",
        message="You're on fire! Keep the momentum going!",
        data={"streak": streak, "longestStreak": longest_streak},
    )


def objective_progress(
    progress: ObjectiveProgress, objective_title: str
) -> Optional[CompletionNotification]:
    """
    Wrap-up suggestion once the estimate is met, otherwise a 25/50/75%
    note when progress lands within two points of a mark.

    The wrap-up suggestion never completes the objective.
    """
    if progress.goal_reached:
        return CompletionNotification(
            type=NotificationType.OBJECTIVE_PROGRESS,
            title="Initial Goal Reached!",
            message=(
                f"You've completed {progress.completed_days} days of {objective_title}. "
                f"Ready to mark as complete or continue learning?"
            ),
            data={
                "objectiveId": progress.objective_id,
                "totalDays": progress.completed_days,
                "totalHours": progress.total_hours_spent,
                "suggestCompletion": True,
            },
        )

    mark = next(
        (m for m in PROGRESS_MARKS if abs(progress.percent_complete - m) < PROGRESS_MARK_TOLERANCE),
        None,
    )
    if mark is None:
        return None
    return CompletionNotification(
        type=NotificationType.OBJECTIVE_PROGRESS,
        title=f"{mark}% Complete!",
        message=f"You're {mark}% of the way through {objective_title}",
        data={
            "percentComplete": progress.percent_complete,
            "daysRemaining": progress.days_remaining,
        },
    )
