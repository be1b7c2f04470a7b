"""System message and prompt builder for adaptation decisions."""

from sprint_engine.models.adaptation import PerformanceAnalysis
from sprint_engine.models.lifecycle import Objective

ADAPTATION_SYSTEM_MESSAGE = """You adjust the difficulty and pacing of a learning path from learner performance.
Optimize learning speed while keeping comprehension and avoiding burnout.

Rules:
1. Average above 90% for 3+ sprints: raise difficulty 15-20 points, speed up 20-30%.
2. Average below 70% for 2+ sprints: lower difficulty 15-20 points, slow down 20-30%.
3. Scores between 70% and 90%: keep difficulty and pace.
4. Improving trend: be cautious with increases. Declining trend: decrease quickly.
5. More struggling skills call for a larger decrease; more mastered skills allow a faster increase.

Output a single JSON object that matches the provided schema exactly. No prose, no code fences.
"""


def build_adaptation_prompt(objective: Objective, analysis: PerformanceAnalysis) -> str:
    """Render the objective state and performance analysis for the provider."""
    struggling = ", ".join(analysis.struggling_skills) or "None"
    mastered = ", ".join(analysis.mastered_skills) or "None"
    return (
        "CURRENT STATE:\n"
        f"- Current Difficulty: {objective.current_difficulty}/100\n"
        f"- Learning Velocity: {objective.learning_velocity}x\n"
        f"- Days Completed: {objective.completed_days}\n"
        f"- Estimated Total Days: {objective.estimated_total_days}\n"
        "\n"
        "PERFORMANCE ANALYSIS:\n"
        f"- Sprints Analyzed: {analysis.sprints_analyzed}\n"
        f"- Average Score: {analysis.average_score:.1f}%\n"
        f"- Trend: {analysis.trend.value}\n"
        f"- Consistently High (>=90%): {analysis.consistently_high}\n"
        f"- Consistently Low (<70%): {analysis.consistently_low}\n"
        f"- Struggling Skills: {struggling}\n"
        f"- Mastered Skills: {mastered}\n"
        f"- Recommended Action: {analysis.recommended_action.value}\n"
        "\n"
        "Decide if and how to adapt the learning path."
    )
