"""
Best-Effort Steps

Side effects that must never fail the operation that triggers them
(next-sprint generation, buffer top-up, recalibration after completion)
run through run_best_effort(). The wrapper turns an ordinary exception
into a failed BestEffortResult and logs it; cancellation still propagates.

Usage:
    result = await run_best_effort("buffer_maintenance", scheduler.maintain_sprint_buffer(oid))
    if not result.ok:
        errors[result.step] = result.error
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BestEffortResult(Generic[T]):
    """
    Outcome of a best-effort step.

    Attributes:
        step: Name of the step
        ok: Whether the step completed
        value: The step's return value when ok
        error: "<ErrorType>: <message>" when not ok
    """

    step: str
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None


async def run_best_effort(
    step: str, awaitable: Awaitable[T], context: Optional[dict[str, Any]] = None
) -> BestEffortResult[T]:
    """
    Await a side effect without letting its failure propagate.

    Args:
        step: Name used in logs and results
        awaitable: The side effect
        context: Extra identifiers for the log line

    Returns:
        BestEffortResult
    """
    try:
        value = await awaitable
    except Exception as e:
        error = f"{type(e).__name__}: {e}"
        logger.error(f"Best-effort step '{step}' failed: {error}", extra={"context": context or {}})
        return BestEffortResult(step=step, ok=False, error=error)
    return BestEffortResult(step=step, ok=True, value=value)
