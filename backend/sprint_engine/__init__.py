"""
Sprint Engine

Adaptive sprint planning and completion for learning objectives: plans
daily sprints through a reasoning provider, reviews submitted evidence,
completes sprints with streak and milestone bookkeeping, keeps a buffer
of upcoming sprints and recalibrates difficulty and pacing from scores.
"""

__version__ = "0.1.0"
