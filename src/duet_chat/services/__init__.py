# src/duet_chat/services/__init__.py
"""Business logic services for the Duet Chat application."""

from .retention import RetentionSweeper, SweepResult

__all__ = [
    "RetentionSweeper",
    "SweepResult",
]
