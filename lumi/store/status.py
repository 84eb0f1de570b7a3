"""Analysis status state machine for check-in entries."""

from __future__ import annotations

from typing import Dict, FrozenSet

from ..errors import IllegalTransitionError
from .models import AnalysisStatus

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"processing", "failed"}),
    "processing": frozenset({"completed", "failed", "pending"}),
    # A new transcript version restarts analysis.
    "completed": frozenset({"pending", "failed"}),
    "failed": frozenset({"pending", "processing"}),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def check_transition(current: AnalysisStatus, target: AnalysisStatus) -> None:
    """Raise :class:`IllegalTransitionError` unless ``current -> target`` is allowed.

    Re-asserting the current state is a no-op so replayed writes are safe.
    """
    if current == target:
        return
    if not can_transition(current, target):
        raise IllegalTransitionError(
            f"Cannot move check-in analysis from {current} to {target}"
        )
