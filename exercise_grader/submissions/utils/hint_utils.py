from typing import List, Sequence

from exercise_grader.exercises.models import Hint


def available_hints(hints: Sequence[Hint], attempts: int) -> List[Hint]:
    """Hints unlocked at this attempt count, in disclosure order."""
    return sorted((h for h in hints if h.reveal_after_attempts <= attempts), key=lambda h: h.order)


def locked_hint_count(hints: Sequence[Hint], attempts: int) -> int:
    return sum(1 for h in hints if h.reveal_after_attempts > attempts)


def reveal(hint_id: str, used_hints: Sequence[str]) -> List[str]:
    """Add a hint id to the revealed list. Revealing twice is a no-op."""
    used = list(used_hints)
    if hint_id not in used:
        used.append(hint_id)
    return used


def revealed_hints(hints: Sequence[Hint], used_hints: Sequence[str]) -> List[Hint]:
    """Revealed hints in disclosure order, whatever the current attempt count is."""
    used = set(used_hints)
    return sorted((h for h in hints if h.id in used), key=lambda h: h.order)
