"""
Quorum arithmetic and vote tallying. Pure functions; callers own persistence.
"""
from dataclasses import dataclass
from typing import Optional

YES = "yes"
NO = "no"


@dataclass(frozen=True)
class Tally:
    yes: int = 0
    no: int = 0


def compute_quorum(total_members: int) -> int:
    """Strict majority: floor(n / 2) + 1. A squad never needs fewer than one vote."""
    return max(int(total_members or 0), 1) // 2 + 1


def apply_vote(existing: Optional[str], new: str, tally: Tally) -> tuple[Tally, bool]:
    """
    Fold one voter's (possibly changed) vote into the tally.
    Returns (tally, changed); an identical re-vote leaves the tally untouched.
    """
    if new not in (YES, NO):
        raise ValueError(f"vote must be 'yes' or 'no', got {new!r}")
    if existing == new:
        return tally, False

    yes, no = tally.yes, tally.no
    if existing == YES:
        yes -= 1
    elif existing == NO:
        no -= 1

    if new == YES:
        yes += 1
    else:
        no += 1
    return Tally(yes=yes, no=no), True


def is_confirmed(yes_count: int, required_votes: int) -> bool:
    return yes_count >= required_votes
