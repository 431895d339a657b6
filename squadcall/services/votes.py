"""
Vote Ledger: one row per (call, voter), and the denormalized tallies on the
proposal kept equal to it.

These helpers only stage changes in the current session. Callers run them
inside `run_in_transaction` so the vote row and the versioned tally update
commit (or conflict) together.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func

from squadcall.extensions import db
from squadcall.models import CallProposal, CallVote, VOTE_YES, VOTE_NO
from squadcall.models.call_proposal import ACTIVE_STATUSES
from squadcall.utils.helpers import utcnow
from .consensus import Tally, apply_vote


@dataclass(frozen=True)
class VoteResult:
    tally: Tally
    changed: bool
    previous: Optional[str] = None


def get_vote(call_id: int, user_id: int) -> Optional[CallVote]:
    return (
        db.session.query(CallVote)
        .filter_by(call_id=call_id, user_id=user_id)
        .one_or_none()
    )


def get_vote_choice(call_id: int, user_id: int) -> Optional[str]:
    row = get_vote(call_id, user_id)
    return row.vote if row else None


def cast_vote(proposal: CallProposal, user_id: int, vote: str) -> VoteResult:
    """
    Upsert the voter's row and move the proposal's tallies accordingly.
    An identical re-vote writes nothing and reports changed=False.
    """
    existing = get_vote(proposal.id, user_id)
    previous = existing.vote if existing else None

    tally, changed = apply_vote(previous, vote, Tally(yes=proposal.yes_count, no=proposal.no_count))
    if not changed:
        return VoteResult(tally=tally, changed=False, previous=previous)

    if existing is None:
        db.session.add(CallVote(
            call_id=proposal.id,
            squad_id=proposal.squad_id,
            user_id=user_id,
            vote=vote,
        ))
    else:
        existing.vote = vote
        existing.updated_at = utcnow()

    # Versioned UPDATE: a concurrent voter makes this flush raise StaleDataError
    proposal.yes_count = tally.yes
    proposal.no_count = tally.no
    proposal.updated_at = utcnow()
    db.session.flush()
    return VoteResult(tally=tally, changed=True, previous=previous)


def tally_from_ledger(call_id: int) -> Tally:
    """Recount straight from the vote rows."""
    rows = (
        db.session.query(CallVote.vote, func.count(CallVote.id))
        .filter(CallVote.call_id == call_id)
        .group_by(CallVote.vote)
        .all()
    )
    counts = dict(rows)
    return Tally(yes=int(counts.get(VOTE_YES, 0)), no=int(counts.get(VOTE_NO, 0)))


def find_tally_drift(limit: int = 500) -> list[tuple[int, Tally, Tally]]:
    """(call_id, stored, counted) for active proposals whose tallies disagree with the ledger."""
    drift = []
    proposals = (
        db.session.query(CallProposal)
        .filter(CallProposal.status.in_(ACTIVE_STATUSES))
        .order_by(CallProposal.id)
        .limit(limit)
        .all()
    )
    for p in proposals:
        stored = Tally(yes=p.yes_count, no=p.no_count)
        counted = tally_from_ledger(p.id)
        if stored != counted:
            drift.append((p.id, stored, counted))
    return drift
