"""
Standard-squad call lifecycle.

Any member of a standard (non-premium) squad can suggest a call, vote on
the pending proposal, or propose to edit/delete the confirmed one. A
proposal confirms once yes votes reach a strict majority of the squad
size frozen at creation. Per squad there is at most one active
(pending or confirmed) proposal, tracked by Squad.active_proposal_id:

    NoActiveProposal --suggest--> Pending --quorum--> Confirmed
    Pending/Confirmed --suggest--> (old: canceled) Pending
    Confirmed --propose edit/delete--> (old: canceled) Pending

Every mutation runs through `run_in_transaction`; domain events are
broadcast only after the commit, so scheduler/chat failures can never
undo a decision.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app

from squadcall.extensions import db
from squadcall.models import (
    CallProposal,
    Squad,
    SquadMembership,
    TYPE_NEW,
    TYPE_EDIT,
    TYPE_DELETE,
    STATUS_PENDING,
    STATUS_CONFIRMED,
    STATUS_CANCELED,
    VOTE_YES,
)
from squadcall.utils.helpers import utcnow, parse_instant, as_utc
from squadcall.utils.validators import clean_str, normalize_vote
from . import events, votes
from .consensus import compute_quorum, is_confirmed
from .errors import ValidationError, InvalidDomain, Forbidden, NotFound
from .persistence import run_in_transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveProposal:
    proposal: Optional[CallProposal]
    my_vote: Optional[str]


@dataclass(frozen=True)
class ProposalResult:
    proposal: CallProposal
    confirmed: bool


@dataclass(frozen=True)
class VoteOutcome:
    proposal: CallProposal
    confirmed: bool
    changed: bool
    my_vote: str


@dataclass(frozen=True)
class _CallFields:
    start_at: Optional[datetime]
    timezone: str
    location: str
    title: str


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------

def _load_squad(squad_id: int) -> Squad:
    squad = db.session.get(Squad, squad_id)
    if not squad:
        raise NotFound("Squad not found")
    if squad.is_premium:
        raise InvalidDomain("This endpoint is for standard squads only")
    return squad


def is_member(squad_id: int, user_id: int) -> bool:
    return db.session.query(
        db.session.query(SquadMembership)
        .filter_by(squad_id=squad_id, user_id=user_id)
        .exists()
    ).scalar()


def member_count(squad_id: int) -> int:
    return db.session.query(SquadMembership).filter_by(squad_id=squad_id).count()


def _authorize(squad_id: int, actor_id: int) -> Squad:
    squad = _load_squad(squad_id)
    if actor_id is None or not is_member(squad_id, actor_id):
        raise Forbidden("Not a member of this squad")
    return squad


# Column widths on call_proposals
_TIMEZONE_MAX = 64
_LOCATION_MAX = 500
_TITLE_MAX = 255


def _bounded(value, name: str, max_len: int):
    """Cleaned value, or ValidationError when it will not fit the column."""
    cleaned = clean_str(value, max_len=max_len + 1)
    if cleaned and len(cleaned) > max_len:
        raise ValidationError(f"{name} must be at most {max_len} characters")
    return cleaned


def _validate_call_fields(start_date_time_utc, timezone, location, title, *, now: datetime) -> _CallFields:
    tz = _bounded(timezone, "timezone", _TIMEZONE_MAX)
    loc = _bounded(location, "location", _LOCATION_MAX)
    if not start_date_time_utc or not tz or not loc:
        raise ValidationError("Missing required fields: dateTime, timezone, location")

    start_at = parse_instant(start_date_time_utc)
    if start_at is None:
        raise ValidationError("Invalid dateTime format")
    if start_at <= as_utc(now):
        raise ValidationError("Call must be scheduled in the future")

    default_title = current_app.config.get("CALL_DEFAULT_TITLE", "Squad accountability call")
    return _CallFields(
        start_at=start_at,
        timezone=tz,
        location=loc,
        title=_bounded(title, "title", _TITLE_MAX) or default_title,
    )


_EMPTY_FIELDS = _CallFields(start_at=None, timezone="", location="", title="")


# ---------------------------------------------------------------------------
# Transitions (stage changes in the session; run inside run_in_transaction)
# ---------------------------------------------------------------------------

def _supersede(proposal_id: Optional[int]) -> Optional[tuple[int, str]]:
    """
    Cancel the given proposal if it is still active. Returns (id, previous status),
    or None when a concurrent suggestion already superseded it.
    """
    if not proposal_id:
        return None
    target = db.session.get(CallProposal, proposal_id)
    if target is None or not target.is_active:
        return None
    previous = target.status
    target.status = STATUS_CANCELED
    target.updated_at = utcnow()
    return target.id, previous


def _mark_confirmed(proposal: CallProposal, now: datetime) -> bool:
    """
    pending -> confirmed, exactly once. The status check plus the versioned
    UPDATE means a racing second confirmer either sees `confirmed` here or
    loses at flush time; only the winner gets True and dispatches side effects.
    """
    if proposal.status != STATUS_PENDING:
        return False
    if not is_confirmed(proposal.yes_count, proposal.required_votes):
        return False
    proposal.status = STATUS_CONFIRMED
    proposal.confirmed_at = now
    proposal.updated_at = now
    return True


def _open_proposal(
    squad_id: int,
    actor_id: int,
    proposal_type: str,
    fields: _CallFields,
    *,
    original_call_id: Optional[int],
    now: datetime,
):
    squad = db.session.get(Squad, squad_id)

    if proposal_type == TYPE_NEW:
        superseded = _supersede(squad.active_proposal_id)
    else:
        original = db.session.get(CallProposal, original_call_id)
        if original is None:
            raise NotFound("Original call not found")
        if original.squad_id != squad_id:
            raise Forbidden("Call does not belong to this squad")
        if original.status != STATUS_CONFIRMED:
            raise ValidationError("Only a confirmed call can be changed")
        if original.proposal_type == TYPE_DELETE:
            raise ValidationError("This call has already been canceled")
        superseded = _supersede(original.id)
    # Cancel before insert so the one-active-per-squad index never sees two rows
    db.session.flush()

    total = member_count(squad_id)
    proposal = CallProposal(
        squad_id=squad_id,
        proposal_type=proposal_type,
        status=STATUS_PENDING,
        start_at=fields.start_at,
        timezone=fields.timezone,
        location=fields.location,
        title=fields.title,
        original_call_id=original_call_id if proposal_type != TYPE_NEW else None,
        yes_count=0,
        no_count=0,
        required_votes=compute_quorum(total),
        total_members=total,
        created_by_user_id=actor_id,
    )
    db.session.add(proposal)
    db.session.flush()

    # Creator's self-vote
    votes.cast_vote(proposal, actor_id, VOTE_YES)

    # Versioned UPDATE on the squad: two racing suggestions cannot both move the pointer
    squad.active_proposal_id = proposal.id

    confirmed = _mark_confirmed(proposal, now)
    db.session.flush()
    return proposal, confirmed, superseded


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

def _event(event_type: str, proposal: CallProposal, **extra) -> events.ProposalEvent:
    return events.ProposalEvent(
        type=event_type,
        squad_id=proposal.squad_id,
        proposal_id=proposal.id,
        proposal_type=proposal.proposal_type,
        original_call_id=proposal.original_call_id,
        **extra,
    )


def _publish_opened(proposal: CallProposal, actor_id: int, confirmed: bool, superseded) -> None:
    if superseded:
        old_id, previous_status = superseded
        old = db.session.get(CallProposal, old_id)
        if old is not None:
            events.broadcast(_event(
                events.PROPOSAL_CANCELED,
                old,
                actor_id=actor_id,
                superseded_by=proposal.id,
                previous_status=previous_status,
            ))
    events.broadcast(_event(events.PROPOSAL_SUGGESTED, proposal, actor_id=actor_id))
    if confirmed:
        events.broadcast(_event(events.PROPOSAL_CONFIRMED, proposal, actor_id=actor_id))


def _log(event: str, proposal: CallProposal, actor_id: int, **fields) -> None:
    logger.info(json.dumps({
        "event": event,
        "squad_id": proposal.squad_id,
        "call_id": proposal.id,
        "proposal_type": proposal.proposal_type,
        "status": proposal.status,
        "yes": proposal.yes_count,
        "no": proposal.no_count,
        "required": proposal.required_votes,
        "actor_id": actor_id,
        **fields,
    }))


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

def get_active_proposal(squad_id: int, actor_id: int) -> ActiveProposal:
    squad = _authorize(squad_id, actor_id)
    proposal = db.session.get(CallProposal, squad.active_proposal_id) if squad.active_proposal_id else None
    if proposal is None or not proposal.is_active:
        return ActiveProposal(proposal=None, my_vote=None)
    return ActiveProposal(proposal=proposal, my_vote=votes.get_vote_choice(proposal.id, actor_id))


def suggest(
    squad_id: int,
    actor_id: int,
    start_date_time_utc,
    timezone: str,
    location: str,
    title: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> ProposalResult:
    """Propose a new call, superseding whatever is currently active."""
    now = now or utcnow()
    _authorize(squad_id, actor_id)
    fields = _validate_call_fields(start_date_time_utc, timezone, location, title, now=now)

    proposal, confirmed, superseded = run_in_transaction(
        lambda: _open_proposal(squad_id, actor_id, TYPE_NEW, fields, original_call_id=None, now=now),
        operation="suggest",
    )
    _log("call_suggested", proposal, actor_id, superseded=superseded[0] if superseded else None)
    _publish_opened(proposal, actor_id, confirmed, superseded)
    return ProposalResult(proposal=proposal, confirmed=confirmed)


def propose_change(
    squad_id: int,
    actor_id: int,
    original_call_id: int,
    proposal_type: str,
    start_date_time_utc=None,
    timezone: Optional[str] = None,
    location: Optional[str] = None,
    title: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> ProposalResult:
    """Propose editing (new time/place) or deleting the squad's confirmed call."""
    now = now or utcnow()
    if proposal_type not in (TYPE_EDIT, TYPE_DELETE):
        raise ValidationError("proposalType must be 'edit' or 'delete'")
    if not original_call_id:
        raise ValidationError("originalCallId is required for edit and delete proposals")
    _authorize(squad_id, actor_id)

    if proposal_type == TYPE_EDIT:
        fields = _validate_call_fields(start_date_time_utc, timezone, location, title, now=now)
    else:
        fields = _EMPTY_FIELDS

    proposal, confirmed, superseded = run_in_transaction(
        lambda: _open_proposal(
            squad_id, actor_id, proposal_type, fields, original_call_id=original_call_id, now=now
        ),
        operation=f"propose_{proposal_type}",
    )
    _log("call_change_proposed", proposal, actor_id, original_call_id=original_call_id)
    _publish_opened(proposal, actor_id, confirmed, superseded)
    return ProposalResult(proposal=proposal, confirmed=confirmed)


def vote(
    squad_id: int,
    actor_id: int,
    call_id: int,
    vote: str,
    *,
    now: Optional[datetime] = None,
) -> VoteOutcome:
    """Record a yes/no vote on the squad's pending proposal."""
    now = now or utcnow()
    choice = normalize_vote(vote)
    if not call_id or choice is None:
        raise ValidationError("Invalid request: callId and vote (yes/no) required")
    _authorize(squad_id, actor_id)

    def _work():
        proposal = db.session.get(CallProposal, call_id)
        if proposal is None:
            raise NotFound("Call not found")
        if proposal.squad_id != squad_id:
            raise Forbidden("Call does not belong to this squad")
        if proposal.status != STATUS_PENDING:
            raise ValidationError("Cannot vote on this call - it is not pending")

        result = votes.cast_vote(proposal, actor_id, choice)
        confirmed = result.changed and _mark_confirmed(proposal, now)
        db.session.flush()
        return proposal, result, confirmed

    proposal, result, confirmed = run_in_transaction(_work, operation="vote")

    if not result.changed:
        return VoteOutcome(proposal=proposal, confirmed=False, changed=False, my_vote=choice)

    _log("call_vote", proposal, actor_id, vote=choice, previous=result.previous, confirmed=confirmed)
    if confirmed:
        events.broadcast(_event(events.PROPOSAL_CONFIRMED, proposal, actor_id=actor_id))
    return VoteOutcome(proposal=proposal, confirmed=confirmed, changed=True, my_vote=choice)
