"""
System-bot messages for a squad's chat channel.

Messages go to the squad_chat_messages outbox; delivering them to the chat
provider is the transport worker's job. Squads without a channel get no
message.
"""
from __future__ import annotations

import json
import logging
from typing import Optional

from squadcall.extensions import db
from squadcall.models import (
    CallProposal,
    Squad,
    SquadChatMessage,
    SquadCallReminder,
    User,
    TYPE_EDIT,
    TYPE_DELETE,
)
from squadcall.utils.helpers import format_call_time, isoformat_utc
from . import events

logger = logging.getLogger(__name__)


def post_chat_message(squad: Squad, notification_type: str, text: str, meta: Optional[dict] = None) -> Optional[SquadChatMessage]:
    if not squad.chat_channel_id:
        return None
    msg = SquadChatMessage(
        squad_id=squad.id,
        channel_id=squad.chat_channel_id,
        notification_type=notification_type,
        text=text,
        status="queued",
        meta={"standard_call_notification": True, **(meta or {})},
    )
    db.session.add(msg)
    db.session.commit()
    logger.info(json.dumps({
        "event": "chat_message_queued",
        "squad_id": squad.id,
        "notification_type": notification_type,
    }))
    return msg


def _when_where(proposal: CallProposal) -> str:
    when = format_call_time(proposal.start_at, proposal.timezone)
    return f"**When:** {when}\n**Location:** {proposal.location}"


def suggested_text(proposal: CallProposal, actor_name: str) -> str:
    if proposal.proposal_type == TYPE_DELETE:
        return (
            f"🗑️ **{actor_name}** proposed to cancel the upcoming squad call.\n\n"
            "Vote to approve or reject this proposal."
        )
    if proposal.proposal_type == TYPE_EDIT:
        return (
            f"✏️ **{actor_name}** proposed a new time for the squad call:\n\n"
            f"{_when_where(proposal)}\n\nVote to approve this change."
        )
    return (
        f"📅 **{actor_name}** suggested a new squad call!\n\n"
        f"{_when_where(proposal)}\n\nVote to confirm this call."
    )


def confirmed_text(proposal: CallProposal) -> tuple[str, str]:
    """(notification_type, text) for a proposal that just reached quorum."""
    if proposal.proposal_type == TYPE_DELETE:
        return "canceled", "❌ **The upcoming squad call has been canceled.**"
    if proposal.proposal_type == TYPE_EDIT:
        return "updated", f"✏️ **The squad call time has been updated!**\n\n{_when_where(proposal)}"
    return "confirmed", f"✅ **The squad call is confirmed!**\n\n{_when_where(proposal)}"


def post_call_reminder(squad: Squad, reminder: SquadCallReminder) -> Optional[SquadChatMessage]:
    when = format_call_time(reminder.call_date_time, reminder.call_timezone)
    text = (
        "⏰ **Reminder:** Your squad call starts in 1 hour!\n\n"
        f"**When:** {when}\n**Location:** {reminder.call_location}"
    )
    return post_chat_message(
        squad,
        "reminder",
        text,
        meta={
            "call_reminder": True,
            "call_id": reminder.call_id,
            "call_date_time": isoformat_utc(reminder.call_date_time),
        },
    )


def on_proposal_suggested(event: events.ProposalEvent) -> None:
    proposal = db.session.get(CallProposal, event.proposal_id)
    squad = db.session.get(Squad, event.squad_id)
    if proposal is None or squad is None:
        return
    actor = db.session.get(User, event.actor_id) if event.actor_id else None
    actor_name = (actor.first_name if actor else None) or "Someone"
    post_chat_message(squad, "suggested", suggested_text(proposal, actor_name), meta={"call_id": proposal.id})


def on_proposal_confirmed(event: events.ProposalEvent) -> None:
    proposal = db.session.get(CallProposal, event.proposal_id)
    squad = db.session.get(Squad, event.squad_id)
    if proposal is None or squad is None:
        return
    kind, text = confirmed_text(proposal)
    post_chat_message(squad, kind, text, meta={"call_id": proposal.id})


def register_listeners() -> None:
    events.register_listener(events.PROPOSAL_SUGGESTED, on_proposal_suggested)
    events.register_listener(events.PROPOSAL_CONFIRMED, on_proposal_confirmed)
