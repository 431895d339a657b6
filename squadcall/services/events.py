"""
In-process domain events for the call lifecycle.

The lifecycle controller broadcasts after its transaction commits, so a
listener always sees committed state. Listeners are isolated from each
other and from the caller: an exception is logged and swallowed, and the
next listener still runs.
"""
import json
import logging
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from squadcall.extensions import db

logger = logging.getLogger(__name__)

PROPOSAL_SUGGESTED = "proposal.suggested"
PROPOSAL_CONFIRMED = "proposal.confirmed"
PROPOSAL_CANCELED = "proposal.canceled"
EVENT_TYPES = (PROPOSAL_SUGGESTED, PROPOSAL_CONFIRMED, PROPOSAL_CANCELED)


@dataclass(frozen=True)
class ProposalEvent:
    type: str
    squad_id: int
    proposal_id: int
    proposal_type: str
    original_call_id: Optional[int] = None
    actor_id: Optional[int] = None
    # For PROPOSAL_CANCELED: the proposal that took its place, and the status it had
    superseded_by: Optional[int] = None
    previous_status: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


_listeners: Dict[str, List[Callable[[ProposalEvent], None]]] = {}


def register_listener(event_type: str, callback: Callable[[ProposalEvent], None]) -> None:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event_type}")
    callbacks = _listeners.setdefault(event_type, [])
    if callback not in callbacks:
        callbacks.append(callback)


def unregister_listener(event_type: str, callback: Callable[[ProposalEvent], None]) -> None:
    callbacks = _listeners.get(event_type, [])
    if callback in callbacks:
        callbacks.remove(callback)


def listeners_for(event_type: str) -> List[Callable[[ProposalEvent], None]]:
    return list(_listeners.get(event_type, []))


def broadcast(event: ProposalEvent) -> int:
    """Deliver to every listener; returns how many listeners failed."""
    failures = 0
    for listener in listeners_for(event.type):
        try:
            listener(event)
        except Exception:
            failures += 1
            # Leave the session usable for the next listener
            db.session.rollback()
            logger.exception(json.dumps({
                "event": "collaborator_failure",
                "listener": getattr(listener, "__name__", repr(listener)),
                **asdict(event),
            }))
    return failures
