import pytest

from squadcall.services import events


def _event(event_type=events.PROPOSAL_SUGGESTED):
    return events.ProposalEvent(type=event_type, squad_id=1, proposal_id=2, proposal_type="new")


def test_broadcast_isolates_failing_listeners(ctx):
    seen = []

    def boom(event):
        raise RuntimeError("down")

    def ok(event):
        seen.append(event.proposal_id)

    events.register_listener(events.PROPOSAL_CANCELED, boom)
    events.register_listener(events.PROPOSAL_CANCELED, ok)
    try:
        failures = events.broadcast(_event(events.PROPOSAL_CANCELED))
    finally:
        events.unregister_listener(events.PROPOSAL_CANCELED, boom)
        events.unregister_listener(events.PROPOSAL_CANCELED, ok)

    assert failures == 1
    assert seen == [2]


def test_register_is_idempotent():
    def cb(event):
        pass

    events.register_listener(events.PROPOSAL_SUGGESTED, cb)
    events.register_listener(events.PROPOSAL_SUGGESTED, cb)
    try:
        assert events.listeners_for(events.PROPOSAL_SUGGESTED).count(cb) == 1
    finally:
        events.unregister_listener(events.PROPOSAL_SUGGESTED, cb)
    assert cb not in events.listeners_for(events.PROPOSAL_SUGGESTED)


def test_unknown_event_type_rejected():
    with pytest.raises(ValueError):
        events.register_listener("proposal.exploded", lambda e: None)
