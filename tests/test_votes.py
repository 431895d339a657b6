from squadcall.extensions import db
from squadcall.models import CallProposal, CallVote
from squadcall.services import proposals, votes
from squadcall.services.consensus import Tally
from squadcall.utils.helpers import utcnow
from datetime import timedelta


def _pending_call(make_squad, members=5):
    squad_id, users = make_squad(members=members)
    res = proposals.suggest(squad_id, users[0], utcnow() + timedelta(days=3), "UTC", "Zoom")
    return squad_id, users, res.proposal


def test_ledger_has_one_row_per_voter(ctx, make_squad):
    squad_id, users, call = _pending_call(make_squad)
    proposals.vote(squad_id, users[1], call.id, "no")
    proposals.vote(squad_id, users[1], call.id, "yes")
    proposals.vote(squad_id, users[1], call.id, "no")

    rows = db.session.query(CallVote).filter_by(call_id=call.id).all()
    assert sorted((r.user_id, r.vote) for r in rows) == [(users[0], "yes"), (users[1], "no")]


def test_stored_tally_matches_ledger(ctx, make_squad):
    squad_id, users, call = _pending_call(make_squad)
    proposals.vote(squad_id, users[1], call.id, "no")
    proposals.vote(squad_id, users[2], call.id, "no")
    proposals.vote(squad_id, users[2], call.id, "yes")

    stored = db.session.get(CallProposal, call.id)
    assert Tally(yes=stored.yes_count, no=stored.no_count) == votes.tally_from_ledger(call.id)
    assert votes.tally_from_ledger(call.id) == Tally(yes=2, no=1)
    assert votes.get_vote_choice(call.id, users[2]) == "yes"
    assert votes.get_vote_choice(call.id, users[3]) is None


def test_find_tally_drift_reports_mismatch(ctx, make_squad):
    squad_id, users, call = _pending_call(make_squad)
    assert votes.find_tally_drift() == []

    stored = db.session.get(CallProposal, call.id)
    stored.yes_count = 4
    db.session.commit()

    drift = votes.find_tally_drift()
    assert drift == [(call.id, Tally(yes=4, no=0), Tally(yes=1, no=0))]
