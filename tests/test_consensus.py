import pytest
from squadcall.services.consensus import Tally, compute_quorum, apply_vote, is_confirmed

@pytest.mark.parametrize("members,required", [(1, 1), (2, 2), (3, 2), (4, 3), (5, 3), (10, 6)])
def test_quorum_is_strict_majority(members, required):
    assert compute_quorum(members) == required

def test_quorum_never_below_one():
    assert compute_quorum(0) == 1
    assert compute_quorum(None) == 1

def test_first_vote_increments():
    t, changed = apply_vote(None, "yes", Tally())
    assert changed and t == Tally(yes=1, no=0)
    t, changed = apply_vote(None, "no", t)
    assert changed and t == Tally(yes=1, no=1)

def test_changed_vote_moves_between_buckets():
    t, changed = apply_vote("yes", "no", Tally(yes=2, no=0))
    assert changed
    assert t == Tally(yes=1, no=1)

def test_identical_revote_is_noop():
    start = Tally(yes=1, no=1)
    t, changed = apply_vote("no", "no", start)
    assert changed is False
    assert t is start

def test_invalid_vote_rejected():
    with pytest.raises(ValueError):
        apply_vote(None, "maybe", Tally())

def test_is_confirmed_threshold():
    assert is_confirmed(2, 2) is True
    assert is_confirmed(1, 2) is False
