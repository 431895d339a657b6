from datetime import datetime, timezone

from squadcall.utils.helpers import parse_instant, isoformat_utc, format_call_time, as_utc
from squadcall.utils.validators import clean_str, normalize_vote, to_int_or_none

def test_parse_instant_variants():
    expected = datetime(2030, 5, 1, 18, 30, tzinfo=timezone.utc)
    assert parse_instant("2030-05-01T18:30:00Z") == expected
    assert parse_instant("2030-05-01T14:30:00-04:00") == expected
    assert parse_instant("2030-05-01T18:30:00") == expected
    assert parse_instant(expected) == expected
    assert parse_instant("tomorrow") is None
    assert parse_instant("") is None
    assert parse_instant(12345) is None

def test_isoformat_utc_uses_z_suffix():
    assert isoformat_utc(datetime(2030, 5, 1, 18, 30)) == "2030-05-01T18:30:00Z"
    assert isoformat_utc(None) is None

def test_as_utc_normalizes_offsets():
    naive = datetime(2030, 1, 1, 12, 0)
    assert as_utc(naive).tzinfo is timezone.utc

def test_format_call_time_in_squad_zone():
    dt = datetime(2030, 1, 7, 23, 30, tzinfo=timezone.utc)
    assert format_call_time(dt, "America/New_York") == "Monday, January 7 at 6:30 PM EST"
    assert format_call_time(dt, "Not/AZone") == "Monday, January 7 at 11:30 PM UTC"

def test_validators():
    assert clean_str("  Zoom   room  ") == "Zoom room"
    assert clean_str("   ") is None
    assert clean_str("abcdef", max_len=3) == "abc"
    assert normalize_vote(" Yes ") == "yes"
    assert normalize_vote("maybe") is None
    assert normalize_vote(True) is None
    assert to_int_or_none("42") == 42
    assert to_int_or_none(True) is None
    assert to_int_or_none("4x") is None
