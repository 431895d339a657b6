import re

VOTE_CHOICES = ("yes", "no")

def clean_str(val: str | None, max_len: int = 255) -> str | None:
    """
    Collapse whitespace, trim, enforce max length. Returns None if empty after cleaning.
    """
    if val is None:
        return None
    if not isinstance(val, str):
        val = str(val)
    s = re.sub(r"\s+", " ", val).strip()
    if not s:
        return None
    return s[:max_len]

def normalize_vote(val) -> str | None:
    if not isinstance(val, str):
        return None
    v = val.strip().lower()
    return v if v in VOTE_CHOICES else None

def to_int_or_none(val) -> int | None:
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val
    s = str(val or "").strip()
    return int(s) if s.isdigit() else None
