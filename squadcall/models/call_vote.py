from sqlalchemy import func, CheckConstraint, UniqueConstraint
from squadcall.extensions import db

VOTE_YES = "yes"
VOTE_NO = "no"

class CallVote(db.Model):
    __tablename__ = "call_votes"

    id = db.Column(db.Integer, primary_key=True)
    call_id = db.Column(db.Integer, db.ForeignKey("call_proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    squad_id = db.Column(db.Integer, db.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vote = db.Column(db.String(3), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # One vote per (call, voter); re-voting overwrites
        UniqueConstraint("call_id", "user_id", name="uq_call_votes_call_user"),
        CheckConstraint("vote IN ('yes','no')", name="ck_call_votes_vote_valid"),
    )

    def __repr__(self) -> str:
        return f"<CallVote call_id={self.call_id} user_id={self.user_id} vote={self.vote!r}>"
