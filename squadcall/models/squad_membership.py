from sqlalchemy import func, UniqueConstraint
from squadcall.extensions import db

class SquadMembership(db.Model):
    __tablename__ = "squad_memberships"

    id = db.Column(db.Integer, primary_key=True)

    squad_id = db.Column(
        db.Integer,
        db.ForeignKey("squads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("squad_id", "user_id", name="uq_squad_memberships_squad_user"),
    )
