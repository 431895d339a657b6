from sqlalchemy import func
from squadcall.extensions import db

class Squad(db.Model):
    __tablename__ = "squads"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    # Premium squads are scheduled by their coach; the consensus flow refuses them
    is_premium = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())
    chat_channel_id = db.Column(db.String(128), nullable=True)

    # Denormalized pointer to the single pending/confirmed proposal. Moved in
    # the same versioned write as every supersession; no FK to keep the
    # squads <-> call_proposals graph acyclic.
    active_proposal_id = db.Column(db.Integer, nullable=True)
    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Squad id={self.id} name={self.name!r} premium={self.is_premium}>"
