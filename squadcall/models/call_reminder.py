from sqlalchemy import func
from squadcall.extensions import db

class SquadCallReminder(db.Model):
    """The squad's single 1-hour-before chat reminder; rewritten on every confirmation."""
    __tablename__ = "squad_call_reminders"

    id = db.Column(db.Integer, primary_key=True)
    squad_id = db.Column(db.Integer, db.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    call_id = db.Column(db.Integer, nullable=False, index=True)

    call_date_time = db.Column(db.DateTime(timezone=True), nullable=False)
    call_timezone = db.Column(db.String(64), nullable=False, server_default="UTC")
    call_location = db.Column(db.String(500), nullable=False, server_default="")
    call_title = db.Column(db.String(255), nullable=False, server_default="")
    reminder_time = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    sent = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false(), index=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    error = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
