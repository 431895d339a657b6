from sqlalchemy import func
from squadcall.extensions import db

class SquadChatMessage(db.Model):
    """Outbox of system-bot messages for a squad's chat channel."""
    __tablename__ = "squad_chat_messages"

    id = db.Column(db.Integer, primary_key=True)
    squad_id = db.Column(db.Integer, db.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False, index=True)
    channel_id = db.Column(db.String(128), nullable=True)
    notification_type = db.Column(db.String(32), nullable=False, index=True)  # suggested|confirmed|updated|canceled|reminder
    text = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, server_default="queued")  # queued; the transport worker delivers it
    meta = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return f"<SquadChatMessage squad_id={self.squad_id} type={self.notification_type!r} status={self.status!r}>"
