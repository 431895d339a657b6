from sqlalchemy import func
from squadcall.extensions import db

class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = db.Column(db.String(40), nullable=False)  # squad_call_24h|squad_call_1h|squad_call_live
    title = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, nullable=False)
    action_route = db.Column(db.String(255), nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
