from flask_login import UserMixin
from sqlalchemy import func
from squadcall.extensions import db, login_manager

class User(db.Model, UserMixin):
    """Identity mirror; credentials live with the external identity provider."""
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=True)
    first_name = db.Column(db.String(120), nullable=True)
    timezone = db.Column(db.String(64), nullable=False, server_default="UTC")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Reminder email preferences (per job type)
    email_squad_call_24h = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())
    email_squad_call_1h = db.Column(db.Boolean, nullable=False, default=True, server_default=db.true())

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def get_id(self) -> str:
        return str(self.id)

    def wants_call_email(self, job_type: str) -> bool:
        if job_type == "email_24h":
            return bool(self.email_squad_call_24h)
        if job_type == "email_1h":
            return bool(self.email_squad_call_1h)
        return True

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

@login_manager.user_loader
def load_user(user_id: str):
    try:
        return db.session.get(User, int(user_id))
    except Exception:
        return None
