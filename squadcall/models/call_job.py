from sqlalchemy import func, UniqueConstraint
from squadcall.extensions import db

JOB_NOTIFICATION_24H = "notification_24h"
JOB_EMAIL_24H = "email_24h"
JOB_NOTIFICATION_1H = "notification_1h"
JOB_EMAIL_1H = "email_1h"
JOB_NOTIFICATION_LIVE = "notification_live"
JOB_TYPES = (
    JOB_NOTIFICATION_24H,
    JOB_EMAIL_24H,
    JOB_NOTIFICATION_1H,
    JOB_EMAIL_1H,
    JOB_NOTIFICATION_LIVE,
)

class ScheduledCallJob(db.Model):
    """One pending notification/email fan-out for a confirmed call."""
    __tablename__ = "scheduled_call_jobs"

    id = db.Column(db.Integer, primary_key=True)
    squad_id = db.Column(db.Integer, db.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False, index=True)
    call_id = db.Column(db.Integer, nullable=False, index=True)
    job_type = db.Column(db.String(32), nullable=False)

    scheduled_time = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    call_date_time = db.Column(db.DateTime(timezone=True), nullable=False)
    call_timezone = db.Column(db.String(64), nullable=False, server_default="UTC")
    call_location = db.Column(db.String(500), nullable=False, server_default="")
    call_title = db.Column(db.String(255), nullable=False, server_default="")

    executed = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false(), index=True)
    executed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    error = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("squad_id", "call_id", "job_type", name="uq_scheduled_call_jobs_call_type"),
    )

    @property
    def is_email(self) -> bool:
        return self.job_type.startswith("email_")

    @property
    def is_notification(self) -> bool:
        return self.job_type.startswith("notification_")

    def __repr__(self) -> str:
        return f"<ScheduledCallJob squad_id={self.squad_id} call_id={self.call_id} type={self.job_type!r}>"
