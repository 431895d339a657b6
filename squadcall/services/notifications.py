from typing import Optional

from squadcall.extensions import db
from squadcall.models import Notification, ScheduledCallJob, User
from squadcall.models.call_job import JOB_NOTIFICATION_24H, JOB_NOTIFICATION_1H, JOB_NOTIFICATION_LIVE
from squadcall.utils.helpers import format_call_time

_NOTIFICATION_TYPES = {
    JOB_NOTIFICATION_24H: "squad_call_24h",
    JOB_NOTIFICATION_1H: "squad_call_1h",
    JOB_NOTIFICATION_LIVE: "squad_call_live",
}


def notify_user(*, user_id: int, type: str, title: str, body: str, action_route: Optional[str] = None) -> Notification:
    n = Notification(user_id=user_id, type=type, title=title, body=body, action_route=action_route)
    db.session.add(n)
    db.session.commit()
    return n


def build_squad_call_notification(user: User, job: ScheduledCallJob) -> Optional[tuple[str, str, str]]:
    """(type, title, body) for a notification job, in the squad's and the member's timezone."""
    notification_type = _NOTIFICATION_TYPES.get(job.job_type)
    if notification_type is None:
        return None

    squad_time = format_call_time(job.call_date_time, job.call_timezone)
    user_time = format_call_time(job.call_date_time, user.timezone or "UTC")

    if job.job_type == JOB_NOTIFICATION_24H:
        title = "Upcoming squad call tomorrow"
        body = f"Your squad call is tomorrow: {squad_time} ({user_time} your time)."
    elif job.job_type == JOB_NOTIFICATION_1H:
        title = "Squad call in 1 hour"
        body = f"Your squad call starts in 1 hour: {squad_time} ({user_time} your time)."
    else:
        title = "Your squad call is live"
        body = "Your squad call is happening now. Join the squad chat to participate."
    return notification_type, title, body


def notify_squad_call(user: User, job: ScheduledCallJob) -> Optional[Notification]:
    built = build_squad_call_notification(user, job)
    if built is None:
        return None
    notification_type, title, body = built
    return notify_user(user_id=user.id, type=notification_type, title=title, body=body, action_route="/squad")
