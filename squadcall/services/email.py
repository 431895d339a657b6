from typing import Optional, Dict, Any
from urllib.parse import urljoin
from flask import current_app, render_template
from flask_mail import Message
from squadcall.extensions import db, mail
from squadcall.models import EmailLog, ScheduledCallJob, User
from squadcall.models.call_job import JOB_EMAIL_24H, JOB_EMAIL_1H
from squadcall.utils.helpers import utcnow, format_call_time
from datetime import timedelta
import json
import time

# Suppression lookback window
SUPPRESSION_WINDOW_DAYS = 90

_CALL_EMAILS = {
    JOB_EMAIL_24H: ("squad_call_24h", "Your squad call is tomorrow"),
    JOB_EMAIL_1H: ("squad_call_1h", "Your group call starts in 1 hour"),
}

def is_suppressed(to_email: str) -> bool:
    """
    Return True if the address should be suppressed due to a recent bounce/complaint.
    """
    cutoff = utcnow() - timedelta(days=SUPPRESSION_WINDOW_DAYS)
    q = EmailLog.query.filter(
        EmailLog.to_email == to_email.lower(),
        EmailLog.created_at >= cutoff,
        EmailLog.status.in_(("bounced", "complaint")),
    )
    return db.session.query(q.exists()).scalar()

def absolute_url(path: str) -> str:
    base = current_app.config["APP_BASE_URL"].rstrip("/") + "/"
    path = path.lstrip("/")
    return urljoin(base, path)

def send_email(to_email: str, subject: str, template: str, context: Optional[Dict[str, Any]] = None, user_id: Optional[int] = None) -> Optional[EmailLog]:
    """
    template: basename under templates/email/ without extension (e.g., 'squad_call_24h')
    Renders both HTML and plaintext. Returns the EmailLog row, or None when suppressed.
    """
    context = context or {}
    to_email = to_email.lower()

    # Do-not-send suppression gate (derived from recent EmailLog events)
    if is_suppressed(to_email):
        db.session.add(
            EmailLog(
                user_id=user_id,
                to_email=to_email,
                template=template,
                subject=subject,
                status="failed",
                meta={"reason": "suppressed"},
            )
        )
        db.session.commit()
        current_app.logger.info(json.dumps({
            "event": "mail_send",
            "template": template,
            "to": to_email,
            "outcome": "suppressed",
        }))
        return None

    msg = Message(recipients=[to_email], subject=subject)
    msg.body = render_template(f"email/{template}.txt", **context)
    msg.html = render_template(f"email/{template}.html", **context)

    # Persist an initial log
    elog = EmailLog(
        user_id=user_id,
        to_email=to_email,
        template=template,
        subject=subject,
        status="queued",
        meta={},
    )
    db.session.add(elog)
    db.session.commit()

    start = time.perf_counter()
    try:
        mail.send(msg)  # Flask-Mail returns None; provider ids arrive via webhook
        latency_ms = int((time.perf_counter() - start) * 1000)
        elog.status = "sent"
        db.session.commit()
        current_app.logger.info(json.dumps({
            "event": "mail_send",
            "template": template,
            "to": to_email,
            "subject": subject,
            "outcome": "sent",
            "latency_ms": latency_ms,
        }))
    except Exception as ex:
        latency_ms = int((time.perf_counter() - start) * 1000)
        elog.status = "failed"
        elog.meta = {"error": str(ex)}
        db.session.commit()
        current_app.logger.warning(json.dumps({
            "event": "mail_send",
            "template": template,
            "to": to_email,
            "subject": subject,
            "outcome": "smtp_error",
            "latency_ms": latency_ms,
            "smtp_error": str(ex),
        }))
    return elog

def send_squad_call_email(user: User, job: ScheduledCallJob) -> Optional[EmailLog]:
    """Reminder email for an email_* job; honours the member's preferences."""
    spec = _CALL_EMAILS.get(job.job_type)
    if spec is None or not user.email:
        return None
    if not user.wants_call_email(job.job_type):
        current_app.logger.info(json.dumps({
            "event": "mail_send",
            "template": spec[0],
            "user_id": user.id,
            "outcome": "opted_out",
        }))
        return None

    template, subject = spec
    ctx = {
        "site_name": current_app.config.get("SITE_NAME", "Squad Calls"),
        "first_name": user.first_name or "there",
        "call_title": job.call_title,
        "call_location": job.call_location,
        "squad_time": format_call_time(job.call_date_time, job.call_timezone),
        "user_time": format_call_time(job.call_date_time, user.timezone or "UTC"),
        "action_url": absolute_url("squad"),
    }
    return send_email(
        to_email=user.email,
        subject=subject,
        template=template,
        context=ctx,
        user_id=user.id,
    )
