"""
Reminder/notification scheduling for confirmed standard-squad calls.

For every confirmed call we queue:
  - notification + email 24 hours before
  - notification + email 1 hour before
  - notification when the call starts (no email)
and one chat reminder CALL_REMINDER_LEAD_MINUTES before the start.

`schedule_call_jobs` / `cancel_call_jobs` are best-effort: they log and
return False on failure instead of raising. The due-job and due-reminder
processors are driven by cron (see blueprints/cron and `flask calls`).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from squadcall.extensions import db
from squadcall.models import (
    CallProposal,
    Squad,
    SquadMembership,
    ScheduledCallJob,
    SquadCallReminder,
    User,
    TYPE_NEW,
    TYPE_EDIT,
    TYPE_DELETE,
    STATUS_CONFIRMED,
)
from squadcall.models.call_job import (
    JOB_NOTIFICATION_24H,
    JOB_EMAIL_24H,
    JOB_NOTIFICATION_1H,
    JOB_EMAIL_1H,
    JOB_NOTIFICATION_LIVE,
)
from squadcall.utils.helpers import utcnow, as_utc
from . import events, chat, notifications
from .email import send_squad_call_email

logger = logging.getLogger(__name__)

_JOB_OFFSETS = (
    (JOB_NOTIFICATION_24H, timedelta(hours=24)),
    (JOB_EMAIL_24H, timedelta(hours=24)),
    (JOB_NOTIFICATION_1H, timedelta(hours=1)),
    (JOB_EMAIL_1H, timedelta(hours=1)),
    (JOB_NOTIFICATION_LIVE, timedelta(0)),
)


@dataclass(frozen=True)
class CallJobSpec:
    squad_id: int
    call_id: int
    start_date_time_utc: datetime
    timezone: str
    location: str
    title: str


def _log(event: str, **fields) -> None:
    logger.info(json.dumps({"event": event, **fields}, default=str))


# ---------------------------------------------------------------------------
# Collaborator interface
# ---------------------------------------------------------------------------

def schedule_call_jobs(spec: CallJobSpec, *, now: Optional[datetime] = None) -> bool:
    """Queue the reminder and the future jobs for a confirmed call. Never raises."""
    now = as_utc(now or utcnow())
    try:
        start = as_utc(spec.start_date_time_utc)
        lead = timedelta(minutes=int(current_app.config.get("CALL_REMINDER_LEAD_MINUTES", 60)))
        reminder_time = start - lead

        reminder = db.session.query(SquadCallReminder).filter_by(squad_id=spec.squad_id).one_or_none()
        if reminder_time > now:
            if reminder is None:
                reminder = SquadCallReminder(squad_id=spec.squad_id)
                db.session.add(reminder)
            reminder.call_id = spec.call_id
            reminder.call_date_time = start
            reminder.call_timezone = spec.timezone
            reminder.call_location = spec.location
            reminder.call_title = spec.title
            reminder.reminder_time = reminder_time
            reminder.sent = False
            reminder.sent_at = None
            reminder.error = None
        elif reminder is not None:
            # Too late for a reminder; drop the one left over from a previous call
            db.session.delete(reminder)

        scheduled = []
        for job_type, offset in _JOB_OFFSETS:
            at = start - offset
            if at <= now:
                continue
            job = (
                db.session.query(ScheduledCallJob)
                .filter_by(squad_id=spec.squad_id, call_id=spec.call_id, job_type=job_type)
                .one_or_none()
            )
            if job is None:
                job = ScheduledCallJob(squad_id=spec.squad_id, call_id=spec.call_id, job_type=job_type)
                db.session.add(job)
            job.scheduled_time = at
            job.call_date_time = start
            job.call_timezone = spec.timezone
            job.call_location = spec.location
            job.call_title = spec.title
            job.executed = False
            job.executed_at = None
            job.error = None
            scheduled.append(job_type)

        db.session.commit()
        _log(
            "call_jobs_scheduled",
            squad_id=spec.squad_id,
            call_id=spec.call_id,
            jobs=scheduled,
            reminder=reminder_time > now,
        )
        return True
    except Exception:
        db.session.rollback()
        logger.exception("Failed to schedule call jobs for squad %s call %s", spec.squad_id, spec.call_id)
        return False


def cancel_call_jobs(squad_id: int, call_id: int) -> bool:
    """Remove the reminder and every job queued for one call. Never raises."""
    try:
        jobs = (
            db.session.query(ScheduledCallJob)
            .filter_by(squad_id=squad_id, call_id=call_id)
            .delete(synchronize_session=False)
        )
        reminders = (
            db.session.query(SquadCallReminder)
            .filter_by(squad_id=squad_id, call_id=call_id)
            .delete(synchronize_session=False)
        )
        db.session.commit()
        _log("call_jobs_canceled", squad_id=squad_id, call_id=call_id, jobs=jobs, reminders=reminders)
        return True
    except Exception:
        db.session.rollback()
        logger.exception("Failed to cancel call jobs for squad %s call %s", squad_id, call_id)
        return False


# ---------------------------------------------------------------------------
# Event listeners
# ---------------------------------------------------------------------------

def on_proposal_confirmed(event: events.ProposalEvent) -> None:
    if event.proposal_type == TYPE_DELETE:
        if event.original_call_id:
            cancel_call_jobs(event.squad_id, event.original_call_id)
        return

    proposal = db.session.get(CallProposal, event.proposal_id)
    if proposal is None or proposal.status != STATUS_CONFIRMED:
        return
    if event.proposal_type == TYPE_EDIT and event.original_call_id:
        cancel_call_jobs(event.squad_id, event.original_call_id)
    schedule_call_jobs(CallJobSpec(
        squad_id=proposal.squad_id,
        call_id=proposal.id,
        start_date_time_utc=proposal.start_at,
        timezone=proposal.timezone,
        location=proposal.location,
        title=proposal.title,
    ))


def on_proposal_canceled(event: events.ProposalEvent) -> None:
    # A fresh suggestion replaced a confirmed call outright. Edits and deletes
    # clean up the original's jobs when they themselves get confirmed.
    if event.previous_status != STATUS_CONFIRMED or not event.superseded_by:
        return
    replacement = db.session.get(CallProposal, event.superseded_by)
    if replacement is not None and replacement.proposal_type == TYPE_NEW:
        cancel_call_jobs(event.squad_id, event.proposal_id)


def register_listeners() -> None:
    events.register_listener(events.PROPOSAL_CONFIRMED, on_proposal_confirmed)
    events.register_listener(events.PROPOSAL_CANCELED, on_proposal_canceled)


# ---------------------------------------------------------------------------
# Cron processors
# ---------------------------------------------------------------------------

def _call_still_matches(call_id: Optional[int], call_date_time: datetime) -> bool:
    """The job/reminder is still for a confirmed call at the same start time."""
    if not call_id:
        return False
    call = db.session.get(CallProposal, call_id)
    if call is None or call.status != STATUS_CONFIRMED or call.start_at is None:
        return False
    return as_utc(call.start_at) == as_utc(call_date_time)


def _member_ids(squad_id: int) -> list[int]:
    rows = db.session.query(SquadMembership.user_id).filter_by(squad_id=squad_id).all()
    return [r[0] for r in rows]


def execute_job(job: ScheduledCallJob) -> dict:
    """Fan one job out to every squad member."""
    stats = {"success": True, "membersNotified": 0, "errors": 0}
    member_ids = _member_ids(job.squad_id)
    if not member_ids:
        _log("call_job_no_members", squad_id=job.squad_id, job_type=job.job_type)
        return stats

    for user_id in member_ids:
        try:
            user = db.session.get(User, user_id)
            if user is None:
                continue
            if job.is_notification:
                notifications.notify_squad_call(user, job)
            elif job.is_email:
                send_squad_call_email(user, job)
            stats["membersNotified"] += 1
        except Exception:
            db.session.rollback()
            stats["errors"] += 1
            logger.exception("Call job %s failed for member %s", job.job_type, user_id)

    # Only a job that reached nobody counts as failed
    if stats["errors"] and not stats["membersNotified"]:
        stats["success"] = False

    _log(
        "call_job_executed",
        squad_id=job.squad_id,
        call_id=job.call_id,
        job_type=job.job_type,
        members_notified=stats["membersNotified"],
        errors=stats["errors"],
    )
    return stats


def process_due_jobs(*, now: Optional[datetime] = None, limit: Optional[int] = None) -> dict:
    now = as_utc(now or utcnow())
    limit = limit or int(current_app.config.get("CALL_JOBS_BATCH_SIZE", 100))
    stats = {"processed": 0, "executed": 0, "skipped": 0, "errors": 0}

    due = (
        db.session.query(ScheduledCallJob)
        .filter(ScheduledCallJob.executed.is_(False))
        .filter(ScheduledCallJob.scheduled_time <= now)
        .order_by(ScheduledCallJob.scheduled_time, ScheduledCallJob.id)
        .limit(limit)
        .all()
    )
    for job in due:
        stats["processed"] += 1
        job_id = job.id
        try:
            if not _call_still_matches(job.call_id, job.call_date_time):
                # Call was rescheduled or canceled; the job is stale
                db.session.delete(job)
                db.session.commit()
                stats["skipped"] += 1
                continue

            result = execute_job(job)
            job = db.session.get(ScheduledCallJob, job_id)
            job.executed = True
            job.executed_at = now
            db.session.commit()
            if result["success"]:
                stats["executed"] += 1
            else:
                stats["errors"] += 1
        except Exception as exc:
            db.session.rollback()
            stats["errors"] += 1
            logger.exception("Error processing call job %s", job_id)
            failed = db.session.get(ScheduledCallJob, job_id)
            if failed is not None:
                failed.error = str(exc)[:500]
                db.session.commit()

    _log("call_jobs_processed", **stats)
    return stats


def process_due_reminders(*, now: Optional[datetime] = None, limit: Optional[int] = None) -> dict:
    now = as_utc(now or utcnow())
    limit = limit or int(current_app.config.get("CALL_REMINDERS_BATCH_SIZE", 50))
    stats = {"processed": 0, "remindersSent": 0, "skippedNoChannel": 0, "skipped": 0, "errors": 0}

    due = (
        db.session.query(SquadCallReminder)
        .filter(SquadCallReminder.sent.is_(False))
        .filter(SquadCallReminder.reminder_time <= now)
        .order_by(SquadCallReminder.reminder_time, SquadCallReminder.id)
        .limit(limit)
        .all()
    )
    for reminder in due:
        stats["processed"] += 1
        reminder_id = reminder.id
        try:
            squad = db.session.get(Squad, reminder.squad_id)
            if squad is None or not _call_still_matches(reminder.call_id, reminder.call_date_time):
                db.session.delete(reminder)
                db.session.commit()
                stats["skipped"] += 1
                continue

            if not squad.chat_channel_id:
                reminder.sent = True
                reminder.sent_at = now
                reminder.error = "No chat channel"
                db.session.commit()
                stats["skippedNoChannel"] += 1
                continue

            chat.post_call_reminder(squad, reminder)
            reminder.sent = True
            reminder.sent_at = now
            db.session.commit()
            stats["remindersSent"] += 1
            _log("call_reminder_sent", squad_id=squad.id, call_id=reminder.call_id)
        except Exception as exc:
            db.session.rollback()
            stats["errors"] += 1
            logger.exception("Error processing call reminder for squad reminder %s", reminder_id)
            failed = db.session.get(SquadCallReminder, reminder_id)
            if failed is not None:
                failed.error = str(exc)[:500]
                db.session.commit()

    _log("call_reminders_processed", **stats)
    return stats
