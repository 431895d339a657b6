from datetime import timedelta

from flask_mail import Message

from squadcall.extensions import db, mail
from squadcall.models import (
    CallProposal,
    ScheduledCallJob,
    SquadCallReminder,
    SquadChatMessage,
    Notification,
    EmailLog,
    User,
)
from squadcall.services import proposals, scheduler
from squadcall.services.scheduler import CallJobSpec
from squadcall.utils.helpers import utcnow, as_utc


def _spec(squad_id, call_id, start):
    return CallJobSpec(
        squad_id=squad_id,
        call_id=call_id,
        start_date_time_utc=start,
        timezone="America/New_York",
        location="Zoom",
        title="Weekly sync",
    )


def _confirm(make_squad, members=1, days=3, **kw):
    squad_id, users = make_squad(members=members, **kw)
    start = utcnow() + timedelta(days=days)
    res = proposals.suggest(squad_id, users[0], start, "America/New_York", "Zoom", "Weekly sync")
    for uid in users[1:]:
        if res.proposal.status == "confirmed":
            break
        proposals.vote(squad_id, uid, res.proposal.id, "yes")
    return squad_id, users, db.session.get(CallProposal, res.proposal.id), start


def _job_types(call_id):
    rows = db.session.query(ScheduledCallJob).filter_by(call_id=call_id).all()
    return sorted(r.job_type for r in rows)


# ---------------------------------------------------------------------------
# schedule / cancel
# ---------------------------------------------------------------------------

def test_schedule_all_jobs_and_reminder_for_distant_call(ctx, make_squad):
    squad_id, _ = make_squad(members=2)
    now = utcnow()
    start = now + timedelta(days=2)
    assert scheduler.schedule_call_jobs(_spec(squad_id, 77, start), now=now) is True

    assert _job_types(77) == [
        "email_1h", "email_24h", "notification_1h", "notification_24h", "notification_live",
    ]
    job = db.session.query(ScheduledCallJob).filter_by(call_id=77, job_type="email_24h").one()
    assert as_utc(job.scheduled_time) == start - timedelta(hours=24)

    reminder = db.session.query(SquadCallReminder).filter_by(squad_id=squad_id).one()
    assert reminder.call_id == 77
    assert as_utc(reminder.reminder_time) == start - timedelta(hours=1)
    assert reminder.sent is False


def test_schedule_skips_jobs_already_in_the_past(ctx, make_squad):
    squad_id, _ = make_squad(members=2)
    now = utcnow()
    start = now + timedelta(hours=2)
    scheduler.schedule_call_jobs(_spec(squad_id, 5, start), now=now)
    assert _job_types(5) == ["email_1h", "notification_1h", "notification_live"]
    assert db.session.query(SquadCallReminder).filter_by(squad_id=squad_id).count() == 1


def test_schedule_close_call_gets_no_reminder(ctx, make_squad):
    squad_id, _ = make_squad(members=2)
    now = utcnow()
    scheduler.schedule_call_jobs(_spec(squad_id, 5, now + timedelta(days=2)), now=now)
    assert db.session.query(SquadCallReminder).filter_by(squad_id=squad_id).count() == 1

    # Rescheduled to 30 minutes out: the old reminder goes away, only "live" remains
    scheduler.schedule_call_jobs(_spec(squad_id, 6, now + timedelta(minutes=30)), now=now)
    assert _job_types(6) == ["notification_live"]
    assert db.session.query(SquadCallReminder).filter_by(squad_id=squad_id).count() == 0


def test_schedule_is_idempotent(ctx, make_squad):
    squad_id, _ = make_squad(members=2)
    now = utcnow()
    start = now + timedelta(days=2)
    scheduler.schedule_call_jobs(_spec(squad_id, 9, start), now=now)
    scheduler.schedule_call_jobs(_spec(squad_id, 9, start), now=now)
    assert len(_job_types(9)) == 5
    assert db.session.query(SquadCallReminder).count() == 1


def test_schedule_failure_returns_false(ctx, make_squad):
    squad_id, _ = make_squad(members=2)
    assert scheduler.schedule_call_jobs(_spec(squad_id, 1, None)) is False
    assert db.session.query(ScheduledCallJob).count() == 0


def test_cancel_removes_jobs_and_reminder_for_that_call_only(ctx, make_squad):
    squad_a, _ = make_squad(members=2)
    squad_b, _ = make_squad(members=2)
    now = utcnow()
    scheduler.schedule_call_jobs(_spec(squad_a, 1, now + timedelta(days=2)), now=now)
    scheduler.schedule_call_jobs(_spec(squad_b, 2, now + timedelta(days=2)), now=now)

    assert scheduler.cancel_call_jobs(squad_a, 1) is True
    assert _job_types(1) == []
    assert len(_job_types(2)) == 5
    assert db.session.query(SquadCallReminder).filter_by(squad_id=squad_a).count() == 0
    assert db.session.query(SquadCallReminder).filter_by(squad_id=squad_b).count() == 1


# ---------------------------------------------------------------------------
# process_due_jobs
# ---------------------------------------------------------------------------

def test_due_24h_jobs_notify_and_email_members(app, ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1)

    with mail.record_messages() as outbox:
        stats = scheduler.process_due_jobs(now=start - timedelta(hours=23))

    assert stats == {"processed": 2, "executed": 2, "skipped": 0, "errors": 0}

    n = db.session.query(Notification).filter_by(user_id=users[0]).one()
    assert n.type == "squad_call_24h"
    assert n.title == "Upcoming squad call tomorrow"
    assert n.action_route == "/squad"

    assert len(outbox) == 1
    msg: Message = outbox[0]
    assert msg.subject == "Your squad call is tomorrow"
    assert "Weekly sync" in msg.body
    assert "http://example.test/squad" in msg.html
    assert db.session.query(EmailLog).filter_by(status="sent").count() == 1

    executed = db.session.query(ScheduledCallJob).filter_by(call_id=call.id, executed=True).count()
    assert executed == 2
    # Nothing left due at the same instant
    assert scheduler.process_due_jobs(now=start - timedelta(hours=23))["processed"] == 0


def test_email_respects_member_preference(ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1)
    user = db.session.get(User, users[0])
    user.email_squad_call_1h = False
    db.session.commit()

    with mail.record_messages() as outbox:
        stats = scheduler.process_due_jobs(now=start - timedelta(minutes=30))

    # 24h + 1h notification/email pairs are all due; only the 24h email goes out
    assert stats["executed"] == 4
    assert [m.subject for m in outbox] == ["Your squad call is tomorrow"]
    assert db.session.query(Notification).count() == 2


def test_members_without_email_still_get_notifications(ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1, emails=False)
    with mail.record_messages() as outbox:
        scheduler.process_due_jobs(now=start)
    assert outbox == []
    types = sorted(n.type for n in db.session.query(Notification).all())
    assert types == ["squad_call_1h", "squad_call_24h", "squad_call_live"]


def test_jobs_for_canceled_call_are_skipped(ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1)
    call.status = "canceled"
    db.session.commit()

    stats = scheduler.process_due_jobs(now=start)
    assert stats["processed"] == 5 and stats["skipped"] == 5 and stats["executed"] == 0
    assert db.session.query(ScheduledCallJob).count() == 0
    assert db.session.query(Notification).count() == 0


def test_jobs_for_moved_call_are_skipped(ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1)
    call.start_at = start + timedelta(hours=5)
    db.session.commit()

    stats = scheduler.process_due_jobs(now=start - timedelta(hours=23))
    assert stats["skipped"] == 2
    assert db.session.query(Notification).count() == 0


def test_member_failure_is_counted_not_raised(ctx, make_squad, monkeypatch):
    squad_id, users, call, start = _confirm(make_squad, members=1)

    def boom(user, job):
        raise RuntimeError("notification store down")

    monkeypatch.setattr(scheduler.notifications, "notify_squad_call", boom)
    stats = scheduler.process_due_jobs(now=start)
    # The three notification jobs reached nobody; the two email jobs went out
    assert stats == {"processed": 5, "executed": 2, "skipped": 0, "errors": 3}
    # Jobs are still marked executed; per-member errors are logged
    assert db.session.query(ScheduledCallJob).filter_by(executed=True).count() == 5


# ---------------------------------------------------------------------------
# process_due_reminders
# ---------------------------------------------------------------------------

def test_due_reminder_posts_to_chat(ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1)
    before = db.session.query(SquadChatMessage).count()

    stats = scheduler.process_due_reminders(now=start - timedelta(minutes=59))
    assert stats == {"processed": 1, "remindersSent": 1, "skippedNoChannel": 0, "skipped": 0, "errors": 0}

    msgs = db.session.query(SquadChatMessage).filter_by(notification_type="reminder").all()
    assert len(msgs) == 1 and db.session.query(SquadChatMessage).count() == before + 1
    assert "starts in 1 hour" in msgs[0].text
    assert msgs[0].meta["call_id"] == call.id

    r = db.session.query(SquadCallReminder).filter_by(squad_id=squad_id).one()
    assert r.sent is True and r.sent_at is not None
    assert scheduler.process_due_reminders(now=start)["processed"] == 0


def test_reminder_not_due_yet(ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1)
    assert scheduler.process_due_reminders(now=start - timedelta(hours=2))["processed"] == 0


def test_reminder_without_channel_is_marked(ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1, chat_channel_id=None)
    stats = scheduler.process_due_reminders(now=start - timedelta(minutes=30))
    assert stats["skippedNoChannel"] == 1 and stats["remindersSent"] == 0
    r = db.session.query(SquadCallReminder).filter_by(squad_id=squad_id).one()
    assert r.sent is True and r.error == "No chat channel"


def test_stale_reminder_is_dropped(ctx, make_squad):
    squad_id, users, call, start = _confirm(make_squad, members=1)
    call.status = "canceled"
    db.session.commit()
    stats = scheduler.process_due_reminders(now=start - timedelta(minutes=30))
    assert stats["skipped"] == 1
    assert db.session.query(SquadCallReminder).count() == 0


def test_execute_job_reports_failure_only_when_nobody_was_reached(ctx, make_squad, monkeypatch):
    squad_id, users, call, start = _confirm(make_squad, members=2)
    job = (
        db.session.query(ScheduledCallJob)
        .filter_by(call_id=call.id, job_type="notification_live")
        .one()
    )
    job_id = job.id
    failing = {users[0]}

    def flaky(user, job):
        if user.id in failing:
            raise RuntimeError("notification store down")

    monkeypatch.setattr(scheduler.notifications, "notify_squad_call", flaky)

    partial = scheduler.execute_job(db.session.get(ScheduledCallJob, job_id))
    assert partial == {"success": True, "membersNotified": 1, "errors": 1}

    failing.add(users[1])
    total = scheduler.execute_job(db.session.get(ScheduledCallJob, job_id))
    assert total == {"success": False, "membersNotified": 0, "errors": 2}
