from datetime import timedelta

from squadcall.extensions import db, mail
from squadcall.models import EmailLog, ScheduledCallJob, User
from squadcall.services.email import is_suppressed, send_squad_call_email, absolute_url
from squadcall.services.notifications import build_squad_call_notification
from squadcall.utils.helpers import utcnow


def _job(job_type, start=None):
    start = start or utcnow() + timedelta(days=1)
    return ScheduledCallJob(
        squad_id=1,
        call_id=1,
        job_type=job_type,
        scheduled_time=start,
        call_date_time=start,
        call_timezone="America/New_York",
        call_location="Zoom",
        call_title="Weekly sync",
    )


def test_email_templates_render_include_action_url(app):
    with app.app_context():
        ctx = dict(
            site_name="Squad Calls", first_name="Ana", call_title="Weekly sync", call_location="Zoom",
            squad_time="Monday, March 3 at 6:30 PM EST", user_time="Monday, March 3 at 11:30 PM GMT",
            action_url="http://example.test/squad",
        )
        for name in ("squad_call_24h", "squad_call_1h"):
            html = app.jinja_env.get_template(f"email/{name}.html").render(**ctx)
            txt = app.jinja_env.get_template(f"email/{name}.txt").render(**ctx)
            assert "http://example.test/squad" in html
            assert "http://example.test/squad" in txt
            assert "Weekly sync" in txt and "Zoom" in html


def test_is_suppressed_true_for_recent_bounce(app):
    with app.app_context():
        db.session.add(EmailLog(
            user_id=None,
            to_email="toxic@example.com",
            template="unknown",
            subject="",
            status="bounced",
            meta={},
        ))
        db.session.commit()

        assert is_suppressed("toxic@example.com") is True
        assert is_suppressed("new@example.com") is False


def test_suppressed_address_is_logged_not_sent(ctx):
    db.session.add(EmailLog(to_email="toxic@example.com", template="x", subject="", status="complaint", meta={}))
    user = User(email="Toxic@Example.com", first_name="T")
    db.session.add(user)
    db.session.commit()

    with mail.record_messages() as outbox:
        assert send_squad_call_email(user, _job("email_1h")) is None
    assert outbox == []
    row = EmailLog.query.filter_by(to_email="toxic@example.com", status="failed").one()
    assert row.meta == {"reason": "suppressed"}


def test_notification_jobs_do_not_send_email(ctx):
    user = User(email="a@example.com")
    db.session.add(user)
    db.session.commit()
    assert send_squad_call_email(user, _job("notification_1h")) is None


def test_absolute_url_joins_base(app):
    with app.app_context():
        assert absolute_url("/squad") == "http://example.test/squad"


def test_notification_wording(ctx):
    user = User(email="a@example.com", timezone="Europe/London")
    assert build_squad_call_notification(user, _job("notification_24h"))[:2] == (
        "squad_call_24h", "Upcoming squad call tomorrow",
    )
    kind, title, body = build_squad_call_notification(user, _job("notification_1h"))
    assert (kind, title) == ("squad_call_1h", "Squad call in 1 hour")
    assert "your time" in body
    assert build_squad_call_notification(user, _job("notification_live"))[1] == "Your squad call is live"
    assert build_squad_call_notification(user, _job("email_24h")) is None
