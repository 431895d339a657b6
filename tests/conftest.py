import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import pytest
from squadcall import create_app
from squadcall.extensions import db
from squadcall.models import User, Squad, SquadMembership

CRON_SECRET = "test-cron-secret"

@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        MAIL_SUPPRESS_SEND=True,
        APP_BASE_URL="http://example.test",
        WTF_CSRF_ENABLED=False,
        CRON_SECRET=CRON_SECRET,
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield

@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()

@pytest.fixture()
def make_squad():
    """
    make_squad(members=3) -> (squad_id, [user_ids]). Needs an app context.
    Members get emails m<i>@example.com unless emails=False.
    """
    counter = {"n": 0}

    def _make(members=3, premium=False, chat_channel_id="chan-1", emails=True, timezone="America/New_York"):
        counter["n"] += 1
        squad = Squad(name=f"Squad {counter['n']}", is_premium=premium, chat_channel_id=chat_channel_id)
        db.session.add(squad)
        db.session.flush()
        user_ids = []
        for i in range(members):
            u = User(
                email=f"m{counter['n']}-{i}@example.com" if emails else None,
                first_name=f"Member{i}",
                timezone=timezone,
            )
            db.session.add(u)
            db.session.flush()
            db.session.add(SquadMembership(squad_id=squad.id, user_id=u.id))
            user_ids.append(u.id)
        db.session.commit()
        return squad.id, user_ids

    return _make

@pytest.fixture()
def outsider():
    """A user who belongs to no squad. Needs an app context."""
    def _make():
        u = User(email="outsider@example.com", first_name="Outsider")
        db.session.add(u)
        db.session.commit()
        return u.id
    return _make

@pytest.fixture()
def file_app(tmp_path):
    """
    App on a file-backed SQLite DB: each app context gets its own connection,
    so a nested app context is a genuinely separate writer.
    """
    app = create_app({
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'calls.db'}",
        "MAIL_SUPPRESS_SEND": True,
        "APP_BASE_URL": "http://example.test",
        "CRON_SECRET": CRON_SECRET,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()
