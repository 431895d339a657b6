import json
import click
from flask.cli import with_appcontext
from squadcall.extensions import db
from squadcall.models import User, Squad, SquadMembership
from squadcall.services import scheduler, votes

@click.group()
def squads():
    """Squad bootstrap helpers."""

@squads.command("create")
@click.option("--name", required=True)
@click.option("--premium/--standard", default=False, help="Premium squads are coach-scheduled")
@click.option("--chat-channel-id", default=None)
@with_appcontext
def squads_create(name, premium, chat_channel_id):
    squad = Squad(name=name, is_premium=premium, chat_channel_id=chat_channel_id)
    db.session.add(squad)
    db.session.commit()
    click.echo(f"Squad created id={squad.id} name={squad.name} premium={squad.is_premium}")

@click.group()
def members():
    """Squad membership ops."""

def _get_or_create_user(email: str, first_name: str | None, timezone: str | None) -> User:
    user = db.session.query(User).filter(User.email == email.lower()).one_or_none()
    if user:
        return user
    user = User(email=email.lower(), first_name=first_name, timezone=timezone or "UTC", is_active=True)
    db.session.add(user)
    db.session.flush()
    return user

@members.command("add")
@click.option("--squad-id", type=int, required=True)
@click.option("--email", required=True)
@click.option("--first-name", default=None)
@click.option("--timezone", default="UTC")
@with_appcontext
def members_add(squad_id, email, first_name, timezone):
    squad = db.session.get(Squad, squad_id)
    if not squad:
        raise click.ClickException(f"Squad id {squad_id} not found")

    user = _get_or_create_user(email, first_name, timezone)
    exists = db.session.query(SquadMembership).filter_by(squad_id=squad.id, user_id=user.id).count()
    if exists:
        raise click.ClickException("Already a member of this squad")

    db.session.add(SquadMembership(squad_id=squad.id, user_id=user.id))
    db.session.commit()
    click.echo(f"Added user_id={user.id} email={user.email} to squad_id={squad.id}")

@members.command("remove")
@click.option("--squad-id", type=int, required=True)
@click.option("--email", required=True)
@with_appcontext
def members_remove(squad_id, email):
    user = db.session.query(User).filter(User.email == email.lower()).one_or_none()
    if not user:
        raise click.ClickException("User not found")

    m = db.session.query(SquadMembership).filter_by(squad_id=squad_id, user_id=user.id).one_or_none()
    if not m:
        raise click.ClickException("Membership not found")

    # Open proposals keep the squad size they were created with
    db.session.delete(m)
    db.session.commit()
    click.echo(f"Removed {email} from squad {squad_id}")

@click.group()
def calls():
    """Standard squad call maintenance."""

@calls.command("run-jobs")
@click.option("--limit", type=int, default=None)
@with_appcontext
def calls_run_jobs(limit):
    """Execute due notification/email jobs (same as the cron endpoint)."""
    stats = scheduler.process_due_jobs(limit=limit)
    click.echo(json.dumps(stats))

@calls.command("run-reminders")
@click.option("--limit", type=int, default=None)
@with_appcontext
def calls_run_reminders(limit):
    """Post due chat reminders (same as the cron endpoint)."""
    stats = scheduler.process_due_reminders(limit=limit)
    click.echo(json.dumps(stats))

@calls.command("verify-tallies")
@click.option("--limit", type=int, default=500)
@with_appcontext
def calls_verify_tallies(limit):
    """Compare stored yes/no counts with the vote rows of active proposals."""
    drift = votes.find_tally_drift(limit=limit)
    for call_id, stored, counted in drift:
        click.echo(
            f"call_id={call_id} stored=yes:{stored.yes}/no:{stored.no} "
            f"counted=yes:{counted.yes}/no:{counted.no}"
        )
    if drift:
        raise click.ClickException(f"{len(drift)} call(s) with tally drift")
    click.echo("All tallies match the vote ledger")

def register_cli(app):
    app.cli.add_command(squads)
    app.cli.add_command(members)
    app.cli.add_command(calls)
