"""
``flask quiz ...`` maintenance commands.

    flask quiz tick                  one scheduler pass (for cron)
    flask quiz run-scheduler         run the scheduler in the foreground
    flask quiz abandon-stale         abandon timed-out in-progress attempts
    flask quiz generate-access-keys  backfill missing access keys
    flask quiz create-user           add a teacher or student account
"""
import json

import click
from flask import current_app
from flask.cli import AppGroup

from quizhub import db
from quizhub.auth.models import User
from quizhub.auth.utils import hash_password, is_valid_email
from quizhub.common.clock import get_clock
from quizhub.quiz.access_keys import generate_unique_access_key
from quizhub.quiz.repository import QuizRepository

quiz_cli = AppGroup("quiz", help="Quiz lifecycle and maintenance commands.")


def _scheduler():
    from quizhub.quiz.scheduler import SchedulerLoop
    return SchedulerLoop(current_app._get_current_object(), clock=get_clock())


@quiz_cli.command("tick")
def tick_command():
    """Run one scheduler pass and print its report."""
    report = _scheduler().tick()
    click.echo(json.dumps(report.as_dict(), indent=2))


@quiz_cli.command("run-scheduler")
def run_scheduler_command():
    """Run scheduler ticks until interrupted."""
    try:
        _scheduler().run_forever()
    except KeyboardInterrupt:
        click.echo("Scheduler stopped")


@quiz_cli.command("abandon-stale")
def abandon_stale_command():
    from quizhub.quiz.service import AttemptService
    count = AttemptService(clock=get_clock()).abandon_stale()
    click.echo(f"Abandoned {count} attempt(s)")


@quiz_cli.command("generate-access-keys")
def generate_access_keys_command():
    """Give every quiz without an access key a fresh unique one."""
    quizzes = QuizRepository()
    updated = 0
    for quiz in quizzes.list_missing_access_key():
        quiz.access_key = generate_unique_access_key(quizzes.access_key_exists)
        quizzes.save(quiz)
        updated += 1
    click.echo(f"Generated access keys for {updated} quiz(zes)")


@quiz_cli.command("create-user")
@click.option("--email", required=True)
@click.option("--name", required=True)
@click.option("--role", type=click.Choice(["student", "teacher", "admin"]), default="student")
@click.option("--usn", default=None, help="External id used for access-key entry.")
@click.password_option()
def create_user_command(email, name, role, usn, password):
    email = email.strip().lower()
    if not is_valid_email(email):
        raise click.BadParameter("Please provide a valid email address", param_hint="--email")
    if User.query.filter_by(email=email).first() is not None:
        raise click.ClickException(f"User {email} already exists")

    user = User(email=email, name=name.strip(), role=role, usn=usn,
                password_hash=hash_password(password))
    db.session.add(user)
    db.session.commit()
    click.echo(f"Created {role} {email} (id={user.id})")
