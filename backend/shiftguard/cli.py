# Overview: Flask CLI command groups for bootstrap and shift maintenance.

# backend/shiftguard/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
#
# Shift maintenance:
# - python -m flask shifts sweep
#   Validate every active shift; stale shifts are flagged MISSED_CLOCK_OUT.
# - python -m flask shifts validate 42
#   Re-run validation for one shift and print its issues.
#
# Credentials:
# - python -m flask users set-pin 7
#   Prompt for and store a manager override PIN (bcrypt hashed).

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import auth_service, validation_service
from .services.errors import ShiftGuardError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    from . import models  # noqa: F401
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('shifts')
def shifts_group():
    """Shift validation and maintenance commands."""


@shifts_group.command('sweep')
@with_appcontext
def sweep_shifts():
    """Run the compliance sweep over all active shifts."""
    validations = validation_service.sweep_active_shifts()
    if not validations:
        click.echo("No active shifts.")
        return

    click.echo(f"{'Shift':<8} {'Valid':<7} {'Review':<8} {'Issues'}")
    click.echo("-" * 60)
    for validation in validations:
        codes = ", ".join(issue.code.value for issue in validation.issues) or "-"
        click.echo(
            f"{validation.shift_id:<8} {str(validation.valid):<7} "
            f"{str(validation.requires_review):<8} {codes}"
        )


@shifts_group.command('validate')
@click.argument('shift_id', type=int)
@click.option('--validated-by', type=int, default=None, help='User id recorded on the run')
@with_appcontext
def validate_shift(shift_id, validated_by):
    """Re-run validation for one shift."""
    try:
        validation = validation_service.run_validation(
            shift_id, validated_by=validated_by, method="manual"
        )
    except ShiftGuardError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"Shift {shift_id}: valid={validation.valid} requires_review={validation.requires_review} "
        f"resolution={validation.resolution.value}"
    )
    for issue in validation.issues:
        click.echo(f"  [{issue.severity.value:<8}] {issue.code.value}: {issue.message}")


@click.group('users')
def users_group():
    """User credential commands."""


@users_group.command('set-pin')
@click.argument('user_id', type=int)
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='Numeric PIN')
@with_appcontext
def set_pin_cli(user_id, pin):
    """Set the manager override PIN for a user."""
    try:
        user = auth_service.set_pin(user_id, pin)
    except ShiftGuardError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS PIN updated for user {user.id}")
    click.echo("SECURITY PIN securely hashed with bcrypt")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(shifts_group)
    app.cli.add_command(users_group)
