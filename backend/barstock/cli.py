# Overview: Flask CLI command groups for bootstrap, scenario sweeps, and history inspection.

# backend/barstock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default manager/bar1/bar2 profiles.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Scenario sweeps:
# - python -m flask scenarios run stocks --actor manager@bar.local
#   Freeze everything without the red flag, unfreeze the rest.
# - python -m flask scenarios stop [--actor manager@bar.local]
#   Unfreeze every product.
# - python -m flask scenarios stats
#   Flag counts across the catalog.
#
# Action history:
# - python -m flask history list --action freeze --limit 20
#   Newest-first action log entries.
#
# Profiles:
# - python -m flask users add --email someone@bar.local --role bar1
#   Create or update a user profile.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models.auth import ROLE_COLUMNS, ROLE_BAR1, ROLE_BAR2, ROLE_MANAGER
from .services import action_log_service, scenario_service
from .services.gateway import get_gateway
from .validation import ValidationError

DEFAULT_PROFILES = (
    ("manager@bar.local", ROLE_MANAGER),
    ("bar1@bar.local", ROLE_BAR1),
    ("bar2@bar.local", ROLE_BAR2),
)


def _upsert_profile(email: str, role: str) -> dict:
    return get_gateway().upsert(
        "user_profiles",
        {"email": email.strip().lower(), "role": role},
        on_conflict="email",
    )


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the bar inventory backend.

    Creates:
    - All tables (when missing)
    - Profiles: manager@bar.local (manager), bar1@bar.local (bar1), bar2@bar.local (bar2)
    """
    click.echo("START Initializing barstock...")
    db.create_all()
    click.echo("PASS Tables ready")

    for email, role in DEFAULT_PROFILES:
        profile = _upsert_profile(email, role)
        click.echo(f"PASS Profile {profile['email']:<24} role={profile['role']}")

    click.echo("\nDONE Send X-User-Email with one of the profiles above to call the API.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('scenarios')
def scenarios_group():
    """Scenario sweeps (flag-driven freeze/unfreeze)."""


@scenarios_group.command('run')
@click.argument('name')
@click.option('--actor', required=True, help='Email recorded as the actor in the action log')
@with_appcontext
def run_scenario_cli(name, actor):
    """Run scenario NAME (stocks, revision, long_freeze)."""
    try:
        result = scenario_service.run_scenario(name, actor)
    except ValidationError as e:
        raise click.ClickException(str(e))

    if not result.success:
        raise click.ClickException(f"Scenario {result.scenario} failed: {result.error}")

    click.echo(
        f"PASS Scenario {result.scenario}: {result.active_count} active, {result.frozen_count} frozen"
    )
    if result.log_error:
        click.echo(f"WARN Action log write failed: {result.log_error}")


@scenarios_group.command('stop')
@click.option('--actor', default=None, help='Email recorded in the action log (optional)')
@with_appcontext
def stop_scenarios_cli(actor):
    """Unfreeze every product."""
    result = scenario_service.stop_all_scenarios(actor)
    if not result.success:
        raise click.ClickException(f"Stop failed: {result.error}")
    click.echo(f"PASS {result.active_count} products active")


@scenarios_group.command('stats')
@with_appcontext
def scenario_stats_cli():
    """Show flag counts."""
    stats = scenario_service.get_flags_statistics()
    for key in ("total", "red", "green", "yellow", "no_flags"):
        click.echo(f"{key:<10} {stats[key]}")


@click.group('history')
def history_group():
    """Product action log inspection."""


@history_group.command('list')
@click.option('--action', type=click.Choice(action_log_service.ACTION_KINDS), help='Filter by action')
@click.option('--actor', help='Filter by actor email')
@click.option('--product-id', type=int, help='Only this product')
@click.option('--limit', type=int, default=None, help='Maximum records')
@with_appcontext
def list_history(action, actor, product_id, limit):
    """List newest-first action records."""
    if product_id is not None:
        items = action_log_service.get_product_history(product_id, limit=limit)
    else:
        items = action_log_service.query_history(action=action, actor_id=actor, limit=limit)

    if not items:
        click.echo("No actions found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<6} {'When':<22} {'Action':<10} {'Product':<9} {'By':<26} {'Metadata'}")
    click.echo("=" * 100)
    for item in items:
        meta = json.dumps(item["metadata"], ensure_ascii=False)
        if len(meta) > 60:
            meta = meta[:57] + "..."
        click.echo(
            f"{item['id']:<6} {item['performed_at']:<22} {item['action']:<10} "
            f"{item['product_id']:<9} {item['performed_by']:<26} {meta}"
        )
    click.echo("=" * 100 + "\n")


@click.group('users')
def users_group():
    """User profile management."""


@users_group.command('add')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(sorted(ROLE_COLUMNS)), prompt=True, help='Role')
@with_appcontext
def add_user_cli(email, role):
    """Create a profile, or change the role of an existing one."""
    if not email.strip():
        raise click.ClickException("Email is required")
    profile = _upsert_profile(email, role)
    columns = ", ".join(ROLE_COLUMNS[role])
    click.echo(f"PASS {profile['email']} -> {profile['role']} (columns: {columns})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(scenarios_group)
    app.cli.add_command(history_group)
    app.cli.add_command(users_group)
