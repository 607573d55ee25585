import json
import click
from flask.cli import with_appcontext
from mediconnect.extensions import db
from mediconnect.models.revenue_models import PlatformFeeSettings
from mediconnect.services.sweep import run_staleness_sweep

@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables and the default platform fee settings."""
    db.create_all()
    settings = PlatformFeeSettings.current()
    click.echo(f"Database initialized. Platform fees: {json.dumps(settings.to_dict())}")

@click.command('sweep-stale')
@click.option('--timeout', 'timeout_minutes', type=int, default=None,
              help='Minutes an unpaid booking may stay pending (defaults to STALE_PAYMENT_TIMEOUT_MINUTES).')
@with_appcontext
def sweep_stale_command(timeout_minutes):
    """Cancel pending appointments left unpaid past the timeout. Run from cron."""
    result = run_staleness_sweep(timeout_minutes=timeout_minutes)
    click.echo(json.dumps(result.to_dict()))
    if result.failed:
        raise SystemExit(1)

def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(sweep_stale_command)
