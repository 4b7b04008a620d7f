# Overview: Flask CLI command groups for bootstrap, configuration, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --name "Main Godown"
#   Idempotent bootstrap: creates the warehouse if it does not exist.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Warehouse inspection:
# - python -m flask warehouses list
#   List warehouses with their invoice prefix.
#
# Crop rate tables:
# - python -m flask crops create --warehouse-id 1 --name "Wheat"
#   Create a crop (no tiers yet).
# - python -m flask crops seed-default-tiers --crop-id 1
#   Give a crop the standard 6-month / 1-year rate tiers (idempotent).
# - python -m flask crops tiers --crop-id 1
#   Show a crop's rate tiers.
#
# Maintenance:
# - python -m flask maintenance cleanup-rate-limit-events --retention-days 1
#   Delete rate-limit events older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Crop, CropRateTier, Warehouse
from .models.tenancy import derive_warehouse_code
from .services import rate_limit_service


# Standard rent table: 6-month term, then yearly (paise per bag)
DEFAULT_RATE_TIERS = (
    ("6-Month Initial", 182, 3600),
    ("1-Year", 365, 5500),
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--name', 'warehouse_name', default='Main Warehouse', help='Warehouse name')
@click.option('--code', default=None, help='Invoice prefix (derived from the name when omitted)')
@with_appcontext
def init_system(warehouse_name, code):
    """Create the default warehouse. Safe to run repeatedly."""
    warehouse = db.session.query(Warehouse).filter_by(name=warehouse_name).first()
    if warehouse:
        click.echo(f"SKIP  Warehouse already exists: {warehouse.name} (id={warehouse.id}, code={warehouse.code})")
        return

    warehouse = Warehouse(name=warehouse_name, code=(code or derive_warehouse_code(warehouse_name)).upper())
    db.session.add(warehouse)
    db.session.commit()
    click.echo(f"PASS Created warehouse {warehouse.name} (id={warehouse.id}, code={warehouse.code})")


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


@click.group('warehouses')
def warehouses_group():
    """Warehouse inspection."""


@warehouses_group.command('list')
@with_appcontext
def list_warehouses():
    warehouses = db.session.query(Warehouse).order_by(Warehouse.id).all()
    if not warehouses:
        click.echo("No warehouses found.")
        return
    for w in warehouses:
        click.echo(f"{w.id:>4}  {w.invoice_prefix:<8}  {w.name}")


@click.group('crops')
def crops_group():
    """Crop and rent tier configuration."""


@crops_group.command('create')
@click.option('--warehouse-id', type=int, required=True, help='Warehouse ID')
@click.option('--name', required=True, help='Crop name')
@with_appcontext
def create_crop_cli(warehouse_id, name):
    if not db.session.get(Warehouse, warehouse_id):
        raise click.ClickException(f"Warehouse {warehouse_id} not found")
    existing = db.session.query(Crop).filter_by(warehouse_id=warehouse_id, name=name).first()
    if existing:
        raise click.ClickException(f"Crop {name!r} already exists (id={existing.id})")

    crop = Crop(warehouse_id=warehouse_id, name=name)
    db.session.add(crop)
    db.session.commit()
    click.echo(f"PASS Created crop {crop.name} (id={crop.id})")


@crops_group.command('seed-default-tiers')
@click.option('--crop-id', type=int, required=True, help='Crop ID')
@with_appcontext
def seed_default_tiers(crop_id):
    """Add the standard tiers a crop is missing (matched by max_days)."""
    crop = db.session.get(Crop, crop_id)
    if not crop:
        raise click.ClickException(f"Crop {crop_id} not found")

    existing = {t.max_days for t in crop.rate_tiers}
    created = 0
    for label, max_days, rate_paise in DEFAULT_RATE_TIERS:
        if max_days in existing:
            click.echo(f"SKIP  {label} tier already configured")
            continue
        db.session.add(CropRateTier(crop_id=crop.id, label=label, max_days=max_days, rate_paise=rate_paise))
        created += 1

    db.session.commit()
    click.echo(f"PASS Added {created} tier(s) to {crop.name}")


@crops_group.command('tiers')
@click.option('--crop-id', type=int, required=True, help='Crop ID')
@with_appcontext
def list_tiers(crop_id):
    crop = db.session.get(Crop, crop_id)
    if not crop:
        raise click.ClickException(f"Crop {crop_id} not found")
    tiers = sorted(crop.rate_tiers, key=lambda t: t.max_days)
    if not tiers:
        click.echo(f"{crop.name} has no rate tiers.")
        return
    for t in tiers:
        click.echo(f"{t.label:<12} up to {t.max_days:>4} days  {t.rate_paise / 100:>8.2f} per bag")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-rate-limit-events')
@click.option('--retention-days', type=int, default=1, show_default=True)
@with_appcontext
def cleanup_rate_limit_events_cli(retention_days):
    """
    Cleanup old rate-limit events.

    Default retention: 1 day (windows are a minute long).
    """
    deleted = rate_limit_service.cleanup_old_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} rate-limit events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(warehouses_group)
    app.cli.add_command(crops_group)
    app.cli.add_command(maintenance_group)
