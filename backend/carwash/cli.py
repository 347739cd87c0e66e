# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/carwash/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to carwash (PowerShell: $env:FLASK_APP="carwash").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stations:
# - python -m flask stations list
# - python -m flask stations create --nom "Station Plateau" --adresse "Dakar"
#
# Bonds:
# - python -m flask bonds list [--unused] [--station-id 1]
# - python -m flask bonds create --pourcentage 50 --created-by 1 [--station-id 1]
#   Issue a bond; prints the code to hand to the customer.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Station
from .services import bond_service
from .services.bond_service import BondError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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

    click.echo("PASS Database reset complete.")


# =============================================================================
# STATION COMMANDS
# =============================================================================

@click.group('stations')
def stations_group():
    """Station management commands."""


@stations_group.command('list')
@with_appcontext
def list_stations():
    """List all stations."""
    stations = db.session.query(Station).order_by(Station.id).all()
    if not stations:
        click.echo("No stations found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Nom':<30} {'Active':<8} {'Adresse'}")
    click.echo("="*60)
    for station in stations:
        active_str = "Yes" if station.is_active else "No"
        click.echo(f"{station.id:<5} {station.nom:<30} {active_str:<8} {station.adresse or '-'}")
    click.echo("="*60 + "\n")


@stations_group.command('create')
@click.option('--nom', required=True, help='Station name (unique)')
@click.option('--adresse', default=None, help='Street address')
@with_appcontext
def create_station(nom, adresse):
    """Create a station."""
    existing = db.session.query(Station).filter_by(nom=nom).first()
    if existing:
        click.echo(f"FAIL Station '{nom}' already exists (ID: {existing.id})")
        return

    station = Station(nom=nom, adresse=adresse)
    db.session.add(station)
    db.session.commit()
    click.echo(f"PASS Created station: {station.nom} (ID: {station.id})")


# =============================================================================
# BOND COMMANDS
# =============================================================================

@click.group('bonds')
def bonds_group():
    """Discount bond commands."""


@bonds_group.command('list')
@click.option('--unused', is_flag=True, help='Only bonds not yet redeemed')
@click.option('--station-id', type=int, default=None, help='Filter by station')
@click.option('--limit', type=int, default=50, help='Max rows')
@with_appcontext
def list_bonds(unused, station_id, limit):
    """List bonds, newest first."""
    result = bond_service.list_bonds(
        is_used=False if unused else None,
        station_id=station_id,
        limit=limit,
    )
    if not result["data"]:
        click.echo("No bonds found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<6} {'Code':<14} {'%':<5} {'Station':<9} {'Used':<6} {'Coupon'}")
    click.echo("="*70)
    for b in result["data"]:
        used_str = "Yes" if b["is_used"] else "No"
        click.echo(
            f"{b['id']:<6} {b['code']:<14} {b['pourcentage']:<5} "
            f"{b['station_id'] or 'all':<9} {used_str:<6} {b['coupon_id'] or '-'}"
        )
    click.echo("="*70)
    click.echo(f"{result['total']} bond(s)\n")


@bonds_group.command('create')
@click.option('--pourcentage', type=int, required=True, help='Discount percentage (5-100, step 5)')
@click.option('--created-by', 'created_by', type=int, required=True, help='Issuing user ID')
@click.option('--station-id', type=int, default=None, help='Restrict to one station')
@click.option('--description', default=None, help='Free text')
@with_appcontext
def create_bond_cli(pourcentage, created_by, station_id, description):
    """Issue a new bond."""
    try:
        bond = bond_service.create_bond(
            pourcentage=pourcentage,
            created_by_user_id=created_by,
            station_id=station_id,
            description=description,
        )
    except BondError as e:
        click.echo(f"FAIL {e}")
        return

    scope = f"station {bond.station_id}" if bond.station_id else "all stations"
    click.echo(f"PASS Created bond {bond.code}: {bond.pourcentage}% ({scope})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stations_group)
    app.cli.add_command(bonds_group)
