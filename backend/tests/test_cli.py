# Overview: Tests for the Flask CLI command groups.

from carwash.extensions import db
from carwash.models import Bond, Station


def test_stations_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["stations", "create", "--nom", "Station Ouakam", "--adresse", "Route de Ouakam"])
    assert "PASS Created station: Station Ouakam" in result.output
    assert db.session.query(Station).filter_by(nom="Station Ouakam").count() == 1

    duplicate = runner.invoke(args=["stations", "create", "--nom", "Station Ouakam"])
    assert "already exists" in duplicate.output

    listing = runner.invoke(args=["stations", "list"])
    assert "Station Ouakam" in listing.output


def test_bonds_create_and_list(app, db_session, station):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "bonds", "create", "--pourcentage", "50", "--created-by", "1", "--station-id", str(station.id),
    ])
    assert "PASS Created bond BL-" in result.output
    bond = db.session.query(Bond).one()
    assert bond.pourcentage == 50
    assert bond.station_id == station.id

    listing = runner.invoke(args=["bonds", "list", "--unused"])
    assert bond.code in listing.output


def test_bonds_create_rejects_bad_percentage(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["bonds", "create", "--pourcentage", "12", "--created-by", "1"])
    assert "FAIL" in result.output
    assert db.session.query(Bond).count() == 0
