"""
Pytest fixtures for the car-wash backend tests.

Provides test database setup, station/coupon/bond factories, and test client.
"""

import pytest
from carwash import create_app
from carwash.extensions import db
from carwash.models import Bond, Coupon, Station
from carwash.services import coupon_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BOND_CODE_PREFIX': 'BL',
}

CASHIER_ID = 7
ADMIN_ID = 1


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def station(db_session):
    """Create the main station."""
    station = Station(nom="Station Plateau", adresse="Avenue Pompidou")
    db_session.add(station)
    db_session.commit()
    return station


@pytest.fixture(scope='function')
def other_station(db_session):
    """Create a second station."""
    station = Station(nom="Station Almadies")
    db_session.add(station)
    db_session.commit()
    return station


@pytest.fixture(scope='function')
def make_coupon(db_session, station):
    """
    Factory: coupon walked through the real lifecycle up to `status`.

    Usage: make_coupon(status="done", montant_total=10000)
    """
    def _make(status="done", montant_total=10000, station_id=None):
        coupon = coupon_service.create_coupon(
            station_id or station.id,
            montant_total=montant_total,
            created_by_user_id=ADMIN_ID,
        )
        if status in ("washing", "done"):
            coupon_service.start_wash(coupon.id)
        if status == "done":
            coupon_service.finish_wash(coupon.id)
        return db_session.get(Coupon, coupon.id)

    return _make


@pytest.fixture(scope='function')
def make_bond(db_session):
    """
    Factory: bond with a fixed code so tests can type it back in.

    Usage: make_bond("BL-TEST30", pourcentage=30, station_id=None)
    """
    def _make(code="BL-TEST30", pourcentage=30, station_id=None, is_used=False):
        bond = Bond(
            code=code,
            pourcentage=pourcentage,
            station_id=station_id,
            is_used=is_used,
            created_by_user_id=ADMIN_ID,
        )
        db_session.add(bond)
        db_session.commit()
        return bond

    return _make


def actor_headers(user_id: int = CASHIER_ID) -> dict:
    """Helper to create the acting-user header."""
    return {'X-User-Id': str(user_id)}
