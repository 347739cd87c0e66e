# Overview: Pytest coverage for the bond registry.

"""
Bond Registry Tests

- validate_bond is a pure read (repeatable, case-insensitive)
- station scoping (NULL = any station)
- redeem_bond is compare-and-set: second call always fails
- create_bond validates percentage and generates unique uppercase codes
"""

import pytest

from carwash.extensions import db
from carwash.models import Bond
from carwash.services import bond_service
from carwash.services.bond_service import (
    BondError,
    BondValidationError,
    BondRedemptionError,
    BondNotFoundError,
    BondAlreadyUsedError,
    BondCouponError,
    BondStationMismatchError,
)


class TestValidateBond:

    def test_valid_bond_is_returned_unchanged(self, db_session, station, make_bond):
        make_bond("BL-AAA111", pourcentage=30)

        bond = bond_service.validate_bond("BL-AAA111", station.id)

        assert bond.code == "BL-AAA111"
        assert bond.pourcentage == 30
        assert bond.is_used is False
        assert bond.used_at is None
        assert bond.coupon_id is None

    def test_code_is_case_and_whitespace_insensitive(self, db_session, station, make_bond):
        make_bond("BL-AAA111")
        bond = bond_service.validate_bond("  bl-aaa111 ", station.id)
        assert bond.code == "BL-AAA111"

    def test_unknown_code(self, db_session, station):
        with pytest.raises(BondNotFoundError):
            bond_service.validate_bond("BL-NOPE00", station.id)

    def test_empty_code(self, db_session, station):
        with pytest.raises(BondNotFoundError):
            bond_service.validate_bond("   ", station.id)

    def test_non_string_code(self, db_session, station):
        with pytest.raises(BondValidationError):
            bond_service.validate_bond(123, station.id)

    def test_used_bond(self, db_session, station, make_bond):
        make_bond("BL-USED01", is_used=True)
        with pytest.raises(BondAlreadyUsedError):
            bond_service.validate_bond("BL-USED01", station.id)

    def test_station_mismatch(self, db_session, station, other_station, make_bond):
        make_bond("BL-LOCAL1", station_id=other_station.id)
        with pytest.raises(BondStationMismatchError):
            bond_service.validate_bond("BL-LOCAL1", station.id)

    def test_station_scoped_bond_at_its_station(self, db_session, other_station, make_bond):
        make_bond("BL-LOCAL1", station_id=other_station.id)
        bond = bond_service.validate_bond("BL-LOCAL1", other_station.id)
        assert bond.station_id == other_station.id

    def test_unscoped_bond_valid_everywhere(self, db_session, station, other_station, make_bond):
        make_bond("BL-GLOBAL")
        assert bond_service.validate_bond("BL-GLOBAL", station.id).code == "BL-GLOBAL"
        assert bond_service.validate_bond("BL-GLOBAL", other_station.id).code == "BL-GLOBAL"

    def test_validation_is_idempotent(self, db_session, station, make_bond):
        bond = make_bond("BL-REPEAT")
        before = (bond.is_used, bond.used_at, bond.coupon_id)

        for _ in range(5):
            bond_service.validate_bond("BL-REPEAT", station.id)

        db.session.expire_all()
        reloaded = db.session.get(Bond, bond.id)
        assert (reloaded.is_used, reloaded.used_at, reloaded.coupon_id) == before

    def test_error_taxonomy(self):
        assert issubclass(BondNotFoundError, BondValidationError)
        assert issubclass(BondStationMismatchError, BondValidationError)
        assert issubclass(BondAlreadyUsedError, BondValidationError)
        assert issubclass(BondAlreadyUsedError, BondRedemptionError)
        assert issubclass(BondValidationError, BondError)


class TestRedeemBond:

    def test_redeem_sets_latch_fields_together(self, db_session, make_coupon, make_bond):
        coupon = make_coupon()
        bond = make_bond("BL-REDEEM")

        redeemed = bond_service.redeem_bond(bond.id, coupon.id)

        assert redeemed.is_used is True
        assert redeemed.used_at is not None
        assert redeemed.coupon_id == coupon.id

    def test_second_redeem_fails_regardless_of_coupon(self, db_session, make_coupon, make_bond):
        first = make_coupon()
        second = make_coupon()
        bond = make_bond("BL-ONCE01")

        bond_service.redeem_bond(bond.id, first.id)

        with pytest.raises(BondAlreadyUsedError):
            bond_service.redeem_bond(bond.id, second.id)
        with pytest.raises(BondAlreadyUsedError):
            bond_service.redeem_bond(bond.id, first.id)

        db.session.expire_all()
        reloaded = db.session.get(Bond, bond.id)
        assert reloaded.coupon_id == first.id

    def test_redeem_stale_validation_loses(self, db_session, station, make_coupon, make_bond):
        """A bond validated earlier but consumed meanwhile cannot be redeemed."""
        coupon = make_coupon()
        other = make_coupon()
        bond = make_bond("BL-STALE1")

        validated = bond_service.validate_bond("BL-STALE1", station.id)
        bond_service.redeem_bond(bond.id, other.id)

        with pytest.raises(BondAlreadyUsedError):
            bond_service.redeem_bond(validated.id, coupon.id)

    def test_redeem_unknown_bond(self, db_session, make_coupon):
        coupon = make_coupon()
        with pytest.raises(BondNotFoundError):
            bond_service.redeem_bond(99999, coupon.id)

    def test_redeem_respects_station_scope(self, db_session, station, other_station, make_coupon, make_bond):
        coupon = make_coupon()
        bond = make_bond("BL-SCOPE1", station_id=other_station.id)

        with pytest.raises(BondStationMismatchError):
            bond_service.redeem_bond(bond.id, coupon.id, station_id=station.id)

        db.session.expire_all()
        assert db.session.get(Bond, bond.id).is_used is False

    def test_redeem_unknown_coupon(self, db_session, make_bond):
        bond = make_bond("BL-NOWHERE")

        with pytest.raises(BondCouponError):
            bond_service.redeem_bond(bond.id, 999999)

        db.session.expire_all()
        reloaded = db.session.get(Bond, bond.id)
        assert reloaded.is_used is False
        assert reloaded.coupon_id is None

    def test_redeem_on_paid_coupon(self, db_session, make_coupon, make_bond):
        from carwash.services import settlement_service

        coupon = make_coupon()
        settlement_service.settle_coupon(coupon.id, created_by_user_id=7, methode="cash")
        bond = make_bond("BL-TOOLATE")

        with pytest.raises(BondCouponError):
            bond_service.redeem_bond(bond.id, coupon.id)

        db.session.expire_all()
        assert db.session.get(Bond, bond.id).is_used is False

    def test_one_bond_per_coupon(self, db_session, make_coupon, make_bond):
        coupon = make_coupon()
        first = make_bond("BL-PREMIER")
        second = make_bond("BL-SECOND1")
        bond_service.redeem_bond(first.id, coupon.id)

        with pytest.raises(BondCouponError) as exc_info:
            bond_service.redeem_bond(second.id, coupon.id)

        assert exc_info.value.code == "BL-PREMIER"
        db.session.expire_all()
        assert db.session.get(Bond, second.id).is_used is False


class TestCreateBond:

    def test_create_generates_uppercase_code(self, app, db_session, station):
        bond = bond_service.create_bond(50, created_by_user_id=1, station_id=station.id, description="Geste commercial")

        assert bond.code.startswith("BL-")
        assert bond.code == bond.code.upper()
        assert len(bond.code) == len("BL-") + bond_service.CODE_LENGTH
        assert bond.is_used is False
        assert bond.station_id == station.id

    def test_codes_are_unique(self, app, db_session):
        codes = {bond_service.create_bond(10, created_by_user_id=1).code for _ in range(20)}
        assert len(codes) == 20

    @pytest.mark.parametrize("pourcentage", [0, 4, 7, 101, 105, -5])
    def test_invalid_percentages(self, db_session, pourcentage):
        with pytest.raises(BondError):
            bond_service.create_bond(pourcentage, created_by_user_id=1)

    def test_float_percentage_rejected(self, db_session):
        with pytest.raises(BondError):
            bond_service.create_bond(50.0, created_by_user_id=1)

    def test_unknown_station_rejected(self, db_session):
        with pytest.raises(BondError):
            bond_service.create_bond(50, created_by_user_id=1, station_id=424242)


class TestListBonds:

    def test_filters_and_pagination(self, db_session, station, make_coupon, make_bond):
        make_bond("BL-L00001")
        make_bond("BL-L00002", station_id=station.id)
        used = make_bond("BL-L00003")
        bond_service.redeem_bond(used.id, make_coupon().id)

        unused = bond_service.list_bonds(is_used=False)
        assert unused["total"] == 2
        assert {b["code"] for b in unused["data"]} == {"BL-L00001", "BL-L00002"}

        scoped = bond_service.list_bonds(station_id=station.id)
        assert [b["code"] for b in scoped["data"]] == ["BL-L00002"]

        page = bond_service.list_bonds(page=2, limit=2)
        assert page["total"] == 3
        assert page["total_pages"] == 2
        assert len(page["data"]) == 1
        # newest first
        assert page["data"][0]["code"] == "BL-L00001"
