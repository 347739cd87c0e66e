# Overview: Pytest coverage for the coupon lifecycle state machine.

import pytest

from carwash.extensions import db
from carwash.models import Coupon
from carwash.services import coupon_service
from carwash.services.coupon_service import CouponError, InvalidTransitionError


class TestCreateCoupon:

    def test_new_coupon_is_pending_with_numero(self, db_session, station):
        coupon = coupon_service.create_coupon(station.id, montant_total=8000, remise=500)

        assert coupon.status == "pending"
        assert coupon.numero == f"CP-{station.id:03d}-0001"
        assert coupon.montant_total == 8000
        assert coupon.remise == 500
        assert coupon.paiements == []

    def test_numero_sequence_per_station(self, db_session, station, other_station):
        a1 = coupon_service.create_coupon(station.id)
        a2 = coupon_service.create_coupon(station.id)
        b1 = coupon_service.create_coupon(other_station.id)

        assert a1.numero.endswith("-0001")
        assert a2.numero.endswith("-0002")
        assert b1.numero == f"CP-{other_station.id:03d}-0001"

    def test_unknown_station(self, db_session):
        with pytest.raises(CouponError):
            coupon_service.create_coupon(4242)

    @pytest.mark.parametrize("montant", [-1, 10.5, "100"])
    def test_bad_amount(self, db_session, station, montant):
        with pytest.raises(CouponError):
            coupon_service.create_coupon(station.id, montant_total=montant)


class TestTransitions:

    def test_happy_path(self, db_session, station):
        coupon = coupon_service.create_coupon(station.id, montant_total=6000)

        washing = coupon_service.start_wash(coupon.id)
        assert washing.status == "washing"
        assert washing.started_at is not None

        done = coupon_service.finish_wash(coupon.id)
        assert done.status == "done"
        assert done.finished_at is not None
        assert done.montant_total == 6000

    def test_finish_sets_final_amount(self, db_session, make_coupon):
        coupon = make_coupon(status="washing", montant_total=0)
        done = coupon_service.finish_wash(coupon.id, montant_total=12500)
        assert done.montant_total == 12500

    def test_start_wash_on_done_coupon_is_rejected(self, db_session, make_coupon):
        coupon = make_coupon(status="done")

        with pytest.raises(InvalidTransitionError) as exc_info:
            coupon_service.start_wash(coupon.id)

        assert exc_info.value.current == "done"
        assert exc_info.value.target == "washing"
        db.session.expire_all()
        assert db.session.get(Coupon, coupon.id).status == "done"

    def test_cannot_skip_washing(self, db_session, make_coupon):
        coupon = make_coupon(status="pending")
        with pytest.raises(InvalidTransitionError):
            coupon_service.finish_wash(coupon.id)

    def test_cannot_start_twice(self, db_session, make_coupon):
        coupon = make_coupon(status="washing")
        with pytest.raises(InvalidTransitionError):
            coupon_service.start_wash(coupon.id)

    def test_unknown_coupon(self, db_session):
        with pytest.raises(CouponError):
            coupon_service.start_wash(31337)


class TestAmountFreeze:

    def test_amount_editable_before_done(self, db_session, make_coupon):
        coupon = make_coupon(status="washing", montant_total=5000)
        updated = coupon_service.update_amount(coupon.id, 7000, remise=1000)
        assert updated.montant_total == 7000
        assert updated.remise == 1000

    def test_amount_frozen_once_done(self, db_session, make_coupon):
        coupon = make_coupon(status="done", montant_total=5000)

        with pytest.raises(InvalidTransitionError):
            coupon_service.update_amount(coupon.id, 1)

        db.session.expire_all()
        assert db.session.get(Coupon, coupon.id).montant_total == 5000


class TestSettleGuard:

    def test_settle_without_ledger_entries_is_refused(self, db_session, make_coupon):
        """The done -> paid step refuses to run without covering payments."""
        coupon = make_coupon(status="done", montant_total=5000)

        with pytest.raises(InvalidTransitionError):
            coupon_service._settle_locked(coupon, [])

        db.session.rollback()
        assert db.session.get(Coupon, coupon.id).status == "done"


class TestListCoupons:

    def test_filter_by_status_and_station(self, db_session, station, other_station, make_coupon):
        make_coupon(status="pending")
        make_coupon(status="done")
        make_coupon(status="done", station_id=other_station.id)

        done_here = coupon_service.list_coupons(station_id=station.id, status="done")
        assert done_here["total"] == 1
        assert done_here["data"][0]["status"] == "done"

        all_done = coupon_service.list_coupons(status="done")
        assert all_done["total"] == 2

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(CouponError):
            coupon_service.list_coupons(status="cancelled")
