# Overview: Service-layer operations for the coupon lifecycle; encapsulates business logic and database work.

"""
Coupon Lifecycle Service

================================================================================
PURPOSE: Enforce pending -> washing -> done -> paid for wash tickets
================================================================================

STATE MACHINE:
    pending -> washing -> done -> paid

    pending:  created by wash intake, amount may still change
    washing:  washers assigned and working, amount may still change
    done:     wash finished, montant_total FROZEN, waiting for the till
    paid:     TERMINAL, settled through settlement_service

RULES (NON-NEGOTIABLE):
1. Cannot skip states (pending -> done is forbidden)
2. Cannot reverse states (paid -> done is forbidden)
3. done -> paid happens only inside a settlement transaction, after the
   ledger entries covering montant_total have been written
================================================================================
"""

from __future__ import annotations

from ..extensions import db
from ..models import Coupon, Payment, Station, COUPON_STATUSES
from carwash.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .sequence_service import next_document_number


STATUS_PENDING = "pending"
STATUS_WASHING = "washing"
STATUS_DONE = "done"
STATUS_PAID = "paid"

# Amount can still be edited in these states
AMOUNT_EDITABLE_STATUSES = {STATUS_PENDING, STATUS_WASHING}


class CouponError(ValueError):
    """Raised for coupon lookup and input errors."""
    pass


class InvalidTransitionError(ValueError):
    """
    Raised when a lifecycle transition is attempted from the wrong state.

    This is a programming/UI error upstream, never coerced.
    """

    def __init__(self, coupon: Coupon, target: str, message: str | None = None):
        self.coupon_id = coupon.id
        self.numero = coupon.numero
        self.current = coupon.status
        self.target = target
        super().__init__(
            message or f"Cannot move coupon {coupon.numero} from '{coupon.status}' to '{target}'"
        )


def _require_transition(coupon: Coupon, expected: str, target: str) -> None:
    if coupon.status != expected:
        raise InvalidTransitionError(coupon, target)


def _validate_amount(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CouponError(f"{field} must be an integer")
    if value < 0:
        raise CouponError(f"{field} must not be negative")
    return value


def _load_locked(coupon_id: int) -> Coupon:
    coupon = lock_for_update(db.session.query(Coupon).filter_by(id=coupon_id)).first()
    if not coupon:
        raise CouponError(f"Coupon {coupon_id} not found")
    return coupon


# =============================================================================
# INTAKE
# =============================================================================

def create_coupon(
    station_id: int,
    *,
    montant_total: int = 0,
    remise: int = 0,
    fiche_piste_id: int | None = None,
    created_by_user_id: int | None = None,
) -> Coupon:
    """Create a pending coupon with the next station-scoped numero."""
    _validate_amount(montant_total, "montant_total")
    _validate_amount(remise, "remise")

    def _op():
        if db.session.get(Station, station_id) is None:
            raise CouponError(f"Station {station_id} not found")

        numero = next_document_number(station_id=station_id, document_type="COUPON", prefix="CP")
        coupon = Coupon(
            station_id=station_id,
            numero=numero,
            status=STATUS_PENDING,
            montant_total=montant_total,
            remise=remise,
            fiche_piste_id=fiche_piste_id,
            created_by_user_id=created_by_user_id,
        )
        db.session.add(coupon)
        db.session.commit()
        return coupon

    return run_with_retry(_op)


def update_amount(coupon_id: int, montant_total: int, remise: int | None = None) -> Coupon:
    """Change the amount owed while the wash is not finished."""
    _validate_amount(montant_total, "montant_total")
    if remise is not None:
        _validate_amount(remise, "remise")

    def _op():
        coupon = _load_locked(coupon_id)
        if coupon.status not in AMOUNT_EDITABLE_STATUSES:
            raise InvalidTransitionError(
                coupon,
                coupon.status,
                f"Amount of coupon {coupon.numero} is frozen in status '{coupon.status}'",
            )
        coupon.montant_total = montant_total
        if remise is not None:
            coupon.remise = remise
        db.session.commit()
        return coupon

    return run_with_retry(_op)


# =============================================================================
# TRANSITIONS
# =============================================================================

def start_wash(coupon_id: int) -> Coupon:
    """pending -> washing."""
    def _op():
        coupon = _load_locked(coupon_id)
        _require_transition(coupon, STATUS_PENDING, STATUS_WASHING)
        coupon.status = STATUS_WASHING
        coupon.started_at = utcnow()
        db.session.commit()
        return coupon

    return run_with_retry(_op)


def finish_wash(coupon_id: int, montant_total: int | None = None) -> Coupon:
    """
    washing -> done. Freezes montant_total.

    Args:
        montant_total: final amount from intake; keeps the current amount
            when omitted
    """
    if montant_total is not None:
        _validate_amount(montant_total, "montant_total")

    def _op():
        coupon = _load_locked(coupon_id)
        _require_transition(coupon, STATUS_WASHING, STATUS_DONE)
        if montant_total is not None:
            coupon.montant_total = montant_total
        coupon.status = STATUS_DONE
        coupon.finished_at = utcnow()
        db.session.commit()
        return coupon

    return run_with_retry(_op)


def _settle_locked(coupon: Coupon, entries: list[Payment]) -> Coupon:
    """
    done -> paid, inside the settlement transaction (no commit).

    entries are the ledger rows written by this settlement. They must be
    persisted income rows for this coupon totalling montant_total, so a
    coupon can never be paid without its payment records.
    """
    _require_transition(coupon, STATUS_DONE, STATUS_PAID)

    recorded = sum(
        p.montant for p in entries
        if p.id is not None and p.coupon_id == coupon.id and p.type == "income"
    )
    if not entries or recorded != coupon.montant_total:
        raise InvalidTransitionError(
            coupon,
            STATUS_PAID,
            f"Coupon {coupon.numero} ledger total {recorded} does not match montant_total {coupon.montant_total}",
        )

    coupon.status = STATUS_PAID
    coupon.paid_at = utcnow()
    return coupon


# =============================================================================
# QUERIES
# =============================================================================

def get_coupon(coupon_id: int) -> Coupon | None:
    return db.session.get(Coupon, coupon_id)


def list_coupons(
    *,
    station_id: int | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    q = db.session.query(Coupon)
    if station_id is not None:
        q = q.filter(Coupon.station_id == station_id)
    if status is not None:
        if status not in COUPON_STATUSES:
            raise CouponError(f"Invalid status '{status}'. Must be one of: {', '.join(COUPON_STATUSES)}")
        q = q.filter(Coupon.status == status)

    total = q.count()
    rows = (
        q.order_by(Coupon.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": [c.to_dict() for c in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": max(1, -(-total // limit)),
    }
