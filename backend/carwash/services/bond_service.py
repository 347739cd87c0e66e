# Overview: Service-layer operations for discount bonds; encapsulates business logic and database work.

"""
Bond Registry

WHY: A bond ("bon de lavage") is a printed, single-use percentage discount.
Cashiers type its code at the till; the settlement service consumes it.

RULES:
- Validation is a pure read and may be repeated (cashier can abort).
- Redemption is a compare-and-set: UPDATE ... WHERE is_used = false.
  Zero affected rows means somebody else won; the caller fails.
- is_used / used_at / coupon_id are written together and never again.
"""

from __future__ import annotations

import secrets

from flask import current_app
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Bond, Coupon, Station
from carwash.time_utils import utcnow
from .concurrency import run_with_retry


MIN_POURCENTAGE = 5
MAX_POURCENTAGE = 100
POURCENTAGE_STEP = 5

# No 0/O or 1/I: codes are read off paper
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6


class BondError(ValueError):
    """Base class for bond registry errors."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class BondValidationError(BondError):
    """Bond cannot be accepted at the till (user-correctable)."""


class BondRedemptionError(BondError):
    """Bond could not be consumed."""


class BondNotFoundError(BondValidationError):
    pass


class BondStationMismatchError(BondValidationError):
    pass


class BondAlreadyUsedError(BondValidationError, BondRedemptionError):
    pass


class BondCouponError(BondRedemptionError):
    """Target coupon is missing, already paid, or already carries a bond."""


def normalize_code(code: str | None) -> str:
    """Codes are case-insensitive at the till and stored uppercase."""
    if code is not None and not isinstance(code, str):
        raise BondValidationError("Bond code must be a string")
    normalized = (code or "").strip().upper()
    if not normalized:
        raise BondNotFoundError("Bond code is required", code=normalized)
    return normalized


def validate_pourcentage(pourcentage) -> int:
    if isinstance(pourcentage, bool) or not isinstance(pourcentage, int):
        raise BondError("pourcentage must be an integer")
    if pourcentage < MIN_POURCENTAGE or pourcentage > MAX_POURCENTAGE:
        raise BondError(f"pourcentage must be between {MIN_POURCENTAGE} and {MAX_POURCENTAGE}")
    if pourcentage % POURCENTAGE_STEP:
        raise BondError(f"pourcentage must be a multiple of {POURCENTAGE_STEP}")
    return pourcentage


def _check_redeemable(bond: Bond | None, code: str, station_id: int | None) -> Bond:
    if bond is None:
        raise BondNotFoundError(f"Bond {code} not found", code=code)
    if bond.is_used:
        raise BondAlreadyUsedError(f"Bond {bond.code} has already been used", code=bond.code)
    if bond.station_id is not None and bond.station_id != station_id:
        raise BondStationMismatchError(
            f"Bond {bond.code} is not valid at this station",
            code=bond.code,
        )
    return bond


# =============================================================================
# VALIDATION / REDEMPTION
# =============================================================================

def validate_bond(code: str, station_id: int | None) -> Bond:
    """
    Look up a bond by code and check it can be redeemed at station_id.

    Read-only; does not reserve the bond.

    Raises:
        BondNotFoundError, BondAlreadyUsedError, BondStationMismatchError
    """
    normalized = normalize_code(code)
    bond = db.session.query(Bond).filter_by(code=normalized).first()
    return _check_redeemable(bond, normalized, station_id)


def _redeem_locked(bond_id: int, coupon_id: int, station_id: int | None = None) -> Bond:
    """
    Flip a bond to used inside the caller's transaction (no commit).

    The station check is part of the UPDATE predicate when station_id is
    given, so scope cannot change between validation and redemption.

    The coupon must exist, be unpaid and carry no other bond.
    """
    coupon = db.session.get(Coupon, coupon_id)
    if coupon is None:
        raise BondCouponError(f"Coupon {coupon_id} not found")
    if coupon.status == "paid":
        raise BondCouponError(f"Coupon {coupon.numero} is already paid")
    other = (
        db.session.query(Bond)
        .filter(Bond.coupon_id == coupon_id, Bond.id != bond_id)
        .first()
    )
    if other is not None:
        raise BondCouponError(
            f"Coupon {coupon.numero} already carries bond {other.code}",
            code=other.code,
        )

    now = utcnow()
    predicate = [Bond.id == bond_id, Bond.is_used.is_(False)]
    if station_id is not None:
        predicate.append(or_(Bond.station_id.is_(None), Bond.station_id == station_id))

    stmt = (
        update(Bond)
        .where(*predicate)
        .values(is_used=True, used_at=now, coupon_id=coupon_id, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.session.execute(stmt)
    except IntegrityError as exc:
        # bonds.coupon_id is unique; a concurrent redeem took this coupon
        raise BondCouponError(f"Coupon {coupon.numero} already carries a bond") from exc

    bond = db.session.query(Bond).populate_existing().filter_by(id=bond_id).first()
    if result.rowcount != 1:
        if bond is None:
            raise BondNotFoundError(f"Bond {bond_id} not found")
        # Re-read tells us why the predicate did not match
        _check_redeemable(bond, bond.code, station_id)
        raise BondAlreadyUsedError(f"Bond {bond.code} has already been used", code=bond.code)

    return bond


def redeem_bond(bond_id: int, coupon_id: int, station_id: int | None = None) -> Bond:
    """
    Mark a bond as used by coupon_id and commit.

    Exactly one of several concurrent callers succeeds; the others get
    BondAlreadyUsedError.
    """
    def _op():
        bond = _redeem_locked(bond_id, coupon_id, station_id)
        db.session.commit()
        return bond

    return run_with_retry(_op)


# =============================================================================
# ADMINISTRATION
# =============================================================================

def generate_code(prefix: str | None = None) -> str:
    if prefix is None:
        prefix = current_app.config.get("BOND_CODE_PREFIX", "BL")
    body = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
    return f"{prefix}-{body}" if prefix else body


def create_bond(
    pourcentage: int,
    created_by_user_id: int,
    station_id: int | None = None,
    description: str | None = None,
    *,
    attempts: int = 5,
) -> Bond:
    """
    Issue a new unused bond with a freshly generated code.

    Raises:
        BondError: invalid percentage or unknown station
    """
    validate_pourcentage(pourcentage)

    if station_id is not None and db.session.get(Station, station_id) is None:
        raise BondError(f"Station {station_id} not found")

    for attempt in range(attempts):
        bond = Bond(
            code=generate_code(),
            pourcentage=pourcentage,
            station_id=station_id,
            description=description,
            is_used=False,
            created_by_user_id=created_by_user_id,
        )
        db.session.add(bond)
        try:
            db.session.commit()
            return bond
        except IntegrityError:
            # Code collision; draw again
            db.session.rollback()
            if attempt >= attempts - 1:
                raise

    raise BondError("Could not allocate a unique bond code")


def get_bond(bond_id: int) -> Bond | None:
    return db.session.get(Bond, bond_id)


def get_bond_for_coupon(coupon_id: int) -> Bond | None:
    return db.session.query(Bond).filter_by(coupon_id=coupon_id).first()


def list_bonds(
    *,
    is_used: bool | None = None,
    station_id: int | None = None,
    created_by_user_id: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """Paginated bond list, newest first."""
    q = db.session.query(Bond)
    if is_used is not None:
        q = q.filter(Bond.is_used.is_(is_used))
    if station_id is not None:
        q = q.filter(Bond.station_id == station_id)
    if created_by_user_id is not None:
        q = q.filter(Bond.created_by_user_id == created_by_user_id)

    total = q.count()
    rows = (
        q.order_by(Bond.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": [b.to_dict() for b in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": max(1, -(-total // limit)),
    }
