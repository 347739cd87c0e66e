# Overview: Service-layer operations for the cash-register ledger; encapsulates business logic and database work.

"""
Payment Ledger ("caisse")

Invariants (authoritative):
- Append-only: entries are inserted, never updated or deleted.
- montant is a positive integer; methode and type are from fixed lists.
- Settlement writes its entries with commit=False so they share the
  settlement transaction.
- Per-coupon reads are in insertion order (id ascending).
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Coupon, Payment, Station, PAYMENT_METHODS, PAYMENT_TYPES
from carwash.time_utils import day_bounds, utcnow


class PaymentError(ValueError):
    """Raised for ledger operation errors."""
    pass


METHOD_BOND = "bond"
TYPE_INCOME = "income"
TYPE_EXPENSE = "expense"


def _validate_entry(type: str, montant, methode: str) -> None:
    if type not in PAYMENT_TYPES:
        raise PaymentError(f"Invalid payment type: {type}. Must be one of {list(PAYMENT_TYPES)}")

    if methode not in PAYMENT_METHODS:
        raise PaymentError(f"Invalid payment method: {methode}. Must be one of {list(PAYMENT_METHODS)}")

    if isinstance(montant, bool) or not isinstance(montant, int):
        raise PaymentError("Payment amount must be an integer")

    if montant <= 0:
        raise PaymentError("Payment amount must be positive")


def record_payment(
    *,
    type: str,
    montant: int,
    methode: str,
    station_id: int,
    created_by_user_id: int,
    coupon_id: int | None = None,
    description: str | None = None,
    reference_externe: str | None = None,
    categorie: str | None = None,
    commit: bool = True,
) -> Payment:
    """
    Append one entry to the ledger.

    Args:
        commit: False when called from inside another service's transaction
            (the entry is flushed so its id is assigned, not committed)

    Raises:
        PaymentError: bad amount/method/type, unknown station or coupon, or
            coupon already paid
    """
    _validate_entry(type, montant, methode)

    if db.session.get(Station, station_id) is None:
        raise PaymentError(f"Station {station_id} not found")

    if coupon_id is not None:
        coupon = db.session.get(Coupon, coupon_id)
        if coupon is None:
            raise PaymentError(f"Coupon {coupon_id} not found")
        if coupon.status == "paid":
            raise PaymentError(f"Coupon {coupon.numero} is already paid")

    payment = Payment(
        type=type,
        montant=montant,
        methode=methode,
        description=description,
        reference_externe=reference_externe,
        categorie=categorie,
        station_id=station_id,
        coupon_id=coupon_id,
        created_by_user_id=created_by_user_id,
        created_at=utcnow(),
    )
    db.session.add(payment)

    if commit:
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
    else:
        db.session.flush()

    return payment


def list_for_coupon(coupon_id: int) -> list[Payment]:
    """Entries attached to a coupon, in insertion order."""
    return (
        db.session.query(Payment)
        .filter_by(coupon_id=coupon_id)
        .order_by(Payment.id)
        .all()
    )


def list_transactions(
    station_id: int,
    *,
    type: str | None = None,
    day: date | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: int | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """
    Paginated ledger listing for a station, newest first.

    day restricts to one business day; start/end are an inclusive/exclusive
    datetime window and may be combined with it.
    """
    q = db.session.query(Payment).filter(Payment.station_id == station_id)

    if type is not None:
        if type not in PAYMENT_TYPES:
            raise PaymentError(f"Invalid payment type: {type}")
        q = q.filter(Payment.type == type)

    if day is not None:
        day_start, day_end = day_bounds(day)
        q = q.filter(Payment.created_at >= day_start, Payment.created_at < day_end)
    if start is not None:
        q = q.filter(Payment.created_at >= start)
    if end is not None:
        q = q.filter(Payment.created_at < end)

    if user_id is not None:
        q = q.filter(Payment.created_by_user_id == user_id)

    total = q.count()
    rows = (
        q.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": [p.to_dict() for p in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": max(1, -(-total // limit)),
    }


def get_caisse_summary(station_id: int, day: date | None = None) -> dict:
    """
    Daily register totals for a station.

    Returns:
        - total_recettes: sum of income entries
        - total_depenses: sum of expense entries
        - solde: recettes - depenses
        - nombre_transactions: entry count
        - par_methode: income totals keyed by methode
    """
    if day is None:
        day = utcnow().date()
    day_start, day_end = day_bounds(day)

    rows = (
        db.session.query(
            Payment.type,
            Payment.methode,
            func.coalesce(func.sum(Payment.montant), 0),
            func.count(Payment.id),
        )
        .filter(
            Payment.station_id == station_id,
            Payment.created_at >= day_start,
            Payment.created_at < day_end,
        )
        .group_by(Payment.type, Payment.methode)
        .all()
    )

    total_recettes = 0
    total_depenses = 0
    nombre = 0
    par_methode: dict[str, int] = {}
    for entry_type, methode, amount, count in rows:
        amount = int(amount)
        nombre += int(count)
        if entry_type == TYPE_INCOME:
            total_recettes += amount
            par_methode[methode] = par_methode.get(methode, 0) + amount
        else:
            total_depenses += amount

    return {
        "station_id": station_id,
        "date": day.isoformat(),
        "total_recettes": total_recettes,
        "total_depenses": total_depenses,
        "solde": total_recettes - total_depenses,
        "nombre_transactions": nombre,
        "par_methode": par_methode,
    }
