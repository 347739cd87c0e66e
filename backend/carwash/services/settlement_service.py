# Overview: Service-layer orchestration of coupon settlement (ledger + bond + lifecycle).

"""
Coupon Settlement Service

WHY: Paying a wash touches three things: the cash-register ledger, the
discount bond (if any) and the coupon status. They must change together.

ALGORITHM:
    T = coupon.montant_total (frozen, must be > 0)
    no bond:    one income entry {methode, T}
    bond p%:    bond_amount = round_half_up(T * p / 100)
                remainder   = T - bond_amount      (never rounded on its own)
                entry {bond, bond_amount}
                entry {methode, remainder}          only if remainder > 0
                bond flipped to used (compare-and-set)
    coupon done -> paid

TRANSACTION: every step above runs in one DB transaction. Any failure rolls
everything back: coupon stays done, bond stays unused, no ledger rows.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Bond, Coupon, Payment
from .concurrency import begin_write, lock_for_update, run_with_retry
from . import bond_service, coupon_service, ledger_service
from .bond_service import validate_pourcentage, BondError
from .coupon_service import CouponError
from .ledger_service import METHOD_BOND, TYPE_INCOME


class SettlementError(ValueError):
    """Raised for settlement input errors (missing method, zero total...)."""
    pass


@dataclass(frozen=True)
class SettlementSplit:
    total: int
    pourcentage: int
    bond_amount: int
    remainder: int


@dataclass
class SettlementResult:
    coupon: Coupon
    payments: list[Payment]
    label: str
    bond: Bond | None = None
    split: SettlementSplit | None = None

    def to_dict(self) -> dict:
        return {
            "coupon": self.coupon.to_dict(),
            "payments": [p.to_dict() for p in self.payments],
            "bond": self.bond.to_dict() if self.bond else None,
            "split": (
                {
                    "bond_amount": self.split.bond_amount,
                    "remainder": self.split.remainder,
                    "pourcentage": self.split.pourcentage,
                }
                if self.split else None
            ),
            "label": self.label,
        }


def compute_split(total: int, pourcentage: int) -> SettlementSplit:
    """
    Split total between the bond-covered share and the residual.

    Integer half-up rounding: (total * p + 50) // 100. The remainder is
    derived by subtraction so bond_amount + remainder == total.
    """
    if isinstance(total, bool) or not isinstance(total, int) or total <= 0:
        raise SettlementError("Settlement total must be a positive integer")
    try:
        validate_pourcentage(pourcentage)
    except BondError as exc:
        raise SettlementError(str(exc)) from exc

    bond_amount = (total * pourcentage + 50) // 100
    return SettlementSplit(
        total=total,
        pourcentage=pourcentage,
        bond_amount=bond_amount,
        remainder=total - bond_amount,
    )


def _require_methode(methode: str | None) -> str:
    if not methode:
        raise SettlementError("A payment method is required for the amount not covered by a bond")
    if methode == METHOD_BOND:
        raise SettlementError("'bond' cannot be used as the secondary payment method")
    return methode


def compose_payment_label(payments: list[Payment], bond: Bond | None = None) -> str:
    """
    Human-readable "how was this paid" label.

    Uses the first bond entry and the first non-bond entry, e.g.
    "Bond BL-7KX2QM (30%) + cash".
    """
    bond_entry = next((p for p in payments if p.methode == METHOD_BOND), None)
    other_entry = next((p for p in payments if p.methode != METHOD_BOND), None)

    parts = []
    if bond_entry is not None:
        if bond is not None:
            parts.append(f"Bond {bond.code} ({bond.pourcentage}%)")
        elif bond_entry.reference_externe:
            parts.append(f"Bond {bond_entry.reference_externe}")
        else:
            parts.append("Bond")
    if other_entry is not None:
        parts.append(other_entry.methode)
    return " + ".join(parts)


def describe_coupon_payment(coupon_id: int) -> str:
    """Rebuild the payment label of a coupon from the ledger."""
    payments = ledger_service.list_for_coupon(coupon_id)
    bond = bond_service.get_bond_for_coupon(coupon_id)
    return compose_payment_label(payments, bond)


def settle_coupon(
    coupon_id: int,
    *,
    created_by_user_id: int,
    station_id: int | None = None,
    methode: str | None = None,
    bond_code: str | None = None,
    reference_externe: str | None = None,
) -> SettlementResult:
    """
    Record payment for a done coupon and mark it paid, atomically.

    Args:
        coupon_id: Coupon in status 'done'
        created_by_user_id: Cashier
        station_id: Station taking the payment (defaults to the coupon's)
        methode: cash, card, wave, orange_money, transfer; optional only
            when the bond covers 100%
        bond_code: Optional bond code typed at the till
        reference_externe: Optional receipt/transaction reference

    Raises:
        CouponError: coupon not found
        InvalidTransitionError: coupon not in 'done' (includes already paid)
        SettlementError: bad input
        BondValidationError / BondRedemptionError: bond refused
        PaymentError: ledger write refused
    """
    def _op():
        begin_write()

        coupon = lock_for_update(db.session.query(Coupon).filter_by(id=coupon_id)).first()
        if not coupon:
            raise CouponError(f"Coupon {coupon_id} not found")

        if coupon.status != coupon_service.STATUS_DONE:
            raise coupon_service.InvalidTransitionError(coupon, coupon_service.STATUS_PAID)

        total = coupon.montant_total
        if total <= 0:
            raise SettlementError(f"Coupon {coupon.numero} has no amount to settle")

        paying_station_id = station_id or coupon.station_id
        description = f"Paiement coupon {coupon.numero}"
        entries: list[Payment] = []
        bond = None
        split = None

        if bond_code:
            bond = bond_service.validate_bond(bond_code, paying_station_id)
            split = compute_split(total, bond.pourcentage)
            if split.bond_amount == 0:
                raise SettlementError(
                    f"Bond {bond.code} ({bond.pourcentage}%) covers nothing on {total}"
                )
            secondary = _require_methode(methode) if split.remainder > 0 else None

            entries.append(ledger_service.record_payment(
                type=TYPE_INCOME,
                montant=split.bond_amount,
                methode=METHOD_BOND,
                station_id=paying_station_id,
                created_by_user_id=created_by_user_id,
                coupon_id=coupon.id,
                description=f"{description} - bond {bond.code} ({bond.pourcentage}%)",
                reference_externe=bond.code,
                commit=False,
            ))
            if split.remainder > 0:
                entries.append(ledger_service.record_payment(
                    type=TYPE_INCOME,
                    montant=split.remainder,
                    methode=secondary,
                    station_id=paying_station_id,
                    created_by_user_id=created_by_user_id,
                    coupon_id=coupon.id,
                    description=f"{description} - complement {split.remainder}",
                    reference_externe=reference_externe or coupon.numero,
                    commit=False,
                ))

            bond = bond_service._redeem_locked(bond.id, coupon.id, paying_station_id)
        else:
            secondary = _require_methode(methode)
            entries.append(ledger_service.record_payment(
                type=TYPE_INCOME,
                montant=total,
                methode=secondary,
                station_id=paying_station_id,
                created_by_user_id=created_by_user_id,
                coupon_id=coupon.id,
                description=description,
                reference_externe=reference_externe or coupon.numero,
                commit=False,
            ))

        coupon_service._settle_locked(coupon, entries)
        db.session.commit()

        return SettlementResult(
            coupon=coupon,
            payments=entries,
            label=compose_payment_label(entries, bond),
            bond=bond,
            split=split,
        )

    return run_with_retry(_op)
