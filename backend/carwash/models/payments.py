from __future__ import annotations

from ..extensions import db
from carwash.time_utils import to_utc_z, utcnow


PAYMENT_TYPES = ("income", "expense")

# "bond" entries are only written by settlement
PAYMENT_METHODS = ("cash", "card", "wave", "orange_money", "transfer", "bond")


class Payment(db.Model):
    """
    Cash-register ledger entry.

    Append-only: rows are inserted by the ledger service and never updated or
    deleted. ``coupon_id`` is set for coupon settlements and for ad-hoc
    cashier entries tied to a ticket.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_station_created", "station_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    type = db.Column(db.String(16), nullable=False, index=True)  # income, expense
    montant = db.Column(db.Integer, nullable=False)
    methode = db.Column(db.String(32), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=True)
    # Advisory only (mobile money receipt number, bond code, ...)
    reference_externe = db.Column(db.String(128), nullable=True)
    categorie = db.Column(db.String(64), nullable=True)

    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=True, index=True)
    created_by_user_id = db.Column(db.Integer, nullable=False, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=db.func.now(),
        index=True,
    )

    station = db.relationship("Station")
    coupon = db.relationship("Coupon", back_populates="paiements")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "montant": self.montant,
            "methode": self.methode,
            "description": self.description,
            "reference_externe": self.reference_externe,
            "categorie": self.categorie,
            "station_id": self.station_id,
            "coupon_id": self.coupon_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
