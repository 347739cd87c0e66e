from __future__ import annotations

from ..extensions import db
from carwash.time_utils import to_utc_z


# Lifecycle order; no transition goes backwards
COUPON_STATUSES = ("pending", "washing", "done", "paid")


class Coupon(db.Model):
    """
    Wash ticket.

    Created by wash intake in ``pending``, moved through
    ``pending -> washing -> done -> paid``. ``montant_total`` is frozen once the
    coupon reaches ``done``; only the settlement service moves it to ``paid``.
    """
    __tablename__ = "coupons"
    __table_args__ = (
        db.Index("ix_coupons_station_status", "station_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)

    # Human-readable reference (e.g. "CP-001-0042"), never changes
    numero = db.Column(db.String(64), nullable=False, unique=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    # Amounts in FCFA (no subunit)
    montant_total = db.Column(db.Integer, nullable=False, default=0)
    remise = db.Column(db.Integer, nullable=False, default=0)

    # Opaque link to the intake ticket (client, vehicle, wash type, extras)
    fiche_piste_id = db.Column(db.Integer, nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    finished_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    station = db.relationship("Station", backref=db.backref("coupons", lazy=True))
    paiements = db.relationship(
        "Payment",
        back_populates="coupon",
        order_by="Payment.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "station_id": self.station_id,
            "numero": self.numero,
            "status": self.status,
            "montant_total": self.montant_total,
            "remise": self.remise,
            "fiche_piste_id": self.fiche_piste_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "started_at": to_utc_z(self.started_at),
            "finished_at": to_utc_z(self.finished_at),
            "paid_at": to_utc_z(self.paid_at),
            "version_id": self.version_id,
        }
