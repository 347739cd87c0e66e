from __future__ import annotations

from ..extensions import db
from carwash.time_utils import to_utc_z


class Bond(db.Model):
    """
    Single-use percentage discount ("bon de lavage").

    ``station_id`` NULL means redeemable at any station. ``is_used``,
    ``used_at`` and ``coupon_id`` are written together, once, by redemption.
    """
    __tablename__ = "bonds"
    __table_args__ = (
        db.CheckConstraint("pourcentage >= 5 AND pourcentage <= 100", name="ck_bonds_pourcentage_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    pourcentage = db.Column(db.Integer, nullable=False)

    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=True, index=True)
    description = db.Column(db.String(255), nullable=True)

    is_used = db.Column(db.Boolean, nullable=False, default=False, index=True)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupons.id"), nullable=True, unique=True)

    created_by_user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    station = db.relationship("Station")
    coupon = db.relationship("Coupon", backref=db.backref("bond", uselist=False))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "pourcentage": self.pourcentage,
            "station_id": self.station_id,
            "description": self.description,
            "is_used": self.is_used,
            "used_at": to_utc_z(self.used_at),
            "coupon_id": self.coupon_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
