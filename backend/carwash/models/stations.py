from __future__ import annotations

from ..extensions import db
from carwash.time_utils import to_utc_z


class Station(db.Model):
    """
    Physical wash location.

    Scopes coupons, ledger entries and (optionally) bonds.
    """
    __tablename__ = "stations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    nom = db.Column(db.String(120), nullable=False, unique=True)
    adresse = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nom": self.nom,
            "adresse": self.adresse,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """Per-station counter used to allocate human-readable document numbers."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("station_id", "document_type", name="uq_document_sequences_station_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    station_id = db.Column(db.Integer, db.ForeignKey("stations.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
