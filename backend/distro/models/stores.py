from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Store(db.Model):
    """
    A retail store supplied by the business.

    Each store is looked after by exactly one marketing officer
    (officer_id); officer balance rollups are computed over those stores.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("store_code", name="uq_stores_code"),
        db.Index("ix_stores_officer", "officer_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    store_code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    proprietor_name = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    contact_number = db.Column(db.String(15), nullable=True)
    area = db.Column(db.String(128), nullable=True)

    officer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    opening_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    officer = db.relationship("User", foreign_keys=[officer_id])

    def __repr__(self) -> str:
        return f"<Store id={self.id} code={self.store_code!r} officer_id={self.officer_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_code": self.store_code,
            "name": self.name,
            "proprietor_name": self.proprietor_name,
            "address": self.address,
            "contact_number": self.contact_number,
            "area": self.area,
            "officer_id": self.officer_id,
            "created_by_user_id": self.created_by_user_id,
            "opening_date": to_utc_z(self.opening_date),
            "created_at": to_utc_z(self.created_at),
        }
