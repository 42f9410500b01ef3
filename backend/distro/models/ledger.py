from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Payment(db.Model):
    """
    Money received from a store.

    Append-only: a payment never updates an order or a product, and is
    never edited after it is recorded.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_payments_amount_nonnegative"),
        db.Index("ix_payments_store_date", "store_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False, default="cash")  # cash | credit | bank
    notes = db.Column(db.String(255), nullable=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "notes": self.notes,
            "recorded_by_user_id": self.recorded_by_user_id,
            "date": to_utc_z(self.date),
            "created_at": to_utc_z(self.created_at),
        }


class Due(db.Model):
    """
    A manually recorded obligation of a store, independent of orders.

    Append-only.
    """
    __tablename__ = "dues"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_dues_amount_nonnegative"),
        db.Index("ix_dues_store_date", "store_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=True)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "due_date": to_utc_z(self.due_date) if self.due_date else None,
            "recorded_by_user_id": self.recorded_by_user_id,
            "date": to_utc_z(self.date),
            "created_at": to_utc_z(self.created_at),
        }
