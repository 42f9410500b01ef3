from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data with its on-hand stock.

    STOCK INVARIANT:
    - stock >= 0 at all times (CHECK constraint as a backstop).
    - Only services.inventory_service writes stock, through a conditional
      UPDATE so concurrent writers cannot drive it negative.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("product_code", name="uq_products_code"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        db.Index("ix_products_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False, default="general")
    description = db.Column(db.Text, nullable=True)

    # Unit price, authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)

    pack_size = db.Column(db.Integer, nullable=True)
    unit = db.Column(db.String(16), nullable=False, default="piece")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.product_code!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_code": self.product_code,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "pack_size": self.pack_size,
            "unit": self.unit,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """Append-only record of every committed stock write."""
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity_delta = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    # order.submitted | order.rejected | order.deleted | manual.adjustment
    reason = db.Column(db.String(32), nullable=False, index=True)

    # Plain column: movements outlive deleted orders
    order_id = db.Column(db.Integer, nullable=True, index=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity_delta": self.quantity_delta,
            "stock_after": self.stock_after,
            "reason": self.reason,
            "order_id": self.order_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
