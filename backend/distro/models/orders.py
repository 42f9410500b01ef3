from __future__ import annotations

from ..extensions import db
from ..balance import line_total_cents
from ..time_utils import to_utc_z, utcnow


ORDER_STATUS_DRAFT = "draft"
ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_APPROVED = "approved"
ORDER_STATUS_REJECTED = "rejected"
ORDER_STATUS_FULFILLED = "fulfilled"

ORDER_STATUSES = (
    ORDER_STATUS_DRAFT,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_REJECTED,
    ORDER_STATUS_FULFILLED,
)

ORDER_PAYMENT_METHODS = ("cash", "credit")


class Order(db.Model):
    """
    Store order moving through draft -> pending -> approved -> fulfilled
    (or rejected from pending/approved).

    stock_reserved is True exactly while this order holds a stock
    reservation (set on submission, cleared on rejection or on deletion).
    Fulfilled orders keep the flag, so an admin deleting one returns its units.
    """
    __tablename__ = "orders"
    __table_args__ = (
        # At most one open draft per (store, creator)
        db.Index(
            "uq_orders_open_draft",
            "store_id",
            "created_by_user_id",
            unique=True,
            sqlite_where=db.text("status = 'draft'"),
            postgresql_where=db.text("status = 'draft'"),
        ),
        db.Index("ix_orders_store_status", "store_id", "status"),
        db.Index("ix_orders_officer_status", "officer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    officer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_DRAFT, index=True)
    stock_reserved = db.Column(db.Boolean, nullable=False, default=False)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejection_reason = db.Column(db.String(255), nullable=True)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    fulfilled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    store = db.relationship("Store", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
    )
    status_history = db.relationship(
        "OrderStatusHistory",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.id",
    )

    @property
    def total_cents(self) -> int:
        return sum(line.line_total_cents for line in self.lines)

    @property
    def needed_stock(self) -> dict[int, int]:
        """Units (quantity + bonus) to reserve per product."""
        needed: dict[int, int] = {}
        for line in self.lines:
            needed[line.product_id] = needed.get(line.product_id, 0) + line.needed_stock
        return needed

    def __repr__(self) -> str:
        return f"<Order id={self.id} store_id={self.store_id} status={self.status!r}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "created_by_user_id": self.created_by_user_id,
            "officer_id": self.officer_id,
            "status": self.status,
            "stock_reserved": self.stock_reserved,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "total_cents": self.total_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "submitted_at": to_utc_z(self.submitted_at),
            "approved_at": to_utc_z(self.approved_at),
            "approved_by_user_id": self.approved_by_user_id,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejected_by_user_id": self.rejected_by_user_id,
            "rejection_reason": self.rejection_reason,
            "fulfilled_at": to_utc_z(self.fulfilled_at),
            "fulfilled_by_user_id": self.fulfilled_by_user_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
            data["status_history"] = [entry.to_dict() for entry in self.status_history]
        return data


class OrderLine(db.Model):
    """One product on an order; price and labels are snapshotted from the product."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "product_id", name="uq_order_lines_order_product"),
        db.CheckConstraint("quantity >= 1", name="ck_order_lines_quantity"),
        db.CheckConstraint("bonus_quantity >= 0", name="ck_order_lines_bonus"),
        db.CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_order_lines_discount",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    name = db.Column(db.String(255), nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    pack_size = db.Column(db.Integer, nullable=True)
    unit = db.Column(db.String(16), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    bonus_quantity = db.Column(db.Integer, nullable=False, default=0)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    @property
    def needed_stock(self) -> int:
        return self.quantity + (self.bonus_quantity or 0)

    @property
    def line_total_cents(self) -> int:
        return line_total_cents(self.unit_price_cents, self.quantity, self.discount_percentage)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "pack_size": self.pack_size,
            "unit": self.unit,
            "quantity": self.quantity,
            "bonus_quantity": self.bonus_quantity,
            "discount_percentage": str(self.discount_percentage),
            "line_total_cents": self.line_total_cents,
        }


class OrderStatusHistory(db.Model):
    __tablename__ = "order_status_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False)
    changed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    notes = db.Column(db.String(255), nullable=True)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "changed_by_user_id": self.changed_by_user_id,
            "notes": self.notes,
            "changed_at": to_utc_z(self.changed_at),
        }
