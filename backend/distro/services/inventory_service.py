# Overview: Service-layer operations for inventory; the only writer of Product.stock.

"""
Inventory Ledger Invariants (authoritative)

- Product.stock >= 0 at all times.
- Every stock write is a single conditional UPDATE:
      UPDATE products SET stock = stock + :delta
      WHERE id = :id AND stock + :delta >= 0
  so the check and the write are one atomic statement. Concurrent writers
  on the same row are serialized by the database row lock; the loser
  re-evaluates the WHERE clause against the committed value.
- A write that matches zero rows means the product is missing (NotFound)
  or the result would be negative (InsufficientStock). Nothing is written.
- Each successful write appends a StockMovement in the same transaction.
- apply_stock_delta() never commits; the caller's unit_of_work() does.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, StockMovement
from ..permissions import Actor, require_permission
from .concurrency import unit_of_work


REASON_ORDER_SUBMITTED = "order.submitted"
REASON_ORDER_REJECTED = "order.rejected"
REASON_ORDER_DELETED = "order.deleted"
REASON_MANUAL_ADJUSTMENT = "manual.adjustment"

PRODUCT_UNITS = ("kg", "gm", "piece", "pack", "liter")


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def check_available(product_id: int, needed: int) -> Product:
    """
    Non-mutating stock check used while an order is still a draft.

    Nothing is reserved; the authoritative check happens again at submission.
    """
    product = get_product(product_id)
    if product.stock < needed:
        raise InsufficientStockError(product_id, available=product.stock, needed=needed)
    return product


def apply_stock_delta(
    product_id: int,
    delta: int,
    *,
    reason: str,
    actor_id: int | None = None,
    order_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    """Guarded stock write inside the caller's transaction (no commit)."""
    updated = (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.stock + delta >= 0)
        .update({Product.stock: Product.stock + delta}, synchronize_session="fetch")
    )
    if updated != 1:
        current = db.session.query(Product.stock).filter(Product.id == product_id).scalar()
        if current is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        raise InsufficientStockError(product_id, available=current, needed=-delta)

    stock_after = db.session.query(Product.stock).filter(Product.id == product_id).scalar()

    movement = StockMovement(
        product_id=product_id,
        quantity_delta=delta,
        stock_after=stock_after,
        reason=reason,
        order_id=order_id,
        actor_user_id=actor_id,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()

    current_app.logger.info(
        "stock %+d for product %s (%s, order=%s) -> %s",
        delta, product_id, reason, order_id, stock_after,
    )
    return movement


def adjust_stock(product_id: int, delta: int, *, actor: Actor, note: str | None = None) -> Product:
    """
    Direct administrative stock correction.

    Same non-negativity guard as order-driven adjustments.
    """
    require_permission(actor, "ADJUST_STOCK")
    if delta == 0:
        raise ValidationError("delta must be non-zero")

    with unit_of_work():
        apply_stock_delta(
            product_id,
            delta,
            reason=REASON_MANUAL_ADJUSTMENT,
            actor_id=actor.id,
            note=note,
        )

    return get_product(product_id)


def list_movements(product_id: int, limit: int = 100) -> list[StockMovement]:
    get_product(product_id)
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def create_product(
    *,
    product_code: str,
    name: str,
    price_cents: int,
    stock: int = 0,
    category: str = "general",
    unit: str = "piece",
    pack_size: int | None = None,
    description: str | None = None,
) -> Product:
    """Catalog bootstrap used by the CLI; opening stock is set once here."""
    if price_cents < 0:
        raise ValidationError("price_cents must be >= 0")
    if stock < 0:
        raise ValidationError("stock must be >= 0")
    if unit not in PRODUCT_UNITS:
        raise ValidationError(f"unit must be one of: {', '.join(PRODUCT_UNITS)}")

    product = Product(
        product_code=product_code,
        name=name,
        price_cents=price_cents,
        stock=stock,
        category=category,
        unit=unit,
        pack_size=pack_size,
        description=description,
    )
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"product_code {product_code!r} already exists")
    return product
