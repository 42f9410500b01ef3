# Overview: Order state machine; reserves and releases stock through the inventory ledger.

r"""
Order Lifecycle Service

STATE MACHINE:
    draft -> pending -> approved -> fulfilled
                 \          \
                  +----------+--> rejected

    draft:     Editable cart. Stock is CHECKED per line but NOT reserved.
    pending:   Submitted. Stock for every line (quantity + bonus) is reserved.
    approved:  Admin approved. Still reserved, not yet owed.
    rejected:  Terminal. Reservation released.
    fulfilled: Terminal. Stock consumed; the order now counts toward the
               store's owed balance.

RULES:
1. Reservation happens exactly once, on draft -> pending.
2. Release happens exactly once, on rejection or on deleting a
   reserved order. Order.stock_reserved records which side of that line
   the order is on.
3. Every transition is a status-guarded conditional UPDATE
   (WHERE id = :id AND status IN :allowed). A racing second caller
   matches zero rows and gets InvalidTransitionError.
4. The status change and every per-line stock write share one
   unit_of_work(); any failure rolls all of them back. Lines are
   adjusted in ascending product id order.
5. One open draft per (store, creator): looked up under lock, and
   backed by the uq_orders_open_draft partial unique index.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import InvalidTransitionError, NotFoundError, UnauthorizedError, ValidationError
from ..models import Order, OrderLine, OrderStatusHistory
from ..models.orders import (
    ORDER_PAYMENT_METHODS,
    ORDER_STATUSES,
    ORDER_STATUS_APPROVED,
    ORDER_STATUS_DRAFT,
    ORDER_STATUS_FULFILLED,
    ORDER_STATUS_PENDING,
    ORDER_STATUS_REJECTED,
)
from ..permissions import Actor, has_permission, require_permission
from ..time_utils import utcnow
from ..validation import OrderLineInput, require_choice
from .concurrency import lock_for_update, unit_of_work
from .inventory_service import (
    REASON_ORDER_DELETED,
    REASON_ORDER_REJECTED,
    REASON_ORDER_SUBMITTED,
    apply_stock_delta,
    check_available,
)
from .store_service import get_accessible_store


VALID_TRANSITIONS = {
    (ORDER_STATUS_DRAFT, ORDER_STATUS_PENDING),
    (ORDER_STATUS_PENDING, ORDER_STATUS_APPROVED),
    (ORDER_STATUS_PENDING, ORDER_STATUS_REJECTED),
    (ORDER_STATUS_APPROVED, ORDER_STATUS_REJECTED),
    (ORDER_STATUS_APPROVED, ORDER_STATUS_FULFILLED),
}

def can_transition(from_status: str, to_status: str) -> bool:
    return (from_status, to_status) in VALID_TRANSITIONS


def _sources_for(to_status: str) -> tuple[str, ...]:
    return tuple(sorted(src for src, dst in VALID_TRANSITIONS if dst == to_status))


# =============================================================================
# LOOKUPS
# =============================================================================

def _load_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter(Order.id == order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def get_order(order_id: int) -> Order:
    return _load_order(order_id)


def _can_view(order: Order, actor: Actor) -> bool:
    if has_permission(actor, "VIEW_ALL_ORDERS"):
        return True
    return order.created_by_user_id == actor.id or order.officer_id == actor.id


def get_visible_order(order_id: int, actor: Actor) -> Order:
    order = _load_order(order_id)
    if not _can_view(order, actor):
        raise UnauthorizedError(
            f"Order {order_id} is not visible to user {actor.id}",
            details={"order_id": order_id, "actor_id": actor.id},
        )
    return order


def list_orders(
    actor: Actor,
    *,
    store_id: int | None = None,
    status: str | None = None,
    created_by_user_id: int | None = None,
    officer_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Order]:
    if status is not None:
        require_choice(status, "status", ORDER_STATUSES)

    query = db.session.query(Order)
    if not has_permission(actor, "VIEW_ALL_ORDERS"):
        query = query.filter(or_(
            Order.created_by_user_id == actor.id,
            Order.officer_id == actor.id,
        ))
    if store_id is not None:
        query = query.filter(Order.store_id == store_id)
    if status is not None:
        query = query.filter(Order.status == status)
    if created_by_user_id is not None:
        query = query.filter(Order.created_by_user_id == created_by_user_id)
    if officer_id is not None:
        query = query.filter(Order.officer_id == officer_id)

    return (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def _find_open_draft(store_id: int, creator_id: int, *, lock: bool = False) -> Order | None:
    query = db.session.query(Order).filter(
        Order.store_id == store_id,
        Order.created_by_user_id == creator_id,
        Order.status == ORDER_STATUS_DRAFT,
    )
    if lock:
        query = lock_for_update(query)
    return query.first()


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _require_creator(order: Order, actor: Actor) -> None:
    if order.created_by_user_id != actor.id:
        raise UnauthorizedError(
            f"Only the creator of order {order.id} may do this",
            details={"order_id": order.id, "actor_id": actor.id},
        )


def _require_draft(order: Order, target_status: str) -> None:
    if order.status != ORDER_STATUS_DRAFT:
        raise InvalidTransitionError(order.id, order.status, target_status)


def _record_history(order_id: int, status: str, actor_id: int | None, notes: str | None = None) -> None:
    db.session.add(OrderStatusHistory(
        order_id=order_id,
        status=status,
        changed_by_user_id=actor_id,
        notes=notes,
        changed_at=utcnow(),
    ))


def _claim_transition(order: Order, to_status: str, values: dict) -> None:
    """
    Status-guarded UPDATE. Succeeds for exactly one caller per transition.
    """
    from_statuses = _sources_for(to_status)
    claimed = (
        db.session.query(Order)
        .filter(Order.id == order.id, Order.status.in_(from_statuses))
        .update(
            {Order.status: to_status, Order.updated_at: utcnow(), **values},
            synchronize_session=False,
        )
    )
    if claimed != 1:
        current = db.session.query(Order.status).filter(Order.id == order.id).scalar()
        raise InvalidTransitionError(order.id, current, to_status)
    db.session.expire(order)


def _move_stock(order_id: int, needed: dict[int, int], *, sign: int, reason: str, actor_id: int) -> None:
    # Ascending product id keeps lock acquisition order identical across orders
    for product_id, quantity in sorted(needed.items()):
        apply_stock_delta(
            product_id,
            sign * quantity,
            reason=reason,
            actor_id=actor_id,
            order_id=order_id,
        )


def _log_transition(order_id: int, from_status: str, to_status: str, actor: Actor) -> None:
    current_app.logger.info(
        "order %s: %s -> %s by user %s (%s)",
        order_id, from_status, to_status, actor.id, actor.role,
    )


# =============================================================================
# DRAFTS
# =============================================================================

def _upsert_line(order: Order, product, line: OrderLineInput) -> OrderLine:
    existing = next((l for l in order.lines if l.product_id == product.id), None)
    if existing is None:
        existing = OrderLine(product_id=product.id)
        order.lines.append(existing)

    existing.name = product.name
    existing.unit_price_cents = product.price_cents
    existing.pack_size = product.pack_size
    existing.unit = product.unit
    existing.quantity = line.quantity
    existing.bonus_quantity = line.bonus_quantity
    existing.discount_percentage = line.discount_percentage
    order.updated_at = utcnow()
    return existing


def create_draft_order(
    store_id: int,
    line: OrderLineInput,
    actor: Actor,
    *,
    notes: str | None = None,
    payment_method: str | None = None,
) -> Order:
    """
    Add or update one line on the caller's open draft for a store.

    Idempotent per (store, creator, product): the existing draft is reused
    and an existing line for the same product is overwritten, never
    duplicated. Stock is checked (quantity + bonus) but not reserved.
    """
    require_permission(actor, "CREATE_ORDER")
    if payment_method is not None:
        require_choice(payment_method, "payment_method", ORDER_PAYMENT_METHODS)
    store = get_accessible_store(store_id, actor)

    with unit_of_work():
        product = check_available(line.product_id, line.needed_stock)

        order = _find_open_draft(store_id, actor.id, lock=True)
        if order is None:
            order = Order(
                store_id=store_id,
                created_by_user_id=actor.id,
                officer_id=store.officer_id,
                status=ORDER_STATUS_DRAFT,
                payment_method=payment_method or "cash",
                notes=notes,
            )
            db.session.add(order)
            try:
                with db.session.begin_nested():
                    db.session.flush()
            except IntegrityError:
                # Another request opened the draft first; use theirs
                order = _find_open_draft(store_id, actor.id, lock=True)
                if order is None:
                    raise
            else:
                _record_history(order.id, ORDER_STATUS_DRAFT, actor.id)
                current_app.logger.info("order %s: draft opened for store %s by user %s", order.id, store_id, actor.id)

        if payment_method is not None:
            order.payment_method = payment_method
        if notes is not None:
            order.notes = notes

        _upsert_line(order, product, line)
        order_id = order.id

    return get_order(order_id)


def remove_draft_line(order_id: int, product_id: int, actor: Actor) -> Order:
    with unit_of_work():
        order = _load_order(order_id, lock=True)
        _require_creator(order, actor)
        _require_draft(order, ORDER_STATUS_DRAFT)

        line = next((l for l in order.lines if l.product_id == product_id), None)
        if line is None:
            raise NotFoundError(
                f"Order {order_id} has no line for product {product_id}",
                details={"order_id": order_id, "product_id": product_id},
            )
        order.lines.remove(line)
        order.updated_at = utcnow()

    return get_order(order_id)


def update_draft_details(
    order_id: int,
    actor: Actor,
    *,
    notes: str | None = None,
    payment_method: str | None = None,
) -> Order:
    if payment_method is not None:
        require_choice(payment_method, "payment_method", ORDER_PAYMENT_METHODS)

    with unit_of_work():
        order = _load_order(order_id, lock=True)
        _require_creator(order, actor)
        _require_draft(order, ORDER_STATUS_DRAFT)

        if notes is not None:
            order.notes = notes
        if payment_method is not None:
            order.payment_method = payment_method
        order.updated_at = utcnow()

    return get_order(order_id)


# =============================================================================
# TRANSITIONS
# =============================================================================

def submit_order(order_id: int, actor: Actor) -> Order:
    """
    draft -> pending. Reserves quantity + bonus for every line.

    Raises:
        InsufficientStockError: a line cannot be covered; nothing is reserved
        InvalidTransitionError: the order is no longer a draft
    """
    with unit_of_work():
        order = _load_order(order_id, lock=True)
        _require_creator(order, actor)
        _require_draft(order, ORDER_STATUS_PENDING)
        if not order.lines:
            raise ValidationError("Cannot submit an order with no lines", details={"order_id": order_id})

        needed = order.needed_stock
        _claim_transition(order, ORDER_STATUS_PENDING, {
            Order.submitted_at: utcnow(),
            Order.stock_reserved: True,
        })
        _move_stock(order_id, needed, sign=-1, reason=REASON_ORDER_SUBMITTED, actor_id=actor.id)
        _record_history(order_id, ORDER_STATUS_PENDING, actor.id)

    _log_transition(order_id, ORDER_STATUS_DRAFT, ORDER_STATUS_PENDING, actor)
    return get_order(order_id)


def approve_order(order_id: int, actor: Actor) -> Order:
    require_permission(actor, "APPROVE_ORDER")

    with unit_of_work():
        order = _load_order(order_id, lock=True)
        _claim_transition(order, ORDER_STATUS_APPROVED, {
            Order.approved_at: utcnow(),
            Order.approved_by_user_id: actor.id,
        })
        _record_history(order_id, ORDER_STATUS_APPROVED, actor.id)

    _log_transition(order_id, ORDER_STATUS_PENDING, ORDER_STATUS_APPROVED, actor)
    return get_order(order_id)


def reject_order(order_id: int, actor: Actor, reason: str | None = None) -> Order:
    """pending|approved -> rejected. Releases the reservation."""
    require_permission(actor, "REJECT_ORDER")

    with unit_of_work():
        order = _load_order(order_id, lock=True)
        previous = order.status
        needed = order.needed_stock
        _claim_transition(order, ORDER_STATUS_REJECTED, {
            Order.rejected_at: utcnow(),
            Order.rejected_by_user_id: actor.id,
            Order.rejection_reason: reason,
            Order.stock_reserved: False,
        })
        _move_stock(order_id, needed, sign=1, reason=REASON_ORDER_REJECTED, actor_id=actor.id)
        _record_history(order_id, ORDER_STATUS_REJECTED, actor.id, notes=reason)

    _log_transition(order_id, previous, ORDER_STATUS_REJECTED, actor)
    return get_order(order_id)


def fulfill_order(order_id: int, actor: Actor) -> Order:
    """approved -> fulfilled. From here on the order is owed by the store."""
    require_permission(actor, "FULFILL_ORDER")

    with unit_of_work():
        order = _load_order(order_id, lock=True)
        _claim_transition(order, ORDER_STATUS_FULFILLED, {
            Order.fulfilled_at: utcnow(),
            Order.fulfilled_by_user_id: actor.id,
        })
        _record_history(order_id, ORDER_STATUS_FULFILLED, actor.id)

    _log_transition(order_id, ORDER_STATUS_APPROVED, ORDER_STATUS_FULFILLED, actor)
    return get_order(order_id)


def delete_order(order_id: int, actor: Actor) -> dict:
    """
    Delete an order.

    Drafts: creator (or admin); no stock effect, nothing was reserved.
    Anything else: admin only; a still-held reservation is released first.

    Returns a summary of what was released.
    """
    with unit_of_work():
        order = _load_order(order_id, lock=True)
        status = order.status

        if status == ORDER_STATUS_DRAFT:
            if order.created_by_user_id != actor.id and not actor.is_admin:
                raise UnauthorizedError(
                    f"Only the creator of order {order_id} may delete it",
                    details={"order_id": order_id, "actor_id": actor.id},
                )
        else:
            require_permission(actor, "DELETE_ORDER")

        needed = order.needed_stock
        released = (
            db.session.query(Order)
            .filter(Order.id == order_id, Order.stock_reserved.is_(True))
            .update({Order.stock_reserved: False}, synchronize_session=False)
        )
        if released:
            _move_stock(order_id, needed, sign=1, reason=REASON_ORDER_DELETED, actor_id=actor.id)
        else:
            needed = {}

        db.session.delete(order)

    current_app.logger.info(
        "order %s (%s) deleted by user %s; released %s",
        order_id, status, actor.id, needed or "nothing",
    )
    return {
        "order_id": order_id,
        "status": status,
        "released": {str(pid): qty for pid, qty in sorted(needed.items())},
    }


def order_counts_by_status(actor: Actor, store_id: int | None = None) -> dict[str, int]:
    query = db.session.query(Order.status, db.func.count(Order.id))
    if not has_permission(actor, "VIEW_ALL_ORDERS"):
        query = query.filter(or_(
            Order.created_by_user_id == actor.id,
            Order.officer_id == actor.id,
        ))
    if store_id is not None:
        query = query.filter(Order.store_id == store_id)
    counts = {status: 0 for status in ORDER_STATUSES}
    for status, count in query.group_by(Order.status).all():
        counts[status] = count
    return counts
