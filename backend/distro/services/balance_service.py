# Overview: Read-side balance queries; SQLAlchemy sources feeding distro.balance.

"""
Balance Service

Binds the pure derivation in distro.balance to the database. Nothing here
writes or caches: every call re-reads orders, dues and payments, so a result
can never drift from the records it summarizes. No locks are taken; a row
committed mid-read may or may not be included, and the next call sees it.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import selectinload

from ..balance import (
    DueRecord,
    LineRecord,
    OrderRecord,
    PaymentRecord,
    StoreBalance,
    compute_balance,
    compute_balances_by_store,
    compute_rollup,
)
from ..extensions import db
from ..errors import NotFoundError, UnauthorizedError
from ..models import Due, Order, Payment, Store, User
from ..models.orders import ORDER_STATUS_FULFILLED
from ..permissions import ROLE_OFFICER, Actor, has_permission
from .store_service import get_accessible_store, get_officer_store_ids, visible_store_ids


class SqlOrderSource:
    def fulfilled_orders(self, store_ids):
        orders = (
            db.session.query(Order)
            .options(selectinload(Order.lines))
            .filter(Order.store_id.in_(store_ids), Order.status == ORDER_STATUS_FULFILLED)
            .all()
        )
        return [
            OrderRecord(
                order_id=order.id,
                store_id=order.store_id,
                status=order.status,
                lines=tuple(
                    LineRecord(
                        unit_price_cents=line.unit_price_cents,
                        quantity=line.quantity,
                        bonus_quantity=line.bonus_quantity or 0,
                        discount_percentage=Decimal(str(line.discount_percentage or 0)),
                    )
                    for line in order.lines
                ),
                created_at=order.created_at,
                fulfilled_at=order.fulfilled_at,
            )
            for order in orders
        ]


class SqlDueSource:
    def dues(self, store_ids):
        rows = (
            db.session.query(Due.id, Due.store_id, Due.amount_cents, Due.date, Due.description)
            .filter(Due.store_id.in_(store_ids))
            .all()
        )
        return [
            DueRecord(
                due_id=row.id,
                store_id=row.store_id,
                amount_cents=row.amount_cents,
                date=row.date,
                description=row.description,
            )
            for row in rows
        ]


class SqlPaymentSource:
    def payments(self, store_ids):
        rows = (
            db.session.query(Payment.id, Payment.store_id, Payment.amount_cents, Payment.date, Payment.method)
            .filter(Payment.store_id.in_(store_ids))
            .all()
        )
        return [
            PaymentRecord(
                payment_id=row.id,
                store_id=row.store_id,
                amount_cents=row.amount_cents,
                date=row.date,
                method=row.method,
            )
            for row in rows
        ]


def _sources() -> dict:
    return {
        "orders": SqlOrderSource(),
        "dues": SqlDueSource(),
        "payments": SqlPaymentSource(),
    }


def get_store_balance(store_id: int, actor: Actor) -> StoreBalance:
    get_accessible_store(store_id, actor)
    return compute_balance((store_id,), **_sources())


def get_officer_balance(officer_id: int, actor: Actor) -> dict:
    """Rollup across every store assigned to an officer, with a per-store breakdown."""
    if not has_permission(actor, "VIEW_ALL_BALANCES") and actor.id != officer_id:
        raise UnauthorizedError(
            f"User {actor.id} may not view balances of officer {officer_id}",
            details={"actor_id": actor.id, "officer_id": officer_id},
        )

    officer = db.session.get(User, officer_id)
    if officer is None or officer.role != ROLE_OFFICER:
        raise NotFoundError(f"Officer {officer_id} not found", details={"officer_id": officer_id})

    store_ids = get_officer_store_ids(officer_id)
    total, per_store = compute_rollup(store_ids, **_sources())

    return {
        "officer": officer.to_dict(),
        "balance": total.to_dict(include_history=True),
        "stores": [
            {"store_id": store_id, **per_store[store_id].to_dict(include_history=False)}
            for store_id in store_ids
        ],
    }


def list_store_balances(actor: Actor) -> list[tuple[Store, StoreBalance]]:
    """Every store the actor can see, each with its current totals."""
    store_ids = visible_store_ids(actor)
    balances = compute_balances_by_store(store_ids, **_sources())
    stores = (
        db.session.query(Store)
        .filter(Store.id.in_(store_ids))
        .order_by(Store.id)
        .all()
    ) if store_ids else []
    return [(store, balances[store.id]) for store in stores]
