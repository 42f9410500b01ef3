# Overview: Service-layer operations for payments and manual dues (append-only).

"""
Financial Event Store

Payments and manual dues are independent, append-only records. Recording
one never touches an order, a product, or any stored balance; balances are
derived on read by services.balance_service.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..errors import ValidationError
from ..models import Due, Payment
from ..permissions import Actor, require_permission
from ..time_utils import utcnow
from ..validation import MAX_AMOUNT_CENTS, require_choice
from .store_service import get_accessible_store


PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CREDIT = "credit"
PAYMENT_METHOD_BANK = "bank"

VALID_PAYMENT_METHODS = (
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CREDIT,
    PAYMENT_METHOD_BANK,
)


def _validate_amount(amount_cents: int) -> None:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("amount_cents must be an integer")
    if amount_cents < 0:
        raise ValidationError("amount_cents must be >= 0")
    if amount_cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"amount_cents cannot exceed {MAX_AMOUNT_CENTS}")


def record_payment(
    store_id: int,
    amount_cents: int,
    actor: Actor,
    *,
    method: str = PAYMENT_METHOD_CASH,
    notes: str | None = None,
    date: datetime | None = None,
) -> Payment:
    """Append a payment received from a store."""
    require_permission(actor, "RECORD_PAYMENT")
    _validate_amount(amount_cents)
    require_choice(method, "method", VALID_PAYMENT_METHODS)
    get_accessible_store(store_id, actor)

    payment = Payment(
        store_id=store_id,
        amount_cents=amount_cents,
        method=method,
        notes=notes,
        recorded_by_user_id=actor.id,
        date=date or utcnow(),
    )
    db.session.add(payment)
    db.session.commit()

    current_app.logger.info(
        "payment %s: %s cents (%s) for store %s by user %s",
        payment.id, amount_cents, method, store_id, actor.id,
    )
    return payment


def record_due(
    store_id: int,
    amount_cents: int,
    actor: Actor,
    *,
    description: str | None = None,
    due_date: datetime | None = None,
    date: datetime | None = None,
) -> Due:
    """Append a manually recorded obligation for a store."""
    require_permission(actor, "RECORD_DUE")
    _validate_amount(amount_cents)
    get_accessible_store(store_id, actor)

    due = Due(
        store_id=store_id,
        amount_cents=amount_cents,
        description=description,
        due_date=due_date,
        recorded_by_user_id=actor.id,
        date=date or utcnow(),
    )
    db.session.add(due)
    db.session.commit()

    current_app.logger.info(
        "due %s: %s cents for store %s by user %s",
        due.id, amount_cents, store_id, actor.id,
    )
    return due


def list_payments(store_id: int, actor: Actor) -> list[Payment]:
    get_accessible_store(store_id, actor)
    return (
        db.session.query(Payment)
        .filter_by(store_id=store_id)
        .order_by(Payment.date.desc(), Payment.id.desc())
        .all()
    )


def list_dues(store_id: int, actor: Actor) -> list[Due]:
    get_accessible_store(store_id, actor)
    return (
        db.session.query(Due)
        .filter_by(store_id=store_id)
        .order_by(Due.date.desc(), Due.id.desc())
        .all()
    )
