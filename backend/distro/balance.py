# Overview: Pure balance derivation over order, due and payment records.

"""
Store Balance Derivation

A store's financial position is never stored. It is recomputed on every read
from three independent record sets:

    orders_owed = SUM(line totals of FULFILLED orders)   (discount applied, bonus excluded)
    manual_owed = SUM(manual dues)
    paid        = SUM(payments)

    owed = orders_owed + manual_owed
    net  = owed - paid

This module has no database access. Callers inject read-only sources that
satisfy the OrderSource / DueSource / PaymentSource protocols; the SQLAlchemy
implementations live in services.balance_service, and tests use plain lists.

Line total:
    unit_price_cents * quantity * (100 - discount_percentage) / 100
    rounded half-up to the cent. bonus_quantity never enters money math.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol, runtime_checkable

from .time_utils import to_utc_z


FULFILLED = "fulfilled"

DUE_TYPE_MANUAL = "manual"
DUE_TYPE_BY_ORDER = "by_order"

_HUNDRED = Decimal("100")


def line_total_cents(unit_price_cents: int, quantity: int, discount_percentage=0) -> int:
    discount = Decimal(str(discount_percentage or 0))
    gross = Decimal(unit_price_cents) * Decimal(quantity)
    net = gross * (_HUNDRED - discount) / _HUNDRED
    return int(net.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True)
class LineRecord:
    unit_price_cents: int
    quantity: int
    bonus_quantity: int = 0
    discount_percentage: Decimal = Decimal("0")

    @property
    def total_cents(self) -> int:
        return line_total_cents(self.unit_price_cents, self.quantity, self.discount_percentage)


@dataclass(frozen=True)
class OrderRecord:
    order_id: int
    store_id: int
    status: str
    lines: tuple[LineRecord, ...] = ()
    created_at: datetime | None = None
    fulfilled_at: datetime | None = None

    @property
    def total_cents(self) -> int:
        return sum(line.total_cents for line in self.lines)


@dataclass(frozen=True)
class DueRecord:
    due_id: int
    store_id: int
    amount_cents: int
    date: datetime | None = None
    description: str | None = None


@dataclass(frozen=True)
class PaymentRecord:
    payment_id: int
    store_id: int
    amount_cents: int
    date: datetime | None = None
    method: str | None = None


@dataclass(frozen=True)
class DueHistoryEntry:
    """One row of the unified due ledger (manual or synthesized from an order)."""
    type: str
    store_id: int
    amount_cents: int
    date: datetime | None
    due_id: int | None = None
    order_id: int | None = None
    description: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "store_id": self.store_id,
            "amount_cents": self.amount_cents,
            "date": to_utc_z(self.date),
            "due_id": self.due_id,
            "order_id": self.order_id,
            "description": self.description,
        }


@dataclass(frozen=True)
class StoreBalance:
    store_ids: tuple[int, ...]
    orders_owed_cents: int
    manual_owed_cents: int
    paid_cents: int
    due_history: tuple[DueHistoryEntry, ...] = field(default=())
    payment_history: tuple[PaymentRecord, ...] = field(default=())

    @property
    def owed_cents(self) -> int:
        return self.orders_owed_cents + self.manual_owed_cents

    @property
    def net_cents(self) -> int:
        return self.owed_cents - self.paid_cents

    def to_dict(self, include_history: bool = True) -> dict:
        data = {
            "store_ids": list(self.store_ids),
            "orders_owed_cents": self.orders_owed_cents,
            "manual_owed_cents": self.manual_owed_cents,
            "owed_cents": self.owed_cents,
            "paid_cents": self.paid_cents,
            "net_cents": self.net_cents,
        }
        if include_history:
            data["due_history"] = [entry.to_dict() for entry in self.due_history]
            data["payment_history"] = [
                {
                    "payment_id": p.payment_id,
                    "store_id": p.store_id,
                    "amount_cents": p.amount_cents,
                    "method": p.method,
                    "date": to_utc_z(p.date),
                }
                for p in self.payment_history
            ]
        return data


# =============================================================================
# SOURCES
# =============================================================================

@runtime_checkable
class OrderSource(Protocol):
    """Read-only access to orders; only FULFILLED ones are needed."""

    def fulfilled_orders(self, store_ids: tuple[int, ...]) -> Iterable[OrderRecord]: ...


@runtime_checkable
class DueSource(Protocol):
    def dues(self, store_ids: tuple[int, ...]) -> Iterable[DueRecord]: ...


@runtime_checkable
class PaymentSource(Protocol):
    def payments(self, store_ids: tuple[int, ...]) -> Iterable[PaymentRecord]: ...


# =============================================================================
# DERIVATION
# =============================================================================

def _sort_key(value):
    # None dates sort first; ties broken by type then id for determinism
    date = value.date or datetime.min
    return (date, value.type, value.order_id or 0, value.due_id or 0)


def _build(
    store_ids: tuple[int, ...],
    orders: list[OrderRecord],
    dues: list[DueRecord],
    payments: list[PaymentRecord],
) -> StoreBalance:
    history: list[DueHistoryEntry] = []

    orders_owed = 0
    for order in orders:
        total = order.total_cents
        orders_owed += total
        history.append(DueHistoryEntry(
            type=DUE_TYPE_BY_ORDER,
            store_id=order.store_id,
            amount_cents=total,
            date=order.fulfilled_at or order.created_at,
            order_id=order.order_id,
        ))

    manual_owed = 0
    for due in dues:
        manual_owed += due.amount_cents
        history.append(DueHistoryEntry(
            type=DUE_TYPE_MANUAL,
            store_id=due.store_id,
            amount_cents=due.amount_cents,
            date=due.date,
            due_id=due.due_id,
            description=due.description,
        ))

    paid = sum(p.amount_cents for p in payments)
    payment_history = sorted(payments, key=lambda p: (p.date or datetime.min, p.payment_id))

    return StoreBalance(
        store_ids=store_ids,
        orders_owed_cents=orders_owed,
        manual_owed_cents=manual_owed,
        paid_cents=paid,
        due_history=tuple(sorted(history, key=_sort_key)),
        payment_history=tuple(payment_history),
    )


def _collect(store_ids, orders: OrderSource, dues: DueSource, payments: PaymentSource):
    wanted = set(store_ids)
    order_rows = [
        o for o in orders.fulfilled_orders(store_ids)
        if o.status == FULFILLED and o.store_id in wanted
    ]
    due_rows = [d for d in dues.dues(store_ids) if d.store_id in wanted]
    payment_rows = [p for p in payments.payments(store_ids) if p.store_id in wanted]
    return order_rows, due_rows, payment_rows


def _split(store_ids, order_rows, due_rows, payment_rows) -> dict[int, StoreBalance]:
    result = {}
    for store_id in store_ids:
        result[store_id] = _build(
            (store_id,),
            [o for o in order_rows if o.store_id == store_id],
            [d for d in due_rows if d.store_id == store_id],
            [p for p in payment_rows if p.store_id == store_id],
        )
    return result


def compute_balance(
    store_ids: Iterable[int],
    *,
    orders: OrderSource,
    dues: DueSource,
    payments: PaymentSource,
) -> StoreBalance:
    """
    Derive the combined balance of a set of stores.

    Pure with respect to its inputs: the same source contents always give the
    same result. An empty store set yields an all-zero balance.
    """
    store_ids = tuple(sorted(set(store_ids)))
    if not store_ids:
        return StoreBalance(store_ids=(), orders_owed_cents=0, manual_owed_cents=0, paid_cents=0)

    order_rows, due_rows, payment_rows = _collect(store_ids, orders, dues, payments)
    return _build(store_ids, order_rows, due_rows, payment_rows)


def compute_balances_by_store(
    store_ids: Iterable[int],
    *,
    orders: OrderSource,
    dues: DueSource,
    payments: PaymentSource,
) -> dict[int, StoreBalance]:
    """Per-store balances for a store set, reading each source once."""
    store_ids = tuple(sorted(set(store_ids)))
    if not store_ids:
        return {}

    order_rows, due_rows, payment_rows = _collect(store_ids, orders, dues, payments)
    return _split(store_ids, order_rows, due_rows, payment_rows)


def compute_rollup(
    store_ids: Iterable[int],
    *,
    orders: OrderSource,
    dues: DueSource,
    payments: PaymentSource,
) -> tuple[StoreBalance, dict[int, StoreBalance]]:
    """
    Combined balance plus the per-store breakdown, from one read of each source.

    The combined totals always equal the sum of the per-store totals.
    """
    store_ids = tuple(sorted(set(store_ids)))
    if not store_ids:
        return StoreBalance(store_ids=(), orders_owed_cents=0, manual_owed_cents=0, paid_cents=0), {}

    order_rows, due_rows, payment_rows = _collect(store_ids, orders, dues, payments)
    total = _build(store_ids, order_rows, due_rows, payment_rows)
    return total, _split(store_ids, order_rows, due_rows, payment_rows)


class InMemorySource:
    """
    List-backed implementation of all three sources.

    Used by tests and anywhere records are already in memory.
    """

    def __init__(
        self,
        orders: Iterable[OrderRecord] = (),
        dues: Iterable[DueRecord] = (),
        payments: Iterable[PaymentRecord] = (),
    ):
        self._orders = list(orders)
        self._dues = list(dues)
        self._payments = list(payments)

    def fulfilled_orders(self, store_ids):
        return [o for o in self._orders if o.store_id in store_ids and o.status == FULFILLED]

    def dues(self, store_ids):
        return [d for d in self._dues if d.store_id in store_ids]

    def payments(self, store_ids):
        return [p for p in self._payments if p.store_id in store_ids]
