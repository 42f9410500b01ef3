"""
Balance derivation tests (no database).

Verifies:
- Line totals apply the discount, round half-up, and ignore bonus units
- Only fulfilled orders are owed
- Manual dues and payments combine into owed / paid / net
- Per-store and multi-store results agree, including within one rollup read
"""

from datetime import datetime
from decimal import Decimal

import pytest

from distro.balance import (
    DUE_TYPE_BY_ORDER,
    DUE_TYPE_MANUAL,
    DueRecord,
    InMemorySource,
    LineRecord,
    OrderRecord,
    PaymentRecord,
    compute_balance,
    compute_balances_by_store,
    compute_rollup,
    line_total_cents,
)


def _sources(orders=(), dues=(), payments=()):
    source = InMemorySource(orders=orders, dues=dues, payments=payments)
    return {"orders": source, "dues": source, "payments": source}


def _order(order_id, store_id, status="fulfilled", lines=None, fulfilled_at=None):
    return OrderRecord(
        order_id=order_id,
        store_id=store_id,
        status=status,
        lines=tuple(lines or (LineRecord(unit_price_cents=10000, quantity=10, discount_percentage=Decimal("10")),)),
        created_at=datetime(2026, 1, 1),
        fulfilled_at=fulfilled_at or datetime(2026, 1, 5),
    )


# =============================================================================
# LINE TOTALS
# =============================================================================

class TestLineTotal:

    def test_discount_applied(self):
        assert line_total_cents(10000, 10, Decimal("10")) == 90000

    def test_no_discount(self):
        assert line_total_cents(1999, 3) == 5997

    def test_full_discount_is_free(self):
        assert line_total_cents(5000, 4, Decimal("100")) == 0

    def test_rounds_half_up(self):
        # 333 * 1 * 0.5 = 166.5 -> 167
        assert line_total_cents(333, 1, Decimal("50")) == 167
        # 101 * 1 * 0.875 = 88.375 -> 88
        assert line_total_cents(101, 1, Decimal("12.5")) == 88

    def test_bonus_units_are_free(self):
        with_bonus = LineRecord(unit_price_cents=2500, quantity=4, bonus_quantity=3)
        without_bonus = LineRecord(unit_price_cents=2500, quantity=4)
        assert with_bonus.total_cents == without_bonus.total_cents == 10000


# =============================================================================
# STORE BALANCE
# =============================================================================

class TestComputeBalance:

    def test_fulfilled_order_due_and_payment(self):
        """100.00 x 10 at 10% + 200.00 due, 500.00 paid -> owed 1100.00, net 600.00."""
        sources = _sources(
            orders=[_order(1, store_id=1)],
            dues=[DueRecord(due_id=1, store_id=1, amount_cents=20000, date=datetime(2026, 1, 2))],
            payments=[PaymentRecord(payment_id=1, store_id=1, amount_cents=50000, date=datetime(2026, 1, 6))],
        )

        balance = compute_balance([1], **sources)

        assert balance.orders_owed_cents == 90000
        assert balance.manual_owed_cents == 20000
        assert balance.owed_cents == 110000
        assert balance.paid_cents == 50000
        assert balance.net_cents == 60000

    @pytest.mark.parametrize("status", ["draft", "pending", "approved", "rejected"])
    def test_only_fulfilled_orders_are_owed(self, status):
        sources = _sources(orders=[_order(1, store_id=1, status=status)])
        balance = compute_balance([1], **sources)
        assert balance.owed_cents == 0
        assert balance.due_history == ()

    def test_empty_store_set_is_zero(self):
        sources = _sources(
            orders=[_order(1, store_id=1)],
            payments=[PaymentRecord(payment_id=1, store_id=1, amount_cents=100)],
        )
        balance = compute_balance([], **sources)
        assert balance.owed_cents == 0
        assert balance.paid_cents == 0
        assert balance.net_cents == 0

    def test_other_stores_excluded(self):
        sources = _sources(
            orders=[_order(1, store_id=1), _order(2, store_id=2)],
            payments=[PaymentRecord(payment_id=1, store_id=2, amount_cents=700)],
        )
        balance = compute_balance([1], **sources)
        assert balance.orders_owed_cents == 90000
        assert balance.paid_cents == 0

    def test_net_may_be_negative(self):
        sources = _sources(payments=[PaymentRecord(payment_id=1, store_id=1, amount_cents=500)])
        assert compute_balance([1], **sources).net_cents == -500

    def test_deterministic(self):
        sources = _sources(
            orders=[_order(1, store_id=1), _order(2, store_id=1, fulfilled_at=datetime(2026, 1, 3))],
            dues=[DueRecord(due_id=1, store_id=1, amount_cents=20000, date=datetime(2026, 1, 2))],
        )
        assert compute_balance([1], **sources) == compute_balance([1, 1], **sources)

    def test_due_history_merges_manual_and_order_dues_by_date(self):
        sources = _sources(
            orders=[_order(7, store_id=1, fulfilled_at=datetime(2026, 1, 5))],
            dues=[DueRecord(due_id=3, store_id=1, amount_cents=20000, date=datetime(2026, 1, 2), description="opening")],
        )
        history = compute_balance([1], **sources).due_history

        assert [entry.type for entry in history] == [DUE_TYPE_MANUAL, DUE_TYPE_BY_ORDER]
        assert history[0].due_id == 3
        assert history[1].order_id == 7
        assert history[1].date == datetime(2026, 1, 5)
        assert history[1].amount_cents == 90000

    def test_to_dict_without_history(self):
        sources = _sources(orders=[_order(1, store_id=1)])
        data = compute_balance([1], **sources).to_dict(include_history=False)
        assert data["owed_cents"] == 90000
        assert "due_history" not in data


class TestBalancesByStore:

    def test_per_store_sums_match_combined(self):
        sources = _sources(
            orders=[_order(1, store_id=1), _order(2, store_id=2)],
            dues=[DueRecord(due_id=1, store_id=2, amount_cents=300)],
            payments=[PaymentRecord(payment_id=1, store_id=1, amount_cents=1000)],
        )

        per_store = compute_balances_by_store([1, 2, 3], **sources)
        combined = compute_balance([1, 2, 3], **sources)

        assert set(per_store) == {1, 2, 3}
        assert per_store[3].owed_cents == 0
        assert sum(b.net_cents for b in per_store.values()) == combined.net_cents
        assert per_store[2].manual_owed_cents == 300
        assert per_store[1].paid_cents == 1000

    def test_rollup_reads_each_source_once(self):
        class GrowingPayments(InMemorySource):
            """A payment lands after every read."""

            def payments(self, store_ids):
                rows = super().payments(store_ids)
                self._payments.append(PaymentRecord(payment_id=len(self._payments) + 1, store_id=1, amount_cents=50))
                return rows

        source = GrowingPayments(
            orders=[_order(1, store_id=1), _order(2, store_id=2)],
            payments=[PaymentRecord(payment_id=1, store_id=1, amount_cents=1000)],
        )

        total, per_store = compute_rollup([1, 2], orders=source, dues=source, payments=source)

        assert total.paid_cents == 1000
        assert sum(b.paid_cents for b in per_store.values()) == total.paid_cents
        assert sum(b.owed_cents for b in per_store.values()) == total.owed_cents
        assert len(source._payments) == 2

    def test_rollup_of_no_stores(self):
        total, per_store = compute_rollup([], **_sources())
        assert per_store == {}
        assert total.net_cents == 0
