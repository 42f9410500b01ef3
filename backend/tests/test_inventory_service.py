"""
Inventory ledger tests.

Verifies:
- Guarded stock writes never drive stock negative
- Every successful write leaves exactly one StockMovement
- Manual corrections are limited to admin / stock-manager
"""

import pytest

from distro.errors import InsufficientStockError, NotFoundError, UnauthorizedError, ValidationError
from distro.models import Product, StockMovement
from distro.services import inventory_service
from distro.services.concurrency import unit_of_work

from conftest import actor


class TestApplyStockDelta:

    def test_decrement_within_stock(self, db_session, product):
        with unit_of_work():
            movement = inventory_service.apply_stock_delta(product.id, -4, reason="order.submitted", order_id=99)

        db_session.refresh(product)
        assert product.stock == 6
        assert movement.stock_after == 6
        assert movement.quantity_delta == -4
        assert movement.order_id == 99

    def test_refuses_to_go_negative(self, db_session, product):
        with pytest.raises(InsufficientStockError) as exc:
            with unit_of_work():
                inventory_service.apply_stock_delta(product.id, -11, reason="order.submitted")

        assert exc.value.details == {"product_id": product.id, "available": 10, "needed": 11}
        db_session.refresh(product)
        assert product.stock == 10
        assert db_session.query(StockMovement).count() == 0

    def test_exactly_to_zero(self, db_session, product):
        with unit_of_work():
            inventory_service.apply_stock_delta(product.id, -10, reason="order.submitted")
        db_session.refresh(product)
        assert product.stock == 0

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            with unit_of_work():
                inventory_service.apply_stock_delta(424242, -1, reason="order.submitted")

    def test_rollback_undoes_earlier_writes(self, db_session, make_product):
        first = make_product(stock=5)
        second = make_product(stock=1)

        with pytest.raises(InsufficientStockError):
            with unit_of_work():
                inventory_service.apply_stock_delta(first.id, -5, reason="order.submitted")
                inventory_service.apply_stock_delta(second.id, -2, reason="order.submitted")

        assert db_session.get(Product, first.id).stock == 5
        assert db_session.get(Product, second.id).stock == 1
        assert db_session.query(StockMovement).count() == 0


class TestCheckAvailable:

    def test_ok(self, db_session, product):
        assert inventory_service.check_available(product.id, 10).id == product.id

    def test_short(self, db_session, product):
        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.check_available(product.id, 11)
        assert exc.value.available == 10
        assert exc.value.needed == 11


class TestAdjustStock:

    def test_stock_manager_can_adjust(self, db_session, product, stock_manager):
        updated = inventory_service.adjust_stock(product.id, 5, actor=actor(stock_manager), note="delivery")
        assert updated.stock == 15

        movements = inventory_service.list_movements(product.id)
        assert len(movements) == 1
        assert movements[0].reason == inventory_service.REASON_MANUAL_ADJUSTMENT
        assert movements[0].actor_user_id == stock_manager.id
        assert movements[0].note == "delivery"

    def test_officer_cannot_adjust(self, db_session, product, officer):
        with pytest.raises(UnauthorizedError):
            inventory_service.adjust_stock(product.id, 5, actor=actor(officer))

    def test_zero_delta_rejected(self, db_session, product, admin):
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(product.id, 0, actor=actor(admin))

    def test_cannot_correct_below_zero(self, db_session, product, admin):
        with pytest.raises(InsufficientStockError):
            inventory_service.adjust_stock(product.id, -20, actor=actor(admin))
        db_session.refresh(product)
        assert product.stock == 10


class TestCreateProduct:

    def test_duplicate_code(self, db_session):
        inventory_service.create_product(product_code="RICE-5", name="Rice 5kg", price_cents=45000, unit="pack")
        with pytest.raises(ValidationError):
            inventory_service.create_product(product_code="RICE-5", name="Rice again", price_cents=1)

    def test_unknown_unit(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.create_product(product_code="X", name="X", price_cents=1, unit="barrel")
