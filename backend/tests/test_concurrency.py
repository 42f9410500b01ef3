"""
Concurrency tests against a real SQLite file.

Each thread pushes its own app context (and so gets its own session and
connection). A barrier releases the threads together so their units of
work overlap.
"""

import threading
from decimal import Decimal

import pytest

from distro import create_app
from distro.errors import DomainError, InsufficientStockError, InvalidTransitionError
from distro.extensions import db
from distro.models import Order, Product, StockMovement, Store, User
from distro.permissions import Actor
from distro.services import order_service
from distro.validation import OrderLineInput


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _seed(app, *, stock, officers):
    """Returns (product_id, admin_id, [(officer_id, store_id), ...])."""
    with app.app_context():
        admin = User(name="Admin", email="admin@example.com", password_hash="x", role="admin")
        product = Product(product_code="P-1", name="Rice", price_cents=1000, stock=stock)
        db.session.add_all([admin, product])
        db.session.flush()

        pairs = []
        for n in range(officers):
            officer = User(name=f"Officer {n}", email=f"officer{n}@example.com", password_hash="x", role="officer")
            db.session.add(officer)
            db.session.flush()
            store = Store(store_code=f"ST-{n}", name=f"Store {n}", officer_id=officer.id)
            db.session.add(store)
            db.session.flush()
            pairs.append((officer.id, store.id))

        db.session.commit()
        return product.id, admin.id, pairs


def _run_together(app, calls):
    """Run each call in its own thread and app context; collect results or errors."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, call):
        with app.app_context():
            barrier.wait()
            try:
                results[index] = call()
            except DomainError as e:
                results[index] = e
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


def _draft(app, officer_id, store_id, product_id, quantity):
    with app.app_context():
        line = OrderLineInput(product_id=product_id, quantity=quantity, discount_percentage=Decimal("0"))
        return order_service.create_draft_order(store_id, line, Actor(officer_id, "officer")).id


def test_competing_submissions_reserve_once(file_app):
    """Two drafts needing 6 each against stock 10: exactly one reserves."""
    product_id, _, pairs = _seed(file_app, stock=10, officers=2)
    order_ids = [_draft(file_app, officer_id, store_id, product_id, 6) for officer_id, store_id in pairs]

    results = _run_together(file_app, [
        (lambda oid=oid, uid=uid: order_service.submit_order(oid, Actor(uid, "officer")).status)
        for oid, (uid, _) in zip(order_ids, pairs)
    ])

    assert sorted(r if isinstance(r, str) else type(r).__name__ for r in results) == [
        "InsufficientStockError", "pending",
    ]
    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 4
        statuses = sorted(o.status for o in db.session.query(Order).all())
        assert statuses == ["draft", "pending"]
        assert db.session.query(StockMovement).count() == 1


def test_duplicate_submission_of_same_draft(file_app):
    product_id, _, pairs = _seed(file_app, stock=10, officers=1)
    officer_id, store_id = pairs[0]
    order_id = _draft(file_app, officer_id, store_id, product_id, 3)

    results = _run_together(file_app, [
        lambda: order_service.submit_order(order_id, Actor(officer_id, "officer")).status,
        lambda: order_service.submit_order(order_id, Actor(officer_id, "officer")).status,
    ])

    assert sum(1 for r in results if r == "pending") == 1
    assert sum(1 for r in results if isinstance(r, InvalidTransitionError)) == 1
    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 7


def test_competing_rejections_release_once(file_app):
    product_id, admin_id, pairs = _seed(file_app, stock=10, officers=1)
    officer_id, store_id = pairs[0]
    order_id = _draft(file_app, officer_id, store_id, product_id, 4)
    with file_app.app_context():
        order_service.submit_order(order_id, Actor(officer_id, "officer"))

    admin = Actor(admin_id, "admin")
    results = _run_together(file_app, [
        lambda: order_service.reject_order(order_id, admin).status,
        lambda: order_service.delete_order(order_id, admin)["status"],
    ])

    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 10
        released = db.session.query(StockMovement).filter(StockMovement.quantity_delta > 0).count()
        assert released == 1
    assert not any(isinstance(r, InsufficientStockError) for r in results)


def test_rejection_racing_fulfillment(file_app):
    """An approved order is either rejected with stock returned or fulfilled with it consumed."""
    product_id, admin_id, pairs = _seed(file_app, stock=10, officers=1)
    officer_id, store_id = pairs[0]
    order_id = _draft(file_app, officer_id, store_id, product_id, 4)
    with file_app.app_context():
        keeper = User(name="Keeper", email="keeper@example.com", password_hash="x", role="stock-manager")
        db.session.add(keeper)
        db.session.commit()
        keeper_id = keeper.id
        order_service.submit_order(order_id, Actor(officer_id, "officer"))
        order_service.approve_order(order_id, Actor(admin_id, "admin"))

    results = _run_together(file_app, [
        lambda: order_service.reject_order(order_id, Actor(admin_id, "admin")).status,
        lambda: order_service.fulfill_order(order_id, Actor(keeper_id, "stock-manager")).status,
    ])

    assert sum(1 for r in results if isinstance(r, str)) == 1
    assert sum(1 for r in results if isinstance(r, InvalidTransitionError)) == 1
    with file_app.app_context():
        status = db.session.get(Order, order_id).status
        stock = db.session.get(Product, product_id).stock
    assert (status, stock) in {("rejected", 10), ("fulfilled", 6)}


def test_concurrent_draft_upserts_share_one_draft(file_app):
    product_id, _, pairs = _seed(file_app, stock=100, officers=1)
    officer_id, store_id = pairs[0]
    me = Actor(officer_id, "officer")

    results = _run_together(file_app, [
        (lambda q=q: order_service.create_draft_order(
            store_id, OrderLineInput(product_id=product_id, quantity=q), me,
        ).id)
        for q in (1, 2, 3, 4)
    ])

    assert all(isinstance(r, int) for r in results)
    assert len(set(results)) == 1
    with file_app.app_context():
        assert db.session.query(Order).count() == 1
