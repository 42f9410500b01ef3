"""
HTTP route tests.

Verifies:
- Unauthenticated requests return 401
- Role gates return 403
- Domain errors map to their status codes with structured details
- The full order flow works end to end over HTTP
"""

import pytest

from distro.services import auth_service

from conftest import auth_headers, token_for


@pytest.fixture
def officer_headers(officer):
    return auth_headers(token_for(officer))


@pytest.fixture
def admin_headers(admin):
    return auth_headers(token_for(admin))


@pytest.fixture
def stock_manager_headers(stock_manager):
    return auth_headers(token_for(stock_manager))


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================

class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/orders/draft"),
            ("GET", "/api/orders"),
            ("GET", "/api/orders/1"),
            ("POST", "/api/orders/1/submit"),
            ("POST", "/api/orders/1/approve"),
            ("DELETE", "/api/orders/1"),
            ("GET", "/api/stores/1/balance"),
            ("GET", "/api/stores/balances"),
            ("POST", "/api/stores/1/payments"),
            ("GET", "/api/officers/1/balance"),
            ("POST", "/api/products/1/stock"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/orders", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# AUTH
# =============================================================================

class TestAuth:

    def test_login_and_logout(self, client, db_session):
        auth_service.create_user(name="Asha", email="Asha@Example.com", password="secret1", role="officer")

        resp = client.post("/api/auth/login", json={"email": "asha@example.com", "password": "secret1"})
        assert resp.status_code == 200
        token = resp.json["token"]
        assert resp.json["user"]["role"] == "officer"

        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 200
        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_wrong_password(self, client, db_session):
        auth_service.create_user(name="Ben", email="ben@example.com", password="secret1", role="admin")
        resp = client.post("/api/auth/login", json={"email": "ben@example.com", "password": "nope"})
        assert resp.status_code == 401

    def test_suspended_user_token_rejected(self, client, db_session, officer):
        headers = auth_headers(token_for(officer))
        officer.status = "suspended"
        db_session.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 401


# =============================================================================
# ORDERS
# =============================================================================

class TestOrderRoutes:

    def test_full_flow(self, client, store, product, officer_headers, admin_headers, stock_manager_headers):
        resp = client.post(
            "/api/orders/draft",
            json={"store_id": store.id, "product_id": product.id, "quantity": 4, "bonus_quantity": 1, "discount_percentage": "10"},
            headers=officer_headers,
        )
        assert resp.status_code == 200
        order_id = resp.json["order"]["id"]
        assert resp.json["order"]["total_cents"] == 36000

        resp = client.post(f"/api/orders/{order_id}/submit", headers=officer_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "pending"

        resp = client.get(f"/api/products/{product.id}", headers=officer_headers)
        assert resp.json["product"]["stock"] == 5

        resp = client.post(f"/api/orders/{order_id}/approve", headers=admin_headers)
        assert resp.json["order"]["status"] == "approved"

        resp = client.post(f"/api/orders/{order_id}/fulfill", headers=stock_manager_headers)
        assert resp.json["order"]["status"] == "fulfilled"

        resp = client.get(f"/api/stores/{store.id}/balance", headers=officer_headers)
        assert resp.status_code == 200
        assert resp.json["balance"]["owed_cents"] == 36000
        assert resp.json["balance"]["due_history"][0]["order_id"] == order_id

    def test_invalid_transition_is_409(self, client, store, product, officer_headers, admin_headers):
        resp = client.post(
            "/api/orders/draft",
            json={"store_id": store.id, "product_id": product.id, "quantity": 1},
            headers=officer_headers,
        )
        order_id = resp.json["order"]["id"]

        resp = client.post(f"/api/orders/{order_id}/approve", headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json["kind"] == "InvalidTransitionError"
        assert resp.json["details"]["current_status"] == "draft"

    def test_insufficient_stock_is_409_with_details(self, client, store, product, officer_headers):
        resp = client.post(
            "/api/orders/draft",
            json={"store_id": store.id, "product_id": product.id, "quantity": 10, "bonus_quantity": 1},
            headers=officer_headers,
        )
        assert resp.status_code == 409
        assert resp.json["details"] == {"product_id": product.id, "available": 10, "needed": 11}

    @pytest.mark.parametrize(
        "payload",
        [
            {"product_id": 1, "quantity": 1},
            {"store_id": 1, "product_id": 1, "quantity": 0},
            {"store_id": 1, "product_id": 1, "quantity": 1.5},
            {"store_id": 1, "product_id": 1, "quantity": 1, "bonus_quantity": -1},
            {"store_id": 1, "product_id": 1, "quantity": 1, "discount_percentage": "101"},
            {"store_id": 1, "product_id": 1, "quantity": 1, "discount_percentage": "1.234"},
        ],
    )
    def test_bad_draft_payload_is_400(self, client, officer_headers, payload):
        resp = client.post("/api/orders/draft", json=payload, headers=officer_headers)
        assert resp.status_code == 400
        assert resp.json["kind"] == "ValidationError"

    def test_officer_cannot_approve(self, client, officer_headers):
        resp = client.post("/api/orders/1/approve", headers=officer_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "APPROVE_ORDER"

    def test_missing_order_is_404(self, client, admin_headers):
        resp = client.get("/api/orders/999999", headers=admin_headers)
        assert resp.status_code == 404

    def test_list_and_summary(self, client, store, product, officer_headers, admin_headers):
        client.post(
            "/api/orders/draft",
            json={"store_id": store.id, "product_id": product.id, "quantity": 1},
            headers=officer_headers,
        )

        resp = client.get("/api/orders?status=draft", headers=officer_headers)
        assert resp.status_code == 200
        assert len(resp.json["orders"]) == 1
        assert "lines" not in resp.json["orders"][0]

        resp = client.get("/api/orders?status=bogus", headers=admin_headers)
        assert resp.status_code == 400

        resp = client.get("/api/orders/summary", headers=admin_headers)
        assert resp.json["counts"]["draft"] == 1

    @pytest.mark.parametrize("query", ["limit=-1", "limit=0", "offset=-5"])
    def test_bad_paging_is_400(self, client, officer_headers, query):
        resp = client.get(f"/api/orders?{query}", headers=officer_headers)
        assert resp.status_code == 400
        assert resp.json["kind"] == "ValidationError"

    def test_delete_draft_line_and_order(self, client, store, product, officer_headers):
        resp = client.post(
            "/api/orders/draft",
            json={"store_id": store.id, "product_id": product.id, "quantity": 1},
            headers=officer_headers,
        )
        order_id = resp.json["order"]["id"]

        resp = client.delete(f"/api/orders/{order_id}/lines/{product.id}", headers=officer_headers)
        assert resp.status_code == 200
        assert resp.json["order"]["lines"] == []

        resp = client.delete(f"/api/orders/{order_id}", headers=officer_headers)
        assert resp.status_code == 200
        assert resp.json["status"] == "draft"


# =============================================================================
# LEDGER / BALANCES / STOCK
# =============================================================================

class TestLedgerRoutes:

    def test_payment_and_due(self, client, store, officer_headers):
        resp = client.post(f"/api/stores/{store.id}/payments", json={"amount_cents": 50000}, headers=officer_headers)
        assert resp.status_code == 201
        assert resp.json["payment"]["method"] == "cash"

        resp = client.post(
            f"/api/stores/{store.id}/dues",
            json={"amount_cents": 20000, "description": "opening", "date": "2026-01-02T00:00:00Z"},
            headers=officer_headers,
        )
        assert resp.status_code == 201
        assert resp.json["due"]["date"] == "2026-01-02T00:00:00Z"

        resp = client.get(f"/api/stores/{store.id}/balance?history=0", headers=officer_headers)
        assert resp.json["balance"]["net_cents"] == -30000
        assert "due_history" not in resp.json["balance"]

        assert len(client.get(f"/api/stores/{store.id}/payments", headers=officer_headers).json["payments"]) == 1
        assert len(client.get(f"/api/stores/{store.id}/dues", headers=officer_headers).json["dues"]) == 1

    def test_negative_amount_is_400(self, client, store, officer_headers):
        resp = client.post(f"/api/stores/{store.id}/payments", json={"amount_cents": -5}, headers=officer_headers)
        assert resp.status_code == 400

    def test_stock_manager_cannot_record_payment(self, client, store, stock_manager_headers):
        resp = client.post(f"/api/stores/{store.id}/payments", json={"amount_cents": 5}, headers=stock_manager_headers)
        assert resp.status_code == 403

    def test_balances_and_officer_rollup(self, client, store, officer, officer_headers, admin_headers):
        client.post(f"/api/stores/{store.id}/dues", json={"amount_cents": 700}, headers=officer_headers)

        resp = client.get("/api/stores/balances", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["balances"][0]["store"]["id"] == store.id
        assert resp.json["balances"][0]["owed_cents"] == 700

        resp = client.get(f"/api/officers/{officer.id}/balance", headers=officer_headers)
        assert resp.status_code == 200
        assert resp.json["balance"]["owed_cents"] == 700


class TestStockRoutes:

    def test_adjust_and_movements(self, client, product, stock_manager_headers):
        resp = client.post(f"/api/products/{product.id}/stock", json={"delta": -3, "note": "damaged"}, headers=stock_manager_headers)
        assert resp.status_code == 200
        assert resp.json["product"]["stock"] == 7

        resp = client.get(f"/api/products/{product.id}/movements", headers=stock_manager_headers)
        assert resp.json["movements"][0]["quantity_delta"] == -3

    def test_adjust_below_zero_is_409(self, client, product, stock_manager_headers):
        resp = client.post(f"/api/products/{product.id}/stock", json={"delta": -11}, headers=stock_manager_headers)
        assert resp.status_code == 409
        assert resp.json["details"]["available"] == 10

    def test_officer_cannot_adjust(self, client, product, officer_headers):
        resp = client.post(f"/api/products/{product.id}/stock", json={"delta": 1}, headers=officer_headers)
        assert resp.status_code == 403

    @pytest.mark.parametrize("limit", ["-1", "0"])
    def test_movements_bad_limit_is_400(self, client, product, stock_manager_headers, limit):
        resp = client.get(f"/api/products/{product.id}/movements?limit={limit}", headers=stock_manager_headers)
        assert resp.status_code == 400
