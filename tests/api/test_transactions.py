"""
Tests for transaction API endpoints.

These test the HTTP layer: status codes, response format and the
error envelope. Posting rules are tested in
test_transaction_service.py.
"""

from decimal import Decimal


def create_purchase(client, product_unit, quantity="100", cost="2.00", **extra):
    return client.post("/transactions/purchases", json={
        "lines": [{
            "product_unit_id": product_unit.id,
            "quantity": quantity,
            "unit_cost": cost,
        }],
        **extra,
    }, headers={"X-Actor-Id": "4"})


def create_sale(client, product_unit, quantity, price="5.00"):
    return client.post("/transactions/sales", json={
        "lines": [{
            "product_unit_id": product_unit.id,
            "quantity": quantity,
            "unit_price": price,
        }],
    })


class TestDrafts:

    def test_create_purchase_returns_201(self, client, chart, product_unit):
        response = create_purchase(client, product_unit)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "DRAFT"
        assert data["transaction_type"] == "PURCHASE"
        assert Decimal(data["total_amount"]) == Decimal("200.00")

    def test_idempotency_key_returns_same_transaction(self, client, chart, product_unit):
        first = create_purchase(client, product_unit, idempotency_key="po-42")
        second = create_purchase(client, product_unit, idempotency_key="po-42")
        assert first.json()["id"] == second.json()["id"]

    def test_idempotency_key_reused_for_sale_returns_409(self, client, chart, product_unit):
        create_purchase(client, product_unit, idempotency_key="po-43")
        response = client.post("/transactions/sales", json={
            "idempotency_key": "po-43",
            "lines": [{"product_unit_id": product_unit.id, "quantity": "1"}],
        })
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "IDEMPOTENCY_CONFLICT"

    def test_empty_lines_rejected(self, client, chart):
        response = client.post("/transactions/purchases", json={"lines": []})
        assert response.status_code == 422

    def test_expiry_before_production_rejected(self, client, chart, product_unit):
        response = client.post("/transactions/purchases", json={"lines": [{
            "product_unit_id": product_unit.id,
            "quantity": "1",
            "unit_cost": "1.00",
            "production_date": "2026-05-01",
            "expiry_date": "2026-04-01",
        }]})
        assert response.status_code == 422

    def test_adjustment_needs_both_sides(self, client, chart):
        response = client.post("/transactions/adjustments", json={"lines": [
            {"account_id": chart["5101"].id, "amount": "1.00", "direction": "DEBIT"},
            {"account_id": chart["1301"].id, "amount": "1.00", "direction": "DEBIT"},
        ]})
        assert response.status_code == 422

    def test_get_unknown_transaction_returns_404(self, client, chart):
        response = client.get("/transactions/9999")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"


class TestPost:

    def test_post_purchase_then_sale(self, client, chart, product_unit):
        purchase_id = create_purchase(client, product_unit).json()["id"]
        assert client.post(f"/transactions/{purchase_id}/post").status_code == 200

        sale_id = create_sale(client, product_unit, "60").json()["id"]
        response = client.post(f"/transactions/{sale_id}/post")
        assert response.status_code == 200
        assert response.json()["status"] == "POSTED"

        stock = client.get(f"/inventory/product-units/{product_unit.id}/batches").json()
        assert Decimal(stock["available_quantity"]) == Decimal("40")
        assert Decimal(stock["batches"][0]["remaining_quantity"]) == Decimal("40")

    def test_insufficient_stock_returns_409(self, client, chart, product_unit):
        purchase_id = create_purchase(client, product_unit).json()["id"]
        client.post(f"/transactions/{purchase_id}/post")
        sale_id = create_sale(client, product_unit, "150").json()["id"]

        response = client.post(f"/transactions/{sale_id}/post")

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "INSUFFICIENT_STOCK"
        assert detail["retryable"] is False
        assert client.get(f"/transactions/{sale_id}").json()["status"] == "DRAFT"

    def test_posting_twice_returns_409(self, client, chart, product_unit):
        purchase_id = create_purchase(client, product_unit).json()["id"]
        client.post(f"/transactions/{purchase_id}/post")

        response = client.post(f"/transactions/{purchase_id}/post")

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_STATE_TRANSITION"

    def test_unbalanced_adjustment_returns_400(self, client, chart):
        adjustment = client.post("/transactions/adjustments", json={"lines": [
            {"account_id": chart["5101"].id, "amount": "5.00", "direction": "DEBIT"},
            {"account_id": chart["1301"].id, "amount": "4.00", "direction": "CREDIT"},
        ]})
        response = client.post(f"/transactions/{adjustment.json()['id']}/post")

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "UNBALANCED_JOURNAL"


class TestCancel:

    def test_cancel_posted_sale(self, client, chart, product_unit):
        purchase_id = create_purchase(client, product_unit).json()["id"]
        client.post(f"/transactions/{purchase_id}/post")
        sale_id = create_sale(client, product_unit, "60").json()["id"]
        client.post(f"/transactions/{sale_id}/post")

        response = client.post(
            f"/transactions/{sale_id}/cancel", json={"reason": "customer return"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        stock = client.get(f"/inventory/product-units/{product_unit.id}/batches").json()
        assert Decimal(stock["available_quantity"]) == Decimal("100")

    def test_cancel_draft_without_body(self, client, chart, product_unit):
        purchase_id = create_purchase(client, product_unit).json()["id"]
        response = client.post(f"/transactions/{purchase_id}/cancel")
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"


def test_settlement_of_unpaid_sale(client, chart, product_unit):
    purchase_id = create_purchase(client, product_unit).json()["id"]
    client.post(f"/transactions/{purchase_id}/post")
    sale_id = create_sale(client, product_unit, "2").json()["id"]
    client.post(f"/transactions/{sale_id}/post")

    data = client.get(f"/transactions/{sale_id}/settlement").json()

    assert data["status"] == "UNPAID"
    assert Decimal(data["outstanding_amount"]) == Decimal("10.00")
