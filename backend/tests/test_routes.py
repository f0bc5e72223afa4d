"""HTTP surface: status codes, error bodies and actor attribution."""

HEADERS = {"X-Actor-Id": "cashier-1"}


def test_health(client, db_session):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "healthy"


def test_mutations_require_actor(client, db_session, product):
    response = client.post("/api/transactions", json={
        "items": [{"product_id": product.id, "quantity": 1}],
        "payments": [{"method": "cash", "amount_cents": 1000}],
    })

    assert response.status_code == 401
    assert response.get_json()["code"] == "ACTOR_REQUIRED"


def test_create_and_void_sale(client, db_session, product):
    response = client.post("/api/transactions", headers=HEADERS, json={
        "items": [{"product_id": product.id, "quantity": 2}],
        "payments": [{"method": "cash", "amount_cents": 2000, "cash_tendered_cents": 2500}],
    })
    assert response.status_code == 201
    txn = response.get_json()["transaction"]
    assert txn["cashier_id"] == "cashier-1"
    assert txn["payments"][0]["change_cents"] == 500

    response = client.post(f"/api/transactions/{txn['id']}/void", headers=HEADERS, json={"reason": "Mistake"})
    assert response.status_code == 200
    assert response.get_json()["transaction"]["status"] == "voided"

    response = client.post(f"/api/transactions/{txn['id']}/void", headers=HEADERS, json={"reason": "Again"})
    assert response.status_code == 409
    assert response.get_json()["code"] == "INVALID_STATE_TRANSITION"

    history = client.get(f"/api/inventory/products/{product.id}/history").get_json()
    assert history["quantity_on_hand"] == 10
    assert [h["adjustment_type"] for h in history["history"]] == ["initial", "sale", "sale_void"]


def test_insufficient_stock_maps_to_409(client, db_session, product):
    response = client.post("/api/transactions", headers=HEADERS, json={
        "items": [{"product_id": product.id, "quantity": 11}],
        "payments": [{"method": "cash", "amount_cents": 11000}],
    })

    assert response.status_code == 409
    body = response.get_json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["details"]["available"] == 10


def test_validation_and_not_found(client, db_session):
    response = client.post("/api/transactions", headers=HEADERS, json={"items": [], "payments": []})
    assert response.status_code == 400
    assert response.get_json()["code"] == "VALIDATION_ERROR"

    response = client.get("/api/transactions/424242")
    assert response.status_code == 404
    assert response.get_json()["code"] == "NOT_FOUND"


def test_quote(client, db_session, product):
    response = client.post("/api/transactions/quote", json={
        "items": [{"product_id": product.id, "quantity": 3}],
    })
    assert response.status_code == 200
    assert response.get_json()["quote"]["total_cents"] == 3000


def test_duplicate_sku_is_conflict(client, db_session, product):
    response = client.post("/api/products", headers=HEADERS, json={
        "sku": "WIDGET-1", "name": "Again", "price_cents": 100,
    })
    assert response.status_code == 409
    assert response.get_json()["code"] == "CONFLICT"


def test_product_patch_cannot_touch_stock(client, db_session, product):
    response = client.patch(f"/api/products/{product.id}", headers=HEADERS, json={"quantity_in_stock": 99})
    assert response.status_code == 400


def test_manual_adjustment_endpoint(client, db_session, product):
    response = client.post("/api/inventory/adjustments", headers=HEADERS, json={
        "product_id": product.id,
        "adjustment_type": "damage",
        "quantity_change": -2,
        "reason": "Crushed",
    })
    assert response.status_code == 201
    adjustment = response.get_json()["adjustment"]
    assert adjustment["quantity_after"] == 8
    assert adjustment["actor_id"] == "cashier-1"

    listing = client.get(f"/api/inventory/adjustments?product_id={product.id}").get_json()
    assert listing["count"] == 2


def test_purchase_order_flow(client, db_session, vendor, product):
    response = client.post("/api/purchase-orders", headers=HEADERS, json={
        "vendor_id": vendor.id,
        "items": [{"product_id": product.id, "quantity_ordered": 5, "unit_cost_cents": 400}],
    })
    assert response.status_code == 201
    po = response.get_json()["purchase_order"]
    assert po["status"] == "draft"

    for action in ("submit", "approve"):
        response = client.post(f"/api/purchase-orders/{po['id']}/{action}", headers=HEADERS)
        assert response.status_code == 200

    line_id = po["lines"][0]["id"]
    response = client.post(f"/api/purchase-orders/{po['id']}/receive", headers=HEADERS, json={
        "receipts": [{"line_item_id": line_id, "quantity_received": 6}],
    })
    assert response.status_code == 409
    assert response.get_json()["code"] == "OVER_RECEIVE"

    response = client.post(f"/api/purchase-orders/{po['id']}/receive", headers=HEADERS, json={
        "receipts": [{"line_item_id": line_id, "quantity_received": 5}],
    })
    assert response.status_code == 200
    assert response.get_json()["purchase_order"]["status"] == "received"

    response = client.get(f"/api/products/{product.id}")
    assert response.get_json()["product"]["quantity_in_stock"] == 15
