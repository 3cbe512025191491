"""Tests for the FastAPI API."""

from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from bakery_orders import config


class TestCreateOrder:
    def test_created(self, client, order_payload):
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 201
        data = response.json()
        assert data["subtotal"] == 100000
        assert data["taxAmount"] == 11000
        assert data["totalAmount"] == 111000
        assert data["orderNumber"].startswith("ORD-")
        text = parse_qs(urlparse(data["whatsappUrl"]).query)["text"][0]
        assert data["orderNumber"] in text
        assert "Rp111.000" in text
        assert "Catatan Delivery: Pengiriman H+1" in text

    def test_client_total_is_ignored(self, client, order_payload):
        order_payload["totalAmount"] = 1
        order_payload["items"][0]["subtotal"] = 1
        response = client.post("/orders", json=order_payload)
        assert response.json()["totalAmount"] == 111000

    def test_region_fee_from_settings(self, client, order_payload):
        order_payload["shipping"]["province"] = "dki_jakarta"
        data = client.post("/orders", json=order_payload).json()
        assert data["shippingCost"] == 15000
        assert data["totalAmount"] == 126000

    def test_empty_cart(self, client, order_payload):
        order_payload["items"] = []
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

    def test_lists_every_missing_field(self, client, order_payload):
        order_payload["shipping"]["fullName"] = "  "
        del order_payload["shipping"]["city"]
        order_payload["items"][0]["quantity"] = 0
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 400
        errors = response.json()["errors"]
        assert len(errors) == 3
        assert any(e.startswith("shipping.fullName") for e in errors)
        assert any(e.startswith("shipping.city") for e in errors)
        assert any(e.startswith("items.0.quantity") for e in errors)

    def test_bad_email(self, client, order_payload):
        order_payload["shipping"]["email"] = "not-an-email"
        assert client.post("/orders", json=order_payload).status_code == 400

    def test_blank_email_is_allowed(self, client, order_payload):
        order_payload["shipping"]["email"] = ""
        assert client.post("/orders", json=order_payload).status_code == 201

    def test_persistence_failure_hides_cause(self, client, store, order_payload):
        store.fail_items = True
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 500
        body = response.json()
        assert body["error_type"] == "PersistenceError"
        assert "connection reset" not in body["detail"]
        assert store.count_orders() == 0

    def test_missing_database_url(self, monkeypatch, order_payload):
        from bakery_orders.app import app

        monkeypatch.setattr(config, "DATABASE_URL", None)
        response = TestClient(app).post("/orders", json=order_payload)
        assert response.status_code == 500
        assert response.json()["error_type"] == "ConfigurationError"


class TestOrderLookup:
    def test_by_number(self, client, order_payload):
        number = client.post("/orders", json=order_payload).json()["orderNumber"]
        response = client.get(f"/orders/{number}")
        assert response.status_code == 200
        data = response.json()
        assert data["order"]["orderNumber"] == number
        assert data["order"]["statusLabel"] == "Menunggu Konfirmasi"
        assert "customerEmail" not in data["order"]
        assert len(data["items"]) == 1
        assert data["items"][0]["lineSubtotal"] == 100000

    def test_not_found(self, client):
        response = client.get("/orders/ORD-20260209-ZZZZ")
        assert response.status_code == 404
        assert response.json()["error_type"] == "OrderNotFoundError"

    def test_number_is_case_insensitive(self, client, order_payload):
        number = client.post("/orders", json=order_payload).json()["orderNumber"]
        assert client.get(f"/orders/{number.lower()}").status_code == 200

    def test_malformed_number_is_not_found(self, client):
        assert client.get("/orders/12345").status_code == 404

    def test_whatsapp_retry_link(self, client, order_payload):
        created = client.post("/orders", json=order_payload).json()
        response = client.get(f"/orders/{created['orderNumber']}/whatsapp")
        assert response.status_code == 200
        assert response.json()["whatsappUrl"] == created["whatsappUrl"]


class TestAdminOrders:
    def test_detail_includes_private_fields(self, client, order_payload):
        order_payload["shipping"]["email"] = "budi@bakeryumi.co.id"
        order_payload["shipping"]["notes"] = "Tanpa kacang"
        order_id = client.post("/orders", json=order_payload).json()["id"]
        data = client.get(f"/admin/orders/{order_id}").json()
        assert data["order"]["customerEmail"] == "budi@bakeryumi.co.id"
        assert data["order"]["customerNotes"] == "Tanpa kacang"

    def test_detail_not_found(self, client):
        assert client.get("/admin/orders/404").status_code == 404

    def test_list(self, client, order_payload):
        client.post("/orders", json=order_payload)
        client.post("/orders", json=order_payload)
        data = client.get("/admin/orders", params={"limit": 1}).json()
        assert data["count"] == 2
        assert len(data["orders"]) == 1

    def test_list_limit_bounds(self, client):
        assert client.get("/admin/orders", params={"limit": 500}).status_code == 400

    def test_patch_status_only(self, client, order_payload):
        order_id = client.post("/orders", json=order_payload).json()["id"]
        response = client.patch(f"/admin/orders/{order_id}", json={"status": "completed"})
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert response.json()["paymentStatus"] == "pending"

    def test_patch_payment_status_snake_case(self, client, order_payload):
        order_id = client.post("/orders", json=order_payload).json()["id"]
        response = client.patch(f"/admin/orders/{order_id}", json={"payment_status": "paid"})
        assert response.json()["paymentStatus"] == "paid"

    def test_patch_nothing(self, client, order_payload):
        order_id = client.post("/orders", json=order_payload).json()["id"]
        response = client.patch(f"/admin/orders/{order_id}", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update."

    def test_bulk_delete(self, client, store, order_payload):
        order_id = client.post("/orders", json=order_payload).json()["id"]
        response = client.request("DELETE", "/admin/orders", json={"ids": [order_id]})
        assert response.status_code == 200
        assert response.json() == {"deleted": [order_id], "missing": []}
        assert store.count_orders() == 0

    def test_bulk_delete_needs_ids(self, client):
        response = client.request("DELETE", "/admin/orders", json={"ids": []})
        assert response.status_code == 400


class TestSettingsAndQuote:
    def test_public_settings(self, client):
        data = client.get("/settings").json()
        assert data["taxRate"] == 0.11
        assert data["shippingFees"]["dki_jakarta"] == 15000
        assert data["shippingFees"]["jawa_tengah"] == 10000
        assert data["storeName"] == "Bakery Umi"

    def test_settings_outage_falls_back(self, client, settings_source):
        settings_source.fail = True
        data = client.get("/settings").json()
        assert data["taxRate"] == 0.11

    def test_update_settings(self, client):
        response = client.patch("/admin/settings", json={"settings": {"tax_rate": "0.1"}})
        assert response.status_code == 200
        assert response.json()["taxRate"] == 0.1

    def test_update_settings_rejects_unknown(self, client):
        response = client.patch("/admin/settings", json={"settings": {"hero": "x"}})
        assert response.status_code == 400

    def test_quote(self, client):
        response = client.post("/pricing/quote", json={
            "items": [{"price": 50000, "quantity": 2}],
            "region": "jawa_tengah",
        })
        assert response.json() == {
            "subtotal": 100000,
            "taxRate": 0.11,
            "taxAmount": 11000,
            "shippingFee": 10000,
            "shippingPending": False,
            "total": 121000,
        }

    def test_quote_negotiated_shipping(self, client):
        data = client.post("/pricing/quote", json={"items": [{"price": 1000, "quantity": 1}], "region": "other"}).json()
        assert data["shippingFee"] is None
        assert data["shippingPending"] is True
        assert data["total"] == 1110


class TestLimits:
    def test_quantity_beyond_integer_column(self, client, store, order_payload):
        order_payload["items"][0]["quantity"] = 3_000_000_000
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 400
        assert any(e.startswith("items.0.quantity") for e in response.json()["errors"])
        assert store.count_orders() == 0

    def test_price_beyond_limit(self, client, order_payload):
        order_payload["items"][0]["price"] = 10**12
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 400
        assert any(e.startswith("items.0.price") for e in response.json()["errors"])

    def test_subtotal_beyond_limit(self, client, order_payload):
        order_payload["items"][0]["price"] = 10**9
        order_payload["items"][0]["quantity"] = 2_000_000
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 400
        assert "subtotal" in response.json()["detail"]

    def test_long_address_rejected(self, client, order_payload):
        order_payload["shipping"]["address"] = "Jl. Panjang " * 500
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 400
        assert any(e.startswith("shipping.address") for e in response.json()["errors"])


class TestTimeouts:
    def test_storage_timeout_is_503(self, client, store, order_payload, monkeypatch):
        from bakery_orders.errors import StorageTimeoutError

        def slow_insert(header):
            raise StorageTimeoutError("insert order")

        monkeypatch.setattr(store, "insert_order", slow_insert)
        response = client.post("/orders", json=order_payload)
        assert response.status_code == 503
        body = response.json()
        assert body["error_type"] == "StorageTimeoutError"
        assert body["detail"] == "The store is busy right now. Please try again in a moment."
        assert store.count_orders() == 0
