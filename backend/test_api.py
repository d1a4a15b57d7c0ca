import asyncio
import json
from decimal import Decimal

from clinicdesk.main import app
from clinicdesk.schemas.sync import SubscriptionStatus
from clinicdesk.services import backup_service


def create_item(client, **overrides):
    payload = {
        "name": "Paracetamol 500mg",
        "category": "Medicine",
        "buy_price": "60.00",
        "sell_price": "100.00",
        "stock": 10,
        "unit": "Strips",
    }
    payload.update(overrides)
    resp = client.post("/inventory", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_inventory_crud(client):
    item = create_item(client)
    assert Decimal(item["sell_price"]) == Decimal("100.00")
    assert item["low_stock_threshold"] == 10

    resp = client.patch(f"/inventory/{item['id']}", json={"stock": 4})
    assert resp.json()["stock"] == 4
    assert client.get(f"/inventory/{item['id']}/status").json()["status"] == "low-stock"

    resp = client.post(f"/inventory/{item['id']}/stock", json={"quantity": 5, "operation": "subtract"})
    assert resp.status_code == 409

    assert client.delete(f"/inventory/{item['id']}").status_code == 204
    assert client.get(f"/inventory/{item['id']}").status_code == 404


def test_inventory_validation_errors(client):
    resp = client.post("/inventory", json={"name": "  ", "buy_price": "1", "sell_price": "2"})
    assert resp.status_code == 422
    resp = client.post("/inventory", json={"name": "Gauze", "buy_price": "-1", "sell_price": "2"})
    assert resp.status_code == 422


def test_inventory_search_and_csv(client):
    create_item(client, name="Paracetamol")
    create_item(client, name="Bandage", category="Supplies")

    names = [i["name"] for i in client.get("/inventory", params={"category": "Supplies"}).json()]
    assert names == ["Bandage"]

    resp = client.get("/inventory/export")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    lines = resp.text.strip().splitlines()
    assert lines[0].startswith("Name,Category")
    assert len(lines) == 3


def test_customers_and_visits(client):
    resp = client.post("/customers", json={"name": "Asha Verma", "mobile": "9876543210", "type": "vip"})
    assert resp.status_code == 201
    customer = resp.json()

    resp = client.post("/visits", json={
        "customer_id": customer["id"],
        "date": "2024-03-01T10:00:00",
        "next_visit_date": "2024-03-15T10:00:00",
    })
    assert resp.status_code == 201

    refreshed = client.get(f"/customers/{customer['id']}").json()
    assert refreshed["total_visits"] == 1
    assert len(client.get(f"/customers/{customer['id']}/visits").json()) == 1
    assert [c["name"] for c in client.get("/customers", params={"type": "vip"}).json()] == ["Asha Verma"]

    assert client.post("/visits", json={"customer_id": "missing"}).status_code == 404


def test_billing_flow(client):
    item = create_item(client)
    customer = client.post("/customers", json={"name": "Ravi", "mobile": "9000000002"}).json()

    assert client.put("/billing/draft/customer", json={"customer_id": customer["id"]}).status_code == 200
    draft = client.post("/billing/draft/items", json={"item_id": item["id"], "quantity": 2}).json()
    assert Decimal(draft["subtotal"]) == Decimal("200.00")

    draft = client.put("/billing/draft/discount", json={"amount": "10", "is_percentage": True}).json()
    assert Decimal(draft["discount"]) == Decimal("20.00")
    assert Decimal(draft["total"]) == Decimal("212.40")

    resp = client.post("/billing/draft/commit", json={"payment_method": "upi"})
    assert resp.status_code == 201, resp.text
    invoice = resp.json()
    assert invoice["invoice_number"].startswith("INV")
    assert invoice["customer_name"] == "Ravi"

    assert client.get(f"/inventory/{item['id']}").json()["stock"] == 8
    assert Decimal(client.get(f"/customers/{customer['id']}").json()["total_spent"]) == Decimal("212.40")
    assert client.get("/billing/draft").json()["items"] == []


def test_billing_errors(client):
    item = create_item(client, stock=1)

    assert client.post("/billing/draft/commit", json={}).status_code == 400
    assert client.post("/billing/draft/items", json={"item_id": item["id"], "quantity": 2}).status_code == 409
    assert client.post("/billing/draft/items", json={"item_id": "missing"}).status_code == 404
    client.post("/billing/draft/items", json={"item_id": item["id"], "quantity": 1})
    assert client.put("/billing/draft/discount", json={"amount": "500"}).status_code == 400
    assert client.delete(f"/billing/draft/items/{item['id']}").json()["items"] == []


def test_invoice_documents_status_and_returns(client):
    item = create_item(client)
    client.post("/billing/draft/items", json={"item_id": item["id"], "quantity": 3})
    invoice = client.post("/billing/draft/commit", json={}).json()

    resp = client.get(f"/invoices/{invoice['id']}/pdf")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")

    message = client.get(f"/invoices/{invoice['id']}/message").json()
    assert invoice["invoice_number"] in message["message"]
    assert message["share_url"].startswith("https://wa.me/?text=")

    resp = client.patch(f"/invoices/{invoice['id']}/status", json={"payment_status": "unpaid", "due_date": "2024-04-30"})
    assert resp.json()["payment_status"] == "unpaid"
    assert [i["id"] for i in client.get("/invoices", params={"payment_status": "unpaid"}).json()] == [invoice["id"]]

    resp = client.post(f"/invoices/{invoice['id']}/returns", json={"items": [{"item_id": item["id"], "quantity": 1}]})
    assert resp.status_code == 200
    assert Decimal(resp.json()["return_amount"]) == Decimal("100.00")
    assert client.get(f"/inventory/{item['id']}").json()["stock"] == 8

    csv_lines = client.get("/invoices/export").text.strip().splitlines()
    assert invoice["invoice_number"] in csv_lines[1]
    assert client.get("/invoices/today").json()["total_invoices"] == 1


def test_settings_and_options(client):
    resp = client.patch("/settings", json={"shop_name": "City Clinic", "gst_rate": "12"})
    assert resp.json()["shop_name"] == "City Clinic"
    assert client.patch("/settings", json={"gst_rate": "150"}).status_code == 422

    client.post("/settings/categories", json={"name": "Herbal"})
    categories = client.post("/settings/categories", json={"name": "Herbal"}).json()
    assert categories.count("Herbal") == 1
    assert "Herbal" not in client.delete("/settings/categories/Herbal").json()
    assert client.post("/settings/units", json={"name": " "}).status_code == 400


def test_analytics_endpoints(client):
    create_item(client, stock=2)
    stats = client.get("/analytics/dashboard").json()
    assert stats["total_items"] == 1
    assert stats["low_stock_items"] == 1

    for path in ("/analytics/sales", "/analytics/inventory", "/analytics/customers",
                 "/analytics/pnl", "/analytics/visits", "/analytics/insights"):
        assert client.get(path).status_code == 200, path

    resp = client.get("/analytics/sales", params={"start_date": "2024-01-01", "end_date": "2024-01-31"})
    assert resp.json()["summary"]["total_invoices"] == 0


def test_data_export_import_and_clear(client):
    create_item(client)
    exported = client.get("/data/export")
    assert exported.status_code == 200
    envelope = exported.json()
    assert envelope["version"] == "1.0"

    assert client.post("/data/clear").status_code == 200
    assert client.get("/inventory").json() == []

    resp = client.post("/data/import", content=json.dumps(envelope))
    assert resp.status_code == 200
    assert "inventory" in resp.json()["imported"]
    assert len(client.get("/inventory").json()) == 1

    assert client.post("/data/import", content="{}").status_code == 400
    assert client.post("/data/reconcile").json() == {"customers_updated": 0}


def test_subscription_gate_blocks_all_but_health_and_sync(client):
    app.state.subscription = SubscriptionStatus(clinic_id="clinic_x", valid=False, reason="Subscription expired")

    resp = client.get("/inventory")
    assert resp.status_code == 402
    assert resp.json()["detail"] == "Subscription expired"
    assert client.get("/health").status_code == 200
    status = client.get("/sync/status").json()
    assert status["subscription_valid"] is False

    app.state.subscription = SubscriptionStatus(clinic_id="clinic_x", valid=True)
    assert client.get("/inventory").status_code == 200


def test_sync_without_config_is_a_bad_request(client):
    assert client.post("/sync/push").status_code == 400
    resp = client.post("/sync/config", json={"apiKey": "k", "projectId": "p"})
    assert resp.status_code == 400
    assert "databaseURL" in resp.json()["detail"]


def test_customer_patch_with_null_field_is_rejected(client):
    customer = client.post("/customers", json={"name": "Asha Verma", "mobile": "9876543210"}).json()

    resp = client.patch(f"/customers/{customer['id']}", json={"email": None})
    assert resp.status_code == 400
    customers = client.get("/customers")
    assert customers.status_code == 200
    assert customers.json()[0]["email"] == ""


def test_import_with_malformed_collection_is_rejected(client):
    create_item(client)
    resp = client.post("/data/import", content=json.dumps({"version": "1.0", "inventory": "oops"}))
    assert resp.status_code == 400
    inventory = client.get("/inventory")
    assert inventory.status_code == 200
    assert len(inventory.json()) == 1


def test_import_runs_outside_the_event_loop(client, monkeypatch):
    seen = {}

    def record_loop(store, payload):
        try:
            asyncio.get_running_loop()
            seen["on_loop"] = True
        except RuntimeError:
            seen["on_loop"] = False
        return []

    monkeypatch.setattr(backup_service, "import_all_data", record_loop)
    assert client.post("/data/import", content="{}").status_code == 200
    assert seen == {"on_loop": False}


def test_subscription_gate_matches_whole_path_segments(client):
    app.state.subscription = SubscriptionStatus(clinic_id="clinic_x", valid=False, reason="Subscription expired")

    assert client.get("/healthz").status_code == 402
    assert client.get("/syncanything").status_code == 402
    assert client.get("/sync/status").status_code == 200
