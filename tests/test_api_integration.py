"""
Integration tests for the purchasing API
Full purchase order lifecycle over HTTP, camelCase bodies and error shapes
"""

import pytest
from fastapi.testclient import TestClient

from inventory_app.core.exceptions import ConflictError
from inventory_app.services.purchasing import PurchaseOrderService

API = "/api"
BUYER = {"X-User": "dana"}


@pytest.fixture
def order_body(supplier, products):
    return {
        "supplierId": supplier.id,
        "status": "pending",
        "items": [{"productId": products[0].id, "quantity": 10, "unitPrice": 5.00}],
    }


@pytest.fixture
def created_order(client: TestClient, order_body):
    response = client.post(f"{API}/purchases", json=order_body, headers=BUYER)
    assert response.status_code == 201
    return response.json()


class TestSystemEndpoints:
    """Health and info"""

    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {"status", "version", "database", "debug"}
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    def test_info(self, client: TestClient):
        data = client.get("/info").json()

        assert data["api_prefix"] == API
        assert "Purchase Order Lifecycle" in data["features"]


class TestPurchaseOrderLifecycle:
    """Create, approve, order, receive in parts and pay"""

    def test_full_lifecycle(self, client: TestClient, created_order, supplier, products):
        widget = products[0]
        po_id = created_order["id"]
        item_id = created_order["items"][0]["id"]

        # Created pending with a number and totals
        assert created_order["grandTotal"] == 50.0
        assert created_order["items"][0]["receivedQuantity"] == 0
        assert created_order["items"][0]["unit"] == "pcs"
        assert created_order["purchaseOrderNumber"].startswith("PO-")
        assert created_order["createdBy"] == "dana"
        assert created_order["paymentTerms"] == "net_45"

        # Approve and order
        approved = client.patch(f"{API}/purchases/{po_id}/status", json={"status": "approved"}, headers=BUYER)
        assert approved.status_code == 200
        assert approved.json()["approvedAt"] is not None
        assert approved.json()["approvedBy"] == "dana"

        ordered = client.patch(f"{API}/purchases/{po_id}/status", json={"status": "ordered"})
        assert ordered.json()["status"] == "ordered"
        assert client.get(f"{API}/products/{widget.id}").json()["currentStock"] == 20

        # First partial receipt
        response = client.patch(
            f"{API}/purchases/{po_id}/receive",
            json={"receivedItems": [{"itemId": item_id, "quantity": 4}]},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "partially_received"
        assert body["items"][0]["receivedQuantity"] == 4
        assert client.get(f"{API}/products/{widget.id}").json()["currentStock"] == 24

        movements = client.get(f"{API}/purchases/{po_id}/movements").json()
        assert len(movements) == 1
        assert movements[0]["previousStock"] == 20
        assert movements[0]["newStock"] == 24
        assert movements[0]["referenceNumber"] == created_order["purchaseOrderNumber"]

        # Over-receipt is rejected without side effects
        response = client.patch(
            f"{API}/purchases/{po_id}/receive",
            json={"receivedItems": [{"itemId": item_id, "quantity": 7}]},
        )
        assert response.status_code == 400
        error = response.json()
        assert error["error"] == "INVALID"
        assert error["code"] == "OVER_RECEIPT"
        assert error["detail"] == {"itemId": item_id, "remaining": 6, "requested": 7}
        assert "receivedItems.0.quantity" in error["fieldErrors"]
        assert client.get(f"{API}/purchases/{po_id}").json()["items"][0]["receivedQuantity"] == 4
        assert client.get(f"{API}/products/{widget.id}").json()["currentStock"] == 24

        # Final receipt completes the order and credits the supplier
        response = client.patch(
            f"{API}/purchases/{po_id}/receive",
            json={"receivedItems": [{"itemId": item_id, "quantity": 6}]},
        )
        body = response.json()
        assert body["status"] == "received"
        assert body["items"][0]["receivedQuantity"] == 10
        assert body["actualDeliveryDate"] is not None

        account = client.get(f"{API}/suppliers/{supplier.id}").json()
        assert account["totalOrders"] == 1
        assert account["totalPurchaseAmount"] == 50.0
        assert account["currentBalance"] == 50.0

        # Paying settles the balance, reverting restores it
        paid = client.patch(f"{API}/purchases/{po_id}/payment",
                            json={"paymentStatus": "paid", "paymentMethod": "bank_transfer"})
        assert paid.json()["paymentStatus"] == "paid"
        assert client.get(f"{API}/suppliers/{supplier.id}").json()["currentBalance"] == 0.0

        client.patch(f"{API}/purchases/{po_id}/payment", json={"paymentStatus": "unpaid"})
        assert client.get(f"{API}/suppliers/{supplier.id}").json()["currentBalance"] == 50.0

    def test_received_order_rejects_further_receipts(self, client: TestClient, created_order):
        po_id = created_order["id"]
        item_id = created_order["items"][0]["id"]
        client.patch(f"{API}/purchases/{po_id}/status", json={"status": "approved"})
        client.patch(f"{API}/purchases/{po_id}/receive",
                     json={"receivedItems": [{"itemId": item_id, "quantity": 10}]})

        response = client.patch(f"{API}/purchases/{po_id}/receive",
                                json={"receivedItems": [{"itemId": item_id, "quantity": 1}]})

        assert response.status_code == 403
        assert response.json()["code"] == "PO_NOT_RECEIVABLE"

    def test_receipt_request_key_replay(self, client: TestClient, created_order, products):
        po_id = created_order["id"]
        item_id = created_order["items"][0]["id"]
        client.patch(f"{API}/purchases/{po_id}/status", json={"status": "approved"})
        receipt = {"receivedItems": [{"itemId": item_id, "quantity": 3}], "requestKey": "dock-7-0001"}

        first = client.patch(f"{API}/purchases/{po_id}/receive", json=receipt)
        second = client.patch(f"{API}/purchases/{po_id}/receive", json=receipt)

        assert first.status_code == second.status_code == 200
        assert second.json()["items"][0]["receivedQuantity"] == 3
        assert client.get(f"{API}/products/{products[0].id}").json()["currentStock"] == 23


class TestPurchaseOrderErrors:
    """Error kinds and body shape"""

    def test_not_found(self, client: TestClient):
        response = client.get(f"{API}/purchases/9999")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "NOT_FOUND"
        assert "id" in body["fieldErrors"]

    def test_unknown_supplier(self, client: TestClient, order_body):
        order_body["supplierId"] = 9999

        response = client.post(f"{API}/purchases", json=order_body)

        assert response.status_code == 404
        assert "supplierId" in response.json()["fieldErrors"]

    def test_invalid_body_reports_dotted_paths(self, client: TestClient, order_body):
        order_body["items"][0]["quantity"] = 0

        response = client.post(f"{API}/purchases", json=order_body)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "INVALID"
        assert "items.0.quantity" in body["fieldErrors"]

    def test_pending_without_items(self, client: TestClient, order_body):
        order_body["items"] = []

        response = client.post(f"{API}/purchases", json=order_body)

        assert response.status_code == 400
        assert response.json()["code"] == "ITEMS_REQUIRED"

    def test_unknown_status_value(self, client: TestClient, created_order):
        response = client.patch(f"{API}/purchases/{created_order['id']}/status", json={"status": "shipped"})

        assert response.status_code == 400
        assert "status" in response.json()["fieldErrors"]

    def test_illegal_transition(self, client: TestClient, created_order):
        response = client.patch(f"{API}/purchases/{created_order['id']}/status", json={"status": "ordered"})

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "FORBIDDEN"
        assert body["code"] == "ILLEGAL_TRANSITION"
        assert body["detail"] == {"from": "pending", "to": "ordered"}

    def test_receipt_status_not_settable(self, client: TestClient, created_order):
        response = client.patch(f"{API}/purchases/{created_order['id']}/status", json={"status": "received"})

        assert response.status_code == 403
        assert response.json()["code"] == "RECEIPT_ONLY_STATUS"

    def test_update_frozen_after_approval(self, client: TestClient, created_order):
        po_id = created_order["id"]
        client.patch(f"{API}/purchases/{po_id}/status", json={"status": "approved"})

        response = client.put(f"{API}/purchases/{po_id}", json={"shippingCost": 12.5})

        assert response.status_code == 403
        assert response.json()["code"] == "PO_FROZEN"

        notes = client.put(f"{API}/purchases/{po_id}", json={"notes": "Call before delivery"})
        assert notes.status_code == 200
        assert notes.json()["notes"] == "Call before delivery"

    def test_version_race_reaches_caller_as_conflict(self, client: TestClient, created_order, monkeypatch):
        def lost_race(self, *args, **kwargs):
            raise ConflictError("The record was modified by another request, please retry",
                                code="CONCURRENT_MODIFICATION")

        monkeypatch.setattr(PurchaseOrderService, "update_payment", lost_race)

        response = client.patch(f"{API}/purchases/{created_order['id']}/payment", json={"paymentStatus": "paid"})

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "CONFLICT"
        assert body["code"] == "CONCURRENT_MODIFICATION"

    def test_delete_non_draft_forbidden(self, client: TestClient, created_order):
        response = client.delete(f"{API}/purchases/{created_order['id']}")

        assert response.status_code == 403
        assert response.json()["code"] == "PO_NOT_DRAFT"

    def test_delete_draft(self, client: TestClient, order_body):
        order_body["status"] = "draft"
        po_id = client.post(f"{API}/purchases", json=order_body).json()["id"]

        response = client.delete(f"{API}/purchases/{po_id}")

        assert response.status_code == 204
        assert client.get(f"{API}/purchases/{po_id}").status_code == 404


class TestPurchaseOrderQueries:
    """Listing and lookups"""

    def test_list_with_filters(self, client: TestClient, order_body):
        client.post(f"{API}/purchases", json=order_body)
        client.post(f"{API}/purchases", json=dict(order_body, status="draft"))

        everything = client.get(f"{API}/purchases").json()
        assert everything["total"] == 2
        assert everything["page"] == 1
        assert everything["totalPages"] == 1

        drafts = client.get(f"{API}/purchases", params={"status": "draft"}).json()
        assert drafts["total"] == 1
        assert drafts["orders"][0]["status"] == "draft"

        by_supplier = client.get(f"{API}/purchases", params={"search": "acme"}).json()
        assert by_supplier["total"] == 2

        paged = client.get(f"{API}/purchases", params={"limit": 1, "page": 2}).json()
        assert len(paged["orders"]) == 1
        assert paged["totalPages"] == 2

    def test_list_rejects_oversized_page(self, client: TestClient):
        response = client.get(f"{API}/purchases", params={"limit": 500})

        assert response.status_code == 400
        assert "limit" in response.json()["fieldErrors"]

    def test_lookup_by_number(self, client: TestClient, created_order):
        number = created_order["purchaseOrderNumber"]

        response = client.get(f"{API}/purchases/number/{number}")

        assert response.status_code == 200
        assert response.json()["id"] == created_order["id"]
        assert client.get(f"{API}/purchases/number/PO-000000-00000").status_code == 404

    def test_money_is_numeric(self, client: TestClient, created_order):
        assert isinstance(created_order["subtotal"], float)
        assert isinstance(created_order["items"][0]["unitPrice"], float)


class TestProductAndSupplierEndpoints:
    """Read side of stock and supplier accounts"""

    def test_product_stock(self, client: TestClient, products):
        body = client.get(f"{API}/products/{products[1].id}").json()

        assert body["sku"] == "GAD-001"
        assert body["currentStock"] == 5
        assert body["stockStatus"] == "in_stock"
        assert body["locationStock"] == []

    def test_product_movements(self, client: TestClient, products):
        movements = client.get(f"{API}/products/{products[0].id}/movements").json()

        assert len(movements) == 1
        assert movements[0]["reason"] == "opening_stock"
        assert movements[0]["stockDelta"] == 20

    def test_unknown_product(self, client: TestClient):
        assert client.get(f"{API}/products/9999").status_code == 404

    def test_supplier(self, client: TestClient, supplier):
        body = client.get(f"{API}/suppliers/{supplier.id}").json()

        assert body["name"] == "Acme Supplies"
        assert body["totalOrders"] == 0
        assert body["currentBalance"] == 0.0

    def test_unknown_supplier(self, client: TestClient):
        response = client.get(f"{API}/suppliers/9999")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"
