"""
Tests for the Purchase Order State Machine
Legal transitions, side effects and rejected status changes
"""

import pytest
from sqlalchemy.orm import Session

from inventory_app.core.exceptions import (
    ForbiddenOperationError, IllegalTransitionError, ValidationError
)
from inventory_app.models import Product, PurchaseOrder, StockMovement
from inventory_app.services.purchasing import GoodsReceiptService, PurchaseOrderService
from inventory_app.services.purchasing.state_machine import can_transition


@pytest.mark.parametrize("from_status,to_status,allowed", [
    ("draft", "pending", True),
    ("draft", "cancelled", True),
    ("draft", "approved", False),
    ("pending", "approved", True),
    ("pending", "cancelled", True),
    ("pending", "ordered", False),
    ("approved", "ordered", True),
    ("approved", "received", True),
    ("approved", "pending", False),
    ("ordered", "partially_received", True),
    ("ordered", "cancelled", True),
    ("ordered", "approved", False),
    ("partially_received", "partially_received", True),
    ("partially_received", "received", True),
    ("partially_received", "cancelled", True),
    ("received", "cancelled", False),
    ("received", "partially_received", False),
    ("cancelled", "pending", False),
    ("cancelled", "cancelled", False),
])
def test_transition_table(from_status, to_status, allowed):
    assert can_transition(from_status, to_status) is allowed


class TestDirectTransitions:
    """Status endpoint transitions"""

    def test_happy_path_to_ordered(self, db_session: Session, po_service: PurchaseOrderService, po_data, products):
        """pending -> approved -> ordered sets approval fields and leaves stock alone"""
        po = po_service.create_purchase_order(po_data)
        assert po.approved_at is None

        approved = po_service.change_status(po.id, "approved")
        assert approved.status == "approved"
        assert approved.approved_at is not None
        assert approved.approved_by == "buyer"

        ordered = po_service.change_status(po.id, "ordered")
        assert ordered.status == "ordered"

        assert db_session.query(StockMovement).filter(StockMovement.reference_type == "purchase").count() == 0
        assert db_session.get(Product, products[0].id).current_stock == 20

    def test_draft_to_pending_requires_items(self, po_service: PurchaseOrderService, supplier):
        po = po_service.create_purchase_order({"supplier_id": supplier.id})

        with pytest.raises(ValidationError) as exc_info:
            po_service.change_status(po.id, "pending")

        assert exc_info.value.code == "ITEMS_REQUIRED"

    def test_illegal_transition_reports_pair(self, db_session: Session, po_service: PurchaseOrderService, po_data):
        po_data["status"] = "draft"
        po = po_service.create_purchase_order(po_data)

        with pytest.raises(IllegalTransitionError) as exc_info:
            po_service.change_status(po.id, "ordered")

        assert exc_info.value.kind == "FORBIDDEN"
        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == {"from": "draft", "to": "ordered"}
        db_session.refresh(po)
        assert po.status == "draft"

    @pytest.mark.parametrize("target", ["partially_received", "received"])
    def test_receipt_statuses_not_directly_reachable(self, po_service: PurchaseOrderService, ordered_po, target):
        with pytest.raises(ForbiddenOperationError) as exc_info:
            po_service.change_status(ordered_po.id, target)

        assert not isinstance(exc_info.value, IllegalTransitionError)
        assert exc_info.value.code == "RECEIPT_ONLY_STATUS"

    def test_unknown_status_rejected(self, po_service: PurchaseOrderService, ordered_po):
        with pytest.raises(ValidationError):
            po_service.change_status(ordered_po.id, "shipped")

    def test_same_transition_twice(self, db_session: Session, po_service: PurchaseOrderService, po_data):
        """Repeating a transition fails and leaves the order as it was"""
        po = po_service.create_purchase_order(po_data)
        po_service.change_status(po.id, "approved")
        approved_at = db_session.get(PurchaseOrder, po.id).approved_at

        with pytest.raises(IllegalTransitionError):
            po_service.change_status(po.id, "approved")

        db_session.refresh(po)
        assert po.status == "approved"
        assert po.approved_at == approved_at

    def test_cancel_twice(self, po_service: PurchaseOrderService, ordered_po):
        po_service.change_status(ordered_po.id, "cancelled")

        with pytest.raises(IllegalTransitionError) as exc_info:
            po_service.change_status(ordered_po.id, "cancelled")

        assert exc_info.value.detail == {"from": "cancelled", "to": "cancelled"}


class TestCancellation:
    """Cancelling open and partially received orders"""

    def test_cancel_after_partial_receipt_keeps_stock(self, db_session: Session, po_service: PurchaseOrderService,
                                                      receipt_service: GoodsReceiptService, ordered_po, products,
                                                      supplier):
        widget_item = ordered_po.items[0]
        receipt_service.receive(ordered_po.id, [{"item_id": widget_item.id, "quantity": 4}])

        cancelled = po_service.change_status(ordered_po.id, "cancelled")

        assert cancelled.status == "cancelled"
        assert db_session.get(Product, products[0].id).current_stock == 24
        db_session.refresh(supplier)
        assert supplier.total_orders == 0

        with pytest.raises(ForbiddenOperationError) as exc_info:
            receipt_service.receive(ordered_po.id, [{"item_id": widget_item.id, "quantity": 1}])
        assert exc_info.value.code == "PO_NOT_RECEIVABLE"
        assert db_session.get(Product, products[0].id).current_stock == 24

    def test_received_order_cannot_be_cancelled(self, po_service: PurchaseOrderService,
                                                receipt_service: GoodsReceiptService, ordered_po):
        receipt_service.receive(ordered_po.id, [
            {"item_id": item.id, "quantity": item.quantity} for item in ordered_po.items
        ])

        with pytest.raises(IllegalTransitionError):
            po_service.change_status(ordered_po.id, "cancelled")

    def test_cancelled_order_is_frozen(self, po_service: PurchaseOrderService, po_data):
        po = po_service.create_purchase_order(po_data)
        po_service.change_status(po.id, "cancelled")

        with pytest.raises(ForbiddenOperationError):
            po_service.update_purchase_order(po.id, {"notes": "reopen"})
        with pytest.raises(ForbiddenOperationError):
            po_service.update_payment(po.id, "paid")
