"""
Purchase Order State Machine
Gates status changes and applies their side effects
"""
from typing import Dict, Optional, Set
from datetime import datetime, timezone
from sqlalchemy.orm import Session
import logging

from inventory_app.core.config import settings
from inventory_app.core.exceptions import (
    ForbiddenOperationError, IllegalTransitionError,
    InvariantViolationError, ValidationError
)
from inventory_app.models.purchase import PurchaseOrder
from inventory_app.schemas.purchase import PurchaseOrderStatus
from .supplier_account import SupplierAccountUpdater

logger = logging.getLogger("inventory.business")

DRAFT = PurchaseOrderStatus.DRAFT.value
PENDING = PurchaseOrderStatus.PENDING.value
APPROVED = PurchaseOrderStatus.APPROVED.value
ORDERED = PurchaseOrderStatus.ORDERED.value
PARTIALLY_RECEIVED = PurchaseOrderStatus.PARTIALLY_RECEIVED.value
RECEIVED = PurchaseOrderStatus.RECEIVED.value
CANCELLED = PurchaseOrderStatus.CANCELLED.value

INITIAL_STATUSES = {DRAFT, PENDING}
EDITABLE_STATUSES = {DRAFT, PENDING, APPROVED}
RECEIVABLE_STATUSES = {APPROVED, ORDERED, PARTIALLY_RECEIVED}
TERMINAL_STATUSES = {RECEIVED, CANCELLED}

# Statuses only the receipt engine may produce
RECEIPT_STATUSES = {PARTIALLY_RECEIVED, RECEIVED}

ALLOWED_TRANSITIONS: Dict[str, Set[str]] = {
    DRAFT: {PENDING, CANCELLED},
    PENDING: {APPROVED, CANCELLED},
    APPROVED: {ORDERED, PARTIALLY_RECEIVED, RECEIVED, CANCELLED},
    ORDERED: {PARTIALLY_RECEIVED, RECEIVED, CANCELLED},
    PARTIALLY_RECEIVED: {PARTIALLY_RECEIVED, RECEIVED, CANCELLED},
    RECEIVED: set(),
    CANCELLED: set(),
}


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


class PurchaseOrderStateMachine:
    """
    Purchase order lifecycle

    draft -> pending -> approved -> ordered -> [partially_received]* -> received,
    with cancellation from any non-terminal status. Does not commit.
    """

    def __init__(self, db: Session, actor: Optional[str] = None,
                 supplier_updater: Optional[SupplierAccountUpdater] = None):
        self.db = db
        self.actor = actor or settings.DEFAULT_ACTOR
        self.supplier_updater = supplier_updater or SupplierAccountUpdater(db)

    def transition(self, po: PurchaseOrder, target: str) -> PurchaseOrder:
        """Apply a direct status change requested by a caller"""
        if target in RECEIPT_STATUSES:
            raise ForbiddenOperationError(
                f"Status {target} is set by receiving goods, not directly",
                code="RECEIPT_ONLY_STATUS",
                field="status",
                detail={"from": po.status, "to": target},
            )
        return self._apply(po, target)

    def advance_after_receipt(self, po: PurchaseOrder) -> PurchaseOrder:
        """Move a purchase order to partially_received or received from its item totals"""
        total_ordered = po.total_ordered
        total_received = po.total_received

        if total_received > total_ordered:
            raise InvariantViolationError(
                f"Purchase order {po.id} received {total_received} of {total_ordered} ordered units",
                code="RECEIVED_EXCEEDS_ORDERED",
                detail={"purchaseId": po.id, "ordered": total_ordered, "received": total_received},
            )
        if total_received == 0:
            return po

        target = RECEIVED if total_received == total_ordered else PARTIALLY_RECEIVED
        return self._apply(po, target)

    def _apply(self, po: PurchaseOrder, target: str) -> PurchaseOrder:
        current = po.status
        if not can_transition(current, target):
            logger.warning(f"Rejected status change {current} -> {target} on purchase order {po.id}")
            raise IllegalTransitionError(current, target)

        now = datetime.now(timezone.utc)

        if target == PENDING and not po.items:
            raise ValidationError(
                "A purchase order needs at least one item before it can be submitted",
                code="ITEMS_REQUIRED",
                field="items",
            )
        if target == APPROVED:
            po.approved_at = now
            po.approved_by = self.actor
        if target == RECEIVED:
            if po.actual_delivery_date is None:
                po.actual_delivery_date = now
            self.supplier_updater.on_purchase_received(po)

        po.status = target
        po.updated_at = now

        if current != target:
            logger.info(
                f"Purchase order {po.purchase_order_number} status {current} -> {target} by {self.actor}"
            )
        return po
