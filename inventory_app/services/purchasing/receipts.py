"""
Goods Receipt Service
Applies partial receipts to purchase orders and posts the stock they bring in
"""
from typing import Dict, List, Optional
from datetime import datetime, timezone
from contextlib import ExitStack
from sqlalchemy.orm import Session
import logging

from inventory_app.core.config import settings
from inventory_app.core.database import transaction
from inventory_app.core.exceptions import (
    ConflictError, ForbiddenOperationError, NotFoundError, ValidationError
)
from inventory_app.core.locks import resource_locks, purchase_key, product_keys, supplier_key
from inventory_app.models.purchase import PurchaseOrder, PurchaseReceipt
from inventory_app.models.stock import Product
from inventory_app.schemas.stock import MovementReason, MovementType
from inventory_app.services.audit import log_user_action
from inventory_app.services.stock.stock_poster import StockPoster
from .purchase_orders import PURCHASE_REFERENCE, lock_purchase_order
from .state_machine import RECEIVABLE_STATUSES, RECEIVED, PurchaseOrderStateMachine
from .supplier_account import SupplierAccountUpdater

logger = logging.getLogger("inventory.business")


class GoodsReceiptService:
    """
    Receipt engine

    One receipt is one transaction: every accepted line raises its item's
    received quantity and posts an inbound purchase movement, then the
    order advances to partially_received or received. Any failure leaves
    the order, its products and the supplier untouched.
    """

    def __init__(self, db: Session, actor: Optional[str] = None):
        self.db = db
        self.actor = actor or settings.DEFAULT_ACTOR
        self.stock_poster = StockPoster(db, self.actor)
        self.state_machine = PurchaseOrderStateMachine(db, self.actor, SupplierAccountUpdater(db))

    def receive(self, po_id: int, lines: List[Dict], request_key: Optional[str] = None) -> PurchaseOrder:
        """
        Receive goods against a purchase order

        lines: [{'item_id': ..., 'quantity': ...}]. Zero-quantity lines are
        ignored, repeated item ids are summed. A request_key already applied
        to this order returns the order as it stands.
        """
        with ExitStack() as held:
            held.enter_context(resource_locks.hold([purchase_key(po_id)]))
            with transaction(self.db):
                po = lock_purchase_order(self.db, po_id)

                if request_key:
                    previous = (
                        self.db.query(PurchaseReceipt)
                        .filter(PurchaseReceipt.request_key == request_key)
                        .first()
                    )
                    if previous and previous.purchase_id == po.id:
                        logger.info(
                            f"Receipt {request_key} already applied to {po.purchase_order_number}"
                        )
                        return po
                    if previous:
                        raise ConflictError(
                            f"Request key {request_key} was used for another purchase order",
                            code="REQUEST_KEY_REUSED",
                            field="requestKey",
                        )

                if po.status not in RECEIVABLE_STATUSES:
                    raise ForbiddenOperationError(
                        f"Purchase order {po.purchase_order_number} is {po.status} and cannot receive goods",
                        code="PO_NOT_RECEIVABLE",
                        detail={"status": po.status},
                    )

                requested = self._normalize_lines(lines)
                accepted = self._match_items(po, requested)

                held.enter_context(resource_locks.hold(product_keys(item.product_id for item, _ in accepted)))
                self._lock_products(sorted({item.product_id for item, _ in accepted}))

                for item, quantity in accepted:
                    item.received_quantity += quantity
                    self.stock_poster.post({
                        'product_id': item.product_id,
                        'movement_type': MovementType.IN,
                        'reason': MovementReason.PURCHASE,
                        'quantity': quantity,
                        'unit_cost': item.unit_price,
                        'reference_type': PURCHASE_REFERENCE,
                        'reference_id': po.id,
                        'reference_number': po.purchase_order_number,
                        'item_id': item.id,
                        'performed_by': self.actor,
                    })

                old_status = po.status
                if po.total_received == po.total_ordered:
                    held.enter_context(resource_locks.hold([supplier_key(po.supplier_id)]))
                self.state_machine.advance_after_receipt(po)

                now = datetime.now(timezone.utc)
                received_units = sum(quantity for _, quantity in accepted)
                self.db.add(PurchaseReceipt(
                    purchase_id=po.id,
                    request_key=request_key,
                    total_quantity=received_units,
                    received_by=self.actor,
                    received_at=now,
                ))
                po.updated_at = now

                log_user_action(
                    self.db, self.actor, "RECEIVE_PO",
                    table="purchase_orders",
                    key=po.purchase_order_number,
                    old_values={"status": old_status},
                    new_values={
                        "status": po.status,
                        "received": {str(item.id): quantity for item, quantity in accepted},
                    },
                    module="PO"
                )

        logger.info(
            f"Received {received_units} units on {po.purchase_order_number}: "
            f"{po.total_received}/{po.total_ordered}, status {po.status}"
        )
        if po.status == RECEIVED:
            logger.info(f"Purchase order {po.purchase_order_number} fully received")
        return po

    @staticmethod
    def _normalize_lines(lines: List[Dict]) -> Dict[int, Dict]:
        """Merge lines by item id, keeping the first position for error paths"""
        if not lines:
            raise ValidationError("receivedItems must contain at least one line", field="receivedItems")

        requested: Dict[int, Dict] = {}
        for index, line in enumerate(lines):
            item_id = line.get('item_id')
            if item_id is None:
                raise ValidationError("itemId is required", field=f"receivedItems.{index}.itemId")
            quantity = line.get('quantity')
            if isinstance(quantity, bool) or not isinstance(quantity, int):
                raise ValidationError(
                    "quantity must be a whole number",
                    field=f"receivedItems.{index}.quantity",
                )
            if quantity < 0:
                raise ValidationError(
                    "quantity cannot be negative",
                    field=f"receivedItems.{index}.quantity",
                )
            if quantity == 0:
                continue
            entry = requested.setdefault(item_id, {"index": index, "quantity": 0})
            entry["quantity"] += quantity

        if not requested:
            raise ValidationError(
                "At least one received line must have a quantity greater than zero",
                code="EMPTY_RECEIPT",
                field="receivedItems",
            )
        return requested

    @staticmethod
    def _match_items(po: PurchaseOrder, requested: Dict[int, Dict]) -> List:
        """Resolve requested lines against the order, in item order"""
        items_by_id = {item.id: item for item in po.items}

        for item_id, entry in requested.items():
            item = items_by_id.get(item_id)
            if item is None:
                raise NotFoundError(
                    f"Item {item_id} not found on purchase order {po.purchase_order_number}",
                    field=f"receivedItems.{entry['index']}.itemId",
                    detail={"itemId": item_id},
                )
            remaining = item.quantity - item.received_quantity
            if entry["quantity"] > remaining:
                raise ValidationError(
                    f"Quantity exceeds remaining quantity for item {item_id}. Remaining: {remaining}",
                    code="OVER_RECEIPT",
                    field=f"receivedItems.{entry['index']}.quantity",
                    detail={"itemId": item_id, "remaining": remaining, "requested": entry["quantity"]},
                )

        return [(item, requested[item.id]["quantity"]) for item in po.items if item.id in requested]

    def _lock_products(self, product_ids: List[int]) -> None:
        """Row-lock the products of a receipt in ascending id order"""
        (
            self.db.query(Product)
            .filter(Product.id.in_(product_ids))
            .order_by(Product.id)
            .with_for_update()
            .populate_existing()
            .all()
        )
