"""
Supplier Account Updater
Keeps supplier running totals in step with terminal purchase order events
"""
from typing import Optional
from decimal import Decimal
from sqlalchemy.orm import Session
import logging

from inventory_app.core.exceptions import NotFoundError
from inventory_app.models.purchase import PurchaseOrder
from inventory_app.models.supplier import Supplier
from inventory_app.schemas.purchase import PaymentStatus, PurchaseOrderStatus

logger = logging.getLogger("inventory.business")


def is_settled(payment_status: str) -> bool:
    """Only a fully paid order is off the supplier balance"""
    return payment_status == PaymentStatus.PAID.value


class SupplierAccountUpdater:
    """
    Applies purchase order deltas to supplier aggregates

    Callers hold the purchase order (and, for receipts, its products)
    before calling in, so the supplier row is always locked last.
    """

    def __init__(self, db: Session):
        self.db = db

    def on_purchase_received(self, po: PurchaseOrder) -> Supplier:
        supplier = self._lock_supplier(po.supplier_id)
        grand_total = Decimal(po.grand_total or 0)

        supplier.total_orders = (supplier.total_orders or 0) + 1
        supplier.total_purchase_amount = Decimal(supplier.total_purchase_amount or 0) + grand_total
        if supplier.last_order_date is None or po.order_date > supplier.last_order_date:
            supplier.last_order_date = po.order_date
        if not is_settled(po.payment_status):
            supplier.current_balance = Decimal(supplier.current_balance or 0) + grand_total

        logger.info(
            f"Supplier {supplier.id} credited with {po.purchase_order_number}: "
            f"orders={supplier.total_orders} purchased={supplier.total_purchase_amount} "
            f"balance={supplier.current_balance}"
        )
        return supplier

    def on_payment_status_changed(self, po: PurchaseOrder, from_status: str,
                                  to_status: str) -> Optional[Supplier]:
        """
        Move the order's grand total on or off the supplier balance

        The balance only carries received orders, so nothing moves before
        the order is received. partially_paid counts as unpaid.
        """
        if po.status != PurchaseOrderStatus.RECEIVED.value:
            return None
        was_settled = is_settled(from_status)
        now_settled = is_settled(to_status)
        if was_settled == now_settled:
            return None

        supplier = self._lock_supplier(po.supplier_id)
        grand_total = Decimal(po.grand_total or 0)
        balance = Decimal(supplier.current_balance or 0)
        supplier.current_balance = balance - grand_total if now_settled else balance + grand_total

        logger.info(
            f"Supplier {supplier.id} balance {balance} -> {supplier.current_balance} "
            f"({po.purchase_order_number} {from_status} -> {to_status})"
        )
        return supplier

    def _lock_supplier(self, supplier_id: int) -> Supplier:
        supplier = (
            self.db.query(Supplier)
            .filter(Supplier.id == supplier_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not supplier:
            raise NotFoundError(f"Supplier {supplier_id} not found", field="supplierId")
        return supplier
