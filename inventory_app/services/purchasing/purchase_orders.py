"""
Purchase Order Service
Creation, maintenance and lifecycle entry points for purchase orders
"""
from typing import Any, Dict, List, Optional, Tuple
from decimal import Decimal
from datetime import date, datetime, timezone
from contextlib import ExitStack
from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, or_, select
import logging

from inventory_app.core.config import settings
from inventory_app.core.database import transaction
from inventory_app.core.exceptions import (
    ForbiddenOperationError, NotFoundError, ValidationError
)
from inventory_app.core.locks import resource_locks, purchase_key, supplier_key
from inventory_app.models.purchase import PurchaseOrder, PurchaseItem
from inventory_app.models.stock import Product, StockMovement
from inventory_app.models.supplier import Supplier
from inventory_app.schemas.purchase import (
    PaymentMethod, PaymentStatus, PaymentTerms, PurchaseOrderStatus
)
from inventory_app.services.audit import log_user_action
from inventory_app.services.validation import (
    ZERO, check_notes, enum_value, line_total, quantize,
    require_choice, require_quantity, to_money
)
from .numbering import PONumberAllocator, period_for, sequence_key
from .state_machine import (
    APPROVED, CANCELLED, DRAFT, EDITABLE_STATUSES, INITIAL_STATUSES,
    PurchaseOrderStateMachine
)
from .supplier_account import SupplierAccountUpdater

logger = logging.getLogger("inventory.business")

PURCHASE_REFERENCE = "purchase"

# Fields that may no longer change once a purchase order is approved
FROZEN_AFTER_APPROVAL = {
    "supplier_id": "supplierId",
    "items": "items",
    "order_date": "orderDate",
    "shipping_cost": "shippingCost",
}

SORT_COLUMNS = {
    "orderDate": PurchaseOrder.order_date,
    "purchaseOrderNumber": PurchaseOrder.purchase_order_number,
    "grandTotal": PurchaseOrder.grand_total,
    "status": PurchaseOrder.status,
    "paymentStatus": PurchaseOrder.payment_status,
    "createdAt": PurchaseOrder.created_at,
}


def lock_purchase_order(db: Session, po_id: int) -> PurchaseOrder:
    """Load a purchase order for update, refreshing any stale copy in the session"""
    po = (
        db.query(PurchaseOrder)
        .filter(PurchaseOrder.id == po_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not po:
        raise NotFoundError(f"Purchase order {po_id} not found", field="id")
    return po


def like_pattern(term: str) -> str:
    """Substring pattern with LIKE wildcards in the term matched literally"""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def recalculate_totals(po: PurchaseOrder) -> PurchaseOrder:
    """Derive line and header totals from the items and shipping cost"""
    subtotal = ZERO
    total_discount = ZERO
    total_tax = ZERO
    for item in po.items:
        unit_price = Decimal(item.unit_price)
        discount = Decimal(item.discount or 0)
        tax = Decimal(item.tax or 0)
        item.total_price = line_total(item.quantity, unit_price, discount, tax)
        subtotal += item.quantity * unit_price
        total_discount += discount
        total_tax += tax

    shipping_cost = Decimal(po.shipping_cost or 0)
    po.subtotal = quantize(subtotal)
    po.total_discount = quantize(total_discount)
    po.total_tax = quantize(total_tax)
    po.shipping_cost = quantize(shipping_cost)
    po.grand_total = max(quantize(subtotal - total_discount + total_tax + shipping_cost), ZERO)
    return po


def _item_signature(product_id: int, unit: Optional[str], quantity: int, unit_price: Any, discount: Any,
                    tax: Any) -> Tuple:
    return (product_id, unit, quantity, quantize(unit_price), quantize(discount or 0), quantize(tax or 0))


class PurchaseOrderService:
    """
    Purchase order aggregate

    Every mutating call runs in one transaction under the purchase order
    lock and commits before returning.
    """

    def __init__(self, db: Session, actor: Optional[str] = None):
        self.db = db
        self.actor = actor or settings.DEFAULT_ACTOR
        self.allocator = PONumberAllocator(db)
        self.supplier_updater = SupplierAccountUpdater(db)
        self.state_machine = PurchaseOrderStateMachine(db, self.actor, self.supplier_updater)

    # Reads

    def get_purchase_order(self, po_id: int) -> Optional[PurchaseOrder]:
        return self.db.get(PurchaseOrder, po_id)

    def get_by_number(self, purchase_order_number: str) -> Optional[PurchaseOrder]:
        return (
            self.db.query(PurchaseOrder)
            .filter(PurchaseOrder.purchase_order_number == purchase_order_number)
            .first()
        )

    def list_purchase_orders(
        self,
        filters: Optional[Dict] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: str = "desc"
    ) -> Tuple[List[PurchaseOrder], int]:
        """
        Filtered, sorted, paged purchase orders

        Returns (orders, total matching count)
        """
        filters = filters or {}
        query = self.db.query(PurchaseOrder)

        if filters.get('status'):
            query = query.filter(PurchaseOrder.status == require_choice(filters['status'], PurchaseOrderStatus, "status"))
        if filters.get('supplier_id'):
            query = query.filter(PurchaseOrder.supplier_id == filters['supplier_id'])
        if filters.get('payment_status'):
            query = query.filter(PurchaseOrder.payment_status == require_choice(
                filters['payment_status'], PaymentStatus, "paymentStatus"
            ))
        if filters.get('start_date'):
            query = query.filter(PurchaseOrder.order_date >= filters['start_date'])
        if filters.get('end_date'):
            query = query.filter(PurchaseOrder.order_date <= filters['end_date'])
        if filters.get('min_amount') is not None:
            query = query.filter(PurchaseOrder.grand_total >= filters['min_amount'])
        if filters.get('max_amount') is not None:
            query = query.filter(PurchaseOrder.grand_total <= filters['max_amount'])
        if filters.get('search'):
            pattern = like_pattern(filters['search'])
            matching_suppliers = select(Supplier.id).where(or_(
                Supplier.name.ilike(pattern, escape="\\"),
                Supplier.email.ilike(pattern, escape="\\"),
                Supplier.phone.ilike(pattern, escape="\\"),
            ))
            query = query.filter(or_(
                PurchaseOrder.purchase_order_number.ilike(pattern, escape="\\"),
                PurchaseOrder.supplier_id.in_(matching_suppliers),
            ))

        total = query.count()

        sort_by = enum_value(sort_by)
        column = SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationError(f"Cannot sort by {sort_by}", field="sortBy")
        direction = asc if enum_value(sort_order) == "asc" else desc
        orders = (
            query.order_by(direction(column), direction(PurchaseOrder.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return orders, total

    def get_movements(self, po_id: int) -> List[StockMovement]:
        """Stock movements posted for a purchase order, oldest first"""
        if not self.get_purchase_order(po_id):
            raise NotFoundError(f"Purchase order {po_id} not found", field="id")
        return (
            self.db.query(StockMovement)
            .filter(
                StockMovement.reference_type == PURCHASE_REFERENCE,
                StockMovement.reference_id == po_id,
            )
            .order_by(StockMovement.id)
            .all()
        )

    # Mutations

    def create_purchase_order(self, po_data: Dict) -> PurchaseOrder:
        """Create a draft or pending purchase order and allocate its number"""
        status = require_choice(po_data.get('status') or DRAFT, PurchaseOrderStatus, "status")
        if status not in INITIAL_STATUSES:
            raise ValidationError(
                f"A purchase order must start as draft or pending, not {status}",
                code="INVALID_INITIAL_STATUS",
                field="status",
            )
        supplier_id = po_data.get('supplier_id')
        if supplier_id is None:
            raise ValidationError("supplierId is required", field="supplierId")

        lines = self._normalize_items(po_data.get('items') or [])
        if status != DRAFT and not lines:
            raise ValidationError(
                "A purchase order needs at least one item unless it is a draft",
                code="ITEMS_REQUIRED",
                field="items",
            )

        payment_status = require_choice(
            po_data.get('payment_status') or PaymentStatus.UNPAID, PaymentStatus, "paymentStatus"
        )
        payment_method = self._optional_choice(po_data.get('payment_method'), PaymentMethod, "paymentMethod")
        payment_terms = self._optional_choice(po_data.get('payment_terms'), PaymentTerms, "paymentTerms")
        shipping_cost = to_money(po_data.get('shipping_cost'), "shippingCost")
        notes = check_notes(po_data.get('notes'))
        order_date = po_data.get('order_date') or date.today()

        supplier = self.db.get(Supplier, supplier_id)
        if not supplier:
            raise NotFoundError(f"Supplier {supplier_id} not found", field="supplierId")
        products = self._load_products(lines)

        now = datetime.now(timezone.utc)
        with resource_locks.hold([sequence_key(period_for(now))]), transaction(self.db):
            po = PurchaseOrder(
                purchase_order_number=self.allocator.allocate(now),
                supplier_id=supplier.id,
                status=status,
                payment_status=payment_status,
                payment_method=payment_method,
                payment_terms=payment_terms or supplier.payment_terms or settings.DEFAULT_PAYMENT_TERMS,
                order_date=order_date,
                expected_delivery_date=po_data.get('expected_delivery_date'),
                shipping_cost=shipping_cost,
                notes=notes,
                created_by=self.actor,
                created_at=now,
                updated_at=now,
            )
            po.items = self._build_items(lines, products)
            recalculate_totals(po)
            self.db.add(po)
            self.db.flush()

            log_user_action(
                self.db, self.actor, "CREATE_PO",
                table="purchase_orders",
                key=po.purchase_order_number,
                new_values=self._snapshot(po),
                module="PO"
            )

        logger.info(
            f"Created purchase order {po.purchase_order_number} ({status}) "
            f"for supplier {supplier_id}, grand total {po.grand_total}"
        )
        return po

    def update_purchase_order(self, po_id: int, changes: Dict) -> PurchaseOrder:
        """
        Update an editable purchase order

        Only draft, pending and approved orders may change. Once approved,
        supplier, items, order date and shipping cost are frozen; sending
        them unchanged is accepted.
        """
        changes = {key: value for key, value in changes.items() if value is not None}
        for lifecycle_field, wire_name in (('status', 'status'), ('payment_status', 'paymentStatus')):
            if lifecycle_field in changes:
                raise ForbiddenOperationError(
                    f"{wire_name} cannot be changed through an update",
                    code="LIFECYCLE_FIELD",
                    field=wire_name,
                )

        lines = self._normalize_items(changes['items']) if 'items' in changes else None
        if 'shipping_cost' in changes:
            changes['shipping_cost'] = to_money(changes['shipping_cost'], "shippingCost")
        if 'payment_method' in changes:
            changes['payment_method'] = require_choice(changes['payment_method'], PaymentMethod, "paymentMethod")
        if 'payment_terms' in changes:
            changes['payment_terms'] = require_choice(changes['payment_terms'], PaymentTerms, "paymentTerms")
        if 'notes' in changes:
            check_notes(changes['notes'])

        with resource_locks.hold([purchase_key(po_id)]), transaction(self.db):
            po = lock_purchase_order(self.db, po_id)
            if po.status not in EDITABLE_STATUSES:
                raise ForbiddenOperationError(
                    f"Purchase order {po.purchase_order_number} is {po.status} and can no longer be edited",
                    code="PO_NOT_EDITABLE",
                    detail={"status": po.status},
                )

            products = {}
            if lines is not None:
                products = self._load_products(lines)
                self._resolve_units(lines, products)
            items_changed = lines is not None and self._items_differ(po, lines)
            changed = [
                name for name in FROZEN_AFTER_APPROVAL
                if name in changes and (
                    items_changed if name == 'items' else changes[name] != getattr(po, name)
                )
            ]
            if po.status == APPROVED and changed:
                frozen = [FROZEN_AFTER_APPROVAL[name] for name in changed]
                raise ForbiddenOperationError(
                    f"{', '.join(frozen)} cannot change after approval",
                    code="PO_FROZEN",
                    field=frozen[0],
                    detail={"fields": frozen},
                )

            old_values = self._snapshot(po)

            if 'supplier_id' in changed:
                supplier = self.db.get(Supplier, changes['supplier_id'])
                if not supplier:
                    raise NotFoundError(f"Supplier {changes['supplier_id']} not found", field="supplierId")
                po.supplier_id = supplier.id
            if items_changed:
                if not lines and po.status != DRAFT:
                    raise ValidationError(
                        "A purchase order needs at least one item unless it is a draft",
                        code="ITEMS_REQUIRED",
                        field="items",
                    )
                po.items = self._build_items(lines, products)
            for name in ('order_date', 'shipping_cost', 'expected_delivery_date',
                         'payment_method', 'payment_terms', 'notes'):
                if name in changes:
                    setattr(po, name, changes[name])

            recalculate_totals(po)
            po.updated_at = datetime.now(timezone.utc)

            log_user_action(
                self.db, self.actor, "UPDATE_PO",
                table="purchase_orders",
                key=po.purchase_order_number,
                old_values=old_values,
                new_values=self._snapshot(po),
                module="PO"
            )

        logger.info(f"Updated purchase order {po.purchase_order_number}")
        return po

    def delete_purchase_order(self, po_id: int) -> None:
        """Delete a draft purchase order that has never moved stock"""
        with resource_locks.hold([purchase_key(po_id)]), transaction(self.db):
            po = lock_purchase_order(self.db, po_id)
            if po.status != DRAFT:
                raise ForbiddenOperationError(
                    f"Only draft purchase orders can be deleted, {po.purchase_order_number} is {po.status}",
                    code="PO_NOT_DRAFT",
                    detail={"status": po.status},
                )
            referenced = (
                self.db.query(StockMovement.id)
                .filter(
                    StockMovement.reference_type == PURCHASE_REFERENCE,
                    StockMovement.reference_id == po.id,
                )
                .first()
            )
            if referenced:
                raise ForbiddenOperationError(
                    f"Purchase order {po.purchase_order_number} is referenced by stock movements",
                    code="PO_HAS_MOVEMENTS",
                )

            number = po.purchase_order_number
            log_user_action(
                self.db, self.actor, "DELETE_PO",
                table="purchase_orders",
                key=number,
                old_values=self._snapshot(po),
                module="PO"
            )
            self.db.delete(po)

        logger.info(f"Deleted purchase order {number}")

    def change_status(self, po_id: int, status: Any) -> PurchaseOrder:
        """Apply a direct lifecycle transition (submit, approve, order, cancel)"""
        target = require_choice(status, PurchaseOrderStatus, "status")

        with resource_locks.hold([purchase_key(po_id)]), transaction(self.db):
            po = lock_purchase_order(self.db, po_id)
            old_status = po.status
            self.state_machine.transition(po, target)

            log_user_action(
                self.db, self.actor, "STATUS_PO",
                table="purchase_orders",
                key=po.purchase_order_number,
                old_values={"status": old_status},
                new_values={"status": target},
                module="PO"
            )

        return po

    def update_payment(self, po_id: int, payment_status: Any, payment_method: Any = None) -> PurchaseOrder:
        """Record a payment status change and move the supplier balance to match"""
        new_status = require_choice(payment_status, PaymentStatus, "paymentStatus")
        method = self._optional_choice(payment_method, PaymentMethod, "paymentMethod")

        with ExitStack() as held:
            held.enter_context(resource_locks.hold([purchase_key(po_id)]))
            with transaction(self.db):
                po = lock_purchase_order(self.db, po_id)
                if po.status == CANCELLED:
                    raise ForbiddenOperationError(
                        f"Purchase order {po.purchase_order_number} is cancelled",
                        code="PO_CANCELLED",
                        detail={"status": po.status},
                    )

                old_status = po.payment_status
                old_method = po.payment_method
                if old_status == new_status and (method is None or method == old_method):
                    return po

                held.enter_context(resource_locks.hold([supplier_key(po.supplier_id)]))
                self.supplier_updater.on_payment_status_changed(po, old_status, new_status)

                po.payment_status = new_status
                if method is not None:
                    po.payment_method = method
                po.updated_at = datetime.now(timezone.utc)

                log_user_action(
                    self.db, self.actor, "PAYMENT_PO",
                    table="purchase_orders",
                    key=po.purchase_order_number,
                    old_values={"payment_status": old_status, "payment_method": old_method},
                    new_values={"payment_status": new_status, "payment_method": po.payment_method},
                    module="PO"
                )

        logger.info(
            f"Purchase order {po.purchase_order_number} payment {old_status} -> {new_status} by {self.actor}"
        )
        return po

    # Helpers

    @staticmethod
    def _optional_choice(value, choices, field):
        return require_choice(value, choices, field) if value is not None else None

    def _normalize_items(self, items_data: List[Dict]) -> List[Dict]:
        """Validate incoming lines and convert money fields"""
        lines = []
        for index, data in enumerate(items_data):
            prefix = f"items.{index}"
            product_id = data.get('product_id')
            if product_id is None:
                raise ValidationError("productId is required", field=f"{prefix}.productId")
            quantity = require_quantity(data.get('quantity'), f"{prefix}.quantity")
            unit_price = to_money(data.get('unit_price'), f"{prefix}.unitPrice", default=None)
            discount = to_money(data.get('discount'), f"{prefix}.discount")
            tax = to_money(data.get('tax'), f"{prefix}.tax")
            if discount > quantity * unit_price + tax:
                raise ValidationError(
                    "Discount cannot exceed the line value",
                    code="DISCOUNT_EXCEEDS_LINE",
                    field=f"{prefix}.discount",
                )
            lines.append({
                'product_id': product_id,
                'quantity': quantity,
                'unit_price': unit_price,
                'discount': discount,
                'tax': tax,
                'unit': data.get('unit'),
            })
        return lines

    def _load_products(self, lines: List[Dict]) -> Dict[int, Product]:
        product_ids = {line['product_id'] for line in lines}
        if not product_ids:
            return {}
        products = {
            product.id: product
            for product in self.db.query(Product).filter(Product.id.in_(product_ids)).all()
        }
        for index, line in enumerate(lines):
            if line['product_id'] not in products:
                raise NotFoundError(
                    f"Product {line['product_id']} not found",
                    field=f"items.{index}.productId",
                )
        return products

    @staticmethod
    def _resolve_units(lines: List[Dict], products: Dict[int, Product]) -> None:
        """Lines without a unit take the product's unit"""
        for line in lines:
            line['unit'] = line['unit'] or products[line['product_id']].unit

    @staticmethod
    def _build_items(lines: List[Dict], products: Dict[int, Product]) -> List[PurchaseItem]:
        return [
            PurchaseItem(
                position=position,
                product_id=line['product_id'],
                unit=line['unit'] or products[line['product_id']].unit,
                quantity=line['quantity'],
                received_quantity=0,
                unit_price=line['unit_price'],
                discount=line['discount'],
                tax=line['tax'],
            )
            for position, line in enumerate(lines)
        ]

    @staticmethod
    def _items_differ(po: PurchaseOrder, lines: List[Dict]) -> bool:
        current = [
            _item_signature(item.product_id, item.unit, item.quantity, item.unit_price, item.discount, item.tax)
            for item in po.items
        ]
        requested = [
            _item_signature(line['product_id'], line['unit'], line['quantity'],
                            line['unit_price'], line['discount'], line['tax'])
            for line in lines
        ]
        return current != requested

    @staticmethod
    def _snapshot(po: PurchaseOrder) -> Dict:
        return {
            "purchase_order_number": po.purchase_order_number,
            "supplier_id": po.supplier_id,
            "status": po.status,
            "payment_status": po.payment_status,
            "order_date": po.order_date,
            "shipping_cost": po.shipping_cost,
            "grand_total": po.grand_total,
            "items": [
                {"product_id": item.product_id, "quantity": item.quantity, "unit_price": item.unit_price}
                for item in po.items
            ],
        }
