"""Purchase Order API endpoints"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
from decimal import Decimal
import math

from inventory_app.api import deps
from inventory_app.core.config import settings
from inventory_app.core.exceptions import NotFoundError
from inventory_app.schemas.common import ErrorResponse
from inventory_app.schemas.purchase import (
    PurchaseOrder, PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderListResponse,
    PurchaseOrderStatus, PaymentStatus, PurchaseSortField, SortOrder,
    StatusUpdate, PaymentUpdate, ReceiveRequest
)
from inventory_app.schemas.stock import StockMovement
from inventory_app.services.purchasing import GoodsReceiptService, PurchaseOrderService

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    403: {"model": ErrorResponse, "description": "Not allowed in the current status"},
    404: {"model": ErrorResponse, "description": "Purchase order, item, supplier or product not found"},
    409: {"model": ErrorResponse, "description": "Illegal transition or concurrent modification"},
}


@router.get("", response_model=PurchaseOrderListResponse)
def list_purchase_orders(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=settings.MAX_PAGE_SIZE, description="Page size"),
    search: Optional[str] = Query(None, description="PO number or supplier name, email, phone"),
    po_status: Optional[PurchaseOrderStatus] = Query(None, alias="status", description="Filter by status"),
    supplier: Optional[int] = Query(None, description="Filter by supplier ID"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus", description="Filter by payment status"),
    start_date: Optional[date] = Query(None, alias="startDate", description="Order date from"),
    end_date: Optional[date] = Query(None, alias="endDate", description="Order date to"),
    min_amount: Optional[Decimal] = Query(None, alias="minAmount", description="Minimum grand total"),
    max_amount: Optional[Decimal] = Query(None, alias="maxAmount", description="Maximum grand total"),
    sort_by: PurchaseSortField = Query(PurchaseSortField.CREATED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    db: Session = Depends(deps.get_db),
):
    """
    List purchase orders with optional filters.

    Returns one page of purchase orders with paging metadata.
    """
    service = PurchaseOrderService(db)
    orders, total = service.list_purchase_orders(
        filters={
            'search': search,
            'status': po_status,
            'supplier_id': supplier,
            'payment_status': payment_status,
            'start_date': start_date,
            'end_date': end_date,
            'min_amount': min_amount,
            'max_amount': max_amount,
        },
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    return PurchaseOrderListResponse(
        orders=orders,
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/number/{purchase_order_number}", response_model=PurchaseOrder, responses={404: ERROR_RESPONSES[404]})
def get_purchase_order_by_number(
    purchase_order_number: str,
    db: Session = Depends(deps.get_db),
):
    """Get purchase order by its PO number."""
    order = PurchaseOrderService(db).get_by_number(purchase_order_number)
    if not order:
        raise NotFoundError(f"Purchase order {purchase_order_number} not found", field="purchaseOrderNumber")
    return order


@router.get("/{po_id}", response_model=PurchaseOrder, responses={404: ERROR_RESPONSES[404]})
def get_purchase_order(
    po_id: int,
    db: Session = Depends(deps.get_db),
):
    """Get specific purchase order by ID."""
    order = PurchaseOrderService(db).get_purchase_order(po_id)
    if not order:
        raise NotFoundError(f"Purchase order {po_id} not found", field="id")
    return order


@router.get("/{po_id}/movements", response_model=List[StockMovement], responses={404: ERROR_RESPONSES[404]})
def get_purchase_order_movements(
    po_id: int,
    db: Session = Depends(deps.get_db),
):
    """Stock movements posted by receipts against this purchase order."""
    return PurchaseOrderService(db).get_movements(po_id)


@router.post("", response_model=PurchaseOrder, status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
def create_purchase_order(
    po_in: PurchaseOrderCreate,
    db: Session = Depends(deps.get_db),
    actor: str = Depends(deps.get_current_actor),
):
    """
    Create new purchase order.

    - Starts as draft or pending
    - Allocates the purchase order number
    - Totals are computed from the items
    """
    return PurchaseOrderService(db, actor).create_purchase_order(po_in.model_dump())


@router.put("/{po_id}", response_model=PurchaseOrder, responses=ERROR_RESPONSES)
def update_purchase_order(
    po_id: int,
    po_update: PurchaseOrderUpdate,
    db: Session = Depends(deps.get_db),
    actor: str = Depends(deps.get_current_actor),
):
    """
    Update purchase order.

    Only draft, pending and approved orders can be edited. Items, supplier,
    order date and shipping cost are frozen once approved.
    """
    return PurchaseOrderService(db, actor).update_purchase_order(
        po_id, po_update.model_dump(exclude_unset=True)
    )


@router.delete("/{po_id}", status_code=status.HTTP_204_NO_CONTENT, responses=ERROR_RESPONSES)
def delete_purchase_order(
    po_id: int,
    db: Session = Depends(deps.get_db),
    actor: str = Depends(deps.get_current_actor),
):
    """Delete a draft purchase order that has no stock movements."""
    PurchaseOrderService(db, actor).delete_purchase_order(po_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{po_id}/status", response_model=PurchaseOrder, responses=ERROR_RESPONSES)
def update_purchase_order_status(
    po_id: int,
    status_update: StatusUpdate,
    db: Session = Depends(deps.get_db),
    actor: str = Depends(deps.get_current_actor),
):
    """
    Change purchase order status.

    Accepts draft -> pending, pending -> approved, approved -> ordered and
    cancellation of any open order. Received statuses come from receipts.
    """
    return PurchaseOrderService(db, actor).change_status(po_id, status_update.status)


@router.patch("/{po_id}/payment", response_model=PurchaseOrder, responses=ERROR_RESPONSES)
def update_purchase_order_payment(
    po_id: int,
    payment_update: PaymentUpdate,
    db: Session = Depends(deps.get_db),
    actor: str = Depends(deps.get_current_actor),
):
    """Update payment status; the supplier balance follows received orders."""
    return PurchaseOrderService(db, actor).update_payment(
        po_id, payment_update.payment_status, payment_update.payment_method
    )


@router.patch("/{po_id}/receive", response_model=PurchaseOrder, responses=ERROR_RESPONSES)
def receive_purchase_order(
    po_id: int,
    receipt: ReceiveRequest,
    db: Session = Depends(deps.get_db),
    actor: str = Depends(deps.get_current_actor),
):
    """
    Receive goods against a purchase order.

    Each line raises the item's received quantity and posts the stock in.
    The order moves to partially_received or received.
    """
    return GoodsReceiptService(db, actor).receive(
        po_id,
        [line.model_dump() for line in receipt.received_items],
        request_key=receipt.request_key,
    )
