"""Purchase Order Schemas"""

from pydantic import Field, PlainSerializer
from typing import Annotated, Optional, List
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from .common import APIModel


# Enums
class PurchaseOrderStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    ORDERED = "ordered"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CHECK = "check"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    OTHER = "other"


class PaymentTerms(str, Enum):
    CASH = "cash"
    NET_15 = "net_15"
    NET_30 = "net_30"
    NET_45 = "net_45"
    NET_60 = "net_60"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PurchaseSortField(str, Enum):
    ORDER_DATE = "orderDate"
    PURCHASE_ORDER_NUMBER = "purchaseOrderNumber"
    GRAND_TOTAL = "grandTotal"
    STATUS = "status"
    PAYMENT_STATUS = "paymentStatus"
    CREATED_AT = "createdAt"


# Amounts are Decimal in Python and plain JSON numbers on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# Line item schemas
class PurchaseItemCreate(APIModel):
    product_id: int
    quantity: int = Field(..., ge=1)
    unit_price: Money = Field(..., ge=0, decimal_places=2)
    discount: Money = Field(default=Decimal("0"), ge=0, decimal_places=2)
    tax: Money = Field(default=Decimal("0"), ge=0, decimal_places=2)
    unit: Optional[str] = Field(default=None, max_length=10)


class PurchaseItem(APIModel):
    id: int
    product_id: int
    unit: Optional[str] = None
    quantity: int
    received_quantity: int
    unit_price: Money
    discount: Money
    tax: Money
    total_price: Money


# Purchase order schemas
class PurchaseOrderCreate(APIModel):
    supplier_id: int
    items: List[PurchaseItemCreate] = Field(default_factory=list)
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_method: Optional[PaymentMethod] = None
    payment_terms: Optional[PaymentTerms] = None
    shipping_cost: Money = Field(default=Decimal("0"), ge=0, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=500)


class PurchaseOrderUpdate(APIModel):
    supplier_id: Optional[int] = None
    items: Optional[List[PurchaseItemCreate]] = None
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    payment_terms: Optional[PaymentTerms] = None
    shipping_cost: Optional[Money] = Field(default=None, ge=0, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=500)


class PurchaseOrder(APIModel):
    id: int
    purchase_order_number: str
    supplier_id: int
    items: List[PurchaseItem]
    status: PurchaseOrderStatus
    subtotal: Money
    total_discount: Money
    total_tax: Money
    shipping_cost: Money
    grand_total: Money
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None
    payment_terms: PaymentTerms
    order_date: date
    expected_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    notes: Optional[str] = None


class PurchaseOrderListResponse(APIModel):
    orders: List[PurchaseOrder]
    total: int
    page: int
    limit: int
    total_pages: int


# Lifecycle request bodies
class StatusUpdate(APIModel):
    status: PurchaseOrderStatus


class PaymentUpdate(APIModel):
    payment_status: PaymentStatus
    payment_method: Optional[PaymentMethod] = None


class ReceiptLine(APIModel):
    item_id: int
    quantity: int = Field(..., ge=0)


class ReceiveRequest(APIModel):
    received_items: List[ReceiptLine] = Field(..., min_length=1)
    request_key: Optional[str] = Field(default=None, max_length=100)
