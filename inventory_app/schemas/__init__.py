"""
Inventory Pydantic Schemas
Request/response models for the purchasing API
"""
from .common import APIModel, ErrorResponse, HealthResponse
from .purchase import (
    PurchaseOrderStatus, PaymentStatus, PaymentMethod, PaymentTerms,
    PurchaseItemCreate, PurchaseItem,
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrder, PurchaseOrderListResponse,
    StatusUpdate, PaymentUpdate, ReceiptLine, ReceiveRequest,
)
from .stock import MovementType, MovementReason, StockMovement, LocationQuantity, Product
from .supplier import Supplier

__all__ = [
    "APIModel", "ErrorResponse", "HealthResponse",
    "PurchaseOrderStatus", "PaymentStatus", "PaymentMethod", "PaymentTerms",
    "PurchaseItemCreate", "PurchaseItem",
    "PurchaseOrderCreate", "PurchaseOrderUpdate", "PurchaseOrder", "PurchaseOrderListResponse",
    "StatusUpdate", "PaymentUpdate", "ReceiptLine", "ReceiveRequest",
    "MovementType", "MovementReason", "StockMovement", "LocationQuantity", "Product",
    "Supplier",
]
