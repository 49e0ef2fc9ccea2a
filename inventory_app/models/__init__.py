"""
Inventory Database Models
"""
from .supplier import Supplier
from .stock import Product, StockLocation, ProductLocationStock, StockMovement
from .purchase import PurchaseOrder, PurchaseItem, PurchaseReceipt, PurchaseOrderSequence
from .audit import AuditLog

__all__ = [
    "Supplier",
    "Product",
    "StockLocation",
    "ProductLocationStock",
    "StockMovement",
    "PurchaseOrder",
    "PurchaseItem",
    "PurchaseReceipt",
    "PurchaseOrderSequence",
    "AuditLog",
]
