"""
Purchasing Services
Purchase order aggregate, lifecycle, goods receipt and supplier accounts
"""
from .numbering import PONumberAllocator
from .purchase_orders import PurchaseOrderService
from .receipts import GoodsReceiptService
from .state_machine import PurchaseOrderStateMachine
from .supplier_account import SupplierAccountUpdater

__all__ = [
    "PONumberAllocator",
    "PurchaseOrderService",
    "GoodsReceiptService",
    "PurchaseOrderStateMachine",
    "SupplierAccountUpdater",
]
