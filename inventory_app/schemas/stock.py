"""Stock Control Schemas"""

from typing import List, Optional
from datetime import datetime
from enum import Enum

from .common import APIModel
from .purchase import Money


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"


class MovementReason(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    DAMAGE = "damage"
    LOSS = "loss"
    THEFT = "theft"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"
    OPENING_STOCK = "opening_stock"
    MANUFACTURING = "manufacturing"


class StockMovement(APIModel):
    id: int
    product_id: int
    movement_type: MovementType
    reason: MovementReason
    quantity: int
    previous_stock: int
    new_stock: int
    stock_delta: int
    unit_cost: Optional[Money] = None
    total_cost: Optional[Money] = None
    from_location_id: Optional[int] = None
    to_location_id: Optional[int] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    item_id: Optional[int] = None
    performed_by: str
    movement_date: datetime
    notes: Optional[str] = None


class LocationQuantity(APIModel):
    location_id: int
    quantity: int


class Product(APIModel):
    id: int
    sku: str
    name: str
    unit: str
    cost_price: Money
    selling_price: Money
    current_stock: int
    minimum_stock: int
    total_purchased: int
    stock_status: str
    last_stock_update: Optional[datetime] = None
    is_active: bool
    location_stock: List[LocationQuantity] = []
