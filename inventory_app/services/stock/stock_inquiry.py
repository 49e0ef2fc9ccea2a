"""
Stock Inquiry Service
Read-only views over product stock levels and movement history
"""
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import desc

from inventory_app.core.exceptions import NotFoundError
from inventory_app.models.stock import Product, StockMovement
from inventory_app.schemas.stock import MovementType
from inventory_app.services.validation import require_choice


class StockInquiryService:
    """Stock enquiries"""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found", field="id")
        return product

    def get_movements(
        self,
        product_id: int,
        movement_type: Optional[str] = None,
        reference_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[StockMovement]:
        """Movement history for a product, newest first"""
        self.get_product(product_id)

        query = self.db.query(StockMovement).filter(StockMovement.product_id == product_id)
        if movement_type:
            query = query.filter(
                StockMovement.movement_type == require_choice(movement_type, MovementType, "type")
            )
        if reference_type:
            query = query.filter(StockMovement.reference_type == reference_type)

        return (
            query.order_by(desc(StockMovement.movement_date), desc(StockMovement.id))
            .offset(skip)
            .limit(limit)
            .all()
        )
