"""
Product Stock API endpoints
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inventory_app.api import deps
from inventory_app.schemas.stock import MovementType, Product, StockMovement
from inventory_app.services.stock import StockInquiryService

router = APIRouter()


@router.get("/{product_id}", response_model=Product)
def get_product(
    product_id: int,
    db: Session = Depends(deps.get_db),
):
    """Get product stock level and per-location quantities."""
    return StockInquiryService(db).get_product(product_id)


@router.get("/{product_id}/movements", response_model=List[StockMovement])
def get_product_movements(
    product_id: int,
    movement_type: Optional[MovementType] = Query(None, alias="type"),
    reference_type: Optional[str] = Query(None, alias="referenceType"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(deps.get_db),
):
    """
    Stock movement history for a product, newest first.
    """
    return StockInquiryService(db).get_movements(
        product_id,
        movement_type=movement_type,
        reference_type=reference_type,
        skip=skip,
        limit=limit,
    )
