"""
Supplier API endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inventory_app.api import deps
from inventory_app.core.exceptions import NotFoundError
from inventory_app.models.supplier import Supplier as SupplierModel
from inventory_app.schemas.supplier import Supplier

router = APIRouter()


@router.get("/{supplier_id}", response_model=Supplier)
def get_supplier(
    supplier_id: int,
    db: Session = Depends(deps.get_db),
):
    """Get supplier with its running purchase totals."""
    supplier = db.get(SupplierModel, supplier_id)
    if not supplier:
        raise NotFoundError(f"Supplier {supplier_id} not found", field="id")
    return supplier
