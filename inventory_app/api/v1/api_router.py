"""
Main API Router - Consolidates all module routes
"""

from fastapi import APIRouter
from inventory_app.api.v1 import products, purchases, suppliers

api_router = APIRouter()

# Purchasing routes
api_router.include_router(purchases.router, prefix="/purchases", tags=["purchases"])
api_router.include_router(suppliers.router, prefix="/suppliers", tags=["suppliers"])

# Stock routes
api_router.include_router(products.router, prefix="/products", tags=["products"])
