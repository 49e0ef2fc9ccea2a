#!/usr/bin/env python3
"""
Inventory Database Initialization Script
Creates database tables and loads a small demo data set
"""
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.append(str(Path(__file__).parent.parent))

from inventory_app.core.config import settings
from inventory_app.core.database import SessionLocal, init_db
from inventory_app.models import Product, StockLocation, Supplier
from inventory_app.services.stock import StockPoster
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SUPPLIERS = [
    {
        'name': 'Northwind Wholesale',
        'email': 'orders@northwind.example',
        'phone': '555-0142',
        'contact_person': 'Ana Trujillo',
        'payment_terms': 'net_30',
        'credit_limit': Decimal("25000.00"),
    },
    {
        'name': 'Harbor Packaging Co',
        'email': 'sales@harborpack.example',
        'phone': '555-0177',
        'contact_person': 'Tom Lee',
        'payment_terms': 'net_15',
        'credit_limit': Decimal("8000.00"),
    },
]

PRODUCTS = [
    # sku, name, unit, cost, price, minimum, opening stock
    ('PEN-BLU', 'Ballpoint Pen Blue', 'pcs', "0.35", "1.20", 200, 1500),
    ('NTB-A5', 'Notebook A5 Ruled', 'pcs', "1.10", "3.50", 50, 400),
    ('BOX-S', 'Shipping Box Small', 'box', "0.80", "2.00", 100, 0),
]

LOCATIONS = [
    ('MAIN', 'Main Warehouse', 'warehouse'),
    ('SHOP', 'Front Shop', 'store'),
]


def init_database():
    """Create tables and seed demo data when the database is empty"""
    logger.info(f"Initializing database at {settings.DATABASE_URL}")
    init_db()

    db = SessionLocal()
    try:
        if db.query(Supplier).count():
            logger.info("Suppliers already present, skipping demo data")
            return

        logger.info("Creating suppliers...")
        db.add_all([Supplier(**data) for data in SUPPLIERS])

        logger.info("Creating stock locations...")
        db.add_all([
            StockLocation(code=code, name=name, location_type=location_type)
            for code, name, location_type in LOCATIONS
        ])

        logger.info("Creating products...")
        products = []
        for sku, name, unit, cost, price, minimum, opening in PRODUCTS:
            product = Product(
                sku=sku, name=name, unit=unit,
                cost_price=Decimal(cost), selling_price=Decimal(price),
                minimum_stock=minimum,
            )
            products.append((product, opening))
            db.add(product)
        db.commit()

        # Opening balances go through the ledger like any other movement
        main = db.query(StockLocation).filter(StockLocation.code == 'MAIN').one()
        poster = StockPoster(db, actor="init_db")
        for product, opening in products:
            if opening:
                poster.post({
                    'product_id': product.id,
                    'movement_type': 'in',
                    'reason': 'opening_stock',
                    'quantity': opening,
                    'to_location_id': main.id,
                    'notes': 'Opening balance',
                })
        db.commit()

        logger.info(f"Seeded {len(SUPPLIERS)} suppliers, {len(PRODUCTS)} products, {len(LOCATIONS)} locations")
    except Exception:
        db.rollback()
        logger.exception("Database initialization failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_database()
    logger.info("Database initialization completed")
