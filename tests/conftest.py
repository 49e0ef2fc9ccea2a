"""
Test Configuration and Fixtures
Shared testing infrastructure for the inventory purchasing service
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from decimal import Decimal
from typing import Dict, Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from inventory_app.main import app
from inventory_app.core.database import get_db, Base
from inventory_app.models import Product, StockLocation, Supplier, PurchaseOrder
from inventory_app.services.purchasing import GoodsReceiptService, PurchaseOrderService
from inventory_app.services.stock import StockPoster

# Test database URL - in-memory SQLite shared through a single connection
TEST_DATABASE_URL = "sqlite://"

# Create test engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test"""
    # Create all tables
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database dependency override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def supplier(db_session: Session) -> Supplier:
    """Create a test supplier with net 45 terms"""
    supplier = Supplier(
        name="Acme Supplies",
        email="orders@acme.test",
        phone="555-0100",
        contact_person="Jo Smith",
        payment_terms="net_45",
        credit_limit=Decimal("5000.00"),
    )
    db_session.add(supplier)
    db_session.commit()
    db_session.refresh(supplier)
    return supplier


@pytest.fixture
def products(db_session: Session) -> List[Product]:
    """
    Create two products with opening stock

    Widget: 20 on hand at 4.00. Gadget: 5 on hand at 2.00.
    """
    widget = Product(sku="WID-001", name="Widget", unit="pcs", cost_price=Decimal("4.00"),
                     selling_price=Decimal("9.00"), minimum_stock=5)
    gadget = Product(sku="GAD-001", name="Gadget", unit="box", cost_price=Decimal("2.00"),
                     selling_price=Decimal("6.00"), minimum_stock=2)
    db_session.add_all([widget, gadget])
    db_session.commit()

    poster = StockPoster(db_session, actor="setup")
    for product, quantity in ((widget, 20), (gadget, 5)):
        poster.post({
            'product_id': product.id,
            'movement_type': 'in',
            'reason': 'opening_stock',
            'quantity': quantity,
        })
    db_session.commit()

    return [widget, gadget]


@pytest.fixture
def locations(db_session: Session) -> List[StockLocation]:
    """Create a warehouse and a store"""
    warehouse = StockLocation(code="MAIN", name="Main Warehouse", location_type="warehouse")
    store = StockLocation(code="STORE1", name="High Street Store", location_type="store")
    db_session.add_all([warehouse, store])
    db_session.commit()
    return [warehouse, store]


@pytest.fixture
def po_service(db_session: Session) -> PurchaseOrderService:
    return PurchaseOrderService(db_session, actor="buyer")


@pytest.fixture
def receipt_service(db_session: Session) -> GoodsReceiptService:
    return GoodsReceiptService(db_session, actor="receiver")


@pytest.fixture
def po_data(supplier: Supplier, products: List[Product]) -> Dict:
    """
    Pending purchase order with two lines

    Subtotal 60.00, discount 1.00, tax 0.50, shipping 3.00, grand total 62.50.
    """
    widget, gadget = products
    return {
        "supplier_id": supplier.id,
        "status": "pending",
        "items": [
            {"product_id": widget.id, "quantity": 10, "unit_price": Decimal("5.00")},
            {"product_id": gadget.id, "quantity": 4, "unit_price": Decimal("2.50"),
             "discount": Decimal("1.00"), "tax": Decimal("0.50")},
        ],
        "shipping_cost": Decimal("3.00"),
        "notes": "Quarterly restock",
    }


@pytest.fixture
def ordered_po(po_service: PurchaseOrderService, po_data: Dict) -> PurchaseOrder:
    """Purchase order taken through approval to ordered"""
    po = po_service.create_purchase_order(po_data)
    po_service.change_status(po.id, "approved")
    po_service.change_status(po.id, "ordered")
    return po
