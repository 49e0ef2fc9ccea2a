"""
Inventory Stock Models
SQLAlchemy models for products, locations, per-location quantities and
the append-only stock movement ledger
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, Text, Boolean,
    ForeignKey, CheckConstraint, Index, UniqueConstraint, event
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from inventory_app.core.database import Base
from inventory_app.core.exceptions import InvariantViolationError


class Product(Base):
    """
    Product master record (stock-related columns)

    current_stock is mutated only through the stock poster.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Product ID")
    sku = Column(String(40), unique=True, nullable=False, doc="Stock keeping unit")
    name = Column(String(100), nullable=False, doc="Product name")
    unit = Column(String(10), nullable=False, default='pcs', doc="Unit of measure")

    # Costing
    cost_price = Column(Numeric(12, 2), nullable=False, default=0, doc="Weighted average cost")
    selling_price = Column(Numeric(12, 2), nullable=False, default=0, doc="Selling price")

    # Quantities
    current_stock = Column(Integer, nullable=False, default=0, doc="Quantity on hand")
    minimum_stock = Column(Integer, nullable=False, default=0, doc="Reorder threshold")
    total_purchased = Column(Integer, nullable=False, default=0, doc="Units received from purchases")
    last_stock_update = Column(DateTime(timezone=True), doc="Last stock mutation timestamp")

    is_active = Column(Boolean, nullable=False, default=True, doc="Active product flag")

    # Optimistic concurrency
    version = Column(Integer, nullable=False, default=1)

    # Audit Trail
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    # Relationships
    location_stock = relationship("ProductLocationStock", back_populates="product", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("current_stock >= 0", name='current_stock_non_negative'),
        CheckConstraint("minimum_stock >= 0", name='minimum_stock_non_negative'),
        CheckConstraint("cost_price >= 0", name='cost_price_non_negative'),
        Index('ix_products_name', 'name'),
    )

    @property
    def stock_status(self) -> str:
        if self.current_stock == 0:
            return "out_of_stock"
        if self.current_stock <= self.minimum_stock:
            return "low_stock"
        return "in_stock"

    def __repr__(self):
        return f"<Product {self.id}: {self.sku} on hand {self.current_stock}>"


class StockLocation(Base):
    """Warehouse, store or other place stock can be held"""
    __tablename__ = "stock_locations"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Location ID")
    code = Column(String(10), unique=True, nullable=False, doc="Location code")
    name = Column(String(50), nullable=False, doc="Location name")
    location_type = Column(String(10), nullable=False, default='warehouse', doc="Location type")
    is_active = Column(Boolean, nullable=False, default=True, doc="Active location flag")

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    __table_args__ = (
        CheckConstraint(
            "location_type IN ('warehouse', 'store', 'outlet', 'factory', 'office')",
            name='valid_location_type'
        ),
    )


class ProductLocationStock(Base):
    """Quantity of a product held at one location"""
    __tablename__ = "product_location_stock"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    location_id = Column(Integer, ForeignKey("stock_locations.id", ondelete="RESTRICT"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="location_stock")
    location = relationship("StockLocation")

    __table_args__ = (
        UniqueConstraint('product_id', 'location_id', name='uq_product_location'),
        CheckConstraint("quantity >= 0", name='location_quantity_non_negative'),
    )


class StockMovement(Base):
    """
    Immutable stock movement record

    Rows are appended by the stock poster and never modified or deleted;
    previous_stock/new_stock form a per-product history.
    """
    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Movement ID")
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, doc="Product ID")

    # Movement details
    movement_type = Column(String(12), nullable=False, doc="Type: in, out, transfer, adjustment")
    reason = Column(String(20), nullable=False, doc="Movement reason")
    quantity = Column(Integer, nullable=False, doc="Units moved (always positive)")
    previous_stock = Column(Integer, nullable=False, doc="Stock before the movement")
    new_stock = Column(Integer, nullable=False, doc="Stock after the movement")
    stock_delta = Column(Integer, nullable=False, doc="Signed change applied to current stock")

    # Costing
    unit_cost = Column(Numeric(12, 2), doc="Unit cost")
    total_cost = Column(Numeric(14, 2), doc="Total cost")

    # Locations
    from_location_id = Column(Integer, ForeignKey("stock_locations.id"), doc="Source location")
    to_location_id = Column(Integer, ForeignKey("stock_locations.id"), doc="Destination location")

    # Reference to source document
    reference_type = Column(String(20), doc="Reference type: purchase, sale, transfer, adjustment")
    reference_id = Column(Integer, doc="Reference document ID")
    reference_number = Column(String(30), doc="Reference document number")
    item_id = Column(Integer, doc="Reference document line ID")

    # Who / when
    performed_by = Column(String(50), nullable=False, doc="Acting user")
    movement_date = Column(DateTime(timezone=True), nullable=False, doc="Movement timestamp")
    notes = Column(String(200), doc="Movement notes")

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    product = relationship("Product")

    __table_args__ = (
        CheckConstraint(
            "movement_type IN ('in', 'out', 'transfer', 'adjustment')",
            name='valid_movement_type'
        ),
        CheckConstraint(
            "reason IN ('purchase', 'sale', 'return', 'damage', 'loss', 'theft', "
            "'transfer', 'adjustment', 'opening_stock', 'manufacturing')",
            name='valid_movement_reason'
        ),
        CheckConstraint("quantity > 0", name='quantity_positive'),
        CheckConstraint("previous_stock >= 0", name='previous_stock_non_negative'),
        CheckConstraint("new_stock >= 0", name='new_stock_non_negative'),
        Index('ix_stock_movements_product_date', 'product_id', 'movement_date'),
        Index('ix_stock_movements_type_reason', 'movement_type', 'reason'),
        Index('ix_stock_movements_reference', 'reference_type', 'reference_id'),
    )

    def __repr__(self):
        return f"<StockMovement {self.id}: {self.movement_type} {self.stock_delta:+d} on product {self.product_id}>"


@event.listens_for(StockMovement, "before_update")
def _refuse_movement_update(mapper, connection, target):
    raise InvariantViolationError(
        f"Stock movement {target.id} is immutable",
        code="IMMUTABLE_MOVEMENT",
    )


@event.listens_for(StockMovement, "before_delete")
def _refuse_movement_delete(mapper, connection, target):
    raise InvariantViolationError(
        f"Stock movement {target.id} cannot be deleted",
        code="IMMUTABLE_MOVEMENT",
    )
