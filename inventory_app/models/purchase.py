"""
Inventory Purchase Models
SQLAlchemy models for purchase orders, their line items, goods receipts
and the purchase order number sequence
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, Date, Text,
    ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.sql import func
from inventory_app.core.database import Base


class PurchaseOrder(Base):
    """
    Purchase order header

    Totals are derived from the items by the purchase order service and are
    never taken from the caller.
    """
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Purchase order ID")
    purchase_order_number = Column(String(30), unique=True, nullable=False, doc="Human-readable PO number")

    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False, doc="Supplier ID")

    # Lifecycle
    status = Column(String(20), nullable=False, default='draft', doc="Lifecycle status")

    # Payment
    payment_status = Column(String(20), nullable=False, default='unpaid', doc="Payment status")
    payment_method = Column(String(20), doc="Payment method")
    payment_terms = Column(String(10), nullable=False, default='net_30', doc="Payment terms")

    # Dates
    order_date = Column(Date, nullable=False, doc="Order date")
    expected_delivery_date = Column(Date, doc="Expected delivery date")
    actual_delivery_date = Column(DateTime(timezone=True), doc="Set when fully received")
    approved_at = Column(DateTime(timezone=True), doc="Set on approval")

    # Money (same currency)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0, doc="Sum of quantity x unit price")
    total_discount = Column(Numeric(14, 2), nullable=False, default=0, doc="Sum of line discounts")
    total_tax = Column(Numeric(14, 2), nullable=False, default=0, doc="Sum of line taxes")
    shipping_cost = Column(Numeric(14, 2), nullable=False, default=0, doc="Shipping cost")
    grand_total = Column(Numeric(14, 2), nullable=False, default=0, doc="Grand total")

    notes = Column(Text, doc="Free-text notes")

    # Audit Trail
    created_by = Column(String(50), nullable=False, doc="Created by user")
    approved_by = Column(String(50), doc="Approved by user")
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    # Optimistic concurrency
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    supplier = relationship("Supplier", back_populates="purchase_orders")
    items = relationship(
        "PurchaseItem",
        back_populates="purchase_order",
        order_by="PurchaseItem.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    receipts = relationship("PurchaseReceipt", back_populates="purchase_order", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'ordered', 'partially_received', 'received', 'cancelled')",
            name='valid_status'
        ),
        CheckConstraint("payment_status IN ('unpaid', 'partially_paid', 'paid')", name='valid_payment_status'),
        CheckConstraint(
            "payment_terms IN ('cash', 'net_15', 'net_30', 'net_45', 'net_60')",
            name='valid_payment_terms'
        ),
        CheckConstraint("grand_total >= 0", name='grand_total_non_negative'),
        CheckConstraint("shipping_cost >= 0", name='shipping_cost_non_negative'),
        Index('ix_purchase_orders_supplier_status', 'supplier_id', 'status'),
        Index('ix_purchase_orders_order_date', 'order_date'),
        Index('ix_purchase_orders_status_payment', 'status', 'payment_status'),
    )

    @property
    def total_ordered(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def total_received(self) -> int:
        return sum(item.received_quantity for item in self.items)

    def __repr__(self):
        return f"<PurchaseOrder {self.id}: {self.purchase_order_number} ({self.status})>"


class PurchaseItem(Base):
    """Purchase order line item"""
    __tablename__ = "purchase_items"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Line ID")
    purchase_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, doc="Purchase order ID")
    position = Column(Integer, nullable=False, default=0, doc="Line order within the PO")

    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, doc="Product ID")
    unit = Column(String(10), doc="Unit snapshot")

    quantity = Column(Integer, nullable=False, doc="Ordered quantity")
    received_quantity = Column(Integer, nullable=False, default=0, doc="Received quantity")

    unit_price = Column(Numeric(12, 2), nullable=False, doc="Unit price")
    discount = Column(Numeric(12, 2), nullable=False, default=0, doc="Line discount")
    tax = Column(Numeric(12, 2), nullable=False, default=0, doc="Line tax")
    total_price = Column(Numeric(14, 2), nullable=False, default=0, doc="quantity x unit price - discount + tax")

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name='quantity_positive'),
        CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= quantity",
            name='received_within_ordered'
        ),
        CheckConstraint("unit_price >= 0", name='unit_price_non_negative'),
        CheckConstraint("discount >= 0", name='discount_non_negative'),
        CheckConstraint("tax >= 0", name='tax_non_negative'),
        Index('ix_purchase_items_purchase', 'purchase_id'),
    )

    @property
    def outstanding_quantity(self) -> int:
        return self.quantity - self.received_quantity


class PurchaseReceipt(Base):
    """Record of one accepted goods receipt against a purchase order"""
    __tablename__ = "purchase_receipts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    purchase_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    request_key = Column(String(100), unique=True, doc="Caller-supplied retry key")
    total_quantity = Column(Integer, nullable=False, doc="Units received in this receipt")
    received_by = Column(String(50), nullable=False)
    received_at = Column(DateTime(timezone=True), nullable=False)

    purchase_order = relationship("PurchaseOrder", back_populates="receipts")


class PurchaseOrderSequence(Base):
    """Last issued purchase order number per (year, month) bucket"""
    __tablename__ = "purchase_order_sequences"

    period = Column(String(6), primary_key=True, doc="Bucket in YYYYMM form")
    last_number = Column(Integer, nullable=False, default=0)
