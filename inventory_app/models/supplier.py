"""
Inventory Supplier Models
SQLAlchemy model for supplier master data and running purchase aggregates
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, Date, Text, Boolean,
    CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from inventory_app.core.database import Base


class Supplier(Base):
    """
    Supplier master record

    The aggregate columns (total_orders, total_purchase_amount,
    current_balance, last_order_date) are written only by the supplier
    account updater.
    """
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Supplier ID")

    # Supplier Identity Information
    name = Column(String(100), nullable=False, doc="Supplier name")
    email = Column(String(100), unique=True, doc="Email address")
    phone = Column(String(30), doc="Phone number")
    contact_person = Column(String(100), doc="Primary contact person")

    # Terms and Configuration
    payment_terms = Column(String(10), nullable=False, default='net_30', doc="Default payment terms")
    credit_limit = Column(Numeric(12, 2), nullable=False, default=0, doc="Credit limit")
    is_active = Column(Boolean, nullable=False, default=True, doc="Active supplier flag")

    # Running aggregates
    total_orders = Column(Integer, nullable=False, default=0, doc="Received purchase orders")
    total_purchase_amount = Column(Numeric(14, 2), nullable=False, default=0, doc="Total purchased value")
    current_balance = Column(Numeric(14, 2), nullable=False, default=0, doc="Amount owed to supplier")
    last_order_date = Column(Date, doc="Latest order date of a received purchase order")

    notes = Column(Text, doc="Supplier notes")

    # Optimistic concurrency
    version = Column(Integer, nullable=False, default=1)

    # Audit Trail
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), doc="Record creation timestamp")
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), doc="Last update timestamp")

    # Relationships
    purchase_orders = relationship("PurchaseOrder", back_populates="supplier")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "payment_terms IN ('cash', 'net_15', 'net_30', 'net_45', 'net_60')",
            name='valid_payment_terms'
        ),
        CheckConstraint("total_orders >= 0", name='total_orders_non_negative'),
        Index('ix_suppliers_name', 'name'),
        Index('ix_suppliers_active', 'is_active'),
    )

    def __repr__(self):
        return f"<Supplier {self.id}: {self.name}>"
