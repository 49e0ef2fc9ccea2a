"""
Audit Trail Model
Activity logging for purchase order mutations
"""
from sqlalchemy import Column, String, Integer, DateTime, JSON
from sqlalchemy.sql import func

from inventory_app.core.database import Base


class AuditLog(Base):
    """Audit trail for all purchasing changes"""
    __tablename__ = "audit_log"

    audit_id = Column(Integer, primary_key=True, autoincrement=True)
    audit_timestamp = Column(DateTime(timezone=True), server_default=func.current_timestamp(), index=True)
    audit_user = Column(String(50), nullable=False, index=True)
    audit_action = Column(String(30), nullable=False, index=True)  # CREATE_PO, RECEIVE_PO, ...
    audit_table = Column(String(50), index=True)
    audit_key = Column(String(100))
    audit_old_values = Column(JSON)
    audit_new_values = Column(JSON)
    audit_module = Column(String(10))  # PO, STOCK
