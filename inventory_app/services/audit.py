"""
Audit Trail Service
Records who changed what on purchasing records
"""
from typing import Any, Dict, Optional
from decimal import Decimal
from datetime import date, datetime
from sqlalchemy.orm import Session

from inventory_app.models.audit import AuditLog


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def log_user_action(
    db: Session,
    actor: str,
    action: str,
    table: Optional[str] = None,
    key: Optional[str] = None,
    old_values: Optional[Dict] = None,
    new_values: Optional[Dict] = None,
    module: Optional[str] = None
) -> AuditLog:
    """
    Add an audit row to the session

    The row joins the caller's transaction; it is committed or rolled back
    together with the change it describes.
    """
    audit_entry = AuditLog(
        audit_user=actor,
        audit_action=action,
        audit_table=table,
        audit_key=key,
        audit_old_values=_plain(old_values) if old_values else None,
        audit_new_values=_plain(new_values) if new_values else None,
        audit_module=module
    )

    db.add(audit_entry)
    return audit_entry
