"""
Purchase Order Numbering
Issues PO-YYYYMM-NNNNN numbers from a per-month sequence row
"""
from typing import Optional
from datetime import datetime, timezone
from sqlalchemy.orm import Session
import logging

from inventory_app.core.config import settings
from inventory_app.models.purchase import PurchaseOrderSequence

logger = logging.getLogger("inventory.business")


def sequence_key(period: str):
    """In-process lock key guarding one month's sequence row"""
    return ("po-sequence", period)


def period_for(when: datetime) -> str:
    return when.strftime("%Y%m")


def format_number(period: str, number: int) -> str:
    return f"{settings.PO_NUMBER_PREFIX}-{period}-{number:0{settings.PO_NUMBER_WIDTH}d}"


class PONumberAllocator:
    """
    Allocates purchase order numbers

    The sequence row is locked and incremented inside the caller's
    transaction, so the increment commits or rolls back together with the
    purchase order insert. Callers must not rely on numbers being contiguous.
    """

    def __init__(self, db: Session):
        self.db = db

    def allocate(self, when: Optional[datetime] = None) -> str:
        when = when or datetime.now(timezone.utc)
        period = period_for(when)

        sequence = (
            self.db.query(PurchaseOrderSequence)
            .filter(PurchaseOrderSequence.period == period)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if sequence is None:
            sequence = PurchaseOrderSequence(period=period, last_number=0)
            self.db.add(sequence)

        sequence.last_number = (sequence.last_number or 0) + 1
        self.db.flush()

        number = format_number(period, sequence.last_number)
        logger.debug(f"Allocated purchase order number {number}")
        return number

