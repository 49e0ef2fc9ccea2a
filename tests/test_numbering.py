"""
Tests for purchase order number allocation
"""

import pytest
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from inventory_app.models import PurchaseOrderSequence
from inventory_app.services.purchasing import PONumberAllocator, PurchaseOrderService
from inventory_app.services.purchasing.numbering import format_number, period_for


@pytest.mark.parametrize("period,number,expected", [
    ("202610", 7, "PO-202610-00007"),
    ("202601", 12345, "PO-202601-12345"),
    ("202612", 123456, "PO-202612-123456"),
])
def test_format_number(period, number, expected):
    assert format_number(period, number) == expected


def test_period_for():
    assert period_for(datetime(2026, 3, 9, 23, 59)) == "202603"


class TestPONumberAllocator:
    """Per-month sequence behaviour"""

    def test_sequential_within_month(self, db_session: Session):
        allocator = PONumberAllocator(db_session)
        when = datetime(2026, 10, 5, tzinfo=timezone.utc)

        numbers = [allocator.allocate(when) for _ in range(3)]
        db_session.commit()

        assert numbers == ["PO-202610-00001", "PO-202610-00002", "PO-202610-00003"]
        assert db_session.get(PurchaseOrderSequence, "202610").last_number == 3

    def test_new_month_starts_over(self, db_session: Session):
        allocator = PONumberAllocator(db_session)
        allocator.allocate(datetime(2026, 10, 31, tzinfo=timezone.utc))
        allocator.allocate(datetime(2026, 10, 31, tzinfo=timezone.utc))

        assert allocator.allocate(datetime(2026, 11, 1, tzinfo=timezone.utc)) == "PO-202611-00001"

    def test_rollback_returns_number(self, db_session: Session):
        """An aborted allocation does not consume the number"""
        allocator = PONumberAllocator(db_session)
        when = datetime(2026, 10, 5, tzinfo=timezone.utc)
        allocator.allocate(when)
        db_session.commit()

        assert allocator.allocate(when) == "PO-202610-00002"
        db_session.rollback()

        assert allocator.allocate(when) == "PO-202610-00002"

    def test_orders_get_increasing_numbers(self, po_service: PurchaseOrderService, po_data):
        first = po_service.create_purchase_order(po_data)
        second = po_service.create_purchase_order(po_data)

        period = period_for(datetime.now(timezone.utc))
        assert first.purchase_order_number.startswith(f"PO-{period}-")
        assert second.purchase_order_number > first.purchase_order_number
        assert po_service.get_by_number(second.purchase_order_number).id == second.id
