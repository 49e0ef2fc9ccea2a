"""Supplier Schemas"""

from typing import Optional
from datetime import date, datetime

from .common import APIModel
from .purchase import Money, PaymentTerms


class Supplier(APIModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    contact_person: Optional[str] = None
    payment_terms: PaymentTerms
    credit_limit: Money
    is_active: bool
    total_orders: int
    total_purchase_amount: Money
    current_balance: Money
    last_order_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
