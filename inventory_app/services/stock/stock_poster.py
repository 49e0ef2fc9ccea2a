"""
Stock Poster
Single entry point that changes product stock levels and appends the
matching immutable stock movement
"""
from typing import Dict, Optional
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone
from sqlalchemy.orm import Session
import logging

from inventory_app.core.config import settings
from inventory_app.core.exceptions import (
    InsufficientStockError, NotFoundError, ValidationError
)
from inventory_app.core.locks import resource_locks, product_keys
from inventory_app.models.stock import (
    Product, StockLocation, ProductLocationStock, StockMovement
)
from inventory_app.schemas.stock import MovementType, MovementReason
from inventory_app.services.validation import (
    check_notes, require_choice, require_quantity, to_money, quantize
)

logger = logging.getLogger("inventory.business")

# Outbound reasons allowed to drive stock down to a floor of zero
FLOOR_REASONS = {
    MovementReason.ADJUSTMENT.value,
    MovementReason.LOSS.value,
    MovementReason.DAMAGE.value,
    MovementReason.THEFT.value,
}


class StockPoster:
    """
    Applies stock movements

    The poster flushes but never commits: the caller owns the transaction
    and must already serialize on the document (purchase order, sale) the
    movement belongs to.
    """

    def __init__(self, db: Session, actor: Optional[str] = None):
        self.db = db
        self.actor = actor or settings.DEFAULT_ACTOR

    def post(self, movement_data: Dict) -> StockMovement:
        """
        Post one movement

        movement_data keys: product_id, movement_type, reason, quantity
        (target_stock instead for adjustments), and optionally unit_cost,
        from_location_id, to_location_id, reference_type, reference_id,
        reference_number, item_id, notes, performed_by.
        """
        product_id = movement_data.get('product_id')
        movement_type = require_choice(movement_data.get('movement_type'), MovementType, "movementType")
        reason = require_choice(movement_data.get('reason'), MovementReason, "reason")
        notes = check_notes(movement_data.get('notes'), "notes", settings.MOVEMENT_NOTES_MAX_LENGTH)
        unit_cost = movement_data.get('unit_cost')
        if unit_cost is not None:
            unit_cost = to_money(unit_cost, "unitCost")
        from_location_id = movement_data.get('from_location_id')
        to_location_id = movement_data.get('to_location_id')

        if movement_type == MovementType.ADJUSTMENT.value:
            target_stock = require_quantity(movement_data.get('target_stock'), "targetStock", minimum=0)
            quantity = None
        else:
            target_stock = None
            quantity = require_quantity(movement_data.get('quantity'), "quantity")

        with resource_locks.hold(product_keys([product_id])):
            product = self._lock_product(product_id)
            previous_stock = product.current_stock

            if movement_type == MovementType.IN.value:
                new_stock = previous_stock + quantity
                if to_location_id is not None:
                    self._change_location(product, to_location_id, quantity, reason)

            elif movement_type == MovementType.OUT.value:
                if quantity > previous_stock and reason not in FLOOR_REASONS:
                    raise InsufficientStockError(product.id, previous_stock, quantity)
                new_stock = max(previous_stock - quantity, 0)
                if from_location_id is not None:
                    self._change_location(product, from_location_id, -quantity, reason)

            elif movement_type == MovementType.TRANSFER.value:
                if from_location_id is None or to_location_id is None:
                    raise ValidationError(
                        "Transfers need both a source and a destination location",
                        field="fromLocationId" if from_location_id is None else "toLocationId",
                    )
                if from_location_id == to_location_id:
                    raise ValidationError(
                        "Source and destination locations must be different",
                        field="toLocationId",
                    )
                self._change_location(product, from_location_id, -quantity, reason)
                self._change_location(product, to_location_id, quantity, reason)
                new_stock = previous_stock

            else:
                if target_stock == previous_stock:
                    raise ValidationError(
                        f"Product {product.id} already holds {previous_stock} units",
                        field="targetStock",
                    )
                new_stock = target_stock
                quantity = abs(target_stock - previous_stock)

            now = datetime.now(timezone.utc)

            if movement_type == MovementType.IN.value and reason == MovementReason.PURCHASE.value:
                self._apply_purchase_cost(product, previous_stock, quantity, unit_cost)
                product.total_purchased = (product.total_purchased or 0) + quantity

            product.current_stock = new_stock
            product.last_stock_update = now

            movement = StockMovement(
                product_id=product.id,
                movement_type=movement_type,
                reason=reason,
                quantity=quantity,
                previous_stock=previous_stock,
                new_stock=new_stock,
                stock_delta=new_stock - previous_stock,
                unit_cost=unit_cost,
                total_cost=quantize(unit_cost * quantity) if unit_cost is not None else None,
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                reference_type=movement_data.get('reference_type'),
                reference_id=movement_data.get('reference_id'),
                reference_number=movement_data.get('reference_number'),
                item_id=movement_data.get('item_id'),
                performed_by=movement_data.get('performed_by') or self.actor,
                movement_date=movement_data.get('movement_date') or now,
                notes=notes,
            )
            self.db.add(movement)
            self.db.flush()

        logger.info(
            f"Stock {movement_type}/{reason} on product {product.id}: "
            f"{previous_stock} -> {new_stock} (movement {movement.id})"
        )
        return movement

    def _lock_product(self, product_id: int) -> Product:
        product = (
            self.db.query(Product)
            .filter(Product.id == product_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not product:
            raise NotFoundError(f"Product {product_id} not found", field="productId")
        return product

    def _change_location(self, product: Product, location_id: int, delta: int, reason: str):
        """Apply a signed quantity change to one product/location row"""
        location = self.db.get(StockLocation, location_id)
        if not location:
            raise NotFoundError(f"Location {location_id} not found", field="locationId")

        row = (
            self.db.query(ProductLocationStock)
            .filter(
                ProductLocationStock.product_id == product.id,
                ProductLocationStock.location_id == location_id,
            )
            .with_for_update()
            .first()
        )
        if row is None:
            row = ProductLocationStock(product_id=product.id, location_id=location_id, quantity=0)
            self.db.add(row)

        available = row.quantity or 0
        if available + delta < 0:
            if reason not in FLOOR_REASONS:
                raise InsufficientStockError(product.id, available, -delta, location_id)
            row.quantity = 0
        else:
            row.quantity = available + delta

    def _apply_purchase_cost(self, product: Product, previous_stock: int, quantity: int,
                             unit_cost: Optional[Decimal]):
        """Fold a purchase into the weighted average cost"""
        if unit_cost is None or unit_cost <= 0:
            return
        current_cost = Decimal(product.cost_price or 0)
        total_value = (previous_stock * current_cost) + (quantity * unit_cost)
        new_quantity = previous_stock + quantity
        if new_quantity > 0:
            product.cost_price = (total_value / new_quantity).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
