"""
Custom Application Exceptions

Every error carries a stable machine-readable ``kind`` and the HTTP status
it is rendered with at the request boundary.
"""
from typing import Any, Dict, Optional


class InventoryError(Exception):
    """Base exception for the inventory service"""

    kind = "INTERNAL"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        field: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.kind
        self.field = field
        self.detail = detail or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "error": self.kind,
            "message": self.message,
            "code": self.code,
            "detail": self.detail or None,
            "fieldErrors": None,
        }
        if self.field:
            body["fieldErrors"] = {self.field: [self.message]}
        return body


class ValidationError(InventoryError):
    """Raised when input data fails validation"""
    kind = "INVALID"
    status_code = 400


class ForbiddenOperationError(InventoryError):
    """Raised when an operation is not allowed in the current state"""
    kind = "FORBIDDEN"
    status_code = 403


class IllegalTransitionError(ForbiddenOperationError):
    """Raised for a status change the lifecycle does not permit"""
    status_code = 409

    def __init__(self, from_status: str, to_status: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot change status from {from_status} to {to_status}",
            code="ILLEGAL_TRANSITION",
            field="status",
            detail={"from": from_status, "to": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


class NotFoundError(InventoryError):
    """Raised when an id does not resolve"""
    kind = "NOT_FOUND"
    status_code = 404


class ConflictError(InventoryError):
    """Raised when a concurrent modification is detected; callers may retry"""
    kind = "CONFLICT"
    status_code = 409


class InsufficientStockError(InventoryError):
    """Raised when an outbound movement would drive stock negative"""
    kind = "INSUFFICIENT_STOCK"
    status_code = 400

    def __init__(self, product_id: int, available: int, requested: int, location_id: Optional[int] = None):
        where = f" at location {location_id}" if location_id is not None else ""
        super().__init__(
            f"Insufficient stock for product {product_id}{where}. "
            f"Available: {available}, Requested: {requested}",
            field="quantity",
            detail={
                "productId": product_id,
                "locationId": location_id,
                "available": available,
                "requested": requested,
            },
        )


class InvariantViolationError(InventoryError):
    """Raised when a persisted invariant would be breached"""
    kind = "INTERNAL"
    status_code = 500
