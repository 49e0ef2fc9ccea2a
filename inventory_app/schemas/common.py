"""
Inventory Common Schemas
Shared Pydantic models for common API structures
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional, Any


class APIModel(BaseModel):
    """
    Base model for every request/response body

    Python attributes are snake_case; the wire format is camelCase.
    Either spelling is accepted on input.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(APIModel):
    """
    Standard error response model

    Used for all API error responses
    """
    error: str = Field(..., description="Machine-readable error kind")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Application-specific error code")
    detail: Optional[Dict[str, Any]] = Field(None, description="Structured error details")
    field_errors: Optional[Dict[str, List[str]]] = Field(
        None,
        description="Field-specific validation errors keyed by dotted path"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "INVALID",
                "message": "Quantity exceeds remaining quantity for item 12. Remaining: 6",
                "code": "OVER_RECEIPT",
                "detail": {"itemId": 12, "remaining": 6, "requested": 7},
                "fieldErrors": {"receivedItems.0.quantity": ["Quantity exceeds remaining quantity"]}
            }
        }
    )


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    debug: bool
