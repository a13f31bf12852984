"""Pydantic models for API responses."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    """Success envelope shared by every endpoint."""
    success: bool = True
    data: Any = None


class BookingResponse(ApiResponse):
    """Result of a create, update or delete."""
    states: List[str] = Field(default_factory=list, description="Transaction states walked")
    warnings: List[str] = Field(default_factory=list)
    compensation_failures: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="POS follow-up steps that failed and may need manual cleanup"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "data": {"id": "a1b2", "start_time": "10:30", "pos_order_id": "ORD123"},
                "states": ["Draft", "PosOrderCreated", "Persisted"],
                "warnings": [],
                "compensation_failures": []
            }
        }
    )


class ErrorResponse(BaseModel):
    """Error response schema."""
    success: bool = False
    error: str = Field(..., description="Error message")
    code: Optional[str] = Field(None, description="Error code")
    conflict: Optional[Dict[str, Any]] = Field(
        None, description="Appointment that blocks the requested slot"
    )
    compensation_failures: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "Staff EMP123 is already booked at 10:00 AM on 2026-03-14",
                "code": "CONFLICT"
            }
        }
    )
