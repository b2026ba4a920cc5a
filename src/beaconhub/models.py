"""
Script: models.py
Created: 2026-10-18
Purpose: Pydantic models for BeaconHub users, receipts and responses
Keywords: models, pydantic, users, receipts, beaconhub
Status: active
Prerequisites:
  - pydantic
Changelog:
  - 2026-10-18: User and receipt schemas
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Users
# =============================================================================

class User(BaseModel):
    """Stored user record."""
    id: int = Field(..., description="Numeric user ID, assigned on create")
    full_name: str = Field(..., description="Display name")
    tag: Optional[str] = Field(None, description="Beacon tag printed for the user")


class UserCreate(BaseModel):
    full_name: str
    tag: str


class UserUpdate(BaseModel):
    """Partial update; only fields present in the body are written. Null is not a value."""
    full_name: Optional[str] = None
    tag: Optional[str] = None

    @field_validator("full_name", "tag")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("must be a string, not null")
        return value


class InitializeUsersRequest(BaseModel):
    users: List[User]


class InitializeUsersResponse(BaseModel):
    success: bool
    message: str


# =============================================================================
# Receipts
# =============================================================================

class ReceiptCreate(BaseModel):
    """Receipt body as sent by clients (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="userId")
    user_name: str = Field(..., alias="userName")
    beacon_quantity: int = Field(..., alias="beaconQuantity")
    discount: float
    delivery_address: str = Field(..., alias="deliveryAddress")
    total_price: float = Field(..., alias="totalPrice")


class Receipt(ReceiptCreate):
    id: str = Field(..., description="Creation time in epoch milliseconds")
    timestamp: str = Field(..., description="ISO-8601 UTC creation time")


# =============================================================================
# Responses
# =============================================================================

class HealthResponse(BaseModel):
    status: Literal["ok", "error"]
    timestamp: str
    database: Literal["connected", "disconnected"]
    version: str


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    """Handler failure envelope."""
    success: bool = False
    error: str
