"""
Pydantic models for request/response validation.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class ApiBase(BaseModel):
    """Shared base; allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Auth Models ─────────────────────────────────────────────────────

class RegisterRequest(ApiBase):
    username: str = Field(..., min_length=3, max_length=80)
    email: str = Field(..., min_length=3, max_length=200, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=72)


class LoginRequest(ApiBase):
    username: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(ApiBase):
    user_id: int = Field(..., alias="userId")
    username: str
    access_token: str = Field(..., alias="accessToken")
    token_type: str = Field("Bearer", alias="tokenType")
    expires_in_seconds: int = Field(..., alias="expiresInSeconds")


class UserProfileResponse(ApiBase):
    id: int
    username: str
    email: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


# ── Order Models ────────────────────────────────────────────────────

class OrderItemIn(ApiBase):
    name: str = Field(..., min_length=1, max_length=200)
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1, le=50)
    image: Optional[str] = None


class PlaceOrderRequest(ApiBase):
    """Checkout payload: the cart contents plus delivery details."""
    items: List[OrderItemIn] = Field(..., min_length=1)
    restaurant_name: Optional[str] = Field(default=None, alias="restaurantName", max_length=200)
    delivery_address: str = Field(..., alias="deliveryAddress", min_length=1, max_length=500)
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions", max_length=1000)
