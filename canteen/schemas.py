"""
Pydantic Schemas for Request/Response Validation

Wire names follow the canteen frontend (camelCase: userName,
orderNumber, totalAmount, ...). Python code uses snake_case field
names; aliases map between the two.

Only presence and basic types are validated; an empty string counts as
missing for the text fields that get stored. Numbers sent for text
fields (SRN, OTP, order number) are accepted and kept as text.
"""

from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from canteen.services.order_service import AccountSummary
from canteen.services.storage.base import OrderRecord


class RequestModel(BaseModel):
    """Base for request bodies."""
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class SrnCheckRequest(RequestModel):
    """Body of POST /api/check-srn."""
    srn: str = Field(..., examples=["PES1UG21CS001"])


class SignupRequest(RequestModel):
    """Body of POST /api/signup."""
    name: str = Field(..., min_length=1, examples=["Asha Rao"])
    srn: str = Field(..., min_length=1, examples=["PES1UG21CS001"])
    password: str = Field(..., examples=["correct horse battery staple"])


class LoginRequest(RequestModel):
    """Body of POST /api/login."""
    srn: str = Field(..., examples=["PES1UG21CS001"])
    password: str = Field(..., examples=["correct horse battery staple"])


class OrderCreate(RequestModel):
    """Body of POST /api/orders."""
    user_name: str = Field(..., alias="userName", min_length=1, examples=["Asha Rao"])
    srn: str = Field(..., min_length=1, examples=["PES1UG21CS001"])
    order_number: str = Field(..., alias="orderNumber", min_length=1, examples=["ORD-1700000000-042"])
    otp: str = Field(..., min_length=1, examples=["4821"])
    # Item entries are opaque to the service
    items: List[Any] = Field(..., examples=[[{"name": "Masala Dosa", "quantity": 2, "price": 40}]])
    total_amount: float = Field(..., alias="totalAmount", examples=[80])


class ReceivedUpdate(RequestModel):
    """Body of PATCH /api/orders/{orderNumber}/received."""
    received: bool = Field(..., examples=[True])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class UserResponse(BaseModel):
    """Public account summary."""
    name: str
    srn: str

    @classmethod
    def from_summary(cls, summary: AccountSummary) -> "UserResponse":
        return cls(name=summary.display_name, srn=summary.identifier)


class AvailabilityResponse(BaseModel):
    """Response of POST /api/check-srn."""
    exists: bool
    message: str


class AuthResponse(BaseModel):
    """Response of signup and login."""
    success: bool
    message: str
    user: UserResponse


class OrderResponse(BaseModel):
    """A stored order."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    user_name: str = Field(..., alias="userName")
    srn: str
    order_number: str = Field(..., alias="orderNumber")
    otp: str
    items: List[Any]
    total_amount: float = Field(..., alias="totalAmount")
    received: bool
    created_at: datetime = Field(..., alias="createdAt")

    @field_serializer("total_amount")
    def serialize_total_amount(self, value: float) -> Union[int, float]:
        # Whole amounts go out as 50, not 50.0
        return int(value) if value.is_integer() else value

    @classmethod
    def from_record(cls, record: OrderRecord) -> "OrderResponse":
        return cls(
            id=record.id,
            user_name=record.account_name,
            srn=record.identifier,
            order_number=record.order_number,
            otp=record.otp,
            items=record.items,
            total_amount=record.total_amount,
            received=record.received,
            created_at=record.created_at,
        )


class OrderCreateResponse(BaseModel):
    """Response after successfully placing an order."""
    success: bool
    message: str
    order: OrderResponse


class OrderDetailResponse(BaseModel):
    """Response for a single order lookup."""
    success: bool
    order: OrderResponse


class OrderListResponse(BaseModel):
    """Response for the orders of one SRN."""
    success: bool
    orders: List[OrderResponse]


class OrderUpdateResponse(BaseModel):
    """Response after changing the received flag."""
    success: bool
    message: str
    order: OrderResponse


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    details: Optional[str] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    storage: str
    redis: str
    timestamp: datetime
