"""
Pydantic Schemas for Request/Response Validation

Wire format is camelCase (``sessionId``, ``orderPlaced``); Python code uses
snake_case. Every model accepts both on input.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tabletalk.models import (
    MessageSender,
    Order,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    SessionState,
    TableStatus,
)
from tabletalk.services.chat.cart import CartLine


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# CHAT SCHEMAS
# =============================================================================

class ChatRequest(CamelModel):
    """One guest message."""
    message: str = Field(..., min_length=1, max_length=2000, examples=["2 momo please"])
    session_id: Optional[str] = Field(None, max_length=36)
    tenant_slug: str = Field(..., min_length=1, max_length=80, examples=["demo"])
    table_label: Optional[str] = Field(None, max_length=20, examples=["T-01"])
    client_id: Optional[str] = Field(None, max_length=100)
    via_link: bool = False

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message cannot be blank")
        return v


class OrderLineResponse(CamelModel):
    id: int
    menu_item_id: Optional[str]
    item_name: str
    unit_price: float
    quantity: int
    line_total: float
    instructions: Optional[str] = None


class OrderResponse(CamelModel):
    """Single order with its snapshotted lines."""
    id: str
    order_number: str
    order_type: OrderType
    status: OrderStatus
    payment_status: PaymentStatus
    table_id: Optional[str]
    table_label: Optional[str] = None
    chat_session_id: Optional[str]
    subtotal: float
    service_charge: float
    tax: float
    total: float
    notes: Optional[str]
    created_at: Optional[datetime]
    completed_at: Optional[datetime]
    items: List[OrderLineResponse] = []

    @classmethod
    def from_order(cls, order: Order, table_label: Optional[str] = None) -> "OrderResponse":
        """Build from an ORM order whose ``items`` are already loaded."""
        response = cls.model_validate(order)
        return response.model_copy(update={"table_label": table_label})


class ChatResponse(CamelModel):
    session_id: str
    message: str
    cart: List[CartLine]
    order_placed: bool = False
    order_details: Optional[OrderResponse] = None
    open_menu_wizard: bool = False


class ChatMessageResponse(CamelModel):
    id: int
    sender: MessageSender
    content: str
    metadata: Optional[Any] = Field(None, validation_alias="meta")
    sent_at: Optional[datetime]


class ChatHistoryResponse(CamelModel):
    session_id: str
    state: SessionState
    table_label: Optional[str]
    cart: List[CartLine]
    messages: List[ChatMessageResponse]
    order: Optional[OrderResponse] = None


class ChatSessionCreate(CamelModel):
    table_id: str = Field(..., min_length=1)


class ChatSessionCreateResponse(CamelModel):
    session_id: str
    table_id: str
    table_label: str
    url_path: str


# =============================================================================
# ORDER SCHEMAS
# =============================================================================

class OrderItemCreate(CamelModel):
    """Single item in a dashboard order."""
    menu_item_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=99, examples=[2])
    instructions: Optional[str] = Field(None, max_length=200)


class OrderCreate(CamelModel):
    """Order keyed in by staff; never linked to a chat session."""
    table_id: Optional[str] = None
    type: Optional[OrderType] = None
    notes: Optional[str] = Field(None, max_length=500)
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderStatusUpdate(CamelModel):
    order_id: str = Field(..., min_length=1)
    status: OrderStatus


class OrderListResponse(CamelModel):
    """Response for listing multiple orders."""
    total: int
    page: int
    limit: int
    orders: List[OrderResponse]


# =============================================================================
# PAYMENT SCHEMAS
# =============================================================================

class PaymentCreate(CamelModel):
    order_id: str = Field(..., min_length=1)
    method: PaymentMethod
    amount: float = Field(..., gt=0)


class PaymentResponse(CamelModel):
    id: int
    order_id: str
    amount: float
    method: PaymentMethod
    status: PaymentStatus
    transaction_ref: Optional[str]
    paid_at: Optional[datetime]
    created_at: Optional[datetime]


class PaymentCreateResponse(CamelModel):
    payment: PaymentResponse
    order_status: OrderStatus
    payment_status: PaymentStatus


# =============================================================================
# TABLE SCHEMAS
# =============================================================================

class TableCreate(CamelModel):
    label: str = Field(..., min_length=1, max_length=20, examples=["T-05"])
    capacity: int = Field(default=4, ge=1, le=50)


class TableUpdate(CamelModel):
    """Status is derived from open orders and cannot be set here."""
    id: str = Field(..., min_length=1)
    label: Optional[str] = Field(None, min_length=1, max_length=20)
    capacity: Optional[int] = Field(None, ge=1, le=50)


class TableResponse(CamelModel):
    id: str
    label: str
    capacity: int
    status: TableStatus


# =============================================================================
# SYSTEM SCHEMAS
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[Any] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    oracle: str
    timestamp: datetime
