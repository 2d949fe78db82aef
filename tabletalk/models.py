"""
SQLAlchemy Database Models

Tenant-scoped data model for the order desk:
- Menu (categories and items) read by the chat agent
- Tables with derived occupancy
- Chat sessions, their messages and one-time link claims
- Orders with snapshotted lines, and payments

Every row below Tenant carries exactly one tenant_id; all queries in the
ordering core filter on it.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from tabletalk.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


TERMINAL_ORDER_STATUSES = (OrderStatus.PAID, OrderStatus.CANCELLED)


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    QR = "QR"


class OrderType(str, enum.Enum):
    """Dine-in orders are bound to a table, takeaway orders are not."""
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"


class TableStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"


class SessionState(str, enum.Enum):
    """Chat session lifecycle."""
    BROWSING = "BROWSING"
    ORDERING = "ORDERING"
    CONFIRMING = "CONFIRMING"
    COMPLETED = "COMPLETED"


class MessageSender(str, enum.Enum):
    USER = "USER"
    BOT = "BOT"


class Tenant(Base):
    """
    One restaurant account. The isolation boundary for everything else.

    Service charge and tax are percentages of the order subtotal.
    """
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=_uuid)
    slug = Column(String(80), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=False)
    currency_symbol = Column(String(8), nullable=False, default="Rs.")
    service_charge_percent = Column(Float, nullable=False, default=0.0)
    tax_percent = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    categories = relationship(
        "MenuCategory",
        back_populates="tenant",
        order_by="MenuCategory.sort_order",
    )

    def __repr__(self):
        return f"<Tenant {self.slug}>"


class MenuCategory(Base):
    __tablename__ = "menu_categories"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    tenant = relationship("Tenant", back_populates="categories")
    items = relationship("MenuItem", back_populates="category", order_by="MenuItem.name")


class MenuItem(Base):
    """A dish. Names are unique enough for matching but not enforced."""
    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("menu_categories.id"), nullable=False)
    name = Column(String(120), nullable=False)
    price = Column(Float, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    category = relationship("MenuCategory", back_populates="items")

    def __repr__(self):
        return f"<MenuItem {self.name} @ {self.price}>"


class Table(Base):
    """
    A physical table.

    OCCUPIED iff at least one non-terminal order references it; the
    reconciler and the lifecycle service keep this true inside the same
    transaction as the order change.
    """
    __tablename__ = "tables"
    __table_args__ = (UniqueConstraint("tenant_id", "label", name="uq_tables_tenant_label"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    label = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False, default=4)
    status = Column(Enum(TableStatus), nullable=False, default=TableStatus.AVAILABLE)

    def __repr__(self):
        return f"<Table {self.label} - {self.status.value}>"


class ChatSession(Base):
    """
    One guest conversation.

    The cart is a JSON array of cart lines owned exclusively by this
    session. Once COMPLETED the session is frozen.
    """
    __tablename__ = "chat_sessions"

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    state = Column(Enum(SessionState), nullable=False, default=SessionState.BROWSING)
    cart = Column(JSON, nullable=False, default=list)
    table_label = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def __repr__(self):
        return f"<ChatSession {self.id} - {self.state.value}>"


class ChatMessage(Base):
    """Append-only transcript entry. Integer ids give the append order."""
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey("chat_sessions.id"), nullable=False, index=True)
    sender = Column(Enum(MessageSender), nullable=False)
    content = Column(Text, nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    sent_at = Column(DateTime(timezone=True), default=_utcnow)


class LinkClaim(Base):
    """A client context that already opened a one-time session link."""
    __tablename__ = "link_claims"
    __table_args__ = (UniqueConstraint("session_id", "client_id", name="uq_link_claims"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(36), ForeignKey("chat_sessions.id"), nullable=False)
    client_id = Column(String(100), nullable=False)
    claimed_at = Column(DateTime(timezone=True), default=_utcnow)


class Order(Base):
    """
    An order ticket.

    order_number is allocated from a per-tenant sequence; the unique
    constraints below are what turn concurrent allocations into an
    IntegrityError the reconciler retries on.
    """
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "sequence", name="uq_orders_tenant_sequence"),
        UniqueConstraint("tenant_id", "order_number", name="uq_orders_tenant_number"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    order_number = Column(String(20), nullable=False)
    order_type = Column(Enum(OrderType), nullable=False, default=OrderType.DINE_IN)
    table_id = Column(String(36), ForeignKey("tables.id"), nullable=True, index=True)
    chat_session_id = Column(String(36), ForeignKey("chat_sessions.id"), nullable=True, index=True)

    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.CONFIRMED, index=True)
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)

    subtotal = Column(Float, nullable=False, default=0.0)
    service_charge = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    table = relationship("Table")
    items = relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_open(self) -> bool:
        return self.status not in TERMINAL_ORDER_STATUSES

    def __repr__(self):
        return f"<Order {self.order_number} - {self.status.value}>"


class OrderSessionLink(Base):
    """
    Chat sessions whose carts went into an order.

    The creating session is linked too, so status pushes and "where is my
    order" questions reach every guest who ordered at the table.
    """
    __tablename__ = "order_sessions"
    __table_args__ = (UniqueConstraint("order_id", "session_id", name="uq_order_sessions"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    session_id = Column(String(36), ForeignKey("chat_sessions.id"), nullable=False, index=True)
    linked_at = Column(DateTime(timezone=True), default=_utcnow)


class OrderLine(Base):
    """Item name and price are snapshotted at order time and never re-read."""
    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=True)
    item_name = Column(String(120), nullable=False)
    unit_price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(Float, nullable=False)
    instructions = Column(String(200), nullable=True)

    order = relationship("Order", back_populates="items")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id"), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    method = Column(Enum(PaymentMethod), nullable=False)
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    transaction_ref = Column(String(60), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    order = relationship("Order")
