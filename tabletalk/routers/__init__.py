"""API routers, one per resource."""

from tabletalk.routers import chat, orders, payments, tables

__all__ = ["chat", "orders", "payments", "tables"]
