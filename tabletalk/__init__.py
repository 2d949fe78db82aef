"""
                TableTalk Order Desk

Multi-tenant restaurant order management: staff dashboard endpoints for
orders, tables and payments plus a conversational ordering agent that
turns guest chat messages into cart and order changes.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
