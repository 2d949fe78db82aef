"""
Core module initialization.
Exports configuration, logging utilities and domain exceptions.
"""

from tabletalk.core.config import get_settings, Settings, EnvironmentMode, OracleProvider
from tabletalk.core.exceptions import (
    TableTalkError,
    BadRequestError,
    NotFoundError,
    ConflictError,
    InvalidTransitionError,
    PaymentRejectedError,
    OrderCreationError,
    OracleError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "OracleProvider",
    "TableTalkError",
    "BadRequestError",
    "NotFoundError",
    "ConflictError",
    "InvalidTransitionError",
    "PaymentRejectedError",
    "OrderCreationError",
    "OracleError",
]
