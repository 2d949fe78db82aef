"""
Order services: numbering, table occupancy, cart placement and the status
lifecycle.
"""

from tabletalk.services.orders.lifecycle import (
    STATUS_FLOW,
    TransitionResult,
    can_transition,
    transition_order_status,
    validate_transition,
)
from tabletalk.services.orders.numbering import format_order_number, next_order_sequence
from tabletalk.services.orders.reconciler import (
    PlacementResult,
    close_table_order,
    commit_with_retry,
    compute_totals,
    create_order,
    find_latest_open_order,
    find_open_order_for_table,
    place_cart,
    resolve_table,
    round_half_up,
)
from tabletalk.services.orders.tables import normalize_table_label, release_table_if_idle

__all__ = [
    "STATUS_FLOW",
    "TransitionResult",
    "can_transition",
    "transition_order_status",
    "validate_transition",
    "format_order_number",
    "next_order_sequence",
    "PlacementResult",
    "close_table_order",
    "commit_with_retry",
    "compute_totals",
    "create_order",
    "find_latest_open_order",
    "find_open_order_for_table",
    "place_cart",
    "resolve_table",
    "round_half_up",
    "normalize_table_label",
    "release_table_if_idle",
]
