"""
Typed chat actions and the two ways of producing them.

Oracle path:
    The language model answers in free text and embeds zero or more JSON
    markers such as {"action":"ADD_ITEM","name":"Momo","qty":2}. Each
    marker is parsed on its own; malformed or unknown ones are dropped.

Fallback path:
    Deterministic heuristics over the guest message: menu item names found
    by case-insensitive substring, quantities next to them, and keyword
    patterns for placing, cancelling and paying.

The two paths never mix within one turn.
"""

import enum
import json
import logging
import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from tabletalk.services.chat.menu import MenuSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_QTY = 20


class ActionType(str, enum.Enum):
    ADD_ITEM = "ADD_ITEM"
    REMOVE_ITEM = "REMOVE_ITEM"
    PLACE_ORDER = "PLACE_ORDER"
    UPDATE_ORDER = "UPDATE_ORDER"
    CONFIRM_PAYMENT = "CONFIRM_PAYMENT"
    CANCEL_ORDER = "CANCEL_ORDER"


CART_ACTIONS = (ActionType.ADD_ITEM, ActionType.REMOVE_ITEM)
PLACING_ACTIONS = (ActionType.PLACE_ORDER, ActionType.UPDATE_ORDER)
CLOSING_ACTIONS = (ActionType.CONFIRM_PAYMENT, ActionType.CANCEL_ORDER)


@dataclass(frozen=True)
class ChatAction:
    action: ActionType
    name: Optional[str] = None
    qty: int = 1
    table_ref: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["action"] = self.action.value
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class ExtractionResult:
    """What one turn's extraction produced."""
    actions: list[ChatAction] = field(default_factory=list)
    reply: Optional[str] = None
    source: str = "fallback"
    open_menu_wizard: bool = False
    wants_status: bool = False


def clamp_quantity(raw: Any, max_qty: int = DEFAULT_MAX_QTY) -> int:
    """Floor to an integer and clamp to [1, max_qty]; junk becomes 1."""
    try:
        value = float(raw if raw is not None else 1)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(value):
        return 1
    return min(max_qty, max(1, math.floor(value)))


def normalize_action(raw: Any, max_qty: int = DEFAULT_MAX_QTY) -> Optional[ChatAction]:
    """Turn one decoded marker into a ChatAction, or None if it is not one."""
    if not isinstance(raw, dict):
        return None
    try:
        action_type = ActionType(str(raw.get("action") or "").strip().upper())
    except ValueError:
        return None

    name = str(raw["name"]).strip() if raw.get("name") else None
    table_ref = str(raw["tableId"]).strip() if raw.get("tableId") else None
    qty = clamp_quantity(raw.get("qty"), max_qty) if action_type == ActionType.ADD_ITEM else 1

    return ChatAction(action=action_type, name=name, qty=qty, table_ref=table_ref)


# =============================================================================
# ORACLE MARKERS
# =============================================================================

_MARKER_RE = re.compile(r'\{[^{}]*"action"[^{}]*\}')


def parse_oracle_reply(text: str, max_qty: int = DEFAULT_MAX_QTY) -> tuple[str, list[ChatAction]]:
    """
    Split oracle output into display text and valid actions.

    Returns:
        (text with markers removed, actions in the order they appeared)
    """
    actions = []
    for marker in _MARKER_RE.findall(text or ""):
        try:
            decoded = json.loads(marker)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed action marker: {marker}")
            continue
        action = normalize_action(decoded, max_qty)
        if action is None:
            logger.debug(f"Skipping unknown action marker: {marker}")
            continue
        actions.append(action)

    display = _MARKER_RE.sub("", text or "").strip()
    display = re.sub(r"\n{3,}", "\n\n", display)
    return display, actions


# =============================================================================
# FALLBACK HEURISTICS
# =============================================================================

_MENU_INTENT_RE = re.compile(
    r"(menu|show menu|see menu|what.*available|what.*have|special|recommend|catalog"
    r"|list items|मेनु|मेन्यू|मेनू|menu please|items)",
    re.IGNORECASE,
)
_STATUS_RE = re.compile(
    r"(status|where.*order|update.*order|order.*update|kaha|स्थिति|स्टेटस)",
    re.IGNORECASE,
)
_PLACE_RE = re.compile(r"(place|confirm|checkout|order now|done|submit)", re.IGNORECASE)
_CANCEL_RE = re.compile(r"(cancel|abort|stop order)", re.IGNORECASE)
_PAID_RE = re.compile(r"(paid|payment done|payment complete|i paid)", re.IGNORECASE)

_TABLE_REF_RE = re.compile(
    r"(?:\btable|\btbl|टेबल)\s*(?:no\.?|number|#)?\s*[:#]?\s*([A-Za-z]{0,2}\s*-?\s*\d{1,3})\b"
    r"|\b([A-Za-z]{1,2}-\d{1,3})\b",
    re.IGNORECASE,
)

_NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}
_QTY_BEFORE_RE = re.compile(
    r"\b(\d+|one|two|three|four|five|six|seven|eight|nine|ten|an|a)\s*(?:x|×|pcs?|plates?|pieces?)?\s*$",
    re.IGNORECASE,
)
_QTY_AFTER_RE = re.compile(r"^\s*(?:x|×)\s*(\d+)", re.IGNORECASE)


def is_menu_intent(text: str) -> bool:
    return bool(_MENU_INTENT_RE.search(text or ""))


def is_status_question(text: str) -> bool:
    return bool(_STATUS_RE.search(text or ""))


def extract_table_reference(text: str) -> Optional[str]:
    """First table reference in a message, as written ("5", "T-01")."""
    match = _TABLE_REF_RE.search(text or "")
    if not match:
        return None
    return (match.group(1) or match.group(2)).strip()


def _quantity_near(text: str, start: int, end: int, max_qty: int) -> int:
    after = _QTY_AFTER_RE.match(text[end:])
    if after:
        return clamp_quantity(after.group(1), max_qty)
    before = _QTY_BEFORE_RE.search(text[:start])
    if before:
        token = before.group(1).lower()
        value = _NUMBER_WORDS.get(token, token)
        return clamp_quantity(value, max_qty)
    return 1


def find_mentioned_items(text: str, menu: MenuSnapshot, max_qty: int = DEFAULT_MAX_QTY) -> list[ChatAction]:
    """
    One ADD_ITEM per menu item named in the message.

    Longer names are matched first and their spans masked, so
    "chicken momo" does not also count as "momo".
    """
    lowered = (text or "").lower()
    # Table numbers must not be read as quantities
    lowered = _TABLE_REF_RE.sub(lambda m: " " * len(m.group(0)), lowered)

    found: list[tuple[int, ChatAction]] = []
    for entry in menu.names_longest_first():
        needle = entry.name.lower()
        if not needle:
            continue
        start = lowered.find(needle)
        if start < 0:
            continue
        end = start + len(needle)
        qty = _quantity_near(lowered, start, end, max_qty)
        found.append((start, ChatAction(action=ActionType.ADD_ITEM, name=entry.name, qty=qty)))
        lowered = lowered.replace(needle, " " * len(needle))

    found.sort(key=lambda pair: pair[0])
    return [action for _, action in found]


def fallback_extract(
    text: str,
    menu: MenuSnapshot,
    cart_has_items: bool,
    default_table: Optional[str] = None,
    max_qty: int = DEFAULT_MAX_QTY,
) -> ExtractionResult:
    """
    Deterministic intent parser used whenever the oracle gives nothing.

    Args:
        text: Guest message
        menu: Menu snapshot for this turn
        cart_has_items: Whether the session cart is non-empty before this turn
        default_table: Table label from the request or the session
        max_qty: Quantity clamp
    """
    actions = find_mentioned_items(text, menu, max_qty)
    table_ref = extract_table_reference(text) or default_table

    if _PLACE_RE.search(text) and (cart_has_items or actions):
        actions.append(ChatAction(action=ActionType.PLACE_ORDER, table_ref=table_ref))
    if _CANCEL_RE.search(text):
        actions.append(ChatAction(action=ActionType.CANCEL_ORDER, table_ref=table_ref))
    if _PAID_RE.search(text):
        actions.append(ChatAction(action=ActionType.CONFIRM_PAYMENT, table_ref=table_ref))

    return ExtractionResult(
        actions=actions,
        source="fallback",
        open_menu_wizard=is_menu_intent(text),
        wants_status=is_status_question(text),
    )
