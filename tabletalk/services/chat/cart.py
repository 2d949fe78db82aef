"""
Cart Reducer

Pure functions over an immutable list of cart lines. ADD_ITEM and
REMOVE_ITEM change the cart; every other action is left to the order
reconciler.
"""

import logging
from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from tabletalk.services.chat.actions import ActionType, ChatAction
from tabletalk.services.chat.menu import MenuSnapshot

logger = logging.getLogger(__name__)


class CartLine(BaseModel):
    """One cart entry. line_total is always unit_price * qty."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    menu_item_id: str
    name: str
    unit_price: float = Field(ge=0)
    qty: int = Field(gt=0)
    line_total: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _derive_line_total(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            price = data.get("unit_price", data.get("unitPrice"))
            qty = data.get("qty")
            if price is not None and qty is not None:
                data.pop("lineTotal", None)
                data["line_total"] = float(price) * int(qty)
        return data

    def with_qty(self, qty: int) -> "CartLine":
        return CartLine(
            menu_item_id=self.menu_item_id,
            name=self.name,
            unit_price=self.unit_price,
            qty=qty,
        )


_cart_adapter = TypeAdapter(list[CartLine])


def decode_cart(raw: Optional[Any]) -> list[CartLine]:
    """
    Decode a persisted cart.

    Corrupt or unexpected data is treated as an empty cart; the problem is
    logged, not raised.
    """
    if not raw:
        return []
    try:
        return _cart_adapter.validate_python(raw)
    except ValidationError as e:
        logger.warning(f"Discarding undecodable cart ({e.error_count()} errors)")
        return []


def encode_cart(cart: Sequence[CartLine]) -> list[dict]:
    return [line.model_dump() for line in cart]


def cart_subtotal(cart: Iterable[CartLine]) -> float:
    return sum(line.unit_price * line.qty for line in cart)


def add_item(cart: Sequence[CartLine], menu: MenuSnapshot, name: Optional[str], qty: int) -> list[CartLine]:
    entry = menu.find(name)
    if entry is None:
        # Unknown names are ignored; the oracle may hallucinate dishes
        logger.debug(f"ADD_ITEM ignored, not on menu: {name!r}")
        return list(cart)

    updated = []
    merged = False
    for line in cart:
        if line.menu_item_id == entry.id:
            updated.append(line.with_qty(line.qty + qty))
            merged = True
        else:
            updated.append(line)
    if not merged:
        updated.append(CartLine(
            menu_item_id=entry.id,
            name=entry.name,
            unit_price=entry.price,
            qty=qty,
        ))
    return updated


def remove_item(cart: Sequence[CartLine], name: Optional[str]) -> list[CartLine]:
    """Drop every line whose name matches, whatever its quantity."""
    target = (name or "").strip().lower()
    return [line for line in cart if line.name.lower() != target]


def apply_cart_action(cart: Sequence[CartLine], action: ChatAction, menu: MenuSnapshot) -> list[CartLine]:
    if action.action == ActionType.ADD_ITEM:
        return add_item(cart, menu, action.name, action.qty)
    if action.action == ActionType.REMOVE_ITEM:
        return remove_item(cart, action.name)
    return list(cart)


def apply_cart_actions(
    cart: Sequence[CartLine],
    actions: Iterable[ChatAction],
    menu: MenuSnapshot,
) -> list[CartLine]:
    """Fold ADD_ITEM / REMOVE_ITEM actions over the cart, in order."""
    result = list(cart)
    for action in actions:
        result = apply_cart_action(result, action, menu)
    return result
