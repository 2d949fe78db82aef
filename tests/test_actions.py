import pytest

from tabletalk.services.chat.actions import (
    ActionType,
    ChatAction,
    clamp_quantity,
    extract_table_reference,
    fallback_extract,
    find_mentioned_items,
    normalize_action,
    parse_oracle_reply,
)
from tabletalk.services.chat.menu import MenuEntry, MenuSnapshot
from tabletalk.services.orders.tables import normalize_table_label


@pytest.fixture
def menu():
    return MenuSnapshot(
        entries=(
            MenuEntry(id="m1", name="Momo", price=150, category="Dumplings"),
            MenuEntry(id="m2", name="Chicken Momo", price=220, category="Dumplings"),
            MenuEntry(id="m3", name="Masala Tea", price=60, category="Drinks"),
        ),
        categories=("Dumplings", "Drinks"),
    )


# =============================================================================
# ORACLE MARKERS
# =============================================================================

def test_markers_are_parsed_and_removed_from_reply():
    text = (
        'Two momos coming up! 🥟\n{"action":"ADD_ITEM","name":"Momo","qty":2}\n'
        '{"action":"PLACE_ORDER","tableId":"T-01"}'
    )
    display, actions = parse_oracle_reply(text)

    assert display == "Two momos coming up! 🥟"
    assert actions == [
        ChatAction(action=ActionType.ADD_ITEM, name="Momo", qty=2),
        ChatAction(action=ActionType.PLACE_ORDER, table_ref="T-01"),
    ]


def test_malformed_and_unknown_markers_are_dropped():
    text = (
        '{"action":"ADD_ITEM","name":"Momo","qty":}'
        '{"action":"DANCE"}'
        '{"action":"remove_item","name":"Momo"}'
    )
    _, actions = parse_oracle_reply(text)
    assert actions == [ChatAction(action=ActionType.REMOVE_ITEM, name="Momo")]


@pytest.mark.parametrize(
    "raw, expected",
    [(2, 2), (2.7, 2), (0, 1), (-3, 1), (99, 20), ("4", 4), ("abc", 1), (None, 1), (float("nan"), 1)],
)
def test_quantity_is_floored_and_clamped(raw, expected):
    assert clamp_quantity(raw) == expected


def test_normalize_action_rejects_non_objects():
    assert normalize_action(["ADD_ITEM"]) is None
    assert normalize_action({"name": "Momo"}) is None


# =============================================================================
# FALLBACK
# =============================================================================

def test_fallback_reads_quantity_before_name(menu):
    result = fallback_extract("2 momo please", menu, cart_has_items=False)
    assert result.actions == [ChatAction(action=ActionType.ADD_ITEM, name="Momo", qty=2)]
    assert result.source == "fallback"
    assert not result.open_menu_wizard


@pytest.mark.parametrize(
    "text, qty",
    [("momo x3", 3), ("two momo", 2), ("a momo", 1), ("momo", 1), ("5 plates momo", 5)],
)
def test_fallback_quantity_forms(menu, text, qty):
    actions = find_mentioned_items(text, menu)
    assert [(a.name, a.qty) for a in actions] == [("Momo", qty)]


def test_longer_names_mask_shorter_ones(menu):
    actions = find_mentioned_items("1 chicken momo and 2 masala tea", menu)
    assert [(a.name, a.qty) for a in actions] == [("Chicken Momo", 1), ("Masala Tea", 2)]


def test_table_number_is_not_a_quantity(menu):
    actions = find_mentioned_items("momo for table 2", menu)
    assert [(a.name, a.qty) for a in actions] == [("Momo", 1)]


def test_place_needs_items(menu):
    assert fallback_extract("place order", menu, cart_has_items=False).actions == []

    result = fallback_extract("place order table T-01", menu, cart_has_items=True)
    assert result.actions == [ChatAction(action=ActionType.PLACE_ORDER, table_ref="T-01")]


def test_place_with_items_in_same_message(menu):
    result = fallback_extract("2 momo, place order", menu, cart_has_items=False, default_table="T-02")
    assert result.actions == [
        ChatAction(action=ActionType.ADD_ITEM, name="Momo", qty=2),
        ChatAction(action=ActionType.PLACE_ORDER, table_ref="T-02"),
    ]


def test_cancel_and_paid_keywords(menu):
    cancel = fallback_extract("please cancel my order", menu, cart_has_items=False, default_table="T-01")
    assert cancel.actions == [ChatAction(action=ActionType.CANCEL_ORDER, table_ref="T-01")]

    paid = fallback_extract("I paid at the counter", menu, cart_has_items=False)
    assert paid.actions == [ChatAction(action=ActionType.CONFIRM_PAYMENT)]


def test_status_and_menu_intents(menu):
    assert fallback_extract("where is my order?", menu, cart_has_items=False).wants_status
    assert fallback_extract("show menu", menu, cart_has_items=False).open_menu_wizard


def test_table_reference_extraction():
    assert extract_table_reference("place order table 5") == "5"
    assert extract_table_reference("we are at T-01") == "T-01"
    assert extract_table_reference("2 momo") is None


@pytest.mark.parametrize(
    "raw, label",
    [("table 5", "T-05"), ("T-01", "T-01"), ("t1", "T-01"), ("a3", "A-03"), ("5", "T-05"), ("window", None), ("", None)],
)
def test_table_label_normalization(raw, label):
    assert normalize_table_label(raw) == label
