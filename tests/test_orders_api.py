from types import SimpleNamespace

import pytest


@pytest.fixture
def queued(settings_env, monkeypatch):
    settings_env(realtime_events_enabled="true")
    calls = []
    monkeypatch.setattr(
        "tabletalk.tasks.publish_order_event",
        SimpleNamespace(delay=lambda *args: calls.append(args)),
    )
    return calls


async def create_order(client, seeded, items, table=None, **extra):
    body = {
        "items": [{"menuItemId": seeded.items[name], "quantity": qty} for name, qty in items],
        **extra,
    }
    if table:
        body["tableId"] = seeded.tables[table]
    return await client.post("/api/orders", json=body, headers=seeded.headers)


async def set_status(client, seeded, order_id, status):
    return await client.patch(
        "/api/orders", json={"orderId": order_id, "status": status}, headers=seeded.headers
    )


async def table_status(client, seeded, label):
    response = await client.get("/api/tables", headers=seeded.headers)
    return {t["label"]: t["status"] for t in response.json()}[label]


# =============================================================================
# CREATE
# =============================================================================

async def test_dashboard_order_prices_from_menu(seeded, client):
    response = await create_order(client, seeded, [("Momo", 2), ("Masala Tea", 1)], table="T-01", notes="no onion")

    assert response.status_code == 201
    order = response.json()
    assert order["orderNumber"] == "ORD-0001"
    assert order["orderType"] == "DINE_IN"
    assert order["tableLabel"] == "T-01"
    assert order["chatSessionId"] is None
    assert order["notes"] == "no onion"
    assert (order["subtotal"], order["serviceCharge"], order["tax"], order["total"]) == (360, 36, 47, 443)
    assert await table_status(client, seeded, "T-01") == "OCCUPIED"


async def test_dashboard_orders_never_merge(seeded, client):
    first = await create_order(client, seeded, [("Momo", 1)], table="T-01")
    second = await create_order(client, seeded, [("Momo", 1)], table="T-01")

    assert first.json()["orderNumber"] == "ORD-0001"
    assert second.json()["orderNumber"] == "ORD-0002"


async def test_takeaway_when_no_table(seeded, client):
    response = await create_order(client, seeded, [("Momo", 1)])

    assert response.status_code == 201
    assert response.json()["orderType"] == "TAKEAWAY"
    assert response.json()["tableId"] is None


async def test_line_instructions_are_kept(seeded, client):
    body = {
        "items": [{"menuItemId": seeded.items["Momo"], "quantity": 1, "instructions": "extra spicy"}],
    }
    response = await client.post("/api/orders", json=body, headers=seeded.headers)
    assert response.json()["items"][0]["instructions"] == "extra spicy"


async def test_unavailable_item_is_rejected(seeded, client):
    response = await create_order(client, seeded, [("Seasonal Soup", 1)])

    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_item_of_another_tenant_is_rejected(seeded, client):
    response = await client.post(
        "/api/orders",
        json={"items": [{"menuItemId": seeded.items["Momo"], "quantity": 1}]},
        headers={"X-Tenant-Slug": "other"},
    )
    assert response.status_code == 400


async def test_unknown_table_is_rejected(seeded, client):
    response = await client.post(
        "/api/orders",
        json={"tableId": "nope", "items": [{"menuItemId": seeded.items["Momo"], "quantity": 1}]},
        headers=seeded.headers,
    )
    assert response.status_code == 404


async def test_table_of_another_tenant_is_rejected(seeded, client):
    response = await client.post(
        "/api/orders",
        json={"tableId": seeded.other_tables["T-01"], "items": [{"menuItemId": seeded.items["Momo"], "quantity": 1}]},
        headers=seeded.headers,
    )
    assert response.status_code == 404


@pytest.mark.parametrize(
    "body",
    [{"items": []}, {"items": [{"menuItemId": "x", "quantity": 0}]}, {}],
)
async def test_malformed_orders_are_rejected(seeded, client, body):
    response = await client.post("/api/orders", json=body, headers=seeded.headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"


async def test_tenant_header_is_required(seeded, client):
    missing = await client.get("/api/orders")
    assert missing.status_code == 400

    unknown = await client.get("/api/orders", headers={"X-Tenant-Slug": "nowhere"})
    assert unknown.status_code == 404


# =============================================================================
# LIST
# =============================================================================

async def test_board_lists_open_orders_newest_first(seeded, client):
    first = (await create_order(client, seeded, [("Momo", 1)], table="T-01")).json()
    second = (await create_order(client, seeded, [("Momo", 1)], table="T-02")).json()
    third = (await create_order(client, seeded, [("Masala Tea", 1)])).json()
    await set_status(client, seeded, first["id"], "PAID")

    board = (await client.get("/api/orders", headers=seeded.headers)).json()
    assert board["total"] == 2
    assert [o["orderNumber"] for o in board["orders"]] == [third["orderNumber"], second["orderNumber"]]

    history = (await client.get("/api/orders", params={"history": "true"}, headers=seeded.headers)).json()
    assert [o["orderNumber"] for o in history["orders"]] == ["ORD-0001"]

    everything = (await client.get("/api/orders", params={"includeClosed": "true"}, headers=seeded.headers)).json()
    assert everything["total"] == 3

    paid = (await client.get("/api/orders", params={"status": "PAID"}, headers=seeded.headers)).json()
    assert [o["id"] for o in paid["orders"]] == [first["id"]]


async def test_board_pagination(seeded, client):
    for _ in range(3):
        await create_order(client, seeded, [("Momo", 1)])

    page = (await client.get("/api/orders", params={"page": 2, "limit": 2}, headers=seeded.headers)).json()
    assert page["total"] == 3
    assert page["page"] == 2
    assert [o["orderNumber"] for o in page["orders"]] == ["ORD-0001"]


async def test_board_is_tenant_scoped(seeded, client):
    await create_order(client, seeded, [("Momo", 1)])

    other = (await client.get("/api/orders", headers={"X-Tenant-Slug": "other"})).json()
    assert other["total"] == 0


# =============================================================================
# STATUS CHANGES
# =============================================================================

async def test_forward_moves_and_rejected_backward_move(seeded, client):
    order = (await create_order(client, seeded, [("Momo", 1)], table="T-01")).json()

    for status in ("PREPARING", "READY"):
        response = await set_status(client, seeded, order["id"], status)
        assert response.status_code == 200
        assert response.json()["status"] == status

    backwards = await set_status(client, seeded, order["id"], "PREPARING")
    assert backwards.status_code == 409
    assert backwards.json()["error"] == "Invalid status transition"


async def test_paid_is_terminal_and_frees_table(seeded, client):
    order = (await create_order(client, seeded, [("Momo", 1)], table="T-01")).json()

    paid = (await set_status(client, seeded, order["id"], "PAID")).json()
    assert paid["paymentStatus"] == "PAID"
    assert paid["completedAt"] is not None
    assert await table_status(client, seeded, "T-01") == "AVAILABLE"

    cancel = await set_status(client, seeded, order["id"], "CANCELLED")
    assert cancel.status_code == 409


async def test_table_stays_occupied_while_another_order_is_open(seeded, client):
    first = (await create_order(client, seeded, [("Momo", 1)], table="T-01")).json()
    second = (await create_order(client, seeded, [("Momo", 1)], table="T-01")).json()

    await set_status(client, seeded, first["id"], "CANCELLED")
    assert await table_status(client, seeded, "T-01") == "OCCUPIED"

    await set_status(client, seeded, second["id"], "PAID")
    assert await table_status(client, seeded, "T-01") == "AVAILABLE"


async def test_same_status_is_a_noop(seeded, client, queued):
    order = (await create_order(client, seeded, [("Momo", 1)])).json()
    queued.clear()

    response = await set_status(client, seeded, order["id"], "CONFIRMED")

    assert response.status_code == 200
    assert queued == []


async def test_unknown_and_foreign_orders(seeded, client):
    missing = await set_status(client, seeded, "nope", "PAID")
    assert missing.status_code == 404

    order = (await create_order(client, seeded, [("Momo", 1)])).json()
    foreign = await client.patch(
        "/api/orders",
        json={"orderId": order["id"], "status": "PAID"},
        headers={"X-Tenant-Slug": "other"},
    )
    assert foreign.status_code == 404


async def test_status_changes_are_narrated_into_linked_chat(seeded, chat, client):
    first = await chat("2 momo please", tableLabel="T-01")
    placed = await chat("place order", sessionId=first["sessionId"])
    order_id = placed["orderDetails"]["id"]

    await set_status(client, seeded, order_id, "READY")
    history = (await client.get("/api/chat", params={"sessionId": first["sessionId"]})).json()
    assert history["state"] == "CONFIRMING"
    last = history["messages"][-1]
    assert last["sender"] == "BOT"
    assert "ORD-0001 is ready" in last["content"]
    assert "tabletalk://pay?order=ORD-0001&amount=369.00" in last["content"]

    await set_status(client, seeded, order_id, "PAID")
    history = (await client.get("/api/chat", params={"sessionId": first["sessionId"]})).json()
    assert history["state"] == "COMPLETED"
    assert history["cart"] == []
    assert "Payment confirmed for ORD-0001" in history["messages"][-1]["content"]


# =============================================================================
# EVENTS
# =============================================================================

async def test_events_follow_commits(seeded, client, queued):
    order = (await create_order(client, seeded, [("Momo", 1)], table="T-01")).json()
    await set_status(client, seeded, order["id"], "PREPARING")
    await set_status(client, seeded, order["id"], "CONFIRMED")

    assert [(tenant, event) for tenant, event, _ in queued] == [
        (seeded.tenant_id, "ORDER_CREATED"),
        (seeded.tenant_id, "ORDER_STATUS_CHANGED"),
    ]
    assert queued[1][2]["status"] == "PREPARING"
    assert queued[1][2]["tableLabel"] == "T-01"


async def test_chat_placement_events(seeded, chat, queued):
    first = await chat("2 momo please", tableLabel="T-01")
    await chat("place order", sessionId=first["sessionId"])
    second = await chat("1 momo", tableLabel="T-01")
    await chat("place order", sessionId=second["sessionId"])

    assert [event for _, event, _ in queued] == ["ORDER_CREATED", "ORDER_UPDATED"]
    assert queued[1][2]["orderNumber"] == "ORD-0001"
