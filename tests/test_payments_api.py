import pytest


async def open_order(client, seeded, table="T-01"):
    response = await client.post(
        "/api/orders",
        json={"tableId": seeded.tables[table], "items": [{"menuItemId": seeded.items["Momo"], "quantity": 2}]},
        headers=seeded.headers,
    )
    assert response.status_code == 201
    return response.json()


async def pay(client, seeded, order_id, amount, method="CASH"):
    return await client.post(
        "/api/payments",
        json={"orderId": order_id, "method": method, "amount": amount},
        headers=seeded.headers,
    )


async def test_cash_payment_settles_order(seeded, client):
    order = await open_order(client, seeded)

    response = await pay(client, seeded, order["id"], 369)

    assert response.status_code == 201
    body = response.json()
    assert body["orderStatus"] == "PAID"
    assert body["paymentStatus"] == "PAID"
    assert body["payment"]["status"] == "PAID"
    assert body["payment"]["transactionRef"].startswith("CASH-")
    assert body["payment"]["paidAt"] is not None

    tables = (await client.get("/api/tables", headers=seeded.headers)).json()
    assert {t["label"]: t["status"] for t in tables}["T-01"] == "AVAILABLE"


@pytest.mark.parametrize("method", ["CARD", "QR"])
async def test_gateway_payments_stay_pending(seeded, client, method):
    order = await open_order(client, seeded)

    body = (await pay(client, seeded, order["id"], 369, method=method)).json()

    assert body["payment"]["status"] == "PENDING"
    assert body["payment"]["transactionRef"] is None
    assert body["orderStatus"] == "CONFIRMED"
    assert body["paymentStatus"] == "PENDING"


async def test_amount_must_match_total(seeded, client):
    order = await open_order(client, seeded)

    response = await pay(client, seeded, order["id"], 300)

    assert response.status_code == 400
    assert "369.00" in response.json()["detail"]
    assert (await client.get("/api/payments", headers=seeded.headers)).json() == []


async def test_amount_within_tolerance_is_accepted(seeded, client):
    order = await open_order(client, seeded)
    response = await pay(client, seeded, order["id"], 369.005)
    assert response.status_code == 201


async def test_double_payment_is_rejected(seeded, client):
    order = await open_order(client, seeded)
    await pay(client, seeded, order["id"], 369)

    again = await pay(client, seeded, order["id"], 369)

    assert again.status_code == 400
    assert again.json()["detail"] == "Already paid"


async def test_cancelled_order_cannot_be_paid(seeded, client):
    order = await open_order(client, seeded)
    await client.patch(
        "/api/orders", json={"orderId": order["id"], "status": "CANCELLED"}, headers=seeded.headers
    )

    response = await pay(client, seeded, order["id"], 369)
    assert response.status_code == 409


async def test_unknown_order(seeded, client):
    response = await pay(client, seeded, "nope", 10)
    assert response.status_code == 404


@pytest.mark.parametrize("amount", [0, -5])
async def test_amount_must_be_positive(seeded, client, amount):
    order = await open_order(client, seeded)
    response = await pay(client, seeded, order["id"], amount)
    assert response.status_code == 400


async def test_cash_payment_closes_linked_chat(seeded, chat, client):
    first = await chat("2 momo please", tableLabel="T-02")
    placed = await chat("place order", sessionId=first["sessionId"])

    await pay(client, seeded, placed["orderDetails"]["id"], 369)

    history = (await client.get("/api/chat", params={"sessionId": first["sessionId"]})).json()
    assert history["state"] == "COMPLETED"
    assert "Payment confirmed" in history["messages"][-1]["content"]


async def test_list_payments_by_order(seeded, client):
    first = await open_order(client, seeded, "T-01")
    second = await open_order(client, seeded, "T-02")
    await pay(client, seeded, first["id"], 369, method="CARD")
    await pay(client, seeded, second["id"], 369)

    everything = (await client.get("/api/payments", headers=seeded.headers)).json()
    assert len(everything) == 2

    filtered = (await client.get("/api/payments", params={"orderId": first["id"]}, headers=seeded.headers)).json()
    assert [p["method"] for p in filtered] == ["CARD"]

    other = (await client.get("/api/payments", headers={"X-Tenant-Slug": "other"})).json()
    assert other == []
