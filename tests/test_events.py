from types import SimpleNamespace

import pytest
from kombu.exceptions import OperationalError

from tabletalk.models import Order, OrderStatus, PaymentStatus
from tabletalk.services.events import OrderEvent, emit_order_event, order_event_payload
from tabletalk.tasks import tenant_channel


@pytest.fixture
def queued(monkeypatch):
    calls = []
    fake_task = SimpleNamespace(delay=lambda *args: calls.append(args))
    monkeypatch.setattr("tabletalk.tasks.publish_order_event", fake_task)
    return calls


def test_payload_shape():
    order = Order(
        id="o1",
        order_number="ORD-0001",
        status=OrderStatus.CONFIRMED,
        payment_status=PaymentStatus.PENDING,
        total=369.0,
    )
    assert order_event_payload(order, "T-01") == {
        "id": "o1",
        "orderNumber": "ORD-0001",
        "status": "CONFIRMED",
        "paymentStatus": "PENDING",
        "tableLabel": "T-01",
        "total": 369.0,
    }


def test_nothing_queued_when_disabled(queued):
    emit_order_event("tenant-1", OrderEvent.ORDER_CREATED, {"orderNumber": "ORD-0001"})
    assert queued == []


def test_event_queued_when_enabled(settings_env, queued):
    settings_env(realtime_events_enabled="true")
    emit_order_event("tenant-1", OrderEvent.ORDER_STATUS_CHANGED, {"orderNumber": "ORD-0001"})
    assert queued == [("tenant-1", "ORDER_STATUS_CHANGED", {"orderNumber": "ORD-0001"})]


def test_broker_outage_is_swallowed(settings_env, monkeypatch):
    settings_env(realtime_events_enabled="true")

    def unreachable(*args):
        raise OperationalError("broker down")

    monkeypatch.setattr("tabletalk.tasks.publish_order_event", SimpleNamespace(delay=unreachable))
    emit_order_event("tenant-1", OrderEvent.ORDER_CREATED, {"orderNumber": "ORD-0001"})


def test_channel_name_is_per_tenant():
    assert tenant_channel("abc") == "tenant-abc"
