"""Tests for the FastAPI boundary."""

from typing import get_args

import pytest
from fastapi.testclient import TestClient

from storefront.services.api_gateway import main
from storefront.services.api_gateway.actions import ACTION_TYPES
from storefront.services.api_gateway.handlers import build_handlers


ENDPOINT = "/api/order-verification"
ADMIN = {"x-api-key": "test-key"}


@pytest.fixture
def handlers(session_factory, channel, site_settings, clock):
    return build_handlers(session_factory, rdb=None, channel=channel, site_settings=site_settings, clock=clock)


@pytest.fixture
def client(handlers, monkeypatch):
    monkeypatch.setattr(main, "handlers", handlers)
    return TestClient(main.app)


def send(client, email="a@x.com"):
    return client.post(ENDPOINT, json={"action": "send", "email": email})


def verify(client, channel, email="a@x.com"):
    resp = send(client, email)
    assert resp.status_code == 200
    return client.post(ENDPOINT, json={"action": "verify", "email": email, "otp": channel.last_code()})


def create_order(client, email="a@x.com", method="cash_on_delivery", items=None, **extra):
    body = {
        "action": "create-order",
        "email": email,
        "orderData": {"name": "Ayesha", "phone": "0300", "address": "Mall Road", "paymentMethod": method},
        "items": items or [{"id": "w1", "name": "Watch", "price": 1000, "quantity": 2, "image_url": None}],
    }
    body.update(extra)
    return client.post(ENDPOINT, json=body)


MINIMAL_BODIES = {
    "send": ({"email": "a@x.com"}, 200),
    "verify": ({"email": "a@x.com", "otp": "123456"}, 400),
    "create-order": (
        {
            "email": "a@x.com",
            "orderData": {"name": "Ayesha", "phone": "0300"},
            "items": [{"id": "w1", "name": "Watch", "price": 10, "quantity": 1}],
        },
        403,
    ),
    "send-confirmation": ({"email": "a@x.com", "orderItems": [], "trackingIds": ["TS-20261018-NOTFOUND"]}, 404),
    "send-status-update": ({"email": "a@x.com", "newStatus": "shipped", "trackingId": "TS-20261018-ABCDEFGH"}, 200),
    "track-order": ({"trackingId": "TS-20261018-NOTFOUND"}, 404),
    "get-order-history": ({"email": "a@x.com"}, 200),
}


def test_minimal_bodies_cover_every_action():
    assert set(MINIMAL_BODIES) == {get_args(t.model_fields["action"].annotation)[0] for t in ACTION_TYPES}


@pytest.mark.parametrize("action", sorted(MINIMAL_BODIES))
def test_every_action_reaches_its_handler(client, action):
    body, expected = MINIMAL_BODIES[action]

    resp = client.post(ENDPOINT, json={"action": action, **body}, headers=ADMIN)

    assert resp.status_code == expected
    assert resp.json()["success"] is (expected == 200)


def test_end_to_end_checkout(client, channel):
    first = send(client)
    assert first.status_code == 200
    assert first.json() == {"success": True, "message": "OTP sent successfully"}
    code = channel.last_code()

    again = send(client)
    assert again.status_code == 429
    assert again.json()["success"] is False
    assert again.json()["cooldownRemaining"] == 60

    wrong = f"{(int(code) + 1) % 10**6:06d}"
    bad = client.post(ENDPOINT, json={"action": "verify", "email": "a@x.com", "otp": wrong})
    assert bad.status_code == 400
    assert bad.json() == {"success": False, "message": "Invalid or expired OTP"}

    good = client.post(ENDPOINT, json={"action": "verify", "email": "a@x.com", "otp": code})
    assert good.json() == {"success": True, "message": "OTP verified successfully"}

    created = create_order(client)
    assert created.status_code == 200
    tracking_ids = created.json()["trackingIds"]
    assert len(tracking_ids) == 1

    tracked = client.post(ENDPOINT, json={"action": "track-order", "trackingId": tracking_ids[0]})
    order = tracked.json()["order"]
    assert order["total_amount"] == 2000.0
    assert order["payment_status"] == "pending"
    assert order["status"] == "pending"


def test_create_order_without_verification_is_forbidden(client):
    resp = create_order(client)

    assert resp.status_code == 403
    assert resp.json()["success"] is False


def test_malformed_body_uses_uniform_shape(client):
    resp = client.post(ENDPOINT, json={"action": "verify", "email": "a@x.com"})

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "otp" in resp.json()["message"]


def test_unknown_action_is_rejected(client):
    resp = client.post(ENDPOINT, json={"action": "delete-everything"})

    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_invalid_email_is_rejected(client):
    resp = send(client, "nope")

    assert resp.status_code == 400
    assert resp.json()["message"] == "Please enter a valid email address"


def test_track_unknown_order_is_404(client):
    resp = client.post(ENDPOINT, json={"action": "track-order", "trackingId": "TS-00000000-NOTFOUND"})

    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Order not found"}
    assert client.get("/orders/TS-00000000-NOTFOUND").status_code == 404


def test_order_history_by_email(client, channel):
    verify(client, channel)
    create_order(client, items=[{"id": "a", "name": "A", "price": 5, "quantity": 1}])

    resp = client.post(ENDPOINT, json={"action": "get-order-history", "email": "A@X.COM"})
    rest = client.get("/orders", params={"email": "a@x.com"})

    assert resp.json()["success"] is True
    assert len(resp.json()["orders"]) == 1
    assert rest.json() == resp.json()


def test_order_history_can_require_verification(client, handlers, channel):
    handlers.history_requires_verification = True

    denied = client.post(ENDPOINT, json={"action": "get-order-history", "email": "a@x.com"})
    assert denied.status_code == 403

    verify(client, channel)
    allowed = client.post(ENDPOINT, json={"action": "get-order-history", "email": "a@x.com"})
    assert allowed.status_code == 200


def test_send_confirmation_only_for_owned_orders(client, channel):
    verify(client, channel)
    tracking_ids = create_order(client).json()["trackingIds"]
    body = {
        "action": "send-confirmation",
        "email": "a@x.com",
        "orderItems": [{"name": "Watch", "quantity": 2, "price": 1000}],
        "trackingIds": tracking_ids,
        "paymentMethod": "cash_on_delivery",
        "customerName": "Ayesha",
        "customerAddress": "Mall Road",
    }

    ok = client.post(ENDPOINT, json=body)
    stranger = client.post(ENDPOINT, json={**body, "email": "b@x.com"})

    assert ok.json() == {"success": True}
    assert stranger.status_code == 404


def test_send_status_update_requires_api_key(client, channel):
    body = {
        "action": "send-status-update",
        "email": "a@x.com",
        "orderDetails": {"customerName": "Ayesha", "productName": "Watch", "quantity": 1, "totalAmount": 1000},
        "newStatus": "shipped",
        "trackingId": "TS-20261018-ABCDEFGH",
    }

    assert client.post(ENDPOINT, json=body).status_code == 401
    resp = client.post(ENDPOINT, json=body, headers=ADMIN)

    assert resp.json() == {"success": True}
    assert channel.messages[-1].subject == "Order TS-20261018-ABCDEFGH is now shipped"


def test_dispatch_failure_on_send_is_generic(client, channel):
    channel.fail = True

    resp = send(client)

    assert resp.status_code == 502
    assert resp.json() == {"success": False, "message": "Failed to send email. Please try again"}


def test_admin_routes(client, channel):
    verify(client, channel)
    [tracking_id] = create_order(client).json()["trackingIds"]

    assert client.get("/admin/orders").status_code == 401
    listed = client.get("/admin/orders", headers=ADMIN)
    assert [o["tracking_id"] for o in listed.json()["orders"]] == [tracking_id]

    updated = client.patch(
        f"/admin/orders/{tracking_id}",
        json={"status": "confirmed", "payment_status": "paid"},
        headers=ADMIN,
    )
    assert updated.json()["order"]["status"] == "confirmed"
    assert updated.json()["order"]["payment_status"] == "paid"

    assert client.delete(f"/admin/orders/{tracking_id}", headers=ADMIN).json() == {"success": True}
    assert client.get(f"/orders/{tracking_id}").status_code == 404


def test_health_and_metrics(client):
    assert client.get("/health").json() == {"ok": True}
    assert "passcodes_issued_total" in client.get("/metrics").text


@pytest.mark.parametrize("price", ["0.125", 0.125, "12345678901.00"])
def test_create_order_rejects_sub_cent_prices(client, channel, price):
    verify(client, channel)

    resp = create_order(client, items=[{"id": "w1", "name": "Watch", "price": price, "quantity": 100}])

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert "price" in resp.json()["message"]
    assert client.get("/admin/orders", headers=ADMIN).json()["orders"] == []


def test_create_order_rejects_blank_name(client, channel):
    verify(client, channel)
    body = {
        "action": "create-order",
        "email": "a@x.com",
        "orderData": {"name": "   ", "phone": "0300"},
        "items": [{"id": "w1", "name": "Watch", "price": 10, "quantity": 1}],
    }

    resp = client.post(ENDPOINT, json=body)

    assert resp.status_code == 400
    assert "name" in resp.json()["message"]
