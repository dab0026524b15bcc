import hashlib
import hmac
import json
import threading
import time
from types import SimpleNamespace

import pytest
import stripe

from foodapp.core.config import get_settings
from foodapp.services.order_service import PAID_AFTER_CANCEL_NOTE
from foodapp.services.payment import get_payment_service
from foodapp.services.payment.stripe import StripePaymentService


@pytest.fixture
async def order(client, menu, customer, auth):
    response = await client.post(
        "/api/orders",
        json={"items": [{"menu_item_id": menu["curry"].id, "quantity": 2}]},
        headers=auth(customer),
    )
    return response.json()


async def open_intent(client, order, headers):
    response = await client.post("/api/payments/intent", json={"order_id": order["id"]}, headers=headers)
    assert response.status_code == 200
    return response.json()


async def send_event(client, event_type, intent_id, **extra):
    event = {"type": event_type, "data": {"object": {"id": intent_id, **extra}}}
    return await client.post("/api/payments/webhook", content=json.dumps(event))


async def test_intent_covers_order_total(client, order, customer, auth):
    intent = await open_intent(client, order, auth(customer))

    assert intent["payment_intent_id"].startswith("pi_mock_")
    assert intent["client_secret"].endswith("_secret_mock")
    assert intent["amount"] == order["total"]
    assert intent["currency"] == "inr"


async def test_intent_for_another_users_order(client, order, make_user, auth):
    stranger = await make_user()

    response = await client.post("/api/payments/intent", json={"order_id": order["id"]}, headers=auth(stranger))

    assert response.status_code == 404


async def test_gateway_error_is_502(client, order, customer, auth):
    get_payment_service().failure_rate = 1.0

    response = await client.post("/api/payments/intent", json={"order_id": order["id"]}, headers=auth(customer))

    assert response.status_code == 502
    assert response.json()["detail"]["error_code"] in {"processing_error", "rate_limit"}


async def test_succeeded_event_confirms_order(client, order, customer, auth, queued):
    intent = await open_intent(client, order, auth(customer))

    ack = await send_event(client, "payment_intent.succeeded", intent["payment_intent_id"])
    detail = (await client.get(f"/api/orders/{order['id']}", headers=auth(customer))).json()

    assert ack.json() == {"received": True, "handled": True, "event_type": "payment_intent.succeeded"}
    assert detail["payment_status"] == "completed"
    assert detail["status"] == "confirmed"
    assert detail["tracking"][-1]["message"] == "Payment received"
    assert queued[-1][0] == "send_status_update"

    again = await client.post("/api/payments/intent", json={"order_id": order["id"]}, headers=auth(customer))
    assert again.status_code == 400


async def test_failed_event_cancels_order(client, order, customer, auth):
    intent = await open_intent(client, order, auth(customer))

    await send_event(
        client,
        "payment_intent.payment_failed",
        intent["payment_intent_id"],
        last_payment_error={"message": "Your card was declined."},
    )
    detail = (await client.get(f"/api/orders/{order['id']}", headers=auth(customer))).json()

    assert detail["payment_status"] == "failed"
    assert detail["status"] == "cancelled"
    assert detail["kitchen_notes"] == "Payment failed: Your card was declined."


async def test_event_matched_by_metadata(client, order):
    response = await send_event(
        client, "payment_intent.canceled", "pi_unknown", metadata={"order_id": str(order["id"])}
    )

    assert response.json()["handled"] is True


async def test_unrelated_and_unknown_events(client):
    ignored = await send_event(client, "charge.refunded", "pi_123")
    unknown = await send_event(client, "payment_intent.succeeded", "pi_nobody")
    garbage = await client.post("/api/payments/webhook", content=b"not json")

    assert ignored.json()["handled"] is False
    assert unknown.json()["handled"] is False
    assert garbage.status_code == 400


async def test_refund_requires_completed_payment(client, order, customer, admin, auth):
    url = f"/api/admin/orders/{order['id']}/refund"

    early = await client.post(url, json={}, headers=auth(admin))
    assert early.status_code == 400

    intent = await open_intent(client, order, auth(customer))
    await send_event(client, "payment_intent.succeeded", intent["payment_intent_id"])

    too_much = await client.post(url, json={"amount": "10000"}, headers=auth(admin))
    refunded = await client.post(url, json={"reason": "requested_by_customer"}, headers=auth(admin))

    assert too_much.status_code == 400
    assert refunded.status_code == 200
    assert refunded.json()["refund_id"].startswith("re_mock_")
    assert refunded.json()["payment_status"] == "refunded"


async def test_payment_after_cancellation_is_flagged_for_refund(client, order, customer, admin, auth, queued):
    intent = await open_intent(client, order, auth(customer))
    await client.post(f"/api/orders/{order['id']}/cancel", headers=auth(customer))
    messages_before = len(queued)

    ack = await send_event(client, "payment_intent.succeeded", intent["payment_intent_id"])
    detail = (await client.get(f"/api/orders/{order['id']}", headers=auth(customer))).json()

    assert ack.json()["handled"] is True
    assert detail["status"] == "cancelled"
    assert detail["payment_status"] == "completed"
    assert detail["kitchen_notes"] == PAID_AFTER_CANCEL_NOTE
    assert len(queued) == messages_before

    refunded = await client.post(f"/api/admin/orders/{order['id']}/refund", json={}, headers=auth(admin))
    assert refunded.json()["payment_status"] == "refunded"


# =============================================================================
# STRIPE GATEWAY
# =============================================================================

@pytest.fixture
def stripe_settings(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(stripe, "api_key", None)
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_foodapp")
    monkeypatch.setattr(settings, "stripe_webhook_secret", None)
    return settings


def stripe_signature(payload: bytes, secret: str) -> str:
    timestamp = int(time.time())
    signed_payload = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


async def test_stripe_rejects_webhooks_without_secret(stripe_settings):
    payload = json.dumps({"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}}).encode()

    service = StripePaymentService()

    assert await service.verify_webhook(payload, None) is None
    assert await service.verify_webhook(payload, "t=1,v1=deadbeef") is None


async def test_stripe_accepts_signed_webhooks(stripe_settings, monkeypatch):
    monkeypatch.setattr(stripe_settings, "stripe_webhook_secret", "whsec_foodapp")
    payload = json.dumps({"id": "evt_1", "object": "event", "type": "payment_intent.succeeded"}).encode()

    service = StripePaymentService()

    event = await service.verify_webhook(payload, stripe_signature(payload, "whsec_foodapp"))
    assert event["type"] == "payment_intent.succeeded"
    assert await service.verify_webhook(payload, stripe_signature(payload, "whsec_other")) is None


async def test_stripe_calls_run_off_the_event_loop(stripe_settings, monkeypatch):
    loop_thread = threading.get_ident()
    seen = {}

    def create(**params):
        seen["thread"] = threading.get_ident()
        seen["amount"] = params["amount"]
        return SimpleNamespace(
            id="pi_live_1",
            client_secret="pi_live_1_secret",
            amount=params["amount"],
            currency="inr",
            status="requires_payment_method",
        )

    monkeypatch.setattr(stripe.PaymentIntent, "create", create)

    result = await StripePaymentService().create_payment_intent(522.0)

    assert result.success is True
    assert result.amount == 522.0
    assert seen["amount"] == 52200
    assert seen["thread"] != loop_thread
