import json
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from svix.webhooks import Webhook

from foodapp.core.config import get_settings
from foodapp.models import User, UserRole


def user_event(event_type: str, clerk_id: str = "user_2abc", **data) -> dict:
    body = {
        "id": clerk_id,
        "email_addresses": [{"email_address": "meera@example.com"}],
        "phone_numbers": [{"phone_number": "+919812345678"}],
        "first_name": "Meera",
        "last_name": "Nair",
        "public_metadata": {},
    }
    body.update(data)
    return {"type": event_type, "data": body}


def signed(event: dict) -> tuple[str, dict]:
    payload = json.dumps(event)
    msg_id = f"msg_{uuid.uuid4().hex}"
    now = datetime.now(timezone.utc)
    signature = Webhook(get_settings().auth_webhook_secret).sign(msg_id, now, payload)
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(int(now.timestamp())),
        "svix-signature": signature,
        "content-type": "application/json",
    }
    return payload, headers


async def post_event(client, event: dict):
    payload, headers = signed(event)
    return await client.post("/api/webhooks/auth", content=payload, headers=headers)


async def find(db, clerk_id: str) -> User:
    return await db.scalar(
        select(User).where(User.clerk_id == clerk_id).execution_options(populate_existing=True)
    )


# =============================================================================
# IDENTITY WEBHOOK
# =============================================================================

async def test_user_created_from_signed_event(client, db, queued):
    response = await post_event(client, user_event("user.created"))

    assert response.json() == {"received": True, "handled": True, "event_type": "user.created"}
    user = await find(db, "user_2abc")
    assert user.email == "meera@example.com"
    assert user.role == UserRole.CUSTOMER
    assert user.phone == "+919812345678"
    assert queued == [("send_welcome_message", ("+919812345678", "Meera"))]


async def test_user_updated_takes_role_from_metadata(client, db):
    await post_event(client, user_event("user.created"))

    await post_event(
        client, user_event("user.updated", last_name="Iyer", public_metadata={"role": "kitchen_staff"})
    )

    user = await find(db, "user_2abc")
    assert user.last_name == "Iyer"
    assert user.role == UserRole.KITCHEN_STAFF


async def test_unknown_role_is_ignored(client, db):
    await post_event(client, user_event("user.created", public_metadata={"role": "owner"}))

    assert (await find(db, "user_2abc")).role == UserRole.CUSTOMER


async def test_user_deleted_deactivates(client, db, auth):
    await post_event(client, user_event("user.created"))
    user = await find(db, "user_2abc")

    response = await post_event(client, {"type": "user.deleted", "data": {"id": "user_2abc", "deleted": True}})

    assert response.json()["handled"] is True
    assert (await find(db, "user_2abc")).is_active is False
    me = await client.get("/api/users/me", headers=auth(user))
    assert me.status_code == 403


async def test_other_events_are_acknowledged(client):
    response = await post_event(client, {"type": "session.created", "data": {"id": "sess_1"}})

    assert response.json() == {"received": True, "handled": False, "event_type": "session.created"}


async def test_missing_svix_headers(client):
    response = await client.post("/api/webhooks/auth", content=json.dumps(user_event("user.created")))

    assert response.status_code == 400
    assert response.json()["error"] == "Missing svix headers"


async def test_tampered_payload_is_rejected(client, db):
    payload, headers = signed(user_event("user.created"))
    tampered = payload.replace("meera@example.com", "attacker@example.com")

    response = await client.post("/api/webhooks/auth", content=tampered, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid webhook signature"
    assert await find(db, "user_2abc") is None


async def test_unsigned_events_accepted_in_development(client, db, monkeypatch):
    monkeypatch.setattr(get_settings(), "auth_webhook_secret", None)

    response = await client.post("/api/webhooks/auth", content=json.dumps(user_event("user.created")))

    assert response.status_code == 200
    assert (await find(db, "user_2abc")) is not None


# =============================================================================
# PROFILE
# =============================================================================

async def test_me(client, customer, auth):
    response = await client.get("/api/users/me", headers=auth(customer))

    body = response.json()
    assert body["id"] == customer.id
    assert body["email"] == customer.email
    assert body["role"] == "customer"


async def test_update_me(client, customer, auth):
    response = await client.patch(
        "/api/users/me", json={"first_name": "Ananya", "phone": "+91 99000 11122"}, headers=auth(customer)
    )

    assert response.json()["first_name"] == "Ananya"
    assert response.json()["phone"] == "+91 99000 11122"

    short = await client.patch("/api/users/me", json={"phone": "12345"}, headers=auth(customer))
    assert short.status_code == 400


async def test_stats_exclude_cancelled_orders(client, menu, customer, auth):
    headers = auth(customer)
    line = {"items": [{"menu_item_id": menu["curry"].id, "quantity": 3}]}
    await client.post("/api/orders", json=line, headers=headers)
    cancelled = (await client.post("/api/orders", json=line, headers=headers)).json()
    await client.post(f"/api/orders/{cancelled['id']}/cancel", headers=headers)

    stats = (await client.get("/api/users/me/stats", headers=headers)).json()

    assert stats["total_orders"] == 1
    assert stats["total_spent"] == "708.00"
    assert stats["loyalty_points"] == 708
