from foodapp import tasks
from foodapp.services.notifications.messages import (
    order_alert_text,
    order_confirmation_email,
    status_update_text,
)
from foodapp.tasks import enqueue

ORDER = {
    "order_number": "ORD-20261017-AB12CD",
    "customer_name": "Asha Verma",
    "customer_phone": "+919876500001",
    "customer_email": "asha@example.com",
    "delivery_address": "12 MG Road, Bengaluru",
    "customer_notes": "No onions",
    "items": [
        {"name": "Butter Chicken", "quantity": 2, "unit_price": "200.00", "total_price": "400.00"},
        {"name": "Garlic Naan", "quantity": 1, "unit_price": "50.00", "total_price": "50.00"},
    ],
    "subtotal": "450.00",
    "tax": "81.00",
    "delivery_fee": "50.00",
    "discount": "0.00",
    "total": "581.00",
}


# =============================================================================
# MESSAGE TEXT
# =============================================================================

def test_order_alert_lists_items_and_total():
    text = order_alert_text(ORDER)

    assert "New order ORD-20261017-AB12CD" in text
    assert "2x Butter Chicken - ₹400.00" in text
    assert "Total: ₹581.00" in text
    assert "Notes: No onions" in text


def test_status_update_text():
    text = status_update_text("ORD-1", "out_for_delivery", "Rider: Suresh")

    assert text.startswith("Your order ORD-1 is on its way!")
    assert "Rider: Suresh" in text


def test_status_update_text_for_unknown_status():
    assert status_update_text("ORD-1", "on_hold").startswith("Your order ORD-1 is now on hold.")


def test_confirmation_email():
    subject, html, text = order_confirmation_email(ORDER)

    assert subject.startswith("Order Confirmed ORD-20261017-AB12CD")
    assert "1x Garlic Naan" in html
    assert "₹581.00" in text


# =============================================================================
# QUEUEING
# =============================================================================

class FakeTask:
    name = "foodapp.tasks.fake"

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def delay(self, *args):
        if self.error:
            raise self.error
        self.calls.append(args)
        return type("AsyncResult", (), {"id": "task-123"})()


def test_enqueue_returns_task_id():
    task = FakeTask()

    assert enqueue(task, "a", 1) == "task-123"
    assert task.calls == [("a", 1)]


def test_enqueue_survives_broker_outage():
    assert enqueue(FakeTask(ConnectionError("broker down")), "a") is None


def test_tasks_are_registered_with_celery():
    registered = set(tasks.celery_app.tasks)

    for task in (
        tasks.send_order_alert,
        tasks.send_order_confirmation_email,
        tasks.send_status_update,
        tasks.send_welcome_message,
        tasks.cleanup_stale_carts,
        tasks.send_daily_sales_report,
    ):
        assert task.name in registered


# =============================================================================
# IN-APP NOTIFICATIONS
# =============================================================================

async def test_order_events_reach_notification_center(client, menu, customer, admin, auth):
    order = (
        await client.post(
            "/api/orders", json={"items": [{"menu_item_id": menu["naan"].id, "quantity": 1}]}, headers=auth(customer)
        )
    ).json()
    await client.patch(f"/api/admin/orders/{order['id']}/status", json={"status": "confirmed"}, headers=auth(admin))

    inbox = (await client.get("/api/notifications", headers=auth(customer))).json()

    assert [n["title"] for n in inbox] == [
        f"Order {order['order_number']} confirmed",
        f"Order {order['order_number']} placed",
    ]
    assert all(n["order_id"] == order["id"] for n in inbox)


async def test_mark_read(client, customer, make_user, admin, auth):
    await client.post(
        "/api/admin/notifications/broadcast",
        json={"title": "Monsoon menu", "message": "Pakoras are back!"},
        headers=auth(admin),
    )
    headers = auth(customer)
    inbox = (await client.get("/api/notifications", headers=headers)).json()

    read = await client.post(f"/api/notifications/{inbox[0]['id']}/read", headers=headers)
    unread = (await client.get("/api/notifications", params={"unread": "true"}, headers=headers)).json()

    assert read.json()["is_read"] is True
    assert unread == []

    other = await make_user()
    foreign = await client.post(f"/api/notifications/{inbox[0]['id']}/read", headers=auth(other))
    assert foreign.status_code == 404


async def test_broadcast_by_role(client, customer, make_user, admin, auth):
    await make_user()
    await make_user(is_active=False)

    everyone = await client.post(
        "/api/admin/notifications/broadcast",
        json={"title": "Holiday hours", "message": "Closed on Monday"},
        headers=auth(admin),
    )
    customers = await client.post(
        "/api/admin/notifications/broadcast",
        json={"title": "Weekend treat", "message": "Free dessert", "role": "customer"},
        headers=auth(admin),
    )
    marked = await client.post("/api/notifications/read-all", headers=auth(customer))

    assert everyone.json() == {"recipients": 3}
    assert customers.json() == {"recipients": 2}
    assert marked.json()["message"] == "2 notifications marked as read"
