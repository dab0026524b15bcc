from pathlib import Path

import pandas as pd
import pytest

from foodapp.core.config import get_settings
from foodapp.models import UserRole


async def place(client, headers, menu_item, quantity=1):
    response = await client.post(
        "/api/orders", json={"items": [{"menu_item_id": menu_item.id, "quantity": quantity}]}, headers=headers
    )
    return response.json()


# =============================================================================
# DASHBOARD & ANALYTICS
# =============================================================================

async def test_dashboard_excludes_cancelled_revenue(client, menu, customer, admin, auth):
    headers = auth(customer)
    await place(client, headers, menu["curry"], 3)  # 708.00
    await place(client, headers, menu["naan"], 2)  # 100 + 18 + 50 = 168.00
    cancelled = await place(client, headers, menu["curry"])
    await client.post(f"/api/orders/{cancelled['id']}/cancel", headers=headers)

    stats = (await client.get("/api/admin/dashboard", headers=auth(admin))).json()

    assert stats["total_orders"] == 2
    assert stats["total_revenue"] == "876.00"
    assert stats["today_revenue"] == "876.00"
    assert stats["average_order_value"] == "438.00"
    assert stats["pending_orders"] == 2
    assert stats["total_customers"] == 1
    assert {s["status"]: s["count"] for s in stats["status_breakdown"]} == {"pending": 2, "cancelled": 1}
    assert len(stats["recent_orders"]) == 3


async def test_revenue_series_is_zero_filled(client, menu, customer, admin, auth):
    await place(client, auth(customer), menu["curry"], 3)

    series = (await client.get("/api/admin/analytics/revenue", params={"days": 3}, headers=auth(admin))).json()

    assert len(series) == 3
    assert [p["orders"] for p in series] == [0, 0, 1]
    assert series[-1]["revenue"] == "708.00"


async def test_top_selling_items(client, menu, customer, admin, auth):
    await place(client, auth(customer), menu["naan"], 4)
    await place(client, auth(customer), menu["curry"], 1)

    top = (await client.get("/api/admin/analytics/top-items", headers=auth(admin))).json()

    assert [(t["name"], t["quantity"]) for t in top] == [("Garlic Naan", 4), ("Butter Chicken", 1)]


async def test_admin_area_requires_admin(client, customer, make_user, auth):
    kitchen = await make_user(role=UserRole.KITCHEN_STAFF, with_address=False)

    assert (await client.get("/api/admin/dashboard")).status_code == 401
    assert (await client.get("/api/admin/dashboard", headers=auth(customer))).status_code == 403
    assert (await client.get("/api/admin/dashboard", headers=auth(kitchen))).status_code == 403
    assert (await client.get("/api/admin/orders", headers=auth(kitchen))).status_code == 200


async def test_order_board_search(client, menu, customer, admin, auth):
    order = await place(client, auth(customer), menu["naan"])

    by_number = await client.get("/api/admin/orders", params={"search": order["order_number"][-6:]}, headers=auth(admin))
    by_status = await client.get("/api/admin/orders", params={"status": "delivered"}, headers=auth(admin))

    assert [o["id"] for o in by_number.json()["orders"]] == [order["id"]]
    assert by_status.json()["total"] == 0


# =============================================================================
# CATALOG
# =============================================================================

async def test_category_slug_must_be_unique(client, admin, auth):
    first = await client.post("/api/admin/categories", json={"name": "South Indian"}, headers=auth(admin))
    duplicate = await client.post("/api/admin/categories", json={"name": "south indian"}, headers=auth(admin))

    assert first.json()["slug"] == "south-indian"
    assert duplicate.status_code == 409


async def test_category_with_items_cannot_be_deleted(client, menu, admin, auth):
    mains = menu["curry"].category_id

    response = await client.delete(f"/api/admin/categories/{mains}", headers=auth(admin))

    assert response.status_code == 409
    assert response.json()["detail"] == {"menu_items": 2}


async def test_menu_item_crud(client, menu, admin, auth):
    headers = auth(admin)
    created = await client.post(
        "/api/admin/menu-items",
        json={"name": "Masala Dosa", "price": "149.00", "category_id": menu["naan"].category_id, "is_vegetarian": True},
        headers=headers,
    )
    item_id = created.json()["id"]

    updated = await client.patch(f"/api/admin/menu-items/{item_id}", json={"price": "159.00"}, headers=headers)
    deleted = await client.delete(f"/api/admin/menu-items/{item_id}", headers=headers)
    gone = await client.get(f"/api/menu-items/{item_id}")

    assert created.status_code == 201
    assert updated.json()["price"] == "159.00"
    assert deleted.status_code == 200
    assert gone.status_code == 404


async def test_menu_item_with_unknown_category(client, admin, auth):
    response = await client.post(
        "/api/admin/menu-items", json={"name": "Idli", "price": "59", "category_id": 404}, headers=auth(admin)
    )

    assert response.status_code == 400


async def test_availability_toggle_is_idempotent(client, menu, admin, auth):
    url = f"/api/admin/menu-items/{menu['curry'].id}/availability"

    first = await client.patch(url, json={"is_available": False}, headers=auth(admin))
    second = await client.patch(url, json={"is_available": False}, headers=auth(admin))

    assert first.json()["is_available"] is False
    assert second.json()["is_available"] is False


async def test_bulk_availability(client, menu, admin, auth):
    ids = [menu["curry"].id, menu["naan"].id, menu["biryani"].id]

    response = await client.post(
        "/api/admin/menu-items/bulk-availability", json={"item_ids": ids, "is_available": True}, headers=auth(admin)
    )
    stats = (await client.get("/api/admin/menu-items/stats", headers=auth(admin))).json()

    assert response.json() == {"updated": 3}
    assert stats["available_items"] == 3
    assert stats["unavailable_items"] == 0
    assert stats["average_price"] == "200.00"


async def test_image_upload(client, admin, auth):
    files = {"file": ("dosa.png", b"\x89PNG\r\n\x1a\nfake-image-bytes", "image/png")}

    response = await client.post("/api/admin/uploads/image", files=files, headers=auth(admin))

    assert response.status_code == 201
    assert response.json()["size_bytes"] == 24


async def test_image_upload_rejects_other_files(client, admin, auth):
    files = {"file": ("menu.pdf", b"%PDF-1.4", "application/pdf")}

    response = await client.post("/api/admin/uploads/image", files=files, headers=auth(admin))

    assert response.status_code == 400


# =============================================================================
# USERS & SETTINGS
# =============================================================================

async def test_user_management(client, customer, admin, auth):
    headers = auth(admin)

    listed = (await client.get("/api/admin/users", params={"role": "customer"}, headers=headers)).json()
    promoted = await client.patch(f"/api/admin/users/{customer.id}/role", json={"role": "kitchen_staff"}, headers=headers)
    disabled = await client.patch(f"/api/admin/users/{customer.id}/status", json={"is_active": False}, headers=headers)

    assert [u["id"] for u in listed["users"]] == [customer.id]
    assert promoted.json()["role"] == "kitchen_staff"
    assert disabled.json()["is_active"] is False
    assert (await client.get("/api/users/me", headers=auth(customer))).status_code == 403


async def test_restaurant_settings(client, admin, auth):
    headers = auth(admin)

    defaults = (await client.get("/api/admin/settings", headers=headers)).json()
    updated = await client.patch(
        "/api/admin/settings", json={"delivery_fee": "40", "opening_hours": {"mon": "11:00-23:00"}}, headers=headers
    )

    assert defaults["is_ordering_enabled"] is True
    assert defaults["delivery_fee"] == "50.00"
    assert updated.json()["delivery_fee"] == "40.00"
    assert updated.json()["opening_hours"] == {"mon": "11:00-23:00"}


# =============================================================================
# EXPORTS
# =============================================================================

@pytest.mark.parametrize("name", ["orders", "menu-items", "users"])
async def test_export_is_downloadable(client, menu, customer, admin, auth, name):
    await place(client, auth(customer), menu["curry"], 2)

    response = await client.get(f"/api/admin/exports/{name}", headers=auth(admin))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/vnd.openxmlformats")
    assert response.content[:2] == b"PK"


async def test_orders_export_content(client, menu, customer, admin, auth):
    order = await place(client, auth(customer), menu["curry"], 2)

    await client.get("/api/admin/exports/orders", headers=auth(admin))

    df = pd.read_excel(Path(get_settings().data_directory) / "orders.xlsx")
    assert df["order_number"].tolist() == [order["order_number"]]
    assert df["items"].tolist() == ["2x Butter Chicken"]
    assert df["total"].tolist() == [522.0]
