from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from foodapp.core.utils import utcnow
from foodapp.models import Cart, CartItem
from foodapp.services import cart_service


async def test_cart_requires_user_or_session(client, menu):
    response = await client.post("/api/cart/items", json={"menu_item_id": menu["curry"].id})

    assert response.status_code == 400
    assert "X-Session-Id" in response.json()["error"]


async def test_session_cart_totals(client, menu, session_headers):
    await client.post(
        "/api/cart/items", json={"menu_item_id": menu["curry"].id, "quantity": 2}, headers=session_headers
    )
    response = await client.post(
        "/api/cart/items", json={"menu_item_id": menu["naan"].id, "quantity": 3}, headers=session_headers
    )

    body = response.json()
    assert response.status_code == 201
    assert body["total_items"] == 5
    assert body["total_amount"] == "550.00"
    assert [line["line_total"] for line in body["items"]] == ["400.00", "150.00"]


async def test_adding_same_item_increases_quantity(client, menu, session_headers):
    line = {"menu_item_id": menu["curry"].id, "quantity": 1}
    await client.post("/api/cart/items", json=line, headers=session_headers)
    response = await client.post("/api/cart/items", json=line, headers=session_headers)

    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 2


async def test_unavailable_and_unknown_items_are_rejected(client, menu, session_headers):
    sold_out = await client.post(
        "/api/cart/items", json={"menu_item_id": menu["biryani"].id}, headers=session_headers
    )
    missing = await client.post("/api/cart/items", json={"menu_item_id": 9999}, headers=session_headers)

    assert sold_out.status_code == 400
    assert missing.status_code == 404


async def test_quantity_must_be_positive(client, menu, session_headers):
    response = await client.post(
        "/api/cart/items", json={"menu_item_id": menu["curry"].id, "quantity": 0}, headers=session_headers
    )

    assert response.status_code == 400
    assert response.json()["detail"][0]["field"] == "quantity"


async def test_update_and_remove_lines(client, menu, session_headers):
    cart = (
        await client.post(
            "/api/cart/items", json={"menu_item_id": menu["curry"].id}, headers=session_headers
        )
    ).json()
    line_id = cart["items"][0]["id"]

    updated = await client.patch(
        f"/api/cart/items/{line_id}",
        json={"quantity": 4, "special_instructions": "Extra gravy"},
        headers=session_headers,
    )
    assert updated.json()["items"][0]["quantity"] == 4
    assert updated.json()["items"][0]["special_instructions"] == "Extra gravy"

    removed = await client.delete(f"/api/cart/items/{line_id}", headers=session_headers)
    assert removed.json()["items"] == []
    assert removed.json()["total_amount"] == "0.00"


async def test_lines_of_another_cart_are_404(client, menu, session_headers):
    cart = (
        await client.post(
            "/api/cart/items", json={"menu_item_id": menu["curry"].id}, headers=session_headers
        )
    ).json()

    response = await client.delete(
        f"/api/cart/items/{cart['items'][0]['id']}", headers={"X-Session-Id": "someone-else"}
    )

    assert response.status_code == 404


async def test_clear_cart(client, menu, customer, auth):
    await client.post("/api/cart/items", json={"menu_item_id": menu["curry"].id}, headers=auth(customer))

    response = await client.delete("/api/cart", headers=auth(customer))

    assert response.json()["total_items"] == 0


async def test_merge_session_cart_into_user_cart(client, db, menu, customer, auth, session_headers):
    await client.post(
        "/api/cart/items", json={"menu_item_id": menu["curry"].id, "quantity": 1}, headers=session_headers
    )
    await client.post(
        "/api/cart/items", json={"menu_item_id": menu["naan"].id, "quantity": 2}, headers=session_headers
    )
    await client.post(
        "/api/cart/items", json={"menu_item_id": menu["curry"].id, "quantity": 2}, headers=auth(customer)
    )

    response = await client.post("/api/cart/merge", headers={**auth(customer), **session_headers})

    body = response.json()
    assert response.status_code == 200
    assert {i["name"]: i["quantity"] for i in body["items"]} == {"Butter Chicken": 3, "Garlic Naan": 2}
    leftover = await db.scalar(select(Cart).where(Cart.session_id == session_headers["X-Session-Id"]))
    assert leftover is None


async def test_refresh_prices_resnapshots_lines(client, db, menu, session_headers):
    await client.post("/api/cart/items", json={"menu_item_id": menu["curry"].id}, headers=session_headers)
    menu["curry"].price = 220
    await db.commit()

    refreshed = await client.post("/api/cart/refresh-prices", headers=session_headers)
    cart = await client.get("/api/cart", headers=session_headers)

    assert "Butter Chicken" in refreshed.json()["message"]
    assert cart.json()["items"][0]["unit_price"] == "220.00"


async def test_cleanup_removes_only_idle_anonymous_carts(db, customer):
    old = utcnow() - timedelta(days=10)
    db.add_all(
        [
            Cart(session_id="stale", updated_at=old),
            Cart(session_id="fresh"),
            Cart(user_id=customer.id, updated_at=old),
        ]
    )
    await db.commit()

    removed = await cart_service.cleanup_stale_carts(db, days=7)

    assert removed == 1
    remaining = [tuple(row) for row in await db.execute(select(Cart.session_id, Cart.user_id))]
    assert sorted(remaining, key=str) == sorted([("fresh", None), (None, customer.id)], key=str)


async def test_database_rejects_empty_cart_line(db, menu):
    cart = Cart(session_id="constraint-check")
    db.add(cart)
    await db.commit()
    db.add(CartItem(cart_id=cart.id, menu_item_id=menu["naan"].id, quantity=0, unit_price=menu["naan"].price))

    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()
