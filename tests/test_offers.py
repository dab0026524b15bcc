from datetime import timedelta
from decimal import Decimal

import pytest

from foodapp.core.errors import ValidationError
from foodapp.core.utils import utcnow
from foodapp.models import DiscountType, Offer, OfferType, TargetAudience
from foodapp.services import offer_service


async def interact(client, offer_id, kind, headers):
    return await client.post(
        f"/api/offers/{offer_id}/interactions", json={"interaction_type": kind}, headers=headers
    )


async def test_only_live_offers_are_listed(client, make_offer):
    now = utcnow()
    await make_offer(title="Live")
    await make_offer(title="Expired", valid_from=now - timedelta(days=3), valid_until=now - timedelta(days=1))
    await make_offer(title="Upcoming", valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=2))
    await make_offer(title="Switched Off", is_active=False)

    response = await client.get("/api/offers")

    assert [o["title"] for o in response.json()] == ["Live"]


async def test_type_filter_includes_both_and_sorts_by_priority(client, make_offer):
    await make_offer(title="Banner", type=OfferType.BANNER, priority=1)
    await make_offer(title="Everywhere", type=OfferType.BOTH, priority=5)
    await make_offer(title="Popup", type=OfferType.POPUP, priority=9)

    response = await client.get("/api/offers", params={"type": "banner"})

    assert [o["title"] for o in response.json()] == ["Everywhere", "Banner"]


async def test_audience_filter_includes_all(client, make_offer):
    await make_offer(title="Everyone")
    await make_offer(title="Loyal Only", target_audience=TargetAudience.LOYAL_CUSTOMERS)
    await make_offer(title="Newcomers", target_audience=TargetAudience.NEW_CUSTOMERS)

    response = await client.get("/api/offers", params={"audience": "loyal_customers"})

    assert {o["title"] for o in response.json()} == {"Everyone", "Loyal Only"}


async def test_targeted_offers_hidden_without_audience(client, make_offer):
    await make_offer(title="Everyone")
    await make_offer(title="Loyal Only", target_audience=TargetAudience.LOYAL_CUSTOMERS)

    response = await client.get("/api/offers")

    assert [o["title"] for o in response.json()] == ["Everyone"]


async def test_anonymous_popup_skips_targeted_offers(client, make_offer, session_headers):
    await make_offer(title="Everyone", type=OfferType.POPUP)
    await make_offer(title="Loyal Only", type=OfferType.POPUP, target_audience=TargetAudience.LOYAL_CUSTOMERS)

    response = await client.get("/api/offers/popup", headers=session_headers)

    assert [o["title"] for o in response.json()] == ["Everyone"]


async def test_audience_follows_order_history(client, db, menu, customer, auth):
    assert await offer_service.audience_for_user(db, None) == TargetAudience.NEW_CUSTOMERS
    assert await offer_service.audience_for_user(db, customer.id) == TargetAudience.NEW_CUSTOMERS

    line = {"items": [{"menu_item_id": menu["naan"].id, "quantity": 1}]}
    await client.post("/api/orders", json=line, headers=auth(customer))
    assert await offer_service.audience_for_user(db, customer.id) == TargetAudience.ALL

    for _ in range(4):
        await client.post("/api/orders", json=line, headers=auth(customer))
    assert await offer_service.audience_for_user(db, customer.id) == TargetAudience.LOYAL_CUSTOMERS


async def test_personalized_offers_for_anonymous_visitor(client, make_offer):
    await make_offer(title="Everyone")
    await make_offer(title="Welcome", target_audience=TargetAudience.NEW_CUSTOMERS)
    await make_offer(title="Regulars", target_audience=TargetAudience.LOYAL_CUSTOMERS)

    response = await client.get("/api/offers/personalized")

    assert {o["title"] for o in response.json()} == {"Everyone", "Welcome"}


async def test_popup_hidden_after_interaction_within_window(client, make_offer, session_headers):
    popup = await make_offer(title="Lunch Deal", type=OfferType.POPUP, show_frequency_hours=6)
    await interact(client, popup.id, "dismissed", session_headers)

    mine = await client.get("/api/offers/popup", headers=session_headers)
    theirs = await client.get("/api/offers/popup", headers={"X-Session-Id": "another-visitor"})

    assert mine.json() == []
    assert [o["title"] for o in theirs.json()] == ["Lunch Deal"]


async def test_popup_with_zero_frequency_always_shows(client, make_offer, session_headers):
    popup = await make_offer(type=OfferType.POPUP, show_frequency_hours=0)
    await interact(client, popup.id, "viewed", session_headers)

    response = await client.get("/api/offers/popup", headers=session_headers)

    assert len(response.json()) == 1


async def test_interactions_bump_counters(client, db, make_offer, session_headers):
    offer = await make_offer()
    for kind in ("viewed", "viewed", "clicked", "dismissed"):
        response = await interact(client, offer.id, kind, session_headers)
        assert response.status_code == 201

    await db.refresh(offer)
    assert (offer.view_count, offer.click_count, offer.conversion_count) == (2, 1, 0)


async def test_interaction_needs_a_visitor(client, make_offer):
    offer = await make_offer()

    response = await interact(client, offer.id, "viewed", {})

    assert response.status_code == 400


async def test_interaction_on_unknown_offer(client, session_headers):
    response = await interact(client, 999, "viewed", session_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "Offer not found"


# =============================================================================
# DISCOUNTS
# =============================================================================

async def test_validate_percentage_is_capped(client, make_offer):
    offer = await make_offer(discount_value=Decimal("20"), maximum_discount_amount=Decimal("50"))

    response = await client.post(f"/api/offers/{offer.id}/validate", json={"order_amount": "400"})

    body = response.json()
    assert body["valid"] is True
    assert body["discount"] == "50.00"
    assert body["message"] == "You save ₹50.00"


async def test_validate_free_delivery(client, make_offer):
    offer = await make_offer(discount_type=DiscountType.FREE_DELIVERY, discount_value=Decimal("0"))

    body = (await client.post(f"/api/offers/{offer.id}/validate", json={"order_amount": "100"})).json()

    assert body["free_delivery"] is True
    assert body["discount"] == "0.00"


async def test_validate_rejects_small_orders(client, make_offer):
    offer = await make_offer(minimum_order_amount=Decimal("300"))

    response = await client.post(f"/api/offers/{offer.id}/validate", json={"order_amount": "299.99"})

    assert response.status_code == 400
    assert response.json()["detail"] == {"minimum_order_amount": "300.00"}


async def test_apply_rejects_exhausted_and_expired_offers(db, make_offer):
    exhausted = await make_offer(usage_limit=2, used_count=2)
    expired = await make_offer(valid_until=utcnow() - timedelta(minutes=1), valid_from=utcnow() - timedelta(days=1))

    with pytest.raises(ValidationError, match="usage limit"):
        await offer_service.apply_offer(db, exhausted.id, Decimal("500"))
    with pytest.raises(ValidationError, match="expired"):
        await offer_service.apply_offer(db, expired.id, Decimal("500"))


@pytest.mark.parametrize(
    "discount_type, value, cap, amount, expected",
    [
        (DiscountType.PERCENTAGE, "10", None, "450", "45.00"),
        (DiscountType.PERCENTAGE, "10", "30", "450", "30.00"),
        (DiscountType.FIXED_AMOUNT, "100", None, "80", "80.00"),
        (DiscountType.FIXED_AMOUNT, "100", "75", "500", "75.00"),
    ],
)
def test_compute_discount(discount_type, value, cap, amount, expected):
    offer = Offer(
        discount_type=discount_type,
        discount_value=Decimal(value),
        maximum_discount_amount=Decimal(cap) if cap else None,
    )

    assert offer_service.compute_discount(offer, Decimal(amount)).discount == Decimal(expected)


# =============================================================================
# ADMIN
# =============================================================================

async def test_admin_offer_lifecycle(client, admin, auth):
    headers = auth(admin)
    now = utcnow()
    payload = {
        "title": "Diwali Special",
        "discount_type": "fixed_amount",
        "discount_value": "75",
        "minimum_order_amount": "400",
        "occasion_type": "festival",
        "valid_from": now.isoformat(),
        "valid_until": (now + timedelta(days=5)).isoformat(),
    }

    created = await client.post("/api/admin/offers", json=payload, headers=headers)
    assert created.status_code == 201
    offer_id = created.json()["id"]

    updated = await client.patch(f"/api/admin/offers/{offer_id}", json={"priority": 3}, headers=headers)
    assert updated.json()["priority"] == 3

    bad_window = await client.patch(
        f"/api/admin/offers/{offer_id}", json={"valid_until": (now - timedelta(days=1)).isoformat()}, headers=headers
    )
    assert bad_window.status_code == 400

    deleted = await client.delete(f"/api/admin/offers/{offer_id}", headers=headers)
    assert deleted.status_code == 200
    assert (await client.get("/api/admin/offers", headers=headers)).json() == []


async def test_offer_window_is_validated_on_create(client, admin, auth):
    now = utcnow()
    payload = {
        "title": "Backwards",
        "discount_type": "percentage",
        "discount_value": "10",
        "valid_from": now.isoformat(),
        "valid_until": (now - timedelta(hours=1)).isoformat(),
    }

    response = await client.post("/api/admin/offers", json=payload, headers=auth(admin))

    assert response.status_code == 400


async def test_urgency_offer_is_a_short_priority_popup(client, admin, auth):
    response = await client.post(
        "/api/admin/offers/urgency",
        json={"title": "Lunch Rush", "discount_percentage": "15", "hours_valid": 2},
        headers=auth(admin),
    )

    offer = response.json()
    assert response.status_code == 201
    assert offer["type"] == "popup"
    assert offer["priority"] == 10
    assert offer["discount_value"] == "15.00"

    popups = (await client.get("/api/offers/popup")).json()
    assert [o["title"] for o in popups] == ["Lunch Rush"]


async def test_offer_analytics(client, admin, auth, make_offer, session_headers):
    offer = await make_offer()
    for kind in ("viewed", "viewed", "viewed", "viewed", "clicked", "dismissed"):
        await interact(client, offer.id, kind, session_headers)

    response = await client.get(f"/api/admin/offers/{offer.id}/analytics", headers=auth(admin))

    body = response.json()
    assert body["views"] == 4
    assert body["clicks"] == 1
    assert body["dismissals"] == 1
    assert body["click_through_rate"] == 25.0
    assert body["conversion_rate"] == 0.0


async def test_offer_admin_requires_admin(client, customer, auth):
    response = await client.get("/api/admin/offers", headers=auth(customer))

    assert response.status_code == 403
