from decimal import Decimal

import pytest

from foodapp.core.errors import ValidationError
from foodapp.services import loyalty_service


@pytest.mark.parametrize(
    "points, discount",
    [(0, "0.00"), (999, "0.00"), (1000, "10.00"), (2999, "20.00"), (-50, "0.00")],
)
def test_calculate_discount(points, discount):
    assert loyalty_service.calculate_discount(points) == Decimal(discount)


def test_points_for_amount_floors():
    assert loyalty_service.points_for_amount(Decimal("581.99")) == 581
    assert loyalty_service.points_for_amount(Decimal("100"), rate=Decimal("0.5")) == 50


async def test_award_points_is_additive(db, make_user):
    user = await make_user(loyalty_points=40)

    earned = await loyalty_service.award_points(db, user.id, Decimal("250.70"))
    await loyalty_service.award_points(db, user.id, Decimal("10"))

    assert earned == 250
    assert await loyalty_service.get_points(db, user.id) == 300


async def test_redeem_consumes_whole_blocks(db, make_user):
    user = await make_user(loyalty_points=2500)

    used, discount = await loyalty_service.redeem_points(db, user.id, 2500)

    assert (used, discount) == (2000, Decimal("20.00"))
    assert await loyalty_service.get_points(db, user.id) == 500


async def test_redeem_keeps_blocks_beyond_max_discount(db, make_user):
    user = await make_user(loyalty_points=5000)

    used, discount = await loyalty_service.redeem_points(db, user.id, 5000, max_discount=Decimal("21.50"))
    nothing_due = await loyalty_service.redeem_points(db, user.id, 1000, max_discount=Decimal("0"))

    assert (used, discount) == (3000, Decimal("30.00"))
    assert nothing_due == (0, Decimal("0.00"))
    assert await loyalty_service.get_points(db, user.id) == 2000


async def test_redeem_rejects_overdraft_and_partial_block(db, make_user):
    user = await make_user(loyalty_points=900)

    with pytest.raises(ValidationError, match="Insufficient"):
        await loyalty_service.redeem_points(db, user.id, 1000)
    with pytest.raises(ValidationError, match="At least 1000"):
        await loyalty_service.redeem_points(db, user.id, 900)


async def test_loyalty_endpoint(client, make_user, auth):
    user = await make_user(loyalty_points=2345)

    response = await client.get("/api/loyalty", headers=auth(user))

    assert response.json() == {
        "points": 2345,
        "redeemable_points": 2000,
        "discount_value": "20.00",
        "conversion_rate": "1000 points = ₹10",
    }


async def test_admin_adjustment_never_goes_negative(client, make_user, admin, auth):
    user = await make_user(loyalty_points=300)
    url = f"/api/admin/users/{user.id}/loyalty"

    credited = await client.post(url, json={"points": 200, "reason": "Late delivery"}, headers=auth(admin))
    debited = await client.post(url, json={"points": -1000}, headers=auth(admin))
    zero = await client.post(url, json={"points": 0}, headers=auth(admin))

    assert credited.json()["loyalty_points"] == 500
    assert debited.json()["loyalty_points"] == 0
    assert zero.status_code == 400
