import pytest
from sqlalchemy.exc import IntegrityError

from foodapp.models import Address

ADDRESS = {
    "address_line_1": "221 Residency Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "postal_code": "560025",
}


async def defaults(client, headers):
    addresses = (await client.get("/api/addresses", headers=headers)).json()
    return [a["id"] for a in addresses if a["is_default"]]


async def test_first_address_becomes_default(client, make_user, auth):
    user = await make_user(with_address=False)

    response = await client.post("/api/addresses", json=ADDRESS, headers=auth(user))

    assert response.status_code == 201
    assert response.json()["is_default"] is True
    assert response.json()["country"] == "India"


async def test_single_default_is_kept(client, customer, auth):
    headers = auth(customer)
    office = (await client.post("/api/addresses", json={**ADDRESS, "type": "work", "is_default": True}, headers=headers)).json()

    assert await defaults(client, headers) == [office["id"]]

    home = (await client.get("/api/addresses", headers=headers)).json()[-1]
    await client.post(f"/api/addresses/{home['id']}/default", headers=headers)
    assert await defaults(client, headers) == [home["id"]]

    await client.patch(f"/api/addresses/{office['id']}", json={"is_default": True, "label": "Office"}, headers=headers)
    assert await defaults(client, headers) == [office["id"]]


async def test_deleting_default_promotes_newest(client, customer, auth):
    headers = auth(customer)
    await client.post("/api/addresses", json=ADDRESS, headers=headers)
    second = (await client.post("/api/addresses", json={**ADDRESS, "address_line_1": "7 Brigade Road"}, headers=headers)).json()
    original = [a for a in (await client.get("/api/addresses", headers=headers)).json() if a["is_default"]][0]

    response = await client.delete(f"/api/addresses/{original['id']}", headers=headers)

    assert response.status_code == 200
    assert await defaults(client, headers) == [second["id"]]


async def test_addresses_of_other_users_are_hidden(client, customer, make_user, auth):
    other = await make_user()
    theirs = (await client.get("/api/addresses", headers=auth(other))).json()[0]

    read = await client.get(f"/api/addresses/{theirs['id']}", headers=auth(customer))
    delete = await client.delete(f"/api/addresses/{theirs['id']}", headers=auth(customer))

    assert read.status_code == 404
    assert read.json()["error"] == "Address not found"
    assert delete.status_code == 404


async def test_address_validation(client, customer, auth):
    response = await client.post(
        "/api/addresses", json={**ADDRESS, "postal_code": "1"}, headers=auth(customer)
    )

    assert response.status_code == 400
    assert response.json()["detail"][0]["field"] == "postal_code"


# =============================================================================
# DATABASE CONSTRAINTS
# =============================================================================

async def test_database_rejects_second_default(db, customer):
    db.add(
        Address(
            user_id=customer.id,
            address_line_1="9 Brigade Road",
            city="Bengaluru",
            state="Karnataka",
            postal_code="560025",
            is_default=True,
        )
    )

    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


async def test_database_allows_many_non_default_addresses(db, customer):
    for line in ("1 Church Street", "2 Church Street"):
        db.add(
            Address(user_id=customer.id, address_line_1=line, city="Bengaluru", state="Karnataka", postal_code="560001")
        )

    await db.commit()
