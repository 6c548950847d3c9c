"""
Integration tests for the user directory and admin user management.
"""

import pytest

from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.services.users import escape_like


# TEST 1: Sign-in upsert
@pytest.mark.asyncio
async def test_first_sign_in_creates_user(client, headers_for):
    first = await client.post(
        "/v1/users",
        json={"name": "Rahim", "photo_url": "https://img.test/rahim.png"},
        headers=headers_for("rahim@test.com"),
    )
    again = await client.post("/v1/users", headers=headers_for("rahim@test.com"))

    assert first.status_code == 201
    assert first.json()["email"] == "rahim@test.com"
    assert first.json()["role"] == "user"
    assert first.json()["name"] == "Rahim"

    assert again.status_code == 200
    assert again.json()["id"] == first.json()["id"]
    assert again.json()["name"] == "Rahim"


# TEST 2: Admin listing and search
@pytest.mark.asyncio
async def test_admin_lists_users_with_pagination(client, make_user, admin_headers):
    for i in range(3):
        await make_user(f"user{i}@test.com")

    page_one = await client.get("/v1/users?page=1&page_size=2", headers=admin_headers)
    page_two = await client.get("/v1/users?page=2&page_size=2", headers=admin_headers)

    assert page_one.status_code == 200
    assert page_one.json()["total"] == 4
    assert len(page_one.json()["users"]) == 2
    assert len(page_two.json()["users"]) == 2


@pytest.mark.asyncio
async def test_search_is_case_insensitive_substring(client, make_user, admin_headers):
    await make_user("Karim.Ahmed@test.com")
    await make_user("someone@else.org")

    response = await client.get("/v1/users/search?email=karim", headers=admin_headers)

    assert response.status_code == 200
    assert [u["email"] for u in response.json()] == ["Karim.Ahmed@test.com"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(client, make_user, admin_headers):
    await make_user("plain@test.com")
    await make_user("under_score@test.com")

    percent = await client.get("/v1/users/search", params={"email": "%"}, headers=admin_headers)
    underscore = await client.get("/v1/users/search", params={"email": "_"}, headers=admin_headers)

    assert percent.json() == []
    assert [u["email"] for u in underscore.json()] == ["under_score@test.com"]


@pytest.mark.asyncio
async def test_search_caps_results(client, make_user, admin_headers):
    for i in range(12):
        await make_user(f"bulk{i:02d}@test.com")

    response = await client.get("/v1/users/search?email=bulk", headers=admin_headers)
    assert len(response.json()) == 10


@pytest.mark.asyncio
async def test_search_requires_fragment(client, admin_headers):
    response = await client.get("/v1/users/search", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


# TEST 3: Role management
@pytest.mark.asyncio
async def test_admin_promotes_user(client, make_user, admin_headers, headers_for):
    user = await make_user("promote@test.com")

    response = await client.patch(f"/v1/users/{user.id}/role", json={"role": "admin"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["role"] == "admin"

    # The new admin can use admin routes straight away
    listing = await client.get("/v1/users", headers=headers_for("promote@test.com"))
    assert listing.status_code == 200

    logs = await client.get("/v1/audit-logs?action=ROLE_CHANGED", headers=admin_headers)
    entry = logs.json()[0]
    assert entry["target_id"] == user.id
    assert entry["metadata"]["from"] == "user"
    assert entry["metadata"]["to"] == "admin"


@pytest.mark.asyncio
async def test_rider_role_cannot_be_set_directly(client, make_user, admin_headers):
    user = await make_user("wannabe@test.com")

    response = await client.patch(f"/v1/users/{user.id}/role", json={"role": "rider"}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_approved_rider_role_is_locked(client, rider_factory, admin_headers):
    await rider_factory("rider@test.com")
    search = await client.get("/v1/users/search?email=rider@test.com", headers=admin_headers)
    user_id = search.json()[0]["id"]

    response = await client.patch(f"/v1/users/{user_id}/role", json={"role": "user"}, headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["details"]["current_state"] == "rider"


@pytest.mark.asyncio
async def test_role_change_for_unknown_user(client, admin_headers):
    response = await client.patch("/v1/users/missing/role", json={"role": "admin"}, headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_non_admin_cannot_change_roles(client, make_user, headers_for):
    user = await make_user("self@test.com", UserRole.USER)

    response = await client.patch(
        f"/v1/users/{user.id}/role", json={"role": "admin"}, headers=headers_for("self@test.com")
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_audit_logs_are_admin_only(client, make_user, headers_for):
    await make_user("user@test.com")

    response = await client.get("/v1/audit-logs", headers=headers_for("user@test.com"))
    assert response.status_code == 403
