"""
Integration tests for rider onboarding.

Applications, approval, deactivation and reactivation, the user role that
follows the rider status, availability lookup and deletion.
"""

import pytest
from sqlalchemy import func, select

from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.models.rider import Rider, area_key


async def _role_of(client, email, headers):
    response = await client.get(f"/v1/users/{email}/role", headers=headers)
    assert response.status_code == 200
    return response.json()["role"]


# TEST 1: Applications
@pytest.mark.asyncio
async def test_apply_creates_pending_rider(client, make_user, headers_for):
    await make_user("applicant@test.com")

    response = await client.post(
        "/v1/riders",
        json={
            "email": "applicant@test.com",
            "name": "Applicant",
            "phone": "01711111111",
            "areas_to_ride": ["Dhaka", " dhaka ", "Gazipur"],
            "details": {"bike": "yes"},
        },
        headers=headers_for("applicant@test.com"),
    )

    assert response.status_code == 201, response.text
    rider = response.json()
    assert rider["status"] == "pending"
    assert rider["work_status"] == "available"
    assert rider["areas_to_ride"] == ["Dhaka", "Gazipur"]
    assert rider["details"] == {"bike": "yes"}
    assert rider["approved_at"] is None


@pytest.mark.asyncio
async def test_second_application_conflicts(client, db_session, rider_factory, headers_for):
    await rider_factory("applicant@test.com", approve=False)

    response = await client.post(
        "/v1/riders",
        json={"email": "applicant@test.com", "name": "Again", "areas_to_ride": ["Khulna"]},
        headers=headers_for("applicant@test.com"),
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_CONFLICT_001"

    count = await db_session.execute(
        select(func.count(Rider.id)).where(Rider.email == "applicant@test.com")
    )
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_cannot_apply_for_someone_else(client, headers_for):
    response = await client.post(
        "/v1/riders",
        json={"email": "victim@test.com", "name": "Impostor"},
        headers=headers_for("impostor@test.com"),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_application_requires_valid_email(client, headers_for):
    response = await client.post(
        "/v1/riders",
        json={"email": "not-an-email", "name": "Nobody"},
        headers=headers_for("not-an-email"),
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


# TEST 2: Approval and role
@pytest.mark.asyncio
async def test_approval_grants_rider_role(client, rider_factory, admin_headers):
    pending = await rider_factory("rider@test.com", approve=False)
    assert await _role_of(client, "rider@test.com", admin_headers) == "user"

    response = await client.patch(f"/v1/riders/{pending['id']}/approve", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["approved_at"] is not None
    assert await _role_of(client, "rider@test.com", admin_headers) == "rider"


@pytest.mark.asyncio
async def test_approving_twice_is_a_no_op(client, rider_factory, admin_headers):
    rider = await rider_factory("rider@test.com")

    response = await client.patch(f"/v1/riders/{rider['id']}/approve", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["approved_at"] == rider["approved_at"]

    logs = await client.get(f"/v1/audit-logs?target_id={rider['id']}", headers=admin_headers)
    assert [entry["action"] for entry in logs.json()] == ["RIDER_APPROVED"]


@pytest.mark.asyncio
async def test_rider_approved_before_first_sign_in_gets_rider_role(client, admin_headers, headers_for):
    """Applying needs no user record; the role is picked up on first sign-in."""
    applied = await client.post(
        "/v1/riders",
        json={"email": "late@test.com", "name": "Late", "areas_to_ride": ["Dhaka"]},
        headers=headers_for("late@test.com"),
    )
    approved = await client.patch(f"/v1/riders/{applied.json()['id']}/approve", headers=admin_headers)
    assert approved.status_code == 200

    signed_in = await client.post("/v1/users", headers=headers_for("late@test.com"))

    assert signed_in.status_code == 201
    assert signed_in.json()["role"] == "rider"
    assert await _role_of(client, "late@test.com", admin_headers) == "rider"

    parcels = await client.get("/v1/rider/parcels", headers=headers_for("late@test.com"))
    assert parcels.status_code == 200


@pytest.mark.asyncio
async def test_pending_rider_first_sign_in_stays_user(client, headers_for):
    await client.post(
        "/v1/riders",
        json={"email": "early@test.com", "name": "Early"},
        headers=headers_for("early@test.com"),
    )

    signed_in = await client.post("/v1/users", headers=headers_for("early@test.com"))

    assert signed_in.status_code == 201
    assert signed_in.json()["role"] == "user"


@pytest.mark.asyncio
async def test_approve_unknown_rider(client, admin_headers):
    response = await client.patch("/v1/riders/missing/approve", headers=admin_headers)
    assert response.status_code == 404


# TEST 3: Deactivation and reactivation
@pytest.mark.asyncio
async def test_deactivate_and_reactivate(client, rider_factory, admin_headers):
    rider = await rider_factory("rider@test.com")

    response = await client.patch(f"/v1/riders/{rider['id']}/deactivate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "deactivated"
    assert await _role_of(client, "rider@test.com", admin_headers) == "user"

    response = await client.patch(f"/v1/riders/{rider['id']}/activate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert await _role_of(client, "rider@test.com", admin_headers) == "rider"

    logs = await client.get(f"/v1/audit-logs?target_id={rider['id']}", headers=admin_headers)
    assert [entry["action"] for entry in logs.json()] == [
        "RIDER_REACTIVATED", "RIDER_DEACTIVATED", "RIDER_APPROVED",
    ]


@pytest.mark.asyncio
async def test_invalid_transitions_are_rejected(client, rider_factory, admin_headers):
    pending = await rider_factory("pending@test.com", approve=False)

    deactivate = await client.patch(f"/v1/riders/{pending['id']}/deactivate", headers=admin_headers)
    activate = await client.patch(f"/v1/riders/{pending['id']}/activate", headers=admin_headers)

    assert deactivate.status_code == 409
    assert deactivate.json()["details"]["current_state"] == "pending"
    assert activate.status_code == 409


@pytest.mark.asyncio
async def test_deactivated_rider_must_be_reactivated(client, rider_factory, admin_headers):
    rider = await rider_factory("rider@test.com")
    await client.patch(f"/v1/riders/{rider['id']}/deactivate", headers=admin_headers)

    response = await client.patch(f"/v1/riders/{rider['id']}/approve", headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["details"]["current_state"] == "deactivated"


@pytest.mark.asyncio
async def test_busy_rider_cannot_be_deactivated_or_deleted(client, rider_factory, parcel_factory, admin_headers):
    rider = await rider_factory("rider@test.com")
    parcel = await parcel_factory("customer@test.com")
    await client.patch(
        f"/v1/parcels/{parcel['id']}/assign-rider", json={"rider_id": rider["id"]}, headers=admin_headers
    )

    deactivate = await client.patch(f"/v1/riders/{rider['id']}/deactivate", headers=admin_headers)
    delete = await client.delete(f"/v1/riders/{rider['id']}", headers=admin_headers)

    assert deactivate.status_code == 409
    assert delete.status_code == 409


@pytest.mark.asyncio
async def test_admin_keeps_admin_role_as_rider(client, make_user, admin_headers, headers_for):
    """An admin who also rides is never demoted by rider transitions."""
    await make_user("boss-rider@test.com", UserRole.ADMIN)
    applied = await client.post(
        "/v1/riders",
        json={"email": "boss-rider@test.com", "name": "Boss", "areas_to_ride": ["Dhaka"]},
        headers=headers_for("boss-rider@test.com"),
    )
    rider_id = applied.json()["id"]

    await client.patch(f"/v1/riders/{rider_id}/approve", headers=admin_headers)
    assert await _role_of(client, "boss-rider@test.com", admin_headers) == "admin"

    await client.patch(f"/v1/riders/{rider_id}/deactivate", headers=admin_headers)
    assert await _role_of(client, "boss-rider@test.com", admin_headers) == "admin"


# TEST 4: Listings
@pytest.mark.asyncio
async def test_list_by_status(client, rider_factory, admin_headers):
    approved = await rider_factory("approved@test.com")
    pending = await rider_factory("pending@test.com", approve=False)

    pending_list = await client.get("/v1/riders/pending", headers=admin_headers)
    approved_list = await client.get("/v1/riders/approved", headers=admin_headers)
    deactivated_list = await client.get("/v1/riders/deactivated", headers=admin_headers)
    filtered = await client.get("/v1/riders?status=approved", headers=admin_headers)
    everyone = await client.get("/v1/riders", headers=admin_headers)

    assert [r["id"] for r in pending_list.json()] == [pending["id"]]
    assert [r["id"] for r in approved_list.json()] == [approved["id"]]
    assert deactivated_list.json() == []
    assert [r["id"] for r in filtered.json()] == [approved["id"]]
    assert [r["id"] for r in everyone.json()] == [pending["id"], approved["id"]]


@pytest.mark.asyncio
async def test_available_riders_match_area_exactly(client, rider_factory, admin_headers):
    dhaka = await rider_factory("dhaka@test.com", areas=["Dhaka"])
    await rider_factory("division@test.com", areas=["Dhaka Division"])
    await rider_factory("pending@test.com", areas=["Dhaka"], approve=False)

    response = await client.get("/v1/riders/available?area=dhaka", headers=admin_headers)

    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == [dhaka["id"]]


@pytest.mark.asyncio
async def test_available_riders_treat_pattern_characters_literally(client, rider_factory, admin_headers):
    await rider_factory("dhaka@test.com", areas=["Dhaka"])
    odd = await rider_factory("odd@test.com", areas=["Zone (A)+"])

    wildcard = await client.get("/v1/riders/available", params={"area": ".*"}, headers=admin_headers)
    literal = await client.get("/v1/riders/available", params={"area": "zone (a)+"}, headers=admin_headers)

    assert wildcard.status_code == 200
    assert wildcard.json() == []
    assert [r["id"] for r in literal.json()] == [odd["id"]]


@pytest.mark.asyncio
async def test_busy_riders_are_not_available(client, rider_factory, parcel_factory, admin_headers):
    rider = await rider_factory("rider@test.com", areas=["Dhaka"])
    parcel = await parcel_factory("customer@test.com")
    await client.patch(
        f"/v1/parcels/{parcel['id']}/assign-rider", json={"rider_id": rider["id"]}, headers=admin_headers
    )

    response = await client.get("/v1/riders/available?area=Dhaka", headers=admin_headers)
    assert response.json() == []


@pytest.mark.asyncio
async def test_available_riders_require_area(client, admin_headers):
    response = await client.get("/v1/riders/available", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_area_key_folds_case_and_whitespace():
    assert area_key("  Dhaka ") == area_key("DHAKA") == "dhaka"


# TEST 5: Deletion
@pytest.mark.asyncio
async def test_delete_rider(client, rider_factory, admin_headers):
    rider = await rider_factory("rider@test.com")

    response = await client.delete(f"/v1/riders/{rider['id']}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"id": rider["id"], "deleted": True}
    assert await _role_of(client, "rider@test.com", admin_headers) == "user"

    again = await client.delete(f"/v1/riders/{rider['id']}", headers=admin_headers)
    assert again.status_code == 404

    # Areas go with the rider
    available = await client.get("/v1/riders/available?area=Dhaka", headers=admin_headers)
    assert available.json() == []
