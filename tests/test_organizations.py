"""
Organization, member and invitation tests.

Verifies that:
- Creating an organization makes the caller its admin; slugs are unique
- Members of one organization cannot reach another
- The last admin cannot be removed or demoted
- Invitations are unique per email, and a failing queue does not fail them
- Invitation tokens can be looked up, accepted and rejected
"""

import pytest
from kombu.exceptions import OperationalError

from conftest import ago, auth_headers

API = "/api/v1/organizations"


def add_invitation(fake, org, email="new@acme.example.com", token="invite-token", expires_at=None, **extra):
    return fake.insert_row(
        "invitations",
        {
            "organization_id": org["id"],
            "email": email,
            "role": "member",
            "token": token,
            "accepted_at": None,
            "expires_at": expires_at or ago(hours=-48),
            **extra,
        },
    )


# ---------------------------------------------------------------------------
# 1. Organizations
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_organization_makes_caller_admin(client, fake):
    owner = fake.add_user("owner@example.com")
    resp = await client.post(
        API, json={"name": "Bistro", "slug": "bistro"}, headers=auth_headers(owner)
    )
    assert resp.status_code == 201
    assert resp.json()["slug"] == "bistro"

    resp = await client.get(API, headers=auth_headers(owner))
    assert resp.json()[0]["slug"] == "bistro"
    assert resp.json()[0]["is_admin"] is True


@pytest.mark.asyncio
async def test_duplicate_slug_is_conflict(client, fake, acme):
    owner = fake.add_user("owner@example.com")
    resp = await client.post(API, json={"name": "Acme", "slug": "acme"}, headers=auth_headers(owner))
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "SLUG_TAKEN"


@pytest.mark.asyncio
async def test_invalid_slug_rejected(client, fake):
    owner = fake.add_user("owner@example.com")
    resp = await client.post(API, json={"name": "Bad", "slug": "-bad-"}, headers=auth_headers(owner))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_cannot_access_other_org(client, fake, acme):
    outsider = fake.add_user("outsider@other.example.com")
    resp = await client.get(f"{API}/acme", headers=auth_headers(outsider))
    assert resp.status_code == 403

    resp = await client.get(f"{API}/nope", headers=auth_headers(outsider))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_unauthenticated_request_rejected(client):
    resp = await client.get(f"{API}/acme")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_member_cannot_rename_organization(client, acme):
    resp = await client.patch(f"{API}/acme", json={"name": "Renamed"}, headers=auth_headers(acme.member))
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "INSUFFICIENT_ROLE"


# ---------------------------------------------------------------------------
# 2. Members
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_members_with_profiles(client, acme):
    resp = await client.get(f"{API}/acme/members", headers=auth_headers(acme.member))
    assert resp.status_code == 200
    names = {m["full_name"] for m in resp.json()["members"]}
    assert names == {"Ada Admin", "Max Member"}


@pytest.mark.asyncio
async def test_last_admin_cannot_be_removed(client, acme):
    resp = await client.delete(f"{API}/acme/members/{acme.admin['id']}", headers=auth_headers(acme.admin))
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "LAST_ADMIN"


@pytest.mark.asyncio
async def test_last_admin_cannot_be_demoted(client, acme):
    resp = await client.patch(
        f"{API}/acme/members/{acme.admin['id']}",
        json={"role": "member"},
        headers=auth_headers(acme.admin),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "LAST_ADMIN"


@pytest.mark.asyncio
async def test_promote_then_remove_former_admin(client, fake, acme):
    headers = auth_headers(acme.admin)
    resp = await client.patch(
        f"{API}/acme/members/{acme.member['id']}", json={"role": "admin"}, headers=headers
    )
    assert resp.status_code == 200

    resp = await client.delete(f"{API}/acme/members/{acme.admin['id']}", headers=headers)
    assert resp.status_code == 204
    assert fake.rows("memberships", user_id=acme.admin["id"]) == []


@pytest.mark.asyncio
async def test_remove_unknown_member(client, fake, acme):
    stranger = fake.add_user("stranger@example.com")
    resp = await client.delete(f"{API}/acme/members/{stranger['id']}", headers=auth_headers(acme.admin))
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# 3. Invitations
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_invite_member_queues_email(client, fake, tasks, acme):
    resp = await client.post(
        f"{API}/acme/invite",
        json={"email": "New@Acme.example.com", "role": "member"},
        headers=auth_headers(acme.admin),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["email"] == "new@acme.example.com"
    assert body["token"]

    [(_, kwargs)] = tasks.invitation.calls
    assert kwargs["to_email"] == "new@acme.example.com"
    assert kwargs["inviter_name"] == "Ada Admin"
    assert kwargs["organization_name"] == "Acme Foods"
    assert kwargs["invitation_token"] == body["token"]


@pytest.mark.asyncio
async def test_invite_survives_queue_failure(client, fake, tasks, acme):
    tasks.invitation.error = OperationalError("broker unavailable")
    resp = await client.post(
        f"{API}/acme/invite", json={"email": "new@acme.example.com"}, headers=auth_headers(acme.admin)
    )
    assert resp.status_code == 201
    assert len(fake.rows("invitations", email="new@acme.example.com")) == 1


@pytest.mark.asyncio
async def test_pending_invitation_is_unique_per_email(client, fake, acme):
    add_invitation(fake, acme.org)
    resp = await client.post(
        f"{API}/acme/invite", json={"email": "new@acme.example.com"}, headers=auth_headers(acme.admin)
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "INVITE_EXISTS"


@pytest.mark.asyncio
async def test_cannot_invite_existing_member(client, acme):
    resp = await client.post(
        f"{API}/acme/invite", json={"email": "member@acme.example.com"}, headers=auth_headers(acme.admin)
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["code"] == "ALREADY_MEMBER"


@pytest.mark.asyncio
async def test_member_cannot_invite(client, acme):
    resp = await client.post(
        f"{API}/acme/invite", json={"email": "new@acme.example.com"}, headers=auth_headers(acme.member)
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_cancel_invitation(client, fake, acme):
    invitation = add_invitation(fake, acme.org)
    headers = auth_headers(acme.admin)

    resp = await client.get(f"{API}/acme/invitations", headers=headers)
    assert resp.json()["total"] == 1

    resp = await client.delete(f"{API}/acme/invitations/{invitation['id']}", headers=headers)
    assert resp.status_code == 204

    resp = await client.delete(f"{API}/acme/invitations/{invitation['id']}", headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_invitation_lookup_is_public(client, fake, acme):
    add_invitation(fake, acme.org, invited_by=acme.admin["id"])
    resp = await client.get(f"{API}/invitations/invite-token")
    assert resp.status_code == 200
    assert resp.json()["organization_name"] == "Acme Foods"
    assert resp.json()["invited_by_name"] == "Ada Admin"
    assert resp.json()["is_valid"] is True

    resp = await client.get(f"{API}/invitations/unknown")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_accept_invitation(client, fake, acme):
    add_invitation(fake, acme.org, email="new@acme.example.com")
    newcomer = fake.add_user("new@acme.example.com")

    resp = await client.post(f"{API}/invitations/invite-token/accept", headers=auth_headers(newcomer))
    assert resp.status_code == 200
    assert resp.json()["slug"] == "acme"
    assert fake.rows("memberships", user_id=newcomer["id"])[0]["role"] == "member"


@pytest.mark.asyncio
async def test_expired_invitation_cannot_be_accepted(client, fake, acme):
    add_invitation(fake, acme.org, expires_at=ago(hours=1))
    newcomer = fake.add_user("new@acme.example.com")

    resp = await client.post(f"{API}/invitations/invite-token/accept", headers=auth_headers(newcomer))
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVITATION_EXPIRED"


@pytest.mark.asyncio
async def test_invitation_cannot_be_reused(client, fake, acme):
    add_invitation(fake, acme.org, accepted_at=ago(minutes=5))
    newcomer = fake.add_user("new@acme.example.com")

    resp = await client.post(f"{API}/invitations/invite-token/accept", headers=auth_headers(newcomer))
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "INVITATION_INVALID"


@pytest.mark.asyncio
async def test_reject_invitation_expires_it(client, fake, acme):
    add_invitation(fake, acme.org)
    resp = await client.post(f"{API}/invitations/invite-token/reject")
    assert resp.status_code == 200

    resp = await client.get(f"{API}/invitations/invite-token")
    assert resp.json()["is_valid"] is False
