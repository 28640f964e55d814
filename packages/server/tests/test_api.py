"""
Integration tests for the authorization lifecycle endpoints.

Tests cover:
- Login (single and multiple memberships, failures, throttling)
- Organization switch
- Session introspection and logout
- Membership listing
- Role and permission catalog endpoints
- App-wide demo read-only enforcement
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import get_settings
from app.main import app
from conftest import PASSWORD, bearer, make_token


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _login(client: AsyncClient, email: str, organization_id: int | None = None, password: str = PASSWORD):
    body = {"email": email, "password": password}
    if organization_id is not None:
        body["organization_id"] = organization_id
    return await client.post("/api/v1/auth/login", json=body)


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

class TestLogin:
    @pytest.mark.asyncio
    async def test_single_membership(self, client, seeded, redis_client):
        resp = await _login(client, "demo@example.org")
        assert resp.status_code == 200
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["session"]["organization_id"] == 1
        assert data["session"]["effective_role"] == "demoadmin"
        assert data["session"]["is_demo"] is True
        assert data["session"]["expires_at"] == data["expires_at"]
        redis_client.incr.assert_awaited_once_with("auth:login_attempts:demo@example.org")
        redis_client.delete.assert_awaited_once_with("auth:login_attempts:demo@example.org")

    @pytest.mark.asyncio
    async def test_several_memberships_need_organization(self, client, seeded, redis_client):
        resp = await _login(client, "leader@example.org")
        assert resp.status_code == 400
        assert resp.json()["error"] == "organization_required"

    @pytest.mark.asyncio
    async def test_explicit_organization(self, client, seeded, redis_client):
        resp = await _login(client, "leader@example.org", organization_id=2)
        assert resp.status_code == 200
        session = resp.json()["session"]
        assert session["organization_id"] == 2
        assert session["roles"] == [{"id": "parent", "name": "Parent/Guardian"}]
        assert session["data_scope"] == "linked"
        assert "participants.create" not in session["permissions"]

    @pytest.mark.asyncio
    async def test_email_is_case_insensitive(self, client, seeded, redis_client):
        resp = await _login(client, "Leader@Example.ORG", organization_id=1)
        assert resp.status_code == 200
        assert resp.json()["session"]["effective_role"] == "leader"

    @pytest.mark.asyncio
    async def test_suspended_organization(self, client, seeded, redis_client):
        resp = await _login(client, "leader@example.org", organization_id=3)
        assert resp.status_code == 404
        assert resp.json()["error"] == "membership_not_found"

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, seeded, redis_client):
        resp = await _login(client, "leader@example.org", organization_id=1, password="nope")
        assert resp.status_code == 401
        assert resp.json()["error"] == "invalid_credentials"
        redis_client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_user(self, client, seeded, redis_client):
        resp = await _login(client, "nobody@example.org")
        assert resp.status_code == 401
        assert resp.json()["error"] == "invalid_credentials"

    @pytest.mark.asyncio
    async def test_unverified_account(self, client, seeded, redis_client):
        resp = await _login(client, "unverified@example.org")
        assert resp.status_code == 403
        assert resp.json()["error"] == "account_not_verified"

    @pytest.mark.asyncio
    async def test_pending_member_gets_no_permissions(self, client, seeded, redis_client):
        resp = await _login(client, "pending@example.org")
        assert resp.status_code == 200
        session = resp.json()["session"]
        assert session["permissions"] == []
        assert session["effective_role"] == "pending"

    @pytest.mark.asyncio
    async def test_throttled(self, client, seeded, redis_client):
        redis_client.incr.return_value = get_settings().login_rate_limit + 1
        resp = await _login(client, "leader@example.org", organization_id=1)
        assert resp.status_code == 429
        assert resp.json()["error"] == "rate_limited"

    @pytest.mark.asyncio
    async def test_invalid_body(self, client, seeded, redis_client):
        resp = await client.post("/api/v1/auth/login", json={"email": "not-an-email", "password": "x"})
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Organization switch
# ---------------------------------------------------------------------------

class TestSwitchOrganization:
    @pytest.mark.asyncio
    async def test_switch(self, client, seeded, redis_client):
        login = await _login(client, "leader@example.org", organization_id=1)
        token = login.json()["token"]

        resp = await client.post(
            "/api/v1/auth/switch-organization",
            json={"organization_id": 2},
            headers=bearer(token),
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["session"]["organization_id"] == 2
        assert data["session"]["effective_role"] == "parent"
        assert data["token"] != token

    @pytest.mark.asyncio
    async def test_switch_to_foreign_organization(self, client, seeded):
        token = make_token(["leader"], organization_id=1, user_id=seeded["demo"])
        resp = await client.post(
            "/api/v1/auth/switch-organization",
            json={"organization_id": 2},
            headers=bearer(token),
        )
        assert resp.status_code == 403
        assert resp.json()["error"] == "cross_tenant_attempt"

    @pytest.mark.asyncio
    async def test_demo_accounts_can_switch(self, client, seeded):
        token = make_token(["demoadmin"], organization_id=1, user_id=seeded["demo"])
        resp = await client.post(
            "/api/v1/auth/switch-organization",
            json={"organization_id": 1},
            headers=bearer(token),
        )
        assert resp.status_code == 200
        assert resp.json()["session"]["is_demo"] is True

    @pytest.mark.asyncio
    async def test_requires_token(self, client, seeded):
        resp = await client.post("/api/v1/auth/switch-organization", json={"organization_id": 2})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Session introspection
# ---------------------------------------------------------------------------

class TestSession:
    @pytest.mark.asyncio
    async def test_verify_session(self, client):
        token = make_token(["leader", "finance"], organization_id=7)
        resp = await client.post("/api/v1/auth/verify-session", headers=bearer(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["organization_id"] == 7
        assert [role["id"] for role in data["roles"]] == ["leader", "finance"]
        assert data["expires_at"] is not None

    @pytest.mark.asyncio
    async def test_verify_session_rejects_bad_token(self, client):
        resp = await client.post("/api/v1/auth/verify-session", headers=bearer("x.y.z"))
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_my_permissions(self, client):
        resp = await client.get("/api/v1/auth/me/permissions", headers=bearer(make_token(["equipment"])))
        assert resp.status_code == 200
        data = resp.json()
        assert data["effective_role"] == "equipment"
        assert "inventory.manage" in data["permissions"]
        assert data["permissions"] == sorted(data["permissions"])

    @pytest.mark.asyncio
    async def test_logout(self, client):
        assert (await client.post("/api/v1/auth/logout")).json() == {"message": "Logged out"}
        resp = await client.post("/api/v1/auth/logout", headers=bearer(make_token(["leader"])))
        assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

class TestOrganizations:
    @pytest.mark.asyncio
    async def test_lists_own_memberships(self, client, seeded):
        token = make_token(["leader"], organization_id=1, user_id=seeded["leader"])
        resp = await client.get("/api/v1/organizations", headers=bearer(token))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert [(item["slug"], item["active"]) for item in data] == [
            ("riverside", True),
            ("hilltop", False),
        ]
        assert data[1]["roles"] == ["parent"]

    @pytest.mark.asyncio
    async def test_requires_token(self, client, seeded):
        resp = await client.get("/api/v1/organizations")
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Roles and permissions
# ---------------------------------------------------------------------------

class TestRoles:
    @pytest.mark.asyncio
    async def test_requires_roles_view(self, client):
        resp = await client.get("/api/v1/roles", headers=bearer(make_token(["leader"])))
        assert resp.status_code == 403
        assert resp.json()["requiredPermission"] == "roles.view"

    @pytest.mark.asyncio
    async def test_district_hidden_from_unit_admins(self, client):
        resp = await client.get("/api/v1/roles", headers=bearer(make_token(["unitadmin"])))
        assert resp.status_code == 200
        ids = [role["id"] for role in resp.json()["data"]]
        assert "district" not in ids
        assert ids[0] == "unitadmin"

    @pytest.mark.asyncio
    async def test_district_sees_every_role(self, client):
        resp = await client.get("/api/v1/roles", headers=bearer(make_token(["district"])))
        ids = [role["id"] for role in resp.json()["data"]]
        assert ids[0] == "district"
        assert "pending" in ids

    @pytest.mark.asyncio
    async def test_role_permissions(self, client):
        resp = await client.get("/api/v1/roles/equipment/permissions", headers=bearer(make_token(["unitadmin"])))
        assert resp.status_code == 200
        data = resp.json()
        assert data["role_id"] == "equipment"
        keys = [perm["key"] for perm in data["data"]]
        assert keys == sorted(keys)
        assert "inventory.view" in keys

    @pytest.mark.asyncio
    async def test_unknown_role(self, client):
        resp = await client.get("/api/v1/roles/wizard/permissions", headers=bearer(make_token(["unitadmin"])))
        assert resp.status_code == 404
        assert resp.json()["error"] == "role_not_found"

    @pytest.mark.asyncio
    async def test_hidden_role_is_not_found(self, client):
        resp = await client.get("/api/v1/roles/district/permissions", headers=bearer(make_token(["unitadmin"])))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_permission_catalog(self, client):
        resp = await client.get("/api/v1/permissions", headers=bearer(make_token(["demoadmin"])))
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert list(data) == sorted(data)
        assert {perm["key"] for perm in data["budget"]} == {"budget.view", "budget.manage"}


# ---------------------------------------------------------------------------
# Demo read-only
# ---------------------------------------------------------------------------

class TestDemoReadOnly:
    @pytest.mark.asyncio
    async def test_demo_mutation_blocked_before_routing(self, client):
        resp = await client.post("/api/v1/organizations", headers=bearer(make_token(["demoadmin"])))
        assert resp.status_code == 403
        assert resp.json() == {
            "error": "demo_blocked",
            "message": "This feature is not available in demo mode. Demo accounts have read-only access.",
            "isDemo": True,
        }

    @pytest.mark.asyncio
    async def test_regular_mutation_reaches_routing(self, client):
        resp = await client.post("/api/v1/organizations", headers=bearer(make_token(["leader"])))
        assert resp.status_code == 405
