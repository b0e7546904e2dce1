"""
API Integration Tests — user management, role grants and login.
"""

import uuid

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from httpx import AsyncClient

from api import deps
from core.security import create_access_token, decode_access_token, hash_password, verify_password
from db.models import User

ADMIN_ID = "00000000-0000-0000-0000-000000000001"


@pytest.fixture
async def accounts(test_db):
    admin = User(
        user_id=uuid.UUID(ADMIN_ID),
        username="admin",
        fullname="Ada Admin",
        email="Admin@Example.com",
        password_hash=hash_password("correct-horse"),
        role="Admin",
    )
    clerk = User(
        username="clerk",
        fullname="Cory Clerk",
        email="clerk@example.com",
        password_hash=hash_password("clerk-pass"),
        role="User",
    )
    owner = User(
        username="owner",
        fullname="Olu Owner",
        email="owner@example.com",
        password_hash=hash_password("owner-pass"),
        role="Super Admin",
    )
    test_db.add_all([admin, clerk, owner])
    await test_db.commit()
    return {"admin": admin, "clerk": clerk, "owner": owner}


def _new_user(**overrides) -> dict:
    body = {
        "username": "receiver",
        "fullname": "Rae Receiver",
        "email": "receiver@example.com",
        "password": "receiving-1",
        "role": "User",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
class TestUsersAPI:
    async def test_list_users(self, client: AsyncClient, accounts):
        resp = await client.get("/api/v1/users/")
        assert resp.status_code == 200
        assert [u["username"] for u in resp.json()] == ["admin", "clerk", "owner"]
        assert "password_hash" not in resp.json()[0]

    async def test_email_is_stored_lowercase(self, client: AsyncClient, accounts):
        resp = await client.get(f"/api/v1/users/{ADMIN_ID}")
        assert resp.json()["email"] == "admin@example.com"

    async def test_create_user_hashes_password(self, client: AsyncClient, accounts, test_db):
        resp = await client.post("/api/v1/users/", json=_new_user())
        assert resp.status_code == 201
        created = await test_db.get(User, uuid.UUID(resp.json()["user_id"]))
        assert created.password_hash != "receiving-1"
        assert verify_password("receiving-1", created.password_hash)

    async def test_duplicate_username_returns_409(self, client: AsyncClient, accounts):
        resp = await client.post("/api/v1/users/", json=_new_user(username="clerk"))
        assert resp.status_code == 409
        assert resp.json()["detail"]["field"] == "username"

    async def test_duplicate_email_returns_409(self, client: AsyncClient, accounts):
        resp = await client.post("/api/v1/users/", json=_new_user(email="CLERK@example.com"))
        assert resp.status_code == 409
        assert resp.json()["detail"]["field"] == "email"

    async def test_admin_cannot_create_super_admin(self, client: AsyncClient, accounts):
        resp = await client.post("/api/v1/users/", json=_new_user(role="Super Admin"))
        assert resp.status_code == 403

    async def test_admin_cannot_promote_to_super_admin(self, client: AsyncClient, accounts):
        clerk_id = str(accounts["clerk"].user_id)
        resp = await client.patch(f"/api/v1/users/{clerk_id}", json={"role": "Super Admin"})
        assert resp.status_code == 403

    async def test_super_admin_can_promote(self, client: AsyncClient, accounts, mock_user):
        mock_user["role"] = "Super Admin"
        clerk_id = str(accounts["clerk"].user_id)
        resp = await client.patch(f"/api/v1/users/{clerk_id}", json={"role": "Admin"})
        assert resp.status_code == 200
        assert resp.json()["role"] == "Admin"

    async def test_password_change_is_optional(self, client: AsyncClient, accounts, test_db):
        clerk = accounts["clerk"]
        old_hash = clerk.password_hash
        resp = await client.patch(f"/api/v1/users/{clerk.user_id}", json={"fullname": "Cory C. Clerk"})
        assert resp.status_code == 200
        assert clerk.password_hash == old_hash

        resp = await client.patch(f"/api/v1/users/{clerk.user_id}", json={"password": "new-password"})
        assert resp.status_code == 200
        assert verify_password("new-password", clerk.password_hash)

    async def test_admin_cannot_delete(self, client: AsyncClient, accounts):
        resp = await client.delete(f"/api/v1/users/{accounts['clerk'].user_id}")
        assert resp.status_code == 403

    async def test_super_admin_deletes_user(self, client: AsyncClient, accounts, mock_user):
        mock_user["role"] = "Super Admin"
        resp = await client.delete(f"/api/v1/users/{accounts['clerk'].user_id}")
        assert resp.status_code == 204

    async def test_nobody_deletes_themselves(self, client: AsyncClient, accounts, mock_user):
        mock_user["role"] = "Super Admin"
        resp = await client.delete(f"/api/v1/users/{ADMIN_ID}")
        assert resp.status_code == 403

    async def test_plain_user_cannot_list(self, client: AsyncClient, accounts, mock_user):
        mock_user["role"] = "User"
        resp = await client.get("/api/v1/users/")
        assert resp.status_code == 403


@pytest.mark.asyncio
class TestLogin:
    async def test_login_issues_token_with_role(self, client: AsyncClient, accounts):
        resp = await client.post("/api/v1/auth/login", json={"username": "owner", "password": "owner-pass"})
        assert resp.status_code == 200
        payload = decode_access_token(resp.json()["access_token"])
        assert payload["username"] == "owner"
        assert payload["role"] == "Super Admin"
        assert payload["sub"] == str(accounts["owner"].user_id)

    async def test_wrong_password(self, client: AsyncClient, accounts):
        resp = await client.post("/api/v1/auth/login", json={"username": "owner", "password": "nope"})
        assert resp.status_code == 401

    async def test_me(self, client: AsyncClient):
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["role"] == "Admin"


def _bearer(account: User, role: str) -> HTTPAuthorizationCredentials:
    token = create_access_token({"sub": str(account.user_id), "username": account.username, "role": role})
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.asyncio
class TestCurrentUser:
    @pytest.fixture(autouse=True)
    def _no_debug_bypass(self, monkeypatch):
        monkeypatch.setattr(deps.settings, "debug", False)

    async def test_role_is_read_from_account(self, accounts, test_db):
        clerk = accounts["clerk"]
        user = await deps.get_current_user(credentials=_bearer(clerk, "Admin"), db=test_db)
        assert user["sub"] == str(clerk.user_id)
        assert user["role"] == "User"

    async def test_demotion_applies_to_existing_token(self, accounts, test_db):
        owner = accounts["owner"]
        credentials = _bearer(owner, "Super Admin")
        owner.role = "Admin"
        await test_db.commit()

        user = await deps.get_current_user(credentials=credentials, db=test_db)
        assert user["role"] == "Admin"

    async def test_deleted_account_is_rejected(self, accounts, test_db):
        clerk = accounts["clerk"]
        credentials = _bearer(clerk, "User")
        await test_db.delete(clerk)
        await test_db.commit()

        with pytest.raises(HTTPException) as exc_info:
            await deps.get_current_user(credentials=credentials, db=test_db)
        assert exc_info.value.status_code == 401
