"""
Tests for app/api/v1/auth.py - Authentication endpoints.
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch
from fastapi import HTTPException

from tests.utils.factories import TEST_PASSWORD, create_manager, login, manager_login


def _set_cookies(response) -> str:
    return "\n".join(response.headers.get_list("set-cookie"))


class TestPasswordPolicy:
    """Test password policy enforcement."""

    def test_rejects_short_password(self):
        from app.api.v1.auth import _validate_password_policy
        from app.core import config

        with patch.object(config.settings, "MIN_PASSWORD_LENGTH", 8):
            with pytest.raises(HTTPException) as exc_info:
                _validate_password_policy("short")

        assert exc_info.value.status_code == 400
        assert "at least 8" in exc_info.value.detail

    def test_accepts_valid_password(self):
        from app.api.v1.auth import _validate_password_policy

        _validate_password_policy("password123")


class TestLoginLockoutHelpers:
    """Test login rate limiting and lockout helpers."""

    def test_login_key_includes_email_and_ip(self):
        from app.api.v1.auth import _login_key

        mock_request = MagicMock()
        mock_request.headers = {}
        mock_request.client.host = "192.168.1.1"

        key = _login_key("Admin@Example.com", mock_request)

        assert key == "admin@example.com::192.168.1.1"

    def test_login_key_handles_none_request(self):
        from app.api.v1.auth import _login_key

        assert _login_key("admin@example.com", None) == "admin@example.com::unknown"

    @pytest.mark.asyncio
    async def test_assert_not_locked_raises_when_locked(self):
        from app.api.v1.auth import _assert_not_locked
        from app.core.login_tracker import InMemoryLoginTracker

        tracker = InMemoryLoginTracker()
        key = "locked@example.com::127.0.0.1"
        await tracker.set_locked(key, 600)

        with patch('app.api.v1.auth.get_login_tracker', return_value=tracker):
            with pytest.raises(HTTPException) as exc_info:
                await _assert_not_locked(key)

        assert exc_info.value.status_code == 429
        assert "Too many" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_register_failed_locks_after_max_attempts(self):
        from app.api.v1.auth import _register_failed_attempt
        from app.core import config
        from app.core.login_tracker import HybridLoginTracker

        tracker = HybridLoginTracker()
        key = "failing@example.com::127.0.0.1"

        with patch.object(config.settings, 'LOGIN_MAX_ATTEMPTS', 3):
            with patch('app.api.v1.auth.get_login_tracker', return_value=tracker):
                for _ in range(2):
                    with pytest.raises(HTTPException) as exc_info:
                        await _register_failed_attempt(key)
                    assert exc_info.value.status_code == 401

                with pytest.raises(HTTPException) as exc_info:
                    await _register_failed_attempt(key)
                assert exc_info.value.status_code == 429


class TestSignup:

    @pytest.mark.asyncio
    async def test_signup_creates_admin(self, client):
        response = await client.post("/api/v1/auth/signup", json={
            "full_name": "New Admin",
            "email": "New.Admin@Example.com",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email"] == "new.admin@example.com"
        assert body["user"]["role"] == "admin"
        assert "password_hash" not in body["user"]

    @pytest.mark.asyncio
    async def test_duplicate_email_conflict(self, client, admin_user):
        response = await client.post("/api/v1/auth/signup", json={
            "full_name": "Other",
            "email": admin_user.email,
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Email already registered"}

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, client):
        response = await client.post("/api/v1/auth/signup", json={
            "full_name": "Other",
            "email": "other@example.com",
            "password": "short",
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_email_rejected(self, client):
        response = await client.post("/api/v1/auth/signup", json={
            "full_name": "Other",
            "email": "not-an-email",
            "password": TEST_PASSWORD,
        })

        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid value for email")


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_sets_session_cookies(self, client, admin_user):
        response = await login(client, admin_user.email)

        body = response.json()
        assert body["success"] is True
        assert body["user"]["id"] == admin_user.id
        cookies = _set_cookies(response)
        assert "accessToken=" in cookies
        assert "refreshToken=" in cookies
        assert "HttpOnly" in cookies
        assert "samesite=strict" in cookies.lower()
        assert client.cookies.get("accessToken")

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, admin_user):
        response = await client.post("/api/v1/auth/login", json={
            "email": admin_user.email, "password": "wrong-password",
        })

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_unknown_email(self, client):
        response = await client.post("/api/v1/auth/login", json={
            "email": "nobody@example.com", "password": TEST_PASSWORD,
        })

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_lockout_after_repeated_failures(self, client, admin_user):
        from app.core import config

        with patch.object(config.settings, "LOGIN_MAX_ATTEMPTS", 3):
            statuses = []
            for _ in range(3):
                response = await client.post("/api/v1/auth/login", json={
                    "email": admin_user.email, "password": "wrong-password",
                })
                statuses.append(response.status_code)

            # Correct credentials are refused while locked
            locked = await client.post("/api/v1/auth/login", json={
                "email": admin_user.email, "password": TEST_PASSWORD,
            })

        assert statuses == [401, 401, 429]
        assert locked.status_code == 429

    @pytest.mark.asyncio
    async def test_manager_login(self, client, db_session):
        account = await create_manager(db_session, "EMPa1b2c", department="Software")

        response = await manager_login(client, account.email)

        user = response.json()["user"]
        assert user["role"] == "manager"
        assert user["manager_id"] == "MNGa1b2c"
        assert user["employee_id"] == "EMPa1b2c"
        assert user["department"] == "Software"
        assert user["first_name"] == "Mira"

    @pytest.mark.asyncio
    async def test_admin_cannot_use_manager_login(self, client, admin_user):
        response = await client.post("/api/v1/auth/manager-login", json={
            "email": admin_user.email, "password": TEST_PASSWORD,
        })

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_manager_of_deleted_employee_cannot_login(self, client, db_session):
        account = await create_manager(db_session, "EMPdead1")
        from app.models.employee import Employee
        from sqlalchemy import update

        await db_session.execute(
            update(Employee).where(Employee.employee_id == "EMPdead1").values(deleted_at=datetime.utcnow())
        )
        await db_session.commit()

        response = await client.post("/api/v1/auth/manager-login", json={
            "email": account.email, "password": TEST_PASSWORD,
        })

        assert response.status_code == 401


class TestSession:
    """Access token checks and transparent refresh on protected routes."""

    @pytest.mark.asyncio
    async def test_me_requires_session(self, client):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["message"] == "Not authenticated"

    @pytest.mark.asyncio
    async def test_me_with_cookie(self, admin_client, admin_user):
        response = await admin_client.get("/api/v1/auth/me")

        assert response.status_code == 200
        assert response.json()["user"]["email"] == admin_user.email

    @pytest.mark.asyncio
    async def test_bearer_header_accepted(self, client, admin_user):
        from app.core.security import create_access_token

        token = create_access_token(admin_user.id, "admin")
        response = await client.get(
            "/api/v1/employees", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, client):
        response = await client.get(
            "/api/v1/employees", headers={"Authorization": "Bearer garbage"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    @pytest.mark.asyncio
    async def test_expired_access_without_refresh(self, client, admin_user):
        from app.core.security import create_access_token

        expired = create_access_token(admin_user.id, "admin", expires_delta=timedelta(seconds=-1))
        response = await client.get("/api/v1/employees", headers={"Cookie": f"accessToken={expired}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Access token expired"

    @pytest.mark.asyncio
    async def test_expired_access_with_valid_refresh_reissues_cookies(self, client, admin_user):
        from app.core.security import create_access_token

        login_response = await login(client, admin_user.email)
        old_refresh = login_response.cookies["refreshToken"]
        client.cookies.clear()

        expired = create_access_token(admin_user.id, "admin", expires_delta=timedelta(seconds=-1))
        response = await client.get(
            "/api/v1/employees",
            headers={"Cookie": f"accessToken={expired}; refreshToken={old_refresh}"},
        )

        assert response.status_code == 200
        assert response.cookies.get("accessToken")
        new_refresh = response.cookies.get("refreshToken")
        assert new_refresh and new_refresh != old_refresh

        # The rotated token is spent
        client.cookies.clear()
        replay = await client.get(
            "/api/v1/employees",
            headers={"Cookie": f"accessToken={expired}; refreshToken={old_refresh}"},
        )
        assert replay.status_code == 401
        assert replay.json()["message"] == "Session expired"
        assert "Max-Age=0" in _set_cookies(replay)

    @pytest.mark.asyncio
    async def test_refreshed_session_survives_error_response(self, client, admin_user):
        from app.core.security import create_access_token

        login_response = await login(client, admin_user.email)
        old_refresh = login_response.cookies["refreshToken"]
        client.cookies.clear()

        expired = create_access_token(admin_user.id, "admin", expires_delta=timedelta(seconds=-1))
        response = await client.get(
            "/api/v1/employees/EMPzzzzz",
            headers={"Cookie": f"accessToken={expired}; refreshToken={old_refresh}"},
        )

        assert response.status_code == 404
        new_access = response.cookies.get("accessToken")
        new_refresh = response.cookies.get("refreshToken")
        assert new_access
        assert new_refresh and new_refresh != old_refresh

        client.cookies.clear()
        follow_up = await client.get(
            "/api/v1/employees",
            headers={"Cookie": f"accessToken={expired}; refreshToken={new_refresh}"},
        )
        assert follow_up.status_code == 200

    @pytest.mark.asyncio
    async def test_refreshed_session_survives_validation_error(self, client, admin_user):
        from app.core.security import create_access_token

        login_response = await login(client, admin_user.email)
        old_refresh = login_response.cookies["refreshToken"]
        client.cookies.clear()

        expired = create_access_token(admin_user.id, "admin", expires_delta=timedelta(seconds=-1))
        response = await client.post(
            "/api/v1/employees",
            json={"last_name": "Sharma"},
            headers={"Cookie": f"accessToken={expired}; refreshToken={old_refresh}"},
        )

        assert response.status_code == 400
        assert response.cookies.get("refreshToken") not in (None, old_refresh)

    @pytest.mark.asyncio
    async def test_unknown_refresh_token_rejected(self, client):
        response = await client.get(
            "/api/v1/employees", headers={"Cookie": "refreshToken=never-issued"}
        )

        assert response.status_code == 401
        assert "Max-Age=0" in _set_cookies(response)

    @pytest.mark.asyncio
    async def test_token_for_removed_account(self, client):
        from app.core.security import create_access_token

        token = create_access_token(999, "admin")
        response = await client.get("/api/v1/employees", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Account not found"


class TestRefreshEndpoint:

    @pytest.mark.asyncio
    async def test_refresh_with_cookie(self, client, admin_user):
        login_response = await login(client, admin_user.email)
        old_refresh = login_response.cookies["refreshToken"]

        response = await client.post("/api/v1/auth/refresh")

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "admin"
        assert response.cookies["refreshToken"] != old_refresh

    @pytest.mark.asyncio
    async def test_refresh_with_body(self, client, admin_user):
        login_response = await login(client, admin_user.email)
        raw = login_response.cookies["refreshToken"]
        client.cookies.clear()

        response = await client.post("/api/v1/auth/refresh", json={"refreshToken": raw})

        assert response.status_code == 200
        assert response.cookies.get("accessToken")

    @pytest.mark.asyncio
    async def test_refresh_token_required(self, client):
        response = await client.post("/api/v1/auth/refresh")

        assert response.status_code == 400
        assert response.json()["message"] == "Refresh token is required"

    @pytest.mark.asyncio
    async def test_revoked_refresh_token(self, client, admin_user):
        login_response = await login(client, admin_user.email)
        raw = login_response.cookies["refreshToken"]
        await client.post("/api/v1/auth/logout")

        response = await client.post("/api/v1/auth/refresh", json={"refreshToken": raw})

        assert response.status_code == 401


class TestLogout:

    @pytest.mark.asyncio
    async def test_logout_revokes_access_token(self, client, admin_user):
        login_response = await login(client, admin_user.email)
        access = login_response.cookies["accessToken"]

        response = await client.post("/api/v1/auth/logout")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert "Max-Age=0" in _set_cookies(response)

        after = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {access}"})
        assert after.status_code == 401
        assert after.json()["message"] == "Token has been revoked"

    @pytest.mark.asyncio
    async def test_logout_without_session_succeeds(self, client):
        response = await client.post("/api/v1/auth/logout")

        assert response.status_code == 200
