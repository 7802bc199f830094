"""Step-up HTTP endpoint tests."""

from datetime import timedelta
from uuid import uuid4

import pytest

from conftest import START, code_at
from stepup_api.security.auth import create_access_token
from stepup_api.security.rate_limit import limiter
from stepup_api.services.totp_service import TotpService

BASE = "/api/v1/step-up"


class TestAuthentication:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,path",
        [
            ("post", "/secret"),
            ("post", "/verify"),
            ("post", "/change-password"),
            ("get", "/status"),
        ],
    )
    async def test_requires_bearer_token(self, client, method, path) -> None:
        response = await getattr(client, method)(f"{BASE}{path}")

        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    @pytest.mark.asyncio
    async def test_rejects_invalid_token(self, client) -> None:
        response = await client.post(f"{BASE}/secret", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client) -> None:
        token = create_access_token(uuid4(), "ghost@example.com")

        response = await client.post(f"{BASE}/secret", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 404
        assert response.json()["code"] == "USER_NOT_FOUND"


class TestStepUpFlow:
    @pytest.mark.asyncio
    async def test_password_change_scenario(self, client, auth_headers, clock) -> None:
        response = await client.post(f"{BASE}/secret", headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["provisioning_uri"].startswith("otpauth://totp/")
        secret = body["secret"]

        clock.advance(seconds=30)
        response = await client.post(
            f"{BASE}/verify",
            json={"code": code_at(secret, clock.now)},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["verified"] is True
        assert response.json()["message"] == "OTP verified successfully"

        response = await client.post(
            f"{BASE}/change-password",
            json={"new_password": "newpass1"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Password changed successfully"}

        response = await client.post(
            f"{BASE}/change-password",
            json={"new_password": "newpass2"},
            headers=auth_headers,
        )
        assert response.status_code == 403
        assert response.json()["code"] == "STEP_UP_REQUIRED"

    @pytest.mark.asyncio
    async def test_code_sent_as_number(self, client, auth_headers, clock) -> None:
        secret = (await client.post(f"{BASE}/secret", headers=auth_headers)).json()["secret"]
        code = next(c for c in TotpService().valid_codes(secret, clock.now) if not c.startswith("0"))

        response = await client.post(f"{BASE}/verify", json={"code": int(code)}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["verified"] is True

    @pytest.mark.asyncio
    async def test_secret_is_reused(self, client, auth_headers, clock) -> None:
        first = (await client.post(f"{BASE}/secret", headers=auth_headers)).json()
        clock.advance(minutes=5)
        second = (await client.post(f"{BASE}/secret", headers=auth_headers)).json()

        assert second == first

    @pytest.mark.asyncio
    async def test_status_follows_cycle(self, client, auth_headers, clock) -> None:
        response = await client.get(f"{BASE}/status", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["state"] == "idle"

        secret = (await client.post(f"{BASE}/secret", headers=auth_headers)).json()["secret"]
        response = await client.get(f"{BASE}/status", headers=auth_headers)
        assert response.json()["state"] == "provisioned"

        await client.post(f"{BASE}/verify", json={"code": code_at(secret, clock.now)}, headers=auth_headers)
        response = await client.get(f"{BASE}/status", headers=auth_headers)
        body = response.json()
        assert body["state"] == "stepped_up"
        assert body["change_expires_at"] is not None

    @pytest.mark.asyncio
    async def test_responses_are_not_cacheable(self, client, auth_headers) -> None:
        response = await client.post(f"{BASE}/secret", headers=auth_headers)

        assert response.headers["Cache-Control"] == "no-store, max-age=0"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestErrorResponses:
    @pytest.mark.asyncio
    async def test_verify_without_secret(self, client, auth_headers) -> None:
        response = await client.post(f"{BASE}/verify", json={"code": "123456"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json() == {
            "detail": "No active OTP session. Please request a new secret.",
            "code": "NO_ACTIVE_SESSION",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["12a456", "123", "1234567890123456789012345678901234567890"])
    async def test_malformed_code(self, client, auth_headers, code) -> None:
        await client.post(f"{BASE}/secret", headers=auth_headers)

        response = await client.post(f"{BASE}/verify", json={"code": code}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_CODE"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [12345, 0])
    async def test_numeric_code_without_leading_zeros(self, client, auth_headers, code) -> None:
        await client.post(f"{BASE}/secret", headers=auth_headers)

        response = await client.post(f"{BASE}/verify", json={"code": code}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_CODE"

    @pytest.mark.asyncio
    async def test_missing_code(self, client, auth_headers) -> None:
        response = await client.post(f"{BASE}/verify", json={}, headers=auth_headers)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_session_expired(self, client, auth_headers, clock) -> None:
        secret = (await client.post(f"{BASE}/secret", headers=auth_headers)).json()["secret"]
        clock.advance(minutes=16)

        response = await client.post(
            f"{BASE}/verify",
            json={"code": code_at(secret, clock.now)},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "SESSION_EXPIRED"

    @pytest.mark.asyncio
    async def test_verification_expired(self, client, auth_headers, clock) -> None:
        secret = (await client.post(f"{BASE}/secret", headers=auth_headers)).json()["secret"]
        await client.post(f"{BASE}/verify", json={"code": code_at(secret, START)}, headers=auth_headers)
        clock.advance(minutes=10, seconds=1)

        response = await client.post(
            f"{BASE}/change-password",
            json={"new_password": "newpass1"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VERIFICATION_EXPIRED"

    @pytest.mark.asyncio
    async def test_weak_password(self, client, auth_headers) -> None:
        response = await client.post(
            f"{BASE}/change-password",
            json={"new_password": "abc"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json() == {
            "detail": "New password must be at least 6 characters long",
            "code": "WEAK_PASSWORD",
        }

    @pytest.mark.asyncio
    async def test_password_too_long(self, client, auth_headers, clock) -> None:
        secret = (await client.post(f"{BASE}/secret", headers=auth_headers)).json()["secret"]
        await client.post(f"{BASE}/verify", json={"code": code_at(secret, clock.now)}, headers=auth_headers)

        response = await client.post(
            f"{BASE}/change-password",
            json={"new_password": "x" * 73},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json() == {
            "detail": "New password must be at most 72 bytes long",
            "code": "PASSWORD_TOO_LONG",
        }

        # Verification is still open for an acceptable password
        response = await client.post(
            f"{BASE}/change-password",
            json={"new_password": "x" * 72},
            headers=auth_headers,
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unavailable(self, client, auth_headers, monkeypatch) -> None:
        from stepup_api.repositories.user_repository import UserRepository

        async def broken(self, *args, **kwargs):
            raise TimeoutError()

        monkeypatch.setattr(UserRepository, "get_for_update", broken)

        response = await client.post(f"{BASE}/secret", headers=auth_headers)

        assert response.status_code == 503
        assert response.json()["code"] == "UNAVAILABLE"
        assert response.headers["Retry-After"] == "5"


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_verify_is_rate_limited(self, client, auth_headers) -> None:
        limiter.enabled = True
        limiter.reset()

        statuses = [
            (await client.post(f"{BASE}/verify", json={"code": "abc"}, headers=auth_headers)).status_code
            for _ in range(6)
        ]

        assert statuses[:5] == [400] * 5
        assert statuses[5] == 429


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
