"""
Tests for the login throttle and token issuance service.
"""

from __future__ import annotations

import uuid
from unittest.mock import patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.config import get_settings
from app.core.database import async_session_factory
from app.core.errors import InvalidCredentials, RateLimited, ServiceUnavailable
from app.core.redis import clear_login_attempts, register_login_attempt
from app.core.resolver import Membership
from app.core.tokens import verify
from app.services.sessions import authenticate_user, issue_for, normalize_email, token_ttl
from conftest import PASSWORD, SECRET


def test_normalize_email():
    assert normalize_email("  Akela@Pack.ORG ") == "akela@pack.org"


def test_token_ttl_follows_settings():
    assert token_ttl().total_seconds() == get_settings().jwt_expire_minutes * 60


def test_issue_for_signs_resolved_membership():
    membership = Membership(uuid.uuid4(), 4, frozenset({"finance", "parent"}))
    issued, resolved = issue_for(membership)

    assert resolved.effective_role.id == "finance"
    assert verify(issued.token, SECRET) == resolved


class TestLoginThrottle:
    @pytest.mark.asyncio
    async def test_first_attempt_sets_window(self, redis_client):
        assert await register_login_attempt("a@b.org") == 1
        redis_client.expire.assert_awaited_once_with(
            "auth:login_attempts:a@b.org", get_settings().login_rate_window_seconds
        )

    @pytest.mark.asyncio
    async def test_later_attempts_keep_window(self, redis_client):
        redis_client.incr.return_value = 3
        assert await register_login_attempt("a@b.org") == 3
        redis_client.expire.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_over_limit(self, redis_client):
        redis_client.incr.return_value = get_settings().login_rate_limit + 1
        with pytest.raises(RateLimited):
            await register_login_attempt("a@b.org")

    @pytest.mark.asyncio
    async def test_backend_down_is_not_a_denial(self, redis_client):
        redis_client.incr.side_effect = RedisConnectionError("refused")
        with pytest.raises(ServiceUnavailable):
            await register_login_attempt("a@b.org")

    @pytest.mark.asyncio
    async def test_clear(self, redis_client):
        await clear_login_attempts("a@b.org")
        redis_client.delete.assert_awaited_once_with("auth:login_attempts:a@b.org")


class TestAuthenticateUser:
    @pytest.mark.asyncio
    async def test_known_user(self, seeded):
        async with async_session_factory() as session:
            user = await authenticate_user(" Leader@Example.org ", PASSWORD, session)
        assert user.id == seeded["leader"]

    @pytest.mark.asyncio
    async def test_unknown_email_still_checks_a_hash(self, seeded):
        with patch("app.services.sessions.verify_password", return_value=False) as check:
            async with async_session_factory() as session:
                with pytest.raises(InvalidCredentials):
                    await authenticate_user("nobody@example.org", PASSWORD, session)
        check.assert_called_once()
        assert check.call_args.args[0] == PASSWORD
        assert check.call_args.args[1].startswith("$2")

    @pytest.mark.asyncio
    async def test_wrong_password_checks_once(self, seeded):
        with patch("app.services.sessions.verify_password", return_value=False) as check:
            async with async_session_factory() as session:
                with pytest.raises(InvalidCredentials):
                    await authenticate_user("leader@example.org", "not-the-password", session)
        check.assert_called_once()
