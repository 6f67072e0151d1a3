"""
Unit tests for AuthService: login lockout, signup rules, profile edits.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest

from souq_data.config import Settings
from souq_data.errors import (
    MSG_ACCEPT_TERMS,
    MSG_BAD_CREDENTIALS,
    MSG_LOGIN_BLOCKED,
    MSG_NOT_SIGNED_IN,
    BackendError,
    InvalidCredentialsError,
)
from souq_data.schemas.auth import AuthSession, UserProfile
from souq_data.services.auth import AuthService
from souq_data.sources.fixtures import FixtureProvider
from souq_data.utils.datetime import utc_now
from tests.factories import mock_source

SIGNUP = {
    "email": "layla@example.com",
    "password": "secret123",
    "firstName": "ليلى",
    "lastName": "حسن",
    "phone": "0599123456",
    "acceptTerms": True,
}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_login_success_sets_user_and_remembers_email(provider: FixtureProvider) -> None:
    service = AuthService(provider)

    result = await service.login(
        {"email": " User@YallaSouq.ps", "password": "secret123", "rememberMe": True}
    )

    assert result.success is True
    assert result.session is not None
    assert service.is_authenticated is True
    assert service.remembered_email == "user@yallasouq.ps"
    assert service.last_login_at is not None
    assert service.display_name() == "مستخدم تجريبي"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_login_validation_never_calls_source(settings: Settings) -> None:
    source = mock_source()
    service = AuthService(source, settings)

    result = await service.login({"email": "not-an-email", "password": "123"})

    assert result.success is False
    assert result.error_code == "validation"
    assert set(result.fields) == {"email", "password"}
    source.sign_in.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fifth_failure_locks_the_email(settings: Settings) -> None:
    """Five bad passwords lock the account; the sixth attempt never reaches the source."""
    source = mock_source()
    source.sign_in.side_effect = InvalidCredentialsError()
    service = AuthService(source, settings)
    creds = {"email": "user@yallasouq.ps", "password": "wrong-pass"}

    results = [await service.login(creds) for _ in range(6)]

    assert [r.error_code for r in results[:4]] == ["invalid_credentials"] * 4
    assert results[0].error == MSG_BAD_CREDENTIALS
    assert results[4].error_code == "login_blocked"
    assert results[5].error_code == "login_blocked"
    assert results[5].error == MSG_LOGIN_BLOCKED
    assert source.sign_in.await_count == 5
    assert service.login_attempts("USER@yallasouq.ps") == 5


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lockout_expires_after_window(settings: Settings) -> None:
    source = mock_source()
    source.sign_in.side_effect = InvalidCredentialsError()
    service = AuthService(source, settings)
    creds = {"email": "user@yallasouq.ps", "password": "wrong-pass"}
    for _ in range(5):
        await service.login(creds)

    later = utc_now() + timedelta(minutes=16)
    with patch("souq_data.throttle.utc_now", return_value=later):
        result = await service.login(creds)

    assert result.error_code == "invalid_credentials"
    assert source.sign_in.await_count == 6


@pytest.mark.unit
@pytest.mark.asyncio
async def test_successful_login_resets_failures(settings: Settings) -> None:
    user = UserProfile(id="u1", email="user@yallasouq.ps")
    source = mock_source()
    source.sign_in.side_effect = [
        InvalidCredentialsError(),
        InvalidCredentialsError(),
        AuthSession(access_token="jwt-1", user=user),
    ]
    service = AuthService(source, settings)
    creds = {"email": "user@yallasouq.ps", "password": "secret123"}

    await service.login(creds)
    await service.login(creds)
    assert service.login_attempts("user@yallasouq.ps") == 2

    result = await service.login(creds)

    assert result.success is True
    assert service.login_attempts("user@yallasouq.ps") == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_login_backend_failure_does_not_count_as_bad_password(settings: Settings) -> None:
    source = mock_source()
    source.sign_in.side_effect = BackendError("down", status_code=503)
    service = AuthService(source, settings)

    result = await service.login({"email": "user@yallasouq.ps", "password": "secret123"})

    assert result.success is False
    assert result.error_code == "backend"
    assert service.login_attempts("user@yallasouq.ps") == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_signup_requires_terms(settings: Settings) -> None:
    source = mock_source()
    service = AuthService(source, settings)

    result = await service.signup({**SIGNUP, "acceptTerms": False})

    assert result.error == MSG_ACCEPT_TERMS
    assert result.error_code == "terms"
    source.sign_up.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_signup_rejects_bad_phone(settings: Settings) -> None:
    source = mock_source()
    service = AuthService(source, settings)

    result = await service.signup({**SIGNUP, "phone": "12345"})

    assert result.error_code == "validation"
    assert "phone" in result.fields
    source.sign_up.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_signup_does_not_sign_in(provider: FixtureProvider) -> None:
    service = AuthService(provider)

    result = await service.signup(SIGNUP)
    duplicate = await service.signup(SIGNUP)

    assert result.success is True
    assert result.user is not None and result.user.first_name == "ليلى"
    assert service.is_authenticated is False
    assert duplicate.success is False
    assert duplicate.error == "هذا البريد الإلكتروني مسجل مسبقاً"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_logout_clears_state_even_when_source_fails(settings: Settings) -> None:
    source = mock_source()
    source.sign_out.side_effect = BackendError("down", status_code=503)
    service = AuthService(source, settings)
    service.user = UserProfile(id="u1", email="user@yallasouq.ps")

    result = await service.logout()

    assert result.success is False
    assert service.user is None
    assert service.is_authenticated is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_profile_requires_session(provider: FixtureProvider) -> None:
    service = AuthService(provider)

    result = await service.update_profile({"first_name": "سامي"})

    assert result.success is False
    assert result.error == MSG_NOT_SIGNED_IN


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_profile_rejects_protected_fields(provider: FixtureProvider) -> None:
    service = AuthService(provider)
    await service.login({"email": "user@yallasouq.ps", "password": "secret123"})

    rejected = await service.update_profile({"email": "x@example.com", "bio": "مرحبا"})
    updated = await service.update_profile({"first_name": "سامي", "address_city": "نابلس"})

    assert rejected.error_code == "validation"
    assert set(rejected.fields) == {"email"}
    assert updated.success is True
    assert service.user is not None and service.user.first_name == "سامي"
    assert service.session is not None and service.session.user.address_city == "نابلس"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_initialize_restores_existing_session(provider: FixtureProvider) -> None:
    await provider.sign_in("test@yallasouq.ps", "secret123")
    service = AuthService(provider)

    result = await service.initialize()

    assert result.success is True
    assert service.initialized is True
    assert service.user is not None and service.user.email == "test@yallasouq.ps"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reset_password_validates_email(settings: Settings) -> None:
    source = mock_source()
    service = AuthService(source, settings)

    bad = await service.reset_password("nope")
    good = await service.reset_password(" User@YallaSouq.ps ")

    assert bad.error_code == "validation"
    assert good.success is True
    source.reset_password.assert_awaited_once_with("user@yallasouq.ps")


@pytest.mark.unit
@pytest.mark.parametrize(
    "profile,permission,expected",
    [
        ({}, "post_ad", True),
        ({"account_status": "suspended"}, "post_ad", False),
        ({"is_business_verified": True}, "business_features", True),
        ({}, "business_features", False),
        ({"email": "admin@yallasouq.ps"}, "admin_panel", True),
        ({}, "admin_panel", False),
        ({}, "unknown", False),
    ],
)
def test_has_permission(profile: dict, permission: str, expected: bool) -> None:
    service = AuthService(mock_source(), Settings())
    service.user = UserProfile.model_validate({"id": "u1", "email": "user@yallasouq.ps", **profile})

    assert service.has_permission(permission) is expected
