"""
Auth service: session state, login with lockout, signup, profile edits.

Every operation returns an ``AuthResult``; nothing raises to the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from souq_data.config import Settings
from souq_data.constants import ADMIN_EMAIL
from souq_data.errors import (
    MSG_ACCEPT_TERMS,
    MSG_AUTH_INIT,
    MSG_INVALID_INPUT,
    MSG_LOGIN_UNEXPECTED,
    MSG_LOGOUT,
    MSG_NOT_SIGNED_IN,
    MSG_PROFILE_UPDATE,
    MSG_RESET_PASSWORD,
    MSG_SIGNUP_UNEXPECTED,
    AuthenticationRequiredError,
    InvalidCredentialsError,
    LoginBlockedError,
    SouqError,
)
from souq_data.metrics import login_lockouts
from souq_data.schemas.auth import (
    AuthResult,
    AuthSession,
    LoginCredentials,
    SignupData,
    UserProfile,
)
from souq_data.services._helpers import SourceBoundService
from souq_data.sources.base import DataSource
from souq_data.throttle import LoginThrottle
from souq_data.utils.datetime import utc_now
from souq_data.validation import check_email, check_phone, validate_login, validate_signup

logger = structlog.get_logger(__name__)

PROFILE_EDITABLE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "phone",
        "avatar_url",
        "bio",
        "address_city",
        "address_region",
        "business_name",
        "email_notifications",
        "sms_notifications",
        "marketing_emails",
        "profile_visibility",
        "language",
    }
)


class AuthService(SourceBoundService):
    """
    Current user and session, plus the auth operations.

    Attributes:
        user: Signed-in user, None when signed out
        session: Current session, when one was established by ``login``
        initialized: Whether ``initialize`` has completed
        remembered_email: Email kept by a "remember me" login
        last_login_at: Time of the last successful login
        throttle: Failed-login counter enforcing the lockout
    """

    def __init__(
        self,
        source: DataSource,
        settings: Optional[Settings] = None,
        throttle: Optional[LoginThrottle] = None,
    ):
        super().__init__(source, settings)
        self.user: Optional[UserProfile] = None
        self.session: Optional[AuthSession] = None
        self.initialized = False
        self.remembered_email: Optional[str] = None
        self.last_login_at: Optional[datetime] = None
        self.throttle = throttle or LoginThrottle()

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def login_attempts(self, email: str) -> int:
        return self.throttle.attempts(email.strip().lower())

    def _failed(self, err: SouqError, fallback: str) -> AuthResult:
        self._fail(err, fallback)
        return AuthResult.failed(
            self.error or fallback, code=err.code, fields=getattr(err, "fields", {})
        )

    def _rejected(
        self, message: str, code: str, fields: Optional[dict[str, str]] = None
    ) -> AuthResult:
        """Local rejection: no source call was made."""
        self.error = message
        self.failure = None
        return AuthResult.failed(message, code=code, fields=fields or {})

    async def initialize(self) -> AuthResult:
        """Restore the signed-in user from the source's session, if any."""
        try:
            self.user = await self._call("current_user", self.source.current_user)
        except SouqError as err:
            self.initialized = True
            return self._failed(err, MSG_AUTH_INIT)

        self.initialized = True
        self._succeed()
        logger.info("auth_initialized", authenticated=self.user is not None)
        return AuthResult(success=True, user=self.user)

    async def login(self, credentials: Union[LoginCredentials, Mapping[str, Any]]) -> AuthResult:
        """
        Sign in with email and password.

        After five consecutive bad-credential failures the email is locked
        for fifteen minutes; a success resets the count.
        """
        try:
            creds = (
                credentials
                if isinstance(credentials, LoginCredentials)
                else LoginCredentials.model_validate(dict(credentials))
            )
        except ValidationError:
            return self._rejected(MSG_INVALID_INPUT, "validation")

        email = creds.normalized_email
        if self.throttle.is_blocked(email):
            logger.warning("login_blocked", email=email)
            return self._failed(LoginBlockedError(), MSG_LOGIN_UNEXPECTED)

        fields = validate_login(email, creds.password)
        if fields:
            return self._rejected(next(iter(fields.values())), "validation", fields)

        try:
            session = await self._call("sign_in", self.source.sign_in, email, creds.password)
        except InvalidCredentialsError as err:
            if self.throttle.record_failure(email):
                login_lockouts.inc()
                logger.warning("login_locked_out", email=email, attempts=self.throttle.max_attempts)
                return self._failed(LoginBlockedError(), MSG_LOGIN_UNEXPECTED)
            logger.info("login_rejected", email=email, attempts=self.throttle.attempts(email))
            return self._failed(err, MSG_LOGIN_UNEXPECTED)
        except SouqError as err:
            return self._failed(err, MSG_LOGIN_UNEXPECTED)

        self.throttle.reset(email)
        self.session = session
        self.user = session.user
        self.remembered_email = email if creds.remember_me else None
        self.last_login_at = utc_now()
        self._succeed()
        logger.info("login_succeeded", user_id=session.user.id, source=self.source.name)
        return AuthResult(success=True, user=session.user, session=session)

    async def signup(self, data: Union[SignupData, Mapping[str, Any]]) -> AuthResult:
        """
        Register a new account. Does not sign the new user in.
        """
        try:
            signup = data if isinstance(data, SignupData) else SignupData.model_validate(dict(data))
        except ValidationError:
            return self._rejected(MSG_INVALID_INPUT, "validation")

        if not signup.accept_terms:
            return self._rejected(MSG_ACCEPT_TERMS, "terms")

        fields = validate_signup(
            {
                "email": signup.email,
                "password": signup.password,
                "first_name": signup.first_name,
                "last_name": signup.last_name,
                "phone": signup.phone,
            }
        )
        if fields:
            return self._rejected(next(iter(fields.values())), "validation", fields)

        try:
            user = await self._call("sign_up", self.source.sign_up, signup)
        except SouqError as err:
            # GoTrue rejections already carry a localized message
            self._fail(err, MSG_SIGNUP_UNEXPECTED)
            self.error = err.message or MSG_SIGNUP_UNEXPECTED
            return AuthResult.failed(self.error, code=err.code)

        self._succeed()
        logger.info("signup_succeeded", user_id=user.id)
        return AuthResult(success=True, user=user)

    async def logout(self) -> AuthResult:
        """Sign out. Local state is cleared even if the source call fails."""
        try:
            await self._call("sign_out", self.source.sign_out)
        except SouqError as err:
            return self._failed(err, MSG_LOGOUT)
        finally:
            self.user = None
            self.session = None
            self.last_login_at = None

        self._succeed()
        return AuthResult(success=True)

    async def update_profile(self, updates: Mapping[str, Any]) -> AuthResult:
        """
        Edit the signed-in user's profile.

        Only profile fields may change; email, verification flags, account
        status and timestamps are rejected.
        """
        if self.user is None:
            return self._failed(AuthenticationRequiredError(MSG_NOT_SIGNED_IN), MSG_NOT_SIGNED_IN)

        forbidden = set(updates) - PROFILE_EDITABLE_FIELDS
        if forbidden or not updates:
            fields = {name: "لا يمكن تعديل هذا الحقل" for name in sorted(forbidden)}
            return self._rejected(MSG_INVALID_INPUT, "validation", fields)

        phone_error = check_phone(updates.get("phone"))
        if phone_error:
            return self._rejected(phone_error, "validation", {"phone": phone_error})

        try:
            user = await self._call(
                "update_profile", self.source.update_profile, self.user.id, dict(updates)
            )
        except SouqError as err:
            return self._failed(err, MSG_PROFILE_UPDATE)

        self.user = user
        if self.session is not None:
            self.session = self.session.model_copy(update={"user": user})
        self._succeed()
        logger.info("profile_updated", user_id=user.id, fields=sorted(updates))
        return AuthResult(success=True, user=user)

    async def reset_password(self, email: str) -> AuthResult:
        email_error = check_email(email)
        if email_error:
            return self._rejected(email_error, "validation", {"email": email_error})

        try:
            await self._call("reset_password", self.source.reset_password, email.strip().lower())
        except SouqError as err:
            return self._failed(err, MSG_RESET_PASSWORD)

        self._succeed()
        return AuthResult(success=True)

    def has_permission(self, permission: str) -> bool:
        """
        Check a named permission for the signed-in user.

        Known permissions: ``post_ad`` (active account), ``business_features``
        (verified business) and ``admin_panel`` (the admin account).
        """
        if self.user is None:
            return False
        if permission == "post_ad":
            return self.user.account_status == "active"
        if permission == "business_features":
            return self.user.is_business_verified
        if permission == "admin_panel":
            return self.user.email == ADMIN_EMAIL
        return False

    def display_name(self) -> str:
        return self.user.display_name() if self.user else ""
