"""
GoTrue (Supabase Auth) calls and the in-process session they produce.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, cast

import structlog

from souq_data.network.client import SupabaseClient
from souq_data.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

# refresh slightly before the token actually expires
EXPIRY_MARGIN = timedelta(seconds=30)


class SessionStore:
    """
    Current access/refresh token pair and the raw GoTrue user.

    Attributes:
        access_token: Bearer token for user-scoped requests
        refresh_token: Token exchanged for a new access token
        expires_at: Access token expiry (UTC)
        user: Raw GoTrue user payload
    """

    def __init__(self) -> None:
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.expires_at: Optional[datetime] = None
        self.user: Optional[Dict[str, Any]] = None

    def store(self, payload: Dict[str, Any]) -> None:
        """Replace the session with a GoTrue token response."""
        self.access_token = payload.get("access_token")
        self.refresh_token = payload.get("refresh_token")
        expires_in = payload.get("expires_in")
        self.expires_at = utc_now() + timedelta(seconds=int(expires_in)) if expires_in else None
        self.user = payload.get("user")

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.expires_at = None
        self.user = None

    @property
    def active(self) -> bool:
        return self.access_token is not None

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return utc_now() >= self.expires_at - EXPIRY_MARGIN


def sign_in_with_password(client: SupabaseClient, email: str, password: str) -> Dict[str, Any]:
    """
    Exchange email and password for a session.

    Args:
        client: Supabase client
        email: Account email
        password: Account password

    Returns:
        Dict[str, Any]: Token response (access_token, refresh_token, expires_in, user)

    Raises:
        BackendError: With the localized GoTrue message on rejection
    """
    logger.info("auth_sign_in_requested", email=email)
    payload = client.request_json(
        "POST",
        "auth",
        "token",
        params={"grant_type": "password"},
        json={"email": email, "password": password},
    )
    return cast(Dict[str, Any], payload)


def refresh_session(client: SupabaseClient, refresh_token: str) -> Dict[str, Any]:
    payload = client.request_json(
        "POST",
        "auth",
        "token",
        params={"grant_type": "refresh_token"},
        json={"refresh_token": refresh_token},
    )
    logger.info("auth_session_refreshed")
    return cast(Dict[str, Any], payload)


def sign_up(
    client: SupabaseClient, email: str, password: str, metadata: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Register a new account. The profile row is created by a database
    trigger from ``metadata``.

    Returns:
        Dict[str, Any]: The created GoTrue user (or a session payload wrapping it
        when email confirmation is disabled)
    """
    logger.info("auth_sign_up_requested", email=email)
    payload = client.request_json(
        "POST",
        "auth",
        "signup",
        json={"email": email, "password": password, "data": metadata},
    )
    return cast(Dict[str, Any], payload)


def sign_out(client: SupabaseClient, access_token: str) -> None:
    client.request("POST", "auth", "logout", token=access_token)


def get_user(client: SupabaseClient, access_token: str) -> Dict[str, Any]:
    return cast(Dict[str, Any], client.request_json("GET", "auth", "user", token=access_token))


def recover_password(client: SupabaseClient, email: str, redirect_to: Optional[str] = None) -> None:
    params = {"redirect_to": redirect_to} if redirect_to else None
    client.request("POST", "auth", "recover", params=params, json={"email": email})
    logger.info("auth_recovery_requested", email=email)
