from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from souq_data.constants import AccountStatus, Language


class UserProfile(BaseModel):
    """Authenticated user joined with their marketplace profile row."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    address_city: Optional[str] = None
    address_region: Optional[str] = None
    business_name: Optional[str] = None
    is_business_verified: bool = False
    email_notifications: bool = True
    sms_notifications: bool = True
    marketing_emails: bool = False
    profile_visibility: str = "public"
    language: Language = "ar"
    email_verified: bool = False
    phone_verified: bool = False
    account_status: AccountStatus = "active"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        if self.first_name:
            return self.first_name
        return self.email.split("@")[0]


class AuthSession(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    user: UserProfile


class LoginCredentials(BaseModel):
    email: str
    password: str
    remember_me: bool = Field(False, alias="rememberMe")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def normalized_email(self) -> str:
        return self.email.strip().lower()


class SignupData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    phone: Optional[str] = None
    accept_terms: bool = Field(False, alias="acceptTerms")
    receive_newsletter: bool = Field(False, alias="receiveNewsletter")


class AuthResult(BaseModel):
    """Return value of every auth operation; callers branch on ``success``."""

    success: bool
    user: Optional[UserProfile] = None
    session: Optional[AuthSession] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    fields: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def failed(cls, message: str, code: Optional[str] = None, **extra: Any) -> "AuthResult":
        return cls(success=False, error=message, error_code=code, **extra)
