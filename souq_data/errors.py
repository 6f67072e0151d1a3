"""
Error taxonomy for the data-access layer.

Sources raise these; services catch them at their boundary and turn them
into a localized ``error`` string plus a falsy return value. Not-found is
deliberately absent: single-entity lookups return None instead.
"""

from __future__ import annotations

from typing import Mapping

MSG_FETCH_LISTINGS = "فشل في جلب الإعلانات"
MSG_FETCH_LISTING = "فشل في جلب الإعلان"
MSG_CREATE_LISTING = "فشل في إضافة الإعلان"
MSG_UPDATE_LISTING = "فشل في تحديث الإعلان"
MSG_DELETE_LISTING = "فشل في حذف الإعلان"
MSG_TOGGLE_FAVORITE = "فشل في إضافة/إزالة المفضلة"
MSG_UPLOAD_IMAGE = "فشل في رفع الصورة"
MSG_FETCH_CATEGORIES = "فشل في جلب الفئات"
MSG_LOGIN_REQUIRED = "يجب تسجيل الدخول أولاً"
MSG_NOT_OWNER = "لا تملك صلاحية تعديل هذا الإعلان"
MSG_LISTING_NOT_FOUND = "الإعلان غير موجود"
MSG_TIMEOUT = "انتهت مهلة الطلب، يرجى المحاولة مرة أخرى"
MSG_INVALID_INPUT = "البيانات المدخلة غير صحيحة"
MSG_LOGIN_BLOCKED = "تم حظر المحاولات لمدة مؤقتة، يرجى المحاولة لاحقاً"
MSG_BAD_CREDENTIALS = "البريد الإلكتروني أو كلمة المرور غير صحيحة"
MSG_LOGIN_UNEXPECTED = "حدث خطأ غير متوقع أثناء تسجيل الدخول"
MSG_SIGNUP_UNEXPECTED = "حدث خطأ غير متوقع أثناء إنشاء الحساب"
MSG_ACCEPT_TERMS = "يجب قبول الشروط والأحكام للمتابعة"
MSG_NOT_SIGNED_IN = "لم يتم تسجيل الدخول"
MSG_LOGOUT = "فشل في تسجيل الخروج"
MSG_PROFILE_UPDATE = "فشل في تحديث البيانات"
MSG_RESET_PASSWORD = "فشل في إرسال رابط إعادة تعيين كلمة المرور"
MSG_AUTH_INIT = "فشل في تهيئة نظام المصادقة"
MSG_NETWORK = "خطأ في الاتصال، تحقق من الإنترنت"
MSG_SERVER = "حدث خطأ في الخادم، يرجى المحاولة لاحقاً"

AUTH_ERROR_MESSAGES: dict[str, str] = {
    "Invalid login credentials": "بيانات تسجيل الدخول غير صحيحة",
    "User already registered": "هذا البريد الإلكتروني مسجل مسبقاً",
    "Password should be at least 6 characters": "كلمة المرور يجب أن تكون 6 أحرف على الأقل",
    "Invalid email": "البريد الإلكتروني غير صحيح",
    "Email not confirmed": "يرجى تأكيد البريد الإلكتروني أولاً",
    "Too many requests": "محاولات كثيرة، يرجى المحاولة لاحقاً",
    "Network error": "خطأ في الاتصال، تحقق من الإنترنت",
}


def localize_auth_error(message: str) -> str:
    """Translate a Supabase auth error to Arabic, passing unknown text through."""
    return AUTH_ERROR_MESSAGES.get(message, message)


class SouqError(Exception):
    """Base class for every error surfaced to the services."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationRequiredError(SouqError):
    """A mutating call was made without an active session."""

    code = "auth_required"

    def __init__(self, message: str = MSG_LOGIN_REQUIRED) -> None:
        super().__init__(message)


class OwnershipError(SouqError):
    """The session user does not own the listing being mutated."""

    code = "not_owner"

    def __init__(self, message: str = MSG_NOT_OWNER) -> None:
        super().__init__(message)


class ListingValidationError(SouqError):
    """
    Input rejected locally before any backend call.

    Attributes:
        fields: Mapping of field name to localized message
    """

    code = "validation"

    def __init__(
        self, fields: Mapping[str, str] | None = None, message: str = MSG_INVALID_INPUT
    ) -> None:
        self.fields = dict(fields or {})
        if self.fields and message == MSG_INVALID_INPUT:
            message = next(iter(self.fields.values()))
        super().__init__(message)


class BackendError(SouqError):
    """
    The data source itself failed (network, HTTP error, quota, timeout).

    Attributes:
        status_code: HTTP status if the failure came from a response
        detail: Untranslated backend message, for logs only
    """

    code = "backend"

    def __init__(
        self, message: str, status_code: int | None = None, detail: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class SourceTimeoutError(BackendError):
    """A source call exceeded the configured request timeout."""

    code = "timeout"

    def __init__(self, message: str = MSG_TIMEOUT) -> None:
        super().__init__(message)


class LoginBlockedError(SouqError):
    """Login attempted while the email is locked out after repeated failures."""

    code = "login_blocked"

    def __init__(self, message: str = MSG_LOGIN_BLOCKED) -> None:
        super().__init__(message)


class InvalidCredentialsError(SouqError):
    """Sign-in rejected by the source."""

    code = "invalid_credentials"

    def __init__(self, message: str = MSG_BAD_CREDENTIALS) -> None:
        super().__init__(message)
