"""
Local input checks for auth forms and listing payloads.

Every checker returns ``{field: arabic_message}``; an empty dict means the
input is valid. Nothing here talks to a data source.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from pydantic import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^(\+970|970|0)?5[0-9]{8}$")
MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 2

LISTING_FIELD_MESSAGES: dict[str, str] = {
    "title": "العنوان يجب أن يكون بين 3 و 100 حرف",
    "description": "الوصف يجب ألا يتجاوز 2000 حرف",
    "category_id": "يرجى اختيار الفئة",
    "price": "السعر يجب أن يكون أكبر من صفر",
    "currency": "العملة غير مدعومة",
    "price_type": "نوع السعر غير صحيح",
    "city": "يرجى اختيار المدينة",
    "region": "المنطقة غير صحيحة",
    "ad_type": "نوع الإعلان غير صحيح",
    "condition_type": "حالة المنتج غير صحيحة",
    "status": "حالة الإعلان غير صحيحة",
}
FORBIDDEN_FIELD_MESSAGE = "لا يمكن تعديل هذا الحقل"
GENERIC_FIELD_MESSAGE = "قيمة غير صحيحة"


def check_email(value: Optional[str]) -> Optional[str]:
    if not value:
        return "يرجى إدخال البريد الإلكتروني"
    if not EMAIL_RE.match(value.strip()):
        return "يرجى إدخال عنوان بريد إلكتروني صحيح"
    return None


def check_password(value: Optional[str]) -> Optional[str]:
    if not value:
        return "يرجى إدخال كلمة المرور"
    if len(value) < MIN_PASSWORD_LENGTH:
        return "كلمة المرور يجب أن تكون 6 أحرف على الأقل"
    return None


def check_phone(value: Optional[str]) -> Optional[str]:
    """Optional Palestinian mobile number, e.g. 0599123456 or +970599123456."""
    if value:
        if not PHONE_RE.match(re.sub(r"\s", "", value)):
            return "يرجى إدخال رقم هاتف فلسطيني صحيح (مثال: 0599123456)"
    return None


def _check_name(value: Optional[str], missing: str, too_short: str) -> Optional[str]:
    if not value or not value.strip():
        return missing
    if len(value.strip()) < MIN_NAME_LENGTH:
        return too_short
    return None


def validate_login(email: Optional[str], password: Optional[str]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for field, message in (("email", check_email(email)), ("password", check_password(password))):
        if message:
            errors[field] = message
    return errors


def validate_signup(data: Mapping[str, Any]) -> dict[str, str]:
    """
    Validate a signup form.

    Args:
        data: Form values keyed by email, password, first_name, last_name,
            phone and (optionally) confirm_password

    Returns:
        dict[str, str]: Field errors, empty when the form is valid
    """
    checks = {
        "first_name": _check_name(
            data.get("first_name"),
            "يرجى إدخال الاسم الأول",
            "الاسم يجب أن يكون على الأقل حرفين",
        ),
        "last_name": _check_name(
            data.get("last_name"),
            "يرجى إدخال اسم العائلة",
            "اسم العائلة يجب أن يكون على الأقل حرفين",
        ),
        "email": check_email(data.get("email")),
        "phone": check_phone(data.get("phone")),
        "password": check_password(data.get("password")),
    }
    if "confirm_password" in data:
        confirm = data.get("confirm_password")
        if not confirm:
            checks["confirm_password"] = "يرجى تأكيد كلمة المرور"
        elif confirm != data.get("password"):
            checks["confirm_password"] = "كلمات المرور غير متطابقة"

    return {field: message for field, message in checks.items() if message}


def listing_field_errors(exc: ValidationError) -> dict[str, str]:
    """
    Convert a pydantic ValidationError from a listing payload into
    localized per-field messages.
    """
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        # the only model-level rule is "price required when priced"
        field = str(loc[0]) if loc else "price"
        if field in errors:
            continue
        if err.get("type") == "extra_forbidden":
            errors[field] = FORBIDDEN_FIELD_MESSAGE
        else:
            errors[field] = LISTING_FIELD_MESSAGES.get(field, GENERIC_FIELD_MESSAGE)
    return errors
