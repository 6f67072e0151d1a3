from typing import Any, Dict, Optional

from souq_data.schemas.auth import UserProfile


def normalize_user(
    payload: Dict[str, Any], profile: Optional[Dict[str, Any]] = None
) -> UserProfile:
    """
    Merge a GoTrue user with its ``profiles`` row.

    Profile columns win; anything the profile lacks falls back to the
    signup metadata GoTrue keeps under ``user_metadata``.

    Args:
        payload: GoTrue user object (``id``, ``email``, ``user_metadata``, ...)
        profile: Row from ``profiles`` for the same id, if one exists

    Returns:
        UserProfile: Combined user
    """
    metadata = payload.get("user_metadata") or {}
    profile = profile or {}

    record: Dict[str, Any] = {
        "first_name": metadata.get("first_name", ""),
        "last_name": metadata.get("last_name", ""),
        "phone": metadata.get("phone") or payload.get("phone") or None,
        "created_at": payload.get("created_at"),
        "updated_at": payload.get("updated_at"),
    }
    record.update({k: v for k, v in profile.items() if v is not None})
    record["id"] = payload["id"]
    record["email"] = payload.get("email") or profile.get("email") or ""
    record["email_verified"] = bool(payload.get("email_confirmed_at")) or bool(
        profile.get("email_verified")
    )
    record["phone_verified"] = bool(payload.get("phone_confirmed_at")) or bool(
        profile.get("phone_verified")
    )
    return UserProfile.model_validate(record)
