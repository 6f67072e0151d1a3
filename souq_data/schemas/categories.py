from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from souq_data.schemas.listings import CategoryRef

_SLUG_CHARS = set("abcdefghijklmnopqrstuvwxyz0123456789-")


class Category(BaseModel):
    """
    A browsable ad category.

    The slug is the stable, URL-safe key pages route on. Inactive categories
    are kept for history but never handed to callers.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    name: str
    name_en: Optional[str] = None
    name_he: Optional[str] = None
    slug: str
    icon: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("slug")
    @classmethod
    def url_safe_slug(cls, value: str) -> str:
        if not value or not set(value) <= _SLUG_CHARS:
            raise ValueError(f"slug must be lowercase URL-safe, got {value!r}")
        return value

    def as_ref(self) -> CategoryRef:
        return CategoryRef.model_validate(self.model_dump())

    def localized_name(self, language: str = "ar") -> str:
        if language == "en" and self.name_en:
            return self.name_en
        if language == "he" and self.name_he:
            return self.name_he
        return self.name
