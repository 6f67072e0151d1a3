from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from souq_data.constants import (
    DEFAULT_CURRENCY,
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    MIN_TITLE_LENGTH,
    PRICELESS_TYPES,
    REGION_CODES,
    AdType,
    ConditionType,
    Currency,
    ListingStatus,
    PriceType,
)


def _drop_price_if_priceless(data: Any) -> Any:
    if isinstance(data, dict) and data.get("price_type") in PRICELESS_TYPES:
        data = {**data, "price": None}
    return data


class CategoryRef(BaseModel):
    """Category fields embedded in a listing."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    name: str
    name_en: Optional[str] = None
    name_he: Optional[str] = None
    slug: str
    icon: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[str] = None


class OwnerSummary(BaseModel):
    """Public profile fields of the listing owner."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    avatar_url: Optional[str] = None
    is_business_verified: bool = False


class ListingImage(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    ad_id: str
    image_url: str
    thumbnail_url: Optional[str] = None
    alt_text: Optional[str] = None
    sort_order: int = 0
    is_primary: bool = False
    created_at: Optional[datetime] = None


class Listing(BaseModel):
    """
    A classified ad in the one shape every data source returns.

    Invariants enforced on construction:
        - price is None when price_type is free or contact
        - images are ordered by sort_order, with at most one primary
        - counters are never negative
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    category_id: str
    subcategory: Optional[str] = None
    price: Optional[float] = None
    currency: Currency = DEFAULT_CURRENCY
    price_type: PriceType = "fixed"
    city: str = ""
    region: Optional[str] = None
    address_details: Optional[str] = None
    status: ListingStatus = "active"
    ad_type: AdType = "sell"
    condition_type: Optional[ConditionType] = None
    is_featured: bool = False
    is_urgent: bool = False
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    contact_method: list[str] = Field(default_factory=lambda: ["phone"])
    views_count: int = Field(0, ge=0)
    favorites_count: int = Field(0, ge=0)
    messages_count: int = Field(0, ge=0)
    is_business_ad: bool = False
    auto_repost: bool = False
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None

    images: list[ListingImage] = Field(default_factory=list)
    category: Optional[CategoryRef] = None
    user: Optional[OwnerSummary] = None
    is_favorited: bool = False

    @model_validator(mode="before")
    @classmethod
    def discard_price(cls, data: Any) -> Any:
        return _drop_price_if_priceless(data)

    @field_validator("images")
    @classmethod
    def order_images(cls, images: list[ListingImage]) -> list[ListingImage]:
        ordered = sorted(images, key=lambda img: img.sort_order)
        seen_primary = False
        for img in ordered:
            if img.is_primary:
                if seen_primary:
                    img.is_primary = False
                seen_primary = True
        return ordered

    @property
    def primary_image(self) -> Optional[ListingImage]:
        for img in self.images:
            if img.is_primary:
                return img
        return self.images[0] if self.images else None


class ListingFilters(BaseModel):
    """
    Optional predicates for a listings query. Absent keys impose no constraint.

    Accepts both snake_case names and the camelCase keys the UI sends
    (``minPrice``, ``adType``, ``isFeatured``, ...).
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", coerce_numbers_to_str=True)

    category: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    min_price: Optional[float] = Field(None, alias="minPrice", ge=0)
    max_price: Optional[float] = Field(None, alias="maxPrice", ge=0)
    currency: Optional[Currency] = None
    condition: Optional[ConditionType] = None
    ad_type: Optional[AdType] = Field(None, alias="adType")
    is_featured: Optional[bool] = Field(None, alias="isFeatured")
    is_urgent: Optional[bool] = Field(None, alias="isUrgent")
    user_id: Optional[str] = Field(None, alias="userId")
    search: Optional[str] = None

    @field_validator("search", "city", "category", "region", "user_id")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def merged(self, **overrides: Any) -> "ListingFilters":
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=overrides)


class ListingPage(BaseModel):
    listings: list[Listing] = Field(default_factory=list)
    total: int = Field(0, ge=0)
    page: int = Field(1, ge=1)
    page_size: int = Field(20, gt=0)
    has_more: bool = False

    @classmethod
    def empty(cls, page: int = 1, page_size: int = 20) -> "ListingPage":
        return cls(listings=[], total=0, page=max(page, 1), page_size=max(page_size, 1))


class ListingCreate(BaseModel):
    """
    Fields a user supplies when posting a new ad.

    Owner, status, counters and timestamps are assigned by the service, never
    by the caller. A supplied price is discarded for free/contact ads and is
    required for fixed/negotiable ones.
    """

    model_config = ConfigDict(
        extra="forbid", str_strip_whitespace=True, coerce_numbers_to_str=True
    )

    title: str = Field(..., min_length=MIN_TITLE_LENGTH, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    category_id: str = Field(..., min_length=1)
    subcategory: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    currency: Currency = DEFAULT_CURRENCY
    price_type: PriceType = "fixed"
    city: str = Field(..., min_length=1)
    region: Optional[str] = None
    address_details: Optional[str] = None
    ad_type: AdType = "sell"
    condition_type: Optional[ConditionType] = None
    is_urgent: bool = False
    contact_name: str = ""
    contact_phone: str = ""
    contact_email: Optional[str] = None
    contact_method: list[str] = Field(default_factory=lambda: ["phone"])

    @model_validator(mode="before")
    @classmethod
    def discard_price(cls, data: Any) -> Any:
        return _drop_price_if_priceless(data)

    @field_validator("region")
    @classmethod
    def known_region(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in REGION_CODES:
            raise ValueError(f"unknown region {value!r}")
        return value

    @model_validator(mode="after")
    def price_required_when_priced(self) -> "ListingCreate":
        if self.price_type not in PRICELESS_TYPES and self.price is None:
            raise ValueError("price is required for fixed and negotiable ads")
        return self


class ListingUpdate(BaseModel):
    """
    Partial edit of a listing. Only the fields that were explicitly set are
    sent to the source; owner, id, counters and timestamps cannot be patched.
    """

    model_config = ConfigDict(
        extra="forbid", str_strip_whitespace=True, coerce_numbers_to_str=True
    )

    title: Optional[str] = Field(None, min_length=MIN_TITLE_LENGTH, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    category_id: Optional[str] = Field(None, min_length=1)
    subcategory: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    currency: Optional[Currency] = None
    price_type: Optional[PriceType] = None
    city: Optional[str] = Field(None, min_length=1)
    region: Optional[str] = None
    address_details: Optional[str] = None
    status: Optional[ListingStatus] = None
    ad_type: Optional[AdType] = None
    condition_type: Optional[ConditionType] = None
    is_urgent: Optional[bool] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    contact_method: Optional[list[str]] = None
    auto_repost: Optional[bool] = None

    @field_validator("region")
    @classmethod
    def known_region(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in REGION_CODES:
            raise ValueError(f"unknown region {value!r}")
        return value

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class FavoriteToggle(BaseModel):
    """Outcome of flipping one user's favorite membership on a listing."""

    listing_id: str
    is_favorited: bool
    favorites_count: int = Field(0, ge=0)
