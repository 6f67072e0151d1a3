"""
Data source interface shared by the fixture provider and the Supabase record store.

Both implementations return the same schema types, compute page boundaries
with the same helpers, and agree on filter semantics. Services hold exactly
one ``DataSource`` and never branch on which implementation it is.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from souq_data.schemas.auth import AuthSession, SignupData, UserProfile
from souq_data.schemas.categories import Category
from souq_data.schemas.listings import (
    FavoriteToggle,
    Listing,
    ListingFilters,
    ListingImage,
    ListingPage,
)


def compute_has_more(page: int, page_size: int, total: int) -> bool:
    """True iff at least one listing lies beyond the requested page."""
    return page * page_size < total


def page_range(page: int, page_size: int) -> tuple[int, int]:
    """
    Zero-based, end-exclusive slice bounds for a 1-based page.

    Args:
        page: 1-based page number
        page_size: Listings per page

    Returns:
        tuple[int, int]: (start, stop) offsets
    """
    start = (page - 1) * page_size
    return start, start + page_size


def matches_filters(listing: Listing, filters: ListingFilters) -> bool:
    """
    Reference filter semantics, mirrored by the record store's query builder.

    - only active listings are visible
    - category, city, region, currency, condition, ad type and owner match exactly
    - price bounds are inclusive and exclude listings without a price
    - featured/urgent constrain only when set to True
    - search is a case-insensitive substring of the title or the description
    """
    if listing.status != "active":
        return False
    if filters.category and listing.category_id != filters.category:
        return False
    if filters.city and listing.city != filters.city:
        return False
    if filters.region and listing.region != filters.region:
        return False
    if filters.currency and listing.currency != filters.currency:
        return False
    if filters.condition and listing.condition_type != filters.condition:
        return False
    if filters.ad_type and listing.ad_type != filters.ad_type:
        return False
    if filters.user_id and listing.user_id != filters.user_id:
        return False
    if filters.is_featured and not listing.is_featured:
        return False
    if filters.is_urgent and not listing.is_urgent:
        return False

    if filters.min_price is not None or filters.max_price is not None:
        if listing.price is None:
            return False
        if filters.min_price is not None and listing.price < filters.min_price:
            return False
        if filters.max_price is not None and listing.price > filters.max_price:
            return False

    if filters.search:
        term = filters.search.casefold()
        title = listing.title.casefold()
        description = (listing.description or "").casefold()
        if term not in title and term not in description:
            return False

    return True


def newest_first(listings: Iterable[Listing]) -> list[Listing]:
    """Order by creation time descending, ties broken by id descending."""
    return sorted(listings, key=lambda item: (item.created_at, item.id), reverse=True)


class DataSource(ABC):
    """
    Everything the services need from a backing store.

    Implementations raise ``BackendError`` for failures of the store itself
    and return None for missing single entities. Authorization (session and
    ownership checks) is the services' job, not the source's.
    """

    name: str = "source"

    # Listings

    @abstractmethod
    async def list_listings(
        self, filters: ListingFilters, page: int, page_size: int
    ) -> ListingPage: ...

    @abstractmethod
    async def get_listing(
        self, listing_id: str, viewer_id: Optional[str] = None
    ) -> Optional[Listing]: ...

    @abstractmethod
    async def insert_listing(self, owner_id: str, data: dict[str, Any]) -> Listing: ...

    @abstractmethod
    async def update_listing(self, listing_id: str, patch: dict[str, Any]) -> Optional[Listing]: ...

    @abstractmethod
    async def delete_listing(self, listing_id: str) -> None: ...

    @abstractmethod
    async def get_listing_owner(self, listing_id: str) -> Optional[str]:
        """Owner id of any listing regardless of status, or None if it does not exist."""

    @abstractmethod
    async def get_listing_record(self, listing_id: str) -> Optional[Listing]:
        """
        Stored listing with its images regardless of status, or None.

        Unlike ``get_listing`` this counts no view and joins nothing that
        depends on the viewer.
        """

    # Favorites

    @abstractmethod
    async def toggle_favorite(self, user_id: str, listing_id: str) -> FavoriteToggle: ...

    # Media

    @abstractmethod
    async def upload_image(self, path: str, content: bytes, content_type: str) -> str: ...

    @abstractmethod
    async def add_listing_image(
        self,
        listing_id: str,
        image_url: str,
        sort_order: int,
        is_primary: bool,
        alt_text: Optional[str] = None,
    ) -> ListingImage: ...

    # Categories

    @abstractmethod
    async def list_categories(self) -> list[Category]: ...

    # Auth

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    @abstractmethod
    async def sign_up(self, data: SignupData) -> UserProfile: ...

    @abstractmethod
    async def sign_out(self) -> None: ...

    @abstractmethod
    async def current_user(self) -> Optional[UserProfile]: ...

    @abstractmethod
    async def update_profile(self, user_id: str, updates: dict[str, Any]) -> UserProfile: ...

    @abstractmethod
    async def reset_password(self, email: str) -> None: ...

    async def current_user_id(self) -> Optional[str]:
        user = await self.current_user()
        return user.id if user else None

    async def close(self) -> None:
        """Release any transport resources. No-op by default."""
        return None
