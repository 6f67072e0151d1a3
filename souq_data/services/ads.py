"""
Ads service: listing queries and owner mutations on top of one data source.

Holds the state a listings view renders (current listings, totals, loading,
last error). Operations never raise to the caller; failures come back as an
empty page, None or False, with ``error`` set to a localized message.
"""

from __future__ import annotations

import re
from typing import Any, Literal, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from souq_data.config import Settings
from souq_data.constants import (
    AD_EXPIRY_DAYS,
    ALLOWED_IMAGE_TYPES,
    MAX_IMAGE_SIZE,
    MAX_IMAGES_PER_AD,
    PRICELESS_TYPES,
)
from souq_data.errors import (
    MSG_CREATE_LISTING,
    MSG_DELETE_LISTING,
    MSG_FETCH_LISTING,
    MSG_FETCH_LISTINGS,
    MSG_LISTING_NOT_FOUND,
    MSG_TOGGLE_FAVORITE,
    MSG_UPDATE_LISTING,
    MSG_UPLOAD_IMAGE,
    AuthenticationRequiredError,
    ListingValidationError,
    OwnershipError,
    SouqError,
)
from souq_data.metrics import stale_responses
from souq_data.schemas.listings import (
    Listing,
    ListingCreate,
    ListingFilters,
    ListingImage,
    ListingPage,
    ListingUpdate,
)
from souq_data.services._helpers import SourceBoundService
from souq_data.sources.base import DataSource
from souq_data.utils.datetime import days_from_now, epoch_millis
from souq_data.validation import LISTING_FIELD_MESSAGES, listing_field_errors

logger = structlog.get_logger(__name__)

FiltersInput = Union[ListingFilters, Mapping[str, Any], None]
Status = Literal["idle", "loading", "ready", "error"]

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


def parse_filters(filters: FiltersInput) -> ListingFilters:
    """Accept a ListingFilters, a plain mapping (snake or camel case) or None."""
    if filters is None:
        return ListingFilters()
    if isinstance(filters, ListingFilters):
        return filters
    try:
        return ListingFilters.model_validate(dict(filters))
    except ValidationError as err:
        raise ListingValidationError(listing_field_errors(err)) from err


class AdsService(SourceBoundService):
    """
    Listings state plus every listing operation.

    Attributes:
        listings: Listings currently held (replaced or extended by fetches)
        total: Total matches of the last applied fetch
        has_more: Whether a page exists beyond the last applied fetch
        page: Page number of the last applied fetch (0 before any)
        filters: Filters of the last applied fetch
        status: idle, loading, ready or error
    """

    def __init__(self, source: DataSource, settings: Optional[Settings] = None):
        super().__init__(source, settings)
        self.listings: list[Listing] = []
        self.total = 0
        self.has_more = False
        self.page = 0
        self.page_size = self.settings.page_size
        self.filters = ListingFilters()
        self.status: Status = "idle"
        self._generation = 0

    # Cache helpers

    def _replace_cached(self, listing: Listing) -> None:
        self.listings = [listing if item.id == listing.id else item for item in self.listings]

    def _drop_cached(self, listing_id: str) -> None:
        self.listings = [item for item in self.listings if item.id != listing_id]

    def _cached(self, listing_id: str) -> Optional[Listing]:
        return next((item for item in self.listings if item.id == listing_id), None)

    # Guards

    async def _require_user(self) -> str:
        user_id = await self._current_user_id()
        if not user_id:
            raise AuthenticationRequiredError()
        return user_id

    async def _owner_of(self, listing_id: str, user_id: str) -> Optional[str]:
        """
        Return the listing's owner, None if the listing does not exist.

        Raises:
            OwnershipError: If it exists and belongs to someone else
        """
        owner = await self._call("get_listing_owner", self.source.get_listing_owner, listing_id)
        if owner is not None and owner != user_id:
            raise OwnershipError()
        return owner

    # Queries

    async def fetch_listings(
        self,
        filters: FiltersInput = None,
        page: int = 1,
        page_size: Optional[int] = None,
        append: bool = False,
    ) -> ListingPage:
        """
        Fetch one page of active listings and apply it to the held state.

        A response is applied only if no newer fetch was started meanwhile;
        superseded responses are still returned to their own caller. On
        failure the held listings are kept and an empty page is returned.

        Args:
            filters: Filter predicates; absent keys impose no constraint
            page: 1-based page number
            page_size: Listings per page (default: settings.page_size)
            append: Extend the held listings instead of replacing them; ignored
                when the filters differ from those of the held listings

        Returns:
            ListingPage: The fetched page, or an empty one on failure
        """
        page_size = self.settings.page_size if page_size is None else page_size
        self._generation += 1
        generation = self._generation
        self.status = "loading"

        try:
            if page < 1 or page_size < 1:
                raise ListingValidationError(
                    {"page": "رقم الصفحة وحجمها يجب أن يكونا أكبر من صفر"}
                )
            query = parse_filters(filters)
            result = await self._call(
                "list_listings", self.source.list_listings, query, page, page_size
            )
        except SouqError as err:
            if generation == self._generation:
                self._fail(err, MSG_FETCH_LISTINGS)
                self.status = "error"
            else:
                stale_responses.labels(operation="fetch_listings").inc()
            return ListingPage.empty(page, page_size)

        if generation != self._generation:
            stale_responses.labels(operation="fetch_listings").inc()
            logger.info("stale_listings_discarded", page=page, generation=generation)
            return result

        if append and query == self.filters:
            known = {item.id for item in self.listings}
            self.listings = self.listings + [
                item for item in result.listings if item.id not in known
            ]
        else:
            self.listings = list(result.listings)
        self.total = result.total
        self.has_more = result.has_more
        self.page = result.page
        self.page_size = result.page_size
        self.filters = query
        self.status = "ready"
        self._succeed()
        logger.debug(
            "listings_fetched",
            source=self.source.name,
            page=page,
            count=len(result.listings),
            total=result.total,
        )
        return result

    async def load_more(self) -> ListingPage:
        """Append the next page of the held query (same filters and page size)."""
        return await self.fetch_listings(
            self.filters, page=self.page + 1, page_size=self.page_size, append=True
        )

    async def get_listing_by_id(self, listing_id: str) -> Optional[Listing]:
        """
        Fetch one active listing with its images, category and owner.

        Returns:
            Optional[Listing]: The listing, or None if it does not exist,
            is not active, or the fetch failed (``error`` tells which)
        """
        try:
            viewer_id = await self._current_user_id()
            listing = await self._call(
                "get_listing", self.source.get_listing, listing_id, viewer_id
            )
        except SouqError as err:
            self._fail(err, MSG_FETCH_LISTING)
            return None

        self._succeed()
        if listing is not None:
            self._replace_cached(listing)
        return listing

    async def get_featured_listings(self, limit: int = 10) -> ListingPage:
        return await self.fetch_listings(ListingFilters(is_featured=True), 1, limit)

    async def get_urgent_listings(self, limit: int = 10) -> ListingPage:
        return await self.fetch_listings(ListingFilters(is_urgent=True), 1, limit)

    async def search_listings(
        self,
        term: str,
        filters: FiltersInput = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> ListingPage:
        try:
            query = parse_filters(filters).merged(search=term.strip() or None)
        except SouqError as err:
            self._fail(err, MSG_FETCH_LISTINGS)
            return ListingPage.empty(page, page_size or self.settings.page_size)
        return await self.fetch_listings(query, page, page_size)

    async def get_user_listings(
        self,
        user_id: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> ListingPage:
        """Active listings of one owner; the signed-in user when ``user_id`` is None."""
        if user_id is None:
            try:
                user_id = await self._require_user()
            except SouqError as err:
                self._fail(err, MSG_FETCH_LISTINGS)
                return ListingPage.empty(page, page_size or self.settings.page_size)
        return await self.fetch_listings(ListingFilters(user_id=user_id), page, page_size)

    # Mutations

    async def create_listing(
        self, data: Union[ListingCreate, Mapping[str, Any]]
    ) -> Optional[Listing]:
        """
        Post a new ad for the signed-in user.

        The owner comes from the session; the ad starts active with zero
        counters and expires after 30 days. Nothing reaches the source
        unless the caller is signed in and the input is valid.

        Returns:
            Optional[Listing]: The created listing, or None on failure
        """
        try:
            user_id = await self._require_user()
            try:
                payload = (
                    data
                    if isinstance(data, ListingCreate)
                    else ListingCreate.model_validate(dict(data))
                )
            except ValidationError as err:
                raise ListingValidationError(listing_field_errors(err)) from err

            record = {
                **payload.model_dump(),
                "status": "active",
                "is_featured": False,
                "is_business_ad": False,
                "auto_repost": False,
                "views_count": 0,
                "favorites_count": 0,
                "messages_count": 0,
                "expires_at": days_from_now(AD_EXPIRY_DAYS),
            }
            listing = await self._call(
                "insert_listing", self.source.insert_listing, user_id, record
            )
        except SouqError as err:
            self._fail(err, MSG_CREATE_LISTING)
            return None

        self._succeed()
        logger.info("listing_created", listing_id=listing.id, user_id=user_id)
        return listing

    async def update_listing(
        self, listing_id: str, patch: Union[ListingUpdate, Mapping[str, Any]]
    ) -> Optional[Listing]:
        """
        Apply a partial edit to one of the signed-in user's listings.

        Owner, id, counters and timestamps cannot be changed. Switching to a
        free or contact price type clears the price; a fixed or negotiable
        listing must keep one.

        Returns:
            Optional[Listing]: The updated listing, or None on failure
        """
        try:
            user_id = await self._require_user()
            try:
                update = (
                    patch
                    if isinstance(patch, ListingUpdate)
                    else ListingUpdate.model_validate(dict(patch))
                )
            except ValidationError as err:
                raise ListingValidationError(listing_field_errors(err)) from err

            changes = update.changes()
            if not changes:
                raise ListingValidationError()
            if changes.get("price_type") in PRICELESS_TYPES:
                changes["price"] = None

            if await self._owner_of(listing_id, user_id) is None:
                self._not_found()
                return None
            await self._check_price_kept(listing_id, changes)

            listing = await self._call(
                "update_listing", self.source.update_listing, listing_id, changes
            )
        except SouqError as err:
            self._fail(err, MSG_UPDATE_LISTING)
            return None

        if listing is None:
            self._not_found()
            return None

        self._succeed()
        self._replace_cached(listing)
        logger.info("listing_updated", listing_id=listing_id, fields=sorted(changes))
        return listing

    async def _check_price_kept(self, listing_id: str, changes: dict[str, Any]) -> None:
        """
        Refuse a patch that would leave a fixed or negotiable listing without a price.

        Raises:
            ListingValidationError: If the patched listing would have no price
        """
        if "price" not in changes and "price_type" not in changes:
            return
        if changes.get("price_type") in PRICELESS_TYPES or changes.get("price") is not None:
            return

        current = await self._call(
            "get_listing_record", self.source.get_listing_record, listing_id
        )
        if current is None:
            return
        price_type = changes.get("price_type") or current.price_type
        price = changes["price"] if "price" in changes else current.price
        if price_type not in PRICELESS_TYPES and price is None:
            raise ListingValidationError({"price": LISTING_FIELD_MESSAGES["price"]})

    def _not_found(self) -> None:
        self.error = MSG_LISTING_NOT_FOUND
        self.failure = None

    async def delete_listing(self, listing_id: str) -> bool:
        """
        Delete one of the signed-in user's listings.

        Deleting a listing that no longer exists succeeds.

        Returns:
            bool: True if the listing is gone, False on failure
        """
        try:
            user_id = await self._require_user()
            if await self._owner_of(listing_id, user_id) is not None:
                await self._call("delete_listing", self.source.delete_listing, listing_id)
        except SouqError as err:
            self._fail(err, MSG_DELETE_LISTING)
            return False

        self._succeed()
        if self._cached(listing_id) is not None:
            self._drop_cached(listing_id)
            self.total = max(self.total - 1, 0)
        logger.info("listing_deleted", listing_id=listing_id, user_id=user_id)
        return True

    async def toggle_favorite(self, listing_id: str) -> Optional[bool]:
        """
        Flip the signed-in user's favorite on a listing.

        Returns:
            Optional[bool]: New membership (True = favorited), None on failure
        """
        try:
            user_id = await self._require_user()
            result = await self._call(
                "toggle_favorite", self.source.toggle_favorite, user_id, listing_id
            )
        except SouqError as err:
            self._fail(err, MSG_TOGGLE_FAVORITE)
            return None

        self._succeed()
        cached = self._cached(listing_id)
        if cached is not None:
            self._replace_cached(
                cached.model_copy(
                    update={
                        "is_favorited": result.is_favorited,
                        "favorites_count": result.favorites_count,
                    }
                )
            )
        return result.is_favorited

    async def add_image(
        self,
        listing_id: str,
        filename: str,
        content: bytes,
        content_type: str,
        is_primary: bool = False,
        alt_text: Optional[str] = None,
    ) -> Optional[ListingImage]:
        """
        Upload an image and attach it to one of the signed-in user's listings.

        Making it primary demotes the listing's current primary image.

        Returns:
            Optional[ListingImage]: The attached image, or None on failure
        """
        try:
            user_id = await self._require_user()
            if content_type not in ALLOWED_IMAGE_TYPES:
                raise ListingValidationError({"image": "نوع الصورة غير مدعوم (JPG, PNG, WEBP)"})
            if len(content) > MAX_IMAGE_SIZE:
                raise ListingValidationError({"image": "حجم الصورة يجب ألا يتجاوز 5 ميجابايت"})

            if await self._owner_of(listing_id, user_id) is None:
                self._not_found()
                return None

            listing = await self._call(
                "get_listing_record", self.source.get_listing_record, listing_id
            )
            existing = listing.images if listing else []
            if len(existing) >= MAX_IMAGES_PER_AD:
                raise ListingValidationError({"image": "لا يمكن إضافة أكثر من 10 صور للإعلان"})

            safe_name = _UNSAFE_FILENAME.sub("-", filename).strip("-") or "image"
            path = f"{user_id}/{listing_id}/{epoch_millis()}-{safe_name}"
            url = await self._call(
                "upload_image", self.source.upload_image, path, content, content_type
            )
            image = await self._call(
                "add_listing_image",
                self.source.add_listing_image,
                listing_id,
                url,
                len(existing),
                is_primary or not existing,
                alt_text,
            )
        except SouqError as err:
            self._fail(err, MSG_UPLOAD_IMAGE)
            return None

        self._succeed()
        cached = self._cached(listing_id)
        if cached is not None:
            images = [
                img.model_copy(update={"is_primary": False}) if image.is_primary else img
                for img in cached.images
            ]
            self._replace_cached(cached.model_copy(update={"images": [*images, image]}))
        logger.info("listing_image_added", listing_id=listing_id, primary=image.is_primary)
        return image
