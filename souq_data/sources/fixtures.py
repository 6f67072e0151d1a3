"""
In-memory fixture provider used in mock mode.

Serves the sample dataset (or an injected one) with the same filter,
ordering and pagination rules as the record store, after a simulated
network delay so that loading states behave as they do against Supabase.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any, Iterable, Optional, Union

import structlog

from souq_data.config import DEFAULT_MOCK_LATENCY_MS, DEFAULT_STORAGE_BUCKET
from souq_data.errors import (
    MSG_LISTING_NOT_FOUND,
    BackendError,
    InvalidCredentialsError,
    localize_auth_error,
)
from souq_data.schemas.auth import AuthSession, SignupData, UserProfile
from souq_data.schemas.categories import Category
from souq_data.schemas.listings import (
    FavoriteToggle,
    Listing,
    ListingFilters,
    ListingImage,
    ListingPage,
    OwnerSummary,
)
from souq_data.sources.base import (
    DataSource,
    compute_has_more,
    matches_filters,
    newest_first,
    page_range,
)
from souq_data.sources.fixture_data import MOCK_LOGIN_EMAILS, default_dataset
from souq_data.utils.datetime import epoch_millis, utc_now
from souq_data.validation import MIN_PASSWORD_LENGTH

logger = structlog.get_logger(__name__)

Record = Union[dict[str, Any], Any]


class FixtureProvider(DataSource):
    """
    Mock-mode data source backed by plain Python collections.

    Attributes:
        latency_ms: Simulated delay applied to every backend-like call
        bucket: Storage bucket name used in fake upload URLs
        uploads: Uploaded image bytes keyed by storage path

    Example:
        >>> provider = FixtureProvider(latency_ms=0)
        >>> page = await provider.list_listings(ListingFilters(search="iphone"), 1, 20)
    """

    name = "fixtures"

    def __init__(
        self,
        listings: Optional[Iterable[Record]] = None,
        categories: Optional[Iterable[Record]] = None,
        users: Optional[Iterable[Record]] = None,
        latency_ms: int = DEFAULT_MOCK_LATENCY_MS,
        login_emails: Iterable[str] = MOCK_LOGIN_EMAILS,
        bucket: str = DEFAULT_STORAGE_BUCKET,
    ):
        dataset = default_dataset()

        self.latency_ms = latency_ms
        self.bucket = bucket
        self.uploads: dict[str, bytes] = {}

        self._listings: dict[str, Listing] = {}
        for record in listings if listings is not None else dataset["listings"]:
            listing = Listing.model_validate(record)
            self._listings[listing.id] = listing

        self._categories: list[Category] = [
            Category.model_validate(record)
            for record in (categories if categories is not None else dataset["categories"])
        ]

        self._owners: dict[str, OwnerSummary] = {}
        for record in users if users is not None else dataset["users"]:
            owner = OwnerSummary.model_validate(record)
            if owner.id:
                self._owners[owner.id] = owner

        self._favorites: set[tuple[str, str]] = set()
        self._accounts: dict[str, UserProfile] = {}
        self._login_emails = {email.strip().lower() for email in login_emails}
        self._session: Optional[AuthSession] = None
        self._sequence = 0

    async def _delay(self) -> None:
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

    def _mint_id(self, prefix: str) -> str:
        self._sequence += 1
        return f"{prefix}{epoch_millis()}_{self._sequence}"

    def _present(self, listing: Listing, viewer_id: Optional[str]) -> Listing:
        """Join category, owner and the viewer's favorite flag onto a copy."""
        category = next((c for c in self._categories if c.id == listing.category_id), None)
        return listing.model_copy(
            update={
                "category": category.as_ref() if category else None,
                "user": self._owners.get(listing.user_id),
                "is_favorited": bool(viewer_id) and (viewer_id, listing.id) in self._favorites,
            },
            deep=True,
        )

    def _viewer_id(self) -> Optional[str]:
        return self._session.user.id if self._session else None

    # Listings

    async def list_listings(
        self, filters: ListingFilters, page: int, page_size: int
    ) -> ListingPage:
        logger.debug(
            "fixture_list_listings", filters=filters.model_dump(exclude_none=True), page=page
        )
        await self._delay()

        matched = newest_first(
            listing for listing in self._listings.values() if matches_filters(listing, filters)
        )
        start, stop = page_range(page, page_size)
        viewer_id = self._viewer_id()
        total = len(matched)

        return ListingPage(
            listings=[self._present(listing, viewer_id) for listing in matched[start:stop]],
            total=total,
            page=page,
            page_size=page_size,
            has_more=compute_has_more(page, page_size, total),
        )

    async def get_listing(
        self, listing_id: str, viewer_id: Optional[str] = None
    ) -> Optional[Listing]:
        await self._delay()

        listing = self._listings.get(listing_id)
        if listing is None or listing.status != "active":
            return None

        if viewer_id != listing.user_id:
            listing = listing.model_copy(update={"views_count": listing.views_count + 1})
            self._listings[listing_id] = listing

        return self._present(listing, viewer_id)

    async def insert_listing(self, owner_id: str, data: dict[str, Any]) -> Listing:
        await self._delay()

        now = utc_now()
        listing = Listing.model_validate(
            {
                **data,
                "id": self._mint_id("mock_"),
                "user_id": owner_id,
                "created_at": now,
                "updated_at": now,
                "images": [],
            }
        )
        self._listings[listing.id] = listing

        if owner_id not in self._owners:
            profile = self._session.user if self._session else None
            self._owners[owner_id] = OwnerSummary(
                id=owner_id,
                first_name=profile.first_name if profile else "مستخدم",
                last_name=profile.last_name if profile else "جديد",
            )

        logger.info("fixture_listing_created", listing_id=listing.id, owner_id=owner_id)
        return self._present(listing, owner_id)

    async def update_listing(self, listing_id: str, patch: dict[str, Any]) -> Optional[Listing]:
        await self._delay()

        current = self._listings.get(listing_id)
        if current is None:
            return None

        merged = Listing.model_validate(
            {
                **current.model_dump(exclude={"category", "user", "is_favorited"}),
                **patch,
                "updated_at": utc_now(),
            }
        )
        self._listings[listing_id] = merged
        return self._present(merged, self._viewer_id())

    async def delete_listing(self, listing_id: str) -> None:
        await self._delay()

        self._listings.pop(listing_id, None)
        self._favorites = {fav for fav in self._favorites if fav[1] != listing_id}

    async def get_listing_owner(self, listing_id: str) -> Optional[str]:
        await self._delay()
        listing = self._listings.get(listing_id)
        return listing.user_id if listing else None

    async def get_listing_record(self, listing_id: str) -> Optional[Listing]:
        await self._delay()
        listing = self._listings.get(listing_id)
        return listing.model_copy(deep=True) if listing else None

    # Favorites

    async def toggle_favorite(self, user_id: str, listing_id: str) -> FavoriteToggle:
        await self._delay()

        listing = self._listings.get(listing_id)
        if listing is None:
            raise BackendError(MSG_LISTING_NOT_FOUND, status_code=404)

        key = (user_id, listing_id)
        if key in self._favorites:
            self._favorites.discard(key)
            count = max(listing.favorites_count - 1, 0)
            favorited = False
        else:
            self._favorites.add(key)
            count = listing.favorites_count + 1
            favorited = True

        self._listings[listing_id] = listing.model_copy(update={"favorites_count": count})
        return FavoriteToggle(listing_id=listing_id, is_favorited=favorited, favorites_count=count)

    # Media

    async def upload_image(self, path: str, content: bytes, content_type: str) -> str:
        await self._delay()
        self.uploads[path] = content
        return f"mock://{self.bucket}/{path}"

    async def add_listing_image(
        self,
        listing_id: str,
        image_url: str,
        sort_order: int,
        is_primary: bool,
        alt_text: Optional[str] = None,
    ) -> ListingImage:
        await self._delay()

        listing = self._listings.get(listing_id)
        if listing is None:
            raise BackendError(MSG_LISTING_NOT_FOUND, status_code=404)

        image = ListingImage(
            id=self._mint_id(f"img-{listing_id}-"),
            ad_id=listing_id,
            image_url=image_url,
            alt_text=alt_text,
            sort_order=sort_order,
            is_primary=is_primary,
            created_at=utc_now(),
        )
        existing = [
            img.model_copy(update={"is_primary": False}) if is_primary else img
            for img in listing.images
        ]
        self._listings[listing_id] = Listing.model_validate(
            {
                **listing.model_dump(),
                "images": [*[img.model_dump() for img in existing], image.model_dump()],
            }
        )
        return image

    # Categories

    async def list_categories(self) -> list[Category]:
        await self._delay()
        return [c.model_copy() for c in self._categories if c.is_active]

    # Auth

    async def sign_in(self, email: str, password: str) -> AuthSession:
        await self._delay()

        email = email.strip().lower()
        known = email in self._login_emails or email in self._accounts
        if not known or len(password) < MIN_PASSWORD_LENGTH:
            logger.info("fixture_sign_in_rejected", email=email)
            raise InvalidCredentialsError()

        user = self._accounts.get(email)
        if user is None:
            now = utc_now()
            user = UserProfile(
                id=f"mock-user-{epoch_millis()}",
                email=email,
                first_name="مستخدم",
                last_name="تجريبي",
                phone="+970123456789",
                email_verified=True,
                phone_verified=True,
                marketing_emails=True,
                created_at=now,
                updated_at=now,
            )
            self._accounts[email] = user

        self._session = AuthSession(
            access_token=f"mock-token-{epoch_millis()}",
            refresh_token=f"mock-refresh-{epoch_millis()}",
            expires_at=utc_now() + timedelta(hours=1),
            user=user,
        )
        return self._session

    async def sign_up(self, data: SignupData) -> UserProfile:
        await self._delay()

        email = data.email.strip().lower()
        if email in self._accounts or email in self._login_emails:
            raise BackendError(
                localize_auth_error("User already registered"),
                status_code=422,
                detail="User already registered",
            )

        now = utc_now()
        user = UserProfile(
            id=self._mint_id("mock-user-"),
            email=email,
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            phone=data.phone.strip() if data.phone else None,
            sms_notifications=bool(data.phone),
            marketing_emails=data.receive_newsletter,
            created_at=now,
            updated_at=now,
        )
        self._accounts[email] = user
        return user

    async def sign_out(self) -> None:
        self._session = None

    async def current_user(self) -> Optional[UserProfile]:
        return self._session.user if self._session else None

    async def update_profile(self, user_id: str, updates: dict[str, Any]) -> UserProfile:
        await self._delay()

        current = next((u for u in self._accounts.values() if u.id == user_id), None)
        if current is None:
            raise BackendError("المستخدم غير موجود", status_code=404)

        updated = UserProfile.model_validate(
            {**current.model_dump(), **updates, "updated_at": utc_now()}
        )
        self._accounts[updated.email] = updated
        if self._session and self._session.user.id == user_id:
            self._session = self._session.model_copy(update={"user": updated})
        return updated

    async def reset_password(self, email: str) -> None:
        await self._delay()
        logger.info("fixture_password_reset_requested", email=email.strip().lower())
