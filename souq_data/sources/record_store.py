"""
Supabase-backed data source used in real mode.

Listings, categories, favorites and images go through PostgREST; sessions
through GoTrue; image bytes through Storage. ``requests`` is blocking, so
every public coroutine runs its work in a worker thread.
"""

from __future__ import annotations

import asyncio
import re
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from souq_data.config import DEFAULT_STORAGE_BUCKET, Settings
from souq_data.errors import MSG_LISTING_NOT_FOUND, BackendError, InvalidCredentialsError
from souq_data.network import auth as gotrue
from souq_data.network.auth import SessionStore
from souq_data.network.client import SupabaseClient
from souq_data.normalizers.listings import (
    normalize_category_row,
    normalize_listing_row,
    normalize_listing_rows,
)
from souq_data.normalizers.users import normalize_user
from souq_data.schemas.auth import AuthSession, SignupData, UserProfile
from souq_data.schemas.categories import Category
from souq_data.schemas.listings import (
    FavoriteToggle,
    Listing,
    ListingFilters,
    ListingImage,
    ListingPage,
)
from souq_data.sources.base import DataSource, compute_has_more, page_range
from souq_data.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

LISTING_IMAGES_SELECT = (
    "ad_images(id,image_url,thumbnail_url,alt_text,sort_order,is_primary,created_at)"
)

LISTING_SELECT = (
    "*,"
    "categories!inner(id,name,name_en,name_he,slug,icon,color,parent_id),"
    "profiles!inner(id,first_name,last_name,avatar_url,is_business_verified),"
    + LISTING_IMAGES_SELECT
)

# characters with meaning inside a PostgREST or=(...) expression
_RESERVED = set(',()"\\:')

# LIKE wildcards and the LIKE escape character
_LIKE_SPECIAL = re.compile(r"([\\%_])")

# status codes GoTrue uses for rejected credentials
_BAD_CREDENTIAL_STATUSES = (400, 401)


def ilike_pattern(term: str) -> str:
    """
    Wrap a search term as a PostgREST ``ilike`` pattern, quoting if needed.

    ``%``, ``_`` and ``\\`` in the term match literally.
    """
    term = _LIKE_SPECIAL.sub(r"\\\1", term)
    pattern = f"*{term}*"
    if any(ch in _RESERVED for ch in term):
        escaped = pattern.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return pattern


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_listing_params(filters: ListingFilters, page: int, page_size: int) -> Dict[str, Any]:
    """
    Translate filters and a page into PostgREST query parameters.

    Mirrors ``sources.base.matches_filters``: active listings only, exact
    matches, inclusive price bounds (which exclude NULL prices), flags only
    when True, and a case-insensitive title/description substring search.

    Args:
        filters: Listing filters
        page: 1-based page number
        page_size: Listings per page

    Returns:
        Dict[str, Any]: Query parameters; list values are sent as repeated keys
    """
    start, stop = page_range(page, page_size)
    params: Dict[str, Any] = {
        "select": LISTING_SELECT,
        "status": "eq.active",
    }

    exact = {
        "category_id": filters.category,
        "city": filters.city,
        "region": filters.region,
        "currency": filters.currency,
        "condition_type": filters.condition,
        "ad_type": filters.ad_type,
        "user_id": filters.user_id,
    }
    for column, value in exact.items():
        if value is not None:
            params[column] = f"eq.{value}"

    price: List[str] = []
    if filters.min_price is not None:
        price.append(f"gte.{_number(filters.min_price)}")
    if filters.max_price is not None:
        price.append(f"lte.{_number(filters.max_price)}")
    if price:
        params["price"] = price

    if filters.is_featured:
        params["is_featured"] = "eq.true"
    if filters.is_urgent:
        params["is_urgent"] = "eq.true"

    if filters.search:
        pattern = ilike_pattern(filters.search)
        params["or"] = f"(title.ilike.{pattern},description.ilike.{pattern})"

    params["order"] = "created_at.desc,id.desc"
    params["offset"] = start
    params["limit"] = stop - start
    return params


def _jsonable(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v.isoformat() if isinstance(v, datetime) else v for k, v in data.items()}


class SupabaseRecordStore(DataSource):
    """
    Real-mode data source talking to one Supabase project.

    Attributes:
        client: HTTP client for the project
        bucket: Storage bucket for listing images
        session: Current GoTrue session
    """

    name = "supabase"

    def __init__(
        self,
        client: SupabaseClient,
        bucket: str = DEFAULT_STORAGE_BUCKET,
        session: Optional[SessionStore] = None,
    ):
        self.client = client
        self.bucket = bucket
        self.session = session or SessionStore()
        self._user: Optional[UserProfile] = None
        self._refresh_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseRecordStore":
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise ValueError("Supabase URL and anon key are required in real mode")
        client = SupabaseClient(
            settings.supabase_url, settings.supabase_anon_key, timeout=settings.request_timeout
        )
        return cls(client, bucket=settings.storage_bucket)

    def _token(self) -> Optional[str]:
        """Current access token, refreshed first if it has expired."""
        if self._needs_refresh():
            # refresh tokens are single-use; one worker thread spends it
            with self._refresh_lock:
                if self._needs_refresh():
                    self.session.store(
                        gotrue.refresh_session(self.client, self.session.refresh_token)
                    )
        return self.session.access_token

    def _needs_refresh(self) -> bool:
        return bool(
            self.session.active and self.session.is_expired() and self.session.refresh_token
        )

    def _viewer_id(self) -> Optional[str]:
        return self._user.id if self._user and self.session.active else None

    def _favorite_ids(self, user_id: str, listing_ids: List[str]) -> set[str]:
        if not listing_ids:
            return set()
        rows, _ = self.client.select(
            "favorites",
            {
                "select": "ad_id",
                "user_id": f"eq.{user_id}",
                "ad_id": f"in.({','.join(listing_ids)})",
            },
            token=self._token(),
        )
        return {str(row["ad_id"]) for row in rows}

    def _mark_favorites(self, listings: List[Listing], viewer_id: Optional[str]) -> List[Listing]:
        if not viewer_id:
            return listings
        favorites = self._favorite_ids(viewer_id, [listing.id for listing in listings])
        return [
            listing.model_copy(update={"is_favorited": listing.id in favorites})
            for listing in listings
        ]

    # Listings

    def _list_listings(self, filters: ListingFilters, page: int, page_size: int) -> ListingPage:
        params = build_listing_params(filters, page, page_size)
        logger.debug("record_store_list_listings", page=page, page_size=page_size)

        try:
            rows, total = self.client.select("ads", params, token=self._token(), count=True)
        except BackendError as err:
            if err.status_code != 416:
                raise
            # offset past the end: PostgREST refuses the range, ask for the count alone
            rows, total = self.client.select(
                "ads", {**params, "offset": 0, "limit": 0}, token=self._token(), count=True
            )

        listings = self._mark_favorites(normalize_listing_rows(rows), self._viewer_id())
        total = total if total is not None else len(listings)
        return ListingPage(
            listings=listings,
            total=total,
            page=page,
            page_size=page_size,
            has_more=compute_has_more(page, page_size, total),
        )

    async def list_listings(
        self, filters: ListingFilters, page: int, page_size: int
    ) -> ListingPage:
        return await asyncio.to_thread(self._list_listings, filters, page, page_size)

    def _get_listing(self, listing_id: str, viewer_id: Optional[str]) -> Optional[Listing]:
        rows, _ = self.client.select(
            "ads",
            {
                "select": LISTING_SELECT,
                "id": f"eq.{listing_id}",
                "status": "eq.active",
                "limit": 1,
            },
            token=self._token(),
        )
        if not rows:
            return None
        return self._mark_favorites([normalize_listing_row(rows[0])], viewer_id)[0]

    async def get_listing(
        self, listing_id: str, viewer_id: Optional[str] = None
    ) -> Optional[Listing]:
        return await asyncio.to_thread(self._get_listing, listing_id, viewer_id)

    def _insert_listing(self, owner_id: str, data: Dict[str, Any]) -> Listing:
        rows = self.client.request_json(
            "POST",
            "rest",
            "ads",
            params={"select": LISTING_SELECT},
            json=_jsonable({**data, "user_id": owner_id}),
            headers={"Prefer": "return=representation"},
            token=self._token(),
        )
        if not rows:
            raise BackendError("لم يتم إرجاع الإعلان بعد الإنشاء", status_code=500)
        listing = normalize_listing_row(rows[0])
        logger.info("record_store_listing_created", listing_id=listing.id, owner_id=owner_id)
        return listing

    async def insert_listing(self, owner_id: str, data: Dict[str, Any]) -> Listing:
        return await asyncio.to_thread(self._insert_listing, owner_id, data)

    def _update_listing(self, listing_id: str, patch: Dict[str, Any]) -> Optional[Listing]:
        rows = self.client.request_json(
            "PATCH",
            "rest",
            "ads",
            params={"id": f"eq.{listing_id}", "select": LISTING_SELECT},
            json=_jsonable({**patch, "updated_at": utc_now()}),
            headers={"Prefer": "return=representation"},
            token=self._token(),
        )
        if not rows:
            return None
        return self._mark_favorites([normalize_listing_row(rows[0])], self._viewer_id())[0]

    async def update_listing(self, listing_id: str, patch: Dict[str, Any]) -> Optional[Listing]:
        return await asyncio.to_thread(self._update_listing, listing_id, patch)

    def _delete_listing(self, listing_id: str) -> None:
        self.client.request(
            "DELETE", "rest", "ads", params={"id": f"eq.{listing_id}"}, token=self._token()
        )

    async def delete_listing(self, listing_id: str) -> None:
        await asyncio.to_thread(self._delete_listing, listing_id)

    def _get_listing_owner(self, listing_id: str) -> Optional[str]:
        rows, _ = self.client.select(
            "ads",
            {"select": "user_id", "id": f"eq.{listing_id}", "limit": 1},
            token=self._token(),
        )
        return str(rows[0]["user_id"]) if rows else None

    async def get_listing_owner(self, listing_id: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_listing_owner, listing_id)

    def _get_listing_record(self, listing_id: str) -> Optional[Listing]:
        rows, _ = self.client.select(
            "ads",
            {"select": f"*,{LISTING_IMAGES_SELECT}", "id": f"eq.{listing_id}", "limit": 1},
            token=self._token(),
        )
        return normalize_listing_row(rows[0]) if rows else None

    async def get_listing_record(self, listing_id: str) -> Optional[Listing]:
        return await asyncio.to_thread(self._get_listing_record, listing_id)

    # Favorites

    def _is_favorite(self, user_id: str, listing_id: str) -> bool:
        return listing_id in self._favorite_ids(user_id, [listing_id])

    def _favorites_count(self, listing_id: str) -> int:
        rows, _ = self.client.select(
            "ads",
            {"select": "favorites_count", "id": f"eq.{listing_id}", "limit": 1},
            token=self._token(),
        )
        if not rows:
            raise BackendError(MSG_LISTING_NOT_FOUND, status_code=404)
        return max(int(rows[0].get("favorites_count") or 0), 0)

    def _toggle_favorite(self, user_id: str, listing_id: str) -> FavoriteToggle:
        # fails with 404 before any membership change if the ad is gone
        self._favorites_count(listing_id)
        token = self._token()

        if self._is_favorite(user_id, listing_id):
            self.client.request(
                "DELETE",
                "rest",
                "favorites",
                params={"user_id": f"eq.{user_id}", "ad_id": f"eq.{listing_id}"},
                token=token,
            )
            favorited = False
        else:
            self.client.request(
                "POST",
                "rest",
                "favorites",
                json={"user_id": user_id, "ad_id": listing_id},
                token=token,
            )
            favorited = True

        # favorites_count is maintained by a trigger on the favorites table
        count = self._favorites_count(listing_id)
        logger.info(
            "record_store_favorite_toggled",
            listing_id=listing_id,
            favorited=favorited,
            favorites_count=count,
        )
        return FavoriteToggle(listing_id=listing_id, is_favorited=favorited, favorites_count=count)

    async def toggle_favorite(self, user_id: str, listing_id: str) -> FavoriteToggle:
        return await asyncio.to_thread(self._toggle_favorite, user_id, listing_id)

    # Media

    def public_url(self, path: str) -> str:
        return self.client.url("storage", f"object/public/{self.bucket}/{path}")

    def _upload_image(self, path: str, content: bytes, content_type: str) -> str:
        self.client.request(
            "POST",
            "storage",
            f"object/{self.bucket}/{path}",
            data=content,
            headers={"Content-Type": content_type, "x-upsert": "false"},
            token=self._token(),
        )
        return self.public_url(path)

    async def upload_image(self, path: str, content: bytes, content_type: str) -> str:
        return await asyncio.to_thread(self._upload_image, path, content, content_type)

    def _add_listing_image(
        self,
        listing_id: str,
        image_url: str,
        sort_order: int,
        is_primary: bool,
        alt_text: Optional[str],
    ) -> ListingImage:
        token = self._token()
        if is_primary:
            self.client.request(
                "PATCH",
                "rest",
                "ad_images",
                params={"ad_id": f"eq.{listing_id}", "is_primary": "eq.true"},
                json={"is_primary": False},
                token=token,
            )

        rows = self.client.request_json(
            "POST",
            "rest",
            "ad_images",
            json={
                "ad_id": listing_id,
                "image_url": image_url,
                "alt_text": alt_text,
                "sort_order": sort_order,
                "is_primary": is_primary,
            },
            headers={"Prefer": "return=representation"},
            token=token,
        )
        if not rows:
            raise BackendError("لم يتم حفظ الصورة", status_code=500)
        return ListingImage.model_validate(rows[0])

    async def add_listing_image(
        self,
        listing_id: str,
        image_url: str,
        sort_order: int,
        is_primary: bool,
        alt_text: Optional[str] = None,
    ) -> ListingImage:
        return await asyncio.to_thread(
            self._add_listing_image, listing_id, image_url, sort_order, is_primary, alt_text
        )

    # Categories

    def _list_categories(self) -> List[Category]:
        rows, _ = self.client.select(
            "categories",
            {"select": "*", "is_active": "eq.true", "order": "sort_order.asc"},
        )
        return [normalize_category_row(row) for row in rows]

    async def list_categories(self) -> List[Category]:
        return await asyncio.to_thread(self._list_categories)

    # Auth

    def _load_profile(self, user_payload: Dict[str, Any]) -> UserProfile:
        rows, _ = self.client.select(
            "profiles",
            {"select": "*", "id": f"eq.{user_payload['id']}", "limit": 1},
            token=self.session.access_token,
        )
        return normalize_user(user_payload, rows[0] if rows else None)

    def _sign_in(self, email: str, password: str) -> AuthSession:
        try:
            payload = gotrue.sign_in_with_password(self.client, email, password)
        except BackendError as err:
            if err.status_code in _BAD_CREDENTIAL_STATUSES:
                raise InvalidCredentialsError(err.message) from err
            raise

        self.session.store(payload)
        self._user = self._load_profile(payload["user"])
        return AuthSession(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=self.session.expires_at,
            user=self._user,
        )

    async def sign_in(self, email: str, password: str) -> AuthSession:
        return await asyncio.to_thread(self._sign_in, email, password)

    def _sign_up(self, data: SignupData) -> UserProfile:
        metadata = {
            "first_name": data.first_name.strip(),
            "last_name": data.last_name.strip(),
            "phone": data.phone.strip() if data.phone else None,
            "marketing_emails": data.receive_newsletter,
        }
        payload = gotrue.sign_up(self.client, data.email.strip().lower(), data.password, metadata)
        # with email confirmation disabled GoTrue answers with a session wrapping the user
        user_payload = payload.get("user") or payload
        return normalize_user(user_payload)

    async def sign_up(self, data: SignupData) -> UserProfile:
        return await asyncio.to_thread(self._sign_up, data)

    def _sign_out(self) -> None:
        token = self.session.access_token
        try:
            if token:
                gotrue.sign_out(self.client, token)
        finally:
            self.session.clear()
            self._user = None

    async def sign_out(self) -> None:
        await asyncio.to_thread(self._sign_out)

    def _current_user(self) -> Optional[UserProfile]:
        if not self.session.active:
            return None
        if self._user is None or self.session.is_expired():
            token = self._token()
            if token is None:
                return None
            self._user = self._load_profile(gotrue.get_user(self.client, token))
        return self._user

    async def current_user(self) -> Optional[UserProfile]:
        return await asyncio.to_thread(self._current_user)

    def _update_profile(self, user_id: str, updates: Dict[str, Any]) -> UserProfile:
        rows = self.client.request_json(
            "PATCH",
            "rest",
            "profiles",
            params={"id": f"eq.{user_id}"},
            json=_jsonable({**updates, "updated_at": utc_now()}),
            headers={"Prefer": "return=representation"},
            token=self._token(),
        )
        if not rows:
            raise BackendError("المستخدم غير موجود", status_code=404)

        user_payload = self.session.user if self.session.user else {"id": user_id}
        profile = normalize_user(user_payload, rows[0])
        if self._user is not None and self._user.id == user_id:
            self._user = profile
        return profile

    async def update_profile(self, user_id: str, updates: Dict[str, Any]) -> UserProfile:
        return await asyncio.to_thread(self._update_profile, user_id, updates)

    def _reset_password(self, email: str) -> None:
        gotrue.recover_password(self.client, email.strip().lower())

    async def reset_password(self, email: str) -> None:
        await asyncio.to_thread(self._reset_password, email)
