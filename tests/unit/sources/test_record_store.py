"""
Unit tests for the Supabase record store with a mocked HTTP client.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any
from unittest.mock import Mock, patch

import pytest

from souq_data.errors import BackendError, InvalidCredentialsError
from souq_data.network.client import SupabaseClient
from souq_data.schemas.listings import Listing, ListingFilters
from souq_data.sources.base import matches_filters
from souq_data.sources.record_store import (
    LISTING_IMAGES_SELECT,
    LISTING_SELECT,
    SupabaseRecordStore,
    build_listing_params,
    ilike_pattern,
)
from souq_data.utils.datetime import days_from_now
from tests.factories import make_listing


def ad_row(ad_id: str = "a1", **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": ad_id,
        "user_id": "u1",
        "title": "آيفون 13",
        "description": "iPhone 13 128GB",
        "category_id": "3",
        "price": 2500,
        "currency": "ILS",
        "price_type": "negotiable",
        "city": "رام الله",
        "status": "active",
        "favorites_count": 4,
        "created_at": "2025-01-10T10:00:00+00:00",
        "updated_at": "2025-01-10T10:00:00+00:00",
        "categories": {"id": "3", "name": "إلكترونيات", "slug": "electronics", "icon": "📱"},
        "profiles": {"first_name": "سامي", "last_name": "يوسف", "is_business_verified": False},
        "ad_images": [],
    }
    row.update(overrides)
    return row


@pytest.fixture
def client() -> Mock:
    return Mock(spec=SupabaseClient)


@pytest.mark.unit
def test_build_listing_params_translates_every_filter() -> None:
    filters = ListingFilters(
        category="3",
        city="نابلس",
        minPrice=100,
        maxPrice=999.5,
        currency="USD",
        condition="used",
        adType="sell",
        isFeatured=True,
        isUrgent=False,
        userId="u1",
        search="iphone",
    )

    params = build_listing_params(filters, page=3, page_size=20)

    assert params["select"] == LISTING_SELECT
    assert params["status"] == "eq.active"
    assert params["category_id"] == "eq.3"
    assert params["city"] == "eq.نابلس"
    assert params["price"] == ["gte.100", "lte.999.5"]
    assert params["currency"] == "eq.USD"
    assert params["condition_type"] == "eq.used"
    assert params["ad_type"] == "eq.sell"
    assert params["is_featured"] == "eq.true"
    assert "is_urgent" not in params
    assert params["user_id"] == "eq.u1"
    assert params["or"] == "(title.ilike.*iphone*,description.ilike.*iphone*)"
    assert params["order"] == "created_at.desc,id.desc"
    assert params["offset"] == 40
    assert params["limit"] == 20


@pytest.mark.unit
def test_build_listing_params_without_filters_only_pins_status() -> None:
    params = build_listing_params(ListingFilters(), page=1, page_size=10)

    assert set(params) == {"select", "status", "order", "offset", "limit"}


@pytest.mark.unit
def test_ilike_pattern_quotes_reserved_characters() -> None:
    assert ilike_pattern("sofa") == "*sofa*"
    assert ilike_pattern("a,b") == '"*a,b*"'
    assert ilike_pattern('say "hi"') == '"*say \\"hi\\"*"'


@pytest.mark.unit
@pytest.mark.parametrize(
    "term,expected",
    [
        ("1_0", '"*1\\\\_0*"'),
        ("100%", '"*100\\\\%*"'),
        ("a\\b", '"*a\\\\\\\\b*"'),
    ],
)
def test_ilike_pattern_escapes_like_wildcards(term: str, expected: str) -> None:
    assert ilike_pattern(term) == expected


@pytest.mark.unit
def test_underscore_search_is_literal_in_both_sources() -> None:
    filters = ListingFilters(search="1_0")
    discount = Listing.model_validate(make_listing(title="خصم 100x"))
    kit = Listing.model_validate(make_listing(title="طقم 1_0"))

    assert matches_filters(discount, filters) is False
    assert matches_filters(kit, filters) is True
    params = build_listing_params(filters, page=1, page_size=20)
    assert params["or"] == '(title.ilike."*1\\\\_0*",description.ilike."*1\\\\_0*")'


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_listings_normalizes_rows_and_reads_total(client: Mock) -> None:
    client.select.return_value = ([ad_row("a1"), ad_row("a2")], 45)
    store = SupabaseRecordStore(client)

    page = await store.list_listings(ListingFilters(), 1, 20)

    assert [listing.id for listing in page.listings] == ["a1", "a2"]
    assert page.total == 45
    assert page.has_more is True
    assert page.listings[0].category is not None
    assert page.listings[0].category.slug == "electronics"
    assert page.listings[0].user is not None
    assert page.listings[0].user.id == "u1"
    _, kwargs = client.select.call_args
    assert kwargs["count"] is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_listings_past_the_end_falls_back_to_count(client: Mock) -> None:
    client.select.side_effect = [
        BackendError("range", status_code=416),
        ([], 45),
    ]
    store = SupabaseRecordStore(client)

    page = await store.list_listings(ListingFilters(), 4, 20)

    assert page.listings == []
    assert page.total == 45
    assert page.has_more is False
    retry_params = client.select.call_args_list[1][0][1]
    assert retry_params["limit"] == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_listings_propagates_other_backend_errors(client: Mock) -> None:
    client.select.side_effect = BackendError("boom", status_code=500)
    store = SupabaseRecordStore(client)

    with pytest.raises(BackendError):
        await store.list_listings(ListingFilters(), 1, 20)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_listing_returns_none_when_no_row(client: Mock) -> None:
    client.select.return_value = ([], None)
    store = SupabaseRecordStore(client)

    assert await store.get_listing("missing") is None
    params = client.select.call_args[0][1]
    assert params["id"] == "eq.missing"
    assert params["status"] == "eq.active"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_listing_record_reads_any_status_with_images(client: Mock) -> None:
    row = ad_row("a1", status="sold", categories=None, profiles=None)
    client.select.return_value = ([row], None)
    store = SupabaseRecordStore(client)

    record = await store.get_listing_record("a1")

    assert record is not None and record.status == "sold"
    params = client.select.call_args[0][1]
    assert params["select"] == f"*,{LISTING_IMAGES_SELECT}"
    assert params["id"] == "eq.a1"
    assert "status" not in params


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_calls_spend_the_refresh_token_once(client: Mock) -> None:
    """Two worker threads finding an expired token trigger a single refresh."""
    store = SupabaseRecordStore(client)
    store.session.store({"access_token": "jwt-1", "refresh_token": "r-1", "expires_in": 1})

    def slow_refresh(_client: Mock, refresh_token: str) -> dict[str, Any]:
        time.sleep(0.05)
        return {"access_token": "jwt-2", "refresh_token": "r-2", "expires_in": 3600}

    with patch(
        "souq_data.sources.record_store.gotrue.refresh_session", side_effect=slow_refresh
    ) as mock_refresh:
        tokens = await asyncio.gather(
            asyncio.to_thread(store._token), asyncio.to_thread(store._token)
        )

    assert tokens == ["jwt-2", "jwt-2"]
    mock_refresh.assert_called_once_with(client, "r-1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_toggle_favorite_adds_membership_and_rereads_count(client: Mock) -> None:
    client.select.side_effect = [
        ([{"favorites_count": 4}], None),  # existence check
        ([], None),  # not yet a favorite
        ([{"favorites_count": 5}], None),  # count after trigger
    ]
    store = SupabaseRecordStore(client)

    result = await store.toggle_favorite("u9", "a1")

    assert result.is_favorited is True
    assert result.favorites_count == 5
    method, service, table = client.request.call_args[0]
    assert (method, service, table) == ("POST", "rest", "favorites")
    assert client.request.call_args[1]["json"] == {"user_id": "u9", "ad_id": "a1"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_toggle_favorite_removes_existing_membership(client: Mock) -> None:
    client.select.side_effect = [
        ([{"favorites_count": 5}], None),
        ([{"ad_id": "a1"}], None),
        ([{"favorites_count": 4}], None),
    ]
    store = SupabaseRecordStore(client)

    result = await store.toggle_favorite("u9", "a1")

    assert result.is_favorited is False
    assert result.favorites_count == 4
    assert client.request.call_args[0][0] == "DELETE"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_toggle_favorite_on_missing_ad_changes_nothing(client: Mock) -> None:
    client.select.return_value = ([], None)
    store = SupabaseRecordStore(client)

    with pytest.raises(BackendError) as exc_info:
        await store.toggle_favorite("u9", "ghost")

    assert exc_info.value.status_code == 404
    client.request.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_insert_listing_sends_owner_and_serializes_dates(client: Mock) -> None:
    client.request_json.return_value = [ad_row("new-1")]
    store = SupabaseRecordStore(client)

    listing = await store.insert_listing(
        "u1", {"title": "آيفون 13", "expires_at": days_from_now(30)}
    )

    assert listing.id == "new-1"
    body = client.request_json.call_args[1]["json"]
    assert body["user_id"] == "u1"
    assert isinstance(body["expires_at"], str)
    assert client.request_json.call_args[1]["headers"] == {"Prefer": "return=representation"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upload_image_returns_public_url(client: Mock) -> None:
    client.url.side_effect = lambda service, path: f"https://p.supabase.co/storage/v1/{path}"
    store = SupabaseRecordStore(client, bucket="ad-images")

    url = await store.upload_image("u1/a1/pic.jpg", b"data", "image/jpeg")

    assert url == "https://p.supabase.co/storage/v1/object/public/ad-images/u1/a1/pic.jpg"
    args, kwargs = client.request.call_args
    assert args == ("POST", "storage", "object/ad-images/u1/a1/pic.jpg")
    assert kwargs["data"] == b"data"
    assert kwargs["headers"]["Content-Type"] == "image/jpeg"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_in_rejection_becomes_invalid_credentials(client: Mock) -> None:
    client.request_json.side_effect = BackendError(
        "بيانات تسجيل الدخول غير صحيحة", status_code=400, detail="Invalid login credentials"
    )
    store = SupabaseRecordStore(client)

    with pytest.raises(InvalidCredentialsError) as exc_info:
        await store.sign_in("user@yallasouq.ps", "wrong-pass")

    assert exc_info.value.message == "بيانات تسجيل الدخول غير صحيحة"
    assert store.session.active is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_in_stores_session_and_loads_profile(client: Mock) -> None:
    client.request_json.return_value = {
        "access_token": "jwt-1",
        "refresh_token": "r-1",
        "expires_in": 3600,
        "user": {"id": "u1", "email": "user@yallasouq.ps", "email_confirmed_at": "2025-01-01"},
    }
    client.select.return_value = ([{"id": "u1", "first_name": "سامي", "last_name": "يوسف"}], None)
    store = SupabaseRecordStore(client)

    session = await store.sign_in("user@yallasouq.ps", "secret123")

    assert session.access_token == "jwt-1"
    assert session.user.first_name == "سامي"
    assert session.user.email_verified is True
    assert store.session.access_token == "jwt-1"
    assert await store.current_user_id() == "u1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_out_clears_session_even_when_request_fails(client: Mock) -> None:
    store = SupabaseRecordStore(client)
    store.session.store({"access_token": "jwt-1", "user": {"id": "u1"}})
    client.request.side_effect = BackendError("down", status_code=503)

    with pytest.raises(BackendError):
        await store.sign_out()

    assert store.session.active is False
    assert await store.current_user() is None
