"""
Unit tests for the in-memory fixture provider.
"""

from __future__ import annotations

import pytest

from souq_data.errors import BackendError, InvalidCredentialsError
from souq_data.schemas.auth import SignupData
from souq_data.schemas.listings import ListingFilters
from souq_data.sources.fixtures import FixtureProvider
from tests.factories import make_listing, make_listings


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pagination_over_45_listings() -> None:
    """Page 1 holds 20 with more to come; page 3 holds the last 5."""
    provider = FixtureProvider(listings=make_listings(45), latency_ms=0)

    first = await provider.list_listings(ListingFilters(), 1, 20)
    last = await provider.list_listings(ListingFilters(), 3, 20)

    assert len(first.listings) == 20
    assert first.total == 45
    assert first.has_more is True
    assert first.listings[0].id == "ad-00"

    assert len(last.listings) == 5
    assert last.total == 45
    assert last.has_more is False
    assert last.listings[-1].id == "ad-44"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_page_past_the_end_is_empty() -> None:
    provider = FixtureProvider(listings=make_listings(5), latency_ms=0)

    page = await provider.list_listings(ListingFilters(), 2, 20)

    assert page.listings == []
    assert page.total == 5
    assert page.has_more is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_default_dataset_joins_category_and_owner(provider: FixtureProvider) -> None:
    page = await provider.list_listings(ListingFilters(category="3"), 1, 20)

    assert {listing.id for listing in page.listings} == {"1", "4"}
    iphone = next(listing for listing in page.listings if listing.id == "1")
    assert iphone.category is not None and iphone.category.slug == "electronics"
    assert iphone.user is not None and iphone.user.first_name == "أحمد"
    assert iphone.primary_image is not None
    assert iphone.primary_image.id == "img-1-1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_listing_counts_views_of_other_users_only() -> None:
    provider = FixtureProvider(listings=[make_listing(views_count=3)], latency_ms=0)

    seen_by_owner = await provider.get_listing("ad-1", viewer_id="1")
    seen_by_visitor = await provider.get_listing("ad-1", viewer_id="2")

    assert seen_by_owner is not None and seen_by_owner.views_count == 3
    assert seen_by_visitor is not None and seen_by_visitor.views_count == 4


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_listing_hides_inactive_and_missing() -> None:
    provider = FixtureProvider(listings=[make_listing(status="draft")], latency_ms=0)

    assert await provider.get_listing("ad-1") is None
    assert await provider.get_listing("nope") is None
    assert await provider.get_listing_owner("ad-1") == "1"

    record = await provider.get_listing_record("ad-1")
    assert record is not None and record.status == "draft"
    assert record.views_count == 0
    assert await provider.get_listing_record("nope") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_toggle_favorite_twice_restores_count() -> None:
    provider = FixtureProvider(listings=[make_listing(favorites_count=7)], latency_ms=0)

    on = await provider.toggle_favorite("u-9", "ad-1")
    off = await provider.toggle_favorite("u-9", "ad-1")

    assert on.is_favorited is True and on.favorites_count == 8
    assert off.is_favorited is False and off.favorites_count == 7
    seen = await provider.get_listing("ad-1", viewer_id="u-9")
    assert seen is not None and seen.is_favorited is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_toggle_favorite_on_missing_listing_raises() -> None:
    provider = FixtureProvider(listings=[], latency_ms=0)

    with pytest.raises(BackendError) as exc_info:
        await provider.toggle_favorite("u-9", "ghost")

    assert exc_info.value.status_code == 404


@pytest.mark.unit
@pytest.mark.asyncio
async def test_insert_update_delete_cycle(provider: FixtureProvider) -> None:
    created = await provider.insert_listing(
        "1",
        {"title": "خزانة خشب", "category_id": "5", "price": 250, "city": "جنين"},
    )
    assert created.id.startswith("mock_")
    assert created.user_id == "1"

    updated = await provider.update_listing(created.id, {"price_type": "free", "price": None})
    assert updated is not None
    assert updated.price is None
    assert updated.price_type == "free"

    await provider.delete_listing(created.id)
    await provider.delete_listing(created.id)
    assert await provider.get_listing_owner(created.id) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_add_listing_image_demotes_previous_primary(provider: FixtureProvider) -> None:
    image = await provider.add_listing_image("1", "mock://ad-images/x.jpg", 2, True)

    listing = await provider.get_listing("1", viewer_id="1")

    assert listing is not None
    primaries = [img.id for img in listing.images if img.is_primary]
    assert primaries == [image.id]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upload_image_returns_mock_url(provider: FixtureProvider) -> None:
    url = await provider.upload_image("u/1/pic.jpg", b"\xff\xd8", "image/jpeg")

    assert url == "mock://ad-images/u/1/pic.jpg"
    assert provider.uploads["u/1/pic.jpg"] == b"\xff\xd8"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_categories_returns_active_only() -> None:
    provider = FixtureProvider(
        categories=[
            {"id": "1", "name": "مركبات", "slug": "vehicles", "sort_order": 1},
            {"id": "2", "name": "قديم", "slug": "old", "sort_order": 2, "is_active": False},
        ],
        latency_ms=0,
    )

    categories = await provider.list_categories()

    assert [c.slug for c in categories] == ["vehicles"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_in_accepts_known_emails_only(provider: FixtureProvider) -> None:
    session = await provider.sign_in(" User@YallaSouq.ps ", "secret123")
    assert session.user.email == "user@yallasouq.ps"
    assert session.user.id.startswith("mock-user-")
    assert await provider.current_user_id() == session.user.id

    with pytest.raises(InvalidCredentialsError):
        await provider.sign_in("stranger@example.com", "secret123")
    with pytest.raises(InvalidCredentialsError):
        await provider.sign_in("user@yallasouq.ps", "123")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_up_registers_email_for_later_sign_in(provider: FixtureProvider) -> None:
    data = SignupData(
        email="new@example.com", password="secret123", first_name="ليلى", last_name="حسن"
    )

    user = await provider.sign_up(data)
    assert await provider.current_user() is None

    session = await provider.sign_in("new@example.com", "secret123")
    assert session.user.id == user.id

    with pytest.raises(BackendError):
        await provider.sign_up(data)
