"""
End-to-end flow in mock mode: settings -> source selection -> services.
"""

import pytest

from souq_data.config import Settings
from souq_data.services.ads import AdsService
from souq_data.services.auth import AuthService
from souq_data.services.categories import CategoriesService
from souq_data.sources.fixtures import FixtureProvider
from souq_data.sources.selection import select_source


@pytest.fixture
def mock_settings() -> Settings:
    return Settings(use_mock_data=True, mock_latency_ms=0, request_timeout=2.0, page_size=4)


@pytest.mark.integration
def test_mock_settings_select_fixture_provider(mock_settings: Settings) -> None:
    source = select_source(mock_settings)

    assert isinstance(source, FixtureProvider)
    assert source.name == "fixtures"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_browse_post_and_favorite(mock_settings: Settings) -> None:
    source = select_source(mock_settings)
    auth = AuthService(source, mock_settings)
    ads = AdsService(source, mock_settings)
    categories = CategoriesService(source, mock_settings)

    first = await ads.fetch_listings()
    assert len(first.listings) == 4
    assert first.total == 6
    assert first.has_more is True
    await ads.load_more()
    assert len(ads.listings) == 6
    assert ads.has_more is False

    electronics = await categories.get_category_by_slug("electronics")
    assert electronics is not None
    in_category = await ads.fetch_listings({"category": electronics.id})
    assert {listing.id for listing in in_category.listings} == {"1", "4"}

    assert await ads.create_listing(
        {"title": "هاتف سامسونج", "category_id": electronics.id, "price": 900, "city": "جنين"}
    ) is None
    assert ads.failure is not None and ads.failure.code == "auth_required"

    login = await auth.login({"email": "user@yallasouq.ps", "password": "secret123"})
    assert login.success is True

    created = await ads.create_listing(
        {"title": "هاتف سامسونج", "category_id": electronics.id, "price": 900, "city": "جنين"}
    )
    assert created is not None
    assert created.user is not None and created.user.first_name == "مستخدم"

    newest = await ads.fetch_listings({"category": electronics.id})
    assert newest.listings[0].id == created.id
    assert newest.total == 3

    assert await ads.toggle_favorite("2") is True
    car = await ads.get_listing_by_id("2")
    assert car is not None and car.is_favorited is True

    assert await ads.delete_listing(created.id) is True
    assert await ads.get_listing_by_id(created.id) is None

    logout = await auth.logout()
    assert logout.success is True
    assert auth.user is None
    assert await source.current_user_id() is None
