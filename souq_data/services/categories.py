from __future__ import annotations

from typing import Optional

import structlog

from souq_data.config import Settings
from souq_data.errors import MSG_FETCH_CATEGORIES, SouqError
from souq_data.schemas.categories import Category
from souq_data.services._helpers import SourceBoundService
from souq_data.sources.base import DataSource

logger = structlog.get_logger(__name__)


class CategoriesService(SourceBoundService):
    """
    Active categories, fetched once and cached for the service's lifetime.

    Attributes:
        categories: Cached active categories, ordered by sort_order
        loaded: Whether a fetch has succeeded at least once
    """

    def __init__(self, source: DataSource, settings: Optional[Settings] = None):
        super().__init__(source, settings)
        self.categories: list[Category] = []
        self.loaded = False

    async def load(self, refresh: bool = False) -> list[Category]:
        """
        Return the active categories, fetching them on first use.

        Args:
            refresh: Refetch even if the cache is populated

        Returns:
            list[Category]: Active categories by sort_order; on failure the
            previous cache (empty before the first success)
        """
        if self.loaded and not refresh:
            return list(self.categories)

        try:
            fetched = await self._call("list_categories", self.source.list_categories)
        except SouqError as err:
            self._fail(err, MSG_FETCH_CATEGORIES)
            return list(self.categories)

        self.categories = sorted(
            (category for category in fetched if category.is_active),
            key=lambda category: (category.sort_order, category.name),
        )
        self.loaded = True
        self._succeed()
        logger.debug("categories_loaded", source=self.source.name, count=len(self.categories))
        return list(self.categories)

    async def get_category_by_id(self, category_id: str) -> Optional[Category]:
        categories = await self.load()
        return next((c for c in categories if c.id == str(category_id)), None)

    async def get_category_by_slug(self, slug: str) -> Optional[Category]:
        categories = await self.load()
        return next((c for c in categories if c.slug == slug), None)
