from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from souq_data.schemas.categories import Category
from souq_data.schemas.listings import Listing

logger = structlog.get_logger(__name__)


def _one(embed: Any) -> Optional[Dict[str, Any]]:
    """PostgREST embeds to-one relations as an object, sometimes as a 1-item list."""
    if isinstance(embed, list):
        return embed[0] if embed else None
    return embed if isinstance(embed, dict) else None


def normalize_listing_row(row: Dict[str, Any]) -> Listing:
    """
    Convert one ``ads`` row with its embeds into a ``Listing``.

    Supabase returns the joined tables under their table names; they are
    renamed to the fields every data source exposes:

        categories -> category
        profiles   -> user (with ``id`` filled from ``user_id`` if missing)
        ad_images  -> images (ordered by sort_order)

    Args:
        row: Raw row from ``GET /rest/v1/ads?select=*,categories(...),...``

    Returns:
        Listing: Validated listing; the price rule and image order are
        enforced by the model itself

    Raises:
        pydantic.ValidationError: If the row is missing required columns
    """
    record = {k: v for k, v in row.items() if k not in ("categories", "profiles", "ad_images")}

    category = _one(row.get("categories"))
    if category is not None:
        record["category"] = category

    owner = _one(row.get("profiles"))
    if owner is not None:
        record["user"] = {"id": row.get("user_id"), **owner}

    images: List[Dict[str, Any]] = list(row.get("ad_images") or [])
    record["images"] = [{"ad_id": row.get("id"), **img} for img in images]

    if "is_favorited" in row:
        record["is_favorited"] = bool(row["is_favorited"])

    return Listing.model_validate(record)


def normalize_listing_rows(rows: List[Dict[str, Any]]) -> List[Listing]:
    """
    Normalize a page of rows, skipping (and logging) any malformed one.

    A single bad row must not hide the rest of the page.
    """
    listings = []
    for row in rows:
        try:
            listings.append(normalize_listing_row(row))
        except ValidationError as err:
            logger.warning(
                "listing_row_skipped", listing_id=row.get("id"), errors=err.error_count()
            )
    return listings


def normalize_category_row(row: Dict[str, Any]) -> Category:
    return Category.model_validate(row)
