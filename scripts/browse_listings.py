import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import asyncio
from typing import Any

from souq_data.config import load_settings
from souq_data.logging_config import setup_logging
from souq_data.services.ads import AdsService
from souq_data.services.categories import CategoriesService
from souq_data.sources.selection import select_source

CURRENCY_SYMBOLS = {"ILS": "₪", "USD": "$", "EUR": "€", "JOD": "د.أ"}


def format_price(price: Any, currency: str, price_type: str) -> str:
    if price_type == "free":
        return "مجاناً"
    if price_type == "contact" or price is None:
        return "اتصل للسعر"
    return f"{price:,.0f} {CURRENCY_SYMBOLS.get(currency, currency)}"


async def browse(args: argparse.Namespace) -> int:
    settings = load_settings()
    source = select_source(settings)
    ads = AdsService(source, settings)
    categories = CategoriesService(source, settings)

    filters: dict[str, Any] = {}
    if args.category:
        category = await categories.get_category_by_slug(args.category)
        if category is None:
            print(f"⚠️ Unknown category slug: {args.category}")
            return 1
        filters["category"] = category.id
    if args.city:
        filters["city"] = args.city
    if args.search:
        filters["search"] = args.search
    if args.min_price is not None:
        filters["min_price"] = args.min_price
    if args.max_price is not None:
        filters["max_price"] = args.max_price

    page = await ads.fetch_listings(filters, page=args.page, page_size=args.page_size)
    if ads.error:
        print(f"❌ {ads.error}")
        return 1

    print(f"📦 {source.name}: page {page.page}, {len(page.listings)} of {page.total}")
    for listing in page.listings:
        price = format_price(listing.price, listing.currency, listing.price_type)
        print(f"  [{listing.id}] {listing.title} | {price} | {listing.city}")
    if page.has_more:
        print(f"➡️  More results: --page {page.page + 1}")

    await source.close()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Print one page of listings from the configured source."
    )
    parser.add_argument("--category", help="Category slug (e.g. electronics)")
    parser.add_argument("--city", help="Exact city name")
    parser.add_argument("--search", help="Substring of title or description")
    parser.add_argument("--min-price", type=float, dest="min_price")
    parser.add_argument("--max-price", type=float, dest="max_price")
    parser.add_argument("--page", type=int, default=1)
    parser.add_argument("--page-size", type=int, default=None, dest="page_size")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(browse(args)))
