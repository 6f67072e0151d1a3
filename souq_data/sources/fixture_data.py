"""
Sample Palestinian marketplace dataset served in mock mode.

``default_dataset()`` builds fresh records on every call so that one
provider's mutations never leak into another's; timestamps are relative to
the moment of the call.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from souq_data.utils.datetime import utc_now

MOCK_LOGIN_EMAILS = (
    "admin@yallasouq.ps",
    "user@yallasouq.ps",
    "test@yallasouq.ps",
    "maria-ashhab@gmail.com",
)

CATEGORIES: list[dict[str, Any]] = [
    {"id": "1", "name": "مركبات", "name_en": "Vehicles", "slug": "vehicles", "icon": "🚗", "color": "bg-blue-500", "sort_order": 1},  # noqa: E501
    {"id": "2", "name": "عقارات", "name_en": "Real Estate", "slug": "real-estate", "icon": "🏠", "color": "bg-green-500", "sort_order": 2},  # noqa: E501
    {"id": "3", "name": "إلكترونيات", "name_en": "Electronics", "slug": "electronics", "icon": "📱", "color": "bg-purple-500", "sort_order": 3},  # noqa: E501
    {"id": "4", "name": "أزياء", "name_en": "Fashion", "slug": "fashion", "icon": "👕", "color": "bg-pink-500", "sort_order": 4},  # noqa: E501
    {"id": "5", "name": "أثاث منزلي", "name_en": "Home & Furniture", "slug": "home-furniture", "icon": "🏡", "color": "bg-orange-500", "sort_order": 5},  # noqa: E501
    {"id": "6", "name": "رياضة", "name_en": "Sports", "slug": "sports", "icon": "⚽", "color": "bg-red-500", "sort_order": 6},  # noqa: E501
    {"id": "7", "name": "كتب", "name_en": "Books", "slug": "books", "icon": "📚", "color": "bg-indigo-500", "sort_order": 7},  # noqa: E501
    {"id": "8", "name": "خدمات", "name_en": "Services", "slug": "services", "icon": "🔧", "color": "bg-gray-500", "sort_order": 8},  # noqa: E501
    {"id": "9", "name": "وظائف", "name_en": "Jobs", "slug": "jobs", "icon": "💼", "color": "bg-teal-500", "sort_order": 9},  # noqa: E501
    {"id": "10", "name": "أخرى", "name_en": "Other", "slug": "other", "icon": "📦", "color": "bg-gray-400", "sort_order": 10},  # noqa: E501
]

USERS: list[dict[str, Any]] = [
    {"id": "1", "first_name": "أحمد", "last_name": "محمد", "is_business_verified": False},
    {"id": "2", "first_name": "فاطمة", "last_name": "أحمد", "is_business_verified": True},
    {"id": "3", "first_name": "محمد", "last_name": "خالد", "is_business_verified": False},
    {"id": "4", "first_name": "سارة", "last_name": "علي", "is_business_verified": True},
]

# (id, owner, category, title, description, price, currency, price_type, city, region,
#  ad_type, condition, featured, urgent, views, favorites, messages, business, age_days)
_ADS: list[tuple[Any, ...]] = [
    (
        "1", "1", "3", "آيفون 14 برو ماكس للبيع",
        "آيفون 14 برو ماكس 256 جيجا، لون ذهبي، حالة ممتازة جداً. استعمال خفيف لمدة 6 أشهر فقط. "
        "يأتي مع الشاحن والعلبة الأصلية وواقي الشاشة. البطارية 95%.",
        4200, "ILS", "negotiable", "رام الله", "ramallah", "sell", "used",
        True, False, 87, 12, 5, False, 2,
    ),
    (
        "2", "2", "1", "سيارة تويوتا كامري 2019 فل كامل",
        "سيارة تويوتا كامري موديل 2019، فل كامل المواصفات. ماشية 45 ألف كيلو فقط. "
        "جير أوتوماتيك، فتحة سقف، كاميرا خلفية. صيانة دورية في الوكالة.",
        18500, "USD", "fixed", "نابلس", "nablus", "sell", "used",
        False, True, 156, 23, 8, True, 5,
    ),
    (
        "3", "3", "2", "شقة للإيجار في البيرة - 3 غرف",
        "شقة مفروشة للإيجار في البيرة، الطابق الثالث. 3 غرف نوم، صالة كبيرة، مطبخ مجهز، "
        "حمامين. موقع ممتاز قريب من الجامعات والمواصلات.",
        600, "USD", "fixed", "البيرة", "ramallah", "rent", None,
        True, True, 98, 17, 6, False, 1,
    ),
    (
        "4", "4", "3", "لابتوب HP Pavilion للبيع",
        "لابتوب HP Pavilion، معالج Intel Core i7 الجيل العاشر، ذاكرة 16 جيجا رام، "
        "SSD 512 جيجا. كارت شاشة NVIDIA GTX 1650. استعمال سنة واحدة.",
        2800, "ILS", "negotiable", "بيت لحم", "bethlehem", "sell", "used",
        False, False, 45, 8, 3, True, 3,
    ),
    (
        "5", "1", "5", "طقم صالون مودرن للبيع",
        "طقم صالون مودرن: كنبة 3 مقاعد + كنبتين مفردتين + طاولة وسط رخام. لون بيج فاتح. "
        "حالة ممتازة، استعمال سنتين فقط. السبب في البيع: السفر.",
        1500, "USD", "negotiable", "الخليل", "hebron", "sell", "used",
        False, False, 67, 11, 4, False, 4,
    ),
    (
        "6", "2", "7", "كتب جامعية - كلية الهندسة",
        "مجموعة كتب جامعية لكلية الهندسة، تخصص مدني: الرياضيات الهندسية، الفيزياء، "
        "الإنشاءات، المساحة. حالة جيدة جداً، مع الملاحظات والتلخيصات.",
        200, "ILS", "fixed", "جنين", "jenin", "sell", "used",
        False, False, 23, 4, 2, False, 6,
    ),
]


def _ad_record(row: tuple[Any, ...]) -> dict[str, Any]:
    (
        ad_id, owner_id, category_id, title, description, price, currency, price_type,
        city, region, ad_type, condition, featured, urgent, views, favorites, messages,
        business, age_days,
    ) = row
    now = utc_now()
    owner = next(u for u in USERS if u["id"] == owner_id)
    created = now - timedelta(days=age_days)
    return {
        "id": ad_id,
        "user_id": owner_id,
        "title": title,
        "description": description,
        "category_id": category_id,
        "price": price,
        "currency": currency,
        "price_type": price_type,
        "city": city,
        "region": region,
        "status": "active",
        "ad_type": ad_type,
        "condition_type": condition,
        "is_featured": featured,
        "is_urgent": urgent,
        "contact_name": f"{owner['first_name']} {owner['last_name']}",
        "contact_method": ["phone"],
        "views_count": views,
        "favorites_count": favorites,
        "messages_count": messages,
        "is_business_ad": business,
        "created_at": created,
        "updated_at": created + timedelta(days=1) if age_days > 1 else created,
        "expires_at": created + timedelta(days=30),
        "images": [],
    }


def default_dataset() -> dict[str, list[dict[str, Any]]]:
    """
    Build the default fixture records.

    Returns:
        dict with ``categories``, ``users`` and ``listings`` lists of plain dicts
    """
    now = utc_now()
    categories = [
        {**c, "is_active": True, "created_at": now, "updated_at": now} for c in CATEGORIES
    ]
    users = [{**u, "created_at": now - timedelta(days=90)} for u in USERS]
    listings = [_ad_record(row) for row in _ADS]

    listings[0]["images"] = [
        {
            "id": "img-1-1",
            "ad_id": "1",
            "image_url": "https://images.yallasouq.ps/ads/1/front.jpg",
            "thumbnail_url": "https://images.yallasouq.ps/ads/1/front_thumb.jpg",
            "sort_order": 0,
            "is_primary": True,
        },
        {
            "id": "img-1-2",
            "ad_id": "1",
            "image_url": "https://images.yallasouq.ps/ads/1/back.jpg",
            "sort_order": 1,
            "is_primary": False,
        },
    ]
    return {"categories": categories, "users": users, "listings": listings}
