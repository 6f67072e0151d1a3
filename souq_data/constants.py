"""Marketplace enumerations and limits shared by schemas, sources and services."""

from typing import Literal

Currency = Literal["ILS", "USD", "EUR", "JOD"]
PriceType = Literal["fixed", "negotiable", "free", "contact"]
ListingStatus = Literal["draft", "active", "sold", "expired", "pending", "rejected"]
AdType = Literal["sell", "buy", "rent", "service", "job"]
ConditionType = Literal["new", "used", "refurbished"]
AccountStatus = Literal["active", "suspended", "pending"]
Language = Literal["ar", "en", "he"]

DEFAULT_CURRENCY: Currency = "ILS"
PRICELESS_TYPES = frozenset({"free", "contact"})

# Region codes are the city ids of the West Bank, Gaza Strip and diaspora groups.
PALESTINIAN_REGIONS: dict[str, tuple[str, ...]] = {
    "west-bank": (
        "jerusalem",
        "ramallah",
        "bethlehem",
        "hebron",
        "nablus",
        "jenin",
        "tulkarm",
        "qalqilya",
        "salfit",
        "jericho",
        "tubas",
    ),
    "gaza-strip": ("gaza", "khan-younis", "rafah", "deir-al-balah", "north-gaza"),
    "diaspora": ("amman", "beirut", "damascus", "cairo", "other"),
}
REGION_CODES = frozenset(code for codes in PALESTINIAN_REGIONS.values() for code in codes)

AD_EXPIRY_DAYS = 30
MAX_TITLE_LENGTH = 100
MIN_TITLE_LENGTH = 3
MAX_DESCRIPTION_LENGTH = 2000
MAX_IMAGES_PER_AD = 10
ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})
MAX_IMAGE_SIZE = 5 * 1024 * 1024

LOGIN_MAX_ATTEMPTS = 5
LOGIN_LOCKOUT_SECONDS = 15 * 60

ADMIN_EMAIL = "admin@yallasouq.ps"
