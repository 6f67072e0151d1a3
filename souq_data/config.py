from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_MOCK_LATENCY_MS = 300
DEFAULT_PAGE_SIZE = 20
DEFAULT_STORAGE_BUCKET = "ad-images"


def _env_flag(*names: str) -> bool:
    for name in names:
        value = os.getenv(name)
        if value is not None:
            return value.strip().lower() == "true"
    return False


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration for the data-access layer.

    Built once at process start and passed to the services and data sources
    that need it. Nothing downstream reads the environment directly.

    Attributes:
        use_mock_data: Route every call to the in-memory fixture provider
        supabase_url: Base URL of the Supabase project (real mode only)
        supabase_anon_key: Public anon key sent as ``apikey`` (real mode only)
        request_timeout: Upper bound in seconds for any single source call
        mock_latency_ms: Simulated latency of the fixture provider
        page_size: Default listings page size
        storage_bucket: Storage bucket that receives listing images
        log_level: Root log level name
    """

    use_mock_data: bool = True
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    mock_latency_ms: int = DEFAULT_MOCK_LATENCY_MS
    page_size: int = DEFAULT_PAGE_SIZE
    storage_bucket: str = DEFAULT_STORAGE_BUCKET
    log_level: str = LOG_LEVEL

    @property
    def source_name(self) -> str:
        return "fixtures" if self.use_mock_data else "supabase"


def load_settings() -> Settings:
    """
    Read settings from the process environment (and .env, if present).

    Returns:
        Settings: Parsed configuration

    Raises:
        ValueError: If real mode is selected without Supabase credentials,
            or a numeric variable cannot be parsed.
    """
    use_mock_data = _env_flag("USE_MOCK_DATA", "NEXT_PUBLIC_USE_MOCK_DATA")

    supabase_url = os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL")
    supabase_anon_key = os.getenv("SUPABASE_ANON_KEY") or os.getenv(
        "NEXT_PUBLIC_SUPABASE_ANON_KEY"
    )

    if not use_mock_data:
        if not supabase_url:
            raise ValueError("SUPABASE_URL must be set in the environment")
        if not supabase_anon_key:
            raise ValueError("SUPABASE_ANON_KEY must be set in the environment")

    page_size = int(os.getenv("PAGE_SIZE", str(DEFAULT_PAGE_SIZE)))
    if page_size <= 0:
        raise ValueError("PAGE_SIZE must be a positive integer")

    return Settings(
        use_mock_data=use_mock_data,
        supabase_url=supabase_url.rstrip("/") if supabase_url else None,
        supabase_anon_key=supabase_anon_key,
        request_timeout=float(
            os.getenv("REQUEST_TIMEOUT_SECONDS", str(DEFAULT_REQUEST_TIMEOUT))
        ),
        mock_latency_ms=int(os.getenv("MOCK_LATENCY_MS", str(DEFAULT_MOCK_LATENCY_MS))),
        page_size=page_size,
        storage_bucket=os.getenv("STORAGE_BUCKET", DEFAULT_STORAGE_BUCKET),
        log_level=LOG_LEVEL,
    )
