import structlog

from souq_data.config import Settings
from souq_data.sources.base import DataSource
from souq_data.sources.fixtures import FixtureProvider
from souq_data.sources.record_store import SupabaseRecordStore

logger = structlog.get_logger(__name__)


def select_source(settings: Settings) -> DataSource:
    """
    Build the one data source the services will share.

    The choice is made once, from injected settings; switching modes means
    building new services with a new source.

    Args:
        settings: Loaded settings

    Returns:
        DataSource: FixtureProvider in mock mode, SupabaseRecordStore otherwise

    Raises:
        ValueError: If real mode is selected without Supabase credentials
    """
    if settings.use_mock_data:
        source: DataSource = FixtureProvider(
            latency_ms=settings.mock_latency_ms, bucket=settings.storage_bucket
        )
    else:
        source = SupabaseRecordStore.from_settings(settings)

    logger.info("data_source_selected", source=source.name)
    return source
