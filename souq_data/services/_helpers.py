"""Shared plumbing for services that call into a data source."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog

from souq_data.config import Settings
from souq_data.errors import (
    MSG_SERVER,
    MSG_TIMEOUT,
    BackendError,
    SouqError,
    SourceTimeoutError,
)
from souq_data.metrics import source_latency, source_requests
from souq_data.sources.base import DataSource

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def call_source(
    source: DataSource,
    operation: str,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    timeout: Optional[float] = None,
) -> T:
    """
    Await one data source call with a timeout, recording metrics.

    Args:
        source: Source being called (labels the metrics)
        operation: Source method name
        func: Bound coroutine function on the source
        *args: Positional arguments for ``func``
        timeout: Upper bound in seconds; None waits indefinitely

    Returns:
        Whatever the source returned

    Raises:
        SourceTimeoutError: If the call exceeded ``timeout``
        SouqError: Whatever domain error the source raised
        BackendError: For any other exception escaping the source
    """
    status = "failure"
    start = time.perf_counter()
    try:
        result = await asyncio.wait_for(func(*args), timeout)
        status = "success"
        return result
    except asyncio.TimeoutError as err:
        status = "timeout"
        logger.warning("source_call_timeout", source=source.name, operation=operation)
        raise SourceTimeoutError() from err
    except SouqError:
        raise
    except Exception as err:
        logger.exception("source_call_crashed", source=source.name, operation=operation)
        raise BackendError(MSG_SERVER, detail=str(err)) from err
    finally:
        source_latency.labels(source=source.name, operation=operation).observe(
            time.perf_counter() - start
        )
        source_requests.labels(source=source.name, operation=operation, status=status).inc()


class SourceBoundService:
    """
    Base for the services: holds the source, the settings and the last error.

    Attributes:
        source: The data source every call goes to
        settings: Runtime settings (timeouts, page size)
        error: Localized message of the last failure, None after a success
        failure: The last ``SouqError`` itself, for callers that branch on type
    """

    def __init__(self, source: DataSource, settings: Optional[Settings] = None):
        self.source = source
        self.settings = settings or Settings()
        self.error: Optional[str] = None
        self.failure: Optional[SouqError] = None
        self._in_flight = 0

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    async def _call(self, operation: str, func: Callable[..., Awaitable[T]], *args: Any) -> T:
        self._in_flight += 1
        try:
            return await call_source(
                self.source, operation, func, *args, timeout=self.settings.request_timeout
            )
        finally:
            self._in_flight -= 1

    def _fail(self, err: SouqError, fallback: str) -> None:
        """
        Record a failure.

        Source failures get the operation's own message (or the timeout
        message); caller-side errors keep theirs.
        """
        if isinstance(err, SourceTimeoutError):
            message = MSG_TIMEOUT
        elif isinstance(err, BackendError):
            message = fallback
        else:
            message = err.message
        self.error = message
        self.failure = err
        logger.warning(
            "service_operation_failed",
            service=type(self).__name__,
            code=err.code,
            error=err.message,
        )

    def _succeed(self) -> None:
        self.error = None
        self.failure = None

    def clear_error(self) -> None:
        self._succeed()

    async def _current_user_id(self) -> Optional[str]:
        return await self._call("current_user", self.source.current_user_id)
