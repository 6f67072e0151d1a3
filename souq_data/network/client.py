"""
Thin HTTP client for a Supabase project: PostgREST (``/rest/v1``), GoTrue
(``/auth/v1``) and Storage (``/storage/v1``), with retries on rate limiting,
server errors and timeouts.
"""

import time
from typing import Any, Dict, Optional, cast

import requests
import structlog

from souq_data.config import DEFAULT_REQUEST_TIMEOUT
from souq_data.errors import (
    MSG_NETWORK,
    MSG_SERVER,
    BackendError,
    SourceTimeoutError,
    localize_auth_error,
)
from souq_data.metrics import http_requests

logger = structlog.get_logger(__name__)

SERVICE_PATHS = {
    "rest": "/rest/v1",
    "auth": "/auth/v1",
    "storage": "/storage/v1",
}
MAX_RETRIES = 2
RETRY_DELAY = 0.5


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether the request should be retried based on response or error.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True if the request should be retried, False otherwise.
    """
    if res is not None and res.status_code == 429:
        return True
    if isinstance(err, requests.Timeout):
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


def parse_content_range(header: Optional[str]) -> Optional[int]:
    """
    Extract the exact row count from a PostgREST ``Content-Range`` header.

    Args:
        header: Header value such as ``0-19/45`` or ``*/0``

    Returns:
        Optional[int]: Total row count, or None if absent or unknown (``*``)
    """
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        return None
    return int(total)


def error_detail(res: requests.Response) -> str:
    """Pull the human-readable message out of a Supabase error body."""
    try:
        body = res.json()
    except ValueError:
        return res.text or res.reason or str(res.status_code)
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return str(body)


class SupabaseClient:
    """
    Blocking client for one Supabase project.

    Every request carries the anon key as ``apikey``; the bearer token is the
    signed-in user's access token when one is supplied, the anon key otherwise.

    Attributes:
        base_url: Project URL without trailing slash
        anon_key: Public anon key
        timeout: Per-request timeout in seconds
    """

    def __init__(self, base_url: str, anon_key: str, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout

    def url(self, service: str, path: str) -> str:
        return f"{self.base_url}{SERVICE_PATHS[service]}/{path.lstrip('/')}"

    def headers(
        self, token: Optional[str] = None, extra: Optional[Dict[str, str]] = None
    ) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        service: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        token: Optional[str] = None,
    ) -> requests.Response:
        """
        Send one request, retrying transient failures.

        Args:
            method: HTTP method
            service: One of ``rest``, ``auth``, ``storage``
            path: Path below the service root (e.g. ``ads``)
            params: Query string parameters
            json: JSON body
            data: Raw body (storage uploads)
            headers: Extra headers (``Prefer``, ``Content-Type``, ...)
            token: User access token; anon key when omitted

        Returns:
            requests.Response: The successful (2xx) response

        Raises:
            SourceTimeoutError: If the last attempt timed out
            BackendError: For any other failure after retries
        """
        url = self.url(service, path)
        send_headers = self.headers(token, headers)
        retries = 0

        while True:
            res: Optional[requests.Response] = None
            try:
                logger.debug("supabase_request", method=method, service=service, path=path)
                res = requests.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    data=data,
                    headers=send_headers,
                    timeout=self.timeout,
                )
                http_requests.labels(
                    method=method, service=service, status_code=str(res.status_code)
                ).inc()

                if should_retry(res, None) and retries < MAX_RETRIES:
                    retries += 1
                    logger.warning(
                        "supabase_retry",
                        method=method,
                        path=path,
                        status_code=res.status_code,
                        attempt=retries,
                    )
                    time.sleep(RETRY_DELAY * retries)
                    continue

                res.raise_for_status()
                return res

            except requests.HTTPError as err:
                raise self._backend_error(service, path, res, err) from err

            except requests.RequestException as err:
                http_requests.labels(method=method, service=service, status_code="error").inc()
                logger.warning("supabase_request_failed", method=method, path=path, error=str(err))
                retries += 1
                if retries > MAX_RETRIES or not should_retry(None, err):
                    raise self._backend_error(service, path, None, err) from err
                time.sleep(RETRY_DELAY * retries)

    def _backend_error(
        self,
        service: str,
        path: str,
        res: Optional[requests.Response],
        err: Exception,
    ) -> BackendError:
        if isinstance(err, requests.Timeout):
            logger.error("supabase_timeout", service=service, path=path)
            return SourceTimeoutError()

        if res is None:
            logger.error("supabase_unreachable", service=service, path=path, error=str(err))
            return BackendError(MSG_NETWORK, detail=str(err))

        detail = error_detail(res)
        logger.error(
            "supabase_http_error",
            service=service,
            path=path,
            status_code=res.status_code,
            detail=detail,
        )
        message = localize_auth_error(detail) if service == "auth" else MSG_SERVER
        return BackendError(message, status_code=res.status_code, detail=detail)

    def request_json(self, method: str, service: str, path: str, **kwargs: Any) -> Any:
        res = self.request(method, service, path, **kwargs)
        if res.status_code == 204 or not res.content:
            return None
        return res.json()

    def select(
        self,
        table: str,
        params: Dict[str, Any],
        token: Optional[str] = None,
        count: bool = False,
    ) -> tuple[list[Dict[str, Any]], Optional[int]]:
        """
        Read rows from a PostgREST table.

        Args:
            table: Table name
            params: PostgREST query parameters (``select``, filters, ``order``, ...)
            token: User access token
            count: Ask for the exact total via ``Prefer: count=exact``

        Returns:
            tuple: (rows, total) where total is None unless ``count`` was requested
        """
        headers = {"Prefer": "count=exact"} if count else None
        res = self.request("GET", "rest", table, params=params, headers=headers, token=token)
        rows = cast(list[Dict[str, Any]], res.json() or [])
        total = parse_content_range(res.headers.get("Content-Range")) if count else None
        return rows, total
