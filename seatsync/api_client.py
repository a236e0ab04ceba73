"""
HTTP client for the seat query origin.

Requests are spaced by a minimum interval so the origin isn't spammed, and
429 responses are retried a bounded number of times honoring Retry-After
before the failure is handed to the cache layer's backoff.
"""
import asyncio
import logging
import math
import threading
import time
from typing import Optional, List, Any, Callable

import requests
from tenacity import (
    Retrying,
    stop_after_attempt,
    retry_if_exception_type,
)

from seatsync.errors import NetworkError, ServerError, RateLimitedError, SeatSyncError
from seatsync.models import SeatRecord, parse_seats

logger = logging.getLogger("api_client")

EVENT_API_URL = "/events"
DEFAULT_ERROR_MESSAGE = "An error occurred with the API request."


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """
    Convert a Retry-After header (delta seconds) to milliseconds.

    Returns None for missing, non-numeric or zero values.
    """
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    return int(seconds * 1000)


class SeatApiClient:
    """
    Blocking client for GET /events/{event_id}/seats.

    Thread-safe: the request spacing is tracked under a lock so calls made
    from several worker threads still respect the minimum interval.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        min_request_interval_ms: int = 200,
        max_rate_limit_retries: int = 2,
        default_retry_after_ms: int = 1000,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._min_interval = min_request_interval_ms / 1000
        self._max_retries = max_rate_limit_retries
        self._default_retry_after_ms = default_retry_after_ms
        self._session = session or requests.Session()
        self._sleep = sleep
        self._monotonic = monotonic

        self._throttle_lock = threading.Lock()
        self._last_request_at: Optional[float] = None

    @classmethod
    def from_settings(cls, settings) -> "SeatApiClient":
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout=settings.request_timeout_seconds,
            min_request_interval_ms=settings.min_request_interval_ms,
            max_rate_limit_retries=settings.max_rate_limit_retries,
            default_retry_after_ms=settings.default_retry_after_ms,
        )

    def _headers(self) -> dict:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
        }
        if self._token:
            headers["authorization"] = f"Bearer {self._token}"
        return headers

    def _throttle(self) -> None:
        """Block until the minimum spacing since the previous request has passed."""
        with self._throttle_lock:
            if self._last_request_at is not None:
                wait = self._min_interval - (self._monotonic() - self._last_request_at)
                if wait > 0:
                    self._sleep(wait)
            self._last_request_at = self._monotonic()

    def _error_from_response(self, response: requests.Response) -> SeatSyncError:
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.reason}

        message = None
        if isinstance(body, dict):
            message = body.get("message")
        message = message or DEFAULT_ERROR_MESSAGE

        if response.status_code == 429:
            return RateLimitedError(
                message,
                retry_after_ms=parse_retry_after(response.headers.get("retry-after")),
                body=body,
            )
        return ServerError(message, status=response.status_code, body=body)

    def _request(self, path: str) -> Any:
        self._throttle()
        url = f"{self._base_url}{path}"
        logger.debug(f"GET {url}")

        try:
            response = self._session.get(url, headers=self._headers(), timeout=self._timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        if not response.ok:
            error = self._error_from_response(response)
            logger.warning(f"Error {response.status_code} on request to {path}: {error.message}")
            raise error

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type or not response.text:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ServerError(
                f"Invalid JSON in response to {path}: {e}",
                status=response.status_code,
                body=response.text,
            ) from e

    def _wait_retry_after(self, retry_state) -> float:
        """Sleep for the server's Retry-After, or the default when absent."""
        error = retry_state.outcome.exception()
        retry_after_ms = getattr(error, "retry_after_ms", None)
        return (retry_after_ms or self._default_retry_after_ms) / 1000

    def _log_retry(self, retry_state) -> None:
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Received 429. Waiting {int(wait * 1000)}ms before retry "
            f"#{retry_state.attempt_number}"
        )

    def get(self, path: str) -> Any:
        """
        Issue a GET, retrying 429 responses up to max_rate_limit_retries times.

        Raises:
            RateLimitedError: If the origin is still throttling after all retries
            ServerError: For any other non-2xx response, or a 2xx body that is not valid JSON
            NetworkError: If no response was received
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._max_retries + 1),
            wait=self._wait_retry_after,
            retry=retry_if_exception_type(RateLimitedError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(self._request, path)

    def get_event_seats(self, event_id: str) -> List[SeatRecord]:
        """Fetch the seat inventory for an event."""
        payload = self.get(f"{EVENT_API_URL}/{event_id}/seats")
        try:
            return parse_seats(payload)
        except ValueError as e:
            raise ServerError(
                f"Malformed seat payload for event {event_id}: {e}", body=payload
            ) from e

    async def fetch_seats(self, event_id: str) -> List[SeatRecord]:
        """Async variant for the cache layer; the blocking call runs in a worker thread."""
        return await asyncio.to_thread(self.get_event_seats, event_id)
