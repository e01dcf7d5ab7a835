"""
DataForSEO API Client

Async HTTP client with:
- Basic auth against https://api.dataforseo.com/v3
- Automatic retry with exponential backoff for transient failures on GETs
  (billed POSTs are sent once)
- Credit usage tracking per user
- Account balance checks
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from serptrack.utils.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


class DataForSEOError(Exception):
    """Custom exception for DataForSEO API errors."""
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def _default_credit_tracker(**usage: Any) -> None:
    from serptrack.database.repository import record_credit_usage
    record_credit_usage(**usage)


class DataForSEOClient:
    """
    Async client for DataForSEO API.

    Usage:
        client = DataForSEOClient(login="your_login", password="your_password")

        result = await client.post("/serp/google/organic/live/regular", [{
            "keyword": "rank tracker",
            "location_code": 2840,
            "language_code": "en",
        }], user_id=user.id)

        await client.close()
    """

    BASE_URL = "https://api.dataforseo.com/v3"

    def __init__(
        self,
        login: str,
        password: str,
        retry_config: Optional[RetryConfig] = None,
        max_connections: int = 50,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        credit_tracker: Optional[Callable[..., None]] = None,
    ):
        """
        Initialize DataForSEO client.

        Args:
            login: DataForSEO login email
            password: DataForSEO API password
            retry_config: Retry configuration (optional)
            max_connections: Maximum concurrent connections
            timeout: Request timeout in seconds
            transport: Custom httpx transport (mock transports in tests)
            credit_tracker: Callable receiving credit usage keyword arguments
        """
        self.login = login
        self.password = password
        self.retry_config = retry_config or RetryConfig()
        self.credit_tracker = credit_tracker or _default_credit_tracker

        credentials = f"{login}:{password}"
        auth_token = base64.b64encode(credentials.encode()).decode()

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Basic {auth_token}",
                "Content-Type": "application/json",
            },
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_connections // 2,
            ),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

        self._closed = False

    # =========================================================================
    # REQUESTS
    # =========================================================================

    async def request(
        self,
        endpoint: str,
        method: str = "POST",
        data: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = None,
        user_id: Optional[Any] = None,
        retry: bool = True,
    ) -> Dict[str, Any]:
        """
        Make a request to DataForSEO with credit tracking.

        Args:
            endpoint: API path (e.g., "/serp/google/organic/task_post")
            method: "POST" or "GET"
            data: Task payload; a single object is wrapped in a list
            user_id: User to bill credits to (no tracking when None)
            retry: Whether to retry transient failures; only GETs are retried

        Returns:
            API response as dictionary

        Raises:
            DataForSEOError: On HTTP or API error
        """
        if self._closed:
            raise DataForSEOError("Client is closed")

        path = "/" + endpoint.lstrip("/")
        body = None
        if method == "POST" and data is not None:
            body = data if isinstance(data, list) else [data]

        retries = self.retry_config.max_retries if retry and method == "GET" else 0
        return await self._request_with_retry(method, path, body, user_id, retries)

    async def post(
        self,
        endpoint: str,
        data: Union[Dict[str, Any], List[Dict[str, Any]]],
        user_id: Optional[Any] = None,
    ) -> Dict[str, Any]:
        """POST a task payload."""
        return await self.request(endpoint, "POST", data, user_id)

    async def get(self, endpoint: str, user_id: Optional[Any] = None) -> Dict[str, Any]:
        """GET an endpoint (tasks_ready, task_get)."""
        return await self.request(endpoint, "GET", None, user_id)

    async def _make_request(
        self,
        method: str,
        path: str,
        body: Optional[List[Dict]],
        user_id: Optional[Any],
    ) -> Dict[str, Any]:
        """Make a single HTTP request."""
        logger.debug(f"{method} {path}")

        if method == "POST":
            response = await self._client.post(path, json=body)
        else:
            response = await self._client.get(path)

        if not response.is_success:
            raise DataForSEOError(
                f"DataForSEO API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        result = response.json()

        if result.get("cost") and user_id:
            self._track_credit_usage(
                user_id=user_id,
                api_endpoint=path,
                credits_used=result["cost"],
                request_params=body,
                response_status=result.get("status_code"),
            )

        if result.get("status_code") != 20000:
            raise DataForSEOError(
                f"DataForSEO API error: {result.get('status_message')} "
                f"(Code: {result.get('status_code')})",
                status_code=result.get("status_code"),
                response=result,
            )

        return result

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        body: Optional[List[Dict]],
        user_id: Optional[Any],
        max_retries: int,
    ) -> Dict[str, Any]:
        """Make request with automatic retry on transient failure."""
        last_exception = None
        delay = self.retry_config.initial_delay

        for attempt in range(max_retries + 1):
            try:
                return await self._make_request(method, path, body, user_id)

            except DataForSEOError as e:
                last_exception = e

                # API-level codes and client errors are final
                if e.status_code not in self.retry_config.retryable_status_codes:
                    raise

            except httpx.TimeoutException as e:
                last_exception = DataForSEOError(f"Request timed out: {e}")

            except httpx.HTTPError as e:
                last_exception = DataForSEOError(f"HTTP error: {e}")

            if attempt < max_retries:
                logger.warning(
                    f"Request to {path} failed (attempt {attempt + 1}/"
                    f"{max_retries + 1}): {last_exception}. "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                delay = min(
                    delay * self.retry_config.exponential_base,
                    self.retry_config.max_delay,
                )

        logger.error(f"DataForSEO API request failed for {path}: {last_exception}")
        raise last_exception

    def _track_credit_usage(self, **usage: Any) -> None:
        """Record credit usage; never fails the request."""
        usage["timestamp"] = datetime.utcnow()
        try:
            self.credit_tracker(**usage)
            logger.info(f"Tracked {usage['credits_used']} credits for {usage['api_endpoint']}")
        except Exception as e:
            logger.error(f"Failed to track credit usage: {e}")

    # =========================================================================
    # ACCOUNT
    # =========================================================================

    async def get_account_balance(self) -> float:
        """Current account balance in USD, or 0 when it cannot be read."""
        try:
            response = await self._client.get("/appendix/user_data")
            if not response.is_success:
                raise DataForSEOError("Failed to get account balance", status_code=response.status_code)

            data = response.json()
            tasks = data.get("tasks") or []
            if tasks and tasks[0].get("result"):
                money = tasks[0]["result"][0].get("money") or {}
                return money.get("balance") or 0
            return 0
        except Exception as e:
            logger.error(f"Failed to get account balance: {e}")
            return 0

    async def has_sufficient_balance(self, estimated_cost: float) -> bool:
        """Check the balance covers an estimated cost; allows the call when unknown."""
        try:
            balance = await self.get_account_balance()
            return balance >= estimated_cost
        except Exception as e:
            logger.warning(f"Could not verify account balance: {e}")
            return True

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# Process-wide instance
_client: Optional[DataForSEOClient] = None


def get_dataforseo_client() -> DataForSEOClient:
    """Get or create the shared client from settings."""
    global _client
    if _client is None:
        settings = get_settings()
        if not settings.DATAFORSEO_LOGIN or not settings.DATAFORSEO_PASSWORD:
            raise DataForSEOError("DataForSEO credentials not found in environment variables")
        _client = DataForSEOClient(
            login=settings.DATAFORSEO_LOGIN,
            password=settings.DATAFORSEO_PASSWORD,
            timeout=settings.API_TIMEOUT,
        )
    return _client


def set_dataforseo_client(client: Optional[DataForSEOClient]) -> None:
    """Replace the shared client (None resets it)."""
    global _client
    _client = client
