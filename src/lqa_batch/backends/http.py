"""HTTP analysis backend.

POSTs one JSON request per item to an analysis endpoint and hands the
response body back for parsing. The endpoint may answer with the report
itself or with an envelope ``{"report": ...}``.
"""

from __future__ import annotations

import os
import time
from typing import Any

import httpx

from lqa_batch.backends.base import AnalysisBackend
from lqa_batch.core.errors import NetworkError
from lqa_batch.core.logging import get_logger
from lqa_batch.items import AnalysisItem

_logger = get_logger("backend.http")


class HttpAnalysisBackend(AnalysisBackend):
    """Analyze items through a remote HTTP service.

    Uses httpx.AsyncClient. Transport failures and non-2xx responses are
    raised as ``NetworkError`` so the retry loop can try again.

    Attributes:
        endpoint: Full URL the requests are POSTed to.
        timeout: Transport timeout in seconds. Keep it above the batch
            deadline; the attempt deadline is enforced by the executor.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        api_key: str | None = None,
        timeout: float = 60.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP backend.

        Args:
            endpoint: Analysis endpoint URL.
            api_key: Bearer token sent in the Authorization header.
            timeout: Transport timeout in seconds.
            headers: Extra request headers.
            transport: Custom httpx transport (tests use MockTransport).
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self._api_key = api_key
        self._extra_headers = dict(headers or {})
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return f"http:{httpx.URL(self.endpoint).host}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **self._extra_headers}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client.

        Lazy so the client is created inside the running event loop.
        """
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    @staticmethod
    def build_request(item: AnalysisItem) -> dict[str, Any]:
        return {
            "itemId": item.id,
            "name": item.name,
            "targetLocale": item.target_locale,
            "source": item.source,
            "target": item.target,
        }

    async def analyze(self, item: AnalysisItem) -> Any:
        start_time = time.monotonic()
        _logger.debug("http.request", item_id=item.id, endpoint=self.endpoint)

        try:
            client = await self._get_client()
            response = await client.post(self.endpoint, json=self.build_request(item))
        except httpx.TimeoutException as e:
            _logger.warning(
                "http.request_timeout",
                item_id=item.id,
                timeout_seconds=self.timeout,
                endpoint=self.endpoint,
            )
            raise NetworkError(
                f"Request timed out after {self.timeout:g}s", item_id=item.id, original_error=e
            ) from e
        except httpx.HTTPError as e:
            _logger.warning(
                "http.connection_error",
                item_id=item.id,
                endpoint=self.endpoint,
                error_message=str(e),
            )
            raise NetworkError(
                f"Connection error: {e}", item_id=item.id, original_error=e
            ) from e

        duration = time.monotonic() - start_time
        if not response.is_success:
            _logger.error(
                "http.error_response",
                item_id=item.id,
                status_code=response.status_code,
                duration_seconds=duration,
                response_text=response.text[:500] if response.text else None,
            )
            raise NetworkError(
                f"HTTP {response.status_code}: {response.text[:200]}", item_id=item.id
            )

        _logger.info(
            "http.response",
            item_id=item.id,
            status_code=response.status_code,
            duration_seconds=duration,
            response_length=len(response.text),
        )
        return self._unwrap(response)

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        # Bodies that are not JSON go to the parser as text (it strips fences)
        try:
            data = response.json()
        except ValueError:
            return response.text
        if isinstance(data, dict) and "report" in data and "overall" not in data:
            return data["report"]
        return data

    async def close(self) -> None:
        """Close the HTTP client connection."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


def api_key_from_env(var_name: str | None) -> str | None:
    """Read a bearer token from the environment, if a variable is named."""
    if not var_name:
        return None
    value = os.environ.get(var_name)
    if value is None:
        _logger.warning("http.api_key_missing", env_var=var_name)
    return value
