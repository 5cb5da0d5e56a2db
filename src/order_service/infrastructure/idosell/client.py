"""IdoSell admin API HTTP client.

Only raw HTTP mechanics live here: request signing with the API key header,
fault extraction and error wrapping. Order mapping is done by the transformer.
"""

from typing import Any

import httpx
import structlog

from order_service.config import Settings
from order_service.errors import ExternalApiError

logger = structlog.get_logger()

ORDERS_SEARCH_PATH = "/orders/orders/search"


def _extract_fault(data: Any) -> tuple[int | None, str] | None:
    """Return ``(fault_code, fault_string)`` if the payload reports a fault."""
    if not isinstance(data, dict):
        return None
    errors = data.get("errors")
    if not isinstance(errors, dict):
        errors = data
    if "faultCode" not in errors:
        return None

    raw_code = errors.get("faultCode")
    try:
        fault_code = int(raw_code) if raw_code is not None else None
    except (TypeError, ValueError):
        fault_code = None
    if fault_code == 0:
        return None
    return fault_code, str(errors.get("faultString") or "")


class IdosellClient:
    """Async client for the IdoSell admin API."""

    def __init__(
        self,
        shop_url: str,
        api_key: str,
        api_version: str = "v6",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.shop_url = shop_url.rstrip("/")
        self.api_version = api_version
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "IdosellClient | None":
        """Build a client, or return None when credentials are missing."""
        if not settings.is_idosell_configured:
            logger.warning(
                "IdoSell credentials not configured",
                hint="Set IDOSELL_SHOP_URL and IDOSELL_API_KEY",
            )
            return None

        client = cls(
            shop_url=settings.idosell_shop_url,
            api_key=settings.idosell_api_key,
            api_version=settings.idosell_api_version,
            timeout=settings.idosell_api_timeout,
            transport=transport,
        )
        logger.info(
            "IdoSell API client initialized",
            shop_url=client.shop_url,
            api_version=client.api_version,
        )
        return client

    @property
    def base_url(self) -> str:
        return f"{self.shop_url}/api/admin/{self.api_version}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                headers={
                    "X-API-KEY": self._api_key,
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def search_orders(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        Run an order search.

        Args:
            params: Search parameters, sent as ``{"params": params}``

        Returns:
            Decoded response body with ``Results`` and paging counters

        Raises:
            ExternalApiError: On transport errors, timeouts, API faults and
                HTTP error statuses
        """
        try:
            response = await self._get_client().post(
                ORDERS_SEARCH_PATH, json={"params": params}
            )
        except httpx.TimeoutException as e:
            raise ExternalApiError(f"IdoSell request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ExternalApiError(f"IdoSell request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        fault = _extract_fault(data)
        if fault is not None:
            fault_code, fault_string = fault
            raise ExternalApiError(
                f"IdoSell fault {fault_code}: {fault_string}",
                status_code=response.status_code,
                fault_code=fault_code,
                fault_string=fault_string,
                response_data=data,
            )

        if response.status_code >= 400:
            raise ExternalApiError(
                f"IdoSell returned HTTP {response.status_code}",
                status_code=response.status_code,
                response_data=data if isinstance(data, dict) else None,
            )

        if not isinstance(data, dict):
            raise ExternalApiError(
                "IdoSell returned a non-JSON response",
                status_code=response.status_code,
            )

        return data

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
