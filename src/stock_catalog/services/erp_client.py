"""ERP HTTP client: the catalog source backing the browser.

Fetches the nested catalog tree with balances and the warehouse registry
from the ERP's HTTP service and decodes them with catalog_tree_service.
Every failure surfaces as FetchFailure so the browser can keep its last
good state.
"""

import asyncio
import base64
import logging
from typing import Any, Optional, Tuple

import httpx

from stock_catalog.services.catalog_tree_service import (
    CatalogNode,
    Warehouse,
    count_leaves,
    parse_catalog,
    parse_warehouses,
)
from stock_catalog.services.exceptions import FetchFailure, ValidationError
from stock_catalog.services.logging_utils import get_service_logger, log_operation
from stock_catalog.utils.config import get_config
from stock_catalog.utils.constants import (
    ERP_CATALOG_ENDPOINT,
    ERP_ERROR_BODY_LIMIT,
    ERP_REQUEST_TIMEOUT_SECONDS,
    ERP_RETRY_DELAY_SECONDS,
    ERP_WAREHOUSES_ENDPOINT,
)

logger = get_service_logger(__name__)

GATEWAY_TIMEOUT_MESSAGE = (
    "ERP did not answer in time (502). This is usually a proxy timeout on a "
    "long ERP response; retry the request or check that the ERP is available."
)
REQUEST_TIMEOUT_MESSAGE = "ERP request timed out. The service is responding too slowly."


def build_basic_auth_header(username: str, password: str) -> str:
    """Basic auth header with UTF-8 encoded credentials (logins may be Cyrillic)."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def _is_retryable(error: httpx.HTTPError) -> bool:
    """Connection setup failures and dropped connections are worth one retry."""
    return isinstance(error, (httpx.ConnectTimeout, httpx.NetworkError))


class ErpClient:
    """
    Async client for the ERP HTTP service.

    Each GET is retried once after ``retry_delay`` seconds when the
    connection could not be established or broke. Read timeouts and error
    responses are not retried.

    Example:
        >>> async with ErpClient.from_config() as erp:
        ...     tree = await erp.fetch_catalog()
    """

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        timeout: float = ERP_REQUEST_TIMEOUT_SECONDS,
        retry_delay: float = ERP_RETRY_DELAY_SECONDS,
        catalog_endpoint: str = ERP_CATALOG_ENDPOINT,
        warehouses_endpoint: str = ERP_WAREHOUSES_ENDPOINT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.retry_delay = retry_delay
        self.catalog_endpoint = catalog_endpoint
        self.warehouses_endpoint = warehouses_endpoint
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "Authorization": build_basic_auth_header(username, password),
            },
        )

    @classmethod
    def from_config(cls, **kwargs: Any) -> "ErpClient":
        """Build a client from the ERP settings of get_config()."""
        config = get_config()
        return cls(
            base_url=config.erp_base_url,
            username=config.erp_username,
            password=config.erp_password,
            **kwargs,
        )

    async def __aenter__(self) -> "ErpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_once(self, endpoint: str, source: str) -> Any:
        response = await self._client.get(endpoint)
        if response.status_code == 502:
            raise FetchFailure(source, GATEWAY_TIMEOUT_MESSAGE, status_code=502)
        if response.is_error:
            body = response.text[:ERP_ERROR_BODY_LIMIT]
            detail = f" | {body}" if body else ""
            raise FetchFailure(
                source,
                f"ERP API error: {response.status_code} {response.reason_phrase}{detail}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise FetchFailure(source, f"Invalid JSON in ERP response: {e}") from e

    async def get(self, endpoint: str, source: str) -> Any:
        """
        GET ``endpoint`` and return the decoded JSON body.

        Raises:
            FetchFailure: On network errors, timeouts and non-success responses
        """
        try:
            try:
                return await self._get_once(endpoint, source)
            except httpx.HTTPError as e:
                if not _is_retryable(e):
                    raise
                log_operation(
                    logger,
                    operation="erp_get",
                    outcome="retrying",
                    level=logging.WARNING,
                    endpoint=endpoint,
                    error=str(e) or type(e).__name__,
                    delay=self.retry_delay,
                )
                await asyncio.sleep(self.retry_delay)
                return await self._get_once(endpoint, source)
        except httpx.TimeoutException as e:
            log_operation(logger, operation="erp_get", outcome="timeout", level=logging.ERROR, endpoint=endpoint)
            raise FetchFailure(source, REQUEST_TIMEOUT_MESSAGE) from e
        except httpx.HTTPError as e:
            log_operation(
                logger,
                operation="erp_get",
                outcome="error",
                level=logging.ERROR,
                endpoint=endpoint,
                error=str(e) or type(e).__name__,
            )
            raise FetchFailure(source, f"Failed to connect to ERP: {e}") from e

    async def fetch_catalog(self) -> Tuple[CatalogNode, ...]:
        """Fetch and decode the full catalog tree with balances."""
        payload = await self.get(self.catalog_endpoint, "catalog")
        try:
            tree = parse_catalog(payload)
        except ValidationError as e:
            raise FetchFailure("catalog", str(e)) from e
        log_operation(logger, operation="fetch_catalog", outcome="success", leaves=count_leaves(tree))
        return tree

    async def fetch_warehouses(self) -> Tuple[Warehouse, ...]:
        """Fetch and decode the warehouse registry."""
        payload = await self.get(self.warehouses_endpoint, "warehouses")
        warehouses = parse_warehouses(payload)
        log_operation(logger, operation="fetch_warehouses", outcome="success", count=len(warehouses))
        return warehouses
