"""HTTP client for the Dynamics 365 OData API."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from dynasync.adapters.http_resilience import ResilienceConfig, ResilientClient
from dynasync.config.dynamics import DynamicsConfig, get_dynamics_config
from dynasync.domain.ports.fetching import SnapshotFetcher, SnapshotFetchResult

from .schema import ODataErrorResponse, ODataPage, TokenResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from dynasync.domain.collections import CollectionSpec

log = getLogger(__name__)

# guards against a server that keeps returning the same nextLink
MAX_PAGES = 10_000


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class DynamicsAuthError(RuntimeError):
    """Raised when no access token could be obtained."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DynamicsAPIError(RuntimeError):
    """Raised when the OData API rejects a request or returns an unexpected payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class DynamicsFetcher:
    """Fetch complete collection snapshots from Dynamics.

    Every call authenticates with the client-credentials flow, then reads the
    collection's data entity page by page following ``@odata.nextLink``.
    """

    config: DynamicsConfig = field(default_factory=get_dynamics_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def __call__(self, collection: CollectionSpec) -> SnapshotFetchResult:
        return asyncio.run(self.fetch_snapshot(collection))

    async def fetch_snapshot(self, collection: CollectionSpec) -> SnapshotFetchResult:
        url: str | None = self.config.data_url(collection.endpoint)
        records: list[dict[str, object]] = []
        payload_size = 0
        pages = 0

        async with self.client_factory(self.config.resilience) as client:
            token = await self._request_token(client)
            headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
            if self.config.max_page_size:
                headers["Prefer"] = f"odata.maxpagesize={self.config.max_page_size}"

            while url is not None:
                pages += 1
                if pages > MAX_PAGES:
                    raise DynamicsAPIError(f"Too many pages while reading {collection.endpoint}")
                log.info(f"GET {url}")
                response = await client.get(url, headers=headers)
                payload_size += len(response.content)
                page = self._parse_page(response, endpoint=collection.endpoint)
                records.extend(page.value)
                url = page.next_link

        log.info(
            "Fetched %d records from %s (%d pages, %d bytes)",
            len(records),
            collection.endpoint,
            pages,
            payload_size,
        )
        return SnapshotFetchResult(
            records=records,
            endpoint=collection.endpoint,
            payload_size=payload_size,
        )

    async def _request_token(self, client: ResilientClient) -> str:
        form = {
            "grant_type": "client_credentials",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "resource": self.config.resource,
        }
        log.info(f"Requesting access token from {self.config.token_url}")
        response = await client.post(self.config.token_url, data=form)
        if response.is_error:
            log.error(f"Authentication failed with {response.status_code}: {response.text}")
            raise DynamicsAuthError(
                f"Token request failed with status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            token = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise DynamicsAuthError("Token response is not valid JSON") from exc
        if not token.access_token:
            raise DynamicsAuthError("Token response did not contain an access token")
        return token.access_token

    @staticmethod
    def _parse_page(response: httpx.Response, *, endpoint: str) -> ODataPage:
        if response.is_error:
            message = f"API error {response.status_code} for {endpoint}"
            try:
                detail = ODataErrorResponse.model_validate(response.json()).error
            except (ValueError, ValidationError):
                detail = None
            if detail is not None and detail.message:
                message = f"{message}: {detail.message}"
            log.error(message)
            raise DynamicsAPIError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise DynamicsAPIError(f"Invalid JSON received from {endpoint}") from exc
        if not isinstance(payload, dict) or "value" not in payload:
            raise DynamicsAPIError(f"Unexpected payload from {endpoint}: missing 'value'")
        try:
            return ODataPage.model_validate(payload)
        except ValidationError as exc:
            raise DynamicsAPIError(f"Unexpected payload from {endpoint}") from exc


if TYPE_CHECKING:
    _fetcher_check: SnapshotFetcher = DynamicsFetcher()
