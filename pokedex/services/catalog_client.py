"""HTTP access to the remote catalog.

The client issues exactly one request per call and never retries; retrying is
left to the controller and ultimately to the user. Every failure leaves this
module as a :class:`~pokedex.schemas.error.CatalogError` so callers only deal
with the closed :class:`~pokedex.schemas.error.ErrorKind` taxonomy.
"""

from __future__ import annotations

import json
import logging
from types import TracebackType
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from pokedex.schemas.catalog import (
    CatalogPage,
    CatalogPagePayload,
    ItemDetail,
    ItemDetailPayload,
    ListItem,
)
from pokedex.schemas.error import CatalogError, ErrorKind
from pokedex.settings import (
    DEFAULT_API_BASE_URL,
    DEFAULT_CATALOG_RESOURCE,
    DEFAULT_IMAGE_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
    AppSettings,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class CatalogClientProtocol(Protocol):
    """Remote surface required by :class:`~pokedex.services.catalog_controller.CatalogController`."""

    async def fetch_page(self, offset: int, limit: int) -> CatalogPage:
        """Return one page of list entries starting at ``offset``."""

    async def fetch_detail(self, item_id: str) -> ItemDetail:
        """Return the detail record for ``item_id``."""


class CatalogClient:
    """``httpx`` backed implementation of :class:`CatalogClientProtocol`."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        resource: str = DEFAULT_CATALOG_RESOURCE,
        image_base_url: str = DEFAULT_IMAGE_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._resource = resource.strip("/")
        self._image_base_url = image_base_url
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            headers={"User-Agent": user_agent},
            timeout=timeout,
        )

    @classmethod
    def from_settings(
        cls, active_settings: AppSettings, *, http_client: httpx.AsyncClient | None = None
    ) -> "CatalogClient":
        return cls(
            base_url=active_settings.api_base_url,
            resource=active_settings.catalog_resource,
            image_base_url=active_settings.image_base_url,
            timeout=active_settings.request_timeout_seconds,
            user_agent=active_settings.user_agent,
            http_client=http_client,
        )

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client when this instance created it."""

        if self._owns_http_client:
            await self._http.aclose()

    # -- public API ----------------------------------------------------------

    async def fetch_page(self, offset: int, limit: int) -> CatalogPage:
        if offset < 0 or limit < 1:
            raise CatalogError.from_kind(
                ErrorKind.BAD_URL, detail=f"invalid page window offset={offset} limit={limit}"
            )

        url = f"{self._base_url}/{self._resource}"
        payload = await self._get_json(url, params={"limit": limit, "offset": offset})

        try:
            page = CatalogPagePayload.model_validate(payload)
            items = [
                ListItem.from_resource(
                    entry.name, entry.url, image_base_url=self._image_base_url
                )
                for entry in page.results[:limit]
            ]
        except (ValidationError, ValueError) as exc:
            raise CatalogError.from_kind(ErrorKind.DECODING_ERROR, detail=str(exc)) from exc

        has_next = page.next is not None and len(items) == limit
        logger.debug(
            "Fetched catalog page offset=%s limit=%s (%s items, has_next=%s)",
            offset,
            limit,
            len(items),
            has_next,
        )
        return CatalogPage(items=items, has_next=has_next)

    async def fetch_detail(self, item_id: str) -> ItemDetail:
        slug = str(item_id).strip().strip("/")
        if not slug or "/" in slug:
            raise CatalogError.from_kind(ErrorKind.BAD_URL, detail=f"invalid id {item_id!r}")

        payload = await self._get_json(f"{self._base_url}/{self._resource}/{slug}")

        try:
            return ItemDetailPayload.model_validate(payload).to_detail(
                image_base_url=self._image_base_url
            )
        except ValidationError as exc:
            raise CatalogError.from_kind(ErrorKind.DECODING_ERROR, detail=str(exc)) from exc

    # -- transport -----------------------------------------------------------

    async def _get_json(self, url: str, *, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._http.get(url, params=params)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise CatalogError.from_kind(ErrorKind.BAD_URL, detail=str(exc)) from exc
        except httpx.ConnectError as exc:
            logger.warning(f"Catalog host unreachable for {url}: {exc}")
            raise CatalogError.from_kind(
                ErrorKind.NO_INTERNET_CONNECTION, detail=str(exc)
            ) from exc
        except httpx.DecodingError as exc:
            logger.warning(f"Catalog response from {url} could not be decoded: {exc}")
            raise CatalogError.from_kind(ErrorKind.DECODING_ERROR, detail=str(exc)) from exc
        except httpx.HTTPError as exc:
            # Remaining transport failures, redirect loops and the like.
            logger.warning(f"Catalog request failed for {url}: {exc}")
            raise CatalogError.from_kind(ErrorKind.UNKNOWN, detail=str(exc)) from exc

        if not response.is_success:
            logger.warning("Catalog request %s returned HTTP %s", url, response.status_code)
            raise CatalogError.server_error(response.status_code)

        if not response.content.strip():
            raise CatalogError.from_kind(ErrorKind.BAD_RESPONSE, detail="empty body")

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CatalogError.from_kind(ErrorKind.DECODING_ERROR, detail=str(exc)) from exc


__all__ = ["CatalogClient", "CatalogClientProtocol"]
