"""Tests for the HTTP catalog client and its error mapping."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest

from pokedex.cache import CacheStore, InMemoryKeyValueBackend
from pokedex.schemas.error import CatalogError, ErrorKind
from pokedex.services.catalog_client import CatalogClient, CatalogClientProtocol
from pokedex.services.catalog_controller import CatalogController
from pokedex.services.connectivity import ConnectivityObserver

BASE_URL = "https://pokeapi.test/api/v2"

Handler = Callable[[httpx.Request], httpx.Response]


def _catalog_handler(total: int = 25, *, always_next: bool = False) -> Handler:
    """Serve ``total`` sequential entries the way the public API paginates."""

    def handler(request: httpx.Request) -> httpx.Response:
        segments = [segment for segment in request.url.path.split("/") if segment]
        if segments[-1] == "pokemon":
            limit = int(request.url.params["limit"])
            offset = int(request.url.params["offset"])
            end = min(offset + limit, total)
            results = [
                {"name": f"mon-{number}", "url": f"{BASE_URL}/pokemon/{number}/"}
                for number in range(offset + 1, end + 1)
            ]
            has_more = always_next or end < total
            return httpx.Response(
                200,
                json={
                    "count": total,
                    "next": f"{BASE_URL}/pokemon?offset={end}&limit={limit}" if has_more else None,
                    "previous": None,
                    "results": results,
                },
            )

        number = int(segments[-1])
        return httpx.Response(
            200,
            json={
                "id": number,
                "name": f"mon-{number}",
                "base_experience": 64,
                "height": 7,
                "weight": 69,
                "sprites": {
                    "other": {"official-artwork": {"front_default": f"https://img.test/{number}.png"}}
                },
            },
        )

    return handler


def _client(handler: Handler) -> CatalogClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CatalogClient(base_url=BASE_URL, http_client=http_client)


def test_client_satisfies_protocol() -> None:
    assert isinstance(_client(_catalog_handler()), CatalogClientProtocol)


@pytest.mark.asyncio
async def test_fetch_page_returns_full_page_with_cursor() -> None:
    seen: list[httpx.Request] = []
    inner = _catalog_handler()

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return inner(request)

    page = await _client(handler).fetch_page(0, 10)

    assert [item.slug for item in page.items] == [str(n) for n in range(1, 11)]
    assert page.has_next is True
    assert seen[0].url.params["limit"] == "10"
    assert seen[0].url.params["offset"] == "0"


@pytest.mark.asyncio
async def test_fetch_page_last_page_reports_no_next() -> None:
    page = await _client(_catalog_handler()).fetch_page(20, 10)

    assert len(page.items) == 5
    assert page.has_next is False


@pytest.mark.asyncio
async def test_short_page_never_reports_next() -> None:
    """Fewer than ``limit`` entries means the end, whatever the cursor says."""

    page = await _client(_catalog_handler(always_next=True)).fetch_page(20, 10)

    assert len(page.items) == 5
    assert page.has_next is False


@pytest.mark.asyncio
async def test_oversized_page_is_truncated_to_limit() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        results = [{"name": f"mon-{n}", "url": f"{BASE_URL}/pokemon/{n}/"} for n in range(1, 8)]
        return httpx.Response(200, json={"count": 7, "next": None, "results": results})

    page = await _client(handler).fetch_page(0, 5)

    assert len(page.items) == 5


@pytest.mark.asyncio
async def test_fetch_detail_decodes_nested_artwork() -> None:
    detail = await _client(_catalog_handler()).fetch_detail("25")

    assert detail.id == 25
    assert detail.base_experience == 64
    assert detail.image_url == "https://img.test/25.png"


@pytest.mark.asyncio
@pytest.mark.parametrize(("offset", "limit"), [(-1, 10), (0, 0)])
async def test_invalid_page_window_is_bad_url(offset: int, limit: int) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(CatalogError) as excinfo:
        await _client(handler).fetch_page(offset, limit)

    assert excinfo.value.kind is ErrorKind.BAD_URL
    assert calls == []


@pytest.mark.asyncio
async def test_blank_detail_id_is_bad_url() -> None:
    with pytest.raises(CatalogError) as excinfo:
        await _client(_catalog_handler()).fetch_detail("  ")

    assert excinfo.value.kind is ErrorKind.BAD_URL


@pytest.mark.asyncio
async def test_non_success_status_maps_to_server_error() -> None:
    client = _client(lambda request: httpx.Response(404, text="Not Found"))

    with pytest.raises(CatalogError) as excinfo:
        await client.fetch_detail("99999")

    assert excinfo.value.kind is ErrorKind.SERVER_ERROR
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_empty_body_maps_to_bad_response() -> None:
    client = _client(lambda request: httpx.Response(200, content=b""))

    with pytest.raises(CatalogError) as excinfo:
        await client.fetch_page(0, 10)

    assert excinfo.value.kind is ErrorKind.BAD_RESPONSE


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [b"<html>maintenance</html>", b'{"results": "nope"}', b"[1, 2, 3]"],
)
async def test_undecodable_body_maps_to_decoding_error(body: bytes) -> None:
    client = _client(lambda request: httpx.Response(200, content=body))

    with pytest.raises(CatalogError) as excinfo:
        await client.fetch_page(0, 10)

    assert excinfo.value.kind is ErrorKind.DECODING_ERROR


@pytest.mark.asyncio
async def test_detail_missing_fields_maps_to_decoding_error() -> None:
    client = _client(lambda request: httpx.Response(200, json={"id": 1, "name": "x"}))

    with pytest.raises(CatalogError) as excinfo:
        await client.fetch_detail("1")

    assert excinfo.value.kind is ErrorKind.DECODING_ERROR


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("exception", "kind"),
    [
        (httpx.ConnectError, ErrorKind.NO_INTERNET_CONNECTION),
        (httpx.ReadTimeout, ErrorKind.UNKNOWN),
        (httpx.UnsupportedProtocol, ErrorKind.BAD_URL),
        (httpx.TooManyRedirects, ErrorKind.UNKNOWN),
    ],
)
async def test_transport_failures_are_mapped(
    exception: type[httpx.RequestError], kind: ErrorKind
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exception("simulated failure", request=request)

    with pytest.raises(CatalogError) as excinfo:
        await _client(handler).fetch_page(0, 10)

    assert excinfo.value.kind is kind


def _corrupt_gzip_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all"
    )


@pytest.mark.asyncio
async def test_corrupt_content_encoding_maps_to_decoding_error() -> None:
    with pytest.raises(CatalogError) as excinfo:
        await _client(_corrupt_gzip_handler).fetch_page(0, 10)

    assert excinfo.value.kind is ErrorKind.DECODING_ERROR


@pytest.mark.asyncio
async def test_corrupt_content_encoding_surfaces_as_controller_error() -> None:
    connectivity = ConnectivityObserver()
    controller = CatalogController(
        _client(_corrupt_gzip_handler), CacheStore(InMemoryKeyValueBackend()), connectivity
    )

    await controller.load_list(refresh=True)

    assert controller.state.error is not None
    assert controller.state.error.kind is ErrorKind.DECODING_ERROR
    assert controller.state.is_loading is False


@pytest.mark.asyncio
async def test_owned_http_client_is_closed() -> None:
    async with CatalogClient(base_url=BASE_URL) as client:
        http_client = client._http
    assert http_client.is_closed


@pytest.mark.asyncio
async def test_borrowed_http_client_stays_open() -> None:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_catalog_handler()))
    async with CatalogClient(base_url=BASE_URL, http_client=http_client):
        pass
    assert not http_client.is_closed
    await http_client.aclose()
