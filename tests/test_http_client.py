# tests/test_http_client.py
from unittest.mock import AsyncMock

import httpx
import pytest

from app.core.enums import PlatformName
from app.core.exceptions import (
    ListingNotFoundError,
    RateLimitedError,
    TransientNetworkError,
    ValidationRejectedError,
)
from app.services.http_client import BasePlatformClient, raise_for_platform_status
from tests.mocks.http_responses import mock_response
from tests.mocks.mock_platform import MockAdapter


@pytest.fixture
def http(mocker):
    mock_client = mocker.patch("httpx.AsyncClient")
    return mock_client.return_value.__aenter__.return_value


class ExampleClient(BasePlatformClient):
    PLATFORM = "Example"
    BASE_URL = "https://api.example.test/v1"


"""
1. Status mapping
"""

def test_success_statuses_pass():
    raise_for_platform_status("Example", mock_response(200))
    raise_for_platform_status("Example", mock_response(204))


def test_not_found():
    with pytest.raises(ListingNotFoundError):
        raise_for_platform_status("Example", mock_response(404, {"error": "missing"}))


def test_rate_limited_reads_retry_after():
    response = mock_response(429, {"error": "slow down"})
    response.headers = {"Retry-After": "30"}

    with pytest.raises(RateLimitedError) as exc_info:
        raise_for_platform_status("Example", response)
    assert exc_info.value.retry_after == 30.0


def test_server_error_is_transient():
    with pytest.raises(TransientNetworkError):
        raise_for_platform_status("Example", mock_response(502))


def test_client_error_keeps_payload():
    payload = {"errors": [{"errorId": 25002}]}
    with pytest.raises(ValidationRejectedError) as exc_info:
        raise_for_platform_status("Example", mock_response(400, payload))
    assert exc_info.value.payload == payload
    assert exc_info.value.status_code == 400


"""
2. Requests
"""

@pytest.mark.asyncio
async def test_make_request(http):
    http.request.return_value = mock_response(200, {"ok": True})

    data = await ExampleClient("secret-token")._make_request("POST", "/items", data={"a": 1}, params={"q": "x"})

    assert data == {"ok": True}
    kwargs = http.request.call_args.kwargs
    assert kwargs["url"] == "https://api.example.test/v1/items"
    assert kwargs["json"] == {"a": 1}
    assert kwargs["params"] == {"q": "x"}
    assert kwargs["headers"]["Authorization"] == "Bearer secret-token"


@pytest.mark.asyncio
async def test_empty_response_returns_empty_dict(http):
    http.request.return_value = mock_response(204)

    assert await ExampleClient("t")._make_request("DELETE", "items/1") == {}


@pytest.mark.asyncio
async def test_multipart_request_drops_json_content_type(http):
    http.request.return_value = mock_response(201, {"id": 1})

    await ExampleClient("t")._make_request("POST", "images", data={"rank": "1"}, files={"image": ("a.jpg", b"x")})

    kwargs = http.request.call_args.kwargs
    assert "Content-Type" not in kwargs["headers"]
    assert kwargs["data"] == {"rank": "1"}
    assert "json" not in kwargs


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")])
async def test_network_errors_are_transient(http, error):
    http.request.side_effect = error

    with pytest.raises(TransientNetworkError):
        await ExampleClient("t")._make_request("GET", "items")


"""
3. Adapter retries
"""

@pytest.mark.asyncio
async def test_with_retries_backs_off(mocker):
    sleep = mocker.patch("app.integrations.base.asyncio.sleep", new_callable=AsyncMock)
    adapter = MockAdapter(PlatformName.EBAY)
    adapter.retry_attempts = 3
    adapter.retry_backoff = 1.0
    operation = AsyncMock(side_effect=[
        RateLimitedError("429", retry_after=5),
        TransientNetworkError("503"),
        {"listingId": "123"},
    ])

    result = await adapter._with_retries(operation, "publish offer")

    assert result == {"listingId": "123"}
    assert [c.args[0] for c in sleep.call_args_list] == [5, 2.0]


@pytest.mark.asyncio
async def test_with_retries_gives_up(mocker):
    mocker.patch("app.integrations.base.asyncio.sleep", new_callable=AsyncMock)
    adapter = MockAdapter(PlatformName.EBAY)
    adapter.retry_attempts = 2
    operation = AsyncMock(side_effect=TransientNetworkError("503"))

    with pytest.raises(TransientNetworkError):
        await adapter._with_retries(operation, "publish offer")
    assert operation.await_count == 2


@pytest.mark.asyncio
async def test_validation_errors_are_not_retried(mocker):
    sleep = mocker.patch("app.integrations.base.asyncio.sleep", new_callable=AsyncMock)
    adapter = MockAdapter(PlatformName.EBAY)
    adapter.retry_attempts = 3
    operation = AsyncMock(side_effect=ValidationRejectedError("bad title"))

    with pytest.raises(ValidationRejectedError):
        await adapter._with_retries(operation, "create offer")
    assert operation.await_count == 1
    sleep.assert_not_called()
