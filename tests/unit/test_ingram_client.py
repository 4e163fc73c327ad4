import httpx
import pytest

from freight_bridge.core.exceptions import IngramAuthError, IngramFreightError
from freight_bridge.services.ingram_client import (
    FREIGHT_URL,
    OAUTH_URL,
    SANDBOX_FREIGHT_URL,
    IngramClient,
    build_freight_headers,
)


def make_client(handler):
    client = IngramClient(timeout=5.0)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=client.timeout)
    return client


@pytest.mark.asyncio
async def test_fetch_access_token_posts_form():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["body"] = request.content.decode()
        return httpx.Response(200, json={"access_token": "tok", "expires_in": 86399})

    client = make_client(handler)
    token, expires_in = await client.fetch_access_token("cid", "secret")
    await client.close()

    assert (token, expires_in) == ("tok", 86399)
    assert seen["url"] == httpx.URL(OAUTH_URL)
    assert "grant_type=client_credentials" in seen["body"]
    assert "client_id=cid" in seen["body"]


@pytest.mark.asyncio
async def test_fetch_access_token_defaults_expiry():
    client = make_client(lambda request: httpx.Response(200, json={"access_token": "tok"}))
    _, expires_in = await client.fetch_access_token("cid", "secret")
    await client.close()

    assert expires_in == 3600


@pytest.mark.asyncio
async def test_fetch_access_token_rejects_error_status():
    client = make_client(lambda request: httpx.Response(401, json={"error": "invalid_client"}))

    with pytest.raises(IngramAuthError) as exc_info:
        await client.fetch_access_token("cid", "bad")
    await client.close()

    assert exc_info.value.status == 401
    assert exc_info.value.details["response"] == {"error": "invalid_client"}


@pytest.mark.asyncio
async def test_fetch_access_token_requires_token_in_body():
    client = make_client(lambda request: httpx.Response(200, json={"expires_in": 10}))

    with pytest.raises(IngramAuthError):
        await client.fetch_access_token("cid", "secret")
    await client.close()


@pytest.mark.asyncio
async def test_freight_estimate_sends_ingram_headers(ingram_credentials):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["headers"] = request.headers
        return httpx.Response(200, json={"freightEstimateResponse": {"distribution": []}})

    client = make_client(handler)
    data = await client.request_freight_estimate(ingram_credentials, "tok", {"lines": []}, "corr-1")
    await client.close()

    assert data == {"freightEstimateResponse": {"distribution": []}}
    assert seen["url"] == httpx.URL(SANDBOX_FREIGHT_URL)
    assert seen["headers"]["Authorization"] == "Bearer tok"
    assert seen["headers"]["IM-CustomerNumber"] == "20-222222"
    assert seen["headers"]["IM-CorrelationID"] == "corr-1"
    assert seen["headers"]["IM-SenderID"] == "SENDER"


@pytest.mark.asyncio
async def test_freight_estimate_uses_production_url(ingram_credentials):
    ingram_credentials.sandbox = False
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={})

    client = make_client(handler)
    await client.request_freight_estimate(ingram_credentials, "tok", {}, "corr-1")
    await client.close()

    assert seen["url"] == httpx.URL(FREIGHT_URL)


@pytest.mark.asyncio
async def test_freight_estimate_error_status(ingram_credentials):
    client = make_client(lambda request: httpx.Response(500, json={"errors": ["boom"]}))

    with pytest.raises(IngramFreightError) as exc_info:
        await client.request_freight_estimate(ingram_credentials, "tok", {}, "corr-1")
    await client.close()

    assert exc_info.value.message == "Failed to fetch freight estimate"
    assert exc_info.value.status == 500


@pytest.mark.asyncio
async def test_freight_estimate_network_error(ingram_credentials):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)

    with pytest.raises(IngramFreightError):
        await client.request_freight_estimate(ingram_credentials, "tok", {}, "corr-1")
    await client.close()


def test_sender_header_omitted_when_blank(ingram_credentials):
    ingram_credentials.sender_id = None
    headers = build_freight_headers(ingram_credentials, "tok", "corr-1")

    assert "IM-SenderID" not in headers
    assert headers["IM-CustomerContact"] == "ops@example.com"
