import json

import httpx
import pytest

from freight_bridge.core.exceptions import ShopifyAdminError
from freight_bridge.services.shopify_admin import ShopifyAdminClient, rates_callback_url

CALLBACK = "https://freight.example.com/api/ingram/rates"


def test_rates_callback_url_strips_trailing_slash():
    assert rates_callback_url("https://freight.example.com/") == CALLBACK


@pytest.mark.asyncio
async def test_register_creates_when_missing():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"carrier_services": [
                {"id": 1, "callback_url": "https://other.example.com/rates"},
            ]})
        return httpx.Response(201, json={"carrier_service": {"id": 2, "callback_url": CALLBACK}})

    async with ShopifyAdminClient(
        "shop.myshopify.com", "shpat_test", api_version="2025-01", transport=httpx.MockTransport(handler)
    ) as client:
        service = await client.register_carrier_service(name="Ingram Freight", callback_url=CALLBACK)

    assert service["id"] == 2
    post = requests[1]
    assert post.url == httpx.URL("https://shop.myshopify.com/admin/api/2025-01/carrier_services.json")
    assert post.headers["X-Shopify-Access-Token"] == "shpat_test"
    assert json.loads(post.content)["carrier_service"] == {
        "name": "Ingram Freight",
        "callback_url": CALLBACK,
        "service_discovery": True,
        "carrier_service_type": "api",
    }


@pytest.mark.asyncio
async def test_register_returns_existing():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        return httpx.Response(200, json={"carrier_services": [{"id": 7, "callback_url": CALLBACK}]})

    async with ShopifyAdminClient("shop.myshopify.com", "t", transport=httpx.MockTransport(handler)) as client:
        service = await client.register_carrier_service(callback_url=CALLBACK)

    assert service["id"] == 7


@pytest.mark.asyncio
async def test_error_status_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"errors": "Invalid API key"}))

    async with ShopifyAdminClient("shop.myshopify.com", "bad", transport=transport) as client:
        with pytest.raises(ShopifyAdminError) as exc_info:
            await client.list_carrier_services()

    assert exc_info.value.status == 401
    assert exc_info.value.response_body == {"errors": "Invalid API key"}
