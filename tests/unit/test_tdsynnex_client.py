"""
Tests for the TD SYNNEX XML freight quote client.
"""
from datetime import datetime, timezone

import httpx
import pytest
import xmltodict

from freight_bridge.core.exceptions import CredentialsNotConfiguredError, TdSynnexError
from freight_bridge.schemas.freight import TdSynnexQuoteRequest
from freight_bridge.services.tdsynnex_client import (
    SANDBOX_FREIGHT_URL,
    TdSynnexClient,
    build_freight_quote_xml,
    parse_freight_quote,
)

QUOTE_RESPONSE = """<?xml version="1.0" encoding="UTF-8"?>
<SynnexB2B>
  <FreightQuoteResponse>
    <CustomerNumber>123456</CustomerNumber>
    <AvailableShipMethods>
      <AvailableShipMethod code="FG">
        <ShipMethodDescription>FedEx Ground</ShipMethodDescription>
        <Freight>12.40</Freight>
      </AvailableShipMethod>
    </AvailableShipMethods>
  </FreightQuoteResponse>
</SynnexB2B>
"""


class FakeCredentialStore:
    def __init__(self, credentials=None):
        self.credentials = credentials

    async def get_tdsynnex(self, shop_domain):
        return self.credentials


@pytest.fixture
def quote():
    return TdSynnexQuoteRequest.model_validate({
        "addressName1": "Acme Corp",
        "addressLine1": "1 Main St",
        "city": "Fremont",
        "state": "CA",
        "zipCode": "94538",
        "country": "us",
        "shipFromWarehouse": "3",
        "items": [
            {"itemSKU": "SYN-1", "itemMfgPartNumber": "MFG-1", "itemQuantity": 2},
            {"itemSKU": "SYN-2", "itemMfgPartNumber": "MFG-2", "itemQuantity": "1", "lineNumber": 7},
        ],
    })


def make_client(store, handler):
    client = TdSynnexClient(credential_store=store, timeout=5.0)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler), timeout=client.timeout)
    return client


class TestBuildFreightQuoteXml:

    def test_document_structure(self, tdsynnex_credentials, quote):
        requested_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        document = xmltodict.parse(build_freight_quote_xml(tdsynnex_credentials, quote, requested_at))

        root = document["SynnexB2B"]
        assert root["Credential"] == {"UserID": "synnex-user", "Password": "synnex-pass"}

        request = root["FreightQuoteRequest"]
        assert request["@version"] == "2.0"
        assert request["CustomerNumber"] == "123456"
        assert request["RequestDateTime"] == "2024-05-01T12:00:00+00:00"
        assert request["ShipFromWarehouse"] == "3"
        assert request["ShipTo"]["Country"] == "US"
        assert "AddressName2" not in request["ShipTo"]
        assert "ServiceLevel" not in request
        assert request["ShipMethodCode"] is None

        items = request["Items"]["Item"]
        assert [i["@lineNumber"] for i in items] == ["1", "7"]
        assert items[0]["Quantity"] == "2"
        assert items[1]["MfgPartNumber"] == "MFG-2"

    def test_optional_fields_included_when_set(self, tdsynnex_credentials, quote):
        quote.address_name2 = "Receiving"
        quote.service_level = "ground"
        quote.ship_method_code = "FG"
        document = xmltodict.parse(build_freight_quote_xml(tdsynnex_credentials, quote))

        request = document["SynnexB2B"]["FreightQuoteRequest"]
        assert request["ShipTo"]["AddressName2"] == "Receiving"
        assert request["ServiceLevel"] == "ground"
        assert request["ShipMethodCode"] == "FG"


class TestParseFreightQuote:

    def test_parses_response(self):
        parsed = parse_freight_quote(QUOTE_RESPONSE)
        method = parsed["SynnexB2B"]["FreightQuoteResponse"]["AvailableShipMethods"]["AvailableShipMethod"]

        assert method["@code"] == "FG"
        assert method["Freight"] == "12.40"

    def test_malformed_xml(self):
        with pytest.raises(TdSynnexError):
            parse_freight_quote("<SynnexB2B><unclosed>")


class TestTdSynnexClient:

    @pytest.mark.asyncio
    async def test_posts_xml_and_returns_raw_text(self, tdsynnex_credentials, quote):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["content_type"] = request.headers["Content-Type"]
            seen["body"] = request.content.decode()
            return httpx.Response(200, text=QUOTE_RESPONSE)

        client = make_client(FakeCredentialStore(tdsynnex_credentials), handler)
        result = await client.request_freight_quote("test-shop.myshopify.com", quote)
        await client.close()

        assert result == {"response": QUOTE_RESPONSE, "cacheHit": False}
        assert seen["url"] == httpx.URL(SANDBOX_FREIGHT_URL)
        assert seen["content_type"] == "text/xml"
        assert "<UserID>synnex-user</UserID>" in seen["body"]

    @pytest.mark.asyncio
    async def test_missing_credentials(self, quote):
        client = make_client(FakeCredentialStore(None), lambda request: httpx.Response(200))

        with pytest.raises(CredentialsNotConfiguredError):
            await client.request_freight_quote("test-shop.myshopify.com", quote)
        await client.close()

    @pytest.mark.asyncio
    async def test_missing_password(self, tdsynnex_credentials, quote):
        tdsynnex_credentials.password = ""
        client = make_client(FakeCredentialStore(tdsynnex_credentials), lambda request: httpx.Response(200))

        with pytest.raises(TdSynnexError) as exc_info:
            await client.request_freight_quote("test-shop.myshopify.com", quote)
        await client.close()

        assert "Missing password" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_error_status(self, tdsynnex_credentials, quote):
        client = make_client(
            FakeCredentialStore(tdsynnex_credentials),
            lambda request: httpx.Response(503, text="<error>down</error>"),
        )

        with pytest.raises(TdSynnexError) as exc_info:
            await client.request_freight_quote("test-shop.myshopify.com", quote)
        await client.close()

        assert exc_info.value.status == 503
        assert exc_info.value.response_body == "<error>down</error>"
