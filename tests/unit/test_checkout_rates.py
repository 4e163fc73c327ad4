"""
Tests for checkout rate quoting (carrier service, direct and cart estimate).
"""
import asyncio

import pytest

from freight_bridge.core.background import drain_background_tasks
from freight_bridge.core.exceptions import (
    CredentialsNotConfiguredError,
    IngramAuthError,
    IngramFreightError,
    MappingLookupError,
)
from freight_bridge.services.carrier_configs import CarrierConfig
from freight_bridge.services.checkout_rates import CheckoutRateService
from freight_bridge.services.fallback_rate import FALLBACK_SERVICE_CODE
from freight_bridge.services.freight_estimates import FreightEstimateResult
from freight_bridge.services.rate_log import (
    REQUEST_TYPE_CARRIER_SERVICE,
    REQUEST_TYPE_CART_ESTIMATE,
    STATUS_API_ERROR,
    STATUS_ERROR,
    STATUS_NO_MAPPING,
    STATUS_NO_RATES,
    STATUS_SUCCESS,
)
from freight_bridge.services.rate_payloads import carrier_request_to_payload, direct_request_to_payload
from freight_bridge.services.sku_mapping import SkuMapping
from tests.factories import make_distribution, make_freight_response

SHOP = "test-shop.myshopify.com"

FALLBACK_RATE = {
    "service_name": "Shipping Unavailable",
    "service_code": FALLBACK_SERVICE_CODE,
    "total_price": "99900",
    "description": "Please contact support before placing this order",
    "currency": "USD",
}


class FakeCredentialStore:
    def __init__(self, credentials):
        self.credentials = credentials

    async def get_ingram(self, shop_domain):
        return self.credentials


class FakeFreightService:
    def __init__(self, credentials, response=None, error=None):
        self.credential_store = FakeCredentialStore(credentials)
        self.response = response
        self.error = error
        self.requests = []

    async def prefetch_auth(self, shop_domain):
        if self.credential_store.credentials is None:
            raise CredentialsNotConfiguredError("No Ingram Micro credentials configured for shop.")
        return self.credential_store.credentials, "token"

    async def request_freight_estimate(self, shop_domain, request, credentials=None, access_token=None):
        self.requests.append(request)
        if self.error:
            raise self.error
        return FreightEstimateResult("corr-ingram", self.response, cache_hit=False)


class FakeResolver:
    def __init__(self, mappings):
        self.mappings = mappings
        self.calls = []

    async def resolve_many(self, shop_domain, skus, allow_remote_fallback=True):
        self.calls.append((list(skus), allow_remote_fallback))
        return [SkuMapping(sku, self.mappings[sku]) for sku in skus if sku in self.mappings]


class FakeCarrierConfigs:
    def __init__(self, configs=None):
        self.configs = configs or []
        self.synced = []

    async def list_configs(self, shop_domain):
        return self.configs

    async def sync_from_distributions(self, shop_domain, distributions):
        self.synced.append(len(distributions))
        return len(distributions)


class FakeFallbackRates:
    def __init__(self, enabled=True):
        self.enabled = enabled

    async def fallback_rates(self, shop_domain, currency="USD"):
        return [dict(FALLBACK_RATE, currency=currency)] if self.enabled else []


class FakeRateLogger:
    def __init__(self):
        self.entries = []

    def log(self, entry):
        self.entries.append(entry)


def make_service(ingram_credentials, response=None, error=None, mappings=None, configs=None, fallback_enabled=True):
    freight = FakeFreightService(ingram_credentials, response=response, error=error)
    resolver = FakeResolver(mappings if mappings is not None else {"SKU-1": "P1", "SKU-2": "P2"})
    carrier_configs = FakeCarrierConfigs(configs)
    rate_logger = FakeRateLogger()
    service = CheckoutRateService(
        freight_service=freight,
        sku_resolver=resolver,
        carrier_configs=carrier_configs,
        fallback_rates=FakeFallbackRates(fallback_enabled),
        rate_logger=rate_logger,
    )
    return service, freight, resolver, carrier_configs, rate_logger


def carrier_payload(*skus):
    return carrier_request_to_payload(SHOP, {
        "rate": {
            "destination": {
                "address1": "1 Main St",
                "city": "Buffalo",
                "province": "NY",
                "postal_code": "14202",
                "country": "US",
                "company": "Acme",
            },
            "items": [{"sku": sku, "quantity": 1} for sku in skus],
        }
    })


TWO_WAREHOUSE_RESPONSE = make_freight_response([
    make_distribution("10", ("F1", "FEDX GROUND", "10.00", "2"), ("UP", "UPS GROUND", "12.00", "3")),
    make_distribution("20", ("F1", "FEDX GROUND", "5.00", "4"), ("UP", "UPS GROUND", "6.00", "1")),
])


class TestCarrierServiceQuote:

    @pytest.mark.asyncio
    async def test_success_returns_combined_rates(self, ingram_credentials):
        service, freight, resolver, carriers, rate_logger = make_service(
            ingram_credentials, response=TWO_WAREHOUSE_RESPONSE
        )

        result = await service.quote(carrier_payload("SKU-1", "SKU-2"), carrier_request=True, currency="USD")
        await drain_background_tasks()

        assert result.status_code == 200
        rates = result.body["rates"]
        assert [r["service_code"] for r in rates] == ["INGRAM_F1", "INGRAM_UP"]
        assert rates[0]["total_price"] == "1500"
        assert resolver.calls == [(["SKU-1", "SKU-2"], False)]
        assert carriers.synced == [2]

        line_numbers = [line["customerLineNumber"] for line in freight.requests[0].lines]
        assert line_numbers == ["001", "002"]

        entry = rate_logger.entries[0]
        assert entry.status == STATUS_SUCCESS
        assert entry.request_type == REQUEST_TYPE_CARRIER_SERVICE
        assert entry.rates_returned == 2
        assert entry.ingram_part_nums == ["P1", "P2"]

    @pytest.mark.asyncio
    async def test_disabled_carriers_filtered(self, ingram_credentials):
        configs = [
            CarrierConfig("F1", "FEDX GROUND", "", None, False, 0),
            CarrierConfig("UP", "UPS GROUND", "", "UPS Freight", True, 1),
        ]
        service, *_ = make_service(ingram_credentials, response=TWO_WAREHOUSE_RESPONSE, configs=configs)

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True)
        await drain_background_tasks()

        assert [r["service_name"] for r in result.body["rates"]] == ["UPS Freight"]

    @pytest.mark.asyncio
    async def test_response_currency_wins(self, ingram_credentials):
        response = make_freight_response(
            [make_distribution("10", ("F1", "FEDX GROUND", "10.00", "2"))], currency="CAD"
        )
        service, *_ = make_service(ingram_credentials, response=response)

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True, currency="USD")
        await drain_background_tasks()

        assert result.body["rates"][0]["currency"] == "CAD"

    @pytest.mark.asyncio
    async def test_missing_mapping_returns_fallback(self, ingram_credentials):
        service, freight, _, _, rate_logger = make_service(ingram_credentials, mappings={"SKU-1": "P1"})

        result = await service.quote(carrier_payload("SKU-1", "UNKNOWN"), carrier_request=True)

        assert result.status_code == 200
        assert result.body == {"rates": [FALLBACK_RATE]}
        assert freight.requests == []
        assert rate_logger.entries[0].status == STATUS_NO_MAPPING
        assert "UNKNOWN" in rate_logger.entries[0].error_message

    @pytest.mark.asyncio
    async def test_fallback_disabled_returns_empty_rates(self, ingram_credentials):
        service, *_ = make_service(ingram_credentials, mappings={}, fallback_enabled=False)

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True)

        assert result.body == {"rates": []}

    @pytest.mark.asyncio
    async def test_upstream_errors_return_fallback(self, ingram_credentials):
        response = make_freight_response([], errors=[{"message": "Invalid part"}])
        service, _, _, carriers, rate_logger = make_service(ingram_credentials, response=response)

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True)

        assert result.body == {"rates": [FALLBACK_RATE]}
        assert rate_logger.entries[0].status == STATUS_API_ERROR
        assert carriers.synced == []

    @pytest.mark.asyncio
    async def test_empty_errors_list_is_not_an_error(self, ingram_credentials):
        response = make_freight_response(
            [make_distribution("10", ("F1", "FEDX GROUND", "10.00", "2"))], errors=[]
        )
        service, *_ = make_service(ingram_credentials, response=response)

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True)
        await drain_background_tasks()

        assert result.body["rates"][0]["service_code"] == "INGRAM_F1"

    @pytest.mark.asyncio
    async def test_no_common_carriers_returns_fallback(self, ingram_credentials):
        response = make_freight_response([
            make_distribution("10", ("F1", "FEDX GROUND", "10.00", "2")),
            make_distribution("20", ("UP", "UPS GROUND", "5.00", "4")),
        ])
        service, _, _, _, rate_logger = make_service(ingram_credentials, response=response)

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True)
        await drain_background_tasks()

        assert result.body == {"rates": [FALLBACK_RATE]}
        entry = rate_logger.entries[0]
        assert entry.status == STATUS_NO_RATES
        assert entry.error_message == "No common carriers across distributions"
        assert entry.distribution_count == 2

    @pytest.mark.asyncio
    async def test_no_distributions_reason(self, ingram_credentials):
        service, _, _, _, rate_logger = make_service(ingram_credentials, response=make_freight_response([]))

        await service.quote(carrier_payload("SKU-1"), carrier_request=True)

        assert rate_logger.entries[0].error_message == "No distributions returned from Ingram"

    @pytest.mark.asyncio
    async def test_ingram_failure_returns_fallback(self, ingram_credentials):
        error = IngramFreightError("Failed to fetch freight estimate", status=500)
        service, _, _, _, rate_logger = make_service(ingram_credentials, error=error)

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True)

        assert result.body == {"rates": [FALLBACK_RATE]}
        entry = rate_logger.entries[0]
        assert entry.status == STATUS_ERROR
        assert entry.error_details["code"] == "INGRAM_FREIGHT_FAILED"

    @pytest.mark.asyncio
    async def test_missing_credentials_returns_fallback(self):
        service, *_ = make_service(None)

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True)

        assert result.body == {"rates": [FALLBACK_RATE]}

    @pytest.mark.asyncio
    async def test_lookup_failure_waits_for_auth_prefetch(self, ingram_credentials):
        service, freight, resolver, _, rate_logger = make_service(ingram_credentials)
        auth_done = asyncio.Event()

        async def failing_resolve(shop_domain, skus, allow_remote_fallback=True):
            raise MappingLookupError("Unable to retrieve SKU mappings")

        async def slow_prefetch(shop_domain):
            for _ in range(3):
                await asyncio.sleep(0)
            auth_done.set()
            raise IngramAuthError("Failed to retrieve access token", status=401)

        resolver.resolve_many = failing_resolve
        freight.prefetch_auth = slow_prefetch

        result = await service.quote(carrier_payload("SKU-1"), carrier_request=True)

        assert auth_done.is_set()
        assert result.body == {"rates": [FALLBACK_RATE]}
        assert rate_logger.entries[0].error_details["code"] == "MAPPING_LOOKUP_FAILED"


class TestDirectQuote:

    def payload(self, *skus):
        return direct_request_to_payload({
            "shopDomain": SHOP,
            "shipToAddress": {
                "companyName": "Acme",
                "addressLine1": "1 Main St",
                "city": "Buffalo",
                "state": "NY",
                "postalCode": "14202",
                "countryCode": "US",
            },
            "lines": [{"sku": sku, "quantity": 2} for sku in skus],
        })

    @pytest.mark.asyncio
    async def test_success_returns_raw_response(self, ingram_credentials):
        service, *_ = make_service(ingram_credentials, response=TWO_WAREHOUSE_RESPONSE)

        result = await service.quote(self.payload("SKU-1"), carrier_request=False)

        assert result.status_code == 200
        assert result.body == {
            "success": True,
            "data": TWO_WAREHOUSE_RESPONSE,
            "correlationId": "corr-ingram",
            "lineCount": 1,
        }

    @pytest.mark.asyncio
    async def test_missing_mapping_is_422(self, ingram_credentials):
        service, _, _, _, rate_logger = make_service(ingram_credentials, mappings={})

        result = await service.quote(self.payload("SKU-9"), carrier_request=False)

        assert result.status_code == 422
        assert result.body["missingSkus"] == ["SKU-9"]
        assert rate_logger.entries[0].request_type == REQUEST_TYPE_CART_ESTIMATE

    @pytest.mark.asyncio
    async def test_upstream_failure_is_500(self, ingram_credentials):
        service, *_ = make_service(ingram_credentials, error=IngramFreightError("boom"))

        result = await service.quote(self.payload("SKU-1"), carrier_request=False)

        assert result.status_code == 500
        assert result.body == {"error": "Unable to retrieve freight estimate"}

    @pytest.mark.asyncio
    async def test_blank_skus_rejected(self, ingram_credentials):
        service, *_ = make_service(ingram_credentials)

        result = await service.quote(self.payload(""), carrier_request=False)

        assert result.status_code == 400
        assert result.body == {"error": "Lines missing SKU data"}


class TestCartEstimate:

    def body(self, **overrides):
        body = {
            "shop": SHOP,
            "address": {"country": "US", "province": "NY", "city": "Buffalo", "zip": "14202"},
            "items": [{"sku": "SKU-1", "quantity": 2}, {"sku": "SKU-2", "quantity": 1}],
        }
        body.update(overrides)
        return body

    @pytest.mark.asyncio
    async def test_success_returns_dollar_prices(self, ingram_credentials):
        service, freight, _, _, rate_logger = make_service(ingram_credentials, response=TWO_WAREHOUSE_RESPONSE)

        result = await service.estimate_cart(self.body())

        assert result.status_code == 200
        assert result.body["success"] is True
        first = result.body["rates"][0]
        assert first["code"] == "INGRAM_F1"
        assert first["price"] == 15.0
        assert first["currency"] == "USD"
        assert freight.requests[0].ship_to_address.company_name == "Customer"
        assert rate_logger.entries[0].request_type == REQUEST_TYPE_CART_ESTIMATE

    @pytest.mark.asyncio
    async def test_caps_at_five_rates(self, ingram_credentials):
        carriers = [(f"C{i}", f"CARRIER {i}", f"{i + 1}.00", "2") for i in range(8)]
        response = make_freight_response([make_distribution("10", *carriers)])
        service, *_ = make_service(ingram_credentials, response=response)

        result = await service.estimate_cart(self.body())

        assert len(result.body["rates"]) == 5

    @pytest.mark.asyncio
    async def test_placeholder_address_fields(self, ingram_credentials):
        service, freight, *_ = make_service(ingram_credentials, response=TWO_WAREHOUSE_RESPONSE)

        await service.estimate_cart(self.body(address={"country": "CA"}))

        address = freight.requests[0].ship_to_address
        assert address.city == "Unknown"
        assert address.state == "CA"
        assert address.postal_code == "00000"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,error", [
        ({"shop": ""}, "Missing shop domain"),
        ({"address": {}}, "Missing address information"),
        ({"items": []}, "No items in cart"),
        ({"items": [{"sku": " "}]}, "No valid SKUs in cart"),
    ])
    async def test_invalid_requests(self, ingram_credentials, overrides, error):
        service, *_ = make_service(ingram_credentials)

        result = await service.estimate_cart(self.body(**overrides))

        assert result.status_code == 400
        assert result.body == {"success": False, "error": error}

    @pytest.mark.asyncio
    async def test_shop_not_configured(self):
        service, *_ = make_service(None)

        result = await service.estimate_cart(self.body())

        assert result.status_code == 400
        assert result.body["error"] == "Shop not configured"

    @pytest.mark.asyncio
    async def test_unmapped_products(self, ingram_credentials):
        service, *_ = make_service(ingram_credentials, mappings={"SKU-1": "P1"})

        result = await service.estimate_cart(self.body())

        assert result.status_code == 200
        assert result.body == {"success": False, "error": "Some products are not available for shipping estimate"}

    @pytest.mark.asyncio
    async def test_no_distributions(self, ingram_credentials):
        service, *_ = make_service(ingram_credentials, response=make_freight_response([]))

        result = await service.estimate_cart(self.body())

        assert result.body["error"] == "No shipping options available for this address"

    @pytest.mark.asyncio
    async def test_upstream_failure_is_soft(self, ingram_credentials):
        service, *_ = make_service(ingram_credentials, error=IngramFreightError("boom"))

        result = await service.estimate_cart(self.body())

        assert result.status_code == 200
        assert result.body == {"success": False, "error": "Unable to calculate shipping estimate"}
