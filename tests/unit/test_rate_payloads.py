"""
Tests for rate request normalization.
"""
import pytest

from freight_bridge.services.rate_payloads import (
    RateLine,
    build_ingram_lines,
    carrier_request_to_payload,
    direct_request_to_payload,
)

CARRIER_BODY = {
    "rate": {
        "origin": {"country": "US"},
        "destination": {
            "country": "US",
            "postal_code": "14202",
            "province": "NY",
            "city": "Buffalo",
            "name": "Jane",
            "last_name": "Doe",
            "address1": "1 Main St",
            "address2": "",
            "company": None,
        },
        "items": [
            {"name": "Laptop", "sku": "SKU-1", "quantity": 2, "grams": 1800},
            {"name": "Dock", "sku": "", "product_id": 555, "quantity": 1},
            {"name": "Cable", "quantity": None},
        ],
        "currency": "USD",
    }
}


class TestCarrierRequest:

    def test_normalizes_shopify_callback(self):
        payload = carrier_request_to_payload("shop.myshopify.com", CARRIER_BODY)

        assert payload.is_valid()
        assert payload.ship_to.state == "NY"
        assert payload.ship_to.country_code == "US"
        assert payload.ship_to.company() == "Jane Doe"
        assert [line.sku for line in payload.lines] == ["SKU-1", "555", "Cable"]
        assert payload.lines[2].quantity == 1
        assert payload.lines[0].weight_unit == "g"

    def test_ship_to_address_for_ingram(self):
        address = carrier_request_to_payload("shop", CARRIER_BODY).ship_to.to_ship_to_address()

        assert address.company_name == "Jane Doe"
        assert address.address_line2 is None
        assert address.to_wire()["postalCode"] == "14202"

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            carrier_request_to_payload("shop", ["not", "an", "object"])

    def test_missing_destination_is_invalid(self):
        payload = carrier_request_to_payload("shop", {"rate": {"items": [{"sku": "A"}]}})

        assert not payload.is_valid()


class TestDirectRequest:

    def test_normalizes_direct_body(self):
        payload = direct_request_to_payload({
            "shopDomain": "shop.myshopify.com",
            "shipToAddress": {
                "companyName": "Acme",
                "addressLine1": "1 Main St",
                "city": "Buffalo",
                "state": "NY",
                "postalCode": "14202",
                "countryCode": "US",
            },
            "lines": [{"sku": " SKU-1 ", "quantity": 3}, {"sku": "SKU-1"}, {"sku": "SKU-2"}],
        })

        assert payload.is_valid()
        assert payload.ship_to.company() == "Acme"
        assert payload.unique_skus() == ["SKU-1", "SKU-2"]

    def test_non_object_is_invalid(self):
        assert not direct_request_to_payload("garbage").is_valid()

    def test_default_company_label(self):
        payload = direct_request_to_payload({"shipToAddress": {}})

        assert payload.ship_to.company() == "Shopify Customer"


def test_build_ingram_lines_numbers_mapped_lines():
    lines = [RateLine("SKU-1", 2), RateLine("", 1), RateLine("SKU-2", "4")]

    assert build_ingram_lines(lines, {"SKU-1": "P1", "SKU-2": "P2"}) == [
        {"customerLineNumber": "001", "ingramPartNumber": "P1", "quantity": "2", "carrierCode": ""},
        {"customerLineNumber": "002", "ingramPartNumber": "P2", "quantity": "4", "carrierCode": ""},
    ]
