"""
Rate request payloads

Shopify carrier-service callbacks and direct (backend/test) rate requests
arrive in different shapes. Both are normalized into a RatePayload before
quoting, and RatePayload lines are turned into Ingram freight lines once
their SKUs are mapped.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from freight_bridge.schemas.freight import ShipToAddress

DEFAULT_COMPANY_NAME = "Shopify Customer"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


@dataclass
class RateLine:
    sku: str
    quantity: Any = 1
    title: Optional[str] = None
    weight: Optional[float] = None
    weight_unit: Optional[str] = None


@dataclass
class RateShipTo:
    address_line1: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country_code: str = ""
    address_line2: Optional[str] = None
    company_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    def company(self) -> str:
        """Company, else "first last", else a generic customer label."""
        if self.company_name:
            return self.company_name
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full_name or DEFAULT_COMPANY_NAME

    def to_ship_to_address(self) -> ShipToAddress:
        return ShipToAddress(
            company_name=self.company(),
            address_line1=self.address_line1,
            address_line2=self.address_line2 or None,
            city=self.city,
            state=self.state,
            postal_code=self.postal_code,
            country_code=self.country_code,
        )


@dataclass
class RatePayload:
    shop_domain: str
    ship_to: RateShipTo
    lines: List[RateLine] = field(default_factory=list)

    def is_valid(self) -> bool:
        return bool(
            self.shop_domain
            and self.ship_to.address_line1
            and self.ship_to.city
            and self.ship_to.state
            and self.ship_to.postal_code
            and self.ship_to.country_code
            and self.lines
        )

    def unique_skus(self) -> List[str]:
        """Trimmed, non-empty SKUs in first-seen order."""
        skus: List[str] = []
        for line in self.lines:
            sku = _text(line.sku)
            if sku and sku not in skus:
                skus.append(sku)
        return skus


def carrier_request_to_payload(shop_domain: str, body: Any) -> RatePayload:
    """
    Convert a Shopify carrier-service callback body.

    Raises:
        ValueError: body is not a JSON object
    """
    if not isinstance(body, dict):
        raise ValueError("Carrier payload must be a JSON object")

    rate = body.get("rate") if isinstance(body.get("rate"), dict) else {}
    destination = rate.get("destination") if isinstance(rate.get("destination"), dict) else {}
    items = rate.get("items") if isinstance(rate.get("items"), list) else []

    lines = [
        RateLine(
            sku=_text(_first(item.get("sku"), item.get("product_id"), item.get("title"), item.get("name"))),
            quantity=item.get("quantity") if item.get("quantity") is not None else 1,
            title=item.get("name"),
            weight=item.get("grams"),
            weight_unit="g",
        )
        for item in items
        if isinstance(item, dict)
    ]

    ship_to = RateShipTo(
        company_name=destination.get("company"),
        first_name=destination.get("name"),
        last_name=destination.get("last_name"),
        address_line1=_text(destination.get("address1")),
        address_line2=destination.get("address2"),
        city=_text(destination.get("city")),
        state=_text(_first(destination.get("province"), destination.get("province_code"))),
        postal_code=_text(destination.get("postal_code")),
        country_code=_text(_first(destination.get("country_code"), destination.get("country"))),
    )
    return RatePayload(shop_domain=shop_domain, ship_to=ship_to, lines=lines)


def direct_request_to_payload(body: Any) -> RatePayload:
    """
    Convert a direct request body: {shopDomain, shipToAddress, lines}.

    Missing pieces become empty values and fail is_valid().
    """
    if not isinstance(body, dict):
        return RatePayload(shop_domain="", ship_to=RateShipTo())

    address = body.get("shipToAddress") if isinstance(body.get("shipToAddress"), dict) else {}
    raw_lines = body.get("lines") if isinstance(body.get("lines"), list) else []

    lines = [
        RateLine(
            sku=_text(line.get("sku")),
            quantity=line.get("quantity") if line.get("quantity") is not None else 1,
            title=line.get("title"),
            weight=line.get("weight"),
            weight_unit=line.get("weightUnit"),
        )
        for line in raw_lines
        if isinstance(line, dict)
    ]

    ship_to = RateShipTo(
        company_name=address.get("companyName"),
        first_name=address.get("firstName"),
        last_name=address.get("lastName"),
        address_line1=_text(address.get("addressLine1")),
        address_line2=address.get("addressLine2"),
        city=_text(address.get("city")),
        state=_text(address.get("state")),
        postal_code=_text(address.get("postalCode")),
        country_code=_text(address.get("countryCode")),
    )
    return RatePayload(shop_domain=_text(body.get("shopDomain")), ship_to=ship_to, lines=lines)


def build_ingram_lines(lines: List[RateLine], part_numbers: Dict[str, str]) -> List[Dict[str, str]]:
    """
    Ingram freight lines for mapped cart lines.

    Lines are numbered "001", "002", ... in cart order. carrierCode is left
    empty so Ingram returns every available carrier. Lines without a SKU
    are skipped.
    """
    ingram_lines = []
    for line in lines:
        sku = _text(line.sku)
        if not sku:
            continue
        ingram_lines.append({
            "customerLineNumber": str(len(ingram_lines) + 1).zfill(3),
            "ingramPartNumber": part_numbers[sku],
            "quantity": str(line.quantity),
            "carrierCode": "",
        })
    return ingram_lines
