"""
Rate Combiner Service

Combines shipping rates from multiple Ingram distributions (warehouses)
into consolidated rates for Shopify checkout.

When a cart ships from several warehouses, Ingram returns a separate rate
set per distribution. This module aggregates them into one rate per
carrier code:

1. Per carrier code, keep each distribution's charge (the lower one if a
   carrier is listed twice in the same distribution).
2. Sum charges across distributions; take the worst-case transit days.
3. Keep only carriers offered by every distribution. A carrier missing
   from one warehouse cannot ship the whole cart.
4. Sort cheapest first.

Everything here is pure: no I/O, no logging.
"""
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

DEFAULT_SERVICE_NAME = "Standard Shipping"
DEFAULT_DESCRIPTION = "Ingram Micro freight"
SERVICE_CODE_PREFIX = "INGRAM_"
DESCRIPTION_SEPARATOR = " • "

# Ingram shipVia abbreviations -> checkout-friendly wording, applied in order
DISPLAY_NAME_REPLACEMENTS = [
    (re.compile(r"FEDX"), "FedEx"),
    (re.compile(r"OVERNITE"), "Overnight"),
    (re.compile(r"EXPRES\b"), "Express"),
    (re.compile(r"NXT DAY"), "Next Day"),
    (re.compile(r"2DAY INT"), "2-Day"),
    (re.compile(r"STD OVR"), "Standard Overnight"),
    (re.compile(r"PRTY 1"), "Priority"),
    (re.compile(r"AIR SAT"), "Saturday"),
]

_ZERO = Decimal("0")


def parse_charge(value: Any) -> Decimal:
    """Freight charge as Decimal; unparseable or non-finite values are 0."""
    if value is None or isinstance(value, bool):
        return _ZERO
    try:
        charge = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return _ZERO
    return charge if charge.is_finite() else _ZERO


def parse_days(value: Any) -> int:
    """Transit days as int (truncated); unparseable values are 0."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


@dataclass
class CarrierQuote:
    carrier_code: str
    ship_via: str
    carrier_mode: str
    charge: Decimal
    days_in_transit: int

    @classmethod
    def from_ingram(cls, raw: Dict[str, Any]) -> "CarrierQuote":
        return cls(
            carrier_code=_text(raw.get("carrierCode")),
            ship_via=_text(raw.get("shipVia")),
            carrier_mode=_text(raw.get("carrierMode")),
            charge=parse_charge(raw.get("estimatedFreightCharge")),
            days_in_transit=parse_days(raw.get("daysInTransit")),
        )


@dataclass
class Distribution:
    """One warehouse's carrier quotes."""
    branch_number: str
    carriers: List[CarrierQuote] = field(default_factory=list)

    @classmethod
    def from_ingram(cls, raw: Dict[str, Any]) -> "Distribution":
        carrier_list = raw.get("carrierList") or []
        return cls(
            branch_number=str(raw.get("shipFromBranchNumber") or ""),
            carriers=[CarrierQuote.from_ingram(c) for c in carrier_list if isinstance(c, dict)],
        )


@dataclass
class DistributionCharge:
    branch_number: str
    charge: Decimal
    days_in_transit: int


@dataclass
class CombinedRate:
    carrier_code: str
    ship_via: str
    carrier_mode: str
    total_charge: Decimal
    max_days_in_transit: int
    distributions: List[DistributionCharge]
    is_complete: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "carrierCode": self.carrier_code,
            "shipVia": self.ship_via,
            "carrierMode": self.carrier_mode,
            "totalCharge": str(self.total_charge),
            "maxDaysInTransit": self.max_days_in_transit,
            "distributions": [
                {
                    "branchNumber": d.branch_number,
                    "charge": str(d.charge),
                    "daysInTransit": d.days_in_transit,
                }
                for d in self.distributions
            ],
            "isComplete": self.is_complete,
        }


def parse_distributions(raw: Optional[Iterable[Any]]) -> List[Distribution]:
    """Distributions from freightEstimateResponse.distribution."""
    return [Distribution.from_ingram(d) for d in (raw or []) if isinstance(d, dict)]


def combine_rates(distributions: List[Distribution]) -> List[CombinedRate]:
    """
    Merge per-warehouse carrier quotes into one rate per carrier.

    Args:
        distributions: Parsed distributions from one freight response

    Returns:
        Complete, positively priced rates sorted by total charge
    """
    if not distributions:
        return []

    if len(distributions) == 1:
        dist = distributions[0]
        rates = [
            CombinedRate(
                carrier_code=c.carrier_code,
                ship_via=c.ship_via,
                carrier_mode=c.carrier_mode,
                total_charge=c.charge,
                max_days_in_transit=c.days_in_transit,
                distributions=[DistributionCharge(dist.branch_number, c.charge, c.days_in_transit)],
                is_complete=True,
            )
            for c in dist.carriers
        ]
        rates = [r for r in rates if r.carrier_code and r.total_charge > 0]
        return sorted(rates, key=lambda r: r.total_charge)

    # carrier code -> label, mode and per-branch charge
    carriers: Dict[str, Dict[str, Any]] = {}
    branches = set()

    for dist in distributions:
        branches.add(dist.branch_number)
        for quote in dist.carriers:
            if not quote.carrier_code:
                continue
            entry = carriers.setdefault(quote.carrier_code, {
                "ship_via": quote.ship_via or quote.carrier_code,
                "carrier_mode": quote.carrier_mode,
                "by_branch": {},
            })
            existing = entry["by_branch"].get(dist.branch_number)
            if existing is None or quote.charge < existing.charge:
                entry["by_branch"][dist.branch_number] = DistributionCharge(
                    dist.branch_number, quote.charge, quote.days_in_transit
                )

    total_distributions = len(branches)
    combined: List[CombinedRate] = []

    for code, entry in carriers.items():
        legs: List[DistributionCharge] = list(entry["by_branch"].values())
        is_complete = len(legs) == total_distributions
        total = sum((leg.charge for leg in legs), _ZERO)
        max_days = max((leg.days_in_transit for leg in legs), default=0)

        if is_complete and total > 0:
            combined.append(CombinedRate(
                carrier_code=code,
                ship_via=entry["ship_via"],
                carrier_mode=entry["carrier_mode"],
                total_charge=total,
                max_days_in_transit=max(max_days, 0),
                distributions=legs,
                is_complete=True,
            ))

    return sorted(combined, key=lambda r: r.total_charge)


# ==================== Formatting ====================


def carrier_display_name(ship_via: Optional[str], carrier_code: Optional[str]) -> str:
    """Friendly checkout label from Ingram's abbreviated shipVia."""
    name = _text(ship_via) or _text(carrier_code) or DEFAULT_SERVICE_NAME
    name = re.sub(r"\s+", " ", name)
    for pattern, replacement in DISPLAY_NAME_REPLACEMENTS:
        name = pattern.sub(replacement, name)
    return name.strip()


def transit_description(days: int) -> str:
    if days <= 0:
        return ""
    if days == 1:
        return "Next business day"
    return f"{days} business days"


def to_minor_units(amount: Decimal) -> int:
    """Dollars to cents, half-up, never negative."""
    cents = (amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, int(cents))


def format_rate_for_shopify(
    rate: CombinedRate,
    currency: str = "USD",
    custom_display_name: Optional[str] = None,
) -> Dict[str, str]:
    """Shopify carrier-service rate object for a combined rate."""
    parts = []
    transit = transit_description(rate.max_days_in_transit)
    if transit:
        parts.append(transit)
    if len(rate.distributions) > 1:
        parts.append(f"Ships from {len(rate.distributions)} locations")

    return {
        "service_name": custom_display_name or carrier_display_name(rate.ship_via, rate.carrier_code),
        "service_code": f"{SERVICE_CODE_PREFIX}{rate.carrier_code}",
        "total_price": str(to_minor_units(rate.total_charge)),
        "currency": currency,
        "description": DESCRIPTION_SEPARATOR.join(parts) or DEFAULT_DESCRIPTION,
    }
