"""
Freight Schemas

Pydantic models for distributor credentials and freight quote requests.
Field aliases follow the distributor wire format (camelCase) so models
round-trip straight into request bodies; snake_case names work too.
"""
from typing import Optional, List, Dict, Any, Union
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def parse_sandbox_flag(value: Union[bool, str, None]) -> bool:
    """
    Form-style sandbox flag.

    Booleans pass through; strings mean true for "true", "on" or "1";
    anything missing or empty defaults to sandbox.
    """
    if isinstance(value, bool):
        return value
    if value is None or value == "":
        return True
    text = str(value).strip().lower()
    return text in ("true", "on", "1")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ==================== Ingram Micro ====================


class IngramCredentialInput(_CamelModel):
    """Ingram Micro credential form."""
    client_id: str = Field(..., alias="clientId", min_length=1)
    client_secret: str = Field(..., alias="clientSecret", min_length=1)
    customer_number: str = Field(..., alias="customerNumber", min_length=1)
    country_code: str = Field("US", alias="countryCode", min_length=2, max_length=2)
    contact_email: EmailStr = Field(..., alias="contactEmail")
    sender_id: Optional[str] = Field(None, alias="senderId")
    bill_to_address_id: Optional[str] = Field(None, alias="billToAddressId")
    ship_to_address_id: Optional[str] = Field(None, alias="shipToAddressId")
    sandbox: bool = True

    @field_validator("country_code")
    @classmethod
    def uppercase_country(cls, v):
        return v.upper()

    @field_validator("sandbox", mode="before")
    @classmethod
    def coerce_sandbox(cls, v):
        return parse_sandbox_flag(v)

    @field_validator("sender_id", "bill_to_address_id", "ship_to_address_id", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ShipToAddress(_CamelModel):
    """Ingram freight estimate ship-to block."""
    company_name: str = Field(..., alias="companyName", min_length=1)
    address_line1: str = Field(..., alias="addressLine1", min_length=1)
    address_line2: Optional[str] = Field(None, alias="addressLine2")
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2)
    postal_code: str = Field(..., alias="postalCode", min_length=3)
    country_code: str = Field(..., alias="countryCode", min_length=2, max_length=2)

    @field_validator("country_code")
    @classmethod
    def uppercase_country(cls, v):
        return v.upper()

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class FreightEstimateRequest(_CamelModel):
    """
    Ingram freight estimate request.

    Lines are passed to Ingram as-is; callers build them with
    ingramPartNumber/quantity (checkout) or paste arbitrary lines (admin test).
    """
    ship_to_address: ShipToAddress = Field(..., alias="shipToAddress")
    lines: List[Dict[str, Any]] = Field(..., min_length=1)
    bill_to_address_id: Optional[str] = Field(None, alias="billToAddressId")
    ship_to_address_id: Optional[str] = Field(None, alias="shipToAddressId")


# ==================== TD SYNNEX ====================


class TdSynnexCredentialInput(_CamelModel):
    """TD SYNNEX credential form."""
    user_name: str = Field(..., alias="userName", min_length=1)
    password: str = Field(..., min_length=1)
    customer_number: str = Field(..., alias="customerNumber", min_length=1)
    customer_name: Optional[str] = Field(None, alias="customerName")
    sandbox: bool = True

    @field_validator("sandbox", mode="before")
    @classmethod
    def coerce_sandbox(cls, v):
        return parse_sandbox_flag(v)


class TdSynnexItem(_CamelModel):
    sku: str = Field(..., alias="itemSKU", min_length=1)
    mfg_part_number: str = Field(..., alias="itemMfgPartNumber", min_length=1)
    quantity: str = Field(..., alias="itemQuantity", min_length=1)
    line_number: Optional[int] = Field(None, alias="lineNumber")

    @field_validator("quantity", mode="before")
    @classmethod
    def quantity_as_text(cls, v):
        return str(v) if isinstance(v, int) else v


class TdSynnexQuoteRequest(_CamelModel):
    """TD SYNNEX freight quote request."""
    address_name1: str = Field(..., alias="addressName1", min_length=1)
    address_name2: Optional[str] = Field(None, alias="addressName2")
    address_line1: str = Field(..., alias="addressLine1", min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2)
    zip_code: str = Field(..., alias="zipCode", min_length=3)
    country: str = Field(..., min_length=2, max_length=2)
    ship_from_warehouse: str = Field(..., alias="shipFromWarehouse", min_length=1)
    service_level: Optional[str] = Field(None, alias="serviceLevel")
    ship_method_code: Optional[str] = Field(None, alias="shipMethodCode")
    items: List[TdSynnexItem] = Field(..., min_length=1)

    @field_validator("country")
    @classmethod
    def uppercase_country(cls, v):
        return v.upper()


# ==================== Admin ====================


class CarrierEnabledUpdate(_CamelModel):
    carrier_code: str = Field(..., alias="carrierCode", min_length=1)
    enabled: bool


class CarrierDisplayNameUpdate(_CamelModel):
    display_name: Optional[str] = Field(None, alias="displayName", max_length=255)


class FallbackRateInput(_CamelModel):
    """Partial fallback rate update; omitted fields keep their value."""
    enabled: Optional[bool] = None
    price: Optional[float] = None
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, v):
        if v is None or v == "":
            return None
        try:
            price = float(v)
        except (TypeError, ValueError):
            return 999.0
        return 999.0 if price != price else price
