"""
TD SYNNEX XML freight quote client

TD SYNNEX exposes freight quotes through its legacy SynnexXML gateway:
a single XML document carrying the credentials and the quote request is
POSTed, and an XML document comes back. The raw response text is returned
to the caller; parse_freight_quote turns it into a dict for display.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from xml.parsers.expat import ExpatError

import httpx
import xmltodict

from freight_bridge.core.config import settings
from freight_bridge.core.exceptions import CredentialsNotConfiguredError, TdSynnexError
from freight_bridge.schemas.freight import TdSynnexQuoteRequest
from freight_bridge.services.credentials import CredentialStore, TdSynnexCredentials, get_credential_store

logger = logging.getLogger(__name__)

FREIGHT_URL = "https://ec.us.tdsynnex.com/SynnexXML/FreightQuote"
SANDBOX_FREIGHT_URL = "https://ec.us.tdsynnex.com/sandbox/SynnexXML/FreightQuote"

XML_HEADERS = {"Content-Type": "text/xml", "Accept": "text/xml"}


def build_freight_quote_xml(
    credentials: TdSynnexCredentials,
    quote: TdSynnexQuoteRequest,
    requested_at: Optional[datetime] = None,
) -> str:
    """Render the SynnexB2B FreightQuoteRequest document."""
    requested_at = requested_at or datetime.now(timezone.utc)

    ship_to: Dict[str, Any] = {"AddressName1": quote.address_name1}
    if quote.address_name2:
        ship_to["AddressName2"] = quote.address_name2
    ship_to.update({
        "AddressLine1": quote.address_line1,
        "City": quote.city,
        "State": quote.state,
        "ZipCode": quote.zip_code,
        "Country": quote.country,
    })

    request: Dict[str, Any] = {
        "@version": "2.0",
        "CustomerNumber": credentials.customer_number,
        "RequestDateTime": requested_at.isoformat(),
        "ShipFromWarehouse": quote.ship_from_warehouse,
        "ShipTo": ship_to,
    }
    if quote.service_level:
        request["ServiceLevel"] = quote.service_level
    request["ShipMethodCode"] = quote.ship_method_code or ""
    request["Items"] = {
        "Item": [
            {
                "@lineNumber": str(item.line_number or index),
                "SKU": item.sku,
                "MfgPartNumber": item.mfg_part_number,
                "Quantity": item.quantity,
            }
            for index, item in enumerate(quote.items, start=1)
        ]
    }

    document = {
        "SynnexB2B": {
            "Credential": {
                "UserID": credentials.user_name,
                "Password": credentials.password,
            },
            "FreightQuoteRequest": request,
        }
    }
    return xmltodict.unparse(document, pretty=True)


def parse_freight_quote(xml_text: str) -> Dict[str, Any]:
    """
    Parse a FreightQuote response into a dict.

    Raises:
        TdSynnexError: body is not well-formed XML
    """
    try:
        return xmltodict.parse(xml_text)
    except ExpatError as e:
        raise TdSynnexError(f"Unparseable TD SYNNEX response: {e}", response_body=xml_text[:2000])


class TdSynnexClient:
    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        timeout: Optional[float] = None,
    ):
        self.credential_store = credential_store or get_credential_store()
        self.timeout = timeout or settings.TDSYNNEX_TIMEOUT_SECONDS
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request_freight_quote(
        self,
        shop_domain: str,
        quote: TdSynnexQuoteRequest,
        credentials: Optional[TdSynnexCredentials] = None,
    ) -> Dict[str, Any]:
        """
        Request a freight quote.

        Returns:
            {"response": raw XML text, "cacheHit": False}

        Raises:
            CredentialsNotConfiguredError: shop has no TD SYNNEX credentials
            TdSynnexError: missing password, transport failure or non-2xx
        """
        if credentials is None:
            credentials = await self.credential_store.get_tdsynnex(shop_domain)
        if credentials is None:
            raise CredentialsNotConfiguredError(
                "No TD SYNNEX credentials configured for shop.",
                shop_domain=shop_domain,
            )
        if not credentials.password:
            raise TdSynnexError("Missing password. Update the TD SYNNEX credentials form before testing rates.")

        url = SANDBOX_FREIGHT_URL if credentials.sandbox else FREIGHT_URL
        body = build_freight_quote_xml(credentials, quote)

        client = await self._get_http_client()
        try:
            response = await client.post(url, content=body.encode("utf-8"), headers=XML_HEADERS)
        except httpx.RequestError as e:
            logger.error(f"[TD_SYNNEX] Request error for {shop_domain}: {e}")
            raise TdSynnexError(f"Unexpected error: {e}")

        if not response.is_success:
            logger.error(
                f"[TD_SYNNEX] Freight quote failed: {response.status_code} "
                f"{response.reason_phrase} - {response.text[:500]}"
            )
            raise TdSynnexError(
                "Failed to fetch freight estimate",
                status=response.status_code,
                response_body=response.text,
            )

        logger.info(f"[TD_SYNNEX] Freight quote received for {shop_domain} ({len(response.text)} bytes)")
        return {"response": response.text, "cacheHit": False}


# Singleton
_client: Optional[TdSynnexClient] = None


def get_tdsynnex_client() -> TdSynnexClient:
    global _client
    if _client is None:
        _client = TdSynnexClient()
    return _client
