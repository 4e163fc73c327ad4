"""
Shopify Admin API - carrier service registration

Shopify only calls our rates endpoint at checkout once a carrier service
pointing at it is registered on the shop. These helpers list, find, create
and delete that registration through the Admin REST API.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from freight_bridge.core.config import settings
from freight_bridge.core.exceptions import ShopifyAdminError

logger = logging.getLogger(__name__)

RATES_CALLBACK_PATH = "/api/ingram/rates"


def rates_callback_url(app_url: Optional[str] = None) -> str:
    base = (app_url if app_url is not None else settings.SHOPIFY_APP_URL).rstrip("/")
    return f"{base}{RATES_CALLBACK_PATH}"


class ShopifyAdminClient:
    """Carrier-service calls for one shop's Admin API access token."""

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.shop_domain = shop_domain
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self._client = httpx.AsyncClient(
            base_url=f"https://{shop_domain}/admin/api/{self.api_version}",
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=15.0,
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self) -> "ShopifyAdminClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"[SHOPIFY] {method} {path} failed for {self.shop_domain}: {e}")
            raise ShopifyAdminError(f"Network error contacting Shopify: {e}")

        if not response.is_success:
            logger.error(
                f"[SHOPIFY] {method} {path} returned {response.status_code} "
                f"for {self.shop_domain} - {response.text[:500]}"
            )
            try:
                body = response.json()
            except ValueError:
                body = response.text[:2000]
            raise ShopifyAdminError(
                f"Shopify Admin API returned {response.status_code}",
                status=response.status_code,
                response_body=body,
            )
        return response

    async def list_carrier_services(self) -> List[Dict[str, Any]]:
        response = await self._request("GET", "/carrier_services.json")
        return response.json().get("carrier_services", [])

    async def find_carrier_service(self, callback_url: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """The carrier service whose callback points at our rates endpoint."""
        callback_url = callback_url or rates_callback_url()
        for service in await self.list_carrier_services():
            if service.get("callback_url") == callback_url:
                return service
        return None

    async def register_carrier_service(
        self,
        name: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create the carrier service, or return the existing registration."""
        callback_url = callback_url or rates_callback_url()
        existing = await self.find_carrier_service(callback_url)
        if existing:
            return existing

        response = await self._request(
            "POST",
            "/carrier_services.json",
            json={
                "carrier_service": {
                    "name": name or settings.SHOPIFY_CARRIER_SERVICE_NAME,
                    "callback_url": callback_url,
                    "service_discovery": True,
                    "carrier_service_type": "api",
                }
            },
        )
        service = response.json().get("carrier_service", {})
        logger.info(f"[SHOPIFY] Registered carrier service {service.get('id')} for {self.shop_domain}")
        return service

    async def delete_carrier_service(self, carrier_service_id: int) -> None:
        await self._request("DELETE", f"/carrier_services/{carrier_service_id}.json")
        logger.info(f"[SHOPIFY] Deleted carrier service {carrier_service_id} for {self.shop_domain}")
