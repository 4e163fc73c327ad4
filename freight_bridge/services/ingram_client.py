"""
Ingram Micro API Client

Implements the two reseller API calls the freight flow needs:
- OAuth 2.0 client-credentials token exchange
- v6 freight estimate

Token caching and request coalescing live one layer up in
services/freight_estimates.py; this client only speaks HTTP.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from freight_bridge.core.config import settings
from freight_bridge.core.exceptions import IngramAuthError, IngramFreightError
from freight_bridge.services.credentials import IngramCredentials

logger = logging.getLogger(__name__)

OAUTH_URL = "https://api.ingrammicro.com:443/oauth/oauth30/token"
FREIGHT_URL = "https://api.ingrammicro.com:443/resellers/v6/freightestimate"
SANDBOX_FREIGHT_URL = "https://api.ingrammicro.com:443/sandbox/resellers/v6/freightestimate"

DEFAULT_TOKEN_TTL_SECONDS = 3600
DEFAULT_BILL_TO_ADDRESS_ID = "000"
DEFAULT_SHIP_TO_ADDRESS_ID = "200"


def freight_url_for(credentials: IngramCredentials) -> str:
    return SANDBOX_FREIGHT_URL if credentials.sandbox else FREIGHT_URL


def build_freight_headers(
    credentials: IngramCredentials,
    access_token: str,
    correlation_id: str,
) -> Dict[str, str]:
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
        "IM-CustomerNumber": credentials.customer_number,
        "IM-CountryCode": credentials.country_code,
        "IM-CorrelationID": correlation_id,
        "IM-CustomerContact": credentials.contact_email or "",
    }
    if credentials.sender_id:
        headers["IM-SenderID"] = credentials.sender_id
    return headers


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


class IngramClient:
    """
    Async HTTP client for Ingram Micro.

    The underlying httpx client is created lazily and reused across calls.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.INGRAM_TIMEOUT_SECONDS
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_access_token(self, client_id: str, client_secret: str) -> Tuple[str, int]:
        """
        Exchange client credentials for a bearer token.

        Returns:
            (access_token, expires_in_seconds)

        Raises:
            IngramAuthError: non-2xx response, transport error or no token in body
        """
        client = await self._get_http_client()
        try:
            response = await client.post(
                OAUTH_URL,
                data={
                    "grant_type": "client_credentials",
                    "client_id": client_id,
                    "client_secret": client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.RequestError as e:
            logger.error(f"[INGRAM] OAuth request error: {e}")
            raise IngramAuthError(f"Network error contacting Ingram OAuth: {e}")

        body = _json_or_empty(response)

        if not response.is_success:
            logger.error(f"[INGRAM] OAuth failed: {response.status_code} - {response.text[:500]}")
            raise IngramAuthError(
                "Failed to retrieve access token",
                status=response.status_code,
                response_body=body,
            )

        expires_in = body.get("expires_in") if isinstance(body, dict) else None
        if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool):
            expires_in = DEFAULT_TOKEN_TTL_SECONDS
        access_token = body.get("access_token") if isinstance(body, dict) else None

        if not isinstance(access_token, str) or not access_token:
            raise IngramAuthError(
                "Access token missing from OAuth response",
                status=response.status_code,
                response_body=body,
            )

        return access_token, int(expires_in)

    async def request_freight_estimate(
        self,
        credentials: IngramCredentials,
        access_token: str,
        body: Dict[str, Any],
        correlation_id: str,
    ) -> Dict[str, Any]:
        """
        POST a freight estimate request.

        Returns:
            Parsed JSON response ({} when the body is not JSON)

        Raises:
            IngramFreightError: non-2xx response or transport error
        """
        client = await self._get_http_client()
        try:
            response = await client.post(
                freight_url_for(credentials),
                json=body,
                headers=build_freight_headers(credentials, access_token, correlation_id),
            )
        except httpx.RequestError as e:
            logger.error(f"[INGRAM] [{correlation_id}] Freight request error: {e}")
            raise IngramFreightError(f"Network error contacting Ingram: {e}")

        data = _json_or_empty(response)

        if not response.is_success:
            logger.error(
                f"[INGRAM] [{correlation_id}] Freight estimate failed: "
                f"{response.status_code} {response.reason_phrase} - {response.text[:500]}"
            )
            raise IngramFreightError(
                "Failed to fetch freight estimate",
                status=response.status_code,
                response_body=data,
            )

        return data if isinstance(data, dict) else {"data": data}
