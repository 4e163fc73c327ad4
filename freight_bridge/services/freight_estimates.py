"""
Freight Estimate Service v1.0.0

Sits in front of the Ingram freight estimate API, which is slow (seconds)
and hit by bursts of identical checkout requests.

- Result cache: successful responses cached for 2 minutes, keyed by a
  normalized shop + destination + line-item signature.
- Single-flight: concurrent callers with the same key share one upstream
  call; the in-flight marker is cleared when the call settles.
- Token management: cached OAuth token reused until 60s before expiry,
  refreshed tokens and validation status persisted to the credential store.

The in-flight check and registration happen with no await in between, which
is what makes single-flight hold on one event loop.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Tuple

from freight_bridge.core.config import settings
from freight_bridge.core.exceptions import (
    CredentialsNotConfiguredError,
    IngramAuthError,
    IngramFreightError,
)
from freight_bridge.core.ttl_cache import TTLCache
from freight_bridge.schemas.freight import FreightEstimateRequest
from freight_bridge.services.credentials import (
    CredentialStore,
    IngramCredentials,
    VALIDATION_FAILED,
    get_credential_store,
)
from freight_bridge.services.ingram_client import (
    DEFAULT_BILL_TO_ADDRESS_ID,
    DEFAULT_SHIP_TO_ADDRESS_ID,
    IngramClient,
)

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_BUFFER_SECONDS = 60
CACHE_KEY_SEPARATOR = "|"

# Priority order for the field identifying a line in the cache key
LINE_IDENTITY_FIELDS = ("ingramPartNumber", "itemNumber", "customerLineNumber", "sku")


@dataclass
class FreightEstimateResult:
    correlation_id: str
    response: Dict[str, Any]
    cache_hit: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlationId": self.correlation_id,
            "response": self.response,
            "cacheHit": self.cache_hit,
        }


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _line_quantity(raw: Any) -> str:
    """Positive quantity as text; anything else counts as 1."""
    try:
        qty = float(raw if raw is not None else 1)
    except (TypeError, ValueError):
        return "1"
    if qty != qty or qty <= 0 or qty == float("inf"):
        return "1"
    return str(int(qty)) if qty.is_integer() else str(qty)


def line_signature(lines: Iterable[Dict[str, Any]]) -> str:
    """
    Order-independent signature of the request lines.

    Each line contributes "<identity>:<qty>" where identity is the first
    non-empty of LINE_IDENTITY_FIELDS; lines with no identity are skipped.
    """
    tokens = []
    for line in lines or []:
        identity = ""
        for field in LINE_IDENTITY_FIELDS:
            identity = _normalize(line.get(field))
            if identity:
                break
        if identity:
            tokens.append(f"{identity}:{_line_quantity(line.get('quantity'))}")
    return CACHE_KEY_SEPARATOR.join(sorted(tokens))


def build_freight_cache_key(shop_domain: str, request: FreightEstimateRequest) -> str:
    """Deterministic cache key for a shop's freight request."""
    address = request.ship_to_address
    return CACHE_KEY_SEPARATOR.join([
        shop_domain.lower(),
        _normalize(address.country_code).upper(),
        _normalize(address.state).upper(),
        _normalize(address.postal_code),
        _normalize(address.city).lower(),
        _normalize(address.address_line1).lower(),
        _normalize(request.bill_to_address_id),
        _normalize(request.ship_to_address_id),
        line_signature(request.lines),
    ])


class FreightEstimateService:
    """
    Cached, coalesced access to Ingram freight estimates.

    One instance per process (see get_freight_estimate_service); tests build
    their own with fake collaborators.
    """

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        client: Optional[IngramClient] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.credential_store = credential_store or get_credential_store()
        self.client = client or IngramClient()
        self.cache: TTLCache[str, FreightEstimateResult] = cache if cache is not None else TTLCache(
            ttl_seconds=settings.FREIGHT_CACHE_TTL_SECONDS,
            max_entries=settings.FREIGHT_CACHE_MAX_ENTRIES,
        )
        self._inflight: Dict[str, "asyncio.Future[FreightEstimateResult]"] = {}

    async def close(self):
        await self.client.close()

    def inflight_count(self) -> int:
        return len(self._inflight)

    # ==================== Credentials / tokens ====================

    async def get_credentials_or_raise(self, shop_domain: str) -> IngramCredentials:
        credentials = await self.credential_store.get_ingram(shop_domain)
        if credentials is None:
            raise CredentialsNotConfiguredError(
                "No Ingram Micro credentials configured for shop.",
                shop_domain=shop_domain,
            )
        return credentials

    async def ensure_access_token(
        self,
        credentials: IngramCredentials,
        force_refresh: bool = False,
    ) -> str:
        """
        Return a bearer token valid for at least the expiry buffer.

        A refresh persists the new token and "Success"; a failed exchange
        records "Failed" before the IngramAuthError propagates.
        """
        now = datetime.now(timezone.utc)
        buffer = timedelta(seconds=TOKEN_EXPIRY_BUFFER_SECONDS)
        if (
            not force_refresh
            and credentials.access_token
            and credentials.access_token_expires_at
            and credentials.access_token_expires_at > now + buffer
        ):
            return credentials.access_token

        try:
            token, expires_in = await self.client.fetch_access_token(
                credentials.client_id, credentials.client_secret
            )
        except IngramAuthError:
            await self.credential_store.record_ingram_validation(
                credentials.shop_domain, VALIDATION_FAILED
            )
            raise

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        await self.credential_store.record_ingram_token(credentials.shop_domain, token, expires_at)

        credentials.access_token = token
        credentials.access_token_expires_at = expires_at
        logger.info(f"[FREIGHT] Refreshed Ingram token for {credentials.shop_domain} (expires in {expires_in}s)")
        return token

    async def prefetch_auth(self, shop_domain: str) -> Tuple[IngramCredentials, str]:
        """Load credentials and a valid token ahead of the freight call."""
        credentials = await self.get_credentials_or_raise(shop_domain)
        token = await self.ensure_access_token(credentials)
        return credentials, token

    async def test_credentials(self, shop_domain: str) -> str:
        """Force a token refresh to prove the stored credentials work."""
        credentials = await self.get_credentials_or_raise(shop_domain)
        return await self.ensure_access_token(credentials, force_refresh=True)

    # ==================== Freight estimate ====================

    async def request_freight_estimate(
        self,
        shop_domain: str,
        request: FreightEstimateRequest,
        credentials: Optional[IngramCredentials] = None,
        access_token: Optional[str] = None,
    ) -> FreightEstimateResult:
        """
        Get a freight estimate, from cache, a shared in-flight call, or a new call.

        Args:
            shop_domain: Shop the request belongs to
            request: Ship-to address and lines
            credentials: Pre-loaded credentials (skips a store read)
            access_token: Pre-fetched token (skips a token check)
        """
        cache_key = build_freight_cache_key(shop_domain, request)

        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"[FREIGHT] Cache hit for {shop_domain}")
            return FreightEstimateResult(cached.correlation_id, cached.response, cache_hit=True)

        inflight = self._inflight.get(cache_key)
        if inflight is None:
            inflight = asyncio.ensure_future(
                self._fetch_and_cache(cache_key, shop_domain, request, credentials, access_token)
            )
            self._inflight[cache_key] = inflight
            inflight.add_done_callback(lambda f, key=cache_key: self._settle(key, f))
        else:
            logger.debug(f"[FREIGHT] Joining in-flight request for {shop_domain}")

        # Shielded so one caller going away does not cancel the shared call
        return await asyncio.shield(inflight)

    def _settle(self, cache_key: str, future: "asyncio.Future[FreightEstimateResult]") -> None:
        if self._inflight.get(cache_key) is future:
            del self._inflight[cache_key]
        if not future.cancelled():
            # Mark the exception retrieved when every waiter has gone away
            future.exception()

    async def _fetch_and_cache(
        self,
        cache_key: str,
        shop_domain: str,
        request: FreightEstimateRequest,
        credentials: Optional[IngramCredentials],
        access_token: Optional[str],
    ) -> FreightEstimateResult:
        if credentials is None:
            credentials = await self.get_credentials_or_raise(shop_domain)
        if not credentials.contact_email:
            raise IngramFreightError(
                "Missing contact email. Update the credentials form before testing rates."
            )
        token = access_token or await self.ensure_access_token(credentials)
        correlation_id = str(uuid.uuid4())

        body = {
            "billToAddressId": request.bill_to_address_id
            or credentials.bill_to_address_id
            or DEFAULT_BILL_TO_ADDRESS_ID,
            "shipToAddressId": request.ship_to_address_id
            or credentials.ship_to_address_id
            or DEFAULT_SHIP_TO_ADDRESS_ID,
            "shipToAddress": request.ship_to_address.to_wire(),
            "lines": request.lines,
        }

        response = await self.client.request_freight_estimate(credentials, token, body, correlation_id)
        result = FreightEstimateResult(correlation_id, response, cache_hit=False)
        self.cache.set(cache_key, result)
        return result


# Singleton
_service: Optional[FreightEstimateService] = None


def get_freight_estimate_service() -> FreightEstimateService:
    global _service
    if _service is None:
        _service = FreightEstimateService()
    return _service
