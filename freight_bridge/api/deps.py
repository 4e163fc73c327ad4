"""
API dependencies
"""
import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from freight_bridge.core.config import settings


def tokens_match(provided: Optional[str], expected: str) -> bool:
    return bool(provided) and hmac.compare_digest(provided.encode(), expected.encode())


async def require_app_token(x_app_token: Optional[str] = Header(None, alias="X-App-Token")) -> None:
    """Shared-secret check for the admin API. Open when APP_BACKEND_TOKEN is unset."""
    if settings.APP_BACKEND_TOKEN and not tokens_match(x_app_token, settings.APP_BACKEND_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


async def require_cron_auth(
    authorization: Optional[str] = Header(None),
    x_vercel_cron: Optional[str] = Header(None, alias="x-vercel-cron"),
) -> None:
    """
    Cron trigger check.

    With CRON_SECRET set the request must carry "Bearer <CRON_SECRET>";
    otherwise only the scheduler's x-vercel-cron: true header is accepted.
    """
    if settings.CRON_SECRET:
        authorized = tokens_match(authorization, f"Bearer {settings.CRON_SECRET}")
    else:
        authorized = x_vercel_cron == "true"

    if not authorized:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


async def require_shopify_access_token(
    x_shopify_access_token: Optional[str] = Header(None, alias="X-Shopify-Access-Token"),
) -> str:
    """Shop's Admin API token, forwarded by the embedded app for carrier-service calls."""
    if not x_shopify_access_token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Shopify-Access-Token header required",
        )
    return x_shopify_access_token
