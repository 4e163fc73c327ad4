"""
Shopify request verification

Carrier-service callbacks are signed with the app's API secret:
X-Shopify-Hmac-Sha256 = base64(HMAC-SHA256(secret, raw_body)).
"""
import base64
import hashlib
import hmac
from typing import Optional, Union


class ShopifySignatureError(Exception):
    """Carrier callback failed HMAC verification."""


def compute_shopify_hmac(secret: str, raw_body: Union[bytes, str]) -> str:
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_shopify_hmac(secret: Optional[str], raw_body: Union[bytes, str], provided: Optional[str]) -> None:
    """
    Verify a carrier-service callback signature.

    Raises:
        ShopifySignatureError: secret missing, header missing or mismatch
    """
    if not secret:
        raise ShopifySignatureError("SHOPIFY_API_SECRET missing for HMAC validation")
    if not provided:
        raise ShopifySignatureError("Missing Shopify HMAC header")

    expected = compute_shopify_hmac(secret, raw_body)
    if not hmac.compare_digest(expected.encode(), provided.encode()):
        raise ShopifySignatureError("Invalid Shopify HMAC")
