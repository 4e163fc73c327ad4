"""
CORS middleware

The admin API only answers the configured origins. Storefront endpoints are
called from any shop's theme and set their own wildcard CORS headers, so
they bypass the origin check entirely.
"""
from typing import Iterable

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

PUBLIC_CORS_PATHS = ("/api/cart-estimate",)


class AdminCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that leaves public storefront paths alone."""

    def __init__(self, app: ASGIApp, public_paths: Iterable[str] = PUBLIC_CORS_PATHS, **kwargs):
        super().__init__(app, **kwargs)
        self.public_paths = tuple(public_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and scope["path"].rstrip("/") in self.public_paths:
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)
