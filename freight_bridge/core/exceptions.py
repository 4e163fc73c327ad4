"""
Freight Bridge Exception Hierarchy

Structured exception classes for the freight quoting subsystems.
All exceptions include code, message, and details so that admin routes can
return diagnostics and checkout routes can log them before falling back.

Exception Hierarchy:
    FreightBridgeError
    ├── CredentialsNotConfiguredError
    ├── IngramError
    │   ├── IngramAuthError
    │   └── IngramFreightError
    ├── TdSynnexError
    ├── CatalogError
    │   ├── CatalogConfigurationError
    │   └── MappingLookupError
    └── ShopifyAdminError
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class FreightBridgeError(Exception):
    """
    Base exception for all Freight Bridge errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
    """

    default_code: str = "FREIGHT_BRIDGE_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class CredentialsNotConfiguredError(FreightBridgeError):
    """No distributor credentials on file for the shop."""
    default_code = "CREDENTIALS_NOT_CONFIGURED"

    def __init__(self, message: str, shop_domain: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["shop_domain"] = shop_domain
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# UPSTREAM DISTRIBUTOR ERRORS
# =============================================================================

class _UpstreamError(FreightBridgeError):
    """Upstream failure carrying the HTTP status and response body."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        response_body: Any = None,
        **kwargs
    ):
        self.status = status
        self.response_body = response_body
        details = kwargs.pop("details", {})
        details.update({
            "status": status,
            "response": response_body,
        })
        super().__init__(message, details=details, **kwargs)


class IngramError(_UpstreamError):
    """Base exception for Ingram Micro API errors."""
    default_code = "INGRAM_ERROR"
    default_severity = "P1"


class IngramAuthError(IngramError):
    """OAuth client-credentials exchange failed."""
    default_code = "INGRAM_AUTH_FAILED"
    default_severity = "P0"


class IngramFreightError(IngramError):
    """Freight estimate request failed."""
    default_code = "INGRAM_FREIGHT_FAILED"


class TdSynnexError(_UpstreamError):
    """TD SYNNEX XML freight quote failed."""
    default_code = "TDSYNNEX_FREIGHT_FAILED"
    default_severity = "P1"


# =============================================================================
# CATALOG ERRORS
# =============================================================================

class CatalogError(FreightBridgeError):
    """Base exception for remote catalog (Supabase) errors."""
    default_code = "CATALOG_ERROR"
    default_severity = "P1"


class CatalogConfigurationError(CatalogError):
    """Remote catalog connection settings are missing."""
    default_code = "CATALOG_NOT_CONFIGURED"


class MappingLookupError(CatalogError):
    """Remote SKU mapping lookup failed."""
    default_code = "MAPPING_LOOKUP_FAILED"


class ShopifyAdminError(_UpstreamError):
    """Shopify Admin API call failed."""
    default_code = "SHOPIFY_ADMIN_FAILED"
