from freight_bridge.models.credential import IngramCredential, TdSynnexCredential
from freight_bridge.models.product_mapping import ProductMapping, ProductSyncJob
from freight_bridge.models.carrier_configuration import CarrierConfiguration
from freight_bridge.models.fallback_rate import FallbackRateSetting
from freight_bridge.models.rate_request_log import RateRequestLog

__all__ = [
    "IngramCredential",
    "TdSynnexCredential",
    "ProductMapping",
    "ProductSyncJob",
    "CarrierConfiguration",
    "FallbackRateSetting",
    "RateRequestLog",
]
